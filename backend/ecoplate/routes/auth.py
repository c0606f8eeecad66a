"""
EcoPlate Backend — Account Routes
==================================

    POST  /api/v1/auth/register   create account, returns {token, user}
    POST  /api/v1/auth/login      returns {token, user}
    GET   /api/v1/auth/me         current profile
    PATCH /api/v1/auth/me         update name / avatar_url / user_location
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ecoplate.auth import get_current_user
from ecoplate.database import get_db_session
from ecoplate.models.user import User
from ecoplate.schemas.auth import (
    AuthResponse,
    LoginRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    UserResponse,
)
from ecoplate.schemas.common import ErrorResponse
from ecoplate.services.auth_service import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])


@router.post(
    "/register",
    status_code=201,
    response_model=AuthResponse,
    responses={409: {"description": "Email already registered", "model": ErrorResponse}},
    summary="Create an account",
)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db_session)) -> AuthResponse:
    result = await auth_service.register(
        db,
        email=body.email,
        password=body.password,
        name=body.name,
        user_location=body.user_location,
    )
    return AuthResponse(token=result["token"], user=UserResponse.model_validate(result["user"]))


@router.post(
    "/login",
    response_model=AuthResponse,
    responses={401: {"description": "Invalid email or password", "model": ErrorResponse}},
    summary="Log in with email and password",
)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db_session)) -> AuthResponse:
    result = await auth_service.login(db, body.email, body.password)
    return AuthResponse(token=result["token"], user=UserResponse.model_validate(result["user"]))


@router.get("/me", response_model=UserResponse, summary="Current user profile")
async def get_profile(user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(user)


@router.patch("/me", response_model=UserResponse, summary="Update profile")
async def update_profile(
    body: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    updated = await auth_service.update_profile(db, user, body.model_dump(exclude_unset=True))
    return UserResponse.model_validate(updated)
