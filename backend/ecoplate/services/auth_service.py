"""
EcoPlate Backend — Account Service
===================================

What:  Registration, login and profile updates.
How:   Emails are stored lower-cased and stripped; passwords are bcrypt
       hashed (see ecoplate.auth). Login failures never reveal whether the
       email exists.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ecoplate.auth import create_access_token, hash_password, verify_password
from ecoplate.exceptions import AuthenticationError, ConflictError
from ecoplate.models.user import User
from ecoplate.services.user_points import get_or_create_user_points

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("name", "avatar_url", "user_location")


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:

    async def get_user_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == normalize_email(email)))
        return result.scalar_one_or_none()

    async def register(
        self,
        db: AsyncSession,
        email: str,
        password: str,
        name: str,
        user_location: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create an account and return {"token", "user"}.

        Raises:
            ConflictError: email already registered (409).
        """
        email = normalize_email(email)
        if await self.get_user_by_email(db, email) is not None:
            raise ConflictError(message="Email already registered", context={"field": "email"})

        user = User(
            email=email,
            password_hash=hash_password(password),
            name=name.strip(),
            user_location=user_location,
        )
        try:
            async with db.begin_nested():
                db.add(user)
        except IntegrityError:
            raise ConflictError(message="Email already registered", context={"field": "email"})

        await get_or_create_user_points(db, user.id)
        logger.info("User %d registered", user.id)
        return {"token": create_access_token(user.id, user.email), "user": user}

    async def login(self, db: AsyncSession, email: str, password: str) -> Dict[str, Any]:
        user = await self.get_user_by_email(db, email)
        if user is None or not verify_password(password, user.password_hash):
            logger.info("Failed login attempt")
            raise AuthenticationError(message="Invalid email or password")

        logger.info("User %d logged in", user.id)
        return {"token": create_access_token(user.id, user.email), "user": user}

    async def update_profile(self, db: AsyncSession, user: User, changes: Dict[str, Any]) -> User:
        """Apply only the profile fields present in `changes`."""
        for field in PROFILE_FIELDS:
            if field in changes:
                setattr(user, field, changes[field])
        await db.flush()
        await db.refresh(user)
        return user


auth_service = AuthService()
