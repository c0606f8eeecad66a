"""
EcoPlate Backend — Authentication Primitives
=============================================

What:  Password hashing (bcrypt), JWT issue/verify (PyJWT, HS256) and the
       `get_current_user` FastAPI dependency.
How:   Clients send `Authorization: Bearer <token>`; the token's `sub` claim
       is the user id. Every failure mode (no header, wrong scheme, bad
       signature, expired token, deleted user) becomes a 401.

Token payload:
    {"sub": "42", "email": "a@b.c", "iat": <issued>, "exp": <issued + 7 days>}
"""

import logging
from datetime import timedelta
from typing import Any, Dict, Optional

import bcrypt
import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ecoplate.config import settings
from ecoplate.database import get_db_session
from ecoplate.exceptions import AuthenticationError
from ecoplate.models.user import User
from ecoplate.utils.dates import utcnow

logger = logging.getLogger(__name__)

# auto_error=False: a missing header is reported through our own 401 body
bearer_scheme = HTTPBearer(auto_error=False)


# ── Passwords ─────────────────────────────────────────────────────────────

def hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database
        logger.warning("Stored password hash could not be parsed")
        return False


# ── Tokens ────────────────────────────────────────────────────────────────

def create_access_token(user_id: int, email: str, expires_in: Optional[timedelta] = None) -> str:
    issued_at = utcnow()
    payload = {
        "sub": str(user_id),
        "email": email,
        "iat": issued_at,
        "exp": issued_at + (expires_in or timedelta(days=settings.jwt_expire_days)),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Verify signature and expiry and return the payload.

    Raises:
        AuthenticationError: expired, tampered or structurally invalid token.
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError(message="Token expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError(message="Invalid token")

    if "sub" not in payload:
        raise AuthenticationError(message="Invalid token")
    return payload


# ── Dependency ────────────────────────────────────────────────────────────

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """
    Resolve the authenticated user for a request.

    Usage:
        @router.get("/things")
        async def list_things(user: User = Depends(get_current_user)): ...
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError()

    try:
        payload = decode_access_token(credentials.credentials)
        user_id = int(payload["sub"])
    except AuthenticationError as e:
        logger.info("Bearer token rejected: %s", e.message)
        raise AuthenticationError() from e
    except (KeyError, TypeError, ValueError):
        raise AuthenticationError()

    user = await db.get(User, user_id)
    if user is None:
        logger.info("Token for unknown user id=%s rejected", user_id)
        raise AuthenticationError()
    return user
