"""
Auth service — registration, login and profile lookup.

Users are not cached; they are read on login and on ``/auth/me`` only.
"""
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from article_api.config import settings
from article_api.exceptions import AuthenticationError, ConflictError, NotFoundError
from article_api.models import User
from article_api.repository import parse_uuid, serialize_user
from article_api.schemas import LoginRequest, RegisterRequest
from article_api.security import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)


async def _find_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def register(db: AsyncSession, data: RegisterRequest) -> dict:
    """
    Create a user and return its public profile.

    Raises ConflictError when the email is already registered, whether
    detected up front or by the unique constraint under a race.
    """
    if await _find_by_email(db, data.email) is not None:
        raise ConflictError("Email is already registered")

    user = User(email=data.email, password=hash_password(data.password), name=data.name)
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise ConflictError("Email is already registered") from exc

    logger.info("Registered user %s", user.id)
    return serialize_user(user)


async def login(db: AsyncSession, data: LoginRequest) -> dict:
    user = await _find_by_email(db, data.email)
    if user is None or not verify_password(data.password, user.password):
        raise AuthenticationError("Invalid credentials")

    token = create_access_token(str(user.id), user.email)
    return {
        "access_token": token,
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    }


async def get_profile(db: AsyncSession, user_id: str) -> dict:
    pk = parse_uuid(user_id)
    user = await db.get(User, pk) if pk is not None else None
    if user is None:
        raise NotFoundError("User not found")
    return serialize_user(user)
