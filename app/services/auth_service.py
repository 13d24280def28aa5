import logging

from passlib.context import CryptContext
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..exceptions import AuthenticationError, BadRequestError, ConflictError, NotFoundError
from ..models import User
from ..schemas import AuthData, ResetTokenData, UserResponse
from .device_token_service import delete_user_tokens
from .jwt_service import JWTService

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def _auth_data(user: User) -> AuthData:
    return AuthData(
        user=UserResponse.model_validate(user),
        token=JWTService.create_token(user.id, user.email),
    )


async def signup(db: AsyncSession, username: str, email: str, password: str) -> AuthData:
    """Create an account and return it together with a fresh access token."""
    res = await db.execute(
        select(User).where(or_(User.email == email, User.username == username))
    )
    existing = res.scalars().first()
    if existing is not None:
        if existing.email == email:
            raise ConflictError("Email already registered")
        raise ConflictError("Username already taken")

    user = User(
        username=username,
        email=email,
        password_hash=get_password_hash(password),
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race against a concurrent signup with the same identity
        await db.rollback()
        raise ConflictError("Email or username already registered")
    await db.refresh(user)

    logger.info(f"User {user.id} signed up as {user.username}")
    return _auth_data(user)


async def login(db: AsyncSession, email: str, password: str) -> AuthData:
    res = await db.execute(select(User).where(User.email == email))
    user = res.scalar_one_or_none()
    if user is None or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid credentials")
    return _auth_data(user)


async def _get_user_by_email(db: AsyncSession, email: str) -> User:
    res = await db.execute(select(User).where(User.email == email))
    user = res.scalar_one_or_none()
    if user is None:
        raise NotFoundError("No account found with this email")
    return user


async def forgot_password(db: AsyncSession, email: str) -> None:
    """Start a reset. The code is the configured fixed OTP; nothing is mailed."""
    user = await _get_user_by_email(db, email)
    logger.info(f"Password reset requested for user {user.id}")


async def verify_otp(db: AsyncSession, email: str, otp: str) -> ResetTokenData:
    user = await _get_user_by_email(db, email)
    if otp != settings.password_reset_otp:
        logger.info(f"Wrong password reset code for user {user.id}")
        raise BadRequestError("Invalid OTP")
    return ResetTokenData(
        reset_token=JWTService.create_password_reset_token(user.id, user.email))


async def reset_password(db: AsyncSession, reset_token: str, new_password: str) -> None:
    user_id = JWTService.verify_password_reset_token(reset_token)
    user = await db.get(User, user_id)
    if user is None:
        raise BadRequestError("Invalid reset token")

    user.password_hash = get_password_hash(new_password)
    await db.commit()
    logger.info(f"Password reset for user {user.id}")


async def logout(db: AsyncSession, user: User) -> int:
    """Forget every push destination of the user; returns how many were removed."""
    removed = await delete_user_tokens(db, user.id)
    logger.info(f"User {user.id} logged out, removed {removed} device tokens")
    return removed
