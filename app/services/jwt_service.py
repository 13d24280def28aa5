from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from ..config import settings
from ..database import get_db
from ..exceptions import BadRequestError
from ..models import User

PASSWORD_RESET_TOKEN_TYPE = "password-reset"

# JWT token scheme; missing headers are reported by get_current_user as 401
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


class JWTService:
    @staticmethod
    def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
        """Create a JWT access token"""
        to_encode = data.copy()

        if expires_delta:
            expire = datetime.now(timezone.utc) + expires_delta
        else:
            expire = datetime.now(timezone.utc) + \
                timedelta(minutes=settings.jwt_expiry_minutes)

        to_encode.update({"exp": expire})
        encoded_jwt = jwt.encode(
            to_encode,
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm
        )
        return encoded_jwt

    @staticmethod
    def create_token(user_id: int, email: Optional[str] = None, expires_delta: Optional[timedelta] = None) -> str:
        """Create a JWT token for user authentication"""
        data = {"sub": str(user_id)}
        if email:
            data["email"] = email
        return JWTService.create_access_token(data, expires_delta)

    @staticmethod
    def create_password_reset_token(user_id: int, email: str) -> str:
        """Short-lived token that only authorizes a password reset"""
        return JWTService.create_access_token(
            {"sub": str(user_id), "email": email, "type": PASSWORD_RESET_TOKEN_TYPE},
            timedelta(minutes=settings.password_reset_expiry_minutes),
        )

    @staticmethod
    def verify_password_reset_token(token: str) -> int:
        """Return the user id carried by a valid reset token"""
        try:
            payload = jwt.decode(
                token,
                settings.jwt_secret_key,
                algorithms=[settings.jwt_algorithm]
            )
        except JWTError:
            raise BadRequestError("Invalid or expired reset token")

        if payload.get("type") != PASSWORD_RESET_TOKEN_TYPE:
            raise BadRequestError("Invalid reset token")
        try:
            return int(payload["sub"])
        except (KeyError, ValueError, TypeError):
            raise BadRequestError("Invalid reset token")

    @staticmethod
    def verify_token(token: str) -> dict:
        """Verify and decode a JWT token"""
        try:
            payload = jwt.decode(
                token,
                settings.jwt_secret_key,
                algorithms=[settings.jwt_algorithm]
            )
            return payload
        except JWTError:
            raise _unauthorized("Invalid or expired token")

    @staticmethod
    async def get_current_user(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
        db: AsyncSession = Depends(get_db)
    ) -> User:
        """Get the current authenticated user from JWT token"""
        if credentials is None or not credentials.credentials:
            raise _unauthorized("Authentication required")

        payload = JWTService.verify_token(credentials.credentials)
        if payload.get("type") == PASSWORD_RESET_TOKEN_TYPE:
            raise _unauthorized("Invalid or expired token")

        user_id_str = payload.get("sub")
        if user_id_str is None:
            raise _unauthorized("Could not validate credentials")

        try:
            user_id = int(user_id_str)
        except (ValueError, TypeError):
            raise _unauthorized("Invalid user ID in token")

        # Get user from database
        stmt = select(User).where(User.id == user_id)
        result = await db.execute(stmt)
        user = result.scalar_one_or_none()

        if user is None:
            raise _unauthorized("User not found")

        return user
