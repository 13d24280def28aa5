from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models import User
from ..schemas import (
    ApiResponse,
    AuthData,
    ForgotPasswordRequest,
    LoginRequest,
    ResetPasswordRequest,
    ResetTokenData,
    SignupRequest,
    VerifyOtpRequest,
)
from ..services import auth_service
from ..services.jwt_service import JWTService
from ..utils import success

router = APIRouter(
    prefix="/api/auth",
    tags=["authentication"],
    responses={
        400: {"description": "Invalid OTP or reset token"},
        401: {"description": "Invalid credentials"},
        404: {"description": "No account found with this email"},
        409: {"description": "Email or username already registered"},
    }
)


@router.post("/signup", response_model=ApiResponse[AuthData], status_code=status.HTTP_201_CREATED)
async def signup(request: SignupRequest, db: AsyncSession = Depends(get_db)):
    """
    Create an account.

    **Response:**
    - `user`: id, username and email of the new account
    - `token`: JWT access token, send it as `Authorization: Bearer <token>`
    """
    data = await auth_service.signup(
        db, request.username, request.email, request.password)
    return success(data, "User registered successfully")


@router.post("/login", response_model=ApiResponse[AuthData])
async def login(request: LoginRequest, db: AsyncSession = Depends(get_db)):
    data = await auth_service.login(db, request.email, request.password)
    return success(data, "Login successful")


@router.post("/logout", response_model=ApiResponse[None])
async def logout(
    current_user: User = Depends(JWTService.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Log out and stop push notifications to every device of the caller."""
    await auth_service.logout(db, current_user)
    return success(None, "Logged out successfully")


@router.post("/forgot-password", response_model=ApiResponse[None])
async def forgot_password(request: ForgotPasswordRequest, db: AsyncSession = Depends(get_db)):
    await auth_service.forgot_password(db, request.email)
    return success(None, "OTP sent to your email")


@router.post("/verify-otp", response_model=ApiResponse[ResetTokenData])
async def verify_otp(request: VerifyOtpRequest, db: AsyncSession = Depends(get_db)):
    """
    Exchange the one-time code for a reset token.

    **Response:**
    - `resetToken`: valid for `APP_PASSWORD_RESET_EXPIRY_MINUTES` (15 by default),
      accepted only by `/reset-password`
    """
    data = await auth_service.verify_otp(db, request.email, request.otp)
    return success(data, "OTP verified successfully")


@router.post("/reset-password", response_model=ApiResponse[None])
async def reset_password(request: ResetPasswordRequest, db: AsyncSession = Depends(get_db)):
    await auth_service.reset_password(db, request.reset_token, request.new_password)
    return success(None, "Password reset successfully")
