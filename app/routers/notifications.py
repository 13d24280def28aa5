from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models import User
from ..schemas import ApiResponse, DeviceTokenResponse, RegisterTokenRequest
from ..services.device_token_service import upsert_token
from ..services.jwt_service import JWTService
from ..utils import success

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.post("/register-token", response_model=ApiResponse[DeviceTokenResponse])
async def register_token(
    request: RegisterTokenRequest,
    current_user: User = Depends(JWTService.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Register the FCM token of the calling device. Re-registering refreshes it."""
    row = await upsert_token(db, current_user.id, request.token)
    return success(DeviceTokenResponse.model_validate(row), "FCM token registered successfully")
