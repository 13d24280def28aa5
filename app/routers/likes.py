from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models import User
from ..schemas import ApiResponse, LikeToggleData
from ..services.jwt_service import JWTService
from ..services.like_service import toggle_like
from ..services.notification_service import NotificationScheduler, get_notification_scheduler
from ..utils import success

router = APIRouter(prefix="/api/posts", tags=["likes"])


@router.post("/{post_id}/like", response_model=ApiResponse[LikeToggleData])
async def toggle_post_like(
    post_id: int,
    current_user: User = Depends(JWTService.get_current_user),
    db: AsyncSession = Depends(get_db),
    scheduler: NotificationScheduler = Depends(get_notification_scheduler),
):
    """
    Like the post, or remove the like if the caller already liked it.

    The post author is notified about new likes from other users after the
    response has been sent.
    """
    result = await toggle_like(db, post_id, current_user.id, scheduler)
    return success(result, "Post liked" if result.liked else "Post unliked")
