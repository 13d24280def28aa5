from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models import User
from ..schemas import ApiResponse, CommentCreate, CommentItem, PaginatedResponse
from ..services import comment_service
from ..services.jwt_service import JWTService
from ..services.notification_service import NotificationScheduler, get_notification_scheduler
from ..utils import PageParams, paginated, success

router = APIRouter(prefix="/api/posts", tags=["comments"])


@router.post("/{post_id}/comment", response_model=ApiResponse[CommentItem], status_code=status.HTTP_201_CREATED)
async def create_comment(
    post_id: int,
    request: CommentCreate,
    current_user: User = Depends(JWTService.get_current_user),
    db: AsyncSession = Depends(get_db),
    scheduler: NotificationScheduler = Depends(get_notification_scheduler),
):
    comment = await comment_service.create_comment(
        db, post_id, current_user.id, request.content, scheduler)
    return success(comment, "Comment added successfully")


@router.get("/{post_id}/comments", response_model=PaginatedResponse[CommentItem])
async def get_comments(
    post_id: int,
    page: PageParams = Depends(),
    current_user: User = Depends(JWTService.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    comments, total = await comment_service.list_comments(
        db, post_id, offset=page.offset, limit=page.limit)
    return paginated(comments, page.page, page.limit, total)
