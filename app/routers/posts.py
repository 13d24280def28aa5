from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models import User
from ..schemas import ApiResponse, PaginatedResponse, PostCreate, PostItem
from ..services import post_service
from ..services.jwt_service import JWTService
from ..utils import PageParams, paginated, success

router = APIRouter(prefix="/api/posts", tags=["posts"])


@router.post("", response_model=ApiResponse[PostItem], status_code=status.HTTP_201_CREATED)
async def create_post(
    request: PostCreate,
    current_user: User = Depends(JWTService.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post = await post_service.create_post(db, current_user, request.content)
    return success(post, "Post created successfully")


@router.get("", response_model=PaginatedResponse[PostItem])
async def get_posts(
    page: PageParams = Depends(),
    username: Optional[str] = Query(
        None, description="Case-insensitive match on part of the author's username"),
    current_user: User = Depends(JWTService.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    List posts, newest first.

    Every item carries `likeCount`, `commentCount` and `isLikedByMe` as seen
    by the caller.
    """
    posts, total = await post_service.list_posts(
        db,
        offset=page.offset,
        limit=page.limit,
        username=username,
        current_user_id=current_user.id,
    )
    return paginated(posts, page.page, page.limit, total)
