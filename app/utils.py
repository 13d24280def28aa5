import math
from typing import Any, List, Optional

from fastapi import Query

from app.config import settings


def success(data: Any = None, message: str = "Success") -> dict:
    """Wrap a payload in the standard success envelope."""
    return {"success": True, "message": message, "data": data}


def paginated(data: List[Any], page: int, limit: int, total: int, message: str = "Success") -> dict:
    """Success envelope for list endpoints, with page bookkeeping."""
    return {
        "success": True,
        "message": message,
        "data": data,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit) if limit else 0,
        },
    }


def error(message: str, errors: Optional[list] = None) -> dict:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return body


class PageParams:
    """Query parameters shared by the paginated list endpoints."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: Optional[int] = Query(None, ge=1),
    ):
        self.page = page
        self.limit = min(limit or settings.default_page_size,
                         settings.max_page_size)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit
