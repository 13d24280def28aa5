"""
HTTP client for the feed API.

Wraps every call in the response envelope check: a transport error or a
`{"success": false}` body both surface as FeedApiError.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from .models import Comment, FeedPage, LikeState, Pagination, Post, Session

logger = logging.getLogger(__name__)


class FeedApiError(Exception):
    """A request that did not produce a confirmed server result."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class FeedApiClient:
    TIMEOUT = 30.0  # Default timeout in seconds

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/api",
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "FeedApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self._client.request(
                method, path, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise FeedApiError(f"Network error: {e}") from e

        try:
            body = response.json()
        except ValueError:
            raise FeedApiError(
                f"Unexpected response ({response.status_code})", response.status_code)

        if response.is_error or not body.get("success", False):
            raise FeedApiError(
                body.get("message") or f"Request failed ({response.status_code})",
                response.status_code,
            )
        return body

    async def _authenticate(self, path: str, payload: Dict[str, str]) -> Session:
        data = (await self._request("POST", path, json=payload))["data"]
        self.token = data["token"]
        user = data["user"]
        return Session(
            user_id=user["id"],
            username=user["username"],
            email=user["email"],
            token=data["token"],
        )

    async def signup(self, username: str, email: str, password: str) -> Session:
        return await self._authenticate(
            "/auth/signup", {"username": username, "email": email, "password": password})

    async def login(self, email: str, password: str) -> Session:
        return await self._authenticate(
            "/auth/login", {"email": email, "password": password})

    async def logout(self) -> None:
        await self._request("POST", "/auth/logout")
        self.token = None

    async def create_post(self, content: str) -> Post:
        body = await self._request("POST", "/posts", json={"content": content})
        return Post.from_api(body["data"])

    async def get_posts(self, page: int = 1, limit: int = 20, username: Optional[str] = None) -> FeedPage:
        params: Dict[str, Any] = {"page": page, "limit": limit}
        if username:
            params["username"] = username
        body = await self._request("GET", "/posts", params=params)
        return FeedPage(
            posts=tuple(Post.from_api(p) for p in body["data"]),
            pagination=Pagination.from_api(body["pagination"]),
        )

    async def toggle_like(self, post_id: int) -> LikeState:
        data = (await self._request("POST", f"/posts/{post_id}/like"))["data"]
        return LikeState(liked=data["liked"], like_count=data["likeCount"])

    async def create_comment(self, post_id: int, content: str) -> Comment:
        body = await self._request(
            "POST", f"/posts/{post_id}/comment", json={"content": content})
        return Comment.from_api(body["data"])

    async def get_comments(self, post_id: int, page: int = 1, limit: int = 20):
        body = await self._request(
            "GET", f"/posts/{post_id}/comments", params={"page": page, "limit": limit})
        return (
            [Comment.from_api(c) for c in body["data"]],
            Pagination.from_api(body["pagination"]),
        )

    async def register_device_token(self, token: str) -> None:
        await self._request("POST", "/notifications/register-token", json={"token": token})
