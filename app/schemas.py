from pydantic import BaseModel, Field, ConfigDict, EmailStr
from pydantic.alias_generators import to_camel
from typing import Optional, List, Generic, TypeVar
from datetime import datetime

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base for API payloads; the mobile client speaks camelCase."""
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# Envelope

class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class ApiResponse(CamelModel, Generic[T]):
    success: bool = True
    message: str = "Success"
    data: Optional[T] = None


class PaginatedResponse(CamelModel, Generic[T]):
    success: bool = True
    message: str = "Success"
    data: List[T]
    pagination: Pagination


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    errors: Optional[list] = None


# Auth

class SignupRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=30, examples=["alice"])
    email: EmailStr = Field(..., examples=["alice@example.com"])
    password: str = Field(..., min_length=6, max_length=100)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserResponse(CamelModel):
    id: int
    username: str
    email: str


class AuthData(CamelModel):
    user: UserResponse
    token: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class VerifyOtpRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=6, max_length=6, examples=["123456"])


class ResetPasswordRequest(CamelModel):
    reset_token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=100)


class ResetTokenData(CamelModel):
    reset_token: str


# Posts

class PostCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=500)


class AuthorSummary(CamelModel):
    id: int
    username: str


class PostItem(CamelModel):
    id: int
    content: str
    created_at: datetime
    author: AuthorSummary
    like_count: int = 0
    comment_count: int = 0
    is_liked_by_me: bool = False


# Likes

class LikeToggleData(CamelModel):
    liked: bool
    like_count: int


# Comments

class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=300)


class CommentItem(CamelModel):
    id: int
    content: str
    created_at: datetime
    author: AuthorSummary


# Notifications

class RegisterTokenRequest(BaseModel):
    token: str = Field(..., min_length=1)


class DeviceTokenResponse(CamelModel):
    id: int
    token: str
    updated_at: Optional[datetime] = None
