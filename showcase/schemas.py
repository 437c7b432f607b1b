"""
Pydantic request / response schemas for the API layer.
Kept separate from ORM models to avoid coupling transport to storage.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


# ──────────────────────────── Users ───────────────────────────────────────

class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    # Passwords are taken verbatim; only name and email are trimmed
    password: str = Field(..., min_length=6)

    @field_validator("name", "email", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.lower()


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.strip().lower()


class ProfileUpdate(BaseModel):
    """Partial profile update — only fields present in the body are applied."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[str] = Field(None, pattern=r"^[^@\s]+@[^@\s]+$")
    phone: Optional[str] = None
    bio: Optional[str] = None
    university: Optional[str] = None
    major: Optional[str] = None
    year: Optional[str] = None
    interests: Optional[list[str]] = None
    skills: Optional[list[str]] = None
    github: Optional[str] = None
    linkedin: Optional[str] = None
    profile_image: Optional[str] = None
    profile_setup_complete: Optional[bool] = None

    class Config:
        str_strip_whitespace = True


class UserSummary(BaseModel):
    user_id: str
    name: str
    profile_image: Optional[str] = None

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    user_id: str
    name: str
    email: str
    phone: Optional[str] = None
    bio: Optional[str] = None
    university: Optional[str] = None
    major: Optional[str] = None
    year: Optional[str] = None
    interests: list[str] = []
    skills: list[str] = []
    github: Optional[str] = None
    linkedin: Optional[str] = None
    profile_image: Optional[str] = None
    profile_setup_complete: bool = False
    created_at: datetime

    class Config:
        from_attributes = True


class PublicProfile(BaseModel):
    user_id: str
    name: str
    email: str
    bio: Optional[str] = None
    university: Optional[str] = None
    major: Optional[str] = None
    year: Optional[str] = None
    interests: list[str] = []
    skills: list[str] = []
    github: Optional[str] = None
    linkedin: Optional[str] = None
    profile_image: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AuthResponse(UserResponse):
    token: str


# ──────────────────────────── Posts ───────────────────────────────────────

class PostCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    specialization: str = Field(..., min_length=1, max_length=100)
    # Reference to already-hosted media; bytes are never sent to this API
    media_url: Optional[str] = Field(None, max_length=1000)
    media_type: Optional[str] = Field(None, pattern="^(image|video|none)$")

    class Config:
        str_strip_whitespace = True


class PostUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1)
    specialization: Optional[str] = Field(None, min_length=1, max_length=100)
    media_url: Optional[str] = Field(None, max_length=1000)
    media_type: Optional[str] = Field(None, pattern="^(image|video|none)$")
    remove_media: bool = False

    class Config:
        str_strip_whitespace = True


class CommentCreate(BaseModel):
    text: str = ""


class LikeResponse(BaseModel):
    user_id: str
    liked_at: datetime

    class Config:
        from_attributes = True


class CommentResponse(BaseModel):
    comment_id: str
    user: Optional[UserSummary]
    text: str
    created_at: datetime


class PostResponse(BaseModel):
    post_id: str
    user_id: str
    author: Optional[UserSummary]
    title: str
    description: str
    media_url: Optional[str]
    media_type: str
    specialization: str
    is_archived: bool
    likes: list[LikeResponse]
    comments: list[CommentResponse]
    like_count: int
    comment_count: int
    created_at: datetime
    updated_at: datetime


class LeaderboardEntry(PostResponse):
    """A post with its 0-based leaderboard position."""
    rank: int


class PostMutationResponse(BaseModel):
    message: str
    post: PostResponse


class PostDeleteResponse(BaseModel):
    message: str
    deleted_post_id: str


class QuotaResponse(BaseModel):
    used: int
    limit: int
    remaining: int
    resets_in_seconds: int
