"""Pydantic schemas for users and auth payloads."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, HttpUrl, field_validator

from taskhub.schemas.common import ApiModel, Envelope


class RegisterRequest(ApiModel):
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)
    profile_picture: Optional[HttpUrl] = None


class LoginRequest(ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ProfileUpdate(ApiModel):
    """Partial update. Only non-empty fields are applied; email and role are not here."""
    first_name: Optional[str] = Field(None, min_length=2, max_length=50)
    last_name: Optional[str] = Field(None, min_length=2, max_length=50)
    profile_picture: Optional[str] = Field(None, max_length=500)

    @field_validator("first_name", "last_name", "profile_picture", mode="before")
    @classmethod
    def _blank_is_unset(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class UserRead(ApiModel):
    id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    profile_picture: Optional[str]
    role: str
    created_at: datetime


class UserEnvelope(Envelope):
    user: UserRead


class AuthEnvelope(Envelope):
    token: str
    user: UserRead


class ProfilePictureEnvelope(Envelope):
    profile_picture_url: str
    user: UserRead


class UserListEnvelope(Envelope):
    count: int
    users: list[UserRead]
