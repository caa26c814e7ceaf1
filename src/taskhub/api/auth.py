"""Auth API — registration, login, current user, profile.

Learn: Routes for the account lifecycle:
- POST /auth/register → create a user account + token
- POST /auth/login → email/password → token
- GET /auth/me → current user info
- PUT /auth/update-profile → change names / picture URL
- POST /auth/upload-profile-picture → multipart image upload

Registration always creates a regular user. Role and email cannot be
changed through this router.
"""

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.auth.dependencies import Identity, get_current_identity
from taskhub.auth.jwt import JWTConfig, create_access_token, get_jwt_config
from taskhub.config import settings
from taskhub.db.engine import get_db
from taskhub.errors import InvalidInput
from taskhub.schemas.user import (
    AuthEnvelope,
    LoginRequest,
    ProfilePictureEnvelope,
    ProfileUpdate,
    RegisterRequest,
    UserEnvelope,
    UserRead,
)
from taskhub.services.upload_service import ProfilePictureStore
from taskhub.services.user_service import UserService

router = APIRouter(prefix="/auth")


def _user_svc(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db)


def _picture_store() -> ProfilePictureStore:
    return ProfilePictureStore(
        upload_dir=Path(settings.upload_dir),
        max_bytes=settings.max_upload_bytes,
        allowed_types=settings.allowed_image_types,
    )


# ─── Register ────────────────────────────────────────────


@router.post("/register", response_model=AuthEnvelope, status_code=201)
async def register(
    body: RegisterRequest,
    svc: UserService = Depends(_user_svc),
    jwt_config: JWTConfig = Depends(get_jwt_config),
):
    """Create a new user account and return a token for it."""
    user = await svc.register(
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        profile_picture=str(body.profile_picture) if body.profile_picture else None,
    )
    return AuthEnvelope(
        message="User registered successfully",
        token=create_access_token(user.id, jwt_config),
        user=UserRead.model_validate(user),
    )


# ─── Login ───────────────────────────────────────────────


@router.post("/login", response_model=AuthEnvelope)
async def login(
    body: LoginRequest,
    svc: UserService = Depends(_user_svc),
    jwt_config: JWTConfig = Depends(get_jwt_config),
):
    """Login with email and password → JWT token."""
    user = await svc.authenticate(body.email, body.password)
    return AuthEnvelope(
        message="Login successful",
        token=create_access_token(user.id, jwt_config),
        user=UserRead.model_validate(user),
    )


# ─── Current user ───────────────────────────────────────


@router.get("/me", response_model=UserEnvelope)
async def get_me(
    identity: Identity = Depends(get_current_identity),
    svc: UserService = Depends(_user_svc),
):
    """Get the current authenticated user's info."""
    user = await svc.get_or_404(identity.user_id)
    return UserEnvelope(user=UserRead.model_validate(user))


@router.put("/update-profile", response_model=UserEnvelope)
async def update_profile(
    body: ProfileUpdate,
    identity: Identity = Depends(get_current_identity),
    svc: UserService = Depends(_user_svc),
):
    """Update first/last name and picture URL. Empty values are ignored."""
    user = await svc.update_profile(
        identity.user_id,
        first_name=body.first_name,
        last_name=body.last_name,
        profile_picture=body.profile_picture,
    )
    return UserEnvelope(
        message="Profile updated successfully",
        user=UserRead.model_validate(user),
    )


@router.post("/upload-profile-picture", response_model=ProfilePictureEnvelope)
async def upload_profile_picture(
    profile_picture: Optional[UploadFile] = File(None, alias="profilePicture"),
    identity: Identity = Depends(get_current_identity),
    svc: UserService = Depends(_user_svc),
    store: ProfilePictureStore = Depends(_picture_store),
):
    """Upload a profile image (multipart field "profilePicture").

    Learn: The file is written before the user row is updated. If the
    update fails the file is removed again and the error propagates.
    """
    if profile_picture is None:
        raise InvalidInput("No file uploaded. Please upload an image file.")

    path, url = await store.save(identity.user_id, profile_picture)
    try:
        user = await svc.set_profile_picture(identity.user_id, url)
    except Exception:
        store.discard(path)
        raise

    return ProfilePictureEnvelope(
        message="Profile picture uploaded successfully",
        profile_picture_url=url,
        user=UserRead.model_validate(user),
    )
