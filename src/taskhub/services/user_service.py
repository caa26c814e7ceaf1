"""User service — registration, credential checks, profile changes.

Learn: This is the credential store behind the auth routes and the admin
user views. It owns password hashing, so a plaintext password never goes
further than this module and a hash never goes back out.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.auth.password import hash_password, needs_rehash, verify_password
from taskhub.config import settings
from taskhub.db.models import ROLE_ADMIN, ROLE_USER, User
from taskhub.errors import Conflict, IdentityNotFound, Unauthenticated

logger = structlog.get_logger()


class UserService:
    """Business logic for user accounts."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Create ──────────────────────────────────────────

    async def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        profile_picture: Optional[str] = None,
        role: str = ROLE_USER,
    ) -> User:
        """Create an account. Raises Conflict if the email is taken.

        Learn: The email check runs first so the common case gets a clean
        error; the unique constraint still catches a concurrent duplicate.
        """
        if await self.find_by_email(email):
            raise Conflict()

        user = User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            password_hash=hash_password(password, rounds=settings.bcrypt_rounds),
            profile_picture=profile_picture,
            role=role,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict()
        await self.db.refresh(user)

        logger.info("auth.registered", user_id=str(user.id), role=user.role)
        return user

    # ─── Read ────────────────────────────────────────────

    async def get(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def get_or_404(self, user_id: uuid.UUID) -> User:
        user = await self.get(user_id)
        if not user:
            raise IdentityNotFound()
        return user

    async def find_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalars().first()

    async def list_users(self) -> list[User]:
        result = await self.db.execute(select(User).order_by(User.created_at.desc()))
        return list(result.scalars().all())

    # ─── Credentials ─────────────────────────────────────

    async def authenticate(self, email: str, password: str) -> User:
        """Return the user for a valid email/password pair.

        Unknown email and wrong password produce the same error so the
        response does not reveal which accounts exist.
        """
        user = await self.find_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            logger.info("auth.login_failed", email=email)
            raise Unauthenticated("Invalid credentials")

        if needs_rehash(user.password_hash, settings.bcrypt_rounds):
            user.password_hash = hash_password(password, rounds=settings.bcrypt_rounds)
            await self.db.commit()
            await self.db.refresh(user)
            logger.info("auth.password_rehashed", user_id=str(user.id))
        return user

    # ─── Update ──────────────────────────────────────────

    async def update_profile(
        self,
        user_id: uuid.UUID,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        profile_picture: Optional[str] = None,
    ) -> User:
        """Apply non-empty profile fields. Email and role are never touched here."""
        user = await self.get_or_404(user_id)
        if first_name:
            user.first_name = first_name
        if last_name:
            user.last_name = last_name
        if profile_picture:
            user.profile_picture = profile_picture
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def set_profile_picture(self, user_id: uuid.UUID, url: str) -> User:
        return await self.update_profile(user_id, profile_picture=url)

    async def make_admin(self, user: User) -> User:
        """Promote an account to admin. Only reachable from the operator CLI."""
        user.role = ROLE_ADMIN
        await self.db.commit()
        await self.db.refresh(user)
        logger.info("auth.promoted_to_admin", user_id=str(user.id))
        return user
