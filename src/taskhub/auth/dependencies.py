"""FastAPI auth dependencies.

Learn: These are used as Depends() in routers and handlers to turn the
raw Authorization header into an Identity, then gate on role. The chain
is: extract_bearer_token → decode_subject → user lookup → role check.
Any step can fail with a specific error; none of them mutates the request.
"""

import uuid
from typing import Optional

import structlog
from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.auth.jwt import JWTConfig, TokenError, decode_subject, get_jwt_config
from taskhub.db.engine import get_db
from taskhub.db.models import ROLE_ADMIN, User
from taskhub.errors import Forbidden, IdentityNotFound, Unauthenticated

logger = structlog.get_logger()


class Identity:
    """The authenticated user making the request.

    Learn: Only the id and role travel downstream. Handlers that need the
    full profile load it through UserService.
    """

    def __init__(self, user_id: uuid.UUID, role: str):
        self.user_id = user_id
        self.role = role

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        return cls(user_id=user.id, role=user.role)

    def __repr__(self) -> str:
        return f"Identity(user_id={self.user_id!s}, role={self.role!r})"


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Pull the token out of an "Authorization: Bearer <token>" header.

    The shape is exact: one space after "Bearer", no padding around the token.
    """
    if not authorization:
        raise Unauthenticated()
    scheme, _, token = authorization.partition(" ")
    if scheme != "Bearer" or not token or " " in token:
        raise Unauthenticated()
    return token


async def get_current_identity(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
    jwt_config: JWTConfig = Depends(get_jwt_config),
) -> Identity:
    """Authentication gate — resolve the bearer token to an Identity.

    Raises Unauthenticated (401) for a missing/bad/expired token and
    IdentityNotFound (404) when the token is valid but its user is gone.
    """
    token = extract_bearer_token(authorization)
    try:
        user_id = decode_subject(token, jwt_config)
    except TokenError as e:
        logger.info("auth.token_rejected", reason=str(e))
        raise Unauthenticated()

    user = await db.get(User, user_id)
    if not user:
        raise IdentityNotFound()
    return Identity.from_user(user)


def require_admin(
    identity: Identity = Depends(get_current_identity),
) -> Identity:
    """Pass only admins."""
    if not identity.is_admin:
        raise Forbidden("This route is restricted to admin only")
    return identity


def require_non_admin(
    identity: Identity = Depends(get_current_identity),
) -> Identity:
    """Pass only regular users. Admins are read-only and cannot own tasks."""
    if identity.is_admin:
        raise Forbidden("Admins cannot perform this action")
    return identity
