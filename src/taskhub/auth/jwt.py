"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication.
The access token carries only the user id in "sub"; the role is always
re-read from the database, so promoting a user takes effect immediately.

Secret, algorithm and expiry arrive as an explicit JWTConfig instead of
being read from settings inside these functions.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from taskhub.config import Settings, settings


class TokenError(Exception):
    """Raised when token verification fails."""


@dataclass(frozen=True)
class JWTConfig:
    secret: str
    algorithm: str = "HS256"
    expire_minutes: int = 60 * 24 * 7

    @classmethod
    def from_settings(cls, s: Settings) -> "JWTConfig":
        return cls(
            secret=s.jwt_secret,
            algorithm=s.jwt_algorithm,
            expire_minutes=s.access_token_expire_minutes,
        )


def get_jwt_config() -> JWTConfig:
    """FastAPI dependency — the token settings for this process."""
    return JWTConfig.from_settings(settings)


def create_access_token(user_id: uuid.UUID | str, config: JWTConfig) -> str:
    """Create a signed access token for a user."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": "access",
        "iat": now,
        "exp": now + timedelta(minutes=config.expire_minutes),
    }
    return jwt.encode(payload, config.secret, algorithm=config.algorithm)


def verify_token(token: str, config: JWTConfig) -> dict:
    """Verify and decode a JWT token.

    Returns the payload dict on success.
    Raises TokenError on failure.
    """
    try:
        return jwt.decode(token, config.secret, algorithms=[config.algorithm])
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")


def decode_subject(token: str, config: JWTConfig) -> uuid.UUID:
    """Verify a token and return the user id it was issued for."""
    payload = verify_token(token, config)
    if payload.get("type", "access") != "access":
        raise TokenError("Not an access token")
    try:
        return uuid.UUID(str(payload["sub"]))
    except (KeyError, ValueError):
        raise TokenError("Invalid token: malformed subject")
