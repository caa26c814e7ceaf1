"""Error taxonomy shared by the policy, services and route handlers.

Learn: Handlers never build error responses themselves. They raise one
of these and the translator registered in main.create_app() turns it into
the JSON envelope {"success": false, "message": ...} with the right status.
error_response() builds that envelope for every layer that needs one.
"""

from typing import Optional

from starlette.responses import JSONResponse


class ApiError(Exception):
    """Base class for errors that map to an HTTP status."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
    ):
        self.message = message or self.default_message
        self.headers = headers
        super().__init__(self.message)


class InvalidInput(ApiError):
    """Request failed validation before touching any store."""

    status_code = 400
    default_message = "Invalid input"


class Conflict(ApiError):
    """Uniqueness violation (duplicate email)."""

    status_code = 400
    default_message = "User already exists with this email"


class Unauthenticated(ApiError):
    """Missing, malformed, invalid or expired bearer credential."""

    status_code = 401
    default_message = "Not authorized to access this route"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(ApiError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class IdentityNotFound(NotFound):
    """Token verified, but the user it names no longer exists."""

    default_message = "User not found"


def error_response(
    status_code: int,
    message: str,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message},
        headers=headers,
    )
