"""Security headers middleware.

Learn: Two groups of headers:

Always set:
- X-Content-Type-Options: nosniff. Uploaded pictures are served straight
  from disk, so the browser must trust the declared image type.
- X-Frame-Options / Referrer-Policy: clickjacking and referrer leakage.
- Strict-Transport-Security, but only when the request came in over HTTPS.

API responses only (/api/...):
- Cache-Control: no-store. Bodies carry tokens and personal data and must
  not end up in shared caches. Static uploads stay cacheable.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

BASE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}
HSTS_VALUE = "max-age=31536000; includeSubDomains"
API_PREFIX = "/api/"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response: Response = await call_next(request)
        response.headers.update(BASE_HEADERS)

        if request.url.path.startswith(API_PREFIX):
            response.headers["Cache-Control"] = "no-store"
        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = HSTS_VALUE
        return response
