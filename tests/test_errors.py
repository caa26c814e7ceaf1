"""Error envelope tests.

Learn: Every failure, whether raised by a handler, by request validation,
by routing or by an unexpected bug, leaves the API in the same shape:
{"success": false, "message": "..."}.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from taskhub.errors import Conflict, Forbidden, IdentityNotFound, InvalidInput, Unauthenticated
from taskhub.main import create_app, format_validation_errors


@pytest.mark.asyncio
async def test_unknown_route(client):
    r = await client.get("/api/does-not-exist")
    assert r.status_code == 404
    assert r.json() == {"success": False, "message": "Route not found"}


@pytest.mark.asyncio
async def test_wrong_method(client):
    r = await client.delete("/health")
    assert r.status_code == 405
    assert r.json()["success"] is False


@pytest.mark.asyncio
async def test_malformed_json_body(client, john):
    r = await client.post(
        "/api/tasks",
        headers={**john["headers"], "Content-Type": "application/json"},
        content=b"{not json",
    )
    assert r.status_code == 400
    assert r.json()["success"] is False


async def _get_boom(headers=None):
    """GET a route that raises, on a fresh app with one extra failing route."""
    app = create_app()

    @app.get("/boom")
    async def boom():
        raise RuntimeError("kaboom")

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        return await ac.get("/boom", headers=headers)


@pytest.mark.asyncio
async def test_unhandled_exception_becomes_500():
    r = await _get_boom()

    assert r.status_code == 500
    assert r.json() == {"success": False, "message": "Internal server error"}
    assert r.headers["X-Request-ID"]
    assert r.headers["X-Content-Type-Options"] == "nosniff"


@pytest.mark.asyncio
async def test_unhandled_exception_keeps_caller_request_id():
    r = await _get_boom(headers={"X-Request-ID": "trace-500"})

    assert r.status_code == 500
    assert r.headers["X-Request-ID"] == "trace-500"


def test_format_validation_errors():
    errors = [
        {"loc": ("body", "title"), "msg": "Field required"},
        {"loc": ("query", "status"), "msg": "String should match pattern"},
        {"loc": (), "msg": "Bad"},
    ]
    assert format_validation_errors(errors) == (
        "title: Field required, status: String should match pattern, Bad"
    )
    assert format_validation_errors([]) == "Invalid input"


@pytest.mark.parametrize(
    "exc,status,message",
    [
        (InvalidInput(), 400, "Invalid input"),
        (Conflict(), 400, "User already exists with this email"),
        (Unauthenticated(), 401, "Not authorized to access this route"),
        (Forbidden("nope"), 403, "nope"),
        (IdentityNotFound(), 404, "User not found"),
    ],
)
def test_error_defaults(exc, status, message):
    assert exc.status_code == status
    assert exc.message == message


def test_unauthenticated_carries_challenge():
    assert Unauthenticated("Invalid credentials").headers == {"WWW-Authenticate": "Bearer"}
