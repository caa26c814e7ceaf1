"""Auth API tests.

Learn: Tests cover:
1. Registration + validation + duplicate prevention
2. Login → JWT token
3. The authentication gate on /me (missing, malformed, invalid, expired tokens)
4. Profile update and profile picture upload
"""

import uuid
from pathlib import Path

import pytest

from conftest import auth, register
from taskhub.auth.jwt import JWTConfig, create_access_token, decode_subject, get_jwt_config
from taskhub.config import settings


# ═══════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_user(client):
    """Register returns 201 with a token and the public user fields."""
    r = await client.post(
        "/api/auth/register",
        json={
            "firstName": "John",
            "lastName": "Doe",
            "email": "john@example.com",
            "password": "password123",
        },
    )
    assert r.status_code == 201
    body = r.json()
    assert body["success"] is True
    assert body["message"] == "User registered successfully"
    assert body["token"]
    user = body["user"]
    assert user["email"] == "john@example.com"
    assert user["firstName"] == "John"
    assert user["lastName"] == "Doe"
    assert user["role"] == "user"
    assert user["profilePicture"] is None
    assert "password" not in user
    assert "passwordHash" not in user


@pytest.mark.asyncio
async def test_register_duplicate_email(client):
    """Same email twice → 400 duplicate."""
    r1 = await client.post(
        "/api/auth/register",
        json={"firstName": "Al", "lastName": "One", "email": "a@x.com", "password": "secret1"},
    )
    assert r1.status_code == 201

    r2 = await client.post(
        "/api/auth/register",
        json={"firstName": "Al", "lastName": "Two", "email": "a@x.com", "password": "secret2"},
    )
    assert r2.status_code == 400
    assert r2.json() == {
        "success": False,
        "message": "User already exists with this email",
    }


@pytest.mark.asyncio
async def test_register_invalid_email(client):
    r = await client.post(
        "/api/auth/register",
        json={"firstName": "John", "lastName": "Doe", "email": "not-an-email", "password": "password123"},
    )
    assert r.status_code == 400
    assert r.json()["success"] is False
    assert "email" in r.json()["message"]


@pytest.mark.asyncio
async def test_register_short_password(client):
    """Password must be at least 6 characters."""
    r = await client.post(
        "/api/auth/register",
        json={"firstName": "John", "lastName": "Doe", "email": "short@example.com", "password": "123"},
    )
    assert r.status_code == 400
    assert r.json()["message"].startswith("password:")


@pytest.mark.asyncio
async def test_register_joins_all_validation_messages(client):
    r = await client.post("/api/auth/register", json={"email": "x@example.com"})
    assert r.status_code == 400
    message = r.json()["message"]
    assert "firstName" in message
    assert "lastName" in message
    assert "password" in message


@pytest.mark.asyncio
async def test_register_with_profile_picture(client):
    r = await client.post(
        "/api/auth/register",
        json={
            "firstName": "Pic",
            "lastName": "User",
            "email": "pic@example.com",
            "password": "password123",
            "profilePicture": "https://example.com/me.png",
        },
    )
    assert r.status_code == 201
    assert r.json()["user"]["profilePicture"] == "https://example.com/me.png"


@pytest.mark.asyncio
async def test_register_ignores_role_in_payload(client):
    """Registration can never create an admin."""
    r = await client.post(
        "/api/auth/register",
        json={
            "firstName": "Sneaky",
            "lastName": "User",
            "email": "sneaky@example.com",
            "password": "password123",
            "role": "admin",
        },
    )
    assert r.status_code == 201
    assert r.json()["user"]["role"] == "user"


# ═══════════════════════════════════════════════════════════
# Login
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_login_success(client):
    await register(client, "login@example.com", password="my_password")

    r = await client.post(
        "/api/auth/login",
        json={"email": "login@example.com", "password": "my_password"},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["message"] == "Login successful"
    assert body["token"]
    assert body["user"]["email"] == "login@example.com"


@pytest.mark.asyncio
async def test_login_token_resolves_to_registered_identity(client):
    """register then login yields tokens for the same user."""
    reg_token, user = await register(client, "round@example.com", password="secret1")

    r = await client.post(
        "/api/auth/login",
        json={"email": "round@example.com", "password": "secret1"},
    )
    login_token = r.json()["token"]

    config = get_jwt_config()
    assert decode_subject(reg_token, config) == decode_subject(login_token, config)

    me_reg = await client.get("/api/auth/me", headers=auth(reg_token))
    me_login = await client.get("/api/auth/me", headers=auth(login_token))
    assert me_reg.json()["user"]["id"] == me_login.json()["user"]["id"] == user["id"]


@pytest.mark.asyncio
async def test_login_wrong_password(client):
    await register(client, "wrong@example.com", password="correct_password")

    r = await client.post(
        "/api/auth/login",
        json={"email": "wrong@example.com", "password": "wrong_password"},
    )
    assert r.status_code == 401
    assert r.json() == {"success": False, "message": "Invalid credentials"}


@pytest.mark.asyncio
async def test_login_nonexistent_user(client):
    r = await client.post(
        "/api/auth/login",
        json={"email": "nobody@example.com", "password": "whatever"},
    )
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid credentials"


@pytest.mark.asyncio
async def test_login_missing_email(client):
    r = await client.post("/api/auth/login", json={"password": "password123"})
    assert r.status_code == 400
    assert r.json()["success"] is False


# ═══════════════════════════════════════════════════════════
# Authentication gate (/me)
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_me_with_token(client, john):
    r = await client.get("/api/auth/me", headers=john["headers"])
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["user"]["email"] == "john@example.com"
    assert body["user"]["id"] == john["user"]["id"]


@pytest.mark.asyncio
async def test_me_without_token(client):
    r = await client.get("/api/auth/me")
    assert r.status_code == 401
    assert r.json() == {
        "success": False,
        "message": "Not authorized to access this route",
    }
    assert r.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_me_with_invalid_token(client):
    r = await client.get("/api/auth/me", headers=auth("invalid_token_here"))
    assert r.status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize("header", ["Token abc.def.ghi", "Bearer", "Bearer ", "bearer abc", "Bearer a b"])
async def test_me_with_malformed_header(client, header):
    r = await client.get("/api/auth/me", headers={"Authorization": header})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_me_with_expired_token(client, john):
    config = get_jwt_config()
    expired = create_access_token(
        john["user"]["id"],
        JWTConfig(secret=config.secret, algorithm=config.algorithm, expire_minutes=-1),
    )
    r = await client.get("/api/auth/me", headers=auth(expired))
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_me_with_token_signed_by_other_secret(client, john):
    forged = create_access_token(john["user"]["id"], JWTConfig(secret="some-other-secret"))
    r = await client.get("/api/auth/me", headers=auth(forged))
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_me_for_unknown_user(client):
    """Valid token whose user does not exist → 404 User not found."""
    token = create_access_token(uuid.uuid4(), get_jwt_config())
    r = await client.get("/api/auth/me", headers=auth(token))
    assert r.status_code == 404
    assert r.json() == {"success": False, "message": "User not found"}


# ═══════════════════════════════════════════════════════════
# Profile
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_update_profile(client, john):
    r = await client.put(
        "/api/auth/update-profile",
        headers=john["headers"],
        json={"firstName": "Johnny", "lastName": "Updated"},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "Profile updated successfully"
    assert body["user"]["firstName"] == "Johnny"
    assert body["user"]["lastName"] == "Updated"


@pytest.mark.asyncio
async def test_update_profile_cannot_change_email_or_role(client, john):
    r = await client.put(
        "/api/auth/update-profile",
        headers=john["headers"],
        json={"email": "other@example.com", "role": "admin", "firstName": "Jon"},
    )
    assert r.status_code == 200
    user = r.json()["user"]
    assert user["email"] == "john@example.com"
    assert user["role"] == "user"
    assert user["firstName"] == "Jon"


@pytest.mark.asyncio
async def test_update_profile_skips_empty_values(client, john):
    """Empty strings leave the field as it was instead of failing validation."""
    r = await client.put(
        "/api/auth/update-profile",
        headers=john["headers"],
        json={"firstName": "", "lastName": "Smith", "profilePicture": "  "},
    )
    assert r.status_code == 200, r.text
    user = r.json()["user"]
    assert user["firstName"] == "John"
    assert user["lastName"] == "Smith"
    assert user["profilePicture"] is None


@pytest.mark.asyncio
async def test_update_profile_still_validates_short_names(client, john):
    r = await client.put(
        "/api/auth/update-profile", headers=john["headers"], json={"firstName": "J"}
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_update_profile_without_authentication(client):
    r = await client.put("/api/auth/update-profile", json={"firstName": "Nope"})
    assert r.status_code == 401


# ═══════════════════════════════════════════════════════════
# Profile picture upload
# ═══════════════════════════════════════════════════════════

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.mark.asyncio
async def test_upload_profile_picture(client, john):
    r = await client.post(
        "/api/auth/upload-profile-picture",
        headers=john["headers"],
        files={"profilePicture": ("me.png", PNG_BYTES, "image/png")},
    )
    assert r.status_code == 200, r.text
    body = r.json()
    url = body["profilePictureUrl"]
    assert url.startswith("/uploads/profile-")
    assert url.endswith(".png")
    assert body["user"]["profilePicture"] == url

    stored = Path(settings.upload_dir) / url.rsplit("/", 1)[-1]
    assert stored.read_bytes() == PNG_BYTES

    served = await client.get(url)
    assert served.status_code == 200
    assert served.content == PNG_BYTES


@pytest.mark.asyncio
async def test_upload_without_file(client, john):
    r = await client.post("/api/auth/upload-profile-picture", headers=john["headers"])
    assert r.status_code == 400
    assert r.json()["message"] == "No file uploaded. Please upload an image file."


@pytest.mark.asyncio
async def test_upload_rejects_non_image(client, john):
    r = await client.post(
        "/api/auth/upload-profile-picture",
        headers=john["headers"],
        files={"profilePicture": ("notes.txt", b"hello", "text/plain")},
    )
    assert r.status_code == 400
    assert "image" in r.json()["message"].lower()


@pytest.mark.asyncio
async def test_upload_rejects_oversized_file(client, john, monkeypatch):
    monkeypatch.setattr(settings, "max_upload_bytes", 16)
    r = await client.post(
        "/api/auth/upload-profile-picture",
        headers=john["headers"],
        files={"profilePicture": ("big.png", PNG_BYTES, "image/png")},
    )
    assert r.status_code == 400
    assert "too large" in r.json()["message"]


@pytest.mark.asyncio
async def test_upload_requires_authentication(client):
    r = await client.post(
        "/api/auth/upload-profile-picture",
        files={"profilePicture": ("me.png", PNG_BYTES, "image/png")},
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_login_upgrades_weak_hash(client, db_session, monkeypatch):
    """A hash made with fewer rounds than configured is replaced on login."""
    from taskhub.auth.password import hash_rounds
    from taskhub.services.user_service import UserService

    _, user = await register(client, "upgrade@example.com", password="secret123")
    monkeypatch.setattr(settings, "bcrypt_rounds", 5)

    r = await client.post(
        "/api/auth/login", json={"email": "upgrade@example.com", "password": "secret123"}
    )
    assert r.status_code == 200

    stored = await UserService(db_session).find_by_email("upgrade@example.com")
    assert hash_rounds(stored.password_hash) == 5
