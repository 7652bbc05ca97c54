# tests/test_auth.py — Registration, login and token handling
from datetime import timedelta

import pytest
from httpx import AsyncClient

from auth import AuthService
from tests.conftest import get_auth_headers, TEST_PASSWORD


@pytest.mark.asyncio
class TestRegistration:
    async def test_register_success(self, client: AsyncClient):
        res = await client.post("/auth/register", json={
            "email": "NewUser@Test.com",
            "name": "New User",
            "password": "SecurePass123!",
        })
        assert res.status_code == 201
        data = res.json()
        assert data["token"]
        assert data["token_type"] == "bearer"
        assert data["user"]["email"] == "newuser@test.com"
        assert data["user"]["name"] == "New User"
        assert "password_hash" not in data["user"]

    async def test_register_token_is_usable(self, client: AsyncClient):
        res = await client.post("/auth/register", json={
            "email": "fresh@test.com",
            "name": "Fresh",
            "password": "SecurePass123!",
        })
        token = res.json()["token"]
        me = await client.get("/user", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["email"] == "fresh@test.com"

    async def test_register_weak_password(self, client: AsyncClient):
        res = await client.post("/auth/register", json={
            "email": "weak@test.com",
            "name": "Weak",
            "password": "short",
        })
        assert res.status_code == 400
        assert res.json()["error"] == "Validation error"

    async def test_register_duplicate_email(self, client: AsyncClient):
        payload = {"email": "dupe@test.com", "name": "Dupe", "password": "SecurePass123!"}
        first = await client.post("/auth/register", json=payload)
        assert first.status_code == 201
        res = await client.post("/auth/register", json={**payload, "email": "DUPE@test.com"})
        assert res.status_code == 400
        assert res.json()["error"] == "User already exists"

    async def test_register_invalid_email(self, client: AsyncClient):
        res = await client.post("/auth/register", json={
            "email": "not-an-email",
            "name": "Nobody",
            "password": "SecurePass123!",
        })
        assert res.status_code == 400
        assert any(err["loc"][-1] == "email" for err in res.json()["details"])

    async def test_register_missing_name(self, client: AsyncClient):
        res = await client.post("/auth/register", json={
            "email": "noname@test.com",
            "password": "SecurePass123!",
        })
        assert res.status_code == 400


@pytest.mark.asyncio
class TestLogin:
    async def test_login_success(self, client: AsyncClient, alice):
        res = await client.post("/auth/login", json={
            "email": "alice@taskboard.dev",
            "password": TEST_PASSWORD,
        })
        assert res.status_code == 200
        data = res.json()
        assert data["token"]
        assert data["user"] == {"id": alice.id, "name": "Alice", "email": "alice@taskboard.dev"}

    async def test_login_is_case_insensitive_on_email(self, client: AsyncClient, alice):
        res = await client.post("/auth/login", json={
            "email": "Alice@TaskBoard.dev",
            "password": TEST_PASSWORD,
        })
        assert res.status_code == 200

    async def test_login_wrong_password(self, client: AsyncClient, alice):
        res = await client.post("/auth/login", json={
            "email": "alice@taskboard.dev",
            "password": "WrongPassword!",
        })
        assert res.status_code == 401
        assert res.json()["error"] == "Invalid credentials"

    async def test_login_unknown_user(self, client: AsyncClient):
        res = await client.post("/auth/login", json={
            "email": "ghost@taskboard.dev",
            "password": TEST_PASSWORD,
        })
        assert res.status_code == 401


@pytest.mark.asyncio
class TestTokens:
    async def test_missing_token(self, client: AsyncClient):
        res = await client.get("/boards")
        assert res.status_code == 401
        assert res.headers["www-authenticate"] == "Bearer"

    async def test_garbage_token(self, client: AsyncClient):
        res = await client.get("/boards", headers={"Authorization": "Bearer not-a-jwt"})
        assert res.status_code == 401
        assert res.json()["error"] == "Invalid token"

    async def test_expired_token(self, client: AsyncClient, alice):
        token = AuthService.create_access_token(
            {"sub": alice.id, "email": alice.email}, expires_delta=timedelta(seconds=-5)
        )
        res = await client.get("/boards", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401
        assert res.json()["error"] == "Token expired"

    async def test_token_for_deleted_user(self, client: AsyncClient, alice, db_session):
        headers = get_auth_headers(alice)
        await db_session.delete(alice)
        await db_session.commit()
        res = await client.get("/user", headers=headers)
        assert res.status_code == 401
        assert res.json()["error"] == "User not found"


class TestPasswordHashing:
    def test_hash_and_verify(self):
        hashed = AuthService.hash_password("CorrectHorse1")
        assert hashed != "CorrectHorse1"
        assert AuthService.verify_password("CorrectHorse1", hashed)
        assert not AuthService.verify_password("WrongHorse1", hashed)
