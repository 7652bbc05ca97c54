# tests/test_main.py — Application wiring: health, headers, error bodies
import pytest
from httpx import AsyncClient

from errors import (
    APIError, ValidationError, AuthenticationError, AuthorizationError,
    NotFoundError, InternalError, error_body,
)
from tests.conftest import get_auth_headers


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["database"] == "connected"


@pytest.mark.asyncio
async def test_root(client: AsyncClient):
    resp = await client.get("/")
    assert resp.status_code == 200
    assert resp.json()["name"] == "Taskboard"


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient):
    resp = await client.get("/")
    assert resp.headers["X-Request-ID"]
    assert resp.headers["X-Correlation-ID"] == resp.headers["X-Request-ID"]
    assert resp.headers["X-Response-Time"].endswith("s")
    assert resp.headers["X-Content-Type-Options"] == "nosniff"


@pytest.mark.asyncio
async def test_request_id_propagated(client: AsyncClient):
    resp = await client.get("/", headers={"X-Request-ID": "req-123", "X-Correlation-ID": "corr-9"})
    assert resp.headers["X-Request-ID"] == "req-123"
    assert resp.headers["X-Correlation-ID"] == "corr-9"


@pytest.mark.asyncio
async def test_error_body_carries_request_id(client: AsyncClient, alice):
    resp = await client.get(
        "/boards/missing",
        headers={**get_auth_headers(alice), "X-Request-ID": "req-404"},
    )
    assert resp.status_code == 404
    assert resp.json() == {"error": "Board not found", "request_id": "req-404"}


@pytest.mark.asyncio
async def test_validation_error_shape(client: AsyncClient, alice):
    resp = await client.post("/boards", json={"title": 42}, headers=get_auth_headers(alice))
    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "Validation error"
    assert body["details"][0]["loc"] == ["body", "title"]


@pytest.mark.asyncio
async def test_unknown_route(client: AsyncClient):
    resp = await client.get("/nowhere")
    assert resp.status_code == 404
    assert resp.json()["error"] == "Not Found"


class TestErrorTaxonomy:
    @pytest.mark.parametrize("cls, status", [
        (ValidationError, 400),
        (AuthenticationError, 401),
        (AuthorizationError, 403),
        (NotFoundError, 404),
        (InternalError, 500),
    ])
    def test_status_codes(self, cls, status):
        err = cls()
        assert isinstance(err, APIError)
        assert err.status_code == status
        assert err.detail == cls.default_message

    def test_details_kept(self):
        err = ValidationError("Bad input", details={"field": "title"})
        assert err.detail == "Bad input"
        assert err.details == {"field": "title"}

    def test_error_body_omits_empty_details(self):
        assert error_body("Nope") == {"error": "Nope", "request_id": None}
        assert error_body("Nope", [1], "rid") == {"error": "Nope", "details": [1], "request_id": "rid"}
