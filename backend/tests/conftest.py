# tests/conftest.py — Shared test fixtures
import os
import uuid

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Use SQLite for tests
TEST_DB_URL = "sqlite+aiosqlite:///./test.db"
os.environ["DATABASE_URL"] = TEST_DB_URL
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-unit-tests-only-min-32-chars"
os.environ["ENVIRONMENT"] = "test"

from models import Base, User
from auth import AuthService
from database import get_db_session
from main import app

TEST_PASSWORD = "TestPassword123!"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine):
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(db_engine):
    """HTTP test client with overridden DB dependency"""
    session_factory = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def _make_user(db_session, email: str, name: str) -> User:
    user = User(
        id=str(uuid.uuid4()),
        email=email,
        name=name,
        password_hash=AuthService.hash_password(TEST_PASSWORD),
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def alice(db_session):
    """Board owner in most tests"""
    return await _make_user(db_session, "alice@taskboard.dev", "Alice")


@pytest_asyncio.fixture
async def bob(db_session):
    """Usually added as a member"""
    return await _make_user(db_session, "bob@taskboard.dev", "Bob")


@pytest_asyncio.fixture
async def carol(db_session):
    """Stranger to alice's boards"""
    return await _make_user(db_session, "carol@taskboard.dev", "Carol")


def get_auth_headers(user: User) -> dict:
    """Generate auth headers for a user"""
    token = AuthService.create_access_token({"sub": user.id, "email": user.email})
    return {"Authorization": f"Bearer {token}"}


# ============================================================
# API helpers
# ============================================================

async def create_board(client: AsyncClient, user: User, title: str = "Sprint Board", **fields) -> dict:
    resp = await client.post("/boards", json={"title": title, **fields}, headers=get_auth_headers(user))
    assert resp.status_code == 201, resp.text
    return resp.json()


async def add_member(client: AsyncClient, owner: User, board_id: str, member: User) -> dict:
    resp = await client.post(
        f"/boards/{board_id}/members",
        json={"userId": member.id},
        headers=get_auth_headers(owner),
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


async def create_list(client: AsyncClient, user: User, board_id: str, title: str) -> dict:
    resp = await client.post(
        "/lists", json={"title": title, "boardId": board_id}, headers=get_auth_headers(user)
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def create_card(client: AsyncClient, user: User, list_id: str, title: str, **fields) -> dict:
    resp = await client.post(
        "/cards", json={"title": title, "listId": list_id, **fields}, headers=get_auth_headers(user)
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def card_titles(client: AsyncClient, user: User, list_id: str) -> list:
    """Titles of a list's cards in position order, asserting the positions are 0..n-1"""
    resp = await client.get("/cards", params={"listId": list_id}, headers=get_auth_headers(user))
    assert resp.status_code == 200, resp.text
    cards = resp.json()
    assert [c["position"] for c in cards] == list(range(len(cards)))
    return [c["title"] for c in cards]


async def list_titles(client: AsyncClient, user: User, board_id: str) -> list:
    resp = await client.get("/lists", params={"boardId": board_id}, headers=get_auth_headers(user))
    assert resp.status_code == 200, resp.text
    lists = resp.json()
    assert [lst["position"] for lst in lists] == list(range(len(lists)))
    return [lst["title"] for lst in lists]
