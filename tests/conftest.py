"""
Test configuration for the storefront discounts service.

Every test gets its own file-backed SQLite database so that concurrent
sessions (usage-limit races) really run on separate connections.
"""
import os

# Settings are read at import time; point them at throwaway values first.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./.pytest-bootstrap.db")
os.environ.setdefault("JWT_SECRET", "test-secret")

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import app.models  # noqa: F401
from app.core.db import Base, get_db
from app.core.security import ROLE_ADMIN, ROLE_CUSTOMER, create_access_token
from app.main import app as fastapi_app


@pytest.fixture
async def engine(tmp_path):
    """Fresh schema per test."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'discounts.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    """HTTP client against the app, with get_db bound to the test database."""

    async def _get_db():
        async with session_factory() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = _get_db
    transport = httpx.ASGITransport(app=fastapi_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    token = create_access_token(principal_id=1, role=ROLE_ADMIN)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer_headers():
    def _headers(customer_id: int) -> dict:
        token = create_access_token(principal_id=customer_id, role=ROLE_CUSTOMER)
        return {"Authorization": f"Bearer {token}"}

    return _headers
