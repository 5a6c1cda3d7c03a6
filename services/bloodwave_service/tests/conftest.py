from __future__ import annotations

import os

# The session module builds its engine at import time; keep it off PostgreSQL.
os.environ.setdefault("BLOODWAVE_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("BLOODWAVE_TRACING_ENABLED", "false")
os.environ.setdefault("BLOODWAVE_ENVIRONMENT", "test")

from datetime import timedelta

import pytest
import pytest_asyncio
from passlib.context import CryptContext
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from services.bloodwave_service.app.core.security import AccessTokenIssuer, PasswordHasher
from services.bloodwave_service.app.db.base import Base
from services.bloodwave_service.app.models import User
from services.bloodwave_service.app.repositories import RefreshTokenStore
from services.bloodwave_service.app.services import AuthService, RefreshTokenManager

TEST_SECRET = "test-signing-key-with-enough-length-for-hs256-signatures"
TEST_ISSUER = "BloodwaveApi"
TEST_AUDIENCE = "BloodwaveClient"


@pytest_asyncio.fixture
async def engine(tmp_path):
    # File-backed so separate sessions really use separate connections.
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bloodwave.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, _record):
        # Let SQLAlchemy emit BEGIN itself (see _on_begin) and enforce cascades.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        # Take the write lock up front so concurrent transactions queue on the
        # busy timeout instead of failing on lock promotion.
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def hasher() -> PasswordHasher:
    # Minimum bcrypt cost keeps the suite fast; production uses passlib's default.
    return PasswordHasher(CryptContext(schemes=["bcrypt_sha256"], deprecated="auto", bcrypt_sha256__rounds=4))


@pytest.fixture
def issuer() -> AccessTokenIssuer:
    return AccessTokenIssuer(TEST_SECRET, issuer=TEST_ISSUER, audience=TEST_AUDIENCE, ttl=timedelta(hours=24))


@pytest.fixture
def make_auth_service(hasher, issuer):
    def _make(session: AsyncSession, *, strict_rotation: bool = True, users=None) -> AuthService:
        manager = RefreshTokenManager(
            RefreshTokenStore(session),
            ttl=timedelta(days=7),
            strict_rotation=strict_rotation,
        )
        return AuthService(session, hasher=hasher, access_tokens=issuer, refresh_tokens=manager, users=users)

    return _make


@pytest.fixture
def make_user(session):
    async def _make(username: str = "alice", *, email: str | None = None, is_active: bool = True) -> User:
        user = User(
            username=username,
            email=email or f"{username}@example.com",
            password_hash="not-a-real-hash",
            is_active=is_active,
        )
        session.add(user)
        await session.commit()
        return user

    return _make


@pytest.fixture
def signing_key() -> str:
    return TEST_SECRET
