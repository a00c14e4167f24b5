"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for Settings() created at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("PUBLIC_BASE_URL", "https://mlm.example.com")
os.environ.setdefault("STORE_RETRY_BASE_DELAY", "0")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from mlm_app.models import (
    Base,
    ReferralEdge,
    SystemSettings,
    User,
    UserStatus,
    Wallet,
)
from mlm_app.utils.cache import CacheService

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeRedis:
    """In-memory stand-in for redis.asyncio.Redis (decode_responses=True)."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            from redis.exceptions import ConnectionError as RedisConnectionError

            raise RedisConnectionError("redis is down")

    async def get(self, key: str) -> str | None:
        self._check()
        return self.store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._check()
        self.store[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, *keys: str) -> int:
        self._check()
        deleted = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                deleted += 1
            self.ttls.pop(key, None)
        return deleted

    async def aclose(self) -> None:
        return None


class Factory:
    """Seeds users, edges and settings straight into the store."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def user(
        self,
        user_id: str,
        sponsor_id: str | None = None,
        *,
        is_admin: bool = False,
        status: UserStatus = UserStatus.ACTIVE,
        balance: Decimal | str = "0",
        phone: str | None = None,
        with_edge: bool = True,
    ) -> User:
        """Create a user with a wallet and (when sponsored) its edge."""
        user = User(
            id=user_id,
            name=f"User {user_id}",
            email=f"{user_id}@example.com",
            phone=phone,
            referral_code=f"REF{user_id.upper()}"[:32],
            sponsor_id=sponsor_id,
            is_admin=is_admin,
            status=status.value,
        )
        self.session.add(user)
        self.session.add(Wallet(user_id=user_id, balance=Decimal(str(balance))))
        if sponsor_id is not None and with_edge:
            self.session.add(
                ReferralEdge(sponsor_id=sponsor_id, referred_id=user_id, level=1)
            )
        await self.session.flush()
        return user

    async def settings(self, **overrides: Any) -> SystemSettings:
        """Create the settings row (no commissions unless overridden)."""
        values: dict[str, Any] = {
            "id": 1,
            "sponsor_commission_percentage": Decimal("0"),
            "profit_share_percentage": Decimal("0"),
            "level_commissions": [],
            "min_deposit_amount": Decimal("100"),
            "min_withdrawal_amount": Decimal("100"),
        }
        values.update(overrides)
        row = SystemSettings(**values)
        self.session.add(row)
        await self.session.flush()
        return row


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite engine with all tables created."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    # pysqlite defers BEGIN; emit it ourselves so SAVEPOINTs nest correctly
    @event.listens_for(test_engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(test_engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture
async def session(engine):
    """Database session bound to the in-memory engine."""
    maker = async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False
    )
    async with maker() as db_session:
        yield db_session


@pytest.fixture
def factory(session):
    """Store seeding helpers."""
    return Factory(session)


@pytest.fixture
def fake_redis():
    """Dict-backed Redis client."""
    return FakeRedis()


@pytest.fixture
def cache(fake_redis):
    """CacheService on top of the fake Redis client."""
    return CacheService(fake_redis, downline_ttl=300, transaction_ttl=300)


@pytest.fixture
def mock_session():
    """Mock AsyncSession for tests without a database."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    session.refresh = AsyncMock()
    return session


@pytest.fixture
def mock_redis_client():
    """Mock Redis client for caching tests."""
    client = AsyncMock()
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock()
    client.delete = AsyncMock(return_value=0)
    client.aclose = AsyncMock()
    return client
