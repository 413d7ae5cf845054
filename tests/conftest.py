"""Shared pytest fixtures for quota service tests."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from matrimony.config import QuotaSettings, Settings
from matrimony.db.base import Base
from matrimony.services.catalog import PackageCatalog
from matrimony.store.memory import InMemoryQuotaStore
from matrimony.store.sql import SqlQuotaStore


class _AsyncSessionWrapper:
    def __init__(self, sync_session) -> None:
        self._sync = sync_session

    async def execute(self, *args, **kwargs):
        return self._sync.execute(*args, **kwargs)

    async def get(self, *args, **kwargs):
        return self._sync.get(*args, **kwargs)

    def add(self, obj) -> None:
        self._sync.add(obj)

    def add_all(self, objs) -> None:
        self._sync.add_all(objs)

    async def flush(self) -> None:
        self._sync.flush()

    async def commit(self) -> None:
        self._sync.commit()

    async def rollback(self) -> None:
        self._sync.rollback()

    async def close(self) -> None:
        self._sync.close()


class FakeDatabase:
    """Stands in for ``Database`` by handing out the shared wrapped session."""

    def __init__(self, session: _AsyncSessionWrapper) -> None:
        self._session = session

    @asynccontextmanager
    async def session(self):
        try:
            yield self._session
        except Exception:
            await self._session.rollback()
            raise


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, *args: int) -> datetime:
        self.now = datetime(*args, tzinfo=timezone.utc)
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest_asyncio.fixture
async def session():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)
    sync_session = SessionLocal()
    try:
        yield _AsyncSessionWrapper(sync_session)
    finally:
        sync_session.close()
        engine.dispose()


@pytest.fixture
def sql_store(session) -> SqlQuotaStore:
    return SqlQuotaStore(FakeDatabase(session))


@pytest.fixture
def memory_store() -> InMemoryQuotaStore:
    return InMemoryQuotaStore()


@pytest.fixture
def settings() -> Settings:
    return Settings(quota=QuotaSettings(max_transaction_attempts=3, retry_base_delay_seconds=0.0))


@pytest.fixture
def catalog() -> PackageCatalog:
    return PackageCatalog()


@pytest.fixture
def clock() -> FakeClock:
    # 2024-01-01 is a Monday.
    return FakeClock(datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc))


@pytest_asyncio.fixture
async def rival_databases(tmp_path):
    """Two independent sessions on one SQLite file, like two app workers."""

    engine = create_engine(f"sqlite:///{tmp_path / 'quota.db'}", future=True)
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)
    sessions = [SessionLocal(), SessionLocal()]
    try:
        yield tuple(FakeDatabase(_AsyncSessionWrapper(sync)) for sync in sessions)
    finally:
        for sync in sessions:
            sync.close()
        engine.dispose()
