"""Pytest fixtures for activity ledger tests."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from activity_ledger.config import Settings
from activity_ledger.database import Database
from activity_ledger.models import Client, Contract, Worker
from activity_ledger.schemas import ClientCreate, ContractCreate, WorkerCreate
from activity_ledger.services import (
    ActivityService,
    DirectoryService,
    EntityStore,
    InvoiceGenerator,
    LockRegistry,
)

from tests.factories import make_settings


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)


@pytest_asyncio.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    """Fresh schema per test."""
    database = Database(settings.database_url)
    await database.create_all()
    yield database
    await database.dispose()


@pytest_asyncio.fixture
async def session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with database.session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def locks() -> LockRegistry:
    return LockRegistry()


@pytest.fixture
def store(session: AsyncSession) -> EntityStore:
    return EntityStore(session)


@pytest.fixture
def directory(session: AsyncSession, locks: LockRegistry, settings: Settings) -> DirectoryService:
    return DirectoryService(session, locks=locks, settings=settings)


@pytest.fixture
def activities(session: AsyncSession, locks: LockRegistry, settings: Settings) -> ActivityService:
    return ActivityService(session, locks=locks, settings=settings)


@pytest.fixture
def invoices(session: AsyncSession, locks: LockRegistry, settings: Settings) -> InvoiceGenerator:
    return InvoiceGenerator(session, locks=locks, settings=settings)


@pytest_asyncio.fixture
async def worker(session: AsyncSession, store: EntityStore) -> Worker:
    """Create a test worker at 20.00/h."""
    worker = await store.create_worker(
        WorkerCreate(name="Ana Torres", hourly_rate=20.0, specialty="electrical")
    )
    await session.commit()
    return worker


@pytest_asyncio.fixture
async def other_worker(session: AsyncSession, store: EntityStore) -> Worker:
    worker = await store.create_worker(WorkerCreate(name="Ben Okafor", hourly_rate=25.0))
    await session.commit()
    return worker


@pytest_asyncio.fixture
async def client_record(session: AsyncSession, store: EntityStore) -> Client:
    """Create a test client billed at 50.00/h."""
    client = await store.create_client(
        ClientCreate(
            name="Acme Facilities",
            contact_name="Dana Reyes",
            email="dana@acme.example",
            billing_rate=50.0,
        )
    )
    await session.commit()
    return client


@pytest_asyncio.fixture
async def contract(session: AsyncSession, store: EntityStore, client_record: Client) -> Contract:
    """Create a 10-hour contract for the test client."""
    contract = await store.create_contract(
        ContractCreate(
            client_id=client_record.id,
            order_number="PO-1001",
            total_hours=10.0,
            start_date=datetime(2025, 1, 1, tzinfo=timezone.utc),
            end_date=datetime(2025, 12, 31, tzinfo=timezone.utc),
        )
    )
    await session.commit()
    return contract
