"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from activity_ledger.config import Settings
from activity_ledger.database import Database
from activity_ledger.services import (
    ActivityService,
    ContractLedger,
    DirectoryService,
    EntityStore,
    InvoiceGenerator,
    LockRegistry,
)


def get_database(request: Request) -> Database:
    """Database owned by the running application."""
    return request.app.state.database


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_lock_registry(request: Request) -> LockRegistry:
    return request.app.state.locks


async def get_db_session(
    database: Annotated[Database, Depends(get_database)],
) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with database.session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# Type aliases for cleaner dependency injection
AppDatabase = Annotated[Database, Depends(get_database)]
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
Locks = Annotated[LockRegistry, Depends(get_lock_registry)]


def get_entity_store(db: DbSession) -> EntityStore:
    return EntityStore(db)


def get_activity_service(db: DbSession, locks: Locks, settings: AppSettings) -> ActivityService:
    return ActivityService(db, locks=locks, settings=settings)


def get_invoice_generator(db: DbSession, locks: Locks, settings: AppSettings) -> InvoiceGenerator:
    return InvoiceGenerator(db, locks=locks, settings=settings)


def get_directory_service(db: DbSession, locks: Locks, settings: AppSettings) -> DirectoryService:
    return DirectoryService(db, locks=locks, settings=settings)


def get_contract_ledger(db: DbSession, settings: AppSettings) -> ContractLedger:
    return ContractLedger(db, reserve_unverified=settings.reserve_unverified_hours)


Store = Annotated[EntityStore, Depends(get_entity_store)]
Directory = Annotated[DirectoryService, Depends(get_directory_service)]
Activities = Annotated[ActivityService, Depends(get_activity_service)]
Invoices = Annotated[InvoiceGenerator, Depends(get_invoice_generator)]
Ledger = Annotated[ContractLedger, Depends(get_contract_ledger)]
