"""Directory service - serialized mutations of workers, clients and contracts.

``EntityStore`` holds the reference rules; this service runs the mutations
that other units of work validate against under the same lock keys those
units take, so a check made under a lock still holds at commit.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from activity_ledger.config import Settings, get_settings
from activity_ledger.models import Contract
from activity_ledger.schemas import ContractCreate, ContractUpdate
from activity_ledger.services.contract_ledger import ContractLedger
from activity_ledger.services.entity_store import EntityStore
from activity_ledger.services.locking_service import LockingService, LockRegistry, lock_key

logger = logging.getLogger(__name__)


class DirectoryService:
    """Locked create/update/delete for the entities activities refer to.

    Lock keys:
    - ``client:<id>`` for client deletes and new contracts
    - ``contract:<id>`` for contract updates and deletes
    - ``worker:<id>`` for worker deletes
    """

    def __init__(
        self,
        session: AsyncSession,
        locks: LockRegistry | None = None,
        settings: Settings | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.store = EntityStore(session)
        self.ledger = ContractLedger(session, self.settings.reserve_unverified_hours)
        self.locking = LockingService(
            session,
            locks if locks is not None else LockRegistry(),
            self.settings.operation_timeout_seconds,
        )

    async def create_contract(self, data: ContractCreate) -> Contract:
        async with self.locking.serialized(lock_key("client", data.client_id)):
            contract = await self.store.create_contract(data)
        logger.info("Created contract %s for client %s", contract.id, data.client_id)
        return contract

    async def update_contract(self, contract_id: UUID, data: ContractUpdate) -> Contract:
        """Update a contract; used hours are read under the contract lock."""
        async with self.locking.serialized(lock_key("contract", contract_id)):
            hours = await self.ledger.hours_remaining(contract_id)
            contract = await self.store.update_contract(
                contract_id, data, used_hours=hours.used_hours
            )
        return contract

    async def delete_contract(self, contract_id: UUID) -> None:
        async with self.locking.serialized(lock_key("contract", contract_id)):
            await self.store.delete_contract(contract_id)
        logger.info("Deleted contract %s", contract_id)

    async def delete_worker(self, worker_id: UUID) -> None:
        async with self.locking.serialized(lock_key("worker", worker_id)):
            await self.store.delete_worker(worker_id)
        logger.info("Deleted worker %s", worker_id)

    async def delete_client(self, client_id: UUID) -> None:
        async with self.locking.serialized(lock_key("client", client_id)):
            await self.store.delete_client(client_id)
        logger.info("Deleted client %s", client_id)
