"""Entity store for workers, clients and contracts.

Enforces the reference rules the ledger relies on:

- ``Client.email`` and ``(Contract.client_id, order_number)`` are unique
- deleting a contract unlinks its activities
- deleting a worker unassigns its activities (scheduled ones revert to
  UNASSIGNED) and detaches its payouts
- deleting a client is refused while activities or contracts reference it;
  its invoices are detached

Methods flush but never commit; the caller owns the transaction.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from activity_ledger.errors import (
    DuplicateEntityError,
    EntityNotFoundError,
    ReferenceInUseError,
    ValidationFailedError,
)
from activity_ledger.models import (
    Activity,
    ActivityStatus,
    Base,
    Client,
    Contract,
    Invoice,
    Worker,
)
from activity_ledger.schemas import (
    ClientCreate,
    ClientUpdate,
    ContractCreate,
    ContractUpdate,
    WorkerCreate,
    WorkerUpdate,
)
from activity_ledger.services.filters import ClientFilter, ContractFilter, WorkerFilter

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)


def validate_window(start, end, end_field: str = "end_date") -> None:
    """Reject ranges where end is not strictly after start."""
    if end <= start:
        raise ValidationFailedError("End date must be after start date", field=end_field)


class EntityStore:
    """CRUD and filtered listing for the non-activity entities."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, model: type[ModelT], entity_id: UUID) -> ModelT:
        """Load by primary key or raise EntityNotFoundError."""
        entity = await self.session.get(model, entity_id, populate_existing=True)
        if entity is None:
            raise EntityNotFoundError(model.__name__, entity_id)
        return entity

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    async def create_worker(self, data: WorkerCreate) -> Worker:
        worker = Worker(**data.model_dump())
        self.session.add(worker)
        await self.session.flush()
        return worker

    async def update_worker(self, worker_id: UUID, data: WorkerUpdate) -> Worker:
        worker = await self.get(Worker, worker_id)
        changes = data.provided()
        for required in ("name", "hourly_rate"):
            if required in changes and changes[required] is None:
                raise ValidationFailedError(f"{required} cannot be null", field=required)
        _apply(worker, changes)
        await self.session.flush()
        return worker

    async def delete_worker(self, worker_id: UUID) -> None:
        await self.get(Worker, worker_id)

        reverted = await self.session.execute(
            update(Activity)
            .where(
                Activity.worker_id == worker_id,
                Activity.status == ActivityStatus.SCHEDULED,
            )
            .values(worker_id=None, status=ActivityStatus.UNASSIGNED)
        )
        await self.session.execute(
            update(Activity).where(Activity.worker_id == worker_id).values(worker_id=None)
        )
        await self.session.execute(
            update(Invoice).where(Invoice.worker_id == worker_id).values(worker_id=None)
        )
        await self.session.execute(delete(Worker).where(Worker.id == worker_id))
        logger.info(
            "Deleted worker %s, %d scheduled activities unassigned",
            worker_id,
            reverted.rowcount or 0,
        )

    async def list_workers(self, filters: WorkerFilter | None = None) -> list[Worker]:
        filters = filters or WorkerFilter()
        query = select(Worker)
        if filters.specialty is not None:
            query = query.where(Worker.specialty == filters.specialty)
        result = await self.session.execute(query.order_by(Worker.name))
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------

    async def create_client(self, data: ClientCreate) -> Client:
        await self._ensure_unique_email(data.email)
        client = Client(**data.model_dump())
        self.session.add(client)
        await self._flush_unique("Client", "email", data.email)
        return client

    async def update_client(self, client_id: UUID, data: ClientUpdate) -> Client:
        client = await self.get(Client, client_id)
        changes = data.provided()
        for required in ("name", "contact_name", "email"):
            if required in changes and changes[required] is None:
                raise ValidationFailedError(f"{required} cannot be null", field=required)
        if "email" in changes and changes["email"] != client.email:
            await self._ensure_unique_email(changes["email"])
        _apply(client, changes)
        await self._flush_unique("Client", "email", client.email)
        return client

    async def delete_client(self, client_id: UUID) -> None:
        await self.get(Client, client_id)

        activity_count = await self._count(Activity.client_id == client_id, Activity)
        if activity_count:
            raise ReferenceInUseError("Client", client_id, "activities", activity_count)
        contract_count = await self._count(Contract.client_id == client_id, Contract)
        if contract_count:
            raise ReferenceInUseError("Client", client_id, "contracts", contract_count)

        await self.session.execute(
            update(Invoice).where(Invoice.client_id == client_id).values(client_id=None)
        )
        await self.session.execute(delete(Client).where(Client.id == client_id))

    async def list_clients(self, filters: ClientFilter | None = None) -> list[Client]:
        filters = filters or ClientFilter()
        query = select(Client)
        if filters.email is not None:
            query = query.where(Client.email == filters.email)
        result = await self.session.execute(query.order_by(Client.name))
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Contracts
    # ------------------------------------------------------------------

    async def create_contract(self, data: ContractCreate) -> Contract:
        await self.get(Client, data.client_id)
        validate_window(data.start_date, data.end_date)
        await self._ensure_unique_order_number(data.client_id, data.order_number)

        contract = Contract(**data.model_dump())
        self.session.add(contract)
        await self._flush_unique("Contract", "order_number", data.order_number)
        return contract

    async def update_contract(
        self,
        contract_id: UUID,
        data: ContractUpdate,
        used_hours: float | None = None,
    ) -> Contract:
        """Apply a partial update.

        ``used_hours`` (from the ledger) guards against shrinking the contract
        below what has already been consumed.
        """
        contract = await self.get(Contract, contract_id)
        changes = data.provided()
        for required in ("order_number", "total_hours", "start_date", "end_date", "status"):
            if required in changes and changes[required] is None:
                raise ValidationFailedError(f"{required} cannot be null", field=required)

        validate_window(
            changes.get("start_date", contract.start_date),
            changes.get("end_date", contract.end_date),
        )
        if "order_number" in changes and changes["order_number"] != contract.order_number:
            await self._ensure_unique_order_number(contract.client_id, changes["order_number"])
        if (
            used_hours is not None
            and "total_hours" in changes
            and changes["total_hours"] < used_hours
        ):
            raise ValidationFailedError(
                f"Total hours cannot drop below the {used_hours}h already used",
                field="total_hours",
            )

        _apply(contract, changes)
        await self._flush_unique("Contract", "order_number", contract.order_number)
        return contract

    async def delete_contract(self, contract_id: UUID) -> None:
        await self.get(Contract, contract_id)
        await self.session.execute(
            update(Activity).where(Activity.contract_id == contract_id).values(contract_id=None)
        )
        await self.session.execute(delete(Contract).where(Contract.id == contract_id))

    async def list_contracts(self, filters: ContractFilter | None = None) -> list[Contract]:
        filters = filters or ContractFilter()
        query = select(Contract)
        if filters.client_id is not None:
            query = query.where(Contract.client_id == filters.client_id)
        if filters.status is not None:
            query = query.where(Contract.status == filters.status)
        result = await self.session.execute(query.order_by(Contract.created_at.desc()))
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _ensure_unique_email(self, email: str) -> None:
        existing = await self.session.scalar(select(Client.id).where(Client.email == email))
        if existing is not None:
            raise DuplicateEntityError("Client", "email", email)

    async def _ensure_unique_order_number(self, client_id: UUID, order_number: str) -> None:
        existing = await self.session.scalar(
            select(Contract.id).where(
                Contract.client_id == client_id,
                Contract.order_number == order_number,
            )
        )
        if existing is not None:
            raise DuplicateEntityError("Contract", "order_number", order_number)

    async def _flush_unique(self, entity_type: str, key: str, value: Any) -> None:
        """Flush, reporting a unique-key race as a duplicate."""
        try:
            await self.session.flush()
        except IntegrityError as exc:
            await self.session.rollback()
            raise DuplicateEntityError(entity_type, key, value) from exc

    async def _count(self, criterion: Any, model: type[Base]) -> int:
        return await self.session.scalar(select(func.count()).select_from(model).where(criterion)) or 0


def _apply(entity: Base, changes: dict[str, Any]) -> None:
    for name, value in changes.items():
        setattr(entity, name, value)
