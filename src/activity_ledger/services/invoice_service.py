"""Invoice generation for client bills and worker payouts."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from activity_ledger.config import Settings, get_settings
from activity_ledger.errors import EntityNotFoundError, InvalidTransitionError, StaleSelectionError
from activity_ledger.models import (
    Activity,
    ActivityStatus,
    Client,
    ClientInvoiceTarget,
    Invoice,
    InvoiceStatus,
    InvoiceTarget,
    Worker,
    WorkerInvoiceTarget,
    utcnow,
)
from activity_ledger.schemas import InvoiceRequest
from activity_ledger.services.entity_store import EntityStore, validate_window
from activity_ledger.services.filters import InvoiceFilter
from activity_ledger.services.locking_service import LockingService, LockRegistry, lock_key
from activity_ledger.services.state_machine import (
    ActivityStateMachine,
    InvoiceStateMachine,
    TransitionSource,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvoiceResult:
    """A generated invoice and the activities it covers."""

    invoice: Invoice
    activities: list[Activity] = field(default_factory=list)

    @property
    def total_hours(self) -> float:
        return sum(a.duration_hours for a in self.activities)


class InvoiceGenerator:
    """Generates client bills and worker payouts from VERIFIED activities.

    Selection: the target's VERIFIED activities lying entirely inside
    [period_start, period_end]; partial overlaps are left out.

    Client bills flip the selected activities to INVOICED in the same
    transaction, with an update conditional on the activity still being
    VERIFIED. If fewer rows flip than were selected, another run got there
    first: the unit rolls back and generation is retried from a fresh
    selection.

    Worker payouts leave activity status alone. With
    ``lock_payout_activities`` they stamp ``payout_invoice_id`` under the same
    conditional scheme so verified hours are paid at most once.
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
        self.locking = LockingService(
            session,
            locks if locks is not None else LockRegistry(),
            self.settings.operation_timeout_seconds,
        )

    async def generate_client_invoice(self, request: InvoiceRequest) -> InvoiceResult:
        """Bill a client for its verified activities in the period."""
        return await self.generate(
            ClientInvoiceTarget(request.entity_id), request.period_start, request.period_end
        )

    async def generate_worker_payout(self, request: InvoiceRequest) -> InvoiceResult:
        """Compute a worker's payout for its verified activities in the period."""
        return await self.generate(
            WorkerInvoiceTarget(request.entity_id), request.period_start, request.period_end
        )

    async def generate(
        self,
        target: InvoiceTarget,
        period_start: datetime,
        period_end: datetime,
    ) -> InvoiceResult:
        """Generate an invoice for the target, retrying lost selection races."""
        validate_window(period_start, period_end, "period_end")

        attempt = 1
        while True:
            try:
                return await self._generate_once(target, period_start, period_end)
            except StaleSelectionError as exc:
                if attempt >= self.settings.invoice_retry_attempts:
                    raise
                logger.warning(
                    "Invoice selection for %s went stale (%d/%d eligible), retrying",
                    target,
                    exc.updated,
                    exc.selected,
                )
                attempt += 1

    async def _generate_once(
        self,
        target: InvoiceTarget,
        period_start: datetime,
        period_end: datetime,
    ) -> InvoiceResult:
        if isinstance(target, ClientInvoiceTarget):
            key = lock_key("client", target.client_id)
        else:
            key = lock_key("worker", target.worker_id)

        async with self.locking.serialized(key):
            if isinstance(target, ClientInvoiceTarget):
                client = await self.store.get(Client, target.client_id)
                activities = await self._select_eligible(
                    [Activity.client_id == target.client_id], period_start, period_end
                )
                rate = client.effective_billing_rate
                total_amount = sum(a.duration_hours * rate for a in activities)
            else:
                worker = await self.store.get(Worker, target.worker_id)
                criteria = [Activity.worker_id == target.worker_id]
                if self.settings.lock_payout_activities:
                    criteria.append(Activity.payout_invoice_id.is_(None))
                activities = await self._select_eligible(criteria, period_start, period_end)
                total_amount = sum(a.duration_hours for a in activities) * worker.hourly_rate

            invoice = Invoice.for_target(
                target,
                total_amount=total_amount,
                total_hours=sum(a.duration_hours for a in activities),
                period_start=period_start,
                period_end=period_end,
                status=InvoiceStatus.DRAFT,
                generated_at=utcnow(),
            )
            self.session.add(invoice)
            await self.session.flush()

            if isinstance(target, ClientInvoiceTarget):
                await self._mark_invoiced(invoice, activities)
            elif self.settings.lock_payout_activities:
                await self._mark_paid_out(invoice, activities)

        logger.info(
            "Generated %s %s: %d activities, %.2fh, amount %.2f",
            invoice.kind.value,
            invoice.id,
            len(activities),
            invoice.total_hours,
            invoice.total_amount,
        )
        return InvoiceResult(invoice=invoice, activities=activities)

    async def _select_eligible(
        self,
        criteria: list,
        period_start: datetime,
        period_end: datetime,
    ) -> list[Activity]:
        result = await self.session.execute(
            select(Activity)
            .where(
                *criteria,
                Activity.status == ActivityStatus.VERIFIED,
                Activity.scheduled_start >= period_start,
                Activity.scheduled_end <= period_end,
            )
            .order_by(Activity.scheduled_start)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def _mark_invoiced(self, invoice: Invoice, activities: list[Activity]) -> None:
        """Flip the selection to INVOICED, only where still VERIFIED."""
        if not activities:
            return
        ActivityStateMachine.validate_transition(
            ActivityStatus.VERIFIED, ActivityStatus.INVOICED, TransitionSource.INVOICING
        )
        result = await self.session.execute(
            update(Activity)
            .where(
                Activity.id.in_([a.id for a in activities]),
                Activity.status == ActivityStatus.VERIFIED,
            )
            .values(status=ActivityStatus.INVOICED, client_invoice_id=invoice.id)
            .execution_options(synchronize_session=False)
        )
        updated = result.rowcount or 0
        if updated != len(activities):
            raise StaleSelectionError(len(activities), updated)

        for activity in activities:
            set_committed_value(activity, "status", ActivityStatus.INVOICED)
            set_committed_value(activity, "client_invoice_id", invoice.id)

    async def _mark_paid_out(self, invoice: Invoice, activities: list[Activity]) -> None:
        """Stamp the payout id, only where no payout claimed the row yet."""
        if not activities:
            return
        result = await self.session.execute(
            update(Activity)
            .where(
                Activity.id.in_([a.id for a in activities]),
                Activity.payout_invoice_id.is_(None),
            )
            .values(payout_invoice_id=invoice.id)
            .execution_options(synchronize_session=False)
        )
        updated = result.rowcount or 0
        if updated != len(activities):
            raise StaleSelectionError(len(activities), updated)

        for activity in activities:
            set_committed_value(activity, "payout_invoice_id", invoice.id)

    # ------------------------------------------------------------------
    # Generated invoices
    # ------------------------------------------------------------------

    async def get(self, invoice_id: UUID) -> Invoice:
        invoice = await self.session.get(Invoice, invoice_id, populate_existing=True)
        if invoice is None:
            raise EntityNotFoundError("Invoice", invoice_id)
        return invoice

    async def list(self, filters: InvoiceFilter | None = None) -> list[Invoice]:
        """List invoices, newest first."""
        filters = filters or InvoiceFilter()
        query = select(Invoice)
        if filters.kind is not None:
            query = query.where(Invoice.kind == filters.kind)
        if filters.status is not None:
            query = query.where(Invoice.status == filters.status)
        if filters.client_id is not None:
            query = query.where(Invoice.client_id == filters.client_id)
        if filters.worker_id is not None:
            query = query.where(Invoice.worker_id == filters.worker_id)
        result = await self.session.execute(query.order_by(Invoice.generated_at.desc()))
        return list(result.scalars().all())

    async def advance_status(self, invoice_id: UUID, new_status: InvoiceStatus) -> Invoice:
        """Move an invoice one step along draft → sent → paid."""
        new_status = InvoiceStatus(new_status)
        async with self.locking.serialized(lock_key("invoice", invoice_id)):
            invoice = await self.get(invoice_id)
            from_status = invoice.status
            InvoiceStateMachine.validate_transition(from_status, new_status)

            result = await self.session.execute(
                update(Invoice)
                .where(Invoice.id == invoice_id, Invoice.status == from_status)
                .values(status=new_status)
                .execution_options(synchronize_session=False)
            )
            if (result.rowcount or 0) == 0:
                raise InvalidTransitionError(
                    from_status.value, new_status.value, "Status changed during update"
                )
            set_committed_value(invoice, "status", new_status)

        logger.info("Invoice %s %s → %s", invoice_id, from_status.value, new_status.value)
        return invoice
