"""Activity service - lifecycle operations for scheduled field work."""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from activity_ledger.config import Settings, get_settings
from activity_ledger.errors import (
    ConflictError,
    EntityNotFoundError,
    SchedulingConflictError,
    ValidationFailedError,
)
from activity_ledger.models import (
    Activity,
    ActivityStatus,
    Client,
    ContractStatus,
    Worker,
    hours_between,
)
from activity_ledger.schemas import ActivityCreate, ActivityUpdate, AvailabilityQuery
from activity_ledger.services.availability import AvailabilityChecker, AvailabilityResult
from activity_ledger.services.contract_ledger import ContractLedger
from activity_ledger.services.entity_store import EntityStore, validate_window
from activity_ledger.services.filters import ActivityFilter
from activity_ledger.services.locking_service import LockingService, LockRegistry, lock_key
from activity_ledger.services.state_machine import ActivityStateMachine, TransitionSource

logger = logging.getLogger(__name__)

# Fields that may not change once an activity has been invoiced
_BILLING_FIELDS = ("client_id", "contract_id", "scheduled_start", "scheduled_end")

_NOT_NULLABLE = ("title", "client_id", "scheduled_start", "scheduled_end", "location")


class ActivityService:
    """Service for managing the activity lifecycle.

    Operations:
    - create: validate, check contract capacity, persist as UNASSIGNED
    - update: re-validate schedule, capacity and (if assigned) availability
    - assign: book a worker (→ SCHEDULED) or clear the booking (→ UNASSIGNED)
    - set_status: forward-only transitions; VERIFIED consumes contract hours
    - delete: allowed in any status, no cascade

    Every mutation runs inside ``LockingService.serialized`` holding the
    activity key plus the client, worker and contract keys it validates
    against, and commits before the locks are released.
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
        self.availability = AvailabilityChecker(session, self.settings.overlap_policy)
        self.ledger = ContractLedger(session, self.settings.reserve_unverified_hours)
        self.locking = LockingService(
            session,
            locks if locks is not None else LockRegistry(),
            self.settings.operation_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get(self, activity_id: UUID) -> Activity:
        activity = await self.session.get(Activity, activity_id, populate_existing=True)
        if activity is None:
            raise EntityNotFoundError("Activity", activity_id)
        return activity

    async def list(self, filters: ActivityFilter | None = None) -> list[Activity]:
        """List activities matching the filter, earliest first."""
        filters = filters or ActivityFilter()
        query = select(Activity)
        if filters.status is not None:
            query = query.where(Activity.status == filters.status)
        if filters.worker_id is not None:
            query = query.where(Activity.worker_id == filters.worker_id)
        if filters.client_id is not None:
            query = query.where(Activity.client_id == filters.client_id)
        if filters.contract_id is not None:
            query = query.where(Activity.contract_id == filters.contract_id)
        if filters.starts_from is not None:
            query = query.where(Activity.scheduled_start >= filters.starts_from)
        if filters.starts_until is not None:
            query = query.where(Activity.scheduled_start <= filters.starts_until)

        result = await self.session.execute(query.order_by(Activity.scheduled_start))
        return list(result.scalars().all())

    async def check_availability(self, query: AvailabilityQuery) -> AvailabilityResult:
        """Check a worker's calendar; read only."""
        validate_window(query.scheduled_start, query.scheduled_end, "scheduled_end")
        return await self.availability.check_availability(
            query.worker_id,
            query.scheduled_start,
            query.scheduled_end,
            query.exclude_activity_id,
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, data: ActivityCreate) -> Activity:
        """Create an activity.

        Starts UNASSIGNED; when a worker is given the assignment runs in the
        same unit of work and the activity starts SCHEDULED.
        """
        validate_window(data.scheduled_start, data.scheduled_end, "scheduled_end")
        duration = hours_between(data.scheduled_start, data.scheduled_end)

        keys = [lock_key("client", data.client_id)]
        if data.contract_id is not None:
            keys.append(lock_key("contract", data.contract_id))
        if data.worker_id is not None:
            keys.append(lock_key("worker", data.worker_id))

        async with self.locking.serialized(*keys):
            await self.store.get(Client, data.client_id)
            if data.contract_id is not None:
                await self._check_contract(
                    data.contract_id, data.client_id, duration, require_active=True
                )

            activity = Activity(
                title=data.title,
                client_id=data.client_id,
                contract_id=data.contract_id,
                location=data.location,
                description=data.description,
                evidence_url=data.evidence_url,
                status=ActivityStatus.UNASSIGNED,
            )
            activity.reschedule(data.scheduled_start, data.scheduled_end)

            if data.worker_id is not None:
                await self.store.get(Worker, data.worker_id)
                ActivityStateMachine.validate_transition(
                    ActivityStatus.UNASSIGNED, ActivityStatus.SCHEDULED, TransitionSource.ASSIGNMENT
                )
                await self._ensure_worker_free(
                    data.worker_id, data.scheduled_start, data.scheduled_end, None
                )
                activity.worker_id = data.worker_id
                activity.status = ActivityStatus.SCHEDULED

            self.session.add(activity)
            await self.session.flush()

        logger.info("Created activity %s (%s, %.2fh)", activity.id, activity.status.value, duration)
        return activity

    async def update(self, activity_id: UUID, data: ActivityUpdate) -> Activity:
        """Apply a partial update, re-running the checks the change touches."""
        changes = data.provided()
        for name in _NOT_NULLABLE:
            if name in changes and changes[name] is None:
                raise ValidationFailedError(f"{name} cannot be null", field=name)

        current = await self.get(activity_id)
        seen = (current.worker_id, current.contract_id)
        contract_ids = {current.contract_id, changes.get("contract_id", current.contract_id)}
        keys = [lock_key("activity", activity_id)]
        keys += [lock_key("contract", cid) for cid in contract_ids if cid is not None]
        if changes.get("client_id") not in (None, current.client_id):
            keys.append(lock_key("client", changes["client_id"]))
        if current.worker_id is not None:
            keys.append(lock_key("worker", current.worker_id))

        async with self.locking.serialized(*keys):
            activity = await self.get(activity_id)
            self._ensure_unchanged(activity, *seen)

            if ActivityStateMachine.are_fields_locked(activity.status):
                touched = [
                    name
                    for name in _BILLING_FIELDS
                    if name in changes and changes[name] != getattr(activity, name)
                ]
                if touched:
                    raise ValidationFailedError(
                        f"Invoiced activities cannot change {', '.join(touched)}",
                        field=touched[0],
                    )

            start = changes.get("scheduled_start", activity.scheduled_start)
            end = changes.get("scheduled_end", activity.scheduled_end)
            validate_window(start, end, "scheduled_end")
            duration = hours_between(start, end)
            moved = start != activity.scheduled_start or end != activity.scheduled_end

            client_id = changes.get("client_id", activity.client_id)
            if client_id != activity.client_id:
                await self.store.get(Client, client_id)

            contract_id = changes.get("contract_id", activity.contract_id)
            relinked = contract_id != activity.contract_id or client_id != activity.client_id
            if contract_id is not None and (moved or relinked):
                await self._check_contract(
                    contract_id,
                    client_id,
                    duration,
                    exclude_activity_id=activity.id,
                    require_active=contract_id != activity.contract_id,
                )

            if (
                moved
                and activity.worker_id is not None
                and ActivityStateMachine.blocks_calendar(activity.status)
            ):
                await self._ensure_worker_free(activity.worker_id, start, end, activity.id)

            for name, value in changes.items():
                if name not in ("scheduled_start", "scheduled_end"):
                    setattr(activity, name, value)
            if moved:
                activity.reschedule(start, end)
            await self.session.flush()

        return activity

    async def assign(self, activity_id: UUID, worker_id: UUID | None) -> Activity:
        """Book a worker onto the activity, or clear the booking.

        The availability re-check and the write happen under the worker's
        lock, so of two concurrent bookings onto overlapping intervals only
        one succeeds; the other raises SchedulingConflictError.
        """
        keys = [lock_key("activity", activity_id)]
        if worker_id is not None:
            keys.append(lock_key("worker", worker_id))

        async with self.locking.serialized(*keys):
            activity = await self.get(activity_id)

            if worker_id is None:
                if activity.status == ActivityStatus.UNASSIGNED:
                    return activity
                ActivityStateMachine.validate_transition(
                    activity.status, ActivityStatus.UNASSIGNED, TransitionSource.ASSIGNMENT
                )
                activity.worker_id = None
                activity.status = ActivityStatus.UNASSIGNED
            else:
                await self.store.get(Worker, worker_id)
                ActivityStateMachine.validate_transition(
                    activity.status, ActivityStatus.SCHEDULED, TransitionSource.ASSIGNMENT
                )
                await self._ensure_worker_free(
                    worker_id, activity.scheduled_start, activity.scheduled_end, activity.id
                )
                activity.worker_id = worker_id
                activity.status = ActivityStatus.SCHEDULED

            await self.session.flush()

        logger.info("Activity %s assigned to %s", activity_id, worker_id)
        return activity

    async def set_status(
        self,
        activity_id: UUID,
        new_status: ActivityStatus,
        override: bool = False,
    ) -> Activity:
        """Transition an activity's status.

        Callers move forward one step at a time from SCHEDULED to VERIFIED.
        ``override`` is the administrative path: any move between
        non-invoiced states. INVOICED is reserved for invoice generation.
        """
        new_status = ActivityStatus(new_status)
        source = TransitionSource.ADMIN if override else TransitionSource.CLIENT

        current = await self.get(activity_id)
        seen = (current.worker_id, current.contract_id)
        keys = [lock_key("activity", activity_id)]
        if current.contract_id is not None:
            keys.append(lock_key("contract", current.contract_id))
        if current.worker_id is not None:
            keys.append(lock_key("worker", current.worker_id))

        async with self.locking.serialized(*keys):
            activity = await self.get(activity_id)
            self._ensure_unchanged(activity, *seen)
            from_status = activity.status

            ActivityStateMachine.validate_transition(from_status, new_status, source)

            if override and new_status != ActivityStatus.UNASSIGNED and activity.worker_id is None:
                raise ValidationFailedError(
                    f"Activity needs a worker to be {new_status.value}", field="worker_id"
                )
            if (
                override
                and ActivityStateMachine.blocks_calendar(new_status)
                and not ActivityStateMachine.blocks_calendar(from_status)
            ):
                await self._ensure_worker_free(
                    activity.worker_id,
                    activity.scheduled_start,
                    activity.scheduled_end,
                    activity.id,
                )

            if (
                activity.contract_id is not None
                and ActivityStateMachine.consumes_capacity(new_status)
                and not ActivityStateMachine.consumes_capacity(from_status)
            ):
                await self.ledger.validate_commit(
                    activity.contract_id, activity.duration_hours, exclude_activity_id=activity.id
                )

            if new_status == ActivityStatus.UNASSIGNED:
                activity.worker_id = None
            activity.status = new_status
            await self.session.flush()

        logger.info(
            "Activity %s %s → %s%s",
            activity_id,
            from_status.value,
            new_status.value,
            " (override)" if override else "",
        )
        return activity

    async def delete(self, activity_id: UUID) -> None:
        """Delete an activity in any status."""
        async with self.locking.serialized(lock_key("activity", activity_id)):
            activity = await self.get(activity_id)
            await self.session.delete(activity)
            await self.session.flush()
        logger.info("Deleted activity %s", activity_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _check_contract(
        self,
        contract_id: UUID,
        client_id: UUID,
        requested_hours: float,
        exclude_activity_id: UUID | None = None,
        require_active: bool = False,
    ) -> None:
        contract = await self.ledger.get_contract(contract_id)
        if contract.client_id != client_id:
            raise ValidationFailedError(
                "Contract belongs to a different client", field="contract_id"
            )
        if require_active and contract.status != ContractStatus.ACTIVE:
            raise ValidationFailedError("Contract is closed", field="contract_id")
        await self.ledger.validate_commit(contract_id, requested_hours, exclude_activity_id)

    async def _ensure_worker_free(
        self,
        worker_id: UUID,
        start: datetime,
        end: datetime,
        exclude_activity_id: UUID | None,
    ) -> None:
        result = await self.availability.check_availability(
            worker_id, start, end, exclude_activity_id
        )
        if result.available:
            return
        # Detach so the conflicting rows stay readable after the rollback
        for conflict in result.conflicting_activities:
            self.session.expunge(conflict)
        logger.warning(
            "Worker %s unavailable: conflicts with %s",
            worker_id,
            [str(a.id) for a in result.conflicting_activities],
        )
        raise SchedulingConflictError(worker_id, result.conflicting_activities)

    @staticmethod
    def _ensure_unchanged(
        activity: Activity,
        worker_id: UUID | None,
        contract_id: UUID | None,
    ) -> None:
        """Fail if the worker or contract moved while waiting for the locks.

        The lock keys were chosen from the earlier read; if another request
        re-linked the activity in between, those keys no longer cover it.
        """
        if activity.worker_id != worker_id or activity.contract_id != contract_id:
            raise ConflictError(
                f"Activity {activity.id} changed concurrently; retry",
                {"activity_id": str(activity.id)},
            )
