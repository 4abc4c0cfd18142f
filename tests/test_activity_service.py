"""Tests for the activity lifecycle service."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from pydantic import ValidationError

from activity_ledger.config import OverlapPolicy
from activity_ledger.errors import (
    CapacityExceededError,
    EntityNotFoundError,
    InvalidTransitionError,
    SchedulingConflictError,
    ValidationFailedError,
)
from activity_ledger.models import ActivityStatus, ClientInvoiceTarget, ContractStatus
from activity_ledger.schemas import (
    ActivityCreate,
    ActivityUpdate,
    ClientCreate,
    ContractCreate,
    ContractUpdate,
)
from activity_ledger.services import ActivityService, InvoiceGenerator
from activity_ledger.services.filters import ActivityFilter

from tests.factories import at, make_activity, verify


class TestCreateActivity:
    """Creating activities."""

    async def test_duration_derived_from_schedule(self, activities, client_record):
        activity = await make_activity(activities, client_record, at(10, 9), at(10, 11, 30))

        assert activity.duration_hours == 2.5
        assert activity.status == ActivityStatus.UNASSIGNED
        assert activity.worker_id is None

    async def test_create_with_worker_starts_scheduled(self, activities, client_record, worker):
        activity = await make_activity(
            activities, client_record, at(10, 9), at(10, 11), worker=worker
        )

        assert activity.status == ActivityStatus.SCHEDULED
        assert activity.worker_id == worker.id

    async def test_end_before_start_rejected(self, activities, client_record):
        with pytest.raises(ValidationFailedError, match="End date must be after start date"):
            await make_activity(activities, client_record, at(10, 11), at(10, 9))

    async def test_zero_length_rejected(self, activities, client_record):
        with pytest.raises(ValidationFailedError):
            await make_activity(activities, client_record, at(10, 11), at(10, 11))

    async def test_unknown_client(self, activities):
        with pytest.raises(EntityNotFoundError):
            await activities.create(
                ActivityCreate(
                    title="Inspection",
                    client_id=uuid4(),
                    scheduled_start=at(10, 9),
                    scheduled_end=at(10, 10),
                    location="Depot",
                )
            )

    async def test_naive_datetimes_read_as_utc(self, activities, client_record):
        activity = await activities.create(
            ActivityCreate(
                title="Inspection",
                client_id=client_record.id,
                scheduled_start=datetime(2025, 3, 10, 9, 0),
                scheduled_end=datetime(2025, 3, 10, 10, 0),
                location="Depot",
            )
        )

        stored = await activities.get(activity.id)
        assert stored.scheduled_start == at(10, 9)
        assert stored.scheduled_start.tzinfo is not None

    async def test_offset_datetimes_normalized(self, activities, client_record):
        plus_two = timezone(timedelta(hours=2))
        activity = await activities.create(
            ActivityCreate(
                title="Inspection",
                client_id=client_record.id,
                scheduled_start=datetime(2025, 3, 10, 11, 0, tzinfo=plus_two),
                scheduled_end=datetime(2025, 3, 10, 12, 0, tzinfo=plus_two),
                location="Depot",
            )
        )

        assert (await activities.get(activity.id)).scheduled_start == at(10, 9)

    def test_unknown_fields_rejected(self, client_record):
        with pytest.raises(ValidationError):
            ActivityCreate(
                title="Inspection",
                client_id=client_record.id,
                scheduled_start=at(10, 9),
                scheduled_end=at(10, 10),
                location="Depot",
                status="VERIFIED",
            )

    async def test_contract_of_other_client_rejected(
        self, activities, store, session, contract
    ):
        stranger = await store.create_client(
            ClientCreate(name="Other", contact_name="O", email="o@other.example")
        )
        await session.commit()

        with pytest.raises(ValidationFailedError, match="different client"):
            await make_activity(activities, stranger, at(10, 9), at(10, 10), contract=contract)

    async def test_closed_contract_rejected(
        self, activities, store, session, client_record, contract
    ):
        await store.update_contract(contract.id, ContractUpdate(status=ContractStatus.CLOSED))
        await session.commit()

        with pytest.raises(ValidationFailedError, match="closed"):
            await make_activity(activities, client_record, at(10, 9), at(10, 10), contract=contract)

    async def test_oversized_activity_rejected(self, activities, client_record, contract):
        with pytest.raises(CapacityExceededError):
            await make_activity(
                activities, client_record, at(10, 6), at(10, 17), contract=contract
            )

    async def test_overlapping_worker_rejected(self, activities, client_record, worker):
        first = await make_activity(activities, client_record, at(10, 10), at(10, 12), worker=worker)

        with pytest.raises(SchedulingConflictError) as exc_info:
            await make_activity(activities, client_record, at(10, 11), at(10, 13), worker=worker)

        assert [a.id for a in exc_info.value.conflicting_activities] == [first.id]


class TestAssign:
    """Assigning and clearing workers."""

    async def test_assign_and_unassign(self, activities, client_record, worker):
        activity = await make_activity(activities, client_record, at(10, 9), at(10, 11))

        activity = await activities.assign(activity.id, worker.id)
        assert activity.status == ActivityStatus.SCHEDULED
        assert activity.worker_id == worker.id

        activity = await activities.assign(activity.id, None)
        assert activity.status == ActivityStatus.UNASSIGNED
        assert activity.worker_id is None

    async def test_reassign_to_other_worker(self, activities, client_record, worker, other_worker):
        activity = await make_activity(
            activities, client_record, at(10, 9), at(10, 11), worker=worker
        )

        activity = await activities.assign(activity.id, other_worker.id)

        assert activity.status == ActivityStatus.SCHEDULED
        assert activity.worker_id == other_worker.id

    async def test_reassign_same_worker_does_not_self_conflict(
        self, activities, client_record, worker
    ):
        activity = await make_activity(
            activities, client_record, at(10, 9), at(10, 11), worker=worker
        )

        activity = await activities.assign(activity.id, worker.id)

        assert activity.worker_id == worker.id

    async def test_unassign_when_already_unassigned_is_noop(self, activities, client_record):
        activity = await make_activity(activities, client_record, at(10, 9), at(10, 11))

        activity = await activities.assign(activity.id, None)

        assert activity.status == ActivityStatus.UNASSIGNED

    async def test_conflicting_assignment(self, activities, client_record, worker):
        first = await make_activity(activities, client_record, at(10, 10), at(10, 12), worker=worker)
        second = await make_activity(activities, client_record, at(10, 11), at(10, 13))
        first_id, second_id = first.id, second.id

        with pytest.raises(SchedulingConflictError) as exc_info:
            await activities.assign(second_id, worker.id)

        assert exc_info.value.conflicting_activities[0].id == first_id
        assert (await activities.get(second_id)).status == ActivityStatus.UNASSIGNED

    async def test_assign_after_work_started_rejected(self, activities, client_record, worker, other_worker):
        activity = await make_activity(
            activities, client_record, at(10, 9), at(10, 11), worker=worker
        )
        await activities.set_status(activity.id, ActivityStatus.IN_PROGRESS)

        with pytest.raises(InvalidTransitionError):
            await activities.assign(activity.id, other_worker.id)

    async def test_unknown_worker(self, activities, client_record):
        activity = await make_activity(activities, client_record, at(10, 9), at(10, 11))

        with pytest.raises(EntityNotFoundError):
            await activities.assign(activity.id, uuid4())

    async def test_strict_policy_allows_back_to_back(
        self, session, locks, settings, client_record, worker
    ):
        service = ActivityService(
            session, locks=locks, settings=replace(settings, overlap_policy=OverlapPolicy.STRICT)
        )
        await make_activity(service, client_record, at(10, 10), at(10, 12), worker=worker)

        second = await make_activity(service, client_record, at(10, 12), at(10, 14), worker=worker)

        assert second.status == ActivityStatus.SCHEDULED


class TestSetStatus:
    """Forward-only status transitions."""

    async def test_forward_walk_to_verified(self, activities, client_record, worker):
        activity = await make_activity(
            activities, client_record, at(10, 9), at(10, 11), worker=worker
        )

        activity = await verify(activities, activity)

        assert activity.status == ActivityStatus.VERIFIED

    async def test_backward_rejected(self, activities, client_record, worker):
        activity = await make_activity(
            activities, client_record, at(10, 9), at(10, 11), worker=worker
        )
        activity_id = activity.id
        await activities.set_status(activity_id, ActivityStatus.IN_PROGRESS)
        await activities.set_status(activity_id, ActivityStatus.DONE)

        with pytest.raises(InvalidTransitionError, match="only moves forward"):
            await activities.set_status(activity_id, ActivityStatus.IN_PROGRESS)

        assert (await activities.get(activity_id)).status == ActivityStatus.DONE

    async def test_skipping_rejected(self, activities, client_record, worker):
        activity = await make_activity(
            activities, client_record, at(10, 9), at(10, 11), worker=worker
        )

        with pytest.raises(InvalidTransitionError):
            await activities.set_status(activity.id, ActivityStatus.VERIFIED)

    async def test_unassigned_to_invoiced_rejected(self, activities, client_record):
        activity = await make_activity(activities, client_record, at(10, 9), at(10, 11))
        activity_id = activity.id

        with pytest.raises(InvalidTransitionError):
            await activities.set_status(activity_id, ActivityStatus.INVOICED)

        assert (await activities.get(activity_id)).status == ActivityStatus.UNASSIGNED

    async def test_verified_to_invoiced_rejected_for_callers(
        self, activities, client_record, worker
    ):
        activity = await make_activity(
            activities, client_record, at(10, 9), at(10, 11), worker=worker
        )
        await verify(activities, activity)
        activity_id = activity.id

        with pytest.raises(InvalidTransitionError):
            await activities.set_status(activity_id, ActivityStatus.INVOICED)
        with pytest.raises(InvalidTransitionError):
            await activities.set_status(activity_id, ActivityStatus.INVOICED, override=True)

        assert (await activities.get(activity_id)).status == ActivityStatus.VERIFIED

    async def test_verification_rechecks_capacity(
        self, activities, client_record, contract, worker, other_worker
    ):
        """Two 6h activities fit a 10h contract until the second is verified."""
        first = await make_activity(
            activities, client_record, at(10, 8), at(10, 14), contract=contract, worker=worker
        )
        second = await make_activity(
            activities, client_record, at(10, 8), at(10, 14), contract=contract, worker=other_worker
        )
        second_id = second.id
        await verify(activities, first)
        await activities.set_status(second_id, ActivityStatus.IN_PROGRESS)
        await activities.set_status(second_id, ActivityStatus.DONE)

        with pytest.raises(CapacityExceededError):
            await activities.set_status(second_id, ActivityStatus.VERIFIED)

        assert (await activities.get(second_id)).status == ActivityStatus.DONE

    async def test_unknown_activity(self, activities):
        with pytest.raises(EntityNotFoundError):
            await activities.set_status(uuid4(), ActivityStatus.IN_PROGRESS)


class TestAdminOverride:
    """Administrative status corrections."""

    async def test_override_moves_backward(self, activities, client_record, worker):
        activity = await make_activity(
            activities, client_record, at(10, 9), at(10, 11), worker=worker
        )
        await verify(activities, activity)

        activity = await activities.set_status(
            activity.id, ActivityStatus.IN_PROGRESS, override=True
        )

        assert activity.status == ActivityStatus.IN_PROGRESS

    async def test_override_to_unassigned_clears_worker(self, activities, client_record, worker):
        activity = await make_activity(
            activities, client_record, at(10, 9), at(10, 11), worker=worker
        )
        await activities.set_status(activity.id, ActivityStatus.IN_PROGRESS)

        activity = await activities.set_status(
            activity.id, ActivityStatus.UNASSIGNED, override=True
        )

        assert activity.worker_id is None

    async def test_override_requires_worker(self, activities, client_record):
        activity = await make_activity(activities, client_record, at(10, 9), at(10, 11))

        with pytest.raises(ValidationFailedError, match="needs a worker"):
            await activities.set_status(activity.id, ActivityStatus.DONE, override=True)

    async def test_override_back_into_calendar_checks_availability(
        self, activities, client_record, worker
    ):
        first = await make_activity(
            activities, client_record, at(10, 9), at(10, 11), worker=worker
        )
        await activities.set_status(first.id, ActivityStatus.IN_PROGRESS)
        await activities.set_status(first.id, ActivityStatus.DONE)
        await make_activity(activities, client_record, at(10, 10), at(10, 12), worker=worker)

        with pytest.raises(SchedulingConflictError):
            await activities.set_status(first.id, ActivityStatus.SCHEDULED, override=True)


class TestUpdateActivity:
    """Partial updates."""

    async def test_reschedule_recomputes_duration(self, activities, client_record):
        activity = await make_activity(activities, client_record, at(10, 9), at(10, 11))

        activity = await activities.update(
            activity.id, ActivityUpdate(scheduled_end=at(10, 14), title="Full survey")
        )

        assert activity.duration_hours == 5.0
        assert activity.title == "Full survey"

    async def test_reschedule_into_conflict_rejected(self, activities, client_record, worker):
        await make_activity(activities, client_record, at(10, 9), at(10, 11), worker=worker)
        second = await make_activity(
            activities, client_record, at(10, 13), at(10, 15), worker=worker
        )

        with pytest.raises(SchedulingConflictError):
            await activities.update(
                second.id, ActivityUpdate(scheduled_start=at(10, 10))
            )

    async def test_reschedule_onto_touching_booking_rejected(
        self, activities, client_record, worker
    ):
        await make_activity(activities, client_record, at(10, 9), at(10, 11), worker=worker)
        second = await make_activity(
            activities, client_record, at(10, 13), at(10, 15), worker=worker
        )

        with pytest.raises(SchedulingConflictError):
            await activities.update(second.id, ActivityUpdate(scheduled_start=at(10, 11)))

    async def test_strict_policy_allows_reschedule_onto_touching_booking(
        self, session, locks, settings, client_record, worker
    ):
        service = ActivityService(
            session, locks=locks, settings=replace(settings, overlap_policy=OverlapPolicy.STRICT)
        )
        await make_activity(service, client_record, at(10, 9), at(10, 11), worker=worker)
        second = await make_activity(service, client_record, at(10, 13), at(10, 15), worker=worker)

        moved = await service.update(second.id, ActivityUpdate(scheduled_start=at(10, 11)))

        assert moved.scheduled_start == at(10, 11)
        assert moved.duration_hours == 4.0

    async def test_lengthening_past_remaining_hours_rejected(
        self, activities, client_record, contract, worker, other_worker
    ):
        """4h verified on a 10h contract leaves 6h; stretching 2h to 7h fails."""
        used = await make_activity(
            activities, client_record, at(11, 8), at(11, 12), contract=contract, worker=other_worker
        )
        await verify(activities, used)
        activity = await make_activity(
            activities, client_record, at(10, 8), at(10, 10), contract=contract, worker=worker
        )
        activity_id = activity.id

        with pytest.raises(CapacityExceededError) as exc_info:
            await activities.update(activity_id, ActivityUpdate(scheduled_end=at(10, 15)))

        assert exc_info.value.remaining == 6.0
        assert (await activities.get(activity_id)).duration_hours == 2.0

    async def test_moving_to_full_contract_rejected(
        self, session, store, activities, client_record, contract, worker
    ):
        contract_id = contract.id
        full = await store.create_contract(
            ContractCreate(
                client_id=client_record.id,
                order_number="PO-1002",
                total_hours=3.0,
                start_date=datetime(2025, 1, 1, tzinfo=timezone.utc),
                end_date=datetime(2025, 12, 31, tzinfo=timezone.utc),
            )
        )
        await session.commit()
        full_id = full.id
        consumed = await make_activity(
            activities, client_record, at(11, 8), at(11, 11), contract=full, worker=worker
        )
        await verify(activities, consumed)
        activity = await make_activity(
            activities, client_record, at(10, 8), at(10, 10), contract=contract
        )
        activity_id = activity.id

        with pytest.raises(CapacityExceededError) as exc_info:
            await activities.update(activity_id, ActivityUpdate(contract_id=full_id))

        assert exc_info.value.remaining == 0.0
        assert (await activities.get(activity_id)).contract_id == contract_id

    async def test_descriptive_edit_on_used_up_contract(
        self, activities, client_record, contract, worker, other_worker
    ):
        """A 7h booking no longer fits the 6h left, but renaming it must still work."""
        activity = await make_activity(
            activities, client_record, at(10, 8), at(10, 15), contract=contract, worker=worker
        )
        used = await make_activity(
            activities, client_record, at(11, 8), at(11, 12), contract=contract, worker=other_worker
        )
        await verify(activities, used)

        renamed = await activities.update(
            activity.id, ActivityUpdate(title="Renamed", location="Pier 9")
        )

        assert renamed.title == "Renamed"
        assert renamed.location == "Pier 9"
        assert renamed.duration_hours == 7.0

    async def test_explicit_null_unlinks_contract(self, activities, client_record, contract):
        activity = await make_activity(
            activities, client_record, at(10, 9), at(10, 11), contract=contract
        )

        activity = await activities.update(
            activity.id, ActivityUpdate.model_validate({"contractId": None})
        )

        assert activity.contract_id is None

    async def test_null_required_field_rejected(self, activities, client_record):
        activity = await make_activity(activities, client_record, at(10, 9), at(10, 11))

        with pytest.raises(ValidationFailedError):
            await activities.update(activity.id, ActivityUpdate.model_validate({"title": None}))

    async def test_invoiced_billing_fields_frozen(
        self, session, activities, locks, settings, client_record, worker
    ):
        activity = await make_activity(
            activities, client_record, at(10, 9), at(10, 11), worker=worker
        )
        await verify(activities, activity)
        await InvoiceGenerator(session, locks=locks, settings=settings).generate(
            ClientInvoiceTarget(client_record.id), at(1, 0), at(31, 0)
        )
        activity_id = activity.id

        with pytest.raises(ValidationFailedError, match="Invoiced activities cannot change"):
            await activities.update(activity_id, ActivityUpdate(scheduled_end=at(10, 12)))

        # Descriptive fields stay editable
        activity = await activities.update(
            activity_id, ActivityUpdate(evidence_url="https://files.example/report.pdf")
        )
        assert activity.evidence_url == "https://files.example/report.pdf"


class TestListAndDelete:
    """Listing with filters and deletion."""

    async def test_list_filters(self, activities, client_record, worker):
        scheduled = await make_activity(
            activities, client_record, at(10, 9), at(10, 11), worker=worker
        )
        await make_activity(activities, client_record, at(12, 9), at(12, 11))

        by_worker = await activities.list(ActivityFilter(worker_id=worker.id))
        by_status = await activities.list(ActivityFilter(status=ActivityStatus.UNASSIGNED))
        by_range = await activities.list(ActivityFilter(starts_from=at(11, 0)))

        assert [a.id for a in by_worker] == [scheduled.id]
        assert len(by_status) == 1
        assert len(by_range) == 1
        assert by_range[0].scheduled_start == at(12, 9)

    async def test_delete_in_any_status(self, activities, client_record, worker):
        activity = await make_activity(
            activities, client_record, at(10, 9), at(10, 11), worker=worker
        )
        await verify(activities, activity)

        await activities.delete(activity.id)

        with pytest.raises(EntityNotFoundError):
            await activities.get(activity.id)

    async def test_deleted_activity_frees_calendar(self, activities, client_record, worker):
        activity = await make_activity(
            activities, client_record, at(10, 9), at(10, 11), worker=worker
        )
        await activities.delete(activity.id)

        again = await make_activity(activities, client_record, at(10, 9), at(10, 11), worker=worker)

        assert again.status == ActivityStatus.SCHEDULED
