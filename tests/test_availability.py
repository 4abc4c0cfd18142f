"""Tests for worker availability checks."""

from uuid import uuid4

import pytest

from activity_ledger.config import OverlapPolicy
from activity_ledger.errors import ValidationFailedError
from activity_ledger.models import ActivityStatus
from activity_ledger.schemas import AvailabilityQuery
from activity_ledger.services.availability import AvailabilityChecker, intervals_conflict

from tests.factories import at, make_activity


class TestIntervalsConflict:
    """Pure interval comparison."""

    def test_overlap_conflicts_under_both_policies(self):
        for policy in OverlapPolicy:
            assert intervals_conflict(at(10, 10), at(10, 12), at(10, 11), at(10, 13), policy)

    def test_touching_endpoints(self):
        assert intervals_conflict(at(10, 10), at(10, 12), at(10, 12), at(10, 14)) is True
        assert (
            intervals_conflict(
                at(10, 10), at(10, 12), at(10, 12), at(10, 14), OverlapPolicy.STRICT
            )
            is False
        )

    def test_disjoint_intervals(self):
        assert intervals_conflict(at(10, 10), at(10, 12), at(10, 8), at(10, 9)) is False


class TestAvailabilityChecker:
    """Availability against stored activities."""

    async def test_overlapping_booking_reported(self, session, activities, client_record, worker):
        """10:00-12:00 booked; 11:00-13:00 conflicts and lists the booking."""
        booked = await make_activity(activities, client_record, at(10, 10), at(10, 12), worker=worker)

        checker = AvailabilityChecker(session)
        result = await checker.check_availability(worker.id, at(10, 11), at(10, 13))

        assert result.available is False
        assert [a.id for a in result.conflicting_activities] == [booked.id]

    async def test_free_slot_available(self, session, activities, client_record, worker):
        await make_activity(activities, client_record, at(10, 10), at(10, 12), worker=worker)

        result = await AvailabilityChecker(session).check_availability(
            worker.id, at(10, 8), at(10, 9)
        )

        assert result.available is True
        assert result.conflicting_activities == []

    async def test_back_to_back_conflicts_inclusive(
        self, session, activities, client_record, worker
    ):
        await make_activity(activities, client_record, at(10, 10), at(10, 12), worker=worker)

        result = await AvailabilityChecker(session).check_availability(
            worker.id, at(10, 12), at(10, 14)
        )

        assert result.available is False

    async def test_back_to_back_free_strict(self, session, activities, client_record, worker):
        await make_activity(activities, client_record, at(10, 10), at(10, 12), worker=worker)

        checker = AvailabilityChecker(session, OverlapPolicy.STRICT)
        result = await checker.check_availability(worker.id, at(10, 12), at(10, 14))

        assert result.available is True

    async def test_unknown_worker_is_available(self, session):
        result = await AvailabilityChecker(session).check_availability(
            uuid4(), at(10, 10), at(10, 12)
        )
        assert result.available is True

    async def test_only_blocking_statuses_count(self, session, activities, client_record, worker):
        """DONE work no longer occupies the calendar."""
        booked = await make_activity(activities, client_record, at(10, 10), at(10, 12), worker=worker)
        await activities.set_status(booked.id, ActivityStatus.IN_PROGRESS)

        checker = AvailabilityChecker(session)
        assert (await checker.check_availability(worker.id, at(10, 11), at(10, 13))).available is False

        await activities.set_status(booked.id, ActivityStatus.DONE)
        assert (await checker.check_availability(worker.id, at(10, 11), at(10, 13))).available is True

    async def test_excluded_activity_ignored(self, session, activities, client_record, worker):
        booked = await make_activity(activities, client_record, at(10, 10), at(10, 12), worker=worker)

        result = await AvailabilityChecker(session).check_availability(
            worker.id, at(10, 11), at(10, 13), exclude_activity_id=booked.id
        )

        assert result.available is True

    async def test_service_rejects_reversed_window(self, activities, worker):
        with pytest.raises(ValidationFailedError, match="End date must be after start date"):
            await activities.check_availability(
                AvailabilityQuery(
                    worker_id=worker.id,
                    scheduled_start=at(10, 12),
                    scheduled_end=at(10, 10),
                )
            )
