"""Worker availability checks against committed activities."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from activity_ledger.config import OverlapPolicy
from activity_ledger.models import Activity
from activity_ledger.services.state_machine import ActivityStateMachine


@dataclass(frozen=True)
class AvailabilityResult:
    """Outcome of an availability check."""

    available: bool
    conflicting_activities: list[Activity] = field(default_factory=list)


def intervals_conflict(
    existing_start: datetime,
    existing_end: datetime,
    start: datetime,
    end: datetime,
    policy: OverlapPolicy = OverlapPolicy.INCLUSIVE,
) -> bool:
    """Check if two intervals collide under the overlap policy.

    Inclusive: intervals touching at an endpoint collide (10-12 vs 12-14).
    Strict: only a real overlap collides.
    """
    if policy == OverlapPolicy.INCLUSIVE:
        return existing_start <= end and existing_end >= start
    return existing_start < end and existing_end > start


class AvailabilityChecker:
    """Finds a worker's calendar-blocking activities overlapping an interval.

    Only SCHEDULED and IN_PROGRESS work blocks the calendar. Does not check
    that the worker exists; an unknown id is simply available.
    """

    def __init__(self, session: AsyncSession, policy: OverlapPolicy = OverlapPolicy.INCLUSIVE):
        self.session = session
        self.policy = policy

    async def check_availability(
        self,
        worker_id: UUID,
        start: datetime,
        end: datetime,
        exclude_activity_id: UUID | None = None,
    ) -> AvailabilityResult:
        """Check whether the worker is free over [start, end]."""
        # Inclusive bounds select a superset; the policy decides touching cases
        query = select(Activity).where(
            Activity.worker_id == worker_id,
            Activity.status.in_(ActivityStateMachine.CALENDAR_BLOCKING),
            Activity.scheduled_start <= end,
            Activity.scheduled_end >= start,
        )
        if exclude_activity_id is not None:
            query = query.where(Activity.id != exclude_activity_id)

        result = await self.session.execute(
            query.order_by(Activity.scheduled_start).execution_options(populate_existing=True)
        )
        conflicts = [
            activity
            for activity in result.scalars().all()
            if intervals_conflict(
                activity.scheduled_start, activity.scheduled_end, start, end, self.policy
            )
        ]
        return AvailabilityResult(available=not conflicts, conflicting_activities=conflicts)
