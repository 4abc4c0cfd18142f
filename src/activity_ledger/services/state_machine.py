"""Activity and invoice state machines with transition validation."""

from __future__ import annotations

from enum import Enum

from activity_ledger.errors import InvalidTransitionError
from activity_ledger.models.enums import ActivityStatus, InvoiceStatus


class TransitionSource(str, Enum):
    """Who is asking for a status change."""

    CLIENT = "client"
    ASSIGNMENT = "assignment"
    INVOICING = "invoicing"
    ADMIN = "admin"


_LIFECYCLE: tuple[ActivityStatus, ...] = tuple(ActivityStatus)

Transition = tuple[ActivityStatus, ActivityStatus]


def _build_transition_table() -> dict[Transition, frozenset[TransitionSource]]:
    table: dict[Transition, set[TransitionSource]] = {
        (ActivityStatus.UNASSIGNED, ActivityStatus.SCHEDULED): {TransitionSource.ASSIGNMENT},
        (ActivityStatus.SCHEDULED, ActivityStatus.SCHEDULED): {TransitionSource.ASSIGNMENT},
        (ActivityStatus.SCHEDULED, ActivityStatus.UNASSIGNED): {TransitionSource.ASSIGNMENT},
        (ActivityStatus.SCHEDULED, ActivityStatus.IN_PROGRESS): {TransitionSource.CLIENT},
        (ActivityStatus.IN_PROGRESS, ActivityStatus.DONE): {TransitionSource.CLIENT},
        (ActivityStatus.DONE, ActivityStatus.VERIFIED): {TransitionSource.CLIENT},
        (ActivityStatus.VERIFIED, ActivityStatus.INVOICED): {TransitionSource.INVOICING},
    }
    # Admin override never enters or leaves INVOICED
    open_states = [s for s in _LIFECYCLE if s != ActivityStatus.INVOICED]
    for from_status in open_states:
        for to_status in open_states:
            if from_status != to_status:
                table.setdefault((from_status, to_status), set()).add(TransitionSource.ADMIN)
    return {pair: frozenset(sources) for pair, sources in table.items()}


class ActivityStateMachine:
    """State machine for activity status transitions.

    Allowed transitions:
    - unassigned → scheduled (assignment)
    - scheduled → scheduled (assignment, different worker)
    - scheduled → unassigned (assignment cleared)
    - scheduled → in_progress → done → verified (client)
    - verified → invoiced (invoice generator only)
    - admin override: any pair between non-invoiced states
    """

    # {(from_status, to_status): sources allowed to perform it}
    VALID_TRANSITIONS: dict[Transition, frozenset[TransitionSource]] = _build_transition_table()

    # Statuses whose worker occupies the calendar
    CALENDAR_BLOCKING = frozenset({ActivityStatus.SCHEDULED, ActivityStatus.IN_PROGRESS})

    # Statuses whose hours count against the contract
    CAPACITY_CONSUMING = frozenset({ActivityStatus.VERIFIED, ActivityStatus.INVOICED})

    # Statuses counted as reservations when unverified hours are reserved
    CAPACITY_RESERVING = frozenset(
        {
            ActivityStatus.UNASSIGNED,
            ActivityStatus.SCHEDULED,
            ActivityStatus.IN_PROGRESS,
            ActivityStatus.DONE,
        }
    )

    # Statuses where a worker may be (re)assigned or cleared
    ASSIGNABLE = frozenset({ActivityStatus.UNASSIGNED, ActivityStatus.SCHEDULED})

    # Statuses where schedule, contract and client are frozen
    FIELDS_LOCKED = frozenset({ActivityStatus.INVOICED})

    @classmethod
    def can_transition(
        cls,
        from_status: ActivityStatus,
        to_status: ActivityStatus,
        source: TransitionSource = TransitionSource.CLIENT,
    ) -> bool:
        """Check if a transition is valid for the given source."""
        allowed = cls.VALID_TRANSITIONS.get((ActivityStatus(from_status), ActivityStatus(to_status)))
        return bool(allowed) and source in allowed

    @classmethod
    def validate_transition(
        cls,
        from_status: ActivityStatus,
        to_status: ActivityStatus,
        source: TransitionSource = TransitionSource.CLIENT,
    ) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if cls.can_transition(from_status, to_status, source):
            return

        if from_status == to_status and source != TransitionSource.ASSIGNMENT:
            reason = f"activity is already {ActivityStatus(to_status).value}"
        elif to_status == ActivityStatus.INVOICED:
            reason = "activities are only invoiced by invoice generation"
        elif to_status == ActivityStatus.SCHEDULED and source == TransitionSource.CLIENT:
            reason = "assign a worker to schedule an activity"
        elif from_status == ActivityStatus.INVOICED:
            reason = "invoiced activities are final"
        elif source == TransitionSource.ASSIGNMENT:
            reason = f"workers can only be assigned while {cls._names(cls.ASSIGNABLE)}"
        elif cls.is_backward(from_status, to_status):
            reason = "status only moves forward"
        else:
            reason = "intermediate states must be traversed in order"
        raise InvalidTransitionError(ActivityStatus(from_status).value, ActivityStatus(to_status).value, reason)

    @classmethod
    def is_backward(cls, from_status: ActivityStatus, to_status: ActivityStatus) -> bool:
        """Check if to_status comes earlier in the lifecycle than from_status."""
        return _LIFECYCLE.index(ActivityStatus(to_status)) < _LIFECYCLE.index(
            ActivityStatus(from_status)
        )

    @classmethod
    def get_next_statuses(
        cls,
        current_status: ActivityStatus,
        source: TransitionSource = TransitionSource.CLIENT,
    ) -> list[ActivityStatus]:
        """Get valid next statuses for a source, in lifecycle order."""
        current = ActivityStatus(current_status)
        return [
            to_status
            for to_status in _LIFECYCLE
            if source in cls.VALID_TRANSITIONS.get((current, to_status), set())
        ]

    @classmethod
    def blocks_calendar(cls, status: ActivityStatus) -> bool:
        return status in cls.CALENDAR_BLOCKING

    @classmethod
    def consumes_capacity(cls, status: ActivityStatus) -> bool:
        return status in cls.CAPACITY_CONSUMING

    @classmethod
    def can_assign(cls, status: ActivityStatus) -> bool:
        return status in cls.ASSIGNABLE

    @classmethod
    def are_fields_locked(cls, status: ActivityStatus) -> bool:
        """Check if schedule, contract and client can no longer change."""
        return status in cls.FIELDS_LOCKED

    @classmethod
    def capacity_statuses(cls, reserve_unverified: bool) -> frozenset[ActivityStatus]:
        """Statuses whose hours are charged to a contract."""
        if reserve_unverified:
            return cls.CAPACITY_CONSUMING | cls.CAPACITY_RESERVING
        return cls.CAPACITY_CONSUMING

    @staticmethod
    def _names(statuses: frozenset[ActivityStatus]) -> str:
        return "/".join(s.value for s in _LIFECYCLE if s in statuses)


class InvoiceStateMachine:
    """Invoices only advance: draft → sent → paid."""

    VALID_TRANSITIONS: dict[InvoiceStatus, list[InvoiceStatus]] = {
        InvoiceStatus.DRAFT: [InvoiceStatus.SENT],
        InvoiceStatus.SENT: [InvoiceStatus.PAID],
        InvoiceStatus.PAID: [],  # Terminal state
    }

    @classmethod
    def can_transition(cls, from_status: InvoiceStatus, to_status: InvoiceStatus) -> bool:
        return InvoiceStatus(to_status) in cls.VALID_TRANSITIONS.get(InvoiceStatus(from_status), [])

    @classmethod
    def validate_transition(cls, from_status: InvoiceStatus, to_status: InvoiceStatus) -> None:
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(
                InvoiceStatus(from_status).value,
                InvoiceStatus(to_status).value,
                "invoice status only advances draft → sent → paid",
            )
