"""Typed errors raised by the ledger services.

Business rejections derive from ``LedgerError`` and carry a machine-readable
``code`` plus structured ``context``. Infrastructure failures derive from
``InfrastructureError`` and are never reported as business rejections.

    LedgerError
    +-- ValidationFailedError
    |   +-- InvalidTransitionError
    +-- EntityNotFoundError
    +-- ConflictError
    |   +-- SchedulingConflictError
    |   +-- DuplicateEntityError
    |   +-- ReferenceInUseError
    |   +-- StaleSelectionError
    +-- CapacityExceededError

    InfrastructureError
    +-- StoreUnavailableError
    +-- OperationTimeoutError
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import UUID

if TYPE_CHECKING:
    from activity_ledger.models import Activity


class LedgerError(Exception):
    """Base class for business rule rejections."""

    code: str = "LEDGER_ERROR"

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)


class ValidationFailedError(LedgerError):
    """Malformed or missing fields, or a non-chronological range."""

    code = "VALIDATION_FAILED"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message, {"field": field} if field else None)


class InvalidTransitionError(ValidationFailedError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, field="status")
        self.context.update({"from_status": from_status, "to_status": to_status})


class EntityNotFoundError(LedgerError):
    """A referenced worker, client, contract, activity or invoice is absent."""

    code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: UUID | str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"{entity_type} {entity_id} not found",
            {"entity_type": entity_type, "entity_id": str(entity_id)},
        )


class ConflictError(LedgerError):
    """Base for collisions with existing state."""

    code = "CONFLICT"


class SchedulingConflictError(ConflictError):
    """Worker already has committed work overlapping the requested interval."""

    code = "SCHEDULING_CONFLICT"

    def __init__(self, worker_id: UUID, conflicting_activities: list[Activity]):
        self.worker_id = worker_id
        self.conflicting_activities = conflicting_activities
        super().__init__(
            f"Worker {worker_id} has {len(conflicting_activities)} conflicting activit"
            f"{'y' if len(conflicting_activities) == 1 else 'ies'}",
            {
                "worker_id": str(worker_id),
                "conflicting_activity_ids": [str(a.id) for a in conflicting_activities],
            },
        )


class DuplicateEntityError(ConflictError):
    """A unique key is already taken."""

    code = "DUPLICATE_ENTITY"

    def __init__(self, entity_type: str, key: str, value: Any):
        self.entity_type = entity_type
        self.key = key
        self.value = value
        super().__init__(
            f"{entity_type} with {key}={value!r} already exists",
            {"entity_type": entity_type, "key": key},
        )


class ReferenceInUseError(ConflictError):
    """Delete blocked because other rows still reference the entity."""

    code = "REFERENCE_IN_USE"

    def __init__(self, entity_type: str, entity_id: UUID, referenced_by: str, count: int):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"{entity_type} {entity_id} is referenced by {count} {referenced_by}",
            {"entity_type": entity_type, "referenced_by": referenced_by, "count": count},
        )


class StaleSelectionError(ConflictError):
    """Invoice selection changed between reading and flipping the activities."""

    code = "STALE_SELECTION"

    def __init__(self, selected: int, updated: int):
        self.selected = selected
        self.updated = updated
        super().__init__(
            f"Selected {selected} activities but only {updated} were still eligible",
            {"selected": selected, "updated": updated},
        )


class CapacityExceededError(LedgerError):
    """Contract does not have enough remaining hours."""

    code = "CAPACITY_EXCEEDED"

    def __init__(self, contract_id: UUID, requested: float, remaining: float):
        self.contract_id = contract_id
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Insufficient hours. Remaining: {remaining}",
            {
                "contract_id": str(contract_id),
                "requested_hours": requested,
                "remaining_hours": remaining,
            },
        )


class InfrastructureError(Exception):
    """The store or runtime failed; not a business rejection."""

    code = "INFRASTRUCTURE_ERROR"


class StoreUnavailableError(InfrastructureError):
    """Database could not be reached or the statement failed at driver level."""

    code = "STORE_UNAVAILABLE"


class OperationTimeoutError(InfrastructureError):
    """Timed out waiting for a serialization lock."""

    code = "OPERATION_TIMEOUT"

    def __init__(self, keys: tuple[str, ...], timeout: float):
        self.keys = keys
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout}s waiting for lock on {', '.join(keys)}")
