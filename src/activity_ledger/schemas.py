"""Pydantic input models, one per operation.

Every model forbids unknown fields and accepts both camelCase (wire) and
snake_case (Python) names. Datetimes are normalized to aware UTC; naive
values are read as UTC.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from activity_ledger.models.base import ensure_utc
from activity_ledger.models.enums import ActivityStatus, ContractStatus, InvoiceStatus

UTCDatetime = Annotated[datetime, AfterValidator(ensure_utc)]

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class InputModel(BaseModel):
    """Base for request payloads."""

    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def provided(self) -> dict:
        """Fields the caller actually sent, including explicit nulls."""
        return self.model_dump(exclude_unset=True)


# ============================================================================
# Workers and clients
# ============================================================================


class WorkerCreate(InputModel):
    """Schema for creating a worker."""

    name: str = Field(min_length=1)
    hourly_rate: float = Field(gt=0)
    specialty: str | None = None


class WorkerUpdate(InputModel):
    """Schema for a partial worker update."""

    name: str | None = Field(default=None, min_length=1)
    hourly_rate: float | None = Field(default=None, gt=0)
    specialty: str | None = None


class ClientCreate(InputModel):
    """Schema for creating a client."""

    name: str = Field(min_length=1)
    contact_name: str = Field(min_length=1)
    email: str = Field(pattern=EMAIL_PATTERN)
    billing_rate: float | None = Field(default=None, ge=0)


class ClientUpdate(InputModel):
    """Schema for a partial client update."""

    name: str | None = Field(default=None, min_length=1)
    contact_name: str | None = Field(default=None, min_length=1)
    email: str | None = Field(default=None, pattern=EMAIL_PATTERN)
    billing_rate: float | None = Field(default=None, ge=0)


# ============================================================================
# Contracts
# ============================================================================


class ContractCreate(InputModel):
    """Schema for creating a contract."""

    client_id: UUID
    order_number: str = Field(min_length=1)
    total_hours: float = Field(gt=0)
    start_date: UTCDatetime
    end_date: UTCDatetime
    status: ContractStatus = ContractStatus.ACTIVE


class ContractUpdate(InputModel):
    """Schema for a partial contract update."""

    order_number: str | None = Field(default=None, min_length=1)
    total_hours: float | None = Field(default=None, gt=0)
    start_date: UTCDatetime | None = None
    end_date: UTCDatetime | None = None
    status: ContractStatus | None = None


# ============================================================================
# Activities
# ============================================================================


class ActivityCreate(InputModel):
    """Schema for scheduling a new activity."""

    title: str = Field(min_length=1)
    client_id: UUID
    contract_id: UUID | None = None
    worker_id: UUID | None = None
    scheduled_start: UTCDatetime
    scheduled_end: UTCDatetime
    location: str = Field(min_length=1)
    description: str | None = None
    evidence_url: str | None = None


class ActivityUpdate(InputModel):
    """Schema for a partial activity update.

    Sending ``contractId: null`` unlinks the contract; omitting it leaves the
    link alone. Workers are changed through ``AssignRequest``.
    """

    title: str | None = Field(default=None, min_length=1)
    client_id: UUID | None = None
    contract_id: UUID | None = None
    scheduled_start: UTCDatetime | None = None
    scheduled_end: UTCDatetime | None = None
    location: str | None = Field(default=None, min_length=1)
    description: str | None = None
    evidence_url: str | None = None


class AssignRequest(InputModel):
    """Assign a worker, or clear the assignment with ``workerId: null``."""

    worker_id: UUID | None


class StatusUpdate(InputModel):
    """Move an activity to a new status."""

    status: ActivityStatus
    override: bool = False


class AvailabilityQuery(InputModel):
    """Check a worker's calendar for an interval."""

    worker_id: UUID
    scheduled_start: UTCDatetime
    scheduled_end: UTCDatetime
    exclude_activity_id: UUID | None = None


# ============================================================================
# Invoices
# ============================================================================


class InvoiceRequest(InputModel):
    """Generate a client bill or worker payout for a period."""

    entity_id: UUID
    period_start: UTCDatetime
    period_end: UTCDatetime


class InvoiceStatusUpdate(InputModel):
    """Advance an invoice status."""

    status: InvoiceStatus
