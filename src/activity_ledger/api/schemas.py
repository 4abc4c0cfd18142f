"""Pydantic schemas for API responses.

Request payloads live in ``activity_ledger.schemas``; these models only shape
what goes back over the wire (camelCase).
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from activity_ledger.models.enums import (
    ActivityStatus,
    ContractStatus,
    InvoiceKind,
    InvoiceStatus,
)


class ResponseModel(BaseModel):
    """Base response schema."""

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ============================================================================
# Directory schemas
# ============================================================================


class WorkerResponse(ResponseModel):
    """Schema for worker response."""

    id: UUID
    name: str
    hourly_rate: float
    specialty: str | None = None
    created_at: datetime
    updated_at: datetime


class ClientResponse(ResponseModel):
    """Schema for client response."""

    id: UUID
    name: str
    contact_name: str
    email: str
    billing_rate: float | None = None
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Contract schemas
# ============================================================================


class ContractResponse(ResponseModel):
    """Schema for contract response."""

    id: UUID
    client_id: UUID
    order_number: str
    total_hours: float
    start_date: datetime
    end_date: datetime
    status: ContractStatus
    created_at: datetime
    updated_at: datetime


class HoursRemainingResponse(ResponseModel):
    """Schema for contract capacity."""

    contract_id: UUID
    total_hours: float
    used_hours: float
    remaining_hours: float


# ============================================================================
# Activity schemas
# ============================================================================


class ActivityResponse(ResponseModel):
    """Schema for activity response."""

    id: UUID
    title: str
    client_id: UUID
    contract_id: UUID | None = None
    worker_id: UUID | None = None
    status: ActivityStatus
    scheduled_start: datetime
    scheduled_end: datetime
    duration_hours: float
    location: str
    description: str | None = None
    evidence_url: str | None = None
    client_invoice_id: UUID | None = None
    payout_invoice_id: UUID | None = None
    created_at: datetime
    updated_at: datetime


class AvailabilityResponse(ResponseModel):
    """Schema for a worker availability check."""

    available: bool
    conflicting_activities: list[ActivityResponse] = Field(default_factory=list)


# ============================================================================
# Invoice schemas
# ============================================================================


class InvoiceResponse(ResponseModel):
    """Schema for invoice response."""

    id: UUID
    kind: InvoiceKind
    client_id: UUID | None = None
    worker_id: UUID | None = None
    total_amount: float
    total_hours: float
    period_start: datetime
    period_end: datetime
    status: InvoiceStatus
    generated_at: datetime

    @computed_field(alias="entityId")
    @property
    def entity_id(self) -> UUID | None:
        """Client or worker the invoice is addressed to."""
        if self.kind == InvoiceKind.CLIENT_BILL:
            return self.client_id
        return self.worker_id


class GeneratedInvoiceResponse(InvoiceResponse):
    """Schema for a freshly generated invoice."""

    activity_ids: list[UUID] = Field(default_factory=list)


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None
