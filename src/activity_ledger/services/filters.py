"""Explicit filter structs for list queries."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from activity_ledger.models.enums import (
    ActivityStatus,
    ContractStatus,
    InvoiceKind,
    InvoiceStatus,
)


@dataclass(frozen=True)
class ActivityFilter:
    """Activity list filter; unset fields do not constrain."""

    status: ActivityStatus | None = None
    worker_id: UUID | None = None
    client_id: UUID | None = None
    contract_id: UUID | None = None
    starts_from: datetime | None = None
    starts_until: datetime | None = None


@dataclass(frozen=True)
class ContractFilter:
    client_id: UUID | None = None
    status: ContractStatus | None = None


@dataclass(frozen=True)
class InvoiceFilter:
    kind: InvoiceKind | None = None
    status: InvoiceStatus | None = None
    client_id: UUID | None = None
    worker_id: UUID | None = None


@dataclass(frozen=True)
class WorkerFilter:
    specialty: str | None = None


@dataclass(frozen=True)
class ClientFilter:
    email: str | None = None
