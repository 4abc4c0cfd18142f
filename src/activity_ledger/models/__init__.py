"""ORM models."""

from activity_ledger.models.base import Base, TimestampMixin, UTCDateTime, ensure_utc, utcnow
from activity_ledger.models.enums import (
    ActivityStatus,
    ContractStatus,
    InvoiceKind,
    InvoiceStatus,
)
from activity_ledger.models.directory import Client, Worker
from activity_ledger.models.contract import Contract
from activity_ledger.models.invoice import (
    ClientInvoiceTarget,
    Invoice,
    InvoiceTarget,
    WorkerInvoiceTarget,
)
from activity_ledger.models.activity import Activity, hours_between

__all__ = [
    "Activity",
    "ActivityStatus",
    "Base",
    "Client",
    "ClientInvoiceTarget",
    "Contract",
    "ContractStatus",
    "Invoice",
    "InvoiceKind",
    "InvoiceStatus",
    "InvoiceTarget",
    "TimestampMixin",
    "UTCDateTime",
    "Worker",
    "WorkerInvoiceTarget",
    "ensure_utc",
    "hours_between",
    "utcnow",
]
