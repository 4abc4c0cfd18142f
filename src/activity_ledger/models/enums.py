"""Closed status and kind enumerations shared by models and services."""

from __future__ import annotations

from enum import Enum


class ActivityStatus(str, Enum):
    """Activity status values, in lifecycle order."""

    UNASSIGNED = "UNASSIGNED"
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"
    VERIFIED = "VERIFIED"
    INVOICED = "INVOICED"


class ContractStatus(str, Enum):
    """Contract status values."""

    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"


class InvoiceKind(str, Enum):
    """Who an invoice is addressed to."""

    CLIENT_BILL = "CLIENT_BILL"
    WORKER_PAYOUT = "WORKER_PAYOUT"


class InvoiceStatus(str, Enum):
    """Invoice status values."""

    DRAFT = "DRAFT"
    SENT = "SENT"
    PAID = "PAID"
