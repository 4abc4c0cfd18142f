"""Invoice model: a client bill or a worker payout over a period."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Union
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Enum, Float, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from activity_ledger.models.base import Base, TimestampMixin, utcnow
from activity_ledger.models.enums import InvoiceKind, InvoiceStatus


@dataclass(frozen=True)
class ClientInvoiceTarget:
    """Invoice billed to a client."""

    client_id: UUID

    @property
    def kind(self) -> InvoiceKind:
        return InvoiceKind.CLIENT_BILL


@dataclass(frozen=True)
class WorkerInvoiceTarget:
    """Payout owed to a worker."""

    worker_id: UUID

    @property
    def kind(self) -> InvoiceKind:
        return InvoiceKind.WORKER_PAYOUT


InvoiceTarget = Union[ClientInvoiceTarget, WorkerInvoiceTarget]


class Invoice(Base, TimestampMixin):
    """Generated once; afterwards only the status advances."""

    __tablename__ = "invoice"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    kind: Mapped[InvoiceKind] = mapped_column(
        Enum(InvoiceKind, name="invoice_kind", native_enum=False, create_constraint=True),
        nullable=False,
    )
    client_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("client.id", ondelete="SET NULL"),
        nullable=True,
    )
    worker_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("worker.id", ondelete="SET NULL"),
        nullable=True,
    )
    total_amount: Mapped[float] = mapped_column(Float, nullable=False)
    total_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    period_start: Mapped[datetime] = mapped_column(nullable=False)
    period_end: Mapped[datetime] = mapped_column(nullable=False)
    status: Mapped[InvoiceStatus] = mapped_column(
        Enum(InvoiceStatus, name="invoice_status", native_enum=False, create_constraint=True),
        nullable=False,
        default=InvoiceStatus.DRAFT,
    )
    generated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="invoice_total_non_negative"),
        CheckConstraint("period_start < period_end", name="invoice_period_ordered"),
        CheckConstraint(
            "(kind = 'CLIENT_BILL' AND worker_id IS NULL)"
            " OR (kind = 'WORKER_PAYOUT' AND client_id IS NULL)",
            name="invoice_single_target",
        ),
        Index("ix_invoice_status", "status"),
        Index("ix_invoice_client_id", "client_id"),
        Index("ix_invoice_worker_id", "worker_id"),
    )

    @classmethod
    def for_target(cls, target: InvoiceTarget, **fields) -> Invoice:
        """Build an invoice addressed to a client or a worker."""
        if isinstance(target, ClientInvoiceTarget):
            return cls(kind=InvoiceKind.CLIENT_BILL, client_id=target.client_id, **fields)
        return cls(kind=InvoiceKind.WORKER_PAYOUT, worker_id=target.worker_id, **fields)

    @property
    def target(self) -> InvoiceTarget | None:
        """Addressee as a tagged variant; None once the addressee was deleted."""
        if self.kind == InvoiceKind.CLIENT_BILL:
            return ClientInvoiceTarget(self.client_id) if self.client_id else None
        return WorkerInvoiceTarget(self.worker_id) if self.worker_id else None
