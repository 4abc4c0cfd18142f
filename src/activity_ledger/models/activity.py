"""Activity model: one scheduled unit of field work."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Enum, Float, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from activity_ledger.models.base import Base, TimestampMixin
from activity_ledger.models.enums import ActivityStatus


def hours_between(start: datetime, end: datetime) -> float:
    """Length of [start, end] in hours."""
    return (end - start).total_seconds() / 3600


class Activity(Base, TimestampMixin):
    """Field work for a client, optionally billed against a contract.

    ``duration_hours`` is derived from the scheduled bounds and stored so the
    ledger can sum it in SQL; use ``reschedule`` to move either bound.
    """

    __tablename__ = "activity"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    title: Mapped[str] = mapped_column(String, nullable=False)
    client_id: Mapped[UUID] = mapped_column(
        ForeignKey("client.id", ondelete="RESTRICT"),
        nullable=False,
    )
    contract_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("contract.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    worker_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("worker.id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[ActivityStatus] = mapped_column(
        Enum(ActivityStatus, name="activity_status", native_enum=False, create_constraint=True),
        nullable=False,
        default=ActivityStatus.UNASSIGNED,
    )
    scheduled_start: Mapped[datetime] = mapped_column(nullable=False)
    scheduled_end: Mapped[datetime] = mapped_column(nullable=False)
    duration_hours: Mapped[float] = mapped_column(Float, nullable=False)
    location: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    evidence_url: Mapped[str | None] = mapped_column(String, nullable=True)

    # Set by the invoice generator only
    client_invoice_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("invoice.id", ondelete="SET NULL"),
        nullable=True,
    )
    payout_invoice_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("invoice.id", ondelete="SET NULL"),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint("scheduled_start < scheduled_end", name="activity_schedule_ordered"),
        CheckConstraint(
            "status <> 'UNASSIGNED' OR worker_id IS NULL",
            name="activity_unassigned_has_no_worker",
        ),
        Index("ix_activity_status", "status"),
        Index("ix_activity_worker_id", "worker_id"),
        Index("ix_activity_client_id", "client_id"),
        Index("ix_activity_scheduled_start", "scheduled_start"),
    )

    def reschedule(self, start: datetime, end: datetime) -> None:
        """Move the scheduled bounds and recompute the stored duration."""
        self.scheduled_start = start
        self.scheduled_end = end
        self.duration_hours = hours_between(start, end)
