"""Workers and clients: the parties activities are performed by and for."""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Float, String
from sqlalchemy.orm import Mapped, mapped_column

from activity_ledger.models.base import Base, TimestampMixin


class Worker(Base, TimestampMixin):
    """Field worker paid by the hour."""

    __tablename__ = "worker"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    hourly_rate: Mapped[float] = mapped_column(Float, nullable=False)
    specialty: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (CheckConstraint("hourly_rate > 0", name="worker_hourly_rate_positive"),)


class Client(Base, TimestampMixin):
    """Customer that buys hour contracts and receives bills."""

    __tablename__ = "client"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    contact_name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    billing_rate: Mapped[float | None] = mapped_column(Float, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "billing_rate IS NULL OR billing_rate >= 0", name="client_billing_rate_non_negative"
        ),
    )

    @property
    def effective_billing_rate(self) -> float:
        """Billing rate with an unset rate treated as zero."""
        return self.billing_rate or 0.0
