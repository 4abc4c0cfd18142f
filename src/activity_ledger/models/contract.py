"""Contract model: a purchased bucket of hours for a client."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Enum, Float, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from activity_ledger.models.base import Base, TimestampMixin
from activity_ledger.models.enums import ContractStatus


class Contract(Base, TimestampMixin):
    """Hour capacity bought by a client, consumed as activities are verified."""

    __tablename__ = "contract"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    client_id: Mapped[UUID] = mapped_column(
        ForeignKey("client.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    order_number: Mapped[str] = mapped_column(String, nullable=False)
    total_hours: Mapped[float] = mapped_column(Float, nullable=False)
    start_date: Mapped[datetime] = mapped_column(nullable=False)
    end_date: Mapped[datetime] = mapped_column(nullable=False)
    status: Mapped[ContractStatus] = mapped_column(
        Enum(ContractStatus, name="contract_status", native_enum=False, create_constraint=True),
        nullable=False,
        default=ContractStatus.ACTIVE,
    )

    __table_args__ = (
        UniqueConstraint("client_id", "order_number", name="contract_client_order_unique"),
        CheckConstraint("total_hours > 0", name="contract_total_hours_positive"),
        CheckConstraint("start_date < end_date", name="contract_dates_ordered"),
    )
