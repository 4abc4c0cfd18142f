"""Contract hour ledger: consumed versus remaining capacity."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from activity_ledger.errors import CapacityExceededError, EntityNotFoundError
from activity_ledger.models import Activity, Contract
from activity_ledger.services.state_machine import ActivityStateMachine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HoursRemaining:
    """Capacity accounting for one contract."""

    contract_id: UUID
    total_hours: float
    used_hours: float

    @property
    def remaining_hours(self) -> float:
        return self.total_hours - self.used_hours


class ContractLedger:
    """Derives used/remaining hours from the contract's activities.

    Hours count as used once the activity is VERIFIED or INVOICED. With
    ``reserve_unverified`` set, hours of every earlier status are
    charged as well, so unverified work cannot overbook the contract.

    ``validate_commit`` checks a request against the current usage; it does
    not reserve anything by itself.
    """

    def __init__(self, session: AsyncSession, reserve_unverified: bool = False):
        self.session = session
        self.reserve_unverified = reserve_unverified

    async def get_contract(self, contract_id: UUID) -> Contract:
        contract = await self.session.get(Contract, contract_id, populate_existing=True)
        if contract is None:
            raise EntityNotFoundError("Contract", contract_id)
        return contract

    async def hours_remaining(
        self,
        contract_id: UUID,
        exclude_activity_id: UUID | None = None,
    ) -> HoursRemaining:
        """Compute total, used and remaining hours for a contract."""
        contract = await self.get_contract(contract_id)
        used = await self._used_hours(contract_id, exclude_activity_id)
        return HoursRemaining(
            contract_id=contract.id,
            total_hours=contract.total_hours,
            used_hours=used,
        )

    async def validate_commit(
        self,
        contract_id: UUID,
        requested_hours: float,
        exclude_activity_id: UUID | None = None,
    ) -> HoursRemaining:
        """Raise CapacityExceededError when requested_hours exceed what is left.

        ``exclude_activity_id`` keeps an activity being edited or verified from
        being charged twice.
        """
        ledger = await self.hours_remaining(contract_id, exclude_activity_id)
        if requested_hours > ledger.remaining_hours:
            logger.warning(
                "Contract %s rejected %.2fh, %.2fh remaining",
                contract_id,
                requested_hours,
                ledger.remaining_hours,
            )
            raise CapacityExceededError(contract_id, requested_hours, ledger.remaining_hours)
        return ledger

    async def _used_hours(self, contract_id: UUID, exclude_activity_id: UUID | None) -> float:
        statuses = ActivityStateMachine.capacity_statuses(self.reserve_unverified)
        query = select(func.coalesce(func.sum(Activity.duration_hours), 0.0)).where(
            Activity.contract_id == contract_id,
            Activity.status.in_(statuses),
        )
        if exclude_activity_id is not None:
            query = query.where(Activity.id != exclude_activity_id)
        used = await self.session.scalar(query)
        return float(used or 0.0)
