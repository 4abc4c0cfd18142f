"""Activity ledger services."""

from activity_ledger.services.state_machine import (
    ActivityStateMachine,
    InvoiceStateMachine,
    TransitionSource,
)
from activity_ledger.services.locking_service import LockingService, LockRegistry, lock_key
from activity_ledger.services.availability import AvailabilityChecker, AvailabilityResult
from activity_ledger.services.contract_ledger import ContractLedger, HoursRemaining
from activity_ledger.services.entity_store import EntityStore
from activity_ledger.services.directory_service import DirectoryService
from activity_ledger.services.activity_service import ActivityService
from activity_ledger.services.invoice_service import InvoiceGenerator, InvoiceResult

__all__ = [
    "ActivityService",
    "ActivityStateMachine",
    "AvailabilityChecker",
    "AvailabilityResult",
    "ContractLedger",
    "DirectoryService",
    "EntityStore",
    "HoursRemaining",
    "InvoiceGenerator",
    "InvoiceResult",
    "InvoiceStateMachine",
    "LockRegistry",
    "LockingService",
    "TransitionSource",
    "lock_key",
]
