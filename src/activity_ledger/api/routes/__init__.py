"""API routes."""

from activity_ledger.api.routes.activities import router as activities_router
from activity_ledger.api.routes.clients import router as clients_router
from activity_ledger.api.routes.contracts import router as contracts_router
from activity_ledger.api.routes.health import router as health_router
from activity_ledger.api.routes.invoices import router as invoices_router
from activity_ledger.api.routes.workers import router as workers_router

__all__ = [
    "activities_router",
    "clients_router",
    "contracts_router",
    "health_router",
    "invoices_router",
    "workers_router",
]
