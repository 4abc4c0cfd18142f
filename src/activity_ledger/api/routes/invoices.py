"""Invoice API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from activity_ledger.api.dependencies import Invoices
from activity_ledger.api.schemas import ErrorResponse, GeneratedInvoiceResponse, InvoiceResponse
from activity_ledger.models import InvoiceKind, InvoiceStatus
from activity_ledger.schemas import InvoiceRequest, InvoiceStatusUpdate
from activity_ledger.services.filters import InvoiceFilter
from activity_ledger.services.invoice_service import InvoiceResult

router = APIRouter(prefix="/invoices", tags=["invoices"])


def _generated(result: InvoiceResult) -> GeneratedInvoiceResponse:
    response = GeneratedInvoiceResponse.model_validate(result.invoice)
    response.activity_ids = [a.id for a in result.activities]
    return response


@router.get("", response_model=list[InvoiceResponse])
async def list_invoices(
    invoices: Invoices,
    kind: Annotated[InvoiceKind | None, Query(alias="type")] = None,
    status_filter: Annotated[InvoiceStatus | None, Query(alias="status")] = None,
    client_id: Annotated[UUID | None, Query(alias="clientId")] = None,
    worker_id: Annotated[UUID | None, Query(alias="workerId")] = None,
) -> list[InvoiceResponse]:
    """List invoices, newest first."""
    filters = InvoiceFilter(kind=kind, status=status_filter, client_id=client_id, worker_id=worker_id)
    items = await invoices.list(filters)
    return [InvoiceResponse.model_validate(i) for i in items]


@router.get(
    "/{invoice_id}",
    response_model=InvoiceResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_invoice(
    invoices: Invoices,
    invoice_id: Annotated[UUID, Path()],
) -> InvoiceResponse:
    """Get a specific invoice by ID."""
    return InvoiceResponse.model_validate(await invoices.get(invoice_id))


@router.post(
    "/client",
    response_model=GeneratedInvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def generate_client_invoice(
    invoices: Invoices,
    payload: InvoiceRequest,
) -> GeneratedInvoiceResponse:
    """Bill a client for its verified activities in the period."""
    return _generated(await invoices.generate_client_invoice(payload))


@router.post(
    "/worker",
    response_model=GeneratedInvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def generate_worker_payout(
    invoices: Invoices,
    payload: InvoiceRequest,
) -> GeneratedInvoiceResponse:
    """Compute a worker payout for its verified activities in the period."""
    return _generated(await invoices.generate_worker_payout(payload))


@router.patch(
    "/{invoice_id}/status",
    response_model=InvoiceResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_invoice_status(
    invoices: Invoices,
    invoice_id: Annotated[UUID, Path()],
    payload: InvoiceStatusUpdate,
) -> InvoiceResponse:
    """Advance an invoice: DRAFT → SENT → PAID."""
    return InvoiceResponse.model_validate(await invoices.advance_status(invoice_id, payload.status))
