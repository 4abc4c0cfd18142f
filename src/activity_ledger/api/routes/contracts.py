"""Contract API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, Response, status

from activity_ledger.api.dependencies import Directory, Ledger, Store
from activity_ledger.api.schemas import (
    ContractResponse,
    ErrorResponse,
    HoursRemainingResponse,
)
from activity_ledger.models import Contract, ContractStatus
from activity_ledger.schemas import ContractCreate, ContractUpdate
from activity_ledger.services.filters import ContractFilter

router = APIRouter(prefix="/contracts", tags=["contracts"])


@router.post(
    "",
    response_model=ContractResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_contract(directory: Directory, payload: ContractCreate) -> ContractResponse:
    """Create a contract for a client."""
    contract = await directory.create_contract(payload)
    return ContractResponse.model_validate(contract)


@router.get("", response_model=list[ContractResponse])
async def list_contracts(
    store: Store,
    client_id: Annotated[UUID | None, Query(alias="clientId")] = None,
    status_filter: Annotated[ContractStatus | None, Query(alias="status")] = None,
) -> list[ContractResponse]:
    """List contracts, newest first."""
    contracts = await store.list_contracts(ContractFilter(client_id=client_id, status=status_filter))
    return [ContractResponse.model_validate(c) for c in contracts]


@router.get(
    "/{contract_id}",
    response_model=ContractResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_contract(store: Store, contract_id: Annotated[UUID, Path()]) -> ContractResponse:
    """Get a specific contract by ID."""
    return ContractResponse.model_validate(await store.get(Contract, contract_id))


@router.patch(
    "/{contract_id}",
    response_model=ContractResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_contract(
    directory: Directory,
    contract_id: Annotated[UUID, Path()],
    payload: ContractUpdate,
) -> ContractResponse:
    """Update a contract; total hours cannot drop below hours already used."""
    contract = await directory.update_contract(contract_id, payload)
    return ContractResponse.model_validate(contract)


@router.delete(
    "/{contract_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_contract(
    directory: Directory,
    contract_id: Annotated[UUID, Path()],
) -> Response:
    """Delete a contract, unlinking its activities."""
    await directory.delete_contract(contract_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{contract_id}/hours-remaining",
    response_model=HoursRemainingResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_hours_remaining(
    ledger: Ledger,
    contract_id: Annotated[UUID, Path()],
) -> HoursRemainingResponse:
    """Total, used and remaining hours for a contract."""
    return HoursRemainingResponse.model_validate(await ledger.hours_remaining(contract_id))
