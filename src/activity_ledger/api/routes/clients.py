"""Client API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, Response, status

from activity_ledger.api.dependencies import Activities, DbSession, Directory, Store
from activity_ledger.api.schemas import (
    ActivityResponse,
    ClientResponse,
    ContractResponse,
    ErrorResponse,
)
from activity_ledger.models import Client
from activity_ledger.schemas import ClientCreate, ClientUpdate
from activity_ledger.services.filters import ActivityFilter, ClientFilter, ContractFilter

router = APIRouter(prefix="/clients", tags=["clients"])


@router.post(
    "",
    response_model=ClientResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def create_client(db: DbSession, store: Store, payload: ClientCreate) -> ClientResponse:
    """Create a client; email must be unique."""
    client = await store.create_client(payload)
    await db.commit()
    return ClientResponse.model_validate(client)


@router.get("", response_model=list[ClientResponse])
async def list_clients(
    store: Store,
    email: Annotated[str | None, Query()] = None,
) -> list[ClientResponse]:
    """List clients."""
    clients = await store.list_clients(ClientFilter(email=email))
    return [ClientResponse.model_validate(c) for c in clients]


@router.get(
    "/{client_id}",
    response_model=ClientResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_client(store: Store, client_id: Annotated[UUID, Path()]) -> ClientResponse:
    """Get a specific client by ID."""
    return ClientResponse.model_validate(await store.get(Client, client_id))


@router.patch(
    "/{client_id}",
    response_model=ClientResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_client(
    db: DbSession,
    store: Store,
    client_id: Annotated[UUID, Path()],
    payload: ClientUpdate,
) -> ClientResponse:
    """Update a client."""
    client = await store.update_client(client_id, payload)
    await db.commit()
    return ClientResponse.model_validate(client)


@router.delete(
    "/{client_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_client(
    directory: Directory,
    client_id: Annotated[UUID, Path()],
) -> Response:
    """Delete a client that no activity or contract references."""
    await directory.delete_client(client_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{client_id}/contracts",
    response_model=list[ContractResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_client_contracts(
    store: Store,
    client_id: Annotated[UUID, Path()],
) -> list[ContractResponse]:
    """List a client's contracts."""
    await store.get(Client, client_id)
    contracts = await store.list_contracts(ContractFilter(client_id=client_id))
    return [ContractResponse.model_validate(c) for c in contracts]


@router.get(
    "/{client_id}/activities",
    response_model=list[ActivityResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_client_activities(
    store: Store,
    activities: Activities,
    client_id: Annotated[UUID, Path()],
) -> list[ActivityResponse]:
    """List a client's activities."""
    await store.get(Client, client_id)
    items = await activities.list(ActivityFilter(client_id=client_id))
    return [ActivityResponse.model_validate(a) for a in items]
