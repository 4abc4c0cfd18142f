"""Worker API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, Response, status

from activity_ledger.api.dependencies import Activities, DbSession, Directory, Store
from activity_ledger.api.schemas import (
    ActivityResponse,
    AvailabilityResponse,
    ErrorResponse,
    WorkerResponse,
)
from activity_ledger.models import ActivityStatus, Worker
from activity_ledger.schemas import AvailabilityQuery, WorkerCreate, WorkerUpdate
from activity_ledger.services.filters import ActivityFilter, WorkerFilter

router = APIRouter(prefix="/workers", tags=["workers"])


@router.post(
    "",
    response_model=WorkerResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_worker(db: DbSession, store: Store, payload: WorkerCreate) -> WorkerResponse:
    """Create a worker."""
    worker = await store.create_worker(payload)
    await db.commit()
    return WorkerResponse.model_validate(worker)


@router.get("", response_model=list[WorkerResponse])
async def list_workers(
    store: Store,
    specialty: Annotated[str | None, Query()] = None,
) -> list[WorkerResponse]:
    """List workers, optionally by specialty."""
    workers = await store.list_workers(WorkerFilter(specialty=specialty))
    return [WorkerResponse.model_validate(w) for w in workers]


@router.post(
    "/check-availability",
    response_model=AvailabilityResponse,
    responses={400: {"model": ErrorResponse}},
)
async def check_availability(
    activities: Activities,
    payload: AvailabilityQuery,
) -> AvailabilityResponse:
    """Check whether a worker is free over an interval."""
    result = await activities.check_availability(payload)
    return AvailabilityResponse.model_validate(result)


@router.get(
    "/{worker_id}",
    response_model=WorkerResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_worker(store: Store, worker_id: Annotated[UUID, Path()]) -> WorkerResponse:
    """Get a specific worker by ID."""
    return WorkerResponse.model_validate(await store.get(Worker, worker_id))


@router.patch(
    "/{worker_id}",
    response_model=WorkerResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_worker(
    db: DbSession,
    store: Store,
    worker_id: Annotated[UUID, Path()],
    payload: WorkerUpdate,
) -> WorkerResponse:
    """Update a worker. Rate changes apply to future invoices only."""
    worker = await store.update_worker(worker_id, payload)
    await db.commit()
    return WorkerResponse.model_validate(worker)


@router.delete(
    "/{worker_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_worker(
    directory: Directory,
    worker_id: Annotated[UUID, Path()],
) -> Response:
    """Delete a worker, unassigning its activities."""
    await directory.delete_worker(worker_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{worker_id}/activities",
    response_model=list[ActivityResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_worker_activities(
    store: Store,
    activities: Activities,
    worker_id: Annotated[UUID, Path()],
    status_filter: Annotated[ActivityStatus | None, Query(alias="status")] = None,
) -> list[ActivityResponse]:
    """List a worker's activities."""
    await store.get(Worker, worker_id)
    items = await activities.list(ActivityFilter(worker_id=worker_id, status=status_filter))
    return [ActivityResponse.model_validate(a) for a in items]
