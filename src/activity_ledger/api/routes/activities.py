"""Activity API endpoints."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, Response, status

from activity_ledger.api.dependencies import Activities
from activity_ledger.api.schemas import ActivityResponse, ErrorResponse
from activity_ledger.models import ActivityStatus, ensure_utc
from activity_ledger.schemas import ActivityCreate, ActivityUpdate, AssignRequest, StatusUpdate
from activity_ledger.services.filters import ActivityFilter

router = APIRouter(prefix="/activities", tags=["activities"])


# ============================================================================
# Activity CRUD
# ============================================================================


@router.get("", response_model=list[ActivityResponse])
async def list_activities(
    activities: Activities,
    status_filter: Annotated[ActivityStatus | None, Query(alias="status")] = None,
    worker_id: Annotated[UUID | None, Query(alias="workerId")] = None,
    client_id: Annotated[UUID | None, Query(alias="clientId")] = None,
    contract_id: Annotated[UUID | None, Query(alias="contractId")] = None,
    start_date: Annotated[datetime | None, Query(alias="startDate")] = None,
    end_date: Annotated[datetime | None, Query(alias="endDate")] = None,
) -> list[ActivityResponse]:
    """List activities ordered by scheduled start."""
    filters = ActivityFilter(
        status=status_filter,
        worker_id=worker_id,
        client_id=client_id,
        contract_id=contract_id,
        starts_from=ensure_utc(start_date) if start_date else None,
        starts_until=ensure_utc(end_date) if end_date else None,
    )
    return [ActivityResponse.model_validate(a) for a in await activities.list(filters)]


@router.get(
    "/{activity_id}",
    response_model=ActivityResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_activity(
    activities: Activities,
    activity_id: Annotated[UUID, Path()],
) -> ActivityResponse:
    """Get a specific activity by ID."""
    return ActivityResponse.model_validate(await activities.get(activity_id))


@router.post(
    "",
    response_model=ActivityResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_activity(activities: Activities, payload: ActivityCreate) -> ActivityResponse:
    """Schedule a new activity."""
    return ActivityResponse.model_validate(await activities.create(payload))


@router.patch(
    "/{activity_id}",
    response_model=ActivityResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_activity(
    activities: Activities,
    activity_id: Annotated[UUID, Path()],
    payload: ActivityUpdate,
) -> ActivityResponse:
    """Partially update an activity."""
    return ActivityResponse.model_validate(await activities.update(activity_id, payload))


@router.delete(
    "/{activity_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_activity(
    activities: Activities,
    activity_id: Annotated[UUID, Path()],
) -> Response:
    """Delete an activity in any status."""
    await activities.delete(activity_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Activity State Transitions
# ============================================================================


@router.patch(
    "/{activity_id}/assign",
    response_model=ActivityResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def assign_worker(
    activities: Activities,
    activity_id: Annotated[UUID, Path()],
    payload: AssignRequest,
) -> ActivityResponse:
    """Assign a worker (→ SCHEDULED) or clear the assignment (→ UNASSIGNED)."""
    return ActivityResponse.model_validate(await activities.assign(activity_id, payload.worker_id))


@router.patch(
    "/{activity_id}/status",
    response_model=ActivityResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_status(
    activities: Activities,
    activity_id: Annotated[UUID, Path()],
    payload: StatusUpdate,
) -> ActivityResponse:
    """Move an activity to its next status."""
    activity = await activities.set_status(activity_id, payload.status, override=payload.override)
    return ActivityResponse.model_validate(activity)
