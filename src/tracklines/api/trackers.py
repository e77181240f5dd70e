"""Tracker management API endpoints."""

from typing import List

from fastapi import APIRouter, Depends, Response, status

from ..domain.views import TrackerEntryView
from ..services.interfaces import TrackingServiceInterface
from .dependencies import get_tracking_service
from .schemas import ProblemDetails, TrackerCreate, TrackerRename

router = APIRouter(tags=["trackers"])


@router.post(
    "/v1/trackers",
    response_model=TrackerEntryView,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"model": ProblemDetails, "description": "Blank label"},
        503: {"model": ProblemDetails, "description": "Storage unavailable"},
    },
)
async def create_tracker(
    body: TrackerCreate,
    service: TrackingServiceInterface = Depends(get_tracking_service),
) -> TrackerEntryView:
    """Create a tracker."""
    return await service.create_tracker(body.label)


@router.get("/v1/trackers", response_model=List[TrackerEntryView])
async def list_trackers(
    service: TrackingServiceInterface = Depends(get_tracking_service),
) -> List[TrackerEntryView]:
    """List live trackers, newest first."""
    return await service.get_trackers()


@router.patch(
    "/v1/trackers/{entry_id}",
    response_model=TrackerEntryView,
    responses={
        404: {"model": ProblemDetails, "description": "Tracker not found"},
        409: {"model": ProblemDetails, "description": "Blank label"},
    },
)
async def rename_tracker(
    entry_id: int,
    body: TrackerRename,
    service: TrackingServiceInterface = Depends(get_tracking_service),
) -> TrackerEntryView:
    return await service.rename_tracker(entry_id, body.label)


@router.delete(
    "/v1/trackers/{entry_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ProblemDetails, "description": "Tracker not found"}},
)
async def delete_tracker(
    entry_id: int,
    service: TrackingServiceInterface = Depends(get_tracking_service),
) -> Response:
    """
    Soft-delete a tracker together with all of its lines.

    Rows stay in storage marked deleted; they no longer appear in listings.
    """
    await service.delete_tracker(entry_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
