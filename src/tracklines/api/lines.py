"""Tracked line API endpoints.

Each line is a pausable work session made of duration segments. The
state transitions map onto POST actions:

- start:  POST /v1/trackers/{entry_id}/lines
- stop:   POST /v1/lines/{line_id}/stop
- resume: POST /v1/lines/{line_id}/resume
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from ..domain.views import TrackerLineView
from ..services.interfaces import TrackingServiceInterface
from .dependencies import get_tracking_service
from .schemas import ProblemDetails, StopAllResponse, TrackedUpdate, TrackingStart

router = APIRouter(tags=["lines"])

NOT_FOUND = {404: {"model": ProblemDetails, "description": "Line not found"}}
CONFLICT = {409: {"model": ProblemDetails, "description": "Illegal state transition"}}


@router.get(
    "/v1/lines",
    response_model=List[TrackerLineView],
    responses={404: {"model": ProblemDetails, "description": "Tracker not found"}},
)
async def list_lines(
    entry_id: Optional[int] = Query(None, description="Only lines of this tracker"),
    service: TrackingServiceInterface = Depends(get_tracking_service),
) -> List[TrackerLineView]:
    """List live lines newest first, each with its segments."""
    return await service.get_tracker_lines(entry_id)


@router.post(
    "/v1/trackers/{entry_id}/lines",
    response_model=TrackerLineView,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ProblemDetails, "description": "Tracker not found"}},
)
async def start_tracking(
    entry_id: int,
    body: TrackingStart,
    service: TrackingServiceInterface = Depends(get_tracking_service),
) -> TrackerLineView:
    """Start a new running line on a tracker."""
    return await service.start_tracking(entry_id, body.desc)


@router.post(
    "/v1/lines/stop-active",
    response_model=StopAllResponse,
)
async def stop_active(
    service: TrackingServiceInterface = Depends(get_tracking_service),
) -> StopAllResponse:
    """Stop every running line. Lines that fail to stop are left out."""
    stopped = await service.stop_all_active_tracking()
    return StopAllResponse(stopped=stopped)


@router.post(
    "/v1/lines/{line_id}/stop",
    response_model=TrackerLineView,
    responses={**NOT_FOUND, **CONFLICT},
)
async def stop_tracking(
    line_id: int,
    service: TrackingServiceInterface = Depends(get_tracking_service),
) -> TrackerLineView:
    return await service.stop_tracking(line_id)


@router.post(
    "/v1/lines/{line_id}/resume",
    response_model=TrackerLineView,
    responses={**NOT_FOUND, **CONFLICT},
)
async def resume_tracking(
    line_id: int,
    service: TrackingServiceInterface = Depends(get_tracking_service),
) -> TrackerLineView:
    return await service.resume_tracking(line_id)


@router.patch(
    "/v1/lines/{line_id}",
    response_model=TrackerLineView,
    responses=NOT_FOUND,
)
async def update_tracked(
    line_id: int,
    body: TrackedUpdate,
    service: TrackingServiceInterface = Depends(get_tracking_service),
) -> TrackerLineView:
    """Edit a line's description."""
    return await service.update_tracked(line_id, body.desc)


@router.delete(
    "/v1/lines/{line_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=NOT_FOUND,
)
async def remove_tracked(
    line_id: int,
    service: TrackingServiceInterface = Depends(get_tracking_service),
) -> Response:
    await service.remove_tracked(line_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
