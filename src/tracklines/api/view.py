"""Read side of the tracker: the reconciled view snapshot."""

from fastapi import APIRouter, Depends, status

from ..context import TrackerContext
from ..events.view_state import ViewSnapshot
from .dependencies import get_context
from .schemas import SelectionAccepted, SelectionUpdate

router = APIRouter(tags=["view"])


@router.get("/v1/view", response_model=ViewSnapshot)
async def get_view(context: TrackerContext = Depends(get_context)) -> ViewSnapshot:
    """
    Latest snapshot published by the view reconciler.

    Mutations show up here after the next observation cycle, not
    synchronously with the request that caused them.
    """
    return context.snapshot()


@router.put(
    "/v1/view/selection",
    response_model=SelectionAccepted,
    status_code=status.HTTP_202_ACCEPTED,
)
async def select_tracker(
    body: SelectionUpdate,
    context: TrackerContext = Depends(get_context),
) -> SelectionAccepted:
    """Queue a selection change; unknown tracker ids are ignored by the view."""
    accepted = context.select_tracker(body.tracker_id)
    return SelectionAccepted(accepted=accepted, tracker_id=body.tracker_id)
