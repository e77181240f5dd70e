"""FastAPI dependencies resolving the process context."""

from fastapi import Request

from ..context import TrackerContext
from ..services.interfaces import TrackingServiceInterface


def get_context(request: Request) -> TrackerContext:
    return request.app.state.context


def get_tracking_service(request: Request) -> TrackingServiceInterface:
    return get_context(request).service
