"""Pydantic models for API request/response validation."""

from typing import List, Optional

from pydantic import BaseModel, Field  # type: ignore

from ..domain.views import TrackerLineView


class ProblemDetails(BaseModel):
    """RFC 9457 Problem Details for HTTP APIs."""

    type: str = Field(description="A URI reference that identifies the problem type")
    title: str = Field(
        description="A short, human-readable summary of the problem type"
    )
    status: int = Field(description="The HTTP status code")
    detail: Optional[str] = Field(
        None, description="A human-readable explanation specific to this occurrence"
    )
    instance: Optional[str] = Field(
        None, description="A URI reference that identifies the specific occurrence"
    )
    error: Optional[str] = Field(None, description="Tracker error class name")
    entity: Optional[str] = Field(None, description="Entity kind the error refers to")
    entity_id: Optional[int] = Field(None, description="Id of the entity, when known")


# Tracker schemas
class TrackerCreate(BaseModel):
    """Schema for creating a tracker."""

    label: str = Field(..., max_length=200)


class TrackerRename(BaseModel):
    """Schema for renaming a tracker."""

    label: str = Field(..., max_length=200)


# Line schemas
class TrackingStart(BaseModel):
    """Schema for starting a new line on a tracker."""

    desc: str = Field("", max_length=2000)


class TrackedUpdate(BaseModel):
    """Schema for editing a line description."""

    desc: str = Field(..., max_length=2000)


class StopAllResponse(BaseModel):
    """Lines stopped by a stop-active request."""

    stopped: List[TrackerLineView]


# View schemas
class SelectionUpdate(BaseModel):
    """Select a tracker, or clear the selection with null."""

    tracker_id: Optional[int] = None


class SelectionAccepted(BaseModel):
    """Selection changes are applied by the next observation cycle."""

    accepted: bool
    tracker_id: Optional[int] = None
