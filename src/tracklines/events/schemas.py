"""Messages carried on the update channel."""

from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field  # type: ignore

from ..core.enums import EntityKind, UpdateKind
from ..domain.views import TrackerEntryView, TrackerLineView


class TrackerUpdate(BaseModel):
    """An entity was created or updated by the service."""

    model_config = ConfigDict(frozen=True)

    kind: UpdateKind
    entity: EntityKind
    payload: Union[TrackerEntryView, TrackerLineView]
    published_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def entity_id(self) -> int:
        return self.payload.id

    @classmethod
    def _for(cls, kind: UpdateKind, view: Union[TrackerEntryView, TrackerLineView]) -> "TrackerUpdate":
        entity = EntityKind.LINE if isinstance(view, TrackerLineView) else EntityKind.ENTRY
        return cls(kind=kind, entity=entity, payload=view)

    @classmethod
    def created(cls, view: Union[TrackerEntryView, TrackerLineView]) -> "TrackerUpdate":
        return cls._for(UpdateKind.CREATED, view)

    @classmethod
    def updated(cls, view: Union[TrackerEntryView, TrackerLineView]) -> "TrackerUpdate":
        return cls._for(UpdateKind.UPDATED, view)


class SelectionChange(BaseModel):
    """The user selected a tracker (or cleared the selection)."""

    model_config = ConfigDict(frozen=True)

    tracker_id: Optional[int] = None


ChannelMessage = Union[TrackerUpdate, SelectionChange]
