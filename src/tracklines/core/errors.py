"""Error taxonomy shared by the service, the gateways and the API layer."""

from typing import Optional


class TrackerError(Exception):
    """Base exception for tracking operations.

    Every error names the entity kind and, when known, the id it refers to
    so that callers can act on it without parsing the message.
    """

    def __init__(
        self,
        message: str,
        entity: Optional[str] = None,
        entity_id: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.entity = entity
        self.entity_id = entity_id

    def to_dict(self) -> dict:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "entity": self.entity,
            "entity_id": self.entity_id,
        }


class NotFoundError(TrackerError):
    """Referenced id has no live row."""

    def __init__(self, entity: str, entity_id: int):
        super().__init__(
            f"{entity.capitalize()} with id {entity_id} not found",
            entity=entity,
            entity_id=entity_id,
        )


class ValidationError(TrackerError):
    """Operation would violate a session-state invariant."""

    def __init__(self, entity: str, entity_id: Optional[int], reason: str):
        if entity_id is None:
            message = f"{entity.capitalize()} {reason}"
        else:
            message = f"{entity.capitalize()} {entity_id} {reason}"
        super().__init__(message, entity=entity, entity_id=entity_id)
        self.reason = reason


class StorageFailure(TrackerError):
    """Opaque storage or driver error. Never retried by the core."""

    pass
