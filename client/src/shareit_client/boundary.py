"""Error boundary for rendering code.

A failure inside a guarded render is logged with an incident id and the
boundary switches to its fallback until retry() is called.
"""

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BoundaryResult(Generic[T]):
    value: T | None = None
    error: str | None = None
    incident_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.incident_id is None


def new_incident_id() -> str:
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


class ErrorBoundary(Generic[T]):
    """Catch failures from a render function and show a fallback instead."""

    def __init__(self, fallback: T, name: str = "app"):
        self.fallback = fallback
        self.name = name
        self._incident: BoundaryResult[T] | None = None

    @property
    def has_error(self) -> bool:
        return self._incident is not None

    @property
    def incident(self) -> BoundaryResult[T] | None:
        return self._incident

    def render(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> BoundaryResult[T]:
        if self._incident is not None:
            return self._incident
        try:
            return BoundaryResult(value=fn(*args, **kwargs))
        except Exception as e:
            incident_id = new_incident_id()
            logger.exception("Render failed in %s boundary (incident %s)", self.name, incident_id)
            self._incident = BoundaryResult(
                value=self.fallback, error=str(e) or type(e).__name__, incident_id=incident_id
            )
            return self._incident

    def retry(self) -> None:
        """Leave the fallback state; the next render() runs the function again."""
        if self._incident is not None:
            logger.info("Retrying %s boundary after incident %s", self.name, self._incident.incident_id)
        self._incident = None
