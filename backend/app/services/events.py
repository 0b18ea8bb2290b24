"""In-process event bus for progress side effects.

Calculations publish what they computed; subscribers (alerting today) react
on their own. A failing subscriber is logged and never reaches the caller.
"""

import logging
import uuid
from typing import Callable

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class TopicProgressCalculated(BaseModel):
    """Emitted after a student's topic accuracy has been computed."""

    student_id: uuid.UUID
    teacher_id: uuid.UUID | None = None  # the student's own teacher
    topic_id: uuid.UUID
    accuracy: float
    total_questions: int


Handler = Callable[[BaseModel], None]


class ProgressEventBus:
    def __init__(self) -> None:
        self._handlers: list[tuple[type[BaseModel], Handler]] = []

    def subscribe(self, event_type: type[BaseModel], handler: Handler) -> None:
        self._handlers.append((event_type, handler))

    def unsubscribe(self, event_type: type[BaseModel], handler: Handler) -> None:
        self._handlers.remove((event_type, handler))

    def publish(self, event: BaseModel) -> None:
        for event_type, handler in list(self._handlers):
            if not isinstance(event, event_type):
                continue
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Progress event handler %s failed for %s (non-fatal)",
                    getattr(handler, "__name__", handler),
                    type(event).__name__,
                )


event_bus = ProgressEventBus()


def get_event_bus() -> ProgressEventBus:
    """FastAPI dependency returning the process-wide event bus."""
    return event_bus
