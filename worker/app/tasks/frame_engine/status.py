"""
Generation Status Events

Coarse lifecycle events reported while a clip is generated. Order on
success: started, applying-effects, rendering, optimizing, done. A
failed run ends with a single failed event carrying the error kind.
"""

import logging
from enum import Enum
from typing import List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


class StatusEvent(str, Enum):
    STARTED = "started"
    APPLYING_EFFECTS = "applying-effects"
    RENDERING = "rendering"
    OPTIMIZING = "optimizing"
    DONE = "done"
    FAILED = "failed"


class StatusListener(Protocol):
    def notify(self, event: StatusEvent, error: Optional[str] = None) -> None:
        ...


class LoggingStatusListener:
    """Writes lifecycle events to the log."""

    def notify(self, event: StatusEvent, error: Optional[str] = None) -> None:
        if event == StatusEvent.FAILED:
            logger.warning(f"Generation {event.value}: {error}")
        else:
            logger.info(f"Generation {event.value}")


class RecordingStatusListener:
    """Keeps every event in order, for callers that poll afterwards."""

    def __init__(self):
        self.events: List[Tuple[StatusEvent, Optional[str]]] = []

    def notify(self, event: StatusEvent, error: Optional[str] = None) -> None:
        self.events.append((event, error))

    @property
    def names(self) -> List[str]:
        return [event.value for event, _ in self.events]
