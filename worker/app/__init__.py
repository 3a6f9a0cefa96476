"""
StillMotion Worker Package

RQ-based worker that turns uploaded still images into short WebM clips.
"""

from .queues import (
    get_redis_connection,
    generate_queue,
    ALL_QUEUES,
)

from .tasks import (
    generate_video,
    enqueue_generation,
    GENERATION_TIMEOUT,
)

__all__ = [
    # Queues
    "get_redis_connection",
    "generate_queue",
    "ALL_QUEUES",
    # Tasks
    "generate_video",
    "enqueue_generation",
    "GENERATION_TIMEOUT",
]
