"""
StillMotion Worker Tasks

Tasks:
- generate_video: Render an uploaded image into a WebM clip

Enqueue helpers (use these for proper timeout handling):
- enqueue_generation: Enqueue generation with 10-minute timeout
"""

from .generate import (
    generate_video,
    enqueue_generation,
    GENERATION_TIMEOUT,
)

__all__ = [
    "generate_video",
    "enqueue_generation",
    "GENERATION_TIMEOUT",
]
