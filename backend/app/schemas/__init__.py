"""
Pydantic schemas for StillMotion API.
"""

from .generate import (
    CancelResponse,
    EffectName,
    GenerateRequest,
    GenerateResponse,
    GenerationStatus,
)

__all__ = [
    "CancelResponse",
    "EffectName",
    "GenerateRequest",
    "GenerateResponse",
    "GenerationStatus",
]
