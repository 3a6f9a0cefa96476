"""
Pydantic schemas for Generate API endpoints.

Includes request/response models for submitting an image, polling the
job status and cancelling a job.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

EffectName = Literal["zoom-in", "pan-right", "pan-left", "rotate", "fade", "shake"]

GenerationState = Literal["queued", "running", "complete", "failed", "cancelled"]


# --- Request Schemas ---


class GenerateRequest(BaseModel):
    """Request to animate a still image."""

    image: str = Field(
        ...,
        min_length=1,
        description="Image as a data URL (data:image/png;base64,...) or bare base64",
    )
    duration: float = Field(
        5,
        ge=1,
        le=30,
        description="Clip duration in seconds",
    )
    effect: EffectName = Field("zoom-in", description="Animation effect")
    prompt: Optional[str] = Field(
        None,
        max_length=500,
        description="Optional free-text description (stored as metadata)",
    )


# --- Response Schemas ---


class GenerateResponse(BaseModel):
    """Response when a generation job is queued (202 Accepted)."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str = "Video generation initiated"
    job_id: str = Field(..., serialization_alias="jobId", description="Generation job ID")


class GenerationStatus(BaseModel):
    """Full status of a generation job."""

    job_id: str = Field(..., description="Generation job ID")
    status: GenerationState = Field(..., description="Current job status")
    progress_percent: int = Field(0, ge=0, le=100, description="Progress percentage (0-100)")
    progress_message: Optional[str] = Field(None, description="Human-readable progress message")
    output_url: Optional[str] = Field(None, description="Download URL when complete")
    file_size: Optional[int] = Field(None, description="Output file size in bytes when complete")
    frame_count: Optional[int] = Field(None, description="Number of rendered frames when complete")
    error: Optional[str] = Field(None, description="Error kind or message if failed")


class CancelResponse(BaseModel):
    """Response to a cancellation request (202 Accepted)."""

    job_id: str
    status: Literal["cancel_requested", "cancelled", "complete", "failed"]
