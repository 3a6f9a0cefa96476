"""
Generate API endpoints for StillMotion.

Provides endpoints for submitting an image for animation, polling the
job, downloading the finished clip and cancelling a job.
"""

import logging
from uuid import uuid4

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import FileResponse

from ..core.queue import enqueue_generation, get_job_status, request_cancel
from ..core.storage import (
    OUTPUT_FILENAME,
    InvalidUpload,
    decode_image_payload,
    get_output_path,
    remove_upload,
    save_upload,
    validate_job_id,
)
from ..schemas.generate import (
    CancelResponse,
    GenerateRequest,
    GenerateResponse,
    GenerationStatus,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# Worker task, referenced by import path so the backend never imports worker code
GENERATE_VIDEO_TASK = "worker.app.tasks.generate.generate_video"

VIDEO_MIME_TYPE = "video/webm"


def _not_found(job_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={
            "error": "not_found",
            "message": "Generation job not found",
            "resource_type": "job",
            "resource_id": job_id,
        },
    )


def _get_status_or_404(job_id: str) -> dict:
    if not validate_job_id(job_id):
        raise _not_found(job_id)

    job_status = get_job_status(job_id)
    if job_status is None:
        raise _not_found(job_id)

    return job_status


@router.post(
    "",
    response_model=GenerateResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Generate a video from an image",
    description="Queue a job that animates the image and encodes a WebM clip.",
)
async def start_generation(request: GenerateRequest) -> GenerateResponse:
    """
    Start a generation job.

    Flow:
    1. Decode the image payload (400 on failure)
    2. Store it under uploads/{job_id}/
    3. Enqueue the worker task
    4. Return 202 with the job ID
    """
    try:
        image_data, extension = decode_image_payload(request.image)
    except InvalidUpload as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "invalid_image",
                "message": str(e),
            },
        )

    job_id = str(uuid4())
    image_path = save_upload(job_id, image_data, extension)

    try:
        enqueue_generation(
            job_id,
            GENERATE_VIDEO_TASK,
            image_path,
            request.duration,
            request.effect,
            request.prompt,
        )
    except Exception as e:
        logger.error(f"Failed to enqueue generation job {job_id}: {e}")
        remove_upload(job_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "internal_error",
                "message": "Failed to enqueue generation job",
            },
        )

    logger.info(f"Queued generation job {job_id}: effect={request.effect}, duration={request.duration}s")

    return GenerateResponse(job_id=job_id)


@router.get(
    "/{job_id}",
    response_model=GenerationStatus,
    summary="Get generation status",
)
async def get_generation_status(job_id: str) -> GenerationStatus:
    """Get status and progress of a generation job."""
    job_status = _get_status_or_404(job_id)
    result = job_status["result"] or {}

    output_url = None
    if job_status["status"] == "complete":
        output_url = f"/api/generate/{job_id}/download"

    return GenerationStatus(
        job_id=job_id,
        status=job_status["status"],
        progress_percent=job_status["progress_percent"],
        progress_message=job_status["progress_message"],
        output_url=output_url,
        file_size=result.get("file_size"),
        frame_count=result.get("frame_count"),
        error=job_status["error"],
    )


@router.get(
    "/{job_id}/download",
    summary="Download generated video",
    response_class=FileResponse,
)
async def download_video(job_id: str) -> FileResponse:
    """
    Download the generated clip.

    Returns 404 until the job has completed.
    """
    job_status = _get_status_or_404(job_id)

    if job_status["status"] != "complete":
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": "not_found",
                "message": f"Video not available (job is {job_status['status']})",
                "resource_type": "video",
                "resource_id": job_id,
            },
        )

    output_path = get_output_path(job_id)
    if not output_path.exists():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": "not_found",
                "message": "Video file not found",
                "resource_type": "video",
                "resource_id": job_id,
            },
        )

    return FileResponse(
        path=output_path,
        media_type=VIDEO_MIME_TYPE,
        filename=OUTPUT_FILENAME,
    )


@router.delete(
    "/{job_id}",
    response_model=CancelResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Cancel a generation job",
)
async def cancel_generation(job_id: str) -> CancelResponse:
    """
    Request cancellation.

    Queued jobs are cancelled immediately and their upload removed,
    since the worker never runs to clean it up. Running jobs stop at
    their next cancellation check.
    """
    if not validate_job_id(job_id):
        raise _not_found(job_id)

    result = request_cancel(job_id)
    if result is None:
        raise _not_found(job_id)

    if result == "cancelled":
        remove_upload(job_id)

    logger.info(f"Cancellation for job {job_id}: {result}")
    return CancelResponse(job_id=job_id, status=result)
