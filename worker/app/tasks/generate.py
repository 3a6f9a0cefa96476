"""
Generation Task for StillMotion Worker

Turns an uploaded still image into a WebM clip:
- Loads the upload from storage
- Runs the frame pipeline (render every frame, stream to VP9/WebM)
- Reports lifecycle events and frame progress via RQ job metadata
- Polls a per-job Redis key for cancellation requests
- Purges outputs older than OUTPUT_RETENTION_SECONDS
- Writes outputs/{job_id}/video-generado.webm

Job timeout: 10 minutes (GENERATION_TIMEOUT)
"""

import logging
import os
import shutil
import time
from pathlib import Path
from typing import Callable, Optional

from rq import get_current_job

from .frame_engine import (
    AbortedByCaller,
    AnimationConfig,
    FrameEngineError,
    StatusEvent,
    VideoPipeline,
)

logger = logging.getLogger(__name__)

# Storage root from environment
STORAGE_ROOT = Path(os.environ.get("STORAGE_PATH", "/data"))

# Job timeout in seconds
GENERATION_TIMEOUT = 600

# Frames between cancellation checks
CANCEL_POLL_INTERVAL = 15

# Set by the backend to request cancellation of a running job
CANCEL_KEY_PREFIX = "stillmotion:cancel:"

# Finished clips are kept as long as the backend keeps job results
OUTPUT_RETENTION_SECONDS = int(os.environ.get("OUTPUT_RETENTION_SECONDS", "3600"))

# Optional ceiling on buffered encoder chunks
MAX_ENCODED_CHUNKS = int(os.environ["MAX_ENCODED_CHUNKS"]) if os.environ.get("MAX_ENCODED_CHUNKS") else None

# Rendering occupies this slice of the progress bar
RENDER_PROGRESS_START = 15
RENDER_PROGRESS_END = 90

STATUS_PROGRESS = {
    StatusEvent.STARTED: (5, "Analyzing image"),
    StatusEvent.APPLYING_EFFECTS: (10, "Applying animation effects"),
    StatusEvent.RENDERING: (RENDER_PROGRESS_START, "Rendering video"),
    StatusEvent.OPTIMIZING: (RENDER_PROGRESS_END, "Optimizing video quality"),
    StatusEvent.DONE: (100, "Video generated successfully"),
}


def update_job_progress(percent: int, message: str, **meta) -> None:
    """
    Update RQ job progress metadata.

    Args:
        percent: Progress percentage (0-100)
        message: Progress message
        **meta: Extra metadata fields (status, error, ...)
    """
    job = get_current_job()
    if job:
        job.meta["progress_percent"] = percent
        job.meta["progress_message"] = message
        job.meta.update(meta)
        job.save_meta()


class JobStatusListener:
    """Maps pipeline status events and frame progress onto job metadata."""

    def __init__(self):
        self.last_percent = 0
        self.events = []

    def notify(self, event: StatusEvent, error: Optional[str] = None) -> None:
        self.events.append(event)

        if event == StatusEvent.FAILED:
            status = "cancelled" if error == AbortedByCaller.kind else "failed"
            update_job_progress(self.last_percent, f"Generation {status}", status=status, error=error)
            return

        percent, message = STATUS_PROGRESS[event]
        status = "complete" if event == StatusEvent.DONE else "running"
        self.last_percent = percent
        update_job_progress(percent, message, status=status, stage=event.value)

    def frame_progress(self, current: int, total: int) -> None:
        span = RENDER_PROGRESS_END - RENDER_PROGRESS_START
        percent = RENDER_PROGRESS_START + int(span * current / total)
        if percent > self.last_percent:
            self.last_percent = percent
            update_job_progress(percent, f"Rendering frame {current}/{total}")


def cancel_key(job_id: str) -> str:
    return f"{CANCEL_KEY_PREFIX}{job_id}"


def make_abort_check(job, interval: int = CANCEL_POLL_INTERVAL) -> Callable[[], bool]:
    """
    Build a ``should_abort`` callable for the pipeline.

    Every ``interval`` frames, checks whether the job's cancel key
    exists. The flag is not kept in job meta because progress updates
    rewrite the whole meta hash field.
    """
    calls = 0

    def should_abort() -> bool:
        nonlocal calls
        calls += 1
        if job is None or calls % interval:
            return False
        return bool(job.connection.exists(cancel_key(job.id)))

    return should_abort


def purge_expired_outputs(max_age_seconds: int = OUTPUT_RETENTION_SECONDS) -> int:
    """
    Delete output directories older than ``max_age_seconds``.

    Returns:
        Number of directories removed
    """
    outputs_dir = STORAGE_ROOT / "outputs"
    if not outputs_dir.exists():
        return 0

    cutoff = time.time() - max_age_seconds
    removed = 0
    for entry in outputs_dir.iterdir():
        if entry.is_dir() and entry.stat().st_mtime < cutoff:
            shutil.rmtree(entry, ignore_errors=True)
            removed += 1

    if removed:
        logger.info(f"Purged {removed} expired output(s)")
    return removed


def enqueue_generation(
    job_id: str,
    image_path: str,
    duration: float,
    effect: str,
    prompt: Optional[str] = None,
):
    """
    Enqueue a generation job with proper timeout.

    Use this instead of directly enqueueing the task.

    Args:
        job_id: Identifier used for the RQ job and output directory
        image_path: Upload path relative to STORAGE_ROOT
        duration: Clip duration in seconds
        effect: Effect name
        prompt: Optional description

    Returns:
        RQ Job instance
    """
    from ..queues import generate_queue

    return generate_queue.enqueue(
        generate_video,
        job_id,
        image_path,
        duration,
        effect,
        prompt,
        job_id=job_id,
        job_timeout=GENERATION_TIMEOUT,
    )


def _discard_upload(source_path: Path) -> None:
    source_path.unlink(missing_ok=True)
    parent = source_path.parent
    if parent != STORAGE_ROOT and parent.exists() and not any(parent.iterdir()):
        parent.rmdir()


def generate_video(
    job_id: str,
    image_path: str,
    duration: float,
    effect: str,
    prompt: Optional[str] = None,
) -> dict:
    """
    RQ task to generate a clip from an uploaded image.

    This task:
    1. Loads the upload from STORAGE_ROOT
    2. Runs the frame pipeline with job progress reporting
    3. Stops early if cancellation is requested (cancel key set)
    4. Saves the artifact under outputs/{job_id}/
    5. Deletes the upload and cancel key on every exit path

    Args:
        job_id: Identifier of this generation
        image_path: Upload path relative to STORAGE_ROOT
        duration: Clip duration in seconds
        effect: Effect name
        prompt: Optional description (metadata only)

    Returns:
        dict with status, output_path, file_size, frame_count, handle,
        mime_type and filename; status is "cancelled" when aborted

    Raises:
        FileNotFoundError: If the upload is missing
        FrameEngineError: InvalidImage, InvalidConfig or EncodingFailure
    """
    logger.info(f"Starting generation job={job_id}, effect={effect}, duration={duration}s")

    job = get_current_job()
    listener = JobStatusListener()
    source_path = STORAGE_ROOT / image_path

    purge_expired_outputs()

    try:
        if not source_path.exists():
            update_job_progress(0, "Source image missing", status="failed", error="missing-upload")
            raise FileNotFoundError(f"Source image not found: {source_path}")

        image_data = source_path.read_bytes()
        config = AnimationConfig(duration_seconds=duration, effect=effect, prompt=prompt)

        pipeline = VideoPipeline(
            status_listener=listener,
            progress_callback=listener.frame_progress,
            max_chunks=MAX_ENCODED_CHUNKS,
        )

        try:
            artifact = pipeline.run(image_data, config, should_abort=make_abort_check(job))
        except AbortedByCaller:
            logger.info(f"Generation cancelled: job={job_id}")
            return {"status": "cancelled", "job_id": job_id}
        except FrameEngineError as e:
            logger.error(f"Generation failed: job={job_id}, kind={e.kind}, error={e}")
            raise

        output_dir = STORAGE_ROOT / "outputs" / job_id
        output_path = artifact.save(output_dir)
        relative_output_path = f"outputs/{job_id}/{artifact.filename}"

        logger.info(f"Generation complete: {relative_output_path}, size={artifact.size}")

        return {
            "status": "complete",
            "job_id": job_id,
            "output_path": relative_output_path,
            "file_size": output_path.stat().st_size,
            "frame_count": artifact.frame_count,
            "handle": artifact.handle,
            "mime_type": artifact.mime_type,
            "filename": artifact.filename,
        }

    finally:
        _discard_upload(source_path)
        if job is not None:
            job.connection.delete(cancel_key(job.id))
