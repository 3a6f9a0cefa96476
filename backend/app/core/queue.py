"""
Job Queue Utilities

Functions for enqueueing generation jobs, reading their status and
requesting cancellation. Uses RQ (Redis Queue) for job management;
progress lives in the job's own metadata, written by the worker.
"""

from typing import Any, Callable, Dict, Optional, Union

from rq import Queue
from rq.exceptions import NoSuchJobError
from rq.job import Job, JobStatus

from .config import get_settings
from .redis import get_redis_connection

# Queue shared with the worker
GENERATE_QUEUE = "stillmotion:generate"

# Job timeout in seconds (10 minutes)
GENERATION_TIMEOUT = 600

PENDING_STATUSES = {JobStatus.QUEUED, JobStatus.DEFERRED, JobStatus.SCHEDULED}

# Prefix of the per-job cancellation keys polled by the worker
CANCEL_KEY_PREFIX = "stillmotion:cancel:"


def cancel_key(job_id: str) -> str:
    return f"{CANCEL_KEY_PREFIX}{job_id}"


def get_queue() -> Queue:
    """Get the generation queue."""
    return Queue(GENERATE_QUEUE, connection=get_redis_connection())


def enqueue_generation(
    job_id: str,
    func: Union[str, Callable],
    image_path: str,
    duration: float,
    effect: str,
    prompt: Optional[str] = None,
) -> Job:
    """
    Enqueue a generation job.

    Task arguments are passed positionally because ``job_id`` is also
    an RQ keyword.

    Args:
        job_id: Identifier for the RQ job and its output directory
        func: Task callable or its dotted import path
        image_path: Upload path relative to the storage root
        duration: Clip duration in seconds
        effect: Effect name
        prompt: Optional description

    Returns:
        Job: The enqueued RQ job
    """
    return get_queue().enqueue(
        func,
        job_id,
        image_path,
        duration,
        effect,
        prompt,
        job_id=job_id,
        job_timeout=GENERATION_TIMEOUT,
        result_ttl=get_settings().result_ttl_seconds,
    )


def fetch_job(job_id: str) -> Optional[Job]:
    """Fetch an RQ job, or None if Redis has no record of it."""
    try:
        return Job.fetch(job_id, connection=get_redis_connection())
    except NoSuchJobError:
        return None


def resolve_status(job: Job) -> str:
    """
    Collapse RQ status and worker metadata into one generation status.

    Returns:
        One of queued, running, complete, failed, cancelled
    """
    rq_status = job.get_status()

    if rq_status in PENDING_STATUSES:
        return "queued"
    if rq_status == JobStatus.STARTED:
        return "running"
    if rq_status == JobStatus.FINISHED:
        result = job.result
        if isinstance(result, dict) and result.get("status") == "cancelled":
            return "cancelled"
        return "complete"
    if rq_status in (JobStatus.CANCELED, JobStatus.STOPPED):
        return "cancelled"
    return "failed"


def get_job_status(job_id: str) -> Optional[Dict[str, Any]]:
    """
    Get generation status for a job.

    Args:
        job_id: The RQ job ID

    Returns:
        Dict containing job status or None if not found:
        {
            "job_id": str,
            "status": str,
            "progress_percent": int,
            "progress_message": str or None,
            "error": str or None,
            "result": dict or None,
        }
    """
    job = fetch_job(job_id)
    if job is None:
        return None

    status = resolve_status(job)
    meta = job.meta or {}

    error = None
    if status == "failed":
        error = meta.get("error") or (job.exc_info.strip().splitlines()[-1] if job.exc_info else None)

    return {
        "job_id": job_id,
        "status": status,
        "progress_percent": 100 if status == "complete" else int(meta.get("progress_percent", 0)),
        "progress_message": meta.get("progress_message"),
        "error": error,
        "result": job.result if status == "complete" else None,
    }


def request_cancel(job_id: str) -> Optional[str]:
    """
    Ask for a job to stop.

    Queued jobs are cancelled outright. Running jobs get a cancel key
    (``stillmotion:cancel:<job_id>``) the worker polls between frames;
    it lives outside the job meta, which the worker rewrites on every
    progress update.

    Returns:
        The resulting status string, or None if the job does not exist
    """
    job = fetch_job(job_id)
    if job is None:
        return None

    rq_status = job.get_status()

    if rq_status in PENDING_STATUSES:
        job.cancel()
        return "cancelled"

    if rq_status == JobStatus.STARTED:
        get_redis_connection().set(cancel_key(job_id), 1, ex=GENERATION_TIMEOUT)
        return "cancel_requested"

    return resolve_status(job)
