# Core modules for StillMotion backend
from .config import Settings, get_settings
from .redis import (
    get_redis_connection,
    check_redis_health,
    RedisHealthStatus,
)
from .queue import (
    enqueue_generation,
    fetch_job,
    get_job_status,
    request_cancel,
    GENERATE_QUEUE,
    GENERATION_TIMEOUT,
)
from .storage import (
    InvalidUpload,
    decode_image_payload,
    save_upload,
    remove_upload,
    get_output_path,
    get_storage_root,
    validate_job_id,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Redis
    "get_redis_connection",
    "check_redis_health",
    "RedisHealthStatus",
    # Queue
    "enqueue_generation",
    "fetch_job",
    "get_job_status",
    "request_cancel",
    "GENERATE_QUEUE",
    "GENERATION_TIMEOUT",
    # Storage
    "InvalidUpload",
    "decode_image_payload",
    "save_upload",
    "remove_upload",
    "get_output_path",
    "get_storage_root",
    "validate_job_id",
]
