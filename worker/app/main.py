"""
StillMotion Worker Entry Point

Usage:
    python -m worker.app.main [--burst] [--name NAME]

Environment Variables:
    REDIS_URL: Redis connection URL (default: redis://localhost:6379/0)
    STORAGE_PATH: Shared storage root (default: /data)
    FFMPEG_BINARY: ffmpeg executable (default: ffmpeg)
    MAX_ENCODED_CHUNKS: Optional ceiling on buffered encoder chunks
    OUTPUT_RETENTION_SECONDS: Age after which finished clips are purged (default: 3600)
    LOG_LEVEL: Root log level (default: INFO)
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from redis import Redis
from redis.exceptions import RedisError
from rq import Queue, Worker

from .queues import get_redis_connection, ALL_QUEUES
from .tasks.ffmpeg_runner import validate_ffmpeg_available
from .tasks.frame_engine.ffmpeg_templates import FFMPEG_BINARY

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("stillmotion.worker")

DEFAULT_WORKER_NAME = "stillmotion-worker"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="stillmotion-worker", description="Run the clip generation worker.")
    parser.add_argument("--burst", action="store_true", help="Exit once the queue is empty")
    parser.add_argument("--name", default=DEFAULT_WORKER_NAME, help="RQ worker name")
    return parser.parse_args(argv)


def create_worker(connection: Redis, name: str = DEFAULT_WORKER_NAME) -> Worker:
    """Build an RQ worker bound to every generation queue."""
    return Worker(
        queues=[Queue(queue_name, connection=connection) for queue_name in ALL_QUEUES],
        connection=connection,
        name=name,
    )


def check_dependencies() -> Redis:
    """
    Verify ffmpeg and Redis before taking jobs.

    Exits the process if either is unavailable.
    """
    if not validate_ffmpeg_available(FFMPEG_BINARY):
        logger.error(f"ffmpeg not available: {FFMPEG_BINARY}")
        sys.exit(1)

    connection = get_redis_connection()
    try:
        connection.ping()
    except RedisError as e:
        logger.error(f"Failed to connect to Redis: {e}")
        sys.exit(1)

    logger.info("Successfully connected to Redis")
    return connection


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    logger.info(f"Starting StillMotion worker {args.name}...")

    connection = check_dependencies()
    logger.info(f"Listening on queues: {', '.join(ALL_QUEUES)}")

    worker = create_worker(connection, name=args.name)
    try:
        worker.work(burst=args.burst, with_scheduler=False)
    except KeyboardInterrupt:
        logger.info("Worker shutdown requested")

    logger.info("Worker stopped")


if __name__ == "__main__":
    main()
