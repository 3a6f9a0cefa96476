"""
StillMotion Queue Definitions

A single queue carries generation jobs:
- stillmotion:generate - image to video generation
"""

import os
from redis import Redis
from rq import Queue
from typing import Optional

GENERATE_QUEUE = "stillmotion:generate"

# Redis connection singleton
_redis_connection: Optional[Redis] = None


def get_redis_connection() -> Redis:
    """
    Get or create a Redis connection from environment variable REDIS_URL.

    Returns:
        Redis: A Redis connection instance
    """
    global _redis_connection

    if _redis_connection is None:
        redis_url = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
        _redis_connection = Redis.from_url(redis_url, decode_responses=False)

    return _redis_connection


class _LazyQueue:
    """Lazy queue wrapper that initializes on first access."""

    def __init__(self, name: str):
        self._name = name
        self._queue: Optional[Queue] = None

    def _get_queue(self) -> Queue:
        if self._queue is None:
            self._queue = Queue(self._name, connection=get_redis_connection())
        return self._queue

    def __getattr__(self, name):
        return getattr(self._get_queue(), name)

    def enqueue(self, *args, **kwargs):
        return self._get_queue().enqueue(*args, **kwargs)


generate_queue = _LazyQueue(GENERATE_QUEUE)

ALL_QUEUES = [GENERATE_QUEUE]
