"""
Shared test fixtures for StillMotion Backend tests.

Provides:
- Isolated storage root (STORAGE_PATH)
- Async test client (httpx + ASGITransport)
- Mock Redis/RQ (queue, job lookups)
- Sample image payloads
"""

import base64
import io
import os
import shutil
import tempfile
from pathlib import Path
from typing import AsyncGenerator, Callable, Generator
from unittest.mock import MagicMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image

# Set test environment variables before importing app modules
os.environ["REDIS_URL"] = "redis://localhost:6379/0"

# Create a temporary directory for test storage
_test_storage_dir = tempfile.mkdtemp(prefix="stillmotion_test_")
os.environ["STORAGE_PATH"] = _test_storage_dir

from backend.app.core.storage import get_storage_root
from backend.app.main import app


# =============================================================================
# Storage Fixtures
# =============================================================================


@pytest.fixture
def storage_root() -> Generator[Path, None, None]:
    """Storage root for the test; uploads and outputs are emptied afterwards."""
    root = get_storage_root()
    yield root
    for sub in ("uploads", "outputs"):
        shutil.rmtree(root / sub, ignore_errors=True)


# =============================================================================
# Mock Redis/Queue Fixtures
# =============================================================================


@pytest.fixture
def mock_redis() -> Generator[MagicMock, None, None]:
    """Mock Redis connection for tests."""
    mock = MagicMock()
    with patch("backend.app.core.queue.get_redis_connection", return_value=mock):
        yield mock


@pytest.fixture
def mock_queue(mock_redis: MagicMock) -> Generator[MagicMock, None, None]:
    """Mock RQ Queue; ``mock_queue.enqueue`` records submitted jobs."""
    with patch("backend.app.core.queue.Queue") as mock_queue_class:
        queue = MagicMock()
        mock_queue_class.return_value = queue
        yield queue


@pytest.fixture
def make_rq_job() -> Callable[..., MagicMock]:
    """Build a mock RQ Job.

    Usage:
        job = make_rq_job(JobStatus.STARTED, meta={"progress_percent": 40})
    """

    def _make(status, meta=None, result=None, exc_info=None) -> MagicMock:
        job = MagicMock()
        job.get_status.return_value = status
        job.meta = dict(meta or {})
        job.result = result
        job.exc_info = exc_info
        return job

    return _make


@pytest.fixture
def fetch_job(mock_redis: MagicMock) -> Generator[MagicMock, None, None]:
    """Patch Job.fetch; set ``return_value`` or ``side_effect`` per test."""
    with patch("backend.app.core.queue.Job.fetch") as mock:
        yield mock


# =============================================================================
# Test Client Fixtures
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def async_client(storage_root: Path, mock_redis: MagicMock) -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP client for testing the FastAPI application."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# =============================================================================
# Sample Payloads
# =============================================================================


@pytest.fixture
def sample_png() -> bytes:
    """Small valid PNG image."""
    buffer = io.BytesIO()
    Image.new("RGB", (8, 6), (255, 0, 0)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_data_url(sample_png: bytes) -> str:
    """The sample PNG as a data URL."""
    return "data:image/png;base64," + base64.b64encode(sample_png).decode()
