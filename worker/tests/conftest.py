"""
Root conftest for worker tests.

Provides image payload builders, an in-process stand-in for the FFmpeg
stream encoder, and isolated storage for task tests.
"""
import io
import os
import shutil
import tempfile
from pathlib import Path
from typing import Callable, List, Optional

import pytest
from PIL import Image

# Set a writable default storage path before importing modules that read it
_default_storage = Path(tempfile.mkdtemp(prefix="pytest_storage_"))
os.environ.setdefault("STORAGE_PATH", str(_default_storage))

from worker.app.tasks.ffmpeg_runner import FFmpegError


class FakeEncoder:
    """
    Records raw frames and emits one chunk per frame plus a trailer.

    Args:
        config: EncoderConfig the sink was built with
        fail_on_open: Raise FFmpegError from open()
        fail_on_write_at: Raise FFmpegError on this write (0-based)
        fail_on_close: Raise FFmpegError from close()
        silent: Never emit chunks
    """

    def __init__(
        self,
        config,
        fail_on_open: bool = False,
        fail_on_write_at: Optional[int] = None,
        fail_on_close: bool = False,
        silent: bool = False,
    ):
        self.config = config
        self.fail_on_open = fail_on_open
        self.fail_on_write_at = fail_on_write_at
        self.fail_on_close = fail_on_close
        self.silent = silent
        self.on_chunk: Optional[Callable[[bytes], None]] = None
        self.writes = 0
        self.frame_sizes: List[int] = []
        self.opened = False
        self.closed = False
        self.killed = False

    def open(self, on_chunk):
        if self.fail_on_open:
            raise FFmpegError("ffmpeg not found")
        self.on_chunk = on_chunk
        self.opened = True

    def write(self, frame: bytes):
        if self.fail_on_write_at is not None and self.writes == self.fail_on_write_at:
            raise FFmpegError("Broken pipe")
        self.frame_sizes.append(len(frame))
        self.writes += 1
        if not self.silent:
            self.on_chunk(f"chunk-{self.writes:04d};".encode())

    def close(self):
        if self.fail_on_close:
            raise FFmpegError("FFmpeg failed with code 1")
        if not self.silent:
            self.on_chunk(b"trailer")
        self.closed = True

    def kill(self):
        self.killed = True


@pytest.fixture
def make_encoder_factory():
    """Build an encoder factory; created encoders are kept on ``factory.created``.

    Usage:
        factory = make_encoder_factory(fail_on_write_at=3)
        sink = EncodingSink(encoder_factory=factory)
    """

    def _make(**options):
        created: List[FakeEncoder] = []

        def factory(config):
            encoder = FakeEncoder(config, **options)
            created.append(encoder)
            return encoder

        factory.created = created
        return factory

    return _make


@pytest.fixture
def encoder_factory(make_encoder_factory):
    """Encoder factory that always succeeds."""
    return make_encoder_factory()


@pytest.fixture
def make_image_bytes():
    """Encode a solid-color image.

    Usage:
        data = make_image_bytes(640, 480, color=(255, 0, 0), fmt="JPEG")
    """

    def _make(width: int = 64, height: int = 36, color=(200, 30, 30, 255), fmt: str = "PNG") -> bytes:
        mode = "RGBA" if fmt == "PNG" else "RGB"
        img = Image.new(mode, (width, height), color[: len(mode)])
        buffer = io.BytesIO()
        img.save(buffer, format=fmt)
        return buffer.getvalue()

    return _make


@pytest.fixture
def isolated_storage(tmp_path):
    """Create isolated storage directory for each test.

    Creates temporary directory with structure:
        tmp_path/storage/
            uploads/
            outputs/

    Returns:
        Path to isolated storage root
    """
    storage_root = tmp_path / "storage"
    (storage_root / "uploads").mkdir(parents=True)
    (storage_root / "outputs").mkdir()
    yield storage_root
    shutil.rmtree(storage_root, ignore_errors=True)
