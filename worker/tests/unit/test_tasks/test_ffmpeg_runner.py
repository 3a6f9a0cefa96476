"""
Unit tests for the streaming FFmpeg runner.

Uses small shell commands in place of FFmpeg so the pipe handling
runs for real without an encoder installed.
"""

import shutil

import pytest

from worker.app.tasks.ffmpeg_runner import (
    FFmpegError,
    FFmpegStreamEncoder,
    FFmpegTimeout,
    validate_ffmpeg_available,
)

pytestmark = pytest.mark.skipif(shutil.which("sh") is None, reason="requires a POSIX shell")


class TestFFmpegStreamEncoder:
    """Tests for stdin/stdout streaming and error handling."""

    def test_output_delivered_in_order(self):
        chunks = []
        encoder = FFmpegStreamEncoder(["cat"], chunk_size=7)
        encoder.open(chunks.append)
        for i in range(5):
            encoder.write(f"frame{i};".encode())
        encoder.close()

        assert b"".join(chunks) == b"frame0;frame1;frame2;frame3;frame4;"
        assert all(len(c) <= 7 for c in chunks)

    def test_nonzero_exit(self):
        encoder = FFmpegStreamEncoder(["sh", "-c", "cat >/dev/null; echo 'bad codec' >&2; exit 3"])
        encoder.open(lambda data: None)
        encoder.write(b"frame")
        with pytest.raises(FFmpegError) as exc_info:
            encoder.close()
        assert "code 3" in str(exc_info.value)
        assert "bad codec" in str(exc_info.value)

    def test_missing_binary(self):
        encoder = FFmpegStreamEncoder(["/nonexistent/ffmpeg-binary"])
        with pytest.raises(FFmpegError):
            encoder.open(lambda data: None)

    def test_write_before_open(self):
        with pytest.raises(FFmpegError):
            FFmpegStreamEncoder(["cat"]).write(b"frame")

    def test_write_after_exit(self):
        encoder = FFmpegStreamEncoder(["true"])
        encoder.open(lambda data: None)
        encoder.process.wait()
        with pytest.raises(FFmpegError):
            for _ in range(8):
                encoder.write(b"\0" * (1024 * 1024))

    def test_flush_timeout(self):
        encoder = FFmpegStreamEncoder(["sh", "-c", "sleep 5"], flush_timeout_seconds=0.2)
        encoder.open(lambda data: None)
        with pytest.raises(FFmpegTimeout):
            encoder.close()
        assert encoder.process.poll() is not None

    def test_kill(self):
        encoder = FFmpegStreamEncoder(["cat"])
        encoder.open(lambda data: None)
        encoder.write(b"frame")
        encoder.kill()
        assert encoder.process.poll() is not None

    def test_kill_before_open_is_noop(self):
        FFmpegStreamEncoder(["cat"]).kill()


def test_validate_missing_binary():
    assert validate_ffmpeg_available("/nonexistent/ffmpeg-binary") is False
