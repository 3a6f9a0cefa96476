"""
FFmpeg Streaming Runner

Runs an FFmpeg encoder fed through stdin with:
- Encoded output drained from stdout on a reader thread
- Stderr tail captured for error reporting
- Process group management for clean termination
- Bounded wait when flushing

This is the only place the worker talks to the FFmpeg process.
"""

import logging
import os
import signal
import subprocess
import threading
from collections import deque
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

STDERR_TAIL_LINES = 40


class FFmpegTimeout(Exception):
    """Raised when FFmpeg exceeds the allowed timeout."""

    pass


class FFmpegError(Exception):
    """Raised when FFmpeg fails with a non-zero exit code."""

    pass


class FFmpegStreamEncoder:
    """
    Streaming FFmpeg process: raw frames in, encoded chunks out.

    Args:
        cmd: FFmpeg command reading ``pipe:0`` and writing ``pipe:1``
        chunk_size: Bytes per stdout read
        flush_timeout_seconds: Maximum wait for FFmpeg to exit on close

    Example:
        encoder = FFmpegStreamEncoder(cmd)
        encoder.open(on_chunk=chunks.append)
        for frame in frames:
            encoder.write(frame)
        encoder.close()
    """

    def __init__(
        self,
        cmd: List[str],
        chunk_size: int = 64 * 1024,
        flush_timeout_seconds: int = 120,
    ):
        self.cmd = cmd
        self.chunk_size = chunk_size
        self.flush_timeout_seconds = flush_timeout_seconds
        self.process: Optional[subprocess.Popen] = None
        self._stderr_tail: deque = deque(maxlen=STDERR_TAIL_LINES)
        self._threads: List[threading.Thread] = []

    def open(self, on_chunk: Callable[[bytes], None]) -> None:
        """
        Start FFmpeg and the stdout/stderr drain threads.

        Raises:
            FFmpegError: If the FFmpeg binary cannot be started
        """
        logger.debug(f"FFmpeg command: {' '.join(self.cmd)}")

        try:
            # Own process group so kill() takes down any children too
            self.process = subprocess.Popen(
                self.cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                preexec_fn=os.setsid,
            )
        except OSError as e:
            raise FFmpegError(f"Could not start FFmpeg: {e}") from e

        self._threads = [
            threading.Thread(
                target=self._drain_stdout, args=(on_chunk,), name="ffmpeg-stdout", daemon=True
            ),
            threading.Thread(target=self._drain_stderr, name="ffmpeg-stderr", daemon=True),
        ]
        for thread in self._threads:
            thread.start()

    def _drain_stdout(self, on_chunk: Callable[[bytes], None]) -> None:
        stream = self.process.stdout
        while True:
            data = stream.read1(self.chunk_size)
            if not data:
                break
            on_chunk(data)

    def _drain_stderr(self) -> None:
        for line in self.process.stderr:
            self._stderr_tail.append(line.decode("utf-8", errors="replace").rstrip())

    @property
    def stderr_tail(self) -> str:
        return "\n".join(self._stderr_tail)

    def write(self, frame: bytes) -> None:
        """
        Send one raw frame to FFmpeg.

        Raises:
            FFmpegError: If FFmpeg is not running or closed its input
        """
        if self.process is None:
            raise FFmpegError("FFmpeg process not started")

        try:
            self.process.stdin.write(frame)
        except (BrokenPipeError, ValueError, OSError) as e:
            self._join_threads(timeout=5)
            raise FFmpegError(f"FFmpeg stopped accepting frames: {e}. {self.stderr_tail}") from e

    def close(self) -> None:
        """
        Flush FFmpeg and wait for it to exit.

        All remaining output is delivered to ``on_chunk`` before this
        returns.

        Raises:
            FFmpegTimeout: If FFmpeg does not exit in time
            FFmpegError: If FFmpeg exits with a non-zero code
        """
        if self.process is None:
            raise FFmpegError("FFmpeg process not started")

        try:
            self.process.stdin.close()
        except (BrokenPipeError, OSError):
            logger.debug("FFmpeg stdin already closed")

        try:
            return_code = self.process.wait(timeout=self.flush_timeout_seconds)
        except subprocess.TimeoutExpired:
            logger.warning(f"FFmpeg did not exit within {self.flush_timeout_seconds}s, killing")
            _kill_process_group(self.process)
            self.process.wait()
            self._join_threads(timeout=5)
            raise FFmpegTimeout(
                f"FFmpeg exceeded flush timeout of {self.flush_timeout_seconds} seconds"
            )

        self._join_threads()

        if return_code != 0:
            error_msg = f"FFmpeg failed with code {return_code}"
            if self._stderr_tail:
                error_msg += f": {self.stderr_tail[-2000:]}"
            logger.error(error_msg)
            raise FFmpegError(error_msg)

        logger.debug("FFmpeg stream closed cleanly")

    def kill(self) -> None:
        """Terminate FFmpeg immediately, discarding pending output."""
        if self.process is None:
            return

        if self.process.poll() is None:
            _kill_process_group(self.process)

        try:
            self.process.stdin.close()
        except (BrokenPipeError, OSError):
            logger.debug("FFmpeg stdin already closed")

        self.process.wait()
        # Readers stop on EOF once the process is gone
        self._join_threads(timeout=5)
        self.process.stdout.close()
        self.process.stderr.close()

    def _join_threads(self, timeout: Optional[float] = None) -> None:
        for thread in self._threads:
            thread.join(timeout=timeout)


def _kill_process_group(process: subprocess.Popen) -> None:
    """
    Kill FFmpeg process and its entire process group.

    Uses SIGKILL to ensure immediate termination.
    Catches and logs any errors during termination.

    Args:
        process: The subprocess.Popen instance to kill
    """
    try:
        # Get process group ID and kill entire group
        pgid = os.getpgid(process.pid)
        logger.info(f"Killing FFmpeg process group {pgid}")
        os.killpg(pgid, signal.SIGKILL)
    except ProcessLookupError:
        # Process already terminated
        logger.debug("Process already terminated")
    except OSError as e:
        logger.warning(f"Error killing process group: {e}")
        process.kill()


def validate_ffmpeg_available(binary: str = "ffmpeg") -> bool:
    """
    Check if FFmpeg is available and working.

    Returns:
        True if FFmpeg is available, False otherwise
    """
    try:
        result = subprocess.run(
            [binary, "-version"],
            capture_output=True,
            timeout=5,
        )
        return result.returncode == 0
    except (OSError, subprocess.SubprocessError) as e:
        logger.warning(f"FFmpeg not available: {e}")
        return False
