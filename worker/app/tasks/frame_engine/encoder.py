"""
Encoding Sink

Samples completed frames from a RenderSurface, feeds them to a
streaming encoder, buffers the encoded chunks in arrival order and
assembles them into one EncodedArtifact on finalize.

State machine:
    IDLE -> CAPTURING -> FINALIZING -> READY
    CAPTURING | FINALIZING -> FAILED

READY and FAILED are terminal and both release every buffer.
"""

import logging
import threading
import uuid
from contextlib import contextmanager
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional, Set

from ..ffmpeg_runner import FFmpegError, FFmpegStreamEncoder, FFmpegTimeout
from .errors import EncodingFailure, InvalidStateTransition
from .ffmpeg_templates import EncoderConfig, build_stream_command
from .models import EncodedArtifact, FrameState
from .surface import RenderSurface

logger = logging.getLogger(__name__)


class SinkState(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    FINALIZING = "finalizing"
    READY = "ready"
    FAILED = "failed"


TRANSITIONS: Dict[SinkState, Set[SinkState]] = {
    SinkState.IDLE: {SinkState.CAPTURING},
    SinkState.CAPTURING: {SinkState.FINALIZING, SinkState.FAILED},
    SinkState.FINALIZING: {SinkState.READY, SinkState.FAILED},
    SinkState.READY: set(),
    SinkState.FAILED: set(),
}

TERMINAL_STATES = {SinkState.READY, SinkState.FAILED}


def default_encoder_factory(config: EncoderConfig) -> FFmpegStreamEncoder:
    """Create the FFmpeg-backed VP9/WebM stream encoder."""
    return FFmpegStreamEncoder(
        build_stream_command(config),
        chunk_size=config.chunk_size,
        flush_timeout_seconds=config.flush_timeout_seconds,
    )


class EncodingSink:
    """
    Consumer side of the frame pipeline.

    Args:
        config: EncoderConfig (rate, bitrate, codec, container)
        encoder_factory: Callable building an encoder with
            ``open(on_chunk)``, ``write(frame)``, ``close()`` and ``kill()``
        max_chunks: Optional ceiling on buffered chunks
    """

    def __init__(
        self,
        config: Optional[EncoderConfig] = None,
        encoder_factory: Optional[Callable[[EncoderConfig], object]] = None,
        max_chunks: Optional[int] = None,
    ):
        self.config = config or EncoderConfig()
        self.encoder_factory = encoder_factory or default_encoder_factory
        self.max_chunks = max_chunks
        self.state = SinkState.IDLE

        self._lock = threading.Lock()
        self._chunks: List[bytes] = []
        self._overflowed = False
        self._encoder = None
        self._surface: Optional[RenderSurface] = None
        self._frame_rate = self.config.fps
        self._samples_written = 0
        self._frames_captured = 0

    # -------------------------------------------------------------------------
    # State handling
    # -------------------------------------------------------------------------

    def _transition(self, new_state: SinkState) -> None:
        if new_state not in TRANSITIONS[self.state]:
            raise InvalidStateTransition(
                f"Cannot move encoding sink from {self.state.value} to {new_state.value}"
            )
        logger.debug(f"Encoding sink {self.state.value} -> {new_state.value}")
        self.state = new_state

    def _require(self, state: SinkState, action: str) -> None:
        if self.state != state:
            raise InvalidStateTransition(
                f"Cannot {action} while encoding sink is {self.state.value}"
            )

    def _release(self) -> None:
        with self._lock:
            self._chunks = []
        self._encoder = None
        self._surface = None

    def _fail(self, message: str, cause: Optional[Exception] = None) -> EncodingFailure:
        self._transition(SinkState.FAILED)
        self._release()
        logger.error(f"Encoding failed: {message}")
        error = EncodingFailure(message)
        error.__cause__ = cause
        return error

    @property
    def chunk_count(self) -> int:
        with self._lock:
            return len(self._chunks)

    @property
    def frames_captured(self) -> int:
        return self._frames_captured

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self, surface: RenderSurface, frame_rate: Optional[int] = None) -> None:
        """
        Open the encoder and begin capturing ``surface``.

        Args:
            surface: Surface to sample; must match the encoder resolution
            frame_rate: Logical rate frames are produced at (defaults to
                the sink's own rate)

        Raises:
            InvalidStateTransition: If the sink was already started
            EncodingFailure: If the encoder cannot be opened. The sink
                stays Idle in that case, since nothing was captured, and
                ``start`` may be called again.
        """
        self._require(SinkState.IDLE, "start")

        if surface.size != (self.config.width, self.config.height):
            raise EncodingFailure(
                f"Surface {surface.width}x{surface.height} does not match encoder "
                f"{self.config.width}x{self.config.height}"
            )

        encoder = self.encoder_factory(self.config)
        try:
            encoder.open(self.on_chunk)
        except (FFmpegError, FFmpegTimeout) as e:
            raise EncodingFailure(f"Could not open encoder: {e}") from e

        self._encoder = encoder
        self._surface = surface
        self._frame_rate = frame_rate or self.config.fps
        self._samples_written = 0
        self._frames_captured = 0
        self._transition(SinkState.CAPTURING)

        logger.info(
            f"Encoding sink capturing {surface.width}x{surface.height} @ {self.config.fps}fps, "
            f"{self.config.codec}/{self.config.container}, {self.config.bitrate_bps} bps"
        )

    def on_chunk(self, data: bytes) -> None:
        """Buffer one encoded chunk. Called from the encoder's reader thread."""
        if not data:
            return

        with self._lock:
            if self.state in TERMINAL_STATES:
                return
            if self.max_chunks is not None and len(self._chunks) >= self.max_chunks:
                if not self._overflowed:
                    logger.warning(f"Chunk ceiling of {self.max_chunks} reached, dropping output")
                self._overflowed = True
                return
            self._chunks.append(data)

    def _samples_due(self, frame_state: Optional[FrameState]) -> int:
        if frame_state is None:
            return 1
        target = (frame_state.frame_index + 1) * self.config.fps // self._frame_rate
        return max(0, target - self._samples_written)

    def capture(self, frame_state: Optional[FrameState] = None) -> int:
        """
        Sample the current completed frame.

        When the sink rate differs from the production rate, a frame
        may be written several times or skipped so the output keeps
        its timing.

        Returns:
            Number of samples written for this frame

        Raises:
            EncodingFailure: If the encoder failed or the chunk ceiling
                was exceeded
            PartialFrameError: If the surface is mid-frame
        """
        self._require(SinkState.CAPTURING, "capture")

        if self._overflowed:
            raise self._abort_with(f"Chunk ceiling of {self.max_chunks} exceeded")

        samples = self._samples_due(frame_state)
        if samples:
            frame = self._surface.snapshot()
            try:
                for _ in range(samples):
                    self._encoder.write(frame)
            except (FFmpegError, FFmpegTimeout) as e:
                raise self._abort_with(str(e), e)

        self._samples_written += samples
        self._frames_captured += 1
        return samples

    def finalize(self) -> EncodedArtifact:
        """
        Flush the encoder and assemble the buffered chunks.

        Returns:
            EncodedArtifact with a fresh content handle

        Raises:
            EncodingFailure: If no chunks were produced, the ceiling was
                exceeded, or the encoder failed while flushing
        """
        self._require(SinkState.CAPTURING, "finalize")
        self._transition(SinkState.FINALIZING)

        try:
            self._encoder.close()
        except (FFmpegError, FFmpegTimeout) as e:
            raise self._fail(f"Encoder failed while finalizing: {e}", e)

        if self._overflowed:
            raise self._fail(f"Chunk ceiling of {self.max_chunks} exceeded")

        with self._lock:
            chunks = self._chunks
            self._chunks = []

        if not chunks:
            raise self._fail("Encoder produced no data")

        artifact = EncodedArtifact(
            data=b"".join(chunks),
            handle=uuid.uuid4().hex,
            frame_count=self._frames_captured,
            mime_type=f"video/{self.config.container}",
        )
        self._transition(SinkState.READY)
        self._release()

        logger.info(
            f"Encoded {artifact.frame_count} frames into {artifact.size} bytes "
            f"from {len(chunks)} chunks"
        )
        return artifact

    def abort(self) -> None:
        """
        Stop capturing without producing an artifact.

        Safe to call in any state; only an active capture is affected.
        """
        if self.state not in (SinkState.CAPTURING, SinkState.FINALIZING):
            return

        encoder = self._encoder
        if encoder is not None:
            encoder.kill()
        self._transition(SinkState.FAILED)
        self._release()
        logger.info("Encoding sink aborted, buffers released")

    def _abort_with(self, message: str, cause: Optional[Exception] = None) -> EncodingFailure:
        if self._encoder is not None:
            self._encoder.kill()
        return self._fail(message, cause)

    @contextmanager
    def capturing(
        self, surface: RenderSurface, frame_rate: Optional[int] = None
    ) -> Iterator["EncodingSink"]:
        """
        Scoped capture: the sink is aborted on any exit that did not
        finalize it.
        """
        self.start(surface, frame_rate=frame_rate)
        try:
            yield self
        finally:
            if self.state not in TERMINAL_STATES:
                self.abort()
