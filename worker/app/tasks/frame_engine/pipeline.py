"""
Frame Pipeline

Wires scheduler, renderer and encoding sink together for one run:
decode, validate, render every frame, sample it into the encoder,
finalize the artifact. Lifecycle events go to a StatusListener.
"""

import logging
import time
from typing import Callable, List, Optional, Union

from .encoder import EncodingSink
from .errors import FrameEngineError
from .ffmpeg_templates import EncoderConfig
from .models import AnimationConfig, EncodedArtifact, FrameState, SourceImage, load_source_image
from .renderer import FrameRenderer
from .scheduler import FrameScheduler
from .status import LoggingStatusListener, StatusEvent, StatusListener
from .surface import RenderSurface

logger = logging.getLogger(__name__)


class VideoPipeline:
    """
    Generates one clip per ``run()`` call.

    Every run builds a fresh surface, renderer and sink; nothing is
    shared between runs.

    Args:
        encoder_config: Resolution, rate and codec settings for the sink
        scheduler: FrameScheduler (defaults to 30fps, offline clock)
        status_listener: Receives lifecycle events
        progress_callback: Called with (frames_done, total_frames)
        encoder_factory: Encoder backend override for the sink
        max_chunks: Optional ceiling on buffered encoded chunks
    """

    def __init__(
        self,
        encoder_config: Optional[EncoderConfig] = None,
        scheduler: Optional[FrameScheduler] = None,
        status_listener: Optional[StatusListener] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
        encoder_factory: Optional[Callable] = None,
        max_chunks: Optional[int] = None,
    ):
        self.encoder_config = encoder_config or EncoderConfig()
        self.scheduler = scheduler or FrameScheduler()
        self.status_listener = status_listener or LoggingStatusListener()
        self.progress_callback = progress_callback
        self.encoder_factory = encoder_factory
        self.max_chunks = max_chunks
        self.last_sink: Optional[EncodingSink] = None

    def run(
        self,
        image: Union[SourceImage, bytes],
        config: AnimationConfig,
        should_abort: Optional[Callable[[], bool]] = None,
    ) -> EncodedArtifact:
        """
        Generate a clip from ``image``.

        Args:
            image: Decoded SourceImage, or raw image bytes to decode
            config: AnimationConfig for this run
            should_abort: Polled before every frame

        Returns:
            EncodedArtifact

        Raises:
            InvalidImage, InvalidConfig, EncodingFailure, AbortedByCaller
        """
        self.status_listener.notify(StatusEvent.STARTED)
        started_at = time.monotonic()

        try:
            artifact = self._generate(image, config, should_abort)
        except FrameEngineError as e:
            self.status_listener.notify(StatusEvent.FAILED, e.kind)
            raise
        except Exception:
            logger.exception("Unexpected error during generation")
            self.status_listener.notify(StatusEvent.FAILED, "internal-error")
            raise

        elapsed = time.monotonic() - started_at
        logger.info(f"Generated {artifact.frame_count} frames in {elapsed:.1f}s ({artifact.size} bytes)")
        self.status_listener.notify(StatusEvent.DONE)
        return artifact

    def _generate(
        self,
        image: Union[SourceImage, bytes],
        config: AnimationConfig,
        should_abort: Optional[Callable[[], bool]],
    ) -> EncodedArtifact:
        config.validate()
        if not isinstance(image, SourceImage):
            image = load_source_image(image)

        total = self.scheduler.total_frames(config)
        logger.info(
            f"Generating {config.effect.value} clip: {config.duration_seconds}s, "
            f"{total} frames, source {image.width}x{image.height}"
        )

        renderer = FrameRenderer(image)
        surface = RenderSurface(self.encoder_config.width, self.encoder_config.height)
        sink = EncodingSink(
            config=self.encoder_config,
            encoder_factory=self.encoder_factory,
            max_chunks=self.max_chunks,
        )
        self.last_sink = sink
        artifacts: List[EncodedArtifact] = []

        def on_frame(state: FrameState) -> None:
            renderer.render(surface, config.effect, state.progress, state.frame_index)
            sink.capture(state)
            if self.progress_callback:
                self.progress_callback(state.frame_index + 1, state.total_frames)

        def on_complete() -> None:
            self.status_listener.notify(StatusEvent.OPTIMIZING)
            artifacts.append(sink.finalize())

        self.status_listener.notify(StatusEvent.APPLYING_EFFECTS)
        with sink.capturing(surface, frame_rate=self.scheduler.fps):
            self.status_listener.notify(StatusEvent.RENDERING)
            self.scheduler.run(config, on_frame, on_complete, should_abort=should_abort)

        return artifacts[0]


def generate_clip(
    image_data: bytes,
    config: AnimationConfig,
    should_abort: Optional[Callable[[], bool]] = None,
    **pipeline_kwargs,
) -> EncodedArtifact:
    """Decode ``image_data`` and generate a clip with a default pipeline."""
    return VideoPipeline(**pipeline_kwargs).run(image_data, config, should_abort=should_abort)
