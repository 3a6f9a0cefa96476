"""
Frame Engine for Still Image Animation

Turns one still image into a short WebM clip: a per-frame transform
(zoom, pan, rotate, fade, shake) is applied to a cover-fitted image on
a 1280x720 surface, and every completed frame is streamed into a
VP9/WebM encoder.

Usage:
    from worker.app.tasks.frame_engine import (
        AnimationConfig,
        Effect,
        VideoPipeline,
    )

    artifact = VideoPipeline().run(
        image_bytes,
        AnimationConfig(duration_seconds=5, effect=Effect.ZOOM_IN),
    )
    artifact.save(Path("out"))
"""

from .errors import (
    FrameEngineError,
    InvalidImage,
    InvalidConfig,
    EncodingFailure,
    AbortedByCaller,
    InvalidStateTransition,
    PartialFrameError,
)

from .models import (
    AnimationConfig,
    Effect,
    EncodedArtifact,
    FrameState,
    SourceImage,
    load_source_image,
    CANVAS_WIDTH,
    CANVAS_HEIGHT,
    FRAME_RATE,
)

from .effects import (
    EFFECT_LIBRARY,
    EffectSpec,
    Transform,
    compute_transform,
    get_effect,
    list_effects,
)

from .compositor import (
    DrawRect,
    compute_draw_rect,
)

from .surface import RenderSurface

from .renderer import (
    FrameRenderer,
    render_frame,
)

from .scheduler import (
    FrameScheduler,
    ImmediateClock,
    RealtimeClock,
)

from .ffmpeg_templates import (
    EncoderConfig,
    build_stream_command,
)

from .encoder import (
    EncodingSink,
    SinkState,
)

from .status import (
    StatusEvent,
    StatusListener,
    LoggingStatusListener,
    RecordingStatusListener,
)

from .pipeline import (
    VideoPipeline,
    generate_clip,
)

__all__ = [
    # Errors
    "FrameEngineError",
    "InvalidImage",
    "InvalidConfig",
    "EncodingFailure",
    "AbortedByCaller",
    "InvalidStateTransition",
    "PartialFrameError",
    # Data model
    "AnimationConfig",
    "Effect",
    "EncodedArtifact",
    "FrameState",
    "SourceImage",
    "load_source_image",
    "CANVAS_WIDTH",
    "CANVAS_HEIGHT",
    "FRAME_RATE",
    # Effects
    "EFFECT_LIBRARY",
    "EffectSpec",
    "Transform",
    "compute_transform",
    "get_effect",
    "list_effects",
    # Compositing and rendering
    "DrawRect",
    "compute_draw_rect",
    "RenderSurface",
    "FrameRenderer",
    "render_frame",
    # Scheduling
    "FrameScheduler",
    "ImmediateClock",
    "RealtimeClock",
    # Encoding
    "EncoderConfig",
    "build_stream_command",
    "EncodingSink",
    "SinkState",
    # Status
    "StatusEvent",
    "StatusListener",
    "LoggingStatusListener",
    "RecordingStatusListener",
    # Pipeline
    "VideoPipeline",
    "generate_clip",
]
