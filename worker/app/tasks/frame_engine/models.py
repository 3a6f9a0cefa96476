"""
Frame Engine Data Model

Types shared by the transform engine, renderer, scheduler and
encoding sink for turning one still image into a short clip.
"""

import io
import logging
import numbers
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import InvalidConfig, InvalidImage

logger = logging.getLogger(__name__)

# Output canvas and logical frame rate
CANVAS_WIDTH = 1280
CANVAS_HEIGHT = 720
FRAME_RATE = 30

# Duration bounds in seconds (inclusive)
MIN_DURATION_SECONDS = 1
MAX_DURATION_SECONDS = 30

ARTIFACT_MIME_TYPE = "video/webm"
ARTIFACT_FILENAME = "video-generado.webm"


class Effect(str, Enum):
    """Per-frame animation effects."""

    ZOOM_IN = "zoom-in"
    PAN_RIGHT = "pan-right"
    PAN_LEFT = "pan-left"
    ROTATE = "rotate"
    FADE = "fade"
    SHAKE = "shake"


@dataclass(frozen=True)
class AnimationConfig:
    """
    Parameters for one generation run.

    Attributes:
        duration_seconds: Clip length, 1-30 seconds inclusive
        effect: Effect applied to every frame
        prompt: Free-form description, carried as metadata only
    """

    duration_seconds: float = 5
    effect: Effect = Effect.ZOOM_IN
    prompt: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.effect, Effect):
            try:
                object.__setattr__(self, "effect", Effect(self.effect))
            except ValueError:
                # Left as-is so validate() reports it
                pass

    def validate(self) -> None:
        """
        Check duration bounds and effect name.

        Raises:
            InvalidConfig: If any field is out of range
        """
        duration = self.duration_seconds
        if isinstance(duration, bool) or not isinstance(duration, numbers.Real):
            raise InvalidConfig(f"Duration must be a number, got {duration!r}")
        if not (MIN_DURATION_SECONDS <= duration <= MAX_DURATION_SECONDS):
            raise InvalidConfig(
                f"Duration must be between {MIN_DURATION_SECONDS} and "
                f"{MAX_DURATION_SECONDS} seconds, got {duration}"
            )
        if not isinstance(self.effect, Effect):
            raise InvalidConfig(f"Unknown effect: {self.effect!r}")
        if self.prompt is not None and not isinstance(self.prompt, str):
            raise InvalidConfig("Prompt must be a string")

    def total_frames(self, fps: int = FRAME_RATE) -> int:
        """Number of logical frames for this duration at ``fps``."""
        return int(round(self.duration_seconds * fps))

    @classmethod
    def from_dict(cls, payload: dict) -> "AnimationConfig":
        """
        Build a config from a job-submission payload.

        Accepts ``{"duration", "effect", "prompt"}`` as sent by the
        upload form.
        """
        return cls(
            duration_seconds=payload.get("duration", cls.duration_seconds),
            effect=payload.get("effect", cls.effect),
            prompt=payload.get("prompt") or None,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        effect = self.effect.value if isinstance(self.effect, Effect) else self.effect
        return {
            "duration": self.duration_seconds,
            "effect": effect,
            "prompt": self.prompt,
        }


@dataclass(frozen=True)
class FrameState:
    """Position of one frame within the clip."""

    frame_index: int
    total_frames: int

    @property
    def progress(self) -> float:
        return self.frame_index / self.total_frames

    @property
    def is_last(self) -> bool:
        return self.frame_index == self.total_frames - 1


@dataclass(frozen=True)
class SourceImage:
    """Decoded source raster. The pixels are never modified after loading."""

    pixels: Image.Image

    def __post_init__(self):
        width, height = self.pixels.size
        if width <= 0 or height <= 0:
            raise InvalidImage(f"Image has degenerate dimensions {width}x{height}")

    @property
    def width(self) -> int:
        return self.pixels.size[0]

    @property
    def height(self) -> int:
        return self.pixels.size[1]


def load_source_image(data: bytes) -> SourceImage:
    """
    Decode image bytes into a SourceImage.

    Applies EXIF orientation and converts to RGBA so transparent
    regions composite over the black background.

    Args:
        data: Encoded image bytes (PNG, JPEG, WebP, GIF...)

    Returns:
        SourceImage

    Raises:
        InvalidImage: If the bytes are empty or cannot be decoded
    """
    if not data:
        raise InvalidImage("Image payload is empty")

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            img = ImageOps.exif_transpose(img)
            pixels = img.convert("RGBA")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise InvalidImage(f"Could not decode image: {e}") from e

    logger.debug(f"Decoded source image {pixels.size[0]}x{pixels.size[1]}")
    return SourceImage(pixels=pixels)


@dataclass(frozen=True)
class EncodedArtifact:
    """
    Finalized video produced by one run.

    Attributes:
        data: Complete WebM bytes
        handle: Opaque content handle for download/playback
        frame_count: Logical frames rendered into the clip
        mime_type: Always video/webm
        filename: Suggested download filename
    """

    data: bytes
    handle: str
    frame_count: int
    mime_type: str = ARTIFACT_MIME_TYPE
    filename: str = ARTIFACT_FILENAME

    @property
    def size(self) -> int:
        return len(self.data)

    def save(self, directory: Path) -> Path:
        """Write the artifact into ``directory`` under its suggested filename."""
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / self.filename
        path.write_bytes(self.data)
        return path
