"""
Effect Definitions and Transform Engine

Maps an effect and a normalized progress value to the affine
transform and opacity used to draw that frame.
"""

import math
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple

import numpy as np

from .models import CANVAS_HEIGHT, CANVAS_WIDTH, Effect

# Effect constants
ZOOM_RANGE = 0.5
PAN_FRACTION = 0.3
SHAKE_AMPLITUDE = 10.0
SHAKE_FREQUENCY = 50.0

CANVAS_CENTER = (CANVAS_WIDTH / 2, CANVAS_HEIGHT / 2)


def _translation(tx: float, ty: float) -> np.ndarray:
    return np.array([[1.0, 0.0, tx], [0.0, 1.0, ty], [0.0, 0.0, 1.0]])


def _rotation(theta: float) -> np.ndarray:
    c, s = math.cos(theta), math.sin(theta)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


def _scaling(s: float) -> np.ndarray:
    return np.array([[s, 0.0, 0.0], [0.0, s, 0.0], [0.0, 0.0, 1.0]])


@dataclass(frozen=True)
class Transform:
    """
    Per-frame drawing transform.

    Attributes:
        scale: Uniform scale about ``origin``
        rotation: Rotation about ``origin`` in radians
        translate_x: Device-space horizontal offset in pixels
        translate_y: Device-space vertical offset in pixels
        alpha: Opacity multiplier (0.0-1.0)
        origin: Center for scale and rotation (canvas center)
    """

    scale: float = 1.0
    rotation: float = 0.0
    translate_x: float = 0.0
    translate_y: float = 0.0
    alpha: float = 1.0
    origin: Tuple[float, float] = field(default=CANVAS_CENTER)

    @property
    def matrix(self) -> np.ndarray:
        """
        3x3 affine matrix mapping drawing coordinates to canvas pixels.

        Order: translate-to-origin, scale and rotate, translate back,
        then the pan/shake offset.
        """
        ox, oy = self.origin
        return (
            _translation(self.translate_x, self.translate_y)
            @ _translation(ox, oy)
            @ _rotation(self.rotation)
            @ _scaling(self.scale)
            @ _translation(-ox, -oy)
        )

    @property
    def is_identity(self) -> bool:
        return (
            self.scale == 1.0
            and self.rotation == 0.0
            and self.translate_x == 0.0
            and self.translate_y == 0.0
        )


IDENTITY = Transform()


# =============================================================================
# Per-effect transforms
# =============================================================================


def _zoom_in(progress: float) -> Transform:
    return Transform(scale=1.0 + ZOOM_RANGE * progress)


def _pan_right(progress: float) -> Transform:
    # Content slides left, revealing the right side
    return Transform(translate_x=-PAN_FRACTION * CANVAS_WIDTH * progress)


def _pan_left(progress: float) -> Transform:
    return Transform(translate_x=PAN_FRACTION * CANVAS_WIDTH * progress)


def _rotate(progress: float) -> Transform:
    return Transform(rotation=2 * math.pi * progress)


def _fade(progress: float) -> Transform:
    return Transform(alpha=math.sin(math.pi * progress))


def _shake(progress: float) -> Transform:
    return Transform(
        translate_x=SHAKE_AMPLITUDE * math.sin(SHAKE_FREQUENCY * progress),
        translate_y=SHAKE_AMPLITUDE * math.cos(SHAKE_FREQUENCY * progress),
    )


@dataclass(frozen=True)
class EffectSpec:
    """
    Registry entry for an animation effect.

    Attributes:
        effect: Effect identifier
        label: Display name for pickers
        description: Human-readable description
        compute: Function of progress returning the frame Transform
    """

    effect: Effect
    label: str
    description: str
    compute: Callable[[float], Transform]

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "name": self.effect.value,
            "label": self.label,
            "description": self.description,
        }


# =============================================================================
# Effect Library
# =============================================================================

EFFECT_LIBRARY: Dict[Effect, EffectSpec] = {
    Effect.ZOOM_IN: EffectSpec(
        effect=Effect.ZOOM_IN,
        label="Zoom In",
        description="Scale from 100% to 150% about the center",
        compute=_zoom_in,
    ),
    Effect.PAN_RIGHT: EffectSpec(
        effect=Effect.PAN_RIGHT,
        label="Pan Right",
        description="Slide the image left by 30% of the width",
        compute=_pan_right,
    ),
    Effect.PAN_LEFT: EffectSpec(
        effect=Effect.PAN_LEFT,
        label="Pan Left",
        description="Slide the image right by 30% of the width",
        compute=_pan_left,
    ),
    Effect.ROTATE: EffectSpec(
        effect=Effect.ROTATE,
        label="Rotate",
        description="One full revolution about the center",
        compute=_rotate,
    ),
    Effect.FADE: EffectSpec(
        effect=Effect.FADE,
        label="Fade",
        description="Fade in to full opacity at the midpoint, then out",
        compute=_fade,
    ),
    Effect.SHAKE: EffectSpec(
        effect=Effect.SHAKE,
        label="Shake",
        description="High-frequency 10px jitter",
        compute=_shake,
    ),
}


def get_effect(name: str) -> Optional[EffectSpec]:
    """
    Get an effect spec by name.

    Args:
        name: Effect name (e.g., "zoom-in")

    Returns:
        EffectSpec if found, None otherwise
    """
    try:
        return EFFECT_LIBRARY[Effect(name)]
    except ValueError:
        return None


def list_effects() -> list:
    """
    List all available effect names.

    Returns:
        List of effect name strings
    """
    return [effect.value for effect in EFFECT_LIBRARY]


def compute_transform(effect: Effect, progress: float) -> Transform:
    """
    Compute the drawing transform for one frame.

    Args:
        effect: Effect to apply
        progress: Normalized clip position in [0, 1)

    Returns:
        Transform for that frame

    Raises:
        ValueError: If progress is outside [0, 1] or effect is unknown
    """
    if not (0.0 <= progress <= 1.0):
        raise ValueError(f"Progress must be within [0, 1], got {progress}")

    spec = EFFECT_LIBRARY[Effect(effect)]
    return spec.compute(progress)
