"""
Aspect-Fit Compositor

Places the source image so it covers the whole canvas, preserving
aspect ratio and centering the overflow.
"""

from dataclasses import dataclass
from typing import Tuple

from .errors import InvalidImage
from .models import CANVAS_HEIGHT, CANVAS_WIDTH


@dataclass(frozen=True)
class DrawRect:
    """Destination rectangle in canvas coordinates (may extend past the edges)."""

    x: float
    y: float
    w: float
    h: float

    @property
    def size(self) -> Tuple[int, int]:
        """Pixel size for resampling, at least 1x1."""
        return max(1, round(self.w)), max(1, round(self.h))

    @property
    def offset(self) -> Tuple[float, float]:
        return self.x, self.y

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "w": self.w, "h": self.h}


def compute_draw_rect(
    img_w: float,
    img_h: float,
    canvas_w: float = CANVAS_WIDTH,
    canvas_h: float = CANVAS_HEIGHT,
) -> DrawRect:
    """
    Compute a cover-fit draw rectangle.

    A relatively wider image is fitted to the canvas height and
    centered horizontally; otherwise it is fitted to the width and
    centered vertically. Overflow is clipped by the canvas.

    Args:
        img_w: Source image width
        img_h: Source image height
        canvas_w: Canvas width
        canvas_h: Canvas height

    Returns:
        DrawRect

    Raises:
        InvalidImage: If any dimension is zero or negative
    """
    if img_w <= 0 or img_h <= 0:
        raise InvalidImage(f"Image has degenerate dimensions {img_w}x{img_h}")
    if canvas_w <= 0 or canvas_h <= 0:
        raise InvalidImage(f"Canvas has degenerate dimensions {canvas_w}x{canvas_h}")

    img_aspect = img_w / img_h
    canvas_aspect = canvas_w / canvas_h

    if img_aspect > canvas_aspect:
        h = canvas_h
        w = h * img_aspect
        return DrawRect(x=(canvas_w - w) / 2, y=0, w=w, h=h)

    w = canvas_w
    h = w / img_aspect
    return DrawRect(x=0, y=(canvas_h - h) / 2, w=w, h=h)
