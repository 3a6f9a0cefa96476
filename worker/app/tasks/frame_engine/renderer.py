"""
Frame Renderer

Draws one frame of the clip onto a RenderSurface.
"""

import logging
from typing import Dict, Tuple

from PIL import Image

from .compositor import compute_draw_rect
from .effects import compute_transform
from .models import Effect, SourceImage
from .surface import RenderSurface

logger = logging.getLogger(__name__)


class FrameRenderer:
    """
    Renders frames for one source image.

    The cover-fit size is the same for every frame of a run, so the
    scaled image is computed once and reused.
    """

    def __init__(self, image: SourceImage):
        self.image = image
        self._scaled: Dict[Tuple[int, int], Image.Image] = {}

    def _scaled_pixels(self, size: Tuple[int, int]) -> Image.Image:
        scaled = self._scaled.get(size)
        if scaled is None:
            logger.debug(f"Scaling source {self.image.width}x{self.image.height} -> {size[0]}x{size[1]}")
            scaled = self.image.pixels.resize(size, Image.Resampling.LANCZOS)
            self._scaled[size] = scaled
        return scaled

    def render(
        self,
        surface: RenderSurface,
        effect: Effect,
        progress: float,
        frame_index: int = 0,
    ) -> None:
        """
        Render the frame at ``progress`` into ``surface``.

        Clears to black, applies the effect transform inside a scope,
        draws the cover-fitted image and commits the frame.
        """
        with surface.frame(frame_index):
            surface.clear()
            with surface.transform_scope(compute_transform(effect, progress)):
                rect = compute_draw_rect(
                    self.image.width, self.image.height, surface.width, surface.height
                )
                surface.draw_image(self._scaled_pixels(rect.size), rect.offset)


def render_frame(
    surface: RenderSurface,
    image: SourceImage,
    effect: Effect,
    progress: float,
) -> None:
    """Render a single frame without a reusable renderer."""
    FrameRenderer(image).render(surface, effect, progress)
