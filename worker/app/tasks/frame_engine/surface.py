"""
Render Surface

Fixed-size RGB pixel buffer shared by the frame renderer (single
writer) and the encoding sink (sampler). Each frame is drawn inside
``frame()``; ``snapshot()`` only ever returns a completed frame.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional, Tuple

import numpy as np
from PIL import Image

from .effects import IDENTITY, Transform
from .errors import PartialFrameError
from .models import CANVAS_HEIGHT, CANVAS_WIDTH

logger = logging.getLogger(__name__)

BACKGROUND = (0, 0, 0)
TRANSPARENT = (0, 0, 0, 0)


class RenderSurface:
    """
    Canvas mutated in place once per frame.

    The surface keeps a transform stack: ``transform_scope()`` pushes
    the current transform, applies a new one and always restores the
    previous one on exit.
    """

    def __init__(self, width: int = CANVAS_WIDTH, height: int = CANVAS_HEIGHT):
        self.width = width
        self.height = height
        self.image = Image.new("RGB", (width, height), BACKGROUND)
        self.transform: Transform = IDENTITY
        self._stack: List[Transform] = []
        self._writing = False
        self._incomplete = False
        self.frame_index: Optional[int] = None

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def writing(self) -> bool:
        return self._writing

    @contextmanager
    def frame(self, frame_index: int) -> Iterator["RenderSurface"]:
        """
        Exclusive write scope for one frame.

        The frame is committed only if the block exits normally; a
        failure leaves the surface marked incomplete until the next
        successful frame.
        """
        if self._writing:
            raise PartialFrameError("Surface already has a frame in progress")

        self._writing = True
        self._incomplete = True
        try:
            yield self
            self._incomplete = False
            self.frame_index = frame_index
        finally:
            self._writing = False

    @contextmanager
    def transform_scope(self, transform: Transform) -> Iterator[Transform]:
        """Apply ``transform`` for the duration of the block."""
        self._stack.append(self.transform)
        self.transform = transform
        try:
            yield transform
        finally:
            self.transform = self._stack.pop()

    def clear(self, color: Tuple[int, int, int] = BACKGROUND) -> None:
        """Fill the whole surface with an opaque color."""
        self.image.paste(color, (0, 0, self.width, self.height))

    def draw_image(self, pixels: Image.Image, offset: Tuple[float, float]) -> None:
        """
        Draw an RGBA image at ``offset`` through the current transform.

        Args:
            pixels: Image already scaled to its destination size
            offset: Top-left corner in drawing coordinates
        """
        transform = self.transform
        if transform.alpha <= 0.0:
            return

        placement = np.array(
            [[1.0, 0.0, offset[0]], [0.0, 1.0, offset[1]], [0.0, 0.0, 1.0]]
        )
        forward = transform.matrix @ placement
        inverse = np.linalg.inv(forward)
        coeffs = tuple(float(v) for v in inverse[:2].flatten())

        layer = pixels.transform(
            self.size,
            Image.Transform.AFFINE,
            data=coeffs,
            resample=Image.Resampling.BILINEAR,
            fillcolor=TRANSPARENT,
        )

        mask = layer.getchannel("A")
        if transform.alpha < 1.0:
            opacity = transform.alpha
            mask = mask.point(lambda v: int(v * opacity + 0.5))

        self.image.paste(layer.convert("RGB"), (0, 0), mask)

    def snapshot(self) -> bytes:
        """
        Raw RGB24 bytes of the last completed frame.

        Raises:
            PartialFrameError: If a frame is being written or the last
                one failed mid-draw
        """
        if self._writing or self._incomplete:
            raise PartialFrameError("Surface holds an incomplete frame")
        return self.image.tobytes()
