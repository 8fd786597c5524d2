"""
The drawing surface and the render stages.

render_image() puts the decoded card on the surface as soon as it is
decoded. render_overlay() redraws the card from scratch and composites
each detection on top, so calling it twice leaves the surface exactly
as calling it once.
"""

import logging
from typing import List, Protocol

import numpy as np

from id_card_faces.config import VisualizationConfig
from id_card_faces.detection import Detection
from id_card_faces.input_handler import UploadedImage
from id_card_faces.visualizer import draw_landmarks, draw_region

logger = logging.getLogger(__name__)


class DrawingSurface(Protocol):
    def draw_image(self, image: UploadedImage) -> None: ...

    def draw_regions(self, detections: List[Detection]) -> None: ...

    def draw_landmarks(self, detections: List[Detection]) -> None: ...


class Canvas:
    """In-memory BGR drawing surface.

    draw_image() resizes the surface to the image's native dimensions
    and replaces every pixel, discarding earlier marks.
    """

    def __init__(self, config: VisualizationConfig) -> None:
        self._config = config
        self._pixels = np.zeros((0, 0, 3), dtype=np.uint8)

    @property
    def width(self) -> int:
        return int(self._pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self._pixels.shape[0])

    def snapshot(self) -> np.ndarray:
        """Return a copy of the current pixels."""
        return self._pixels.copy()

    def draw_image(self, image: UploadedImage) -> None:
        self._pixels = image.pixels.copy()

    def draw_regions(self, detections: List[Detection]) -> None:
        for det in detections:
            draw_region(self._pixels, det.region, self._config)

    def draw_landmarks(self, detections: List[Detection]) -> None:
        for det in detections:
            draw_landmarks(self._pixels, det.landmarks, self._config)


def render_image(surface: DrawingSurface, image: UploadedImage) -> None:
    """Show the plain decoded image, replacing whatever was drawn before."""
    surface.draw_image(image)


def render_overlay(
    surface: DrawingSurface,
    image: UploadedImage,
    detections: List[Detection],
) -> None:
    """Redraw the image, then each detection's region and landmarks in order."""
    surface.draw_image(image)
    for det in detections:
        surface.draw_regions([det])
        surface.draw_landmarks([det])
    logger.debug("Overlay rendered for %d detection(s).", len(detections))
