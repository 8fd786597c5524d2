"""
Detection engine — faces plus 68-point landmarks for a decoded image.

Public contract:
    DetectionEngine.detect_all(image: np.ndarray) -> list[Detection]

The pipeline depends only on the DetectionEngine protocol, so tests can
substitute a deterministic fake. OpenCVEngine is the production
implementation: an SSD-ResNet10 face locator run through OpenCV DNN,
followed by a Facemark LBF landmark fit on every located region.

Constraints:
    - Input must be a BGR numpy array (as returned by cv2.imdecode).
    - Thread-safety is not guaranteed; one call at a time.

Non-goals:
    - No file reading or decoding.
    - No drawing.
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Protocol, Sequence

import cv2
import numpy as np

from id_card_faces.config import DetectionConfig, ModelConfig
from id_card_faces.detection import LANDMARK_COUNT, Detection, Region
from id_card_faces.postprocessor import postprocess
from id_card_faces.preprocessor import preprocess

logger = logging.getLogger(__name__)


class DetectionEngine(Protocol):
    """Anything that turns a decoded image into detections."""

    def detect_all(self, image: np.ndarray) -> List[Detection]:
        """Return every face found in ``image`` with its landmarks."""


@dataclass(frozen=True)
class ModelAssets:
    """The two loaded inference assets.

    Attributes:
        face_locator: cv2.dnn.Net for the SSD face locator.
        landmarker: cv2.face.Facemark holding the LBF landmark model.
    """

    face_locator: Any
    landmarker: Any


class OpenCVEngine:
    """Face locator + landmark fitter built from loaded ModelAssets.

    Usage:
        engine = OpenCVEngine(assets, config.model, config.detection)
        detections = engine.detect_all(image)
    """

    def __init__(
        self,
        assets: ModelAssets,
        model_config: ModelConfig,
        detection_config: DetectionConfig,
    ) -> None:
        self._net = assets.face_locator
        self._landmarker = assets.landmarker
        self._model_config = model_config
        self._detection_config = detection_config

        logger.info(
            "Detection engine ready (backend=%s, confidence_threshold=%.2f)",
            model_config.backend,
            detection_config.confidence_threshold,
        )

    def detect_all(self, image: np.ndarray) -> List[Detection]:
        """Locate faces and fit 68 landmarks to each.

        Returns:
            Detections in locator order (confidence descending). Empty
            list if no face is found.

        Raises:
            TypeError: If image is not a numpy ndarray.
            ValueError: If image has incorrect shape or is empty.
            RuntimeError: If the landmark fit fails.
        """
        validate_image(image)

        blob = preprocess(image, self._model_config)
        self._net.setInput(blob)
        output = self._net.forward()

        h, w = image.shape[:2]
        regions = postprocess(
            network_output=output,
            frame_width=w,
            frame_height=h,
            confidence_threshold=self._detection_config.confidence_threshold,
            nms_threshold=self._detection_config.nms_threshold,
        )
        logger.debug("Face locator returned %d region(s).", len(regions))

        if not regions:
            return []

        return self._fit_landmarks(image, regions)

    def _fit_landmarks(
        self,
        image: np.ndarray,
        regions: Sequence[Region],
    ) -> List[Detection]:
        gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        faces = np.array([r.as_xywh() for r in regions], dtype=np.int32)

        ok, fitted = self._landmarker.fit(gray, faces)
        if not ok or len(fitted) != len(regions):
            raise RuntimeError(
                f"Landmark fitting failed for {len(regions)} located face(s)."
            )

        return [
            Detection(region=region, landmarks=to_points(shape))
            for region, shape in zip(regions, fitted)
        ]


def to_points(shape: np.ndarray) -> tuple:
    """Flatten a Facemark output array, (1, 68, 2) or (68, 2), to point tuples."""
    points = np.asarray(shape, dtype=np.float32).reshape(-1, 2)
    if points.shape[0] != LANDMARK_COUNT:
        raise RuntimeError(
            f"Landmark model returned {points.shape[0]} points, "
            f"expected {LANDMARK_COUNT}."
        )
    return tuple((float(x), float(y)) for x, y in points)


def validate_image(image: np.ndarray) -> None:
    """Validate that an image meets the engine's input contract.

    Raises:
        TypeError: If image is not a numpy ndarray.
        ValueError: If image is empty or has wrong dimensions.
    """
    if not isinstance(image, np.ndarray):
        raise TypeError(
            f"Expected image to be a numpy ndarray, "
            f"got {type(image).__name__}."
        )

    if image.size == 0:
        raise ValueError("Image is empty (zero size).")

    if image.ndim != 3:
        raise ValueError(
            f"Expected a 3-dimensional image (H, W, C), "
            f"got {image.ndim} dimensions with shape {image.shape}."
        )

    if image.shape[2] != 3:
        raise ValueError(
            f"Expected 3 channels (BGR), got {image.shape[2]} channels."
        )
