"""
Shared fixtures: synthetic images, fake engines and a recording surface.
"""

from typing import List, Optional

import cv2
import numpy as np
import pytest

from id_card_faces.config import AppConfig
from id_card_faces.detection import LANDMARK_COUNT, Detection, Region
from id_card_faces.input_handler import Upload
from id_card_faces.model_loader import AssetLoaders
from id_card_faces.pipeline import Pipeline


def make_detection(x1: int, y1: int, x2: int, y2: int, confidence: float = 0.9) -> Detection:
    """A detection whose 68 landmarks run diagonally inside the region."""
    xs = np.linspace(x1 + 2, x2 - 2, LANDMARK_COUNT)
    ys = np.linspace(y1 + 2, y2 - 2, LANDMARK_COUNT)
    return Detection(
        region=Region(x1=x1, y1=y1, x2=x2, y2=y2, confidence=confidence),
        landmarks=tuple(zip(xs.tolist(), ys.tolist())),
    )


def encode_image(width: int = 200, height: int = 120, ext: str = ".png") -> bytes:
    frame = np.full((height, width, 3), 200, dtype=np.uint8)
    ok, buf = cv2.imencode(ext, frame)
    assert ok
    return buf.tobytes()


class FakeEngine:
    """Deterministic engine: returns fixed detections or raises."""

    def __init__(self, detections: Optional[List[Detection]] = None, error: Optional[Exception] = None):
        self.detections = list(detections or [])
        self.error = error
        self.calls = 0

    def detect_all(self, image):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.detections)


class RecordingSurface:
    """Drawing surface that records calls instead of drawing."""

    def __init__(self):
        self.calls = []

    def draw_image(self, image):
        self.calls.append(("image", image.name, image.pixel_width, image.pixel_height))

    def draw_regions(self, detections):
        self.calls.append(("regions", len(detections)))

    def draw_landmarks(self, detections):
        self.calls.append(("landmarks", sum(len(d.landmarks) for d in detections)))

    @property
    def overlay_calls(self):
        return [c for c in self.calls if c[0] in ("regions", "landmarks")]


def stub_loaders() -> AssetLoaders:
    return AssetLoaders(
        face_locator=lambda config: "face-locator",
        landmarker=lambda config: "landmarker",
    )


@pytest.fixture
def detection_factory():
    return make_detection


@pytest.fixture
def image_encoder():
    return encode_image


@pytest.fixture
def image_bytes():
    return encode_image()


@pytest.fixture
def upload(image_bytes):
    return Upload(name="card.png", data=image_bytes, content_type="image/png")


@pytest.fixture
def fake_engine():
    return FakeEngine


@pytest.fixture
def recording_surface():
    return RecordingSurface()


@pytest.fixture
def pipeline_factory():
    """Build a Pipeline wired to a fake engine and stub asset loaders."""

    def _build(engine=None, surface=None, loaders=None, config=None):
        engine = engine if engine is not None else FakeEngine()
        return Pipeline(
            config or AppConfig(),
            surface=surface,
            loaders=loaders or stub_loaders(),
            engine_factory=lambda assets, cfg: engine,
        )

    return _build
