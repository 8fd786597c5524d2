"""
Detection value objects.

A Detection pairs a bounding Region with the 68 facial landmark points
fitted inside it. Both are frozen containers with no behavior beyond
data access and dict conversion.

Non-goals:
    - No rendering logic.
    - No coordinate transformation methods (that belongs in postprocessor).
"""

from dataclasses import dataclass
from typing import Tuple

# Facemark LBF / iBUG 300-W layout
LANDMARK_COUNT = 68

Point = Tuple[float, float]


@dataclass(frozen=True, slots=True)
class Region:
    """Axis-aligned face bounding region.

    Attributes:
        x1: Top-left x coordinate (absolute pixels).
        y1: Top-left y coordinate (absolute pixels).
        x2: Bottom-right x coordinate (absolute pixels).
        y2: Bottom-right y coordinate (absolute pixels).
        confidence: Detection confidence score in [0.0, 1.0].
    """

    x1: int
    y1: int
    x2: int
    y2: int
    confidence: float

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return {
            "x1": self.x1,
            "y1": self.y1,
            "x2": self.x2,
            "y2": self.y2,
            "confidence": round(self.confidence, 4),
        }

    @property
    def width(self) -> int:
        """Region width in pixels."""
        return self.x2 - self.x1

    @property
    def height(self) -> int:
        """Region height in pixels."""
        return self.y2 - self.y1

    def as_xywh(self) -> Tuple[int, int, int, int]:
        """Return (x, y, width, height), the layout OpenCV rect APIs expect."""
        return self.x1, self.y1, self.width, self.height


@dataclass(frozen=True, slots=True)
class Detection:
    """A single located face: its region and its ordered landmark points.

    Raises:
        ValueError: If landmarks does not hold exactly LANDMARK_COUNT points.
    """

    region: Region
    landmarks: Tuple[Point, ...]

    def __post_init__(self) -> None:
        if len(self.landmarks) != LANDMARK_COUNT:
            raise ValueError(
                f"Expected {LANDMARK_COUNT} landmark points, "
                f"got {len(self.landmarks)}."
            )

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return {
            "region": self.region.to_dict(),
            "landmarks": [[round(x, 2), round(y, 2)] for x, y in self.landmarks],
        }
