"""
Drawing primitives for the ID card overlay.

Responsibility:
    Draw bounding regions with optional confidence labels, 68-point
    landmark markers, and a severity-coloured status banner onto BGR
    pixel arrays. Pure rendering; no I/O beyond show_frame.

Non-goals:
    - No detection or model logic.
"""

from typing import Sequence

import cv2
import numpy as np

from id_card_faces.config import VisualizationConfig
from id_card_faces.detection import Point, Region
from id_card_faces.status import Severity, StatusMessage

# Hard-coded rendering constants (cosmetic internals, not user-facing)
_FONT = cv2.FONT_HERSHEY_SIMPLEX
_FONT_SCALE = 0.5
_FONT_THICKNESS = 1
_LABEL_PADDING = 4
_BANNER_HEIGHT = 28

# BGR
_SEVERITY_COLORS = {
    Severity.INFO: (210, 118, 25),
    Severity.SUCCESS: (80, 175, 76),
    Severity.WARNING: (0, 152, 255),
    Severity.ERROR: (54, 67, 244),
}

WINDOW_NAME = "ID Card Face Detection"


def draw_region(frame: np.ndarray, region: Region, config: VisualizationConfig) -> None:
    """Draw one bounding region (and its confidence label) in place."""
    cv2.rectangle(
        frame,
        (region.x1, region.y1),
        (region.x2, region.y2),
        color=config.box_color,
        thickness=config.thickness,
    )

    if not config.show_confidence:
        return

    label = f"{region.confidence:.2f}"
    (text_w, text_h), _ = cv2.getTextSize(label, _FONT, _FONT_SCALE, _FONT_THICKNESS)

    # Above the box, or below if too close to the top edge
    label_y = region.y1 - _LABEL_PADDING
    if label_y - text_h - _LABEL_PADDING < 0:
        label_y = region.y2 + text_h + _LABEL_PADDING

    cv2.rectangle(
        frame,
        (region.x1, label_y - text_h - _LABEL_PADDING),
        (region.x1 + text_w + _LABEL_PADDING, label_y + _LABEL_PADDING),
        color=config.box_color,
        thickness=cv2.FILLED,
    )
    cv2.putText(
        frame,
        label,
        (region.x1 + _LABEL_PADDING // 2, label_y),
        _FONT,
        _FONT_SCALE,
        (0, 0, 0),
        _FONT_THICKNESS,
        cv2.LINE_AA,
    )


def draw_landmarks(
    frame: np.ndarray,
    landmarks: Sequence[Point],
    config: VisualizationConfig,
) -> None:
    """Draw landmark points as filled circles in place."""
    for x, y in landmarks:
        cv2.circle(
            frame,
            (int(round(x)), int(round(y))),
            config.landmark_radius,
            config.landmark_color,
            thickness=cv2.FILLED,
            lineType=cv2.LINE_AA,
        )


def draw_status(frame: np.ndarray, status: StatusMessage) -> np.ndarray:
    """Return a copy of ``frame`` with a status banner stacked on top."""
    width = max(frame.shape[1], 320) if frame.size else 480
    banner = np.zeros((_BANNER_HEIGHT, width, 3), dtype=np.uint8)
    banner[:] = _SEVERITY_COLORS[status.severity]
    cv2.putText(
        banner,
        status.text,
        (8, _BANNER_HEIGHT - 9),
        _FONT,
        _FONT_SCALE,
        (255, 255, 255),
        _FONT_THICKNESS,
        cv2.LINE_AA,
    )

    if not frame.size:
        return banner

    body = np.zeros((frame.shape[0], width, 3), dtype=np.uint8)
    body[:, :frame.shape[1]] = frame
    return np.vstack([banner, body])


def show_frame(frame: np.ndarray, status: StatusMessage) -> int:
    """Show the frame with its status banner and wait for a key press.

    Returns:
        The key code pressed.
    """
    cv2.imshow(WINDOW_NAME, draw_status(frame, status))
    return cv2.waitKey(0) & 0xFF
