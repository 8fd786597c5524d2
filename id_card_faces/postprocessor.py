"""
Postprocessing for the face locator.

Responsibility:
    Parse the raw SSD output tensor into face Regions: confidence
    thresholding, coordinate un-normalization, boundary clamping,
    degenerate-box removal and non-maximum suppression.

Hard-coded:
    - SSD output tensor layout: [1, 1, N, 7] where each row is
      [batch_id, class_id, confidence, x1, y1, x2, y2] with
      coordinates normalized to [0, 1].
"""

from typing import List

import cv2
import numpy as np

from id_card_faces.detection import Region


def postprocess(
    network_output: np.ndarray,
    frame_width: int,
    frame_height: int,
    confidence_threshold: float,
    nms_threshold: float = 0.3,
) -> List[Region]:
    """Parse raw SSD output into face regions.

    Args:
        network_output: Raw output from net.forward(), shape (1, 1, N, 7).
        frame_width: Image width in pixels (for coordinate mapping).
        frame_height: Image height in pixels (for coordinate mapping).
        confidence_threshold: Minimum confidence to accept a region.
        nms_threshold: IoU above which the weaker of two regions is dropped.

    Returns:
        Regions sorted by confidence (descending). Empty list if none
        survive.
    """
    candidates: List[Region] = []

    raw = network_output[0, 0]  # Shape: (N, 7)

    for i in range(raw.shape[0]):
        confidence = float(raw[i, 2])

        if confidence < confidence_threshold:
            continue

        x1 = int(raw[i, 3] * frame_width)
        y1 = int(raw[i, 4] * frame_height)
        x2 = int(raw[i, 5] * frame_width)
        y2 = int(raw[i, 6] * frame_height)

        x1 = max(0, min(x1, frame_width - 1))
        y1 = max(0, min(y1, frame_height - 1))
        x2 = max(0, min(x2, frame_width - 1))
        y2 = max(0, min(y2, frame_height - 1))

        if x2 <= x1 or y2 <= y1:
            continue

        candidates.append(Region(
            x1=x1, y1=y1, x2=x2, y2=y2,
            confidence=confidence,
        ))

    regions = suppress_overlaps(candidates, confidence_threshold, nms_threshold)
    regions.sort(key=lambda r: r.confidence, reverse=True)
    return regions


def suppress_overlaps(
    regions: List[Region],
    confidence_threshold: float,
    nms_threshold: float,
) -> List[Region]:
    """Apply non-maximum suppression with cv2.dnn.NMSBoxes."""
    if len(regions) < 2:
        return list(regions)

    boxes = [list(r.as_xywh()) for r in regions]
    scores = [r.confidence for r in regions]
    keep = cv2.dnn.NMSBoxes(boxes, scores, confidence_threshold, nms_threshold)

    # Older OpenCV builds return an (N, 1) array, newer ones a flat one
    indices = np.array(keep, dtype=np.int64).reshape(-1)
    return [regions[i] for i in sorted(indices.tolist())]
