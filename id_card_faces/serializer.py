"""
Serialization of run results.

Responsibility:
    Turn a RunReport into a JSON-ready dict or string for stdout.

Non-goals:
    - No file output; uploaded images and results are never persisted.
"""

import json
from typing import Optional

from id_card_faces.pipeline import RunReport


def report_to_dict(report: RunReport) -> dict:
    """Return a plain dict describing a finished run.

    Output schema:
        {
            "outcome": "rendered",
            "status": {"text": "...", "severity": "success"},
            "image": {"name": "card.jpg", "width": W, "height": H} | null,
            "face_count": N,
            "detections": [
                {"region": {...}, "landmarks": [[x, y], ... 68 points]}
            ]
        }
    """
    image: Optional[dict] = None
    if report.image is not None:
        image = {
            "name": report.image.name,
            "width": report.image.pixel_width,
            "height": report.image.pixel_height,
        }

    return {
        "outcome": report.outcome.value,
        "status": report.status.to_dict(),
        "image": image,
        "face_count": report.face_count,
        "detections": [d.to_dict() for d in report.detections],
    }


def report_to_json(report: RunReport, indent: Optional[int] = 2) -> str:
    return json.dumps(report_to_dict(report), indent=indent)
