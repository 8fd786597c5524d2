"""
ID card face detection — faces and 68-point landmarks overlaid on an
uploaded ID card image.

Public API:
    - Pipeline: load models once, then run one upload at a time.
    - Upload: a single file selection (bytes or a path).
    - Detection / Region: one located face and its landmarks.
    - StatusMessage / Severity: the user-visible status slot.
    - DetectionEngine: protocol for pluggable detection backends.

Usage:
    from id_card_faces import Pipeline, Upload

    pipeline = Pipeline()
    await pipeline.start()
    report = await pipeline.handle_upload(Upload.from_path("card.jpg"))
"""

from id_card_faces.detection import LANDMARK_COUNT, Detection, Region
from id_card_faces.engine import DetectionEngine
from id_card_faces.input_handler import Upload, UploadedImage
from id_card_faces.pipeline import Pipeline, RunOutcome, RunReport
from id_card_faces.status import Severity, StatusMessage

__all__ = [
    "LANDMARK_COUNT",
    "Detection",
    "DetectionEngine",
    "Pipeline",
    "Region",
    "RunOutcome",
    "RunReport",
    "Severity",
    "StatusMessage",
    "Upload",
    "UploadedImage",
]
