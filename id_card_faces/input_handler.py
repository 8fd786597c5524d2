"""
Image ingestion for the ID card pipeline.

Responsibility:
    Turn a user-selected file into a decoded in-memory BGR image with
    known pixel dimensions. Decoding is authoritative: there is no
    extension or MIME allow-list, anything cv2.imdecode rejects is a
    decode failure.

Non-goals:
    - No detection, drawing, or output writing.
    - No batch or directory input; one upload per run.
    - No persistence of uploaded data.
"""

import asyncio
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import cv2
import numpy as np

from id_card_faces.session import Outcome, RunState, Session
from id_card_faces.status import (
    WAIT_FOR_MODELS,
    Severity,
    describe_error,
    processing_error,
)

logger = logging.getLogger(__name__)

NO_FILE_SELECTED = "No file selected"


@dataclass(frozen=True)
class Upload:
    """A single file selection.

    Exactly one of ``data`` or ``path`` is expected; bytes are read
    lazily from ``path`` during ingestion so a missing file surfaces as
    a processing error rather than at selection time.
    """

    name: str
    data: Optional[bytes] = None
    path: Optional[Path] = None
    content_type: Optional[str] = None

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "Upload":
        path = Path(path)
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(name=path.name, path=path, content_type=content_type)

    def read_bytes(self) -> bytes:
        if self.data is not None:
            return self.data
        if self.path is None:
            raise ValueError(f"Upload '{self.name}' carries no data.")
        return self.path.read_bytes()


@dataclass(frozen=True)
class UploadedImage:
    """A decoded upload.

    Attributes:
        name: Original file name.
        pixels: BGR pixel array of shape (pixel_height, pixel_width, 3).
    """

    name: str
    pixels: np.ndarray

    @property
    def pixel_width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def pixel_height(self) -> int:
        return int(self.pixels.shape[0])


def decode_image(upload: Upload) -> UploadedImage:
    """Read and decode an upload into a 3-channel BGR image.

    Raises:
        OSError: If the backing file cannot be read.
        ValueError: If the data is empty or not a decodable image.
    """
    if upload.content_type and not upload.content_type.startswith("image/"):
        logger.debug(
            "Upload '%s' has content type %s; decoding anyway.",
            upload.name, upload.content_type,
        )

    data = upload.read_bytes()
    if not data:
        raise ValueError(f"'{upload.name}' is empty")

    pixels = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
    if pixels is None or pixels.size == 0:
        raise ValueError(f"'{upload.name}' could not be decoded as an image")

    image = UploadedImage(name=upload.name, pixels=pixels)
    logger.info(
        "Decoded '%s' (%dx%d).", upload.name, image.pixel_width, image.pixel_height
    )
    return image


async def ingest(session: Session, upload: Optional[Upload]) -> Outcome[UploadedImage]:
    """Gate on readiness, then decode the upload off the event loop.

    Returns:
        ok with the UploadedImage; rejected when models are not ready
        or nothing was selected; failed with the cause when reading or
        decoding raised.
    """
    if not session.ready:
        session.status.update(Severity.WARNING, WAIT_FOR_MODELS)
        return Outcome.rejected(WAIT_FOR_MODELS)

    if upload is None:
        logger.debug("Upload event without a file; ignoring.")
        return Outcome.rejected(NO_FILE_SELECTED)

    session.begin_run()
    session.image = None
    session.detections = None

    loop = asyncio.get_running_loop()
    try:
        image = await loop.run_in_executor(None, decode_image, upload)
    except Exception as e:
        logger.exception("Failed to ingest '%s': %s", upload.name, e)
        session.move_run(RunState.FAILED)
        cause = describe_error(e)
        session.status.update(Severity.ERROR, processing_error(cause))
        return Outcome.failed(cause)

    session.image = image
    return Outcome.ok(image)
