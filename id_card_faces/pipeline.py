"""
Pipeline controller — the image-to-annotation sequence.

Public contract:
    pipeline = Pipeline(config)
    await pipeline.start()                      # load both model assets
    report = await pipeline.handle_upload(upload)

Each upload is one run: readiness gate -> decode -> plain image drawn ->
detect -> overlay (or the no-faces warning). Stages execute strictly in
sequence; every stage boundary overwrites the session status. No stage
failure escapes handle_upload(); it comes back as a RunReport.

Concurrency policy:
    Only one run is active at a time. An upload arriving while another
    run is decoding or detecting is rejected as BUSY: it is not decoded,
    and neither the surface nor the status slot is touched.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from id_card_faces.canvas import Canvas, DrawingSurface, render_image, render_overlay
from id_card_faces.config import AppConfig, load_config
from id_card_faces.detection import Detection
from id_card_faces.input_handler import (
    NO_FILE_SELECTED,
    Upload,
    UploadedImage,
    ingest,
)
from id_card_faces.model_loader import (
    AssetLoaders,
    EngineFactory,
    build_engine,
    load_models,
)
from id_card_faces.session import ModelState, Outcome, OutcomeKind, RunState, Session
from id_card_faces.status import (
    DETECTING_FACES,
    NO_FACES_DETECTED,
    Severity,
    StatusMessage,
    describe_error,
    faces_detected,
    processing_error,
)

logger = logging.getLogger(__name__)


class RunOutcome(enum.Enum):
    NOT_READY = "not_ready"
    BUSY = "busy"
    NO_FILE = "no_file"
    FAILED = "failed"
    NO_FACES = "no_faces"
    RENDERED = "rendered"


@dataclass(frozen=True)
class RunReport:
    """What one handle_upload() call ended with."""

    outcome: RunOutcome
    status: StatusMessage
    image: Optional[UploadedImage] = None
    detections: Tuple[Detection, ...] = ()

    @property
    def face_count(self) -> int:
        return len(self.detections)


async def detect(session: Session, image: UploadedImage) -> Outcome[List[Detection]]:
    """Run the engine on the decoded image off the event loop.

    The returned order is the engine's own; callers rely on the count only.
    """
    session.move_run(RunState.DETECTING)
    session.status.update(Severity.INFO, DETECTING_FACES)

    loop = asyncio.get_running_loop()
    try:
        found = await loop.run_in_executor(None, session.engine.detect_all, image.pixels)
        detections = list(found)
    except Exception as e:
        logger.exception("Detection failed for '%s': %s", image.name, e)
        session.move_run(RunState.FAILED)
        cause = describe_error(e)
        session.status.update(Severity.ERROR, processing_error(cause))
        return Outcome.failed(cause)

    session.detections = detections
    logger.info("Engine returned %d detection(s) for '%s'.", len(detections), image.name)
    return Outcome.ok(detections)


class Pipeline:
    """Owns the session and the drawing surface for one process.

    Usage:
        pipeline = Pipeline()                         # safe defaults
        await pipeline.start()
        report = await pipeline.handle_upload(Upload.from_path("card.jpg"))
        report.status.text   # "Detected 1 face(s) in the ID card"
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        session: Optional[Session] = None,
        surface: Optional[DrawingSurface] = None,
        loaders: Optional[AssetLoaders] = None,
        engine_factory: EngineFactory = build_engine,
    ) -> None:
        if config is None:
            config = load_config()

        self._config = config
        self._session = session or Session()
        self._surface = surface if surface is not None else Canvas(config.visualization)
        self._loaders = loaders
        self._engine_factory = engine_factory

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def session(self) -> Session:
        return self._session

    @property
    def surface(self) -> DrawingSurface:
        return self._surface

    @property
    def status(self) -> StatusMessage:
        return self._session.status.current

    @property
    def ready(self) -> bool:
        return self._session.ready

    async def start(self) -> Outcome:
        """Load the model assets. Only the first call does anything."""
        if self._session.model_state is not ModelState.UNLOADED:
            logger.warning(
                "Model loading already %s; no reload path.",
                self._session.model_state.value,
            )
            return Outcome.rejected(self._session.model_state.value)

        return await load_models(
            self._session,
            self._config,
            loaders=self._loaders,
            engine_factory=self._engine_factory,
        )

    async def handle_upload(self, upload: Optional[Upload]) -> RunReport:
        """Run one upload through the pipeline.

        Never raises for stage failures; inspect the returned report.
        """
        session = self._session

        if session.run_active:
            logger.warning(
                "Upload '%s' rejected: a run is already %s.",
                upload.name if upload else None,
                session.run_state.value,
            )
            return self._report(RunOutcome.BUSY)

        intake = await ingest(session, upload)
        if intake.kind is OutcomeKind.REJECTED:
            outcome = RunOutcome.NO_FILE if intake.reason == NO_FILE_SELECTED else RunOutcome.NOT_READY
            return self._report(outcome)
        if not intake.is_ok:
            return self._report(RunOutcome.FAILED)

        image = intake.value
        try:
            return await self._process(image)
        except Exception as e:
            return self._fail(image, e)

    async def _process(self, image: UploadedImage) -> RunReport:
        session = self._session
        render_image(self._surface, image)

        found = await detect(session, image)
        if not found.is_ok:
            return self._report(RunOutcome.FAILED, image)

        detections = found.value
        if not detections:
            session.move_run(RunState.NO_FACES)
            session.status.update(Severity.WARNING, NO_FACES_DETECTED)
            return self._report(RunOutcome.NO_FACES, image)

        try:
            render_overlay(self._surface, image, detections)
        except Exception:
            # Leave the plain image rather than a partial overlay
            render_image(self._surface, image)
            raise

        session.move_run(RunState.RENDERED)
        session.status.update(Severity.SUCCESS, faces_detected(len(detections)))
        return self._report(RunOutcome.RENDERED, image, detections)

    def _fail(self, image: UploadedImage, exc: Exception) -> RunReport:
        logger.exception("Rendering failed for '%s': %s", image.name, exc)
        if self._session.run_active:
            self._session.move_run(RunState.FAILED)
        self._session.status.update(Severity.ERROR, processing_error(describe_error(exc)))
        return self._report(RunOutcome.FAILED, image)

    def _report(
        self,
        outcome: RunOutcome,
        image: Optional[UploadedImage] = None,
        detections: Optional[List[Detection]] = None,
    ) -> RunReport:
        return RunReport(
            outcome=outcome,
            status=self._session.status.current,
            image=image,
            detections=tuple(detections or ()),
        )
