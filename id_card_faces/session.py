"""
Session state for the image-to-annotation pipeline.

Responsibility:
    Hold the process-wide state the stages share: model readiness, the
    status slot, the current run's state, the decoded image and its
    detections. A Session is created once at startup and threaded
    explicitly through every stage function.

State machines:
    Model:  UNLOADED -> LOADING -> {READY, LOAD_FAILED}
    Run:    IDLE -> DECODING -> DETECTING -> {NO_FACES, RENDERED, FAILED}
            DECODING -> FAILED
            any terminal run state -> IDLE (next upload)

    READY and LOAD_FAILED are final. Illegal transitions raise
    RuntimeError; they indicate a wiring bug, not a user error.
"""

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, List, Optional, TypeVar

from id_card_faces.detection import Detection
from id_card_faces.status import StatusReporter

if TYPE_CHECKING:
    from id_card_faces.engine import DetectionEngine
    from id_card_faces.input_handler import UploadedImage

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ModelState(enum.Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    LOAD_FAILED = "load_failed"


class RunState(enum.Enum):
    IDLE = "idle"
    DECODING = "decoding"
    DETECTING = "detecting"
    NO_FACES = "no_faces"
    RENDERED = "rendered"
    FAILED = "failed"


_MODEL_TRANSITIONS = {
    ModelState.UNLOADED: {ModelState.LOADING},
    ModelState.LOADING: {ModelState.READY, ModelState.LOAD_FAILED},
    ModelState.READY: set(),
    ModelState.LOAD_FAILED: set(),
}

_RUN_TRANSITIONS = {
    RunState.IDLE: {RunState.DECODING},
    RunState.DECODING: {RunState.DETECTING, RunState.FAILED},
    RunState.DETECTING: {RunState.NO_FACES, RunState.RENDERED, RunState.FAILED},
    RunState.NO_FACES: {RunState.IDLE},
    RunState.RENDERED: {RunState.IDLE},
    RunState.FAILED: {RunState.IDLE},
}

ACTIVE_RUN_STATES = frozenset({RunState.DECODING, RunState.DETECTING})


class OutcomeKind(enum.Enum):
    OK = "ok"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of one pipeline stage.

    Expected conditions (not ready, nothing selected) are REJECTED;
    caught exceptions are FAILED with their cause text. Neither raises.
    """

    kind: OutcomeKind
    value: Optional[T] = None
    reason: str = ""

    @classmethod
    def ok(cls, value: Optional[T] = None) -> "Outcome[T]":
        return cls(OutcomeKind.OK, value=value)

    @classmethod
    def rejected(cls, reason: str) -> "Outcome[T]":
        return cls(OutcomeKind.REJECTED, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> "Outcome[T]":
        return cls(OutcomeKind.FAILED, reason=reason)

    @property
    def is_ok(self) -> bool:
        return self.kind is OutcomeKind.OK


class Session:
    """Explicit context object shared by the pipeline stages.

    Readiness is all-or-nothing: it becomes True exactly once, when
    mark_ready() hands over a fully constructed engine, and is never
    reset afterwards.
    """

    def __init__(self, status: Optional[StatusReporter] = None) -> None:
        self.status = status or StatusReporter()
        self._model_state = ModelState.UNLOADED
        self._run_state = RunState.IDLE
        self._engine: Optional["DetectionEngine"] = None
        self.image: Optional["UploadedImage"] = None
        self.detections: Optional[List[Detection]] = None

    # -- model -------------------------------------------------------------

    @property
    def model_state(self) -> ModelState:
        return self._model_state

    @property
    def ready(self) -> bool:
        """ModelReadiness: True only once both assets are loaded."""
        return self._model_state is ModelState.READY

    @property
    def engine(self) -> "DetectionEngine":
        """The loaded detection engine.

        Raises:
            RuntimeError: If accessed before the session is ready.
        """
        if self._engine is None:
            raise RuntimeError("Detection engine requested before models are ready.")
        return self._engine

    def begin_loading(self) -> None:
        self._move_model(ModelState.LOADING)

    def mark_ready(self, engine: "DetectionEngine") -> None:
        self._move_model(ModelState.READY)
        self._engine = engine

    def mark_load_failed(self) -> None:
        self._move_model(ModelState.LOAD_FAILED)

    def _move_model(self, target: ModelState) -> None:
        if target not in _MODEL_TRANSITIONS[self._model_state]:
            raise RuntimeError(
                f"Illegal model state transition: "
                f"{self._model_state.value} -> {target.value}"
            )
        logger.debug("Model state: %s -> %s", self._model_state.value, target.value)
        self._model_state = target

    # -- run ---------------------------------------------------------------

    @property
    def run_state(self) -> RunState:
        return self._run_state

    @property
    def run_active(self) -> bool:
        return self._run_state in ACTIVE_RUN_STATES

    def begin_run(self) -> None:
        """Reset to IDLE and enter DECODING for a new upload."""
        if self._run_state is not RunState.IDLE:
            self.move_run(RunState.IDLE)
        self.move_run(RunState.DECODING)

    def move_run(self, target: RunState) -> None:
        if target not in _RUN_TRANSITIONS[self._run_state]:
            raise RuntimeError(
                f"Illegal run state transition: "
                f"{self._run_state.value} -> {target.value}"
            )
        logger.debug("Run state: %s -> %s", self._run_state.value, target.value)
        self._run_state = target
