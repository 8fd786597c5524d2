"""
Status reporting for the pipeline.

A single mutable slot holding the latest StatusMessage. Every phase
boundary overwrites it; nothing is appended or retained. Each update is
mirrored to the module logger and, when set, to one presentation
listener.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Severity(enum.Enum):
    """Presentation class of a status message."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


_LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.SUCCESS: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}

# Message texts shown to the user
LOADING_MODELS = "Loading models..."
LOADING_FROM_FILES = "Loading models from local files..."
MODELS_LOADED = "All models loaded successfully"
WAIT_FOR_MODELS = "Please wait for models to load..."
DETECTING_FACES = "Detecting faces..."
NO_FACES_DETECTED = "No faces detected in the ID card"


def faces_detected(count: int) -> str:
    return f"Detected {count} face(s) in the ID card"


def load_error(cause: str) -> str:
    return f"Error loading models: {cause}"


def processing_error(cause: str) -> str:
    return f"Error processing image: {cause}"


def describe_error(exc: BaseException) -> str:
    """Return the user-facing cause text for an exception."""
    return str(exc) or "Unknown error"


@dataclass(frozen=True)
class StatusMessage:
    text: str
    severity: Severity

    def to_dict(self) -> dict:
        return {"text": self.text, "severity": self.severity.value}


StatusListener = Callable[[StatusMessage], None]


class StatusReporter:
    """Single-slot holder of the pipeline's current status.

    Usage:
        reporter = StatusReporter()
        reporter.update(Severity.INFO, "Detecting faces...")
        reporter.current.text  # "Detecting faces..."
    """

    def __init__(
        self,
        initial: Optional[StatusMessage] = None,
        listener: Optional[StatusListener] = None,
    ) -> None:
        self._current = initial or StatusMessage(LOADING_MODELS, Severity.INFO)
        self._listener = listener

    @property
    def current(self) -> StatusMessage:
        """The latest status message."""
        return self._current

    def set_listener(self, listener: Optional[StatusListener]) -> None:
        """Replace the presentation listener (None to detach)."""
        self._listener = listener

    def update(self, severity: Severity, text: str) -> StatusMessage:
        """Overwrite the slot and notify the listener.

        Returns:
            The new current StatusMessage.
        """
        message = StatusMessage(text=text, severity=severity)
        self._current = message
        logger.log(_LOG_LEVELS[severity], "Status [%s]: %s", severity.value, text)
        if self._listener is not None:
            self._listener(message)
        return message
