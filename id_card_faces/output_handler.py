"""
Output handling for the CLI.

Responsibility:
    Present a finished run through the configured sinks:
        - 'display': the canvas in an OpenCV window under a status
          banner coloured by severity.
        - 'json': a JSON summary of the run on stdout.
    Multiple modes may be active at once.

Non-goals:
    - No detection logic.
    - Nothing is written to disk.
"""

import logging
import sys
from typing import Set, TextIO

import cv2
import numpy as np

from id_card_faces.config import AppConfig
from id_card_faces.pipeline import RunReport
from id_card_faces.serializer import report_to_json
from id_card_faces.status import StatusMessage
from id_card_faces.visualizer import show_frame

logger = logging.getLogger(__name__)


class OutputHandler:
    """Routes a run's result to the configured output sinks.

    Usage:
        handler = OutputHandler(config)
        handler.publish(report, canvas.snapshot())
        handler.finalize()
    """

    def __init__(self, config: AppConfig, stream: TextIO = sys.stdout) -> None:
        self._config = config
        self._stream = stream
        self._modes: Set[str] = set(m.strip() for m in config.output.mode.split(','))
        self._window_open = False

        logger.info("OutputHandler initialized: modes=%s", self._modes)

    def publish(self, report: RunReport, frame: np.ndarray) -> None:
        """Emit one finished run to every active sink."""
        if 'json' in self._modes:
            self._stream.write(report_to_json(report) + "\n")
            self._stream.flush()

        if 'display' in self._modes:
            self.show_status(frame, report.status)

    def show_status(self, frame: np.ndarray, status: StatusMessage) -> None:
        """Show a frame under its status banner until a key is pressed."""
        if 'display' not in self._modes:
            return
        self._window_open = True
        show_frame(frame, status)

    def finalize(self) -> None:
        """Release any windows."""
        if self._window_open:
            cv2.destroyAllWindows()
            self._window_open = False
        logger.info("OutputHandler finalized.")
