"""
ID Card Face Detection CLI Entrypoint.

Responsibility:
    Parse command-line arguments, configure the application, load the
    models, run one ID card image through the pipeline and present the
    result.

Usage:
    python main.py --source card.jpg
    python main.py --source card.png --output-mode json
    python main.py --config my_config.yaml --source card.jpg

Exit status is 0 unless configuration, model loading or processing
ended in an error status.

This module is the executable entry point. It should not be imported
by other modules.
"""

import argparse
import asyncio
import logging
import sys

# Configure logging before importing local modules
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("main")

from id_card_faces.canvas import Canvas
from id_card_faces.config import AppConfig, load_config
from id_card_faces.input_handler import Upload
from id_card_faces.output_handler import OutputHandler
from id_card_faces.pipeline import Pipeline, RunReport, RunOutcome
from id_card_faces.status import Severity


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="ID Card Face Detection — faces and 68-point landmarks",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--source",
        type=str,
        help="Path to the ID card image to process.",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to YAML configuration file.",
    )
    parser.add_argument(
        "--confidence",
        type=float,
        help="Detection confidence threshold (0.0 - 1.0). Overrides config.",
    )
    parser.add_argument(
        "--backend",
        type=str,
        choices=["cpu", "cuda"],
        help="Compute backend preference. Overrides config.",
    )
    parser.add_argument(
        "--asset-dir",
        type=str,
        help="Directory holding the model assets. Overrides config.",
    )
    parser.add_argument(
        "--output-mode",
        type=str,
        help="Output mode(s), comma-separated: display, json. Overrides config.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )

    return parser.parse_args()


async def run(config: AppConfig, output_handler: OutputHandler) -> int:
    """Load the models, process the configured image, publish the result."""
    canvas = Canvas(config.visualization)
    pipeline = Pipeline(config, surface=canvas)

    loaded = await pipeline.start()
    if not loaded.is_ok:
        report = RunReport(outcome=RunOutcome.NOT_READY, status=pipeline.status)
        output_handler.publish(report, canvas.snapshot())
        return 1

    report = await pipeline.handle_upload(Upload.from_path(config.input.source))
    output_handler.publish(report, canvas.snapshot())

    if report.outcome is RunOutcome.RENDERED:
        logger.info("Run finished with %d face(s).", report.face_count)
    return 1 if report.status.severity is Severity.ERROR else 0


def main() -> int:
    """Main execution."""
    args = parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # 1. Load Configuration (CLI args > ENV > YAML > Defaults)
    try:
        config = load_config(args.config)

        # We must use object.__setattr__ because the dataclass is frozen
        if args.source is not None:
            object.__setattr__(config.input, "source", args.source)

        if args.confidence is not None:
            object.__setattr__(config.detection, "confidence_threshold", args.confidence)

        if args.backend is not None:
            object.__setattr__(config.model, "backend", args.backend)

        if args.asset_dir is not None:
            object.__setattr__(config.model, "asset_dir", args.asset_dir)

        if args.output_mode is not None:
            object.__setattr__(config.output, "mode", args.output_mode)

        if config.input.source is None:
            raise ValueError("No input image. Pass --source or set input.source.")

        logger.info("Configuration active for this run.")

    except Exception as e:
        logger.error("Configuration error: %s", e)
        return 1

    # 2. Run
    output_handler = OutputHandler(config)
    try:
        return asyncio.run(run(config, output_handler))
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
        return 1
    finally:
        output_handler.finalize()


if __name__ == "__main__":
    sys.exit(main())
