"""
Configuration management for the ID card face detection pipeline.

Provides a layered configuration system with the following precedence
(highest to lowest):

    CLI arguments > Environment variables > YAML config file > Defaults

Design constraints:
    - The system MUST run with zero configuration (safe defaults only).
    - Missing or invalid values fail early and loudly.
    - No detection logic, I/O, or model loading belongs here.

Non-goals:
    - No dynamic reloading.
    - No database-backed or remote configuration.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Project root resolution
# ---------------------------------------------------------------------------
# Resolved relative to this file's location: id_card_faces/config.py → repo root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def get_project_root() -> Path:
    """Return the resolved project root directory."""
    return _PROJECT_ROOT


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModelConfig:
    """Model asset configuration.

    Both assets are looked up by name inside ``asset_dir``.

    Attributes:
        asset_dir: Directory holding the model assets (relative to project root).
        prototxt_name: Face locator network definition file name.
        weights_name: Face locator weights file name.
        landmark_name: Facemark LBF model file name (68-point landmarks).
        backend: Compute backend — 'cpu' or 'cuda'.
        input_size: Spatial dimensions (width, height) for the DNN input blob.
        mean_values: Per-channel mean subtraction values (BGR order).
        scale_factor: Pixel value scale factor applied during blob creation.
    """

    asset_dir: str = "models"
    prototxt_name: str = "deploy.prototxt"
    weights_name: str = "res10_300x300_ssd_iter_140000.caffemodel"
    landmark_name: str = "lbfmodel.yaml"
    backend: str = "cpu"
    input_size: Tuple[int, int] = (300, 300)
    mean_values: Tuple[float, float, float] = (104.0, 177.0, 123.0)
    scale_factor: float = 1.0


@dataclass(frozen=True)
class DetectionConfig:
    """Detection thresholds.

    Attributes:
        confidence_threshold: Minimum confidence to accept a detection.
        nms_threshold: IoU threshold for non-maximum suppression.
    """

    confidence_threshold: float = 0.5
    nms_threshold: float = 0.3


@dataclass(frozen=True)
class InputConfig:
    """Input configuration.

    Attributes:
        source: Path to the ID card image to process. None until provided
                via YAML, environment, or the command line.
    """

    source: Optional[str] = None


@dataclass(frozen=True)
class OutputConfig:
    """Output behavior configuration.

    Attributes:
        mode: Output mode(s). Supports multiple comma-separated values:
              'display', 'json'. Example: "display,json"
    """

    mode: str = "display"


@dataclass(frozen=True)
class VisualizationConfig:
    """Visualization rendering parameters.

    Attributes:
        box_color: BGR color tuple for bounding regions.
        landmark_color: BGR color tuple for landmark markers.
        thickness: Line thickness in pixels.
        landmark_radius: Radius of each landmark marker in pixels.
        show_confidence: Whether to render the confidence score label.
    """

    box_color: Tuple[int, int, int] = (0, 255, 0)
    landmark_color: Tuple[int, int, int] = (255, 128, 0)
    thickness: int = 2
    landmark_radius: int = 2
    show_confidence: bool = True


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration.

    Aggregates all sub-configurations into a single, frozen object.
    """

    model: ModelConfig = field(default_factory=ModelConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    input: InputConfig = field(default_factory=InputConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    visualization: VisualizationConfig = field(default_factory=VisualizationConfig)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

_VALID_BACKENDS = {"cpu", "cuda"}
_VALID_OUTPUT_MODES = {"display", "json"}


def _validate(config: AppConfig) -> None:
    """Validate configuration values. Raises ValueError on invalid state."""

    if config.model.backend not in _VALID_BACKENDS:
        raise ValueError(
            f"Invalid model.backend: '{config.model.backend}'. "
            f"Must be one of {_VALID_BACKENDS}."
        )

    modes = set(m.strip() for m in config.output.mode.split(','))
    invalid_modes = modes - _VALID_OUTPUT_MODES
    if invalid_modes:
        raise ValueError(
            f"Invalid output.mode(s): {invalid_modes}. "
            f"Valid modes: {_VALID_OUTPUT_MODES}. "
            f"Use comma-separated values for multiple outputs."
        )

    if not (0.0 <= config.detection.confidence_threshold <= 1.0):
        raise ValueError(
            f"detection.confidence_threshold must be in [0.0, 1.0], "
            f"got {config.detection.confidence_threshold}."
        )

    if not (0.0 <= config.detection.nms_threshold <= 1.0):
        raise ValueError(
            f"detection.nms_threshold must be in [0.0, 1.0], "
            f"got {config.detection.nms_threshold}."
        )

    if len(config.model.input_size) != 2:
        raise ValueError(
            f"model.input_size must be a (width, height) tuple, "
            f"got {config.model.input_size}."
        )

    if any(d <= 0 for d in config.model.input_size):
        raise ValueError(
            f"model.input_size dimensions must be positive, "
            f"got {config.model.input_size}."
        )

    if config.model.scale_factor <= 0:
        raise ValueError(
            f"model.scale_factor must be positive, "
            f"got {config.model.scale_factor}."
        )

    for key in ("prototxt_name", "weights_name", "landmark_name"):
        if not getattr(config.model, key):
            raise ValueError(f"model.{key} must be a non-empty asset name.")

    if config.visualization.thickness <= 0:
        raise ValueError(
            f"visualization.thickness must be positive, "
            f"got {config.visualization.thickness}."
        )

    if config.visualization.landmark_radius <= 0:
        raise ValueError(
            f"visualization.landmark_radius must be positive, "
            f"got {config.visualization.landmark_radius}."
        )


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------

def _parse_tuple(value, expected_len: int, cast_type=float):
    """Convert a list from YAML into a tuple of the expected type and length."""
    if isinstance(value, (list, tuple)):
        if len(value) != expected_len:
            raise ValueError(
                f"Expected {expected_len} values, got {len(value)}: {value}"
            )
        return tuple(cast_type(v) for v in value)
    return value


def _build_model_config(raw: dict) -> ModelConfig:
    """Build ModelConfig from a raw YAML dict."""
    kwargs = {}
    for key in ("asset_dir", "prototxt_name", "weights_name", "landmark_name"):
        if key in raw:
            kwargs[key] = str(raw[key])
    if "backend" in raw:
        kwargs["backend"] = str(raw["backend"]).lower()
    if "input_size" in raw:
        kwargs["input_size"] = _parse_tuple(raw["input_size"], 2, int)
    if "mean_values" in raw:
        kwargs["mean_values"] = _parse_tuple(raw["mean_values"], 3, float)
    if "scale_factor" in raw:
        kwargs["scale_factor"] = float(raw["scale_factor"])
    return ModelConfig(**kwargs)


def _build_detection_config(raw: dict) -> DetectionConfig:
    """Build DetectionConfig from a raw YAML dict."""
    kwargs = {}
    if "confidence_threshold" in raw:
        kwargs["confidence_threshold"] = float(raw["confidence_threshold"])
    if "nms_threshold" in raw:
        kwargs["nms_threshold"] = float(raw["nms_threshold"])
    return DetectionConfig(**kwargs)


def _build_input_config(raw: dict) -> InputConfig:
    """Build InputConfig from a raw YAML dict."""
    kwargs = {}
    if raw.get("source") is not None:
        kwargs["source"] = str(raw["source"])
    return InputConfig(**kwargs)


def _build_output_config(raw: dict) -> OutputConfig:
    """Build OutputConfig from a raw YAML dict."""
    kwargs = {}
    if "mode" in raw:
        kwargs["mode"] = str(raw["mode"]).lower()
    return OutputConfig(**kwargs)


def _build_visualization_config(raw: dict) -> VisualizationConfig:
    """Build VisualizationConfig from a raw YAML dict."""
    kwargs = {}
    if "box_color" in raw:
        kwargs["box_color"] = _parse_tuple(raw["box_color"], 3, int)
    if "landmark_color" in raw:
        kwargs["landmark_color"] = _parse_tuple(raw["landmark_color"], 3, int)
    if "thickness" in raw:
        kwargs["thickness"] = int(raw["thickness"])
    if "landmark_radius" in raw:
        kwargs["landmark_radius"] = int(raw["landmark_radius"])
    if "show_confidence" in raw:
        kwargs["show_confidence"] = bool(raw["show_confidence"])
    return VisualizationConfig(**kwargs)


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "ID_FACE_"


def _apply_env_overrides(raw: dict) -> dict:
    """Apply environment variable overrides to the raw config dict.

    Environment variables follow the pattern:
        ID_FACE_MODEL_BACKEND=cuda
        ID_FACE_DETECTION_CONFIDENCE_THRESHOLD=0.7
    """
    env_map = {
        f"{_ENV_PREFIX}MODEL_ASSET_DIR": ("model", "asset_dir"),
        f"{_ENV_PREFIX}MODEL_BACKEND": ("model", "backend"),
        f"{_ENV_PREFIX}MODEL_SCALE_FACTOR": ("model", "scale_factor"),
        f"{_ENV_PREFIX}DETECTION_CONFIDENCE_THRESHOLD": ("detection", "confidence_threshold"),
        f"{_ENV_PREFIX}DETECTION_NMS_THRESHOLD": ("detection", "nms_threshold"),
        f"{_ENV_PREFIX}INPUT_SOURCE": ("input", "source"),
        f"{_ENV_PREFIX}OUTPUT_MODE": ("output", "mode"),
    }

    for env_var, (section, key) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            raw.setdefault(section, {})[key] = value
            logger.debug("Config override from env: %s=%s", env_var, value)

    return raw


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------

def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load and validate application configuration.

    Precedence (highest → lowest):
        Environment variables > YAML file > Hard-coded defaults

    Args:
        config_path: Path to a YAML configuration file. If None,
                     the system runs entirely on defaults (safe for
                     programmatic usage).

    Returns:
        A validated, frozen AppConfig instance.

    Raises:
        FileNotFoundError: If config_path is provided but does not exist.
        ValueError: If any configuration value is invalid.
        yaml.YAMLError: If the YAML file is malformed.
    """
    raw: dict = {}

    # --- Layer 1: YAML file ---
    if config_path is not None:
        resolved = Path(config_path)
        if not resolved.is_absolute():
            resolved = _PROJECT_ROOT / resolved

        if not resolved.is_file():
            raise FileNotFoundError(
                f"Configuration file not found: {resolved}. "
                f"Provide a valid path or omit to use defaults."
            )

        logger.info("Loading config from: %s", resolved)
        with open(resolved, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    # --- Layer 2: Environment variable overrides ---
    raw = _apply_env_overrides(raw)

    # --- Build typed configs ---
    config = AppConfig(
        model=_build_model_config(raw.get("model", {})),
        detection=_build_detection_config(raw.get("detection", {})),
        input=_build_input_config(raw.get("input", {})),
        output=_build_output_config(raw.get("output", {})),
        visualization=_build_visualization_config(raw.get("visualization", {})),
    )

    # --- Validate ---
    _validate(config)

    logger.debug("Configuration loaded: %s", config)
    return config
