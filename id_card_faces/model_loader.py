"""
Model loading for the ID card face pipeline.

Responsibility:
    Resolve the two named model assets inside the configured asset
    directory, load them, and mark the session ready once both loaded
    and the engine was built.

Non-goals:
    - No automatic model downloading.
    - No fallback to alternative models.
    - No retry: a failed load leaves the session unready for good.

Failure behavior:
    - Missing asset files raise FileNotFoundError with the exact
      expected path; load_models() turns any failure into the
      "Error loading models: <cause>" status.
    - Incompatible backend raises RuntimeError.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

import cv2

from id_card_faces.config import AppConfig, ModelConfig, get_project_root
from id_card_faces.engine import DetectionEngine, ModelAssets, OpenCVEngine
from id_card_faces.session import Outcome, Session
from id_card_faces.status import (
    LOADING_FROM_FILES,
    MODELS_LOADED,
    Severity,
    describe_error,
    load_error,
)

logger = logging.getLogger(__name__)

AssetLoader = Callable[[ModelConfig], Any]
EngineFactory = Callable[[ModelAssets, AppConfig], DetectionEngine]


def resolve_asset(config: ModelConfig, name: str) -> Path:
    """Return the path of a named asset inside the asset directory.

    Raises:
        FileNotFoundError: If the asset does not exist.
    """
    asset_dir = Path(config.asset_dir)
    if not asset_dir.is_absolute():
        asset_dir = get_project_root() / asset_dir

    path = asset_dir / name
    if not path.is_file():
        raise FileNotFoundError(
            f"Model asset '{name}' not found.\n"
            f"  Expected: {path}\n"
            f"  Place the file there or update 'model.asset_dir' in your config."
        )
    return path


def load_face_locator(config: ModelConfig) -> cv2.dnn.Net:
    """Load and configure the SSD face locator.

    Raises:
        FileNotFoundError: If prototxt or weights file does not exist.
        RuntimeError: If the requested backend is unavailable.
    """
    prototxt = resolve_asset(config, config.prototxt_name)
    weights = resolve_asset(config, config.weights_name)

    logger.info("Loading face locator: prototxt=%s, weights=%s", prototxt, weights)
    net = cv2.dnn.readNetFromCaffe(str(prototxt), str(weights))

    if config.backend == "cuda":
        logger.info("Setting CUDA backend and target.")
        try:
            net.setPreferableBackend(cv2.dnn.DNN_BACKEND_CUDA)
            net.setPreferableTarget(cv2.dnn.DNN_TARGET_CUDA)
        except cv2.error as e:
            raise RuntimeError(
                f"Failed to set CUDA backend. Ensure OpenCV was built with "
                f"CUDA support.\n"
                f"  OpenCV error: {e}"
            ) from e
    else:
        net.setPreferableBackend(cv2.dnn.DNN_BACKEND_OPENCV)
        net.setPreferableTarget(cv2.dnn.DNN_TARGET_CPU)

    return net


def load_landmarker(config: ModelConfig):
    """Load the 68-point Facemark LBF landmark model.

    Raises:
        FileNotFoundError: If the model file does not exist.
        RuntimeError: If OpenCV was installed without the contrib modules.
    """
    path = resolve_asset(config, config.landmark_name)

    if not hasattr(cv2, "face"):
        raise RuntimeError(
            "cv2.face is unavailable. Install opencv-contrib-python "
            "to get the Facemark landmark API."
        )

    logger.info("Loading landmark model: %s", path)
    landmarker = cv2.face.createFacemarkLBF()
    landmarker.loadModel(str(path))
    return landmarker


@dataclass(frozen=True)
class AssetLoaders:
    """The loader callables for the two assets, swappable in tests."""

    face_locator: AssetLoader = load_face_locator
    landmarker: AssetLoader = load_landmarker


def build_engine(assets: ModelAssets, config: AppConfig) -> DetectionEngine:
    return OpenCVEngine(assets, config.model, config.detection)


async def load_models(
    session: Session,
    config: AppConfig,
    loaders: Optional[AssetLoaders] = None,
    engine_factory: EngineFactory = build_engine,
) -> Outcome[DetectionEngine]:
    """Load both assets off the event loop and mark the session ready.

    The face locator loads first, then the landmark model, then the
    engine is built. Readiness flips only after all three succeed.
    Any failure is caught here and reported; nothing is retried.
    """
    loaders = loaders or AssetLoaders()

    session.begin_loading()
    session.status.update(Severity.INFO, LOADING_FROM_FILES)

    loop = asyncio.get_running_loop()
    try:
        face_locator = await loop.run_in_executor(None, loaders.face_locator, config.model)
        landmarker = await loop.run_in_executor(None, loaders.landmarker, config.model)
        engine = engine_factory(ModelAssets(face_locator, landmarker), config)
    except Exception as e:
        logger.exception("Model loading failed: %s", e)
        session.mark_load_failed()
        cause = describe_error(e)
        session.status.update(Severity.ERROR, load_error(cause))
        return Outcome.failed(cause)

    session.mark_ready(engine)
    session.status.update(Severity.SUCCESS, MODELS_LOADED)
    return Outcome.ok(engine)
