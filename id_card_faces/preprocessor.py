"""
Preprocessing for the face locator.

Converts a decoded BGR card image into the 4D blob the SSD face locator
consumes, via cv2.dnn.blobFromImage.

Hard-coded:
    - Channel order is BGR (mandated by the Caffe model).
    - swapRB is False (cv2.imdecode already yields BGR).
"""

import numpy as np
import cv2

from id_card_faces.config import ModelConfig


def preprocess(image: np.ndarray, config: ModelConfig) -> np.ndarray:
    """Convert a BGR image into a DNN input blob.

    Args:
        image: Decoded image as a BGR numpy array (H, W, 3).
        config: ModelConfig providing input_size, scale_factor, and mean_values.

    Returns:
        A float32 array of shape (1, 3, H, W) for net.setInput().

    Raises:
        ValueError: If the image is None or empty.
    """
    if image is None or image.size == 0:
        raise ValueError(
            "Cannot preprocess an empty image. "
            "The uploaded file decoded to zero pixels."
        )

    return cv2.dnn.blobFromImage(
        image=image,
        scalefactor=config.scale_factor,
        size=config.input_size,
        mean=config.mean_values,
        swapRB=False,
        crop=False,
    )
