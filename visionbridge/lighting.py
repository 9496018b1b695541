"""
Lighting Assessment Module
==========================

Estimates scene brightness from a downsampled copy of the camera image and
maps it to a lighting category. The category drives the adaptive confidence
threshold of the detection filter: the darker the scene, the more permissive
the filter, trading precision for recall.

References:
- OpenCV resize: https://docs.opencv.org/4.x/da/d54/group__imgproc__transform.html
"""

import logging
from typing import Optional, Tuple

import cv2
import numpy as np

from .config import EngineConfig
from .data_model import LightingCondition

logger = logging.getLogger(__name__)

# Brightness boundaries on the 0-255 scale
POOR_BRIGHTNESS_LIMIT = 50.0
LOW_BRIGHTNESS_LIMIT = 100.0

DEFAULT_SAMPLE_SIZE = (100, 100)


def compute_brightness(
    image: np.ndarray,
    sample_size: Optional[Tuple[int, int]] = DEFAULT_SAMPLE_SIZE
) -> float:
    """
    Average per-pixel brightness, (R + G + B) / 3 averaged over all pixels.

    Args:
        image: Decoded image, HxWx3 (BGR or RGB), HxWx4 or HxW grayscale
        sample_size: (width, height) to downsample to first, None to use
            every pixel

    Returns:
        Mean brightness in [0, 255]

    Raises:
        ValueError: If the image is empty or has an unsupported shape
    """
    if image is None or image.size == 0:
        raise ValueError("Cannot compute brightness of an empty image")
    if image.ndim not in (2, 3):
        raise ValueError(f"Unsupported image shape: {image.shape}")

    sample = image
    if sample_size is not None and image.shape[:2] != (sample_size[1], sample_size[0]):
        sample = cv2.resize(image, sample_size, interpolation=cv2.INTER_AREA)

    if sample.ndim == 3:
        # Alpha does not contribute to brightness
        sample = sample[:, :, :3]
        return float(np.mean(sample.astype(np.float64).mean(axis=2)))
    return float(np.mean(sample, dtype=np.float64))


def classify_brightness(brightness: float) -> LightingCondition:
    """
    Map a mean brightness to a lighting category.

    < 50 -> POOR, 50 <= b < 100 -> LOW, >= 100 -> GOOD
    """
    if brightness < POOR_BRIGHTNESS_LIMIT:
        return LightingCondition.POOR
    if brightness < LOW_BRIGHTNESS_LIMIT:
        return LightingCondition.LOW
    return LightingCondition.GOOD


def assess_lighting(
    image: np.ndarray,
    sample_size: Optional[Tuple[int, int]] = DEFAULT_SAMPLE_SIZE
) -> LightingCondition:
    """
    Assess the lighting condition of an image.

    Sampling failures default to GOOD, which only keeps the detection
    threshold at its strictest value.
    """
    try:
        brightness = compute_brightness(image, sample_size)
    except (ValueError, TypeError, AttributeError, cv2.error) as e:
        logger.warning("Lighting sample failed, assuming good lighting: %s", e)
        return LightingCondition.GOOD

    return classify_brightness(brightness)


def confidence_threshold_for(
    lighting: LightingCondition,
    config: Optional[EngineConfig] = None
) -> float:
    """Adaptive confidence threshold: good 0.7, low 0.6, poor 0.5 by default."""
    if config is None:
        config = EngineConfig()
    return config.threshold_for(lighting)
