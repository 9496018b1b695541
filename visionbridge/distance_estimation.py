"""
Monocular Distance Estimation Module
====================================

Estimates how far an object is from a single camera using the apparent
height of its bounding box and an assumed real-world height for its class.

For a class with a known height H_real occupying a fraction p of the frame
height, the object subtends an angle of p * FOV_vertical. By similar
triangles:

    distance = H_real / (2 * tan(angle / 2))

The result is clamped to a sane range and rounded to one decimal. Classes
without a reference height fall back to a coarse inverse-size heuristic.

Estimates are approximate. They are monotonic (taller boxes give
smaller distances) and deterministic.

References:
- Pinhole camera geometry: https://en.wikipedia.org/wiki/Pinhole_camera_model
- Angular size: https://en.wikipedia.org/wiki/Angular_diameter
"""

import math
from typing import Dict, Mapping, Optional

from .config import EngineConfig
from .data_model import BoundingBox


# Assumed real-world heights in meters, keyed by detector class name.
# Covers the COCO (YOLO) and PASCAL VOC (MobileNet-SSD) label sets.
REFERENCE_HEIGHTS: Dict[str, float] = {
    "person": 1.7,
    "bicycle": 1.0,
    "car": 1.5,
    "motorcycle": 1.1,
    "motorbike": 1.1,
    "bus": 3.2,
    "train": 4.0,
    "truck": 3.0,
    "traffic light": 0.9,
    "fire hydrant": 0.8,
    "stop sign": 0.75,
    "parking meter": 1.3,
    "bench": 0.9,
    "bird": 0.2,
    "cat": 0.3,
    "dog": 0.6,
    "horse": 1.6,
    "sheep": 0.9,
    "cow": 1.4,
    "backpack": 0.5,
    "umbrella": 1.0,
    "handbag": 0.3,
    "suitcase": 0.7,
    "bottle": 0.25,
    "chair": 0.9,
    "couch": 0.9,
    "sofa": 0.9,
    "potted plant": 0.6,
    "pottedplant": 0.6,
    "bed": 0.6,
    "dining table": 0.75,
    "diningtable": 0.75,
    "toilet": 0.75,
    "tv": 0.6,
    "tvmonitor": 0.6,
    "laptop": 0.25,
    "refrigerator": 1.8,
    "door": 2.0,
    "stairs": 1.0,
    "pole": 3.0,
    "tree": 5.0,
}

# Scale of the fallback heuristic for unknown classes
FALLBACK_DISTANCE_SCALE = 0.5


def round_half_up(value: float, digits: int = 0) -> float:
    """Round with exact halves going up (2.5 -> 3, 0.25 -> 0.3)."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def get_reference_height(
    class_name: str,
    overrides: Optional[Mapping[str, float]] = None
) -> Optional[float]:
    """
    Look up the assumed real-world height of a class.

    Args:
        class_name: Detector class label (case-insensitive)
        overrides: Optional mapping checked before the built-in table

    Returns:
        Height in meters, or None if the class is unknown
    """
    key = class_name.strip().lower()
    if overrides and key in overrides:
        return overrides[key]
    return REFERENCE_HEIGHTS.get(key)


def estimate_known_distance(
    real_height: float,
    bbox_height: float,
    image_height: float,
    fov_degrees: float = 60.0,
    min_distance: float = 0.5,
    max_distance: float = 50.0
) -> float:
    """
    Distance to an object of known height.

    Args:
        real_height: Real-world height in meters
        bbox_height: Bounding box height in pixels
        image_height: Frame height in pixels
        fov_degrees: Vertical field of view of the camera
        min_distance: Lower clamp
        max_distance: Upper clamp

    Returns:
        Distance in meters, clamped and rounded to one decimal
    """
    if bbox_height <= 0 or image_height <= 0:
        return round_half_up(max_distance, 1)

    proportion = min(bbox_height / image_height, 1.0)
    angle = math.radians(fov_degrees) * proportion
    distance = real_height / (2 * math.tan(angle / 2))

    distance = max(min_distance, min(max_distance, distance))
    return round_half_up(distance, 1)


def estimate_fallback_distance(bbox_height: float, image_height: float) -> float:
    """
    Coarse inverse-size distance for classes without a reference height.

    Returns:
        max(1, image_height / bbox_height * 0.5) rounded half up, in meters
    """
    bbox_height = max(bbox_height, 1.0)
    return max(1.0, round_half_up(image_height / bbox_height * FALLBACK_DISTANCE_SCALE))


def estimate_distance(
    class_name: str,
    bbox: BoundingBox,
    image_height: float,
    config: Optional[EngineConfig] = None
) -> float:
    """
    Estimate the distance to a detected object.

    Args:
        class_name: Detector class label
        bbox: Bounding box in pixels
        image_height: Frame height in pixels
        config: Engine configuration (FOV, clamp range, extra heights)

    Returns:
        Estimated distance in meters
    """
    if config is None:
        config = EngineConfig()

    real_height = get_reference_height(class_name, config.reference_heights)
    if real_height is None:
        return estimate_fallback_distance(bbox.height, image_height)

    return estimate_known_distance(
        real_height,
        bbox.height,
        image_height,
        fov_degrees=config.vertical_fov_degrees,
        min_distance=config.min_distance,
        max_distance=config.max_distance,
    )
