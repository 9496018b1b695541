"""
Detection Filter Module
=======================

Applies the lighting-dependent confidence threshold to raw model output and
assigns every surviving detection a horizontal position bucket.

    relative_x = (x + width / 2) / image_width
    relative_x < 0.33 -> left, relative_x > 0.67 -> right, otherwise center
"""

import logging
import math
import numbers
from typing import Iterable, List

from .data_model import BoundingBox, DetectedObject, Position, RawDetection

logger = logging.getLogger(__name__)


LEFT_BOUNDARY = 0.33
RIGHT_BOUNDARY = 0.67


def position_from_relative_x(
    relative_x: float,
    left_boundary: float = LEFT_BOUNDARY,
    right_boundary: float = RIGHT_BOUNDARY
) -> Position:
    """Bucket a horizontal center in [0, 1) into left/center/right."""
    if relative_x < left_boundary:
        return Position.LEFT
    if relative_x > right_boundary:
        return Position.RIGHT
    return Position.CENTER


def compute_position(
    bbox: BoundingBox,
    image_width: float,
    left_boundary: float = LEFT_BOUNDARY,
    right_boundary: float = RIGHT_BOUNDARY
) -> Position:
    """
    Position bucket of a bounding box within the frame.

    Args:
        bbox: Bounding box in pixels
        image_width: Frame width in pixels

    Returns:
        Position bucket

    Raises:
        ValueError: If image_width is not positive
    """
    if image_width <= 0:
        raise ValueError(f"image_width must be positive, got {image_width}")
    return position_from_relative_x(
        bbox.center_x / image_width, left_boundary, right_boundary
    )


def is_well_formed(detection: RawDetection) -> bool:
    """True if the class name is a non-empty string and all numbers are finite."""
    class_name = getattr(detection, "class_name", None)
    if not isinstance(class_name, str) or not class_name.strip():
        return False

    bbox = getattr(detection, "bbox", None)
    values = [getattr(detection, "confidence", None)] + [
        getattr(bbox, name, None) for name in ("x", "y", "width", "height")
    ]
    for value in values:
        if isinstance(value, bool) or not isinstance(value, numbers.Real):
            return False
        if not math.isfinite(value):
            return False
    return True


def filter_detections(
    detections: Iterable[RawDetection],
    image_width: float,
    image_height: float,
    threshold: float,
    frame_index: int = 0,
    left_boundary: float = LEFT_BOUNDARY,
    right_boundary: float = RIGHT_BOUNDARY
) -> List[DetectedObject]:
    """
    Drop low-confidence detections and bucket the rest by position.

    Malformed detections (non-string class name, NaN or non-numeric values)
    are skipped. The returned objects carry a placeholder distance of 0.0;
    the distance estimator fills it in.

    Args:
        detections: Raw detections of the current frame
        image_width: Frame width in pixels
        image_height: Frame height in pixels
        threshold: Minimum confidence to keep a detection
        frame_index: Index of the current analysis cycle

    Returns:
        Candidate objects in model output order

    Raises:
        ValueError: If the image dimensions are not positive
    """
    if image_width <= 0 or image_height <= 0:
        raise ValueError(
            f"Image dimensions must be positive, got {image_width}x{image_height}"
        )

    candidates = []
    for detection in detections:
        if not is_well_formed(detection):
            logger.warning("Skipping malformed detection: %r", detection)
            continue
        if detection.confidence < threshold:
            continue

        candidates.append(DetectedObject(
            name=detection.class_name,
            confidence=float(detection.confidence),
            position=compute_position(
                detection.bbox, image_width, left_boundary, right_boundary
            ),
            distance_meters=0.0,
            bbox=detection.bbox,
            frame_index=frame_index
        ))

    return candidates
