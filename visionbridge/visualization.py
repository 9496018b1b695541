"""
Visualization Module
====================

Overlay drawing for the live preview: stabilized objects with their
position and distance, and a banner with the current description.

References:
- OpenCV drawing functions: https://docs.opencv.org/4.x/dc/da5/tutorial_py_drawing_functions.html
"""

from typing import List, Tuple

import cv2
import numpy as np

from .data_model import DetectedObject, DetectionResult
from .description import is_hazard

# BGR colors
SAFE_COLOR = (0, 200, 0)
HAZARD_COLOR = (0, 0, 255)
BANNER_COLOR = (0, 0, 0)
WARNING_BANNER_COLOR = (0, 0, 160)
TEXT_COLOR = (255, 255, 255)


def draw_detections(
    image: np.ndarray,
    objects: List[DetectedObject],
    show_distance: bool = True,
    show_confidence: bool = False
) -> np.ndarray:
    """
    Draw detection boxes and labels on a copy of the image.

    Hazards are drawn in red, other objects in green.

    Args:
        image: Input image (will be copied)
        objects: Objects to draw
        show_distance: Whether to show the distance estimate
        show_confidence: Whether to show the confidence

    Returns:
        Image with drawn detections
    """
    output = image.copy()

    for obj in objects:
        x, y, w, h = obj.bbox.as_tuple()
        color = HAZARD_COLOR if is_hazard(obj) else SAFE_COLOR

        cv2.rectangle(output, (x, y), (x + w, y + h), color, 2)

        label_parts = [obj.name, obj.position.value]
        if show_distance:
            label_parts.append(f"{obj.distance_meters:.1f}m")
        if show_confidence:
            label_parts.append(f"{obj.confidence:.0%}")
        label = " | ".join(label_parts)

        (text_w, text_h), _ = cv2.getTextSize(label, cv2.FONT_HERSHEY_SIMPLEX, 0.5, 1)
        label_y = max(y, text_h + 4)
        cv2.rectangle(output, (x, label_y - text_h - 4), (x + text_w, label_y), color, -1)
        cv2.putText(
            output, label,
            (x, label_y - 2),
            cv2.FONT_HERSHEY_SIMPLEX, 0.5,
            TEXT_COLOR, 1
        )

    return output


def _wrap_text(text: str, max_chars: int) -> List[str]:
    lines: List[str] = []
    current = ""
    for word in text.split():
        candidate = f"{current} {word}".strip()
        if len(candidate) > max_chars and current:
            lines.append(current)
            current = word
        else:
            current = candidate
    if current:
        lines.append(current)
    return lines


def draw_result_banner(
    image: np.ndarray,
    result: DetectionResult,
    font_scale: float = 0.6
) -> np.ndarray:
    """
    Draw the description in a banner along the bottom of a copy of the image.

    Warning results get a red banner.
    """
    output = image.copy()
    height, width = output.shape[:2]

    (char_w, line_h), _ = cv2.getTextSize("M", cv2.FONT_HERSHEY_SIMPLEX, font_scale, 1)
    max_chars = max(10, (width - 20) // max(char_w, 1))
    lines = _wrap_text(
        f"{result.description} ({result.confidence:.0%})", max_chars
    )

    line_step = line_h + 10
    banner_h = min(height, line_step * len(lines) + 10)
    color = WARNING_BANNER_COLOR if result.is_warning else BANNER_COLOR
    cv2.rectangle(output, (0, height - banner_h), (width, height), color, -1)

    y = height - banner_h + line_step
    for line in lines:
        cv2.putText(
            output, line, (10, y),
            cv2.FONT_HERSHEY_SIMPLEX, font_scale, TEXT_COLOR, 1
        )
        y += line_step

    return output


def render_preview(
    image: np.ndarray,
    result: DetectionResult,
    max_size: Tuple[int, int] = (1280, 720)
) -> np.ndarray:
    """Detections plus banner, scaled down to fit max_size (width, height)."""
    output = draw_result_banner(draw_detections(image, result.objects), result)

    height, width = output.shape[:2]
    scale = min(max_size[0] / width, max_size[1] / height, 1.0)
    if scale < 1.0:
        output = cv2.resize(output, None, fx=scale, fy=scale)
    return output
