"""
VisionBridge Perception Engine
==============================

Turns noisy per-frame object detections from a forward-facing camera into a
stable, distance-annotated description of the surroundings with a hazard flag.

Pipeline per analysis cycle:
    lighting -> detection filter -> distance estimation -> temporal
    aggregation -> description & hazard classification

References:
- Pinhole camera model: https://en.wikipedia.org/wiki/Pinhole_camera_model
- COCO classes: https://cocodataset.org/#explore
"""

from .data_model import (
    BoundingBox,
    RawDetection,
    DetectedObject,
    FrameDetection,
    LightingCondition,
    Position,
    DetectionResult,
)
from .engine import PerceptionEngine, fallback_result

__version__ = "1.0.0"

__all__ = [
    "BoundingBox",
    "RawDetection",
    "DetectedObject",
    "FrameDetection",
    "LightingCondition",
    "Position",
    "DetectionResult",
    "PerceptionEngine",
    "fallback_result",
]
