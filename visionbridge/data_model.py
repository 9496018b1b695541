"""
Detection Data Model
====================

Value types passed between the stages of the perception pipeline: raw model
output, per-frame filtered objects, the frame history entries and the final
result handed to speech, history and haptics consumers.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Tuple


class LightingCondition(Enum):
    """
    Coarse scene brightness category.

    GOOD: Normal daylight/indoor lighting
    LOW: Dim scene, detections are accepted at a looser threshold
    POOR: Very dark scene, loosest threshold and a caution caveat
    """
    GOOD = "good"
    LOW = "low"
    POOR = "poor"


class Position(Enum):
    """Horizontal bucket of an object within the frame."""
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


@dataclass(frozen=True)
class BoundingBox:
    """
    Axis-aligned bounding box in pixels.

    Attributes:
        x: Left edge
        y: Top edge
        width: Box width
        height: Box height
    """
    x: float
    y: float
    width: float
    height: float

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2

    def as_tuple(self) -> Tuple[int, int, int, int]:
        """Integer (x, y, w, h) tuple for OpenCV drawing calls."""
        return (int(self.x), int(self.y), int(self.width), int(self.height))


@dataclass(frozen=True)
class RawDetection:
    """
    One unfiltered detection produced by the object-detection model.

    Attributes:
        class_name: Model class label (e.g. "person", "car")
        confidence: Detection score in [0, 1]
        bbox: Bounding box in image pixels
    """
    class_name: str
    confidence: float
    bbox: BoundingBox


@dataclass
class DetectedObject:
    """
    A detection that survived the confidence filter.

    Attributes:
        name: Object class label
        confidence: Detection confidence (0-1)
        position: Left/center/right bucket
        distance_meters: Estimated distance from the camera
        bbox: Bounding box in pixels
        frame_index: Analysis cycle that produced the object
    """
    name: str
    confidence: float
    position: Position
    distance_meters: float
    bbox: BoundingBox
    frame_index: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "confidence": self.confidence,
            "position": self.position.value,
            "distance": self.distance_meters,
            "bbox": {
                "x": self.bbox.x,
                "y": self.bbox.y,
                "width": self.bbox.width,
                "height": self.bbox.height,
            },
            "frame_index": self.frame_index,
        }


@dataclass
class FrameDetection:
    """
    Filtered objects of one analysis cycle, as kept in the frame history.

    Attributes:
        frame_index: Sequential cycle number within the session
        timestamp: Wall-clock time of the cycle (seconds since epoch)
        objects: Detected objects in model output order
        lighting: Lighting condition assessed for the frame
    """
    frame_index: int
    timestamp: float
    objects: List[DetectedObject] = field(default_factory=list)
    lighting: LightingCondition = LightingCondition.GOOD


@dataclass
class DetectionResult:
    """
    Output of one analysis cycle.

    Attributes:
        description: Natural-language description of the surroundings
        confidence: Overall confidence (0-1)
        objects: Stabilized objects, closest first
        is_warning: True if at least one object is a navigation hazard
    """
    description: str
    confidence: float
    objects: List[DetectedObject] = field(default_factory=list)
    is_warning: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "confidence": self.confidence,
            "objects": [obj.to_dict() for obj in self.objects],
            "is_warning": self.is_warning,
        }
