"""
Description & Hazard Classification Module
==========================================

Turns the stabilized, distance-sorted objects into the spoken description,
an overall confidence and a binary warning flag.

An object is a hazard when it is within 2 m, belongs to a dangerous class
(vehicles and bicycles), or is centered within 3 m.
"""

from typing import Iterable, List, Optional

from .config import DEFAULT_DANGEROUS_CLASSES, EngineConfig
from .data_model import DetectedObject, DetectionResult, LightingCondition, Position


NEAR_DISTANCE = 2.0
CENTER_DISTANCE = 3.0

EMPTY_CONFIDENCE = 0.8
EMPTY_POOR_LIGHT_CONFIDENCE = 0.4

CLEAR_PATH_MESSAGE = "Path appears clear."
POOR_LIGHT_EMPTY_MESSAGE = (
    "Poor lighting, unable to see clearly. Please proceed with caution."
)
LOW_LIGHT_CAVEAT = "Low light may reduce detection accuracy."
POOR_LIGHT_CAVEAT = "Poor lighting, proceed with extra caution."
WARNING_PREFIX = "Warning: "


def is_hazard(
    obj: DetectedObject,
    config: Optional[EngineConfig] = None
) -> bool:
    """Check whether a single object poses a near-term navigation risk."""
    if config is None:
        near, center, dangerous = NEAR_DISTANCE, CENTER_DISTANCE, DEFAULT_DANGEROUS_CLASSES
    else:
        near, center, dangerous = (
            config.near_distance, config.center_distance, config.dangerous_classes
        )

    if obj.distance_meters <= near:
        return True
    if obj.name.lower() in dangerous:
        return True
    return obj.distance_meters <= center and obj.position == Position.CENTER


def has_hazard(
    objects: Iterable[DetectedObject],
    config: Optional[EngineConfig] = None
) -> bool:
    return any(is_hazard(obj, config) for obj in objects)


def _display_name(name: str) -> str:
    return name[:1].upper() + name[1:]


def _direction(position: Position) -> str:
    if position == Position.CENTER:
        return "ahead"
    return f"on {position.value}"


def _format_distance(distance: float) -> str:
    return f"{distance:.1f}"


def describe_object(obj: DetectedObject) -> str:
    """e.g. "Person 3.2 meters ahead" """
    return (
        f"{_display_name(obj.name)} {_format_distance(obj.distance_meters)} "
        f"meters {_direction(obj.position)}"
    )


def lighting_caveat(lighting: LightingCondition) -> str:
    """Sentence appended to descriptions for dim scenes, empty for good light."""
    if lighting == LightingCondition.LOW:
        return LOW_LIGHT_CAVEAT
    if lighting == LightingCondition.POOR:
        return POOR_LIGHT_CAVEAT
    return ""


def build_description(
    objects: List[DetectedObject],
    lighting: LightingCondition,
    is_warning: bool,
    max_described: int = 3
) -> str:
    """
    Compose the description for a non-empty, distance-sorted object list.

    Single object:
        "Person detected 3.2 meters ahead."
    Multiple objects (up to max_described named, closest first):
        "Closest: Car 1.0 meters ahead, then Person 2.0 meters on left.
         1 additional object detected."
    """
    if len(objects) == 1:
        obj = objects[0]
        text = (
            f"{_display_name(obj.name)} detected "
            f"{_format_distance(obj.distance_meters)} meters {_direction(obj.position)}."
        )
    else:
        named = [describe_object(obj) for obj in objects[:max_described]]
        text = "Closest: " + ", then ".join(named) + "."

        remaining = len(objects) - max_described
        if remaining > 0:
            noun = "object" if remaining == 1 else "objects"
            text += f" {remaining} additional {noun} detected."

    if is_warning:
        text = WARNING_PREFIX + text

    caveat = lighting_caveat(lighting)
    if caveat:
        text += " " + caveat

    return text


def describe(
    objects: List[DetectedObject],
    lighting: LightingCondition = LightingCondition.GOOD,
    config: Optional[EngineConfig] = None
) -> DetectionResult:
    """
    Build the DetectionResult for one analysis cycle.

    Args:
        objects: Stabilized objects sorted by distance, closest first
        lighting: Lighting condition of the current frame
        config: Engine configuration (hazard distances, dangerous classes)

    Returns:
        DetectionResult with description, confidence and warning flag
    """
    if not objects:
        if lighting == LightingCondition.POOR:
            return DetectionResult(
                description=POOR_LIGHT_EMPTY_MESSAGE,
                confidence=EMPTY_POOR_LIGHT_CONFIDENCE,
                objects=[],
                is_warning=True
            )

        text = CLEAR_PATH_MESSAGE
        if lighting == LightingCondition.LOW:
            text += " " + LOW_LIGHT_CAVEAT
        return DetectionResult(
            description=text,
            confidence=EMPTY_CONFIDENCE,
            objects=[],
            is_warning=False
        )

    max_described = config.max_described_objects if config is not None else 3
    is_warning = has_hazard(objects, config)
    confidence = sum(obj.confidence for obj in objects) / len(objects)

    return DetectionResult(
        description=build_description(objects, lighting, is_warning, max_described),
        confidence=confidence,
        objects=list(objects),
        is_warning=is_warning
    )
