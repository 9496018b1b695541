"""
Engine Configuration Module
===========================

Handles loading and validation of perception engine and scan session
parameters. Supports JSON configuration files or the built-in defaults.

References:
- Camera field of view: https://en.wikipedia.org/wiki/Field_of_view
"""

import json
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Dict, FrozenSet, Optional, Tuple

from .data_model import LightingCondition


# Confidence threshold per lighting condition; looser as light worsens
DEFAULT_CONFIDENCE_THRESHOLDS: Dict[str, float] = {
    LightingCondition.GOOD.value: 0.7,
    LightingCondition.LOW.value: 0.6,
    LightingCondition.POOR.value: 0.5,
}

DEFAULT_DANGEROUS_CLASSES: FrozenSet[str] = frozenset(
    {"car", "truck", "bus", "motorcycle", "bicycle"}
)


@dataclass
class EngineConfig:
    """
    Tunable parameters of the perception engine.

    Attributes:
        confidence_thresholds: Minimum detection confidence per lighting value
        vertical_fov_degrees: Assumed vertical field of view of the camera
        min_distance: Lower clamp for known-class distance estimates (meters)
        max_distance: Upper clamp for known-class distance estimates (meters)
        history_size: Number of frames kept for temporal stabilization
        stability_ratio: Fraction of buffered frames an object must appear in
        left_boundary: Relative x below which an object is "left"
        right_boundary: Relative x above which an object is "right"
        near_distance: Any object at or under this distance is a hazard
        center_distance: Centered objects at or under this distance are hazards
        dangerous_classes: Classes that are always hazards
        reference_heights: Extra or overriding real-world heights (meters)
        max_described_objects: Objects named in a multi-object description
    """
    confidence_thresholds: Dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_CONFIDENCE_THRESHOLDS)
    )
    vertical_fov_degrees: float = 60.0
    min_distance: float = 0.5
    max_distance: float = 50.0
    history_size: int = 3
    stability_ratio: float = 0.6
    left_boundary: float = 0.33
    right_boundary: float = 0.67
    near_distance: float = 2.0
    center_distance: float = 3.0
    dangerous_classes: FrozenSet[str] = DEFAULT_DANGEROUS_CLASSES
    reference_heights: Dict[str, float] = field(default_factory=dict)
    max_described_objects: int = 3

    def threshold_for(self, lighting: LightingCondition) -> float:
        """Get the confidence threshold for a lighting condition."""
        return self.confidence_thresholds[lighting.value]

    def validate(self) -> None:
        """
        Check parameter ranges.

        Raises:
            ValueError: If any parameter is out of range
        """
        for condition in LightingCondition:
            if condition.value not in self.confidence_thresholds:
                raise ValueError(f"Missing confidence threshold for: {condition.value}")
            value = self.confidence_thresholds[condition.value]
            if not 0.0 <= value <= 1.0:
                raise ValueError(
                    f"Confidence threshold for {condition.value} must be in [0, 1], got {value}"
                )
        if not 0.0 < self.vertical_fov_degrees < 180.0:
            raise ValueError("vertical_fov_degrees must be in (0, 180)")
        if not 0.0 < self.min_distance < self.max_distance:
            raise ValueError("Distance clamp must satisfy 0 < min_distance < max_distance")
        if self.history_size < 1:
            raise ValueError("history_size must be at least 1")
        if not 0.0 < self.stability_ratio <= 1.0:
            raise ValueError("stability_ratio must be in (0, 1]")
        if not 0.0 <= self.left_boundary <= self.right_boundary <= 1.0:
            raise ValueError("Position boundaries must satisfy 0 <= left <= right <= 1")
        if self.max_described_objects < 1:
            raise ValueError("max_described_objects must be at least 1")
        for name, height in self.reference_heights.items():
            if height <= 0:
                raise ValueError(f"Reference height for '{name}' must be positive")


@dataclass
class ScanSettings:
    """
    Behaviour of a scanning session around the engine.

    Attributes:
        continuous_mode: Capture periodically instead of on request
        capture_interval: Seconds between periodic captures
        initial_delay: Seconds before the first periodic capture
        vibration_enabled: Emit the vibration pattern on warnings
        history_limit: Maximum number of kept history entries
    """
    continuous_mode: bool = True
    capture_interval: float = 3.0
    initial_delay: float = 1.0
    vibration_enabled: bool = True
    history_limit: int = 50

    def validate(self) -> None:
        if self.capture_interval <= 0:
            raise ValueError("capture_interval must be positive")
        if self.initial_delay < 0:
            raise ValueError("initial_delay must not be negative")
        if self.history_limit < 1:
            raise ValueError("history_limit must be at least 1")


def create_default_config(
    vertical_fov_degrees: float = 60.0,
    history_size: int = 3,
    stability_ratio: float = 0.6,
) -> EngineConfig:
    """
    Create an engine configuration with the standard parameters.

    Args:
        vertical_fov_degrees: Camera vertical field of view (default: 60)
        history_size: Frames kept for stabilization (default: 3)
        stability_ratio: Required presence fraction (default: 0.6)

    Returns:
        Validated EngineConfig
    """
    config = EngineConfig(
        vertical_fov_degrees=vertical_fov_degrees,
        history_size=history_size,
        stability_ratio=stability_ratio,
    )
    config.validate()
    return config


def _read_json(config_path: str) -> dict:
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(path, 'r') as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError("Configuration file must contain a JSON object")
    return data


def _check_fields(data: dict, cls) -> None:
    known = {f.name for f in fields(cls)}
    for key in data:
        if key not in known:
            raise ValueError(f"Unknown field in config: {key}")


def _coerce_scalars(data: dict, cls) -> dict:
    """Convert JSON scalars to the bool/int/float types declared on cls."""
    types = {f.name: f.type for f in fields(cls)}
    coerced = {}
    for key, value in data.items():
        kind = types.get(key)
        if kind is bool:
            if not isinstance(value, bool):
                raise ValueError(f"{key} must be true or false, got {value!r}")
        elif kind in (int, float):
            if isinstance(value, bool):
                raise ValueError(f"{key} must be a number, got {value!r}")
            try:
                number = float(value)
            except (TypeError, ValueError) as e:
                raise ValueError(f"{key} must be a number, got {value!r}") from e
            if kind is int:
                if not number.is_integer():
                    raise ValueError(f"{key} must be an integer, got {value!r}")
                number = int(number)
            value = number
        coerced[key] = value
    return coerced


def _float_table(key: str, value) -> Dict[str, float]:
    if not isinstance(value, dict):
        raise ValueError(f"{key} must be a JSON object")
    try:
        return {str(k).strip().lower(): float(v) for k, v in value.items()}
    except (TypeError, ValueError) as e:
        raise ValueError(f"{key} values must be numbers") from e


def load_config_from_json(config_path: str) -> EngineConfig:
    """
    Load engine configuration from a JSON file.

    Only the keys present in the file override the defaults. The file may
    contain any of the EngineConfig attribute names; an "engine" object is
    used instead of the top level when present.

    Args:
        config_path: Path to the JSON configuration file

    Returns:
        Validated EngineConfig

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config file is invalid
    """
    data = _read_json(config_path)
    data = data.get("engine", data)
    if not isinstance(data, dict):
        raise ValueError("\"engine\" must be a JSON object")
    data = {k: v for k, v in data.items() if k != "session"}
    _check_fields(data, EngineConfig)

    config = EngineConfig()
    if "confidence_thresholds" in data:
        thresholds = dict(DEFAULT_CONFIDENCE_THRESHOLDS)
        thresholds.update(_float_table("confidence_thresholds", data.pop("confidence_thresholds")))
        config.confidence_thresholds = thresholds
    if "dangerous_classes" in data:
        classes = data.pop("dangerous_classes")
        if not isinstance(classes, list) or not all(isinstance(c, str) for c in classes):
            raise ValueError("dangerous_classes must be a list of class names")
        config.dangerous_classes = frozenset(c.strip().lower() for c in classes)
    if "reference_heights" in data:
        config.reference_heights = _float_table("reference_heights", data.pop("reference_heights"))
    for key, value in _coerce_scalars(data, EngineConfig).items():
        setattr(config, key, value)

    config.validate()
    return config


def load_settings_from_json(config_path: str) -> ScanSettings:
    """
    Load scan session settings from the "session" object of a JSON file.

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If the settings are invalid
    """
    data = _read_json(config_path).get("session", {})
    if not isinstance(data, dict):
        raise ValueError("\"session\" must be a JSON object")
    _check_fields(data, ScanSettings)

    settings = ScanSettings(**_coerce_scalars(data, ScanSettings))
    settings.validate()
    return settings


def save_config_to_json(
    config: EngineConfig,
    output_path: str,
    settings: Optional[ScanSettings] = None,
) -> None:
    """
    Save engine configuration (and optionally session settings) to JSON.

    Args:
        config: EngineConfig to save
        output_path: Path for the output JSON file
        settings: Optional ScanSettings stored under "session"
    """
    engine = asdict(config)
    engine["dangerous_classes"] = sorted(config.dangerous_classes)

    data = {"engine": engine}
    if settings is not None:
        data["session"] = asdict(settings)

    with open(output_path, 'w') as f:
        json.dump(data, f, indent=4)


def parse_size(value: str) -> Tuple[int, int]:
    """Parse a "WIDTHxHEIGHT" string such as "1280x720"."""
    try:
        width, height = (int(part) for part in value.lower().split("x"))
    except ValueError:
        raise ValueError(f"Invalid size '{value}', expected WIDTHxHEIGHT") from None
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid size '{value}', dimensions must be positive")
    return (width, height)
