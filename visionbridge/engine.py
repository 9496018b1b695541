"""
Perception Engine Module
========================

Owns the per-session state (frame history, frame counter, current lighting
and confidence threshold) and runs the analysis pipeline:

    raw detections -> confidence filter + position -> distance
        -> temporal aggregation -> description & hazard flag

The engine performs no I/O of its own. Image decoding and model inference
happen at the single entry point (process_image / process_encoded) before
any state is touched, and every per-frame failure is absorbed into a
low-confidence warning result so the user always gets an audible update.

Analysis cycles are serialized with a lock; callers are still expected to
drop, not queue, captures that arrive while a cycle is running (see
ScanSession).
"""

import logging
import threading
import time
from typing import List, Optional, Protocol, Sequence

import cv2
import numpy as np

from .config import EngineConfig
from .data_model import DetectionResult, FrameDetection, LightingCondition, RawDetection
from .description import describe
from .detection_filter import filter_detections
from .distance_estimation import estimate_distance
from .lighting import assess_lighting
from .temporal_aggregation import TemporalAggregator

logger = logging.getLogger(__name__)

FALLBACK_CONFIDENCE = 0.1
FALLBACK_DESCRIPTION = (
    "Unable to analyze surroundings. Please proceed with caution."
)


class ImageDecodeError(ValueError):
    """Raised when encoded image bytes cannot be decoded."""


class Detector(Protocol):
    """Anything that turns an image into raw detections."""

    def detect(self, image: np.ndarray) -> List[RawDetection]:
        ...


def fallback_result(reason: Optional[str] = None) -> DetectionResult:
    """
    Degraded-but-valid result for inference or decode failures.

    Always a warning with fixed low confidence and no objects.
    """
    if reason:
        logger.warning("Analysis failed, returning fallback result: %s", reason)
    return DetectionResult(
        description=FALLBACK_DESCRIPTION,
        confidence=FALLBACK_CONFIDENCE,
        objects=[],
        is_warning=True
    )


def decode_image(data: bytes) -> np.ndarray:
    """
    Decode JPEG/PNG bytes into a BGR image.

    Raises:
        ImageDecodeError: If the bytes are empty or not a decodable image
    """
    if not data:
        raise ImageDecodeError("No image data")

    buffer = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    if image is None:
        raise ImageDecodeError("Image data could not be decoded")
    return image


class PerceptionEngine:
    """
    Stateful perception aggregation engine for one scanning session.

    Example:
        engine = PerceptionEngine()
        engine.reset()
        result = engine.analyze(detections, 1280, 720, LightingCondition.GOOD)
        print(result.description)
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        """
        Args:
            config: Engine configuration (defaults when None)
        """
        self.config = config if config is not None else EngineConfig()
        self.config.validate()

        self._aggregator = TemporalAggregator(
            history_size=self.config.history_size,
            stability_ratio=self.config.stability_ratio
        )
        self._frame_index = 0
        self._lighting = LightingCondition.GOOD
        self._lock = threading.Lock()

    @property
    def frame_index(self) -> int:
        """Index the next completed cycle will get."""
        return self._frame_index

    @property
    def lighting(self) -> LightingCondition:
        return self._lighting

    @property
    def confidence_threshold(self) -> float:
        """Threshold derived from the most recent lighting assessment."""
        return self.config.threshold_for(self._lighting)

    @property
    def history(self) -> List[FrameDetection]:
        """Buffered frames, oldest first."""
        return self._aggregator.frames

    def reset(self) -> None:
        """Clear the frame history and restart frame numbering at 0."""
        with self._lock:
            self._aggregator.clear()
            self._frame_index = 0
            self._lighting = LightingCondition.GOOD
        logger.debug("Perception engine reset")

    def analyze(
        self,
        detections: Sequence[RawDetection],
        image_width: int,
        image_height: int,
        lighting: LightingCondition = LightingCondition.GOOD,
        timestamp: Optional[float] = None
    ) -> DetectionResult:
        """
        Run one analysis cycle on raw model output.

        Args:
            detections: Raw detections for the current frame
            image_width: Frame width in pixels
            image_height: Frame height in pixels
            lighting: Lighting condition of the frame
            timestamp: Frame time in seconds (defaults to now)

        Returns:
            DetectionResult for the stabilized objects

        Raises:
            ValueError: If the image dimensions are not positive
        """
        if timestamp is None:
            timestamp = time.time()

        with self._lock:
            self._lighting = lighting
            threshold = self.config.threshold_for(lighting)

            objects = filter_detections(
                detections,
                image_width,
                image_height,
                threshold,
                frame_index=self._frame_index,
                left_boundary=self.config.left_boundary,
                right_boundary=self.config.right_boundary
            )
            for obj in objects:
                obj.distance_meters = estimate_distance(
                    obj.name, obj.bbox, image_height, self.config
                )

            self._aggregator.add_frame(FrameDetection(
                frame_index=self._frame_index,
                timestamp=timestamp,
                objects=objects,
                lighting=lighting
            ))
            stable = self._aggregator.stabilize()
            self._frame_index += 1

        result = describe(stable, lighting, self.config)
        logger.debug(
            "Frame %d: %d raw, %d kept, %d stable, warning=%s",
            self._frame_index - 1, len(detections), len(objects), len(stable),
            result.is_warning
        )
        return result

    def process_image(self, image: Optional[np.ndarray], detector: Detector) -> DetectionResult:
        """
        Assess lighting, run the detector and analyze one decoded image.

        Detector failures, unusable detector output and unusable images
        produce fallback_result(); this method does not raise for per-frame
        problems.
        """
        if image is None or not isinstance(image, np.ndarray) or image.ndim < 2 or image.size == 0:
            return fallback_result("no usable image")

        image_height, image_width = image.shape[:2]
        lighting = assess_lighting(image)

        try:
            detections = list(detector.detect(image))
        except Exception as e:
            logger.exception("Object detection failed")
            return fallback_result(f"inference failed: {e}")

        try:
            return self.analyze(detections, image_width, image_height, lighting)
        except (AttributeError, TypeError, ValueError) as e:
            logger.exception("Analysis of detector output failed")
            return fallback_result(f"analysis failed: {e}")

    def process_encoded(self, data: bytes, detector: Detector) -> DetectionResult:
        """Decode JPEG/PNG bytes and analyze them like process_image."""
        try:
            image = decode_image(data)
        except ImageDecodeError as e:
            return fallback_result(str(e))

        return self.process_image(image, detector)
