"""
Scan Session Module
===================

Drives the perception engine during a scanning session: captures are taken
periodically (continuous mode) or on request, at most one analysis runs at a
time, results are kept in a bounded history and handed to the speech and
haptics collaborators through callbacks.

A capture that arrives while a previous one is still being analyzed is
dropped, not queued, so frames enter the engine history in real time order.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import numpy as np

from .config import ScanSettings
from .data_model import DetectionResult
from .engine import Detector, PerceptionEngine
from .video_input import CameraFrame, CameraSource

logger = logging.getLogger(__name__)

# Vibration pattern for warnings in milliseconds: on, off, on
WARNING_VIBRATION_PATTERN: Tuple[int, ...] = (100, 50, 100)


@dataclass(frozen=True)
class HistoryEntry:
    """
    One analysis result as shown in the history list.

    Attributes:
        id: Unique entry id (millisecond timestamp plus a sequence number)
        timestamp: Time of the analysis in seconds since the epoch
        description: Spoken description
        confidence: Result confidence (0-1)
        is_warning: Whether the result was a warning
    """
    id: str
    timestamp: float
    description: str
    confidence: float
    is_warning: bool

    @classmethod
    def from_result(
        cls,
        result: DetectionResult,
        timestamp: Optional[float] = None,
        sequence: Optional[int] = None
    ) -> "HistoryEntry":
        if timestamp is None:
            timestamp = time.time()
        entry_id = str(int(timestamp * 1000))
        if sequence is not None:
            entry_id = f"{entry_id}-{sequence}"
        return cls(
            id=entry_id,
            timestamp=timestamp,
            description=result.description,
            confidence=result.confidence,
            is_warning=result.is_warning
        )


class ScanSession:
    """
    Scanning session around a PerceptionEngine and a detector.

    Example:
        session = ScanSession(engine, detector, on_result=speak)
        session.start()
        with open_camera() as source:
            session.run(source)
        session.stop()
    """

    def __init__(
        self,
        engine: PerceptionEngine,
        detector: Detector,
        settings: Optional[ScanSettings] = None,
        on_result: Optional[Callable[[DetectionResult], None]] = None,
        on_warning: Optional[Callable[[Tuple[int, ...]], None]] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            engine: Perception engine owned by this session
            detector: Object detector (must already be initialized)
            settings: Session settings (defaults when None)
            on_result: Called with every result (speech, display)
            on_warning: Called with the vibration pattern for warning results
            clock: Monotonic clock used for periodic captures
        """
        self.engine = engine
        self.detector = detector
        self.settings = settings if settings is not None else ScanSettings()
        self.settings.validate()
        self.on_result = on_result
        self.on_warning = on_warning
        self._clock = clock

        self._busy = threading.Lock()
        self._history: List[HistoryEntry] = []
        self._sequence = 0
        self.is_active = False
        self.is_paused = False
        self.dropped_captures = 0
        self.last_result: Optional[DetectionResult] = None
        self.last_image: Optional[np.ndarray] = None

    @property
    def is_processing(self) -> bool:
        return self._busy.locked()

    @property
    def history(self) -> List[HistoryEntry]:
        """History entries, newest first."""
        return list(self._history)

    def clear_history(self) -> None:
        self._history.clear()

    def start(self) -> None:
        """Begin a new session with a clean engine state."""
        self.engine.reset()
        self.is_active = True
        self.is_paused = False
        logger.info("Scan session started")

    def stop(self) -> None:
        """End the session and drop the engine state."""
        self.is_active = False
        self.is_paused = False
        self.engine.reset()
        logger.info("Scan session stopped")

    def pause(self) -> None:
        self.is_paused = True

    def resume(self) -> None:
        self.is_paused = False

    def toggle(self) -> bool:
        """Pause or resume scanning; returns True if now scanning."""
        self.is_paused = not self.is_paused
        return not self.is_paused

    def capture(self, image: np.ndarray) -> Optional[DetectionResult]:
        """
        Analyze one captured image.

        Returns:
            The result, or None if the session is inactive or paused, or if
            another analysis is still in flight (the capture is dropped)
        """
        if not self.is_active or self.is_paused:
            return None

        if not self._busy.acquire(blocking=False):
            self.dropped_captures += 1
            logger.debug("Analysis in flight, dropping capture")
            return None

        self.last_image = image
        try:
            result = self.engine.process_image(image, self.detector)
        finally:
            self._busy.release()

        self._handle_result(result)
        return result

    def _handle_result(self, result: DetectionResult) -> None:
        self.last_result = result
        self._record(result)

        if self.on_result is not None:
            self.on_result(result)
        if result.is_warning and self.settings.vibration_enabled and self.on_warning is not None:
            self.on_warning(WARNING_VIBRATION_PATTERN)

    def _record(self, result: DetectionResult) -> None:
        self._sequence += 1
        entry = HistoryEntry.from_result(result, sequence=self._sequence)

        self._history.insert(0, entry)
        del self._history[self.settings.history_limit:]

    def _frame_time(self, source: CameraSource, frame_number: int) -> float:
        # Live cameras run on the wall clock, recordings on their own timeline
        if isinstance(source.source, int):
            return self._clock()
        return frame_number / (source.fps or 30.0)

    def run(self, source: CameraSource, max_captures: Optional[int] = None) -> int:
        """
        Continuous-mode capture loop.

        Reads frames from the source and analyzes one every capture_interval
        seconds, after an initial delay. Frames in between are discarded.
        A still image is analyzed once, immediately.

        Args:
            source: Opened camera source
            max_captures: Stop after this many analyzed captures

        Returns:
            Number of analyzed captures
        """
        if not self.settings.continuous_mode:
            raise RuntimeError("run() requires continuous_mode; use run_manual() or capture() instead")

        captures = 0
        next_capture: Optional[float] = None

        while self.is_active:
            if max_captures is not None and captures >= max_captures:
                break

            frame = source.read()
            if frame is None:
                break

            if not source.is_still_image:
                now = self._frame_time(source, frame.frame_number)
                if next_capture is None:
                    next_capture = now + self.settings.initial_delay
                if now < next_capture or self.is_paused:
                    continue
                next_capture = now + self.settings.capture_interval

            if self.capture(frame.image) is not None:
                captures += 1

        return captures

    def run_manual(
        self,
        source: CameraSource,
        trigger: Callable[[CameraFrame], bool],
        max_captures: Optional[int] = None
    ) -> int:
        """
        Manual-mode capture loop.

        Reads frames from the source and analyzes a frame only when
        trigger(frame) returns True (e.g. a key press in the preview).
        A still image is analyzed once, immediately.

        Args:
            source: Opened camera source
            trigger: Called with every frame; True requests a capture
            max_captures: Stop after this many analyzed captures

        Returns:
            Number of analyzed captures
        """
        captures = 0

        while self.is_active:
            if max_captures is not None and captures >= max_captures:
                break

            frame = source.read()
            if frame is None:
                break

            if not source.is_still_image and not trigger(frame):
                continue

            if self.capture(frame.image) is not None:
                captures += 1

        return captures
