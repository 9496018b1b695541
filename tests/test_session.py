"""
Unit tests for the scan session.
"""

import dataclasses

import numpy as np
import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from visionbridge.config import ScanSettings
from visionbridge.data_model import BoundingBox, RawDetection
from visionbridge.engine import PerceptionEngine
from visionbridge.session import (
    HistoryEntry,
    ScanSession,
    WARNING_VIBRATION_PATTERN,
)
from visionbridge.video_input import CameraFrame


def make_image():
    return np.full((720, 1280, 3), 150, dtype=np.uint8)


class FakeDetector:
    def __init__(self, detections=None):
        self.detections = detections or []

    def detect(self, image):
        return list(self.detections)


class FailingDetector:
    def detect(self, image):
        raise RuntimeError("inference failed")


class FakeSource:
    """Recording-like source with a fixed number of frames."""

    def __init__(self, frames=10, fps=1.0, source="walk.mp4", still=False):
        self.source = source
        self.fps = fps
        self.is_still_image = still
        self.remaining = frames
        self.frame_count = 0

    def read(self):
        if self.remaining <= 0:
            return None
        self.remaining -= 1
        self.frame_count += 1
        return CameraFrame(make_image(), 0.0, self.frame_count)


@pytest.fixture
def results():
    return []


@pytest.fixture
def warnings():
    return []


@pytest.fixture
def session(results, warnings):
    session = ScanSession(
        PerceptionEngine(),
        FakeDetector(),
        on_result=results.append,
        on_warning=warnings.append
    )
    session.start()
    return session


class TestCapture:
    """Tests for single captures."""

    def test_capture_returns_result(self, session, results):
        result = session.capture(make_image())

        assert result is not None
        assert result.description == "Path appears clear."
        assert results == [result]
        assert session.last_result is result
        assert session.last_image is not None

    def test_inactive_session_ignores_capture(self, results):
        session = ScanSession(PerceptionEngine(), FakeDetector(), on_result=results.append)
        assert session.capture(make_image()) is None
        assert results == []

    def test_paused_session_ignores_capture(self, session):
        session.pause()
        assert session.capture(make_image()) is None
        session.resume()
        assert session.capture(make_image()) is not None

    def test_toggle(self, session):
        assert session.toggle() is False
        assert session.is_paused
        assert session.toggle() is True

    def test_capture_dropped_while_processing(self):
        inner = []

        class ReentrantDetector:
            def detect(self, image):
                inner.append((session.is_processing, session.capture(image)))
                return []

        session = ScanSession(PerceptionEngine(), ReentrantDetector())
        session.start()

        assert session.capture(make_image()) is not None
        assert inner == [(True, None)]
        assert session.dropped_captures == 1
        assert not session.is_processing
        assert session.engine.frame_index == 1

    def test_warning_vibrates(self, results, warnings):
        session = ScanSession(
            PerceptionEngine(), FailingDetector(),
            on_result=results.append, on_warning=warnings.append
        )
        session.start()

        result = session.capture(make_image())

        assert result.is_warning
        assert warnings == [WARNING_VIBRATION_PATTERN]
        assert WARNING_VIBRATION_PATTERN == (100, 50, 100)

    def test_hazard_vibrates(self, warnings):
        car = RawDetection("car", 0.9, BoundingBox(500.0, 200.0, 200.0, 300.0))
        session = ScanSession(
            PerceptionEngine(), FakeDetector([car]), on_warning=warnings.append
        )
        session.start()

        assert session.capture(make_image()).is_warning
        assert len(warnings) == 1

    def test_vibration_disabled(self, warnings):
        session = ScanSession(
            PerceptionEngine(), FailingDetector(),
            settings=ScanSettings(vibration_enabled=False),
            on_warning=warnings.append
        )
        session.start()
        session.capture(make_image())

        assert warnings == []

    def test_no_vibration_for_clear_path(self, session, warnings):
        session.capture(make_image())
        assert warnings == []


class TestHistory:
    """Tests for the session history list."""

    def test_newest_first(self):
        session = ScanSession(PerceptionEngine(), FailingDetector())
        session.start()
        session.capture(make_image())
        session.detector = FakeDetector()
        session.capture(make_image())

        history = session.history
        assert len(history) == 2
        assert history[0].description == "Path appears clear."
        assert history[1].is_warning

    def test_ids_unique(self, session):
        for _ in range(5):
            session.capture(make_image())
        ids = [entry.id for entry in session.history]
        assert len(set(ids)) == 5

    def test_limit(self):
        session = ScanSession(
            PerceptionEngine(), FakeDetector(), settings=ScanSettings(history_limit=2)
        )
        session.start()
        for _ in range(4):
            session.capture(make_image())
        assert len(session.history) == 2

    def test_clear(self, session):
        session.capture(make_image())
        session.clear_history()
        assert session.history == []

    def test_entry_from_result(self, session):
        result = session.capture(make_image())
        entry = HistoryEntry.from_result(result, timestamp=12.5)

        assert entry.id == "12500"
        assert entry.description == result.description
        assert entry.confidence == result.confidence
        assert not entry.is_warning

    def test_entry_id_with_sequence(self, session):
        result = session.capture(make_image())
        entry = HistoryEntry.from_result(result, timestamp=12.5, sequence=3)
        assert entry.id == "12500-3"

    def test_recorded_ids_carry_sequence(self, session):
        session.capture(make_image())
        session.capture(make_image())
        ids = [entry.id for entry in session.history]
        assert ids[0].endswith("-2")
        assert ids[1].endswith("-1")

    def test_entries_immutable(self, session):
        session.capture(make_image())
        with pytest.raises(dataclasses.FrozenInstanceError):
            session.history[0].id = "other"


class TestLifecycle:

    def test_start_resets_engine(self, session):
        session.capture(make_image())
        assert session.engine.frame_index == 1

        session.start()
        assert session.engine.frame_index == 0
        assert session.is_active

    def test_stop(self, session):
        session.capture(make_image())
        session.stop()

        assert not session.is_active
        assert session.engine.frame_index == 0
        assert session.capture(make_image()) is None

    def test_invalid_settings(self):
        with pytest.raises(ValueError):
            ScanSession(PerceptionEngine(), FakeDetector(), settings=ScanSettings(capture_interval=0))


class TestRun:
    """Tests for the continuous capture loop."""

    def test_recording_cadence(self, session):
        """Initial delay of 1s, then one capture every 3s of video time."""
        captures = session.run(FakeSource(frames=10, fps=1.0))
        assert captures == 3
        assert session.engine.frame_index == 3

    def test_max_captures(self, session):
        assert session.run(FakeSource(frames=10, fps=1.0), max_captures=1) == 1

    def test_still_image_captured_once(self, session):
        assert session.run(FakeSource(frames=1, source="photo.jpg", still=True)) == 1

    def test_live_camera_uses_clock(self, results):
        ticks = iter(0.5 * i for i in range(1, 100))
        session = ScanSession(
            PerceptionEngine(), FakeDetector(),
            on_result=results.append, clock=lambda: next(ticks)
        )
        session.start()

        assert session.run(FakeSource(frames=10, source=0)) == 2

    def test_paused_run_skips_captures(self, session):
        session.pause()
        assert session.run(FakeSource(frames=10, fps=1.0)) == 0

    def test_stopped_session_does_not_run(self, session):
        session.stop()
        assert session.run(FakeSource()) == 0

    def test_requires_continuous_mode(self):
        session = ScanSession(
            PerceptionEngine(), FakeDetector(), settings=ScanSettings(continuous_mode=False)
        )
        session.start()
        with pytest.raises(RuntimeError):
            session.run(FakeSource())


class TestRunManual:
    """Tests for the on-request capture loop."""

    @pytest.fixture
    def manual_session(self, results):
        session = ScanSession(
            PerceptionEngine(), FakeDetector(),
            settings=ScanSettings(continuous_mode=False),
            on_result=results.append
        )
        session.start()
        return session

    def test_captures_only_on_trigger(self, manual_session, results):
        requested = {3, 7}
        seen = []

        def trigger(frame):
            seen.append(frame.frame_number)
            return frame.frame_number in requested

        captures = manual_session.run_manual(FakeSource(frames=10), trigger)

        assert captures == 2
        assert len(results) == 2
        assert seen == list(range(1, 11))
        assert manual_session.engine.frame_index == 2

    def test_no_trigger_no_capture(self, manual_session):
        assert manual_session.run_manual(FakeSource(frames=5), lambda frame: False) == 0
        assert manual_session.history == []

    def test_still_image_captured_without_trigger(self, manual_session):
        source = FakeSource(frames=1, source="photo.jpg", still=True)
        assert manual_session.run_manual(source, lambda frame: False) == 1

    def test_trigger_can_stop_session(self, manual_session):
        def trigger(frame):
            manual_session.stop()
            return False

        source = FakeSource(frames=10)
        assert manual_session.run_manual(source, trigger) == 0
        assert source.remaining == 9

    def test_max_captures(self, manual_session):
        captures = manual_session.run_manual(
            FakeSource(frames=10), lambda frame: True, max_captures=4
        )
        assert captures == 4
