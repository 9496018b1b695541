"""
Unit tests for camera input module.
"""

import cv2
import numpy as np
import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from visionbridge.video_input import (
    CameraFrame,
    CameraSource,
    load_image,
    open_camera,
    open_video,
)


@pytest.fixture
def still_image(tmp_path):
    path = tmp_path / "street.png"
    image = np.full((120, 160, 3), 90, dtype=np.uint8)
    assert cv2.imwrite(str(path), image)
    return path


class TestCameraFrame:

    def test_size(self):
        frame = CameraFrame(np.zeros((480, 640, 3), dtype=np.uint8), 0.0, 1)
        assert frame.size == (640, 480)


class TestStillImageSource:
    """Tests for single-image sources."""

    def test_detected_by_suffix(self):
        assert CameraSource("photo.JPG").is_still_image
        assert not CameraSource("walk.mp4").is_still_image
        assert not CameraSource(0).is_still_image

    def test_read_once(self, still_image):
        source = CameraSource(str(still_image))
        assert source.open()
        assert source.frame_size == (160, 120)

        frame = source.read()
        assert frame is not None
        assert frame.frame_number == 1
        assert frame.size == (160, 120)
        assert source.read() is None

    def test_frames_generator(self, still_image):
        with CameraSource(str(still_image)) as source:
            frames = list(source.frames())
        assert len(frames) == 1

    def test_downsample(self, still_image):
        with CameraSource(str(still_image), downsample_factor=2.0) as source:
            frame = source.read()
        assert frame.size == (80, 60)

    def test_unreadable_image(self, tmp_path):
        path = tmp_path / "broken.jpg"
        path.write_bytes(b"not an image")

        source = CameraSource(str(path))
        assert not source.open()
        assert source.read() is None


class TestVideoSource:

    def test_missing_video_does_not_open(self, tmp_path):
        source = CameraSource(str(tmp_path / "missing.mp4"))
        assert not source.open()
        assert source.read() is None
        source.close()

    def test_read_before_open(self):
        assert CameraSource("walk.mp4").read() is None


class TestHelpers:
    """Tests for convenience constructors."""

    def test_open_camera(self):
        source = open_camera(1, resolution=(640, 480))
        assert source.source == 1
        assert source.resolution == (640, 480)

    def test_open_video_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            open_video(str(tmp_path / "walk.mp4"))

    def test_open_video_existing(self, still_image):
        source = open_video(str(still_image))
        assert source.is_still_image

    def test_load_image(self, still_image):
        assert load_image(str(still_image)).shape == (120, 160, 3)

    def test_load_image_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_image(str(tmp_path / "nothing.png"))

    def test_load_image_invalid(self, tmp_path):
        path = tmp_path / "text.png"
        path.write_text("hello")
        with pytest.raises(ValueError):
            load_image(str(path))
