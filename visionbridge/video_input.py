"""
Camera Input Module
===================

Frame source for the forward-facing camera: a webcam, a video file or a
single still image. The source only delivers frames; capture cadence is
decided by the scan session.

References:
- OpenCV VideoCapture: https://docs.opencv.org/4.x/dd/d43/tutorial_py_video_display.html
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Generator, Optional, Tuple, Union

import cv2
import numpy as np

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".bmp", ".webp"}


@dataclass
class CameraFrame:
    """
    A single captured frame.

    Attributes:
        image: Frame in BGR format
        timestamp: Capture time in seconds since the epoch
        frame_number: Sequential frame number (starting at 1)
    """
    image: np.ndarray
    timestamp: float
    frame_number: int

    @property
    def size(self) -> Tuple[int, int]:
        """Frame dimensions (width, height)."""
        return (self.image.shape[1], self.image.shape[0])


class CameraSource:
    """
    Unified interface for webcam, video file and still image input.

    Example:
        with CameraSource(0, resolution=(1280, 720)) as source:
            frame = source.read()
    """

    def __init__(
        self,
        source: Union[str, int],
        resolution: Optional[Tuple[int, int]] = None,
        downsample_factor: float = 1.0
    ):
        """
        Args:
            source: Webcam index, video path or image path
            resolution: Requested webcam resolution (width, height)
            downsample_factor: Factor to downsample frames (1.0 = none)
        """
        self.source = source
        self.resolution = resolution
        self.downsample_factor = downsample_factor

        self.cap: Optional[cv2.VideoCapture] = None
        self.is_still_image = (
            isinstance(source, str) and Path(source).suffix.lower() in IMAGE_SUFFIXES
        )
        self._still: Optional[np.ndarray] = None
        self._still_consumed = False

        self.frame_count = 0
        self._original_fps: float = 30.0
        self._frame_width: int = 0
        self._frame_height: int = 0

    def open(self) -> bool:
        """
        Open the source.

        Returns:
            True if the source opened successfully
        """
        if self.is_still_image:
            self._still = cv2.imread(str(self.source))
            if self._still is None:
                logger.error("Could not read image: %s", self.source)
                return False
            self._frame_height, self._frame_width = self._still.shape[:2]
            self._still_consumed = False
            return True

        self.cap = cv2.VideoCapture(self.source)
        if not self.cap.isOpened():
            logger.error("Could not open camera source: %s", self.source)
            return False

        if self.resolution is not None and isinstance(self.source, int):
            self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.resolution[0])
            self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.resolution[1])

        self._original_fps = self.cap.get(cv2.CAP_PROP_FPS) or 30.0
        self._frame_width = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self._frame_height = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        return True

    def read(self) -> Optional[CameraFrame]:
        """
        Read the next frame.

        Returns:
            CameraFrame or None if no more frames
        """
        if self.is_still_image:
            if self._still is None or self._still_consumed:
                return None
            self._still_consumed = True
            image = self._still.copy()
        else:
            if self.cap is None:
                return None
            ok, image = self.cap.read()
            if not ok or image is None:
                return None

        if self.downsample_factor > 1.0:
            new_size = (
                int(image.shape[1] / self.downsample_factor),
                int(image.shape[0] / self.downsample_factor)
            )
            image = cv2.resize(image, new_size, interpolation=cv2.INTER_AREA)

        self.frame_count += 1
        return CameraFrame(
            image=image,
            timestamp=time.time(),
            frame_number=self.frame_count
        )

    def frames(self) -> Generator[CameraFrame, None, None]:
        """Yield frames until the source is exhausted."""
        while True:
            frame = self.read()
            if frame is None:
                break
            yield frame

    def close(self) -> None:
        """Release the capture device."""
        if self.cap is not None:
            self.cap.release()
            self.cap = None
        self._still = None

    @property
    def fps(self) -> float:
        return self._original_fps

    @property
    def frame_size(self) -> Tuple[int, int]:
        """Frame dimensions (width, height)."""
        return (self._frame_width, self._frame_height)

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def open_camera(
    index: int = 0,
    resolution: Tuple[int, int] = (1280, 720)
) -> CameraSource:
    """
    Convenience function for the forward-facing webcam.

    The default resolution matches a typical rear phone camera stream.
    """
    return CameraSource(source=index, resolution=resolution)


def open_video(path: str, downsample_factor: float = 1.0) -> CameraSource:
    """
    Convenience function for a recorded video or a still image.

    Raises:
        FileNotFoundError: If the file doesn't exist
    """
    if not Path(path).exists():
        raise FileNotFoundError(f"Video not found: {path}")
    return CameraSource(source=path, downsample_factor=downsample_factor)


def load_image(path: str) -> np.ndarray:
    """
    Read an image file in BGR format.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is not a readable image
    """
    if not Path(path).exists():
        raise FileNotFoundError(f"Image not found: {path}")
    image = cv2.imread(str(path))
    if image is None:
        raise ValueError(f"Could not decode image: {path}")
    return image
