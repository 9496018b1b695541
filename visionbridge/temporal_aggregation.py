"""
Temporal Aggregation Module
===========================

Keeps a short, fixed-capacity history of per-frame detections and reports
only the objects that recur across it. An object is identified by its
(class name, position bucket) pair, so no cross-frame tracking is needed.

A group is stable when it appears in at least ceil(ratio * len(history))
of the buffered frames; with the default 3-frame history and ratio 0.6 this
means 2 of 3. Single-frame false positives never reach the output.

References:
- collections.deque: https://docs.python.org/3/library/collections.html#collections.deque
"""

import math
from collections import deque
from typing import Deque, Dict, List, Tuple

from .data_model import DetectedObject, FrameDetection, Position
from .distance_estimation import round_half_up


DEFAULT_HISTORY_SIZE = 3
DEFAULT_STABILITY_RATIO = 0.6


class TemporalAggregator:
    """
    Fixed-capacity FIFO frame history with stability filtering.

    Appending a frame beyond capacity evicts the oldest one.
    """

    def __init__(
        self,
        history_size: int = DEFAULT_HISTORY_SIZE,
        stability_ratio: float = DEFAULT_STABILITY_RATIO
    ):
        """
        Args:
            history_size: Number of frames kept (N)
            stability_ratio: Fraction of buffered frames a group must appear in
        """
        if history_size < 1:
            raise ValueError("history_size must be at least 1")
        if not 0.0 < stability_ratio <= 1.0:
            raise ValueError("stability_ratio must be in (0, 1]")

        self.history_size = history_size
        self.stability_ratio = stability_ratio
        self._frames: Deque[FrameDetection] = deque(maxlen=history_size)

    def __len__(self) -> int:
        return len(self._frames)

    @property
    def frames(self) -> List[FrameDetection]:
        """Buffered frames, oldest first."""
        return list(self._frames)

    def add_frame(self, frame: FrameDetection) -> None:
        """Append a frame, evicting the oldest one when full."""
        self._frames.append(frame)

    def clear(self) -> None:
        self._frames.clear()

    def required_presence(self) -> int:
        """Minimum number of frames a group must appear in to be stable."""
        # Round before ceil so that e.g. 0.6 * 5 stays 3, not 4
        return max(1, math.ceil(round(self.stability_ratio * len(self._frames), 9)))

    def stabilize(self) -> List[DetectedObject]:
        """
        Stable objects across the buffered frames, closest first.

        For each stable (name, position) group the distance is the mean of
        the members rounded to one decimal, the confidence is the mean of
        the members, and every other field comes from the most recently
        added member. Equal distances keep the order in which the groups
        were first seen.
        """
        if not self._frames:
            return []

        groups: Dict[Tuple[str, Position], List[DetectedObject]] = {}
        seen_in: Dict[Tuple[str, Position], set] = {}
        for position_in_history, frame in enumerate(self._frames):
            for obj in frame.objects:
                key = (obj.name, obj.position)
                groups.setdefault(key, []).append(obj)
                seen_in.setdefault(key, set()).add(position_in_history)

        required = self.required_presence()
        stable = []
        for key, members in groups.items():
            if len(seen_in[key]) < required:
                continue

            latest = members[-1]
            stable.append(DetectedObject(
                name=latest.name,
                confidence=sum(m.confidence for m in members) / len(members),
                position=latest.position,
                distance_meters=round_half_up(
                    sum(m.distance_meters for m in members) / len(members), 1
                ),
                bbox=latest.bbox,
                frame_index=latest.frame_index
            ))

        stable.sort(key=lambda o: o.distance_meters)
        return stable
