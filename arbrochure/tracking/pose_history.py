"""
pose_history.py - Fixed-capacity pose ring buffer

Raw poses are written into a preallocated float64 arena
[px, py, pz, qx, qy, qz, qw, t] with a rolling write index, so
eviction is O(1) and nothing is allocated per frame.

Version: 1.0
Author: AR Brochure Team
"""

import numpy as np
from typing import List

from .pose import Pose, Quaternion

_ROW_WIDTH = 8  # position(3) + quaternion(4) + timestamp(1)


class PoseHistory:
    """
    Ring buffer of the most recent raw poses

    Example:
        >>> history = PoseHistory(capacity=10)
        >>> history.append(pose)
        >>> recent = history.latest_positions(3)  # oldest -> newest
    """

    def __init__(self, capacity: int = 10):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")

        self._capacity = int(capacity)
        self._arena = np.zeros((self._capacity, _ROW_WIDTH), dtype=np.float64)
        self._write_idx = 0
        self._count = 0

    def append(self, pose: Pose):
        """Store a pose, overwriting the oldest entry once full"""
        row = self._arena[self._write_idx]
        row[0:3] = pose.position
        row[3:7] = (pose.orientation.x, pose.orientation.y,
                    pose.orientation.z, pose.orientation.w)
        row[7] = pose.timestamp

        self._write_idx = (self._write_idx + 1) % self._capacity
        if self._count < self._capacity:
            self._count += 1

    def _ordered_indices(self, n: int) -> np.ndarray:
        """Arena rows of the n newest entries, oldest first"""
        n = min(n, self._count)
        start = self._write_idx - n
        return np.arange(start, self._write_idx) % self._capacity

    def latest_positions(self, n: int) -> np.ndarray:
        """
        Positions of the n most recent poses

        Returns:
            (min(n, len), 3) array ordered oldest -> newest
        """
        return self._arena[self._ordered_indices(n), 0:3].copy()

    def poses(self) -> List[Pose]:
        """All stored poses, oldest -> newest"""
        result = []
        for row in self._arena[self._ordered_indices(self._count)]:
            result.append(Pose(
                position=row[0:3],
                orientation=Quaternion.from_array(row[3:7]),
                timestamp=row[7]
            ))
        return result

    def clear(self):
        self._write_idx = 0
        self._count = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def is_full(self) -> bool:
        return self._count == self._capacity

    def __len__(self) -> int:
        return self._count
