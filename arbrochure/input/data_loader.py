"""
data_loader.py - Tracking log loader

Loads recorded raw tracker output for offline replay through the
stabilizer. Supported layouts (CSV or JSON records):
1. Full matrix: m00 .. m33 (row-major 4x4)
2. Decomposed:  px, py, pz, qx, qy, qz, qw

Optional columns: timestamp (seconds), found (bool, default True).

Version: 1.0
Author: AR Brochure Team
"""

import json
import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import Optional, Iterator, List
from pathlib import Path
from scipy.spatial.transform import Rotation
import logging

logger = logging.getLogger(__name__)

MATRIX_COLUMNS = [f"m{r}{c}" for r in range(4) for c in range(4)]
POSE_COLUMNS = ['px', 'py', 'pz', 'qx', 'qy', 'qz', 'qw']


@dataclass
class TrackingFrame:
    """Single frame of tracker output"""
    frame_idx: int
    timestamp: float
    found: bool
    matrix: Optional[np.ndarray] = None  # 4x4, None while the target is lost


def pose_columns_to_matrix(values: np.ndarray) -> np.ndarray:
    """[px, py, pz, qx, qy, qz, qw] -> 4x4 transform"""
    matrix = np.eye(4)
    matrix[:3, :3] = Rotation.from_quat(values[3:7]).as_matrix()
    matrix[:3, 3] = values[0:3]
    return matrix


class TrackingLogLoader:
    """
    Recorded tracking log

    Example:
        >>> loader = TrackingLogLoader("logs/session_01.csv")
        >>> for frame in loader:
        ...     system.process_frame(frame.matrix, frame.timestamp)
    """

    def __init__(
        self,
        path: str,
        fps: float = 30.0
    ):
        self.path = Path(path)
        self.fps = fps

        if not self.path.exists():
            raise FileNotFoundError(f"Tracking log not found: {path}")

        self._df = self._read_table()
        self._detect_layout()
        self.num_frames = len(self._df)

        logger.info(f"TrackingLogLoader: {self.num_frames} frames, layout={self._layout}")

    def _read_table(self) -> pd.DataFrame:
        suffix = self.path.suffix.lower()
        if suffix == '.csv':
            return pd.read_csv(self.path)
        if suffix == '.json':
            with open(self.path, 'r') as f:
                data = json.load(f)
            if isinstance(data, dict):
                data = data.get('frames', [])
            return pd.DataFrame.from_records(data)
        raise ValueError(f"Unsupported tracking log format: {self.path.suffix}")

    def _detect_layout(self):
        columns = set(self._df.columns)
        if set(MATRIX_COLUMNS) <= columns:
            self._layout = 'matrix'
        elif set(POSE_COLUMNS) <= columns:
            self._layout = 'pose'
        else:
            raise ValueError(
                f"{self.path}: expected columns m00..m33 or {', '.join(POSE_COLUMNS)}"
            )

    def __len__(self) -> int:
        return self.num_frames

    def __getitem__(self, idx: int) -> TrackingFrame:
        return self.load_frame(idx)

    def __iter__(self) -> Iterator[TrackingFrame]:
        for idx in range(self.num_frames):
            yield self.load_frame(idx)

    def load_frame(self, idx: int) -> TrackingFrame:
        if idx < 0 or idx >= self.num_frames:
            raise IndexError(f"Frame index {idx} out of range")

        row = self._df.iloc[idx]

        timestamp = idx / self.fps
        if 'timestamp' in row.index and pd.notna(row['timestamp']):
            timestamp = float(row['timestamp'])

        found = True
        if 'found' in row.index and pd.notna(row['found']):
            found = _parse_found(row['found'])

        matrix = None
        if found:
            if self._layout == 'matrix':
                values = row[MATRIX_COLUMNS].to_numpy(dtype=np.float64)
            else:
                values = row[POSE_COLUMNS].to_numpy(dtype=np.float64)

            if np.all(np.isfinite(values)):
                if self._layout == 'matrix':
                    matrix = values.reshape(4, 4)
                else:
                    matrix = pose_columns_to_matrix(values)
            else:
                logger.debug(f"Frame {idx}: incomplete pose, treated as lost")
                found = False

        return TrackingFrame(
            frame_idx=idx,
            timestamp=timestamp,
            found=found,
            matrix=matrix
        )

    def load_all(self) -> List[TrackingFrame]:
        return list(self)


def _parse_found(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {'1', 'true', 'yes', 'on'}
    return bool(value)


def save_tracking_log(frames: List[TrackingFrame], path: str) -> Path:
    """
    Write frames in the matrix layout (CSV or JSON by suffix)

    Lost frames keep their row with found=False and empty matrix cells.
    """
    path = Path(path)
    records = []
    for frame in frames:
        record = {'timestamp': frame.timestamp, 'found': bool(frame.found)}
        values = (
            np.asarray(frame.matrix, dtype=np.float64).reshape(16)
            if frame.matrix is not None else [None] * 16
        )
        for col, value in zip(MATRIX_COLUMNS, values):
            record[col] = None if value is None else float(value)
        records.append(record)

    path.parent.mkdir(parents=True, exist_ok=True)
    suffix = path.suffix.lower()
    if suffix == '.csv':
        pd.DataFrame.from_records(records).to_csv(path, index=False)
    elif suffix == '.json':
        with open(path, 'w') as f:
            json.dump({'frames': records}, f, indent=2)
    else:
        raise ValueError(f"Unsupported tracking log format: {path.suffix}")

    logger.info(f"Tracking log saved: {path} ({len(records)} frames)")
    return path
