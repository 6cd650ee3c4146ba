"""
scenario_generator.py - Synthetic tracker output

Generates raw anchor transforms for the diagnostic harness so the
stability presets can be compared without a camera:
- normal:   brochure held steady, sensor noise, one short tracking loss
- jitter:   hand tremor, zero-mean sub-millimetre noise and small rotations
- movement: deliberate sweep across the target with a yaw turn

Version: 1.0
Author: AR Brochure Team
"""

import numpy as np
from typing import List
from scipy.spatial.transform import Rotation
import logging

from .data_loader import TrackingFrame

logger = logging.getLogger(__name__)

SCENARIOS = ('normal', 'jitter', 'movement')

# anchor sits ~40 cm in front of the camera
BASE_POSITION = np.array([0.0, 0.0, -0.4])


def _compose(position: np.ndarray, rotvec: np.ndarray) -> np.ndarray:
    matrix = np.eye(4)
    matrix[:3, :3] = Rotation.from_rotvec(rotvec).as_matrix()
    matrix[:3, 3] = position
    return matrix


def generate_scenario(
    name: str,
    num_frames: int = 150,
    fps: float = 30.0,
    seed: int = 0
) -> List[TrackingFrame]:
    """
    Generate a scenario.

    Args:
        name: 'normal', 'jitter' or 'movement'
        num_frames: number of frames
        fps: frame rate used for timestamps
        seed: RNG seed

    Returns:
        TrackingFrame list
    """
    if name not in SCENARIOS:
        raise ValueError(f"Unknown scenario '{name}', expected one of {'|'.join(SCENARIOS)}")
    if num_frames < 1:
        raise ValueError(f"num_frames must be >= 1, got {num_frames}")

    rng = np.random.default_rng(seed)
    t = np.arange(num_frames) / fps

    if name == 'normal':
        pos_noise, rot_noise = 0.0003, np.deg2rad(0.05)
        positions = BASE_POSITION + rng.normal(0.0, pos_noise, (num_frames, 3))
        rotvecs = rng.normal(0.0, rot_noise, (num_frames, 3))
        # ~0.3 s loss in the middle of the run
        lost = np.zeros(num_frames, dtype=bool)
        gap_start = num_frames // 2
        lost[gap_start:gap_start + max(1, int(0.3 * fps))] = True
    elif name == 'jitter':
        # tremor ~8-12 Hz on top of white noise
        tremor = 0.0008 * np.sin(2 * np.pi * 10.0 * t)[:, None] * np.array([1.0, 0.6, 0.2])
        positions = BASE_POSITION + tremor + rng.normal(0.0, 0.0004, (num_frames, 3))
        rotvecs = rng.normal(0.0, np.deg2rad(0.2), (num_frames, 3))
        lost = np.zeros(num_frames, dtype=bool)
    else:
        # 20 cm sweep along x and a 30 degree yaw turn over the run
        progress = np.linspace(0.0, 1.0, num_frames)
        positions = BASE_POSITION + np.outer(progress, [0.2, 0.05, 0.0])
        positions += rng.normal(0.0, 0.0002, (num_frames, 3))
        rotvecs = np.outer(progress * np.deg2rad(30.0), [0.0, 1.0, 0.0])
        lost = np.zeros(num_frames, dtype=bool)

    frames = []
    for i in range(num_frames):
        found = not lost[i]
        frames.append(TrackingFrame(
            frame_idx=i,
            timestamp=float(t[i]),
            found=found,
            matrix=_compose(positions[i], rotvecs[i]) if found else None
        ))

    logger.info(f"Generated scenario '{name}': {num_frames} frames, {int(lost.sum())} lost")
    return frames
