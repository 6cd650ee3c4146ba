import sys
from pathlib import Path

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

sys.path.insert(0, str(Path(__file__).parents[1]))

from arbrochure.tracking.pose import Pose, Quaternion


def make_pose(x=0.0, y=0.0, z=0.0, yaw_deg=0.0, timestamp=0.0) -> Pose:
    """Pose at (x, y, z) rotated yaw_deg around +Y"""
    return Pose(
        position=np.array([x, y, z]),
        orientation=Quaternion.from_axis_angle([0, 1, 0], yaw_deg),
        timestamp=timestamp
    )


def make_matrix(x=0.0, y=0.0, z=0.0, yaw_deg=0.0, scale=1.0) -> np.ndarray:
    """4x4 anchor transform as reported by the tracker"""
    matrix = np.eye(4)
    matrix[:3, :3] = Rotation.from_euler('y', yaw_deg, degrees=True).as_matrix() * scale
    matrix[:3, 3] = [x, y, z]
    return matrix


@pytest.fixture
def pose_factory():
    return make_pose


@pytest.fixture
def matrix_factory():
    return make_matrix
