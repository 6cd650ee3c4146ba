"""
pose.py - Pose value types and conversions

The tracking engine reports a 4x4 homogeneous transform per frame; the
stabilizer works on position + unit quaternion. This module provides:
- Quaternion (x, y, z, w) - scipy order, scalar last
- Pose - immutable position + orientation + capture timestamp
- PoseConverter - 4x4 matrix <-> Pose, LERP / SLERP blending

Version: 1.0
Author: AR Brochure Team
"""

import numpy as np
from scipy.spatial.transform import Rotation, Slerp
from typing import Sequence, Union
from dataclasses import dataclass
import logging

logger = logging.getLogger(__name__)

UNIT_EPSILON = 1e-6


@dataclass(frozen=True)
class Quaternion:
    """
    Quaternion (x, y, z, w) - scipy format

    q = w + xi + yj + zk
    Unit condition: |q| = sqrt(x^2 + y^2 + z^2 + w^2) = 1
    """
    x: float
    y: float
    z: float
    w: float

    def to_array(self) -> np.ndarray:
        """[x, y, z, w] (scipy convention)"""
        return np.array([self.x, self.y, self.z, self.w], dtype=np.float64)

    @classmethod
    def from_array(cls, arr: Sequence[float]) -> 'Quaternion':
        """Build from [x, y, z, w]"""
        return cls(x=float(arr[0]), y=float(arr[1]), z=float(arr[2]), w=float(arr[3]))

    def normalize(self) -> 'Quaternion':
        """Unit quaternion; a zero quaternion maps to identity"""
        arr = self.to_array()
        norm = np.linalg.norm(arr)
        if norm < 1e-10:
            return Quaternion.identity()
        return Quaternion.from_array(arr / norm)

    @property
    def norm(self) -> float:
        return float(np.linalg.norm(self.to_array()))

    @property
    def is_unit(self) -> bool:
        return abs(self.norm - 1.0) < UNIT_EPSILON

    def dot(self, other: 'Quaternion') -> float:
        return float(np.dot(self.to_array(), other.to_array()))

    def angle_to(self, other: 'Quaternion') -> float:
        """
        Rotation angle to another quaternion (degrees)

        q and -q describe the same rotation, so the sign is ignored.
        """
        dot = np.clip(abs(self.dot(other)), 0.0, 1.0)
        return float(np.rad2deg(2 * np.arccos(dot)))

    def __repr__(self) -> str:
        return f"Quaternion(x={self.x:.4f}, y={self.y:.4f}, z={self.z:.4f}, w={self.w:.4f})"

    @classmethod
    def identity(cls) -> 'Quaternion':
        return cls(x=0.0, y=0.0, z=0.0, w=1.0)

    @classmethod
    def from_axis_angle(cls, axis: Sequence[float], angle_deg: float) -> 'Quaternion':
        """Rotation of angle_deg around axis"""
        axis = np.asarray(axis, dtype=np.float64)
        axis = axis / np.linalg.norm(axis)
        half = np.deg2rad(angle_deg) / 2
        sin_a = np.sin(half)
        return cls(
            x=float(axis[0] * sin_a),
            y=float(axis[1] * sin_a),
            z=float(axis[2] * sin_a),
            w=float(np.cos(half))
        )


@dataclass(frozen=True, eq=False)
class Pose:
    """
    Rigid transform reported for one tracking update

    Attributes:
        position: [x, y, z] (read-only array)
        orientation: unit quaternion
        timestamp: monotonic capture time (seconds)
    """
    position: np.ndarray
    orientation: Quaternion
    timestamp: float = 0.0

    def __post_init__(self):
        position = np.array(self.position, dtype=np.float64).reshape(3)
        position.setflags(write=False)
        object.__setattr__(self, 'position', position)
        object.__setattr__(self, 'timestamp', float(self.timestamp))

    def distance_to(self, other: 'Pose') -> float:
        """Euclidean distance between positions"""
        return float(np.linalg.norm(self.position - other.position))

    def is_close(
        self,
        other: 'Pose',
        pos_tol: float = 1e-9,
        angle_tol_deg: float = 1e-6
    ) -> bool:
        """Same position and rotation within tolerance (timestamp ignored)"""
        return (
            self.distance_to(other) <= pos_tol and
            self.orientation.angle_to(other.orientation) <= angle_tol_deg
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, Pose):
            return NotImplemented
        return (
            np.array_equal(self.position, other.position) and
            self.orientation == other.orientation and
            self.timestamp == other.timestamp
        )

    __hash__ = None

    def to_dict(self) -> dict:
        return {
            'position': self.position.tolist(),
            'quaternion': {
                'x': self.orientation.x,
                'y': self.orientation.y,
                'z': self.orientation.z,
                'w': self.orientation.w
            },
            'timestamp': self.timestamp
        }

    def __repr__(self) -> str:
        p = self.position
        return f"Pose(pos=[{p[0]:.4f}, {p[1]:.4f}, {p[2]:.4f}], {self.orientation!r}, t={self.timestamp:.3f})"

    @classmethod
    def identity(cls, timestamp: float = 0.0) -> 'Pose':
        return cls(position=np.zeros(3), orientation=Quaternion.identity(), timestamp=timestamp)


class PoseConverter:
    """
    Conversion between tracker matrices and Pose

    The tracking engine hands over a 4x4 world matrix [R*S|t; 0 1].
    Scale is discarded on the way in; the renderer gets unit scale back.

    Example:
        >>> converter = PoseConverter()
        >>> pose = converter.matrix_to_pose(anchor_matrix, timestamp=t)
        >>> matrix = converter.pose_to_matrix(pose)
    """

    def matrix_to_pose(
        self,
        matrix: np.ndarray,
        timestamp: float = 0.0
    ) -> Pose:
        """
        Decompose a 4x4 transform into position + rotation

        Args:
            matrix: 4x4 homogeneous transform
            timestamp: capture time

        Returns:
            Pose (scale removed)
        """
        matrix = np.asarray(matrix, dtype=np.float64)
        if matrix.shape != (4, 4):
            raise ValueError(f"Expected 4x4 matrix, got {matrix.shape}")
        if not np.all(np.isfinite(matrix)):
            raise ValueError("Matrix contains non-finite values")

        translation = matrix[:3, 3].copy()

        # remove per-axis scale before extracting the rotation
        basis = matrix[:3, :3]
        scale = np.linalg.norm(basis, axis=0)
        if np.any(scale < 1e-12):
            raise ValueError(f"Degenerate rotation block, column norms {scale}")
        # mirrored frame: fold the reflection into the x scale
        if np.linalg.det(basis) < 0:
            scale[0] = -scale[0]
        rotation_matrix = basis / scale

        quat = Rotation.from_matrix(rotation_matrix).as_quat()

        return Pose(
            position=translation,
            orientation=Quaternion.from_array(quat),
            timestamp=timestamp
        )

    def pose_to_matrix(self, pose: Pose) -> np.ndarray:
        """Compose position + rotation (unit scale) into a 4x4 transform"""
        matrix = np.eye(4)
        matrix[:3, :3] = self.quaternion_to_rotation_matrix(pose.orientation)
        matrix[:3, 3] = pose.position
        return matrix

    def rotation_matrix_to_quaternion(self, R: np.ndarray) -> Quaternion:
        return Quaternion.from_array(Rotation.from_matrix(R).as_quat())

    def quaternion_to_rotation_matrix(self, quat: Quaternion) -> np.ndarray:
        return Rotation.from_quat(quat.to_array()).as_matrix()

    @staticmethod
    def lerp(
        p0: np.ndarray,
        p1: np.ndarray,
        t: float
    ) -> np.ndarray:
        """Linear interpolation p0 + (p1 - p0) * t"""
        p0 = np.asarray(p0, dtype=np.float64)
        return p0 + (np.asarray(p1, dtype=np.float64) - p0) * t

    @staticmethod
    def slerp(
        q0: Quaternion,
        q1: Quaternion,
        t: Union[float, np.floating]
    ) -> Quaternion:
        """
        Spherical linear interpolation between two rotations

        Constant angular velocity along the shortest arc, so q and -q
        inputs blend the same way.

        Args:
            q0: start rotation
            q1: end rotation
            t: interpolation parameter [0, 1]

        Returns:
            interpolated quaternion
        """
        t = float(t)
        if t <= 0.0 or q0 == q1:
            return q0
        if t >= 1.0:
            return q1

        key_rots = Rotation.from_quat([q0.to_array(), q1.to_array()])
        slerp = Slerp([0, 1], key_rots)
        return Quaternion.from_array(slerp(t).as_quat())
