"""
Vector helpers and the Rodrigues coordinate rotation.

The halo-centered cutout re-expresses every candidate position in a frame
where the target halo sits on the +x axis, i.e. at (r, 90 deg, 0 deg) in
spherical coordinates. The axis and angle of that rotation are computed once
per run and reused for every step.

Example usage:
    rotator = CoordinateRotator.from_vectors(halo_pos, [np.linalg.norm(halo_pos), 0, 0])
    rotated = rotator.rotate_many(positions)
"""

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .config import DimensionError

logger = logging.getLogger(__name__)


def _vector(v) -> np.ndarray:
    return np.asarray(v, dtype=np.float64).reshape(-1)


def _check_same_size(v1: np.ndarray, v2: np.ndarray) -> None:
    if v1.size != v2.size:
        raise DimensionError(f"input vectors must have the same length ({v1.size} != {v2.size})")


def dot(v1, v2) -> float:
    """Dot product of two N-dimensional vectors."""
    v1, v2 = _vector(v1), _vector(v2)
    _check_same_size(v1, v2)
    return float(np.dot(v1, v2))


def cross(v1, v2) -> np.ndarray:
    """Cross product of two three-dimensional vectors."""
    v1, v2 = _vector(v1), _vector(v2)
    _check_same_size(v1, v2)
    if v1.size != 3:
        raise DimensionError(f"cross product requires three-dimensional vectors, got {v1.size}")
    return np.cross(v1, v2)


def norm_cross(a, b) -> np.ndarray:
    """
    Normalized cross product a x b.

    Returns the zero vector when a and b are parallel (|a x b| == 0).
    """
    axb = cross(a, b)
    mag = np.sqrt(np.dot(axb, axb))
    if mag == 0:
        return np.zeros(3)
    return axb / mag


def vec_pair_angle(v1, v2) -> float:
    """Angle between two vectors, in radians."""
    v1, v2 = _vector(v1), _vector(v2)
    _check_same_size(v1, v2)
    cos_angle = dot(v1, v2) / (np.linalg.norm(v1) * np.linalg.norm(v2))
    return float(np.arccos(np.clip(cos_angle, -1.0, 1.0)))


def cross_prod_matrix(k) -> np.ndarray:
    """Cross-product matrix K of the unit vector k, such that K @ v == k x v."""
    k = _vector(k)
    if k.size != 3:
        raise DimensionError(f"rotation axis must be three-dimensional, got {k.size}")
    return np.array([[ 0.0,  -k[2],  k[1]],
                     [ k[2],   0.0, -k[0]],
                     [-k[1],  k[0],   0.0]])


def rotation_matrix(K, B: float) -> np.ndarray:
    """Rodrigues rotation matrix R = I + sin(B) K + (1 - cos(B)) K^2."""
    K = np.asarray(K, dtype=np.float64)
    if K.shape != (3, 3):
        raise DimensionError(f"cross-product matrix must be 3x3, got {K.shape}")
    return np.eye(3) + np.sin(B) * K + (1.0 - np.cos(B)) * (K @ K)


@dataclass(frozen=True)
class RotationSpec:
    """Unit rotation axis k and rotation angle B (radians)."""
    axis: tuple
    angle: float

    @property
    def degrees(self) -> float:
        return float(np.degrees(self.angle))


class CoordinateRotator:
    """
    Rotates position vectors about a fixed axis by a fixed angle.

    The rotation is built once from a RotationSpec and applied either to a
    single vector or to an (N, 3) array of positions.
    """

    def __init__(self, spec: RotationSpec):
        self.spec = spec
        self.K = cross_prod_matrix(spec.axis)
        self.R = rotation_matrix(self.K, spec.angle)

    @classmethod
    def from_vectors(cls, source: Sequence[float], target: Sequence[float]) -> 'CoordinateRotator':
        """Build the rotation taking the direction of source onto the direction of target."""
        k = norm_cross(source, target)
        B = vec_pair_angle(source, target)
        if not np.any(k) and B > np.pi / 2:
            # Antiparallel: any axis perpendicular to source turns it by pi
            k = norm_cross(source, [0.0, 0.0, 1.0])
            if not np.any(k):
                k = norm_cross(source, [0.0, 1.0, 0.0])
        return cls(RotationSpec(axis=tuple(float(c) for c in k), angle=B))

    @classmethod
    def to_pole(cls, position: Sequence[float]) -> 'CoordinateRotator':
        """Build the rotation taking position onto the reference pole (|position|, 0, 0)."""
        p = _vector(position)
        if p.size != 3:
            raise DimensionError(f"position must be three-dimensional, got {p.size}")
        r = float(np.linalg.norm(p))
        return cls.from_vectors(p, [r, 0.0, 0.0])

    @property
    def axis(self) -> np.ndarray:
        return np.asarray(self.spec.axis)

    @property
    def angle(self) -> float:
        return self.spec.angle

    def rotate(self, v) -> np.ndarray:
        """
        Rotate a single vector via v' = v cosB + (k x v) sinB + k (k.v)(1 - cosB).
        """
        v = _vector(v)
        if v.size != 3:
            raise DimensionError(f"can only rotate three-dimensional vectors, got {v.size}")
        k = self.axis
        B = self.angle
        return (v * np.cos(B)
                + np.cross(k, v) * np.sin(B)
                + k * np.dot(k, v) * (1.0 - np.cos(B)))

    def rotate_many(self, positions) -> np.ndarray:
        """Rotate an (N, 3) array of positions with the rotation matrix R."""
        positions = np.asarray(positions, dtype=np.float64)
        if positions.ndim != 2 or positions.shape[1] != 3:
            raise DimensionError(f"positions must have shape (N, 3), got {positions.shape}")
        return positions @ self.R.T
