"""
Angular region selection.

Two region selectors share one interface, ``test(theta, phi)``, with strict
inequalities on all four bounds:

- FixedWindow: theta/phi bounds supplied directly, in arcseconds.
- HaloCenteredWindow: a window of half-angle atan((L/2) / r) centered on
  (theta=90 deg, phi=0 deg), evaluated in the frame where the target halo
  has been rotated onto the +x axis.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from .config import ARCSEC, DimensionError, HaloInputError
from .rotation import CoordinateRotator

logger = logging.getLogger(__name__)

RAD_TO_ARCSEC = 180.0 / np.pi * ARCSEC


def spherical_angles(x, y, z) -> Tuple[np.ndarray, np.ndarray]:
    """
    Convert cartesian positions to (theta, phi) in arcseconds.

    theta = acos(z / r), phi = atan(y / x). The arctangent (not arctan2) is
    only meaningful for x > 0, which the octant pre-filter guarantees.
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    z = np.asarray(z, dtype=np.float64)
    r = np.sqrt(x * x + y * y + z * z)
    theta = np.arccos(z / r) * RAD_TO_ARCSEC
    phi = np.arctan(y / x) * RAD_TO_ARCSEC
    return theta, phi


@dataclass(frozen=True)
class SelectionWindow:
    """Angular bounds in arcseconds; all bounds are exclusive."""
    theta_min: float
    theta_max: float
    phi_min: float
    phi_max: float

    def contains(self, theta, phi):
        """Strict containment test, elementwise for arrays."""
        return ((theta > self.theta_min) & (theta < self.theta_max) &
                (phi > self.phi_min) & (phi < self.phi_max))

    def in_degrees(self) -> Tuple[float, float, float, float]:
        return tuple(v / ARCSEC for v in
                     (self.theta_min, self.theta_max, self.phi_min, self.phi_max))


class RegionSelector:
    """Base class for angular region selectors."""

    window: SelectionWindow
    rotator: Optional[CoordinateRotator] = None

    def test(self, theta, phi):
        """Return True where (theta, phi) lies strictly inside the window."""
        return self.window.contains(theta, phi)

    def transform(self, positions: np.ndarray) -> np.ndarray:
        """Map (N, 3) positions into the frame in which the window is defined."""
        return positions


class FixedWindow(RegionSelector):
    """Fixed theta/phi window supplied by the caller."""

    def __init__(self, theta_cut: Sequence[float], phi_cut: Sequence[float]):
        if len(theta_cut) != 2 or len(phi_cut) != 2:
            raise DimensionError("theta_cut and phi_cut must each have two entries [min, max]")
        self.window = SelectionWindow(float(theta_cut[0]), float(theta_cut[1]),
                                      float(phi_cut[0]), float(phi_cut[1]))

    def __repr__(self):
        return f"FixedWindow({self.window})"


class HaloCenteredWindow(RegionSelector):
    """
    Window of angular half-width atan((L/2) / r) centered on a halo.

    Args:
        halo_pos: Halo position (x, y, z) in simulation length units
        box_length: Physical side length L of the cutout box, same units
    """

    def __init__(self, halo_pos: Sequence[float], box_length: float):
        halo_pos = np.asarray(halo_pos, dtype=np.float64).reshape(-1)
        if halo_pos.size != 3:
            raise DimensionError(f"halo position must have three components, got {halo_pos.size}")
        if not np.any(halo_pos):
            raise HaloInputError("halo position must not be the origin")
        if box_length <= 0:
            raise ValueError(f"box_length must be positive, got {box_length}")

        self.halo_pos = halo_pos
        self.box_length = float(box_length)
        self.halo_r = float(np.linalg.norm(halo_pos))
        self.rotator = CoordinateRotator.to_pole(halo_pos)

        self.dtheta = float(np.arctan((self.box_length / 2.0) / self.halo_r))
        self.dphi = self.dtheta
        self.window = SelectionWindow(
            theta_min=(np.pi / 2 - self.dtheta) * RAD_TO_ARCSEC,
            theta_max=(np.pi / 2 + self.dtheta) * RAD_TO_ARCSEC,
            phi_min=-self.dphi * RAD_TO_ARCSEC,
            phi_max=self.dphi * RAD_TO_ARCSEC,
        )

    @property
    def rotation(self):
        return self.rotator.spec

    def transform(self, positions: np.ndarray) -> np.ndarray:
        return self.rotator.rotate_many(positions)

    def describe(self) -> str:
        """Human-readable summary of the rotation and the cutout footprint."""
        k = self.rotator.axis
        width = np.tan(self.dtheta) * self.halo_r * 2
        return (f"Rotation is {self.rotation.degrees:.4f} deg about axis "
                f"k = ({k[0]:.4f}, {k[1]:.4f}, {k[2]:.4f}); "
                f"cutout width {width:.4f} at distance to halo of {self.halo_r:.4f} "
                f"= {np.degrees(2 * self.dtheta):.4f} deg x {np.degrees(2 * self.dphi):.4f} deg")

    def __repr__(self):
        return f"HaloCenteredWindow(halo_pos={self.halo_pos.tolist()}, box_length={self.box_length})"
