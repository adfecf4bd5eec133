"""
Scale factor, redshift and step conversions.

Simulation steps are spaced linearly in scale factor between the initial
redshift and a = 1.
"""

import numpy as np


def a_to_z(a):
    """Converts scale factor to redshift."""
    return 1.0 / np.asarray(a, dtype=np.float64) - 1.0


def z_to_a(z):
    """Converts redshift to scale factor."""
    return 1.0 / (1.0 + np.asarray(z, dtype=np.float64))


def z_to_step(z, total_steps: int, max_z: float) -> int:
    """
    Convert a redshift to a step number, rounding toward a = 0.

    Args:
        z: Redshift to convert
        total_steps: Maximum snapshot number (the initial conditions are not a step)
        max_z: Initial redshift of the simulation

    Returns:
        The simulation step corresponding to z
    """
    if total_steps < 2:
        raise ValueError(f"total_steps must be at least 2, got {total_steps}")
    amin = 1.0 / (max_z + 1.0)
    amax = 1.0
    adiff = (amax - amin) / (total_steps - 1)
    a = float(z_to_a(z))
    return int(np.floor((a - amin) / adiff))


def step_to_a(step: int, total_steps: int, max_z: float) -> float:
    """Scale factor at the start of a step; inverse of z_to_step on the step grid."""
    amin = 1.0 / (max_z + 1.0)
    adiff = (1.0 - amin) / (total_steps - 1)
    return amin + step * adiff
