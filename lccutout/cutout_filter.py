"""
Per-record cutout filtering.

For every record in a LocalPartition:

1. keep only the positive octant (x > 0, y > 0, z > 0);
2. re-express the position in the selector's frame (rotated for the
   halo-centered window, unchanged for the fixed window);
3. convert to (theta, phi) in arcseconds;
4. keep the record if the selector accepts (theta, phi).

The octant restriction assumes the upstream lightcone already mirrors the
regions of interest into the positive octant. It is kept as-is rather than
generalized; validate it against the reader's guarantees before relying on
cutouts that straddle an octant boundary.
"""

import logging

import numpy as np

from .particles import CutoutBatch, LocalPartition
from .selection import RegionSelector, spherical_angles

logger = logging.getLogger(__name__)


def octant_mask(partition: LocalPartition) -> np.ndarray:
    """Mask of records with all three position components strictly positive."""
    return (partition['x'] > 0.0) & (partition['y'] > 0.0) & (partition['z'] > 0.0)


class CutoutFilter:
    """Applies a RegionSelector to local partitions, one step at a time."""

    def __init__(self, selector: RegionSelector):
        self.selector = selector

    def select(self, partition: LocalPartition):
        """
        Compute the selection for a partition without copying columns.

        Returns:
            Tuple (mask, theta, phi) where mask has the partition's length and
            theta/phi are given for the selected rows only.
        """
        n = len(partition)
        mask = np.zeros(n, dtype=bool)
        if n == 0:
            return mask, np.empty(0, dtype=np.float32), np.empty(0, dtype=np.float32)

        octant = octant_mask(partition)
        candidates = np.flatnonzero(octant)
        if candidates.size == 0:
            return mask, np.empty(0, dtype=np.float32), np.empty(0, dtype=np.float32)

        positions = np.column_stack([partition['x'][candidates],
                                     partition['y'][candidates],
                                     partition['z'][candidates]]).astype(np.float64)
        positions = self.selector.transform(positions)

        theta, phi = spherical_angles(positions[:, 0], positions[:, 1], positions[:, 2])
        accepted = np.asarray(self.selector.test(theta, phi), dtype=bool)

        mask[candidates[accepted]] = True
        return mask, theta[accepted].astype(np.float32), phi[accepted].astype(np.float32)

    def apply(self, partition: LocalPartition) -> CutoutBatch:
        """Return a new CutoutBatch; the input partition is left untouched."""
        mask, theta, phi = self.select(partition)
        batch = CutoutBatch.from_selection(partition, mask, theta, phi)
        logger.debug(f"Cutout filter kept {len(batch)} of {len(partition)} records "
                     f"({int(octant_mask(partition).sum()) if len(partition) else 0} in positive octant)")
        return batch
