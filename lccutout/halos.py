"""
Halo catalog input.

A halo file is plain text with one halo per row, whitespace delimited:

    tag1 x1 y1 z1
    tag2 x2 y2 z2
    ...

Tags are kept as strings and may carry metadata beyond the FOF tag.
"""

import logging
from pathlib import Path
from typing import List, Optional, Tuple

import numpy as np

from .config import HaloInputError

logger = logging.getLogger(__name__)


def read_halo_file(halo_file) -> Tuple[List[str], np.ndarray]:
    """
    Read halo tags and positions.

    Returns:
        Tuple (tags, positions) with positions of shape (N, 3), float32

    Raises:
        FileNotFoundError: If the halo file doesn't exist
        HaloInputError: If the token count is not a multiple of four or a
            coordinate cannot be parsed as a float
    """
    path = Path(halo_file)
    if not path.exists():
        raise FileNotFoundError(f"Halo file not found: {path}")

    tokens = path.read_text().split()
    if len(tokens) % 4 != 0:
        raise HaloInputError(
            "Each halo position given in input file must have an id and three "
            "components in the space-delimited form: tag x y z "
            f"({len(tokens)} tokens found in {path})")

    tags = tokens[0::4]
    try:
        positions = np.array([[float(t) for t in tokens[i + 1:i + 4]]
                              for i in range(0, len(tokens), 4)], dtype=np.float32)
    except ValueError as e:
        raise HaloInputError(f"Invalid halo coordinate in {path}: {e}") from e

    return tags, positions.reshape(-1, 3)


def select_halo(tags: List[str], positions: np.ndarray, halo_id: Optional[str] = None) -> np.ndarray:
    """Position of the halo tagged halo_id, or of the first halo when halo_id is None."""
    if not tags:
        raise HaloInputError("Halo file contains no halos")
    if halo_id is None:
        return positions[0]
    try:
        return positions[tags.index(str(halo_id))]
    except ValueError:
        raise HaloInputError(f"Halo '{halo_id}' not found among {len(tags)} halos") from None
