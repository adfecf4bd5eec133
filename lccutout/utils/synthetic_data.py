"""
Synthetic data generation utilities for lccutout.

Functions for generating synthetic lightcone partitions and on-disk step
directories for testing and debugging.
"""

import numpy as np
from pathlib import Path
from typing import Iterable, Optional

from ..cosmology import step_to_a
from ..particles import LocalPartition
from ..reader import write_raw_step


def generate_synthetic_partition(n_particles: int,
                                 process_id: int = 0,
                                 box_size: float = 1050.0,
                                 step: int = 0,
                                 total_steps: int = 500,
                                 initial_redshift: float = 200.0,
                                 id_offset: Optional[int] = None,
                                 seed: int = 42) -> LocalPartition:
    """
    Generate a synthetic lightcone partition.

    Positions are uniform in [-box_size, box_size]^3 so that every octant is
    populated; ids are unique across processes.

    Args:
        n_particles: Number of records
        process_id: Process ID for reproducible random seeds
        box_size: Half-extent of the position cube
        step: Step tag written to every record
        total_steps: Total simulation steps, used for the scale factor
        initial_redshift: Initial redshift, used for the scale factor
        id_offset: First id (defaults to process_id * n_particles)
        seed: Base random seed
    """
    rng = np.random.default_rng(seed + process_id)  # Reproducible but different per process

    if id_offset is None:
        id_offset = process_id * n_particles

    pos = rng.uniform(-box_size, box_size, size=(n_particles, 3)).astype(np.float32)
    vel = rng.normal(0.0, 300.0, size=(n_particles, 3)).astype(np.float32)
    a = np.full(n_particles, step_to_a(step, total_steps, initial_redshift), dtype=np.float32)

    return LocalPartition({
        'x': pos[:, 0], 'y': pos[:, 1], 'z': pos[:, 2],
        'vx': vel[:, 0], 'vy': vel[:, 1], 'vz': vel[:, 2],
        'a': a,
        'id': np.arange(id_offset, id_offset + n_particles, dtype=np.int64),
        'step': np.full(n_particles, step, dtype=np.int32),
        'rotation': rng.integers(0, 8, size=n_particles, dtype=np.int32),
        'replication': rng.integers(0, 27, size=n_particles, dtype=np.int32),
    })


def partition_from_positions(positions, step: int = 0, id_offset: int = 0) -> LocalPartition:
    """Partition with the given (N, 3) positions and simple deterministic other columns."""
    positions = np.asarray(positions, dtype=np.float32).reshape(-1, 3)
    n = positions.shape[0]
    index = np.arange(n)
    return LocalPartition({
        'x': positions[:, 0], 'y': positions[:, 1], 'z': positions[:, 2],
        'vx': index.astype(np.float32), 'vy': -index.astype(np.float32), 'vz': np.zeros(n, dtype=np.float32),
        'a': np.full(n, 0.5, dtype=np.float32),
        'id': np.arange(id_offset, id_offset + n, dtype=np.int64),
        'step': np.full(n, step, dtype=np.int32),
        'rotation': (index % 8).astype(np.int32),
        'replication': (index % 27).astype(np.int32),
    })


def write_lightcone_steps(lc_dir, partitions_by_step, prefix: str = "lc",
                          header_name: str = "lc_output", extra_blocks: Iterable[str] = ()) -> Path:
    """
    Write one step subdirectory per entry of partitions_by_step.

    Each step directory gets one header file (``{header_name}.{step}``) holding
    the records, plus empty data-block placeholders named in extra_blocks
    (which should contain '#' to be ignored by header discovery).
    """
    lc_dir = Path(lc_dir)
    lc_dir.mkdir(parents=True, exist_ok=True)
    for step, partition in partitions_by_step.items():
        step_dir = lc_dir / f"{prefix}{step}"
        step_dir.mkdir(exist_ok=True)
        write_raw_step(step_dir / f"{header_name}.{step}", partition)
        for block in extra_blocks:
            (step_dir / f"{header_name}.{step}{block}").touch()
    return lc_dir
