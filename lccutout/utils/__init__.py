"""
Utility functions for lccutout.

This module contains helpers for generating synthetic lightcone data used by
tests and examples.
"""

from .synthetic_data import (
    generate_synthetic_partition,
    partition_from_positions,
    write_lightcone_steps,
)

__all__ = [
    'generate_synthetic_partition',
    'partition_from_positions',
    'write_lightcone_steps',
]
