"""lccutout: distributed lightcone cutout pipeline"""

__version__ = "0.1"

from .config import (
    ARCSEC,
    CutoutConfig,
    LccutoutError,
    CutoutConfigError,
    HaloInputError,
    DiscoveryError,
    OutputConflictError,
    DimensionError,
    CollectiveError,
    ReadError,
)
from .rotation import CoordinateRotator, RotationSpec
from .selection import SelectionWindow, RegionSelector, FixedWindow, HaloCenteredWindow, spherical_angles
from .particles import LocalPartition, CutoutBatch
from .cutout_filter import CutoutFilter
from .process_group import ProcessGroup, SerialProcessGroup, MPIProcessGroup, get_process_group
from .offsets import OffsetCoordinator, WriteLayout
from .writer import ParallelWriter, read_cutout_field
from .reader import SnapshotReader, RawLightconeReader
from .halos import read_halo_file
from .pipeline import CutoutPipeline, StepState
from .cli import main

__all__ = [
    'ARCSEC',
    'CutoutConfig',
    'LccutoutError',
    'CutoutConfigError',
    'HaloInputError',
    'DiscoveryError',
    'OutputConflictError',
    'DimensionError',
    'CollectiveError',
    'ReadError',
    'CoordinateRotator',
    'RotationSpec',
    'SelectionWindow',
    'RegionSelector',
    'FixedWindow',
    'HaloCenteredWindow',
    'spherical_angles',
    'LocalPartition',
    'CutoutBatch',
    'CutoutFilter',
    'ProcessGroup',
    'SerialProcessGroup',
    'MPIProcessGroup',
    'get_process_group',
    'OffsetCoordinator',
    'WriteLayout',
    'ParallelWriter',
    'read_cutout_field',
    'SnapshotReader',
    'RawLightconeReader',
    'read_halo_file',
    'CutoutPipeline',
    'StepState',
    'main',
]
