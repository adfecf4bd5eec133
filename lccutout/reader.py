"""
Lightcone step readers.

Reading the simulation's native columnar format is delegated to a
SnapshotReader. A reader receives the header path of one step and the
process group, and returns this process's LocalPartition; it is responsible
for redistributing records when the number of stored blocks does not match
the number of processes.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Tuple

import numpy as np

import lccutout.dataspecs as lcds
from .config import ReadError
from .particles import LocalPartition
from .process_group import ProcessGroup

logger = logging.getLogger(__name__)


def block_range(nrecords: int, rank: int, size: int) -> Tuple[int, int]:
    """
    Contiguous [start, stop) record range of one rank.

    Block sizes differ by at most one record; lower ranks take the extra ones.
    """
    base, extra = divmod(nrecords, size)
    start = rank * base + min(rank, extra)
    stop = start + base + (1 if rank < extra else 0)
    return start, stop


class SnapshotReader(ABC):
    """Reads the local partition of one lightcone step."""

    @abstractmethod
    def read(self, header_path, group: ProcessGroup) -> LocalPartition:
        pass


class RawLightconeReader(SnapshotReader):
    """
    Reader for flat record files with the LIGHTCONE_RECORD layout.

    The header file holds the records themselves, native byte order, no
    header bytes. Records are split into one contiguous block per rank.
    """

    def __init__(self, dtype=None):
        self.dtype = np.dtype(dtype if dtype is not None else lcds.LIGHTCONE_RECORD)

    def count_records(self, path: Path) -> int:
        size = path.stat().st_size
        if size % self.dtype.itemsize != 0:
            raise ReadError(f"File {path} size {size} is not a multiple of the "
                            f"{self.dtype.itemsize}-byte record size")
        return size // self.dtype.itemsize

    def read(self, header_path, group: ProcessGroup) -> LocalPartition:
        path = Path(header_path)
        if not path.exists():
            raise ReadError(f"Lightcone step file not found: {path}")

        nrecords = self.count_records(path)
        start, stop = block_range(nrecords, group.rank(), group.size())
        count = stop - start

        if count == 0:
            records = np.empty(0, dtype=self.dtype)
        else:
            try:
                records = np.fromfile(path, dtype=self.dtype, count=count,
                                      offset=start * self.dtype.itemsize)
            except (IOError, ValueError) as e:
                raise ReadError(f"Failed to read {path}: {e}") from e
            if records.size != count:
                raise ReadError(f"Short read from {path}: expected {count} records, got {records.size}")

        logger.debug(f"Rank {group.rank()}: read records [{start}, {stop}) of {nrecords} from {path}")
        return LocalPartition.from_records(records)


def write_raw_step(path, partition: LocalPartition, dtype=None) -> Path:
    """Write a partition as a flat record file readable by RawLightconeReader."""
    dtype = np.dtype(dtype if dtype is not None else lcds.LIGHTCONE_RECORD)
    records = np.empty(len(partition), dtype=dtype)
    for name in dtype.names:
        records[name] = partition[name]
    path = Path(path)
    records.tofile(path)
    return path
