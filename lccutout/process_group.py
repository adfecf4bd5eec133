"""
Process group abstraction for the SPMD cutout pipeline.

Every cooperating process runs the same step loop. All cross-process
coordination goes through the small interface defined here:

- rank() / size()
- barrier()
- all_gather(local_value) -> list ordered by rank
- open_field_file(path) -> handle with independent-seek writes
- abort(errorcode, exc) -> terminate the whole group

Two implementations are provided: SerialProcessGroup (single process, POSIX
file writes) and MPIProcessGroup (mpi4py communicator, POSIX or MPI-IO file
writes). mpi4py is imported only when an MPI group is actually created.

Example usage:
    group = get_process_group()
    counts = group.all_gather(len(batch))
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import Any, List, Optional

import numpy as np

from .config import USE_MPIIO, CollectiveError

logger = logging.getLogger(__name__)


def _get_slurm_info():
    """
    Get SLURM environment information.

    Returns:
        Dict with keys 'ntasks', 'procid' and 'is_slurm'
    """
    try:
        ntasks = int(os.environ.get('SLURM_NTASKS', '1'))
        procid = int(os.environ.get('SLURM_PROCID', '0'))
        is_slurm = 'SLURM_NTASKS' in os.environ
        return {'ntasks': ntasks, 'procid': procid, 'is_slurm': is_slurm}
    except (ValueError, TypeError):
        # Fallback if environment variables are malformed
        return {'ntasks': 1, 'procid': 0, 'is_slurm': False}


def is_distributed_mode() -> bool:
    """
    Check if running in distributed mode (MPI/SLURM multi-process environment).

    Returns:
        True if running in a multi-process distributed environment, False otherwise
    """
    # Check SLURM environment first (most reliable)
    if _get_slurm_info()['ntasks'] > 1:
        return True

    # Check MPI environment as fallback
    try:
        from mpi4py import MPI
        return MPI.COMM_WORLD.Get_size() > 1
    except ImportError:
        pass

    return False


class FieldFile(ABC):
    """Handle on one output field file supporting writes at explicit byte offsets."""

    def __init__(self, path):
        self.path = path

    @abstractmethod
    def write_at(self, offset: int, data: np.ndarray) -> None:
        """Write data contiguously starting at byte offset; returns once the write completed."""

    @abstractmethod
    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class PosixFieldFile(FieldFile):
    """Field file written with os.pwrite; created if absent, never truncated."""

    def __init__(self, path):
        super().__init__(path)
        self._fd = os.open(path, os.O_WRONLY | os.O_CREAT, 0o644)

    def write_at(self, offset: int, data: np.ndarray) -> None:
        view = memoryview(np.ascontiguousarray(data)).cast('B')
        written = 0
        while written < len(view):
            n = os.pwrite(self._fd, view[written:], offset + written)
            if n <= 0:
                raise OSError(f"Short write to {self.path} at offset {offset + written}")
            written += n

    def close(self) -> None:
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None


class MPIFieldFile(FieldFile):
    """Field file opened collectively with MPI-IO; writes use an independent file pointer."""

    def __init__(self, path, comm):
        super().__init__(path)
        from mpi4py import MPI
        self._MPI = MPI
        self._fh = MPI.File.Open(comm, str(path), MPI.MODE_CREATE | MPI.MODE_WRONLY)

    def write_at(self, offset: int, data: np.ndarray) -> None:
        data = np.ascontiguousarray(data)
        self._fh.Seek(offset, self._MPI.SEEK_SET)
        request = self._fh.Iwrite(data)
        request.Wait()

    def close(self) -> None:
        if self._fh is not None:
            self._fh.Close()
            self._fh = None


class ProcessGroup(ABC):
    """Fixed-size group of cooperating processes."""

    @abstractmethod
    def rank(self) -> int:
        pass

    @abstractmethod
    def size(self) -> int:
        pass

    @abstractmethod
    def barrier(self) -> None:
        pass

    @abstractmethod
    def all_gather(self, local_value: Any) -> List[Any]:
        """Collect one value from every process, ordered by rank, on every process."""

    @abstractmethod
    def open_field_file(self, path) -> FieldFile:
        pass

    @abstractmethod
    def abort(self, errorcode: int = 1, exc: Optional[BaseException] = None) -> None:
        """Terminate every process in the group."""

    @property
    def is_master(self) -> bool:
        return self.rank() == 0

    def log_info(self, message: str) -> None:
        """
        Log an info message from the master process only.

        Warnings and errors are logged from every process since they may be
        process-specific.
        """
        if self.is_master:
            logger.info(message)


class SerialProcessGroup(ProcessGroup):
    """Group of one process; collectives are trivial."""

    def rank(self) -> int:
        return 0

    def size(self) -> int:
        return 1

    def barrier(self) -> None:
        pass

    def all_gather(self, local_value: Any) -> List[Any]:
        return [local_value]

    def open_field_file(self, path) -> FieldFile:
        return PosixFieldFile(path)

    def abort(self, errorcode: int = 1, exc: Optional[BaseException] = None) -> None:
        # Nothing else to stop; surface the failure to the caller
        if exc is not None:
            raise exc
        raise CollectiveError(f"Process group aborted with error code {errorcode}")


class MPIProcessGroup(ProcessGroup):
    """
    Process group backed by an mpi4py communicator.

    Args:
        comm: Communicator to use (MPI.COMM_WORLD if None)
        use_mpiio: Write field files with MPI-IO instead of POSIX pwrite
    """

    def __init__(self, comm=None, use_mpiio: bool = USE_MPIIO):
        from mpi4py import MPI
        self._MPI = MPI
        self.comm = comm if comm is not None else MPI.COMM_WORLD
        self.use_mpiio = use_mpiio

    def rank(self) -> int:
        return self.comm.Get_rank()

    def size(self) -> int:
        return self.comm.Get_size()

    def barrier(self) -> None:
        try:
            self.comm.Barrier()
        except self._MPI.Exception as e:
            raise CollectiveError(f"Barrier failed on rank {self.rank()}: {e}") from e

    def all_gather(self, local_value: Any) -> List[Any]:
        try:
            return self.comm.allgather(local_value)
        except self._MPI.Exception as e:
            raise CollectiveError(f"All-gather failed on rank {self.rank()}: {e}") from e

    def open_field_file(self, path) -> FieldFile:
        if self.use_mpiio:
            return MPIFieldFile(path, self.comm)
        return PosixFieldFile(path)

    def abort(self, errorcode: int = 1, exc: Optional[BaseException] = None) -> None:
        logger.error(f"Rank {self.rank()}: aborting process group (error code {errorcode})")
        self.comm.Abort(errorcode)


def get_process_group() -> ProcessGroup:
    """Return an MPI group when running distributed, otherwise a serial group."""
    if is_distributed_mode():
        return MPIProcessGroup()
    return SerialProcessGroup()
