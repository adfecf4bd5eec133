"""
Offset-seeked parallel writes of cutout batches.

Output layout, one directory per step:

    <output_dir>/<prefix>Cutout<step>/<field>.<step>.bin

Each field file is a raw concatenation of native elements in rank-major,
within-rank-original order. Every rank writes its whole local buffer at
byte offset offset[rank] * element_size(field), so ranks touch disjoint byte
ranges and no locking is required.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Optional

import numpy as np

import lccutout.dataspecs as lcds
from .config import CUTOUT_DIR_TEMPLATE, FIELD_FILE_TEMPLATE, CollectiveError, OutputConflictError
from .offsets import WriteLayout
from .particles import CutoutBatch
from .process_group import ProcessGroup

logger = logging.getLogger(__name__)


def step_output_dir(output_dir, prefix: str, step: int) -> Path:
    """Directory holding the cutout of one step."""
    return Path(output_dir) / CUTOUT_DIR_TEMPLATE.format(prefix=prefix, step=step)


def field_filename(step_dir, field: str, step: int) -> Path:
    """Path of one field file of one step."""
    return Path(step_dir) / FIELD_FILE_TEMPLATE.format(field=field, step=step)


def _check_or_create(step_dir: Path) -> Optional[str]:
    """Return an error message if step_dir holds data, creating it if absent."""
    if step_dir.exists():
        if not step_dir.is_dir():
            return f"Output path {step_dir} exists and is not a directory"
        if any(step_dir.iterdir()):
            return f"Directory {step_dir} is non-empty"
        logger.debug(f"Entered subdir: {step_dir}")
        return None
    try:
        step_dir.mkdir(parents=True, mode=0o755)
    except FileExistsError:
        pass
    except OSError as e:
        return f"Failed to create output directory {step_dir}: {e}"
    logger.debug(f"Created subdir: {step_dir}")
    return None


def prepare_step_directory(step_dir, group: ProcessGroup) -> Path:
    """
    Ensure the step output directory exists and is empty.

    The check runs on rank 0 and its verdict is shared through an all-gather,
    so either every rank proceeds or every rank raises OutputConflictError.
    Checking on every rank would race against other ranks creating the
    field files.

    Raises:
        OutputConflictError: If the directory already holds files
    """
    step_dir = Path(step_dir)
    error = _check_or_create(step_dir) if group.is_master else None
    verdicts = group.all_gather(error)
    errors = [v for v in verdicts if v]
    if errors:
        raise OutputConflictError(errors[0])
    return step_dir


class ParallelWriter:
    """
    Writes one CutoutBatch per step into per-field flat binary files.

    Args:
        group: Process group providing rank and field file handles
        fields: Mapping of field name to element dtype, in write order
    """

    def __init__(self, group: ProcessGroup, fields: Optional[Dict[str, str]] = None):
        self.group = group
        self.fields = dict(fields if fields is not None else lcds.output_fields)

    def write(self, batch: CutoutBatch, layout: WriteLayout, step_dir, step: int) -> Dict[str, Path]:
        """
        Write every field of batch at this rank's offset.

        Files are opened for all fields first, each field is written and
        completed before the next one starts, and all files are closed at the
        end of the step.

        Returns:
            Mapping of field name to the file written
        """
        rank = self.group.rank()
        if layout.nranks != self.group.size():
            raise CollectiveError(f"Write layout has {layout.nranks} ranks, group has {self.group.size()}")
        if int(layout.count[rank]) != len(batch):
            raise CollectiveError(f"Rank {rank}: layout count {int(layout.count[rank])} "
                             f"does not match batch size {len(batch)}")

        paths = {name: field_filename(step_dir, name, step) for name in self.fields}
        handles = {}
        try:
            for name in self.fields:
                handles[name] = self.group.open_field_file(paths[name])

            self.group.log_info("Writing files...")
            for name, dtype in self.fields.items():
                data = np.ascontiguousarray(batch[name], dtype=dtype)
                offset = layout.byte_offset(rank, data.dtype.itemsize)
                handles[name].write_at(offset, data)
                logger.debug(f"Rank {rank}: wrote {data.size} {name} elements at byte {offset}")
        finally:
            for handle in handles.values():
                handle.close()

        return paths


def read_cutout_field(step_dir, field: str, step: int) -> np.ndarray:
    """Read back one field file of one step with the field's element type."""
    if field not in lcds.output_fields:
        raise ValueError(f"Unknown output field: {field}")
    path = field_filename(step_dir, field, step)
    if not path.exists():
        raise FileNotFoundError(f"Cutout field file not found: {path}")
    return np.fromfile(path, dtype=lcds.output_fields[field])


def cutout_size(step_dir, step: int, field: str = 'x') -> int:
    """Number of elements in one field file of a written step."""
    path = field_filename(step_dir, field, step)
    return os.path.getsize(path) // np.dtype(lcds.output_fields[field]).itemsize
