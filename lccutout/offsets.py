"""
Distributed write offsets.

Each process contributes the size of its local cutout batch; after one
all-gather every process holds the same count[] array and computes the
exclusive prefix sum offset[]. Concatenating the batches in ascending rank
order then defines one deterministic global sequence, and each rank owns the
element range [offset[rank], offset[rank] + count[rank]) of every field file.
"""

import logging
from dataclasses import dataclass

import numpy as np

from .config import CollectiveError
from .process_group import ProcessGroup

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WriteLayout:
    """Per-rank element counts and exclusive-prefix-sum offsets for one step."""
    count: np.ndarray
    offset: np.ndarray

    @classmethod
    def from_counts(cls, counts) -> 'WriteLayout':
        count = np.asarray(counts, dtype=np.int64).reshape(-1)
        if np.any(count < 0):
            raise CollectiveError(f"Negative record count in gathered counts: {count.tolist()}")
        # Sized to the group every step before it is populated
        offset = np.zeros(count.size, dtype=np.int64)
        if count.size > 1:
            offset[1:] = np.cumsum(count[:-1])
        return cls(count=count, offset=offset)

    @property
    def nranks(self) -> int:
        return int(self.count.size)

    @property
    def total(self) -> int:
        return int(self.count.sum())

    def byte_offset(self, rank: int, element_size: int) -> int:
        return int(self.offset[rank]) * element_size

    def element_range(self, rank: int):
        start = int(self.offset[rank])
        return start, start + int(self.count[rank])


class OffsetCoordinator:
    """Computes the per-step WriteLayout through one all-gather over the group."""

    def __init__(self, group: ProcessGroup):
        self.group = group

    def exchange(self, local_count: int) -> WriteLayout:
        """
        Gather every rank's local count and derive write offsets.

        Must be called by all ranks; a barrier precedes the exchange so that
        no rank starts writing before every rank has finished filtering.
        """
        self.group.barrier()
        counts = self.group.all_gather(int(local_count))

        if len(counts) != self.group.size():
            raise CollectiveError(
                f"All-gather returned {len(counts)} counts for a group of {self.group.size()}")
        if counts[self.group.rank()] != int(local_count):
            raise CollectiveError(
                f"Rank {self.group.rank()} count mismatch after all-gather: "
                f"{counts[self.group.rank()]} != {local_count}")

        layout = WriteLayout.from_counts(counts)
        self.group.log_info(f"rank object counts: {layout.count.tolist()}")
        self.group.log_info(f"rank offsets: {layout.offset.tolist()}")
        return layout
