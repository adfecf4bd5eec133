"""
Columnar particle batches.

A LocalPartition holds one step's worth of records owned by this process;
a CutoutBatch holds the records that survived selection plus the derived
angular columns. Both are built fresh for every step and validate that all
columns share one length.
"""

from typing import Dict, Iterable, Mapping

import numpy as np

import lccutout.dataspecs as lcds


class ColumnBatch:
    """Struct-of-arrays container with a fixed column set and a common length."""

    columns: Mapping[str, str] = {}

    def __init__(self, data: Mapping[str, np.ndarray]):
        missing = [name for name in self.columns if name not in data]
        if missing:
            raise ValueError(f"{type(self).__name__} missing columns: {missing}")

        self._data: Dict[str, np.ndarray] = {
            name: np.ascontiguousarray(data[name], dtype=dtype)
            for name, dtype in self.columns.items()
        }

        lengths = {name: arr.shape[0] for name, arr in self._data.items()}
        if len(set(lengths.values())) > 1:
            raise ValueError(f"{type(self).__name__} columns have mismatched lengths: {lengths}")
        self._size = next(iter(lengths.values())) if lengths else 0

    @classmethod
    def empty(cls):
        return cls({name: np.empty(0, dtype=dtype) for name, dtype in cls.columns.items()})

    def __len__(self) -> int:
        return self._size

    def __getitem__(self, name: str) -> np.ndarray:
        return self._data[name]

    def __contains__(self, name: str) -> bool:
        return name in self._data

    def __iter__(self):
        return iter(self._data)

    def __repr__(self):
        return f"{type(self).__name__}(size={self._size}, columns={list(self._data)})"


class LocalPartition(ColumnBatch):
    """Records of one step owned by the local process."""

    columns = lcds.input_columns

    @classmethod
    def from_records(cls, records: np.ndarray) -> 'LocalPartition':
        """Build a partition from a structured array with the input columns."""
        return cls({name: records[name] for name in cls.columns})

    @classmethod
    def concatenate(cls, partitions: Iterable['LocalPartition']) -> 'LocalPartition':
        partitions = list(partitions)
        if not partitions:
            return cls.empty()
        return cls({name: np.concatenate([p[name] for p in partitions]) for name in cls.columns})


class CutoutBatch(ColumnBatch):
    """Selected records of one step, with derived theta/phi columns in arcseconds."""

    columns = lcds.output_fields

    @classmethod
    def from_selection(cls, partition: LocalPartition, mask: np.ndarray,
                       theta: np.ndarray, phi: np.ndarray) -> 'CutoutBatch':
        """
        Take the masked rows of partition, in their original order, and attach
        theta/phi (already restricted to the same rows).
        """
        data = {name: partition[name][mask] for name in cls.columns if name not in lcds.derived_fields}
        data['theta'] = theta
        data['phi'] = phi
        return cls(data)
