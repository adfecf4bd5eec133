#!/usr/bin/env python3
"""
Test lccutout offset-seeked output writing.

Covers output naming, the step directory checks and the rank-major
concatenation of per-rank batches into one file per field.
"""

import numpy as np
import pytest

import lccutout.dataspecs as lcds
from lccutout.config import CollectiveError, OutputConflictError
from lccutout.offsets import OffsetCoordinator, WriteLayout
from lccutout.particles import CutoutBatch
from lccutout.process_group import PosixFieldFile, SerialProcessGroup
from lccutout.writer import (
    ParallelWriter,
    cutout_size,
    field_filename,
    prepare_step_directory,
    read_cutout_field,
    step_output_dir,
)
from utils.thread_group import run_group


def make_batch(x_values, id_start=0):
    """Cutout batch whose x column holds x_values and other columns follow from it."""
    x = np.asarray(x_values, dtype=np.float32)
    n = x.size
    data = {name: np.zeros(n) for name in CutoutBatch.columns}
    data['x'] = x
    data['y'] = x + 0.5
    data['theta'] = x * 10
    data['id'] = np.arange(id_start, id_start + n)
    data['rotation'] = np.arange(n) % 8
    return CutoutBatch(data)


class TestNaming:
    """Test output directory and file names."""

    def test_step_dir_and_field_file(self, tmp_path):
        step_dir = step_output_dir(tmp_path, "lc", 487)
        assert step_dir == tmp_path / "lcCutout487"
        assert field_filename(step_dir, "theta", 487) == step_dir / "theta.487.bin"

    def test_field_order(self):
        assert list(lcds.output_fields) == ['id', 'x', 'y', 'z', 'vx', 'vy', 'vz',
                                            'theta', 'phi', 'a', 'rotation', 'replication']


class TestPrepareStepDirectory:
    """Test creation and conflict detection of step output directories."""

    def test_creates_missing_directory(self, tmp_path):
        step_dir = tmp_path / "out" / "lcCutout498"
        assert prepare_step_directory(step_dir, SerialProcessGroup()) == step_dir
        assert step_dir.is_dir()

    def test_existing_empty_directory_accepted(self, tmp_path):
        step_dir = tmp_path / "lcCutout498"
        step_dir.mkdir()
        prepare_step_directory(step_dir, SerialProcessGroup())

    def test_non_empty_directory_rejected(self, tmp_path):
        step_dir = tmp_path / "lcCutout498"
        step_dir.mkdir()
        (step_dir / "x.498.bin").write_bytes(b"\0" * 4)
        with pytest.raises(OutputConflictError, match="non-empty"):
            prepare_step_directory(step_dir, SerialProcessGroup())

    def test_conflict_seen_by_every_rank(self, tmp_path):
        step_dir = tmp_path / "lcCutout498"
        step_dir.mkdir()
        (step_dir / "stale").touch()
        _, errors = run_group(3, lambda g: prepare_step_directory(step_dir, g))
        assert all(isinstance(e, OutputConflictError) for e in errors)


class TestParallelWriter:
    """Test per-field writes at gathered offsets."""

    def test_serial_write_and_read_back(self, tmp_path):
        group = SerialProcessGroup()
        batch = make_batch([1.0, 2.0, 3.0, 4.0], id_start=100)
        layout = WriteLayout.from_counts([len(batch)])
        step_dir = prepare_step_directory(tmp_path / "lcCutout10", group)

        paths = ParallelWriter(group).write(batch, layout, step_dir, 10)

        assert set(paths) == set(lcds.output_fields)
        assert paths['id'].stat().st_size == 4 * 8
        assert paths['rotation'].stat().st_size == 4 * 4
        np.testing.assert_array_equal(read_cutout_field(step_dir, 'x', 10), [1, 2, 3, 4])
        np.testing.assert_array_equal(read_cutout_field(step_dir, 'id', 10), [100, 101, 102, 103])
        assert cutout_size(step_dir, 10) == 4

    def test_empty_batch_writes_empty_files(self, tmp_path):
        group = SerialProcessGroup()
        step_dir = prepare_step_directory(tmp_path / "lcCutout10", group)
        paths = ParallelWriter(group).write(CutoutBatch.empty(), WriteLayout.from_counts([0]), step_dir, 10)
        assert all(p.exists() and p.stat().st_size == 0 for p in paths.values())

    def test_two_ranks_rank_major_order(self, tmp_path):
        """Rank 0 holds 3 records and rank 1 holds 5: one 8-element file per field."""
        batches = [make_batch([1.0, 2.0, 3.0], id_start=0),
                   make_batch([10.0, 11.0, 12.0, 13.0, 14.0], id_start=1000)]
        output_dir = tmp_path / "out"

        def write_step(group):
            batch = batches[group.rank()]
            layout = OffsetCoordinator(group).exchange(len(batch))
            step_dir = prepare_step_directory(step_output_dir(output_dir, "lc", 42), group)
            ParallelWriter(group).write(batch, layout, step_dir, 42)
            return layout

        layouts, errors = run_group(2, write_step)
        assert errors == [None, None]
        assert layouts[0].count.tolist() == [3, 5]
        assert layouts[0].offset.tolist() == [0, 3]

        step_dir = output_dir / "lcCutout42"
        np.testing.assert_array_equal(read_cutout_field(step_dir, 'x', 42),
                                      [1, 2, 3, 10, 11, 12, 13, 14])
        np.testing.assert_array_equal(read_cutout_field(step_dir, 'id', 42),
                                      [0, 1, 2, 1000, 1001, 1002, 1003, 1004])
        for name, dtype in lcds.output_fields.items():
            size = field_filename(step_dir, name, 42).stat().st_size
            assert size == 8 * np.dtype(dtype).itemsize

    def test_layout_must_match_batch(self, tmp_path):
        group = SerialProcessGroup()
        step_dir = prepare_step_directory(tmp_path / "lcCutout1", group)
        with pytest.raises(CollectiveError, match="does not match"):
            ParallelWriter(group).write(make_batch([1.0, 2.0]), WriteLayout.from_counts([3]), step_dir, 1)
        with pytest.raises(CollectiveError, match="ranks"):
            ParallelWriter(group).write(make_batch([1.0]), WriteLayout.from_counts([1, 1]), step_dir, 1)


class TestPosixFieldFile:
    """Test offset writes on POSIX field files."""

    def test_out_of_order_writes(self, tmp_path):
        path = tmp_path / "field.bin"
        with PosixFieldFile(path) as handle:
            handle.write_at(8, np.array([3.0, 4.0], dtype=np.float32))
            handle.write_at(0, np.array([1.0, 2.0], dtype=np.float32))
        np.testing.assert_array_equal(np.fromfile(path, dtype=np.float32), [1, 2, 3, 4])

    def test_unknown_field_read_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            read_cutout_field(tmp_path, 'mass', 1)
