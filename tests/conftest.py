#!/usr/bin/env python3
"""
Global pytest configuration for lccutout tests.

This configuration handles both serial and distributed test execution
by detecting MPI environment and coordinating test execution across processes.
Multi-rank behaviour is exercised in-process through tests/utils/thread_group.py,
so under an MPI launcher every test runs on rank 0 only.
"""

import pytest
import os
import sys
import logging
from pathlib import Path

# Add the package root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from lccutout.utils import generate_synthetic_partition, write_lightcone_steps
from test_config import TEST_CONFIG

# Check debug mode
DEBUG_MODE = os.environ.get('LCCUTOUT_DEBUG_MODE', 'false').lower() == 'true'

# Configure logging levels based on debug mode
if DEBUG_MODE:
    logging.getLogger('lccutout').setLevel(logging.DEBUG)
else:
    logging.getLogger('lccutout').setLevel(logging.WARNING)
    logging.getLogger('mpi4py').setLevel(logging.WARNING)


def pytest_configure(config):
    """Configure pytest for MPI-aware test execution."""
    # Detect if we're running in MPI/SLURM environment
    is_mpi_env = 'SLURM_NTASKS' in os.environ and int(os.environ['SLURM_NTASKS']) > 1

    if is_mpi_env:
        config._mpi_ntasks = int(os.environ['SLURM_NTASKS'])
        config._mpi_procid = int(os.environ.get('SLURM_PROCID', '0'))
        config._is_mpi = True
        print(f"Detected MPI environment: {config._mpi_ntasks} processes, current rank: {config._mpi_procid}")
    else:
        config._is_mpi = False


def pytest_runtest_setup(item):
    """Run every test on rank 0 only when launched under MPI."""
    if not getattr(item.config, '_is_mpi', False):
        return
    if item.config._mpi_procid != 0:
        pytest.skip("Serial test (worker process)")


@pytest.fixture
def lightcone_dir(tmp_path):
    """Lightcone output directory with synthetic steps and ignored data-block files."""
    partitions = {
        step: generate_synthetic_partition(TEST_CONFIG['n_particles'],
                                           box_size=TEST_CONFIG['box_size'],
                                           step=step,
                                           seed=TEST_CONFIG['seed'] + step)
        for step in TEST_CONFIG['steps']
    }
    return write_lightcone_steps(tmp_path / "lc", partitions, extra_blocks=("#0", "#1"))


def pytest_sessionfinish(session, exitstatus):
    """Synchronize all MPI processes at the end of testing."""
    if getattr(session.config, '_is_mpi', False):
        try:
            from mpi4py import MPI
            MPI.COMM_WORLD.Barrier()  # Ensure all processes finish together
            if session.config._mpi_procid == 0:
                print(f"\nAll {session.config._mpi_ntasks} MPI processes completed testing")
        except ImportError:
            pass
