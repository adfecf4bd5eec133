"""
Distributed lightcone cutout pipeline.

PIPELINE ARCHITECTURE
=====================

Every process of a fixed-size group runs the same loop over lightcone steps.
Each step passes strictly in order through

    IDLE -> READING -> FILTERING -> OFFSET_EXCHANGE -> WRITING -> DONE

Step anatomy:
-------------
1. Barrier, then the SnapshotReader returns this rank's LocalPartition.
2. CutoutFilter keeps positive-octant records whose (theta, phi), in the
   selector's frame, lie strictly inside the selection window.
3. OffsetCoordinator all-gathers the per-rank counts and takes the
   exclusive prefix sum.
4. ParallelWriter writes every field of the local batch at
   offset[rank] * element_size into <prefix>Cutout<step>/<field>.<step>.bin.

The selector (and its rotation, for halo-centered cutouts) is built once
before the loop and reused for every step. The terminal step (zero
redshift) is skipped without creating any output.

Failure model:
--------------
Any fatal condition detected on a rank aborts the whole group through
ProcessGroup.abort; ranks blocked in a collective would otherwise wait
forever and the global ordering would be left inconsistent. There are no
retries and no resumption of partially written steps.
"""

import logging
import time
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .config import DEFAULT_TERMINAL_STEP, CutoutConfig
from .cosmology import z_to_step
from .cutout_filter import CutoutFilter
from .discovery import available_steps, get_lc_steps, step_header
from .halos import read_halo_file, select_halo
from .offsets import OffsetCoordinator, WriteLayout
from .process_group import ProcessGroup
from .reader import RawLightconeReader, SnapshotReader
from .selection import FixedWindow, HaloCenteredWindow, RegionSelector
from .writer import ParallelWriter, prepare_step_directory, step_output_dir

logger = logging.getLogger(__name__)


class StepState(Enum):
    """Per-step pipeline state."""
    IDLE = "idle"
    READING = "reading"
    FILTERING = "filtering"
    OFFSET_EXCHANGE = "offset_exchange"
    WRITING = "writing"
    DONE = "done"


def build_selector(config: CutoutConfig) -> RegionSelector:
    """Region selector for the configured cutout mode."""
    if config.mode == "fixed":
        return FixedWindow(config.theta_cut, config.phi_cut)

    if config.halo_pos is not None:
        halo_pos = config.halo_pos
    else:
        tags, positions = read_halo_file(config.halo_file)
        halo_pos = select_halo(tags, positions, config.halo_id)
    return HaloCenteredWindow(halo_pos, config.box_length)


def resolve_steps(config: CutoutConfig) -> Tuple[str, List[int]]:
    """
    Subdirectory prefix and the steps to process, low redshift first.

    Explicit steps win; otherwise the step range is taken from
    min_step/max_step, falling back to the redshift range.
    """
    if config.steps:
        prefix, _ = available_steps(config.input_dir)
        return prefix, sorted(set(config.steps), reverse=True)

    min_step, max_step = config.min_step, config.max_step
    if min_step is None and config.zmax is not None:
        min_step = z_to_step(config.zmax, config.total_steps, config.initial_redshift)
    if max_step is None and config.zmin is not None:
        max_step = z_to_step(config.zmin, config.total_steps, config.initial_redshift)
    if min_step is None:
        min_step = 0
    if max_step is None:
        max_step = config.terminal_step

    return get_lc_steps(config.input_dir, min_step, max_step)


class CutoutPipeline:
    """
    One cutout run over a sequence of lightcone steps.

    Args:
        selector: Region selector, built once for the whole run
        group: Process group of cooperating workers
        input_dir: Lightcone output directory (one subdirectory per step)
        output_dir: Directory receiving one cutout directory per step
        prefix: Step subdirectory prefix (e.g. 'lc')
        reader: Snapshot reader for the step files
        terminal_step: Step skipped entirely
    """

    def __init__(self, selector: RegionSelector, group: ProcessGroup, input_dir, output_dir,
                 prefix: str, reader: Optional[SnapshotReader] = None,
                 terminal_step: int = DEFAULT_TERMINAL_STEP):
        self.selector = selector
        self.group = group
        self.input_dir = Path(input_dir)
        self.output_dir = Path(output_dir)
        self.prefix = prefix
        self.reader = reader if reader is not None else RawLightconeReader()
        self.terminal_step = terminal_step

        self.filter = CutoutFilter(selector)
        self.coordinator = OffsetCoordinator(group)
        self.writer = ParallelWriter(group)
        self.state = StepState.IDLE

    @classmethod
    def from_config(cls, config: CutoutConfig, group: ProcessGroup,
                    reader: Optional[SnapshotReader] = None) -> Tuple['CutoutPipeline', List[int]]:
        """Build the pipeline and the step list described by a CutoutConfig."""
        selector = build_selector(config)
        prefix, steps = resolve_steps(config)
        pipeline = cls(selector, group, config.input_dir, config.output_dir, prefix,
                       reader=reader, terminal_step=config.terminal_step)
        return pipeline, steps

    def _advance(self, state: StepState) -> None:
        logger.debug(f"Rank {self.group.rank()}: {self.state.value} -> {state.value}")
        self.state = state

    def describe(self) -> None:
        """Log the selection geometry once per run."""
        if isinstance(self.selector, HaloCenteredWindow):
            self.group.log_info("---------- Setting up for coordinate rotation ----------")
            self.group.log_info(self.selector.describe())
        theta_min, theta_max, phi_min, phi_max = self.selector.window.in_degrees()
        self.group.log_info(f"theta bounds: [{theta_min:.6f}, {theta_max:.6f}] deg, "
                            f"phi bounds: [{phi_min:.6f}, {phi_max:.6f}] deg")

    def run_step(self, step: int) -> Optional[WriteLayout]:
        """
        Process one step; returns its WriteLayout, or None for the terminal step.

        Raises:
            LccutoutError: For discovery, read, output conflict and collective failures;
                run() aborts the group on these and on any other exception
        """
        if step == self.terminal_step:
            self.group.log_info(f"Skipping terminal step {step}")
            return None

        self.state = StepState.IDLE
        self.group.log_info(f"---------- Working on step {step} ----------")
        start_time = time.time()

        self._advance(StepState.READING)
        self.group.barrier()
        header = step_header(self.input_dir, self.prefix, step)
        self.group.log_info(f"Opening file: {header}")
        partition = self.reader.read(header, self.group)
        logger.debug(f"Number of elements in lc step at rank {self.group.rank()}: {len(partition)}")

        self._advance(StepState.FILTERING)
        batch = self.filter.apply(partition)
        del partition

        self._advance(StepState.OFFSET_EXCHANGE)
        layout = self.coordinator.exchange(len(batch))

        self._advance(StepState.WRITING)
        step_dir = prepare_step_directory(step_output_dir(self.output_dir, self.prefix, step), self.group)
        self.writer.write(batch, layout, step_dir, step)

        self._advance(StepState.DONE)
        self.group.log_info(f"Step {step}: wrote {layout.total:,} records to {step_dir} "
                            f"in {time.time() - start_time:.1f}s")
        return layout

    def run(self, steps: List[int]) -> Dict[int, WriteLayout]:
        """
        Process steps in order; any fatal error aborts the whole group.

        Returns:
            Mapping of step to its WriteLayout, for the steps that were written
        """
        self.group.log_info(f"Reading directory: {self.input_dir}")
        self.describe()

        layouts = {}
        for step in steps:
            try:
                layout = self.run_step(step)
            except Exception as e:
                logger.error(f"Rank {self.group.rank()}: step {step} failed in state "
                             f"{self.state.value}: {e}")
                self.group.abort(1, e)
                raise
            if layout is not None:
                layouts[step] = layout
        return layouts
