"""
Lightcone step discovery.

Expected input layout: one subdirectory per lightcone step directly under
the lightcone output directory, named ``{prefix}{step}`` where the prefix
contains no digits and somewhere contains "lc" (e.g. ``lc487``,
``lcGals487``). Each step directory holds exactly one header file: the only
entry containing "lc" and no "#" (data blocks carry a "#" suffix).
"""

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .config import HEADER_EXCLUDE_MARKER, SUBDIR_MARKER, DiscoveryError

logger = logging.getLogger(__name__)

_LEADING_DIGITS = re.compile(r'\d+')


def step_from_name(name: str) -> Optional[int]:
    """Step number encoded in a subdirectory name (digits from the first digit on)."""
    match = _LEADING_DIGITS.search(name)
    return int(match.group(0)) if match else None


def subdir_prefix(name: str) -> str:
    """Characters before the first digit of a subdirectory name."""
    match = _LEADING_DIGITS.search(name)
    return name[:match.start()] if match else name


def get_lc_subdirs(lc_dir) -> List[str]:
    """
    Names of all step subdirectories in a lightcone output directory.

    Raises:
        DiscoveryError: If the directory cannot be read or holds no step subdirectories
    """
    lc_dir = Path(lc_dir)
    try:
        entries = sorted(p.name for p in lc_dir.iterdir()
                         if p.is_dir() and SUBDIR_MARKER in p.name)
    except OSError as e:
        raise DiscoveryError(f"Error opening lightcone data files at {lc_dir}: {e}") from e

    if not entries:
        raise DiscoveryError(f"No lightcone step subdirectories found in {lc_dir}")
    return entries


def get_lc_file(step_dir) -> Path:
    """
    The single header file in a step subdirectory.

    Raises:
        DiscoveryError: If zero or several header files are found
    """
    step_dir = Path(step_dir)
    try:
        files = sorted(p.name for p in step_dir.iterdir()
                       if SUBDIR_MARKER in p.name and HEADER_EXCLUDE_MARKER not in p.name)
    except OSError as e:
        raise DiscoveryError(f"Error opening lightcone data files in {step_dir}: {e}") from e

    if not files:
        raise DiscoveryError(f"No valid header files found in dir {step_dir}")
    if len(files) > 1:
        raise DiscoveryError(
            f"Too many header files in directory {step_dir}: {files}. "
            f"Lightcone output files should be separated by step-respective subdirectories")
    return step_dir / files[0]


def available_steps(lc_dir) -> Tuple[str, List[int]]:
    """
    Shared subdirectory prefix and the sorted list of available steps.

    The prefix is taken from the first subdirectory; all are assumed to share it.
    """
    subdirs = get_lc_subdirs(lc_dir)
    prefix = subdir_prefix(subdirs[0])
    steps = sorted({s for s in (step_from_name(name) for name in subdirs) if s is not None})
    if not steps:
        raise DiscoveryError(f"No step numbers found in subdirectories of {lc_dir}: {subdirs}")
    return prefix, steps


def select_steps(steps: List[int], min_step: int, max_step: int) -> List[int]:
    """
    Steps covering [min_step, max_step], deepest cut preferred.

    All available steps inside the range are kept. If min_step itself is not
    available, the largest step below it is added, so that the cutout ends
    slightly deeper rather than slightly shallower than requested; likewise
    the smallest step above max_step is added when max_step is missing.

    Returns:
        Selected steps in descending order (low redshift first)
    """
    if min_step > max_step:
        raise ValueError(f"min_step {min_step} exceeds max_step {max_step}")

    steps = sorted(set(steps))
    selected = [s for s in steps if min_step <= s <= max_step]

    if min_step not in steps:
        below = [s for s in steps if s < min_step]
        if below:
            selected.append(below[-1])
    if max_step not in steps:
        above = [s for s in steps if s > max_step]
        if above:
            selected.append(above[0])

    return sorted(set(selected), reverse=True)


def get_lc_steps(lc_dir, min_step: int, max_step: int) -> Tuple[str, List[int]]:
    """Prefix and selected steps for a lightcone output directory."""
    prefix, steps = available_steps(lc_dir)
    selected = select_steps(steps, min_step, max_step)
    if not selected:
        raise DiscoveryError(
            f"No lightcone steps between {min_step} and {max_step} in {lc_dir} (available: {steps})")
    return prefix, selected


def step_subdirs(lc_dir, prefix: str) -> Dict[int, Path]:
    """Map of step number to step subdirectory, for subdirectories with the given prefix."""
    return {step_from_name(name): Path(lc_dir) / name
            for name in get_lc_subdirs(lc_dir)
            if subdir_prefix(name) == prefix and step_from_name(name) is not None}


def step_header(lc_dir, prefix: str, step: int) -> Path:
    """Header file of one step; the directory name may zero-pad the step number."""
    step_dir = step_subdirs(lc_dir, prefix).get(step)
    if step_dir is None:
        raise DiscoveryError(f"Step directory not found: {prefix}{step} in {lc_dir}")
    return get_lc_file(step_dir)
