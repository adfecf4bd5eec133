"""
Configuration management for lccutout.

This module centralizes constants, environment-dependent defaults, the
exception hierarchy, and the run configuration used by the cutout pipeline.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml


# --- Environment Variable Dependent Settings ---
def get_env_variable(var_name: str, default: str | None = None) -> str:
    """Fetches an environment variable, raises error if not found and no default."""
    value = os.getenv(var_name)
    if value is None:
        if default is not None:
            return default
        raise ValueError(f"Environment variable {var_name} not set and no default provided.")
    return value

DEFAULT_OUTPUT_DIR = get_env_variable("LCCUTOUT_OUTPUT_DIR", "./cutout")
USE_MPIIO = get_env_variable("LCCUTOUT_USE_MPIIO", "0") == "1"

# --- Angular Conventions ---
# Angles are carried in arcseconds; keep the exact constant for bit-compatible output
ARCSEC = 3600.0

# --- Lightcone Layout ---
# Step representing zero redshift; its lightcone shell has no volume
DEFAULT_TERMINAL_STEP = 499
SUBDIR_MARKER = "lc"
HEADER_EXCLUDE_MARKER = "#"
CUTOUT_DIR_TEMPLATE = "{prefix}Cutout{step}"
FIELD_FILE_TEMPLATE = "{field}.{step}.bin"

CUTOUT_MODES = ("fixed", "halo")


# --- Custom Exceptions ---
class LccutoutError(Exception):
    """Base exception for all lccutout errors."""
    pass

class CutoutConfigError(LccutoutError):
    """Exception raised for invalid cutout configuration."""
    pass

class HaloInputError(CutoutConfigError):
    """Exception raised for malformed halo position input."""
    pass

class DiscoveryError(LccutoutError):
    """Exception raised when step directories or header files cannot be resolved."""
    pass

class OutputConflictError(LccutoutError):
    """Exception raised when a step output directory already holds data."""
    pass

class DimensionError(LccutoutError, ValueError):
    """Exception raised when vector or matrix operands have mismatched sizes."""
    pass

class CollectiveError(LccutoutError):
    """Exception raised when a process group collective fails or disagrees."""
    pass

class ReadError(LccutoutError):
    """Exception raised when a lightcone step cannot be read."""
    pass


def _as_pair(values, name):
    if values is None:
        return None
    values = [float(v) for v in values]
    if len(values) != 2:
        raise CutoutConfigError(f"{name} must have exactly two entries [min, max], got {len(values)}")
    if values[0] >= values[1]:
        raise CutoutConfigError(f"{name} lower bound {values[0]} must be below upper bound {values[1]}")
    return values


@dataclass
class CutoutConfig:
    """
    Configuration for one cutout run.

    Attributes:
        input_dir: Lightcone output directory holding one subdirectory per step
        output_dir: Directory under which the per-step cutout directories are created
        mode: 'fixed' for a fixed angular window, 'halo' for a halo-centered window
        theta_cut: [min, max] polar bounds in arcsec (fixed mode)
        phi_cut: [min, max] azimuthal bounds in arcsec (fixed mode)
        halo_pos: [x, y, z] halo position (halo mode)
        halo_file: Halo catalog with 'tag x y z' rows, alternative to halo_pos
        halo_id: Tag of the halo to use from halo_file (first halo if None)
        box_length: Physical side length of the cutout box (halo mode)
        steps: Explicit list of steps to process
        min_step: Deepest (highest redshift) step of interest
        max_step: Shallowest (lowest redshift) step of interest
        zmin, zmax: Redshift range, converted to steps when min_step/max_step are unset
        total_steps: Total simulation steps, required for redshift conversion
        initial_redshift: Initial redshift of the simulation, required for redshift conversion
        terminal_step: Step skipped entirely (zero redshift)
        verbose: Enable debug logging
    """
    input_dir: str
    output_dir: str = DEFAULT_OUTPUT_DIR
    mode: str = "fixed"
    theta_cut: Optional[List[float]] = None
    phi_cut: Optional[List[float]] = None
    halo_pos: Optional[List[float]] = None
    halo_file: Optional[str] = None
    halo_id: Optional[str] = None
    box_length: Optional[float] = None
    steps: List[int] = field(default_factory=list)
    min_step: Optional[int] = None
    max_step: Optional[int] = None
    zmin: Optional[float] = None
    zmax: Optional[float] = None
    total_steps: Optional[int] = None
    initial_redshift: Optional[float] = None
    terminal_step: int = DEFAULT_TERMINAL_STEP
    verbose: bool = False

    def __post_init__(self):
        """Validate cutout configuration."""
        if self.mode not in CUTOUT_MODES:
            raise CutoutConfigError(f"Unknown cutout mode: {self.mode} (expected one of {CUTOUT_MODES})")

        if self.mode == "fixed":
            if self.theta_cut is None or self.phi_cut is None:
                raise CutoutConfigError("Fixed-window mode requires both theta_cut and phi_cut")
            self.theta_cut = _as_pair(self.theta_cut, "theta_cut")
            self.phi_cut = _as_pair(self.phi_cut, "phi_cut")
        else:
            if self.halo_pos is None and self.halo_file is None:
                raise CutoutConfigError("Halo mode requires halo_pos or halo_file")
            if self.halo_pos is not None:
                if len(self.halo_pos) != 3:
                    raise HaloInputError(
                        f"Halo position must have three components, got {len(self.halo_pos)}")
                self.halo_pos = [float(v) for v in self.halo_pos]
                if not any(self.halo_pos):
                    raise HaloInputError("Halo position must not be the origin")
            if self.box_length is None or float(self.box_length) <= 0:
                raise CutoutConfigError(f"Halo mode requires a positive box_length, got {self.box_length}")
            self.box_length = float(self.box_length)

        self.steps = [int(s) for s in self.steps]
        if self.min_step is not None and self.max_step is not None and self.min_step > self.max_step:
            raise CutoutConfigError(f"min_step {self.min_step} exceeds max_step {self.max_step}")

        redshift_range = self.zmin is not None or self.zmax is not None
        if redshift_range and (self.total_steps is None or self.initial_redshift is None):
            raise CutoutConfigError("Redshift bounds require total_steps and initial_redshift")

        step_range = self.min_step is not None or self.max_step is not None
        if not self.steps and not step_range and not redshift_range:
            raise CutoutConfigError("No steps selected: give steps, min_step/max_step, or zmin/zmax")

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir)

    @classmethod
    def from_yaml(cls, yaml_file: str) -> 'CutoutConfig':
        """Load cutout configuration from YAML file."""
        yaml_path = Path(yaml_file)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Cutout config file not found: {yaml_file}")

        with open(yaml_file, 'r') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise CutoutConfigError(f"Cutout config {yaml_file} must be a mapping")

        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise CutoutConfigError(f"Unknown cutout config keys: {sorted(unknown)}")

        return cls(**data)
