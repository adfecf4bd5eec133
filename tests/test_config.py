"""
Centralized test configuration for lccutout tests.

This module contains all shared test parameters to ensure consistency
across all test files and avoid hardcoded values.
"""

ARCSEC = 3600.0

# Synthetic lightcone parameters - used by the fixtures in conftest.py
TEST_CONFIG = {
    'n_particles': 4000,   # Records per step
    'box_size': 100.0,     # Half-extent of the position cube
    'steps': [496, 497, 498, 499],
    'seed': 1234,

    # Fixed angular window, arcsec
    'theta_cut': [20.0 * ARCSEC, 70.0 * ARCSEC],
    'phi_cut': [10.0 * ARCSEC, 80.0 * ARCSEC],

    # Halo-centered window
    'halo_pos': [50.0, 50.0, 50.0],
    'box_length': 40.0,

    # Group sizes for the in-process multi-rank tests
    'group_sizes': [2, 3, 5],
}

# Steps written by a full run; the terminal step produces no output
WRITTEN_STEPS = [s for s in TEST_CONFIG['steps'] if s != 499]


def print_test_config():
    """Print test configuration summary."""
    print("=" * 60)
    print("TEST CONFIGURATION")
    print("=" * 60)
    print(f"Records per step: {TEST_CONFIG['n_particles']:,}")
    print(f"Position cube: [-{TEST_CONFIG['box_size']}, {TEST_CONFIG['box_size']}]^3")
    print(f"Steps: {TEST_CONFIG['steps']} (written: {WRITTEN_STEPS})")
    print(f"theta cut: {[v / ARCSEC for v in TEST_CONFIG['theta_cut']]} deg")
    print(f"phi cut: {[v / ARCSEC for v in TEST_CONFIG['phi_cut']]} deg")
    print("=" * 60)


if __name__ == "__main__":
    print_test_config()
