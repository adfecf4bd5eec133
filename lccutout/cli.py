"""
lccutout command-line interface (CLI) utilities.

This module provides argument parsing and the ``lccutout`` entry point.
A run is described either by a YAML file (``--config``) or by flags:

    # fixed angular window, in arcseconds
    lccutout --input_dir lc/ --output_dir out/ --theta_cut 10000 20000 --phi_cut 0 5000 --max_step 498

    # halo-centered window
    lccutout --input_dir lc/ --output_dir out/ --halo_pos 100 50 20 --box_length 2 --min_step 300
"""
import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

from .config import DEFAULT_OUTPUT_DIR, DEFAULT_TERMINAL_STEP, CutoutConfig, LccutoutError
from .pipeline import CutoutPipeline
from .process_group import get_process_group

CUTOUT_PARAMS = {
    'config':           {'val': None, 'type': str,   'desc': 'YAML cutout configuration file'},
    'input_dir':        {'val': None, 'type': str,   'desc': 'Lightcone output directory (one subdirectory per step)'},
    'output_dir':       {'val': DEFAULT_OUTPUT_DIR, 'type': str, 'desc': 'Cutout output directory'},
    'theta_cut':        {'val': None, 'type': list,  'element_type': float, 'desc': 'theta bounds [min max] in arcsec'},
    'phi_cut':          {'val': None, 'type': list,  'element_type': float, 'desc': 'phi bounds [min max] in arcsec'},
    'halo_pos':         {'val': None, 'type': list,  'element_type': float, 'desc': 'Halo position x y z'},
    'halo_file':        {'val': None, 'type': str,   'desc': "Halo file with 'tag x y z' rows"},
    'halo_id':          {'val': None, 'type': str,   'desc': 'Tag of the halo to cut out from halo_file'},
    'box_length':       {'val': None, 'type': float, 'desc': 'Physical side length of the halo cutout box'},
    'steps':            {'val': [],   'type': list,  'element_type': int, 'desc': 'Explicit steps to process'},
    'min_step':         {'val': None, 'type': int,   'desc': 'Deepest step of interest'},
    'max_step':         {'val': None, 'type': int,   'desc': 'Shallowest step of interest'},
    'zmin':             {'val': None, 'type': float, 'desc': 'Minimum redshift (needs total_steps, initial_redshift)'},
    'zmax':             {'val': None, 'type': float, 'desc': 'Maximum redshift (needs total_steps, initial_redshift)'},
    'total_steps':      {'val': None, 'type': int,   'desc': 'Total number of simulation steps'},
    'initial_redshift': {'val': None, 'type': float, 'desc': 'Initial redshift of the simulation'},
    'terminal_step':    {'val': DEFAULT_TERMINAL_STEP, 'type': int, 'desc': 'Zero-redshift step to skip'},
    'verbose':          {'val': False, 'type': bool, 'desc': 'Enable debug logging'},
}


def parsecommandline(param_definitions: Dict[str, Dict[str, Any]], description: str,
                     argv: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Parses command-line arguments based on a dictionary of parameter definitions.

    Args:
        param_definitions: A dictionary where keys are parameter names and values are
                           dictionaries containing 'val' (default value),
                           'type', and 'desc' (description).
        description: A description of the command-line program.
        argv: Arguments to parse (sys.argv[1:] if None).

    Returns:
        A dictionary of parsed command-line arguments.
    """
    parser = argparse.ArgumentParser(description=description, prog="lccutout")

    for param_name, details in param_definitions.items():
        default_val = details.get('val')
        param_type = details.get('type')
        param_desc = details.get('desc', f'Set {param_name}')
        required = details.get('required', False)

        arg_name = '--' + param_name

        if param_type is bool:
            if default_val is True:
                parser.add_argument(arg_name, action='store_false', help=f'{param_desc} (flag, default: True)')
            else:
                parser.add_argument(arg_name, action='store_true', help=f'{param_desc} (flag, default: False)')
        elif param_type is list or isinstance(default_val, list):
            parser.add_argument(
                arg_name,
                default=default_val,
                help=f'{param_desc} (space-separated list, default: {default_val})',
                type=details.get('element_type', str),
                nargs='*',
                required=required
            )
        else:
            parser.add_argument(
                arg_name,
                default=default_val,
                help=f'{param_desc} (default: {default_val})',
                type=param_type,
                required=required
            )

    parsed_args = parser.parse_args(argv)
    return vars(parsed_args)


def config_from_args(args: Dict[str, Any]) -> CutoutConfig:
    """Build a CutoutConfig from parsed arguments, a YAML file taking precedence."""
    if args.get('config'):
        config = CutoutConfig.from_yaml(args['config'])
        if args.get('verbose'):
            config.verbose = True
        return config

    params = {k: v for k, v in args.items() if k != 'config'}
    if params.get('input_dir') is None:
        raise LccutoutError("--input_dir is required when no --config is given")
    params['mode'] = 'halo' if (params.get('halo_pos') or params.get('halo_file')) else 'fixed'
    return CutoutConfig(**params)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for running a lightcone cutout."""
    args = parsecommandline(CUTOUT_PARAMS, "Cut a halo-centered or fixed angular window out of lightcone steps",
                            argv)

    logging.basicConfig(
        level=logging.DEBUG if args.get('verbose') else logging.INFO,
        format='%(asctime)s %(name)s %(levelname)s: %(message)s'
    )

    try:
        config = config_from_args(args)
    except (LccutoutError, FileNotFoundError) as e:
        print(f"Error: {e}")
        return 1

    if config.verbose:
        logging.getLogger('lccutout').setLevel(logging.DEBUG)

    group = get_process_group()
    try:
        pipeline, steps = CutoutPipeline.from_config(config, group)
    except (LccutoutError, OSError) as e:
        logging.getLogger(__name__).error(f"Rank {group.rank()}: {e}")
        if group.size() > 1:
            group.abort(1, e)
        return 1

    group.log_info(f"Processing {len(steps)} steps: {steps}")
    try:
        pipeline.run(steps)
    except (LccutoutError, OSError) as e:
        # Only reached when the group abort hands the failure back (single process)
        print(f"Error: {e}")
        return 1
    group.log_info("Cutout complete.")
    return 0


if __name__ == '__main__':
    sys.exit(main())
