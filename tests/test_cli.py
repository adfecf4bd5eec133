#!/usr/bin/env python3
"""
Test the lccutout command-line interface.
"""

import pytest
import yaml

import lccutout.dataspecs as lcds
from lccutout.cli import CUTOUT_PARAMS, config_from_args, main, parsecommandline
from lccutout.config import LccutoutError
from lccutout.writer import cutout_size, step_output_dir
from test_config import TEST_CONFIG


def cut_args(values):
    return [str(v) for v in values]


class TestParseCommandLine:
    """Test argument parsing from parameter definitions."""

    def test_defaults(self):
        args = parsecommandline(CUTOUT_PARAMS, "test", [])
        assert args['steps'] == []
        assert args['terminal_step'] == 499
        assert args['verbose'] is False

    def test_list_and_typed_values(self):
        args = parsecommandline(CUTOUT_PARAMS, "test",
                                ['--theta_cut', '10', '20', '--steps', '498', '497', '--max_step', '498'])
        assert args['theta_cut'] == [10.0, 20.0]
        assert args['steps'] == [498, 497]
        assert args['max_step'] == 498

    def test_halo_flags_select_halo_mode(self):
        args = parsecommandline(CUTOUT_PARAMS, "test",
                                ['--input_dir', 'lc', '--halo_pos', '1', '2', '3', '--box_length', '2',
                                 '--steps', '498'])
        config = config_from_args(args)
        assert config.mode == "halo"
        assert config.halo_pos == [1.0, 2.0, 3.0]

    def test_input_dir_required_without_config(self):
        args = parsecommandline(CUTOUT_PARAMS, "test", ['--theta_cut', '1', '2', '--phi_cut', '1', '2'])
        with pytest.raises(LccutoutError, match="input_dir"):
            config_from_args(args)


class TestMain:
    """Test complete runs through the entry point."""

    def test_fixed_run(self, lightcone_dir, tmp_path):
        output_dir = tmp_path / "out"
        argv = ['--input_dir', str(lightcone_dir), '--output_dir', str(output_dir),
                '--theta_cut', *cut_args(TEST_CONFIG['theta_cut']),
                '--phi_cut', *cut_args(TEST_CONFIG['phi_cut']),
                '--min_step', '497', '--max_step', '499']
        assert main(argv) == 0
        assert sorted(p.name for p in output_dir.iterdir()) == ['lcCutout497', 'lcCutout498']
        step_dir = step_output_dir(output_dir, "lc", 498)
        sizes = {name: cutout_size(step_dir, 498, name) for name in lcds.output_fields}
        assert len(set(sizes.values())) == 1

    def test_yaml_run(self, lightcone_dir, tmp_path):
        output_dir = tmp_path / "out"
        config_file = tmp_path / "cutout.yaml"
        config_file.write_text(yaml.safe_dump({
            'input_dir': str(lightcone_dir),
            'output_dir': str(output_dir),
            'mode': 'halo',
            'halo_pos': TEST_CONFIG['halo_pos'],
            'box_length': TEST_CONFIG['box_length'],
            'steps': [498],
        }))
        assert main(['--config', str(config_file)]) == 0
        assert (output_dir / "lcCutout498" / "x.498.bin").exists()

    def test_invalid_config_returns_error(self, tmp_path, capsys):
        assert main(['--input_dir', str(tmp_path), '--theta_cut', '1', '2', '--max_step', '498']) == 1
        assert "Error:" in capsys.readouterr().out

    def test_halo_at_origin_returns_error(self, lightcone_dir, tmp_path, capsys):
        argv = ['--input_dir', str(lightcone_dir), '--output_dir', str(tmp_path / "out"),
                '--halo_pos', '0', '0', '0', '--box_length', '2', '--steps', '498']
        assert main(argv) == 1
        assert "origin" in capsys.readouterr().out

    def test_halo_file_row_at_origin_returns_error(self, lightcone_dir, tmp_path):
        halo_file = tmp_path / "halos.txt"
        halo_file.write_text("1 0.0 0.0 0.0\n")
        argv = ['--input_dir', str(lightcone_dir), '--output_dir', str(tmp_path / "out"),
                '--halo_file', str(halo_file), '--box_length', '2', '--steps', '498']
        assert main(argv) == 1
        assert not (tmp_path / "out").exists()

    def test_missing_lightcone_returns_error(self, tmp_path):
        argv = ['--input_dir', str(tmp_path / "absent"), '--output_dir', str(tmp_path / "out"),
                '--theta_cut', '1', '2', '--phi_cut', '1', '2', '--max_step', '498']
        assert main(argv) == 1

    def test_output_conflict_returns_error(self, lightcone_dir, tmp_path, capsys):
        output_dir = tmp_path / "out"
        stale = step_output_dir(output_dir, "lc", 497)
        stale.mkdir(parents=True)
        (stale / "id.497.bin").touch()
        argv = ['--input_dir', str(lightcone_dir), '--output_dir', str(output_dir),
                '--theta_cut', *cut_args(TEST_CONFIG['theta_cut']),
                '--phi_cut', *cut_args(TEST_CONFIG['phi_cut']),
                '--steps', '497']
        assert main(argv) == 1
        assert "non-empty" in capsys.readouterr().out
