"""
Integration tests for the directory workflow and its command line entry point.
"""

from pathlib import Path
import sys

import numpy as np
import pytest

from scan_registration.utils.config import AppConfig
from scan_registration.utils.export import load_transform_stack
from scan_registration.workflow import GLOBAL_TRANSFORMS_FILE, run_from_directory

sys.path.append(str(Path(__file__).parent.parent / "scripts"))
import run_registration  # noqa: E402


@pytest.fixture
def scan_dir(tmp_path, lattice_points):
    directory = tmp_path / "scans"
    directory.mkdir()
    for i in range(3):
        np.savetxt(directory / f"scan{i:03d}.xyz", lattice_points + np.array([0.2 * i, 0.0, 0.0]))
        # The sensor moves -x, so the scene shifts +x in each new scan
        (directory / f"scan{i:03d}.pose").write_text(f"{-0.2 * i} 0 0 0 0 0\n", encoding="utf-8")
    return directory


@pytest.fixture
def xyz_config():
    return AppConfig.model_validate(
        {
            "paths": {"cloud_extension": ".xyz"},
            "downsample": {"enabled": False},
            "output": {"format": "xyz"},
        }
    )


def test_run_from_directory_writes_outputs(scan_dir, tmp_path, xyz_config):
    out_dir = tmp_path / "out"
    output = run_from_directory(scan_dir, 0, 2, xyz_config, output_dir=out_dir)

    assert output.succeeded
    assert sorted(Path(p).name for p in output.cloud_files) == ["1.xyz", "2.xyz"]
    assert (out_dir / GLOBAL_TRANSFORMS_FILE).exists()

    transforms = load_transform_stack(out_dir / GLOBAL_TRANSFORMS_FILE)
    assert len(transforms) == 3
    np.testing.assert_allclose(transforms[2][:3, 3], [-0.4, 0.0, 0.0], atol=1e-4)


def test_poses_seed_the_pairs(scan_dir, tmp_path, xyz_config):
    output = run_from_directory(scan_dir, 0, 1, xyz_config, output_dir=tmp_path / "out")

    guess = output.result.pairs[0].result.initial_guess
    np.testing.assert_allclose(guess[:3, 3], [0.2, 0.0, 0.0], atol=1e-12)


def test_no_scans_in_range(scan_dir, tmp_path, xyz_config):
    output = run_from_directory(scan_dir, 10, 12, xyz_config, output_dir=tmp_path / "out")

    assert not output.succeeded
    assert output.cloud_files == []


def test_cli_exit_codes(scan_dir, tmp_path):
    config_path = tmp_path / "cfg.yaml"
    config_path.write_text(
        "paths:\n  cloud_extension: .xyz\nlogging:\n  level: WARNING\n",
        encoding="utf-8",
    )
    out_dir = tmp_path / "cli_out"

    code = run_registration.main(
        [str(scan_dir), "0", "2", "--config", str(config_path), "--output-dir", str(out_dir),
         "--format", "xyz", "--no-downsample", "--no-poses"]
    )
    assert code == 0
    assert (out_dir / "1.xyz").exists()
    assert (out_dir / "2.xyz").exists()

    assert run_registration.main(
        [str(scan_dir), "5", "6", "--config", str(config_path), "--output-dir", str(out_dir)]
    ) == 1
    assert run_registration.main([str(tmp_path / "missing"), "0", "1", "--config", str(config_path)]) == 1
