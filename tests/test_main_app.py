from __future__ import annotations

import os
from pathlib import Path
import subprocess
import sys

import numpy as np
import pytest

from markov_wfc import constants
from markov_wfc.main_app import build_argument_parser, save_tilemap


def test_parser_defaults() -> None:
    options = build_argument_parser().parse_args([])

    assert options.matrices is None
    assert options.tiles == constants.TILES_COUNT_DEFAULT
    assert options.grid_size == constants.GRID_SIZE_DEFAULT
    assert options.spawn_marker == constants.SPAWN_MARKER_TILE_DEFAULT
    assert options.max_iterations is None
    assert options.seed is None


def test_parser_reads_options() -> None:
    options = build_argument_parser().parse_args(
        ["--matrices", "rules.npy", "--grid-size", "20", "--seed", "9", "--max-iterations", "500"]
    )

    assert options.matrices == "rules.npy"
    assert options.grid_size == 20
    assert options.seed == 9
    assert options.max_iterations == 500


def test_matrices_and_tiles_are_exclusive() -> None:
    with pytest.raises(SystemExit):
        build_argument_parser().parse_args(["--matrices", "rules.npy", "--tiles", "3"])


def test_save_tilemap_writes_csv(tmp_path: Path) -> None:
    tile_grid = np.array([[0, 1, 2], [2, 1, 0], [4, 4, 4]])
    file_path = tmp_path / "tilemap.csv"

    save_tilemap(tile_grid, str(file_path))

    assert file_path.read_text().splitlines()[0] == "0,1,2"
    np.testing.assert_array_equal(np.loadtxt(file_path, delimiter=",", dtype=int), tile_grid)


# =============================================================================
# Whole application runs
# =============================================================================
# Each run starts its own QCoreApplication, so it gets a separate interpreter.

SRC_DIR = Path(__file__).resolve().parents[1] / "src"

FAILING_RUN_SCRIPT = """
import sys

from markov_wfc.main_app import main
from markov_wfc.model.transition_model import DegenerateDistributionError
from markov_wfc.model.wfc import MarkovWFC


def failing_run(self):
    raise DegenerateDistributionError("no viable tile")


MarkovWFC.run = failing_run
sys.exit(main())
"""


def run_application(*args: str, script: str | None = None) -> subprocess.CompletedProcess[str]:
    environment = dict(os.environ)
    environment["PYTHONPATH"] = os.pathsep.join(filter(None, [str(SRC_DIR), environment.get("PYTHONPATH")]))
    command = [sys.executable, "-c", script] if script is not None else [sys.executable, "-m", "markov_wfc.main_app"]
    return subprocess.run([*command, *args], capture_output=True, text=True, env=environment, timeout=60, check=False)


def test_uniform_tiles_run_writes_the_tilemap(tmp_path: Path) -> None:
    output_path = tmp_path / "tilemap.csv"

    completed = run_application(
        "--tiles", "1", "--grid-size", "3", "--spawn-marker", "0", "--pacing-delay", "0", "--output", str(output_path)
    )

    assert completed.returncode == 0, completed.stderr
    np.testing.assert_array_equal(np.loadtxt(output_path, delimiter=",", dtype=int), np.zeros((3, 3), dtype=int))
    # Only the center cell of a 3x3 grid lies off the border.
    assert completed.stderr.count("Placement request") == 1
    assert "Converged" in completed.stderr


def test_matrices_file_drives_the_run(tmp_path: Path) -> None:
    matrices_path = tmp_path / "rules.npy"
    np.save(matrices_path, np.stack([np.eye(3)] * 4))
    output_path = tmp_path / "tilemap.csv"

    completed = run_application(
        "--matrices",
        str(matrices_path),
        "--grid-size",
        "4",
        "--seed",
        "5",
        "--pacing-delay",
        "0",
        "--output",
        str(output_path),
    )

    assert completed.returncode == 0, completed.stderr
    tile_grid = np.loadtxt(output_path, delimiter=",", dtype=int)
    assert tile_grid.shape == (4, 4)
    # Identity matrices only allow a single tile across the whole grid.
    assert len(np.unique(tile_grid)) == 1
    assert 0 <= tile_grid[0, 0] < 3


def test_failed_run_exits_with_code_one(tmp_path: Path) -> None:
    output_path = tmp_path / "tilemap.csv"

    completed = run_application(
        "--tiles", "2", "--grid-size", "3", "--output", str(output_path), script=FAILING_RUN_SCRIPT
    )

    assert completed.returncode == 1
    assert "no viable tile" in completed.stderr
    assert not output_path.exists()
