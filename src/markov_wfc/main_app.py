"""Serves as the entry point and initializer for the Markov WFC generator."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import TYPE_CHECKING

import numpy as np
from PyQt6 import QtCore as qtc

from markov_wfc import constants
from markov_wfc.logging_config import setup_logging
from markov_wfc.model.spawn_placer import SpawnPlacer
from markov_wfc.model.transition_model import TransitionModel
from markov_wfc.model.wfc_manager import WFCManager

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from markov_wfc.model.spawn_placer import PlacementRequest
    from markov_wfc.model.wfc import CollapseResult

logger = logging.getLogger(__name__)


def build_argument_parser() -> argparse.ArgumentParser:
    """Returns the parser for the command line options."""
    parser = argparse.ArgumentParser(
        prog="markov-wfc", description="Collapses a square tile grid using direction-indexed transition matrices."
    )
    matrices_group = parser.add_mutually_exclusive_group()
    matrices_group.add_argument(
        "--matrices",
        help="Path of a .npy/.npz file holding the (4, n, n) transition matrices (top, bottom, left, right).",
    )
    matrices_group.add_argument(
        "--tiles",
        type=int,
        default=constants.TILES_COUNT_DEFAULT,
        help="Number of tiles for uniform transition matrices (used when --matrices is not given).",
    )
    parser.add_argument("--grid-size", type=int, default=constants.GRID_SIZE_DEFAULT)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--max-iterations", type=int, default=None)
    parser.add_argument("--spawn-marker", type=int, default=constants.SPAWN_MARKER_TILE_DEFAULT)
    parser.add_argument("--spawn-pool-size", type=int, default=constants.SPAWN_POOL_SIZE_DEFAULT)
    parser.add_argument("--pacing-delay", type=float, default=constants.WFC_PACING_DELAY_SECONDS)
    parser.add_argument("--output", default="tilemap.csv", help="Destination of the final tile grid (.csv).")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-file", default=None)
    return parser


def save_tilemap(tile_grid: NDArray[np.int_], file_path: str) -> None:
    """Saves the tile grid as a .csv file."""
    np.savetxt(file_path, tile_grid, fmt="%i", delimiter=",")


class MainApp(qtc.QCoreApplication):
    """The application initializer and integrator for the Markov WFC generator.

    Inherits from PyQt's QCoreApplication. It sets up the transition model, the WFC manager and the spawn placer from
    the command line options, starts the generation once the event loop is running and quits when the run has ended.
    """

    # The parsed command line options.
    _options: argparse.Namespace
    # The WFC manager running the collapse loop in a worker thread.
    _wfc_manager: WFCManager
    # The spawn placer invoked on convergence.
    _spawn_placer: SpawnPlacer

    def __init__(self, argv: list[str]) -> None:
        """Initializes the Qt application and all application components.

        Args:
            argv: Command line arguments passed to the application (sys.argv).
        """
        super().__init__(argv)

        self._options = build_argument_parser().parse_args(argv[1:])

        setup_logging(getattr(logging, self._options.log_level), self._options.log_file)

        if self._options.matrices is not None:
            transition_model = TransitionModel.load(self._options.matrices)
        else:
            transition_model = TransitionModel.uniform(self._options.tiles)

        self._wfc_manager = WFCManager(transition_model, self._options.grid_size)
        self._spawn_placer = SpawnPlacer(
            list(range(self._options.spawn_pool_size)), self._options.spawn_marker, spawner=_LoggingSpawner()
        )

        self._wfc_manager.finished.connect(self.on_wfc_manager_finished)
        self._wfc_manager.failed.connect(self.on_wfc_manager_failed)
        self.aboutToQuit.connect(self._wfc_manager.shutdown)

        qtc.QTimer.singleShot(0, self.start_generation)

    def start_generation(self) -> None:
        """Orders the WFC manager to start the collapse run."""
        self._wfc_manager.generate_tilemap(
            random_seed=self._options.seed,
            spawn_placer=self._spawn_placer,
            max_iterations=self._options.max_iterations,
            pacing_delay=self._options.pacing_delay,
        )

    def on_wfc_manager_finished(self, tile_grid: NDArray[np.int_], result: CollapseResult) -> None:
        """Saves the final tile grid and quits the event loop."""
        save_tilemap(tile_grid, self._options.output)
        logger.info(
            "Run ended in state '%s' after %d iterations, saved tilemap to %s",
            result.state.value,
            result.iterations,
            self._options.output,
        )
        self.exit(0)

    def on_wfc_manager_failed(self, message: str) -> None:
        """Quits the event loop with a non-zero exit code."""
        logger.error("Generation failed: %s", message)
        self.exit(1)


class _LoggingSpawner:
    """Spawner that only logs the placement requests it receives."""

    def spawn(self, request: PlacementRequest) -> None:
        logger.info("Placement request: %s", request)


def main() -> int:
    """Runs the application and returns its exit code."""
    app = MainApp(sys.argv)
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
