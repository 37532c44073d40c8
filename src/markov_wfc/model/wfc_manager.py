"""Contains the class that runs the collapse loop in a worker thread and relays its progress."""

from __future__ import annotations

import functools
import logging
import random
import threading
import time
from typing import TYPE_CHECKING

import numpy as np
from PyQt6 import QtCore as qtc

from markov_wfc import constants
from markov_wfc.enums import WFCUpdateMode
from markov_wfc.model.transition_model import DegenerateDistributionError
from markov_wfc.model.wfc import CollapseStuckError, MarkovWFC

if TYPE_CHECKING:
    from markov_wfc.model.grid import GridSnapshot
    from markov_wfc.model.spawn_placer import SpawnPlacer
    from markov_wfc.model.transition_model import TransitionModel
    from markov_wfc.model.wfc import CollapseResult

logger = logging.getLogger(__name__)


class WFCManager(qtc.QObject):
    """Manages creation, execution, and abortion of collapse runs.

    Every run executes a 'MarkovWFC' instance inside a worker object that is moved to its own QThread, so the
    thread owning the manager (usually the GUI thread) is never blocked. Progress is relayed through Qt signals,
    which makes the manager the only link between the collapse loop and any visualization layer.

    Signals:
        grid_updated: Emitted with a GridSnapshot whenever the worker reports a new grid state.
        finished: Emitted with the final tile grid and the CollapseResult when a run has ended.
        failed: Emitted with an error message when a run has ended with an error.
    """

    grid_updated = qtc.pyqtSignal(object)
    finished = qtc.pyqtSignal(np.ndarray, object)
    failed = qtc.pyqtSignal(str)

    # The transition model shared by all runs.
    _transition_model: TransitionModel
    # The width and height of the generated grids (in cells).
    _grid_size: int
    # Event object used to signal the running worker to stop between two iterations.
    _abort_event: threading.Event

    # The worker of the current run and the thread it lives in.
    _worker: _CollapseWorker | None
    _worker_thread: qtc.QThread | None

    # The result of the most recently finished run.
    last_result: CollapseResult | None

    def __init__(self, transition_model: TransitionModel, grid_size: int = constants.GRID_SIZE_DEFAULT) -> None:
        """Initializes the manager.

        Args:
            transition_model: The transition model shared by all runs.
            grid_size: The width and height of the generated grids (in cells). Defaults to
                constants.GRID_SIZE_DEFAULT.
        """
        super().__init__()

        self._transition_model = transition_model
        self._grid_size = grid_size
        self._abort_event = threading.Event()
        self._worker = None
        self._worker_thread = None
        self.last_result = None

    def is_running(self) -> bool:
        """Returns True while a worker thread is executing a run."""
        return self._worker_thread is not None and self._worker_thread.isRunning()

    def create_worker(
        self,
        random_seed: int | None = None,
        spawn_placer: SpawnPlacer | None = None,
        max_iterations: int | None = None,
        update_mode: WFCUpdateMode = WFCUpdateMode.ON_EACH_ITERATION,
        pacing_delay: float = constants.WFC_PACING_DELAY_SECONDS,
    ) -> _CollapseWorker:
        """Creates a worker for a new run and connects its signals to the manager.

        Args:
            random_seed: Seed for the random source of the run. Defaults to None (unseeded).
            spawn_placer: Post-processing pass run once on convergence. Defaults to None.
            max_iterations: Optional safety limit for the number of iterations. Defaults to None (no limit).
            update_mode: Defines how often grid snapshots are relayed. Defaults to WFCUpdateMode.ON_EACH_ITERATION.
            pacing_delay: Pause between two iterations (in seconds). Defaults to
                constants.WFC_PACING_DELAY_SECONDS.

        Returns:
            The worker, not yet started.
        """
        self._abort_event.clear()

        pace = functools.partial(time.sleep, pacing_delay) if pacing_delay > 0 else None
        wfc = MarkovWFC(
            self._grid_size,
            self._transition_model,
            rng=random.Random(random_seed),
            spawn_placer=spawn_placer,
            pace=pace,
            abort_event=self._abort_event,
            max_iterations=max_iterations,
        )

        worker = _CollapseWorker(wfc, update_mode)
        worker.grid_updated.connect(self.on_worker_grid_updated)
        worker.finished.connect(self.on_worker_finished)
        worker.failed.connect(self.on_worker_failed)
        return worker

    def generate_tilemap(
        self,
        random_seed: int | None = None,
        spawn_placer: SpawnPlacer | None = None,
        max_iterations: int | None = None,
        update_mode: WFCUpdateMode = WFCUpdateMode.ON_EACH_ITERATION,
        pacing_delay: float = constants.WFC_PACING_DELAY_SECONDS,
    ) -> None:
        """Starts a new run in a worker thread.

        Refer to 'create_worker' for the arguments.

        Raises:
            RuntimeError: If a run is already in progress.
        """
        if self.is_running():
            raise RuntimeError("A collapse run is already in progress")

        self._worker = self.create_worker(random_seed, spawn_placer, max_iterations, update_mode, pacing_delay)
        self._worker_thread = qtc.QThread(self)

        # Move the worker object to the QThread and set up execution and cleanup logic.
        self._worker.moveToThread(self._worker_thread)
        self._worker_thread.started.connect(self._worker.run)
        self._worker.done.connect(self._worker_thread.quit, qtc.Qt.ConnectionType.DirectConnection)
        self._worker.done.connect(self._worker.deleteLater)
        self._worker_thread.finished.connect(self._on_worker_thread_finished)
        self._worker_thread.finished.connect(self._worker_thread.deleteLater)

        logger.info("Starting collapse run on a %dx%d grid", self._grid_size, self._grid_size)
        self._worker_thread.start()

    def abort_tilemap_generation(self) -> None:
        """Sets the abort event, signaling the running worker to stop after its current iteration."""
        self._abort_event.set()

    def shutdown(self) -> None:
        """Aborts the current run and blocks until its worker thread has stopped."""
        self.abort_tilemap_generation()
        if self._worker_thread is not None:
            self._worker_thread.wait()

    def on_worker_grid_updated(self, snapshot: GridSnapshot) -> None:
        """Relays a grid snapshot reported by the worker."""
        self.grid_updated.emit(snapshot)

    def on_worker_finished(self, result: CollapseResult) -> None:
        """Stores the result of the run and relays it."""
        self.last_result = result
        self.finished.emit(result.tile_grid, result)

    def on_worker_failed(self, message: str) -> None:
        """Relays the error message of a failed run."""
        self.failed.emit(message)

    def _on_worker_thread_finished(self) -> None:
        self._worker = None
        self._worker_thread = None


class _CollapseWorker(qtc.QObject):
    """Executes one collapse run and reports its progress through signals.

    Signals:
        grid_updated: Emitted with a GridSnapshot, after every iteration or once at the end depending on the mode.
        finished: Emitted with the CollapseResult when the run has ended without error.
        failed: Emitted with an error message when the run has ended with an error.
        done: Emitted last in every case, used for thread cleanup.
    """

    grid_updated = qtc.pyqtSignal(object)
    finished = qtc.pyqtSignal(object)
    failed = qtc.pyqtSignal(str)
    done = qtc.pyqtSignal()

    # The collapse loop executed by this worker.
    _wfc: MarkovWFC
    # Defines how often grid snapshots are emitted.
    _update_mode: WFCUpdateMode

    def __init__(self, wfc: MarkovWFC, update_mode: WFCUpdateMode) -> None:
        super().__init__()

        self._wfc = wfc
        self._update_mode = update_mode

        if self._update_mode == WFCUpdateMode.ON_EACH_ITERATION:
            self._wfc.add_grid_listener(self.grid_updated.emit)

    @property
    def wfc(self) -> MarkovWFC:
        """The collapse loop executed by this worker."""
        return self._wfc

    def run(self) -> None:
        """Runs the collapse loop to completion and emits the outcome."""
        try:
            result = self._wfc.run()
        except (CollapseStuckError, DegenerateDistributionError) as error:
            logger.error("Collapse run failed after %d iterations: %s", self._wfc.iteration, error)
            self.failed.emit(str(error))
        except Exception as error:
            logger.exception("Unexpected error in collapse run after %d iterations", self._wfc.iteration)
            self.failed.emit(f"{type(error).__name__}: {error}")
        else:
            if self._update_mode == WFCUpdateMode.ONLY_WHEN_DONE:
                self.grid_updated.emit(self._wfc.grid.snapshot(self._wfc.iteration))
            self.finished.emit(result)
        finally:
            self.done.emit()
