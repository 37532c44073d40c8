"""Implements the core Markov WFC collapse loop."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import random
from typing import TYPE_CHECKING

import numpy as np

from markov_wfc.enums import CollapseState
from markov_wfc.model.contradiction_handler import ContradictionHandler
from markov_wfc.model.entropy_evaluator import EntropyEvaluator
from markov_wfc.model.grid import Grid
from markov_wfc.model.transition_model import DegenerateDistributionError

if TYPE_CHECKING:
    from collections.abc import Callable
    from threading import Event

    from numpy.typing import NDArray

    from markov_wfc.model.grid import GridSnapshot
    from markov_wfc.model.spawn_placer import PlacementRequest, SpawnPlacer
    from markov_wfc.model.transition_model import TransitionModel

logger = logging.getLogger(__name__)


class CollapseStuckError(RuntimeError):
    """Raised when uncollapsed cells remain but none of them can be selected for collapsing."""

    pass


@dataclass
class CollapseResult:
    """The outcome of a collapse run.

    Attributes:
        state: The terminal state the run ended in.
        tile_grid: The final tile assignment (-1 for cells left uncollapsed).
        iterations: The number of iterations executed.
        collapses: The number of cells collapsed, including cells that were later reset by a repair.
        contradictions: The number of local repairs performed.
        entropy_history: The entropy grid of every iteration (empty if recording was disabled).
        placement_requests: The requests emitted by the spawn placer after convergence.
    """

    state: CollapseState
    tile_grid: NDArray[np.int_]
    iterations: int
    collapses: int
    contradictions: int
    entropy_history: list[NDArray[np.int_]] = field(default_factory=list)
    placement_requests: list[PlacementRequest] = field(default_factory=list)


class MarkovWFC:
    """Collapses a square grid cell by cell using direction-indexed transition matrices.

    Each iteration evaluates the entropy of every cell, locally repairs contradicted cells, notifies the grid
    listeners, selects the uncollapsed cell with the lowest entropy and collapses it to a tile drawn from its
    normalized probability vector. The run converges once no uncollapsed cell remains, at which point the optional
    spawn placer is invoked once. Contradictions are repaired by resetting a 3x3 neighborhood, never by backtracking,
    so a run is not guaranteed to terminate for every set of matrices unless an iteration limit is configured.

    Attributes:
        grid: The grid being collapsed.
        state: The current state of the run.
        iteration: The number of iterations executed so far.
        collapse_count: The number of cells collapsed so far.
    """

    grid: Grid
    state: CollapseState
    iteration: int
    collapse_count: int

    # The model providing the probability vectors.
    _transition_model: TransitionModel
    # Derives the entropy of each cell from the transition model.
    _entropy_evaluator: EntropyEvaluator
    # Resets the neighborhood of contradicted cells.
    _contradiction_handler: ContradictionHandler
    # Uniform random source in [0, 1) used for tile sampling.
    _rng: random.Random
    # Integer random source used for the coin flips when breaking entropy ties.
    _tie_break_rng: random.Random
    # Post-processing pass run once on convergence.
    _spawn_placer: SpawnPlacer | None
    # Hook called between two iterations to hand control back to a host loop.
    _pace: Callable[[], None] | None
    # Event set from outside to stop the run between two iterations.
    _abort_event: Event | None
    # Optional safety limit for the number of iterations.
    _max_iterations: int | None
    # Whether the entropy grid of every iteration is kept.
    _record_entropy_history: bool
    # Callbacks receiving a snapshot after every entropy sweep.
    _grid_listeners: list[Callable[[GridSnapshot], None]]

    _entropy_history: list[NDArray[np.int_]]
    _placement_requests: list[PlacementRequest]

    def __init__(
        self,
        grid_size: int,
        transition_model: TransitionModel,
        rng: random.Random | None = None,
        tie_break_rng: random.Random | None = None,
        spawn_placer: SpawnPlacer | None = None,
        pace: Callable[[], None] | None = None,
        abort_event: Event | None = None,
        max_iterations: int | None = None,
        record_entropy_history: bool = True,
    ) -> None:
        """Initializes the grid and all components of the collapse loop.

        Args:
            grid_size: The width and height of the grid (in cells).
            transition_model: The model providing the probability vectors.
            rng: Uniform random source used for tile sampling. Defaults to a new unseeded random.Random.
            tie_break_rng: Integer random source used for breaking entropy ties. Defaults to 'rng'.
            spawn_placer: Post-processing pass run once on convergence. Defaults to None (no placement).
            pace: Hook called between two iterations, e.g. a short sleep. Defaults to None (no pause).
            abort_event: Event set from outside to stop the run between two iterations. Defaults to None.
            max_iterations: Optional safety limit for the number of iterations. Defaults to None (no limit).
            record_entropy_history: Whether the entropy grid of every iteration is kept. Defaults to True.

        Raises:
            ValueError: If the grid size or the iteration limit is not positive.
        """
        if max_iterations is not None and max_iterations < 1:
            raise ValueError(f"Iteration limit must be positive, got {max_iterations}")

        self.grid = Grid(grid_size)
        self._transition_model = transition_model
        self._entropy_evaluator = EntropyEvaluator(self.grid, transition_model)
        self._contradiction_handler = ContradictionHandler(self.grid)
        self._rng = rng if rng is not None else random.Random()
        self._tie_break_rng = tie_break_rng if tie_break_rng is not None else self._rng
        self._spawn_placer = spawn_placer
        self._pace = pace
        self._abort_event = abort_event
        self._max_iterations = max_iterations
        self._record_entropy_history = record_entropy_history
        self._grid_listeners = []

        self.state = CollapseState.RUNNING
        self.iteration = 0
        self.collapse_count = 0
        self._entropy_history = []
        self._placement_requests = []

    @property
    def contradiction_count(self) -> int:
        """The number of local repairs performed so far."""
        return self._contradiction_handler.repair_count

    def add_grid_listener(self, listener: Callable[[GridSnapshot], None]) -> None:
        """Registers a callback that receives a grid snapshot after every entropy sweep."""
        self._grid_listeners.append(listener)

    def remove_grid_listener(self, listener: Callable[[GridSnapshot], None]) -> None:
        """Unregisters a previously added grid listener."""
        self._grid_listeners.remove(listener)

    def run(self) -> CollapseResult:
        """Executes iterations until the run reaches a terminal state.

        The abort event and the iteration limit are only checked between iterations; an iteration that has started
        always completes.

        Returns:
            The result of the run. On abort or limit the tile grid is a best-effort partial assignment.

        Raises:
            CollapseStuckError: If no cell can be selected although uncollapsed cells remain.
            DegenerateDistributionError: If a cell cannot be sampled even after repairing its neighborhood.
        """
        while not self.state.is_terminal():
            if self._abort_event is not None and self._abort_event.is_set():
                self.state = CollapseState.ABORTED
                logger.info("Collapse aborted after %d iterations", self.iteration)
                break

            if self._max_iterations is not None and self.iteration >= self._max_iterations:
                self.state = CollapseState.LIMIT_REACHED
                logger.info(
                    "Iteration limit of %d reached with %d uncollapsed cells",
                    self._max_iterations,
                    self.grid.uncollapsed_count(),
                )
                break

            self.step()

            if not self.state.is_terminal() and self._pace is not None:
                self._pace()

        return self.result()

    def step(self) -> CollapseState:
        """Executes a single iteration and returns the resulting state."""
        if self.state.is_terminal():
            return self.state

        self.iteration += 1
        self.evaluate_entropies()

        snapshot = self.grid.snapshot(self.iteration)
        if self._record_entropy_history:
            self._entropy_history.append(snapshot.entropies)
        for listener in self._grid_listeners:
            listener(snapshot)

        coords = self.select_cell()

        if coords is None:
            if not self.grid.is_fully_collapsed():
                self.state = CollapseState.STUCK
                raise CollapseStuckError(
                    f"No selectable cell although {self.grid.uncollapsed_count()} cells are uncollapsed"
                )
            self.state = CollapseState.CONVERGED
            logger.info(
                "Grid converged after %d iterations (%d collapses, %d contradictions)",
                self.iteration,
                self.collapse_count,
                self.contradiction_count,
            )
            if self._spawn_placer is not None:
                self._placement_requests = self._spawn_placer.place(self.grid)
            return self.state

        self.collapse_cell(*coords)
        return self.state

    def evaluate_entropies(self) -> list[tuple[int, int]]:
        """Evaluates the entropy of every cell in row-major order and repairs contradictions immediately.

        After a repair, the entropies of the reset cells are refreshed before the sweep continues. A reset cell whose
        refreshed entropy is 0 is repaired in turn, so no uncollapsed cell is left with an entropy of 0.

        Returns:
            The coordinates of the cells that were repaired during the sweep.
        """
        contradicted_coords = []
        for row, col in self.grid.coords():
            if self._entropy_evaluator.evaluate_cell(row, col) == 0:
                contradicted_coords.extend(self._repair(row, col))
        return contradicted_coords

    def select_cell(self) -> tuple[int, int] | None:
        """Returns the coordinates of the uncollapsed cell with the lowest entropy.

        The scan keeps a running minimum. The first uncollapsed cell is always accepted. A later cell replaces the
        current best if its entropy is strictly lower, or if it is equal and a coin flip from the tie-break source
        lands heads, which randomizes the choice among cells sharing the minimum.

        Returns:
            The (row, col) of the selected cell, or None if every cell is collapsed.
        """
        best_coords = None
        best_entropy = 0
        for row, col in self.grid.coords():
            if self.grid.is_collapsed(row, col):
                continue

            entropy = self.grid.entropy_at(row, col)
            if (
                best_coords is None
                or entropy < best_entropy
                or (entropy == best_entropy and self._tie_break_rng.randrange(2) == 0)
            ):
                best_coords = (row, col)
                best_entropy = entropy
        return best_coords

    def collapse_cell(self, row: int, col: int) -> int:
        """Samples a tile for the cell at (row, col) from its probability vector and assigns it.

        If the vector sums to zero, the neighborhood of the cell is repaired once and the sampling is retried.

        Returns:
            The assigned tile index.

        Raises:
            DegenerateDistributionError: If the vector still sums to zero after the repair.
        """
        probabilities = self._transition_model.probability_vector(self.grid, row, col)
        try:
            normalized_probabilities = self._transition_model.normalize(probabilities)
        except DegenerateDistributionError:
            logger.warning("Degenerate distribution at (%d, %d), repairing neighborhood before retrying", row, col)
            self._repair(row, col)
            probabilities = self._transition_model.probability_vector(self.grid, row, col)
            normalized_probabilities = self._transition_model.normalize(probabilities)

        tile_index = self._sample_tile_index(normalized_probabilities)
        self.grid.set_tile(row, col, tile_index)
        self.collapse_count += 1
        return tile_index

    def result(self) -> CollapseResult:
        """Returns the result of the run in its current state."""
        return CollapseResult(
            self.state,
            self.grid.tile_grid(),
            self.iteration,
            self.collapse_count,
            self.contradiction_count,
            list(self._entropy_history),
            list(self._placement_requests),
        )

    def _repair(self, row: int, col: int) -> list[tuple[int, int]]:
        """Resets the neighborhood of (row, col) and refreshes the entropies of the reset cells.

        Reset cells that are still contradicted after the refresh are repaired as well. Every repair uncollapses the
        cell that caused the contradiction, so the cascade ends.

        Returns:
            The coordinates of every cell whose neighborhood was reset, starting with (row, col).
        """
        repaired_coords = []
        pending_coords = [(row, col)]
        while pending_coords:
            contradicted = pending_coords.pop(0)
            # An earlier repair of the cascade may have resolved it already.
            if repaired_coords and self._entropy_evaluator.evaluate_cell(*contradicted) != 0:
                continue

            repaired_coords.append(contradicted)
            for reset_coords in self._contradiction_handler.repair(*contradicted):
                if self._entropy_evaluator.evaluate_cell(*reset_coords) == 0 and reset_coords not in pending_coords:
                    pending_coords.append(reset_coords)
        return repaired_coords

    def _sample_tile_index(self, normalized_probabilities: NDArray[np.float64]) -> int:
        """Draws a tile index by inverse-CDF sampling with a single uniform draw.

        The first tile with a positive probability whose cumulative probability reaches the draw wins. If rounding
        leaves the draw above the final cumulative value, the last tile with a positive probability is used.
        """
        draw = self._rng.random()
        possible = normalized_probabilities > 0
        cumulative_probabilities = np.cumsum(normalized_probabilities)

        candidates = np.flatnonzero(possible & (cumulative_probabilities >= draw))
        if candidates.size > 0:
            return int(candidates[0])
        return int(np.flatnonzero(possible)[-1])
