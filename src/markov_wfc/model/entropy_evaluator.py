"""Contains the class that derives the entropy of each cell."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from markov_wfc.model.grid import Grid
    from markov_wfc.model.transition_model import TransitionModel


class EntropyEvaluator:
    """Derives a per-cell uncertainty measure from the transition model.

    The entropy used here is not the Shannon entropy but simply the number of tiles that are still compatible with the
    cell's collapsed neighbors. Collapsed cells always report an entropy of 1, so an entropy of 0 can only occur on an
    uncollapsed cell and marks a contradiction.
    """

    # The grid whose cells are evaluated.
    _grid: Grid
    # The transition model providing the probability vectors.
    _transition_model: TransitionModel

    def __init__(self, grid: Grid, transition_model: TransitionModel) -> None:
        self._grid = grid
        self._transition_model = transition_model

    def entropy_of(self, row: int, col: int) -> int:
        """Returns the number of viable tiles for the cell at (row, col), or 1 if it is collapsed."""
        if self._grid.is_collapsed(row, col):
            return 1
        probabilities = self._transition_model.probability_vector(self._grid, row, col)
        return int(np.count_nonzero(probabilities > 0))

    def evaluate_cell(self, row: int, col: int) -> int:
        """Computes the entropy of the cell at (row, col), stores it on the grid and returns it."""
        entropy = self.entropy_of(row, col)
        self._grid.set_entropy(row, col, entropy)
        return entropy
