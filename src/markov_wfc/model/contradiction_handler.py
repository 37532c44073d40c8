"""Contains the local repair applied to contradicted cells."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from markov_wfc.model.grid import Grid

logger = logging.getLogger(__name__)


class ContradictionHandler:
    """Resets the neighborhood of a cell that has no viable tile left.

    The repair is purely local: every cell of the 3x3 block centered on the contradicted cell (clipped to the grid) is
    reverted to the uncollapsed state. There is no backtracking to an earlier grid state, so convergence is not
    guaranteed for every set of transition matrices.

    Attributes:
        repair_count: The number of repairs performed since the handler was created.
    """

    repair_count: int

    # The grid whose cells are reset.
    _grid: Grid

    def __init__(self, grid: Grid) -> None:
        self._grid = grid
        self.repair_count = 0

    def repair(self, row: int, col: int) -> list[tuple[int, int]]:
        """Reverts the clipped 3x3 neighborhood of (row, col) to the uncollapsed state.

        Args:
            row: The row of the contradicted cell.
            col: The column of the contradicted cell.

        Returns:
            The coordinates of all cells in the neighborhood, including the contradicted cell itself.
        """
        reset_coords = []
        for neighbor_row in range(row - 1, row + 2):
            for neighbor_col in range(col - 1, col + 2):
                if self._grid.in_bounds(neighbor_row, neighbor_col):
                    self._grid.reset_cell(neighbor_row, neighbor_col)
                    reset_coords.append((neighbor_row, neighbor_col))

        self.repair_count += 1
        logger.debug("Contradiction at (%d, %d), reset %d cells", row, col, len(reset_coords))
        return reset_coords
