"""Contains the grid of cells the WFC algorithm collapses."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from markov_wfc.constants import UNCOLLAPSED_TILE_INDEX
from markov_wfc.enums import Direction

if TYPE_CHECKING:
    from collections.abc import Iterator

    from numpy.typing import NDArray


@dataclass(frozen=True)
class Cell:
    """Read-only view of a single grid cell.

    Attributes:
        tile_index: The tile assigned to the cell, or -1 if the cell is still uncollapsed.
        entropy: The number of tiles that were still viable for the cell at the last entropy evaluation pass.
    """

    tile_index: int
    entropy: int

    @property
    def is_collapsed(self) -> bool:
        """Returns True if a tile has been assigned to the cell."""
        return self.tile_index != UNCOLLAPSED_TILE_INDEX


@dataclass(frozen=True)
class GridSnapshot:
    """Immutable copy of the grid state taken after an entropy evaluation pass.

    Attributes:
        iteration: The number of the iteration the snapshot was taken in (starting at 1).
        tile_indices: Copy of the tile index array (-1 for uncollapsed cells).
        entropies: Copy of the entropy array.
    """

    iteration: int
    tile_indices: NDArray[np.int_]
    entropies: NDArray[np.int_]


class Grid:
    """Owns the square array of cell states.

    The state of each cell is split across two arrays: 'tile_indices' holds the assigned tile (-1 while the cell is
    uncollapsed) and 'entropies' holds the entropy value written by the last entropy evaluation pass. Entropies may be
    stale between two passes, but the collapse scheduler always refreshes them before picking the next cell.

    Attributes:
        size: The width and height of the grid (in cells).
    """

    size: int

    # The tile assigned to each cell, or -1 for uncollapsed cells.
    _tile_indices: NDArray[np.int_]
    # The entropy of each cell as of the last entropy evaluation pass.
    _entropies: NDArray[np.int_]

    def __init__(self, size: int) -> None:
        """Creates a grid of uncollapsed cells with an entropy of 0.

        Args:
            size: The width and height of the grid (in cells). Must be positive.

        Raises:
            ValueError: If 'size' is not a positive integer.
        """
        if isinstance(size, bool) or not isinstance(size, (int, np.integer)) or size < 1:
            raise ValueError(f"Grid size must be a positive integer, got {size!r}")

        self.size = int(size)
        self._tile_indices = np.full((self.size, self.size), UNCOLLAPSED_TILE_INDEX, dtype=np.int_)
        self._entropies = np.zeros((self.size, self.size), dtype=np.int_)

    def in_bounds(self, row: int, col: int) -> bool:
        """Returns True if (row, col) lies inside the grid."""
        return 0 <= row < self.size and 0 <= col < self.size

    def cell(self, row: int, col: int) -> Cell:
        """Returns a read-only view of the cell at (row, col)."""
        return Cell(int(self._tile_indices[row, col]), int(self._entropies[row, col]))

    def tile_at(self, row: int, col: int) -> int:
        """Returns the tile index at (row, col), or -1 if the cell is uncollapsed."""
        return int(self._tile_indices[row, col])

    def entropy_at(self, row: int, col: int) -> int:
        """Returns the stored entropy of the cell at (row, col)."""
        return int(self._entropies[row, col])

    def is_collapsed(self, row: int, col: int) -> bool:
        """Returns True if a tile has been assigned to the cell at (row, col)."""
        return bool(self._tile_indices[row, col] != UNCOLLAPSED_TILE_INDEX)

    def set_tile(self, row: int, col: int, tile_index: int) -> None:
        """Collapses the cell at (row, col) to the given tile.

        Raises:
            ValueError: If 'tile_index' is negative.
        """
        if tile_index < 0:
            raise ValueError(f"Tile index must not be negative, got {tile_index}")
        self._tile_indices[row, col] = tile_index

    def reset_cell(self, row: int, col: int) -> None:
        """Reverts the cell at (row, col) to the uncollapsed state. Its entropy is left as is."""
        self._tile_indices[row, col] = UNCOLLAPSED_TILE_INDEX

    def set_entropy(self, row: int, col: int, entropy: int) -> None:
        """Stores a freshly evaluated entropy for the cell at (row, col)."""
        self._entropies[row, col] = entropy

    def neighbors(self, row: int, col: int) -> Iterator[tuple[Direction, int, int]]:
        """Yields (direction, row, col) for each orthogonal neighbor that lies inside the grid."""
        for direction in Direction:
            neighbor_row = row + direction.to_vector()[0]
            neighbor_col = col + direction.to_vector()[1]
            if self.in_bounds(neighbor_row, neighbor_col):
                yield direction, neighbor_row, neighbor_col

    def coords(self) -> Iterator[tuple[int, int]]:
        """Yields the coordinates of every cell in row-major order."""
        for row in range(self.size):
            for col in range(self.size):
                yield row, col

    def uncollapsed_count(self) -> int:
        """Returns the number of cells that have no tile yet."""
        return int(np.count_nonzero(self._tile_indices == UNCOLLAPSED_TILE_INDEX))

    def is_fully_collapsed(self) -> bool:
        """Returns True once every cell has a tile."""
        return self.uncollapsed_count() == 0

    def tile_grid(self) -> NDArray[np.int_]:
        """Returns a copy of the tile index array."""
        return self._tile_indices.copy()

    def entropy_grid(self) -> NDArray[np.int_]:
        """Returns a copy of the entropy array."""
        return self._entropies.copy()

    def snapshot(self, iteration: int) -> GridSnapshot:
        """Returns an immutable copy of the current grid state."""
        tile_indices = self.tile_grid()
        entropies = self.entropy_grid()
        tile_indices.flags.writeable = False
        entropies.flags.writeable = False
        return GridSnapshot(iteration, tile_indices, entropies)
