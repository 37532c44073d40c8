"""Manages the transition matrices and the per-cell probability vectors derived from them."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np

from markov_wfc.enums import Direction

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

    from markov_wfc.model.grid import Grid


class DegenerateDistributionError(ValueError):
    """Raised when a probability vector sums to zero and therefore cannot be normalized."""

    pass


class TransitionModel:
    """Wraps the four direction-indexed transition matrices.

    The matrices are stored as a single read-only array of shape (4, tiles_count, tiles_count), indexed by
    'Direction.value'. 'matrices[d, a, b]' is the relative likelihood that tile b fits a cell whose neighbor in
    direction d holds tile a. The model is shared read-only by every cell of the grid.

    Attributes:
        tiles_count: The number of distinct tiles. Valid tile indices are in [0, tiles_count).
    """

    tiles_count: int

    # The stacked transition matrices, indexed [direction, neighbor_tile, candidate_tile].
    _matrices: NDArray[np.float64]

    def __init__(self, matrices: ArrayLike) -> None:
        """Validates and stores the stacked transition matrices.

        Args:
            matrices: An array of shape (4, tiles_count, tiles_count) holding non-negative finite weights, ordered
                like the 'Direction' enum (top, bottom, left, right).

        Raises:
            ValueError: If the array has the wrong shape or contains negative or non-finite weights.
        """
        matrices_array = np.array(matrices, dtype=np.float64)

        if matrices_array.ndim != 3 or matrices_array.shape[0] != len(Direction):
            raise ValueError(
                f"Expected transition matrices of shape ({len(Direction)}, n, n), got {matrices_array.shape}"
            )
        if matrices_array.shape[1] != matrices_array.shape[2] or matrices_array.shape[1] == 0:
            raise ValueError(f"Transition matrices must be square and non-empty, got {matrices_array.shape[1:]}")
        if not np.isfinite(matrices_array).all():
            raise ValueError("Transition matrices must only contain finite weights")
        if (matrices_array < 0).any():
            raise ValueError("Transition matrices must not contain negative weights")

        matrices_array.flags.writeable = False
        self._matrices = matrices_array
        self.tiles_count = matrices_array.shape[1]

    @classmethod
    def from_directional_matrices(
        cls, top: ArrayLike, bottom: ArrayLike, left: ArrayLike, right: ArrayLike
    ) -> TransitionModel:
        """Builds a model from four separate tiles_count x tiles_count matrices."""
        return cls(np.stack([np.asarray(top), np.asarray(bottom), np.asarray(left), np.asarray(right)]))

    @classmethod
    def uniform(cls, tiles_count: int) -> TransitionModel:
        """Builds a model in which every tile is compatible with every other tile with weight 1."""
        if tiles_count < 1:
            raise ValueError(f"Tiles count must be positive, got {tiles_count}")
        return cls(np.ones((len(Direction), tiles_count, tiles_count), dtype=np.float64))

    @classmethod
    def load(cls, file_path: str | Path) -> TransitionModel:
        """Loads the stacked matrices from a .npy file or from the first array of a .npz file."""
        loaded = np.load(file_path, allow_pickle=False)
        if isinstance(loaded, np.lib.npyio.NpzFile):
            with loaded:
                return cls(loaded[loaded.files[0]])
        return cls(loaded)

    def matrix(self, direction: Direction) -> NDArray[np.float64]:
        """Returns the read-only transition matrix for the given direction."""
        return self._matrices[direction.value]

    def probability_vector(self, grid: Grid, row: int, col: int) -> NDArray[np.float64]:
        """Computes the unnormalized tile weights for the cell at (row, col).

        All weights start at 1. For every neighbor that lies inside the grid and is already collapsed, the weights are
        multiplied elementwise by that neighbor's row of the matrix for its direction. Neighbors outside the grid and
        uncollapsed neighbors contribute no constraint.

        Args:
            grid: The grid the cell belongs to.
            row: The row of the cell.
            col: The column of the cell.

        Returns:
            A vector of tiles_count non-negative weights. A weight of 0 marks an incompatible tile.
        """
        probabilities = np.ones(self.tiles_count, dtype=np.float64)
        for direction, neighbor_row, neighbor_col in grid.neighbors(row, col):
            neighbor_tile = grid.tile_at(neighbor_row, neighbor_col)
            if neighbor_tile >= 0:
                probabilities *= self._matrices[direction.value, neighbor_tile]
        return probabilities

    @staticmethod
    def normalize(probabilities: NDArray[np.float64]) -> NDArray[np.float64]:
        """Scales the weights so that they sum to 1.

        Raises:
            DegenerateDistributionError: If the weights sum to zero.
        """
        total = float(np.sum(probabilities))
        if total <= 0.0:
            raise DegenerateDistributionError("Cannot normalize a probability vector that sums to zero")
        return probabilities / total
