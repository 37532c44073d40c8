"""Tests for the grid of cell states."""

from __future__ import annotations

import numpy as np
import pytest

from markov_wfc.constants import UNCOLLAPSED_TILE_INDEX
from markov_wfc.enums import Direction
from markov_wfc.model.grid import Cell, Grid


@pytest.mark.parametrize("size", [0, -3, 2.5, True, "4"])
def test_rejects_invalid_sizes(size: object) -> None:
    with pytest.raises(ValueError, match="positive integer"):
        Grid(size)  # type: ignore[arg-type]


def test_new_grid_is_uncollapsed() -> None:
    grid = Grid(4)

    assert grid.size == 4
    assert grid.uncollapsed_count() == 16
    assert not grid.is_fully_collapsed()
    assert (grid.tile_grid() == UNCOLLAPSED_TILE_INDEX).all()
    assert (grid.entropy_grid() == 0).all()
    assert grid.cell(2, 3) == Cell(UNCOLLAPSED_TILE_INDEX, 0)


def test_set_and_reset_tile() -> None:
    grid = Grid(3)

    grid.set_tile(1, 2, 5)
    grid.set_entropy(1, 2, 1)

    assert grid.is_collapsed(1, 2)
    assert grid.tile_at(1, 2) == 5
    assert grid.cell(1, 2).is_collapsed
    assert grid.uncollapsed_count() == 8

    grid.reset_cell(1, 2)

    assert not grid.is_collapsed(1, 2)
    # Resetting a cell keeps its last evaluated entropy until the next pass.
    assert grid.entropy_at(1, 2) == 1


def test_set_tile_rejects_negative_index() -> None:
    grid = Grid(2)

    with pytest.raises(ValueError):
        grid.set_tile(0, 0, -1)


def test_neighbors_are_clipped_at_corners() -> None:
    grid = Grid(3)

    corner = {direction: (row, col) for direction, row, col in grid.neighbors(0, 0)}
    center = {direction: (row, col) for direction, row, col in grid.neighbors(1, 1)}

    assert corner == {Direction.BOTTOM: (1, 0), Direction.RIGHT: (0, 1)}
    assert center == {
        Direction.TOP: (0, 1),
        Direction.BOTTOM: (2, 1),
        Direction.LEFT: (1, 0),
        Direction.RIGHT: (1, 2),
    }


def test_coords_are_row_major() -> None:
    assert list(Grid(2).coords()) == [(0, 0), (0, 1), (1, 0), (1, 1)]


def test_snapshot_is_a_read_only_copy() -> None:
    grid = Grid(2)
    grid.set_tile(0, 0, 1)
    grid.set_entropy(1, 1, 3)

    snapshot = grid.snapshot(7)
    grid.set_tile(1, 1, 0)

    assert snapshot.iteration == 7
    np.testing.assert_array_equal(snapshot.tile_indices, [[1, -1], [-1, -1]])
    np.testing.assert_array_equal(snapshot.entropies, [[0, 0], [0, 3]])
    with pytest.raises(ValueError):
        snapshot.tile_indices[0, 0] = 2
