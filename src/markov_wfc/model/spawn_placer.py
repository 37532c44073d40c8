"""Contains the post-processing pass that requests object spawns on a finished grid."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import random
from typing import Any, Protocol, TYPE_CHECKING

from markov_wfc.constants import SPAWN_MARKER_TILE_DEFAULT

if TYPE_CHECKING:
    from collections.abc import Sequence

    from markov_wfc.model.grid import Grid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlacementRequest:
    """A request for an external spawner to place one object.

    Attributes:
        world_position: The (x, y, z) world position derived from the cell coordinates.
        spawn_choice_index: The index of the chosen entry of the spawn pool.
        cell: The (row, col) coordinates of the cell the request was created for.
    """

    world_position: tuple[float, float, float]
    spawn_choice_index: int
    cell: tuple[int, int]


class Spawner(Protocol):
    """Collaborator that turns placement requests into actual objects."""

    def spawn(self, request: PlacementRequest) -> None: ...


class SpawnPlacer:
    """Scans a fully collapsed grid for the spawn marker tile and emits placement requests.

    Cells on the outer border of the grid never receive a request. The spawn choice of each request is drawn uniformly
    from the configured pool. The pass is read-only: the grid is not modified.

    Attributes:
        spawn_marker_tile: The tile index that marks cells eligible for spawning.
        spawn_pool: The candidates a spawn choice is drawn from.
        origin: The (x, y) world position of the grid's (0, 0) cell.
    """

    spawn_marker_tile: int
    spawn_pool: Sequence[Any]
    origin: tuple[float, float]

    # Integer random source used to draw the spawn choices.
    _rng: random.Random
    # Optional collaborator receiving every emitted request.
    _spawner: Spawner | None

    def __init__(
        self,
        spawn_pool: Sequence[Any],
        spawn_marker_tile: int = SPAWN_MARKER_TILE_DEFAULT,
        spawner: Spawner | None = None,
        rng: random.Random | None = None,
        origin: tuple[float, float] = (0.0, 0.0),
    ) -> None:
        """Initializes the placer.

        Args:
            spawn_pool: The candidates a spawn choice is drawn from. Must not be empty.
            spawn_marker_tile: The tile index that marks cells eligible for spawning. Defaults to
                constants.SPAWN_MARKER_TILE_DEFAULT.
            spawner: Optional collaborator receiving every emitted request.
            rng: Integer random source for the spawn choices. Defaults to a new unseeded random.Random.
            origin: The (x, y) world position of the grid's (0, 0) cell. Defaults to (0.0, 0.0).

        Raises:
            ValueError: If the spawn pool is empty or the marker tile is negative.
        """
        if len(spawn_pool) == 0:
            raise ValueError("Spawn pool must contain at least one candidate")
        if spawn_marker_tile < 0:
            raise ValueError(f"Spawn marker tile must not be negative, got {spawn_marker_tile}")

        self.spawn_pool = spawn_pool
        self.spawn_marker_tile = spawn_marker_tile
        self.origin = origin
        self._spawner = spawner
        self._rng = rng if rng is not None else random.Random()

    def place(self, grid: Grid) -> list[PlacementRequest]:
        """Emits one placement request per interior cell holding the spawn marker tile.

        Args:
            grid: The fully collapsed grid.

        Returns:
            The emitted requests in row-major cell order.
        """
        requests = []
        last_index = grid.size - 1
        for row, col in grid.coords():
            if grid.tile_at(row, col) != self.spawn_marker_tile:
                continue
            if row in (0, last_index) or col in (0, last_index):
                continue

            request = PlacementRequest(
                self.world_position(grid, row, col), self._rng.randrange(len(self.spawn_pool)), (row, col)
            )
            requests.append(request)
            if self._spawner is not None:
                self._spawner.spawn(request)

        logger.info("Emitted %d placement requests for marker tile %d", len(requests), self.spawn_marker_tile)
        return requests

    def world_position(self, grid: Grid, row: int, col: int) -> tuple[float, float, float]:
        """Maps cell coordinates to a world position.

        Rows and columns grow towards negative x and y, offset by the origin. The depth is the distance of the column
        from the far edge of the grid.
        """
        return (self.origin[0] - row, self.origin[1] - col, float(grid.size - col))
