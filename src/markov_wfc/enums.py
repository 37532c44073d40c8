"""Contains all global enumeration classes used throughout the project."""

from __future__ import annotations

from enum import Enum


class Direction(Enum):
    """Defines the four neighbor directions, each indexing one transition matrix."""

    TOP = 0
    """The neighbor one row above."""
    BOTTOM = 1
    """The neighbor one row below."""
    LEFT = 2
    """The neighbor one column to the left."""
    RIGHT = 3
    """The neighbor one column to the right."""

    def to_vector(self) -> tuple[int, int]:
        """Returns the (row, col) offset for the direction."""
        match self:
            case Direction.TOP:
                return (-1, 0)
            case Direction.BOTTOM:
                return (1, 0)
            case Direction.LEFT:
                return (0, -1)
            case Direction.RIGHT:
                return (0, 1)


class CollapseState(Enum):
    """Defines the states of a collapse run."""

    RUNNING = "Running"
    """Uncollapsed cells remain and the run continues."""
    CONVERGED = "Converged"
    """Every cell has been collapsed."""
    STUCK = "Stuck"
    """Uncollapsed cells remain but none of them could be selected. Indicates inconsistent entropy bookkeeping."""
    ABORTED = "Aborted"
    """The run was cancelled from outside between two iterations."""
    LIMIT_REACHED = "Limit Reached"
    """The optional iteration limit was hit before the grid converged."""

    def is_terminal(self) -> bool:
        """Returns True for every state other than RUNNING."""
        return self != CollapseState.RUNNING


class WFCUpdateMode(Enum):
    """Defines the frequency at which grid updates are forwarded to observers."""

    ON_EACH_ITERATION = "On Each Iteration"
    """Forwards a grid snapshot after every entropy sweep. Considerably slows down generation."""
    ONLY_WHEN_DONE = "Only When Done"
    """Forwards the grid once when the run has finished."""
