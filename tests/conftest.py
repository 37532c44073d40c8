from __future__ import annotations

from collections.abc import Iterator

import numpy as np
import pytest
from PyQt6 import QtCore as qtc

from markov_wfc.model.transition_model import TransitionModel


class ScriptedRandom:
    """Stand-in for random.Random that replays scripted values.

    'random()' pops from 'draws' and 'randrange()' pops from 'coins'. When a script runs out, the last value is
    repeated.
    """

    def __init__(self, draws: list[float] | None = None, coins: list[int] | None = None) -> None:
        self.draws = list(draws or [0.0])
        self.coins = list(coins or [1])
        self.randrange_calls = 0

    def random(self) -> float:
        if len(self.draws) > 1:
            return self.draws.pop(0)
        return self.draws[0]

    def randrange(self, stop: int) -> int:
        self.randrange_calls += 1
        value = self.coins.pop(0) if len(self.coins) > 1 else self.coins[0]
        return value % stop


@pytest.fixture
def scripted_random() -> type[ScriptedRandom]:
    return ScriptedRandom


@pytest.fixture
def exclusive_model() -> TransitionModel:
    """Two tiles that may only sit next to themselves, in every direction."""
    identity = np.eye(2)
    return TransitionModel.from_directional_matrices(identity, identity, identity, identity)


@pytest.fixture
def weighted_model() -> TransitionModel:
    """Three tiles with strictly positive weights, so no contradiction can ever occur."""
    top = np.array([[4.0, 1.0, 1.0], [1.0, 4.0, 1.0], [1.0, 1.0, 4.0]])
    bottom = top.T.copy()
    left = np.array([[2.0, 3.0, 1.0], [1.0, 2.0, 3.0], [3.0, 1.0, 2.0]])
    right = left.T.copy()
    return TransitionModel.from_directional_matrices(top, bottom, left, right)


@pytest.fixture(scope="session")
def qt_app() -> Iterator[qtc.QCoreApplication]:
    """A headless Qt application, required for event loops and threads."""
    app = qtc.QCoreApplication.instance()
    if app is None:
        app = qtc.QCoreApplication([])
    yield app
