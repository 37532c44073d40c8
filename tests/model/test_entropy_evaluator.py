"""Tests for the count-based cell entropy."""

from __future__ import annotations

import numpy as np

from markov_wfc.model.entropy_evaluator import EntropyEvaluator
from markov_wfc.model.grid import Grid
from markov_wfc.model.transition_model import TransitionModel


def test_unconstrained_cell_counts_every_tile() -> None:
    grid = Grid(3)
    evaluator = EntropyEvaluator(grid, TransitionModel.uniform(5))

    assert evaluator.entropy_of(1, 1) == 5


def test_collapsed_cell_reports_one(exclusive_model: TransitionModel) -> None:
    grid = Grid(3)
    grid.set_tile(1, 1, 1)
    evaluator = EntropyEvaluator(grid, exclusive_model)

    assert evaluator.entropy_of(1, 1) == 1


def test_counts_only_strictly_positive_weights() -> None:
    matrices = np.ones((4, 4, 4))
    # A collapsed left neighbor holding tile 0 rules out tiles 1 and 3.
    matrices[2, 0] = [0.5, 0.0, 2.0, 0.0]
    grid = Grid(2)
    grid.set_tile(0, 0, 0)
    evaluator = EntropyEvaluator(grid, TransitionModel(matrices))

    assert evaluator.entropy_of(0, 1) == 2


def test_conflicting_neighbors_give_zero(exclusive_model: TransitionModel) -> None:
    grid = Grid(3)
    grid.set_tile(0, 1, 0)
    grid.set_tile(1, 0, 1)
    evaluator = EntropyEvaluator(grid, exclusive_model)

    assert evaluator.entropy_of(0, 0) == 0


def test_evaluate_cell_stores_the_entropy(exclusive_model: TransitionModel) -> None:
    grid = Grid(3)
    grid.set_tile(1, 1, 0)
    evaluator = EntropyEvaluator(grid, exclusive_model)

    assert evaluator.evaluate_cell(0, 1) == 1
    assert evaluator.evaluate_cell(0, 0) == 2
    assert grid.entropy_at(0, 1) == 1
    assert grid.entropy_at(0, 0) == 2
