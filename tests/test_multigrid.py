"""Tests for the multigrid V-cycle solver."""

import numpy as np
import pytest

from Hartree import (
    Grid,
    MultigridSolver,
    SolverParams,
    build_right_hand_side,
    parse_schedule,
    point_charge_density,
    setup_point_charge_problem,
)
from Hartree.smoothers import gauss_seidel


@pytest.fixture(scope="module")
def problem():
    grid, _, b = setup_point_charge_problem(8, 0.25)
    return grid, b


def _params(**kwargs):
    return SolverParams(method="multigrid", **kwargs)


class TestConvergence:
    """V-cycle convergence on the point-charge problem."""

    def test_fifteen_cycles_reach_target(self, problem):
        grid, b = problem
        result = MultigridSolver(grid, _params(iterations=15, schedule="1-4-1")).solve(b)

        assert result.iterations == 15
        assert result.residual_norm < 1e-3

    def test_every_cycle_reduces_residual(self, problem):
        grid, b = problem
        result = MultigridSolver(grid, _params(iterations=8)).solve(b)

        history = result.residual_history
        for before, after in zip(history, history[1:]):
            assert after < before

    def test_geometric_spacing_single_level(self, problem):
        grid, b = problem
        result = MultigridSolver(
            grid, _params(iterations=15, coarse_spacing="geometric")
        ).solve(b)

        assert result.residual_norm < 1e-3 * result.metrics.initial_residual

    def test_three_level_schedule_converges(self):
        grid = Grid(16, 0.125)
        b = build_right_hand_side(point_charge_density(grid), grid)
        result = MultigridSolver(
            grid, _params(iterations=30, schedule="1-1-2-4-2-1-1")
        ).solve(b)

        history = result.residual_history
        assert history[10] < history[0]
        assert result.residual_norm < 1e-3 * result.metrics.initial_residual

    def test_deeper_schedule(self, problem):
        grid, b = problem
        result = MultigridSolver(grid, _params(iterations=15, schedule="1-2-4-2-1")).solve(b)

        assert result.residual_norm < 1e-2 * result.metrics.initial_residual

    def test_larger_grid(self):
        grid = Grid(16, 0.125)
        b = build_right_hand_side(point_charge_density(grid), grid)
        result = MultigridSolver(
            grid, _params(iterations=20, schedule="1-2-2-4-2-2-1")
        ).solve(b)

        assert result.residual_norm < 1e-2 * result.metrics.initial_residual

    def test_depth_zero_is_plain_smoothing(self, problem):
        """A one-entry schedule smooths the finest grid only."""
        grid, b = problem
        result = MultigridSolver(grid, _params(iterations=1, schedule="3")).solve(b)

        np.testing.assert_allclose(
            result.solution, gauss_seidel(grid.allocate(), b, grid, 3), atol=1e-12
        )

    def test_numba_matches_numpy(self, problem):
        grid, b = problem
        numpy_result = MultigridSolver(grid, _params(iterations=3)).solve(b)
        numba_result = MultigridSolver(
            grid, _params(iterations=3, use_numba=True, numba_threads=1)
        ).solve(b)
        np.testing.assert_allclose(numba_result.solution, numpy_result.solution, atol=1e-9)


class TestCycleStructure:
    """Hierarchy and schedule handling."""

    def test_levels_follow_schedule(self, problem):
        grid, _ = problem
        solver = MultigridSolver(grid, _params(schedule="1-2-4-2-1"))
        assert solver.depth == 2
        assert [lvl.size for lvl in solver.levels] == [8, 4, 2]

    def test_schedule_too_deep(self, problem):
        grid, _ = problem
        with pytest.raises(ValueError, match="too deep"):
            MultigridSolver(grid, _params(schedule="1-1-1-1-1-1-1-1-1"))

    def test_zero_sweeps_allowed(self, problem):
        grid, b = problem
        result = MultigridSolver(grid, _params(iterations=2, schedule="0-4-1")).solve(b)
        assert result.residual_norm < result.metrics.initial_residual

    def test_v_cycle_does_not_modify_inputs(self, problem):
        grid, b = problem
        solver = MultigridSolver(grid, _params())
        x = grid.allocate(0.5)
        b_before, x_before = b.copy(), x.copy()
        solver.v_cycle(x, b)
        np.testing.assert_array_equal(x, x_before)
        np.testing.assert_array_equal(b, b_before)


class TestParseSchedule:
    """Smoothing schedule parsing."""

    def test_string(self):
        assert parse_schedule("1-2-4-2-1") == (1, 2, 4, 2, 1)

    def test_sequence(self):
        assert parse_schedule([1, 4, 1]) == (1, 4, 1)

    def test_depth(self):
        assert _params(schedule="1-2-4-2-1").depth == 2
        assert _params(schedule="4").depth == 0

    @pytest.mark.parametrize("schedule", ["1-4", "", "1-x-1", "1--1", [1, 2]])
    def test_malformed(self, schedule):
        with pytest.raises(ValueError):
            parse_schedule(schedule)

    def test_negative(self):
        with pytest.raises(ValueError, match="non-negative"):
            parse_schedule([1, -2, 1])
