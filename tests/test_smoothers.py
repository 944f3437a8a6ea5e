"""Tests for the Jacobi and red-black Gauss-Seidel relaxation sweeps."""

import numpy as np
import pytest

from Hartree import Grid, NumbaKernel, setup_point_charge_problem
from Hartree.smoothers import (
    BLACK,
    RED,
    gauss_seidel,
    jacobi,
    red_black_partition,
    relax_partitioned,
    update_cells,
)
from Hartree.stencil import residual, residual_norm


@pytest.fixture
def problem():
    grid, _, b = setup_point_charge_problem(8, 0.25)
    rng = np.random.default_rng(7)
    x = rng.standard_normal(grid.cell_count)
    return grid, x, b


class TestRedBlackPartition:
    """Colour classes of the grid."""

    def test_halves_cover_grid(self):
        red, black = red_black_partition(8)
        assert len(red) == len(black) == 256
        np.testing.assert_array_equal(np.sort(np.concatenate([red, black])), np.arange(512))

    def test_red_cells_have_even_parity(self):
        grid = Grid(4, 1.0)
        red, _ = red_black_partition(4)
        for a in red:
            x, y, z = grid.coordinates(int(a))
            assert (x + y + z) % 2 == RED

    def test_read_only(self):
        red, _ = red_black_partition(4)
        with pytest.raises(ValueError):
            red[0] = 1


class TestGaussSeidel:
    """Red-black sweep equals any sequential ordering within a colour."""

    def test_colour_update_order_independent(self, problem):
        grid, x, b = problem
        red, black = red_black_partition(grid.size)
        rng = np.random.default_rng(11)

        forward = update_cells(x, b, grid, red)
        shuffled = update_cells(x, b, grid, rng.permutation(red))
        reverse = update_cells(x, b, grid, red[::-1])

        np.testing.assert_array_equal(forward, shuffled)
        np.testing.assert_array_equal(forward, reverse)

    def test_sweep_matches_sequential_reference(self, problem):
        grid, x, b = problem
        red, black = red_black_partition(grid.size)
        rng = np.random.default_rng(3)

        reference = update_cells(x, b, grid, rng.permutation(red))
        reference = update_cells(reference, b, grid, rng.permutation(black))

        np.testing.assert_allclose(gauss_seidel(x, b, grid, 1), reference, atol=1e-12)

    def test_numba_kernel_matches(self, problem):
        grid, x, b = problem
        np.testing.assert_allclose(
            gauss_seidel(x, b, grid, 3, NumbaKernel(numba_threads=1)),
            gauss_seidel(x, b, grid, 3),
            atol=1e-12,
        )

    def test_black_residual_zero_after_sweep(self, problem):
        """After a sweep the black cells satisfy their equations exactly."""
        grid, x, b = problem
        r = residual(gauss_seidel(x, b, grid, 1), b, grid)
        _, black = red_black_partition(grid.size)
        np.testing.assert_allclose(r[black], 0.0, atol=1e-10)

    def test_partition_relaxation_matches_sweep(self, problem):
        grid, x, b = problem
        np.testing.assert_allclose(
            relax_partitioned(x, b, grid, 4), gauss_seidel(x, b, grid, 4), atol=1e-10
        )

    def test_inputs_untouched(self, problem):
        grid, x, b = problem
        x_before, b_before = x.copy(), b.copy()
        gauss_seidel(x, b, grid, 2)
        relax_partitioned(x, b, grid, 2)
        jacobi(x, b, grid, 2)
        np.testing.assert_array_equal(x, x_before)
        np.testing.assert_array_equal(b, b_before)


class TestJacobi:
    """Jacobi relaxation."""

    def test_reduces_residual(self, problem):
        grid, _, b = problem
        x0 = grid.allocate()
        r0 = residual_norm(x0, b, grid)
        r = residual_norm(jacobi(x0, b, grid, 10), b, grid)
        assert r < r0

    def test_gauss_seidel_faster_than_jacobi(self, problem):
        grid, _, b = problem
        x0 = grid.allocate()
        r_jacobi = residual_norm(jacobi(x0, b, grid, 20), b, grid)
        r_gs = residual_norm(gauss_seidel(x0, b, grid, 20), b, grid)
        assert r_gs < r_jacobi

    def test_zero_iterations_copy(self, problem):
        grid, x, b = problem
        out = jacobi(x, b, grid, 0)
        np.testing.assert_array_equal(out, x)
        assert out is not x
