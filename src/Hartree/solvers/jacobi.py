"""Relaxation solvers: Jacobi and red-black Gauss-Seidel."""

import numpy as np

from .base import BaseSolver
from .. import smoothers
from ..datastructures import Method


class JacobiSolver(BaseSolver):
    """Plain Jacobi iteration.

    Converges slowly; kept as a reference for the other methods.

    Parameters
    ----------
    grid : Grid
        Problem grid.
    params : SolverParams, optional
        ``iterations`` and ``tolerance`` are used.
    """

    method = Method.JACOBI

    def _iterate(self, x: np.ndarray, b: np.ndarray) -> np.ndarray:
        residual = self.residual_norm(x, b)
        self._record(residual)

        for i in range(self.params.iterations):
            if self._converged(residual):
                break

            t0 = self._get_time()
            x = self._sweep(x, b)
            compute_time = self._get_time() - t0

            residual = self.residual_norm(x, b)
            self._record(residual, compute_time)
            self.metrics.iterations = i + 1

        return x

    def _sweep(self, x: np.ndarray, b: np.ndarray) -> np.ndarray:
        return smoothers.jacobi(x, b, self.grid, 1, self.kernel)


class GaussSeidelSolver(JacobiSolver):
    """Red-black Gauss-Seidel iteration.

    ``params.variant`` selects the in-place colour sweep (``"sweep"``) or
    the explicit red/black partition relaxation (``"partition"``); both
    produce the same iterates.
    """

    method = Method.GAUSS_SEIDEL

    def _sweep(self, x: np.ndarray, b: np.ndarray) -> np.ndarray:
        if self.params.variant == "partition":
            return smoothers.relax_partitioned(x, b, self.grid, 1, self.kernel)
        return smoothers.gauss_seidel(x, b, self.grid, 1, self.kernel)
