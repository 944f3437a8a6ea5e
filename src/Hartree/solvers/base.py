"""Base class for solvers."""

import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from ..datastructures import Method, SolveResult, SolverMetrics, SolverParams, SolverTimeseries
from ..grid import Grid
from ..kernels import make_kernel
from ..stencil import apply_interior

log = logging.getLogger(__name__)


class BaseSolver(ABC):
    """Abstract base for all solvers of ``apply_interior(x) = b``.

    Parameters
    ----------
    grid : Grid
        Finest grid of the problem.
    params : SolverParams, optional
        Configuration. Defaults to ``SolverParams(method=<this solver>)``.
    """

    method: Method

    def __init__(self, grid: Grid, params: Optional[SolverParams] = None):
        self.grid = grid
        self.params = params if params is not None else SolverParams(method=self.method.value)
        self.kernel = make_kernel(self.params.use_numba, self.params.numba_threads)

        self.metrics = SolverMetrics()
        self.timeseries = SolverTimeseries()
        self._time_compute = 0.0

    def solve(self, b: np.ndarray, x0: Optional[np.ndarray] = None) -> SolveResult:
        """Iterate from ``x0`` (default zero) and return the potential.

        Raises
        ------
        ValueError
            If ``b`` or ``x0`` does not match the grid.
        """
        self._reset()
        b = self.grid.check_field(b, "b")
        x = self.grid.allocate() if x0 is None else self.grid.check_field(x0, "x0").copy()

        t_start = self._get_time()
        x = self._iterate(x, b)
        wall_time = self._get_time() - t_start

        final = self.residual_norm(x, b)
        self._finalize(wall_time, final)
        log.info(
            f"{self.method.value}: {self.metrics.iterations} iter, "
            f"residual={final:.3e}, time={wall_time:.3f}s"
        )
        return SolveResult(
            solution=x,
            residual_norm=final,
            metrics=self.metrics,
            residual_history=list(self.timeseries.residual_history),
        )

    @abstractmethod
    def _iterate(self, x: np.ndarray, b: np.ndarray) -> np.ndarray:
        """Run the method's iterations and return the new iterate."""

    def warmup(self, warmup_size: int = 4):
        """Warmup kernel (trigger Numba JIT if used)."""
        self.kernel.warmup(warmup_size=warmup_size)

    def apply_operator(self, x: np.ndarray, grid: Grid = None) -> np.ndarray:
        return apply_interior(x, grid or self.grid, self.kernel)

    def residual(self, x: np.ndarray, b: np.ndarray, grid: Grid = None) -> np.ndarray:
        """``b - A x`` on ``grid`` (default: finest)."""
        return b - self.apply_operator(x, grid)

    def residual_norm(self, x: np.ndarray, b: np.ndarray) -> float:
        return float(np.linalg.norm(self.residual(x, b)))

    def _converged(self, residual: float) -> bool:
        tol = self.params.tolerance
        return tol is not None and residual <= tol

    def _record(self, residual: float, compute_time: float = None):
        """Append one residual (and optional timing) to the timeseries."""
        step = len(self.timeseries.residual_history)
        self.timeseries.residual_history.append(float(residual))
        if compute_time is not None:
            self.timeseries.compute_times.append(compute_time)
            self._time_compute += compute_time
        log.debug(f"{self.method.value} step {step}: residual={residual:.6e}")

    def _get_time(self) -> float:
        return time.perf_counter()

    def _reset(self):
        """Reset metrics, timers and timeseries."""
        self.metrics = SolverMetrics()
        self._time_compute = 0.0
        self.timeseries.clear()

    def _finalize(self, wall_time: float, final_residual: float):
        """Finalize metrics after solve."""
        history = self.timeseries.residual_history
        self.metrics.initial_residual = history[0] if history else None
        self.metrics.final_residual = final_residual
        self.metrics.converged = self._converged(final_residual)
        self.metrics.total_compute_time = self._time_compute
        self.metrics.observed_numba_threads = self.kernel.observed_numba_threads
        self.metrics.wall_time = wall_time

        iterations = self.metrics.iterations
        if iterations > 0 and wall_time > 0:
            self.metrics.mlups = self.grid.cell_count * iterations / (wall_time * 1e6)
