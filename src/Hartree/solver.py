"""Functional entry points used by callers outside the solver core."""

from dataclasses import replace
from typing import Mapping, Optional, Union

import numpy as np

from .datastructures import Method, SolveResult, SolverParams
from .grid import Grid
from .solvers import CGSolver, GaussSeidelSolver, JacobiSolver, MultigridSolver, PCGSolver
from .stencil import build_right_hand_side, residual_norm as _residual_norm

SOLVERS = {
    Method.JACOBI: JacobiSolver,
    Method.GAUSS_SEIDEL: GaussSeidelSolver,
    Method.CONJUGATE_GRADIENT: CGSolver,
    Method.PRECONDITIONED_CONJUGATE_GRADIENT: PCGSolver,
    Method.MULTIGRID: MultigridSolver,
}

__all__ = ["SOLVERS", "build_right_hand_side", "create_solver", "solve", "residual_norm"]


def _params(method: Method, config: Union[SolverParams, Mapping, None]) -> SolverParams:
    if config is None:
        return SolverParams(method=method.value)
    if isinstance(config, SolverParams):
        return replace(config, method=method.value)
    values = dict(config)
    values["method"] = method.value
    return SolverParams(**values)


def create_solver(
    method: Union[str, Method],
    grid: Grid,
    config: Union[SolverParams, Mapping, None] = None,
):
    """Instantiate the solver class for ``method``."""
    method = Method.parse(method)
    return SOLVERS[method](grid, _params(method, config))


def solve(
    method: Union[str, Method],
    b: np.ndarray,
    grid: Grid,
    config: Union[SolverParams, Mapping, None] = None,
    x0: Optional[np.ndarray] = None,
) -> SolveResult:
    """Solve ``apply_interior(x) = b`` with the chosen method.

    Parameters
    ----------
    method : str or Method
        ``"jacobi"``, ``"gauss_seidel"``, ``"conjugate_gradient"``,
        ``"preconditioned_conjugate_gradient"`` or ``"multigrid"``.
    b : ndarray
        Effective right-hand side, see :func:`build_right_hand_side`.
    grid : Grid
        Problem grid.
    config : SolverParams or mapping, optional
        Iteration count, tolerance, multigrid schedule, ...; a mapping is
        turned into :class:`SolverParams`.
    x0 : ndarray, optional
        Initial guess (default: zero).

    Returns
    -------
    SolveResult
        ``solution`` and final ``residual_norm``, plus metrics.
    """
    return create_solver(method, grid, config).solve(b, x0)


def residual_norm(solution: np.ndarray, b: np.ndarray, grid: Grid) -> float:
    """2-norm of ``b - A x``, for caller-side convergence loops."""
    return _residual_norm(solution, b, grid)
