"""Geometric multigrid V-cycle with a red-black Gauss-Seidel smoother."""

import logging
import math
from typing import List

import numpy as np

from .base import BaseSolver
from .multigrid_operators import restrict, prolong
from .. import smoothers
from ..datastructures import GridLevel, Method
from ..grid import Grid

log = logging.getLogger(__name__)


def level_spacing(h: float, level: int, rule: str = "galerkin") -> float:
    """Operator spacing at depth ``level`` (coarseness ``c = 2**level``).

    ``"galerkin"``: ``h * sqrt(c)``. With mean restriction and injection
    prolongation, the Galerkin product R A P of the 7-point operator is the
    same stencil with half the coefficient, so this spacing makes the
    rediscretized coarse operator equal to it at every depth.

    ``"geometric"``: ``h * c``, the physical cell size of the coarse grid.
    Each level then returns about twice the Galerkin correction; fine for a
    single coarse level, but the overshoot compounds and deeper cycles can
    diverge.
    """
    if rule == "geometric":
        return h * 2**level
    if rule == "galerkin":
        return h * math.sqrt(2.0) ** level
    raise ValueError(f"Unknown coarse spacing rule {rule!r}")


def build_hierarchy(grid: Grid, depth: int, rule: str = "galerkin") -> List[GridLevel]:
    """Level descriptors from the finest grid down ``depth`` coarsenings.

    Raises
    ------
    ValueError
        If the grid cannot be halved ``depth`` times.
    """
    if depth < 0 or 2**depth > grid.size:
        raise ValueError(
            f"V-cycle depth {depth} too deep for grid size {grid.size} "
            f"(at most {int(math.log2(grid.size))})"
        )
    levels = [GridLevel(level=0, coarseness=1, grid=grid)]
    for level in range(1, depth + 1):
        factor = 2**level
        coarse = grid.coarsen(factor, h=level_spacing(grid.h, level, rule))
        levels.append(GridLevel(level=level, coarseness=factor, grid=coarse))
    return levels


def restrict_field(field: np.ndarray, fine: Grid, coarse: Grid) -> np.ndarray:
    """Restrict a flat fine field to a new flat coarse field."""
    if fine.size != 2 * coarse.size:
        raise ValueError(f"Cannot restrict size {fine.size} onto size {coarse.size}")
    out = coarse.volume(coarse.allocate())
    restrict(fine.volume(fine.check_field(field)), out)
    return out.ravel()


def prolong_field(field: np.ndarray, coarse: Grid, fine: Grid) -> np.ndarray:
    """Prolong a flat coarse field by injection into a new flat fine field."""
    if fine.size != 2 * coarse.size:
        raise ValueError(f"Cannot prolong size {coarse.size} onto size {fine.size}")
    out = fine.volume(fine.allocate())
    prolong(coarse.volume(coarse.check_field(field)), out)
    return out.ravel()


class MultigridSolver(BaseSolver):
    """Multigrid V-cycle solver.

    ``params.schedule`` (e.g. ``"1-2-4-2-1"``) fixes the cycle depth and the
    GSRB sweep count at every level: entry ``k`` pre-smooths level ``k``,
    the middle entry smooths the coarsest level, entry ``2*depth - k``
    post-smooths level ``k``. ``params.iterations`` is the number of
    V-cycles.

    Parameters
    ----------
    grid : Grid
        Finest grid.
    params : SolverParams, optional
        ``schedule``, ``coarse_spacing``, ``iterations`` and ``tolerance``
        are used.
    """

    method = Method.MULTIGRID

    def __init__(self, grid, params=None):
        super().__init__(grid, params)
        self.schedule = self.params.schedule
        self.depth = self.params.depth
        self.levels = build_hierarchy(grid, self.depth, self.params.coarse_spacing)
        log.debug(
            "Multigrid hierarchy: "
            + ", ".join(f"{lvl.size}^3 (h={lvl.h:.4g})" for lvl in self.levels)
        )

    def _iterate(self, x: np.ndarray, b: np.ndarray) -> np.ndarray:
        residual = self.residual_norm(x, b)
        self._record(residual)

        for i in range(self.params.iterations):
            if self._converged(residual):
                break

            t0 = self._get_time()
            x = self.v_cycle(x, b)
            compute_time = self._get_time() - t0

            residual = self.residual_norm(x, b)
            self._record(residual, compute_time)
            self.metrics.iterations = i + 1

        return x

    def v_cycle(self, x: np.ndarray, b: np.ndarray) -> np.ndarray:
        """One V-cycle; returns the corrected iterate."""
        fine = self.levels[0].grid
        r = self.residual(x, b, fine)
        e = self._smooth(np.zeros_like(r), r, fine, self.schedule[0])
        if self.depth > 0:
            e = self._coarse_step(e, r, 0)
        return x + e

    def _coarse_step(self, e: np.ndarray, r: np.ndarray, level: int) -> np.ndarray:
        """Coarse-grid correction of ``e`` at ``level``; returns the new ``e``.

        The coarse correction and residual are allocated here and released
        when the step returns.
        """
        grid = self.levels[level].grid
        coarse = self.levels[level + 1].grid

        r_corrected = self.residual(e, r, grid)
        r_coarse = restrict_field(r_corrected, grid, coarse)

        e_coarse = self._smooth(
            np.zeros_like(r_coarse), r_coarse, coarse, self.schedule[level + 1]
        )
        if level + 1 < self.depth:
            e_coarse = self._coarse_step(e_coarse, r_coarse, level + 1)

        e = e + prolong_field(e_coarse, coarse, grid)

        r_post = self.residual(e, r, grid)
        delta = self._smooth(
            np.zeros_like(r_post), r_post, grid, self.schedule[2 * self.depth - level]
        )
        return e + delta

    def _smooth(self, e: np.ndarray, r: np.ndarray, grid: Grid, sweeps: int) -> np.ndarray:
        if sweeps == 0:
            return e
        return smoothers.gauss_seidel(e, r, grid, sweeps, self.kernel)
