"""Data structures for solver configuration and results.

                 Params (input/config)         Metrics (output/results)
                 ─────────────────────         ────────────────────────
Per solve        SolverParams                  SolverMetrics
                 method, iterations,           residual_norm, iterations,
                 schedule, use_numba...        wall_time, mlups...

Per iteration                                  SolverTimeseries
                                               residual_history[],
                                               compute_times[]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from .grid import Grid


class Method(str, Enum):
    """Solvers reachable through :func:`Hartree.solver.solve`."""

    JACOBI = "jacobi"
    GAUSS_SEIDEL = "gauss_seidel"
    CONJUGATE_GRADIENT = "conjugate_gradient"
    PRECONDITIONED_CONJUGATE_GRADIENT = "preconditioned_conjugate_gradient"
    MULTIGRID = "multigrid"

    @classmethod
    def parse(cls, value: Union[str, "Method"]) -> "Method":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            choices = ", ".join(m.value for m in cls)
            raise ValueError(f"Unknown solver method {value!r} (choose from {choices})") from None


def parse_schedule(schedule: Union[str, Sequence[int]]) -> Tuple[int, ...]:
    """Parse a V-cycle smoothing schedule such as ``"1-2-4-2-1"``.

    Entry ``k`` is the pre-smoothing sweep count at depth ``k``, the middle
    entry is the base count, and the mirrored entries are post-smoothing
    counts. The length must be odd.
    """
    if isinstance(schedule, str):
        parts = [p.strip() for p in schedule.split("-")]
        try:
            counts = tuple(int(p) for p in parts)
        except ValueError:
            raise ValueError(f"Malformed smoothing schedule {schedule!r}") from None
    else:
        counts = tuple(int(c) for c in schedule)

    if len(counts) == 0 or len(counts) % 2 == 0:
        raise ValueError(
            f"Smoothing schedule needs an odd number of entries, got {len(counts)}"
        )
    if any(c < 0 for c in counts):
        raise ValueError(f"Smoothing counts must be non-negative: {counts}")
    return counts


COARSE_SPACING_RULES = ("geometric", "galerkin")
GAUSS_SEIDEL_VARIANTS = ("sweep", "partition")


@dataclass
class SolverParams:
    """Solver configuration.

    Only the fields relevant to the chosen method are read; the others are
    carried along so a single config object can drive any solver.
    """

    method: str = "multigrid"
    iterations: int = 20
    tolerance: Optional[float] = None  # stop early once residual <= tolerance

    # Multigrid
    schedule: Union[str, Tuple[int, ...]] = "1-4-1"
    coarse_spacing: str = "galerkin"  # "galerkin" | "geometric"

    # Gauss-Seidel
    variant: str = "sweep"  # "sweep" | "partition"

    # Preconditioner
    preconditioner_radius_squared: int = 4

    # Numba
    use_numba: bool = False
    numba_threads: Optional[int] = None

    experiment_name: str = "default"

    def __post_init__(self):
        """Normalize and validate."""
        self.method = Method.parse(self.method).value
        if int(self.iterations) != self.iterations or self.iterations < 0:
            raise ValueError(f"iterations must be a non-negative integer, got {self.iterations}")
        self.iterations = int(self.iterations)
        if self.tolerance is not None and self.tolerance < 0:
            raise ValueError(f"tolerance must be non-negative, got {self.tolerance}")
        self.schedule = parse_schedule(self.schedule)
        if self.coarse_spacing not in COARSE_SPACING_RULES:
            raise ValueError(
                f"coarse_spacing must be one of {COARSE_SPACING_RULES}, got {self.coarse_spacing!r}"
            )
        if self.variant not in GAUSS_SEIDEL_VARIANTS:
            raise ValueError(
                f"variant must be one of {GAUSS_SEIDEL_VARIANTS}, got {self.variant!r}"
            )
        if self.preconditioner_radius_squared < 0:
            raise ValueError("preconditioner_radius_squared must be non-negative")

    @property
    def depth(self) -> int:
        """Number of coarse levels visited by one V-cycle."""
        return len(self.schedule) // 2

    def to_mlflow(self) -> dict:
        """Convert to MLflow-compatible params dict (bools as int, schedule as text)."""
        out = {}
        for k, v in self.__dict__.items():
            if v is None:
                continue
            if isinstance(v, bool):
                v = int(v)
            elif k == "schedule":
                v = "-".join(str(c) for c in v)
            out[k] = v
        return out


@dataclass
class SolverMetrics:
    """Results of one solve."""

    iterations: int = 0
    converged: bool = False
    initial_residual: Optional[float] = None
    final_residual: Optional[float] = None
    wall_time: Optional[float] = None
    total_compute_time: Optional[float] = None
    mlups: Optional[float] = None  # Million Lattice Updates per Second
    observed_numba_threads: Optional[int] = None

    def to_mlflow(self) -> dict:
        """Convert to MLflow-compatible dict (no None, bools as int)."""
        return {
            k: (int(v) if isinstance(v, bool) else v)
            for k, v in self.__dict__.items()
            if v is not None
        }


@dataclass
class SolverTimeseries:
    """Per-iteration series. Accumulated during solve."""

    residual_history: List[float] = field(default_factory=list)
    compute_times: List[float] = field(default_factory=list)

    def clear(self):
        self.residual_history.clear()
        self.compute_times.clear()


@dataclass
class SolveResult:
    """Potential returned by a solver, with its final residual norm."""

    solution: np.ndarray
    residual_norm: float
    metrics: SolverMetrics = field(default_factory=SolverMetrics)
    residual_history: List[float] = field(default_factory=list)

    @property
    def iterations(self) -> int:
        return self.metrics.iterations


# ============================================================================
# Multigrid-specific
# ============================================================================


@dataclass(frozen=True)
class GridLevel:
    """One level of the multigrid hierarchy.

    Holds no arrays: correction and residual fields for a level are
    allocated per V-cycle and dropped when the level's step returns.
    ``grid.h`` is the spacing used by the level's operator.
    """

    level: int
    coarseness: int
    grid: Grid

    @property
    def size(self) -> int:
        return self.grid.size

    @property
    def h(self) -> float:
        return self.grid.h
