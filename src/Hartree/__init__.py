"""Hartree: iterative Poisson solvers for point-charge potentials.

Solves the discrete Poisson equation ``lap(phi) = -4 pi rho`` on a uniform
cubic grid. Out-of-grid neighbours are modelled by the analytic potential
of the enclosed charge (monopole approximation), folded into the
right-hand side once, so every solver iterates on the interior operator.

Solvers
-------
- JacobiSolver: reference relaxation
- GaussSeidelSolver: red-black Gauss-Seidel
- CGSolver: conjugate gradient
- PCGSolver: conjugate gradient with a fixed Gaussian-sum preconditioner
- MultigridSolver: V-cycle with configurable smoothing schedule
"""

from pathlib import Path

from .datastructures import (
    GridLevel,
    Method,
    SolveResult,
    SolverMetrics,
    SolverParams,
    SolverTimeseries,
    parse_schedule,
)
from .grid import Grid
from .kernels import NumPyKernel, NumbaKernel
from .preconditioner import KernelTap, Preconditioner, build_kernel
from .problems import (
    coulomb_potential,
    distance_from,
    point_charge_density,
    setup_point_charge_problem,
)
from .solver import build_right_hand_side, create_solver, residual_norm, solve
from .solvers import (
    CGSolver,
    GaussSeidelSolver,
    JacobiSolver,
    MultigridSolver,
    PCGSolver,
)
from .stencil import apply_boundary, apply_interior

__all__ = [
    # Data structures
    "Grid",
    "GridLevel",
    "Method",
    "SolveResult",
    "SolverMetrics",
    "SolverParams",
    "SolverTimeseries",
    "parse_schedule",
    # Kernels
    "NumPyKernel",
    "NumbaKernel",
    # Operator
    "apply_interior",
    "apply_boundary",
    "build_right_hand_side",
    "residual_norm",
    # Preconditioner
    "KernelTap",
    "Preconditioner",
    "build_kernel",
    # Solvers
    "JacobiSolver",
    "GaussSeidelSolver",
    "CGSolver",
    "PCGSolver",
    "MultigridSolver",
    "create_solver",
    "solve",
    # Problem setup
    "point_charge_density",
    "coulomb_potential",
    "distance_from",
    "setup_point_charge_problem",
    # Utilities
    "get_project_root",
]


def get_project_root() -> Path:
    """Get project root directory (contains pyproject.toml)."""
    current = Path(__file__).resolve().parent
    while current != current.parent:
        if (current / "pyproject.toml").exists():
            return current
        current = current.parent

    # Fallback: assume standard src layout
    return Path(__file__).resolve().parent.parent.parent
