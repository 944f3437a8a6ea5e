"""Poisson solvers for the interior Laplacian.

Naming: {Method}Solver, one class per method.

- JacobiSolver: reference relaxation
- GaussSeidelSolver: red-black Gauss-Seidel
- CGSolver / PCGSolver: (preconditioned) conjugate gradient
- MultigridSolver: V-cycle with GSRB smoothing
"""

from .base import BaseSolver
from .jacobi import JacobiSolver, GaussSeidelSolver
from .krylov import CGSolver, PCGSolver
from .multigrid import MultigridSolver

__all__ = [
    "BaseSolver",
    "JacobiSolver",
    "GaussSeidelSolver",
    "CGSolver",
    "PCGSolver",
    "MultigridSolver",
]
