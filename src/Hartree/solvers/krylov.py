"""Krylov solvers: conjugate gradient and preconditioned conjugate gradient.

The interior Laplacian is symmetric negative definite; CG iterates on it
directly (alpha comes out negative, the iterates are those of CG on -A).
No divergence detection is done: a zero denominator yields inf/nan in the
iterate and the residual norm, which the caller is expected to monitor.
"""

import numpy as np

from .base import BaseSolver
from ..datastructures import Method
from ..preconditioner import Preconditioner


class CGSolver(BaseSolver):
    """Conjugate gradient.

    ::

        r0 = b - A x0;  p0 = z0 = M r0
        alpha = (rk . zk) / (pk . A pk)
        x += alpha pk;  r -= alpha A pk
        beta  = (r_{k+1} . z_{k+1}) / (rk . zk)
        p = z_{k+1} + beta pk

    with ``M`` the identity. :class:`PCGSolver` overrides :meth:`_precondition`.
    """

    method = Method.CONJUGATE_GRADIENT

    def _precondition(self, r: np.ndarray) -> np.ndarray:
        return r

    def _iterate(self, x: np.ndarray, b: np.ndarray) -> np.ndarray:
        r = self.residual(x, b)
        z = self._precondition(r)
        p = z.copy()
        rz = np.dot(r, z)
        residual = float(np.linalg.norm(r))
        self._record(residual)

        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            for i in range(self.params.iterations):
                if self._converged(residual):
                    break

                t0 = self._get_time()
                Ap = self.apply_operator(p)
                alpha = rz / np.dot(p, Ap)
                x = x + alpha * p
                r = r - alpha * Ap

                z = self._precondition(r)
                rz_next = np.dot(r, z)
                beta = rz_next / rz
                p = z + beta * p
                rz = rz_next
                compute_time = self._get_time() - t0

                residual = float(np.linalg.norm(r))
                self._record(residual, compute_time)
                self.metrics.iterations = i + 1

        return x


class PCGSolver(CGSolver):
    """Conjugate gradient preconditioned with the quantized Gaussian kernel.

    The preconditioner is built once per solver and reused for every solve.
    """

    method = Method.PRECONDITIONED_CONJUGATE_GRADIENT

    def __init__(self, grid, params=None):
        super().__init__(grid, params)
        self.preconditioner = Preconditioner(
            grid, self.params.preconditioner_radius_squared, self.kernel
        )

    def _precondition(self, r: np.ndarray) -> np.ndarray:
        return self.preconditioner.apply(r)
