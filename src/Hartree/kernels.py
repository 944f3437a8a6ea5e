"""Stencil kernels on (n, n, n) volumes indexed [z, y, x].

Two interchangeable implementations: NumPy slicing and Numba JIT loops.
Cells outside the volume contribute nothing (the boundary part of the
operator is folded into the right-hand side by the caller).
"""

import numpy as np
import numba
from numba import njit, prange


# ============================================================================
# Numba kernels
# ============================================================================


@njit(parallel=True, cache=True)
def _laplacian_numba(x: np.ndarray, out: np.ndarray, h: float):
    """7-point Laplacian, out-of-grid neighbours skipped."""
    n = x.shape[0]
    inv_h2 = 1.0 / (h * h)

    for z in prange(n):
        for y in range(n):
            for k in range(n):
                acc = -6.0 * x[z, y, k]
                if k > 0:
                    acc += x[z, y, k - 1]
                if k < n - 1:
                    acc += x[z, y, k + 1]
                if y > 0:
                    acc += x[z, y - 1, k]
                if y < n - 1:
                    acc += x[z, y + 1, k]
                if z > 0:
                    acc += x[z - 1, y, k]
                if z < n - 1:
                    acc += x[z + 1, y, k]
                out[z, y, k] = acc * inv_h2


@njit(parallel=True, cache=True)
def _jacobi_step_numba(x: np.ndarray, b: np.ndarray, out: np.ndarray, h: float):
    """out = x + (b - A x) / D with D = -6/h^2."""
    n = x.shape[0]
    h2 = h * h

    for z in prange(n):
        for y in range(n):
            for k in range(n):
                nb = 0.0
                if k > 0:
                    nb += x[z, y, k - 1]
                if k < n - 1:
                    nb += x[z, y, k + 1]
                if y > 0:
                    nb += x[z, y - 1, k]
                if y < n - 1:
                    nb += x[z, y + 1, k]
                if z > 0:
                    nb += x[z - 1, y, k]
                if z < n - 1:
                    nb += x[z + 1, y, k]
                # x + (b - (nb - 6x)/h^2) / (-6/h^2) simplifies to:
                out[z, y, k] = (nb - h2 * b[z, y, k]) / 6.0


@njit(parallel=True, cache=True)
def _gsrb_color_numba(x: np.ndarray, b: np.ndarray, h: float, color: int):
    """Update every cell with (x + y + z) % 2 == color, in place."""
    n = x.shape[0]
    h2 = h * h

    for z in prange(n):
        for y in range(n):
            start = (color + z + y) % 2
            for k in range(start, n, 2):
                nb = 0.0
                if k > 0:
                    nb += x[z, y, k - 1]
                if k < n - 1:
                    nb += x[z, y, k + 1]
                if y > 0:
                    nb += x[z, y - 1, k]
                if y < n - 1:
                    nb += x[z, y + 1, k]
                if z > 0:
                    nb += x[z - 1, y, k]
                if z < n - 1:
                    nb += x[z + 1, y, k]
                x[z, y, k] = (nb - h2 * b[z, y, k]) / 6.0


@njit(parallel=True, cache=True)
def _convolve_numba(
    x: np.ndarray, offsets: np.ndarray, weights: np.ndarray, out: np.ndarray
):
    """out[c] = sum_t weights[t] * x[c + offsets[t]], in-grid taps only."""
    n = x.shape[0]
    m = offsets.shape[0]

    for z in prange(n):
        for y in range(n):
            for k in range(n):
                acc = 0.0
                for t in range(m):
                    zz = z + offsets[t, 0]
                    yy = y + offsets[t, 1]
                    kk = k + offsets[t, 2]
                    if 0 <= zz < n and 0 <= yy < n and 0 <= kk < n:
                        acc += weights[t] * x[zz, yy, kk]
                out[z, y, k] = acc


# ============================================================================
# NumPy helpers
# ============================================================================


def _shift_slices(d: int, n: int):
    """(dst, src) slices so that dst[i] pairs with src[i + d] inside [0, n)."""
    if d >= 0:
        return slice(0, n - d), slice(d, n)
    return slice(-d, n), slice(0, n + d)


def _neighbor_sum(x: np.ndarray) -> np.ndarray:
    """Sum of the six face neighbours, zero outside the volume."""
    nb = np.zeros_like(x)
    nb[1:, :, :] += x[:-1, :, :]
    nb[:-1, :, :] += x[1:, :, :]
    nb[:, 1:, :] += x[:, :-1, :]
    nb[:, :-1, :] += x[:, 1:, :]
    nb[:, :, 1:] += x[:, :, :-1]
    nb[:, :, :-1] += x[:, :, 1:]
    return nb


def color_mask(n: int, color: int) -> np.ndarray:
    """Boolean (n, n, n) mask of cells with (x + y + z) % 2 == color."""
    idx = np.arange(n)
    parity = idx[:, None, None] + idx[None, :, None] + idx[None, None, :]
    return (parity % 2) == color


# ============================================================================
# Kernel classes
# ============================================================================


class NumPyKernel:
    """NumPy-based stencil kernels."""

    def __init__(self, numba_threads: int = None):
        self.observed_numba_threads = None  # Not applicable for NumPy
        self._masks = {}

    def laplacian(self, x: np.ndarray, h: float) -> np.ndarray:
        return (_neighbor_sum(x) - 6.0 * x) / (h * h)

    def jacobi_step(self, x: np.ndarray, b: np.ndarray, h: float) -> np.ndarray:
        return (_neighbor_sum(x) - h * h * b) / 6.0

    def gsrb_color(self, x: np.ndarray, b: np.ndarray, h: float, color: int):
        """Update all cells of one colour in place.

        Same-colour cells only read opposite-colour neighbours, so the
        vectorized update equals any sequential ordering of the colour.
        """
        mask = self._mask(x.shape[0], color)
        nb = _neighbor_sum(x)
        x[mask] = (nb[mask] - h * h * b[mask]) / 6.0

    def convolve(
        self, x: np.ndarray, offsets: np.ndarray, weights: np.ndarray
    ) -> np.ndarray:
        n = x.shape[0]
        out = np.zeros_like(x)
        for (dz, dy, dx), w in zip(offsets, weights):
            if abs(dz) >= n or abs(dy) >= n or abs(dx) >= n:
                continue
            oz, iz = _shift_slices(int(dz), n)
            oy, iy = _shift_slices(int(dy), n)
            ox, ix = _shift_slices(int(dx), n)
            out[oz, oy, ox] += w * x[iz, iy, ix]
        return out

    def _mask(self, n: int, color: int) -> np.ndarray:
        key = (n, color)
        if key not in self._masks:
            self._masks[key] = color_mask(n, color)
        return self._masks[key]

    def warmup(self, warmup_size: int = 4):
        """No-op for NumPy kernel."""
        pass


class NumbaKernel:
    """Numba JIT-compiled stencil kernels."""

    def __init__(self, numba_threads: int = None):
        # Set requested threads (may be clamped by NUMBA_NUM_THREADS env var)
        if numba_threads is not None:
            numba.set_num_threads(numba_threads)

        # Record what Numba actually reports
        self.observed_numba_threads = numba.get_num_threads()

    def laplacian(self, x: np.ndarray, h: float) -> np.ndarray:
        out = np.empty_like(x)
        _laplacian_numba(x, out, h)
        return out

    def jacobi_step(self, x: np.ndarray, b: np.ndarray, h: float) -> np.ndarray:
        out = np.empty_like(x)
        _jacobi_step_numba(x, b, out, h)
        return out

    def gsrb_color(self, x: np.ndarray, b: np.ndarray, h: float, color: int):
        _gsrb_color_numba(x, b, h, color)

    def convolve(
        self, x: np.ndarray, offsets: np.ndarray, weights: np.ndarray
    ) -> np.ndarray:
        out = np.empty_like(x)
        _convolve_numba(
            x,
            np.ascontiguousarray(offsets, dtype=np.int64),
            np.ascontiguousarray(weights, dtype=np.float64),
            out,
        )
        return out

    def warmup(self, warmup_size: int = 4):
        """Trigger JIT compilation with a small problem."""
        x = np.random.randn(warmup_size, warmup_size, warmup_size)
        b = np.random.randn(warmup_size, warmup_size, warmup_size)
        self.laplacian(x, 1.0)
        self.jacobi_step(x, b, 1.0)
        self.gsrb_color(x, b, 1.0, 0)
        self.convolve(x, np.zeros((1, 3), dtype=np.int64), np.ones(1))


def make_kernel(use_numba: bool = False, numba_threads: int = None):
    """Select the NumPy or Numba kernel."""
    if use_numba:
        return NumbaKernel(numba_threads=numba_threads)
    return NumPyKernel(numba_threads=numba_threads)
