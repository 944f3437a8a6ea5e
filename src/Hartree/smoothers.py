"""Relaxation sweeps for the interior Laplacian.

All functions take flat fields, leave their inputs untouched and return a
new field, so a driver owns every array it iterates on.
"""

from functools import lru_cache
from typing import Iterable, Tuple

import numpy as np

from .grid import Grid
from .kernels import NumPyKernel, color_mask
from .stencil import apply_interior, diagonal

RED, BLACK = 0, 1

_DEFAULT_KERNEL = NumPyKernel()


def jacobi(
    x: np.ndarray, b: np.ndarray, grid: Grid, iterations: int = 1, kernel=None
) -> np.ndarray:
    """Jacobi sweeps ``x <- x + (b - A x) / D``."""
    kernel = kernel or _DEFAULT_KERNEL
    u = grid.volume(grid.check_field(x, "x").copy())
    f = grid.volume(grid.check_field(b, "b"))
    for _ in range(iterations):
        u = kernel.jacobi_step(u, f, grid.h)
    return u.ravel()


def gauss_seidel(
    x: np.ndarray, b: np.ndarray, grid: Grid, iterations: int = 1, kernel=None
) -> np.ndarray:
    """Red-black Gauss-Seidel sweeps.

    One iteration updates every red cell ((x + y + z) even), then every
    black cell using the freshly written red values.
    """
    kernel = kernel or _DEFAULT_KERNEL
    u = grid.volume(grid.check_field(x, "x").copy())
    f = grid.volume(grid.check_field(b, "b"))
    for _ in range(iterations):
        kernel.gsrb_color(u, f, grid.h, RED)
        # barrier: black cells read the red values written above
        kernel.gsrb_color(u, f, grid.h, BLACK)
    return u.ravel()


def update_cells(
    x: np.ndarray, b: np.ndarray, grid: Grid, cells: Iterable[int]
) -> np.ndarray:
    """Sequential Gauss-Seidel update of ``cells`` (addresses) in the given order.

    Scalar reference for the vectorized colour sweep: each cell reads
    whatever neighbour values have been committed so far.
    """
    u = grid.check_field(x, "x").copy()
    f = grid.check_field(b, "b")
    n = grid.size
    h2 = grid.h * grid.h
    for address in cells:
        cx, cy, cz = grid.coordinates(int(address))
        nb = 0.0
        for ax, ay, az in (
            (cx - 1, cy, cz), (cx + 1, cy, cz),
            (cx, cy - 1, cz), (cx, cy + 1, cz),
            (cx, cy, cz - 1), (cx, cy, cz + 1),
        ):
            if 0 <= ax < n and 0 <= ay < n and 0 <= az < n:
                nb += u[grid.address(ax, ay, az)]
        u[address] = (nb - h2 * f[address]) / 6.0
    return u


@lru_cache(maxsize=16)
def red_black_partition(size: int) -> Tuple[np.ndarray, np.ndarray]:
    """Flat addresses of the red and black halves of a ``size^3`` grid."""
    red = np.flatnonzero(color_mask(size, RED).ravel())
    black = np.flatnonzero(color_mask(size, BLACK).ravel())
    red.setflags(write=False)
    black.setflags(write=False)
    return red, black


def relax_partitioned(
    x: np.ndarray, b: np.ndarray, grid: Grid, iterations: int = 1, kernel=None
) -> np.ndarray:
    """Red/black relaxation over explicit grid halves.

    Each half is relaxed with ``x[c] += dt * (b[c] - (A x)[c])`` and
    ``dt = h^2 / -6``; the black half sees the updated red half.
    """
    u = grid.check_field(x, "x").copy()
    f = grid.check_field(b, "b")
    dt = 1.0 / diagonal(grid.h)
    halves = red_black_partition(grid.size)
    for _ in range(iterations):
        for half in halves:
            r = f[half] - apply_interior(u, grid, kernel)[half]
            u[half] += dt * r
    return u
