"""Matrix-free discrete Laplacian with a monopole boundary model.

The 7-point operator is split in two parts:

- the interior part, which depends on the current field and ignores every
  neighbour that falls outside the grid;
- the boundary part, which supplies those missing neighbours analytically
  as the potential ``Q / r`` of a point charge at the nucleus. It depends
  only on the grid and the nucleus position, so it is computed once and
  subtracted from the right-hand side before any iteration.

The linear system solved by every method is therefore

    apply_interior(x) = -4 pi rho - Q * apply_boundary(grid, nucleus)
"""

import logging
from functools import lru_cache
from typing import Optional, Sequence, Tuple

import numpy as np

from .grid import Grid
from .kernels import NumPyKernel

log = logging.getLogger(__name__)

_DEFAULT_KERNEL = NumPyKernel()


def _nucleus_tuple(grid: Grid, nucleus: Optional[Sequence[float]]) -> Tuple[float, float, float]:
    if nucleus is None:
        return grid.center
    pos = tuple(float(c) for c in nucleus)
    if len(pos) != 3 or not all(np.isfinite(pos)):
        raise ValueError(f"Nucleus position must be three finite coordinates, got {nucleus!r}")
    return pos


def diagonal(h: float) -> float:
    """Constant diagonal coefficient of the operator."""
    return -6.0 / (h * h)


def apply_interior(field: np.ndarray, grid: Grid, kernel=None) -> np.ndarray:
    """Apply the state-dependent part of the Laplacian.

    Parameters
    ----------
    field : ndarray
        Flat scalar field of ``grid.cell_count`` values.
    grid : Grid
        Grid shape; ``grid.h`` sets the stencil coefficients.
    kernel : NumPyKernel or NumbaKernel, optional
        Stencil implementation (default: NumPy).

    Returns
    -------
    ndarray
        New flat field ``A x``.
    """
    kernel = kernel or _DEFAULT_KERNEL
    x = grid.check_field(field)
    return kernel.laplacian(grid.volume(x), grid.h).ravel()


def apply_boundary(grid: Grid, nucleus: Optional[Sequence[float]] = None) -> np.ndarray:
    """Boundary contribution of a unit point charge at ``nucleus``.

    Every cell with a face neighbour outside the grid accumulates
    ``(1/h^2) / |x_neighbour - x_nucleus|`` per missing neighbour, evaluated
    at the centre of the virtual neighbour cell. Cached per (grid, nucleus);
    the returned array is read-only.
    """
    return _boundary_field(grid, _nucleus_tuple(grid, nucleus))


@lru_cache(maxsize=32)
def _boundary_field(grid: Grid, nucleus: Tuple[float, float, float]) -> np.ndarray:
    n = grid.size
    h = grid.h
    inv_h2 = 1.0 / (h * h)
    centers = grid.axis_centers()
    nx, ny, nz = nucleus

    # Physical coordinate arrays in volume order [z, y, x]
    Z, Y, X = np.meshgrid(centers, centers, centers, indexing="ij")
    coords = [Z, Y, X]
    origin = [nz, ny, nx]

    out = np.zeros(grid.shape, dtype=np.float64)
    for axis in range(3):
        for side in (-1, 1):
            face = [slice(None)] * 3
            face[axis] = 0 if side < 0 else n - 1
            face = tuple(face)

            d2 = np.zeros((n, n), dtype=np.float64)
            for a in range(3):
                c = coords[a][face]
                if a == axis:
                    # Virtual neighbour one cell beyond the face
                    c = c + side * h
                d2 += (c - origin[a]) ** 2
            out[face] += inv_h2 / np.sqrt(d2)

    log.debug(f"Boundary field computed for size={n}, h={h}, nucleus={nucleus}")
    field = out.ravel()
    field.setflags(write=False)
    return field


def monopole_charge(charge_density: np.ndarray, grid: Grid) -> float:
    """Total charge enclosed by the grid, ``sum(rho) * h^3``."""
    return float(np.sum(charge_density)) * grid.h**3


def build_right_hand_side(
    charge_density: np.ndarray,
    grid: Grid,
    nucleus: Optional[Sequence[float]] = None,
) -> np.ndarray:
    """Effective right-hand side ``-4 pi rho - Q * boundary``.

    Parameters
    ----------
    charge_density : ndarray
        Flat charge density per unit volume.
    grid : Grid
        Grid the density is sampled on.
    nucleus : sequence of 3 floats, optional
        Physical (x, y, z) of the monopole centre (default: domain centre).

    Returns
    -------
    ndarray
        New flat field ``b_effective``.
    """
    rho = grid.check_field(charge_density, "charge_density")
    b = -4.0 * np.pi * rho
    q = monopole_charge(rho, grid)
    if q != 0.0:
        b -= q * apply_boundary(grid, nucleus)
    return b


def residual(x: np.ndarray, b: np.ndarray, grid: Grid, kernel=None) -> np.ndarray:
    """Residual ``b - A x`` of the interior operator."""
    b = grid.check_field(b, "b")
    return b - apply_interior(x, grid, kernel)


def residual_norm(x: np.ndarray, b: np.ndarray, grid: Grid, kernel=None) -> float:
    """Euclidean 2-norm of ``b - A x``."""
    return float(np.linalg.norm(residual(x, b, grid, kernel)))
