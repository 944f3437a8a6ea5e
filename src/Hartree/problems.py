"""Reference problem: a point charge sampled on the grid."""

from typing import Optional, Sequence, Tuple

import numpy as np

from .grid import Grid
from .stencil import build_right_hand_side


def point_charge_density(
    grid: Grid,
    charge: float = 1.0,
    nucleus: Optional[Sequence[float]] = None,
) -> np.ndarray:
    """Deposit a point charge into the cells nearest the nucleus.

    The charge is split trilinearly over the (up to) 8 cells whose centres
    surround the nucleus. A nucleus on the domain centre lies on a grid
    vertex, so each of the 8 central cells receives exactly 1/8.

    Returns
    -------
    ndarray
        Flat charge density per unit volume.
    """
    pos = grid.center if nucleus is None else tuple(float(c) for c in nucleus)
    if len(pos) != 3:
        raise ValueError(f"Nucleus position must have 3 coordinates, got {nucleus!r}")

    n = grid.size
    lo, hi = 0.5 * grid.h, grid.length - 0.5 * grid.h
    if not all(lo <= c <= hi for c in pos):
        raise ValueError(
            f"Nucleus {pos} must lie between the outermost cell centres [{lo}, {hi}]"
        )

    rho = grid.volume(grid.allocate())
    # Fractional cell index along each axis, ordered (x, y, z)
    s = [c / grid.h - 0.5 for c in pos]
    base = [min(int(np.floor(si)), n - 1) for si in s]
    frac = [si - bi for si, bi in zip(s, base)]

    volume = grid.h**3
    for dz in (0, 1):
        for dy in (0, 1):
            for dx in (0, 1):
                w = (
                    (frac[0] if dx else 1.0 - frac[0])
                    * (frac[1] if dy else 1.0 - frac[1])
                    * (frac[2] if dz else 1.0 - frac[2])
                )
                if w == 0.0:
                    continue
                rho[base[2] + dz, base[1] + dy, base[0] + dx] += charge * w / volume
    return rho.ravel()


def coulomb_potential(
    grid: Grid,
    charge: float = 1.0,
    nucleus: Optional[Sequence[float]] = None,
) -> np.ndarray:
    """Analytic potential ``Q / r`` at every cell centre."""
    nx, ny, nz = grid.center if nucleus is None else nucleus
    c = grid.axis_centers()
    Z, Y, X = np.meshgrid(c, c, c, indexing="ij")
    r = np.sqrt((X - nx) ** 2 + (Y - ny) ** 2 + (Z - nz) ** 2)
    return (charge / r).ravel()


def distance_from(grid: Grid, nucleus: Optional[Sequence[float]] = None) -> np.ndarray:
    """Distance of every cell centre from the nucleus."""
    return 1.0 / coulomb_potential(grid, 1.0, nucleus)


def setup_point_charge_problem(
    size: int = 8, h: float = 0.25, charge: float = 1.0
) -> Tuple[Grid, np.ndarray, np.ndarray]:
    """Grid, density and effective right-hand side of a centred point charge."""
    grid = Grid(size, h)
    rho = point_charge_density(grid, charge)
    b = build_right_hand_side(rho, grid)
    return grid, rho, b
