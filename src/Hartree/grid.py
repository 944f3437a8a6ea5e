"""Grid addressing for cubic, uniformly spaced 3D grids.

Scalar fields are stored as flat float64 arrays with X varying fastest:
``address = z * n**2 + y * n + x``. A C-order reshape to ``(n, n, n)``
therefore gives a volume indexed ``[z, y, x]`` without copying.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np


def is_power_of_two(n: int) -> bool:
    """True for 1, 2, 4, 8, ..."""
    return n > 0 and (n & (n - 1)) == 0


@dataclass(frozen=True)
class Grid:
    """Immutable shape descriptor of a cubic grid.

    Parameters
    ----------
    size : int
        Cells per axis. Must be an even power of two (2, 4, 8, ...), so the
        grid can be halved repeatedly by the multigrid hierarchy.
    h : float
        Physical length of one cell.
    """

    size: int
    h: float

    def __post_init__(self):
        if isinstance(self.size, bool) or int(self.size) != self.size:
            raise ValueError(f"Grid size must be an integer, got {self.size!r}")
        object.__setattr__(self, "size", int(self.size))
        object.__setattr__(self, "h", float(self.h))
        self._validate()

    def _validate(self):
        if self.size < 2 or self.size % 2 != 0 or not is_power_of_two(self.size):
            raise ValueError(
                f"Grid size must be an even power of two, got size={self.size}"
            )
        if not np.isfinite(self.h) or self.h <= 0.0:
            raise ValueError(f"Grid spacing must be positive, got h={self.h}")

    @property
    def cell_count(self) -> int:
        return self.size**3

    @property
    def shape(self) -> Tuple[int, int, int]:
        """Volume shape, axes ordered (z, y, x)."""
        return (self.size, self.size, self.size)

    @property
    def length(self) -> float:
        """Physical edge length of the domain."""
        return self.size * self.h

    @property
    def center(self) -> Tuple[float, float, float]:
        """Physical (x, y, z) of the domain centre, a vertex shared by 8 cells."""
        c = 0.5 * self.length
        return (c, c, c)

    def address(self, x: int, y: int, z: int) -> int:
        """Linear offset of cell (x, y, z)."""
        n = self.size
        if not (0 <= x < n and 0 <= y < n and 0 <= z < n):
            raise IndexError(f"Cell ({x}, {y}, {z}) outside grid of size {n}")
        return (z * n + y) * n + x

    def coordinates(self, address: int) -> Tuple[int, int, int]:
        """Inverse of :meth:`address`, returns (x, y, z)."""
        n = self.size
        if not 0 <= address < self.cell_count:
            raise IndexError(f"Address {address} outside grid of {self.cell_count} cells")
        z, rem = divmod(address, n * n)
        y, x = divmod(rem, n)
        return (x, y, z)

    def cell_center(self, x: int, y: int, z: int) -> Tuple[float, float, float]:
        """Physical centre of cell (x, y, z); indices may lie outside the grid."""
        h = self.h
        return ((x + 0.5) * h, (y + 0.5) * h, (z + 0.5) * h)

    def axis_centers(self) -> np.ndarray:
        """Cell-centre coordinates along one axis."""
        return (np.arange(self.size, dtype=np.float64) + 0.5) * self.h

    def coarsen(self, factor: int = 2, h: float = None) -> "Grid":
        """Grid with ``size / factor`` cells per axis.

        The spacing defaults to ``h * factor``; multigrid levels may pass a
        different spacing for their coarse operator.
        """
        if factor < 1 or not is_power_of_two(factor) or self.size % factor != 0:
            raise ValueError(f"Cannot coarsen size {self.size} by factor {factor}")
        coarse_size = self.size // factor
        if h is None:
            h = self.h * factor
        return _CoarseGrid(coarse_size, h)

    def allocate(self, value: float = 0.0) -> np.ndarray:
        """New flat field filled with ``value``."""
        return np.full(self.cell_count, value, dtype=np.float64)

    def volume(self, field: np.ndarray) -> np.ndarray:
        """View a flat field as an (n, n, n) volume indexed [z, y, x]."""
        return field.reshape(self.shape)

    def check_field(self, field: np.ndarray, name: str = "field") -> np.ndarray:
        """Validate a flat field against this grid and return it as float64.

        Raises
        ------
        ValueError
            If the field is empty, not one-dimensional, or has the wrong length.
        """
        arr = np.asarray(field)
        if arr.size == 0:
            raise ValueError(f"{name} is empty")
        if arr.ndim != 1:
            raise ValueError(f"{name} must be a flat array, got shape {arr.shape}")
        if arr.shape[0] != self.cell_count:
            raise ValueError(
                f"{name} has {arr.shape[0]} values, expected {self.cell_count} "
                f"for a {self.size}^3 grid"
            )
        return np.ascontiguousarray(arr, dtype=np.float64)


@dataclass(frozen=True)
class _CoarseGrid(Grid):
    """Grid produced by coarsening; may go down to a single cell."""

    def _validate(self):
        if self.size < 1 or not is_power_of_two(self.size):
            raise ValueError(f"Coarse grid size must be a power of two, got {self.size}")
        if not np.isfinite(self.h) or self.h <= 0.0:
            raise ValueError(f"Grid spacing must be positive, got h={self.h}")
