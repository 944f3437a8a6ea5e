"""Fixed-stencil preconditioner approximating the inverse Laplacian.

The kernel is a sum of two Gaussians in the squared integer offset
distance ``d2``, truncated to ``d2 <= 4`` (33 taps). Weights are stored as
signed 16-bit fixed-point fractions of 1.0.
"""

import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Tuple

import numpy as np

from .grid import Grid
from .kernels import NumPyKernel

FIXED_POINT_SCALE = 32767
DEFAULT_RADIUS_SQUARED = 4


def kernel_weight(d2: float) -> float:
    """Unquantized kernel value at squared offset distance ``d2``."""
    return 0.6 * math.exp(-2.25 * d2) + 0.4 * math.exp(-0.72 * d2)


def quantize(value: float) -> int:
    """Encode a fraction in [-1, 1] as 16-bit fixed point."""
    q = int(round(value * FIXED_POINT_SCALE))
    if not -FIXED_POINT_SCALE <= q <= FIXED_POINT_SCALE:
        raise ValueError(f"Weight {value} does not fit the 16-bit fixed-point range")
    return q


@dataclass(frozen=True)
class KernelTap:
    """One kernel entry: integer (dx, dy, dz) offset and fixed-point weight."""

    offset: Tuple[int, int, int]
    weight: int

    @property
    def value(self) -> float:
        return self.weight / FIXED_POINT_SCALE

    @property
    def distance_squared(self) -> int:
        dx, dy, dz = self.offset
        return dx * dx + dy * dy + dz * dz


@lru_cache(maxsize=8)
def build_kernel(radius_squared: int = DEFAULT_RADIUS_SQUARED) -> Tuple[KernelTap, ...]:
    """All taps with ``d2 <= radius_squared``, nearest first."""
    r = int(math.isqrt(radius_squared))
    taps = []
    for dz in range(-r, r + 1):
        for dy in range(-r, r + 1):
            for dx in range(-r, r + 1):
                d2 = dx * dx + dy * dy + dz * dz
                if d2 <= radius_squared:
                    taps.append(KernelTap((dx, dy, dz), quantize(kernel_weight(d2))))
    taps.sort(key=lambda t: (t.distance_squared, t.offset))
    return tuple(taps)


class Preconditioner:
    """Convolution with the quantized kernel.

    Taps that fall outside the grid are skipped; there is no wrap-around
    and no boundary correction.

    Parameters
    ----------
    grid : Grid
        Grid the preconditioner is applied on. The kernel itself depends
        only on integer offsets and is shared between grids.
    radius_squared : int
        Truncation radius (default: 4, i.e. 33 taps).
    kernel : NumPyKernel or NumbaKernel, optional
        Convolution implementation.
    """

    def __init__(self, grid: Grid, radius_squared: int = DEFAULT_RADIUS_SQUARED, kernel=None):
        self.grid = grid
        self.kernel = kernel or NumPyKernel()
        self.taps = build_kernel(radius_squared)

        # Volume axes are (z, y, x)
        self.offsets = np.array(
            [(dz, dy, dx) for (dx, dy, dz) in (t.offset for t in self.taps)],
            dtype=np.int64,
        )
        self.weights = np.array([t.value for t in self.taps], dtype=np.float64)

    def __len__(self) -> int:
        return len(self.taps)

    def apply(self, field: np.ndarray) -> np.ndarray:
        """Return ``K x`` as a new flat field."""
        x = self.grid.volume(self.grid.check_field(field, "field"))
        return self.kernel.convolve(x, self.offsets, self.weights).ravel()

    __call__ = apply
