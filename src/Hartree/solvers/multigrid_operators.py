"""Grid transfer operators for cell-centred multigrid.

Cell alignment: coarse cell (i, j, k) covers the 2x2x2 fine cells
(2i..2i+1, 2j..2j+1, 2k..2k+1). Arrays are (n, n, n) volumes.
"""

import numpy as np
from numba import njit, prange


@njit(parallel=True, cache=True)
def restrict(fine: np.ndarray, coarse: np.ndarray):
    """
    Full-weighting restriction (fine -> coarse).

    Each coarse cell becomes the arithmetic mean of its 8 children.

    Parameters
    ----------
    fine : ndarray
        Fine volume of edge 2m.
    coarse : ndarray
        Coarse volume of edge m, overwritten in place.
    """
    m = coarse.shape[0]

    for i in prange(m):
        for j in range(m):
            for k in range(m):
                fi, fj, fk = 2 * i, 2 * j, 2 * k
                coarse[i, j, k] = 0.125 * (
                    fine[fi, fj, fk]
                    + fine[fi, fj, fk + 1]
                    + fine[fi, fj + 1, fk]
                    + fine[fi, fj + 1, fk + 1]
                    + fine[fi + 1, fj, fk]
                    + fine[fi + 1, fj, fk + 1]
                    + fine[fi + 1, fj + 1, fk]
                    + fine[fi + 1, fj + 1, fk + 1]
                )


@njit(parallel=True, cache=True)
def prolong(coarse: np.ndarray, fine: np.ndarray):
    """
    Injection prolongation (coarse -> fine), accumulating.

    Each coarse value is added unweighted to all 8 of its children.

    Parameters
    ----------
    coarse : ndarray
        Coarse volume of edge m.
    fine : ndarray
        Fine volume of edge 2m, modified in place.
    """
    m = coarse.shape[0]

    for i in prange(m):
        for j in range(m):
            for k in range(m):
                v = coarse[i, j, k]
                fi, fj, fk = 2 * i, 2 * j, 2 * k
                fine[fi, fj, fk] += v
                fine[fi, fj, fk + 1] += v
                fine[fi, fj + 1, fk] += v
                fine[fi, fj + 1, fk + 1] += v
                fine[fi + 1, fj, fk] += v
                fine[fi + 1, fj, fk + 1] += v
                fine[fi + 1, fj + 1, fk] += v
                fine[fi + 1, fj + 1, fk + 1] += v
