"""
This file contains the accumulation loop that turns a cloud of samples into lag bins. Candidate
pairs come from a search strategy; the bin updates run in a compiled kernel that releases the GIL
so partitions can be accumulated concurrently.
"""

import logging
import warnings
from collections import namedtuple

import numpy as np
from numba import njit

from VarioTransioFit.estimators import carle_term, cressie_term, matheron_term
from VarioTransioFit.utils import bin_centers

logger = logging.getLogger(__name__)

Accumulation = namedtuple("Accumulation", ["counts", "abscissas", "ordinates", "weights"])


@njit(nogil=True)
def _accumulate_kernel(ii, jj, hh, Z, pairs, code, nlags, maxlag, counts, lag_sums, value_sums):
    """Add every candidate pair to its bin, in the order given. Returns the number of zero lags."""
    dh = maxlag / nlags
    nzero = 0
    for t in range(hh.shape[0]):
        h = hh[t]
        if h == 0.0:
            nzero += 1
            continue
        # NaN distances fail this test too
        if not (h > 0.0 and h <= maxlag):
            continue
        r = h / dh
        if r > nlags:
            continue
        k = int(np.ceil(r)) - 1
        i = ii[t]
        j = jj[t]
        for p in range(pairs.shape[0]):
            a = pairs[p, 0]
            b = pairs[p, 1]
            z1i = Z[i, a]
            z1j = Z[j, a]
            z2i = Z[i, b]
            z2j = Z[j, b]
            if code == 2:
                v0, v1 = carle_term(z1i, z1j, z2i, z2j)
                if np.isnan(v0) or np.isnan(v1):
                    continue
            elif code == 1:
                v0 = cressie_term(z1i, z1j, z2i, z2j)
                v1 = 0.0
                if np.isnan(v0):
                    continue
            else:
                v0 = matheron_term(z1i, z1j, z2i, z2j)
                v1 = 0.0
                if np.isnan(v0):
                    continue
            counts[p, k] += 1
            lag_sums[p, k] += h
            value_sums[p, k, 0] += v0
            value_sums[p, k, 1] += v1
    return nzero


def candidate_pairs(coords, algo):
    """
    Enumerate the candidate pairs of a search strategy.

    Returns
    -------
    ii, jj, hh : ndarrays
        Pair indices and distances, ordered by j then by increasing i.
    """
    neighbors = algo.neighborhood(coords)
    distance = algo.distance
    ii, jj, hh = [], [], []
    for j in range(coords.shape[0]):
        i = neighbors(j)
        if i.size == 0:
            continue
        i = i[~algo.skip(i, j)]
        if i.size == 0:
            continue
        h = np.asarray(distance(coords[j], coords[i]), float).reshape(-1)
        keep = ~algo.exit(h)
        if not np.any(keep):
            continue
        ii.append(i[keep])
        jj.append(np.full(int(np.count_nonzero(keep)), j, dtype=np.intp))
        hh.append(h[keep])
    if not hh:
        empty = np.zeros(0, dtype=np.intp)
        return empty, empty.copy(), np.zeros(0, dtype=float)
    return (np.concatenate(ii).astype(np.intp), np.concatenate(jj).astype(np.intp),
            np.concatenate(hh).astype(float))


def accumulate(coordinates, values, pairs, estimator, algo):
    """
    Accumulate lag bins for several pairs of variables in a single pass.

    Parameters
    ----------
    coordinates : array_like, shape (n, d)
        Sample locations.
    values : array_like, shape (n, m)
        Attribute columns; NaN marks a missing value.
    pairs : sequence of (int, int)
        Column indices of the variable pairs to accumulate.
    estimator : estimator object
        From :mod:`VarioTransioFit.estimators`.
    algo : FullSearchAccum or BallSearchAccum
        Search strategy carrying nlags, maxlag and distance.

    Returns
    -------
    list of Accumulation
        One ``(counts, abscissas, ordinates, weights)`` tuple per variable pair. Empty bins have
        zero ordinate and the nominal bin centre as abscissa.

    Notes
    -----
    Pairs at zero distance (duplicate coordinates) are discarded with a warning.
    A pair whose estimator term is undefined (missing values) counts for neither the bin count
    nor the bin sum.
    """
    coords = np.asarray(coordinates, float)
    if coords.ndim == 1:
        coords = coords[:, None]
    Z = np.asarray(values, float)
    if Z.ndim == 1:
        Z = Z[:, None]
    if Z.shape[0] != coords.shape[0]:
        raise ValueError("coordinates and values must have the same number of rows")
    pairs = np.asarray(pairs, dtype=np.int64).reshape(-1, 2)
    if pairs.size and (pairs.min() < 0 or pairs.max() >= Z.shape[1]):
        raise ValueError("variable pair index out of range")

    nlags = int(algo.nlags)
    maxlag = float(algo.maxlag)
    npairs = pairs.shape[0]

    ii, jj, hh = candidate_pairs(coords, algo)
    logger.debug("%s search produced %d candidate pairs for %d locations", algo.name, hh.size,
                 coords.shape[0])

    counts = np.zeros((npairs, nlags), dtype=np.int64)
    lag_sums = np.zeros((npairs, nlags), dtype=float)
    value_sums = np.zeros((npairs, nlags, 2), dtype=float)

    nzero = _accumulate_kernel(ii, jj, hh, np.ascontiguousarray(Z), pairs, estimator.code, nlags, maxlag,
                               counts, lag_sums, value_sums)
    if nzero > 0:
        warnings.warn(f"duplicate coordinates found, {nzero} pairs at zero distance were discarded",
                      UserWarning, stacklevel=2)

    centers = bin_centers(nlags, maxlag)
    out = []
    for p in range(npairs):
        n = counts[p]
        with np.errstate(divide='ignore', invalid='ignore'):
            x = lag_sums[p] / n
        x = np.where(n > 0, x, centers)
        y = estimator.normalize(value_sums[p], n)
        w = estimator.merge_weight(value_sums[p], n)
        out.append(Accumulation(n.copy(), x, y, w))
    return out
