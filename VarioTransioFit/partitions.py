"""
Spatial partitions used by directional and planar estimates: points are grouped into bands
(lines along a direction, or slabs orthogonal to a normal) within a tolerance.
"""

import numpy as np


def _unit_vector(v, ndim):
    v = np.asarray(v, float).ravel()
    if v.size != ndim:
        raise ValueError(f"vector of size {v.size} does not match {ndim}D coordinates")
    norm = np.linalg.norm(v)
    if norm == 0:
        raise ValueError("direction/normal vector must be nonzero")
    return v / norm


def _greedy_partition(coords, distance_to_band, seed):
    n = coords.shape[0]
    rng = np.random.default_rng(seed)
    assigned = np.zeros(n, dtype=bool)
    subsets = []
    for s in rng.permutation(n):
        if assigned[s]:
            continue
        cand = np.flatnonzero(~assigned)
        members = cand[distance_to_band(coords[cand] - coords[s])]
        assigned[members] = True
        subsets.append(np.sort(members))
    return subsets


def direction_partition(coordinates, direction, tol=1e-6, seed=123):
    """
    Split points into bands of points aligned along ``direction``.

    Seeds are visited in a random order drawn from ``numpy.random.default_rng(seed)``; each seed
    collects the unassigned points whose offset from it deviates from the direction line by less
    than ``tol``.

    Returns
    -------
    list of ndarray
        Sorted index arrays, one per band.
    """
    if not tol > 0:
        raise ValueError("tolerance must be positive")
    coords = np.atleast_2d(np.asarray(coordinates, float))
    d = _unit_vector(direction, coords.shape[1])

    def near_line(diff):
        proj = diff @ d
        perp = diff - np.outer(proj, d)
        return np.linalg.norm(perp, axis=1) < tol

    return _greedy_partition(coords, near_line, seed)


def plane_partition(coordinates, normal, tol=1e-6, seed=123):
    """Split points into slabs orthogonal to ``normal`` with thickness tolerance ``tol``."""
    if not tol > 0:
        raise ValueError("tolerance must be positive")
    coords = np.atleast_2d(np.asarray(coordinates, float))
    nvec = _unit_vector(normal, coords.shape[1])

    def near_plane(diff):
        return np.abs(diff @ nvec) < tol

    return _greedy_partition(coords, near_plane, seed)
