"""
Transition count, probability and rate matrices of a categorical variable sampled along a trajectory
(consecutive samples, e.g. down a borehole).
"""

import numpy as np
import pandas as pd
from scipy.linalg import logm

from VarioTransioFit.empirical import _prepare, _resolve_var


def _trajectory(coordinates, data, var, levels):
    raw, frame = _prepare(coordinates, data)
    if raw.shape[0] < 2:
        raise ValueError("a trajectory needs at least two samples")
    var = _resolve_var(frame, var)
    col = frame[var]
    if col.isna().any():
        raise ValueError(f"variable {var!r} has missing values along the trajectory")
    if levels is None:
        levels = sorted(pd.unique(col).tolist())
    cat = pd.Categorical(col, categories=list(levels))
    codes = np.asarray(cat.codes)
    if np.any(codes < 0):
        raise ValueError(f"variable {var!r} has values outside the given levels")
    steps = np.linalg.norm(np.diff(raw.astype(float), axis=0), axis=1)
    return steps, codes, tuple(levels)


def default_minlag(coordinates):
    """Half the smallest distance between consecutive samples."""
    raw = np.asarray(coordinates, float)
    if raw.ndim == 1:
        raw = raw[:, None]
    return float(np.min(np.linalg.norm(np.diff(raw, axis=0), axis=1))) / 2


def countmatrix(coordinates, data, var=None, minlag=None, levels=None):
    """
    Transition counts along consecutive samples.

    Every step between samples ``i`` and ``i+1`` (categories ``a`` and ``b``) of length ``h`` adds
    ``m = ceil(h / (2 minlag))`` self transitions to ``a`` and to ``b`` and one ``a -> b``
    transition. The head of the first sample and the tail of the last one add their own ``m``.

    Parameters
    ----------
    coordinates : array_like, shape (n, d)
        Sample locations in trajectory order.
    data : DataFrame, dict of arrays or array_like
    var : column name, optional
    minlag : float, optional
        Defaults to half the smallest consecutive distance.
    levels : sequence, optional
        Category order; defaults to the sorted distinct values.

    Returns
    -------
    C : ndarray of int, shape (L, L)
    levels : tuple
    """
    steps, codes, levels = _trajectory(coordinates, data, var, levels)
    if minlag is None:
        minlag = float(np.min(steps)) / 2
    if not minlag > 0:
        raise ValueError("minimum lag must be positive")

    m = np.ceil(steps / (2 * minlag)).astype(np.int64)
    C = np.zeros((len(levels), len(levels)), dtype=np.int64)
    for k, (c1, c2) in enumerate(zip(codes[:-1], codes[1:])):
        C[c1, c1] += m[k]
        C[c2, c2] += m[k]
        C[c1, c2] += 1

    C[codes[0], codes[0]] += m[0]
    C[codes[-1], codes[-1]] += m[-1]
    return C, levels


def probmatrix(coordinates, data, var=None, minlag=None, levels=None):
    """Row-normalized transition counts with Laplace smoothing (one added to every count)."""
    C, levels = countmatrix(coordinates, data, var, minlag, levels)
    C = C + 1
    return C / C.sum(axis=1, keepdims=True), levels


def ratematrix(coordinates, data, var=None, minlag=None, levels=None):
    """
    Transition rates ``logm(P) / minlag`` from the smoothed probability matrix ``P``.

    The rows of the rate matrix sum to zero; diagonal entries are negative.
    """
    if minlag is None:
        minlag = default_minlag(coordinates)
    P, levels = probmatrix(coordinates, data, var, minlag, levels)
    R = logm(P)
    return np.real(R) / minlag, levels
