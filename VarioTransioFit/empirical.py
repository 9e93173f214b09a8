"""
Empirical variograms and transiograms.

An empirical function holds per-bin counts, abscissas (mean lag) and ordinates together with the
distance, estimator and lag layout used to build it. Functions with the same layout can be merged;
merging the estimates of disjoint subsets reproduces the estimate of their union, which is what
directional, planar and tiled estimates rely on.
"""

import logging
from functools import reduce
from typing import Sequence

import numpy as np
import pandas as pd

from VarioTransioFit.accumulate import accumulate
from VarioTransioFit.estimators import get_estimator
from VarioTransioFit.partitions import direction_partition, plane_partition
from VarioTransioFit.search import estimalgo
from VarioTransioFit.utils import bin_centers, default_maxlag, get_distance, parallel_map

logger = logging.getLogger(__name__)


def _readonly(a, dtype=float):
    a = np.array(a, dtype=dtype)
    a.setflags(write=False)
    return a


class EmpiricalFunction:
    """
    Base class of binned empirical functions.

    Parameters
    ----------
    counts : array_like, shape (nlags,)
        Number of pairs per bin.
    abscissas : array_like, shape (nlags,)
        Mean lag per bin (nominal bin centre for empty bins).
    ordinates : array_like, shape (..., nlags)
        Estimated value per bin.
    weights : array_like, optional
        Merge weights, same shape as ``ordinates``. Defaults to the counts.
    distance : str or metric, default 'euclidean'
    estimator : str or estimator
    maxlag : float, optional
        Maximum lag used to build the bins.
    unit : str, optional
        Unit of the lag axis.
    value_unit : str, optional
        Unit of the ordinates.
    """

    kind = None
    default_estimator = None

    def __init__(self, counts, abscissas, ordinates, weights=None, distance="euclidean", estimator=None,
                 maxlag=None, unit=None, value_unit=None):
        counts = np.asarray(counts)
        ordinates = np.asarray(ordinates, float)
        nlags = counts.shape[0]
        if np.shape(abscissas) != (nlags,) or ordinates.shape[-1] != nlags:
            raise ValueError("counts, abscissas and ordinates must have one entry per lag bin")
        if weights is None:
            weights = np.broadcast_to(counts.astype(float), ordinates.shape)
        elif np.shape(weights) != ordinates.shape:
            raise ValueError("weights must have the same shape as ordinates")

        self.counts = _readonly(counts, dtype=np.int64)
        self.abscissas = _readonly(abscissas)
        self.ordinates = _readonly(ordinates)
        self.weights = _readonly(weights)
        self.distance = get_distance(distance)
        self.estimator = get_estimator(estimator if estimator is not None else self.default_estimator)
        self.maxlag = None if maxlag is None else float(maxlag)
        self.unit = unit if unit is not None else self.distance.unit
        self.value_unit = value_unit

    @property
    def nlags(self):
        return self.counts.shape[0]

    @property
    def npairs(self):
        return int(self.counts.sum())

    def _identity(self):
        return (type(self), self.distance, self.estimator, self.nlags, self.maxlag, self.unit, self.value_unit)

    def _check_mergeable(self, other):
        if not isinstance(other, EmpiricalFunction) or self._identity() != other._identity():
            raise ValueError(
                "cannot merge empirical functions with different distance, estimator, lag bins or units"
            )

    def _merged_arrays(self, other):
        self._check_mergeable(other)
        na = self.counts.astype(float)
        nb = other.counts.astype(float)
        n = na + nb
        with np.errstate(divide='ignore', invalid='ignore'):
            x = (self.abscissas * na + other.abscissas * nb) / n
        x = np.where(n > 0, x, self.abscissas)
        y = self.estimator.combine(self.ordinates, self.weights, other.ordinates, other.weights)
        y = np.where(n > 0, y, 0.0)
        w = self.weights + other.weights
        return self.counts + other.counts, x, y, w

    def merge(self, other):
        """Combine with the estimate of a disjoint subset of samples; returns a new object."""
        counts, x, y, w = self._merged_arrays(other)
        return self._like(counts, x, y, w)

    def _like(self, counts, abscissas, ordinates, weights):
        return type(self)(counts, abscissas, ordinates, weights, distance=self.distance,
                          estimator=self.estimator, maxlag=self.maxlag, unit=self.unit,
                          value_unit=self.value_unit)

    def __repr__(self):
        return (f"{type(self).__name__}(distance={type(self.distance).__name__}, "
                f"estimator={self.estimator.name}, nlags={self.nlags}, npairs={self.npairs})")


class EmpiricalVariogram(EmpiricalFunction):
    """Empirical (cross-)variogram: one ordinate per lag bin."""

    kind = "variogram"
    default_estimator = "matheron"

    def __init__(self, counts, abscissas, ordinates, weights=None, distance="euclidean", estimator="matheron",
                 maxlag=None, unit=None, value_unit=None):
        if np.ndim(ordinates) != 1:
            raise ValueError("variogram ordinates must be one-dimensional")
        super().__init__(counts, abscissas, ordinates, weights, distance, estimator, maxlag, unit, value_unit)

    def to_frame(self):
        """Bins as a DataFrame with columns counts, abscissas, ordinates."""
        return pd.DataFrame({"counts": self.counts, "abscissas": self.abscissas, "ordinates": self.ordinates})


class EmpiricalTransiogram(EmpiricalFunction):
    """
    Empirical transiogram: a matrix of transition probabilities per lag bin.

    ``ordinates[a, b, k]`` estimates the probability of category ``b`` at lag ``k`` given category
    ``a`` at the head of the pair; ``weights`` hold the matching head counts.
    """

    kind = "transiogram"
    default_estimator = "carle"

    def __init__(self, counts, abscissas, ordinates, weights=None, distance="euclidean", estimator="carle",
                 maxlag=None, unit=None, value_unit=None, levels=None):
        ordinates = np.asarray(ordinates, float)
        if ordinates.ndim != 3 or ordinates.shape[0] != ordinates.shape[1]:
            raise ValueError("transiogram ordinates must have shape (L, L, nlags)")
        super().__init__(counts, abscissas, ordinates, weights, distance, estimator, maxlag, unit, value_unit)
        if levels is None:
            levels = tuple(range(ordinates.shape[0]))
        if len(levels) != ordinates.shape[0]:
            raise ValueError("number of levels does not match the transiogram ordinates")
        self.levels = tuple(levels)

    def _identity(self):
        return super()._identity() + (self.levels,)

    def _like(self, counts, abscissas, ordinates, weights):
        return type(self)(counts, abscissas, ordinates, weights, distance=self.distance,
                          estimator=self.estimator, maxlag=self.maxlag, unit=self.unit,
                          value_unit=self.value_unit, levels=self.levels)

    @property
    def nlevels(self):
        return len(self.levels)

    def to_frame(self):
        """Bins as a DataFrame with one ordinate column per ``head->tail`` pair of levels."""
        cols = {"counts": self.counts, "abscissas": self.abscissas}
        for a, la in enumerate(self.levels):
            for b, lb in enumerate(self.levels):
                cols[f"{la}->{lb}"] = self.ordinates[a, b]
        return pd.DataFrame(cols)


def merge(a, b):
    """Merge two empirical functions with identical layout."""
    return a.merge(b)


def merge_all(functions: Sequence[EmpiricalFunction]):
    """Reduce a non-empty sequence of empirical functions with :func:`merge`."""
    functions = list(functions)
    if not functions:
        raise ValueError("merge_all requires at least one empirical function")
    return reduce(merge, functions)

# Data preparation
def _as_frame(data, n):
    if isinstance(data, pd.DataFrame):
        frame = data.reset_index(drop=True)
    elif isinstance(data, pd.Series):
        frame = data.reset_index(drop=True).to_frame(name=data.name if data.name is not None else 0)
    elif isinstance(data, dict):
        frame = pd.DataFrame({k: np.asarray(v) if not isinstance(v, pd.Series) else v.to_numpy()
                              for k, v in data.items()})
    else:
        arr = np.asarray(data)
        if arr.ndim == 1:
            arr = arr[:, None]
        frame = pd.DataFrame(arr)
    if len(frame) != n:
        raise ValueError(f"data has {len(frame)} rows but there are {n} locations")
    return frame


def _prepare(coordinates, data):
    raw = np.asarray(coordinates)
    if raw.ndim == 1:
        raw = raw[:, None]
    if raw.ndim != 2:
        raise ValueError("coordinates must have shape (n, d)")
    return raw, _as_frame(data, raw.shape[0])


def _resolve_var(frame, var):
    if var is None:
        if frame.shape[1] != 1:
            raise ValueError("variable name required when data holds more than one column")
        return frame.columns[0]
    if var not in frame.columns:
        raise ValueError(f"unknown variable {var!r}")
    return var


def _numeric(frame, names):
    return np.column_stack([frame[name].to_numpy(dtype=float, na_value=np.nan) for name in names])


def _indicators(frame, var, levels=None):
    """One-hot indicators of a categorical column; rows missing or outside ``levels`` are all NaN."""
    col = frame[var]
    if levels is None:
        levels = sorted(pd.unique(col.dropna()).tolist())
    cat = pd.Categorical(col, categories=list(levels))
    Z = pd.get_dummies(cat, dtype=float).to_numpy(copy=True)
    Z[np.asarray(cat.codes) < 0] = np.nan
    return Z, tuple(levels)

# Variograms
def _variogram_from(coords, Z, estim, algo, unit, value_unit):
    acc = accumulate(coords, Z, [(0, 1)], estim, algo)[0]
    return EmpiricalVariogram(acc.counts, acc.abscissas, acc.ordinates, acc.weights, distance=algo.distance,
                              estimator=estim, maxlag=algo.maxlag, unit=unit, value_unit=value_unit)


def _empty_like(cls, nlags, maxlag, shape, **kwargs):
    counts = np.zeros(nlags, dtype=np.int64)
    zeros = np.zeros(shape + (nlags,))
    return cls(counts, bin_centers(nlags, maxlag), zeros, zeros, maxlag=maxlag, **kwargs)


def empirical_variogram(coordinates, data, var1=None, var2=None, nlags=20, maxlag=None, distance="euclidean",
                        estimator="matheron", algorithm="ball", unit=None, value_unit=None):
    """
    Compute an empirical (cross-)variogram.

    Parameters
    ----------
    coordinates : array_like, shape (n, d)
        Sample locations. For 'geographic'/'geodesic' distances the columns are [lat, lon] in degrees.
    data : DataFrame, dict of arrays or array_like
        Attribute table with n rows. Missing values (NaN/None/NA) are skipped pairwise.
    var1, var2 : column name, optional
        Variables of the (cross-)variogram; ``var2`` defaults to ``var1``.
    nlags : int, default 20
        Number of lag bins.
    maxlag : float, optional
        Maximum lag. Defaults to one tenth of the smallest side of the bounding box.
    distance : str or metric or callable, default 'euclidean'
    estimator : {'matheron', 'cressie'}, default 'matheron'
    algorithm : {'ball', 'full'}, default 'ball'
    unit, value_unit : str, optional
        Units of the lag axis and of the ordinates.

    Returns
    -------
    EmpiricalVariogram
    """
    raw, frame = _prepare(coordinates, data)
    var1 = _resolve_var(frame, var1)
    var2 = var1 if var2 is None else _resolve_var(frame, var2)
    if maxlag is None:
        maxlag = default_maxlag(raw, 0.1)
    estim, algo = estimalgo(raw, nlags, maxlag, distance, estimator, algorithm, kind="variogram")
    unit = unit if unit is not None else algo.distance.unit
    return _variogram_from(raw.astype(float), _numeric(frame, [var1, var2]), estim, algo, unit, value_unit)


def partition_variogram(coordinates, data, subsets, var1=None, var2=None, nlags=20, maxlag=None,
                        distance="euclidean", estimator="matheron", algorithm="ball", unit=None,
                        value_unit=None, n_jobs=None):
    """
    Empirical variogram of a partitioned sample set.

    Each subset (an index array) is accumulated on its own, possibly in a thread pool, and the
    results are merged. Pairs across subsets are not counted. Subsets with fewer than two points
    are ignored; when no subset is usable the result has zero counts everywhere.
    """
    raw, frame = _prepare(coordinates, data)
    var1 = _resolve_var(frame, var1)
    var2 = var1 if var2 is None else _resolve_var(frame, var2)
    if maxlag is None:
        maxlag = default_maxlag(raw, 0.1)
    estim, algo = estimalgo(raw, nlags, maxlag, distance, estimator, algorithm, kind="variogram")
    unit = unit if unit is not None else algo.distance.unit
    coords = raw.astype(float)
    Z = _numeric(frame, [var1, var2])

    subsets = [np.asarray(s, dtype=np.intp) for s in subsets]
    subsets = [s for s in subsets if s.size > 1]
    if not subsets:
        logger.debug("no subset with at least two points, returning an empty variogram")
        return _empty_like(EmpiricalVariogram, algo.nlags, algo.maxlag, (), distance=algo.distance,
                           estimator=estim, unit=unit, value_unit=value_unit)

    parts = parallel_map(lambda s: _variogram_from(coords[s], Z[s], estim, algo, unit, value_unit), subsets,
                         n_jobs=n_jobs)
    return merge_all(parts)


def directional_variogram(direction, coordinates, data, var1=None, var2=None, dtol=1e-6, seed=123, **kwargs):
    """Variogram along ``direction``: only pairs within the same direction band (tolerance ``dtol``)."""
    raw = np.asarray(coordinates, float)
    subsets = direction_partition(raw, direction, tol=dtol, seed=seed)
    return partition_variogram(coordinates, data, subsets, var1, var2, **kwargs)


def planar_variogram(normal, coordinates, data, var1=None, var2=None, ntol=1e-6, seed=123, **kwargs):
    """Variogram within planes orthogonal to ``normal`` (slab tolerance ``ntol``)."""
    raw = np.asarray(coordinates, float)
    subsets = plane_partition(raw, normal, tol=ntol, seed=seed)
    return partition_variogram(coordinates, data, subsets, var1, var2, **kwargs)

# Transiograms
def _transiogram_from(coords, Z, estim, algo, unit, levels):
    L = len(levels)
    pairs = [(a, b) for a in range(L) for b in range(L)]
    accs = accumulate(coords, Z, pairs, estim, algo)
    nlags = algo.nlags
    ordinates = np.stack([acc.ordinates for acc in accs]).reshape(L, L, nlags)
    weights = np.stack([acc.weights for acc in accs]).reshape(L, L, nlags)
    counts = accs[0].counts
    abscissas = accs[0].abscissas
    return EmpiricalTransiogram(counts, abscissas, ordinates, weights, distance=algo.distance, estimator=estim,
                                maxlag=algo.maxlag, unit=unit, levels=levels)


def _transiogram_setup(coordinates, data, var, nlags, maxlag, distance, estimator, algorithm, levels):
    raw, frame = _prepare(coordinates, data)
    var = _resolve_var(frame, var)
    if maxlag is None:
        maxlag = default_maxlag(raw, 0.5)
    estim, algo = estimalgo(raw, nlags, maxlag, distance, estimator, algorithm, kind="transiogram")
    Z, levels = _indicators(frame, var, levels)
    if not levels:
        raise ValueError(f"variable {var!r} has no valid categories")
    return raw.astype(float), Z, levels, estim, algo


def empirical_transiogram(coordinates, data, var=None, nlags=20, maxlag=None, distance="euclidean",
                          estimator="carle", algorithm="ball", levels=None, unit=None):
    """
    Compute an empirical transiogram of a categorical variable.

    Parameters
    ----------
    coordinates : array_like, shape (n, d)
    data : DataFrame, dict of arrays or array_like
    var : column name, optional
        Categorical variable.
    nlags : int, default 20
    maxlag : float, optional
        Defaults to half the smallest side of the bounding box.
    distance, estimator, algorithm :
        As in :func:`empirical_variogram`; the estimator must be 'carle'.
    levels : sequence, optional
        Categories (and their order). Defaults to the sorted distinct values of ``var``.

    Returns
    -------
    EmpiricalTransiogram

    Notes
    -----
    Pairs are oriented by row order. For rows ``j < i`` the later row ``i`` is the head, so
    ``ordinates[a, b, k]`` estimates the probability that row ``j`` is in category ``b`` given that
    row ``i`` is in category ``a``. Sort the samples (e.g. by depth) to fix the direction of the
    transitions.
    """
    coords, Z, levels, estim, algo = _transiogram_setup(coordinates, data, var, nlags, maxlag, distance,
                                                        estimator, algorithm, levels)
    unit = unit if unit is not None else algo.distance.unit
    return _transiogram_from(coords, Z, estim, algo, unit, levels)


def partition_transiogram(coordinates, data, subsets, var=None, nlags=20, maxlag=None, distance="euclidean",
                          estimator="carle", algorithm="ball", levels=None, unit=None, n_jobs=None):
    """Transiogram counterpart of :func:`partition_variogram`; levels are fixed across subsets."""
    coords, Z, levels, estim, algo = _transiogram_setup(coordinates, data, var, nlags, maxlag, distance,
                                                        estimator, algorithm, levels)
    unit = unit if unit is not None else algo.distance.unit

    subsets = [np.asarray(s, dtype=np.intp) for s in subsets]
    subsets = [s for s in subsets if s.size > 1]
    if not subsets:
        L = len(levels)
        return _empty_like(EmpiricalTransiogram, algo.nlags, algo.maxlag, (L, L), distance=algo.distance,
                           estimator=estim, unit=unit, levels=levels)

    parts = parallel_map(lambda s: _transiogram_from(coords[s], Z[s], estim, algo, unit, levels), subsets,
                         n_jobs=n_jobs)
    return merge_all(parts)


def directional_transiogram(direction, coordinates, data, var=None, dtol=1e-6, seed=123, **kwargs):
    """Transiogram along ``direction`` (band tolerance ``dtol``)."""
    subsets = direction_partition(np.asarray(coordinates, float), direction, tol=dtol, seed=seed)
    return partition_transiogram(coordinates, data, subsets, var, **kwargs)


def planar_transiogram(normal, coordinates, data, var=None, ntol=1e-6, seed=123, **kwargs):
    """Transiogram within planes orthogonal to ``normal`` (slab tolerance ``ntol``)."""
    subsets = plane_partition(np.asarray(coordinates, float), normal, tol=ntol, seed=seed)
    return partition_transiogram(coordinates, data, subsets, var, **kwargs)
