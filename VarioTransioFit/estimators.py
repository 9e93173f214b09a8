"""
This file contains the empirical estimators. Each estimator defines the per-pair term that is
summed into a lag bin, the normalization that turns a bin sum into an ordinate, and the rule that
combines ordinates of disjoint subsets so that partitioned estimates match a single pass.
"""

from dataclasses import dataclass

import numpy as np
from numba import njit

# Per-pair terms (compiled, used by the accumulation kernel)
@njit(nogil=True)
def matheron_term(z1i, z1j, z2i, z2j):
    return (z1i - z1j) * (z2i - z2j)

@njit(nogil=True)
def cressie_term(z1i, z1j, z2i, z2j):
    return np.sqrt(np.abs((z1i - z1j) * (z2i - z2j)))

@njit(nogil=True)
def carle_term(z1i, z1j, z2i, z2j):
    return z1i * z2j, z1i

def cressie_correction(n):
    """Small-sample bias correction A(n) = 0.457 + 0.494/n + 0.045/n^2."""
    n = np.asarray(n, float)
    with np.errstate(divide='ignore', invalid='ignore'):
        return 0.457 + 0.494 / n + 0.045 / (n ** 2)

def _weighted_mean(ya, wa, yb, wb):
    ya, wa, yb, wb = (np.asarray(a, float) for a in (ya, wa, yb, wb))
    w = wa + wb
    with np.errstate(divide='ignore', invalid='ignore'):
        y = (ya * wa + yb * wb) / w
    return np.where(w > 0, y, 0.0)


# Estimators
@dataclass(frozen=True)
class MatheronEstimator:
    """Matheron (classical) estimator.

    References
    Matheron, G. (1962): Traité de Géostatistique Appliqué, Tonne 1. Memoires de Bureau de Recherches Géologiques et Miniéres, Paris.
    """

    name = "matheron"
    code = 0

    def accumulate_term(self, z1i, z1j, z2i, z2j):
        return (np.asarray(z1i, float) - z1j) * (np.asarray(z2i, float) - z2j)

    def normalize(self, value_sums, counts):
        """Bin sum of squared increments over 2n; zero for empty bins."""
        s = np.asarray(value_sums, float)[..., 0]
        n = np.asarray(counts, float)
        with np.errstate(divide='ignore', invalid='ignore'):
            y = s / (2.0 * n)
        return np.where(n > 0, y, 0.0)

    def merge_weight(self, value_sums, counts):
        return np.asarray(counts, float)

    def combine(self, ya, na, yb, nb):
        return _weighted_mean(ya, na, yb, nb)


@dataclass(frozen=True)
class CressieEstimator:
    """Cressie–Hawkins robust estimator.

    References
    Cressie, N., and D. Hawkins (1980): Robust estimation of the variogram. Math. Geol., 12, 115-125.
    """

    name = "cressie"
    code = 1

    def accumulate_term(self, z1i, z1j, z2i, z2j):
        return np.sqrt(np.abs((np.asarray(z1i, float) - z1j) * (np.asarray(z2i, float) - z2j)))

    def normalize(self, value_sums, counts):
        s = np.asarray(value_sums, float)[..., 0]
        n = np.asarray(counts, float)
        with np.errstate(divide='ignore', invalid='ignore'):
            y = 0.5 * (s / n) ** 4 / cressie_correction(n)
        return np.where(n > 0, y, 0.0)

    def merge_weight(self, value_sums, counts):
        return np.asarray(counts, float)

    def _mean_root(self, y, n):
        # inverse of normalize: mean of the root increments
        with np.errstate(divide='ignore', invalid='ignore'):
            mu = (2.0 * np.asarray(y, float) * cressie_correction(n)) ** 0.25
        return np.where(np.asarray(n) > 0, mu, 0.0)

    def combine(self, ya, na, yb, nb):
        na = np.asarray(na, float)
        nb = np.asarray(nb, float)
        mu = _weighted_mean(self._mean_root(ya, na), na, self._mean_root(yb, nb), nb)
        n = na + nb
        with np.errstate(divide='ignore', invalid='ignore'):
            y = 0.5 * mu ** 4 / cressie_correction(n)
        return np.where(n > 0, y, 0.0)


@dataclass(frozen=True)
class CarleEstimator:
    """Carle's transiogram estimator: ratio of head-tail indicator products to head indicators.

    References
    Carle, S.F. & Fogg, G.E. (1996): Transition probability-based indicator geostatistics. Math. Geol., 28, 453-476.
    """

    name = "carle"
    code = 2

    def accumulate_term(self, z1i, z1j, z2i, z2j):
        z1i = np.asarray(z1i, float)
        return np.stack([z1i * np.asarray(z2j, float), z1i], axis=-1)

    def normalize(self, value_sums, counts):
        s = np.asarray(value_sums, float)
        with np.errstate(divide='ignore', invalid='ignore'):
            y = s[..., 0] / s[..., 1]
        return np.where(s[..., 1] > 0, y, 0.0)

    def merge_weight(self, value_sums, counts):
        # head counts
        return np.asarray(value_sums, float)[..., 1]

    def combine(self, ya, wa, yb, wb):
        return _weighted_mean(ya, wa, yb, wb)


ESTIMATORS = {
    "matheron": MatheronEstimator,
    "cressie": CressieEstimator,
    "cressiehawkins": CressieEstimator,
    "carle": CarleEstimator,
}

def get_estimator(estimator="matheron"):
    """Resolve an estimator name (case-insensitive) or instance."""
    if isinstance(estimator, (MatheronEstimator, CressieEstimator, CarleEstimator)):
        return estimator
    key = str(estimator).lower().replace("-", "").replace("_", "")
    if key not in ESTIMATORS:
        raise ValueError("Invalid estimator: choose from 'matheron', 'cressie' or 'carle'")
    return ESTIMATORS[key]()
