"""
Pair search strategies used by the accumulator and the resolution of user options
(nlags, maxlag, distance, estimator, algorithm) into concrete objects.
"""

import logging
import warnings
from dataclasses import dataclass

import numpy as np
from scipy.spatial import cKDTree

from VarioTransioFit.estimators import get_estimator
from VarioTransioFit.utils import get_distance

logger = logging.getLogger(__name__)

# relative padding of the ball radius; pairs beyond maxlag are trimmed during binning
_BALL_PADDING = 1e-9


@dataclass(frozen=True)
class FullSearchAccum:
    """Exhaustive search: every j is paired with all i > j."""

    nlags: int
    maxlag: float
    distance: object

    name = "full"

    def neighborhood(self, coords):
        n = coords.shape[0]
        return lambda j: np.arange(j + 1, n)

    def skip(self, i, j):
        return np.zeros(len(i), dtype=bool)

    def exit(self, h):
        return np.asarray(h) > self.maxlag


@dataclass(frozen=True)
class BallSearchAccum:
    """
    Ball search: j is paired with the points of a kd-tree ball of radius maxlag.

    The ball query is symmetric, so pairs with i <= j are skipped to count each pair once.
    Requires floating point coordinates and a Minkowski metric.
    """

    nlags: int
    maxlag: float
    distance: object

    name = "ball"

    def neighborhood(self, coords):
        tree = cKDTree(coords)
        radius = self.maxlag * (1.0 + _BALL_PADDING)
        balls = tree.query_ball_point(coords, r=radius, p=self.distance.minkowski_p, return_sorted=True)
        return lambda j: np.asarray(balls[j], dtype=np.intp)

    def skip(self, i, j):
        return np.asarray(i) <= j

    def exit(self, h):
        return np.zeros(np.shape(h), dtype=bool)


ALGORITHMS = {
    "full": FullSearchAccum,
    "ball": BallSearchAccum,
}

ESTIMATORS_BY_KIND = {
    "variogram": ("matheron", "cressie"),
    "transiogram": ("carle",),
}


def estimalgo(coordinates, nlags, maxlag, distance="euclidean", estimator="matheron", algorithm="ball",
              kind="variogram"):
    """
    Validate the accumulation options and build the estimator and search strategy.

    Parameters
    ----------
    coordinates : array_like, shape (n, d)
        Sample locations, as passed by the user (dtype is inspected).
    nlags : int
        Number of lag bins (> 0).
    maxlag : float
        Maximum lag (> 0).
    distance : str or metric or callable
        See :func:`VarioTransioFit.utils.get_distance`.
    estimator : str
        'matheron' or 'cressie' for variograms, 'carle' for transiograms.
    algorithm : {'ball', 'full'}
        Search strategy. 'ball' falls back to 'full' with a warning when the coordinates are not
        floating point or the metric is not a Minkowski metric.
    kind : {'variogram', 'transiogram'}

    Returns
    -------
    estimator, strategy
    """
    coords = np.asarray(coordinates)
    n = coords.shape[0] if coords.ndim > 0 else 0
    if n < 2:
        raise ValueError(f"{kind} requires at least 2 locations")
    if int(nlags) != nlags or nlags <= 0:
        raise ValueError("number of lags must be a positive integer")
    if not maxlag > 0:
        raise ValueError("maximum lag must be positive")

    estim = get_estimator(estimator)
    if estim.name not in ESTIMATORS_BY_KIND[kind]:
        raise ValueError(f"Invalid estimator for {kind}: choose from {ESTIMATORS_BY_KIND[kind]}")

    if algorithm not in ALGORITHMS:
        raise ValueError("Invalid algorithm: choose from 'full' or 'ball'")

    metric = get_distance(distance)

    if algorithm == "ball":
        isfloat = np.issubdtype(coords.dtype, np.floating)
        p = metric.minkowski_p
        isminkowski = p is not None and p >= 1
        if not isfloat:
            warnings.warn("'ball' algorithm requires floating point coordinates, falling back to 'full'",
                          UserWarning, stacklevel=3)
        if not isminkowski:
            warnings.warn("'ball' algorithm requires a Minkowski metric, falling back to 'full'",
                          UserWarning, stacklevel=3)
        if not (isfloat and isminkowski):
            algorithm = "full"

    algo = ALGORITHMS[algorithm](int(nlags), float(maxlag), metric)
    logger.debug("using %s search with %s estimator (nlags=%d, maxlag=%g)", algo.name, estim.name,
                 algo.nlags, algo.maxlag)
    return estim, algo
