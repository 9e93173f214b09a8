"""
Shared helpers: distance metrics, lag-bin layout, unit handling, fitting weights and the
thread-pool map used to fan out partitions and angles.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Union

import numpy as np
from pyproj import Geod
from tqdm.auto import tqdm

logger = logging.getLogger(__name__)

# Distance metrics
# every metric maps a single point x (d,) and a block of points Y (m, d) to m distances
@dataclass(frozen=True)
class Euclidean:
    """Straight-line distance in the units of the coordinates."""

    unit: Optional[str] = None

    name = "euclidean"

    @property
    def minkowski_p(self):
        return 2.0

    def __call__(self, x, Y):
        diff = np.asarray(Y, float) - np.asarray(x, float)
        return np.sqrt(np.sum(diff * diff, axis=-1))


@dataclass(frozen=True)
class Minkowski:
    """Minkowski distance of order ``p`` (p >= 1)."""

    p: float = 2.0
    unit: Optional[str] = None

    name = "minkowski"

    def __post_init__(self):
        if not self.p >= 1.0:
            raise ValueError("Minkowski distance requires p >= 1")

    @property
    def minkowski_p(self):
        return float(self.p)

    def __call__(self, x, Y):
        diff = np.abs(np.asarray(Y, float) - np.asarray(x, float))
        if np.isinf(self.p):
            return np.max(diff, axis=-1)
        return np.sum(diff ** self.p, axis=-1) ** (1.0 / self.p)


@dataclass(frozen=True)
class Manhattan:
    """City-block distance."""

    unit: Optional[str] = None

    name = "cityblock"

    @property
    def minkowski_p(self):
        return 1.0

    def __call__(self, x, Y):
        return np.sum(np.abs(np.asarray(Y, float) - np.asarray(x, float)), axis=-1)


@dataclass(frozen=True)
class Chebyshev:
    """Maximum coordinate difference."""

    unit: Optional[str] = None

    name = "chebyshev"

    @property
    def minkowski_p(self):
        return np.inf

    def __call__(self, x, Y):
        return np.max(np.abs(np.asarray(Y, float) - np.asarray(x, float)), axis=-1)


@dataclass(frozen=True)
class Haversine:
    """
    Great-circle distance on a sphere.

    Coordinates are ``[lat, lon]`` in degrees, distances are returned in km
    (default radius 6371.227 km).
    """

    radius: float = 6371.227
    unit: Optional[str] = "km"

    name = "geographic"

    @property
    def minkowski_p(self):
        return None

    def __call__(self, x, Y):
        cfact = np.pi / 180.
        Y = np.atleast_2d(np.asarray(Y, float))
        lat1, lon1 = cfact * float(x[0]), cfact * float(x[1])
        lat2, lon2 = cfact * Y[:, 0], cfact * Y[:, 1]
        dlat = lat2 - lat1
        dlon = lon2 - lon1
        aval = (np.sin(dlat / 2.) ** 2.) + (np.cos(lat1) * np.cos(lat2) * (np.sin(dlon / 2.) ** 2.))
        aval = np.clip(aval, 0.0, 1.0)
        return 2. * self.radius * np.arctan2(np.sqrt(aval), np.sqrt(1 - aval))


@dataclass(frozen=True)
class Geodesic:
    """
    Ellipsoidal geodesic distance computed with :class:`pyproj.Geod`.

    Coordinates are ``[lat, lon]`` in degrees, distances are returned in km.
    """

    ellps: str = "WGS84"
    unit: Optional[str] = "km"

    name = "geodesic"

    @property
    def minkowski_p(self):
        return None

    def __call__(self, x, Y):
        Y = np.atleast_2d(np.asarray(Y, float))
        m = Y.shape[0]
        geod = Geod(ellps=self.ellps)
        lon1 = np.full(m, float(x[1]))
        lat1 = np.full(m, float(x[0]))
        _, _, dist_m = geod.inv(lon1, lat1, Y[:, 1], Y[:, 0])
        return np.asarray(dist_m, float) / 1000.0


@dataclass(frozen=True)
class CustomDistance:
    """Wraps a user callable ``func(x, Y) -> distances``."""

    func: Callable
    unit: Optional[str] = None

    name = "custom"

    @property
    def minkowski_p(self):
        return None

    def __call__(self, x, Y):
        return np.asarray(self.func(x, Y), float).reshape(-1)


DISTANCES = {
    "euclidean": Euclidean,
    "cartesian": Euclidean,
    "cityblock": Manhattan,
    "manhattan": Manhattan,
    "chebyshev": Chebyshev,
    "geographic": Haversine,
    "haversine": Haversine,
    "geodesic": Geodesic,
}

DistanceLike = Union[str, Callable]


def get_distance(distance: DistanceLike = "euclidean"):
    """
    Resolve a distance specification into a metric object.

    Parameters
    ----------
    distance : str or metric or callable
        One of ``'euclidean'``, ``'cartesian'``, ``'cityblock'``, ``'manhattan'``,
        ``'chebyshev'``, ``'geographic'``/``'haversine'`` (great circle, km),
        ``'geodesic'`` (pyproj ellipsoid, km), a metric instance from this module,
        or any callable ``f(x, Y)`` returning the distances from ``x`` to each row of ``Y``.

    Returns
    -------
    metric
        Frozen metric object; equal specifications give equal metrics.
    """
    if isinstance(distance, (Euclidean, Minkowski, Manhattan, Chebyshev, Haversine, Geodesic, CustomDistance)):
        return distance
    if isinstance(distance, str):
        key = distance.lower()
        if key not in DISTANCES:
            raise ValueError(
                "Invalid distance: choose from 'euclidean', 'cartesian', 'cityblock', 'manhattan', "
                "'chebyshev', 'geographic', 'haversine' or 'geodesic'"
            )
        return DISTANCES[key]()
    if callable(distance):
        return CustomDistance(distance)
    raise ValueError(f"Invalid distance specification: {distance!r}")

# Lag bins
def lag_size(nlags, maxlag):
    return float(maxlag) / int(nlags)

def bin_centers(nlags, maxlag):
    """Nominal bin centres ``δh/2 + (k-1) δh`` for ``k = 1..nlags``."""
    dh = lag_size(nlags, maxlag)
    return dh / 2.0 + dh * np.arange(int(nlags), dtype=float)

def default_maxlag(coordinates, fraction=0.1):
    """
    Default maximum lag: a fraction of the smallest positive side of the bounding box.

    Variograms use one tenth of the side, transiograms one half.
    """
    coords = np.asarray(coordinates, float)
    if coords.ndim == 1:
        coords = coords[:, None]
    sides = np.ptp(coords, axis=0)
    sides = sides[sides > 0]
    if sides.size == 0:
        raise ValueError("Cannot derive a default maxlag: all coordinates coincide")
    return float(np.min(sides)) * fraction

# Units
LENGTH_UNITS = {
    "mm": 1e-3,
    "cm": 1e-2,
    "m": 1.0,
    "km": 1e3,
    "in": 0.0254,
    "ft": 0.3048,
    "yd": 0.9144,
    "mi": 1609.344,
}

def convert_length(value, from_unit, to_unit):
    """Convert a length between two units of ``LENGTH_UNITS``."""
    if from_unit == to_unit:
        return float(value)
    if from_unit not in LENGTH_UNITS or to_unit not in LENGTH_UNITS:
        raise ValueError(f"Cannot convert length from {from_unit!r} to {to_unit!r}")
    return float(value) * LENGTH_UNITS[from_unit] / LENGTH_UNITS[to_unit]

# Geometry
def householder_basis(normal):
    """
    Orthonormal vectors ``(u, v)`` spanning the plane orthogonal to ``normal`` (3D).

    Built from the Householder reflection that maps ``normal`` onto a coordinate axis.
    """
    n = np.asarray(normal, float).ravel()
    if n.size != 3:
        raise ValueError("householder_basis requires a 3D normal vector")
    nnorm = np.linalg.norm(n)
    if nnorm == 0:
        raise ValueError("normal vector must be nonzero")
    i = int(np.argmax(n + nnorm))
    ei = np.zeros(3)
    ei[i] = nnorm
    h = n + ei
    H = np.eye(3) - 2.0 * np.outer(h, h) / np.dot(h, h)
    u, v = [H[:, j] for j in range(3) if j != i]
    if i == 1:
        u, v = v, u
    return u, v

# Parallel fan-out
def parallel_map(func: Callable, items: Iterable, n_jobs: Optional[int] = None, progress: bool = False,
                 desc: Optional[str] = None) -> List:
    """Ordered map over ``items``; threads when ``n_jobs`` > 1, optional tqdm progress bar."""
    items = list(items)
    if n_jobs is None or n_jobs == 1 or len(items) < 2:
        return [func(item) for item in tqdm(items, desc=desc, disable=not progress, leave=False)]
    if n_jobs < 1:
        raise ValueError("n_jobs must be a positive integer or None")
    logger.debug("dispatching %d work units to %d threads", len(items), n_jobs)
    with ThreadPoolExecutor(max_workers=n_jobs) as executor:
        return list(tqdm(executor.map(func, items), total=len(items), desc=desc, disable=not progress,
                         leave=False))

# Compute weights
def compute_distance_weights(h_lag, n_j, weight_type='inverse-linear weighting', weight_params=None):
    """
    Build per-bin weights for fitting.

    Parameters
    ----------
    h_lag : (k,) array_like of float
        Bin abscissas (same order as the target vector).
    n_j : (k,) array_like of float
        Pair counts per bin.
    weight_type : {'inverse-linear weighting','exponential weighting','powered weighting', 'linear weighting', None, 'ols'}
        If None/'ols', returns ones (plain OLS).
        'inverse-linear weighting': w(h)=n_j * 1/(1+h/b)
        'exponential weighting'   : w(h)=n_j * exp(-h/b)
        'powered weighting'       : w(h)=n_j * (1+h/b)^(-alpha)
        'linear weighting'        : w(h)=n_j
    weight_params : list[float] | dict | None
        If list, expected [b, alpha]; if dict, keys {'b','alpha'}.
        Missing values default to b = 0.25*max(h) and alpha = 1.

    Returns
    -------
    weights : (k,) ndarray of float
        Weight per bin.

    Raises
    ------
    ValueError
        If `weight_type` is unknown.
    """

    h_lag = np.asarray(h_lag, float)
    n_j = np.asarray(n_j, float)

    b_default = 0.25 * float(h_lag.max()) if h_lag.size and h_lag.max() > 0 else 1.0
    if weight_params is None:
        b, alpha = b_default, 1.0
    elif isinstance(weight_params, dict):
        b = weight_params.get("b", b_default)
        alpha = weight_params.get("alpha", 1.0)
    else:
        b = weight_params[0]
        alpha = weight_params[1] if len(weight_params) > 1 else 1.0

    if weight_type == 'inverse-linear weighting':
        w = n_j * (1.0 / (1.0 + h_lag / b))
    elif weight_type == 'exponential weighting':
        w = n_j * np.exp(-h_lag / b)
    elif weight_type == 'powered weighting':
        w = n_j * (1.0 + h_lag / b) ** (-alpha)
    elif weight_type == 'linear weighting':
        w = n_j * np.ones_like(h_lag, dtype=float)
    elif weight_type is None or weight_type == 'ols':
        w = np.ones_like(h_lag, dtype=float)
    else:
        raise ValueError("Invalid weight_type: choose None/'ols', 'inverse-linear weighting', 'exponential weighting', "
                         "'powered weighting' or 'linear weighting'")

    return w
