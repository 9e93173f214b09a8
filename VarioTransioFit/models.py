"""
This file contains the theoretical models: stationary variograms, covariances, transiograms and
their linear combinations. Models are immutable and evaluated by calling them on lags.
"""

from dataclasses import dataclass, fields, replace
from typing import Optional, Tuple

import numpy as np
from scipy import special
from scipy.linalg import expm

_EPS = np.finfo(float).eps


# Metric ball
@dataclass(frozen=True)
class MetricBall:
    """
    Anisotropy descriptor: semi-axes ``radii`` of an ellipsoid, optionally rotated.

    The first radius is the range used by the model; lags between points are measured in a
    metric in which the ellipsoid becomes a sphere of that radius.
    """

    radii: Tuple[float, ...] = (1.0,)
    rotation: Optional[Tuple[Tuple[float, ...], ...]] = None

    def __post_init__(self):
        radii = tuple(float(r) for r in np.atleast_1d(self.radii))
        if not radii or any(r <= 0 for r in radii):
            raise ValueError("metric ball radii must be positive")
        object.__setattr__(self, "radii", radii)
        if self.rotation is not None:
            R = np.asarray(self.rotation, float)
            if R.ndim != 2 or R.shape[0] != R.shape[1]:
                raise ValueError("rotation must be a square matrix")
            object.__setattr__(self, "rotation", tuple(tuple(row) for row in R))

    @property
    def radius(self):
        return self.radii[0]

    @property
    def isotropic(self):
        return len(set(self.radii)) == 1

    def lag(self, x, y):
        """Anisotropic lag between points ``x`` and ``y`` (rows of ``y`` allowed)."""
        d = np.asarray(y, float) - np.asarray(x, float)
        if self.rotation is not None:
            d = d @ np.asarray(self.rotation, float)
        if len(self.radii) > 1:
            scale = np.ones(d.shape[-1])
            k = min(len(self.radii), d.shape[-1])
            scale[:k] = self.radius / np.asarray(self.radii[:k])
            d = d * scale
        return np.sqrt(np.sum(d * d, axis=-1))


class GeoStatsFunction:
    """Common behaviour: evaluation, point-pair evaluation and linear combinations."""

    kind = None

    def evaluate(self, h):
        return self(h)

    def pairwise(self, x, y):
        """Evaluate between points ``x`` and ``y`` through the metric ball of the model."""
        return self(self.metricball.lag(x, y))

    @property
    def metricball(self):
        return MetricBall((self.range,))

    def params(self):
        """Named scalar parameters."""
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name not in ("ball", "unit")}

    def __add__(self, other):
        if not isinstance(other, GeoStatsFunction):
            return NotImplemented
        return CompositeFunction((1.0, 1.0), (self, other))

    def __mul__(self, c):
        if not np.isscalar(c):
            return NotImplemented
        return CompositeFunction((float(c),), (self,))

    __rmul__ = __mul__


def _with_ball(obj):
    if obj.ball is not None:
        object.__setattr__(obj, "range", float(obj.ball.radius))
    object.__setattr__(obj, "range", float(obj.range))


# Semivariogram Models
@dataclass(frozen=True)
class Variogram(GeoStatsFunction):
    """
    Stationary variogram with ``range``, ``sill`` and ``nugget``:

        γ(h) = (sill - nugget) * f(h / range) + nugget * 1{h > 0}

    where f is the normalized structure of the family.
    """

    range: float = 1.0
    sill: float = 1.0
    nugget: float = 0.0
    ball: Optional[MetricBall] = None
    unit: Optional[str] = None

    kind = "variogram"
    name = None

    def __post_init__(self):
        _with_ball(self)

    @property
    def metricball(self):
        return self.ball if self.ball is not None else MetricBall((self.range,))

    def structure(self, h, r):
        raise NotImplementedError

    def __call__(self, h):
        h = np.asarray(h, float)
        with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
            f = self.structure(h, float(self.range))
        return np.where(h > 0, (self.sill - self.nugget) * f + self.nugget, 0.0)


class GaussianVariogram(Variogram):
    """Gaussian: f = 1 - exp(-3 (h/r)^2); 95% of the sill at h = r."""

    name = "gaussian"

    def structure(self, h, r):
        return 1.0 - np.exp(-3.0 * (h / r) ** 2)


class ExponentialVariogram(Variogram):
    """Exponential: f = 1 - exp(-3 h/r); approaches the sill asymptotically."""

    name = "exponential"

    def structure(self, h, r):
        return 1.0 - np.exp(-3.0 * (h / r))


class SphericalVariogram(Variogram):
    """
    Spherical (compact support).

    Definition
    ----------
    Set x = h / r. Then
        f = 1.5 x - 0.5 x^3     for h < r
            1                   for h >= r
    """

    name = "spherical"

    def structure(self, h, r):
        x = h / r
        return np.where(h < r, 1.5 * x - 0.5 * x ** 3, 1.0)


class CubicVariogram(Variogram):
    """
    Cubic (compact support).

    Definition
    ----------
    Set x = h / r. Then
        f = 7 x^2 - 35/4 x^3 + 7/2 x^5 - 3/4 x^7    for h < r
            1                                       for h >= r
    """

    name = "cubic"

    def structure(self, h, r):
        x = h / r
        part = 7 * x ** 2 - (35 / 4) * x ** 3 + (7 / 2) * x ** 5 - (3 / 4) * x ** 7
        return np.where(h < r, part, 1.0)


class PentaSphericalVariogram(Variogram):
    """Pentaspherical: f = 15/8 x - 5/4 x^3 + 3/8 x^5 for x = h/r < 1, 1 beyond."""

    name = "pentaspherical"

    def structure(self, h, r):
        x = h / r
        part = (15 / 8) * x - (5 / 4) * x ** 3 + (3 / 8) * x ** 5
        return np.where(h < r, part, 1.0)


class SineHoleVariogram(Variogram):
    """Sine hole (hole effect): f = 1 - sin(π h/r) / (π h/r)."""

    name = "sinehole"

    def structure(self, h, r):
        x = np.pi * (h + _EPS) / r
        return 1.0 - np.sin(x) / x


class CircularVariogram(Variogram):
    """Circular: f = 1 - (2/π) acos(x) + (2x/π) sqrt(1 - x^2) for x = h/r < 1, 1 beyond."""

    name = "circular"

    def structure(self, h, r):
        x = np.clip(h / r, 0.0, 1.0)
        part = 1.0 - (2.0 / np.pi) * np.arccos(x) + (2.0 * x / np.pi) * np.sqrt(1.0 - x ** 2)
        return np.where(h < r, part, 1.0)


@dataclass(frozen=True)
class MaternVariogram(Variogram):
    """
    Semivariogram: Matérn

    Definition
    ----------
    With smoothness ν (``order``) and δ = sqrt(2ν) * 3 h / r,
        f = 1 - 2^(1-ν) / Γ(ν) * δ^ν * K_ν(δ)

    Parameters
    ----------
    range, sill, nugget : float
        See :class:`Variogram`.
    order : float, default 1.0
        Smoothness ν; ν = 0.5 gives the exponential shape, large ν approaches the Gaussian.

    Notes
    -----
    The lag is shifted by machine epsilon so that K_ν is evaluated away from zero.
    """

    order: float = 1.0

    name = "matern"

    def structure(self, h, r):
        nu = float(self.order)
        d = np.sqrt(2.0 * nu) * 3.0 * (h + _EPS) / r
        term = (2.0 ** (1.0 - nu) / special.gamma(nu)) * d ** nu * special.kv(nu, d)
        return 1.0 - np.nan_to_num(term, nan=0.0)


@dataclass(frozen=True)
class PowerVariogram(GeoStatsFunction):
    """
    Power (unbounded): γ(h) = scaling * h^exponent + nugget * 1{h > 0}, exponent in [0, 2].
    """

    scaling: float = 1.0
    nugget: float = 0.0
    exponent: float = 1.0
    unit: Optional[str] = None

    kind = "variogram"
    name = "power"
    ball = None

    @property
    def sill(self):
        return np.inf

    @property
    def range(self):
        return np.inf

    @property
    def metricball(self):
        return MetricBall((1.0,))

    def __call__(self, h):
        h = np.asarray(h, float)
        return self.scaling * np.abs(h) ** self.exponent + (h > 0) * self.nugget


@dataclass(frozen=True)
class NuggetEffect(GeoStatsFunction):
    """Pure nugget: γ(h) = nugget * 1{h > 0}."""

    nugget: float = 1.0
    unit: Optional[str] = None

    kind = "variogram"
    name = "nugget"
    ball = None

    @property
    def sill(self):
        return self.nugget

    @property
    def range(self):
        return 0.0

    @property
    def metricball(self):
        return MetricBall((1.0,))

    def __call__(self, h):
        h = np.asarray(h, float)
        return (h > 0) * float(self.nugget)


# Covariances
class Covariance(GeoStatsFunction):
    """
    Covariance of a stationary variogram: C(h) = sill - γ(h).

    Build either from a variogram instance or from the variogram parameters.
    """

    kind = "covariance"
    variogram_class = None

    def __init__(self, variogram=None, **params):
        if variogram is None:
            if self.variogram_class is None:
                raise ValueError("a variogram is required to build a generic covariance")
            variogram = self.variogram_class(**params)
        elif params:
            raise ValueError("pass either a variogram or its parameters, not both")
        self.variogram = variogram

    @property
    def range(self):
        return self.variogram.range

    @property
    def sill(self):
        return self.variogram.sill

    @property
    def nugget(self):
        return self.variogram.nugget

    @property
    def unit(self):
        return self.variogram.unit

    @property
    def metricball(self):
        return self.variogram.metricball

    def params(self):
        return self.variogram.params()

    def __call__(self, h):
        return self.variogram.sill - self.variogram(h)

    def __eq__(self, other):
        return type(self) is type(other) and self.variogram == other.variogram

    def __hash__(self):
        return hash((type(self), self.variogram))

    def __repr__(self):
        return f"{type(self).__name__}({self.variogram!r})"


class GaussianCovariance(Covariance):
    variogram_class = GaussianVariogram


class ExponentialCovariance(Covariance):
    variogram_class = ExponentialVariogram


class SphericalCovariance(Covariance):
    variogram_class = SphericalVariogram


class CubicCovariance(Covariance):
    variogram_class = CubicVariogram


class PentaSphericalCovariance(Covariance):
    variogram_class = PentaSphericalVariogram


class SineHoleCovariance(Covariance):
    variogram_class = SineHoleVariogram


class CircularCovariance(Covariance):
    variogram_class = CircularVariogram


class MaternCovariance(Covariance):
    variogram_class = MaternVariogram


# Transiogram Models
def _transition_matrices(v, proportions, eps=0.0):
    """(1 - v) I + v 1 p^T for each v; rows sum to one."""
    v = np.asarray(v, float)
    p = np.asarray(proportions, float)
    L = p.size
    T = (1.0 - v)[..., None, None] * np.eye(L) + v[..., None, None] * p[None, :]
    if eps:
        T = T + eps - eps * L * np.eye(L)
    return T


@dataclass(frozen=True)
class Transiogram(GeoStatsFunction):
    """
    Transiogram with ``range`` and category ``proportions``.

    Calling the model on a scalar lag returns an (L, L) transition matrix; on an array of lags it
    returns an array of shape ``h.shape + (L, L)``.
    """

    range: float = 1.0
    proportions: Tuple[float, ...] = (0.5, 0.5)
    ball: Optional[MetricBall] = None
    unit: Optional[str] = None

    kind = "transiogram"
    name = None
    epsilon = 0.0

    def __post_init__(self):
        _with_ball(self)
        object.__setattr__(self, "proportions", tuple(float(p) for p in self.proportions))

    @property
    def metricball(self):
        return self.ball if self.ball is not None else MetricBall((self.range,))

    @property
    def nvariates(self):
        return len(self.proportions)

    def structure(self, h, r):
        raise NotImplementedError

    def __call__(self, h):
        h = np.asarray(h, float)
        with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
            v = self.structure(h, float(self.range))
        return _transition_matrices(v, self.proportions, self.epsilon)


class LinearTransiogram(Transiogram):
    """Linear: v = h/r up to the range, then the rows equal the proportions."""

    name = "linear"

    def structure(self, h, r):
        return np.where(h < r, h / r, 1.0)


class SphericalTransiogram(Transiogram):
    name = "spherical"
    epsilon = 1e-6

    def structure(self, h, r):
        x = h / r
        return np.where(h < r, 1.5 * x - 0.5 * x ** 3, 1.0)


class GaussianTransiogram(Transiogram):
    name = "gaussian"
    epsilon = 1e-6

    def structure(self, h, r):
        return 1.0 - np.exp(-3.0 * (h / r) ** 2)


class ExponentialTransiogram(Transiogram):
    name = "exponential"

    def structure(self, h, r):
        return 1.0 - np.exp(-3.0 * (h / r))


def _rate_matrix(lengths, proportions):
    l = np.asarray(lengths, float)
    p = np.asarray(proportions, float)
    with np.errstate(divide='ignore', invalid='ignore'):
        R = (p[None, :] / np.maximum(1.0 - p, _EPS)[:, None]) / l[:, None]
    np.fill_diagonal(R, -1.0 / l)
    return R


def baseratematrix(lengths, proportions):
    """
    Transition rate matrix from mean ``lengths`` and ``proportions``.

        R[i, i] = -1 / l_i,    R[i, j] = p_j / (1 - p_i) / l_i

    References
    Carle, S.F. & Fogg, G.E. (1996): Transition probability-based indicator geostatistics. Math. Geol., 28, 453-476.
    """
    l = np.asarray(lengths, float).ravel()
    p = np.asarray(proportions, float).ravel()
    if l.size != p.size:
        raise ValueError("lengths and proportions must have the same length")
    if np.any(l <= 0):
        raise ValueError("mean lengths must be positive")
    if np.any((p < 0) | (p > 1)):
        raise ValueError("proportions must be in interval [0, 1]")
    if not np.isclose(p.sum(), 1.0):
        raise ValueError("proportions must add up to one")
    return _rate_matrix(l, p)


@dataclass(frozen=True)
class MatrixExponentialTransiogram(GeoStatsFunction):
    """
    Markov-chain transiogram T(h) = expm(h R) with transition ``rate`` matrix R.

    Use :meth:`from_lengths` to build R from mean lengths and proportions.
    """

    rate: Tuple[Tuple[float, ...], ...] = ((-1.0, 1.0), (1.0, -1.0))
    unit: Optional[str] = None

    kind = "transiogram"
    name = "matrixexponential"
    ball = None

    def __post_init__(self):
        R = np.asarray(self.rate, float)
        if R.ndim != 2 or R.shape[0] != R.shape[1]:
            raise ValueError("transition rate matrix must be square")
        object.__setattr__(self, "rate", tuple(tuple(row) for row in R))

    @classmethod
    def from_lengths(cls, lengths, proportions, unit=None):
        return cls(baseratematrix(lengths, proportions), unit=unit)

    @property
    def ratematrix(self):
        return np.asarray(self.rate, float)

    @property
    def meanlengths(self):
        return tuple(1.0 / -np.diag(self.ratematrix))

    @property
    def range(self):
        return float(max(self.meanlengths))

    @property
    def proportions(self):
        d = np.diag(self(100.0 * self.range))
        return tuple(d / d.sum())

    @property
    def nvariates(self):
        return len(self.rate)

    def params(self):
        return {"lengths": self.meanlengths, "proportions": self.proportions}

    def __call__(self, h):
        h = np.asarray(h, float)
        R = self.ratematrix
        if h.ndim == 0:
            return expm(float(h) * R)
        out = np.stack([expm(hk * R) for hk in h.ravel()])
        return out.reshape(h.shape + R.shape)


class PiecewiseLinearTransiogram(GeoStatsFunction):
    """
    Transiogram interpolating the matrices of an empirical transiogram.

    Left of the first abscissa the model goes linearly from the identity to the first matrix;
    beyond the last abscissa it equals a matrix whose rows are the proportions read from the
    normalized diagonal of the last matrix (uniform when that diagonal is zero).

    References
    Li, W. & Zhang, C. (2010): Linear interpolation and joint model fitting of experimental transiograms for
    Markov chain simulation of categorical spatial variables. IJGIS, 24, 821-839.
    """

    kind = "transiogram"
    name = "piecewiselinear"

    def __init__(self, abscissas, ordinates, unit=None):
        x = np.asarray(abscissas, float)
        Y = np.asarray(ordinates, float)
        if Y.ndim != 3 or Y.shape[0] != Y.shape[1] or Y.shape[2] != x.size or x.size == 0:
            raise ValueError("ordinates must have shape (L, L, n) with n abscissas")
        self.abscissas = x
        self.ordinates = np.moveaxis(Y, -1, 0)
        yk = np.diag(self.ordinates[-1])
        L = Y.shape[0]
        p = np.full(L, 1.0 / L) if np.all(yk == 0) else yk / np.sum(np.abs(yk))
        self.ordinfinity = np.tile(p, (L, 1))
        self.unit = unit
        for a in (self.abscissas, self.ordinates, self.ordinfinity):
            a.setflags(write=False)

    @property
    def proportions(self):
        return tuple(np.diag(self.ordinfinity))

    @property
    def range(self):
        return float(self.abscissas[-1])

    @property
    def nvariates(self):
        return self.ordinfinity.shape[0]

    def params(self):
        return {"abscissas": self.abscissas, "proportions": self.proportions}

    def _single(self, h):
        hs = self.abscissas
        L = self.nvariates
        if h < hs[0]:
            return ((hs[0] - h) * np.eye(L) + h * self.ordinates[0]) / hs[0]
        if h > hs[-1]:
            return self.ordinfinity.copy()
        k = int(np.searchsorted(hs, h, side="left")) - 1
        if k < 0:
            return self.ordinates[0].copy()
        return ((hs[k + 1] - h) * self.ordinates[k] + (h - hs[k]) * self.ordinates[k + 1]) / (hs[k + 1] - hs[k])

    def __call__(self, h):
        h = np.asarray(h, float)
        if h.ndim == 0:
            return self._single(float(h))
        out = np.stack([self._single(hk) for hk in h.ravel()])
        return out.reshape(h.shape + (self.nvariates, self.nvariates))

    def __repr__(self):
        return f"PiecewiseLinearTransiogram(nlags={self.abscissas.size}, proportions={self.proportions})"


class CarleTransiogram(GeoStatsFunction):
    """
    Transiogram with one transition rate matrix per coordinate axis.

    Between two points with lag vector ``d`` the rates of the axes are blended into a single rate
    matrix and ``T = expm(|d| R_d)``. Along a negative axis direction the rates of the reversed
    chain, ``p_j / p_i * R[j, i]``, are used. A scalar lag is taken along the axis with the longest
    mean lengths. Proportions are read from the first rate matrix.

    References
    Carle, S.F., LaBolle, E.M., Weissmann, G.S., Van Brocklin, D. & Fogg, G.E. (1998): Conditional simulation
    of hydrofacies architecture: a transition probability/Markov approach. SEPM Concepts Hydrol. Environ.
    Geol., 1, 147-170.
    """

    kind = "transiogram"
    name = "carle"

    def __init__(self, *rates, unit=None):
        if not rates:
            R = baseratematrix((1.0, 1.0), (0.5, 0.5))
            rates = (R, R, R)
        mats = tuple(np.array(R, dtype=float) for R in rates)
        if len({R.shape for R in mats}) != 1:
            raise ValueError("transition rate matrices must have equal size")
        if mats[0].ndim != 2 or mats[0].shape[0] != mats[0].shape[1]:
            raise ValueError("transition rate matrices must be square")

        R = mats[0]
        r = np.max(1.0 / -np.diag(R))
        p = np.diag(expm(100.0 * r * R))
        if np.any((p < 0) | (p > 1)) or not np.isclose(p.sum(), 1.0):
            raise ValueError("the first rate matrix does not define valid proportions")
        for M in mats:
            M.setflags(write=False)
        self.rates = mats
        self.proportions = tuple(float(v) for v in p)
        self.unit = unit

    @property
    def nvariates(self):
        return self.rates[0].shape[0]

    @property
    def meanlengths(self):
        return tuple(np.max([1.0 / -np.diag(R) for R in self.rates], axis=0))

    @property
    def range(self):
        return float(max(self.meanlengths))

    @property
    def isotropic(self):
        lengths = [1.0 / -np.diag(R) for R in self.rates]
        return all(np.array_equal(lengths[0], l) for l in lengths[1:])

    @property
    def metricball(self):
        return MetricBall((1.0,))

    def params(self):
        return {"lengths": self.meanlengths, "proportions": self.proportions}

    def _between(self, d):
        d = np.asarray(d, float)
        if d.shape != (len(self.rates),):
            raise ValueError(f"lag vector must have {len(self.rates)} components")
        h = float(np.linalg.norm(d))
        L = self.nvariates
        if h == 0:
            return np.eye(L)
        p = np.asarray(self.proportions)
        W = np.stack([R if dk >= 0 else (p[None, :] / p[:, None]) * R.T for R, dk in zip(self.rates, d)])
        Rh = np.sqrt(np.sum((d[:, None, None] * W) ** 2, axis=0))
        np.fill_diagonal(Rh, -np.diag(Rh))

        # last row and column follow from stationarity and zero row sums
        A = Rh[:L - 1, :L - 1] / h
        b = -np.sum(p[:L - 1, None] * A, axis=0, keepdims=True) / p[L - 1]
        M = np.vstack([A, b])
        c = -np.sum(M, axis=1, keepdims=True)
        return expm(h * np.hstack([M, c]))

    def pairwise(self, x, y):
        d = np.asarray(y, float) - np.asarray(x, float)
        if d.ndim == 1:
            return self._between(d)
        return np.stack([self._between(row) for row in d])

    def __call__(self, h):
        h = np.asarray(h, float)
        axis = int(np.argmax([np.max(1.0 / -np.diag(R)) for R in self.rates]))
        unit = np.eye(len(self.rates))[axis]
        if h.ndim == 0:
            return self._between(float(h) * unit)
        out = np.stack([self._between(hk * unit) for hk in h.ravel()])
        return out.reshape(h.shape + (self.nvariates, self.nvariates))

    def __repr__(self):
        return f"CarleTransiogram(meanlengths={self.meanlengths}, proportions={self.proportions})"


# Composite (nested) models
class CompositeFunction(GeoStatsFunction):
    """Linear combination Σ c_i f_i of models of the same kind."""

    def __init__(self, coeffs, models):
        coeffs = tuple(float(c) for c in coeffs)
        models = tuple(models)
        if len(coeffs) != len(models) or not models:
            raise ValueError("one coefficient per model is required")
        flat_c, flat_m = [], []
        for c, m in zip(coeffs, models):
            if isinstance(m, CompositeFunction):
                flat_c.extend(c * cm for cm in m.coeffs)
                flat_m.extend(m.models)
            else:
                flat_c.append(c)
                flat_m.append(m)
        kinds = {m.kind for m in flat_m}
        if len(kinds) != 1:
            raise ValueError("cannot combine models of different kinds")
        self.coeffs = tuple(flat_c)
        self.models = tuple(flat_m)
        self.kind = kinds.pop()

    @property
    def sill(self):
        return sum(c * m.sill for c, m in zip(self.coeffs, self.models))

    @property
    def nugget(self):
        return sum(c * getattr(m, "nugget", 0.0) for c, m in zip(self.coeffs, self.models))

    @property
    def range(self):
        return max(m.range for m in self.models)

    def params(self):
        return {"coeffs": self.coeffs, "models": [m.params() for m in self.models]}

    def __call__(self, h):
        return sum(c * m(h) for c, m in zip(self.coeffs, self.models))

    def __eq__(self, other):
        return isinstance(other, CompositeFunction) and self.coeffs == other.coeffs and self.models == other.models

    def __hash__(self):
        return hash((self.coeffs, self.models))

    def __repr__(self):
        terms = " + ".join(f"{c:g}*{m!r}" for c, m in zip(self.coeffs, self.models))
        return f"CompositeFunction({terms})"


def _unit_structure(model):
    if isinstance(model, Covariance):
        return type(model)(_unit_structure(model.variogram))
    return replace(model, sill=1.0, nugget=0.0)


def structures(f):
    """
    Individual structures of a (possibly composite) variogram or covariance.

    Returns
    -------
    nugget : float
        Total nugget.
    coeffs : tuple of float
        Contribution (sill minus nugget) of each remaining structure.
    models : tuple
        The structures normalized to unit sill and zero nugget; nugget effects are dropped.

    Examples
    --------
    >>> c0, c, g = structures(0.1 * NuggetEffect() + 2.0 * GaussianVariogram(range=3.0))
    >>> c0, c
    (0.1, (2.0,))
    """
    terms = zip(f.coeffs, f.models) if isinstance(f, CompositeFunction) else [(1.0, f)]
    nugget, coeffs, models = 0.0, [], []
    for c, m in terms:
        if not isinstance(m, (Variogram, Covariance, NuggetEffect)):
            raise ValueError(f"structures are defined for bounded variograms and covariances, not {type(m).__name__}")
        nugget += c * float(m.nugget)
        if isinstance(m, NuggetEffect):
            continue
        coeffs.append(c * float(m.sill - m.nugget))
        models.append(_unit_structure(m))
    return nugget, tuple(coeffs), tuple(models)


STATIONARY_VARIOGRAMS = (
    CircularVariogram,
    CubicVariogram,
    ExponentialVariogram,
    GaussianVariogram,
    MaternVariogram,
    PentaSphericalVariogram,
    SineHoleVariogram,
    SphericalVariogram,
)

FITTABLE_TRANSIOGRAMS = (
    ExponentialTransiogram,
    GaussianTransiogram,
    LinearTransiogram,
    MatrixExponentialTransiogram,
    SphericalTransiogram,
)

VARIOGRAM_MODELS = {cls.name: cls for cls in STATIONARY_VARIOGRAMS}
VARIOGRAM_MODELS.update({"power": PowerVariogram, "nugget": NuggetEffect})

COVARIANCE_MODELS = {
    cls.variogram_class.name: cls
    for cls in (CircularCovariance, CubicCovariance, ExponentialCovariance, GaussianCovariance, MaternCovariance,
                PentaSphericalCovariance, SineHoleCovariance, SphericalCovariance)
}

TRANSIOGRAM_MODELS = {cls.name: cls for cls in FITTABLE_TRANSIOGRAMS}
TRANSIOGRAM_MODELS["piecewiselinear"] = PiecewiseLinearTransiogram
