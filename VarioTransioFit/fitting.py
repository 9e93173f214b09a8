"""
This file contains the fitting engine: constrained weighted least-squares fits of theoretical models to
empirical variograms and transiograms, selection among several candidate families, and grouped fitting of
tabular data.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
import pandas as pd
from scipy.optimize import least_squares, minimize
from tqdm.auto import tqdm

from VarioTransioFit.empirical import EmpiricalTransiogram, EmpiricalVariogram, empirical_variogram
from VarioTransioFit.models import (
    COVARIANCE_MODELS,
    FITTABLE_TRANSIOGRAMS,
    STATIONARY_VARIOGRAMS,
    TRANSIOGRAM_MODELS,
    VARIOGRAM_MODELS,
    Covariance,
    MatrixExponentialTransiogram,
    NuggetEffect,
    PiecewiseLinearTransiogram,
    PowerVariogram,
    Transiogram,
    Variogram,
    _rate_matrix,
)
from VarioTransioFit.utils import compute_distance_weights, convert_length, parallel_map

logger = logging.getLogger(__name__)

FIXED_TOL = 1e-8
_TINY = np.finfo(float).tiny

LEAST_SQUARES_METHODS = ("trf", "dogbox")
MINIMIZE_METHODS = ("L-BFGS-B", "Powell", "Nelder-Mead", "TNC", "SLSQP")

WEIGHT_SCHEMES = ('inverse-linear weighting', 'exponential weighting', 'powered weighting', 'linear weighting', 'ols')

# overrides measured along the lag axis and along the ordinate axis
LAG_PARAMETERS = ("range", "maxrange", "lengths", "maxlengths")
VALUE_PARAMETERS = ("sill", "maxsill", "nugget", "maxnugget")


# Fitting algorithm
@dataclass(frozen=True)
class WeightedLeastSquares:
    """
    Weighted least squares with penalized constraints.

    Parameters
    ----------
    weightfun : callable, optional
        Weight as a function of lag, ``w = weightfun(x)``. Takes precedence over ``weight_type``.
    weight_type : str, optional
        One of the decay schemes of :func:`VarioTransioFit.utils.compute_distance_weights`.
    weight_params : list or dict, optional
        Parameters of the decay scheme.
    method : str, default 'trf'
        'trf' or 'dogbox' solve with :func:`scipy.optimize.least_squares`; 'L-BFGS-B', 'Powell',
        'Nelder-Mead', 'TNC' and 'SLSQP' minimize the penalized objective with
        :func:`scipy.optimize.minimize`.

    Notes
    -----
    Without ``weightfun`` or ``weight_type`` each bin is weighted by its share of the pairs,
    ``n / sum(n)``.
    """

    weightfun: Optional[Callable] = None
    weight_type: Optional[str] = None
    weight_params: object = None
    method: str = "trf"

    def __post_init__(self):
        if self.method not in LEAST_SQUARES_METHODS + MINIMIZE_METHODS:
            raise ValueError(f"Invalid method: choose from {', '.join(LEAST_SQUARES_METHODS + MINIMIZE_METHODS)}")
        if self.weight_type is not None and self.weight_type not in WEIGHT_SCHEMES:
            raise ValueError(f"Invalid weight_type: choose None or one of {', '.join(WEIGHT_SCHEMES)}")

    def weights(self, x, n):
        x = np.asarray(x, float)
        n = np.asarray(n, float)
        if self.weightfun is not None:
            w = np.asarray([self.weightfun(xi) for xi in x], float)
        elif self.weight_type is not None:
            w = compute_distance_weights(x, n, self.weight_type, self.weight_params)
        else:
            w = n / n.sum()
        if np.any(~np.isfinite(w)) or np.any(w < 0):
            raise ValueError("fitting weights must be finite and nonnegative")
        return w


def _resolve_algo(algo):
    if algo is None or (isinstance(algo, str) and algo.lower() == "wls"):
        return WeightedLeastSquares()
    if isinstance(algo, WeightedLeastSquares):
        return algo
    if isinstance(algo, str):
        if algo in WEIGHT_SCHEMES:
            return WeightedLeastSquares(weight_type=algo)
        raise ValueError(f"Invalid fitting algorithm {algo!r}: choose 'wls', a weight scheme or a weight function")
    if callable(algo):
        return WeightedLeastSquares(weightfun=algo)
    raise ValueError(f"Invalid fitting algorithm {algo!r}")


# Candidate families
def _resolve_family(model, f):
    if isinstance(model, str):
        key = model.lower()
        if key in ("variogram", "variograms"):
            return list(STATIONARY_VARIOGRAMS)
        if key in ("covariance", "covariances"):
            return list(COVARIANCE_MODELS.values())
        if key in ("transiogram", "transiograms"):
            return list(FITTABLE_TRANSIOGRAMS)
        registry = TRANSIOGRAM_MODELS if isinstance(f, EmpiricalTransiogram) else VARIOGRAM_MODELS
        if key not in registry:
            raise ValueError(f"Unknown model {model!r}: choose from {', '.join(sorted(registry))}")
        return [registry[key]]
    if isinstance(model, type):
        return [model]
    raise ValueError(f"Invalid model specification {model!r}")


def _candidates(models, f):
    if isinstance(models, (list, tuple)):
        if not models:
            raise ValueError("at least one candidate model is required")
        families = [cls for m in models for cls in _resolve_family(m, f)]
    else:
        families = _resolve_family(models, f)

    for cls in families:
        transio = issubclass(cls, (Transiogram, MatrixExponentialTransiogram, PiecewiseLinearTransiogram))
        vario = issubclass(cls, (Variogram, PowerVariogram, NuggetEffect, Covariance))
        if transio and not isinstance(f, EmpiricalTransiogram):
            raise ValueError(f"{cls.__name__} can only be fit to an empirical transiogram")
        if vario and not isinstance(f, EmpiricalVariogram):
            raise ValueError(f"{cls.__name__} can only be fit to an empirical variogram")
        if vario and issubclass(cls, Covariance) and cls.variogram_class is None:
            raise ValueError("a covariance family must wrap a variogram family")
        if not (transio or vario):
            raise ValueError(f"{cls.__name__} is not a fittable model")
    return families


# Units of overrides
def _strip_units(overrides, f):
    plain = {}
    for key, value in overrides.items():
        if isinstance(value, tuple) and len(value) == 2 and isinstance(value[1], str):
            number, unit = value
            if key in LAG_PARAMETERS:
                if f.unit is None and unit is not None:
                    raise ValueError(f"cannot convert {key} from {unit!r}: the empirical function has no lag unit")
                if unit != f.unit:
                    factor = convert_length(1.0, unit, f.unit)
                    number = np.asarray(number, float) * factor
            elif key in VALUE_PARAMETERS:
                if unit != f.value_unit:
                    raise ValueError(f"{key} is given in {unit!r} but the empirical function values are in "
                                     f"{f.value_unit!r}")
            else:
                raise ValueError(f"units are not supported for {key}")
            value = number
        plain[key] = value
    return plain


# Parameter layouts
class _Layout:
    """Flat parameter vector with names, sizes, initial guess and box constraints."""

    def __init__(self):
        self.names, self.sizes, self.x0, self.lower, self.upper = [], [], [], [], []

    def add(self, name, init, lower, upper, overrides):
        init, lower, upper = (np.atleast_1d(np.asarray(v, float)) for v in (init, lower, upper))
        size = max(init.size, lower.size, upper.size)
        init, lower, upper = (np.broadcast_to(v, (size,)).astype(float) for v in (init, lower, upper))
        if name in overrides:
            fixed = np.broadcast_to(np.asarray(overrides.pop(name), float), (size,)).astype(float)
            init, lower, upper = fixed, fixed - FIXED_TOL, fixed + FIXED_TOL
        if np.any(lower > upper):
            raise ValueError(f"infeasible bounds for {name}: lower bound exceeds upper bound")
        flat = lower == upper
        lower = np.where(flat, lower - FIXED_TOL, lower)
        upper = np.where(flat, upper + FIXED_TOL, upper)
        self.names.append(name)
        self.sizes.append(size)
        self.x0.append(np.clip(init, lower, upper))
        self.lower.append(lower)
        self.upper.append(upper)

    def bounds(self):
        return np.concatenate(self.lower), np.concatenate(self.upper)

    def initial(self):
        return np.concatenate(self.x0)

    def unpack(self, theta):
        out, k = {}, 0
        for name, size in zip(self.names, self.sizes):
            out[name] = theta[k:k + size]
            k += size
        return out


def _pop_max(overrides, name, default):
    value = overrides.pop(name, default)
    return np.asarray(value, float)


def _variogram_layout(cls, xmax, ymax, overrides):
    rmax = _pop_max(overrides, "maxrange", xmax)
    smax = _pop_max(overrides, "maxsill", ymax)
    nmax = _pop_max(overrides, "maxnugget", ymax)
    layout = _Layout()
    layout.add("range", rmax / 3, 0.0, rmax, overrides)
    layout.add("sill", 0.95 * smax, 0.0, smax, overrides)
    layout.add("nugget", 0.01 * smax, 0.0, nmax, overrides)
    extra = {k: overrides.pop(k) for k in ("order",) if k in overrides and cls.name == "matern"}

    def build(p, unit):
        return cls(range=max(float(p["range"][0]), _TINY), sill=float(p["sill"][0]), nugget=float(p["nugget"][0]),
                   unit=unit, **extra)

    def penalty(p):
        return max(0.0, float(p["nugget"][0] - p["sill"][0]))

    return layout, build, penalty


def _power_layout(xmax, ymax, overrides):
    smax = _pop_max(overrides, "maxscaling", ymax)
    nmax = _pop_max(overrides, "maxnugget", ymax)
    emax = _pop_max(overrides, "maxexponent", 2.0)
    layout = _Layout()
    layout.add("scaling", smax / 3, 0.0, smax, overrides)
    layout.add("nugget", 0.01 * nmax, 0.0, nmax, overrides)
    layout.add("exponent", 0.95 * emax, 0.0, emax, overrides)

    def build(p, unit):
        return PowerVariogram(scaling=float(p["scaling"][0]), nugget=float(p["nugget"][0]),
                              exponent=float(p["exponent"][0]), unit=unit)

    def penalty(p):
        s, a = float(p["scaling"][0]), float(p["exponent"][0])
        return max(0.0, -s) + max(0.0, -a) + max(0.0, a - 2.0)

    return layout, build, penalty


def _transiogram_layout(cls, xmax, nlevels, overrides):
    rmax = _pop_max(overrides, "maxrange", xmax)
    pmax = np.broadcast_to(_pop_max(overrides, "maxproportions", 1.0), (nlevels,))
    p0 = 0.95 * pmax
    layout = _Layout()
    layout.add("range", rmax / 3, 0.0, rmax, overrides)
    layout.add("proportions", p0 / p0.sum(), 0.0, pmax, overrides)

    def build(p, unit):
        return cls(range=max(float(p["range"][0]), _TINY), proportions=tuple(p["proportions"]), unit=unit)

    def penalty(p):
        return abs(float(np.sum(p["proportions"])) - 1.0)

    return layout, build, penalty


def _matrixexp_layout(xmax, nlevels, overrides):
    lmax = np.broadcast_to(_pop_max(overrides, "maxlengths", xmax), (nlevels,))
    # a proportion of one has no finite transition rate
    pmax = np.minimum(np.broadcast_to(_pop_max(overrides, "maxproportions", 1.0), (nlevels,)), 1.0 - 1e-6)
    p0 = 0.95 * pmax
    layout = _Layout()
    layout.add("lengths", lmax / 3, 1e-6 * lmax, lmax, overrides)
    layout.add("proportions", p0 / p0.sum(), 0.0, pmax, overrides)

    def build(p, unit):
        lengths = np.maximum(p["lengths"], _TINY)
        return MatrixExponentialTransiogram(_rate_matrix(lengths, p["proportions"]), unit=unit)

    def penalty(p):
        return abs(float(np.sum(p["proportions"])) - 1.0)

    return layout, build, penalty


def _layout_for(cls, xmax, ymax, nlevels, overrides):
    if issubclass(cls, Variogram):
        return _variogram_layout(cls, xmax, ymax, overrides)
    if issubclass(cls, PowerVariogram):
        return _power_layout(xmax, ymax, overrides)
    if issubclass(cls, Transiogram):
        return _transiogram_layout(cls, xmax, nlevels, overrides)
    if issubclass(cls, MatrixExponentialTransiogram):
        return _matrixexp_layout(xmax, nlevels, overrides)
    raise ValueError(f"{cls.__name__} has no parameter layout")


# Objective
def _usable_bins(f):
    keep = f.counts > 0
    if not np.any(keep):
        raise ValueError("the empirical function has no bins with pairs to fit")
    x = f.abscissas[keep]
    n = f.counts[keep].astype(float)
    if isinstance(f, EmpiricalTransiogram):
        y = np.moveaxis(f.ordinates[..., keep], -1, 0)
    else:
        y = f.ordinates[keep]
    return x, n, y


def _solve(layout, build, penalty, x, y, w, unit, method):
    lam = float(np.sum(y ** 2))
    sw = np.sqrt(w).reshape((-1,) + (1,) * (y.ndim - 1))
    lb, ub = layout.bounds()

    def pieces(theta):
        p = layout.unpack(theta)
        model = build(p, unit)
        with np.errstate(all='ignore'):
            pred = np.asarray(model(x), float)
        res = np.nan_to_num(sw * (pred - y), nan=1e12, posinf=1e12, neginf=-1e12)
        return res.ravel(), penalty(p)

    def objective(theta):
        res, L = pieces(theta)
        return float(np.dot(res, res) + lam * L)

    x0 = layout.initial()
    if method in LEAST_SQUARES_METHODS:
        def residuals(theta):
            res, L = pieces(theta)
            return np.append(res, np.sqrt(lam) * L)

        sol = least_squares(residuals, x0, bounds=(lb, ub), method=method, xtol=1e-12, ftol=1e-12, gtol=1e-12)
    else:
        sol = minimize(objective, x0, method=method, bounds=list(zip(lb, ub)))
    if not sol.success:
        logger.debug("optimizer did not converge (%s): %s", method, sol.message)

    theta = np.clip(sol.x, lb, ub)
    return build(layout.unpack(theta), unit), objective(theta)


def _fit_family(cls, f, algo, overrides):
    overrides = dict(overrides)
    x, n, y = _usable_bins(f)
    w = algo.weights(x, n)
    unit = f.unit

    if issubclass(cls, PiecewiseLinearTransiogram):
        keep = f.counts > 0
        return PiecewiseLinearTransiogram(f.abscissas[keep], f.ordinates[..., keep], unit=unit), 0.0

    if issubclass(cls, NuggetEffect):
        nugget = float(overrides["nugget"]) if "nugget" in overrides else float(np.sum(w * y) / np.sum(w))
        return NuggetEffect(nugget=nugget, unit=unit), float(np.sum(w * (nugget - y) ** 2))

    if issubclass(cls, Covariance):
        variogram, residual = _fit_family(cls.variogram_class, f, algo, overrides)
        return cls(variogram), residual

    xmax = float(np.max(x))
    ymax = max(float(np.max(y)), 0.0)
    nlevels = y.shape[-1] if y.ndim == 3 else 1
    layout, build, penalty = _layout_for(cls, xmax, ymax, nlevels, overrides)
    return _solve(layout, build, penalty, x, y, w, unit, algo.method)


def _accepted_overrides(cls):
    if issubclass(cls, Covariance):
        return _accepted_overrides(cls.variogram_class)
    if issubclass(cls, NuggetEffect):
        return {"nugget"}
    if issubclass(cls, PowerVariogram):
        return {"scaling", "maxscaling", "nugget", "maxnugget", "exponent", "maxexponent"}
    if issubclass(cls, Variogram):
        names = {"range", "maxrange", "sill", "maxsill", "nugget", "maxnugget"}
        return names | {"order"} if cls.name == "matern" else names
    if issubclass(cls, Transiogram):
        return {"range", "maxrange", "proportions", "maxproportions"}
    if issubclass(cls, MatrixExponentialTransiogram):
        return {"lengths", "maxlengths", "proportions", "maxproportions"}
    return set()


def fit(models, f, algo=None, n_jobs=None, **overrides):
    """
    Fit one or several theoretical model families to an empirical function.

    Parameters
    ----------
    models : model class, str or list
        A model class (e.g. ``GaussianVariogram``), a registered name (``'gaussian'``), a family
        keyword (``'variogram'``, ``'covariance'``, ``'transiogram'``) or a list of these.
    f : EmpiricalVariogram or EmpiricalTransiogram
        Empirical function; bins without pairs are ignored.
    algo : None, 'wls', str, callable or WeightedLeastSquares
        Fitting algorithm. A string other than 'wls' names a weighting scheme, a callable is a
        weight function of lag.
    n_jobs : int, optional
        Threads used to fit several candidate families.
    **overrides
        Fixed parameters (``range=12``) or maximum values (``maxrange=30``). Lag quantities may be
        given as ``(value, unit)``; ordinate quantities as ``(value, value_unit)``.

    Returns
    -------
    model
        Fitted model with the lowest residual; ties go to the first candidate.
    residual : float
        Weighted sum of squared errors plus the constraint penalty.

    Raises
    ------
    ValueError
        Empty candidate list, no usable bins, unknown names, infeasible bounds or incompatible units.
    """
    if not isinstance(f, (EmpiricalVariogram, EmpiricalTransiogram)):
        raise ValueError("f must be an empirical variogram or transiogram")
    algo = _resolve_algo(algo)
    families = _candidates(models, f)
    _usable_bins(f)
    overrides = _strip_units(overrides, f)

    accepted = set().union(*(_accepted_overrides(cls) for cls in families))
    unknown = set(overrides) - accepted
    if unknown:
        raise ValueError(f"unknown parameters for the candidate models: {', '.join(sorted(unknown))}")

    def fit_one(cls):
        own = {k: v for k, v in overrides.items() if k in _accepted_overrides(cls)}
        model, residual = _fit_family(cls, f, algo, own)
        logger.debug("fitted %s with residual %.6g", cls.__name__, residual)
        return model, residual

    results = parallel_map(fit_one, families, n_jobs=n_jobs)
    best = int(np.argmin([r for _, r in results]))
    return results[best]


# R2 score
def r2_score_weighted(y, yhat, w=None):
    """
    Weighted coefficient of determination, R^2.

    Computes
        R^2_w = 1 - SSE_w / SST_w
    where
        SSE_w = Σ_i w_i (y_i - ŷ_i)^2
        SST_w = Σ_i w_i (y_i - ȳ_w)^2
        ȳ_w   = (Σ_i w_i y_i) / (Σ_i w_i)

    If `w` is None, all weights are treated as 1 (ordinary R^2).

    Returns
    -------
    r2 : float
        Weighted R^2 in (-inf, 1]. Returns `np.nan` if the weighted variance `SST_w` is zero.
    """
    y = np.asarray(y, float).ravel()
    yhat = np.asarray(yhat, float).ravel()
    if w is None:
        w = np.ones_like(y)
    w = np.asarray(w, float).ravel()
    wsum = np.sum(w)
    if wsum == 0:
        return np.nan
    ybar = np.sum(w * y) / wsum
    ss_res = np.sum(w * (y - yhat) ** 2)
    ss_tot = np.sum(w * (y - ybar) ** 2)
    return 1.0 - ss_res / ss_tot if ss_tot > 0 else np.nan


def _scalar_params(model):
    return {k: float(v) for k, v in model.params().items() if np.isscalar(v)}


# Grouped fitting
def fit_groups(df, values_col, index_col, coord_cols, model="variogram", nlags=20, maxlag=None,
               distance="euclidean", estimator="matheron", algorithm="ball", algo=None, progress=True,
               **overrides):
    """
    Fit an empirical variogram per group in `index_col`.

    Parameters
    ----------
    df : pandas.DataFrame
        Input table containing values, group ids and coordinate columns.
    values_col : str
        Column name for the target values.
    index_col : str
        Column name whose values define groups.
    coord_cols : list[str]
        Coordinate columns; ``[lat, lon]`` in degrees for 'geographic'/'geodesic' distances.
    model : model class, str or list, default 'variogram'
        Candidates passed to :func:`fit`.
    nlags, maxlag, distance, estimator, algorithm :
        Passed to :func:`VarioTransioFit.empirical.empirical_variogram`.
    algo, **overrides :
        Passed to :func:`fit`.
    progress : bool, default True
        Show a tqdm progress bar over groups.

    Returns
    -------
    summary : DataFrame
        One row per group with n_samples, mean, std, n_bins, model, residual, r2_wls, r2_ols and
        the fitted scalar parameters.
    results : dict
        {group_id: (empirical variogram, fitted model, residual)}

    Notes
    -----
    Groups with fewer than two samples, or without any pair of samples within the maximum lag, are
    skipped.
    """
    results = {}
    summary_rows = []
    param_keys = []
    wls = _resolve_algo(algo)

    gb = df.groupby(index_col, sort=False)
    for gid, gdf in tqdm(gb, total=gb.ngroups, desc="Fitting groups", disable=not progress):
        vals = gdf[values_col].to_numpy(dtype=float)
        if len(vals) < 2:
            logger.info("skipping group %r with %d sample(s)", gid, len(vals))
            continue
        coords = gdf[list(coord_cols)].to_numpy(dtype=float)
        if maxlag is None and not np.any(np.ptp(coords, axis=0) > 0):
            logger.info("skipping group %r: all coordinates coincide", gid)
            continue

        g = empirical_variogram(coords, vals, nlags=nlags, maxlag=maxlag, distance=distance,
                                estimator=estimator, algorithm=algorithm)
        if not np.any(g.counts > 0):
            logger.info("skipping group %r: no pairs within the maximum lag", gid)
            continue
        fitted, residual = fit(model, g, algo=wls, **overrides)
        results[gid] = (g, fitted, residual)

        x, n, y = _usable_bins(g)
        yhat = fitted(x)
        params = _scalar_params(fitted)
        for k in params:
            if k not in param_keys:
                param_keys.append(k)

        summary_rows.append({
            "values_index": gid,
            "n_samples": int(len(vals)),
            "mean": float(np.nanmean(vals)),
            "std": float(np.nanstd(vals, ddof=1)),
            "n_bins": int(x.size),
            "model": type(fitted).__name__,
            "residual": float(residual),
            "r2_wls": float(r2_score_weighted(y, yhat, w=wls.weights(x, n))),
            "r2_ols": float(r2_score_weighted(y, yhat, w=None)),
            **params,
        })

    columns = ["values_index", "n_samples", "mean", "std", "n_bins", "model", "residual", "r2_wls", "r2_ols"]
    summary = pd.DataFrame(summary_rows, columns=columns + param_keys)
    return summary, results
