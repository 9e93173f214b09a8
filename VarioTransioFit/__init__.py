"""
VarioTransioFit
---------------
Empirical variograms and transiograms (full or ball search, Matheron, Cressie and Carle estimators),
directional and planar estimates, anisotropy sweeps, and constrained weighted least-squares fitting
of theoretical models.
"""

# ---------------------------------------------------------------------
# Version (written by setuptools-scm to _version.py at build/install time)
# ---------------------------------------------------------------------
try:
    from ._version import version as __version__  # created by setuptools-scm
except ImportError:  # pragma: no cover
    __version__ = "0.0.0"

__all__ = ["__version__"]

# ---------------------------------------------------------------------
# Utilities (distances, units, weights)
# ---------------------------------------------------------------------
from .utils import (
    Chebyshev,
    CustomDistance,
    Euclidean,
    Geodesic,
    Haversine,
    Manhattan,
    Minkowski,
    compute_distance_weights,
    convert_length,
    get_distance,
)

__all__ += [
    "Euclidean", "Minkowski", "Manhattan", "Chebyshev", "Haversine", "Geodesic", "CustomDistance",
    "get_distance", "convert_length", "compute_distance_weights",
]

# ---------------------------------------------------------------------
# Estimators & search strategies
# ---------------------------------------------------------------------
from .estimators import ESTIMATORS, CarleEstimator, CressieEstimator, MatheronEstimator, get_estimator
from .search import BallSearchAccum, FullSearchAccum, estimalgo
from .accumulate import accumulate

__all__ += [
    "ESTIMATORS", "MatheronEstimator", "CressieEstimator", "CarleEstimator", "get_estimator",
    "FullSearchAccum", "BallSearchAccum", "estimalgo", "accumulate",
]

# ---------------------------------------------------------------------
# Empirical functions
# ---------------------------------------------------------------------
from .empirical import (
    EmpiricalTransiogram,
    EmpiricalVariogram,
    directional_transiogram,
    directional_variogram,
    empirical_transiogram,
    empirical_variogram,
    merge,
    merge_all,
    partition_transiogram,
    partition_variogram,
    planar_transiogram,
    planar_variogram,
)
from .partitions import direction_partition, plane_partition
from .planes import EmpiricalTransioplane, EmpiricalVarioplane, empirical_transioplane, empirical_varioplane
from .matrices import countmatrix, probmatrix, ratematrix

__all__ += [
    "EmpiricalVariogram", "EmpiricalTransiogram", "empirical_variogram", "empirical_transiogram",
    "partition_variogram", "partition_transiogram", "directional_variogram", "directional_transiogram",
    "planar_variogram", "planar_transiogram", "merge", "merge_all",
    "direction_partition", "plane_partition",
    "EmpiricalVarioplane", "EmpiricalTransioplane", "empirical_varioplane", "empirical_transioplane",
    "countmatrix", "probmatrix", "ratematrix",
]

# ---------------------------------------------------------------------
# Theoretical models
# ---------------------------------------------------------------------
from .models import (
    COVARIANCE_MODELS,
    TRANSIOGRAM_MODELS,
    VARIOGRAM_MODELS,
    CarleTransiogram,
    CircularCovariance,
    CircularVariogram,
    CompositeFunction,
    CubicCovariance,
    CubicVariogram,
    ExponentialCovariance,
    ExponentialTransiogram,
    ExponentialVariogram,
    GaussianCovariance,
    GaussianTransiogram,
    GaussianVariogram,
    LinearTransiogram,
    MaternCovariance,
    MaternVariogram,
    MatrixExponentialTransiogram,
    MetricBall,
    NuggetEffect,
    PentaSphericalCovariance,
    PentaSphericalVariogram,
    PiecewiseLinearTransiogram,
    PowerVariogram,
    SineHoleCovariance,
    SineHoleVariogram,
    SphericalCovariance,
    SphericalTransiogram,
    SphericalVariogram,
    baseratematrix,
    structures,
)

__all__ += [
    "VARIOGRAM_MODELS", "TRANSIOGRAM_MODELS", "COVARIANCE_MODELS", "MetricBall", "CompositeFunction",
    "GaussianVariogram", "ExponentialVariogram", "SphericalVariogram", "CubicVariogram",
    "PentaSphericalVariogram", "SineHoleVariogram", "CircularVariogram", "MaternVariogram",
    "PowerVariogram", "NuggetEffect",
    "GaussianCovariance", "ExponentialCovariance", "SphericalCovariance", "CubicCovariance",
    "PentaSphericalCovariance", "SineHoleCovariance", "CircularCovariance", "MaternCovariance",
    "LinearTransiogram", "SphericalTransiogram", "GaussianTransiogram", "ExponentialTransiogram",
    "MatrixExponentialTransiogram", "PiecewiseLinearTransiogram", "CarleTransiogram", "baseratematrix", "structures",
]

# ---------------------------------------------------------------------
# Fitting
# ---------------------------------------------------------------------
from .fitting import WeightedLeastSquares, fit, fit_groups, r2_score_weighted

__all__ += ["WeightedLeastSquares", "fit", "fit_groups", "r2_score_weighted"]
