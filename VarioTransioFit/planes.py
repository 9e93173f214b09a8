"""
Anisotropy sweeps: directional variograms (transiograms) for a fan of angles inside a plane,
used to inspect direction-dependent correlation structure.
"""

import logging

import numpy as np

from VarioTransioFit.empirical import partition_transiogram, partition_variogram
from VarioTransioFit.partitions import direction_partition, plane_partition
from VarioTransioFit.utils import default_maxlag, householder_basis, parallel_map

logger = logging.getLogger(__name__)


class EmpiricalPlane:
    """
    Per-angle empirical functions sharing a common lag axis.

    Attributes
    ----------
    angles : ndarray, shape (nangs,)
        Sampled angles in radians, measured from the first basis vector of the plane.
    abscissas : ndarray, shape (nlags,)
        Lag axis, taken from the first angle.
    ordinates : ndarray, shape (nangs, ..., nlags)
        Ordinates of every angle.
    counts : ndarray, shape (nangs, nlags)
    functions : tuple
        The per-angle empirical functions.
    """

    def __init__(self, angles, functions):
        functions = tuple(functions)
        if len(functions) != len(angles) or not functions:
            raise ValueError("one empirical function per angle is required")
        self.angles = np.array(angles, float)
        self.functions = functions
        self.abscissas = functions[0].abscissas
        self.ordinates = np.stack([f.ordinates for f in functions])
        self.counts = np.stack([f.counts for f in functions])
        for a in (self.angles, self.ordinates, self.counts):
            a.setflags(write=False)

    @property
    def nangs(self):
        return self.angles.shape[0]

    def __repr__(self):
        return f"{type(self).__name__}(nangs={self.nangs}, nlags={self.abscissas.shape[0]})"


class EmpiricalVarioplane(EmpiricalPlane):
    """Variograms over the half circle [0, π]."""


class EmpiricalTransioplane(EmpiricalPlane):
    """Transiograms over the full circle [0, 2π]."""

    @property
    def levels(self):
        return self.functions[0].levels


def _sweep_setup(coordinates, normal, nangs, ptol, seed):
    coords = np.asarray(coordinates, float)
    if coords.ndim != 2 or coords.shape[1] not in (2, 3):
        raise ValueError("anisotropy sweeps require 2D or 3D coordinates")
    if int(nangs) != nangs or nangs <= 1:
        raise ValueError("number of angles must be greater than one")
    if coords.shape[1] == 3:
        slabs = plane_partition(coords, normal, tol=ptol, seed=seed)
        u, v = householder_basis(normal)
    else:
        slabs = [np.arange(coords.shape[0])]
        u, v = np.array([1.0, 0.0]), np.array([0.0, 1.0])
    return coords, slabs, u, v


def _band_subsets(coords, slabs, direction, dtol, seed):
    subsets = []
    for slab in slabs:
        if slab.size < 2:
            continue
        for band in direction_partition(coords[slab], direction, tol=dtol, seed=seed):
            subsets.append(slab[band])
    return subsets


def empirical_varioplane(coordinates, data, var1=None, var2=None, normal=(0.0, 0.0, 1.0), nangs=50, ptol=0.5,
                         dtol=0.5, seed=123, nlags=20, maxlag=None, distance="euclidean", estimator="matheron",
                         algorithm="ball", unit=None, value_unit=None, n_jobs=None, progress=False):
    """
    Directional variograms for ``nangs`` angles in [0, π] inside the plane orthogonal to ``normal``.

    2D data use the whole set with the canonical basis. 3D data are split into slabs of thickness
    tolerance ``ptol`` along ``normal``; directions are expressed in a Householder basis of the
    plane. For every angle, each slab is cut into direction bands (tolerance ``dtol``) and all
    bands are accumulated and merged.

    Parameters
    ----------
    coordinates : array_like, shape (n, 2) or (n, 3)
    data, var1, var2 :
        As in :func:`VarioTransioFit.empirical.empirical_variogram`.
    normal : sequence of float, default (0, 0, 1)
        Plane normal (3D only).
    nangs : int, default 50
        Number of angles (> 1).
    ptol, dtol : float, default 0.5
        Slab and band tolerances.
    seed : int, default 123
        Seed of the partition ordering.
    nlags, maxlag, distance, estimator, algorithm, unit, value_unit :
        Passed to the accumulation of every angle. ``maxlag`` defaults to one tenth of the
        smallest side of the bounding box of all samples.
    n_jobs : int, optional
        Number of threads used across angles.
    progress : bool, default False
        Show a tqdm progress bar.

    Returns
    -------
    EmpiricalVarioplane
    """
    coords, slabs, u, v = _sweep_setup(coordinates, normal, nangs, ptol, seed)
    if maxlag is None:
        maxlag = default_maxlag(coords, 0.1)
    angles = np.linspace(0.0, np.pi, int(nangs))

    def at_angle(theta):
        direction = np.cos(theta) * u + np.sin(theta) * v
        subsets = _band_subsets(coords, slabs, direction, dtol, seed)
        return partition_variogram(coordinates, data, subsets, var1, var2, nlags=nlags, maxlag=maxlag,
                                   distance=distance, estimator=estimator, algorithm=algorithm, unit=unit,
                                   value_unit=value_unit)

    logger.debug("varioplane sweep over %d angles and %d slabs", len(angles), len(slabs))
    functions = parallel_map(at_angle, angles, n_jobs=n_jobs, progress=progress, desc="Computing varioplane")
    return EmpiricalVarioplane(angles, functions)


def empirical_transioplane(coordinates, data, var=None, normal=(0.0, 0.0, 1.0), nangs=50, ptol=0.5, dtol=0.5,
                           seed=123, nlags=20, maxlag=None, distance="euclidean", estimator="carle",
                           algorithm="ball", levels=None, unit=None, n_jobs=None, progress=False):
    """
    Directional transiograms for ``nangs`` angles in [0, 2π]; see :func:`empirical_varioplane`.

    ``maxlag`` defaults to half the smallest side of the bounding box.
    """
    coords, slabs, u, v = _sweep_setup(coordinates, normal, nangs, ptol, seed)
    if maxlag is None:
        maxlag = default_maxlag(coords, 0.5)
    angles = np.linspace(0.0, 2 * np.pi, int(nangs))

    def at_angle(theta):
        direction = np.cos(theta) * u + np.sin(theta) * v
        subsets = _band_subsets(coords, slabs, direction, dtol, seed)
        return partition_transiogram(coordinates, data, subsets, var, nlags=nlags, maxlag=maxlag,
                                     distance=distance, estimator=estimator, algorithm=algorithm,
                                     levels=levels, unit=unit)

    logger.debug("transioplane sweep over %d angles and %d slabs", len(angles), len(slabs))
    functions = parallel_map(at_angle, angles, n_jobs=n_jobs, progress=progress, desc="Computing transioplane")
    return EmpiricalTransioplane(angles, functions)
