"""Pytest configuration and fixtures for VarioTransioFit tests."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def rng() -> np.random.Generator:
    """Seeded random generator."""
    return np.random.default_rng(42)


@pytest.fixture
def triangle_coords() -> np.ndarray:
    """Three unit points on the coordinate axes, pairwise distance sqrt(2)."""
    return np.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]])


@pytest.fixture
def field_2d(rng: np.random.Generator) -> tuple[np.ndarray, pd.DataFrame]:
    """Random 2D point cloud with two correlated continuous variables."""
    coords = rng.uniform(0.0, 10.0, size=(120, 2))
    z = np.sin(coords[:, 0]) + 0.5 * np.cos(coords[:, 1]) + 0.1 * rng.standard_normal(120)
    w = 2.0 * z + 0.2 * rng.standard_normal(120)
    return coords, pd.DataFrame({"z": z, "w": w})


@pytest.fixture
def field_3d(rng: np.random.Generator) -> tuple[np.ndarray, pd.DataFrame]:
    """Random 3D point cloud with one continuous variable."""
    coords = rng.uniform(0.0, 5.0, size=(80, 3))
    z = coords[:, 0] + rng.standard_normal(80)
    return coords, pd.DataFrame({"z": z})


@pytest.fixture
def facies_2d(rng: np.random.Generator) -> tuple[np.ndarray, pd.DataFrame]:
    """Random 2D point cloud with a categorical variable of three facies."""
    coords = rng.uniform(0.0, 10.0, size=(100, 2))
    facies = np.where(coords[:, 0] < 3.0, "sand", np.where(coords[:, 0] < 7.0, "clay", "gravel"))
    return coords, pd.DataFrame({"facies": facies})


@pytest.fixture
def borehole() -> tuple[np.ndarray, pd.DataFrame]:
    """Vertical trajectory sampled every metre with alternating facies."""
    z = np.arange(12, dtype=float)
    coords = np.column_stack([np.zeros(12), np.zeros(12), z])
    facies = ["a", "a", "a", "b", "b", "a", "a", "c", "c", "c", "b", "a"]
    return coords, pd.DataFrame({"facies": facies})
