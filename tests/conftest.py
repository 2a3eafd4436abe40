"""
Shared fixtures: seeded synthetic skill matrices.
"""

import numpy as np
import pytest

from src.occupation_clusters import SkillMatrix


def make_matrix(values: np.ndarray, prefix: str = "skill") -> SkillMatrix:
    """Wrap an array as a SkillMatrix with NOC-style occupation codes."""
    n, m = values.shape
    return SkillMatrix(
        values=values,
        occupations=[f"{i + 1:05d}" for i in range(n)],
        skills=[f"{prefix}_{j}" for j in range(m)],
    )


def make_blobs(n_per_blob: int = 20, n_features: int = 4, spread: float = 0.3, seed: int = 0):
    """Three well-separated Gaussian blobs and their true labels (1..3)."""
    rng = np.random.default_rng(seed)
    centers = np.array([
        [0.0] * n_features,
        [10.0] + [0.0] * (n_features - 1),
        [0.0, 10.0] + [0.0] * (n_features - 2),
    ])
    values = np.vstack([
        center + rng.normal(0, spread, size=(n_per_blob, n_features))
        for center in centers
    ])
    truth = np.repeat([1, 2, 3], n_per_blob)
    return values, truth


@pytest.fixture
def blobs():
    """(SkillMatrix, true labels) for three separated blobs of 20."""
    values, truth = make_blobs()
    return make_matrix(values), truth


@pytest.fixture
def blobs_matrix(blobs):
    return blobs[0]


@pytest.fixture
def skill_matrix():
    """A small matrix of raw skill scores on a 1-5 scale."""
    rng = np.random.default_rng(7)
    values = rng.uniform(1, 5, size=(30, 6)).round(2)
    return make_matrix(values)


@pytest.fixture
def uniform_matrix():
    """Structureless points in the unit square."""
    rng = np.random.default_rng(11)
    return make_matrix(rng.uniform(0, 1, size=(1000, 2)))


@pytest.fixture
def large_blobs_matrix():
    """Three separated blobs of 200, for sampling at several sizes."""
    values, _ = make_blobs(n_per_blob=200, seed=1)
    return make_matrix(values)
