"""
Step 1: Matrix Preparation

Builds the datasets the evaluation runs on:
- Standardized skill matrix (z-score per column)
- Random control (uniform resampling within each column's range)
- Reduced matrix (principal component scores)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from .exceptions import DegenerateColumnError, InsufficientDimensionsError


def _frozen(values: np.ndarray) -> np.ndarray:
    arr = np.array(values, dtype=float, copy=True)
    arr.setflags(write=False)
    return arr


@dataclass
class SkillMatrix:
    """Occupations (rows) by skills (columns) with numeric scores."""

    values: np.ndarray
    occupations: List[str]
    skills: List[str]

    def __post_init__(self):
        self.values = _frozen(self.values)
        self.occupations = [str(o) for o in self.occupations]
        self.skills = [str(s) for s in self.skills]

        if self.values.ndim != 2:
            raise ValueError(f"Skill matrix must be 2-dimensional, got {self.values.ndim}")

        n_rows, n_cols = self.values.shape
        if n_rows != len(self.occupations):
            raise ValueError(
                f"{len(self.occupations)} occupations for {n_rows} rows"
            )
        if n_cols != len(self.skills):
            raise ValueError(f"{len(self.skills)} skills for {n_cols} columns")

        if len(set(self.occupations)) != len(self.occupations):
            raise ValueError("Duplicate occupation identifiers in skill matrix")

        if not np.all(np.isfinite(self.values)):
            missing = int(np.sum(~np.isfinite(self.values)))
            raise ValueError(f"Skill matrix has {missing} missing or non-finite cells")

    @property
    def n_occupations(self) -> int:
        return self.values.shape[0]

    @property
    def n_skills(self) -> int:
        return self.values.shape[1]

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> "SkillMatrix":
        """Build from a DataFrame indexed by occupation code."""
        return cls(
            values=df.to_numpy(dtype=float),
            occupations=df.index.astype(str).tolist(),
            skills=df.columns.astype(str).tolist(),
        )

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            self.values,
            index=pd.Index(self.occupations, name="occupation"),
            columns=self.skills,
        )

    def summary(self) -> Dict[str, Any]:
        return {
            "n_occupations": self.n_occupations,
            "n_skills": self.n_skills,
        }


@dataclass
class StandardizedMatrix(SkillMatrix):
    """
    Skill matrix with zero-mean, unit-variance columns.

    Keeps the column means and scales so the original scores can be
    recovered with ``inverse_transform``.
    """

    means: np.ndarray = field(default=None)
    scales: np.ndarray = field(default=None)

    def __post_init__(self):
        super().__post_init__()
        if self.means is None:
            self.means = np.zeros(self.n_skills)
        if self.scales is None:
            self.scales = np.ones(self.n_skills)
        self.means = _frozen(self.means)
        self.scales = _frozen(self.scales)

    def inverse_transform(self) -> SkillMatrix:
        """Return the matrix on its original scale."""
        return SkillMatrix(
            values=self.values * self.scales + self.means,
            occupations=self.occupations,
            skills=self.skills,
        )


@dataclass
class ReducedMatrix(SkillMatrix):
    """
    Principal component scores of a standardized matrix.

    Variance figures are for reporting only.
    """

    explained_variance_ratio: np.ndarray = field(default=None)
    loadings: Optional[pd.DataFrame] = None

    def __post_init__(self):
        super().__post_init__()
        if self.explained_variance_ratio is None:
            self.explained_variance_ratio = np.zeros(self.n_skills)
        self.explained_variance_ratio = _frozen(self.explained_variance_ratio)

    @property
    def cumulative_variance(self) -> np.ndarray:
        return np.cumsum(self.explained_variance_ratio)

    def variance_table(self) -> pd.DataFrame:
        return pd.DataFrame({
            "component": self.skills,
            "explained_variance_ratio": self.explained_variance_ratio,
            "cumulative_variance": self.cumulative_variance,
        })


def standardize(matrix: SkillMatrix) -> StandardizedMatrix:
    """
    Z-score every column.

    Args:
        matrix: Input skill matrix

    Returns:
        StandardizedMatrix

    Raises:
        DegenerateColumnError: If any column has zero standard deviation
    """
    from sklearn.preprocessing import StandardScaler

    # Same relative bound StandardScaler uses to call a feature constant
    eps = np.finfo(np.float64).eps
    n = matrix.n_occupations
    variances = matrix.values.var(axis=0)
    bounds = n * eps * variances + (n * matrix.values.mean(axis=0) * eps) ** 2
    degenerate = [
        skill for skill, var, bound in zip(matrix.skills, variances, bounds)
        if var <= bound
    ]
    if degenerate:
        raise DegenerateColumnError(degenerate)

    scaler = StandardScaler()
    scaled = scaler.fit_transform(matrix.values)

    return StandardizedMatrix(
        values=scaled,
        occupations=matrix.occupations,
        skills=matrix.skills,
        means=scaler.mean_,
        scales=scaler.scale_,
    )


def reduce(matrix: SkillMatrix, p: int = 5) -> ReducedMatrix:
    """
    Project onto the first ``p`` principal components.

    Args:
        matrix: Usually a StandardizedMatrix
        p: Number of components to keep

    Returns:
        ReducedMatrix with components in descending explained variance

    Raises:
        InsufficientDimensionsError: If p exceeds the available dimensions
    """
    from sklearn.decomposition import PCA

    if p < 1:
        raise ValueError(f"Number of components must be positive, got {p}")

    if p > matrix.n_skills:
        raise InsufficientDimensionsError(p, matrix.n_skills)
    if p > matrix.n_occupations:
        raise InsufficientDimensionsError(p, matrix.n_occupations)

    pca = PCA(n_components=p, svd_solver="full")
    scores = pca.fit_transform(matrix.values)

    components = [f"PC{i + 1}" for i in range(p)]
    loadings = pd.DataFrame(
        pca.components_.T,
        index=matrix.skills,
        columns=components,
    )

    return ReducedMatrix(
        values=scores,
        occupations=matrix.occupations,
        skills=components,
        explained_variance_ratio=pca.explained_variance_ratio_,
        loadings=loadings,
    )


def randomize(matrix: SkillMatrix, rng: np.random.Generator) -> StandardizedMatrix:
    """
    Build a structureless control dataset.

    Each cell is drawn uniformly from its column's observed [min, max], so
    marginal ranges survive but joint structure does not.

    Args:
        matrix: Source matrix
        rng: Seeded generator

    Returns:
        Standardized random control
    """
    lows = matrix.values.min(axis=0)
    highs = matrix.values.max(axis=0)

    random_values = rng.uniform(lows, highs, size=matrix.values.shape)

    control = SkillMatrix(
        values=random_values,
        occupations=matrix.occupations,
        skills=matrix.skills,
    )
    return standardize(control)
