"""
Step 3: Distance Engine

Pairwise dissimilarity matrices over occupations.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union

import numpy as np
import pandas as pd
from scipy.spatial.distance import pdist, squareform

from .matrix import SkillMatrix


class DistanceMetric(str, Enum):
    """Supported dissimilarity metrics."""

    EUCLIDEAN = "euclidean"
    MANHATTAN = "manhattan"

    @property
    def scipy_name(self) -> str:
        return "cityblock" if self is DistanceMetric.MANHATTAN else "euclidean"

    @classmethod
    def parse(cls, metric: Union[str, "DistanceMetric"]) -> "DistanceMetric":
        if isinstance(metric, cls):
            return metric
        try:
            return cls(str(metric).lower())
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise ValueError(f"Unknown metric: {metric}. Use one of: {valid}")


@dataclass(frozen=True)
class DissimilarityMatrix:
    """Symmetric N x N dissimilarities with an exact-zero diagonal."""

    values: np.ndarray
    occupations: List[str]
    metric: DistanceMetric
    dataset: Optional[str] = None

    @property
    def n(self) -> int:
        return self.values.shape[0]

    def condensed(self) -> np.ndarray:
        """Upper triangle in SciPy's condensed form."""
        return squareform(self.values, checks=False)

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(self.values, index=self.occupations, columns=self.occupations)


def pairwise_distance(
    matrix: SkillMatrix,
    metric: Union[str, DistanceMetric] = DistanceMetric.EUCLIDEAN,
    dataset: Optional[str] = None,
) -> DissimilarityMatrix:
    """
    Compute all pairwise dissimilarities.

    Args:
        matrix: Prepared dataset
        metric: "euclidean" or "manhattan"
        dataset: Name of the source dataset, kept for reporting

    Returns:
        DissimilarityMatrix
    """
    metric = DistanceMetric.parse(metric)

    condensed = pdist(matrix.values, metric=metric.scipy_name)
    square = squareform(condensed)
    square.setflags(write=False)

    return DissimilarityMatrix(
        values=square,
        occupations=list(matrix.occupations),
        metric=metric,
        dataset=dataset,
    )
