"""
Step 5: Cluster Builder

Runs one clustering algorithm and computes per-occupation silhouette widths
and nearest neighbouring clusters.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .algorithms import ClusteringAlgorithm, get_strategy
from .distance import DissimilarityMatrix, DistanceMetric, pairwise_distance
from .exceptions import ConvergenceError
from .matrix import SkillMatrix
from .random_state import DEFAULT_SEED, branch_rng


@dataclass
class ClusteringConfig:
    """Algorithm parameters shared by every build."""

    # Linkage for agglomerative clustering ("ward" is minimum variance)
    linkage: str = "ward"

    # K-means random starts
    n_init: int = 10

    # Iteration cap for k-means and k-medoids
    max_iter: int = 100

    # Run-level seed
    seed: int = DEFAULT_SEED

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClusteringConfig":
        return cls(**data)


@dataclass
class ClusteringResult:
    """One clustering of the occupations into labels 1..k."""

    occupations: List[str]
    labels: np.ndarray
    nearest_other_clusters: np.ndarray
    silhouette_widths: np.ndarray
    k: int
    algorithm: ClusteringAlgorithm
    metric: DistanceMetric
    dataset: Optional[str] = None
    converged: bool = True

    # Cluster sizes, filled in from labels
    cluster_sizes: Dict[int, int] = field(default_factory=dict)

    def __post_init__(self):
        for name in ("labels", "nearest_other_clusters", "silhouette_widths"):
            arr = np.array(getattr(self, name), copy=True)
            arr.setflags(write=False)
            setattr(self, name, arr)

        if len(self.labels) != len(self.occupations):
            raise ValueError("Every occupation needs exactly one label")

        if not self.cluster_sizes:
            self.cluster_sizes = {
                label: int(np.sum(self.labels == label))
                for label in range(1, self.k + 1)
            }

    @property
    def n_nonempty_clusters(self) -> int:
        return sum(1 for size in self.cluster_sizes.values() if size > 0)

    @property
    def is_complete(self) -> bool:
        """True when all k labels are used."""
        return self.n_nonempty_clusters == self.k

    @property
    def average_silhouette(self) -> float:
        return float(np.mean(self.silhouette_widths))

    def assignment(self) -> Dict[str, int]:
        """Occupation id -> cluster label."""
        return {occ: int(label) for occ, label in zip(self.occupations, self.labels)}

    def get_cluster_ids(self, cluster_label: int) -> List[str]:
        """Occupation ids in one cluster."""
        return [
            occ for occ, label in zip(self.occupations, self.labels)
            if label == cluster_label
        ]

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame({
            "occupation": self.occupations,
            "cluster": self.labels,
            "neighbor": self.nearest_other_clusters,
            "silhouette_width": self.silhouette_widths,
        })

    def to_dict(self) -> Dict[str, Any]:
        return {
            "algorithm": self.algorithm.value,
            "metric": self.metric.value,
            "dataset": self.dataset,
            "k": self.k,
            "converged": self.converged,
            "n_nonempty_clusters": self.n_nonempty_clusters,
            "average_silhouette": round(self.average_silhouette, 4),
            "cluster_sizes": self.cluster_sizes,
        }


def renumber_labels(labels: np.ndarray) -> np.ndarray:
    """Map arbitrary labels to 1..m in order of first appearance."""
    mapping: Dict[Any, int] = {}
    renumbered = np.empty(len(labels), dtype=int)
    for i, label in enumerate(labels):
        if label not in mapping:
            mapping[label] = len(mapping) + 1
        renumbered[i] = mapping[label]
    return renumbered


def silhouette_widths(
    dissimilarity: DissimilarityMatrix,
    labels: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Per-occupation silhouette widths.

    a_i is the mean dissimilarity to the rest of i's cluster (0 for a
    singleton). b_i is the smallest mean dissimilarity to another cluster,
    whose label is returned as the neighbour.

    Args:
        dissimilarity: Pairwise dissimilarities
        labels: Cluster label per row

    Returns:
        Tuple of (silhouette widths, nearest other cluster labels)
    """
    labels = np.asarray(labels)
    dist = dissimilarity.values
    n = len(labels)

    clusters = np.unique(labels)
    if len(clusters) < 2:
        raise ValueError("Silhouette widths need at least two non-empty clusters")

    sizes = np.array([np.sum(labels == c) for c in clusters])
    sums = np.column_stack([dist[:, labels == c].sum(axis=1) for c in clusters])

    rows = np.arange(n)
    own = np.searchsorted(clusters, labels)
    own_sizes = sizes[own]

    a = np.where(
        own_sizes > 1,
        sums[rows, own] / np.maximum(own_sizes - 1, 1),
        0.0,
    )

    means = sums / sizes[None, :]
    means[rows, own] = np.inf
    nearest = np.argmin(means, axis=1)
    b = means[rows, nearest]

    denom = np.maximum(a, b)
    with np.errstate(invalid="ignore", divide="ignore"):
        widths = np.where(denom > 0, (b - a) / denom, 0.0)

    return widths, clusters[nearest]


class ClusterBuilder:
    """
    Build a final clustering for one (algorithm, metric, k).
    """

    def __init__(
        self,
        config: Optional[ClusteringConfig] = None,
        show_progress: bool = False,
    ):
        """
        Initialize builder.

        Args:
            config: ClusteringConfig with algorithm parameters
            show_progress: Print a line per build
        """
        self.config = config or ClusteringConfig()
        self.show_progress = show_progress

    def build(
        self,
        matrix: SkillMatrix,
        algorithm: Union[str, ClusteringAlgorithm],
        metric: Union[str, DistanceMetric],
        k: int,
        dataset: Optional[str] = None,
        dissimilarity: Optional[DissimilarityMatrix] = None,
        rng: Optional[np.random.Generator] = None,
        accept_unconverged: bool = False,
    ) -> ClusteringResult:
        """
        Cluster the matrix and compute silhouettes.

        Args:
            matrix: Prepared dataset
            algorithm: One of ClusteringAlgorithm
            metric: One of DistanceMetric
            k: Number of clusters (2 <= k <= n_occupations)
            dataset: Dataset name for reporting and seeding
            dissimilarity: Precomputed dissimilarities for the same metric
            rng: Generator for stochastic algorithms; derived from the config
                 seed and the branch identity if None
            accept_unconverged: Return the last state instead of raising
                 when an iteration cap is hit

        Returns:
            ClusteringResult

        Raises:
            ConvergenceError: If k-means/k-medoids did not stabilize and
                 accept_unconverged is False
        """
        algorithm = ClusteringAlgorithm.parse(algorithm)
        metric = DistanceMetric.parse(metric)

        if not 2 <= k <= matrix.n_occupations:
            raise ValueError(
                f"k must be between 2 and {matrix.n_occupations}, got {k}"
            )

        if dissimilarity is None:
            dissimilarity = pairwise_distance(matrix, metric, dataset=dataset)
        elif dissimilarity.metric != metric:
            raise ValueError(
                f"Dissimilarity metric {dissimilarity.metric.value} does not match {metric.value}"
            )

        if rng is None:
            rng = branch_rng(self.config.seed, dataset, metric, algorithm, k)

        strategy = get_strategy(
            algorithm,
            linkage=self.config.linkage,
            n_init=self.config.n_init,
            max_iter=self.config.max_iter,
        )

        converged = True
        error: Optional[ConvergenceError] = None
        try:
            raw_labels = strategy.fit_labels(matrix.values, dissimilarity, k, rng)
        except ConvergenceError as e:
            raw_labels = e.labels
            converged = False
            error = e

        labels = renumber_labels(raw_labels)
        widths, neighbors = silhouette_widths(dissimilarity, labels)

        result = ClusteringResult(
            occupations=list(matrix.occupations),
            labels=labels,
            nearest_other_clusters=neighbors,
            silhouette_widths=widths,
            k=k,
            algorithm=algorithm,
            metric=metric,
            dataset=dataset,
            converged=converged,
        )

        if self.show_progress:
            print(
                f"  {algorithm.value} k={k} ({metric.value}): "
                f"silhouette={result.average_silhouette:.4f}"
                + ("" if converged else " [not converged]")
            )

        if error is not None and not accept_unconverged:
            error.result = result
            raise error

        return result
