"""
Step 4: Internal Validity Evaluation

Sweeps algorithms and cluster counts on a dataset, scoring every run with
three internal validity indices:
- Connectivity (lower is better)
- Dunn index (higher is better)
- Average silhouette width (higher is better)

The optimal table keeps every tied combination.
"""

import warnings
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .algorithms import ClusteringAlgorithm
from .builder import ClusterBuilder, ClusteringConfig
from .distance import DissimilarityMatrix, DistanceMetric, pairwise_distance
from .exceptions import EmptyClusterWarning
from .matrix import SkillMatrix
from .random_state import branch_rng


class ValidityIndex(str, Enum):
    """Internal validity indices."""

    CONNECTIVITY = "connectivity"
    DUNN = "dunn"
    SILHOUETTE = "silhouette"

    @property
    def higher_is_better(self) -> bool:
        return self is not ValidityIndex.CONNECTIVITY


@dataclass
class EvaluationConfig:
    """Configuration for the validity sweep."""

    algorithms: List[str] = field(default_factory=lambda: [
        a.value for a in ClusteringAlgorithm
    ])

    # Cluster counts, inclusive
    k_min: int = 2
    k_max: int = 20

    # Neighbours considered by the connectivity index
    n_neighbors: int = 10

    # Parallel (algorithm, k) branches; 1 runs sequentially
    max_workers: int = 1

    @property
    def k_range(self) -> range:
        return range(self.k_min, self.k_max + 1)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ValidityScore:
    """One index value for one (dataset, algorithm, metric, k)."""

    dataset: str
    algorithm: str
    metric: str
    k: int
    index: str
    score: float
    is_optimal: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class EvaluationFailure:
    """A combination that was skipped because its run failed."""

    dataset: str
    algorithm: str
    metric: str
    k: int
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def connectivity(
    dissimilarity: DissimilarityMatrix,
    labels: np.ndarray,
    n_neighbors: int = 10,
) -> float:
    """
    Connectivity index.

    For every occupation, each of its L nearest neighbours in a different
    cluster adds 1/rank. Ties in distance are ranked by row order.
    """
    labels = np.asarray(labels)
    n = len(labels)
    n_neighbors = min(n_neighbors, n - 1)
    if n_neighbors < 1:
        return 0.0

    dist = np.array(dissimilarity.values, dtype=float, copy=True)
    np.fill_diagonal(dist, np.inf)
    neighbors = np.argsort(dist, axis=1, kind="stable")[:, :n_neighbors]

    split = labels[neighbors] != labels[:, None]
    weights = 1.0 / np.arange(1, n_neighbors + 1)

    return float((split * weights[None, :]).sum())


def dunn_index(
    dissimilarity: DissimilarityMatrix,
    labels: np.ndarray,
    k: Optional[int] = None,
) -> float:
    """
    Dunn index: minimum inter-cluster distance over maximum cluster diameter.

    Singleton and empty clusters have no diameter. They are left out of the
    maximum (with an EmptyClusterWarning) instead of failing the index. NaN
    when fewer than two clusters exist or no cluster has a positive diameter.
    """
    labels = np.asarray(labels)
    dist = dissimilarity.values
    clusters = np.unique(labels)

    n_empty = (k - len(clusters)) if k is not None else 0
    members = [np.flatnonzero(labels == c) for c in clusters]
    n_singletons = sum(1 for idx in members if len(idx) == 1)

    if n_empty > 0 or n_singletons > 0:
        warnings.warn(
            f"{n_empty} empty and {n_singletons} singleton cluster(s) "
            "excluded from the Dunn diameter",
            EmptyClusterWarning,
            stacklevel=2,
        )

    if len(clusters) < 2:
        return float("nan")

    diameters = [
        dist[np.ix_(idx, idx)].max() for idx in members if len(idx) > 1
    ]
    max_diameter = max(diameters, default=0.0)
    if max_diameter <= 0:
        return float("nan")

    min_separation = min(
        dist[np.ix_(members[i], members[j])].min()
        for i in range(len(members))
        for j in range(i + 1, len(members))
    )

    return float(min_separation / max_diameter)


class ValidityReport:
    """
    Ordered collection of validity scores with the skipped combinations.
    """

    def __init__(
        self,
        scores: Sequence[ValidityScore],
        failures: Optional[Sequence[EvaluationFailure]] = None,
    ):
        self.scores = _mark_optimal(list(scores))
        self.failures = list(failures or [])

    def __iter__(self) -> Iterator[ValidityScore]:
        return iter(self.scores)

    def __len__(self) -> int:
        return len(self.scores)

    def __getitem__(self, item):
        return self.scores[item]

    def optimal_scores(self) -> List[ValidityScore]:
        """Every optimal score, ties included."""
        return [s for s in self.scores if s.is_optimal]

    def get_score(
        self,
        algorithm: str,
        k: int,
        index: str,
        dataset: Optional[str] = None,
        metric: Optional[str] = None,
    ) -> Optional[float]:
        algorithm = ClusteringAlgorithm.parse(algorithm).value
        index = ValidityIndex(index).value
        for s in self.scores:
            if (
                s.algorithm == algorithm and s.k == k and s.index == index
                and (dataset is None or s.dataset == dataset)
                and (metric is None or s.metric == metric)
            ):
                return s.score
        return None

    def to_dataframe(self) -> pd.DataFrame:
        columns = ["dataset", "algorithm", "metric", "k", "index", "score", "is_optimal"]
        return pd.DataFrame([s.to_dict() for s in self.scores], columns=columns)

    def optimal_table(self) -> pd.DataFrame:
        """Optimal (algorithm, k) per index, per (dataset, metric)."""
        df = self.to_dataframe()
        df = df[df["is_optimal"]].drop(columns=["is_optimal"])
        return df.sort_values(["dataset", "metric", "index", "algorithm", "k"]).reset_index(drop=True)

    def failures_dataframe(self) -> pd.DataFrame:
        columns = ["dataset", "algorithm", "metric", "k", "error"]
        return pd.DataFrame([f.to_dict() for f in self.failures], columns=columns)

    def merge(self, other: "ValidityReport") -> "ValidityReport":
        return ValidityReport(self.scores + other.scores, self.failures + other.failures)

    def print_report(self) -> str:
        """Human-readable optimal table."""
        lines = [
            "=" * 60,
            "OPTIMAL VALIDITY SCORES",
            "=" * 60,
        ]

        table = self.optimal_table()
        for (dataset, metric), group in table.groupby(["dataset", "metric"], sort=True):
            lines.append("")
            lines.append(f"{dataset} / {metric}")
            lines.append("-" * 40)
            for _, row in group.iterrows():
                lines.append(
                    f"  {row['index']:<13} {row['score']:>10.4f}  "
                    f"{row['algorithm']} (k={row['k']})"
                )

        if self.failures:
            lines.append("")
            lines.append(f"SKIPPED COMBINATIONS: {len(self.failures)}")
            for f in self.failures:
                lines.append(f"  {f.dataset}/{f.metric} {f.algorithm} k={f.k}: {f.error}")

        return "\n".join(lines)


def _mark_optimal(scores: List[ValidityScore]) -> List[ValidityScore]:
    """Flag the best score per (dataset, metric, index), keeping ties."""
    groups: Dict[Tuple[str, str, str], List[int]] = {}
    for i, s in enumerate(scores):
        groups.setdefault((s.dataset, s.metric, s.index), []).append(i)

    marked = list(scores)
    for (_, _, index), positions in groups.items():
        values = np.array([scores[i].score for i in positions], dtype=float)
        finite = ~np.isnan(values)
        if not finite.any():
            continue

        if ValidityIndex(index).higher_is_better:
            best = values[finite].max()
        else:
            best = values[finite].min()

        for i, value, ok in zip(positions, values, finite):
            is_best = bool(ok and np.isclose(value, best, rtol=1e-12, atol=1e-12))
            if is_best != scores[i].is_optimal:
                marked[i] = ValidityScore(**{**scores[i].to_dict(), "is_optimal": is_best})

    return marked


class ValidityEvaluator:
    """
    Score clustering algorithms over a range of k on a dataset.
    """

    def __init__(
        self,
        config: Optional[EvaluationConfig] = None,
        clustering_config: Optional[ClusteringConfig] = None,
        show_progress: bool = True,
    ):
        """
        Initialize evaluator.

        Args:
            config: EvaluationConfig (algorithms, k range, neighbours, workers)
            clustering_config: Parameters passed to the ClusterBuilder
            show_progress: Print progress updates
        """
        self.config = config or EvaluationConfig()
        self.clustering_config = clustering_config or ClusteringConfig()
        self.show_progress = show_progress
        self.builder = ClusterBuilder(self.clustering_config)

    def compute_indices(
        self,
        dissimilarity: DissimilarityMatrix,
        labels: np.ndarray,
        silhouettes: np.ndarray,
        k: Optional[int] = None,
    ) -> Dict[ValidityIndex, float]:
        """The three indices for one labelling."""
        return {
            ValidityIndex.CONNECTIVITY: connectivity(
                dissimilarity, labels, self.config.n_neighbors
            ),
            ValidityIndex.DUNN: dunn_index(dissimilarity, labels, k),
            ValidityIndex.SILHOUETTE: float(np.mean(silhouettes)),
        }

    def score(
        self,
        matrix: SkillMatrix,
        algorithm: Union[str, ClusteringAlgorithm],
        metric: Union[str, DistanceMetric],
        k: int,
        dataset: str = "data",
        dissimilarity: Optional[DissimilarityMatrix] = None,
    ) -> Dict[ValidityIndex, float]:
        """
        Build one clustering and compute its three indices.

        The generator is derived from the seed and (dataset, metric,
        algorithm, k), so the same combination always scores the same.

        Raises:
            ConvergenceError: If the algorithm did not stabilize
        """
        algorithm = ClusteringAlgorithm.parse(algorithm)
        metric = DistanceMetric.parse(metric)
        if dissimilarity is None:
            dissimilarity = pairwise_distance(matrix, metric, dataset=dataset)

        rng = branch_rng(self.clustering_config.seed, dataset, metric, algorithm, k)

        result = self.builder.build(
            matrix,
            algorithm,
            metric,
            k,
            dataset=dataset,
            dissimilarity=dissimilarity,
            rng=rng,
        )

        return self.compute_indices(
            dissimilarity, result.labels, result.silhouette_widths, k
        )

    def _run_branch(
        self,
        matrix: SkillMatrix,
        dissimilarity: DissimilarityMatrix,
        algorithm: ClusteringAlgorithm,
        k: int,
        dataset: str,
    ) -> List[ValidityScore]:
        metric = dissimilarity.metric
        indices = self.score(
            matrix, algorithm, metric, k,
            dataset=dataset,
            dissimilarity=dissimilarity,
        )

        return [
            ValidityScore(
                dataset=dataset,
                algorithm=algorithm.value,
                metric=metric.value,
                k=k,
                index=index.value,
                score=value,
            )
            for index, value in indices.items()
        ]

    def evaluate(
        self,
        matrix: SkillMatrix,
        metric: Union[str, DistanceMetric] = DistanceMetric.EUCLIDEAN,
        algorithms: Optional[Sequence[Union[str, ClusteringAlgorithm]]] = None,
        k_range: Optional[Sequence[int]] = None,
        dataset: str = "data",
    ) -> ValidityReport:
        """
        Run the sweep on one dataset and metric.

        Args:
            matrix: Prepared dataset
            metric: Dissimilarity metric
            algorithms: Algorithms to try (config default if None)
            k_range: Cluster counts to try (config default if None)
            dataset: Dataset name used in the report and for seeding

        Returns:
            ValidityReport with scores in (algorithm, k, index) order
        """
        metric = DistanceMetric.parse(metric)
        algorithms = [
            ClusteringAlgorithm.parse(a)
            for a in (algorithms if algorithms is not None else self.config.algorithms)
        ]
        k_values = list(k_range if k_range is not None else self.config.k_range)

        dissimilarity = pairwise_distance(matrix, metric, dataset=dataset)

        tasks = [(algorithm, k) for algorithm in algorithms for k in k_values]

        if self.show_progress:
            print(
                f"Evaluating {dataset} / {metric.value}: "
                f"{len(algorithms)} algorithm(s) x {len(k_values)} k value(s)"
            )

        outcomes: Dict[Tuple[ClusteringAlgorithm, int], Any] = {}

        if self.config.max_workers > 1:
            outcomes = self._evaluate_parallel(matrix, dissimilarity, tasks, dataset)
        else:
            for i, (algorithm, k) in enumerate(tasks, 1):
                try:
                    outcomes[(algorithm, k)] = self._run_branch(
                        matrix, dissimilarity, algorithm, k, dataset
                    )
                except Exception as e:
                    outcomes[(algorithm, k)] = e

                if self.show_progress and i % 10 == 0:
                    print(f"  Completed {i}/{len(tasks)}...")

        scores: List[ValidityScore] = []
        failures: List[EvaluationFailure] = []

        for algorithm, k in tasks:
            outcome = outcomes[(algorithm, k)]
            if isinstance(outcome, Exception):
                failures.append(EvaluationFailure(
                    dataset=dataset,
                    algorithm=algorithm.value,
                    metric=metric.value,
                    k=k,
                    error=f"{type(outcome).__name__}: {outcome}",
                ))
                if self.show_progress:
                    print(f"  Skipped {algorithm.value} k={k}: {outcome}")
            else:
                scores.extend(outcome)

        return ValidityReport(scores, failures)

    def _evaluate_parallel(
        self,
        matrix: SkillMatrix,
        dissimilarity: DissimilarityMatrix,
        tasks: List[Tuple[ClusteringAlgorithm, int]],
        dataset: str,
    ) -> Dict[Tuple[ClusteringAlgorithm, int], Any]:
        """Parallel sweep using ThreadPoolExecutor."""
        from concurrent.futures import ThreadPoolExecutor, as_completed

        outcomes: Dict[Tuple[ClusteringAlgorithm, int], Any] = {}
        completed = 0

        if self.show_progress:
            print(f"  Using {self.config.max_workers} parallel workers...")

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            future_to_task = {
                executor.submit(
                    self._run_branch, matrix, dissimilarity, algorithm, k, dataset
                ): (algorithm, k)
                for algorithm, k in tasks
            }

            for future in as_completed(future_to_task):
                task = future_to_task[future]
                try:
                    outcomes[task] = future.result()
                except Exception as e:
                    outcomes[task] = e

                completed += 1
                if self.show_progress and completed % 10 == 0:
                    print(f"  Completed {completed}/{len(tasks)}...")

        return outcomes

    def evaluate_many(
        self,
        datasets: Dict[str, SkillMatrix],
        metrics: Sequence[Union[str, DistanceMetric]] = (
            DistanceMetric.EUCLIDEAN,
            DistanceMetric.MANHATTAN,
        ),
        algorithms: Optional[Sequence[Union[str, ClusteringAlgorithm]]] = None,
        k_range: Optional[Sequence[int]] = None,
    ) -> ValidityReport:
        """
        Run the sweep for every (dataset, metric) pair.

        Args:
            datasets: Dataset name -> matrix
            metrics: Metrics to try on each dataset
            algorithms: Algorithms to try
            k_range: Cluster counts to try

        Returns:
            Combined ValidityReport; optima are per (dataset, metric)
        """
        scores: List[ValidityScore] = []
        failures: List[EvaluationFailure] = []

        for name, matrix in datasets.items():
            for metric in metrics:
                report = self.evaluate(
                    matrix,
                    metric=metric,
                    algorithms=algorithms,
                    k_range=k_range,
                    dataset=name,
                )
                scores.extend(report.scores)
                failures.extend(report.failures)

        return ValidityReport(scores, failures)
