"""
Step 7: Comparison with an external baseline classification

- Crosswalk baseline occupation codes into the target code scheme
- Count occupation flows between baseline clusters and resolved clusters
- Score the baseline method and the chosen method side by side
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from .builder import ClusteringConfig
from .distance import DistanceMetric
from .exceptions import UnmappedCodeError
from .matrix import SkillMatrix
from .validity import EvaluationConfig, ValidityEvaluator


@dataclass(frozen=True)
class CrosswalkEntry:
    """One link between an old-scheme code and a new-scheme code."""

    source_code: str
    target_code: str
    source_title: Optional[str] = None
    target_title: Optional[str] = None


@dataclass
class CrosswalkResult:
    """Baseline clusters translated into the target code space."""

    # Target code -> baseline cluster(s) that map onto it
    assignment: Dict[str, List[Hashable]] = field(default_factory=dict)

    # Baseline codes with no target in the occupation set
    unmapped: List[str] = field(default_factory=list)

    @property
    def n_unmapped(self) -> int:
        return len(self.unmapped)

    @property
    def n_mapped(self) -> int:
        return len(self.assignment)

    def raise_for_unmapped(self) -> None:
        """Raise UnmappedCodeError if any baseline code was dropped."""
        if self.unmapped:
            raise UnmappedCodeError(self.unmapped)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "n_mapped": self.n_mapped,
            "n_unmapped": self.n_unmapped,
            "unmapped": self.unmapped,
        }


def crosswalk(
    baseline_codes: Mapping[str, Union[Hashable, List[Hashable]]],
    crosswalk_table: Iterable[CrosswalkEntry],
    target_codes: Optional[Iterable[str]] = None,
) -> CrosswalkResult:
    """
    Translate a baseline assignment into the target code scheme.

    Args:
        baseline_codes: Baseline occupation code -> baseline cluster, or a
                        list of clusters when the code sits in several
        crosswalk_table: CrosswalkEntry links (many-to-many allowed)
        target_codes: Codes present in the target occupation set; targets
                      outside it are ignored. All targets kept if None.

    Returns:
        CrosswalkResult; codes with no usable target are listed in
        ``unmapped`` rather than raised
    """
    targets_by_source: Dict[str, List[str]] = {}
    for entry in crosswalk_table:
        targets_by_source.setdefault(str(entry.source_code), []).append(str(entry.target_code))

    allowed = set(str(c) for c in target_codes) if target_codes is not None else None

    assignment: Dict[str, List[Hashable]] = {}
    unmapped: List[str] = []

    for source_code, baseline in baseline_codes.items():
        targets = targets_by_source.get(str(source_code), [])
        if allowed is not None:
            targets = [t for t in targets if t in allowed]

        if not targets:
            unmapped.append(str(source_code))
            continue

        baseline_clusters = baseline if isinstance(baseline, list) else [baseline]
        for target in targets:
            clusters = assignment.setdefault(target, [])
            for cluster in baseline_clusters:
                if cluster not in clusters:
                    clusters.append(cluster)

    return CrosswalkResult(assignment=assignment, unmapped=unmapped)


def _normalize_title(title: str) -> str:
    return " ".join(str(title).lower().split())


def membership_to_codes(
    membership: Mapping[Hashable, Sequence[str]],
    crosswalk_table: Iterable[CrosswalkEntry],
) -> Tuple[Dict[str, List[Hashable]], List[str]]:
    """
    Turn a baseline membership list into baseline code -> clusters.

    Titles are matched case- and whitespace-insensitively against the
    crosswalk's source titles. A code reached from several baseline clusters
    keeps every one of them.

    Args:
        membership: Baseline cluster -> occupation titles
        crosswalk_table: CrosswalkEntry links carrying source titles

    Returns:
        Tuple of (baseline code -> clusters, unmatched titles)
    """
    codes_by_title: Dict[str, List[str]] = {}
    for entry in crosswalk_table:
        if entry.source_title:
            codes = codes_by_title.setdefault(_normalize_title(entry.source_title), [])
            if str(entry.source_code) not in codes:
                codes.append(str(entry.source_code))

    baseline_codes: Dict[str, List[Hashable]] = {}
    unmatched: List[str] = []

    for cluster, titles in membership.items():
        for title in titles:
            codes = codes_by_title.get(_normalize_title(title))
            if not codes:
                unmatched.append(title)
                continue
            for code in codes:
                clusters = baseline_codes.setdefault(code, [])
                if cluster not in clusters:
                    clusters.append(cluster)

    return baseline_codes, unmatched


@dataclass
class ComparisonFlow:
    """Occupation counts from baseline cluster X to resolved cluster Y."""

    counts: Dict[Tuple[Hashable, int], int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def to_records(self) -> List[Tuple[Hashable, int, int]]:
        """(baseline_cluster, resolved_cluster, count) triples."""
        return sorted(
            ((x, y, n) for (x, y), n in self.counts.items()),
            key=lambda r: (str(r[0]), r[1]),
        )

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            self.to_records(),
            columns=["baseline_cluster", "resolved_cluster", "count"],
        )

    def crosstab(self) -> pd.DataFrame:
        """Baseline clusters as rows, resolved clusters as columns."""
        df = self.to_dataframe()
        if df.empty:
            return pd.DataFrame()
        return df.pivot_table(
            index="baseline_cluster",
            columns="resolved_cluster",
            values="count",
            aggfunc="sum",
            fill_value=0,
        )


def flow(
    baseline_assignment: Mapping[str, Union[Hashable, List[Hashable]]],
    resolved_assignment: Mapping[str, int],
) -> ComparisonFlow:
    """
    Count transitions between baseline and resolved clusters.

    Args:
        baseline_assignment: Occupation -> baseline cluster, or a list of
                             clusters when the crosswalk is many-to-many
        resolved_assignment: Occupation -> corrected cluster

    Returns:
        ComparisonFlow over occupations present in both
    """
    counts: Counter = Counter()

    for occupation, baseline in baseline_assignment.items():
        if occupation not in resolved_assignment:
            continue

        resolved = int(resolved_assignment[occupation])
        baseline_clusters = baseline if isinstance(baseline, list) else [baseline]
        for cluster in baseline_clusters:
            counts[(cluster, resolved)] += 1

    return ComparisonFlow(counts=dict(counts))


@dataclass(frozen=True)
class MethodSpec:
    """A fixed clustering method to score."""

    name: str
    algorithm: str
    k: int
    metric: str = DistanceMetric.EUCLIDEAN.value


def compare_validity(
    matrix: SkillMatrix,
    baseline_spec: MethodSpec,
    resolved_spec: MethodSpec,
    n_neighbors: int = 10,
    clustering_config: Optional[ClusteringConfig] = None,
    dataset: str = "data",
) -> pd.DataFrame:
    """
    Side-by-side validity indices for two methods on the same matrix.

    Args:
        matrix: Dataset both methods are scored on
        baseline_spec: Baseline method
        resolved_spec: Chosen method
        n_neighbors: Connectivity neighbours
        clustering_config: Builder parameters (seed, iteration caps)
        dataset: Dataset name, part of each method's seed

    Returns:
        DataFrame indexed by validity index, one column per method
    """
    evaluator = ValidityEvaluator(
        config=EvaluationConfig(n_neighbors=n_neighbors),
        clustering_config=clustering_config,
        show_progress=False,
    )

    columns = {}
    for spec in (baseline_spec, resolved_spec):
        indices = evaluator.score(
            matrix,
            spec.algorithm,
            spec.metric,
            spec.k,
            dataset=dataset,
        )
        columns[spec.name] = {index.value: value for index, value in indices.items()}

    table = pd.DataFrame(columns)
    table.index.name = "index"
    return table
