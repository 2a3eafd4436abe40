"""
Occupation Skill Clustering

This module provides functionality for:
- Step 1: Matrix preparation (standardize, PCA, random control)
- Step 2: Clusterability assessment (Hopkins statistic)
- Step 3: Pairwise distances (Euclidean, Manhattan)
- Step 4: Internal validity sweep over algorithms and k
- Step 5: Final clustering with silhouette widths
- Step 6: Reassignment of negative-silhouette occupations
- Step 7: Comparison against a baseline classification
"""

from .exceptions import (
    OccupationClusterError,
    DegenerateColumnError,
    InsufficientDimensionsError,
    ConvergenceError,
    UnmappedCodeError,
    EmptyClusterWarning,
)
from .random_state import branch_rng
from .matrix import SkillMatrix, StandardizedMatrix, ReducedMatrix, standardize, reduce, randomize
from .clusterability import hopkins_statistic, assess_clusterability
from .distance import DistanceMetric, DissimilarityMatrix, pairwise_distance
from .algorithms import ClusteringAlgorithm, get_strategy
from .builder import ClusterBuilder, ClusteringConfig, ClusteringResult, silhouette_widths
from .validity import (
    ValidityEvaluator,
    EvaluationConfig,
    EvaluationFailure,
    ValidityIndex,
    ValidityScore,
    ValidityReport,
    connectivity,
    dunn_index,
)
from .resolution import ResolvedClustering, resolve
from .comparison import (
    CrosswalkEntry,
    CrosswalkResult,
    ComparisonFlow,
    MethodSpec,
    crosswalk,
    membership_to_codes,
    flow,
    compare_validity,
)
from .summary import top_skills, top_skills_dataframe, label_clusters

__all__ = [
    # Errors
    "OccupationClusterError",
    "DegenerateColumnError",
    "InsufficientDimensionsError",
    "ConvergenceError",
    "UnmappedCodeError",
    "EmptyClusterWarning",
    "branch_rng",
    # Step 1
    "SkillMatrix",
    "StandardizedMatrix",
    "ReducedMatrix",
    "standardize",
    "reduce",
    "randomize",
    # Step 2
    "hopkins_statistic",
    "assess_clusterability",
    # Step 3
    "DistanceMetric",
    "DissimilarityMatrix",
    "pairwise_distance",
    # Step 4
    "ValidityEvaluator",
    "EvaluationConfig",
    "EvaluationFailure",
    "ValidityIndex",
    "ValidityScore",
    "ValidityReport",
    "connectivity",
    "dunn_index",
    # Step 5
    "ClusteringAlgorithm",
    "get_strategy",
    "ClusterBuilder",
    "ClusteringConfig",
    "ClusteringResult",
    "silhouette_widths",
    # Step 6
    "ResolvedClustering",
    "resolve",
    # Step 7
    "CrosswalkEntry",
    "CrosswalkResult",
    "ComparisonFlow",
    "MethodSpec",
    "crosswalk",
    "membership_to_codes",
    "flow",
    "compare_validity",
    # Reporting
    "top_skills",
    "top_skills_dataframe",
    "label_clusters",
]
