"""
Configuration for Occupation Skill Clustering

This file has SIX parts:
1. MATRIX_FIELD_MAPPING - Maps your CSV columns to standard names
2. DATA_CONFIG - Where the input tables live
3. PREPARATION_CONFIG / CLUSTERING_CONFIG - Dataset and algorithm settings
4. EVALUATION_CONFIG - What the validity sweep tries
5. PRODUCTION_CONFIG - The method chosen from the sweep, fixed for production
6. OUTPUT_CONFIG - Where results are written

WORKFLOW:
1. Point DATA_CONFIG at your tables and adjust MATRIX_FIELD_MAPPING
2. Run: python run_clustering_pipeline.py --assess --evaluate
3. Read the optimal validity table and set PRODUCTION_CONFIG
4. Run: python run_clustering_pipeline.py --compare
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

from src.data_loaders import FieldMapping
from src.occupation_clusters import ClusteringConfig, EvaluationConfig, MethodSpec


# =============================================================================
# PART 1: FIELD MAPPING
# =============================================================================
# Column names in your input tables.

MATRIX_FIELD_MAPPING = FieldMapping(
    # ----- SKILL MATRIX (required) -----
    occupation_code="noc_code",      # Occupation code column
    occupation_title="noc_title",    # Optional title column

    # Leave empty to use every numeric column as a skill
    skill_columns=[],

    # NOC 2021 codes are 5 digits
    code_width=5,

    # ----- CLUSTER LABELS -----
    cluster_number="cluster",
    cluster_label="label",

    # ----- CROSSWALK (old scheme -> new scheme) -----
    source_code="noc_2016_code",
    source_code_width=4,
    source_title="noc_2016_title",
    target_code="noc_2021_code",
    target_title="noc_2021_title",

    # ----- BASELINE MEMBERSHIP (one row per title) -----
    baseline_cluster="cluster",
    baseline_title="title",
)


# =============================================================================
# PART 2: DATA SOURCE CONFIGURATION
# =============================================================================

DATA_CONFIG = {
    "skills": "data/skills.csv",                    # Required
    "cluster_labels": "data/cluster_labels.csv",    # Optional
    "crosswalk": "data/noc_crosswalk.csv",          # Optional
    "baseline": "data/baseline_clusters.csv",       # Optional
    "encoding": "utf-8",
}


def get_table_paths() -> Dict[str, str]:
    """Table paths from DATA_CONFIG, skipping optional files that don't exist."""
    paths = {}
    for name in ("skills", "cluster_labels", "crosswalk", "baseline"):
        path = DATA_CONFIG.get(name)
        if name == "skills" or (path and Path(path).exists()):
            paths[name] = path
    return paths


# =============================================================================
# PART 3: PREPARATION AND ALGORITHM CONFIGURATION
# =============================================================================

PREPARATION_CONFIG = {
    # Principal components kept for the reduced dataset
    "n_components": 5,

    # Hopkins sample size (None = 10% of occupations)
    "hopkins_sample_size": None,

    # Datasets built from the skill matrix
    "datasets": ["standardized", "reduced", "random"],
}

CLUSTERING_CONFIG = ClusteringConfig(
    linkage="ward",     # "ward", "average", "complete", "single"
    n_init=10,          # k-means random starts
    max_iter=100,       # k-means / k-medoids iteration cap
    seed=42,            # Run seed; every stochastic step derives from it
)


# =============================================================================
# PART 4: EVALUATION CONFIGURATION
# =============================================================================

@dataclass
class SweepConfig:
    """Which datasets and metrics the validity sweep covers."""

    datasets: List[str] = field(default_factory=lambda: ["standardized", "reduced"])
    metrics: List[str] = field(default_factory=lambda: ["euclidean", "manhattan"])

    # ===== VALIDATION =====
    def validate(self, available_datasets: List[str]) -> Dict[str, List[str]]:
        """Validate config against the datasets that were prepared."""
        errors = []
        warnings = []

        missing = [d for d in self.datasets if d not in available_datasets]
        if missing:
            errors.append(f"datasets not prepared: {missing}")

        unknown = [m for m in self.metrics if m not in ("euclidean", "manhattan")]
        if unknown:
            errors.append(f"unknown metrics: {unknown}")

        if "random" in self.datasets:
            warnings.append("sweeping the random control - expect no real optimum")

        return {"errors": errors, "warnings": warnings}


EVALUATION_CONFIG = EvaluationConfig(
    algorithms=["agglomerative", "divisive", "kmeans", "kmedoids"],
    k_min=2,
    k_max=20,
    n_neighbors=10,     # Connectivity neighbours
    max_workers=1,      # >1 runs (algorithm, k) branches in parallel
)

SWEEP_CONFIG = SweepConfig(
    datasets=["standardized", "reduced"],
    metrics=["euclidean", "manhattan"],
)


# =============================================================================
# PART 5: PRODUCTION CONFIGURATION
# =============================================================================
# Fixed once from the optimal validity table; not re-optimized per run.

PRODUCTION_CONFIG = {
    "dataset": "standardized",
    "method": MethodSpec(
        name="hierarchical",
        algorithm="agglomerative",
        k=11,
        metric="euclidean",
    ),

    # Baseline method scored side by side on the same matrix
    "baseline_method": MethodSpec(
        name="baseline_kmeans",
        algorithm="kmeans",
        k=8,
        metric="euclidean",
    ),

    # Skills listed per cluster in the summary
    "top_n_skills": 5,
}


# =============================================================================
# PART 6: OUTPUT CONFIGURATION
# =============================================================================

OUTPUT_CONFIG = {
    # Root directory for all outputs
    "root_dir": "clustering_output",

    # Subdirectories for each phase (relative to root_dir)
    "preparation": "step_1_preparation",
    "clusterability": "step_2_clusterability",
    "evaluation": "step_4_evaluation",
    "clustering": "step_5_clustering",
    "comparison": "step_7_comparison",
}


def get_output_path(*subdirs: str) -> Path:
    """
    Get output path relative to the configured root directory.

    Args:
        *subdirs: Subdirectory names to append to root

    Returns:
        Path object for the output location

    Usage:
        from config import get_output_path

        root = get_output_path()
        file_path = get_output_path("step_4_evaluation", "optimal_scores.csv")
    """
    root = Path(OUTPUT_CONFIG["root_dir"])

    if subdirs:
        return root.joinpath(*subdirs)
    return root


def get_phase_output_path(phase: str) -> Path:
    """
    Get output path for a specific pipeline phase.

    Args:
        phase: One of "preparation", "clusterability", "evaluation",
               "clustering", "comparison"

    Returns:
        Path object for the phase output directory
    """
    root = Path(OUTPUT_CONFIG["root_dir"])
    subdir = OUTPUT_CONFIG.get(phase, phase)
    return root / subdir
