#!/usr/bin/env python3
"""
Occupation Clustering Pipeline Runner

This script runs the clustering evaluation and assignment pipeline:
1. Prepare datasets (standardized, PCA-reduced, random control)
2. Assess clusterability (Hopkins statistic)
3. Evaluate algorithms x k with internal validity indices
4. Build the production clustering and resolve negative silhouettes
5. Compare against the baseline classification

Usage:
    # Run full pipeline
    python run_clustering_pipeline.py --all

    # Run specific phases
    python run_clustering_pipeline.py --assess           # Hopkins statistics
    python run_clustering_pipeline.py --evaluate         # Validity sweep
    python run_clustering_pipeline.py --build            # Final clustering
    python run_clustering_pipeline.py --compare          # Baseline comparison
"""

import argparse
import json
from datetime import datetime
from pathlib import Path
from typing import Dict

import pandas as pd


def get_pipeline_output_path() -> Path:
    """Get output root for the pipeline."""
    try:
        from config import get_output_path
        return get_output_path()
    except ImportError:
        return Path("clustering_output")


def load_data():
    """Load the skill matrix and lookup tables."""
    from config import DATA_CONFIG, MATRIX_FIELD_MAPPING, get_table_paths
    from src.data_loaders import CSVTableLoader

    print("Loading data...")
    loader = CSVTableLoader(
        paths=get_table_paths(),
        field_mapping=MATRIX_FIELD_MAPPING,
        encoding=DATA_CONFIG.get("encoding", "utf-8"),
    )

    matrix = loader.load_skill_matrix()
    print(f"  Loaded {matrix.n_occupations} occupations x {matrix.n_skills} skills")

    lookups = loader.load_lookup_tables()
    for name, count in lookups.summary().items():
        print(f"  {name}: {count}")

    return matrix, lookups


def run_preparation(matrix, output_dir: Path, args) -> Dict:
    """Step 1: Build the datasets."""
    from config import CLUSTERING_CONFIG, PREPARATION_CONFIG
    from src.occupation_clusters import branch_rng, randomize, reduce, standardize

    print("\n" + "=" * 60)
    print("STEP 1: MATRIX PREPARATION")
    print("=" * 60)

    output_path = output_dir / "step_1_preparation"
    output_path.mkdir(parents=True, exist_ok=True)

    standardized = standardize(matrix)
    reduced = reduce(standardized, PREPARATION_CONFIG["n_components"])
    control = randomize(matrix, branch_rng(CLUSTERING_CONFIG.seed, "random_control"))

    print(f"  Standardized: {standardized.n_occupations} x {standardized.n_skills}")
    print(f"  Reduced to {reduced.n_skills} components "
          f"({reduced.cumulative_variance[-1]:.1%} of variance)")

    reduced.variance_table().to_csv(output_path / "pca_variance.csv", index=False)
    reduced.loadings.to_csv(output_path / "pca_loadings.csv")

    datasets = {
        "standardized": standardized,
        "reduced": reduced,
        "random": control,
    }
    return {
        name: data for name, data in datasets.items()
        if name in PREPARATION_CONFIG["datasets"]
    }


def run_assessment(datasets: Dict, output_dir: Path, args) -> pd.DataFrame:
    """Step 2: Hopkins statistic per dataset."""
    from config import CLUSTERING_CONFIG, PREPARATION_CONFIG
    from src.occupation_clusters import assess_clusterability

    print("\n" + "=" * 60)
    print("STEP 2: CLUSTERABILITY")
    print("=" * 60)

    output_path = output_dir / "step_2_clusterability"
    output_path.mkdir(parents=True, exist_ok=True)

    table = assess_clusterability(
        datasets,
        sample_size=PREPARATION_CONFIG["hopkins_sample_size"],
        seed=CLUSTERING_CONFIG.seed,
    )
    table.to_csv(output_path / "hopkins.csv", index=False)

    print(f"\n  Results saved to: {output_path}/")
    return table


def run_evaluation(datasets: Dict, output_dir: Path, args):
    """Step 4: Validity sweep."""
    from config import CLUSTERING_CONFIG, EVALUATION_CONFIG, SWEEP_CONFIG
    from src.occupation_clusters import ValidityEvaluator

    print("\n" + "=" * 60)
    print("STEP 4: VALIDITY EVALUATION")
    print("=" * 60)

    output_path = output_dir / "step_4_evaluation"
    output_path.mkdir(parents=True, exist_ok=True)

    validation = SWEEP_CONFIG.validate(list(datasets.keys()))
    for warning in validation["warnings"]:
        print(f"  Warning: {warning}")
    if validation["errors"]:
        raise ValueError(f"Invalid sweep configuration: {validation['errors']}")

    if args.workers:
        EVALUATION_CONFIG.max_workers = args.workers

    evaluator = ValidityEvaluator(
        config=EVALUATION_CONFIG,
        clustering_config=CLUSTERING_CONFIG,
    )

    report = evaluator.evaluate_many(
        {name: datasets[name] for name in SWEEP_CONFIG.datasets},
        metrics=SWEEP_CONFIG.metrics,
    )

    report.to_dataframe().to_csv(output_path / "validity_scores.csv", index=False)
    report.optimal_table().to_csv(output_path / "optimal_scores.csv", index=False)
    if report.failures:
        report.failures_dataframe().to_csv(output_path / "skipped.csv", index=False)

    print("\n" + report.print_report())
    print(f"\n  Results saved to: {output_path}/")

    return report


def run_clustering(datasets: Dict, lookups, output_dir: Path, args):
    """Steps 5-6: Production clustering and reassignment."""
    from config import CLUSTERING_CONFIG, PRODUCTION_CONFIG
    from src.occupation_clusters import (
        ClusterBuilder,
        resolve,
        top_skills,
        top_skills_dataframe,
    )

    print("\n" + "=" * 60)
    print("STEPS 5-6: CLUSTERING AND REASSIGNMENT")
    print("=" * 60)

    output_path = output_dir / "step_5_clustering"
    output_path.mkdir(parents=True, exist_ok=True)

    method = PRODUCTION_CONFIG["method"]
    dataset = PRODUCTION_CONFIG["dataset"]
    matrix = datasets[dataset]

    print(f"  Method: {method.algorithm} k={method.k} ({method.metric}) on {dataset}")

    builder = ClusterBuilder(CLUSTERING_CONFIG, show_progress=True)
    result = builder.build(
        matrix,
        method.algorithm,
        method.metric,
        method.k,
        dataset=dataset,
    )

    if not result.is_complete:
        print(f"  Warning: only {result.n_nonempty_clusters} of {method.k} clusters are non-empty")

    resolved = resolve(result)
    print(f"  Reassigned {resolved.n_reassigned} occupation(s) with negative silhouette")

    resolved.to_dataframe(lookups.cluster_labels or None).to_csv(
        output_path / "resolved_clusters.csv", index=False
    )

    summary = top_skills(
        datasets["standardized"],
        resolved.assignment(),
        n=PRODUCTION_CONFIG["top_n_skills"],
    )
    top_skills_dataframe(summary).to_csv(output_path / "top_skills.csv", index=False)

    with open(output_path / "clustering_metadata.json", "w") as f:
        json.dump({
            **result.to_dict(),
            "n_reassigned": resolved.n_reassigned,
            "corrected_sizes": resolved.corrected_sizes(),
        }, f, indent=2)

    print(f"\n  Results saved to: {output_path}/")
    return resolved


def run_comparison(datasets: Dict, resolved, lookups, output_dir: Path, args):
    """Step 7: Baseline comparison."""
    from config import CLUSTERING_CONFIG, EVALUATION_CONFIG, PRODUCTION_CONFIG
    from src.occupation_clusters import compare_validity, crosswalk, flow, membership_to_codes

    print("\n" + "=" * 60)
    print("STEP 7: BASELINE COMPARISON")
    print("=" * 60)

    output_path = output_dir / "step_7_comparison"
    output_path.mkdir(parents=True, exist_ok=True)

    dataset = PRODUCTION_CONFIG["dataset"]
    table = compare_validity(
        datasets[dataset],
        PRODUCTION_CONFIG["baseline_method"],
        PRODUCTION_CONFIG["method"],
        n_neighbors=EVALUATION_CONFIG.n_neighbors,
        clustering_config=CLUSTERING_CONFIG,
        dataset=dataset,
    )
    table.to_csv(output_path / "validity_comparison.csv")
    print(table.to_string())

    if not lookups.baseline_membership or not lookups.crosswalk:
        print("\n  No baseline membership or crosswalk - skipping flow comparison")
        return table

    baseline_codes, unmatched = membership_to_codes(
        lookups.baseline_membership, lookups.crosswalk
    )
    if unmatched:
        print(f"  {len(unmatched)} baseline title(s) not found in crosswalk")

    mapped = crosswalk(baseline_codes, lookups.crosswalk, resolved.occupations)
    print(f"  Crosswalk: {mapped.n_mapped} mapped, {mapped.n_unmapped} unmapped")

    comparison = flow(mapped.assignment, resolved.assignment())
    comparison.to_dataframe().to_csv(output_path / "cluster_flow.csv", index=False)

    with open(output_path / "crosswalk_diagnostics.json", "w") as f:
        json.dump({**mapped.to_dict(), "unmatched_titles": unmatched}, f, indent=2)

    print(f"  Flow covers {comparison.total} occupation assignment(s)")
    print(f"\n  Results saved to: {output_path}/")
    return comparison


def main():
    parser = argparse.ArgumentParser(
        description="Occupation Clustering Pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    # Phase arguments
    parser.add_argument("--all", action="store_true", help="Run full pipeline")
    parser.add_argument("--assess", action="store_true", help="Step 2: Hopkins statistics")
    parser.add_argument("--evaluate", action="store_true", help="Step 4: Validity sweep")
    parser.add_argument("--build", action="store_true", help="Steps 5-6: Final clustering")
    parser.add_argument("--compare", action="store_true", help="Step 7: Baseline comparison")

    # Options
    parser.add_argument("--workers", type=int, help="Parallel workers for the sweep")
    parser.add_argument("--output", "-o", type=str, help="Output directory")

    args = parser.parse_args()

    # Default to --all if no phase specified
    if not any([args.all, args.assess, args.evaluate, args.build, args.compare]):
        args.all = True

    output_dir = Path(args.output) if args.output else get_pipeline_output_path()
    output_dir.mkdir(parents=True, exist_ok=True)

    print("=" * 60)
    print("OCCUPATION CLUSTERING PIPELINE")
    print("=" * 60)
    print(f"Output directory: {output_dir}")
    print(f"Started: {datetime.now().isoformat()}")

    matrix, lookups = load_data()

    # Preparation errors are fatal, so this always runs first
    datasets = run_preparation(matrix, output_dir, args)

    if args.all or args.assess:
        run_assessment(datasets, output_dir, args)

    if args.all or args.evaluate:
        run_evaluation(datasets, output_dir, args)

    resolved = None
    if args.all or args.build or args.compare:
        resolved = run_clustering(datasets, lookups, output_dir, args)

    if args.all or args.compare:
        run_comparison(datasets, resolved, lookups, output_dir, args)

    print("\n" + "=" * 60)
    print("PIPELINE COMPLETE")
    print("=" * 60)
    print(f"Output directory: {output_dir}")
    print(f"Completed: {datetime.now().isoformat()}")


if __name__ == "__main__":
    main()
