"""
Tests for validity indices and the evaluation sweep.
"""

import numpy as np
import pytest

from src.occupation_clusters import (
    ClusteringConfig,
    DissimilarityMatrix,
    DistanceMetric,
    EmptyClusterWarning,
    EvaluationConfig,
    SkillMatrix,
    ValidityEvaluator,
    ValidityReport,
    ValidityScore,
    connectivity,
    dunn_index,
    pairwise_distance,
    silhouette_widths,
)


def line_dissimilarity(points) -> DissimilarityMatrix:
    points = np.asarray(points, dtype=float)
    return DissimilarityMatrix(
        values=np.abs(points[:, None] - points[None, :]),
        occupations=[str(i) for i in range(len(points))],
        metric=DistanceMetric.EUCLIDEAN,
    )


def score(algorithm, k, index, value, dataset="d", metric="euclidean"):
    return ValidityScore(dataset, algorithm, metric, k, index, value)


class TestConnectivity:
    def test_hand_computed(self):
        # Each point's first neighbour shares its cluster, its second does not
        diss = line_dissimilarity([0, 1, 10, 11])
        value = connectivity(diss, np.array([1, 1, 2, 2]), n_neighbors=2)
        assert value == pytest.approx(4 * 0.5)

    def test_zero_for_separated_partition(self, blobs):
        matrix, truth = blobs
        value = connectivity(pairwise_distance(matrix), truth, n_neighbors=10)
        assert value == 0.0

    def test_neighbours_capped_at_n_minus_one(self):
        diss = line_dissimilarity([0, 1, 10])
        # Only two neighbours exist for each point
        assert connectivity(diss, np.array([1, 1, 2]), n_neighbors=10) == pytest.approx(
            connectivity(diss, np.array([1, 1, 2]), n_neighbors=2)
        )

    def test_ties_broken_by_row_order(self):
        # Point 0 is equidistant from 1 (same cluster) and 2 (other cluster)
        diss = line_dissimilarity([0, 1, -1])
        value = connectivity(diss, np.array([1, 1, 2]), n_neighbors=1)
        # 0 -> 1 (same); 1 -> 0 (same); 2 -> 0 (other)
        assert value == pytest.approx(1.0)


class TestDunnIndex:
    def test_hand_computed(self):
        diss = line_dissimilarity([0, 1, 10, 11])
        assert dunn_index(diss, np.array([1, 1, 2, 2])) == pytest.approx(9.0)

    def test_singleton_excluded_from_diameter(self):
        diss = line_dissimilarity([0, 1, 10])
        with pytest.warns(EmptyClusterWarning):
            value = dunn_index(diss, np.array([1, 1, 2]))
        assert value == pytest.approx(9.0)

    def test_empty_cluster_warns(self):
        diss = line_dissimilarity([0, 1, 10, 11])
        with pytest.warns(EmptyClusterWarning):
            dunn_index(diss, np.array([1, 1, 2, 2]), k=3)

    def test_all_singletons_is_nan(self):
        diss = line_dissimilarity([0, 1, 10])
        with pytest.warns(EmptyClusterWarning):
            value = dunn_index(diss, np.array([1, 2, 3]))
        assert np.isnan(value)

    def test_single_cluster_is_nan(self):
        diss = line_dissimilarity([0, 1, 10])
        assert np.isnan(dunn_index(diss, np.array([1, 1, 1])))


class TestIndicesRankPartitions:
    def test_true_partition_beats_shuffled(self, blobs):
        matrix, truth = blobs
        # Two equal-size separated groups
        two = SkillMatrix(matrix.values[:40], matrix.occupations[:40], matrix.skills)
        truth = truth[:40]
        diss = pairwise_distance(two)
        shuffled = np.random.default_rng(0).permutation(truth)

        assert dunn_index(diss, truth) > dunn_index(diss, shuffled)
        assert connectivity(diss, truth) < connectivity(diss, shuffled)

        true_width = silhouette_widths(diss, truth)[0].mean()
        shuffled_width = silhouette_widths(diss, shuffled)[0].mean()
        assert true_width > shuffled_width


class TestValidityReport:
    def test_ties_are_all_optimal(self):
        report = ValidityReport([
            score("kmeans", 3, "silhouette", 0.7),
            score("agglomerative", 3, "silhouette", 0.7),
            score("divisive", 3, "silhouette", 0.5),
        ])

        optimal = {(s.algorithm, s.k) for s in report.optimal_scores()}
        assert optimal == {("kmeans", 3), ("agglomerative", 3)}

    def test_connectivity_minimized(self):
        report = ValidityReport([
            score("kmeans", 2, "connectivity", 4.0),
            score("kmeans", 3, "connectivity", 1.5),
        ])
        assert [s.k for s in report.optimal_scores()] == [3]

    def test_nan_never_optimal(self):
        report = ValidityReport([
            score("kmeans", 2, "dunn", float("nan")),
            score("kmeans", 3, "dunn", 0.2),
        ])
        assert [s.k for s in report.optimal_scores()] == [3]

    def test_optimal_per_dataset_and_metric(self):
        report = ValidityReport([
            score("kmeans", 2, "dunn", 0.9, metric="euclidean"),
            score("kmeans", 3, "dunn", 0.1, metric="manhattan"),
        ])
        assert len(report.optimal_scores()) == 2

    def test_get_score(self):
        report = ValidityReport([score("kmeans", 2, "dunn", 0.4)])
        assert report.get_score("kmeans", 2, "dunn") == 0.4
        assert report.get_score("kmedoids", 2, "dunn") is None

    def test_merge_recomputes_optima(self):
        first = ValidityReport([score("kmeans", 2, "silhouette", 0.4)])
        second = ValidityReport([score("kmeans", 3, "silhouette", 0.6)])

        merged = first.merge(second)
        assert [s.k for s in merged.optimal_scores()] == [3]


class TestValidityEvaluator:
    @pytest.fixture
    def evaluator(self):
        return ValidityEvaluator(
            EvaluationConfig(algorithms=["agglomerative", "kmeans"], k_min=2, k_max=5),
            show_progress=False,
        )

    def test_scores_every_combination_in_order(self, evaluator, blobs_matrix):
        report = evaluator.evaluate(blobs_matrix, dataset="blobs")

        assert len(report) == 2 * 4 * 3
        keys = [(s.algorithm, s.k, s.index) for s in report]
        assert keys[:3] == [
            ("agglomerative", 2, "connectivity"),
            ("agglomerative", 2, "dunn"),
            ("agglomerative", 2, "silhouette"),
        ]
        assert keys[-1] == ("kmeans", 5, "silhouette")
        assert report.failures == []

    def test_finds_three_blobs(self, evaluator, blobs_matrix):
        report = evaluator.evaluate(blobs_matrix, dataset="blobs")
        optimal = report.optimal_scores()

        silhouette = {(s.algorithm, s.k) for s in optimal if s.index == "silhouette"}
        dunn = {(s.algorithm, s.k) for s in optimal if s.index == "dunn"}
        assert silhouette == {("agglomerative", 3), ("kmeans", 3)}
        assert dunn == {("agglomerative", 3), ("kmeans", 3)}

        connectivity_optima = [s for s in optimal if s.index == "connectivity"]
        assert all(s.score == 0.0 for s in connectivity_optima)
        assert ("kmeans", 3) in {(s.algorithm, s.k) for s in connectivity_optima}

    def test_failed_branches_are_recorded(self, blobs_matrix):
        evaluator = ValidityEvaluator(
            EvaluationConfig(algorithms=["agglomerative", "kmedoids"], k_min=2, k_max=4),
            clustering_config=ClusteringConfig(max_iter=0),
            show_progress=False,
        )
        report = evaluator.evaluate(blobs_matrix, dataset="blobs")

        assert {s.algorithm for s in report} == {"agglomerative"}
        assert [(f.algorithm, f.k) for f in report.failures] == [
            ("kmedoids", 2), ("kmedoids", 3), ("kmedoids", 4),
        ]
        assert report.failures[0].error.startswith("ConvergenceError")
        assert len(report.failures_dataframe()) == 3
        assert "SKIPPED COMBINATIONS: 3" in report.print_report()

    def test_parallel_matches_sequential(self, skill_matrix):
        def run(workers):
            evaluator = ValidityEvaluator(
                EvaluationConfig(k_min=2, k_max=4, max_workers=workers),
                show_progress=False,
            )
            return evaluator.evaluate(skill_matrix, "manhattan", dataset="skills").to_dataframe()

        sequential = run(1)
        parallel = run(4)
        assert sequential.equals(parallel)

    def test_evaluate_many_optima_per_pair(self, evaluator, blobs_matrix, skill_matrix):
        report = evaluator.evaluate_many(
            {"blobs": blobs_matrix, "skills": skill_matrix},
            metrics=["euclidean", "manhattan"],
            k_range=[2, 3],
        )

        df = report.to_dataframe()
        assert set(zip(df["dataset"], df["metric"])) == {
            ("blobs", "euclidean"), ("blobs", "manhattan"),
            ("skills", "euclidean"), ("skills", "manhattan"),
        }

        table = report.optimal_table()
        assert table.groupby(["dataset", "metric", "index"]).ngroups == 12
