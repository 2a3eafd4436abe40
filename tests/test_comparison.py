"""
Tests for the crosswalk, cluster flows and side-by-side validity.
"""

import pytest

from src.occupation_clusters import (
    ClusteringConfig,
    CrosswalkEntry,
    EvaluationConfig,
    MethodSpec,
    UnmappedCodeError,
    ValidityEvaluator,
    compare_validity,
    crosswalk,
    flow,
    membership_to_codes,
)


@pytest.fixture
def crosswalk_table():
    return [
        CrosswalkEntry("1111", "11100", "Financial auditors", "Financial auditors and accountants"),
        CrosswalkEntry("2222", "22100", "Chemists", "Chemists"),
        CrosswalkEntry("2222", "22101", "Chemists", "Chemical technologists"),
        CrosswalkEntry("3333", "22101", "Lab technicians", "Chemical technologists"),
        CrosswalkEntry("4444", "00000", "Retired code", None),
    ]


class TestCrosswalk:
    def test_many_to_many(self, crosswalk_table):
        result = crosswalk({"1111": "A", "2222": "B", "3333": "C"}, crosswalk_table)

        assert result.assignment["11100"] == ["A"]
        assert result.assignment["22100"] == ["B"]
        assert result.assignment["22101"] == ["B", "C"]
        assert result.unmapped == []

    def test_code_without_target_is_counted_once(self, crosswalk_table):
        baseline = {"1111": "A", "4444": "B"}
        targets = ["11100", "22100", "22101"]

        result = crosswalk(baseline, crosswalk_table, target_codes=targets)

        assert result.n_unmapped == 1
        assert result.unmapped == ["4444"]
        assert "00000" not in result.assignment

        counts = flow(result.assignment, {"11100": 1, "22100": 2}).counts
        assert counts == {("A", 1): 1}

    def test_code_missing_from_table(self, crosswalk_table):
        result = crosswalk({"9999": "A"}, crosswalk_table)
        assert result.unmapped == ["9999"]
        assert result.to_dict()["n_mapped"] == 0

    def test_raise_for_unmapped(self, crosswalk_table):
        result = crosswalk({"9999": "A"}, crosswalk_table)
        with pytest.raises(UnmappedCodeError) as excinfo:
            result.raise_for_unmapped()
        assert excinfo.value.codes == ["9999"]

    def test_raise_for_unmapped_noop_when_complete(self, crosswalk_table):
        crosswalk({"1111": "A"}, crosswalk_table).raise_for_unmapped()


class TestMembershipToCodes:
    def test_title_matching_ignores_case_and_spacing(self, crosswalk_table):
        codes, unmatched = membership_to_codes(
            {"A": ["financial  AUDITORS"], "B": ["Chemists", "Astronauts"]},
            crosswalk_table,
        )

        assert codes == {"1111": ["A"], "2222": ["B"]}
        assert unmatched == ["Astronauts"]

    def test_title_in_two_clusters_keeps_both(self, crosswalk_table):
        codes, unmatched = membership_to_codes(
            {"A": ["Chemists"], "B": ["chemists"]}, crosswalk_table
        )

        assert codes == {"2222": ["A", "B"]}
        assert unmatched == []

        mapped = crosswalk(codes, crosswalk_table)
        assert mapped.assignment["22100"] == ["A", "B"]

        counts = flow(mapped.assignment, {"22100": 4}).counts
        assert counts == {("A", 4): 1, ("B", 4): 1}

    def test_titles_sharing_a_code_keep_both_clusters(self, crosswalk_table):
        table = crosswalk_table + [CrosswalkEntry("1111", "11100", "Auditors", None)]
        codes, _ = membership_to_codes({"A": ["Financial auditors"], "B": ["Auditors"]}, table)

        assert codes["1111"] == ["A", "B"]


class TestFlow:
    def test_counts_transitions(self):
        baseline = {"a": "X", "b": "X", "c": "Y", "d": "Y", "e": "Z"}
        resolved = {"a": 1, "b": 1, "c": 1, "d": 2}

        result = flow(baseline, resolved)

        assert result.counts == {("X", 1): 2, ("Y", 1): 1, ("Y", 2): 1}
        assert result.total == 4
        assert result.to_records() == [("X", 1, 2), ("Y", 1, 1), ("Y", 2, 1)]

    def test_many_to_many_counts_each_baseline_cluster(self):
        result = flow({"a": ["X", "Y"]}, {"a": 3})
        assert result.counts == {("X", 3): 1, ("Y", 3): 1}

    def test_crosstab(self):
        result = flow({"a": "X", "b": "Y", "c": "Y"}, {"a": 1, "b": 2, "c": 2})
        table = result.crosstab()

        assert table.loc["Y", 2] == 2
        assert table.loc["X", 2] == 0

    def test_empty(self):
        result = flow({}, {"a": 1})
        assert result.total == 0
        assert result.crosstab().empty
        assert list(result.to_dataframe().columns) == ["baseline_cluster", "resolved_cluster", "count"]


class TestCompareValidity:
    @pytest.fixture
    def specs(self):
        return (
            MethodSpec(name="baseline", algorithm="kmeans", k=8),
            MethodSpec(name="hierarchical", algorithm="agglomerative", k=11),
        )

    def test_table_layout(self, blobs_matrix, specs):
        table = compare_validity(blobs_matrix, *specs, dataset="blobs")

        assert list(table.columns) == ["baseline", "hierarchical"]
        assert list(table.index) == ["connectivity", "dunn", "silhouette"]
        assert table.index.name == "index"

    def test_reproducible(self, blobs_matrix, specs):
        config = ClusteringConfig(seed=7)
        first = compare_validity(blobs_matrix, *specs, clustering_config=config, dataset="blobs")
        second = compare_validity(blobs_matrix, *specs, clustering_config=config, dataset="blobs")

        assert first.equals(second)

    def test_matches_sweep_scores(self, blobs_matrix, specs):
        config = ClusteringConfig(seed=7)
        table = compare_validity(blobs_matrix, *specs, clustering_config=config, dataset="blobs")

        evaluator = ValidityEvaluator(
            EvaluationConfig(algorithms=["kmeans", "agglomerative"]),
            clustering_config=config,
            show_progress=False,
        )
        report = evaluator.evaluate(blobs_matrix, k_range=[8, 11], dataset="blobs")

        for index in ("connectivity", "dunn", "silhouette"):
            assert table.loc[index, "baseline"] == pytest.approx(
                report.get_score("kmeans", 8, index), nan_ok=True
            )
            assert table.loc[index, "hierarchical"] == pytest.approx(
                report.get_score("agglomerative", 11, index), nan_ok=True
            )
