"""
Tests for cluster summaries.
"""

import numpy as np
import pytest

from src.occupation_clusters import SkillMatrix, label_clusters, top_skills, top_skills_dataframe


@pytest.fixture
def scaled():
    values = np.array([
        [2.0, 0.0, 1.0],
        [4.0, 1.0, 1.0],
        [0.0, 3.0, -1.0],
    ])
    return SkillMatrix(values, ["a", "b", "c"], ["reading", "welding", "writing"])


class TestTopSkills:
    def test_sorted_by_cluster_mean(self, scaled):
        summary = top_skills(scaled, {"a": 1, "b": 1, "c": 2}, n=2)

        assert summary[1] == [("reading", 3.0), ("writing", 1.0)]
        assert summary[2] == [("welding", 3.0), ("reading", 0.0)]

    def test_ignores_unassigned_occupations(self, scaled):
        summary = top_skills(scaled, {"a": 1}, n=1)
        assert summary == {1: [("reading", 2.0)]}

    def test_dataframe(self, scaled):
        df = top_skills_dataframe(top_skills(scaled, {"a": 1, "b": 2, "c": 2}, n=3))

        assert list(df.columns) == ["cluster", "rank", "skill", "mean_scaled_score"]
        assert len(df) == 6
        assert df.iloc[0].to_dict() == {
            "cluster": 1, "rank": 1, "skill": "reading", "mean_scaled_score": 2.0,
        }


def test_label_clusters_falls_back_to_number():
    assert label_clusters([1, 2], {"1": "Care work"}) == ["Care work", "Cluster 2"]
