"""
Cluster summaries for reporting: top skills per cluster and readable labels.
"""

from typing import Dict, Iterable, List, Mapping, Tuple, Union

import pandas as pd

from .matrix import SkillMatrix


def top_skills(
    matrix: SkillMatrix,
    assignment: Mapping[str, int],
    n: int = 5,
) -> Dict[int, List[Tuple[str, float]]]:
    """
    Highest mean scaled skill scores per cluster.

    Args:
        matrix: Usually the standardized matrix
        assignment: Occupation id -> cluster
        n: Skills to keep per cluster

    Returns:
        Cluster -> [(skill, mean score)] sorted descending
    """
    df = matrix.to_dataframe()
    clusters = pd.Series(assignment, name="cluster")
    clusters.index = clusters.index.astype(str)

    df = df.join(clusters, how="inner")
    means = df.groupby("cluster").mean()

    summary = {}
    for cluster_id, row in means.iterrows():
        top = row.sort_values(ascending=False, kind="stable").head(n)
        summary[int(cluster_id)] = [
            (str(skill), float(score)) for skill, score in top.items()
        ]

    return summary


def top_skills_dataframe(summary: Dict[int, List[Tuple[str, float]]]) -> pd.DataFrame:
    """Flatten a top-skills summary into rows."""
    rows = []
    for cluster_id, skills in sorted(summary.items()):
        for rank, (skill, score) in enumerate(skills, 1):
            rows.append({
                "cluster": cluster_id,
                "rank": rank,
                "skill": skill,
                "mean_scaled_score": round(score, 4),
            })
    return pd.DataFrame(rows, columns=["cluster", "rank", "skill", "mean_scaled_score"])


def label_clusters(
    clusters: Union[pd.Series, Iterable[int]],
    cluster_labels: Mapping[str, str],
) -> List[str]:
    """
    Human-readable labels for cluster numbers.

    The label table is keyed by cluster number as a string; clusters with no
    entry fall back to "Cluster <n>".
    """
    return [
        cluster_labels.get(str(int(c)), f"Cluster {int(c)}")
        for c in clusters
    ]
