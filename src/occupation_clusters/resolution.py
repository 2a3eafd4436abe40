"""
Step 6: Reassignment of misclassified occupations

An occupation with a negative silhouette width sits closer, on average, to
its nearest other cluster than to its own. It is moved there. This is a
single pass: silhouettes are not recomputed against the corrected clusters.
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

import numpy as np
import pandas as pd

from .builder import ClusteringResult


@dataclass(frozen=True)
class ResolvedClustering:
    """A clustering result with its corrected cluster per occupation."""

    result: ClusteringResult
    corrected_clusters: np.ndarray

    @property
    def occupations(self) -> List[str]:
        return self.result.occupations

    @property
    def reassigned_mask(self) -> np.ndarray:
        return self.corrected_clusters != self.result.labels

    @property
    def reassigned(self) -> List[str]:
        """Occupation ids that moved to their neighbouring cluster."""
        return [
            occ for occ, moved in zip(self.result.occupations, self.reassigned_mask)
            if moved
        ]

    @property
    def n_reassigned(self) -> int:
        return int(self.reassigned_mask.sum())

    def assignment(self) -> Dict[str, int]:
        """Occupation id -> corrected cluster."""
        return {
            occ: int(label)
            for occ, label in zip(self.result.occupations, self.corrected_clusters)
        }

    def corrected_sizes(self) -> Dict[int, int]:
        return {
            label: int(np.sum(self.corrected_clusters == label))
            for label in range(1, self.result.k + 1)
        }

    def to_dataframe(self, cluster_labels: Optional[Mapping[str, str]] = None) -> pd.DataFrame:
        """
        Final assignment table.

        Args:
            cluster_labels: Optional cluster number (string) -> description

        Returns:
            DataFrame with occupation, cluster, silhouette_width,
            corrected_cluster (plus label columns when provided)
        """
        df = pd.DataFrame({
            "occupation": self.result.occupations,
            "cluster": self.result.labels,
            "silhouette_width": self.result.silhouette_widths,
            "corrected_cluster": self.corrected_clusters,
        })

        if cluster_labels is not None:
            from .summary import label_clusters

            df["cluster_label"] = label_clusters(df["cluster"], cluster_labels)
            df["corrected_cluster_label"] = label_clusters(
                df["corrected_cluster"], cluster_labels
            )

        return df


def resolve(result: ClusteringResult) -> ResolvedClustering:
    """
    Move negative-silhouette occupations to their nearest other cluster.

    Args:
        result: ClusteringResult from the builder

    Returns:
        ResolvedClustering (the input is not modified)
    """
    corrected = np.where(
        result.silhouette_widths >= 0,
        result.labels,
        result.nearest_other_clusters,
    ).astype(int)
    corrected.setflags(write=False)

    return ResolvedClustering(result=result, corrected_clusters=corrected)
