"""
Clustering algorithms behind one contract.

Each strategy turns (data, dissimilarity, k, rng) into integer labels. The
builder renumbers labels and computes silhouettes, so strategies only need
to partition.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Union

import numpy as np

from .distance import DissimilarityMatrix
from .exceptions import ConvergenceError
from .random_state import sklearn_seed


class ClusteringAlgorithm(str, Enum):
    """The closed set of candidate algorithms."""

    AGGLOMERATIVE = "agglomerative"
    DIVISIVE = "divisive"
    KMEANS = "kmeans"
    KMEDOIDS = "kmedoids"

    @classmethod
    def parse(cls, algorithm: Union[str, "ClusteringAlgorithm"]) -> "ClusteringAlgorithm":
        if isinstance(algorithm, cls):
            return algorithm
        try:
            return cls(str(algorithm).lower())
        except ValueError:
            valid = ", ".join(a.value for a in cls)
            raise ValueError(f"Unknown algorithm: {algorithm}. Use one of: {valid}")


class ClusteringStrategy(ABC):
    """
    Base class for clustering strategies.

    Subclasses must implement:
        - fit_labels(): partition the occupations into k groups
    """

    algorithm: ClusteringAlgorithm

    @abstractmethod
    def fit_labels(
        self,
        data: np.ndarray,
        dissimilarity: DissimilarityMatrix,
        k: int,
        rng: np.random.Generator,
    ) -> np.ndarray:
        """
        Partition into k clusters.

        Args:
            data: Feature matrix (n_occupations, n_features)
            dissimilarity: Precomputed dissimilarities for the same rows
            k: Number of clusters
            rng: Seeded generator for stochastic steps

        Returns:
            Integer labels, any values, one per row

        Raises:
            ConvergenceError: If an iteration cap is reached
        """
        pass


class AgglomerativeStrategy(ClusteringStrategy):
    """Bottom-up hierarchical clustering cut at k clusters."""

    algorithm = ClusteringAlgorithm.AGGLOMERATIVE

    def __init__(self, linkage: str = "ward"):
        self.linkage = linkage

    def fit_labels(self, data, dissimilarity, k, rng):
        from scipy.cluster.hierarchy import cut_tree, linkage

        tree = linkage(dissimilarity.condensed(), method=self.linkage)
        return cut_tree(tree, n_clusters=k).ravel()


class DivisiveStrategy(ClusteringStrategy):
    """
    Top-down divisive clustering (DIANA).

    Repeatedly splits the cluster with the largest diameter. The split starts
    a splinter group from the member with the highest mean dissimilarity and
    moves over every member that is on average closer to the splinter group.
    """

    algorithm = ClusteringAlgorithm.DIVISIVE

    def fit_labels(self, data, dissimilarity, k, rng):
        dist = dissimilarity.values
        clusters: List[np.ndarray] = [np.arange(dissimilarity.n)]

        while len(clusters) < k:
            diameters = [
                dist[np.ix_(members, members)].max() if len(members) > 1 else -1.0
                for members in clusters
            ]
            target = int(np.argmax(diameters))
            if len(clusters[target]) < 2:
                break

            members = clusters.pop(target)
            remaining, splinter = self._split(dist, members)
            clusters.insert(target, remaining)
            clusters.append(splinter)

        labels = np.empty(dissimilarity.n, dtype=int)
        for label, members in enumerate(clusters):
            labels[members] = label
        return labels

    @staticmethod
    def _split(dist: np.ndarray, members: np.ndarray):
        sub = dist[np.ix_(members, members)]
        n = len(members)

        mean_to_rest = sub.sum(axis=1) / (n - 1)
        in_splinter = np.zeros(n, dtype=bool)
        in_splinter[int(np.argmax(mean_to_rest))] = True

        while (~in_splinter).sum() > 1:
            rest = ~in_splinter
            n_rest = rest.sum()

            to_rest = sub[:, rest].sum(axis=1) / (n_rest - 1)
            to_splinter = sub[:, in_splinter].mean(axis=1)
            gain = np.where(rest, to_rest - to_splinter, -np.inf)

            best = int(np.argmax(gain))
            if gain[best] <= 0:
                break
            in_splinter[best] = True

        return members[~in_splinter], members[in_splinter]


class KMeansStrategy(ClusteringStrategy):
    """
    K-means with random multi-start (scikit-learn).

    Runs until assignments stop changing (``tol=0``). A run that used every
    allowed iteration is accepted only if its final centres are a fixed point
    of one more Lloyd step.
    """

    algorithm = ClusteringAlgorithm.KMEANS

    def __init__(self, n_init: int = 10, max_iter: int = 100):
        self.n_init = n_init
        self.max_iter = max_iter

    def fit_labels(self, data, dissimilarity, k, rng):
        from sklearn.cluster import KMeans

        kmeans = KMeans(
            n_clusters=k,
            n_init=self.n_init,
            max_iter=self.max_iter,
            tol=0.0,
            init="random",
            random_state=sklearn_seed(rng),
        )
        labels = kmeans.fit_predict(data)

        if kmeans.n_iter_ >= self.max_iter and not self._is_fixed_point(kmeans, data, labels):
            raise ConvergenceError(
                f"k-means did not converge within {self.max_iter} iterations (k={k})",
                labels=labels,
                n_iter=int(kmeans.n_iter_),
            )

        return labels

    @staticmethod
    def _is_fixed_point(kmeans, data: np.ndarray, labels: np.ndarray) -> bool:
        from sklearn.cluster import KMeans

        step = KMeans(
            n_clusters=kmeans.n_clusters,
            init=kmeans.cluster_centers_,
            n_init=1,
            max_iter=1,
            tol=0.0,
        ).fit(data)
        return bool(np.array_equal(step.labels_, labels))


class KMedoidsStrategy(ClusteringStrategy):
    """
    K-medoids by partitioning around medoids (PAM) on the dissimilarities.

    Uses the ``kmedoids`` package: greedy BUILD initialization, then one best
    improving medoid swap per iteration. An iteration without a swap means
    the run converged, so a run whose swap count equals its iteration count
    stopped at the cap.
    """

    algorithm = ClusteringAlgorithm.KMEDOIDS

    def __init__(self, max_iter: int = 100):
        self.max_iter = max_iter

    def fit_labels(self, data, dissimilarity, k, rng):
        import kmedoids

        dist = np.array(dissimilarity.values, dtype=np.float64)
        result = kmedoids.pam(dist, k, max_iter=self.max_iter, init="build")

        labels = np.array(result.labels, dtype=int)
        medoids = np.asarray(result.medoids, dtype=int)
        # Duplicate rows can tie a medoid with another medoid
        labels[medoids] = np.arange(len(medoids))

        if result.n_swap >= result.n_iter:
            raise ConvergenceError(
                f"k-medoids did not converge within {self.max_iter} iterations (k={k})",
                labels=labels,
                n_iter=int(result.n_iter),
            )

        return labels


def get_strategy(
    algorithm: Union[str, ClusteringAlgorithm],
    linkage: str = "ward",
    n_init: int = 10,
    max_iter: int = 100,
) -> ClusteringStrategy:
    """Create the strategy for an algorithm with the given parameters."""
    algorithm = ClusteringAlgorithm.parse(algorithm)

    if algorithm == ClusteringAlgorithm.AGGLOMERATIVE:
        return AgglomerativeStrategy(linkage=linkage)
    elif algorithm == ClusteringAlgorithm.DIVISIVE:
        return DivisiveStrategy()
    elif algorithm == ClusteringAlgorithm.KMEANS:
        return KMeansStrategy(n_init=n_init, max_iter=max_iter)
    else:
        return KMedoidsStrategy(max_iter=max_iter)
