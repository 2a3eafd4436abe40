"""
Step 2: Clusterability Assessment

Hopkins statistic: compares nearest-neighbour distances of real points with
those of uniform points drawn over the data's bounding box.

    ~0.5  -> spatially random, no cluster tendency
    ~1.0  -> strong cluster tendency
"""

from typing import Dict, Optional

import numpy as np
import pandas as pd
from sklearn.neighbors import NearestNeighbors

from .matrix import SkillMatrix
from .random_state import branch_rng


def hopkins_statistic(
    matrix: SkillMatrix,
    sample_size: int,
    rng: np.random.Generator,
) -> float:
    """
    Estimate cluster tendency.

    Args:
        matrix: Dataset to assess
        sample_size: Number of real (and synthetic) points to sample
        rng: Seeded generator

    Returns:
        Statistic in [0, 1]
    """
    data = matrix.values
    n = data.shape[0]

    if n < 2:
        raise ValueError("Hopkins statistic needs at least 2 points")
    if not 1 <= sample_size <= n:
        raise ValueError(f"sample_size must be between 1 and {n}, got {sample_size}")

    sample_idx = rng.choice(n, size=sample_size, replace=False)
    synthetic = rng.uniform(
        data.min(axis=0),
        data.max(axis=0),
        size=(sample_size, data.shape[1]),
    )

    nn = NearestNeighbors(n_neighbors=2).fit(data)

    # Real points: nearest neighbour other than the point itself
    real_dist, real_idx = nn.kneighbors(data[sample_idx], n_neighbors=2)
    is_self = real_idx[:, 0] == sample_idx
    real_nn = np.where(is_self, real_dist[:, 1], real_dist[:, 0])

    synthetic_dist, _ = nn.kneighbors(synthetic, n_neighbors=1)
    synthetic_nn = synthetic_dist[:, 0]

    synthetic_sum = float(synthetic_nn.sum())
    real_sum = float(real_nn.sum())
    total = synthetic_sum + real_sum

    if total == 0:
        return 0.5

    return synthetic_sum / total


def assess_clusterability(
    datasets: Dict[str, SkillMatrix],
    sample_size: Optional[int] = None,
    seed: Optional[int] = None,
    show_progress: bool = True,
) -> pd.DataFrame:
    """
    Hopkins statistic for several named datasets.

    Args:
        datasets: Dataset name -> matrix (e.g. standardized, reduced, random)
        sample_size: Points to sample; defaults to 10% of rows (at least 1)
        seed: Run seed; each dataset gets its own branch generator
        show_progress: Print results as they are computed

    Returns:
        DataFrame with dataset, n_occupations, sample_size, hopkins
    """
    rows = []

    for name, matrix in datasets.items():
        size = sample_size or max(1, matrix.n_occupations // 10)
        size = min(size, matrix.n_occupations)

        rng = branch_rng(seed, "hopkins", name)
        statistic = hopkins_statistic(matrix, size, rng)

        if show_progress:
            print(f"  {name}: Hopkins={statistic:.4f} (sample={size})")

        rows.append({
            "dataset": name,
            "n_occupations": matrix.n_occupations,
            "sample_size": size,
            "hopkins": round(statistic, 6),
        })

    return pd.DataFrame(rows)
