"""
Seeded random generators.

Every stochastic step takes an explicit ``numpy.random.Generator``. Branches of
an evaluation sweep get their own generator derived from the run seed plus the
branch identity, so results do not depend on execution order.
"""

import zlib
from typing import Optional

import numpy as np


DEFAULT_SEED = 42


def _identity_key(part) -> int:
    """Stable 32-bit key for one identity component."""
    value = getattr(part, "value", part)
    return zlib.crc32(str(value).encode("utf-8"))


def branch_rng(seed: Optional[int], *identity) -> np.random.Generator:
    """
    Create a generator for one branch of a run.
    
    Args:
        seed: Run-level seed (DEFAULT_SEED if None)
        *identity: Values naming the branch, e.g. dataset, metric, algorithm, k
        
    Returns:
        Independent numpy Generator
        
    Example:
        >>> rng = branch_rng(42, "standardized", "euclidean", "kmeans", 8)
    """
    if seed is None:
        seed = DEFAULT_SEED
    
    entropy = [int(seed)] + [_identity_key(part) for part in identity]
    return np.random.default_rng(np.random.SeedSequence(entropy))


def sklearn_seed(rng: np.random.Generator) -> int:
    """Draw an integer seed for scikit-learn ``random_state`` arguments."""
    return int(rng.integers(0, 2**31 - 1))
