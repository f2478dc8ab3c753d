"""
Seeded uniform random source for limit-price draws.
"""

from __future__ import annotations

import numpy as np

from config import DEFAULT_SEED


class RandomSource:
    """Uniform [0, 1) generator, deterministic for a given seed."""

    def __init__(self, seed: int = DEFAULT_SEED):
        self.seed = seed
        self._rng = np.random.default_rng(seed)
        self.draws = 0

    def next_double(self) -> float:
        self.draws += 1
        return float(self._rng.random())
