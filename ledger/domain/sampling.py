"""
Weighted discrete sampling shared by the accrual engine.

Session tiers and vehicle models are both drawn from (weight, value)
pairs by scanning the cumulative distribution. Weights need not sum to 1.
"""

import random
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


class WeightedSampler:
    """Draws one value from a list of (weight, value) pairs."""

    def __init__(self, pairs):
        pairs = [(float(weight), value) for weight, value in pairs]
        if not pairs:
            raise ValueError("WeightedSampler needs at least one (weight, value) pair")
        if any(weight < 0 for weight, _ in pairs):
            raise ValueError("weights must be non-negative")
        self.total = sum(weight for weight, _ in pairs)
        if self.total <= 0:
            raise ValueError("weights must not all be zero")
        self.pairs = pairs

    def sample(self, rng=None):
        rng = rng or random
        threshold = rng.random() * self.total
        cumulative = 0.0
        for weight, value in self.pairs:
            cumulative += weight
            if threshold < cumulative:
                return value
        # Float accumulation can leave threshold == total; fall back to the last value.
        return self.pairs[-1][1]


def uniform_amount(low, high, rng=None):
    """Uniform draw over [low, high] rounded to currency precision."""
    rng = rng or random
    return Decimal(str(rng.uniform(float(low), float(high)))).quantize(CENT, rounding=ROUND_HALF_UP)
