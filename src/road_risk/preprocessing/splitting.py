"""Deterministic seeded shuffling, splitting and subsampling.

The generator is the Park-Miller minimal standard LCG (multiplier 16807,
modulus 2**31 - 1). It must not be swapped for another PRNG: splits are
expected to be bit-identical for a given row count and seed.
"""

import math
from dataclasses import dataclass
from typing import MutableSequence

from road_risk.constants import SUBSAMPLE_SEED, TRAIN_FRACTION, VAL_FRACTION

MULTIPLIER = 16807
MODULUS = 2147483647


class ParkMillerRandom:
    """Minimal standard linear congruential generator.

    The seed is used as the initial state, unchanged; each draw first advances
    the state and then returns ``state / MODULUS``.
    """

    def __init__(self, seed: int) -> None:
        if seed < 0:
            raise ValueError(f"seed must be non-negative, got {seed}")
        self.state = seed

    def random(self) -> float:
        self.state = (self.state * MULTIPLIER) % MODULUS
        return self.state / MODULUS


def seeded_shuffle(items: MutableSequence, seed: int) -> MutableSequence:
    """Fisher-Yates shuffle in place, walking from the last position down.

    Returns:
        The same sequence, for chaining.
    """
    rnd = ParkMillerRandom(seed)
    for i in range(len(items) - 1, 0, -1):
        j = math.floor(rnd.random() * (i + 1))
        items[i], items[j] = items[j], items[i]
    return items


@dataclass(frozen=True)
class Split:
    """Disjoint train/validation/test row positions covering ``range(n)``."""

    train: tuple[int, ...]
    val: tuple[int, ...]
    test: tuple[int, ...]

    def partition(self, name: str) -> tuple[int, ...]:
        if name not in ("train", "val", "test"):
            raise ValueError(f"Unknown partition '{name}', expected train, val or test")
        return getattr(self, name)

    def sizes(self) -> dict[str, int]:
        return {"train": len(self.train), "val": len(self.val), "test": len(self.test)}


def split_indices(
    n: int,
    seed: int,
    train_fraction: float = TRAIN_FRACTION,
    val_fraction: float = VAL_FRACTION,
) -> Split:
    """Shuffle ``range(n)`` with the seeded generator and cut it into partitions.

    Train gets ``floor(train_fraction * n)`` rows, validation the next
    ``floor(val_fraction * n)`` and test the remainder.
    """
    idx = seeded_shuffle(list(range(n)), seed)
    n_train = math.floor(n * train_fraction)
    n_val = math.floor(n * val_fraction)
    return Split(
        train=tuple(idx[:n_train]),
        val=tuple(idx[n_train : n_train + n_val]),
        test=tuple(idx[n_train + n_val :]),
    )


def sample_indices(n_total: int, n: int, seed: int = SUBSAMPLE_SEED) -> list[int]:
    """Pick ``min(n, n_total)`` row positions in seeded shuffled order."""
    idx = seeded_shuffle(list(range(n_total)), seed)
    return idx[: min(n, n_total)]
