import itertools
from typing import Iterable, Iterator, Optional, Sequence, Tuple

import numpy as np


class TargetedPairs:
    """
    All ordered operand tuples over a fixed list of bit patterns.

    With arity 2 over the edge-case list this is the all-pairs sweep; arity 1
    walks the list once and arity 3 takes the full cube.
    """

    def __init__(self, values: Sequence[int], arity: int = 2) -> None:
        if arity not in (1, 2, 3):
            raise ValueError("arity must be 1, 2 or 3.")
        self.values = list(values)
        self.arity = arity

    def __len__(self) -> int:
        return len(self.values) ** self.arity

    def __iter__(self) -> Iterator[Tuple[int, ...]]:
        return itertools.product(self.values, repeat=self.arity)


class RandomPairs:
    """
    Uniformly random operand tuples over the full bit range of a format.

    Reproducible: the same (total_bits, count, seed, arity) yields the same
    sequence on every iteration. Widths above 64 bits are assembled from
    several 64-bit words.
    """

    def __init__(self, total_bits: int, count: int, seed: Optional[int] = 42, arity: int = 2) -> None:
        if not isinstance(total_bits, int) or total_bits <= 0:
            raise ValueError("total_bits must be a positive integer.")
        if not isinstance(count, int) or count < 0:
            raise ValueError("count must be a non-negative integer.")
        if arity not in (1, 2, 3):
            raise ValueError("arity must be 1, 2 or 3.")
        self.total_bits = total_bits
        self.count = count
        self.seed = seed
        self.arity = arity

    @staticmethod
    def _make_rng(seed: Optional[int]) -> np.random.Generator:
        """Create a numpy Generator with an optional integer seed."""
        if seed is None:
            return np.random.default_rng()
        if not isinstance(seed, int):
            raise ValueError("Seed must be an int or None.")
        return np.random.default_rng(seed)

    def __len__(self) -> int:
        return self.count

    def __iter__(self) -> Iterator[Tuple[int, ...]]:
        rng = self._make_rng(self.seed)
        n_words = (self.total_bits + 63) // 64
        mask = (1 << self.total_bits) - 1
        words = rng.integers(0, np.iinfo(np.uint64).max, size=(self.count, self.arity, n_words),
                             dtype=np.uint64, endpoint=True)
        for row in words:
            operands = []
            for value_words in row:
                value = 0
                for i, w in enumerate(value_words):
                    value |= int(w) << (64 * i)
                operands.append(value & mask)
            yield tuple(operands)


class CombinedPairs:
    """Strategies run back to back, in the order given."""

    def __init__(self, strategies: Sequence[Iterable[Tuple[int, ...]]]) -> None:
        self.strategies = list(strategies)

    def __len__(self) -> int:
        return sum(len(s) for s in self.strategies)

    def __iter__(self) -> Iterator[Tuple[int, ...]]:
        return itertools.chain.from_iterable(self.strategies)


def combined(*strategies: Iterable[Tuple[int, ...]]) -> CombinedPairs:
    return CombinedPairs(strategies)
