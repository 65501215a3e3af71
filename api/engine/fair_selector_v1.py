from __future__ import annotations

import secrets
from typing import List, Protocol, Sequence, TypeVar

from api.engine.constants import SLOTS_PER_CAT

T = TypeVar("T")


class RandomSource(Protocol):
    def randrange(self, stop: int) -> int: ...


def default_random_source() -> RandomSource:
    return secrets.SystemRandom()


def shuffle_v1(candidates: Sequence[T], rng: RandomSource | None = None) -> List[T]:
    """Fisher-Yates over a copy; every permutation is equally likely given a uniform ``randrange``."""
    source = rng if rng is not None else default_random_source()
    out = list(candidates)
    for i in range(len(out) - 1, 0, -1):
        j = source.randrange(i + 1)
        out[i], out[j] = out[j], out[i]
    return out


def draw_without_replacement_v1(
    candidates: Sequence[T],
    k: int = SLOTS_PER_CAT,
    rng: RandomSource | None = None,
) -> List[T]:
    """
    Uniformly random ordered prefix of ``candidates`` of length ``min(k, len(candidates))``.

    The full list is shuffled before slicing so that a candidate's chance of any
    reachable rank does not depend on its input position. Short pools are
    returned whole, never padded.
    """
    if isinstance(k, bool) or not isinstance(k, int) or k < 0:
        raise ValueError(f"k must be a non-negative int, got {k!r}")
    if k == 0 or len(candidates) == 0:
        return []
    return shuffle_v1(candidates, rng=rng)[:k]
