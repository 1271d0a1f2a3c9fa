"""Unbiased sampling primitive shared by allocation and replacement.

A draw of k from n shuffles a private copy of the pool (Fisher-Yates,
via ``random.Random.shuffle``) and takes the first k. Every eligible
candidate has the same probability of being drawn, and the order of
the drawn slice carries no meaning.

The generator is never module-global: each draw builds its own
``random.Random`` so concurrent draws share no mutable RNG state.
"""

from __future__ import annotations

import random
from typing import Optional, Sequence, TypeVar

T = TypeVar("T")


def make_rng(seed: Optional[str] = None) -> random.Random:
    """Build a private generator for one invocation.

    A seed makes the draw reproducible (tests, replays from an
    auditable beacon); without one the generator is seeded from
    system entropy.
    """
    rng = random.Random()
    if seed is not None:
        rng.seed(seed)
    else:
        rng.seed()
    return rng


def draw(pool: Sequence[T], count: int, rng: random.Random) -> list[T]:
    """Draw ``count`` distinct items uniformly at random from ``pool``.

    Raises ValueError if the pool is smaller than ``count``. The
    caller's sequence is never reordered.
    """
    if count < 0:
        raise ValueError(f"Draw count must be non-negative, got {count}")
    if len(pool) < count:
        raise ValueError(f"Cannot draw {count} from a pool of {len(pool)}")
    shuffled = list(pool)
    rng.shuffle(shuffled)
    return shuffled[:count]
