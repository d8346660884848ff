# imposters/assignment.py
import math
import random
from typing import Sequence, TypeVar

T = TypeVar("T")


def pick_imposter(candidates: Sequence[T], rng=random) -> T:
    """
    Pick the round's imposter uniformly at random from the freshly reset participants.

    Uses floor(random() * N) over the given order so that a seeded rng gives
    a reproducible pick. Nothing is remembered between rounds; the same
    participant can be picked again.
    """
    if not candidates:
        raise ValueError("Cannot pick an imposter from an empty participant list")

    index = math.floor(rng.random() * len(candidates))
    # random() is in [0, 1) but guard against custom rngs returning 1.0
    return candidates[min(index, len(candidates) - 1)]
