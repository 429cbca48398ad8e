"""Exponential backoff with symmetric jitter."""

from __future__ import annotations

import random
from collections.abc import Callable

JITTER = 0.1


def calculate_backoff(
    attempt: int,
    base: float = 60.0,
    cap: float = 300.0,
    rand: Callable[[], float] = random.random,
) -> float:
    """Delay in seconds before retry number ``attempt`` (0-indexed).

    ``min(base * 2**attempt, cap)`` scaled by a uniform factor in [0.9, 1.1].
    """
    delay = min(base * (2 ** max(0, attempt)), cap)
    jitter = delay * JITTER * (rand() * 2 - 1)
    return delay + jitter
