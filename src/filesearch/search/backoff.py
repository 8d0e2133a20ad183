"""Jittered exponential backoff between retry attempts."""

import random

BASE_DELAY_MS = 500
JITTER_MS = 100


def backoff_delay_ms(
    attempt: int,
    base_ms: int = BASE_DELAY_MS,
    jitter_ms: int = JITTER_MS,
    rng: random.Random = random,
) -> int:
    """Return the wait before the next attempt, in milliseconds.

    ``attempt`` is zero-based: 0 is the wait after the first failed call.
    The result is ``base_ms * 2**attempt`` plus a uniform integer jitter in
    ``[-jitter_ms, +jitter_ms]``, floored at zero.
    """
    if attempt < 0:
        raise ValueError(f"attempt must be >= 0, got {attempt}")
    jitter = rng.randint(-jitter_ms, jitter_ms) if jitter_ms > 0 else 0
    return max(0, base_ms * (2 ** attempt) + jitter)
