"""Backoff policy and retry options shared by table polling and batch writes."""

import random
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class RetryOptions:
    """
    Retry behavior of individual BatchWriteItem calls.

    The jittered back-off duration is calculated as:

        duration_ms = random_between(0, back_off_base * 2 ** attempt)

    max_attempts and timeout_ms both bound the retry loop; whichever is
    reached first ends it.
    """

    back_off_base: int = 100
    max_attempts: int = 8
    timeout_ms: int = 60_000

    def with_overrides(self, back_off_base=None, max_attempts=None, timeout_ms=None):
        """
        Return a copy with the given values replaced.

        Zero or None leaves the current value in place.
        """
        changes = {}
        if back_off_base:
            changes["back_off_base"] = back_off_base
        if max_attempts:
            changes["max_attempts"] = max_attempts
        if timeout_ms:
            changes["timeout_ms"] = timeout_ms
        return replace(self, **changes)


DEFAULT_RETRY_OPTIONS = RetryOptions()

# Table polling gives up after 8 describes, sleeping at most 2 + 4 + ... + 128 sec.
DEFAULT_READINESS_OPTIONS = RetryOptions(back_off_base=1000, max_attempts=8, timeout_ms=0)


def attempts_exhausted(retries, max_attempts):
    """
    Check whether another sleep is allowed after `retries` sleeps so far.

    With max_attempts=8 this permits 7 sleeps, so 8 calls in total.
    """
    return retries > max_attempts - 2


def jittered_delay(attempt, base_ms, rng=None):
    """
    Sample a back-off duration in seconds from [0, base_ms * 2 ** attempt) ms.

    Args:
        attempt: Attempt exponent (1 for the first retry)
        base_ms: Back-off base in milliseconds
        rng: Optional random.Random used for the draw

    Returns:
        Duration in seconds
    """
    rng = rng or random
    upper = base_ms * (2 ** attempt)
    if upper <= 0:
        return 0.0
    return rng.randrange(upper) / 1000.0


def fixed_delay(attempt, base_ms=1000):
    """Return a deterministic back-off of base_ms * 2 ** attempt, in seconds."""
    return base_ms * (2 ** attempt) / 1000.0
