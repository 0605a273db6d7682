"""Deterministic utilities for hashing, seeded random draws, ids, and dates."""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from datetime import UTC, date, datetime, timedelta
from typing import TypeVar

T = TypeVar("T")

HASH_MODULUS = 100_000
LEHMER_MODULUS = 2_147_483_647
LEHMER_MULTIPLIER = 16_807


def stable_hash(text: str) -> int:
    """Hash a string into ``[0, 100000)``, identical across processes and runs."""
    total = 0
    for ch in text:
        total = (total * 31 + ord(ch)) % HASH_MODULUS
    return total


class LehmerRNG:
    """Park-Miller minimal standard generator.

    The exact sequence is part of the synthetic-data contract: rosters
    persisted with a seed must be regenerable bit for bit.
    """

    def __init__(self, seed: int) -> None:
        """Initialize with a seed."""
        self.seed = seed
        state = seed % LEHMER_MODULUS
        if state <= 0:
            state += LEHMER_MODULUS - 1
        self._state = state

    def __call__(self) -> float:
        """Advance the state and return a float in ``[0, 1)``."""
        self._state = (self._state * LEHMER_MULTIPLIER) % LEHMER_MODULUS
        return (self._state - 1) / (LEHMER_MODULUS - 1)

    def below(self, n: int) -> int:
        """Generate random integer in [0, n)."""
        return math.floor(self() * n)


def seeded_rng(seed: int) -> Callable[[], float]:
    """Return a zero-argument generator producing the Lehmer sequence for ``seed``."""
    return LehmerRNG(seed)


def pick(rng: Callable[[], float], seq: Sequence[T]) -> T | None:
    """Choose an element with one draw; an empty sequence still consumes the draw."""
    index = math.floor(rng() * len(seq))
    if not seq:
        return None
    return seq[index]


def weighted_pick(rng: Callable[[], float], options: Sequence[tuple[T, float]]) -> T:
    """Select a value from ``(value, weight)`` pairs.

    The first option whose cumulative weight reaches the draw wins; the last
    option absorbs floating-point leftovers.
    """
    if not options:
        raise ValueError("weighted_pick needs at least one option")
    total = sum(weight for _, weight in options)
    roll = rng() * total
    acc = 0.0
    for value, weight in options:
        acc += weight
        if roll <= acc:
            return value
    return options[-1][0]


def pad(num: int, size: int) -> str:
    """Zero-pad a non-negative integer to ``size`` digits."""
    return str(num).zfill(size)


class IDGenerator:
    """Run-global sequential ids such as ``HW_000001``."""

    def __init__(self, width: int = 6) -> None:
        """Initialize with the zero-padded suffix width."""
        self.width = width
        self._counters: dict[str, int] = {}

    def sequential(self, prefix: str) -> str:
        """Return the next id for ``prefix``; counters start at 1 and never reset."""
        self._counters[prefix] = self._counters.get(prefix, 0) + 1
        return f"{prefix}_{pad(self._counters[prefix], self.width)}"

    def issued(self, prefix: str) -> int:
        """How many ids were issued for ``prefix`` so far."""
        return self._counters.get(prefix, 0)


def round_half_up(value: float) -> int:
    """Round halves towards positive infinity (``Math.round`` semantics)."""
    return math.floor(value + 0.5)


def round_to(value: float, digits: int = 1) -> float:
    """Round to ``digits`` decimals with halves going up."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def utc_today() -> date:
    """Current UTC calendar date."""
    return datetime.now(UTC).date()


def to_iso(value: date) -> str:
    """Format a date as ``YYYY-MM-DD``."""
    return value.isoformat()


def parse_iso(value: str) -> date:
    """Parse the date part of an ISO 8601 string."""
    return date.fromisoformat(value[:10])


def add_days(value: date, days: int) -> date:
    """Shift a date by a number of days."""
    return value + timedelta(days=days)


def window_start(end: str, days_back: int) -> str:
    """ISO start date of an inclusive window ending at ``end``."""
    return to_iso(add_days(parse_iso(end), -days_back))
