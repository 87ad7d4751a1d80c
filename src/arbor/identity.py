"""Collision-free internal identifier allocation."""

from __future__ import annotations

import random
import string
import time
from collections.abc import Callable

from arbor.exceptions import AllocationExhaustedError

DEFAULT_MAX_ATTEMPTS = 10_000

_BASE36 = string.digits + string.ascii_lowercase
_SUFFIX_LENGTH = 9


def _now_ms() -> int:
    """Wall-clock time in milliseconds."""
    return time.time_ns() // 1_000_000


class IdentityAllocator:
    """Issues internal ids that are never handed out twice.

    Each candidate combines a strictly increasing counter, the wall clock
    and a random base36 suffix: ``"17_1718035200123_k3j9x0a2b"``. Every
    issued value is remembered for the allocator's lifetime, so ids of
    removed nodes are never reissued.

    Args:
        max_attempts: Candidates to try before giving up
        clock: Returns the current time in milliseconds
        rng: Random source for the suffix

    Example:
        >>> allocator = IdentityAllocator()
        >>> a, b = allocator.allocate(), allocator.allocate()
        >>> a != b
        True
        >>> allocator.is_issued(a)
        True
    """

    def __init__(
        self,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], int] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._max_attempts = max_attempts
        self._clock = clock or _now_ms
        self._rng = rng or random.Random()
        self._counter = 0
        self._issued: set[str] = set()

    @property
    def counter(self) -> int:
        """Number of candidates generated so far."""
        return self._counter

    def __len__(self) -> int:
        return len(self._issued)

    def _candidate(self) -> str:
        self._counter += 1
        suffix = "".join(self._rng.choice(_BASE36) for _ in range(_SUFFIX_LENGTH))
        return f"{self._counter}_{self._clock()}_{suffix}"

    def allocate(self) -> str:
        """Return a fresh internal id.

        Raises:
            AllocationExhaustedError: If no unused candidate was found
                within ``max_attempts`` tries
        """
        for _ in range(self._max_attempts):
            candidate = self._candidate()
            if candidate not in self._issued:
                self._issued.add(candidate)
                return candidate
        raise AllocationExhaustedError(self._max_attempts)

    def reserve(self, internal_id: str) -> None:
        """Record an id that was assigned elsewhere so it is never generated."""
        self._issued.add(internal_id)

    def is_issued(self, internal_id: str) -> bool:
        """True if the id was allocated or reserved by this allocator."""
        return internal_id in self._issued
