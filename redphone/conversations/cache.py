"""In-memory key/value cache whose entries expire after a period of inactivity."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")


@dataclass
class _Entry(Generic[V]):
    value: V
    created_at: float
    last_access: float


class ExpiringCache(Generic[K, V]):
    """Map keys to values, evicting entries idle for longer than ``ttl_seconds``.

    Eviction is lazy: every access checks whether ``sweep_interval_seconds``
    have passed since the last sweep and, if so, drops expired entries. The
    clock is injectable so tests can advance time without sleeping.
    """

    def __init__(
        self,
        ttl_seconds: float,
        sweep_interval_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._ttl = ttl_seconds
        self._sweep_interval = sweep_interval_seconds
        self._clock = clock
        self._entries: dict[K, _Entry[V]] = {}
        self._last_sweep = clock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def now(self) -> float:
        return self._clock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key)  # type: ignore[arg-type]
        return entry is not None and not self._expired(entry, self._clock())

    def keys(self) -> Iterator[K]:
        return iter(list(self._entries))

    def values(self) -> Iterator[V]:
        return iter([entry.value for entry in self._entries.values()])

    def get(self, key: K) -> V | None:
        now = self._maybe_sweep()
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._expired(entry, now):
            del self._entries[key]
            return None
        entry.last_access = now
        return entry.value

    def set(self, key: K, value: V) -> None:
        now = self._maybe_sweep()
        self._entries[key] = _Entry(value=value, created_at=now, last_access=now)

    def get_or_create(self, key: K, factory: Callable[[], V]) -> V:
        value = self.get(key)
        if value is None:
            value = factory()
            self.set(key, value)
        return value

    def pop(self, key: K) -> V | None:
        entry = self._entries.pop(key, None)
        return entry.value if entry is not None else None

    def created_at(self, key: K) -> float | None:
        entry = self._entries.get(key)
        return entry.created_at if entry is not None else None

    def sweep(self) -> int:
        """Drop every expired entry now and return how many were removed."""

        now = self._clock()
        self._last_sweep = now
        expired = [key for key, entry in self._entries.items() if self._expired(entry, now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.info("Evicted %d expired entries", len(expired))
        return len(expired)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _expired(self, entry: _Entry[V], now: float) -> bool:
        return now - entry.last_access > self._ttl

    def _maybe_sweep(self) -> float:
        now = self._clock()
        if now - self._last_sweep >= self._sweep_interval:
            self.sweep()
        return now
