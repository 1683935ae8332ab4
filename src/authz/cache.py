"""Time-to-live cache for rows read on behalf of the authorization layer.

One explicit cache with get/set/invalidate keyed by resource, injected
where rows are fetched. The resolvers and the evaluator never see it.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

DEFAULT_TTL_SECONDS = 300.0
WORKSPACE_BOARDS_TTL_SECONDS = 120.0

_MISSING = object()


@dataclass(frozen=True)
class _Entry:
    value: Any
    expires_at: float


class TTLCache:
    """Key/value cache where every entry expires after its own TTL."""

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if default_ttl <= 0:
            msg = f"default_ttl must be positive, got {default_ttl}"
            raise ValueError(msg)
        self._default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, _Entry] = {}

    def get(self, key: str, default: Any = None) -> Any:
        """Return the live value for ``key``; expired entries are evicted."""
        entry = self._entries.get(key)
        if entry is None:
            return default
        if entry.expires_at <= self._clock():
            del self._entries[key]
            return default
        return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        ttl = self._default_ttl if ttl is None else ttl
        if ttl <= 0:
            msg = f"ttl must be positive, got {ttl}"
            raise ValueError(msg)
        self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl)

    def get_or_set(self, key: str, loader: Callable[[], Any], ttl: float | None = None) -> Any:
        """Read-through: call ``loader`` on a miss and cache its result."""
        value = self.get(key, _MISSING)
        if value is _MISSING:
            value = loader()
            self.set(key, value, ttl)
        return value

    def invalidate(self, key: str) -> bool:
        """Drop ``key``. Returns True if an entry was present."""
        return self._entries.pop(key, None) is not None

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every key starting with ``prefix``; returns how many."""
        doomed = [key for key in self._entries if key.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key, _MISSING) is not _MISSING

    def __len__(self) -> int:
        return len(self._entries)
