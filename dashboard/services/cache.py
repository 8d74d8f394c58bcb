import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple


class Endpoint(str, Enum):
    ACCOUNT = "account"
    SPOT_BALANCE = "spot_balance"
    SPOT_PNL = "spot_pnl"
    FUTURES_POSITIONS = "futures_positions"
    BOTS = "bots"
    PRICES = "prices"
    TICKER = "ticker"
    PORTFOLIO_HISTORY = "portfolio_history"


@dataclass(frozen=True)
class CacheKey:
    endpoint: Endpoint
    params: Tuple[Any, ...] = ()


@dataclass
class _Entry:
    value: Any
    expires_at: float


class ResponseCache:
    """
    In-memory TTL cache in front of the exchange gateway.

    Lives for the life of the process. Concurrent misses on the same key may
    both compute; the last write wins.
    """

    def __init__(self, default_ttl: float = 10, ttl_overrides: Optional[Dict[Endpoint, float]] = None, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self.ttl_overrides = dict(ttl_overrides or {})
        self._clock = clock
        self._entries: Dict[CacheKey, _Entry] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings) -> "ResponseCache":
        return cls(
            default_ttl=settings.CACHE_TTL,
            ttl_overrides={
                Endpoint.SPOT_PNL: settings.PNL_CACHE_TTL,
                Endpoint.PORTFOLIO_HISTORY: settings.HISTORY_CACHE_TTL,
            },
        )

    def ttl_for(self, endpoint: Endpoint) -> float:
        return self.ttl_overrides.get(endpoint, self.default_ttl)

    def get(self, key: CacheKey) -> Tuple[bool, Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False, None
            if entry.expires_at <= self._clock():
                del self._entries[key]
                return False, None
            return True, entry.value

    def set(self, key: CacheKey, value: Any, ttl: Optional[float] = None):
        if ttl is None:
            ttl = self.ttl_for(key.endpoint)
        with self._lock:
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl)

    def get_or_compute(self, key: CacheKey, compute: Callable[[], Any], ttl: Optional[float] = None) -> Tuple[Any, bool]:
        """Returns (value, cached). Exceptions from compute are not cached."""
        hit, value = self.get(key)
        if hit:
            return value, True

        # compute() runs without the lock held
        value = compute()
        self.set(key, value, ttl)
        return value, False

    def invalidate(self, key: CacheKey):
        with self._lock:
            self._entries.pop(key, None)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
