from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Tuple


@dataclass
class Bucket:
    tokens: float
    last_refill: float


class TokenBucket:
    """Per-key token bucket: ``capacity`` requests, refilled evenly over ``window_seconds``.

    At most ``max_keys`` buckets are kept; the least recently used one is
    dropped to make room. A dropped key starts over with a full bucket.
    """

    def __init__(
        self,
        capacity: int,
        window_seconds: float,
        *,
        max_keys: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if max_keys <= 0:
            raise ValueError("max_keys must be positive")
        self.capacity = capacity
        self.rate = capacity / window_seconds
        self.max_keys = max_keys
        self._clock = clock
        self._buckets: "OrderedDict[str, Bucket]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._buckets)

    def consume(self, key: str) -> Tuple[bool, float]:
        """(allowed, seconds until a token is available)."""
        with self._lock:
            now = self._clock()
            bucket = self._get_or_create(key, now)
            bucket.tokens = min(self.capacity, bucket.tokens + (now - bucket.last_refill) * self.rate)
            bucket.last_refill = now
            # LRU touch
            self._buckets.move_to_end(key)

            if bucket.tokens >= 1:
                bucket.tokens -= 1
                return True, 0.0
            return False, (1 - bucket.tokens) / self.rate

    def clear(self) -> None:
        with self._lock:
            self._buckets.clear()

    def _get_or_create(self, key: str, now: float) -> Bucket:
        bucket = self._buckets.get(key)
        if bucket is not None:
            return bucket
        while len(self._buckets) >= self.max_keys:
            self._buckets.popitem(last=False)
        bucket = self._buckets[key] = Bucket(tokens=float(self.capacity), last_refill=now)
        return bucket
