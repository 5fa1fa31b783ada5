import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

MOVE = 'move'
CHAT = 'chat'


@dataclass
class TokenBucket:
    capacity: float
    refill_rate: float  # tokens per second
    tokens: float
    last_refill: float

    def refill(self, now: float) -> None:
        elapsed = max(0.0, now - self.last_refill)
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    def take(self, now: float, cost: float = 1) -> bool:
        self.refill(now)
        if self.tokens >= cost:
            self.tokens -= cost
            return True
        return False


class RateLimiter:
    """Token buckets per connection and category.

    ``limits`` maps a category to ``(capacity, refill_per_second)``. Buckets
    start full when a connection opens and disappear when it closes; a
    connection without buckets is refused.
    """

    def __init__(self, limits: Dict[str, Tuple[float, float]], clock: Callable[[], float] = time.monotonic):
        self.limits = dict(limits)
        self._clock = clock
        self._lock = threading.Lock()
        self._buckets: Dict[str, Dict[str, TokenBucket]] = {}

    def open(self, conn: str) -> None:
        with self._lock:
            self._buckets[conn] = self._fresh()

    def close(self, conn: str) -> None:
        with self._lock:
            self._buckets.pop(conn, None)

    def is_open(self, conn: str) -> bool:
        with self._lock:
            return conn in self._buckets

    def allow(self, conn: str, category: str, cost: float = 1) -> bool:
        with self._lock:
            buckets = self._buckets.get(conn)
            if buckets is None:
                # never opened, or already closed
                return False
            return buckets[category].take(self._clock(), cost)

    def _fresh(self) -> Dict[str, TokenBucket]:
        now = self._clock()
        return {
            category: TokenBucket(capacity=capacity, refill_rate=rate, tokens=capacity, last_refill=now)
            for category, (capacity, rate) in self.limits.items()
        }
