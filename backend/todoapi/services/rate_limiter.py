"""In-memory, per-client fixed-window rate limiting.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: each bucket and each registry guards its state with a lock.
"""

from __future__ import annotations

import math
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Mapping, Optional

from todoapi.config import settings

DEFAULT_CLASSIFICATION = "default"
AUTH_CLASSIFICATION = "auth"


class TokenBucket:
    """Allows ``capacity`` operations per window, refilled all at once.

    The bucket is either full or draining within the current window; it is
    never topped up partially.
    """

    def __init__(self, capacity: int, window_seconds: float, now: float) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")

        self.capacity = capacity
        self.window_seconds = window_seconds
        self._tokens = capacity
        self._last_refill_at = now
        self._lock = threading.Lock()

    def _refill_if_due_locked(self, now: float) -> None:
        if now - self._last_refill_at >= self.window_seconds:
            self._tokens = self.capacity
            self._last_refill_at = now

    def refill_if_due(self, now: float) -> None:
        with self._lock:
            self._refill_if_due_locked(now)

    def try_consume(self, now: float) -> bool:
        """Take one token; False when the window's budget is spent."""
        with self._lock:
            self._refill_if_due_locked(now)
            if self._tokens > 0:
                self._tokens -= 1
                return True
            return False

    def remaining(self, now: float) -> int:
        with self._lock:
            self._refill_if_due_locked(now)
            return max(0, self._tokens)

    def next_reset_at(self) -> float:
        with self._lock:
            return self._last_refill_at + self.window_seconds


@dataclass
class _RegistryEntry:
    bucket: TokenBucket
    last_access: float


class BucketRegistry:
    """Owns the buckets for one classification.

    Entries are kept in access order, so idle entries sit at the front and
    are dropped first; ``max_entries`` bounds memory regardless of idleness.
    A dropped key simply starts over with a full bucket.
    """

    def __init__(self, *, idle_ttl_seconds: float, max_entries: int) -> None:
        if idle_ttl_seconds <= 0:
            raise ValueError("idle_ttl_seconds must be > 0")
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")

        self._idle_ttl = idle_ttl_seconds
        self._max_entries = max_entries
        self._entries: "OrderedDict[Hashable, _RegistryEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._evictions = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_or_create(
        self,
        key: Hashable,
        capacity: int,
        window_seconds: float,
        now: float,
    ) -> TokenBucket:
        """Return the bucket for ``key``, installing a full one if absent."""
        with self._lock:
            self._evict_idle_locked(now)

            entry = self._entries.get(key)
            if entry is None:
                entry = _RegistryEntry(
                    bucket=TokenBucket(capacity, window_seconds, now),
                    last_access=now,
                )
                self._entries[key] = entry
                self._evict_over_capacity_locked()
            else:
                entry.last_access = now
                self._entries.move_to_end(key)

            return entry.bucket

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._evictions = 0

    def stats(self) -> Dict[str, float]:
        with self._lock:
            return {
                "entries": len(self._entries),
                "max_entries": self._max_entries,
                "idle_ttl_seconds": self._idle_ttl,
                "evictions": self._evictions,
            }

    def _evict_idle_locked(self, now: float) -> None:
        while self._entries:
            key, entry = next(iter(self._entries.items()))
            if now - entry.last_access < self._idle_ttl:
                break
            del self._entries[key]
            self._evictions += 1

    def _evict_over_capacity_locked(self) -> None:
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)
            self._evictions += 1


@dataclass(frozen=True)
class RateLimitPolicy:
    """Budget for one classification of requests."""

    capacity: int
    window_seconds: int
    max_keys: int


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a gate check plus the values for the X-RateLimit-* headers.

    Attributes:
        allowed: Whether the request may proceed.
        limit: Bucket capacity for this classification.
        remaining: Tokens left after this request, clamped at 0.
        reset_at: UNIX epoch seconds when the current window ends.
        retry_after_seconds: Window length; only meaningful when blocked.
    """

    allowed: bool
    classification: str
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int

    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at),
        }


def resolve_client_key(headers: Mapping[str, str], peer_host: Optional[str]) -> str:
    """
    Identify the caller for rate limiting

    First hop of X-Forwarded-For, then X-Real-IP, then the socket peer.
    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded and forwarded.strip():
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return peer_host or "unknown"


class RateLimitGate:
    """Accept/reject decision per (classification, client key)."""

    def __init__(
        self,
        policies: Mapping[str, RateLimitPolicy],
        *,
        idle_ttl_seconds: float,
        auth_path_prefix: str = "/api/auth",
        clock: Callable[[], float] = time.time,
    ) -> None:
        if DEFAULT_CLASSIFICATION not in policies:
            raise ValueError("a default policy is required")

        self._policies = dict(policies)
        self._auth_path_prefix = auth_path_prefix.rstrip("/")
        self._clock = clock
        self._registries = {
            name: BucketRegistry(idle_ttl_seconds=idle_ttl_seconds, max_entries=policy.max_keys)
            for name, policy in self._policies.items()
        }

    def classify(self, path: str) -> str:
        if AUTH_CLASSIFICATION not in self._policies:
            return DEFAULT_CLASSIFICATION
        prefix = self._auth_path_prefix
        if path == prefix or path.startswith(prefix + "/"):
            return AUTH_CLASSIFICATION
        return DEFAULT_CLASSIFICATION

    def check(self, client_key: str, classification: str) -> RateLimitDecision:
        """Consume one unit for the caller and report the outcome."""
        policy = self._policies[classification]
        registry = self._registries[classification]
        now = self._clock()

        bucket = registry.get_or_create(
            (classification, client_key),
            policy.capacity,
            policy.window_seconds,
            now,
        )

        remaining = max(0, bucket.remaining(now) - 1)
        reset_at = int(math.ceil(bucket.next_reset_at()))
        allowed = bucket.try_consume(now)

        return RateLimitDecision(
            allowed=allowed,
            classification=classification,
            limit=policy.capacity,
            remaining=remaining,
            reset_at=reset_at,
            retry_after_seconds=policy.window_seconds,
        )

    def registry(self, classification: str) -> BucketRegistry:
        return self._registries[classification]

    def reset(self) -> None:
        """Forget all buckets."""
        for registry in self._registries.values():
            registry.clear()


def build_rate_limit_gate(clock: Callable[[], float] = time.time) -> RateLimitGate:
    """Gate configured from application settings."""
    policies = {
        DEFAULT_CLASSIFICATION: RateLimitPolicy(
            capacity=settings.RATE_LIMIT_CAPACITY,
            window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
            max_keys=settings.RATE_LIMIT_MAX_KEYS,
        ),
        AUTH_CLASSIFICATION: RateLimitPolicy(
            capacity=settings.AUTH_RATE_LIMIT_CAPACITY,
            window_seconds=settings.AUTH_RATE_LIMIT_WINDOW_SECONDS,
            max_keys=settings.AUTH_RATE_LIMIT_MAX_KEYS,
        ),
    }
    return RateLimitGate(
        policies,
        idle_ttl_seconds=settings.RATE_LIMIT_IDLE_TTL_SECONDS,
        auth_path_prefix=settings.AUTH_PATH_PREFIX,
        clock=clock,
    )


rate_limit_gate = build_rate_limit_gate()
