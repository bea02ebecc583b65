# src/intunegraph/http/throttle.py
from __future__ import annotations
import functools
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet, Optional

from intunegraph.http.errors import HttpError

log = logging.getLogger(__name__)

def compute_sleep_seconds(attempt: int, retry_after_header: str | None) -> float:
    # Honor Retry-After (integer seconds)
    if retry_after_header and retry_after_header.isdigit():
        return int(retry_after_header)
    base = min(2 ** attempt, 8)  # 1,2,4,8 cap
    return base * (0.6 + 0.8 * random.random())  # jitter 60–140%

def sleep_backoff(seconds: float) -> None:
    if seconds > 0:
        time.sleep(seconds)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry around a whole request. Default matches the old
    server-busy loop: 3 extra attempts, fixed delay, 503 only.
    """
    max_retries: int = 3
    delay_seconds: float = 5.0
    statuses: FrozenSet[int] = field(default_factory=lambda: frozenset({503}))
    backoff: str = "fixed"            # "fixed" | "exponential"
    honor_retry_after: bool = False
    sleep: Callable[[float], None] = field(default=sleep_backoff, compare=False, repr=False)

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.backoff not in ("fixed", "exponential"):
            raise ValueError(f"unknown backoff: {self.backoff!r}")
        object.__setattr__(self, "statuses", frozenset(int(s) for s in self.statuses))

    def should_retry(self, err: HttpError, attempt: int) -> bool:
        return err.status in self.statuses and attempt < self.max_retries

    def delay_for(self, attempt: int, retry_after: Optional[str] = None) -> float:
        if self.honor_retry_after and retry_after and retry_after.isdigit():
            return int(retry_after)
        if self.backoff == "exponential":
            return compute_sleep_seconds(attempt, None) * self.delay_seconds
        return self.delay_seconds

    def call(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        attempt = 0
        while True:
            try:
                return fn(*args, **kwargs)
            except HttpError as err:
                if not self.should_retry(err, attempt):
                    raise
                wait = self.delay_for(attempt, err.retry_after)
                log.warning("HTTP %s on %s, retry %d/%d in %.1fs",
                            err.status, err.url, attempt + 1, self.max_retries, wait)
                self.sleep(wait)
                attempt += 1


def with_retry(policy: RetryPolicy):
    """Decorator form of RetryPolicy.call."""
    def deco(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            return policy.call(fn, *args, **kwargs)
        return wrapper
    return deco
