"""
Per-client rate limiting for the API.

Fixed-window counters keyed by "client_ip:path". The store is an explicit
object kept on app.state; a background task evicts expired windows on an
interval instead of letting the map grow forever.
"""

import asyncio
import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = logging.getLogger(__name__)


# =============================================================================
# Rules
# =============================================================================


@dataclass(frozen=True)
class RateLimitRule:
    """Limit applied to every path starting with `prefix`."""

    prefix: str
    max_requests: int
    window_seconds: int
    message: str = "Too many requests from this IP, please try again later."


def default_rules(window_seconds: int = 15 * 60, max_requests: int = 100) -> List[RateLimitRule]:
    """
    Rules for the read API.

    Map panning hits /directory far more often than other endpoints, so it
    gets a larger allowance in the same window.
    """
    return [
        RateLimitRule(
            prefix="/api/v1/directory",
            max_requests=max_requests * 3,
            window_seconds=window_seconds,
        ),
        RateLimitRule(
            prefix="/api/v1",
            max_requests=max_requests,
            window_seconds=window_seconds,
        ),
    ]


def match_rule(path: str, rules: Sequence[RateLimitRule]) -> Optional[RateLimitRule]:
    """Most specific (longest prefix) rule for a path, or None."""
    best: Optional[RateLimitRule] = None
    for rule in rules:
        if path == rule.prefix or path.startswith(rule.prefix.rstrip("/") + "/"):
            if best is None or len(rule.prefix) > len(best.prefix):
                best = rule
    return best


# =============================================================================
# Store
# =============================================================================


@dataclass
class WindowRecord:
    count: int
    reset_at: float  # epoch seconds


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float

    @property
    def reset_epoch(self) -> int:
        return int(math.ceil(self.reset_at))

    def retry_after(self, now: float) -> int:
        return max(0, int(math.ceil(self.reset_at - now)))


class RateLimitStore:
    """
    Fixed-window counters.

    Args:
        clock: Returns the current time in epoch seconds (tests pass a fake)
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._records: Dict[str, WindowRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def hit(self, key: str, rule: RateLimitRule) -> RateLimitResult:
        """Count one request against `key` and report whether it is allowed."""
        now = self.clock()
        with self._lock:
            record = self._records.get(key)

            if record is None or record.reset_at < now:
                record = WindowRecord(count=1, reset_at=now + rule.window_seconds)
                self._records[key] = record
                return RateLimitResult(True, rule.max_requests, rule.max_requests - 1, record.reset_at)

            if record.count >= rule.max_requests:
                return RateLimitResult(False, rule.max_requests, 0, record.reset_at)

            record.count += 1
            return RateLimitResult(
                True, rule.max_requests, max(0, rule.max_requests - record.count), record.reset_at
            )

    def sweep(self) -> int:
        """Drop expired windows. Returns the number removed."""
        now = self.clock()
        with self._lock:
            expired = [key for key, record in self._records.items() if record.reset_at < now]
            for key in expired:
                del self._records[key]
        if expired:
            logger.debug(f"Evicted {len(expired)} expired rate limit windows")
        return len(expired)

    def reset(self) -> None:
        with self._lock:
            self._records.clear()


async def run_sweeper(store: RateLimitStore, interval_seconds: float) -> None:
    """Evict expired windows every `interval_seconds` until cancelled."""
    logger.info(f"Rate limit sweeper started (every {interval_seconds}s)")
    while True:
        await asyncio.sleep(interval_seconds)
        store.sweep()


# =============================================================================
# Middleware
# =============================================================================


def get_client_ip(request: Request) -> str:
    """First X-Forwarded-For entry, else X-Real-IP, else the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def _limit_headers(result: RateLimitResult) -> Dict[str, str]:
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(max(0, result.remaining)),
        "X-RateLimit-Reset": str(result.reset_epoch),
    }


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Apply RateLimitStore counters to matching request paths.

    The store and rules are read from app.state on each request so tests
    can swap them without rebuilding the app.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        state = request.app.state
        store: Optional[RateLimitStore] = getattr(state, "rate_limit_store", None)
        rules: Sequence[RateLimitRule] = getattr(state, "rate_limit_rules", ())
        if store is None or not getattr(state, "rate_limit_enabled", True):
            return await call_next(request)

        path = request.url.path
        rule = match_rule(path, rules)
        if rule is None:
            return await call_next(request)

        ip = get_client_ip(request)
        result = store.hit(f"{ip}:{path}", rule)
        headers = _limit_headers(result)

        if not result.allowed:
            logger.warning(f"Rate limit exceeded for {ip} on {path}")
            headers["Retry-After"] = str(result.retry_after(store.clock()))
            return JSONResponse(status_code=429, content={"message": rule.message}, headers=headers)

        response = await call_next(request)
        response.headers.update(headers)
        return response
