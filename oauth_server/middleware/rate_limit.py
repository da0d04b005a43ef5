"""
Fixed-window request throttling.

Each limiter instance is one endpoint class (for example a strict one for the
token endpoints and a lenient one for general API traffic). Counters are keyed
by client IP and shared by every request thread.
"""

import math
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from oauth_server.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(math.ceil(self.reset_at)),
        }


@dataclass
class _Window:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    """
    Counts requests per key in fixed windows of ``window_seconds``.

    The first request for a key (or the first after its window elapsed) opens a
    new window with count 1. Later requests increment the count and are allowed
    while it stays at or below ``max_requests``.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.time,
        name: str = "default",
    ) -> None:
        if max_requests < 1 or window_seconds <= 0:
            raise ValueError("max_requests and window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self.name = name
        self._lock = threading.Lock()
        self._windows: dict[str, _Window] = {}
        self._next_sweep = clock() + window_seconds

    def check_and_consume(self, key: str) -> RateLimitDecision:
        now = self.clock()
        with self._lock:
            if now >= self._next_sweep:
                self._sweep_locked(now)

            window = self._windows.get(key)
            if window is None or now >= window.reset_at:
                window = _Window(count=1, reset_at=now + self.window_seconds)
                self._windows[key] = window
            else:
                window.count += 1

            return RateLimitDecision(
                allowed=window.count <= self.max_requests,
                limit=self.max_requests,
                remaining=max(0, self.max_requests - window.count),
                reset_at=window.reset_at,
            )

    def sweep(self) -> int:
        """Drop windows that have elapsed. Returns how many were removed."""
        with self._lock:
            return self._sweep_locked(self.clock())

    def _sweep_locked(self, now: float) -> int:
        expired = [key for key, window in self._windows.items() if now >= window.reset_at]
        for key in expired:
            del self._windows[key]
        self._next_sweep = now + self.window_seconds
        return len(expired)

    def __len__(self) -> int:
        return len(self._windows)


@dataclass(frozen=True)
class RateLimitRule:
    paths: frozenset[str]
    limiter: FixedWindowRateLimiter


def client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Applies limiter rules to requests whose path matches a rule.

    Guarded responses always carry the X-RateLimit-* headers; rejected requests
    get a 429 with Retry-After and never reach the route.
    """

    def __init__(
        self,
        app: ASGIApp,
        rules: Iterable[RateLimitRule],
        key_func: Callable[[Request], str] = client_key,
    ) -> None:
        super().__init__(app)
        self.rules = list(rules)
        self.key_func = key_func

    def _limiter_for(self, path: str) -> FixedWindowRateLimiter | None:
        for rule in self.rules:
            if path in rule.paths:
                return rule.limiter
        return None

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        limiter = self._limiter_for(request.url.path)
        if limiter is None:
            return await call_next(request)

        key = self.key_func(request)
        decision = limiter.check_and_consume(key)
        headers = decision.headers()

        if not decision.allowed:
            retry_after = max(0, math.ceil(decision.reset_at - limiter.clock()))
            logger.warning(
                "rate_limit_exceeded",
                limiter=limiter.name,
                key=key,
                path=request.url.path,
                retry_after=retry_after,
            )
            headers["Retry-After"] = str(retry_after)
            return JSONResponse(
                {"message": "Too many requests, please try again later", "retry_after": retry_after},
                status_code=429,
                headers=headers,
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response
