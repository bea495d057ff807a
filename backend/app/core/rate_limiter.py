"""
Rate limiting middleware for FastAPI.

Fixed-window, in-memory, per client IP. Three buckets:
- auth endpoints (brute force protection)
- summary creation (each request spends a credit and calls paid services)
- everything else under the API
"""

import logging
import time
from threading import Lock
from typing import Callable, Dict, NamedTuple, Tuple

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from app.core.config import settings

logger = logging.getLogger(__name__)


class RateLimitDecision(NamedTuple):
    allowed: bool
    remaining: int
    reset_after: int  # seconds until the window resets


class RateLimiter:
    """
    Counts requests per client within a fixed window.

    Attributes:
        max_requests: Requests allowed per window
        window_seconds: Window length in seconds
        cleanup_interval: Purge stale clients every this many checks
    """

    def __init__(self, max_requests: int, window_seconds: int, cleanup_interval: int = 100):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.cleanup_interval = cleanup_interval
        # client id -> (window start, requests seen in window)
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._lock = Lock()
        self._checks = 0

    def check(self, client_id: str) -> RateLimitDecision:
        """Record a request from ``client_id`` and decide whether it may proceed."""
        now = time.time()
        with self._lock:
            self._checks += 1
            if self._checks % self.cleanup_interval == 0:
                self._purge(now)

            start, count = self._windows.get(client_id, (now, 0))
            if now - start >= self.window_seconds:
                start, count = now, 0

            reset_after = max(int(self.window_seconds - (now - start)), 0)
            if count >= self.max_requests:
                return RateLimitDecision(False, 0, reset_after)

            count += 1
            self._windows[client_id] = (start, count)
            return RateLimitDecision(True, self.max_requests - count, reset_after)

    def _purge(self, now: float) -> None:
        stale = [
            client_id
            for client_id, (start, _) in self._windows.items()
            if now - start >= self.window_seconds * 2
        ]
        for client_id in stale:
            del self._windows[client_id]
        if stale:
            logger.debug(f"Dropped {len(stale)} stale rate limit windows")

    def reset(self, client_id: str) -> None:
        """Forget the window of one client."""
        with self._lock:
            self._windows.pop(client_id, None)


auth_limiter = RateLimiter(
    max_requests=settings.RATE_LIMIT_AUTH_REQUESTS,
    window_seconds=settings.RATE_LIMIT_AUTH_WINDOW,
)

summarize_limiter = RateLimiter(
    max_requests=settings.RATE_LIMIT_SUMMARIZE_REQUESTS,
    window_seconds=settings.RATE_LIMIT_SUMMARIZE_WINDOW,
)

api_limiter = RateLimiter(
    max_requests=settings.RATE_LIMIT_API_REQUESTS,
    window_seconds=settings.RATE_LIMIT_API_WINDOW,
)


def get_client_ip(request: Request) -> str:
    """
    Extract client IP from request, considering proxy headers.

    Args:
        request: FastAPI request object

    Returns:
        Client IP address, or "unknown"
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # First hop is the original client
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    if request.client:
        return request.client.host

    return "unknown"


def select_limiter(request: Request) -> Tuple[str, RateLimiter]:
    """Pick the bucket a request is counted against."""
    path = request.url.path
    if "/auth/" in path:
        return "auth", auth_limiter
    if request.method == "POST" and path.rstrip("/").endswith("/summaries"):
        return "summarize", summarize_limiter
    return "api", api_limiter


def _limit_headers(limiter: RateLimiter, decision: RateLimitDecision) -> Dict[str, str]:
    return {
        "X-RateLimit-Limit": str(limiter.max_requests),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(decision.reset_after),
    }


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Applies the per-IP limits and reports them in X-RateLimit-* headers."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path

        # Health checks are never limited
        if "/health" in path:
            return await call_next(request)

        client_ip = get_client_ip(request)
        bucket, limiter = select_limiter(request)
        decision = limiter.check(client_ip)
        headers = _limit_headers(limiter, decision)

        if not decision.allowed:
            logger.warning(f"Rate limit exceeded for {client_ip} on {path} ({bucket})")
            # Exceptions raised here bypass the app's exception handlers
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "detail": f"Too many requests. Please retry in {decision.reset_after} seconds."
                },
                headers={"Retry-After": str(decision.reset_after), **headers},
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response
