"""HTTP middleware: request logging and per-client rate limiting."""
import threading
import time
from typing import Dict, NamedTuple, Tuple
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."
EXEMPT_PATHS = {"/health", "/api/health"}


class RateLimitStatus(NamedTuple):
    """Outcome of counting one request against a client's window."""
    limit: int
    remaining: int
    reset_in: float
    is_limited: bool


class FixedWindowRateLimiter:
    """
    In-memory fixed-window request counter keyed by client address.
    State is per process and is lost on restart.
    """

    def __init__(self, max_requests: int, window_seconds: int):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._last_sweep = None
        self._lock = threading.Lock()

    def hit(self, key: str, now: float = None) -> RateLimitStatus:
        now = time.monotonic() if now is None else now
        with self._lock:
            self._sweep(now)
            started, count = self._windows.get(key, (now, 0))
            if now - started >= self.window_seconds:
                started, count = now, 0
            count += 1
            self._windows[key] = (started, count)

        reset_in = max(0.0, self.window_seconds - (now - started))
        return RateLimitStatus(
            limit=self.max_requests,
            remaining=max(0, self.max_requests - count),
            reset_in=reset_in,
            is_limited=count > self.max_requests,
        )

    def _sweep(self, now: float):
        """Drop expired windows, at most once per window length. Caller holds the lock."""
        if self._last_sweep is not None and now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        expired = [key for key, (started, _) in self._windows.items() if now - started >= self.window_seconds]
        for key in expired:
            del self._windows[key]


def add_middleware(app: FastAPI, limiter: FixedWindowRateLimiter):
    @app.middleware("http")
    async def rate_limit(request: Request, call_next):
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        client = request.client.host if request.client else "unknown"
        status = limiter.hit(client)
        if status.is_limited:
            logger.warning(f"Rate limit exceeded for {client} on {request.url.path}")
            response = JSONResponse(status_code=429, content={"error": RATE_LIMIT_MESSAGE})
        else:
            response = await call_next(request)

        response.headers["RateLimit-Limit"] = str(status.limit)
        response.headers["RateLimit-Remaining"] = str(status.remaining)
        response.headers["RateLimit-Reset"] = str(int(status.reset_in))
        return response

    # Registered last so it wraps the rate limiter and sees every response.
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(f"{request.method} {request.url.path} - {response.status_code} - {duration_ms:.0f}ms")
        return response
