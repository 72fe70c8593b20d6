"""
Rate limiting middleware.

Three fixed-window budgets (one minute unless the store says otherwise):
- per client IP, for every request;
- per session cookie, for every authenticated request;
- per session cookie, for mutating integration calls (connect/sync/disconnect),
  which fan out to the ledger provider and are far more expensive than reads.

Returns 429 Too Many Requests with Retry-After when any budget is exceeded.
"""
import time
import logging
from collections import defaultdict
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response, JSONResponse

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60
INTEGRATIONS_PREFIX = "/api/integrations/"
MUTATING_METHODS = {"POST", "DELETE"}


class InMemoryRateLimitStore:
    """
    Per-process counters keyed by (identifier, window_start).
    Multiple workers each keep their own counts.
    """

    def __init__(self, window_seconds: int = WINDOW_SECONDS):
        self._counts: dict[tuple[str, int], int] = defaultdict(int)
        self._window = window_seconds

    @property
    def window_seconds(self) -> int:
        return self._window

    def _window_start(self) -> int:
        return int(time.time() // self._window) * self._window

    def increment(self, key: str) -> int:
        """Increment count for key in current window; return new count."""
        w = self._window_start()
        self._counts[(key, w)] += 1
        return self._counts[(key, w)]

    def cleanup_old(self):
        """Drop entries from previous windows."""
        w = self._window_start()
        for k in [k for k in self._counts if k[1] < w]:
            del self._counts[k]


def get_client_ip(request: Request) -> str:
    """Client IP, honouring the first X-Forwarded-For hop behind a proxy."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "0.0.0.0"


def is_integration_mutation(request: Request) -> bool:
    return request.method in MUTATING_METHODS and request.url.path.startswith(INTEGRATIONS_PREFIX)


def _rate_limit_response(retry_after_seconds: int = WINDOW_SECONDS) -> Response:
    return JSONResponse(
        status_code=429,
        content={
            "detail": "Too many requests. Please retry after the time indicated in Retry-After.",
            "retry_after_seconds": retry_after_seconds,
        },
        headers={"Retry-After": str(retry_after_seconds)},
    )


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        session_cookie_name: str,
        requests_per_minute_ip: int = 100,
        requests_per_minute_user: int = 100,
        sync_requests_per_minute: int = 10,
        exempt_paths: Optional[list[str]] = None,
        store: Optional[InMemoryRateLimitStore] = None,
    ):
        super().__init__(app)
        self.cookie_name = session_cookie_name
        self.rpm_ip = requests_per_minute_ip
        self.rpm_user = requests_per_minute_user
        self.rpm_sync = sync_requests_per_minute
        self.exempt = set(exempt_paths or ["/health"])
        self.store = store or InMemoryRateLimitStore()

    def _over_budget(self, key: str, limit: int) -> bool:
        return self.store.increment(key) > limit

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if any(path == p or path.startswith(p + "/") for p in self.exempt):
            return await call_next(request)

        self.store.cleanup_old()

        client_ip = get_client_ip(request)
        if self._over_budget(f"ip:{client_ip}", self.rpm_ip):
            logger.warning("Rate limit exceeded for IP %s", client_ip)
            return _rate_limit_response(self.store.window_seconds)

        session = request.cookies.get(self.cookie_name)
        if session:
            if self._over_budget(f"session:{session}", self.rpm_user):
                logger.warning("Rate limit exceeded for session")
                return _rate_limit_response(self.store.window_seconds)
            if is_integration_mutation(request) and self._over_budget(f"integration:{session}", self.rpm_sync):
                logger.warning("Integration rate limit exceeded for session on %s %s", request.method, path)
                return _rate_limit_response(self.store.window_seconds)

        return await call_next(request)
