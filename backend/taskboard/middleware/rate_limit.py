"""
TaskBoard Backend - Credential Endpoint Rate Limiting
=====================================================

What:  Per-IP sliding-window limit on the sign-in and sign-up endpoints.
How:   Keeps a list of recent request timestamps per client IP in memory.
       Timestamps older than the window are dropped on every request; when
       the remaining count reaches the limit, the request is answered with
       429 and a Retry-After header and never reaches the route.

Only credential endpoints are limited: bcrypt makes each of them expensive,
and they are the target of password guessing. Session-gated routes are not.

The state is per process. Several workers each enforce the limit on their
own share of the traffic.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from taskboard.exceptions import RateLimitExceededError
from taskboard.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

DEFAULT_LIMITED_PATHS = ("/auth/signin", "/auth/signup")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Args:
        max_requests:  Requests allowed per IP within `window` seconds
        window:        Sliding window length in seconds
        paths:         Exact paths the limit applies to
        clock:         Time source, replaceable in tests
    """

    CLEANUP_EVERY = 1000

    def __init__(
        self,
        app,
        max_requests: int = 20,
        window: int = 300,
        paths: Iterable[str] = DEFAULT_LIMITED_PATHS,
        clock=time.monotonic,
    ):
        super().__init__(app)
        self.max_requests = max_requests
        self.window = window
        self.paths = frozenset(paths)
        self.clock = clock
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._seen = 0

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path not in self.paths:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        retry_after = self.hit(client_ip)
        if retry_after is not None:
            exc = RateLimitExceededError(retry_after=retry_after)
            logger.warning(
                "Rate limit exceeded for IP %s on %s (%d requests in %ds)",
                client_ip,
                request.url.path,
                self.max_requests,
                self.window,
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": exc.message,
                    "details": {"retry_after": exc.retry_after},
                    "request_id": request_id_var.get(""),
                },
                headers={"Retry-After": str(exc.retry_after)},
            )

        return await call_next(request)

    def hit(self, client_ip: str) -> Optional[int]:
        """
        Record one request from `client_ip`.

        Returns None when the request is allowed, otherwise the number of
        seconds until the oldest request leaves the window.
        """
        now = self.clock()
        window_start = now - self.window
        timestamps = [ts for ts in self._requests[client_ip] if ts > window_start]
        self._requests[client_ip] = timestamps

        if len(timestamps) >= self.max_requests:
            return int(timestamps[0] + self.window - now) + 1

        timestamps.append(now)
        self._seen += 1
        if self._seen % self.CLEANUP_EVERY == 0:
            self._cleanup_inactive_ips(window_start)
        return None

    def _cleanup_inactive_ips(self, window_start: float) -> None:
        inactive = [
            ip for ip, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] <= window_start
        ]
        for ip in inactive:
            del self._requests[ip]
        if inactive:
            logger.debug("Cleaned up %d inactive IP entries", len(inactive))
