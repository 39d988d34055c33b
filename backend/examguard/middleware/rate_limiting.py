import json
import logging
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Callable, Dict, Optional

from examguard.core.cache import CacheManager, cache as default_cache

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Sliding-window burst limit for write-heavy endpoints (violation reports).

    Only POSTs under the configured path prefixes are counted, per client.
    Rejected requests stay in the window. When the cache is down the request
    is let through.
    """

    def __init__(
        self,
        app,
        limited_paths: Dict[str, int],
        window_seconds: int = 10,
        cache: Optional[CacheManager] = None,
        enabled: bool = True,
    ):
        super().__init__(app)
        # path prefix -> max POSTs per window
        self.limited_paths = limited_paths
        self.window = window_seconds
        self.cache = cache or default_cache
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        limit = self._limit_for(request)
        if limit is None:
            return await call_next(request)

        client_key = self._client_key(request)
        hits = await self.cache.record_hit(f"ratelimit:{client_key}:{request.url.path}", self.window)
        if hits is None:
            return await call_next(request)

        if hits > limit:
            logger.warning(f"Rate limit exceeded for {client_key} on {request.url.path} ({hits}/{limit})")
            return Response(
                content=json.dumps({
                    "success": False,
                    "message": f"Too many reports: at most {limit} per {self.window} seconds",
                    "retryAfter": self.window,
                }),
                status_code=429,
                media_type="application/json",
                headers={
                    "Retry-After": str(self.window),
                    "X-RateLimit-Limit": str(limit),
                    "X-RateLimit-Remaining": "0",
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(limit - hits)
        return response

    def _limit_for(self, request: Request) -> Optional[int]:
        if not self.enabled or request.method != "POST":
            return None
        for prefix, limit in self.limited_paths.items():
            if request.url.path.startswith(prefix):
                return limit
        return None

    def _client_key(self, request: Request) -> str:
        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            return f"token:{auth_header[7:][-16:]}"

        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return f"ip:{forwarded_for.split(',')[0].strip()}"
        return f"ip:{request.client.host if request.client else 'unknown'}"
