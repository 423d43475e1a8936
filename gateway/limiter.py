"""
Global request-rate ceiling for the API gateway.

Fixed-window counters from the ``limits`` library, one bucket per client IP
across every route. Requests that carry a session (access cookie or bearer
token) get the authenticated ceiling, everyone else the anonymous one.
Exceeding the ceiling answers 429 in the standard error envelope; every
response carries X-RateLimit-* headers.
"""

from __future__ import annotations

from typing import Collection, Optional

from limits import RateLimitItem, parse
from limits.aio.storage import MemoryStorage, Storage
from limits.aio.strategies import FixedWindowRateLimiter
from limits.storage import storage_from_string
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from errors import RateLimitError
from shared.ip_utils import get_client_ip
from shared.logging import get_logger, hash_ip

log = get_logger(__name__)

_SESSION_COOKIES = ("access_token", "seller_access_token")
_RATE_LIMIT_MESSAGE = "Too many requests, please try again later."
_ASYNC_SCHEME_PREFIX = "async+"


def is_authenticated_request(request: Request) -> bool:
    if any(request.cookies.get(name) for name in _SESSION_COOKIES):
        return True
    return request.headers.get("Authorization", "").lower().startswith("bearer ")


def create_storage(storage_uri: Optional[str]) -> Storage:
    """Async counter storage; in-process memory unless a URI is configured.

    Plain ``limits`` URIs such as ``redis://host:6379`` name the synchronous
    backends, so they are switched to their ``async+`` variant.
    """
    if not storage_uri:
        return MemoryStorage()
    if not storage_uri.startswith(_ASYNC_SCHEME_PREFIX):
        storage_uri = f"{_ASYNC_SCHEME_PREFIX}{storage_uri}"
    storage = storage_from_string(storage_uri)
    if not isinstance(storage, Storage):
        raise ValueError(f"Rate limit storage is not async: {storage_uri!r}")
    return storage


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        *,
        anonymous: str,
        authenticated: str,
        storage: Storage,
        exempt_paths: tuple[str, ...] = (),
        trusted_proxies: Collection[str] = (),
    ) -> None:
        super().__init__(app)
        self._anonymous: RateLimitItem = parse(anonymous)
        self._authenticated: RateLimitItem = parse(authenticated)
        self._limiter = FixedWindowRateLimiter(storage)
        self._exempt_paths = exempt_paths
        self._trusted_proxies = frozenset(trusted_proxies)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self._exempt_paths:
            return await call_next(request)

        authenticated = is_authenticated_request(request)
        item = self._authenticated if authenticated else self._anonymous
        client_ip = get_client_ip(request, self._trusted_proxies)
        bucket = "auth" if authenticated else "anon"

        allowed = await self._limiter.hit(item, bucket, client_ip)
        stats = await self._limiter.get_window_stats(item, bucket, client_ip)
        headers = {
            "X-RateLimit-Limit": str(item.amount),
            "X-RateLimit-Remaining": str(max(stats.remaining, 0)),
            "X-RateLimit-Reset": str(int(stats.reset_time)),
        }

        if not allowed:
            log.warning(
                "rate_limit_exceeded",
                ip_hash=hash_ip(client_ip),
                path=request.url.path,
                authenticated=authenticated,
            )
            error = RateLimitError(_RATE_LIMIT_MESSAGE)
            return JSONResponse(
                status_code=error.status_code, content=error.to_dict(), headers=headers
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response
