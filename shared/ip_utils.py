"""
Client IP resolution for FastAPI requests.

Takes an explicit ``Request`` parameter so the function is testable without
a request context and usable as a rate-limit key function.
"""

from __future__ import annotations

from typing import Collection, Optional

from starlette.requests import Request

PROXY_HEADERS: tuple[str, ...] = (
    "CF-Connecting-IP",
    "True-Client-IP",
    "X-Forwarded-For",
    "X-Real-IP",
)


def get_client_ip(
    request: Request, trusted_proxies: Optional[Collection[str]] = None
) -> str:
    """Extract the real client IP from a ``Request``.

    Checks proxy headers in priority order before falling back to the
    direct connection address:

    1. ``CF-Connecting-IP`` - Cloudflare
    2. ``True-Client-IP`` - Akamai and others
    3. ``X-Forwarded-For`` - standard proxy header (first IP in list)
    4. ``X-Real-IP`` - nginx / other reverse proxies

    When ``trusted_proxies`` is given, the headers are only honoured if the
    direct peer is one of those addresses; anyone else could forge them.

    Returns:
        The resolved client IP string, or ``""`` if none can be found.
    """
    peer = request.client.host if request.client else ""
    if trusted_proxies is not None and peer not in trusted_proxies:
        return peer

    for header in PROXY_HEADERS:
        ip_value: str | None = request.headers.get(header)
        if ip_value:
            client_ip: str = ip_value.split(",")[0].strip()
            if client_ip:
                return client_ip

    return peer
