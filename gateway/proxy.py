"""
Reverse proxy from the gateway to the auth service.

Method, path, query string, body, cookies and end-to-end headers are
forwarded unchanged; hop-by-hop headers are dropped in both directions and
every upstream Set-Cookie is relayed to the browser.
"""

from __future__ import annotations

import httpx
from fastapi import APIRouter, Request
from starlette.responses import Response

from errors import BadGatewayError
from infrastructure.http_client import HttpClient
from shared.ip_utils import PROXY_HEADERS, get_client_ip
from shared.logging import get_logger

log = get_logger(__name__)

router = APIRouter(tags=["proxy"])

HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
        "host",
        "content-length",
    }
)
# httpx already decoded the body, so the upstream encoding no longer applies
_DROPPED_RESPONSE_HEADERS = HOP_BY_HOP_HEADERS | {"content-encoding"}

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]


# Client-address headers are rebuilt by the gateway, never passed through
_CLIENT_ADDRESS_HEADERS = frozenset(name.lower() for name in PROXY_HEADERS)


def forward_headers(request: Request) -> list[tuple[str, str]]:
    headers = [
        (name, value)
        for name, value in request.headers.items()
        if name.lower() not in HOP_BY_HOP_HEADERS
        and name.lower() not in _CLIENT_ADDRESS_HEADERS
    ]
    client_ip = get_client_ip(request, request.app.state.trusted_proxies)
    if client_ip:
        headers.append(("x-forwarded-for", client_ip))
    return headers


def build_response(upstream: httpx.Response) -> Response:
    response = Response(content=upstream.content, status_code=upstream.status_code)
    for name, value in upstream.headers.multi_items():
        if name.lower() in _DROPPED_RESPONSE_HEADERS:
            continue
        response.headers.append(name, value)
    return response


@router.api_route("/{path:path}", methods=PROXY_METHODS, include_in_schema=False)
async def proxy(path: str, request: Request) -> Response:
    upstream_client: HttpClient = request.app.state.upstream
    try:
        upstream = await upstream_client.request(
            request.method,
            f"/{path}",
            params=request.query_params.multi_items(),
            headers=forward_headers(request),
            content=await request.body(),
        )
    except httpx.RequestError as e:
        log.error(
            "upstream_request_failed",
            path=f"/{path}",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise BadGatewayError("Upstream service unavailable") from e

    return build_response(upstream)
