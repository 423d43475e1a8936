"""Integration tests for the API gateway: health, proxying, rate ceiling, CORS."""

import httpx
import pytest
from fastapi.testclient import TestClient
from limits.aio.storage import MemoryStorage

from config import GatewaySettings, LoggingSettings
from gateway.app import create_gateway_app
from gateway.limiter import create_storage

UPSTREAM = "http://auth.local"


class Upstream:
    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.fail = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.fail:
            raise httpx.ConnectError("connection refused", request=request)
        self.requests.append(request)
        return httpx.Response(
            200,
            json={"success": True, "path": request.url.path},
            headers=[
                ("set-cookie", "access_token=abc; Path=/; HttpOnly; Secure"),
                ("set-cookie", "refresh_token=def; Path=/; HttpOnly; Secure"),
            ],
        )


@pytest.fixture
def upstream():
    return Upstream()


def _client(
    upstream,
    anonymous="3/15 minutes",
    authenticated="5/15 minutes",
    storage_uri=None,
    trusted_proxies=(),
):
    settings = GatewaySettings(
        auth_service_url=UPSTREAM,
        gateway_cors_origins=["http://localhost:3000"],
        rate_limit_anonymous=anonymous,
        rate_limit_authenticated=authenticated,
        rate_limit_storage_uri=storage_uri,
        trusted_proxies=list(trusted_proxies),
    )
    app = create_gateway_app(
        settings,
        logging_settings=LoggingSettings(log_level="WARNING"),
        transport=httpx.MockTransport(upstream.handler),
    )
    return TestClient(app)


class TestGatewayHealth:
    def test_welcome_message(self, upstream):
        with _client(upstream) as client:
            resp = client.get("/gateway-health")
        assert resp.status_code == 200
        assert resp.json() == {"message": "Welcome to api-gateway!"}
        assert upstream.requests == []

    def test_not_rate_limited(self, upstream):
        with _client(upstream, anonymous="1/15 minutes") as client:
            statuses = [client.get("/gateway-health").status_code for _ in range(3)]
        assert statuses == [200, 200, 200]


class TestProxy:
    def test_forwards_request(self, upstream):
        with _client(upstream) as client:
            resp = client.post(
                "/api/user-login?next=%2Fhome",
                json={"email": "a@b.com", "password": "pw"},
                headers={"X-Custom": "1"},
            )

        assert resp.status_code == 200
        assert resp.json() == {"success": True, "path": "/api/user-login"}

        forwarded = upstream.requests[0]
        assert forwarded.method == "POST"
        assert str(forwarded.url) == f"{UPSTREAM}/api/user-login?next=%2Fhome"
        assert forwarded.headers["host"] == "auth.local"
        assert forwarded.headers["x-custom"] == "1"
        assert forwarded.headers["x-forwarded-for"] == "testclient"
        assert b'"email"' in forwarded.content

    def test_relays_every_set_cookie(self, upstream):
        with _client(upstream) as client:
            resp = client.post("/api/user-login", json={})
        cookies = resp.headers.get_list("set-cookie")
        assert len(cookies) == 2
        assert cookies[0].startswith("access_token=abc")
        assert cookies[1].startswith("refresh_token=def")

    def test_forwards_cookies(self, upstream):
        with _client(upstream) as client:
            client.get("/api/logged-in-user", headers={"Cookie": "access_token=xyz"})
        assert "access_token=xyz" in upstream.requests[0].headers["cookie"]

    def test_upstream_unreachable(self, upstream):
        upstream.fail = True
        with _client(upstream) as client:
            resp = client.get("/api/logged-in-user")
        assert resp.status_code == 502
        assert resp.json() == {
            "success": False,
            "message": "Upstream service unavailable",
            "code": "bad_gateway",
        }


class TestRateLimit:
    def test_anonymous_ceiling(self, upstream):
        with _client(upstream) as client:
            statuses = [client.get("/api/anything").status_code for _ in range(4)]
            resp = client.get("/api/anything")
        assert statuses == [200, 200, 200, 429]
        assert resp.status_code == 429
        assert resp.json()["code"] == "rate_limit_exceeded"
        assert resp.json()["success"] is False
        assert resp.headers["X-RateLimit-Limit"] == "3"
        assert len(upstream.requests) == 3

    def test_headers_on_success(self, upstream):
        with _client(upstream) as client:
            resp = client.get("/api/anything")
        assert resp.headers["X-RateLimit-Limit"] == "3"
        assert resp.headers["X-RateLimit-Remaining"] == "2"

    def test_authenticated_requests_get_higher_ceiling(self, upstream):
        with _client(upstream) as client:
            statuses = [
                client.get(
                    "/api/logged-in-user", headers={"Authorization": "Bearer t"}
                ).status_code
                for _ in range(6)
            ]
        assert statuses == [200] * 5 + [429]

    def test_session_cookie_counts_as_authenticated(self, upstream):
        with _client(upstream) as client:
            statuses = [
                client.get(
                    "/api/logged-in-user", headers={"Cookie": "seller_access_token=t"}
                ).status_code
                for _ in range(4)
            ]
        assert statuses == [200] * 4


class TestCors:
    def test_preflight_allows_credentials(self, upstream):
        with _client(upstream) as client:
            resp = client.options(
                "/api/user-login",
                headers={
                    "Origin": "http://localhost:3000",
                    "Access-Control-Request-Method": "POST",
                },
            )
        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] == "http://localhost:3000"
        assert resp.headers["access-control-allow-credentials"] == "true"
        assert upstream.requests == []


class TestRateLimitStorage:
    @pytest.mark.parametrize("uri", ["memory://", "async+memory://"])
    def test_uri_resolves_to_async_storage(self, uri):
        assert isinstance(create_storage(uri), MemoryStorage)

    def test_configured_storage_uri(self, upstream):
        with _client(upstream, storage_uri="memory://") as client:
            statuses = [client.get("/api/anything").status_code for _ in range(4)]
        assert statuses == [200, 200, 200, 429]


class TestClientAddress:
    def test_spoofed_headers_do_not_reset_the_limit(self, upstream):
        with _client(upstream) as client:
            statuses = [
                client.get(
                    "/api/anything",
                    headers={
                        "X-Forwarded-For": f"198.51.100.{n}",
                        "CF-Connecting-IP": f"203.0.113.{n}",
                    },
                ).status_code
                for n in range(4)
            ]
        assert statuses == [200, 200, 200, 429]

    def test_untrusted_forwarding_headers_are_replaced(self, upstream):
        with _client(upstream) as client:
            client.get(
                "/api/anything",
                headers={"X-Forwarded-For": "198.51.100.1", "X-Real-IP": "198.51.100.2"},
            )
        forwarded = upstream.requests[0]
        assert forwarded.headers.get_list("x-forwarded-for") == ["testclient"]
        assert "x-real-ip" not in forwarded.headers

    def test_trusted_proxy_headers_are_honoured(self, upstream):
        with _client(upstream, trusted_proxies=["testclient"]) as client:
            first = [
                client.get(
                    "/api/anything", headers={"X-Forwarded-For": "203.0.113.7"}
                ).status_code
                for _ in range(4)
            ]
            other = client.get(
                "/api/anything", headers={"X-Forwarded-For": "203.0.113.8"}
            )
        assert first == [200, 200, 200, 429]
        assert other.status_code == 200
        assert upstream.requests[0].headers["x-forwarded-for"] == "203.0.113.7"
