"""
Tests for the HTTP proxy
"""
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from core.sitemap import SitemapCache
from proxy_server import ProxyServer

NOW = 1717243200.0


class Upstream:
    """Fake upstream API recording the requests it receives"""

    def __init__(self):
        self.requests = []
        self.fail = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if self.fail:
            raise httpx.ConnectError("connection refused", request=request)

        path = request.url.path
        if path == "/api/services":
            return httpx.Response(200, json={"success": True, "data": [{"id": 1, "title": "Consultancy"}]})
        if path == "/api/training-programs":
            return httpx.Response(200, json={"success": True, "data": [
                {"id": 1, "slug": "strategic-business-planning", "category": "Business"}
            ]})
        if path == "/api/participants" and request.headers.get("x-api-code") != "secret":
            return httpx.Response(401, json={"success": False, "error": "Authentication failed."})
        if path == "/api/verify-certificate":
            return httpx.Response(200, json={"success": True, "data": json.loads(request.content)})

        return httpx.Response(404, json={"success": False, "error": "Endpoint not found"})


class TestProxyServer:
    """Forwarding, sitemap and health"""

    @pytest.fixture
    def upstream(self):
        return Upstream()

    @pytest.fixture
    def proxy(self, settings, upstream):
        return ProxyServer(
            settings,
            transport=httpx.MockTransport(upstream),
            clock=lambda: NOW,
            sitemap_cache=SitemapCache(ttl=3600, clock=lambda: 0.0),
        )

    @pytest.fixture
    def client(self, proxy):
        return TestClient(proxy.app)

    def test_forwards_api_code_and_cache_buster(self, client, upstream):
        response = client.get("/api/participants", headers={"X-API-Code": "secret"}, params={"page": "2"})

        assert response.status_code == 404
        forwarded = upstream.requests[-1]
        assert forwarded.headers["x-api-code"] == "secret"
        assert forwarded.url.params["page"] == "2"
        assert forwarded.url.params["_t"] == str(int(NOW * 1000))

    def test_no_api_code_header_when_absent(self, client, upstream):
        response = client.get("/api/participants")

        assert response.status_code == 401
        assert "x-api-code" not in upstream.requests[-1].headers

    def test_forwards_method_and_body(self, client, upstream):
        payload = {"certificateId": "BHM23051501", "participantName": "John Doe"}

        response = client.post("/api/verify-certificate", json=payload)

        assert response.status_code == 200
        assert response.json() == {"success": True, "data": payload}
        assert upstream.requests[-1].method == "POST"

    def test_preserves_upstream_status(self, client):
        response = client.delete("/api/unknown")

        assert response.status_code == 404
        assert response.json()["error"] == "Endpoint not found"

    def test_upstream_unreachable(self, client, upstream):
        upstream.fail = True

        response = client.get("/api/services")

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Failed to connect to upstream API"}

    def test_sitemap_is_cached(self, client, upstream):
        first = client.get("/sitemap.xml")
        calls = len(upstream.requests)
        second = client.get("/sitemap.xml")

        assert first.status_code == 200
        assert first.headers["content-type"].startswith("application/xml")
        assert b"/training-programs/strategic-business-planning" in first.content
        assert second.content == first.content
        assert len(upstream.requests) == calls

    def test_sitemap_refresh_query(self, client, upstream):
        client.get("/sitemap.xml")
        calls = len(upstream.requests)

        client.get("/sitemap.xml", params={"refresh": "true"})

        assert len(upstream.requests) == calls + 2

    def test_sitemap_refresh_endpoint(self, client, proxy, auth_headers):
        client.get("/sitemap.xml")

        assert client.post("/api/sitemap/refresh").status_code == 401
        assert proxy.sitemap_cache.get() is not None

        response = client.post("/api/sitemap/refresh", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["success"] is True
        assert proxy.sitemap_cache.get() is None

    def test_sitemap_falls_back_to_static_pages(self, client, upstream):
        upstream.fail = True

        response = client.get("/sitemap.xml")

        assert response.status_code == 200
        assert b"/verify-certificate" in response.content
        assert b"/services/" not in response.content

    def test_health(self, client):
        body = client.get("/health").json()

        assert body["status"] == "ok"
        assert body["uptime"] == 0
