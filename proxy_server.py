"""
HTTP proxy in front of the Bhumi Consultancy API.

Forwards /api/* to the upstream API server and serves the sitemap.
"""
import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import date
from typing import Callable, List, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from config.settings import Settings, get_settings, setup_logging
from core.api import AUTH_FAILED, api_code_matches, failure, success
from core.sitemap import SitemapCache, build_sitemap

logger = logging.getLogger(__name__)

FORWARDED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


class ProxyServer:
    """Pass-through proxy with a cached sitemap."""

    def __init__(self, settings: Settings,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 clock: Callable[[], float] = time.time,
                 sitemap_cache: Optional[SitemapCache] = None,
                 today: Callable[[], date] = date.today):
        """
        Builds the proxy application.

        Args:
            settings: Application settings
            transport: httpx transport for upstream calls, the network by default
            clock: Wall clock in seconds, used for the cache-busting parameter
            sitemap_cache: Sitemap cache, built from settings when omitted
            today: Date used as sitemap lastmod
        """
        self.settings = settings
        self.clock = clock
        self.today = today
        self.started_at = clock()
        self.sitemap_cache = sitemap_cache or SitemapCache(settings.sitemap_cache_ttl)
        self.client = httpx.AsyncClient(
            base_url=settings.upstream_api_url,
            transport=transport,
            timeout=httpx.Timeout(15.0),
        )

        self.app = FastAPI(
            title="Bhumi Consultancy proxy",
            version="1.0.0",
            lifespan=self._lifespan
        )
        self.app.state.proxy = self

        self._setup_routes()

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        logger.info(f"Proxying /api to {self.settings.upstream_api_url}")
        yield
        await self.client.aclose()

    async def forward(self, request: Request, path: str) -> Response:
        """
        Forwards a request to the upstream API.

        Method, body, status code and the X-API-Code header are preserved;
        a _t parameter defeats intermediate caches.
        """
        headers = {"Content-Type": request.headers.get("content-type", "application/json")}
        api_code = request.headers.get("x-api-code")
        if api_code:
            headers["X-API-Code"] = api_code

        params = [(k, v) for k, v in request.query_params.multi_items() if k != "_t"]
        params.append(("_t", str(int(self.clock() * 1000))))

        body = await request.body()

        try:
            upstream = await self.client.request(
                request.method,
                f"/api/{path}",
                params=params,
                content=body or None,
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.error(f"Upstream request {request.method} /api/{path} failed: {e}")
            return failure("Failed to connect to upstream API", 500)

        return Response(
            content=upstream.content,
            status_code=upstream.status_code,
            media_type=upstream.headers.get("content-type", "application/json"),
        )

    async def _fetch_list(self, path: str) -> List[dict]:
        try:
            response = await self.client.get(path)
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Sitemap data from {path} unavailable: {e}")
            return []

        if not payload.get("success"):
            logger.warning(f"Sitemap data from {path} unavailable: {payload.get('error')}")
            return []
        return payload.get("data") or []

    async def generate_sitemap(self) -> bytes:
        services, programs = await asyncio.gather(
            self._fetch_list("/api/services"),
            self._fetch_list("/api/training-programs"),
        )
        logger.info(f"Sitemap includes {len(services)} services, {len(programs)} training programs")
        return build_sitemap(self.settings.domain, services, programs, today=self.today())

    def _setup_routes(self):
        """Registers the proxy routes."""

        @self.app.get("/health", tags=["monitoring"])
        async def health_check():
            return {
                "status": "ok",
                "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(self.clock())),
                "uptime": round(self.clock() - self.started_at, 3),
            }

        @self.app.get("/sitemap.xml")
        async def sitemap(refresh: bool = False):
            content = None if refresh else self.sitemap_cache.get()
            if content is None:
                content = await self.generate_sitemap()
                self.sitemap_cache.put(content)
            return Response(content=content, media_type="application/xml")

        @self.app.post("/api/sitemap/refresh")
        async def refresh_sitemap(request: Request):
            if not api_code_matches(request.headers.get("x-api-code"), self.settings.api_code):
                return failure(AUTH_FAILED, 401)
            self.sitemap_cache.reset()
            return success({"message": "Sitemap cache cleared. Next request will generate a fresh sitemap."})

        @self.app.api_route("/api/{path:path}", methods=FORWARDED_METHODS)
        async def proxy_api(path: str, request: Request):
            return await self.forward(request, path)


def create_proxy_app(settings: Optional[Settings] = None,
                     transport: Optional[httpx.AsyncBaseTransport] = None,
                     configure_logging: bool = True) -> FastAPI:
    """
    Creates the proxy application.

    Args:
        settings: Settings, read from the environment when omitted
        transport: httpx transport for upstream calls
        configure_logging: Whether to configure root logging from settings

    Returns:
        FastAPI: Configured application
    """
    settings = settings or get_settings()

    if configure_logging:
        setup_logging(settings)

    app = ProxyServer(settings, transport=transport).app

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials="*" not in settings.cors_origins_list,
        allow_methods=FORWARDED_METHODS + ["OPTIONS"],
        allow_headers=["Content-Type", "X-API-Code"],
    )

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "proxy_server:create_proxy_app",
        factory=True,
        host="0.0.0.0",
        port=5000,
    )
