"""Plain aiohttp host for the Bridge API.

Serves the same handlers as the FastAPI app, for deployments that want a
single aiohttp process. Run with: python -m imagen_bridge.aiohttp_routes
"""
import logging
from typing import Optional

from aiohttp import web

from imagen_bridge.core import (
    AiohttpRequestManager,
    ApiResponse,
    BridgeConfig,
    GenerationHandler,
    build_handlers,
    handle_health,
)

logger = logging.getLogger(__name__)


def _json_response(resp: ApiResponse) -> web.Response:
    """Convert ApiResponse to an aiohttp response."""
    if resp.data is None:
        return web.Response(status=resp.status, headers=resp.headers)
    return web.json_response(resp.data, status=resp.status, headers=resp.headers)


def _generation_view(handler: GenerationHandler):
    async def view(request: web.Request) -> web.Response:
        raw_body = await request.read()
        resp = await handler.handle(request.method, raw_body)
        return _json_response(resp)

    return view


async def health(request: web.Request) -> web.Response:
    resp = await handle_health()
    return _json_response(resp)


def create_web_app(
    config: Optional[BridgeConfig] = None,
    requests: Optional[AiohttpRequestManager] = None,
) -> web.Application:
    """Build the aiohttp application with one route per upstream variant."""
    config = config or BridgeConfig.from_env()
    requests = requests or AiohttpRequestManager(timeout=config.request_timeout)
    handlers = build_handlers(config, requests)

    app = web.Application()
    app.router.add_get("/api/health", health)
    for path, handler in handlers.items():
        app.router.add_route("*", path, _generation_view(handler))

    async def close_requests(app: web.Application):
        await requests.close()

    app.on_cleanup.append(close_requests)
    return app


def main():
    config = BridgeConfig.from_env()
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info(f"Starting aiohttp bridge on {config.host}:{config.port}")
    web.run_app(create_web_app(config), host=config.host, port=config.port)


if __name__ == "__main__":
    main()
