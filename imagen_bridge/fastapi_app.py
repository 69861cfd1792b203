"""FastAPI application for the Imagen Bridge.

This module provides REST API endpoints for the standalone FastAPI service (port 7860).
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from imagen_bridge.core import (
    AiohttpRequestManager,
    ApiResponse,
    BridgeConfig,
    GenerationHandler,
    build_handlers,
    handle_health,
)

# Methods routed to the generation handlers; anything but POST/OPTIONS gets a 405
# from the handler itself so that CORS headers are still attached.
HANDLER_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def to_response(resp: ApiResponse) -> Response:
    """Convert ApiResponse to a FastAPI response."""
    if resp.data is None:
        return Response(status_code=resp.status, headers=resp.headers)
    return JSONResponse(content=resp.data, status_code=resp.status, headers=resp.headers)


def _generation_endpoint(handler: GenerationHandler):
    async def endpoint(request: Request) -> Response:
        raw_body = await request.body()
        resp = await handler.handle(request.method, raw_body)
        return to_response(resp)

    endpoint.__name__ = f"generate_{handler.variant.name.replace('-', '_')}"
    endpoint.__doc__ = f"Generate an image with the {handler.variant.model} model."
    return endpoint


def create_app(
    config: Optional[BridgeConfig] = None,
    requests: Optional[AiohttpRequestManager] = None,
) -> FastAPI:
    """Build the FastAPI app with one route per upstream variant."""
    config = config or BridgeConfig.from_env()
    requests = requests or AiohttpRequestManager(timeout=config.request_timeout)
    handlers = build_handlers(config, requests)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        yield
        # Cleanup on shutdown
        await requests.close()

    app = FastAPI(title="Imagen Bridge", version="0.1.0", lifespan=lifespan)
    app.state.config = config
    app.state.handlers = handlers

    @app.get("/api/health")
    async def health():
        resp = await handle_health()
        return resp.data

    for path, handler in handlers.items():
        app.add_api_route(path, _generation_endpoint(handler), methods=HANDLER_METHODS)

    return app


app = create_app()
