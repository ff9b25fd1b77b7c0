"""One process serving the MCP tools at ``/mcp`` and the REST API at ``/api/v1``.

Both surfaces share a single :class:`GraphBroker`, so a topic created over MCP
is immediately routable over REST. The two apps each define ``/health``; the
combined app replaces both with one endpoint that also reports the mounted
interfaces.
"""

from __future__ import annotations

import logging
from typing import Any

import uvicorn
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from neuralearn.broker import GraphBroker, get_broker
from neuralearn.config import Settings, settings
from neuralearn.rest_server import create_app as create_rest_app
from neuralearn.server import configure_logging, create_mcp_server

logger = logging.getLogger(__name__)

MCP_PATH = "/mcp"
REST_PREFIX = "/api/v1"
HEALTH_PATH = "/health"


def create_app(
    broker: GraphBroker | None = None,
    config: Settings | None = None,
):
    """Build the MCP app and graft the REST routes onto it."""
    cfg = config or settings
    shared_broker = broker or get_broker(cfg)

    mcp_app = create_mcp_server(broker=shared_broker, config=cfg).http_app(
        path=MCP_PATH, transport="streamable-http"
    )
    rest_app = create_rest_app(broker=shared_broker, config=cfg)

    async def health(_: Request) -> JSONResponse:
        status: dict[str, Any] = await run_in_threadpool(shared_broker.health_check)
        status["interfaces"] = {"mcp": MCP_PATH, "rest": REST_PREFIX}
        return JSONResponse(status)

    routes = mcp_app.router.routes
    routes[:] = [r for r in routes if getattr(r, "path", None) != HEALTH_PATH]
    routes.append(Route(HEALTH_PATH, health, methods=["GET"]))
    routes.extend(r for r in rest_app.routes if getattr(r, "path", None) != HEALTH_PATH)
    return mcp_app


def main() -> None:
    """Run the combined MCP + REST server."""
    cfg = settings
    configure_logging(cfg)
    if cfg.mcp_transport == "stdio":
        raise ValueError(
            "The combined runtime serves MCP over HTTP only. "
            "Use NEURALEARN_RUNTIME_MODE=mcp for stdio."
        )

    logger.info(
        "Starting Neuralearn on %s:%s (MCP=%s, REST=%s)",
        cfg.host, cfg.port, MCP_PATH, REST_PREFIX,
    )
    uvicorn.run(create_app(config=cfg), host=cfg.host, port=cfg.port)


if __name__ == "__main__":
    main()
