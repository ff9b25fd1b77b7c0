"""FastMCP server entry point for Neuralearn."""

from __future__ import annotations

import logging

from fastmcp import FastMCP
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse

from neuralearn.broker import GraphBroker, get_broker
from neuralearn.config import Settings, settings
from neuralearn.tools.graph_tools import register_graph_tools
from neuralearn.tools.topic_tools import register_topic_tools

logger = logging.getLogger(__name__)


def configure_logging(config: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def create_mcp_server(
    broker: GraphBroker | None = None,
    config: Settings | None = None,
) -> FastMCP:
    """Build the MCP server with every tool registered against ``broker``."""
    cfg = config or settings
    shared_broker = broker or get_broker(cfg)

    mcp = FastMCP(
        "Neuralearn Topic Graph",
        instructions="Topic knowledge graph for learners. Create topics, route questions "
        "to the right node, confirm new nodes and browse the graph.",
    )
    register_topic_tools(mcp, shared_broker)
    register_graph_tools(mcp, shared_broker)

    # Health endpoint (non-MCP, for Docker health checks)
    @mcp.custom_route("/health", methods=["GET"])
    async def health(request: Request) -> JSONResponse:
        return JSONResponse(await run_in_threadpool(shared_broker.health_check))

    return mcp


def main() -> None:
    """Run the MCP server."""
    configure_logging(settings)
    mcp = create_mcp_server(config=settings)
    if settings.mcp_transport == "stdio":
        logger.info("Starting Neuralearn MCP server on stdio")
        mcp.run(transport="stdio")
        return
    logger.info(f"Starting Neuralearn MCP server on {settings.host}:{settings.port}")
    mcp.run(
        transport="streamable-http",
        host=settings.host,
        port=settings.port,
    )


if __name__ == "__main__":
    main()
