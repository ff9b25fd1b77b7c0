"""REST/OpenAPI server for Neuralearn."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator
from typing import Any

import uvicorn
from pydantic import BaseModel, Field, ValidationError
from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, StreamingResponse
from starlette.routing import Route

from neuralearn.broker import GraphBroker, get_broker
from neuralearn.config import Settings, settings
from neuralearn.errors import NeuralearnError, NotFoundError, TopicConflictError
from neuralearn.models.chat import ChatTurnRequest
from neuralearn.models.graph import RootTopic
from neuralearn.models.routing import RouteRequest

logger = logging.getLogger(__name__)


class TopicCreateRequest(BaseModel):
    title: str
    description: str | None = None


class NodeCreateRequest(BaseModel):
    title: str
    parent_id: str
    summary: str | None = None
    tags: list[str] | None = None
    node_id: str | None = None


class AuditCompactRequest(BaseModel):
    keep: int = Field(default=1000, ge=0)


def _topic_payload(topic: RootTopic) -> dict[str, Any]:
    return {
        "id": topic.id,
        "title": topic.title,
        "description": topic.description,
        "index_collection_id": topic.index_collection_id,
        "node_count": topic.node_count,
        "created_at": topic.created_at,
    }


def _sse(events: Iterator[dict[str, Any]]) -> Iterator[str]:
    for event in events:
        yield f"data: {json.dumps(event, default=str)}\n\n"


def _build_openapi_schema(base_url: str) -> dict[str, Any]:
    """Build a compact OpenAPI schema for the REST endpoints."""
    components = {
        "TopicCreateRequest": TopicCreateRequest.model_json_schema(),
        "RouteRequest": RouteRequest.model_json_schema(by_alias=True),
        "NodeCreateRequest": NodeCreateRequest.model_json_schema(),
        "ChatTurnRequest": ChatTurnRequest.model_json_schema(by_alias=True),
        "AuditCompactRequest": AuditCompactRequest.model_json_schema(),
    }

    def req(name: str) -> dict[str, Any]:
        return {
            "required": True,
            "content": {
                "application/json": {
                    "schema": {"$ref": f"#/components/schemas/{name}"},
                }
            },
        }

    return {
        "openapi": "3.1.0",
        "info": {
            "title": "Neuralearn REST API",
            "version": "0.1.0",
            "description": (
                "Topic knowledge graph: create topics, route questions to nodes, "
                "confirm new nodes and chat with the graph tutor."
            ),
        },
        "servers": [{"url": base_url}],
        "paths": {
            "/health": {"get": {"summary": "Health check", "responses": {"200": {"description": "OK"}}}},
            "/api/v1/topics": {
                "get": {"summary": "List recent topics", "responses": {"200": {"description": "Topics"}}},
                "post": {"summary": "Create topic", "requestBody": req("TopicCreateRequest"), "responses": {"200": {"description": "Created"}, "400": {"description": "Empty title"}, "409": {"description": "Title exists"}}},
            },
            "/api/v1/topics/{topic_id}/nodes": {"get": {"summary": "List topic nodes", "responses": {"200": {"description": "Nodes"}, "404": {"description": "Unknown topic"}}}},
            "/api/v1/route-question": {"post": {"summary": "Route a question", "requestBody": req("RouteRequest"), "responses": {"200": {"description": "Routing decision"}, "404": {"description": "Missing topic, node or empty workspace"}}}},
            "/api/v1/nodes": {"post": {"summary": "Confirm a new node", "requestBody": req("NodeCreateRequest"), "responses": {"200": {"description": "Created"}, "404": {"description": "Unknown parent"}}}},
            "/api/v1/nodes/{node_id}": {"get": {"summary": "Get node with children", "responses": {"200": {"description": "Node"}, "404": {"description": "Unknown node"}}}},
            "/api/v1/nodes/{node_id}/path": {"get": {"summary": "Get path from root", "responses": {"200": {"description": "Path"}, "404": {"description": "Unknown node"}}}},
            "/api/v1/chat/{node_id}": {"post": {"summary": "Chat on a node (Server-Sent Events)", "requestBody": req("ChatTurnRequest"), "responses": {"200": {"description": "Event stream"}, "404": {"description": "Unknown node"}}}},
            "/api/v1/admin/stats": {"get": {"summary": "Get stats", "responses": {"200": {"description": "Stats"}}}},
            "/api/v1/admin/audit/{topic_id}": {"get": {"summary": "Read topic audit log", "responses": {"200": {"description": "Events"}}}},
            "/api/v1/admin/audit/{topic_id}/compact": {"post": {"summary": "Compact topic audit log", "requestBody": req("AuditCompactRequest"), "responses": {"200": {"description": "Removed count"}}}},
        },
        "components": {"schemas": components},
    }


def create_app(
    broker: GraphBroker | None = None,
    config: Settings | None = None,
) -> Starlette:
    """Create a Starlette app exposing Neuralearn as REST + OpenAPI."""
    app_settings = config or settings
    app_broker = broker or get_broker(app_settings)

    def error(message: str, status: int = 400, **extra: Any) -> JSONResponse:
        return JSONResponse({"error": message, **extra}, status_code=status)

    def failure(e: Exception) -> JSONResponse:
        """Map an exception from the primary path to an error response."""
        if isinstance(e, TopicConflictError):
            return error(str(e), status=e.status_code, kind=e.kind, existing_id=e.existing_id)
        if isinstance(e, NotFoundError):
            return error(str(e), status=e.status_code, kind=e.kind, id=e.entity_id)
        if isinstance(e, NeuralearnError):
            return error(str(e), status=e.status_code, kind=e.kind)
        if isinstance(e, ValidationError):
            return error(str(e), status=422)
        if isinstance(e, ValueError):
            return error(str(e), status=400)
        logger.exception("Unexpected REST failure")
        return error(f"Internal error: {e}", status=500)

    async def call(fn: Callable[[], Any]) -> JSONResponse:
        try:
            return JSONResponse(await run_in_threadpool(fn))
        except Exception as e:
            return failure(e)

    async def parse_json(request: Request, model: type[BaseModel]) -> BaseModel:
        payload = await request.json()
        return model.model_validate(payload)

    async def health(_: Request) -> JSONResponse:
        return JSONResponse(await run_in_threadpool(app_broker.health_check))

    async def openapi(request: Request) -> JSONResponse:
        base_url = str(request.base_url).rstrip("/")
        return JSONResponse(_build_openapi_schema(base_url))

    async def docs(_: Request) -> HTMLResponse:
        return HTMLResponse(
            """<!doctype html>
<html>
  <head>
    <meta charset="utf-8"/>
    <title>Neuralearn REST API Docs</title>
    <link rel="stylesheet" href="https://unpkg.com/swagger-ui-dist@5/swagger-ui.css" />
  </head>
  <body>
    <div id="swagger-ui"></div>
    <script src="https://unpkg.com/swagger-ui-dist@5/swagger-ui-bundle.js"></script>
    <script>
      SwaggerUIBundle({ url: '/openapi.json', dom_id: '#swagger-ui' });
    </script>
  </body>
</html>""",
        )

    async def create_topic(request: Request) -> JSONResponse:
        try:
            body = await parse_json(request, TopicCreateRequest)
        except Exception as e:
            return failure(e)

        def _create() -> dict[str, Any]:
            topic, root = app_broker.create_topic(body.title, body.description)
            return {"success": True, "topic": _topic_payload(topic), "root_node": root.model_dump()}

        return await call(_create)

    async def list_topics(_: Request) -> JSONResponse:
        return await call(lambda: {
            "success": True,
            "topics": [_topic_payload(t) for t in app_broker.list_topics()],
        })

    async def list_topic_nodes(request: Request) -> JSONResponse:
        topic_id = request.path_params["topic_id"]
        return await call(lambda: {
            "nodes": [n.model_dump() for n in app_broker.list_topic_nodes(topic_id)],
        })

    async def route_question(request: Request) -> JSONResponse:
        try:
            body = await parse_json(request, RouteRequest)
        except Exception as e:
            return failure(e)
        return await call(lambda: app_broker.route_question(body).to_wire())

    async def create_node(request: Request) -> JSONResponse:
        try:
            body = await parse_json(request, NodeCreateRequest)
        except Exception as e:
            return failure(e)
        return await call(lambda: {
            "success": True,
            "node": app_broker.create_node(
                parent_id=body.parent_id,
                title=body.title,
                summary=body.summary,
                tags=body.tags,
                node_id=body.node_id,
            ).model_dump(),
        })

    async def get_node(request: Request) -> JSONResponse:
        node_id = request.path_params["node_id"]
        return await call(lambda: app_broker.get_node_detail(node_id))

    async def get_path(request: Request) -> JSONResponse:
        node_id = request.path_params["node_id"]
        return await call(lambda: {"node_id": node_id, "path": app_broker.get_path(node_id)})

    async def chat(request: Request) -> StreamingResponse | JSONResponse:
        node_id = request.path_params["node_id"]
        try:
            body = await parse_json(request, ChatTurnRequest)
            events = await run_in_threadpool(app_broker.chat_events, node_id, body)
        except Exception as e:
            return failure(e)
        return StreamingResponse(
            _sse(events),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    async def get_stats(_: Request) -> JSONResponse:
        return await call(app_broker.get_stats)

    async def read_audit(request: Request) -> JSONResponse:
        topic_id = request.path_params["topic_id"]
        try:
            limit = int(request.query_params.get("limit", "100"))
        except ValueError:
            return error("limit must be an integer", status=400)
        return await call(lambda: {"topic_id": topic_id, "events": app_broker.read_audit_log(topic_id, limit=limit)})

    async def compact_audit(request: Request) -> JSONResponse:
        topic_id = request.path_params["topic_id"]
        try:
            body = await parse_json(request, AuditCompactRequest)
        except Exception as e:
            return failure(e)
        return await call(lambda: {"topic_id": topic_id, "removed": app_broker.compact_audit_log(topic_id, keep=body.keep)})

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/openapi.json", openapi, methods=["GET"]),
        Route("/docs", docs, methods=["GET"]),
        Route("/api/v1/topics", create_topic, methods=["POST"]),
        Route("/api/v1/topics", list_topics, methods=["GET"]),
        Route("/api/v1/topics/{topic_id}/nodes", list_topic_nodes, methods=["GET"]),
        Route("/api/v1/route-question", route_question, methods=["POST"]),
        Route("/api/v1/nodes", create_node, methods=["POST"]),
        Route("/api/v1/nodes/{node_id}", get_node, methods=["GET"]),
        Route("/api/v1/nodes/{node_id}/path", get_path, methods=["GET"]),
        Route("/api/v1/chat/{node_id}", chat, methods=["POST"]),
        Route("/api/v1/admin/stats", get_stats, methods=["GET"]),
        Route("/api/v1/admin/audit/{topic_id}", read_audit, methods=["GET"]),
        Route("/api/v1/admin/audit/{topic_id}/compact", compact_audit, methods=["POST"]),
    ]

    return Starlette(debug=False, routes=routes)


def main() -> None:
    """Run the REST server."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting Neuralearn REST API on %s:%s", settings.host, settings.port)
    app = create_app()
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
