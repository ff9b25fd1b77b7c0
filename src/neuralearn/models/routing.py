"""Routing request, model choice and routing decision models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Accepts and emits camelCase keys on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class RecentMessage(BaseModel):
    role: str
    content: str


class RouteRequest(_CamelModel):
    question: str = Field(min_length=1)
    root_id: str = Field(min_length=1)
    current_node_id: str | None = None
    recent_messages: list[RecentMessage] = Field(default_factory=list)


class RoutingChoice(BaseModel):
    """Structured classification returned by the routing model."""

    action: Literal["use_existing", "create_new"]
    reasoning: str = ""
    existing_node_id: str | None = None
    parent_node_id: str | None = None
    suggested_title: str | None = None
    suggested_summary: str | None = None


class RankedNode(BaseModel):
    """A workspace node paired with its similarity to the question."""

    id: str
    title: str
    summary: str = ""
    parent_id: str | None = None
    score: float


class RoutingDecision(_CamelModel):
    """Outcome of routing: reuse an existing node or propose a new one.

    ``create_new`` is only a proposal; the caller confirms it through the
    node creation endpoint.
    """

    action: Literal["navigate_to_existing", "create_new"]
    reasoning: str = ""
    question: str = ""
    extracted_topic: str = ""
    deterministic: bool = False
    # navigate_to_existing
    node_id: str | None = None
    node_title: str | None = None
    # create_new
    parent_id: str | None = None
    suggested_title: str | None = None
    suggested_summary: str | None = None
