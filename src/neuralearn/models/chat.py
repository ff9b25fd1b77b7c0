"""Chat request and orchestration decision models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from neuralearn.models.graph import InteractionSource
from neuralearn.models.routing import RecentMessage

RelationType = Literal["refines", "synthesizes", "supports", "challenges", "background"]


class ChatRequest(BaseModel):
    """Input to one run of the orchestration agent."""

    user_message: str = Field(min_length=1)
    root_node_id: str
    active_node_id: str | None = None
    conversation_history: list[RecentMessage] = Field(default_factory=list)


class NewNodeSpec(BaseModel):
    id: str | None = None
    title: str
    summary: str = ""
    parent_id: str
    tags: list[str] = Field(default_factory=list)


class SourceLink(BaseModel):
    url: str
    title: str = ""


class ChatDecision(BaseModel):
    """Final structured answer of the orchestration agent."""

    action: Literal["activate", "create", "none"] = "none"
    target_node_id: str
    activation_path: list[str] = Field(default_factory=list)
    response: str
    new_node: NewNodeSpec | None = None
    sources: list[SourceLink] = Field(default_factory=list)
    citations: list[InteractionSource] = Field(default_factory=list)
    summary_updated: bool = False


class ChatMessage(BaseModel):
    """A chat transcript message; text may arrive as ``content`` or ``parts``."""

    role: str
    content: str = ""
    parts: list[dict[str, Any]] = Field(default_factory=list)

    def text(self) -> str:
        if self.content:
            return self.content
        return " ".join(
            str(part.get("text", "")) for part in self.parts if part.get("type") == "text"
        ).strip()


class CanvasEdge(BaseModel):
    """A relation drawn between two nodes on the client canvas."""

    source: str
    target: str
    relation_type: RelationType = "refines"

    @model_validator(mode="before")
    @classmethod
    def _lift_relation(cls, data: Any) -> Any:
        if isinstance(data, dict) and "relation_type" not in data:
            nested = data.get("data") or {}
            relation = data.get("relationType") or nested.get("relationType")
            if relation:
                data = {**data, "relation_type": relation}
        return data


class ChatTurnRequest(BaseModel):
    """Body of ``POST /chat/{node_id}``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    messages: list[ChatMessage] = Field(min_length=1)
    model: str | None = None
    web_search: bool = False
    edges: list[CanvasEdge] = Field(default_factory=list)

    def latest_user_text(self) -> str:
        for message in reversed(self.messages):
            if message.role == "user" and message.text():
                return message.text()
        return ""

    def history(self) -> list[RecentMessage]:
        """Messages before the latest user turn, as plain role/content pairs."""
        items = [RecentMessage(role=m.role, content=m.text()) for m in self.messages if m.text()]
        if items and items[-1].role == "user":
            items = items[:-1]
        return items
