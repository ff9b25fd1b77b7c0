"""Error taxonomy shared by the routing, agent and REST layers."""

from __future__ import annotations


class NeuralearnError(Exception):
    """Base error carrying a machine-readable kind and an HTTP status."""

    kind = "error"
    status_code = 500


class NotFoundError(NeuralearnError):
    """A referenced root topic, node or parent does not exist."""

    kind = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity.capitalize()} '{entity_id}' not found")
        self.entity = entity
        self.entity_id = entity_id


class EmptyWorkspaceError(NeuralearnError):
    """A root topic exists but has no nodes under it."""

    kind = "empty_workspace"
    status_code = 404

    def __init__(self, root_id: str) -> None:
        super().__init__(f"No nodes found in workspace '{root_id}'")
        self.root_id = root_id


class TopicConflictError(NeuralearnError):
    kind = "conflict"
    status_code = 409

    def __init__(self, title: str, existing_id: str) -> None:
        super().__init__(f"A topic titled '{title}' already exists")
        self.existing_id = existing_id


class LLMError(NeuralearnError):
    """The language model call failed, timed out or is not configured."""

    kind = "llm_failure"


class RoutingDecisionError(NeuralearnError):
    """The model produced a routing decision that cannot be acted on."""

    kind = "invalid_decision"


class AgentLimitError(NeuralearnError):
    """The orchestration loop hit its iteration or duration ceiling."""

    kind = "aborted_by_limit"


class UnknownToolError(NeuralearnError):
    kind = "unknown_tool"
    status_code = 400

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool: {name}")
        self.name = name
