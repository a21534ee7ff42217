"""Canonical graph data structures.

GraphNode is the wire shape the canvas works with. It renames two message
columns: content travels as ``text`` and parent_message_id as ``replyTo``.
Python code always uses the field names (``content``, ``parent_id``), which
also makes every GraphNode a valid TreeNode for the tree algorithms.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Role = Literal["user", "assistant", "system"]


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GraphNode(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    role: str
    content: str = Field(alias="text")
    parent_id: str | None = Field(default=None, alias="replyTo")
    x: float = 0
    y: float = 0
    created_at: int = Field(alias="createdAt")  # epoch milliseconds
    is_root_node: bool = Field(default=False, alias="isRootNode")
    root_node_name: str | None = Field(default=None, alias="rootNodeName")
    model: str | None = None
    is_error: bool = Field(default=False, alias="isError")

    @property
    def has_position(self) -> bool:
        """False while the node sits at the (0, 0) "not laid out" sentinel."""
        return self.x != 0 or self.y != 0


class ChatGraph(BaseModel):
    id: str  # conversation id
    nodes: list[GraphNode] = Field(default_factory=list)

    def find(self, node_id: str) -> GraphNode | None:
        return next((n for n in self.nodes if n.id == node_id), None)


def to_epoch_ms(timestamp: str | datetime) -> int:
    """Convert a stored ISO-8601 timestamp to epoch milliseconds."""
    if isinstance(timestamp, str):
        timestamp = datetime.fromisoformat(timestamp)
    return int(round(timestamp.timestamp() * 1000))


def graph_node_from_row(row: dict[str, Any]) -> GraphNode:
    """Map a messages row to a GraphNode. Null positions become (0, 0)."""
    return GraphNode(
        id=row["id"],
        role=row["role"],
        content=row["content"],
        parent_id=row["parent_message_id"],
        x=row["position_x"] if row["position_x"] is not None else 0,
        y=row["position_y"] if row["position_y"] is not None else 0,
        created_at=to_epoch_ms(row["created_at"]),
        is_root_node=bool(row["is_root_node"]),
        root_node_name=row["root_node_name"],
        model=row["model"],
        is_error=bool(row["is_error"]),
    )
