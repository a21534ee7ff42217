"""Shared test helpers."""

from typing import Any

from forkai.db.repository import Repository
from forkai.models import GraphNode

TEST_USER = "user-1"
OTHER_USER = "user-2"


def node(
    node_id: str,
    parent_id: str | None = None,
    created_at: int = 0,
    x: float = 0,
    y: float = 0,
    role: str = "user",
    content: str = "",
) -> GraphNode:
    """Build a GraphNode in memory. created_at is epoch milliseconds."""
    return GraphNode(
        id=node_id,
        role=role,
        content=content or f"Message {node_id}",
        parent_id=parent_id,
        x=x,
        y=y,
        created_at=created_at,
    )


def chain(*ids: str) -> list[GraphNode]:
    """Linear conversation: each id is the parent of the next."""
    nodes: list[GraphNode] = []
    parent: str | None = None
    for i, node_id in enumerate(ids):
        nodes.append(node(node_id, parent, created_at=i))
        parent = node_id
    return nodes


async def create_collection(repo: Repository, user_id: str, name: str = "Work") -> str:
    row = await repo.create_collection(user_id, name, "#336699")
    return row["id"]


async def create_conversation(repo: Repository, user_id: str, title: str = "Test Chat") -> str:
    row = await repo.create_conversation(user_id, title)
    return row["id"]


async def seed_messages(
    repo: Repository,
    conversation_id: str,
    edges: list[tuple[str, str | None]],
    **message_fields: Any,
) -> dict[str, str]:
    """Create messages from (label, parent_label) pairs, in list order.

    Returns {label: message_id}. A parent label must appear earlier in the
    list; None makes a root.
    """
    ids: dict[str, str] = {}
    for i, (label, parent_label) in enumerate(edges):
        row = await repo.create_message(
            conversation_id,
            "user" if i % 2 == 0 else "assistant",
            f"Message {label}",
            parent_message_id=ids[parent_label] if parent_label is not None else None,
            **message_fields,
        )
        ids[label] = row["id"]
    return ids


async def branching_conversation(repo: Repository, user_id: str) -> tuple[str, dict[str, str]]:
    """root -> A -> B, A -> C, root -> D.

    Returns (conversation_id, {label: message_id}).
    """
    conversation_id = await create_conversation(repo, user_id, "Branching Chat")
    ids = await seed_messages(
        repo,
        conversation_id,
        [("root", None), ("A", "root"), ("B", "A"), ("C", "A"), ("D", "root")],
    )
    return conversation_id, ids
