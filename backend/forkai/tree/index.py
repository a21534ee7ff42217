"""Pure functions over parent-pointer trees.

Every function takes the full node list and recomputes what it needs, so
there is no derived state to keep in sync with the stored parent pointers.
Inputs only need ``id`` and ``parent_id``.

Corrupted data never raises here: a parent id that matches no node makes
its child an effective root, and ancestor walks never revisit a node, so a
stored cycle terminates after at most len(nodes) steps with a partial chain.
"""

import logging
from collections import deque
from collections.abc import Sequence
from typing import Protocol, TypeVar

logger = logging.getLogger(__name__)


class TreeNode(Protocol):
    @property
    def id(self) -> str: ...

    @property
    def parent_id(self) -> str | None: ...


N = TypeVar("N", bound=TreeNode)


def build_child_map(nodes: Sequence[TreeNode]) -> dict[str | None, list[str]]:
    """Group node ids by their literal parent id (None for roots).

    Buckets keep input order; sort the input first if creation order matters.
    """
    child_map: dict[str | None, list[str]] = {}
    for node in nodes:
        child_map.setdefault(node.parent_id, []).append(node.id)
    return child_map


def get_ancestors(nodes: Sequence[N], node_id: str) -> list[N]:
    """Return the chain [root, ..., node] ending at node_id.

    Stops at a null parent or at a parent that is not in ``nodes``. Returns
    an empty list when node_id itself is unknown.
    """
    by_id = {n.id: n for n in nodes}
    ancestors: list[N] = []
    seen: set[str] = set()
    current_id: str | None = node_id

    while current_id is not None:
        node = by_id.get(current_id)
        if node is None:
            break
        if current_id in seen:
            logger.warning("Cycle detected in parent chain of %s at %s", node_id, current_id)
            break
        seen.add(current_id)
        ancestors.append(node)
        current_id = node.parent_id

    ancestors.reverse()
    return ancestors


def get_subtree_ids(nodes: Sequence[TreeNode], root_id: str) -> list[str]:
    """Breadth-first ids of root_id and all of its descendants, each once."""
    child_map = build_child_map(nodes)
    subtree: list[str] = []
    visited: set[str] = set()
    queue: deque[str] = deque([root_id])

    while queue:
        current = queue.popleft()
        if current in visited:
            continue
        visited.add(current)
        subtree.append(current)
        queue.extend(child_map.get(current, []))

    return subtree


def is_ancestor(nodes: Sequence[TreeNode], ancestor_id: str, descendant_id: str) -> bool:
    """True if ancestor_id is on the chain from descendant_id up to its root.

    A node counts as its own ancestor.
    """
    return any(n.id == ancestor_id for n in get_ancestors(nodes, descendant_id))


def is_descendant(nodes: Sequence[TreeNode], descendant_id: str, ancestor_id: str) -> bool:
    return is_ancestor(nodes, ancestor_id, descendant_id)


def would_create_cycle(
    nodes: Sequence[TreeNode], node_id: str, new_parent_id: str | None
) -> bool:
    """Cycle guard for reparenting: the new parent must not sit inside node_id's subtree."""
    if new_parent_id is None:
        return False
    return is_ancestor(nodes, node_id, new_parent_id)


def get_siblings(nodes: Sequence[N], node_id: str) -> list[N]:
    """Nodes sharing node_id's parent, node_id included. Empty if unknown."""
    node = next((n for n in nodes if n.id == node_id), None)
    if node is None:
        return []
    return [n for n in nodes if n.parent_id == node.parent_id]


def get_children(nodes: Sequence[N], parent_id: str | None) -> list[N]:
    return [n for n in nodes if n.parent_id == parent_id]


def get_roots(nodes: Sequence[N]) -> list[N]:
    return [n for n in nodes if n.parent_id is None]


def get_effective_roots(nodes: Sequence[N]) -> list[N]:
    """Roots plus orphans whose parent id matches no node in the list."""
    ids = {n.id for n in nodes}
    return [n for n in nodes if n.parent_id is None or n.parent_id not in ids]


def get_depth(nodes: Sequence[TreeNode], node_id: str) -> int:
    """Distance from the node's root; 0 for a root, -1 for an unknown id."""
    return len(get_ancestors(nodes, node_id)) - 1


def linearize_legacy(
    nodes: Sequence[TreeNode], created_order: Sequence[str] | None = None
) -> dict[str, str | None] | None:
    """Infer a linear chain for conversations stored before branching existed.

    When every node has a null parent, returns {node_id: inferred_parent_id}
    where each node's parent is the one created just before it. Returns None
    when any parent pointer is set, or when there are no nodes. Nothing is
    written back; this is a read-side view only.

    ``created_order`` lists ids oldest first; input order is used if omitted.
    """
    if not nodes or any(n.parent_id is not None for n in nodes):
        return None
    order = list(created_order) if created_order is not None else [n.id for n in nodes]
    chain: dict[str, str | None] = {}
    previous: str | None = None
    for node_id in order:
        chain[node_id] = previous
        previous = node_id
    return chain
