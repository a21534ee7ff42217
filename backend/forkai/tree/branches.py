"""Branch navigation: sibling groups, active path, and ancestor paths.

The chat view shows one path through the tree at a time. At each branch
point one child is "active"; the user flips between alternatives with
prev/next, and the visible conversation is the path that follows the
active child at every level.

Conversations stored before branching existed have a null parent on every
message. For those, the navigator reads the messages as a single chain in
creation order without touching the stored data.
"""

from collections.abc import Sequence
from typing import Literal

from forkai.models import GraphNode
from forkai.tree.index import linearize_legacy


class BranchNavigator:
    """Read-side view over one conversation's nodes."""

    def __init__(self, nodes: Sequence[GraphNode]) -> None:
        self._nodes = sorted(nodes, key=lambda n: n.created_at)
        self._by_id = {n.id: n for n in self._nodes}
        self._legacy_chain = linearize_legacy(self._nodes)
        self._active: dict[str | None, str] = {}
        self.siblings_map = self._build_siblings_map()

    @property
    def is_legacy(self) -> bool:
        return self._legacy_chain is not None

    def parent_of(self, node_id: str) -> str | None:
        """Effective parent id, honoring the legacy chain."""
        if self._legacy_chain is not None:
            return self._legacy_chain.get(node_id)
        node = self._by_id.get(node_id)
        return node.parent_id if node else None

    def _build_siblings_map(self) -> dict[str | None, list[GraphNode]]:
        groups: dict[str | None, list[GraphNode]] = {}
        for node in self._nodes:
            groups.setdefault(self.parent_of(node.id), []).append(node)
        return groups

    def siblings(self, node_id: str) -> list[GraphNode]:
        """Alternatives at node_id's branch point, oldest first, node included."""
        node = self._by_id.get(node_id)
        if node is None:
            return []
        return self.siblings_map.get(self.parent_of(node_id), [node])

    def sibling_index(self, node_id: str) -> int:
        """0-based position among siblings; -1 for an unknown id."""
        return next((i for i, n in enumerate(self.siblings(node_id)) if n.id == node_id), -1)

    def navigate_sibling(self, node_id: str, direction: Literal["prev", "next"]) -> GraphNode:
        """Make the previous/next sibling active (wrapping) and return it."""
        siblings = self.siblings(node_id)
        if not siblings:
            raise KeyError(node_id)
        index = self.sibling_index(node_id)
        step = -1 if direction == "prev" else 1
        target = siblings[(index + step) % len(siblings)]
        self._active[self.parent_of(node_id)] = target.id
        return target

    def set_active(self, node_id: str) -> None:
        """Make every node on node_id's ancestor path the active child."""
        for node in self.ancestor_path(node_id):
            self._active[self.parent_of(node.id)] = node.id

    def active_path(self) -> list[GraphNode]:
        """Root-to-leaf path following the active child at each branch point.

        With no branch point anywhere, this is simply every node in creation
        order. The first child is the default where nothing was chosen.
        """
        if not self._nodes:
            return []
        if all(len(group) <= 1 for group in self.siblings_map.values()):
            return list(self._nodes)

        path: list[GraphNode] = []
        visited: set[str] = set()
        parent_id: str | None = None
        while True:
            children = self.siblings_map.get(parent_id, [])
            if not children:
                break
            active_id = self._active.get(parent_id)
            child = next((c for c in children if c.id == active_id), children[0])
            if child.id in visited:
                break
            visited.add(child.id)
            path.append(child)
            parent_id = child.id
        return path

    def ancestor_path(self, node_id: str) -> list[GraphNode]:
        """[root, ..., node_id] along effective parents; stops at unknown ids."""
        path: list[GraphNode] = []
        seen: set[str] = set()
        current: str | None = node_id
        while current is not None and current not in seen:
            node = self._by_id.get(current)
            if node is None:
                break
            seen.add(current)
            path.append(node)
            current = self.parent_of(current)
        path.reverse()
        return path

    def latest(self) -> GraphNode | None:
        """Most recently created node, the default place to continue a chat."""
        return self._nodes[-1] if self._nodes else None
