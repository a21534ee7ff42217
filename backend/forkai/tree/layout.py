"""Hierarchical auto-layout for the conversation canvas.

Top-to-bottom flow: children sit one vertical_spacing below their parent,
siblings spread left to right in creation order, and every parent is
centered over the horizontal range its subtree occupies. A subtree is as
wide as its leaf count times horizontal_spacing. Separate root trees are
placed left to right with an extra 2 * horizontal_spacing gap between them.

Both passes walk the tree with explicit stacks; a long linear conversation
is a very deep tree.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from pydantic import BaseModel

from forkai.models import GraphNode


class LayoutConfig(BaseModel):
    vertical_spacing: float = 80  # parent to child
    horizontal_spacing: float = 360  # between sibling slots
    root_x: float = 400
    root_y: float = 100


@dataclass(frozen=True)
class Position:
    x: float
    y: float


def calculate_tree_layout(
    nodes: Sequence[GraphNode], config: LayoutConfig | None = None
) -> dict[str, Position]:
    """Compute a position for every node reachable from an effective root.

    Deterministic for identical input: siblings and roots are ordered by
    created_at, ties keep input order. Orphans (parent id not in ``nodes``)
    are laid out as roots. Nodes caught in a stored parent cycle are not
    reachable from any root and get no entry.
    """
    cfg = config or LayoutConfig()
    ordered = sorted(nodes, key=lambda n: n.created_at)
    ids = {n.id for n in ordered}

    roots: list[str] = []
    children: dict[str, list[str]] = {}
    for node in ordered:
        if node.parent_id is None or node.parent_id not in ids:
            roots.append(node.id)
        else:
            children.setdefault(node.parent_id, []).append(node.id)

    widths = _subtree_widths(roots, children)
    positions: dict[str, Position] = {}

    root_x = cfg.root_x
    for root_id in roots:
        tree_width = widths[root_id] * cfg.horizontal_spacing
        _place_subtree(root_id, root_x, cfg.root_y, tree_width, children, widths, cfg, positions)
        root_x += tree_width + cfg.horizontal_spacing * 2

    return positions


def _subtree_widths(roots: list[str], children: dict[str, list[str]]) -> dict[str, int]:
    """Leaf count of every subtree, computed bottom-up once per node."""
    widths: dict[str, int] = {}
    for root_id in roots:
        stack: list[tuple[str, bool]] = [(root_id, False)]
        while stack:
            node_id, expanded = stack.pop()
            if node_id in widths:
                continue
            kids = children.get(node_id, [])
            if not kids:
                widths[node_id] = 1
            elif expanded:
                widths[node_id] = sum(widths[k] for k in kids)
            else:
                stack.append((node_id, True))
                stack.extend((k, False) for k in kids)
    return widths


def _place_subtree(
    root_id: str,
    start_x: float,
    y: float,
    width: float,
    children: dict[str, list[str]],
    widths: dict[str, int],
    cfg: LayoutConfig,
    positions: dict[str, Position],
) -> None:
    stack: list[tuple[str, float, float, float]] = [(root_id, start_x, y, width)]
    while stack:
        node_id, range_start, node_y, range_width = stack.pop()
        positions[node_id] = Position(range_start + range_width / 2, node_y)

        cursor = range_start
        for child_id in children.get(node_id, []):
            child_width = widths[child_id] * cfg.horizontal_spacing
            stack.append((child_id, cursor, node_y + cfg.vertical_spacing, child_width))
            cursor += child_width


def apply_auto_layout(
    nodes: Sequence[GraphNode], config: LayoutConfig | None = None
) -> list[GraphNode]:
    """Fill in positions for nodes still at (0, 0); leave placed nodes alone.

    Idempotent: once every node has a position, running it again changes
    nothing, and it never overrides a manual arrangement.
    """
    positions = calculate_tree_layout(nodes, config)
    laid_out: list[GraphNode] = []
    for node in nodes:
        pos = positions.get(node.id)
        if node.has_position or pos is None:
            laid_out.append(node)
        else:
            laid_out.append(node.model_copy(update={"x": pos.x, "y": pos.y}))
    return laid_out


def organize_layout(
    nodes: Sequence[GraphNode], config: LayoutConfig | None = None
) -> list[GraphNode]:
    """Recompute every node's position, discarding manual placement."""
    positions = calculate_tree_layout(nodes, config)
    return [
        node.model_copy(update={"x": positions[node.id].x, "y": positions[node.id].y})
        if node.id in positions
        else node
        for node in nodes
    ]


def get_new_node_position(
    parent_id: str | None,
    nodes: Sequence[GraphNode],
    config: LayoutConfig | None = None,
) -> Position:
    """Suggest where a node about to be created under parent_id should go."""
    cfg = config or LayoutConfig()

    if parent_id is None:
        roots = [n for n in nodes if n.parent_id is None]
        if not roots:
            return Position(cfg.root_x, cfg.root_y)
        rightmost = max(n.x for n in roots)
        return Position(rightmost + cfg.horizontal_spacing * 2, cfg.root_y)

    parent = next((n for n in nodes if n.id == parent_id), None)
    if parent is None:
        return Position(cfg.root_x, cfg.root_y)

    siblings = [n for n in nodes if n.parent_id == parent_id]
    if not siblings:
        return Position(parent.x, parent.y + cfg.vertical_spacing)

    rightmost = max(n.x for n in siblings)
    return Position(rightmost + cfg.horizontal_spacing, parent.y + cfg.vertical_spacing)
