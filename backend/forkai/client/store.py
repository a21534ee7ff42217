"""Client-side graph cache with optimistic mutations.

A GraphStore keeps one ChatGraph per conversation id. Each mutation runs
through a PendingMutation:

    begin     snapshot the affected nodes (and selected ids) as they are now
    apply     write the optimistic state into the cache
    request   call the server through GraphAPI
    commit    keep the optimistic state, merging server fields if any
    rollback  put the snapshotted nodes back into the *current* cache

Rollback is per node, so a failed mutation never undoes a concurrent one
that touched other nodes. Mutations that change topology (attach, detach,
drop) refetch the conversation once they settle, whatever the outcome.
A refetch keeps whatever is still in flight: those changes are applied
again on top of the fetched nodes.
"""

import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from enum import Enum
from typing import Any, TypeVar
from uuid import uuid4

from forkai.client.api import GraphAPI
from forkai.errors import CycleRejectedError, ForkAIError, NotFoundError
from forkai.messages.service import DUPLICATE_OFFSET
from forkai.models import ChatGraph, GraphNode
from forkai.tree.index import build_child_map, get_subtree_ids, would_create_cycle
from forkai.tree.layout import LayoutConfig, apply_auto_layout, organize_layout

logger = logging.getLogger(__name__)

T = TypeVar("T")
Apply = Callable[[list[GraphNode]], list[GraphNode]]

PENDING_ID_PREFIX = "pending-"


class MutationState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class PendingMutation:
    """One optimistic change to one conversation's cached graph."""

    def __init__(self, store: "GraphStore", conversation_id: str, affected_ids: Iterable[str]) -> None:
        self._store = store
        self.conversation_id = conversation_id
        self.affected_ids = list(dict.fromkeys(affected_ids))
        self.state = MutationState.IDLE
        # node id -> (node, index in graph) before the change; None if absent
        self._nodes: dict[str, tuple[GraphNode, int] | None] = {}
        self._selected: set[str] = set()

    def begin(self) -> None:
        graph = self._store._require_graph(self.conversation_id)
        index = {n.id: i for i, n in enumerate(graph.nodes)}
        for node_id in self.affected_ids:
            i = index.get(node_id)
            self._nodes[node_id] = (graph.nodes[i], i) if i is not None else None
        self._selected = self._store._selection_for(self.conversation_id) & set(self.affected_ids)
        self.state = MutationState.PENDING

    def commit(self) -> None:
        self.state = MutationState.COMMITTED

    def rollback(self) -> None:
        if self.state is not MutationState.PENDING:
            return
        graph = self._store._graphs.get(self.conversation_id)
        if graph is not None:
            nodes = list(graph.nodes)
            for node_id, before in self._nodes.items():
                current = next((i for i, n in enumerate(nodes) if n.id == node_id), None)
                if before is None:
                    if current is not None:
                        nodes.pop(current)
                elif current is not None:
                    nodes[current] = before[0]
                else:
                    nodes.insert(min(before[1], len(nodes)), before[0])
            self._store._graphs[self.conversation_id] = graph.model_copy(update={"nodes": nodes})
        self._store._selection_for(self.conversation_id).update(self._selected)
        self.state = MutationState.ROLLED_BACK
        logger.info(
            "Rolled back mutation of %d node(s) in conversation %s",
            len(self.affected_ids), self.conversation_id,
        )


class GraphStore:
    """Per-conversation graph cache plus the mutation orchestrator."""

    def __init__(self, api: GraphAPI, layout_config: LayoutConfig | None = None) -> None:
        self._api = api
        self._layout_config = layout_config
        self._graphs: dict[str, ChatGraph] = {}
        self._selections: dict[str, set[str]] = {}
        # ids whose position exists only in the cache (filled in by load)
        self._unplaced: dict[str, set[str]] = {}
        # optimistic changes still waiting on the server, re-applied after a refetch
        self._in_flight: dict[str, list[tuple[PendingMutation, Apply]]] = {}

    # -- Cache --

    async def load(self, conversation_id: str) -> ChatGraph:
        """Fetch the conversation and lay out any node that has no position yet.

        Mutations still in flight are applied again on top of the fetched
        nodes, so a refetch never hides a change the server has not seen yet.
        """
        graph = await self._api.fetch_graph(conversation_id)
        self._unplaced[conversation_id] = {n.id for n in graph.nodes if not n.has_position}
        nodes = apply_auto_layout(graph.nodes, self._layout_config)
        for mutation, apply in self._in_flight.get(conversation_id, []):
            if mutation.state is MutationState.PENDING:
                nodes = apply(nodes)
        graph = graph.model_copy(update={"nodes": nodes})
        self._graphs[conversation_id] = graph
        selection = self._selection_for(conversation_id)
        selection.intersection_update(n.id for n in graph.nodes)
        return graph

    def get_graph(self, conversation_id: str) -> ChatGraph | None:
        return self._graphs.get(conversation_id)

    async def refresh(self, conversation_id: str) -> ChatGraph:
        return await self.load(conversation_id)

    # -- Selection --

    def select(self, conversation_id: str, node_ids: Iterable[str], *, replace: bool = False) -> None:
        selection = self._selection_for(conversation_id)
        if replace:
            selection.clear()
        selection.update(node_ids)

    def deselect(self, conversation_id: str, node_ids: Iterable[str]) -> None:
        self._selection_for(conversation_id).difference_update(node_ids)

    def clear_selection(self, conversation_id: str) -> None:
        self._selection_for(conversation_id).clear()

    def get_selection(self, conversation_id: str) -> frozenset[str]:
        return frozenset(self._selection_for(conversation_id))

    # -- Mutations --

    async def update_position(self, conversation_id: str, node_id: str, x: float, y: float) -> None:
        self._require_node(conversation_id, node_id)
        await self._run(
            conversation_id,
            [node_id],
            lambda nodes: [_moved(n, x, y) if n.id == node_id else n for n in nodes],
            lambda: self._api.update_position(node_id, x, y),
        )
        self._mark_placed(conversation_id, [node_id])

    async def batch_update_positions(
        self, conversation_id: str, updates: list[tuple[str, float, float]],
    ) -> None:
        """Move several nodes in one request. On failure every move is undone."""
        for node_id, _, _ in updates:
            self._require_node(conversation_id, node_id)
        targets = {node_id: (x, y) for node_id, x, y in updates}
        await self._run(
            conversation_id,
            targets,
            lambda nodes: [_moved(n, *targets[n.id]) if n.id in targets else n for n in nodes],
            lambda: self._api.batch_update_positions(updates),
        )
        self._mark_placed(conversation_id, targets)

    async def attach_node(self, conversation_id: str, node_id: str, parent_id: str | None) -> None:
        """Reparent node_id under parent_id (None detaches it to a root).

        Raises CycleRejectedError without contacting the server when
        parent_id lies inside node_id's own subtree.
        """
        self._check_reparent(conversation_id, node_id, parent_id)
        await self._run_structural(
            conversation_id,
            [node_id],
            lambda nodes: [
                n.model_copy(update={"parent_id": parent_id}) if n.id == node_id else n
                for n in nodes
            ],
            lambda: self._api.attach(node_id, parent_id),
        )

    async def detach_node(self, conversation_id: str, node_id: str) -> None:
        await self.attach_node(conversation_id, node_id, None)

    async def drop_node(
        self, conversation_id: str, node_id: str, parent_id: str | None, x: float, y: float,
    ) -> None:
        """Reparent and move in one request; both fields revert together on failure."""
        self._check_reparent(conversation_id, node_id, parent_id)
        await self._run_structural(
            conversation_id,
            [node_id],
            lambda nodes: [
                n.model_copy(update={"parent_id": parent_id, "x": x, "y": y}) if n.id == node_id else n
                for n in nodes
            ],
            lambda: self._api.drop(node_id, parent_id, x, y),
        )

    async def duplicate_node(self, conversation_id: str, node_id: str) -> GraphNode:
        """Copy a node next to the original; returns the server's copy.

        An original whose position was only filled in locally by load() is
        saved first, so the server offsets the copy from the same spot.
        """
        original = self._require_node(conversation_id, node_id)
        if node_id in self._unplaced.get(conversation_id, ()):
            await self.update_position(conversation_id, node_id, original.x, original.y)
        placeholder = original.model_copy(
            update={
                "id": f"{PENDING_ID_PREFIX}{uuid4()}",
                "x": original.x + DUPLICATE_OFFSET,
                "y": original.y + DUPLICATE_OFFSET,
                "created_at": int(time.time() * 1000),
                "is_root_node": False,
                "root_node_name": None,
            }
        )
        created = await self._run(
            conversation_id,
            [placeholder.id],
            lambda nodes: [*nodes, placeholder],
            lambda: self._api.duplicate(node_id),
        )
        self._replace_node(conversation_id, placeholder.id, created)
        return created

    async def delete_node(self, conversation_id: str, node_id: str) -> dict[str, Any]:
        """Delete one node; its children move up to its former parent."""
        node = self._require_node(conversation_id, node_id)
        graph = self._require_graph(conversation_id)
        child_ids = build_child_map(graph.nodes).get(node_id, [])

        def apply(nodes: list[GraphNode]) -> list[GraphNode]:
            return [
                n.model_copy(update={"parent_id": node.parent_id}) if n.id in child_ids else n
                for n in nodes
                if n.id != node_id
            ]

        return await self._run(
            conversation_id,
            [node_id, *child_ids],
            apply,
            lambda: self._api.delete(node_id, keep_replies=True),
            removed_ids=[node_id],
        )

    async def delete_thread(self, conversation_id: str, node_id: str) -> dict[str, Any]:
        """Delete a node together with all of its descendants."""
        self._require_node(conversation_id, node_id)
        doomed = get_subtree_ids(self._require_graph(conversation_id).nodes, node_id)
        doomed_set = set(doomed)
        return await self._run(
            conversation_id,
            doomed,
            lambda nodes: [n for n in nodes if n.id not in doomed_set],
            lambda: self._api.delete(node_id, keep_replies=False),
            removed_ids=doomed,
        )

    async def organize(self, conversation_id: str) -> None:
        """Recompute every position from tree structure and persist it in one batch."""
        graph = self._require_graph(conversation_id)
        arranged = organize_layout(graph.nodes, self._layout_config)
        targets = {
            n.id: (n.x, n.y) for n in arranged if not n.id.startswith(PENDING_ID_PREFIX)
        }
        if not targets:
            return
        await self._run(
            conversation_id,
            targets,
            lambda nodes: [_moved(n, *targets[n.id]) if n.id in targets else n for n in nodes],
            lambda: self._api.batch_update_positions(
                [(node_id, x, y) for node_id, (x, y) in targets.items()]
            ),
        )
        self._mark_placed(conversation_id, targets)

    # -- Protocol --

    async def _run(
        self,
        conversation_id: str,
        affected_ids: Iterable[str],
        apply: Apply,
        request: Callable[[], Awaitable[T]],
        *,
        removed_ids: Iterable[str] = (),
    ) -> T:
        mutation = PendingMutation(self, conversation_id, affected_ids)
        mutation.begin()

        graph = self._require_graph(conversation_id)
        self._graphs[conversation_id] = graph.model_copy(update={"nodes": apply(list(graph.nodes))})
        self._selection_for(conversation_id).difference_update(removed_ids)

        in_flight = self._in_flight.setdefault(conversation_id, [])
        entry = (mutation, apply)
        in_flight.append(entry)
        try:
            result = await request()
        except Exception:
            mutation.rollback()
            raise
        finally:
            in_flight.remove(entry)
        mutation.commit()
        return result

    async def _run_structural(
        self,
        conversation_id: str,
        affected_ids: Iterable[str],
        apply: Apply,
        request: Callable[[], Awaitable[Any]],
    ) -> None:
        try:
            await self._run(conversation_id, affected_ids, apply, request)
        finally:
            try:
                await self.refresh(conversation_id)
            except ForkAIError:
                logger.warning("Refetch after reparent failed for conversation %s", conversation_id)

    def _check_reparent(self, conversation_id: str, node_id: str, parent_id: str | None) -> None:
        graph = self._require_graph(conversation_id)
        self._require_node(conversation_id, node_id)
        if parent_id is not None and graph.find(parent_id) is None:
            raise NotFoundError("Parent message", parent_id)
        if would_create_cycle(graph.nodes, node_id, parent_id):
            raise CycleRejectedError(node_id, parent_id)

    def _replace_node(self, conversation_id: str, node_id: str, replacement: GraphNode) -> None:
        """Swap node_id for replacement, adding replacement if node_id is gone."""
        graph = self._graphs.get(conversation_id)
        if graph is None:
            return
        if graph.find(node_id) is not None:
            nodes = [replacement if n.id == node_id else n for n in graph.nodes]
        elif graph.find(replacement.id) is None:
            nodes = [*graph.nodes, replacement]
        else:
            return
        self._graphs[conversation_id] = graph.model_copy(update={"nodes": nodes})

    def _mark_placed(self, conversation_id: str, node_ids: Iterable[str]) -> None:
        self._unplaced.get(conversation_id, set()).difference_update(node_ids)

    def _require_graph(self, conversation_id: str) -> ChatGraph:
        try:
            return self._graphs[conversation_id]
        except KeyError:
            raise NotFoundError("Conversation", conversation_id)

    def _require_node(self, conversation_id: str, node_id: str) -> GraphNode:
        node = self._require_graph(conversation_id).find(node_id)
        if node is None:
            raise NotFoundError("Message", node_id)
        return node

    def _selection_for(self, conversation_id: str) -> set[str]:
        return self._selections.setdefault(conversation_id, set())


def _moved(node: GraphNode, x: float, y: float) -> GraphNode:
    return node.model_copy(update={"x": x, "y": y})
