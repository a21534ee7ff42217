"""Message service: ownership-checked graph mutations on stored messages.

Every mutation resolves the message through the caller's conversations
first; a message that exists but belongs to someone else is reported
exactly like a missing one. Multi-row mutations run inside one transaction,
and the cycle check for reparenting loads the conversation once and walks
parent pointers in memory inside that same transaction.
"""

import logging
from typing import Any

from forkai.db.connection import Database
from forkai.db.repository import Repository
from forkai.errors import CycleRejectedError, NotFoundError
from forkai.messages.schemas import (
    AttachResponse,
    BatchPositionEntry,
    BatchPositionResponse,
    DeleteResponse,
    DropResponse,
    MessageResponse,
    PositionResponse,
)
from forkai.models import graph_node_from_row, to_epoch_ms
from forkai.tree.index import get_subtree_ids, would_create_cycle

logger = logging.getLogger(__name__)

DUPLICATE_OFFSET = 30


class MessageService:
    """Position, reparent, duplicate, and delete operations on messages."""

    def __init__(self, db: Database) -> None:
        self._db = db
        self._repo = Repository(db)

    async def update_position(
        self, user_id: str, message_id: str, x: float, y: float,
    ) -> PositionResponse:
        message = await self._repo.get_owned_message(user_id, message_id)
        if message is None:
            raise NotFoundError("Message", message_id)
        await self._repo.update_position(message_id, x, y)
        return PositionResponse(id=message_id, position_x=x, position_y=y)

    async def batch_update_positions(
        self, user_id: str, updates: list[BatchPositionEntry],
    ) -> BatchPositionResponse:
        """Move several messages at once. All are applied, or none.

        Every id must belong to the caller. Repeated ids are allowed; the
        last entry for an id wins.
        """
        unique_ids = list(dict.fromkeys(u.id for u in updates))

        async with self._db.transaction() as tx:
            repo = Repository(tx)
            owned = await repo.get_owned_message_ids(user_id, unique_ids)
            if len(owned) != len(unique_ids):
                raise NotFoundError("Some messages")
            for update in updates:
                await repo.update_position(update.id, update.position_x, update.position_y)

        latest = {u.id: u for u in updates}
        return BatchPositionResponse(
            updated=[
                PositionResponse(id=mid, position_x=latest[mid].position_x, position_y=latest[mid].position_y)
                for mid in unique_ids
            ]
        )

    async def attach(
        self, user_id: str, message_id: str, parent_id: str | None,
    ) -> AttachResponse:
        """Reparent a message, or detach it to a root with parent_id=None."""
        async with self._db.transaction() as tx:
            repo = Repository(tx)
            await self._validate_reparent(repo, user_id, message_id, parent_id)
            await repo.update_parent(message_id, parent_id)
        return AttachResponse(id=message_id, parent_message_id=parent_id)

    async def drop(
        self, user_id: str, message_id: str, parent_id: str | None, x: float, y: float,
    ) -> DropResponse:
        """Reparent and reposition as one write (drag-and-drop release)."""
        async with self._db.transaction() as tx:
            repo = Repository(tx)
            await self._validate_reparent(repo, user_id, message_id, parent_id)
            await repo.update_parent_and_position(message_id, parent_id, x, y)
        return DropResponse(
            id=message_id, parent_message_id=parent_id, position_x=x, position_y=y,
        )

    async def duplicate(self, user_id: str, message_id: str) -> MessageResponse:
        """Copy a message under the same parent, offset down-right on the canvas.

        The copy never inherits the root-node marker.
        """
        message = await self._repo.get_owned_message(user_id, message_id)
        if message is None:
            raise NotFoundError("Message", message_id)

        row = await self._repo.create_message(
            message["conversation_id"],
            message["role"],
            message["content"],
            parent_message_id=message["parent_message_id"],
            model=message["model"],
            position_x=(message["position_x"] or 0) + DUPLICATE_OFFSET,
            position_y=(message["position_y"] or 0) + DUPLICATE_OFFSET,
            is_root_node=False,
            root_node_name=None,
        )
        return message_from_row(row)

    async def delete(
        self, user_id: str, message_id: str, *, keep_replies: bool,
    ) -> DeleteResponse:
        """Delete one message, or the whole thread below it.

        keep_replies=True: direct children move up to the deleted message's
        parent. keep_replies=False: the message and every descendant go.
        """
        async with self._db.transaction() as tx:
            repo = Repository(tx)
            message = await repo.get_owned_message(user_id, message_id)
            if message is None:
                raise NotFoundError("Message", message_id)

            if keep_replies:
                child_ids = await repo.get_child_ids(message_id)
                await repo.reparent_children(message_id, message["parent_message_id"])
                await repo.delete_messages([message_id])
                return DeleteResponse(deleted_ids=[message_id], reattached_count=len(child_ids))

            rows = await repo.get_messages(message["conversation_id"])
            nodes = [graph_node_from_row(r) for r in rows]
            doomed = get_subtree_ids(nodes, message_id)
            await repo.delete_messages(doomed)

        logger.info("Deleted thread of %d messages rooted at %s", len(doomed), message_id)
        return DeleteResponse(deleted_ids=doomed)

    @staticmethod
    async def _validate_reparent(
        repo: Repository, user_id: str, message_id: str, parent_id: str | None,
    ) -> dict[str, Any]:
        """Ownership, same-conversation parent, and the authoritative cycle check."""
        message = await repo.get_owned_message(user_id, message_id)
        if message is None:
            raise NotFoundError("Message", message_id)
        if parent_id is None:
            return message

        rows = await repo.get_messages(message["conversation_id"])
        nodes = [graph_node_from_row(r) for r in rows]
        if not any(n.id == parent_id for n in nodes):
            raise NotFoundError("Parent message", parent_id)
        if would_create_cycle(nodes, message_id, parent_id):
            raise CycleRejectedError(message_id, parent_id)
        return message


def message_from_row(
    row: dict[str, Any], sibling_info: dict[str, tuple[int, int]] | None = None,
) -> MessageResponse:
    index, count = (sibling_info or {}).get(row["id"], (0, 1))
    return MessageResponse(
        id=row["id"],
        conversation_id=row["conversation_id"],
        role=row["role"],
        content=row["content"],
        model=row["model"],
        prompt_tokens=row["prompt_tokens"],
        completion_tokens=row["completion_tokens"],
        is_error=bool(row["is_error"]),
        parent_message_id=row["parent_message_id"],
        position_x=row["position_x"],
        position_y=row["position_y"],
        is_root_node=bool(row["is_root_node"]),
        root_node_name=row["root_node_name"],
        created_at=to_epoch_ms(row["created_at"]),
        sibling_count=count,
        sibling_index=index,
    )
