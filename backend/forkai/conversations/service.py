"""Conversation service: conversation CRUD and graph/tree reads for the canvas."""

from typing import Any

from forkai.conversations.schemas import (
    ConversationDetail,
    ConversationSummary,
    ConversationTreeResponse,
    CreateConversationRequest,
    PatchConversationRequest,
)
from forkai.db.connection import Database
from forkai.db.repository import Repository
from forkai.errors import InvalidInputError, NotFoundError
from forkai.messages.service import message_from_row
from forkai.models import ChatGraph, graph_node_from_row
from forkai.tree.branches import BranchNavigator
from forkai.tree.index import build_child_map


class ConversationService:
    """Owner-scoped access to conversations and their message graphs."""

    def __init__(self, db: Database) -> None:
        self._repo = Repository(db)

    async def create_conversation(
        self, user_id: str, request: CreateConversationRequest,
    ) -> ConversationSummary:
        """Raises NotFoundError when collectionId names a collection the caller does not own."""
        if request.collection_id is not None:
            await self._require_collection(user_id, request.collection_id)
        row = await self._repo.create_conversation(user_id, request.title, request.collection_id)
        return self._summary_from_row(row)

    async def list_conversations(
        self, user_id: str, collection_id: str | None = None,
    ) -> list[ConversationSummary]:
        """All of the caller's conversations, or one collection's.

        collection_id="null" selects conversations in no collection.
        """
        if collection_id == "null":
            rows = await self._repo.list_conversations(user_id, uncategorized=True)
        else:
            rows = await self._repo.list_conversations(user_id, collection_id=collection_id)
        return [self._summary_from_row(row) for row in rows]

    async def get_conversation(self, user_id: str, conversation_id: str) -> ConversationDetail:
        """Conversation with every message, each carrying its sibling position."""
        conversation = await self._get_owned(user_id, conversation_id)
        rows = await self._repo.get_messages(conversation_id)
        return self._detail_from_row(conversation, rows)

    async def update_conversation(
        self, user_id: str, conversation_id: str, request: PatchConversationRequest,
    ) -> ConversationDetail:
        await self._get_owned(user_id, conversation_id)

        fields = {name: getattr(request, name) for name in request.model_fields_set}
        if "title" in fields and fields["title"] is None:
            raise InvalidInputError("title cannot be null")
        if fields.get("collection_id") is not None:
            await self._require_collection(user_id, fields["collection_id"])
        if fields:
            await self._repo.update_conversation(conversation_id, **fields)

        return await self.get_conversation(user_id, conversation_id)

    async def delete_conversation(self, user_id: str, conversation_id: str) -> None:
        await self._get_owned(user_id, conversation_id)
        await self._repo.delete_conversation(conversation_id)

    async def get_graph(self, user_id: str, conversation_id: str) -> ChatGraph:
        """Every message as a canvas node; unplaced nodes come back at (0, 0)."""
        await self._get_owned(user_id, conversation_id)
        rows = await self._repo.get_messages(conversation_id)
        return ChatGraph(id=conversation_id, nodes=[graph_node_from_row(r) for r in rows])

    async def get_tree(self, user_id: str, conversation_id: str) -> ConversationTreeResponse:
        await self._get_owned(user_id, conversation_id)
        rows = await self._repo.get_messages(conversation_id)
        nodes = [graph_node_from_row(r) for r in rows]
        child_map = build_child_map(nodes)
        sibling_info = self._compute_sibling_info(rows)
        return ConversationTreeResponse(
            messages=[message_from_row(r, sibling_info) for r in rows],
            tree={"null" if parent is None else parent: ids for parent, ids in child_map.items()},
        )

    async def _get_owned(self, user_id: str, conversation_id: str) -> dict[str, Any]:
        conversation = await self._repo.get_owned_conversation(user_id, conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation", conversation_id)
        return conversation

    async def _require_collection(self, user_id: str, collection_id: str) -> None:
        if await self._repo.get_owned_collection(user_id, collection_id) is None:
            raise NotFoundError("Collection", collection_id)

    @staticmethod
    def _compute_sibling_info(rows: list[dict[str, Any]]) -> dict[str, tuple[int, int]]:
        """(sibling_index, sibling_count) per message, as the chat view navigates them."""
        navigator = BranchNavigator([graph_node_from_row(r) for r in rows])
        return {
            r["id"]: (navigator.sibling_index(r["id"]), len(navigator.siblings(r["id"])))
            for r in rows
        }

    @staticmethod
    def _summary_from_row(row: dict[str, Any]) -> ConversationSummary:
        return ConversationSummary(
            id=row["id"],
            title=row["title"],
            collection_id=row["collection_id"],
            message_count=row.get("message_count", 0),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @classmethod
    def _detail_from_row(
        cls, row: dict[str, Any], message_rows: list[dict[str, Any]],
    ) -> ConversationDetail:
        sibling_info = cls._compute_sibling_info(message_rows)
        return ConversationDetail(
            id=row["id"],
            title=row["title"],
            collection_id=row["collection_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            messages=[message_from_row(r, sibling_info) for r in message_rows],
        )
