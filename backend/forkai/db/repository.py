"""Row-level reads and writes for collections, conversations and messages.

A Repository wraps either the Database (each write commits on its own) or
a Transaction from Database.transaction() (writes commit together). The
services decide which; the SQL here is the same either way.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from forkai.db.connection import Database, Transaction


def utc_now() -> str:
    return datetime.now(UTC).isoformat()


class Repository:
    """CRUD over the collections, conversations and messages tables."""

    def __init__(self, executor: Database | Transaction) -> None:
        self._db = executor

    # -- Collections --

    async def create_collection(
        self, user_id: str, name: str, color: str, *, is_default: bool = False,
    ) -> dict[str, Any]:
        collection_id = str(uuid4())
        now = utc_now()
        await self._db.execute(
            """
            INSERT INTO collections (id, user_id, name, color, is_default, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (collection_id, user_id, name, color, int(is_default), now, now),
        )
        row = await self.get_owned_collection(user_id, collection_id)
        assert row is not None
        return row

    async def get_owned_collection(
        self, user_id: str, collection_id: str,
    ) -> dict[str, Any] | None:
        """The collection with its conversation_count, if user_id owns it."""
        row = await self._db.fetchone(
            """
            SELECT col.*, COUNT(c.id) AS conversation_count
            FROM collections col
            LEFT JOIN conversations c ON c.collection_id = col.id
            WHERE col.id = ? AND col.user_id = ?
            GROUP BY col.id
            """,
            (collection_id, user_id),
        )
        return dict(row) if row is not None else None

    async def list_collections(self, user_id: str) -> list[dict[str, Any]]:
        """The user's collections, oldest first."""
        rows = await self._db.fetchall(
            """
            SELECT col.*, COUNT(c.id) AS conversation_count
            FROM collections col
            LEFT JOIN conversations c ON c.collection_id = col.id
            WHERE col.user_id = ?
            GROUP BY col.id
            ORDER BY col.created_at, col.rowid
            """,
            (user_id,),
        )
        return [dict(row) for row in rows]

    _UPDATABLE_COLLECTION_FIELDS = {"name", "color"}

    async def update_collection(self, collection_id: str, **fields: Any) -> None:
        unknown = set(fields) - self._UPDATABLE_COLLECTION_FIELDS
        if unknown:
            raise ValueError(f"Not updatable: {sorted(unknown)}")
        assignments = "".join(f"{name} = ?, " for name in fields)
        await self._db.execute(
            f"UPDATE collections SET {assignments}updated_at = ? WHERE id = ?",
            (*fields.values(), utc_now(), collection_id),
        )

    async def delete_collection(self, collection_id: str) -> None:
        """Delete a collection. Its conversations stay, with no collection."""
        await self._db.execute(
            "UPDATE conversations SET collection_id = NULL WHERE collection_id = ?",
            (collection_id,),
        )
        await self._db.execute("DELETE FROM collections WHERE id = ?", (collection_id,))

    # -- Conversations --

    async def create_conversation(
        self, user_id: str, title: str, collection_id: str | None = None,
    ) -> dict[str, Any]:
        conversation_id = str(uuid4())
        now = utc_now()
        await self._db.execute(
            """
            INSERT INTO conversations (id, user_id, title, collection_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (conversation_id, user_id, title, collection_id, now, now),
        )
        row = await self.get_owned_conversation(user_id, conversation_id)
        assert row is not None
        return row

    async def get_owned_conversation(
        self, user_id: str, conversation_id: str,
    ) -> dict[str, Any] | None:
        """The conversation if it exists and belongs to user_id, else None."""
        row = await self._db.fetchone(
            "SELECT * FROM conversations WHERE id = ? AND user_id = ?",
            (conversation_id, user_id),
        )
        return dict(row) if row is not None else None

    async def list_conversations(
        self, user_id: str, *, collection_id: str | None = None, uncategorized: bool = False,
    ) -> list[dict[str, Any]]:
        """The user's conversations, most recently updated first.

        collection_id narrows to one collection; uncategorized=True narrows
        to conversations in no collection.
        """
        where = "c.user_id = ?"
        params: tuple = (user_id,)
        if uncategorized:
            where += " AND c.collection_id IS NULL"
        elif collection_id is not None:
            where += " AND c.collection_id = ?"
            params += (collection_id,)
        rows = await self._db.fetchall(
            f"""
            SELECT c.*, COUNT(m.id) AS message_count
            FROM conversations c
            LEFT JOIN messages m ON m.conversation_id = c.id
            WHERE {where}
            GROUP BY c.id
            ORDER BY c.updated_at DESC
            """,
            params,
        )
        return [dict(row) for row in rows]

    _UPDATABLE_CONVERSATION_FIELDS = {"title", "collection_id"}

    async def update_conversation(self, conversation_id: str, **fields: Any) -> None:
        """Set the given columns and bump updated_at."""
        unknown = set(fields) - self._UPDATABLE_CONVERSATION_FIELDS
        if unknown:
            raise ValueError(f"Not updatable: {sorted(unknown)}")
        assignments = "".join(f"{name} = ?, " for name in fields)
        await self._db.execute(
            f"UPDATE conversations SET {assignments}updated_at = ? WHERE id = ?",
            (*fields.values(), utc_now(), conversation_id),
        )

    async def touch_conversation(self, conversation_id: str) -> None:
        await self._db.execute(
            "UPDATE conversations SET updated_at = ? WHERE id = ?",
            (utc_now(), conversation_id),
        )

    async def delete_conversation(self, conversation_id: str) -> None:
        """Delete a conversation; its messages go with it (ON DELETE CASCADE)."""
        await self._db.execute("DELETE FROM conversations WHERE id = ?", (conversation_id,))

    # -- Messages --

    async def get_messages(self, conversation_id: str) -> list[dict[str, Any]]:
        """All messages of a conversation in creation order."""
        rows = await self._db.fetchall(
            "SELECT * FROM messages WHERE conversation_id = ? ORDER BY created_at, rowid",
            (conversation_id,),
        )
        return [dict(row) for row in rows]

    async def get_owned_message(self, user_id: str, message_id: str) -> dict[str, Any] | None:
        """The message if its conversation belongs to user_id, else None."""
        row = await self._db.fetchone(
            """
            SELECT m.* FROM messages m
            JOIN conversations c ON c.id = m.conversation_id
            WHERE m.id = ? AND c.user_id = ?
            """,
            (message_id, user_id),
        )
        return dict(row) if row is not None else None

    async def get_owned_message_ids(self, user_id: str, message_ids: list[str]) -> set[str]:
        """Subset of message_ids whose conversations belong to user_id."""
        if not message_ids:
            return set()
        placeholders = ", ".join("?" for _ in message_ids)
        rows = await self._db.fetchall(
            f"""
            SELECT m.id FROM messages m
            JOIN conversations c ON c.id = m.conversation_id
            WHERE c.user_id = ? AND m.id IN ({placeholders})
            """,
            (user_id, *message_ids),
        )
        return {row["id"] for row in rows}

    async def get_message(self, message_id: str) -> dict[str, Any] | None:
        row = await self._db.fetchone("SELECT * FROM messages WHERE id = ?", (message_id,))
        return dict(row) if row is not None else None

    async def get_child_ids(self, message_id: str) -> list[str]:
        rows = await self._db.fetchall(
            "SELECT id FROM messages WHERE parent_message_id = ? ORDER BY created_at, rowid",
            (message_id,),
        )
        return [row["id"] for row in rows]

    async def create_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        *,
        parent_message_id: str | None = None,
        model: str | None = None,
        prompt_tokens: int | None = None,
        completion_tokens: int | None = None,
        is_error: bool = False,
        position_x: float | None = None,
        position_y: float | None = None,
        is_root_node: bool = False,
        root_node_name: str | None = None,
    ) -> dict[str, Any]:
        message_id = str(uuid4())
        await self._db.execute(
            """
            INSERT INTO messages
                (id, conversation_id, role, content, model, prompt_tokens,
                 completion_tokens, is_error, parent_message_id, position_x,
                 position_y, is_root_node, root_node_name, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                message_id,
                conversation_id,
                role,
                content,
                model,
                prompt_tokens,
                completion_tokens,
                int(is_error),
                parent_message_id,
                position_x,
                position_y,
                int(is_root_node),
                root_node_name,
                utc_now(),
            ),
        )
        row = await self.get_message(message_id)
        assert row is not None
        return row

    async def update_position(self, message_id: str, x: float, y: float) -> None:
        await self._db.execute(
            "UPDATE messages SET position_x = ?, position_y = ? WHERE id = ?",
            (x, y, message_id),
        )

    async def update_parent(self, message_id: str, parent_message_id: str | None) -> None:
        await self._db.execute(
            "UPDATE messages SET parent_message_id = ? WHERE id = ?",
            (parent_message_id, message_id),
        )

    async def update_parent_and_position(
        self, message_id: str, parent_message_id: str | None, x: float, y: float,
    ) -> None:
        """Parent and position in one UPDATE, so no reader sees one without the other."""
        await self._db.execute(
            """
            UPDATE messages SET parent_message_id = ?, position_x = ?, position_y = ?
            WHERE id = ?
            """,
            (parent_message_id, x, y, message_id),
        )

    async def reparent_children(self, old_parent_id: str, new_parent_id: str | None) -> None:
        await self._db.execute(
            "UPDATE messages SET parent_message_id = ? WHERE parent_message_id = ?",
            (new_parent_id, old_parent_id),
        )

    async def delete_messages(self, message_ids: list[str]) -> None:
        if not message_ids:
            return
        placeholders = ", ".join("?" for _ in message_ids)
        await self._db.execute(
            f"DELETE FROM messages WHERE id IN ({placeholders})",
            tuple(message_ids),
        )
