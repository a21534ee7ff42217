"""Integration tests for the SQLite wrapper, schema, and transactions."""

import asyncio
import os
import tempfile

import pytest

from forkai.conversations.service import ConversationService
from forkai.db.connection import Database
from forkai.db.repository import Repository
from forkai.messages.service import MessageService
from tests.fixtures import TEST_USER, branching_conversation, create_conversation, seed_messages


class TestDatabaseConnection:
    async def test_connect_creates_tables(self):
        db = await Database.connect(":memory:")
        try:
            rows = await db.fetchall(
                "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
            )
            table_names = {row["name"] for row in rows}
            assert {"conversations", "messages"} <= table_names
        finally:
            await db.close()

    async def test_wal_mode_on_file_database(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            db = await Database.connect(os.path.join(tmpdir, "test.db"))
            try:
                row = await db.fetchone("PRAGMA journal_mode")
                assert row is not None
                assert row["journal_mode"] == "wal"
            finally:
                await db.close()

    async def test_foreign_keys_enabled(self, db):
        row = await db.fetchone("PRAGMA foreign_keys")
        assert row is not None
        assert row["foreign_keys"] == 1

    async def test_schema_idempotent(self, db):
        await db._ensure_schema()
        rows = await db.fetchall("SELECT name FROM sqlite_master WHERE type='table'")
        assert len(rows) >= 2


class TestTransaction:
    async def test_commits_on_success(self, db, repo):
        conversation_id = await create_conversation(repo, TEST_USER)
        async with db.transaction() as tx:
            await Repository(tx).create_message(conversation_id, "user", "kept")
        assert len(await repo.get_messages(conversation_id)) == 1

    async def test_rolls_back_every_statement_on_error(self, db, repo):
        conversation_id = await create_conversation(repo, TEST_USER)
        ids = await seed_messages(repo, conversation_id, [("a", None)])

        with pytest.raises(RuntimeError):
            async with db.transaction() as tx:
                tx_repo = Repository(tx)
                await tx_repo.update_position(ids["a"], 10, 20)
                await tx_repo.create_message(conversation_id, "user", "discarded")
                raise RuntimeError("boom")

        rows = await repo.get_messages(conversation_id)
        assert [r["content"] for r in rows] == ["Message a"]
        assert rows[0]["position_x"] is None

    async def test_single_write_after_rollback_still_commits(self, db, repo):
        conversation_id = await create_conversation(repo, TEST_USER)
        with pytest.raises(RuntimeError):
            async with db.transaction():
                raise RuntimeError("boom")
        await repo.create_message(conversation_id, "user", "after")
        assert len(await repo.get_messages(conversation_id)) == 1

    async def test_reader_waits_for_open_transaction(self, db, repo):
        conversation_id = await create_conversation(repo, TEST_USER)
        ids = await seed_messages(repo, conversation_id, [("a", None)])
        reader = None

        with pytest.raises(RuntimeError):
            async with db.transaction() as tx:
                await Repository(tx).update_position(ids["a"], 999, 999)
                reader = asyncio.create_task(repo.get_message(ids["a"]))
                await asyncio.sleep(0.01)
                assert not reader.done()
                raise RuntimeError("boom")

        row = await reader
        assert row["position_x"] is None

    async def test_reader_sees_committed_value_after_transaction(self, db, repo):
        conversation_id = await create_conversation(repo, TEST_USER)
        ids = await seed_messages(repo, conversation_id, [("a", None)])

        async with db.transaction() as tx:
            await Repository(tx).update_position(ids["a"], 10, 20)
            reader = asyncio.create_task(repo.get_message(ids["a"]))
            await asyncio.sleep(0.01)

        row = await reader
        assert (row["position_x"], row["position_y"]) == (10, 20)

    async def test_graph_never_shows_half_applied_keep_replies_delete(self, db):
        repo = Repository(db)
        conversation_id, ids = await branching_conversation(repo, TEST_USER)
        conversations = ConversationService(db)
        messages = MessageService(db)
        snapshots = []

        async def read_graph():
            for _ in range(20):
                graph = await conversations.get_graph(TEST_USER, conversation_id)
                snapshots.append({n.id: n.parent_id for n in graph.nodes})
                await asyncio.sleep(0)

        await asyncio.gather(
            read_graph(), messages.delete(TEST_USER, ids["A"], keep_replies=True),
        )

        for parents in snapshots:
            if ids["A"] in parents:
                assert parents[ids["B"]] == ids["A"]
            else:
                assert parents[ids["B"]] == ids["root"]


class TestRepository:
    async def test_conversation_delete_cascades_to_messages(self, repo):
        conversation_id = await create_conversation(repo, TEST_USER)
        await seed_messages(repo, conversation_id, [("a", None), ("b", "a")])
        await repo.delete_conversation(conversation_id)
        assert await repo.get_messages(conversation_id) == []

    async def test_owned_message_hides_other_users(self, repo):
        conversation_id = await create_conversation(repo, TEST_USER)
        ids = await seed_messages(repo, conversation_id, [("a", None)])
        assert await repo.get_owned_message(TEST_USER, ids["a"]) is not None
        assert await repo.get_owned_message("someone-else", ids["a"]) is None

    async def test_orphan_parent_is_storable(self, repo):
        """parent_message_id is not a foreign key: imported orphans stay readable."""
        conversation_id = await create_conversation(repo, TEST_USER)
        row = await repo.create_message(
            conversation_id, "user", "orphan", parent_message_id="missing",
        )
        assert row["parent_message_id"] == "missing"

    async def test_update_conversation_rejects_unknown_field(self, repo):
        conversation_id = await create_conversation(repo, TEST_USER)
        with pytest.raises(ValueError):
            await repo.update_conversation(conversation_id, user_id="hijack")

    async def test_messages_in_creation_order(self, repo):
        conversation_id = await create_conversation(repo, TEST_USER)
        ids = await seed_messages(repo, conversation_id, [("a", None), ("b", "a"), ("c", "a")])
        rows = await repo.get_messages(conversation_id)
        assert [r["id"] for r in rows] == [ids["a"], ids["b"], ids["c"]]
