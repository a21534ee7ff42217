"""Shared pytest fixtures for Fork AI tests."""

import pytest
from httpx import ASGITransport, AsyncClient

from forkai.chat.router import get_chat_service
from forkai.chat.service import ChatService
from forkai.collections.router import get_collection_service
from forkai.collections.service import CollectionService
from forkai.conversations.router import get_conversation_service
from forkai.conversations.service import ConversationService
from forkai.db.connection import Database
from forkai.db.repository import Repository
from forkai.main import app
from forkai.messages.router import get_message_service
from forkai.messages.service import MessageService
from tests.fixtures import TEST_USER


@pytest.fixture
async def db():
    """In-memory database for tests."""
    database = await Database.connect(":memory:")
    yield database
    await database.close()


@pytest.fixture
async def repo(db):
    """Repository writing straight to the in-memory database."""
    return Repository(db)


@pytest.fixture
async def client(db):
    """Async test client with in-memory DB wired into the app, acting as TEST_USER."""
    collection_service = CollectionService(db)
    conversation_service = ConversationService(db)
    message_service = MessageService(db)
    chat_service = ChatService(db, default_provider="fake")
    app.dependency_overrides[get_collection_service] = lambda: collection_service
    app.dependency_overrides[get_conversation_service] = lambda: conversation_service
    app.dependency_overrides[get_message_service] = lambda: message_service
    app.dependency_overrides[get_chat_service] = lambda: chat_service
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"X-User-Id": TEST_USER},
    ) as client:
        yield client
    app.dependency_overrides.clear()
