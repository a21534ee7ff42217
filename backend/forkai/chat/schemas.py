"""Request schema and stream events for the chat endpoint."""

from typing import Any

from pydantic import BaseModel, Field

from forkai.models import CamelModel


class ChatRequest(CamelModel):
    message: str = Field(min_length=1)
    conversation_id: str | None = None
    parent_message_id: str | None = None
    provider: str | None = None
    model: str | None = None


class ChatTurn(BaseModel):
    """A persisted user turn, ready to be answered."""

    conversation_id: str
    is_new_conversation: bool
    user_message_id: str
    history: list[dict[str, str]]


class ChatStreamEvent(BaseModel):
    type: str  # "conversation", "messageId", "content", "done", "error"
    data: dict[str, Any] = Field(default_factory=dict)
