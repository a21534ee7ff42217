"""Request and response schemas for conversation endpoints."""

from pydantic import Field

from forkai.messages.schemas import MessageResponse
from forkai.models import CamelModel

# -- Requests --


class CreateConversationRequest(CamelModel):
    title: str = Field(default="New Chat", min_length=1, max_length=200)
    collection_id: str | None = None


class PatchConversationRequest(CamelModel):
    """Only fields present in the request body are changed."""

    title: str | None = Field(default=None, min_length=1, max_length=200)
    collection_id: str | None = None


# -- Responses --


class ConversationSummary(CamelModel):
    id: str
    title: str
    collection_id: str | None = None
    message_count: int = 0
    created_at: str
    updated_at: str


class ConversationDetail(CamelModel):
    id: str
    title: str
    collection_id: str | None = None
    created_at: str
    updated_at: str
    messages: list[MessageResponse] = Field(default_factory=list)


class ConversationTreeResponse(CamelModel):
    """Messages plus parent -> child ids; the key "null" holds the roots."""

    messages: list[MessageResponse]
    tree: dict[str, list[str]]
