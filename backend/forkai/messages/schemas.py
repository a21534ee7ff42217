"""Request and response schemas for message graph mutations."""

from typing import Annotated

from pydantic import Field

from forkai.models import CamelModel

# Strict: "12" or true are rejected rather than coerced to a coordinate.
Coordinate = Annotated[float, Field(strict=True, allow_inf_nan=False)]

# -- Requests --


class PositionRequest(CamelModel):
    position_x: Coordinate
    position_y: Coordinate


class BatchPositionEntry(CamelModel):
    id: str = Field(min_length=1)
    position_x: Coordinate
    position_y: Coordinate


class BatchPositionRequest(CamelModel):
    updates: list[BatchPositionEntry] = Field(min_length=1)


class AttachRequest(CamelModel):
    """parentMessageId is required but may be null (detach)."""

    parent_message_id: str | None


class DropRequest(CamelModel):
    parent_message_id: str | None
    position_x: Coordinate
    position_y: Coordinate


# -- Responses --


class PositionResponse(CamelModel):
    id: str
    position_x: float | None = None
    position_y: float | None = None


class BatchPositionResponse(CamelModel):
    updated: list[PositionResponse]


class AttachResponse(CamelModel):
    id: str
    parent_message_id: str | None = None


class DropResponse(CamelModel):
    id: str
    parent_message_id: str | None = None
    position_x: float | None = None
    position_y: float | None = None


class MessageResponse(CamelModel):
    id: str
    conversation_id: str
    role: str
    content: str
    model: str | None = None
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    is_error: bool = False
    parent_message_id: str | None = None
    position_x: float | None = None
    position_y: float | None = None
    is_root_node: bool = False
    root_node_name: str | None = None
    created_at: int  # epoch milliseconds
    sibling_count: int = 1
    sibling_index: int = 0


class DeleteResponse(CamelModel):
    success: bool = True
    deleted_ids: list[str]
    reattached_count: int | None = None
