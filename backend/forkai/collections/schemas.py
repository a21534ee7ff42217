"""Request and response schemas for collection endpoints."""

from pydantic import Field

from forkai.models import CamelModel

HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"

# -- Requests --


class CreateCollectionRequest(CamelModel):
    name: str = Field(min_length=1, max_length=50)
    color: str = Field(pattern=HEX_COLOR_PATTERN)


class UpdateCollectionRequest(CamelModel):
    """Only fields present in the request body are changed."""

    name: str | None = Field(default=None, min_length=1, max_length=50)
    color: str | None = Field(default=None, pattern=HEX_COLOR_PATTERN)


# -- Responses --


class CollectionResponse(CamelModel):
    id: str
    name: str
    color: str
    is_default: bool = False
    conversation_count: int = 0
    created_at: str
    updated_at: str
