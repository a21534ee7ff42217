"""Abstract completion-service interface and shared data types."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from pydantic import BaseModel


class GenerationRequest(BaseModel):
    """Everything a provider needs to make an API call."""

    model: str
    messages: list[dict[str, str]]
    system_prompt: str | None = None
    max_tokens: int = 2048


class GenerationResult(BaseModel):
    """Summary of a finished streaming response."""

    content: str
    model: str
    finish_reason: str | None = None
    usage: dict[str, int] | None = None  # {input_tokens, output_tokens}
    latency_ms: int | None = None


class StreamChunk(BaseModel):
    """A single delta in a streaming response."""

    type: str  # "text_delta", "message_stop"
    text: str = ""
    is_final: bool = False
    result: GenerationResult | None = None


class LLMProvider(ABC):
    """Abstract interface for LLM providers."""

    suggested_models: list[str] = []

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier (e.g., 'anthropic')."""
        ...

    @property
    def default_model(self) -> str:
        return self.suggested_models[0]

    @abstractmethod
    def generate_stream(
        self, request: GenerationRequest
    ) -> AsyncIterator[StreamChunk]:
        """Send a streaming generation request. Yields chunks, the last one final."""
        ...
