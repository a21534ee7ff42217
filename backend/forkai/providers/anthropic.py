"""Anthropic (Claude) completion provider."""

import time
from collections.abc import AsyncIterator
from typing import Any

from anthropic import AsyncAnthropic

from forkai.providers.base import (
    GenerationRequest,
    GenerationResult,
    LLMProvider,
    StreamChunk,
)


class AnthropicProvider(LLMProvider):
    """LLM provider backed by Anthropic's Messages API."""

    suggested_models = [
        "claude-sonnet-4-5-20250929",
        "claude-haiku-4-5-20251001",
        "claude-opus-4-6",
    ]

    def __init__(self, client: AsyncAnthropic) -> None:
        self._client = client

    @property
    def name(self) -> str:
        return "anthropic"

    async def generate_stream(
        self, request: GenerationRequest
    ) -> AsyncIterator[StreamChunk]:
        params = self._build_params(request)
        start = time.monotonic()
        accumulated_text = ""
        input_tokens = 0
        output_tokens = 0
        stop_reason: str | None = None
        model = request.model

        stream = await self._client.messages.create(**params, stream=True)
        async for event in stream:
            if event.type == "message_start":
                model = event.message.model
                input_tokens = event.message.usage.input_tokens
            elif event.type == "content_block_delta":
                text = getattr(event.delta, "text", None)
                if text is not None:
                    accumulated_text += text
                    yield StreamChunk(type="text_delta", text=text)
            elif event.type == "message_delta":
                stop_reason = event.delta.stop_reason
                output_tokens = event.usage.output_tokens

        latency_ms = int((time.monotonic() - start) * 1000)
        yield StreamChunk(
            type="message_stop",
            is_final=True,
            result=GenerationResult(
                content=accumulated_text,
                model=model,
                finish_reason=stop_reason,
                usage={"input_tokens": input_tokens, "output_tokens": output_tokens},
                latency_ms=latency_ms,
            ),
        )

    @staticmethod
    def _build_params(request: GenerationRequest) -> dict[str, Any]:
        """Build kwargs for client.messages.create(). System turns go in ``system``."""
        system_parts = [m["content"] for m in request.messages if m["role"] == "system"]
        if request.system_prompt is not None:
            system_parts.insert(0, request.system_prompt)

        params: dict[str, Any] = {
            "model": request.model,
            "max_tokens": request.max_tokens,
            "messages": [
                {"role": m["role"], "content": m["content"]}
                for m in request.messages
                if m["role"] != "system"
            ],
        }
        if system_parts:
            params["system"] = "\n\n".join(system_parts)
        return params
