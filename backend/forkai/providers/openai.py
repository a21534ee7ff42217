"""OpenAI completion provider (Chat Completions API)."""

import time
from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI

from forkai.providers.base import (
    GenerationRequest,
    GenerationResult,
    LLMProvider,
    StreamChunk,
)


class OpenAIProvider(LLMProvider):
    """LLM provider backed by OpenAI's Chat Completions API."""

    suggested_models = [
        "gpt-4o-mini",
        "gpt-4o",
        "gpt-5-mini",
    ]

    def __init__(self, *, client: AsyncOpenAI | None = None, api_key: str | None = None) -> None:
        self._client = client if client is not None else AsyncOpenAI(api_key=api_key)

    @property
    def name(self) -> str:
        return "openai"

    async def generate_stream(
        self, request: GenerationRequest
    ) -> AsyncIterator[StreamChunk]:
        params = self._build_params(request)
        params["stream"] = True
        params["stream_options"] = {"include_usage": True}

        start = time.monotonic()
        accumulated_text = ""
        finish_reason: str | None = None
        model = request.model
        input_tokens = 0
        output_tokens = 0

        stream = await self._client.chat.completions.create(**params)
        async for chunk in stream:
            if chunk.model:
                model = chunk.model

            if chunk.choices:
                choice = chunk.choices[0]
                text = choice.delta.content
                if text:
                    accumulated_text += text
                    yield StreamChunk(type="text_delta", text=text)
                if choice.finish_reason:
                    finish_reason = choice.finish_reason

            # Usage arrives in the final chunk, which has no choices
            if chunk.usage:
                input_tokens = chunk.usage.prompt_tokens
                output_tokens = chunk.usage.completion_tokens

        latency_ms = int((time.monotonic() - start) * 1000)
        yield StreamChunk(
            type="message_stop",
            is_final=True,
            result=GenerationResult(
                content=accumulated_text,
                model=model,
                finish_reason=finish_reason,
                usage={"input_tokens": input_tokens, "output_tokens": output_tokens},
                latency_ms=latency_ms,
            ),
        )

    @staticmethod
    def _build_params(request: GenerationRequest) -> dict[str, Any]:
        """Build kwargs for client.chat.completions.create()."""
        messages: list[dict[str, str]] = []
        if request.system_prompt is not None:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.extend({"role": m["role"], "content": m["content"]} for m in request.messages)

        return {
            "model": request.model,
            "max_tokens": request.max_tokens,
            "messages": messages,
        }
