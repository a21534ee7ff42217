"""Contract tests for OpenAIProvider with a mocked AsyncOpenAI client."""

from unittest.mock import AsyncMock, MagicMock

from forkai.providers.base import GenerationRequest
from forkai.providers.openai import OpenAIProvider


def _make_stream_chunks(text: str) -> list[MagicMock]:
    content = MagicMock()
    content.model = "gpt-4o-mini"
    content.choices = [MagicMock()]
    content.choices[0].delta.content = text
    content.choices[0].finish_reason = None
    content.usage = None

    finish = MagicMock()
    finish.model = "gpt-4o-mini"
    finish.choices = [MagicMock()]
    finish.choices[0].delta.content = None
    finish.choices[0].finish_reason = "stop"
    finish.usage = None

    # Usage arrives on a trailing chunk with no choices
    usage = MagicMock()
    usage.model = "gpt-4o-mini"
    usage.choices = []
    usage.usage.prompt_tokens = 12
    usage.usage.completion_tokens = 3
    return [content, finish, usage]


async def _async_iter(items: list):
    for item in items:
        yield item


def _make_request() -> GenerationRequest:
    return GenerationRequest(
        model="gpt-4o-mini",
        messages=[{"role": "user", "content": "Hello"}],
        system_prompt="Be brief.",
    )


class TestOpenAIGenerateStream:
    async def test_system_prompt_is_first_message(self):
        client = AsyncMock()
        client.chat.completions.create = AsyncMock(return_value=_async_iter(_make_stream_chunks("x")))
        provider = OpenAIProvider(client=client)
        [c async for c in provider.generate_stream(_make_request())]
        assert provider.name == "openai"
        messages = client.chat.completions.create.call_args.kwargs["messages"]
        assert messages[0] == {"role": "system", "content": "Be brief."}

    async def test_streams_and_reports_usage(self):
        client = AsyncMock()
        client.chat.completions.create = AsyncMock(
            return_value=_async_iter(_make_stream_chunks("Hello world!"))
        )
        chunks = [c async for c in OpenAIProvider(client=client).generate_stream(_make_request())]

        assert [c.text for c in chunks if c.type == "text_delta"] == ["Hello world!"]
        final = chunks[-1]
        assert final.result.content == "Hello world!"
        assert final.result.finish_reason == "stop"
        assert final.result.usage == {"input_tokens": 12, "output_tokens": 3}

    async def test_requests_usage_in_stream(self):
        client = AsyncMock()
        client.chat.completions.create = AsyncMock(return_value=_async_iter(_make_stream_chunks("x")))
        [c async for c in OpenAIProvider(client=client).generate_stream(_make_request())]
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["stream"] is True
        assert kwargs["stream_options"] == {"include_usage": True}
