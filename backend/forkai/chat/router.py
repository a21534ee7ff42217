"""FastAPI route for streaming a chat turn."""

import json as json_module
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from forkai.auth import get_current_user_id
from forkai.chat.schemas import ChatRequest, ChatTurn
from forkai.chat.service import ChatService
from forkai.errors import NotFoundError
from forkai.providers.base import LLMProvider
from forkai.providers.registry import ProviderNotFoundError, get_provider

router = APIRouter(prefix="/api/chat", tags=["chat"])


def get_chat_service() -> ChatService:
    """Dependency placeholder, replaced at app startup."""
    raise RuntimeError("ChatService not initialized")


@router.post("/stream", response_model=None)
async def stream_chat(
    request: ChatRequest,
    user_id: str = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
) -> StreamingResponse:
    try:
        provider = get_provider(request.provider or service.default_provider)
    except ProviderNotFoundError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        turn = await service.start_turn(user_id, request)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return StreamingResponse(
        _stream_sse(service, turn, provider, request.model),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


async def _stream_sse(
    service: ChatService,
    turn: ChatTurn,
    provider: LLMProvider,
    model: str | None,
) -> AsyncIterator[str]:
    """Async generator that yields SSE-formatted lines."""
    async for event in service.stream_reply(turn, provider, model):
        data = {"type": event.type, **event.data}
        yield f"event: {event.type}\ndata: {json_module.dumps(data)}\n\n"
