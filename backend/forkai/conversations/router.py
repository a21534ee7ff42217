"""FastAPI routes for conversations and their message graphs."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from forkai.auth import get_current_user_id
from forkai.conversations.schemas import (
    ConversationDetail,
    ConversationSummary,
    ConversationTreeResponse,
    CreateConversationRequest,
    PatchConversationRequest,
)
from forkai.conversations.service import ConversationService
from forkai.errors import InvalidInputError, NotFoundError
from forkai.models import ChatGraph

router = APIRouter(prefix="/api/conversations", tags=["conversations"])


def get_conversation_service() -> ConversationService:
    """Dependency placeholder, replaced at app startup."""
    raise RuntimeError("ConversationService not initialized")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_conversation(
    request: CreateConversationRequest,
    user_id: str = Depends(get_current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationSummary:
    try:
        return await service.create_conversation(user_id, request)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=f"{e.kind} not found")


@router.get("")
async def list_conversations(
    collection_id: str | None = Query(default=None, alias="collectionId"),
    user_id: str = Depends(get_current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> list[ConversationSummary]:
    """collectionId=null lists conversations that are in no collection."""
    return await service.list_conversations(user_id, collection_id)


@router.get("/{conversation_id}")
async def get_conversation(
    conversation_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationDetail:
    try:
        return await service.get_conversation(user_id, conversation_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")


@router.patch("/{conversation_id}")
async def update_conversation(
    conversation_id: str,
    request: PatchConversationRequest,
    user_id: str = Depends(get_current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationDetail:
    try:
        return await service.update_conversation(user_id, conversation_id, request)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=f"{e.kind} not found")
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(
    conversation_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> None:
    try:
        await service.delete_conversation(user_id, conversation_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")


@router.get("/{conversation_id}/graph")
async def get_conversation_graph(
    conversation_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> ChatGraph:
    try:
        return await service.get_graph(user_id, conversation_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")


@router.get("/{conversation_id}/tree")
async def get_conversation_tree(
    conversation_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationTreeResponse:
    try:
        return await service.get_tree(user_id, conversation_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")
