"""FastAPI routes for message position, reparenting, duplication, and deletion."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from forkai.auth import get_current_user_id
from forkai.errors import CycleRejectedError, NotFoundError
from forkai.messages.schemas import (
    AttachRequest,
    AttachResponse,
    BatchPositionRequest,
    BatchPositionResponse,
    DeleteResponse,
    DropRequest,
    DropResponse,
    MessageResponse,
    PositionRequest,
    PositionResponse,
)
from forkai.messages.service import MessageService

router = APIRouter(prefix="/api/messages", tags=["messages"])


def get_message_service() -> MessageService:
    """Dependency placeholder, replaced at app startup."""
    raise RuntimeError("MessageService not initialized")


# Declared before /{message_id}/... so "batch" is never read as a message id.
@router.patch("/batch/position")
async def batch_update_positions(
    request: BatchPositionRequest,
    user_id: str = Depends(get_current_user_id),
    service: MessageService = Depends(get_message_service),
) -> BatchPositionResponse:
    try:
        return await service.batch_update_positions(user_id, request.updates)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Some messages not found or unauthorized")


@router.patch("/{message_id}/position")
async def update_position(
    message_id: str,
    request: PositionRequest,
    user_id: str = Depends(get_current_user_id),
    service: MessageService = Depends(get_message_service),
) -> PositionResponse:
    try:
        return await service.update_position(
            user_id, message_id, request.position_x, request.position_y,
        )
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Message not found")


@router.patch("/{message_id}/attach")
async def attach_message(
    message_id: str,
    request: AttachRequest,
    user_id: str = Depends(get_current_user_id),
    service: MessageService = Depends(get_message_service),
) -> AttachResponse:
    try:
        return await service.attach(user_id, message_id, request.parent_message_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CycleRejectedError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.patch("/{message_id}/drop")
async def drop_message(
    message_id: str,
    request: DropRequest,
    user_id: str = Depends(get_current_user_id),
    service: MessageService = Depends(get_message_service),
) -> DropResponse:
    try:
        return await service.drop(
            user_id, message_id, request.parent_message_id,
            request.position_x, request.position_y,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CycleRejectedError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{message_id}/duplicate", status_code=status.HTTP_201_CREATED)
async def duplicate_message(
    message_id: str,
    user_id: str = Depends(get_current_user_id),
    service: MessageService = Depends(get_message_service),
) -> MessageResponse:
    try:
        return await service.duplicate(user_id, message_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Message not found")


@router.delete("/{message_id}", response_model_exclude_none=True)
async def delete_message(
    message_id: str,
    keep_replies: bool = Query(default=False, alias="keepReplies"),
    user_id: str = Depends(get_current_user_id),
    service: MessageService = Depends(get_message_service),
) -> DeleteResponse:
    try:
        return await service.delete(user_id, message_id, keep_replies=keep_replies)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Message not found")
