"""FastAPI routes for collections."""

from fastapi import APIRouter, Depends, HTTPException, status

from forkai.auth import get_current_user_id
from forkai.collections.schemas import (
    CollectionResponse,
    CreateCollectionRequest,
    UpdateCollectionRequest,
)
from forkai.collections.service import CollectionService
from forkai.errors import InvalidInputError, NotFoundError

router = APIRouter(prefix="/api/collections", tags=["collections"])


def get_collection_service() -> CollectionService:
    """Dependency placeholder, replaced at app startup."""
    raise RuntimeError("CollectionService not initialized")


@router.get("")
async def list_collections(
    user_id: str = Depends(get_current_user_id),
    service: CollectionService = Depends(get_collection_service),
) -> list[CollectionResponse]:
    return await service.list_collections(user_id)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_collection(
    request: CreateCollectionRequest,
    user_id: str = Depends(get_current_user_id),
    service: CollectionService = Depends(get_collection_service),
) -> CollectionResponse:
    return await service.create_collection(user_id, request)


@router.put("/{collection_id}")
async def update_collection(
    collection_id: str,
    request: UpdateCollectionRequest,
    user_id: str = Depends(get_current_user_id),
    service: CollectionService = Depends(get_collection_service),
) -> CollectionResponse:
    try:
        return await service.update_collection(user_id, collection_id, request)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Collection not found")
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{collection_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_collection(
    collection_id: str,
    user_id: str = Depends(get_current_user_id),
    service: CollectionService = Depends(get_collection_service),
) -> None:
    try:
        await service.delete_collection(user_id, collection_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Collection not found")
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
