"""Collection service: owner-scoped folders that group conversations."""

import logging
from typing import Any

from forkai.collections.schemas import (
    CollectionResponse,
    CreateCollectionRequest,
    UpdateCollectionRequest,
)
from forkai.db.connection import Database
from forkai.db.repository import Repository
from forkai.errors import InvalidInputError, NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION_NAME = "Uncategorized"
DEFAULT_COLLECTION_COLOR = "#95A5A6"


class CollectionService:
    def __init__(self, db: Database) -> None:
        self._db = db
        self._repo = Repository(db)

    async def list_collections(self, user_id: str) -> list[CollectionResponse]:
        """The caller's collections, oldest first.

        A user with no collections gets a default "Uncategorized" one, created
        in the same transaction as the read.
        """
        async with self._db.transaction() as tx:
            repo = Repository(tx)
            rows = await repo.list_collections(user_id)
            if not rows:
                rows = [
                    await repo.create_collection(
                        user_id, DEFAULT_COLLECTION_NAME, DEFAULT_COLLECTION_COLOR, is_default=True,
                    )
                ]
                logger.info("Created default collection for user %s", user_id)
        return [self._response_from_row(row) for row in rows]

    async def create_collection(
        self, user_id: str, request: CreateCollectionRequest,
    ) -> CollectionResponse:
        row = await self._repo.create_collection(user_id, request.name, request.color)
        return self._response_from_row(row)

    async def update_collection(
        self, user_id: str, collection_id: str, request: UpdateCollectionRequest,
    ) -> CollectionResponse:
        await self._get_owned(user_id, collection_id)

        fields = {name: getattr(request, name) for name in request.model_fields_set}
        for name, value in fields.items():
            if value is None:
                raise InvalidInputError(f"{name} cannot be null")
        if fields:
            await self._repo.update_collection(collection_id, **fields)

        return self._response_from_row(await self._get_owned(user_id, collection_id))

    async def delete_collection(self, user_id: str, collection_id: str) -> None:
        """Delete a collection; its conversations become uncategorized.

        Raises InvalidInputError for the default collection.
        """
        async with self._db.transaction() as tx:
            repo = Repository(tx)
            collection = await repo.get_owned_collection(user_id, collection_id)
            if collection is None:
                raise NotFoundError("Collection", collection_id)
            if collection["is_default"]:
                raise InvalidInputError("Cannot delete default collection")
            await repo.delete_collection(collection_id)

    async def _get_owned(self, user_id: str, collection_id: str) -> dict[str, Any]:
        collection = await self._repo.get_owned_collection(user_id, collection_id)
        if collection is None:
            raise NotFoundError("Collection", collection_id)
        return collection

    @staticmethod
    def _response_from_row(row: dict[str, Any]) -> CollectionResponse:
        return CollectionResponse(
            id=row["id"],
            name=row["name"],
            color=row["color"],
            is_default=bool(row["is_default"]),
            conversation_count=row.get("conversation_count", 0),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
