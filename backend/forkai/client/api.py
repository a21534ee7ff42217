"""HTTP client for the graph mutation endpoints.

Status codes map back onto the same error types the server raises, so a
GraphStore caller sees NotFoundError / CycleRejectedError / InvalidInputError
whether a mutation was refused locally or by the server.
"""

from typing import Any

import httpx

from forkai.errors import (
    CYCLE_ERROR_DETAIL,
    CycleRejectedError,
    ForkAIError,
    InvalidInputError,
    NotFoundError,
)
from forkai.models import ChatGraph, GraphNode


class RemoteRequestError(ForkAIError):
    """Transport failure, or a status code with no domain meaning."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class GraphAPI:
    """Thin async wrapper over /api/conversations and /api/messages."""

    def __init__(self, client: httpx.AsyncClient, user_id: str) -> None:
        self._client = client
        self._headers = {"X-User-Id": user_id}

    async def fetch_graph(self, conversation_id: str) -> ChatGraph:
        data = await self._request("GET", f"/api/conversations/{conversation_id}/graph")
        return ChatGraph.model_validate(data)

    async def update_position(self, node_id: str, x: float, y: float) -> dict[str, Any]:
        return await self._request(
            "PATCH",
            f"/api/messages/{node_id}/position",
            json={"positionX": x, "positionY": y},
        )

    async def batch_update_positions(
        self, updates: list[tuple[str, float, float]],
    ) -> dict[str, Any]:
        return await self._request(
            "PATCH",
            "/api/messages/batch/position",
            json={
                "updates": [
                    {"id": node_id, "positionX": x, "positionY": y}
                    for node_id, x, y in updates
                ]
            },
        )

    async def attach(self, node_id: str, parent_id: str | None) -> dict[str, Any]:
        """Reparent node_id; parent_id=None detaches it to a root."""
        return await self._request(
            "PATCH",
            f"/api/messages/{node_id}/attach",
            json={"parentMessageId": parent_id},
        )

    async def drop(
        self, node_id: str, parent_id: str | None, x: float, y: float,
    ) -> dict[str, Any]:
        return await self._request(
            "PATCH",
            f"/api/messages/{node_id}/drop",
            json={"parentMessageId": parent_id, "positionX": x, "positionY": y},
        )

    async def duplicate(self, node_id: str) -> GraphNode:
        data = await self._request("POST", f"/api/messages/{node_id}/duplicate")
        return node_from_message(data)

    async def delete(self, node_id: str, *, keep_replies: bool) -> dict[str, Any]:
        return await self._request(
            "DELETE",
            f"/api/messages/{node_id}",
            params={"keepReplies": "true" if keep_replies else "false"},
        )

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, url, headers=self._headers, **kwargs)
        except httpx.HTTPError as e:
            raise RemoteRequestError(f"{method} {url} failed: {e}") from e

        if response.is_success:
            return response.json()

        kind, resource_id = _resource(url)
        detail = _detail(response)
        if response.status_code == 404:
            raise NotFoundError(kind, resource_id)
        if response.status_code == 400 and detail == CYCLE_ERROR_DETAIL:
            parent_id = (kwargs.get("json") or {}).get("parentMessageId") or ""
            raise CycleRejectedError(resource_id or "", parent_id)
        if response.status_code == 400:
            raise InvalidInputError(detail)
        raise RemoteRequestError(
            f"{method} {url} returned {response.status_code}: {detail}",
            status_code=response.status_code,
        )


def node_from_message(data: dict[str, Any]) -> GraphNode:
    """Convert a message representation (camelCase columns) to a GraphNode."""
    return GraphNode(
        id=data["id"],
        role=data["role"],
        content=data["content"],
        parent_id=data.get("parentMessageId"),
        x=data.get("positionX") or 0,
        y=data.get("positionY") or 0,
        created_at=data["createdAt"],
        is_root_node=data.get("isRootNode", False),
        root_node_name=data.get("rootNodeName"),
        model=data.get("model"),
        is_error=data.get("isError", False),
    )


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    detail = body.get("detail") if isinstance(body, dict) else body
    return detail if isinstance(detail, str) else str(detail)


def _resource(url: str) -> tuple[str, str | None]:
    """("Conversation" | "Message", id) for an /api/<collection>/<id>/... path."""
    parts = url.strip("/").split("/")
    kind = "Conversation" if parts[1] == "conversations" else "Message"
    resource_id = parts[2] if len(parts) > 2 and parts[2] != "batch" else None
    return kind, resource_id
