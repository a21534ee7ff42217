"""Chat service: append a user turn to the tree and stream the assistant reply.

The user turn continues from the active node (the explicit parent, else the
newest message, else it starts the conversation as a root). The completion
service sees only the ancestor path of that turn, so sibling branches never
leak into each other's context.
"""

import logging
from collections.abc import AsyncIterator

from forkai.chat.schemas import ChatRequest, ChatStreamEvent, ChatTurn
from forkai.db.connection import Database
from forkai.db.repository import Repository
from forkai.errors import NotFoundError, TransientUpstreamError
from forkai.models import graph_node_from_row
from forkai.providers.base import GenerationRequest, GenerationResult, LLMProvider
from forkai.tree.branches import BranchNavigator
from forkai.tree.index import get_ancestors

logger = logging.getLogger(__name__)

TITLE_LENGTH = 100
STREAM_ERROR_MESSAGE = "Stream interrupted. You can retry this message."


class ChatService:
    """Persists chat turns around calls to the completion service."""

    def __init__(self, db: Database, default_provider: str = "anthropic") -> None:
        self._db = db
        self._repo = Repository(db)
        self.default_provider = default_provider

    async def start_turn(self, user_id: str, request: ChatRequest) -> ChatTurn:
        """Persist the user message and assemble the history to send.

        Raises NotFoundError for an unknown or foreign conversation, or a
        parent that is not in the conversation.
        """
        async with self._db.transaction() as tx:
            repo = Repository(tx)
            is_new = request.conversation_id is None
            if is_new:
                conversation = await repo.create_conversation(user_id, self._title_for(request.message))
            else:
                conversation = await repo.get_owned_conversation(user_id, request.conversation_id)
                if conversation is None:
                    raise NotFoundError("Conversation", request.conversation_id)
            conversation_id = conversation["id"]

            rows = await repo.get_messages(conversation_id)
            nodes = [graph_node_from_row(r) for r in rows]
            navigator = BranchNavigator(nodes)

            if request.parent_message_id is not None:
                if not any(n.id == request.parent_message_id for n in nodes):
                    raise NotFoundError("Parent message", request.parent_message_id)
                parent_id: str | None = request.parent_message_id
            else:
                latest = navigator.latest()
                parent_id = latest.id if latest else None

            if navigator.is_legacy and parent_id is not None:
                # The one place the legacy chain is written instead of only
                # inferred at read time. Appending under a pre-tree conversation
                # would otherwise store a parent link into a tree the server
                # still sees as loose roots, so the chain the chat view shows
                # is stored first.
                for node in nodes:
                    inferred = navigator.parent_of(node.id)
                    if inferred is not None:
                        await repo.update_parent(node.id, inferred)
                nodes = [n.model_copy(update={"parent_id": navigator.parent_of(n.id)}) for n in nodes]
                logger.info("Materialized legacy chain for conversation %s", conversation_id)

            user_row = await repo.create_message(
                conversation_id, "user", request.message, parent_message_id=parent_id,
            )
            nodes.append(graph_node_from_row(user_row))

        history = [
            {"role": n.role, "content": n.content}
            for n in get_ancestors(nodes, user_row["id"])
            if n.content
        ]
        return ChatTurn(
            conversation_id=conversation_id,
            is_new_conversation=is_new,
            user_message_id=user_row["id"],
            history=history,
        )

    async def stream_reply(
        self, turn: ChatTurn, provider: LLMProvider, model: str | None = None,
    ) -> AsyncIterator[ChatStreamEvent]:
        """Stream the assistant reply to a started turn and persist it.

        A failure mid-stream keeps whatever text arrived as an assistant
        message flagged is_error, then reports an error event instead of done.
        """
        resolved_model = model or provider.default_model
        if turn.is_new_conversation:
            yield ChatStreamEvent(type="conversation", data={"conversationId": turn.conversation_id})
        yield ChatStreamEvent(type="messageId", data={"userMessageId": turn.user_message_id})

        request = GenerationRequest(model=resolved_model, messages=turn.history)
        content = ""
        result: GenerationResult | None = None
        try:
            async for chunk in provider.generate_stream(request):
                if chunk.is_final and chunk.result is not None:
                    result = chunk.result
                elif chunk.text:
                    content += chunk.text
                    yield ChatStreamEvent(type="content", data={"content": chunk.text})
            if result is None:
                raise TransientUpstreamError("Completion stream ended without a final result")
        except Exception:
            logger.exception("Completion stream failed for conversation %s", turn.conversation_id)
            if content:
                await self._repo.create_message(
                    turn.conversation_id,
                    "assistant",
                    content,
                    parent_message_id=turn.user_message_id,
                    model=resolved_model,
                    is_error=True,
                )
            yield ChatStreamEvent(
                type="error",
                data={"error": STREAM_ERROR_MESSAGE, "partialContent": bool(content)},
            )
            return

        usage = result.usage or {}
        prompt_tokens = usage.get("input_tokens", 0)
        completion_tokens = usage.get("output_tokens", 0)
        assistant_row = await self._repo.create_message(
            turn.conversation_id,
            "assistant",
            result.content or content,
            parent_message_id=turn.user_message_id,
            model=result.model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
        )
        await self._repo.touch_conversation(turn.conversation_id)

        yield ChatStreamEvent(
            type="done",
            data={
                "assistantMessageId": assistant_row["id"],
                "usage": {"promptTokens": prompt_tokens, "completionTokens": completion_tokens},
            },
        )

    @staticmethod
    def _title_for(message: str) -> str:
        title = message[:TITLE_LENGTH]
        return title + "..." if len(message) > TITLE_LENGTH else title
