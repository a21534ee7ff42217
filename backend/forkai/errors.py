"""Error taxonomy shared by the server services and the graph client.

"Not found" covers both missing resources and resources owned by someone
else, so callers cannot probe for existence.
"""

CYCLE_ERROR_DETAIL = "Cannot create cycle in message tree"


class ForkAIError(Exception):
    pass


class NotFoundError(ForkAIError):
    def __init__(self, kind: str, resource_id: str | None = None) -> None:
        self.kind = kind
        self.resource_id = resource_id
        message = f"{kind} not found" if resource_id is None else f"{kind} not found: {resource_id}"
        super().__init__(message)


class InvalidInputError(ForkAIError):
    pass


class CycleRejectedError(ForkAIError):
    def __init__(self, node_id: str, parent_id: str) -> None:
        self.node_id = node_id
        self.parent_id = parent_id
        super().__init__(CYCLE_ERROR_DETAIL)


class TransientUpstreamError(ForkAIError):
    """The completion service failed mid-stream."""
