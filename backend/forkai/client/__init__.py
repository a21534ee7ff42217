"""Client side of the graph: HTTP wrapper and optimistic cache."""

from forkai.client.api import GraphAPI, RemoteRequestError
from forkai.client.store import GraphStore, MutationState, PendingMutation

__all__ = ["GraphAPI", "GraphStore", "MutationState", "PendingMutation", "RemoteRequestError"]
