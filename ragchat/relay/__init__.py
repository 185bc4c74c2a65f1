"""Streaming relay: the request path of a chat turn.

Responsibilities:
    - Conversation validation before any upstream call
    - Optional retrieval of context from the vector index
    - Prompt construction with the fixed system message
    - Ordered, incremental relay of completion fragments as UTF-8 bytes
    - Early stop and upstream cleanup when the client disconnects
"""

from ragchat.relay.errors import (
    CompletionStreamError,
    EmptyContextError,
    InvalidRequest,
    RelayError,
    RetrievalFailure,
)
from ragchat.relay.retrieval import Retriever
from ragchat.relay.service import (
    RelayService,
    RelayState,
    RelayStream,
    relay_fragments,
    validate_conversation,
)

__all__ = [
    "CompletionStreamError",
    "EmptyContextError",
    "InvalidRequest",
    "RelayError",
    "RelayService",
    "RelayState",
    "RelayStream",
    "Retriever",
    "RetrievalFailure",
    "relay_fragments",
    "validate_conversation",
]
