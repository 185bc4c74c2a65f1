"""Errors raised while relaying a chat turn."""


class RelayError(Exception):
    """Base class for relay failures."""


class InvalidRequest(RelayError):
    """Conversation is empty or does not end with a user message."""


class RetrievalFailure(RelayError):
    """Embedding or vector query failed; the completion was not attempted."""

    def __init__(self, message: str, *, timed_out: bool = False) -> None:
        super().__init__(message)
        self.timed_out = timed_out


class EmptyContextError(RetrievalFailure):
    """Retrieval succeeded but matched no stored text."""


class CompletionStreamError(RelayError):
    """The completion stream failed, timed out or produced no text."""

    def __init__(self, message: str, *, timed_out: bool = False) -> None:
        super().__init__(message)
        self.timed_out = timed_out
