"""Streaming relay between the chat endpoint and the completion provider.

A chat turn moves through a fixed set of states:

    IDLE -> VALIDATED -> (RETRIEVING ->) PROMPTED -> STREAMING -> CLOSED | ERRORED

Everything up to and including the first non-empty fragment happens in
`RelayService.open`, before the HTTP response is committed. A failure there
becomes an ordinary error response. Once `RelayStream.iter_bytes` is
yielding, the only failure signal left is ending the body abruptly.
"""

import asyncio
import logging
import uuid
from collections.abc import AsyncGenerator, AsyncIterator, Awaitable, Callable, Sequence
from contextlib import aclosing
from enum import Enum

from ragchat.models.schemas import ChatMessage, Role
from ragchat.providers.base import CompletionProvider
from ragchat.relay.errors import CompletionStreamError, InvalidRequest
from ragchat.relay.prompt import build_augmented_prompt, build_baseline_prompt, join_context
from ragchat.relay.retrieval import Retriever

logger = logging.getLogger(__name__)

DisconnectProbe = Callable[[], Awaitable[bool]]


class RelayState(str, Enum):
    """Lifecycle of a single relayed chat turn."""

    IDLE = "idle"
    VALIDATED = "validated"
    RETRIEVING = "retrieving"
    PROMPTED = "prompted"
    STREAMING = "streaming"
    CLOSED = "closed"
    ERRORED = "errored"


def validate_conversation(conversation: Sequence[ChatMessage]) -> ChatMessage:
    """Check the turn is answerable and return the newest user message.

    Raises:
        InvalidRequest: Empty history, a client-supplied system message, or
            a last message that is not a non-blank user message.
    """
    if not conversation:
        raise InvalidRequest("Conversation must contain at least one message")
    if any(message.role is Role.SYSTEM for message in conversation):
        raise InvalidRequest("System messages are set by the server")
    last = conversation[-1]
    if last.role is not Role.USER:
        raise InvalidRequest("The last message must come from the user")
    if not last.content.strip():
        raise InvalidRequest("The last user message is empty")
    return last


async def relay_fragments(fragments: AsyncIterator[str]) -> AsyncGenerator[bytes]:
    """Encode fragments as UTF-8 in arrival order, dropping empty ones.

    Closing the returned generator closes `fragments` as well.
    """
    try:
        async for fragment in fragments:
            if fragment:
                yield fragment.encode("utf-8")
    finally:
        await _close(fragments)


async def _close(iterator: AsyncIterator) -> None:
    aclose = getattr(iterator, "aclose", None)
    if aclose is not None:
        await aclose()


class RelayStream:
    """Outbound half of one chat turn, primed with its first fragment.

    Attributes:
        request_id: Short id used to correlate log lines.
        state: Current RelayState.
        fragment_count: Fragments relayed so far.
        byte_count: Bytes relayed so far.
        disconnected: True if the client went away before the end.
    """

    def __init__(
        self,
        request_id: str,
        fragments: AsyncIterator[str],
        first: str,
        deadline: float,
    ) -> None:
        self.request_id = request_id
        self.state = RelayState.STREAMING
        self.fragment_count = 0
        self.byte_count = 0
        self.disconnected = False
        self._fragments = fragments
        self._first = first
        self._deadline = deadline

    async def _source(self, is_disconnected: DisconnectProbe | None) -> AsyncGenerator[str]:
        try:
            yield self._first
            while True:
                if is_disconnected is not None and await is_disconnected():
                    self.disconnected = True
                    return
                try:
                    async with asyncio.timeout_at(self._deadline):
                        fragment = await anext(self._fragments)
                except StopAsyncIteration:
                    return
                yield fragment
        finally:
            await _close(self._fragments)

    async def aclose(self) -> None:
        """Release the provider stream, even if the body was never iterated.

        Safe to call more than once and after `iter_bytes` has finished.
        """
        await _close(self._fragments)
        if self.state is RelayState.STREAMING:
            self.state = RelayState.CLOSED
            logger.info(f"[{self.request_id}] Stream released before completion")

    async def iter_bytes(self, is_disconnected: DisconnectProbe | None = None) -> AsyncGenerator[bytes]:
        """Yield the encoded reply until the provider finishes.

        Args:
            is_disconnected: Optional probe checked between fragments; when it
                reports True the relay stops pulling from the provider.

        Raises:
            CompletionStreamError: The provider failed or the completion
                deadline passed mid-stream.
        """
        try:
            async with aclosing(relay_fragments(self._source(is_disconnected))) as chunks:
                async for data in chunks:
                    self.fragment_count += 1
                    self.byte_count += len(data)
                    yield data
        except TimeoutError as e:
            self.state = RelayState.ERRORED
            logger.error(f"[{self.request_id}] Completion deadline passed mid-stream")
            raise CompletionStreamError("Completion timed out", timed_out=True) from e
        except Exception as e:
            self.state = RelayState.ERRORED
            logger.error(f"[{self.request_id}] Completion stream failed mid-stream: {e}")
            raise CompletionStreamError(f"Completion stream failed: {e}") from e
        finally:
            await _close(self._fragments)
            if self.state is RelayState.STREAMING:
                self.state = RelayState.CLOSED
                if self.disconnected:
                    logger.info(
                        f"[{self.request_id}] Client disconnected after "
                        f"{self.fragment_count} fragments"
                    )
                else:
                    logger.info(
                        f"[{self.request_id}] Stream closed: {self.fragment_count} "
                        f"fragments, {self.byte_count} bytes"
                    )


class RelayService:
    """Turns a conversation into a live byte stream of the assistant reply.

    Holds no per-request state; the provider handles it is given are shared
    across concurrent requests.
    """

    def __init__(
        self,
        completion: CompletionProvider,
        model: str,
        system_prompt: str,
        retriever: Retriever | None = None,
        completion_timeout: float = 120.0,
    ) -> None:
        self._completion = completion
        self.retriever = retriever
        self.model = model
        self.system_prompt = system_prompt
        self.completion_timeout = completion_timeout

    @property
    def augmented(self) -> bool:
        return self.retriever is not None

    async def build_prompt(
        self, conversation: Sequence[ChatMessage], question: ChatMessage
    ) -> list[ChatMessage]:
        """Assemble the outbound prompt for an already validated turn.

        Args:
            conversation: Full history, newest last.
            question: The newest user message, as returned by
                `validate_conversation`.

        Raises:
            RetrievalFailure: Context retrieval failed (augmented mode only).
        """
        if self.retriever is None:
            return build_baseline_prompt(self.system_prompt, conversation)
        matches = await self.retriever.retrieve(question.content)
        return build_augmented_prompt(self.system_prompt, join_context(matches), question.content)

    async def open(self, conversation: Sequence[ChatMessage]) -> RelayStream:
        """Run everything that must succeed before the response is committed.

        Returns:
            A RelayStream already holding the first non-empty fragment.

        Raises:
            InvalidRequest: The conversation cannot be answered.
            RetrievalFailure: Context retrieval failed (augmented mode only).
            CompletionStreamError: The provider failed, timed out or produced
                no text before the first fragment.
        """
        request_id = uuid.uuid4().hex[:8]
        state = RelayState.IDLE
        logger.info(
            f"[{request_id}] Chat turn with {len(conversation)} messages "
            f"({'augmented' if self.augmented else 'baseline'})"
        )

        question = validate_conversation(conversation)
        state = _advance(request_id, state, RelayState.VALIDATED)
        if self.augmented:
            state = _advance(request_id, state, RelayState.RETRIEVING)
        prompt = await self.build_prompt(conversation, question)
        state = _advance(request_id, state, RelayState.PROMPTED)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.completion_timeout
        fragments = aiter(self._completion.stream_complete(prompt, self.model))
        first = await self._first_fragment(request_id, fragments, deadline)
        _advance(request_id, state, RelayState.STREAMING)
        return RelayStream(request_id, fragments, first, deadline)

    async def handle(
        self,
        conversation: Sequence[ChatMessage],
        is_disconnected: DisconnectProbe | None = None,
    ) -> AsyncGenerator[bytes]:
        """Open the turn and return its byte stream."""
        stream = await self.open(conversation)
        return stream.iter_bytes(is_disconnected)

    async def _first_fragment(
        self, request_id: str, fragments: AsyncIterator[str], deadline: float
    ) -> str:
        try:
            async with asyncio.timeout_at(deadline):
                async for fragment in fragments:
                    if fragment:
                        return fragment
        except TimeoutError as e:
            await _close(fragments)
            logger.error(f"[{request_id}] Completion timed out before the first fragment")
            raise CompletionStreamError("Completion timed out", timed_out=True) from e
        except Exception as e:
            await _close(fragments)
            logger.error(f"[{request_id}] Completion failed before the first fragment: {e}")
            raise CompletionStreamError(f"Completion failed: {e}") from e

        await _close(fragments)
        logger.error(f"[{request_id}] Completion ended without any text")
        raise CompletionStreamError("Completion returned no text")


def _advance(request_id: str, current: RelayState, new: RelayState) -> RelayState:
    logger.debug(f"[{request_id}] {current.value} -> {new.value}")
    return new
