"""HTTP client side of the chat protocol.

Posts the conversation to /api/chat and feeds decoded text to a callback
as bytes arrive. Multi-byte UTF-8 characters split across network reads are
held back until complete.
"""

import codecs
import logging
import os
from collections.abc import AsyncIterable, Callable, Sequence

import httpx

from ragchat.models.schemas import ChatMessage, Role

logger = logging.getLogger(__name__)

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")
ERROR_MESSAGE = "I'm sorry, but I encountered an error. Please try again later."
GREETING = "Hi! I'm the stock market assistant. How can I help you today?"


class TransportError(Exception):
    """The chat request failed or its stream ended abnormally."""


async def decode_stream(chunks: AsyncIterable[bytes]) -> AsyncIterable[str]:
    """Decode a UTF-8 byte stream incrementally.

    Yields only complete characters; a trailing partial sequence at the end of
    the stream raises UnicodeDecodeError.
    """
    decoder = codecs.getincrementaldecoder("utf-8")()
    async for chunk in chunks:
        text = decoder.decode(chunk)
        if text:
            yield text
    tail = decoder.decode(b"", final=True)
    if tail:
        yield tail


class ChatClient:
    """Sends conversations to the relay and streams back the reply."""

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport

    async def stream_reply(
        self,
        conversation: Sequence[ChatMessage],
        on_text: Callable[[str], None],
    ) -> str:
        """POST the conversation and call `on_text` with each decoded increment.

        Returns:
            The full reply text.

        Raises:
            TransportError: Non-2xx status, network failure, truncated stream
                or an empty reply.
        """
        payload = [message.model_dump(mode="json") for message in conversation]
        reply = ""
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self._transport
            ) as client:
                async with client.stream("POST", "/api/chat", json=payload) as response:
                    if response.status_code != httpx.codes.OK:
                        await response.aread()
                        raise TransportError(f"HTTP {response.status_code}: {_detail(response)}")
                    async for text in decode_stream(response.aiter_bytes()):
                        reply += text
                        on_text(text)
        except httpx.HTTPError as e:
            logger.error(f"Chat request failed: {e}")
            raise TransportError(f"Connection failed: {e}") from e
        except UnicodeDecodeError as e:
            logger.error(f"Reply ended mid-character: {e}")
            raise TransportError("Reply was truncated") from e

        if not reply:
            raise TransportError("Empty reply")
        return reply


def _detail(response: httpx.Response) -> str:
    try:
        return str(response.json().get("detail", response.text))
    except ValueError:
        return response.text


class ChatSession:
    """Authoritative conversation state for one browser session."""

    def __init__(self) -> None:
        self.messages: list[ChatMessage] = [ChatMessage(role=Role.ASSISTANT, content=GREETING)]
        self.is_streaming: bool = False

    def begin_turn(self, text: str) -> list[ChatMessage]:
        """Append the user message and an empty assistant placeholder.

        Returns:
            The conversation to send, ending with the new user message.
        """
        self.messages.append(ChatMessage(role=Role.USER, content=text))
        outbound = list(self.messages)
        self.messages.append(ChatMessage(role=Role.ASSISTANT, content=""))
        return outbound

    def append_to_reply(self, text: str) -> None:
        placeholder = self.messages[-1]
        self.messages[-1] = placeholder.model_copy(update={"content": placeholder.content + text})

    def fail_turn(self) -> None:
        """Replace an empty placeholder, or follow a partial one, with the apology."""
        if self.messages and self.messages[-1].role is Role.ASSISTANT and not self.messages[-1].content:
            self.messages[-1] = ChatMessage(role=Role.ASSISTANT, content=ERROR_MESSAGE)
        else:
            self.messages.append(ChatMessage(role=Role.ASSISTANT, content=ERROR_MESSAGE))

    def reset(self) -> None:
        self.messages = [ChatMessage(role=Role.ASSISTANT, content=GREETING)]
        self.is_streaming = False
