"""OpenAI chat completion provider with streaming support."""

import logging
from collections.abc import AsyncGenerator, Sequence

from openai import AsyncOpenAI

from ragchat.models.schemas import ChatMessage

logger = logging.getLogger(__name__)


class OpenAICompletionProvider:
    """Streams chat completions as plain text deltas.

    Attributes:
        temperature: Optional sampling temperature forwarded to the API.
        max_tokens: Optional generation cap forwarded to the API.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> None:
        self._client = client
        self.temperature = temperature
        self.max_tokens = max_tokens

    def _options(self) -> dict:
        options: dict = {}
        if self.temperature is not None:
            options["temperature"] = self.temperature
        if self.max_tokens is not None:
            options["max_tokens"] = self.max_tokens
        return options

    async def stream_complete(
        self, messages: Sequence[ChatMessage], model: str
    ) -> AsyncGenerator[str]:
        """Yield content deltas as the model generates them.

        The upstream HTTP stream is closed when the generator finishes, fails
        or is closed early by the consumer.

        Args:
            messages: Full prompt, system message first.
            model: Model identifier.

        Yields:
            Non-empty text deltas in emission order.
        """
        stream = await self._client.chat.completions.create(
            model=model,
            messages=[message.to_provider() for message in messages],
            stream=True,
            **self._options(),
        )
        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        finally:
            await stream.close()
            logger.debug("Closed upstream completion stream")
