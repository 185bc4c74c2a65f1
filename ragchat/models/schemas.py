from enum import Enum

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Speaker of a conversation message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """A single message in the conversation.

    Attributes:
        role: The speaker, one of system, user or assistant.
        content: The message text.
    """

    role: Role
    content: str

    def to_provider(self) -> dict[str, str]:
        """Shape the message the way chat completion APIs expect it."""
        return {"role": self.role.value, "content": self.content}


class Chunk(BaseModel):
    """A bounded slice of a source document, used as embedding input.

    Attributes:
        text: The chunk text as extracted from the document.
        source: Document identifier the chunk came from.
        page: 1-based page number within the source.
        index: Position of the chunk within the whole document.
    """

    text: str
    source: str
    page: int = Field(ge=1)
    index: int = Field(ge=0)


class VectorRecord(BaseModel):
    """A stored embedding with the metadata returned at query time."""

    id: str = Field(..., min_length=1)
    values: list[float]
    metadata: dict[str, str | int | float]

    def to_index(self) -> dict:
        return {"id": self.id, "values": self.values, "metadata": self.metadata}


class VectorMatch(BaseModel):
    """One nearest-neighbor hit, in similarity rank order."""

    id: str
    score: float
    metadata: dict = Field(default_factory=dict)

    @property
    def text(self) -> str:
        return str(self.metadata.get("text", ""))


class IngestionResult(BaseModel):
    """Outcome of ingesting a single document.

    Attributes:
        source: Document identifier used in record ids.
        pages: Number of pages read from the PDF.
        chunks: Number of chunks produced by the splitter.
        upserted: Number of vector records written to the index.
        record_ids: Ids of the written records, in chunk order.
    """

    source: str
    pages: int = Field(ge=0)
    chunks: int = Field(ge=0)
    upserted: int = Field(ge=0)
    record_ids: list[str] = Field(default_factory=list)
