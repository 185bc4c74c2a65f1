"""Application configuration with environment variable loading.

Pydantic-based settings shared by the relay server, the ingestion CLI and
the chat UI. Values come from the process environment, with a .env file
loaded first.
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

# Load environment variables from .env file
load_dotenv()

DEFAULT_SYSTEM_PROMPT = (
    "You are an expert stock market assistant. Answer any questions about the "
    "stock market provided. You always answer questions based only on the "
    "context that you have been provided."
)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str) -> float | None:
    value = os.getenv(name)
    return float(value) if value else None


def _env_int(name: str) -> int | None:
    value = os.getenv(name)
    return int(value) if value else None


class Settings(BaseModel):
    """Runtime configuration for ragchat.

    Attributes:
        openai_api_key: API key for embeddings and completions.
        openai_base_url: Optional base URL for OpenAI-compatible APIs.
        pinecone_api_key: API key for the vector index.
        index_name: Name of the Pinecone index holding the corpus.
        model_name: Chat completion model identifier.
        embedding_model: Embedding model identifier.
        temperature: Optional sampling temperature passed to the model.
        max_tokens: Optional cap on generated tokens.
        chunk_size: Maximum chunk length, measured by the tokenizer.
        chunk_overlap: Overlap between consecutive chunks.
        tokenizer_encoding: tiktoken encoding used to measure chunk length.
        retrieval_enabled: Augment prompts with retrieved context.
        retrieval_top_k: Number of matches fetched per question.
        allow_empty_context: Proceed when retrieval returns no matches.
        system_prompt: Fixed system message defining assistant behavior.
        retrieval_timeout: Seconds allowed for embedding + index query.
        completion_timeout: Seconds allowed for the whole completion stream.
        request_timeout: Per-request timeout handed to the OpenAI client.
        ingest_on_startup: Optional PDF path ingested once at startup.
    """

    openai_api_key: str = Field(
        default_factory=lambda: os.getenv("LLM_API_KEY", os.getenv("OPENAI_API_KEY", "")),
        description="API key for the embedding and completion provider",
    )
    openai_base_url: str | None = Field(
        default_factory=lambda: os.getenv("OPENAI_BASE_URL") or None,
        description="API base URL (None for OpenAI default)",
    )
    pinecone_api_key: str = Field(
        default_factory=lambda: os.getenv("PINECONE_API_KEY", ""),
        description="API key for the Pinecone vector index",
    )
    index_name: str = Field(
        default_factory=lambda: os.getenv("PINECONE_INDEX", "openaichatbot"),
        min_length=1,
    )
    model_name: str = Field(
        default_factory=lambda: os.getenv("LLM_MODEL", "gpt-4o"),
        min_length=1,
    )
    embedding_model: str = Field(
        default_factory=lambda: os.getenv("EMBEDDING_MODEL", "text-embedding-ada-002"),
        min_length=1,
    )
    temperature: float | None = Field(
        default_factory=lambda: _env_float("LLM_TEMPERATURE"),
        ge=0.0,
        le=2.0,
    )
    max_tokens: int | None = Field(
        default_factory=lambda: _env_int("LLM_MAX_TOKENS"),
        ge=1,
        le=128000,
    )
    chunk_size: int = Field(
        default_factory=lambda: int(os.getenv("CHUNK_SIZE", "2000")),
        ge=1,
    )
    chunk_overlap: int = Field(
        default_factory=lambda: int(os.getenv("CHUNK_OVERLAP", "100")),
        ge=0,
    )
    tokenizer_encoding: str = Field(
        default_factory=lambda: os.getenv("TOKENIZER_ENCODING", "p50k_base"),
    )
    retrieval_enabled: bool = Field(
        default_factory=lambda: _env_bool("RETRIEVAL_ENABLED", "true"),
    )
    retrieval_top_k: int = Field(
        default_factory=lambda: int(os.getenv("RETRIEVAL_TOP_K", "5")),
        ge=1,
        le=100,
    )
    allow_empty_context: bool = Field(
        default_factory=lambda: _env_bool("ALLOW_EMPTY_CONTEXT", "false"),
    )
    system_prompt: str = Field(
        default_factory=lambda: os.getenv("SYSTEM_PROMPT", DEFAULT_SYSTEM_PROMPT),
        min_length=1,
    )
    retrieval_timeout: float = Field(
        default_factory=lambda: float(os.getenv("RETRIEVAL_TIMEOUT_S", "15")),
        gt=0,
    )
    completion_timeout: float = Field(
        default_factory=lambda: float(os.getenv("COMPLETION_TIMEOUT_S", "120")),
        gt=0,
    )
    request_timeout: float = Field(
        default_factory=lambda: float(os.getenv("REQUEST_TIMEOUT_S", "60")),
        gt=0,
    )
    ingest_on_startup: str | None = Field(
        default_factory=lambda: os.getenv("INGEST_ON_STARTUP") or None,
    )

    @field_validator("openai_api_key")
    @classmethod
    def validate_openai_api_key(cls, v: str) -> str:
        """Validate that the OpenAI API key is provided and non-empty."""
        if not v or not v.strip():
            raise ValueError("OPENAI_API_KEY is required. Set LLM_API_KEY or OPENAI_API_KEY in .env")
        return v.strip()

    @field_validator("pinecone_api_key")
    @classmethod
    def validate_pinecone_api_key(cls, v: str) -> str:
        """Strip the Pinecone key; emptiness is checked where the index is used."""
        return v.strip()

    @model_validator(mode="after")
    def validate_chunking(self) -> "Settings":
        """Chunk overlap must be smaller than the chunk itself."""
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than "
                f"chunk_size ({self.chunk_size})"
            )
        return self

    def require_pinecone(self) -> str:
        """Return the Pinecone key, raising if retrieval needs one and it is unset."""
        if not self.pinecone_api_key:
            raise ValueError("PINECONE_API_KEY is required for retrieval and ingestion")
        return self.pinecone_api_key


def get_settings() -> Settings:
    """Create settings from environment.

    Returns:
        Configured Settings instance.

    Raises:
        ValueError: If no OpenAI API key is set or values are out of range.
    """
    return Settings()
