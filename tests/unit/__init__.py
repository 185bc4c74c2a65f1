"""Unit tests for individual components in isolation.

Ensures fast execution with minimal dependencies.

Coverage:
    - models/: Pydantic validation and serialization
    - parsing/ and ingest/: Text extraction, chunking and upsert ids
    - providers/: OpenAI and Pinecone bindings with mocked SDK clients
    - relay/: Validation, prompt assembly and streaming behavior
    - ui/: Incremental decoding and chat session state

Uses mocks for external services. Leverages pytest-check for multiple
assertions per test.
"""
