"""ragchat - retrieval-augmented chat assistant with a streaming relay.

Combines FastAPI for HTTP streaming, the OpenAI SDK for embeddings and
completions, Pinecone for vector search, NiceGUI for the chat interface,
and Pydantic for data validation.

Components:
    - api: HTTP endpoints and the streaming chat route
    - relay: request validation, retrieval, prompt building and byte relay
    - providers: embedding, vector index and completion client bindings
    - ingest: PDF chunking, embedding and index population
    - parsing: PDF text extraction
    - ui: Web interface and streaming chat client
    - models: Request/response schemas
"""

__version__ = "0.1.0"
