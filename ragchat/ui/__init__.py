"""NiceGUI interface - thin visualization layer for chat interactions.

Responsibilities:
    - Conversation state with optimistic user messages
    - Incremental rendering of the streamed assistant reply
    - A fixed apology message when the request or stream fails

Contains no retrieval or prompt logic. Delegates all operations to the API.
"""
