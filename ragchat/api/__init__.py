"""FastAPI endpoints for ragchat.

HTTP routes with async request handling and chunked plain-text streaming.

Endpoints:
    - GET /health: Service health status
    - POST /api/chat: Stream the assistant reply for a conversation
"""

from ragchat.api.app import app, create_app

__all__ = ["app", "create_app"]
