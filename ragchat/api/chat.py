"""Streaming chat endpoint.

Accepts the full conversation and answers with the assistant reply as a
chunked plain-text body, written as the model produces it.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from ragchat.models.schemas import ChatMessage
from ragchat.relay.errors import CompletionStreamError, InvalidRequest, RetrievalFailure
from ragchat.relay.service import RelayService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])

STREAM_MEDIA_TYPE = "text/plain; charset=utf-8"


def get_relay(request: Request) -> RelayService:
    relay = getattr(request.app.state, "relay", None)
    if relay is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Chat service is not initialized",
        )
    return relay


def _upstream_status(timed_out: bool) -> int:
    return status.HTTP_504_GATEWAY_TIMEOUT if timed_out else status.HTTP_502_BAD_GATEWAY


@router.post("/chat")
async def chat(
    messages: list[ChatMessage],
    request: Request,
    relay: RelayService = Depends(get_relay),
) -> StreamingResponse:
    """Stream the assistant's reply to the latest user message.

    Validation, retrieval and the first completion fragment all happen
    before the response starts, so failures there get a JSON error body.

    Args:
        messages: Conversation in chronological order, newest last.

    Returns:
        Chunked text/plain response with the UTF-8 reply.

    Raises:
        400: Conversation empty or not ending with a user message.
        422: Malformed payload or unknown role.
        502: Retrieval or completion failed before streaming started.
        504: Retrieval or completion timed out before streaming started.
    """
    try:
        stream = await relay.open(messages)
    except InvalidRequest as e:
        logger.warning(f"Rejected chat request: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except RetrievalFailure as e:
        raise HTTPException(status_code=_upstream_status(e.timed_out), detail=str(e)) from e
    except CompletionStreamError as e:
        raise HTTPException(status_code=_upstream_status(e.timed_out), detail=str(e)) from e

    return StreamingResponse(
        stream.iter_bytes(is_disconnected=request.is_disconnected),
        media_type=STREAM_MEDIA_TYPE,
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        background=BackgroundTask(stream.aclose),
    )
