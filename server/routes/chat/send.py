"""
Send chat turn endpoint with streaming.
"""

import logging
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from config import get_config
from core import (
    ChatProducer,
    ContextLengthExceededError,
    InvalidRequestError,
    NotFoundError,
    prepare_turn,
    resolve_model,
)
from core.protocol import ErrorRecord, sse_data, sse_done

from ...dependencies import require_user
from ...logging_config import log_timing
from ...requests import ChatRequest
from ...state import get_access_control, get_backend, get_catalog, get_store, get_turn_registry

logger = logging.getLogger(__name__)

CHAT_ID_HEADER = "X-Chat-Id"
STREAM_ERROR_TEXT = "An error occurred while generating the response"


router = APIRouter()


@router.post("/api/v1/chat", response_model=None)
async def send_chat_route(
    request: ChatRequest, user_id: str = Depends(require_user)
) -> EventSourceResponse | JSONResponse:
    """Run one chat turn and stream the response via SSE.

    Failures before the first record is produced are returned as plain HTTP
    errors; once streaming has begun they are sent as an ``error`` record
    followed by the end-of-stream marker.
    """
    backend = get_backend()
    if backend is None:
        raise HTTPException(status_code=503, detail="Model backend not configured")

    store = get_store()
    try:
        with log_timing(logger, "Loading chat history"):
            turn = await prepare_turn(
                store,
                user_id,
                chat_id=request.chatId,
                message=request.message,
                messages=request.messages,
            )
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Chat not found")

    config = get_config()
    resolved = resolve_model(
        request.modelId,
        turn.messages,
        config.default_model,
        user_id=user_id,
        catalog=get_catalog(),
        access=get_access_control(),
        provider=config.provider,
    )
    logger.info(
        "Processing turn for chat %s with model=%s (%d messages)",
        turn.chat_id,
        resolved.descriptor.id,
        len(turn.messages),
    )

    registry = get_turn_registry()
    token = registry.begin(turn.chat_id)
    producer = ChatProducer(
        store,
        backend,
        min_tail_messages=config.chat.retry_min_tail_messages,
        max_chars_per_message=config.chat.max_chars_per_message,
    )
    records = producer.stream_turn(turn, resolved, token)

    # Wait for the first record so pre-stream failures map to a status code
    try:
        first = await anext(records)
    except StopAsyncIteration:
        first = None
    except ContextLengthExceededError as e:
        registry.end(turn.chat_id, token)
        return JSONResponse(
            status_code=413,
            content={"type": "error", "code": e.code, "message": str(e)},
        )
    except Exception:
        registry.end(turn.chat_id, token)
        logger.exception("Turn failed before streaming for chat %s", turn.chat_id)
        raise HTTPException(status_code=500, detail="Internal server error")

    async def stream_response() -> AsyncGenerator[dict, None]:
        try:
            if first is not None:
                yield sse_data(first)
                async for record in records:
                    yield sse_data(record)
        except Exception as e:
            # Can't change the status once streaming began, emit an error record
            logger.exception("Error during streaming for chat %s", turn.chat_id)
            yield sse_data(ErrorRecord(errorText=str(e) or STREAM_ERROR_TEXT))
        finally:
            await records.aclose()
            registry.end(turn.chat_id, token)
        yield sse_done()

    return EventSourceResponse(stream_response(), headers={CHAT_ID_HEADER: turn.chat_id})
