"""Chat message endpoint: streams the answer as Server-Sent Events."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from datachat.api.dependencies import get_query_pipeline, get_settings
from datachat.config.constants import EMPTY_INPUT_MESSAGE, GENERIC_APOLOGY
from datachat.config.settings import Settings
from datachat.models.schemas import AnswerRequest, ErrorEvent, StreamEvent, to_sse
from datachat.observability.logger import get_logger
from datachat.pipeline.query_pipeline import QueryPipeline
from datachat.streaming.session import CancellationToken

logger = get_logger("routes_query")

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def _watch_disconnect(request: Request, token: CancellationToken, interval: float = 0.5) -> None:
    while not token.cancelled:
        if await request.is_disconnected():
            token.cancel("client_disconnected")
            return
        await asyncio.sleep(interval)


@router.post("/chat/{chat_id}/message")
async def post_message(
    chat_id: str,
    body: AnswerRequest,
    request: Request,
    pipeline: QueryPipeline = Depends(get_query_pipeline),
    settings: Settings = Depends(get_settings),
):
    if not body.text.strip() and body.image is None:

        async def empty_input() -> AsyncIterator[str]:
            yield to_sse(ErrorEvent(message=EMPTY_INPUT_MESSAGE))

        return StreamingResponse(empty_input(), media_type="text/event-stream", headers=SSE_HEADERS)

    query = body.to_query(chat_id, history_turns=settings.history_turns)
    try:
        prepared = await pipeline.prepare(query)
    except Exception as e:
        logger.error("prepare_failed", chat_id=chat_id, error=str(e))
        raise HTTPException(status_code=500, detail=GENERIC_APOLOGY)

    token = CancellationToken()

    async def event_generator() -> AsyncIterator[str]:
        watcher = asyncio.create_task(_watch_disconnect(request, token))
        events: AsyncIterator[StreamEvent] = pipeline.answer(prepared, cancel_token=token)
        try:
            async for event in events:
                yield to_sse(event)
        finally:
            watcher.cancel()
            await events.aclose()

    return StreamingResponse(event_generator(), media_type="text/event-stream", headers=SSE_HEADERS)
