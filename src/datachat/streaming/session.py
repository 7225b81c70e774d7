"""Per-request answer stream: bounded producer/consumer with cancellation."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from enum import Enum

from datachat.config.constants import CANCEL_MARKER, GENERIC_APOLOGY
from datachat.exceptions import StreamCancelled
from datachat.models.domain import StreamFragment, TokenUsage
from datachat.models.schemas import ChunkEvent, CompleteEvent, ErrorEvent, StartEvent, StreamEvent
from datachat.observability.logger import get_logger
from datachat.protocols.message_store import MessageStore
from datachat.streaming.tokens import account_tokens

logger = get_logger("stream_session")


class StreamState(str, Enum):
    IDLE = "idle"
    STARTED = "started"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ERRORED = "errored"
    CANCELLED = "cancelled"


TERMINAL_STATES = {StreamState.COMPLETED, StreamState.ERRORED, StreamState.CANCELLED}


class CancellationToken:
    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise StreamCancelled(self.reason or "cancelled")


class _Done:
    pass


class _Failure:
    def __init__(self, error: BaseException) -> None:
        self.error = error


_DONE = _Done()
_CANCELLED = object()


class StreamSession:
    """Drives one answer from IDLE to a terminal state and persists it once.

    Fragments are pulled from the upstream iterator by a producer task into
    a bounded queue. The consumer checks the cancellation token before every
    chunk and while waiting for the next one. Whatever the exit path
    (completion, upstream error, explicit cancel, consumer close, task
    cancellation), the aggregated content is written to the message store
    exactly once.
    """

    def __init__(
        self,
        message_store: MessageStore,
        message_id: str,
        cancel_token: CancellationToken | None = None,
        queue_size: int = 64,
        chunk_timeout: float = 60.0,
    ) -> None:
        self._store = message_store
        self._message_id = message_id
        self._token = cancel_token or CancellationToken()
        self._queue_size = queue_size
        self._chunk_timeout = chunk_timeout
        self._state = StreamState.IDLE
        self._chunks: list[str] = []
        self._prompt = ""
        self._upstream_usage: TokenUsage | None = None
        self._usage: TokenUsage | None = None
        self._persisted = False

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def content(self) -> str:
        return "".join(self._chunks)

    @property
    def usage(self) -> TokenUsage | None:
        return self._usage

    @property
    def cancel_token(self) -> CancellationToken:
        return self._token

    def start(self) -> StartEvent:
        if self._state is not StreamState.IDLE:
            raise RuntimeError(f"Cannot start a stream in state {self._state.value}")
        self._state = StreamState.STARTED
        return StartEvent()

    def cancel(self, reason: str = "cancelled") -> None:
        self._token.cancel(reason)

    async def stream(
        self,
        fragments: AsyncIterator[StreamFragment],
        prompt: str = "",
        cached: bool = False,
    ) -> AsyncIterator[StreamEvent]:
        if self._state is StreamState.IDLE:
            self.start()
        if self._state is not StreamState.STARTED:
            raise RuntimeError(f"Cannot stream in state {self._state.value}")

        self._prompt = prompt
        self._state = StreamState.STREAMING
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        producer = asyncio.create_task(self._produce(fragments, queue))

        try:
            while True:
                if self._token.cancelled:
                    self._state = StreamState.CANCELLED
                    return

                item = await self._next(queue)
                if item is _CANCELLED:
                    self._state = StreamState.CANCELLED
                    return
                if item is _DONE:
                    break
                if isinstance(item, _Failure):
                    logger.warning(
                        "stream_upstream_failed",
                        message_id=self._message_id,
                        error=str(item.error),
                        error_type=type(item.error).__name__,
                    )
                    self._state = StreamState.ERRORED
                    yield ErrorEvent(message=GENERIC_APOLOGY)
                    return
                if item is None:
                    logger.warning("stream_chunk_timeout", timeout_s=self._chunk_timeout)
                    self._state = StreamState.ERRORED
                    yield ErrorEvent(message=GENERIC_APOLOGY)
                    return

                if item.usage is not None:
                    self._upstream_usage = item.usage
                if item.text:
                    self._chunks.append(item.text)
                    yield ChunkEvent(content=item.text)

            self._state = StreamState.COMPLETED
            self._usage = account_tokens(self._prompt, self.content, self._upstream_usage)
            yield CompleteEvent(cached=cached, token_usage=self._usage.to_dict())
        finally:
            if not producer.done():
                producer.cancel()
                await asyncio.gather(producer, return_exceptions=True)
            await self._settle()

    async def close(self) -> None:
        """Settle a session that never reached a terminal state (counts as cancelled)."""
        await self._settle()

    async def fail(self, message: str = GENERIC_APOLOGY) -> ErrorEvent:
        """Terminate the session with an error outside the fragment stream."""
        if self._state not in TERMINAL_STATES:
            self._state = StreamState.ERRORED
        await self._settle()
        return ErrorEvent(message=message)

    async def _produce(self, fragments: AsyncIterator[StreamFragment], queue: asyncio.Queue) -> None:
        try:
            async for fragment in fragments:
                await queue.put(fragment)
            await queue.put(_DONE)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await queue.put(_Failure(e))
        finally:
            aclose = getattr(fragments, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _next(self, queue: asyncio.Queue):
        """Next queue item, ``_CANCELLED`` if the token fires first, or None on timeout."""
        get_task = asyncio.ensure_future(queue.get())
        cancel_task = asyncio.ensure_future(self._token.wait())
        try:
            done, _ = await asyncio.wait(
                {get_task, cancel_task},
                timeout=self._chunk_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in (get_task, cancel_task):
                if not task.done():
                    task.cancel()
        if cancel_task in done:
            return _CANCELLED
        if get_task in done:
            return get_task.result()
        return None

    async def _settle(self) -> None:
        if self._persisted:
            return
        self._persisted = True

        if self._state is StreamState.COMPLETED:
            content, is_error = self.content, False
        elif self._state is StreamState.ERRORED:
            content, is_error = self.content or GENERIC_APOLOGY, True
        else:
            # Consumer went away or the token fired mid-stream.
            self._state = StreamState.CANCELLED
            content, is_error = self.content + CANCEL_MARKER, True

        if self._usage is None:
            self._usage = account_tokens(self._prompt, self.content, self._upstream_usage)

        try:
            await self._store.update_message(
                self._message_id,
                content,
                is_streaming=False,
                is_error=is_error,
                token_usage=self._usage.to_dict(),
            )
        except Exception as e:
            logger.error("stream_persist_failed", message_id=self._message_id, error=str(e))
            return

        logger.info(
            "stream_settled",
            message_id=self._message_id,
            state=self._state.value,
            chars=len(content),
            total_tokens=self._usage.total_tokens,
            estimated=self._usage.is_estimated,
            cancel_reason=self._token.reason,
        )
