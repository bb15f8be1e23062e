"""
Streaming Session Manager.

Runs long-lived, cancellable generation sessions that deliver incremental
output chunks instead of a single response.
"""
import asyncio
import inspect
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from monitoring import CostMonitor

from .errors import ErrorKind, GatewayError, classify_error
from .models import (
    GenerationConfig,
    Message,
    StreamCompletion,
    StreamEvent,
    StreamEventType,
    StreamFailure,
    TextDelta,
    TokenUsage,
)
from .orchestrator import validate_messages
from .provider_adapter import ProviderAdapter
from .rate_limiter import RateLimiter
from .token_counter import TokenCounter

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[StreamEvent], Union[None, Awaitable[None]]]


@dataclass
class StreamingSession:
    """
    One live generation session.

    Lifecycle: created -> emitting -> completed | errored | cancelled.
    """

    session_id: str
    provider: str
    model: str
    created_at: float
    context: Dict[str, Any] = field(default_factory=dict)
    cancelled: bool = False
    buffer: List[str] = field(default_factory=list)
    task: Optional["asyncio.Task[None]"] = None

    @property
    def text(self) -> str:
        return "".join(self.buffer)


class StreamingSessionManager:
    """
    Registry and pump loop for streaming sessions.

    Features:
    - Sessions consume the same rate-limit budget as ordinary requests
    - Cancellation flag checked before every chunk
    - Usage recorded once a session completes or errors
    - Periodic sweep of sessions past the staleness window

    Streaming output is never cached.
    """

    def __init__(
        self,
        adapters: Mapping[str, ProviderAdapter],
        rate_limiter: RateLimiter,
        monitor: CostMonitor,
        token_counter: Optional[TokenCounter] = None,
        stale_after_seconds: float = 300.0,
        sweep_interval_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            adapters: Dict {provider: ProviderAdapter}
            rate_limiter: Shared RateLimiter
            monitor: Shared CostMonitor
            token_counter: Estimates usage when the provider reports none
            stale_after_seconds: Age after which unfinished sessions are swept
            sweep_interval_seconds: Period of the background sweep
            clock: Monotonic clock, injectable for tests
        """
        self.adapters = dict(adapters)
        self.rate_limiter = rate_limiter
        self.monitor = monitor
        self.token_counter = token_counter or TokenCounter()
        self.stale_after_seconds = stale_after_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock

        self._sessions: Dict[str, StreamingSession] = {}
        self._sweeper_task: Optional[asyncio.Task] = None

    async def open(
        self,
        messages: List[Message],
        config: GenerationConfig,
        on_chunk: ChunkCallback,
        context: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Start a streaming session.

        Args:
            messages: Conversation messages
            config: Generation config
            on_chunk: Receives every StreamEvent (sync or async callable)
            context: Optional agent/session data, used only for log correlation

        Returns:
            Session id

        Raises:
            GatewayError: RATE_LIMIT when the provider budget is exhausted,
                INVALID_REQUEST for bad input or a provider without streaming
        """
        session = self._open(messages, config, on_chunk, context)
        return session.session_id

    def _open(
        self,
        messages: List[Message],
        config: GenerationConfig,
        on_chunk: ChunkCallback,
        context: Optional[Dict[str, Any]],
    ) -> StreamingSession:
        validate_messages(messages, config.provider)

        adapter = self.adapters.get(config.provider)
        if adapter is None or not adapter.supports_streaming:
            raise GatewayError(
                ErrorKind.INVALID_REQUEST,
                f"Streaming not supported for provider: {config.provider}",
                config.provider,
            )

        session = StreamingSession(
            session_id=f"stream_{uuid.uuid4().hex}",
            provider=config.provider,
            model=config.model,
            created_at=self._clock(),
            context=dict(context or {}),
        )
        self._sessions[session.session_id] = session

        decision = self.rate_limiter.admit(config.provider)
        if not decision.allowed:
            self._sessions.pop(session.session_id, None)
            raise GatewayError(
                ErrorKind.RATE_LIMIT,
                f"Rate limit exceeded for {config.provider}. "
                f"Please try again in {decision.retry_after_seconds} seconds.",
                config.provider,
                retry_after=decision.retry_after_seconds,
            )

        session.task = asyncio.create_task(self._pump(session, adapter, messages, config, on_chunk))
        logger.info(
            f"Opened stream {session.session_id} for {config.provider}:{config.model} "
            f"(agent={session.context.get('agent_id')})"
        )
        return session

    async def _pump(
        self,
        session: StreamingSession,
        adapter: ProviderAdapter,
        messages: List[Message],
        config: GenerationConfig,
        on_chunk: ChunkCallback,
    ):
        """Pull chunks from the adapter and deliver events until a terminal state."""
        start = self._clock()
        iterator = adapter.stream(messages, config)
        chunk_index = 0

        try:
            async for chunk in iterator:
                if session.cancelled:
                    return

                if isinstance(chunk, TextDelta):
                    session.buffer.append(chunk.text)
                    chunk_index += 1
                    await self._emit(
                        on_chunk,
                        StreamEvent(
                            session_id=session.session_id,
                            type=StreamEventType.PARTIAL,
                            content=chunk.text,
                            metadata={
                                "provider": config.provider,
                                "model": config.model,
                                "chunk_index": chunk_index,
                            },
                        ),
                    )
                elif isinstance(chunk, StreamCompletion):
                    await self._complete(session, messages, config, chunk, start, on_chunk)
                    return
                elif isinstance(chunk, StreamFailure):
                    raise classify_error(chunk.error, config.provider)

            if session.cancelled:
                return
            raise GatewayError(ErrorKind.API_ERROR, "Stream ended without completion", config.provider)

        except asyncio.CancelledError:
            logger.info(f"Stream {session.session_id} cancelled")
        except Exception as e:
            if session.cancelled:
                return
            await self._fail(session, config, classify_error(e, config.provider), start, on_chunk)
        finally:
            if self._sessions.get(session.session_id) is session:
                del self._sessions[session.session_id]

            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _complete(
        self,
        session: StreamingSession,
        messages: List[Message],
        config: GenerationConfig,
        completion: StreamCompletion,
        start: float,
        on_chunk: ChunkCallback,
    ):
        content = session.text
        usage = completion.usage or TokenUsage.of(
            self.token_counter.count_message_tokens(messages),
            self.token_counter.count_tokens(content),
        )
        latency_ms = (self._clock() - start) * 1000

        await self._emit(
            on_chunk,
            StreamEvent(
                session_id=session.session_id,
                type=StreamEventType.COMPLETE,
                content=content,
                metadata={
                    **completion.metadata,
                    "provider": config.provider,
                    "model": config.model,
                    "usage": usage.to_dict(),
                    "stop_reason": completion.stop_reason,
                    "latency_ms": int(latency_ms),
                    "completed": True,
                },
            ),
        )

        self.monitor.track(
            config.provider,
            config.model,
            True,
            usage.prompt_tokens,
            usage.completion_tokens,
            latency_ms,
        )
        logger.info(f"Stream {session.session_id} completed ({usage.total_tokens} tokens)")

    async def _fail(
        self,
        session: StreamingSession,
        config: GenerationConfig,
        error: GatewayError,
        start: float,
        on_chunk: ChunkCallback,
    ):
        # Partial output was never validated as a complete response
        session.buffer.clear()
        latency_ms = (self._clock() - start) * 1000

        self.monitor.track(config.provider, config.model, False, 0, 0, latency_ms, error=error.message)
        logger.error(f"Stream {session.session_id} failed: {error.message}")

        try:
            await self._emit(
                on_chunk,
                StreamEvent(
                    session_id=session.session_id,
                    type=StreamEventType.ERROR,
                    content=error.message,
                    metadata={"error": True, **error.to_dict()},
                ),
            )
        except Exception:
            logger.exception(f"Failed to deliver error event for stream {session.session_id}")

    @staticmethod
    async def _emit(on_chunk: ChunkCallback, event: StreamEvent):
        result = on_chunk(event)
        if inspect.isawaitable(result):
            await result

    def cancel(self, session_id: str) -> bool:
        """
        Cancel a live session.

        No further events are delivered for the session once this returns.

        Args:
            session_id: Session id

        Returns:
            True if the session was found
        """
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False

        session.cancelled = True

        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None

        if session.task is not None and not session.task.done() and session.task is not current:
            session.task.cancel()

        logger.info(f"Cancel requested for stream {session_id}")
        return True

    def active_sessions(self) -> List[str]:
        return list(self._sessions.keys())

    def get_session(self, session_id: str) -> Optional[StreamingSession]:
        return self._sessions.get(session_id)

    async def join(self, session_id: str):
        """Wait until the session's pump has finished."""
        session = self._sessions.get(session_id)
        if session is not None and session.task is not None:
            await asyncio.wait({session.task})

    def sweep_stale(self) -> List[str]:
        """
        Cancel sessions older than the staleness window.

        Returns:
            Ids of removed sessions
        """
        now = self._clock()
        stale = [
            session_id
            for session_id, session in list(self._sessions.items())
            if now - session.created_at > self.stale_after_seconds
        ]

        for session_id in stale:
            self.cancel(session_id)

        if stale:
            logger.warning(f"Swept {len(stale)} stale streaming sessions")
        return stale

    async def open_stream(
        self,
        messages: List[Message],
        config: GenerationConfig,
        context: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[StreamEvent]:
        """
        Stream events as an async iterator.

        Closing the iterator before a terminal event cancels the session.

        Args:
            messages: Conversation messages
            config: Generation config
            context: Optional agent/session data, used only for log correlation

        Yields:
            StreamEvent, ending with one complete or error event
        """
        queue: "asyncio.Queue[Optional[StreamEvent]]" = asyncio.Queue()
        session = self._open(messages, config, queue.put_nowait, context)
        session.task.add_done_callback(lambda _: queue.put_nowait(None))
        finished = False

        try:
            while True:
                event = await queue.get()
                if event is None:
                    finished = True
                    return
                if event.is_terminal:
                    finished = True
                yield event
                if finished:
                    return
        finally:
            if not finished:
                self.cancel(session.session_id)

    async def start(self):
        """Start the background stale-session sweep."""
        if self._sweeper_task is None:
            self._sweeper_task = asyncio.create_task(self._sweep_loop())

    async def stop(self):
        """Stop the sweep and cancel all live sessions."""
        if self._sweeper_task is not None:
            self._sweeper_task.cancel()
            await asyncio.gather(self._sweeper_task, return_exceptions=True)
            self._sweeper_task = None

        tasks = [s.task for s in self._sessions.values() if s.task is not None]
        for session_id in self.active_sessions():
            self.cancel(session_id)
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _sweep_loop(self):
        """Background task for periodic sweeping."""
        while True:
            try:
                await asyncio.sleep(self.sweep_interval_seconds)
                self.sweep_stale()
            except asyncio.CancelledError:
                break
            except Exception as e:
                # Log and continue
                logger.error(f"Error sweeping streaming sessions: {e}")
