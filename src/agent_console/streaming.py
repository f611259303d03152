"""Single in-flight provider stream with pull-based chunk delivery."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from enum import Enum

from agent_console.cancellation import CancelToken
from agent_console.errors import ProviderError
from agent_console.messages import Message, StreamChunkReceived
from agent_console.providers.base import ChatRequest, Provider, StreamChunk

logger = logging.getLogger(__name__)


class StreamState(str, Enum):
    """Coordinator lifecycle. The three outcomes fall back to ``IDLE``."""

    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELED = "canceled"
    FAILED = "failed"


@dataclass(slots=True)
class _ActiveStream:
    stream_id: int
    token: CancelToken
    pull: threading.Semaphore = field(default_factory=lambda: threading.Semaphore(0))


class StreamCoordinator:
    """Owns at most one provider stream at a time.

    The reader thread posts every chunk as a :class:`StreamChunkReceived`
    message and then waits until the consumer calls :meth:`request_next` for
    that stream (or the stream is canceled) before reading the next one.
    """

    def __init__(self, post: Callable[[Message], None]) -> None:
        self._post = post
        self._lock = threading.Lock()
        self._active: _ActiveStream | None = None
        self._threads: dict[int, threading.Thread] = {}
        self.last_outcome = StreamState.IDLE

    @property
    def state(self) -> StreamState:
        with self._lock:
            return StreamState.STREAMING if self._active is not None else StreamState.IDLE

    @property
    def active_stream_id(self) -> int | None:
        with self._lock:
            return self._active.stream_id if self._active is not None else None

    def begin(self, stream_id: int, provider: Provider, request: ChatRequest) -> None:
        """Start streaming ``request``; a still-running previous stream is canceled first."""

        active = _ActiveStream(stream_id=stream_id, token=CancelToken())
        active.token.add_callback(active.pull.release)
        with self._lock:
            previous = self._active
            self._active = active
            if previous is not None:
                self.last_outcome = StreamState.CANCELED
        if previous is not None:
            logger.info("Stream %d superseded by %d", previous.stream_id, stream_id)
            previous.token.cancel(reason="superseded")

        thread = threading.Thread(
            target=self._read,
            args=(active, provider, request),
            daemon=True,
            name=f"stream-{stream_id}",
        )
        with self._lock:
            self._threads[stream_id] = thread
        thread.start()
        logger.info("Stream %d started with %s (%s)", stream_id, provider.name, request.model)

    def request_next(self, stream_id: int) -> bool:
        """Allow the reader of ``stream_id`` to deliver its next chunk."""

        with self._lock:
            active = self._active
        if active is None or active.stream_id != stream_id:
            return False
        active.pull.release()
        return True

    def cancel(self, stream_id: int | None = None) -> bool:
        """Cancel the active stream (only if it is ``stream_id`` when given)."""

        with self._lock:
            active = self._active
            if active is None or (stream_id is not None and active.stream_id != stream_id):
                return False
            self._active = None
            self.last_outcome = StreamState.CANCELED
        active.token.cancel()
        logger.info("Stream %d canceled", active.stream_id)
        return True

    def join(self, timeout: float | None = None) -> None:
        """Wait for reader threads to exit (used on shutdown and in tests)."""

        with self._lock:
            threads = list(self._threads.values())
        for thread in threads:
            thread.join(timeout)

    def _read(self, active: _ActiveStream, provider: Provider, request: ChatRequest) -> None:
        try:
            self._stream(active, provider, request)
        finally:
            with self._lock:
                self._threads.pop(active.stream_id, None)

    def _stream(self, active: _ActiveStream, provider: Provider, request: ChatRequest) -> None:
        try:
            chunks = provider.stream_chat(request, active.token)
        except ProviderError as error:
            self._deliver_terminal(active, StreamChunk(error=str(error), done=True))
            return
        except Exception as error:
            logger.exception("Stream %d setup crashed", active.stream_id)
            failure = StreamChunk(error=f"{provider.name}: {error}", done=True)
            self._deliver_terminal(active, failure)
            return

        iterator = iter(chunks)
        try:
            self._pump(active, iterator)
        finally:
            close = getattr(iterator, "close", None)
            if callable(close):
                close()

    def _pump(self, active: _ActiveStream, iterator: Iterator[StreamChunk]) -> None:
        while not active.token.cancelled:
            try:
                chunk = next(iterator)
            except StopIteration:
                chunk = StreamChunk(done=True)
            except Exception as error:  # noqa: BLE001
                logger.warning("Stream %d read failed: %s", active.stream_id, error)
                chunk = StreamChunk(error=str(error), done=True)

            if active.token.cancelled:
                return
            if chunk.terminal:
                self._deliver_terminal(active, chunk)
                return
            self._post(StreamChunkReceived(stream_id=active.stream_id, chunk=chunk))
            active.pull.acquire()

    def _deliver_terminal(self, active: _ActiveStream, chunk: StreamChunk) -> None:
        outcome = StreamState.FAILED if chunk.error is not None else StreamState.COMPLETED
        with self._lock:
            if self._active is not active:
                return
            self._active = None
            self.last_outcome = outcome
        if outcome is StreamState.FAILED:
            logger.warning("Stream %d failed: %s", active.stream_id, chunk.error)
        else:
            logger.info("Stream %d completed", active.stream_id)
        self._post(StreamChunkReceived(stream_id=active.stream_id, chunk=chunk))
