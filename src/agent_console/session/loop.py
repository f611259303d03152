"""Session loop: the single writer of :class:`SessionState`."""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from agent_console.cancellation import CancelToken
from agent_console.catalog import DEFAULT_CATALOG_TIMEOUT_SECONDS, CatalogFetcher
from agent_console.config import ModelSettings
from agent_console.errors import ExecutorError, HistoryError
from agent_console.executor import JobExecutor, JobRequest
from agent_console.history import HistoryStore
from agent_console.messages import (
    BeginStream,
    CancelBackgroundJob,
    CancelForegroundJob,
    CancelStream,
    CatalogResultReceived,
    Command,
    FetchCatalog,
    ForegroundCancelAcknowledged,
    ForegroundFinished,
    HistorySaved,
    JobCancelAcknowledged,
    JobEventReceived,
    JobRejected,
    JobsReconciled,
    Message,
    PersistenceFailed,
    PlanSaved,
    RequestNextChunk,
    RunJob,
    SaveHistory,
    SavePlan,
    Shutdown,
    StopLoop,
    StreamChunkReceived,
)
from agent_console.providers import ProviderRegistry, StreamChunk, default_model_for
from agent_console.session import transitions
from agent_console.session.state import ProviderInfo, SessionState
from agent_console.streaming import StreamCoordinator

logger = logging.getLogger(__name__)

StateListener = Callable[[SessionState], None]

DEFAULT_RECONCILE_INTERVAL_SECONDS = 1.0
_POLL_SECONDS = 0.1


def provider_infos(registry: ProviderRegistry) -> tuple[ProviderInfo, ...]:
    return tuple(
        ProviderInfo(
            name=provider.name,
            kind=provider.kind.value,
            default_model=default_model_for(provider),
        )
        for provider in registry.providers()
    )


class SessionLoop:
    """Applies inbound messages one at a time and executes the resulting commands.

    Any thread may :meth:`post`. Only the thread running :meth:`step` (or
    :meth:`run`) touches ``state``; listeners receive every new snapshot on
    that thread.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        executor: JobExecutor,
        registry: ProviderRegistry,
        history: HistoryStore | None = None,
        state: SessionState | None = None,
        model_settings: ModelSettings | None = None,
        catalog_timeout_seconds: float = DEFAULT_CATALOG_TIMEOUT_SECONDS,
        reconcile_interval_seconds: float = DEFAULT_RECONCILE_INTERVAL_SECONDS,
        shutdown_executor: bool = True,
    ) -> None:
        self._executor = executor
        self._registry = registry
        self._history = history
        self._inbox: queue.Queue[Message] = queue.Queue()
        self._listeners: list[StateListener] = []
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []
        self._loop_thread: threading.Thread | None = None
        self._foreground_token: CancelToken | None = None
        self._reconcile_interval = reconcile_interval_seconds
        self._shutdown_executor = shutdown_executor
        self.state = state or transitions.initial_state(providers=provider_infos(registry))
        self.streams = StreamCoordinator(self.post)
        self.catalog = CatalogFetcher(
            lambda result: self.post(CatalogResultReceived(result)),
            model_settings=model_settings,
            timeout_seconds=catalog_timeout_seconds,
        )
        self._commands: dict[type[Command], Callable[[Any], Message | None]] = {
            BeginStream: self._begin_stream,
            CancelStream: self._cancel_stream,
            RequestNextChunk: self._request_next_chunk,
            FetchCatalog: self._fetch_catalog,
            RunJob: self._run_job,
            CancelForegroundJob: self._cancel_foreground,
            CancelBackgroundJob: self._cancel_background,
            SaveHistory: self._save_history,
            SavePlan: self._save_plan,
            StopLoop: self._stop_loop,
        }

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    @property
    def idle(self) -> bool:
        """No queued messages, no live stream and no foreground command."""

        state = self.state
        return self._inbox.empty() and not state.streaming and state.foreground is None

    def post(self, message: Message) -> None:
        """Enqueue ``message``; safe from any thread, never blocks."""

        self._inbox.put(message)

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def step(self, timeout: float | None = None) -> bool:
        """Process one message; ``False`` when none arrived within ``timeout``."""

        try:
            message = self._inbox.get(timeout=timeout)
        except queue.Empty:
            return False
        self._process(message)
        return True

    def run(self) -> None:
        """Process messages until a :class:`Shutdown` message is handled."""

        while not self._stop.is_set():
            self.step(timeout=_POLL_SECONDS)

    def start_producers(self) -> None:
        """Start the executor event pump and the reconcile poller."""

        self._spawn(self._pump_job_events, "session-job-events")
        self._spawn(self._reconcile_jobs, "session-reconcile")

    def start(self) -> None:
        """Run the loop and its producers on background threads."""

        self.start_producers()
        self._loop_thread = self._spawn(self.run, "session-loop")
        logger.info("Session loop started")

    def stop(self, timeout: float = 5.0) -> None:
        """Post :class:`Shutdown` and wait for the loop threads to exit."""

        self.post(Shutdown())
        if self._loop_thread is None:
            while not self._stop.is_set() and self.step(timeout=0):
                pass
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []
        self._loop_thread = None
        logger.info("Session loop stopped")

    # -- message processing ----------------------------------------------------

    def _process(self, message: Message) -> None:
        try:
            transition = transitions.apply(self.state, message)
        except Exception:
            logger.exception("Session transition failed for %s", type(message).__name__)
            return
        self._publish(transition.state)
        for command in transition.commands:
            follow_up = self._execute(command)
            if follow_up is not None:
                self._process(follow_up)

    def _publish(self, state: SessionState) -> None:
        self.state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Session listener failed")

    def _execute(self, command: Command) -> Message | None:
        handler = self._commands.get(type(command))
        if handler is None:
            logger.warning("Unhandled session command: %s", type(command).__name__)
            return None
        return handler(command)

    # -- commands --------------------------------------------------------------

    def _begin_stream(self, command: BeginStream) -> Message | None:
        provider = self._registry.by_name(command.provider)
        if provider is None:
            return StreamChunkReceived(
                stream_id=command.stream_id,
                chunk=StreamChunk(error=f"provider {command.provider!r} not available", done=True),
            )
        self.streams.begin(command.stream_id, provider, command.request)
        return None

    def _cancel_stream(self, command: CancelStream) -> None:
        self.streams.cancel(command.stream_id)

    def _request_next_chunk(self, command: RequestNextChunk) -> None:
        self.streams.request_next(command.stream_id)

    def _fetch_catalog(self, command: FetchCatalog) -> None:
        providers = [self._registry.by_name(name) for name in command.providers]
        self.catalog.fetch(command.generation, [p for p in providers if p is not None])

    def _run_job(self, command: RunJob) -> Message | None:
        request = command.request
        label = " ".join(request.argv)
        if request.background:
            try:
                self._executor.run(request)
            except ExecutorError as error:
                return JobRejected(label=label, error=str(error))
            return None

        token = CancelToken()
        self._foreground_token = token
        self._spawn(
            lambda: self._run_foreground(request, label, token),
            f"foreground-{label.split(' ', 1)[0]}",
            track=False,
        )
        return None

    def _run_foreground(self, request: JobRequest, label: str, token: CancelToken) -> None:
        try:
            result, _ = self._executor.run(request, token)
        except ExecutorError as error:
            self.post(ForegroundFinished(label=label, error=str(error)))
        except Exception as error:
            logger.exception("Foreground command crashed: %s", label)
            self.post(ForegroundFinished(label=label, error=f"executor error: {error}"))
        else:
            self.post(ForegroundFinished(label=label, result=result))
        finally:
            if self._foreground_token is token:
                self._foreground_token = None

    def _cancel_foreground(self, _: CancelForegroundJob) -> Message:
        accepted = self._executor.cancel_foreground()
        token = self._foreground_token
        if token is not None:
            accepted = token.cancel() or accepted
        return ForegroundCancelAcknowledged(accepted=accepted)

    def _cancel_background(self, command: CancelBackgroundJob) -> Message:
        return JobCancelAcknowledged(
            job_id=command.job_id,
            accepted=self._executor.cancel_job(command.job_id),
        )

    def _save_history(self, command: SaveHistory) -> Message | None:
        if self._history is None:
            return None
        try:
            saved = self._history.save(command.record)
        except HistoryError as error:
            logger.warning("History save failed: %s", error)
            return PersistenceFailed(f"history save error: {error}")
        return HistorySaved(saved)

    def _save_plan(self, command: SavePlan) -> Message:
        path = Path(command.path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(command.content, encoding="utf-8")
        except OSError as error:
            logger.warning("Plan save to %s failed: %s", path, error)
            prefix = "plan auto-save error" if command.automatic else "plan save error"
            return PersistenceFailed(f"{prefix}: {error}")
        logger.info("Plan written to %s", path)
        return PlanSaved(path=str(path), automatic=command.automatic)

    def _stop_loop(self, _: StopLoop) -> None:
        self._stop.set()
        self.streams.cancel()
        if self._shutdown_executor:
            self._executor.shutdown()

    # -- producers -------------------------------------------------------------

    def _pump_job_events(self) -> None:
        events = self._executor.events()
        while not self._stop.is_set():
            try:
                event = events.get(timeout=_POLL_SECONDS)
            except queue.Empty:
                continue
            self.post(JobEventReceived(event.job))

    def _reconcile_jobs(self) -> None:
        last: tuple[tuple[str, str], ...] = ()
        while not self._stop.wait(self._reconcile_interval):
            jobs = tuple(self._executor.active_jobs())
            signature = tuple((job.job_id, job.status.value) for job in jobs)
            if signature == last:
                continue
            last = signature
            self.post(JobsReconciled(jobs))

    def _spawn(
        self,
        target: Callable[[], None],
        name: str,
        *,
        track: bool = True,
    ) -> threading.Thread:
        thread = threading.Thread(target=target, daemon=True, name=name)
        if track:
            self._threads.append(thread)
        thread.start()
        return thread
