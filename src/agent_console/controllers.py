"""Controllers behind the agent-console CLI commands."""

from __future__ import annotations

import logging
import queue
import sys
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from agent_console.catalog import CatalogFetcher, CatalogResult, rows_for_result
from agent_console.config import Settings
from agent_console.executor import Job, JobExecutor, JobRequest
from agent_console.history import SqliteHistoryStore
from agent_console.messages import CancelRequested, Message, Shutdown, SubmitText
from agent_console.providers import build_registry
from agent_console.session import SessionLoop, SessionState, initial_state, provider_infos
from agent_console.session.state import job_event_line

logger = logging.getLogger(__name__)

CANCEL_INPUTS = frozenset({":cancel", ":esc"})
QUIT_INPUTS = frozenset({":q", ":quit", "/exit", "/quit"})
IDLE_WAIT_SECONDS = 120.0


@dataclass(slots=True)
class ChatCommand:
    """Input for the interactive chat command."""

    db_path: Path | None = None
    project_path: Path | None = None
    provider: str | None = None
    resume_id: str | None = None


@dataclass(slots=True)
class ExecCommand:
    """Input for a one-off shell execution."""

    command: str
    args: tuple[str, ...] = ()
    workdir: Path | None = None
    background: bool = False


@dataclass(slots=True)
class ExecResult:
    lines: list[str]
    exit_code: int


@dataclass(slots=True)
class ModelsCommand:
    provider: str | None = None


@dataclass(slots=True)
class HistoryListCommand:
    db_path: Path | None = None
    project: str | None = None
    limit: int = 20


class ConsoleController:
    """Line-oriented presentation of the session engine."""

    def __init__(
        self,
        *,
        stdin: TextIO | None = None,
        echo: Callable[[str], None] | None = None,
    ) -> None:
        self._stdin = stdin
        self._echo = echo or print

    def chat(self, command: ChatCommand) -> None:
        """Read prompts from stdin until EOF or ``:q``; print the transcript as it settles."""

        settings = Settings.from_env(db_path=command.db_path)
        settings.validate()
        project = str(command.project_path or settings.project_path)
        registry = build_registry(settings)
        executor = JobExecutor(event_buffer_size=settings.runtime.event_buffer_size)

        with _history_store(settings) as history:
            record = history.get(command.resume_id) if command.resume_id else None
            if record is None:
                record = history.create(project)
            state = initial_state(
                providers=provider_infos(registry),
                record=record,
                project_path=project,
                plan_file=settings.plan.file_path,
                plan_to_file=settings.plan.writes_to_file,
                plan_auto_write=settings.plan.auto_write,
            )
            loop = SessionLoop(
                executor=executor,
                registry=registry,
                history=history,
                state=state,
                model_settings=settings.models,
                catalog_timeout_seconds=settings.runtime.catalog_timeout_seconds,
                reconcile_interval_seconds=settings.runtime.reconcile_interval_seconds,
            )
            printer = _TranscriptPrinter(self._echo)
            printer(loop.state)
            loop.add_listener(printer)
            loop.start()
            try:
                if command.provider:
                    loop.post(SubmitText(f"/provider {command.provider}"))
                for message in self._read_inputs():
                    loop.post(message)
                    if isinstance(message, Shutdown):
                        break
                else:
                    _wait_idle(loop, IDLE_WAIT_SECONDS)
            finally:
                loop.stop()
                registry.close()
                printer.flush(loop.state)

    def run_exec(self, command: ExecCommand) -> ExecResult:
        """Run one command through the executor and report its outcome."""

        executor = JobExecutor()
        request = JobRequest(
            command=command.command,
            args=command.args,
            workdir=str(command.workdir) if command.workdir else None,
            background=command.background,
        )
        if not command.background:
            result, _ = executor.run(request)
            lines = result.output.rstrip("\n").splitlines()
            status = "canceled" if result.canceled else f"exit {result.exit_code}"
            return ExecResult(lines=[*lines, status], exit_code=result.exit_code)

        _, job_id = executor.run(request)
        lines: list[str] = []
        job: Job | None = None
        for job in _follow_job(executor, job_id or ""):
            lines.append(job_event_line(job))
        if job is None:
            return ExecResult(lines=lines, exit_code=1)
        lines[-1:-1] = job.output.rstrip("\n").splitlines()
        return ExecResult(lines=lines, exit_code=job.exit_code)

    def list_models(self, command: ModelsCommand) -> Iterator[str]:
        """Fetch every provider's catalog concurrently and print rows as they arrive."""

        settings = Settings.from_env()
        settings.validate()
        registry = build_registry(settings)
        try:
            providers = registry.providers()
            if command.provider:
                selected = registry.resolve(command.provider)
                if selected is None:
                    yield f"Provider not found: {command.provider}"
                    return
                providers = [selected]
            if not providers:
                yield "No providers enabled."
                return

            results: queue.Queue[CatalogResult] = queue.Queue()
            fetcher = CatalogFetcher(
                results.put,
                model_settings=settings.models,
                timeout_seconds=settings.runtime.catalog_timeout_seconds,
            )
            fetcher.fetch(1, providers)
            for _ in providers:
                result = results.get()
                for row in rows_for_result(result):
                    yield row.display
        finally:
            registry.close()

    def list_history(self, command: HistoryListCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _history_store(settings) as history:
            records = history.list(command.project)[: command.limit]
        if not records:
            return ["No saved sessions."]
        lines = []
        for record in records:
            updated = "-"
            if record.updated_at is not None:
                updated = record.updated_at.isoformat(timespec="seconds")
            lines.append(f"{record.session_id} {updated} {record.title} ({record.project})")
        return lines

    def _read_inputs(self) -> Iterator[Message]:
        stream = self._stdin or sys.stdin
        for raw in stream:
            text = raw.rstrip("\n")
            stripped = text.strip()
            if not stripped:
                continue
            if stripped in QUIT_INPUTS:
                yield Shutdown()
                return
            if stripped in CANCEL_INPUTS:
                yield CancelRequested()
                continue
            yield SubmitText(text)


class _TranscriptPrinter:
    """Echo transcript lines once they can no longer change.

    Lines from the live stream block onwards are held back until the block
    is finalized, since the block is redrawn on every chunk.
    """

    def __init__(self, echo: Callable[[str], None]) -> None:
        self._echo = echo
        self._printed = 0

    def __call__(self, state: SessionState) -> None:
        stable = state.stream.ref.start if state.stream is not None else len(state.transcript)
        self._emit(state, stable)

    def flush(self, state: SessionState) -> None:
        self._emit(state, len(state.transcript))

    def _emit(self, state: SessionState, end: int) -> None:
        for line in state.transcript[self._printed : end]:
            self._echo(line)
        self._printed = max(self._printed, end)


def _wait_idle(loop: SessionLoop, timeout: float) -> None:
    """Block until nothing is streaming or running in the foreground."""

    deadline = time.monotonic() + timeout
    settled = 0
    while time.monotonic() < deadline:
        settled = settled + 1 if loop.idle else 0
        if settled >= 2:  # noqa: PLR2004
            return
        time.sleep(0.05)
    logger.warning("Session still busy after %.0fs; shutting down", timeout)


def _follow_job(executor: JobExecutor, job_id: str) -> Iterator[Job]:
    """Yield distinct snapshots of one background job until it is terminal.

    Lifecycle events may be dropped, so an idle event queue falls back to the
    executor snapshot.
    """

    events = executor.events()
    seen: set[str] = set()
    while True:
        try:
            job = events.get(timeout=0.2).job
        except queue.Empty:
            job = next((item for item in executor.active_jobs() if item.job_id == job_id), None)
            if job is None:
                return
        if job.job_id != job_id or job.status.value in seen:
            continue
        seen.add(job.status.value)
        yield job
        if job.status.is_terminal:
            return


@contextmanager
def _history_store(settings: Settings) -> Iterator[SqliteHistoryStore]:
    store = SqliteHistoryStore(settings.db_path)
    store.init_schema()
    try:
        yield store
    finally:
        store.close()
