"""Pure session transitions: ``apply(state, message) -> Transition``.

Nothing here touches threads, processes, sockets or files. Side effects are
requested through the commands returned alongside the new state and carried
out by :class:`agent_console.session.loop.SessionLoop`.
"""

from __future__ import annotations

import logging
import os
import shlex
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any

from agent_console.catalog import rows_for_result
from agent_console.executor.models import Job, JobRequest
from agent_console.history import SessionRecord
from agent_console.messages import (
    ActivateCatalogRow,
    BeginStream,
    CancelBackgroundJob,
    CancelForegroundJob,
    CancelJob,
    CancelRequested,
    CancelStream,
    CatalogResultReceived,
    CloseCatalog,
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
    MoveCatalogSelection,
    PaletteAccepted,
    PaletteClosed,
    PaletteCycled,
    PaletteFilterChanged,
    PaletteOpened,
    PersistenceFailed,
    PlanSaved,
    RecallPrompt,
    RequestNextChunk,
    RunJob,
    SaveHistory,
    SavePlan,
    Shutdown,
    StartJob,
    StopLoop,
    StreamChunkReceived,
    SubmitText,
)
from agent_console.providers.base import ChatMessage, ChatRequest
from agent_console.session import palette as command_palette
from agent_console.session.state import (
    APP_LABEL,
    PENDING_TEXT,
    BlockRef,
    CatalogView,
    PaletteState,
    PlanMode,
    PlanState,
    PlanStep,
    ProviderInfo,
    QuestionPrompt,
    SessionState,
    StreamBlock,
    block_lines,
    job_event_line,
    render_plan_drawer,
    render_plan_markdown,
    replace_lines,
    summarize_jobs,
)

logger = logging.getLogger(__name__)

HELP_TEXT = f"{APP_LABEL} commands: " + " ".join(command_palette.DEFAULT_COMMANDS)


@dataclass(slots=True, frozen=True)
class Transition:
    """New state plus the side effects the loop must carry out, in order."""

    state: SessionState
    commands: tuple[Command, ...] = ()


def initial_state(  # noqa: PLR0913
    *,
    providers: tuple[ProviderInfo, ...] = (),
    record: SessionRecord | None = None,
    project_path: str = "",
    plan_file: str = "PLAN.md",
    plan_to_file: bool = False,
    plan_auto_write: bool = False,
) -> SessionState:
    """Session header plus automatic provider selection when only one exists."""

    state = SessionState(
        providers=providers,
        record=record,
        project_path=project_path,
        plan_file=plan_file,
        plan_to_file=plan_to_file,
        plan_auto_write=plan_auto_write,
        plan=PlanState(visible=True),
    )
    provider_line = "providers: none configured"
    if providers:
        provider_line = "providers: " + ", ".join(f"{p.name} ({p.kind})" for p in providers)
    storage = "memory only"
    if plan_to_file:
        storage = f"file → {plan_file} ({'auto' if plan_auto_write else 'manual'})"
    project = record.project if record is not None and record.project else project_path
    header = [
        provider_line,
        f"project: {project}",
        f"plan mode: {state.plan.mode.value.upper()}",
        f"plan storage: {storage}",
        "commands: /plan /model /jobs /help",
    ]
    state = _append(state, *block_lines(f"{APP_LABEL} session", "\n".join(header)))
    if record is not None:
        state = _append(state, f"Session {record.session_id} ({record.project})")

    if not providers:
        return _append(state, "No providers configured. Set OPENAI_API_KEY or ANTHROPIC_API_KEY.")
    if len(providers) == 1:
        return _use_provider(state, providers[0], providers[0].default_model)
    return _append(state, _provider_prompt(providers))


def apply(state: SessionState, message: Message) -> Transition:
    """Reduce one inbound message."""

    handler = _HANDLERS.get(type(message))
    if handler is None:
        logger.warning("Unhandled session message: %s", type(message).__name__)
        return Transition(state)
    return handler(state, message)


# -- jobs ---------------------------------------------------------------------


def _on_job_event(state: SessionState, message: JobEventReceived) -> Transition:
    return Transition(_merge_job(state, message.job))


def _on_jobs_reconciled(state: SessionState, message: JobsReconciled) -> Transition:
    for job in message.jobs:
        state = _merge_job(state, job)
    return Transition(state)


def _merge_job(state: SessionState, job: Job) -> SessionState:
    """Mirror ``job``; a mirrored job never leaves a terminal status."""

    known = state.job(job.job_id)
    if known is not None and (known.status.is_terminal or known.status is job.status):
        return state
    jobs = {**state.jobs, job.job_id: job}
    state = replace(state, jobs=jobs, status=summarize_jobs(jobs))
    return _append(state, job_event_line(job))


def _on_start_job(state: SessionState, message: StartJob) -> Transition:
    request = message.request
    label = " ".join(request.argv).strip()
    if not request.command.strip():
        return Transition(_notice(state, "command is required"))
    if request.background:
        return Transition(state, (RunJob(request),))
    if state.foreground is not None:
        busy = f"a foreground command is already running: {state.foreground}"
        return Transition(_notice(state, busy))
    state = replace(state, foreground=label, status=f"Running {label}…")
    return Transition(state, (RunJob(request),))


def _on_foreground_finished(state: SessionState, message: ForegroundFinished) -> Transition:
    state = replace(state, foreground=None)
    if message.error is not None:
        state = replace(state, status=f"{message.label}: {message.error}")
        return Transition(_notice(state, f"{message.label}: {message.error}"))
    result = message.result
    if result is None:
        return Transition(state)
    output = result.output.rstrip("\n") or "(no output)"
    if result.canceled:
        title = f"$ {message.label} (canceled)"
        state = replace(state, status="Canceled foreground command.")
    else:
        title = f"$ {message.label} (exit {result.exit_code})"
        state = replace(state, status=f"Finished {message.label} (exit {result.exit_code})")
    return Transition(_append(state, *block_lines(title, output)))


def _on_job_rejected(state: SessionState, message: JobRejected) -> Transition:
    if state.foreground == message.label:
        state = replace(state, foreground=None)
    return Transition(_notice(state, f"{message.label}: {message.error}"))


def _on_cancel_job(state: SessionState, message: CancelJob) -> Transition:
    job_id = message.job_id.strip()
    if not job_id:
        return Transition(_notice(state, "/jobs cancel <id>"))
    matches = [known for known in state.jobs if known.startswith(job_id)]
    if len(matches) == 1:
        job_id = matches[0]
    return Transition(state, (CancelBackgroundJob(job_id),))


def _on_job_cancel_ack(state: SessionState, message: JobCancelAcknowledged) -> Transition:
    short_id = message.job_id[:8]
    if message.accepted:
        return Transition(_notice(state, f"canceling job {short_id}"))
    return Transition(_notice(state, f"job {short_id} not found"))


def _on_foreground_cancel_ack(
    state: SessionState,
    message: ForegroundCancelAcknowledged,
) -> Transition:
    if message.accepted:
        return Transition(replace(state, status="Canceled foreground command."))
    return Transition(state)


# -- streaming ----------------------------------------------------------------


def _begin_stream(state: SessionState, prompt: str) -> Transition:
    commands: list[Command] = []
    if state.stream is not None:
        commands.append(CancelStream(state.stream.stream_id))
        state = replace(state, stream=None)

    model_label = state.model or "the provider default"
    title = f"{APP_LABEL} ({state.provider}/{model_label})"
    stream_id = state.next_stream_id
    ref = BlockRef(len(state.transcript), 0)
    transcript, ref = replace_lines(state.transcript, ref, block_lines(title, PENDING_TEXT))
    state = replace(
        state,
        transcript=transcript,
        stream=StreamBlock(stream_id=stream_id, title=title, ref=ref),
        next_stream_id=stream_id + 1,
    )
    request = ChatRequest(model=state.model, messages=(ChatMessage(role="user", content=prompt),))
    commands.append(BeginStream(stream_id, state.provider or "", request))
    return Transition(state, tuple(commands))


def _on_stream_chunk(state: SessionState, message: StreamChunkReceived) -> Transition:
    block = state.stream
    if block is None or block.stream_id != message.stream_id:
        return Transition(state)

    chunk = message.chunk
    text = block.text + chunk.content
    if chunk.error is not None:
        failure = f"error: {chunk.error}"
        text = f"{text}\n{failure}" if text else failure
    state = _render_stream(state, replace(block, text=text))

    if chunk.error is not None:
        return Transition(replace(state, stream=None, status="Response failed"))
    if chunk.done:
        if not text and state.stream is not None:
            state = _render_stream(state, replace(state.stream, text="(empty response)"))
        return Transition(replace(state, stream=None, status="Response complete"))
    return Transition(state, (RequestNextChunk(block.stream_id),))


def _render_stream(state: SessionState, block: StreamBlock) -> SessionState:
    lines = block_lines(block.title, block.text or PENDING_TEXT)
    transcript, ref = replace_lines(state.transcript, block.ref, lines)
    return replace(state, transcript=transcript, stream=replace(block, ref=ref))


def _cancel_stream(state: SessionState) -> Transition:
    block = state.stream
    if block is None:
        return Transition(state)
    state = replace(state, stream=None, status="Canceled response stream.")
    return Transition(_notice(state, "canceled response stream"), (CancelStream(block.stream_id),))


# -- user input ---------------------------------------------------------------


def _on_submit(state: SessionState, message: SubmitText) -> Transition:
    text = message.text.strip()
    state = replace(state, draft="", recall=None)
    if state.question is not None:
        return _answer_question(state, state.question, text)
    if not text:
        return Transition(state)
    if state.palette.visible:
        state = replace(state, palette=PaletteState())
    if text.startswith("/"):
        return _run_slash_command(state, text)

    if state.provider is None:
        selected = _select_provider(state, text)
        if selected is not None:
            return Transition(selected)
        return Transition(_append(state, _provider_prompt(state.providers)))

    state = replace(state, prompts=(*state.prompts, text))
    state = _append(state, *block_lines(f"you ({state.provider})", text))
    commands: list[Command] = []
    if state.record is not None:
        record = state.record.with_prompt(text)
        state = replace(state, record=record)
        commands.append(SaveHistory(record))
    transition = _begin_stream(state, text)
    return Transition(transition.state, (*commands, *transition.commands))


def _answer_question(
    state: SessionState,
    question: QuestionPrompt,
    text: str,
) -> Transition:
    if not text:
        return Transition(_notice(state, "answer cannot be empty"))
    state = replace(state, question=None, palette=PaletteState(), status="")
    return Transition(_append(state, f"[answer] {question.resolve(text)}"))


def _on_recall_prompt(state: SessionState, message: RecallPrompt) -> Transition:
    """Walk the submitted prompts; stepping past the newest restores an empty draft."""

    total = len(state.prompts)
    if not total or (state.recall is None and message.delta > 0):
        return Transition(state)
    position = total if state.recall is None else state.recall
    position = min(max(position + message.delta, 0), total)
    if position == total:
        return Transition(replace(state, recall=None, draft=""))
    return Transition(replace(state, recall=position, draft=state.prompts[position]))


def _on_history_saved(state: SessionState, message: HistorySaved) -> Transition:
    record = message.record
    status = f"Updated {record.session_id}"
    if record.updated_at is not None:
        status += f" at {record.updated_at.strftime('%H:%M')}"
    return Transition(replace(state, record=record, status=status))


def _on_cancel_requested(state: SessionState, _: CancelRequested) -> Transition:
    if state.question is not None:
        state = replace(state, question=None, status="")
        return Transition(_notice(state, "dismissed question"))
    if state.foreground is not None:
        return Transition(
            replace(state, status="Canceling foreground command…"),
            (CancelForegroundJob(),),
        )
    if state.streaming:
        return _cancel_stream(state)
    if state.catalog.visible:
        return Transition(replace(state, catalog=replace(state.catalog, visible=False)))
    if state.palette.visible:
        return Transition(replace(state, palette=PaletteState()))
    return Transition(replace(state, draft="", recall=None))


def _on_shutdown(state: SessionState, _: Shutdown) -> Transition:
    commands: list[Command] = []
    if state.stream is not None:
        commands.append(CancelStream(state.stream.stream_id))
    commands.append(StopLoop())
    return Transition(replace(state, stream=None, closed=True), tuple(commands))


def _on_persistence_failed(state: SessionState, message: PersistenceFailed) -> Transition:
    state = replace(state, status=message.text)
    return Transition(_notice(state, message.text))


# -- catalog ------------------------------------------------------------------


def _show_catalog(state: SessionState) -> Transition:
    if not state.providers:
        state = replace(state, catalog=replace(state.catalog, visible=False))
        return Transition(_notice(state, "no providers configured"))
    names = tuple(info.name for info in state.providers)
    generation = state.catalog.generation + 1
    state = replace(
        state,
        catalog=CatalogView(visible=True, loading=frozenset(names), generation=generation),
    )
    state = _append(state, *(f"Fetching models from {name}…" for name in names))
    return Transition(state, (FetchCatalog(generation, names),))


def _on_catalog_result(state: SessionState, message: CatalogResultReceived) -> Transition:
    result = message.result
    catalog = state.catalog
    if result.generation != catalog.generation:
        return Transition(state)

    rows = rows_for_result(result)
    if catalog.visible:
        catalog = replace(
            catalog,
            rows=(*catalog.rows, *rows),
            loading=catalog.loading - {result.provider},
        )
        catalog = replace(catalog, selection=_ensure_selection(catalog))
        state = replace(state, catalog=catalog)
    if result.error is not None:
        return Transition(_notice(state, f"{result.provider} error: {result.error}"))
    if not result.models:
        return Transition(
            _append(state, f"{result.provider}: no models match the current whitelist"),
        )
    return Transition(_append(state, *(row.display for row in rows)))


def _ensure_selection(catalog: CatalogView) -> int:
    if not catalog.rows:
        return 0
    selection = min(catalog.selection, len(catalog.rows) - 1)
    if catalog.rows[selection].selectable:
        return selection
    for index, row in enumerate(catalog.rows):
        if row.selectable:
            return index
    return selection


def _on_move_selection(state: SessionState, message: MoveCatalogSelection) -> Transition:
    catalog = state.catalog
    if not catalog.visible or not catalog.rows:
        return Transition(state)
    index = catalog.selection
    for _ in range(len(catalog.rows)):
        index = (index + message.delta) % len(catalog.rows)
        if catalog.rows[index].selectable:
            return Transition(replace(state, catalog=replace(catalog, selection=index)))
    return Transition(state)


def _on_activate_row(state: SessionState, _: ActivateCatalogRow) -> Transition:
    catalog = state.catalog
    if not catalog.visible or not catalog.rows:
        return Transition(state)
    row = catalog.rows[catalog.selection]
    if not row.selectable:
        return Transition(state)
    info = state.provider_info(row.provider_name)
    if info is None:
        return Transition(_notice(state, f"provider {row.provider_name} not recognized"))
    state = replace(state, catalog=replace(catalog, visible=False))
    return Transition(_use_provider(state, info, row.model_name))


def _on_close_catalog(state: SessionState, _: CloseCatalog) -> Transition:
    return Transition(replace(state, catalog=replace(state.catalog, visible=False)))


# -- palette ------------------------------------------------------------------


def _on_palette_opened(state: SessionState, _: PaletteOpened) -> Transition:
    return Transition(replace(state, palette=command_palette.open_palette()))


def _on_palette_filter(state: SessionState, message: PaletteFilterChanged) -> Transition:
    if not state.palette.visible:
        return Transition(state)
    filtered = command_palette.set_filter(state.palette, message.text)
    return Transition(replace(state, palette=filtered))


def _on_palette_cycled(state: SessionState, message: PaletteCycled) -> Transition:
    if not state.palette.visible:
        return Transition(state)
    return Transition(replace(state, palette=command_palette.cycle(state.palette, message.delta)))


def _on_palette_accepted(state: SessionState, _: PaletteAccepted) -> Transition:
    if not state.palette.visible:
        return Transition(state)
    accepted = command_palette.accept(state.palette)
    draft = f"{accepted.selected} " if accepted.selected else state.draft
    return Transition(replace(state, palette=PaletteState(), draft=draft))


def _on_palette_closed(state: SessionState, _: PaletteClosed) -> Transition:
    return Transition(replace(state, palette=PaletteState()))


# -- slash commands -----------------------------------------------------------


def _run_slash_command(state: SessionState, text: str) -> Transition:  # noqa: PLR0911
    parts = text.split()
    name = parts[0][1:].lower()
    args = parts[1:]
    if name == "model":
        return _show_catalog(state)
    if name == "provider":
        if not args:
            return Transition(_append(state, _provider_prompt(state.providers)))
        query = " ".join(args)
        selected = _select_provider(state, query)
        if selected is None:
            return Transition(_notice(state, f"provider {query!r} not recognized"))
        return Transition(selected)
    if name == "jobs":
        return _jobs_command(state, args)
    if name in {"run", "bg"}:
        return _job_command(state, text, background=name == "bg")
    if name == "plan":
        return _plan_command(state, args)
    if name == "auto":
        return _set_plan_mode(state, PlanMode.AUTO)
    if name == "off":
        return _set_plan_mode(state, PlanMode.OFF)
    if name == "status":
        return Transition(_status_report(state))
    if name == "ask":
        return _ask_command(state, text)
    if name == "help":
        return Transition(_append(state, HELP_TEXT))
    return Transition(_notice(state, f"unknown command {text}"))


def _ask_command(state: SessionState, text: str) -> Transition:
    _, _, remainder = text.partition(" ")
    prompt, *choices = remainder.split("|")
    prompt = prompt.strip()
    if not prompt:
        return Transition(_notice(state, "/ask <question>? [option1|option2]"))
    options = tuple(choice.strip() for choice in choices if choice.strip())
    state = replace(
        state,
        question=QuestionPrompt(prompt, options),
        status="Waiting for an answer",
    )
    lines = [f"[question] {prompt}"]
    lines.extend(f"  {index}) {option}" for index, option in enumerate(options, start=1))
    return Transition(_append(state, *lines))


def _jobs_command(state: SessionState, args: list[str]) -> Transition:
    if len(args) >= 2 and args[0].lower() == "cancel":  # noqa: PLR2004
        return _on_cancel_job(state, CancelJob(args[1]))
    if not state.jobs:
        return Transition(_notice(state, "no background jobs running."))
    lines = [
        f"{job.short_id} {job.label} [{job.status.value.upper()}] exit={job.exit_code}"
        for job in sorted(state.jobs.values(), key=lambda job: job.started_at)
    ]
    return Transition(_append(state, *lines))


def _job_command(state: SessionState, text: str, *, background: bool) -> Transition:
    usage = "/bg <command> [args]" if background else "/run <command> [args]"
    _, _, remainder = text.partition(" ")
    try:
        argv = shlex.split(remainder)
    except ValueError as error:
        return Transition(_notice(state, f"{usage}: {error}"))
    if not argv:
        return Transition(_notice(state, usage))
    workdir = state.project_path or None
    request = JobRequest(
        command=argv[0],
        args=tuple(argv[1:]),
        workdir=workdir,
        background=background,
    )
    return _on_start_job(state, StartJob(request))


def _plan_command(state: SessionState, args: list[str]) -> Transition:  # noqa: PLR0911
    plan = state.plan
    if not args:
        state = replace(state, plan=replace(plan, visible=not plan.visible))
        label = "visible" if state.plan.visible else "hidden"
        return Transition(_notice(state, f"plan drawer {label}"))

    sub = args[0].lower()
    rest = " ".join(args[1:]).strip()
    if sub == "add":
        if not rest:
            return Transition(_notice(state, "/plan add requires text"))
        steps = (*plan.steps, PlanStep(rest))
        state = replace(state, plan=replace(plan, steps=steps, visible=True))
        return _auto_save_plan(_notice(state, f"added plan step {rest!r}"))
    if sub == "done":
        if not rest:
            return Transition(_notice(state, "/plan done <number>"))
        index = _parse_index(rest, len(plan.steps))
        if index is None:
            return Transition(_notice(state, "invalid step index"))
        steps = list(plan.steps)
        steps[index] = replace(steps[index], done=True)
        state = replace(state, plan=replace(plan, steps=tuple(steps)))
        return _auto_save_plan(_notice(state, f"marked step {index + 1} complete"))
    if sub == "clear":
        state = replace(state, plan=replace(plan, steps=()))
        return _auto_save_plan(_notice(state, "cleared plan"))
    if sub == "mode":
        if not rest:
            return _set_plan_mode(state, plan.mode.next())
        try:
            mode = PlanMode(rest.lower())
        except ValueError:
            return Transition(_notice(state, "unknown plan mode"))
        return _set_plan_mode(state, mode)
    if sub == "show":
        state = replace(state, plan=replace(plan, visible=True))
        return Transition(_append(state, *render_plan_drawer(state)))
    if sub == "hide":
        return Transition(replace(state, plan=replace(plan, visible=False)))
    if sub == "save":
        if not rest and not state.plan_to_file:
            return Transition(
                _notice(state, "plan storage is set to memory; run /plan save <path> to export"),
            )
        path = resolve_plan_path(state, rest)
        return Transition(state, (SavePlan(path, render_plan_markdown(plan.steps)),))
    return Transition(_notice(state, f"unknown /plan subcommand {sub}"))


def _auto_save_plan(state: SessionState) -> Transition:
    if not (state.plan_to_file and state.plan_auto_write):
        return Transition(state)
    content = render_plan_markdown(state.plan.steps)
    return Transition(state, (SavePlan(resolve_plan_path(state, ""), content, automatic=True),))


def _on_plan_saved(state: SessionState, message: PlanSaved) -> Transition:
    if message.automatic:
        return Transition(replace(state, status="Plan auto-saved"))
    return Transition(_notice(state, f"plan saved to {display_plan_path(state, message.path)}"))


def resolve_plan_path(state: SessionState, custom: str) -> str:
    """Absolute plan path; relative paths are taken from the project directory."""

    target = custom.strip() or state.plan_file.strip() or "PLAN.md"
    if os.path.isabs(target) or not state.project_path:
        return os.path.normpath(target)
    return os.path.normpath(os.path.join(state.project_path, target))


def display_plan_path(state: SessionState, resolved: str) -> str:
    if state.project_path:
        relative = os.path.relpath(resolved, state.project_path)
        if not relative.startswith("..") and relative != ".":
            return relative
    return resolved


def _parse_index(raw: str, total: int) -> int | None:
    try:
        index = int(raw)
    except ValueError:
        return None
    if index < 1 or index > total:
        return None
    return index - 1


def _set_plan_mode(state: SessionState, mode: PlanMode) -> Transition:
    label = mode.value.upper()
    if state.plan.mode is mode:
        return Transition(_notice(state, f"already in {label} mode"))
    state = replace(state, plan=replace(state.plan, mode=mode), status=f"Switched to {label} mode")
    return Transition(_notice(state, f"switched to {label} mode"))


def _status_report(state: SessionState) -> SessionState:
    lines = [
        f"provider: {state.provider or 'none'} · model: {state.model or 'the provider default'}",
        f"plan mode: {state.plan.mode.value.upper()}",
    ]
    if state.stream is not None:
        lines.append(f"streaming: response {state.stream.stream_id}")
    if state.foreground is not None:
        lines.append(f"foreground: {state.foreground}")
    jobs = summarize_jobs(state.jobs)
    if jobs:
        lines.append(jobs)
    if state.status:
        lines.append(f"status: {state.status}")
    return _append(state, *lines)


# -- helpers ------------------------------------------------------------------


def _select_provider(state: SessionState, query: str) -> SessionState | None:
    wanted = query.strip().lower()
    if not wanted:
        return None
    for info in state.providers:
        if info.name.lower() == wanted or info.kind.lower() == wanted:
            return _use_provider(state, info, info.default_model)
    return None


def _use_provider(state: SessionState, info: ProviderInfo, model: str) -> SessionState:
    text = f"Using {model or 'the provider default'} via {info.name}"
    state = replace(state, provider=info.name, model=model, status=text)
    return _append(state, text)


def _provider_prompt(providers: tuple[ProviderInfo, ...]) -> str:
    if not providers:
        return "No providers are currently enabled."
    names = ", ".join(f"{info.name} ({info.kind})" for info in providers)
    return f"Select a provider with /provider <name>: {names}"


def _append(state: SessionState, *lines: str) -> SessionState:
    return replace(state, transcript=(*state.transcript, *lines))


def _notice(state: SessionState, text: str) -> SessionState:
    return _append(state, f"{APP_LABEL}: {text}")


_HANDLERS: dict[type[Message], Callable[[SessionState, Any], Transition]] = {
    JobEventReceived: _on_job_event,
    JobsReconciled: _on_jobs_reconciled,
    ForegroundFinished: _on_foreground_finished,
    JobRejected: _on_job_rejected,
    JobCancelAcknowledged: _on_job_cancel_ack,
    ForegroundCancelAcknowledged: _on_foreground_cancel_ack,
    StreamChunkReceived: _on_stream_chunk,
    CatalogResultReceived: _on_catalog_result,
    PersistenceFailed: _on_persistence_failed,
    PlanSaved: _on_plan_saved,
    HistorySaved: _on_history_saved,
    SubmitText: _on_submit,
    RecallPrompt: _on_recall_prompt,
    CancelRequested: _on_cancel_requested,
    MoveCatalogSelection: _on_move_selection,
    ActivateCatalogRow: _on_activate_row,
    CloseCatalog: _on_close_catalog,
    StartJob: _on_start_job,
    CancelJob: _on_cancel_job,
    PaletteOpened: _on_palette_opened,
    PaletteFilterChanged: _on_palette_filter,
    PaletteCycled: _on_palette_cycled,
    PaletteAccepted: _on_palette_accepted,
    PaletteClosed: _on_palette_closed,
    Shutdown: _on_shutdown,
}
