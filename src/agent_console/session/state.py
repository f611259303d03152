"""Immutable session state owned by the session loop."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from agent_console.catalog import CatalogRow
from agent_console.executor.models import Job, JobStatus
from agent_console.history import SessionRecord

APP_LABEL = "agent"
PENDING_TEXT = "…"


class PlanMode(str, Enum):
    """Planning badge cycled with ``/plan mode``, ``/auto`` and ``/off``."""

    PLAN = "plan"
    AUTO = "auto"
    OFF = "off"

    def next(self) -> PlanMode:
        order = (PlanMode.PLAN, PlanMode.AUTO, PlanMode.OFF)
        return order[(order.index(self) + 1) % len(order)]


@dataclass(slots=True, frozen=True)
class ProviderInfo:
    """What the transitions need to know about a registered provider."""

    name: str
    kind: str
    default_model: str = ""


@dataclass(slots=True, frozen=True)
class BlockRef:
    """Position of a rendered block inside the transcript."""

    start: int
    length: int


@dataclass(slots=True, frozen=True)
class StreamBlock:
    """The single in-progress assistant block."""

    stream_id: int
    title: str
    text: str = ""
    ref: BlockRef = BlockRef(0, 0)


@dataclass(slots=True, frozen=True)
class PlanStep:
    text: str
    done: bool = False


@dataclass(slots=True, frozen=True)
class PlanState:
    steps: tuple[PlanStep, ...] = ()
    mode: PlanMode = PlanMode.PLAN
    visible: bool = False


@dataclass(slots=True, frozen=True)
class CatalogView:
    """Model picker drawer fed by catalog results of one generation."""

    visible: bool = False
    rows: tuple[CatalogRow, ...] = ()
    loading: frozenset[str] = frozenset()
    selection: int = 0
    generation: int = 0


@dataclass(slots=True, frozen=True)
class PaletteState:
    visible: bool = False
    filter: str = ""
    matches: tuple[str, ...] = ()
    selection: int = -1
    selected: str = ""


@dataclass(slots=True, frozen=True)
class QuestionPrompt:
    """A pending /ask question; the next submitted text answers it."""

    prompt: str
    options: tuple[str, ...] = ()

    def resolve(self, answer: str) -> str:
        """Map an option number to its text; anything else is a free-form answer."""

        if answer.isdecimal() and 1 <= int(answer) <= len(self.options):
            return self.options[int(answer) - 1]
        return answer


@dataclass(slots=True, frozen=True)
class SessionState:
    """Everything the presentation layer renders.

    Only the session loop produces new instances; every other thread sees
    read-only snapshots.
    """

    transcript: tuple[str, ...] = ()
    stream: StreamBlock | None = None
    jobs: dict[str, Job] = field(default_factory=dict, hash=False)
    foreground: str | None = None
    plan: PlanState = PlanState()
    catalog: CatalogView = CatalogView()
    palette: PaletteState = PaletteState()
    providers: tuple[ProviderInfo, ...] = ()
    provider: str | None = None
    model: str = ""
    status: str = ""
    draft: str = ""
    prompts: tuple[str, ...] = ()
    recall: int | None = None
    question: QuestionPrompt | None = None
    record: SessionRecord | None = None
    project_path: str = ""
    plan_file: str = "PLAN.md"
    plan_to_file: bool = False
    plan_auto_write: bool = False
    next_stream_id: int = 1
    closed: bool = False

    @property
    def streaming(self) -> bool:
        return self.stream is not None

    def job(self, job_id: str) -> Job | None:
        return self.jobs.get(job_id)

    def provider_info(self, name: str | None) -> ProviderInfo | None:
        if name is None:
            return None
        wanted = name.strip().lower()
        for info in self.providers:
            if info.name.lower() == wanted:
                return info
        return None


def block_lines(title: str, text: str) -> tuple[str, ...]:
    """Render a boxed transcript block."""

    body = text.split("\n")
    width = max([len(title), *(len(line) for line in body)])
    lines = [f"┌─ {title}"]
    lines.extend(f"│ {line.ljust(width)}" for line in body)
    lines.append("└" + "─" * (width + 2))
    return tuple(lines)


def replace_lines(
    transcript: tuple[str, ...],
    ref: BlockRef,
    lines: tuple[str, ...],
) -> tuple[tuple[str, ...], BlockRef]:
    """Swap the block at ``ref`` for ``lines``; lines after it shift."""

    start = min(ref.start, len(transcript))
    end = min(start + ref.length, len(transcript))
    updated = transcript[:start] + lines + transcript[end:]
    return updated, BlockRef(start, len(lines))


def summarize_jobs(jobs: dict[str, Job]) -> str:
    """One-line job counter shown in the status area ('' when there are none)."""

    if not jobs:
        return ""
    running = sum(1 for job in jobs.values() if job.status is JobStatus.RUNNING)
    done = sum(1 for job in jobs.values() if job.status is JobStatus.SUCCESS)
    failed = sum(1 for job in jobs.values() if job.status is JobStatus.FAILED)
    return f"jobs: {running} running · {done} done · {failed} failed (/jobs)"


def job_event_line(job: Job) -> str:
    prefix = f"[job {job.short_id}]"
    if job.status is JobStatus.RUNNING:
        return f"{prefix} started {job.label}"
    if job.status is JobStatus.SUCCESS:
        return f"{prefix} completed (exit {job.exit_code})"
    line = f"{prefix} failed (exit {job.exit_code})"
    if job.error:
        line += f": {job.error}"
    return line


def render_plan_markdown(steps: tuple[PlanStep, ...]) -> str:
    """Plan file contents written by ``/plan save``."""

    lines = ["# Plan", ""]
    if not steps:
        lines.append("_No steps yet_")
    for index, step in enumerate(steps, start=1):
        box = "[x]" if step.done else "[ ]"
        lines.append(f"{index}. {box} {step.text}")
    return "\n".join(lines) + "\n"


def render_plan_drawer(state: SessionState) -> list[str]:
    lines = ["Plan:"]
    for index, step in enumerate(state.plan.steps, start=1):
        box = "[x]" if step.done else "[ ]"
        lines.append(f"  {index}. {box} {step.text}")
    if not state.plan.steps:
        lines.append("  (no steps yet, try /plan add)")
    if state.plan_to_file:
        mode = "auto" if state.plan_auto_write else "manual"
        lines.append(f"  Plan file: {state.plan_file} ({mode})")
    lines.append("  /plan save [path] writes the plan to disk")
    return lines
