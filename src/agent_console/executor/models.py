"""Domain models for shell job execution."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum


class JobStatus(str, Enum):
    """Job lifecycle states. ``SUCCESS`` and ``FAILED`` are terminal."""

    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.RUNNING


@dataclass(slots=True)
class JobRequest:
    """Shell execution request coming from the user or an agent tool call."""

    command: str
    args: tuple[str, ...] = ()
    workdir: str | None = None
    background: bool = False

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.args]


@dataclass(slots=True)
class JobResult:
    """Outcome of a foreground execution.

    ``exit_code`` is plain data: a nonzero exit is not an executor error.
    ``canceled`` marks runs stopped through cancellation, which are reported
    separately from ordinary failures.
    """

    output: str = ""
    exit_code: int = 0
    canceled: bool = False


@dataclass(slots=True)
class Job:
    """Background job record owned by the executor."""

    job_id: str
    command: str
    args: tuple[str, ...]
    workdir: str | None
    started_at: datetime
    status: JobStatus = JobStatus.RUNNING
    ended_at: datetime | None = None
    exit_code: int = 0
    output: str = ""
    error: str = ""
    canceled: bool = False

    def snapshot(self) -> Job:
        """Detached copy safe to hand to other threads."""

        return replace(self)

    @property
    def short_id(self) -> str:
        return self.job_id[:8]

    @property
    def label(self) -> str:
        return " ".join((self.command, *self.args))


@dataclass(slots=True, frozen=True)
class JobEvent:
    """Lifecycle notification published on the best-effort event queue."""

    job: Job
