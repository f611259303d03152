"""Typed messages flowing into the session loop and commands flowing out of it.

Producers (executor pump, stream readers, catalog fetches, foreground runners,
the presentation layer) only ever create these values and post them. The
session transitions turn each inbound message into a new state plus a list of
outbound commands that the loop executes.
"""

from __future__ import annotations

from dataclasses import dataclass

from agent_console.catalog import CatalogResult
from agent_console.executor.models import Job, JobRequest, JobResult
from agent_console.history import SessionRecord
from agent_console.providers.base import ChatRequest, StreamChunk


class Message:
    """Base class for inbound session messages."""


class Command:
    """Base class for outbound commands returned by transitions."""


# -- producer messages --------------------------------------------------------


@dataclass(slots=True, frozen=True)
class JobEventReceived(Message):
    """Lifecycle event taken off the executor's best-effort queue."""

    job: Job


@dataclass(slots=True, frozen=True)
class JobsReconciled(Message):
    """Authoritative executor snapshot used to repair missed events."""

    jobs: tuple[Job, ...]


@dataclass(slots=True, frozen=True)
class ForegroundFinished(Message):
    label: str
    result: JobResult | None = None
    error: str | None = None


@dataclass(slots=True, frozen=True)
class StreamChunkReceived(Message):
    stream_id: int
    chunk: StreamChunk


@dataclass(slots=True, frozen=True)
class JobRejected(Message):
    """The executor refused a job request (empty command, busy foreground slot)."""

    label: str
    error: str


@dataclass(slots=True, frozen=True)
class CatalogResultReceived(Message):
    result: CatalogResult


@dataclass(slots=True, frozen=True)
class PersistenceFailed(Message):
    text: str


@dataclass(slots=True, frozen=True)
class PlanSaved(Message):
    path: str
    automatic: bool = False


@dataclass(slots=True, frozen=True)
class HistorySaved(Message):
    record: SessionRecord


@dataclass(slots=True, frozen=True)
class JobCancelAcknowledged(Message):
    job_id: str
    accepted: bool


@dataclass(slots=True, frozen=True)
class ForegroundCancelAcknowledged(Message):
    accepted: bool


# -- user messages ------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class SubmitText(Message):
    text: str


@dataclass(slots=True, frozen=True)
class CancelRequested(Message):
    """Escape key: dismiss a question, cancel a foreground job or stream, else close drawers."""


@dataclass(slots=True, frozen=True)
class RecallPrompt(Message):
    """Fill the draft with an earlier prompt; negative ``delta`` walks back in time."""

    delta: int = -1


@dataclass(slots=True, frozen=True)
class MoveCatalogSelection(Message):
    delta: int


@dataclass(slots=True, frozen=True)
class ActivateCatalogRow(Message):
    """Use the selected catalog row as the active provider/model."""


@dataclass(slots=True, frozen=True)
class CloseCatalog(Message):
    pass


@dataclass(slots=True, frozen=True)
class StartJob(Message):
    request: JobRequest


@dataclass(slots=True, frozen=True)
class CancelJob(Message):
    job_id: str


@dataclass(slots=True, frozen=True)
class PaletteOpened(Message):
    pass


@dataclass(slots=True, frozen=True)
class PaletteFilterChanged(Message):
    text: str


@dataclass(slots=True, frozen=True)
class PaletteCycled(Message):
    delta: int


@dataclass(slots=True, frozen=True)
class PaletteAccepted(Message):
    pass


@dataclass(slots=True, frozen=True)
class PaletteClosed(Message):
    pass


@dataclass(slots=True, frozen=True)
class Shutdown(Message):
    pass


# -- outbound commands --------------------------------------------------------


@dataclass(slots=True, frozen=True)
class BeginStream(Command):
    stream_id: int
    provider: str
    request: ChatRequest


@dataclass(slots=True, frozen=True)
class CancelStream(Command):
    stream_id: int


@dataclass(slots=True, frozen=True)
class RequestNextChunk(Command):
    stream_id: int


@dataclass(slots=True, frozen=True)
class FetchCatalog(Command):
    generation: int
    providers: tuple[str, ...]


@dataclass(slots=True, frozen=True)
class RunJob(Command):
    request: JobRequest


@dataclass(slots=True, frozen=True)
class CancelForegroundJob(Command):
    pass


@dataclass(slots=True, frozen=True)
class CancelBackgroundJob(Command):
    job_id: str


@dataclass(slots=True, frozen=True)
class SaveHistory(Command):
    record: SessionRecord


@dataclass(slots=True, frozen=True)
class SavePlan(Command):
    path: str
    content: str
    automatic: bool = False


@dataclass(slots=True, frozen=True)
class StopLoop(Command):
    pass
