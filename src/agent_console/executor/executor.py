"""Foreground/background shell execution with best-effort lifecycle events."""

from __future__ import annotations

import logging
import queue
import threading
from uuid import uuid4

from agent_console.cancellation import CancelToken
from agent_console.errors import ExecutorInputError, ForegroundBusyError, SpawnError
from agent_console.executor.models import Job, JobEvent, JobRequest, JobResult, JobStatus
from agent_console.executor.process import run_process
from agent_console.timeutil import utc_now

logger = logging.getLogger(__name__)

DEFAULT_EVENT_BUFFER_SIZE = 32


class JobExecutor:
    """Runs shell commands in an exclusive foreground slot or as tracked background jobs.

    The lock only guards bookkeeping (foreground slot, job registry, cancel map).
    Spawning, waiting and output capture run outside of it.

    ``events()`` is best-effort: publication never blocks and an
    event is dropped when the buffer is full. ``active_jobs()`` is the
    authoritative view that consumers reconcile against.
    """

    def __init__(self, *, event_buffer_size: int = DEFAULT_EVENT_BUFFER_SIZE) -> None:
        self._lock = threading.Lock()
        self._foreground: CancelToken | None = None
        self._jobs: dict[str, Job] = {}
        self._cancels: dict[str, CancelToken] = {}
        self._events: queue.Queue[JobEvent] = queue.Queue(maxsize=max(1, event_buffer_size))

    def events(self) -> queue.Queue[JobEvent]:
        """Bounded lifecycle event queue (start and terminal event per job)."""

        return self._events

    def run(
        self,
        request: JobRequest,
        token: CancelToken | None = None,
    ) -> tuple[JobResult, str | None]:
        """Execute ``request``; returns ``(result, job_id)``.

        Foreground requests block and return ``job_id=None``. Background requests
        return immediately with an empty result and a fresh job id.
        """

        if not request.command.strip():
            raise ExecutorInputError("command is required")
        if request.background:
            return JobResult(), self._start_background(request)
        return self._run_foreground(request, token), None

    def cancel_foreground(self) -> bool:
        """Cancel and clear the foreground slot; ``False`` when nothing is running."""

        with self._lock:
            token = self._foreground
            self._foreground = None
        if token is None:
            return False
        token.cancel()
        logger.info("Foreground command canceled")
        return True

    def cancel_job(self, job_id: str) -> bool:
        """Cancel a background job; ``True`` only for the first call per id."""

        with self._lock:
            token = self._cancels.pop(job_id, None)
        if token is None:
            return False
        token.cancel()
        logger.info("Background job %s cancel requested", job_id)
        return True

    def active_jobs(self) -> list[Job]:
        """Snapshot of every known job, terminal or not, oldest first."""

        with self._lock:
            jobs = [job.snapshot() for job in self._jobs.values()]
        return sorted(jobs, key=lambda job: job.started_at)

    def foreground_active(self) -> bool:
        with self._lock:
            return self._foreground is not None

    def shutdown(self) -> None:
        """Cancel the foreground command and every running background job."""

        self.cancel_foreground()
        with self._lock:
            tokens = list(self._cancels.values())
            self._cancels.clear()
        for token in tokens:
            token.cancel(reason="shutdown")

    def _run_foreground(self, request: JobRequest, parent: CancelToken | None) -> JobResult:
        token = parent.child() if parent is not None else CancelToken()
        with self._lock:
            if self._foreground is not None:
                raise ForegroundBusyError("a foreground command is already running")
            self._foreground = token

        logger.info("Foreground command started: %s", " ".join(request.argv))
        try:
            outcome = run_process(request.argv, workdir=request.workdir, token=token)
        finally:
            with self._lock:
                if self._foreground is token:
                    self._foreground = None

        logger.info(
            "Foreground command finished: exit=%d canceled=%s",
            outcome.exit_code,
            outcome.canceled,
        )
        return JobResult(
            output=outcome.output,
            exit_code=outcome.exit_code,
            canceled=outcome.canceled,
        )

    def _start_background(self, request: JobRequest) -> str:
        job_id = str(uuid4())
        job = Job(
            job_id=job_id,
            command=request.command,
            args=tuple(request.args),
            workdir=request.workdir,
            started_at=utc_now(),
        )
        token = CancelToken()

        with self._lock:
            self._jobs[job_id] = job
            self._cancels[job_id] = token
            started = job.snapshot()

        self._emit(started)
        worker = threading.Thread(
            target=self._run_background,
            args=(job, request, token),
            daemon=True,
            name=f"job-{job.short_id}",
        )
        worker.start()
        logger.info("Background job %s started: %s", job_id, job.label)
        return job_id

    def _run_background(self, job: Job, request: JobRequest, token: CancelToken) -> None:
        exit_code = -1
        output = ""
        error = ""
        canceled = False
        try:
            outcome = run_process(request.argv, workdir=request.workdir, token=token)
        except SpawnError as spawn_error:
            error = str(spawn_error)
        except Exception as unexpected:
            logger.exception("Background job %s crashed", job.job_id)
            error = f"executor error: {unexpected}"
        else:
            exit_code = outcome.exit_code
            output = outcome.output
            canceled = outcome.canceled
            if canceled:
                error = "canceled"
            elif exit_code != 0:
                error = f"exit status {exit_code}"

        with self._lock:
            if job.status is JobStatus.RUNNING:
                job.output = output
                job.exit_code = exit_code
                job.error = error
                job.canceled = canceled
                job.ended_at = utc_now()
                job.status = JobStatus.SUCCESS if not error else JobStatus.FAILED
            self._cancels.pop(job.job_id, None)
            finished = job.snapshot()

        logger.info(
            "Background job %s finished: status=%s exit=%d",
            job.job_id,
            finished.status.value,
            finished.exit_code,
        )
        self._emit(finished)

    def _emit(self, job: Job) -> None:
        try:
            self._events.put_nowait(JobEvent(job=job))
        except queue.Full:
            logger.debug("Job event dropped (buffer full): %s %s", job.job_id, job.status.value)
