"""Shell job execution: foreground slot, background jobs, lifecycle events."""

from agent_console.executor.executor import DEFAULT_EVENT_BUFFER_SIZE, JobExecutor
from agent_console.executor.models import Job, JobEvent, JobRequest, JobResult, JobStatus

__all__ = [
    "DEFAULT_EVENT_BUFFER_SIZE",
    "Job",
    "JobEvent",
    "JobExecutor",
    "JobRequest",
    "JobResult",
    "JobStatus",
]
