"""Exception hierarchy shared by the session engine components."""

from __future__ import annotations


class AgentConsoleError(RuntimeError):
    """Base class for errors raised by agent-console components."""


class ExecutorError(AgentConsoleError):
    """Job executor failure."""


class ExecutorInputError(ExecutorError, ValueError):
    """Rejected job request (for example an empty command)."""


class SpawnError(ExecutorError):
    """Process could not be started: binary missing, permission denied, bad workdir."""

    def __init__(self, message: str, *, command: str) -> None:
        super().__init__(message)
        self.command = command


class ForegroundBusyError(ExecutorError):
    """A foreground command already occupies the exclusive slot."""


class ProviderError(AgentConsoleError):
    """Provider request could not be started or was rejected upstream."""

    def __init__(self, message: str, *, provider: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class CatalogTimeoutError(AgentConsoleError):
    """Provider did not list its models within the catalog deadline."""


class HistoryError(AgentConsoleError):
    """Session history could not be read or written."""
