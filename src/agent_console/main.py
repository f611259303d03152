"""CLI entrypoint for agent-console."""

import logging
import shlex
from collections.abc import Iterable
from pathlib import Path

import rich_click as click

from agent_console import __version__
from agent_console.controllers import (
    ChatCommand,
    ConsoleController,
    ExecCommand,
    HistoryListCommand,
    ModelsCommand,
)
from agent_console.errors import AgentConsoleError

click.rich_click.USE_MARKDOWN = True
CONSOLE_CONTROLLER = ConsoleController(echo=click.echo)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@click.group()
@click.version_option(version=__version__, prog_name="agent-console")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging level for diagnostics written to stderr.",
)
def agent_console(log_level: str) -> None:
    """Terminal session engine for chat providers and shell jobs."""

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@agent_console.command("chat")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--project",
    "project_path",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Project directory for jobs and plan files. Defaults to the current directory.",
)
@click.option("--provider", default=None, help="Provider name or kind to start with.")
@click.option("--resume", "resume_id", default=None, help="Session id to continue.")
def chat(
    db_path: Path | None,
    project_path: Path | None,
    provider: str | None,
    resume_id: str | None,
) -> None:
    """Interactive session: one prompt or `/command` per line.

    Type `:cancel` to interrupt the running command or response, `:q` to quit.
    """

    try:
        CONSOLE_CONTROLLER.chat(
            ChatCommand(
                db_path=db_path,
                project_path=project_path,
                provider=provider,
                resume_id=resume_id,
            ),
        )
    except (AgentConsoleError, ValueError) as error:
        raise click.ClickException(str(error)) from error


@agent_console.command("exec")
@click.argument("command_line", nargs=-1, required=True)
@click.option(
    "--workdir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Working directory for the command.",
)
@click.option(
    "--background",
    is_flag=True,
    default=False,
    help="Run as a tracked background job and follow its lifecycle events.",
)
def exec_command(command_line: tuple[str, ...], workdir: Path | None, background: bool) -> None:
    """Run a shell command through the job executor."""

    argv = list(command_line)
    if len(argv) == 1:
        argv = shlex.split(argv[0])
    if not argv:
        raise click.UsageError("command is required")
    try:
        result = CONSOLE_CONTROLLER.run_exec(
            ExecCommand(
                command=argv[0],
                args=tuple(argv[1:]),
                workdir=workdir,
                background=background,
            ),
        )
    except AgentConsoleError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(result.lines)
    if result.exit_code != 0:
        raise click.exceptions.Exit(result.exit_code if result.exit_code > 0 else 1)


@agent_console.command("models")
@click.option("--provider", default=None, help="Only list models of this provider (name or kind).")
def models(provider: str | None) -> None:
    """List provider models concurrently, applying the configured whitelists."""

    try:
        _emit_lines(CONSOLE_CONTROLLER.list_models(ModelsCommand(provider=provider)))
    except ValueError as error:
        raise click.ClickException(str(error)) from error


@agent_console.command("history")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--project", default=None, help="Only sessions of this project path.")
@click.option(
    "--limit",
    type=click.IntRange(min=1, max=500),
    default=20,
    show_default=True,
    help="How many sessions to print.",
)
def history(db_path: Path | None, project: str | None, limit: int) -> None:
    """List saved chat sessions, most recent first."""

    try:
        lines = CONSOLE_CONTROLLER.list_history(
            HistoryListCommand(db_path=db_path, project=project, limit=limit),
        )
    except AgentConsoleError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


def _emit_lines(lines: Iterable[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    agent_console()
