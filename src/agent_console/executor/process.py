"""Subprocess spawning, cancellable waiting and termination."""

from __future__ import annotations

import contextlib
import os
import subprocess
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path

from agent_console.cancellation import CancelToken
from agent_console.errors import SpawnError

_POLL_INTERVAL_SECONDS = 0.05
_TERMINATE_GRACE_SECONDS = 2.0


@dataclass(slots=True)
class ProcessOutcome:
    """Exit status and combined stdout/stderr of a finished process."""

    exit_code: int
    output: str
    canceled: bool


def run_process(
    argv: list[str],
    *,
    workdir: str | None,
    token: CancelToken,
) -> ProcessOutcome:
    """Run ``argv`` to completion unless ``token`` is canceled first.

    Output goes to an anonymous temporary file so long-running commands never
    block on a full pipe while we poll. Raises :class:`SpawnError` when the
    process cannot be started at all.
    """

    cwd = os.path.normpath(workdir) if workdir else None
    with tempfile.TemporaryFile("w+b") as output_handle:
        try:
            process = subprocess.Popen(  # noqa: S603
                argv,
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                stdout=output_handle,
                stderr=subprocess.STDOUT,
            )
        except FileNotFoundError as error:
            missing = argv[0] if cwd is None or Path(cwd).is_dir() else cwd
            raise SpawnError(f"not found: {missing}", command=argv[0]) from error
        except PermissionError as error:
            raise SpawnError(f"permission denied: {argv[0]}", command=argv[0]) from error
        except OSError as error:
            raise SpawnError(f"failed to start {argv[0]}: {error}", command=argv[0]) from error

        canceled = False
        while True:
            returncode = process.poll()
            if returncode is not None:
                break
            if token.wait(_POLL_INTERVAL_SECONDS):
                returncode = process.poll()
                if returncode is None:
                    canceled = True
                    returncode = terminate_process(process)
                if returncode is None:
                    returncode = -1
                break

        output_handle.seek(0)
        output = output_handle.read().decode("utf-8", errors="replace")

    return ProcessOutcome(exit_code=returncode, output=output, canceled=canceled)


def terminate_process(
    process: subprocess.Popen[bytes],
    *,
    grace_seconds: float = _TERMINATE_GRACE_SECONDS,
) -> int | None:
    """Stop ``process`` politely, then forcefully; return its exit code.

    Each step (terminate, then kill) gets ``grace_seconds`` to take effect.
    ``None`` means the process survived both.
    """

    for stop in (process.terminate, process.kill):
        if process.poll() is not None:
            break
        with contextlib.suppress(ProcessLookupError):
            stop()
        deadline = time.monotonic() + grace_seconds
        while process.poll() is None and time.monotonic() < deadline:
            time.sleep(_POLL_INTERVAL_SECONDS)
    return process.returncode
