"""Thin subprocess helpers for local and SSH commands."""

import logging
import subprocess
from typing import Mapping, Optional, Sequence

from ..errors import CommandError

logger = logging.getLogger("commands")

DEFAULT_COMMAND_TIMEOUT = 30.0


def run_command(
    argv: Sequence[str],
    *,
    input_text: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    timeout: float = DEFAULT_COMMAND_TIMEOUT,
    merge_stderr: bool = False,
) -> str:
    """Run ``argv`` and return its trimmed output.

    Raises:
        CommandError: If the binary is missing, times out or exits non-zero
    """
    try:
        proc = subprocess.run(
            list(argv),
            input=input_text,
            env=dict(env) if env is not None else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT if merge_stderr else subprocess.PIPE,
            text=True,
            timeout=timeout,
            check=False,
        )
    except (FileNotFoundError, subprocess.SubprocessError, OSError) as exc:
        logger.error("command.failed", extra={"argv0": argv[0], "error": str(exc)})
        raise CommandError(f"Command '{argv[0]}' could not run: {exc}") from exc

    if proc.returncode != 0:
        output = (proc.stdout or "") + (proc.stderr or "")
        logger.error("command.exit", extra={"argv0": argv[0], "code": proc.returncode})
        raise CommandError(
            f"Command '{argv[0]}' failed with exit code {proc.returncode}",
            data={"exit_code": proc.returncode, "output": output.strip()},
        )

    logger.debug("command.ok", extra={"argv0": argv[0]})
    return (proc.stdout or "").strip()


def ssh_command(user: str, host: str, command: str, *, timeout: float = DEFAULT_COMMAND_TIMEOUT) -> str:
    """Run one shell command on ``user@host``; stderr is folded into the output."""
    return run_command(["ssh", f"{user}@{host}", command], timeout=timeout, merge_stderr=True)
