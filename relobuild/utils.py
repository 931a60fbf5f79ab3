"""Utility functions shared by the orchestrator and the container runtime."""

from __future__ import annotations

import os
import subprocess

from loguru import logger

from relobuild.errors import CommandError


def run_command(
    command: list[str],
    env: dict[str, str] | None = None,
    quiet: bool = False,
    check: bool = True,
    capture: bool = False,
) -> subprocess.CompletedProcess[str]:
    """Run a command with optional environment variables.

    Parameters
    ----------
    command: list[str]
        The command to execute as a list of strings.
    env: dict[str, str] | None
        Optional environment variables to set for the command.
    quiet: bool
        If True, suppress console output.
    check: bool
        If True, raise when the command exits with a non-zero status.
    capture: bool
        If True, capture stdout and stderr as text instead of streaming them.

    Returns
    -------
    subprocess.CompletedProcess[str]
        The finished process.

    Raises
    ------
    CommandError
        If the command cannot be started, or fails while `check` is set.

    """
    # Filter out empty strings from command
    command = [arg for arg in command if arg]
    logger.debug(f"Running command: {' '.join(command)}")

    # Prepare environment - merge with current environment
    final_env = os.environ.copy()
    if env:
        final_env.update(env)

    if capture:
        stdout = stderr = subprocess.PIPE
    elif quiet:
        stdout = stderr = subprocess.DEVNULL
    else:
        stdout = stderr = None

    try:
        result = subprocess.run(
            command,
            check=False,
            env=final_env,
            stdout=stdout,
            stderr=stderr,
            text=True,
        )
    except FileNotFoundError as e:
        msg = f"Command not found: {command[0]}"
        raise CommandError(command, None, msg) from e
    except OSError as e:
        msg = f"Could not execute {command[0]}: {e.strerror or e}"
        raise CommandError(command, None, msg) from e

    if check and result.returncode != 0:
        error = CommandError(command, result.returncode)
        if not quiet:
            logger.error(str(error))
        raise error

    return result
