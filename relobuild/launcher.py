#!/usr/bin/env python3
"""Relocatable launcher for an installed tool tree.

This file is copied verbatim to the root of an installed tree as
``<root>/<tool>``. On every invocation it works out where it lives on disk,
points the tool at the template and helper directories beside it, and hands
control to the real binary under ``<root>/bin``. Nothing is baked in at
install time, so the whole tree can be moved or mounted anywhere.

The launcher runs on hosts that do not have this package installed, so it
must only use the standard library.
"""

from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

EXIT_NOT_FOUND = 127
EXIT_NOT_EXECUTABLE = 126


def resolve_self_dir(script: str | os.PathLike[str]) -> Path:
    """Return the canonical directory holding the launcher, with symlinks followed.

    Parameters
    ----------
    script : str | os.PathLike[str]
        Path of the running launcher, as invoked

    Returns
    -------
    Path
        Directory of the real launcher file

    """
    return Path(os.path.realpath(script)).parent


def tool_name(script: str | os.PathLike[str]) -> str:
    """Return the tool name, which is the launcher's own real file name."""
    return Path(os.path.realpath(script)).name


def env_prefix(tool: str) -> str:
    """Return the environment variable prefix for a tool, e.g. ``GIT`` for ``git``."""
    return tool.upper().replace("-", "_").replace(".", "_")


def template_dir(self_dir: Path, tool: str) -> Path:
    return self_dir / "share" / f"{tool}-core" / "templates"


def exec_path(self_dir: Path, tool: str) -> Path:
    return self_dir / "libexec" / f"{tool}-core"


def binary_path(self_dir: Path, tool: str) -> Path:
    return self_dir / "bin" / tool


def launcher_environment(self_dir: Path, tool: str) -> dict[str, str]:
    """Build the environment additions for the delegated tool.

    Parameters
    ----------
    self_dir : Path
        Root of the installed tree
    tool : str
        Name of the tool

    Returns
    -------
    dict[str, str]
        ``<TOOL>_TEMPLATE_DIR`` and ``<TOOL>_EXEC_PATH`` pointing into the tree

    """
    prefix = env_prefix(tool)
    return {
        f"{prefix}_TEMPLATE_DIR": str(template_dir(self_dir, tool)),
        f"{prefix}_EXEC_PATH": str(exec_path(self_dir, tool)),
    }


def can_replace_process() -> bool:
    """Check whether the platform supports replacing the current process image."""
    return os.name == "posix" and hasattr(os, "execve")


def delegate(
    binary: Path,
    args: list[str],
    extra_env: dict[str, str],
    replace_process: bool | None = None,
) -> int:
    """Hand control to the real binary.

    With process replacement the call does not return: the binary takes over
    this process, so its exit status and signal handling are exactly its own.
    Without it the binary runs as a child and its exit status is returned.

    Parameters
    ----------
    binary : Path
        Binary to run; its existence is not checked beforehand
    args : list[str]
        Arguments passed through unmodified
    extra_env : dict[str, str]
        Variables added to the child's environment only
    replace_process : bool | None, optional
        Force or disable process replacement, by default chosen by platform

    Returns
    -------
    int
        Exit status of the binary when it ran as a child process

    Raises
    ------
    OSError
        If the binary is missing or cannot be executed

    """
    env = os.environ.copy()
    env.update(extra_env)

    if replace_process is None:
        replace_process = can_replace_process()

    if replace_process:
        os.execve(binary, [str(binary), *args], env)

    return subprocess.run([str(binary), *args], env=env, check=False).returncode


def main(argv: list[str] | None = None, script: str | None = None) -> int:
    """Run the launcher.

    Parameters
    ----------
    argv : list[str] | None, optional
        Arguments for the tool, by default ``sys.argv[1:]``
    script : str | None, optional
        Path of the launcher, by default this file

    Returns
    -------
    int
        Exit status of the tool, or 126/127 when it cannot be executed

    """
    args = sys.argv[1:] if argv is None else argv
    script = script or __file__

    self_dir = resolve_self_dir(script)
    tool = tool_name(script)
    binary = binary_path(self_dir, tool)

    try:
        return delegate(binary, args, launcher_environment(self_dir, tool))
    except FileNotFoundError as e:
        print(f"{tool}: cannot execute {binary}: {e.strerror}", file=sys.stderr)
        return EXIT_NOT_FOUND
    except PermissionError as e:
        print(f"{tool}: cannot execute {binary}: {e.strerror}", file=sys.stderr)
        return EXIT_NOT_EXECUTABLE


if __name__ == "__main__":
    sys.exit(main())
