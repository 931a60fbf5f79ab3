"""Container runtime interface used by the build orchestrator.

The orchestrator only needs a handful of lifecycle primitives from the
container runtime. They are described by the `ContainerRuntime` protocol and
implemented for Docker by shelling out to the ``docker`` CLI.
"""

from __future__ import annotations

import shutil
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from relobuild.constants import KEEPALIVE_COMMAND
from relobuild.utils import run_command


class ContainerRuntime(Protocol):
    """Protocol defining the container primitives the orchestrator relies on."""

    def is_available(self) -> bool:
        """Check whether the runtime is installed and reachable."""
        ...

    def exists(self, name: str) -> bool:
        """Check whether a container with this exact name exists, running or not."""
        ...

    def remove(self, name: str, force: bool = False) -> None:
        """Remove a container, killing it first when forced."""
        ...

    def run_detached(
        self,
        name: str,
        image: str,
        mounts: Sequence[tuple[Path, Path]] = (),
        privileged: bool = False,
        command: Sequence[str] = KEEPALIVE_COMMAND,
    ) -> None:
        """Start a named container in the background."""
        ...

    def copy_into(self, name: str, source: Path, target: str) -> None:
        """Copy a host file to a path inside the container."""
        ...

    def exec(self, name: str, command: Sequence[str], tty: bool = False) -> int:
        """Run a command inside the container and return its exit status."""
        ...

    def stop(self, name: str) -> None:
        """Stop a running container."""
        ...


class DockerRuntime:
    """Container runtime backed by the ``docker`` command-line client."""

    def __init__(self, executable: str = "docker") -> None:
        self.executable = executable

    def _docker(self, *args: str) -> list[str]:
        return [self.executable, *args]

    def is_available(self) -> bool:
        return shutil.which(self.executable) is not None

    def exists(self, name: str) -> bool:
        result = run_command(
            self._docker("ps", "-a", "--filter", f"name=^/{name}$", "--format", "{{.Names}}"),
            capture=True,
        )
        return name in result.stdout.split()

    def remove(self, name: str, force: bool = False) -> None:
        run_command(self._docker("rm", "-f" if force else "", name), quiet=True)

    def run_detached(
        self,
        name: str,
        image: str,
        mounts: Sequence[tuple[Path, Path]] = (),
        privileged: bool = False,
        command: Sequence[str] = KEEPALIVE_COMMAND,
    ) -> None:
        args = ["run", "--name", name]
        if privileged:
            args.append("--privileged")
        for host_path, container_path in mounts:
            args += ["-v", f"{host_path}:{container_path}"]
        args += ["-d", image, *command]
        run_command(self._docker(*args), quiet=True)

    def copy_into(self, name: str, source: Path, target: str) -> None:
        run_command(self._docker("cp", str(source), f"{name}:{target}"))

    def exec(self, name: str, command: Sequence[str], tty: bool = False) -> int:
        args = ["exec"]
        if tty:
            args.append("-t")
        args += [name, *command]
        return run_command(self._docker(*args), check=False).returncode

    def stop(self, name: str) -> None:
        run_command(self._docker("stop", name), quiet=True)
