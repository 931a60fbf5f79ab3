"""Test configuration and fixtures for the relocatable tool builder tests."""

from __future__ import annotations

import shutil
from collections.abc import Sequence
from pathlib import Path

import pytest

from relobuild.config import BuildConfig
from relobuild.constants import KEEPALIVE_COMMAND
from relobuild.errors import CommandError

FAKE_BINARY = """#!/bin/sh
echo "{tool} version {version}"
"""


class FakeRuntime:
    """In-memory container runtime that simulates the recipe on the host.

    The destination is bind-mounted at the same path in a real container, so
    the simulated recipe writes the installed tree straight to the host path.
    """

    def __init__(self, tool: str = "git") -> None:
        self.tool = tool
        self.available = True
        self.containers: set[str] = set()
        self.calls: list[tuple] = []
        self.recipe_exit = 0
        self.produce_binary = True
        self.fail_copy = False
        self.fail_stop = False

    def is_available(self) -> bool:
        return self.available

    def exists(self, name: str) -> bool:
        self.calls.append(("exists", name))
        return name in self.containers

    def remove(self, name: str, force: bool = False) -> None:
        self.calls.append(("remove", name, force))
        self.containers.discard(name)

    def run_detached(
        self,
        name: str,
        image: str,
        mounts: Sequence[tuple[Path, Path]] = (),
        privileged: bool = False,
        command: Sequence[str] = KEEPALIVE_COMMAND,
    ) -> None:
        self.calls.append(("run_detached", name, image, list(mounts), privileged))
        self.containers.add(name)

    def copy_into(self, name: str, source: Path, target: str) -> None:
        self.calls.append(("copy_into", name, source.name, target))
        if self.fail_copy:
            raise CommandError(["docker", "cp", str(source), f"{name}:{target}"], 1)

    def exec(self, name: str, command: Sequence[str], tty: bool = False) -> int:
        self.calls.append(("exec", name, list(command)))
        if command[0] == "bash":
            return self._run_recipe(version=command[2], destination=Path(command[3]))
        if command[0] == "rm":
            return 0
        return 0 if Path(command[0]).exists() else 127

    def stop(self, name: str) -> None:
        self.calls.append(("stop", name))
        if self.fail_stop:
            raise CommandError(["docker", "stop", name], 1)

    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]

    def _run_recipe(self, version: str, destination: Path) -> int:
        if self.recipe_exit:
            return self.recipe_exit

        # The recipe wipes the install path before rebuilding
        if destination.exists():
            for child in destination.iterdir():
                if child.is_dir() and not child.is_symlink():
                    shutil.rmtree(child)
                else:
                    child.unlink()

        if self.produce_binary:
            bin_dir = destination / "bin"
            bin_dir.mkdir(parents=True, exist_ok=True)
            binary = bin_dir / self.tool
            binary.write_text(FAKE_BINARY.format(tool=self.tool, version=version))
            binary.chmod(0o755)
            (destination / "libexec" / f"{self.tool}-core").mkdir(parents=True, exist_ok=True)
            (destination / "share" / f"{self.tool}-core" / "templates").mkdir(parents=True, exist_ok=True)
        return 0


@pytest.fixture
def destination(tmp_path: Path) -> Path:
    """Install destination that does not exist yet."""
    return tmp_path / "toolchain" / "git"


@pytest.fixture
def fake_runtime() -> FakeRuntime:
    """Container runtime double."""
    return FakeRuntime()


@pytest.fixture
def build_config(destination: Path) -> BuildConfig:
    """Configuration targeting the temporary destination with no overrides."""
    return BuildConfig(destination=destination, config_overrides=())


@pytest.fixture
def installed_tree(tmp_path: Path) -> Path:
    """An installed tree whose binary reports its environment and arguments.

    The binary prints the template dir, exec path and argument count, and
    exits with the status given as its first argument (3 when none is given).
    """
    root = tmp_path / "install"
    (root / "bin").mkdir(parents=True)
    (root / "libexec" / "git-core").mkdir(parents=True)
    (root / "share" / "git-core" / "templates").mkdir(parents=True)

    binary = root / "bin" / "git"
    binary.write_text(
        "#!/bin/sh\n"
        'echo "template=$GIT_TEMPLATE_DIR"\n'
        'echo "exec=$GIT_EXEC_PATH"\n'
        'echo "argc=$#"\n'
        'echo "args=$*"\n'
        'exit "${1:-3}"\n'
    )
    binary.chmod(0o755)
    return root
