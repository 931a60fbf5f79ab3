"""Build orchestration for a relocatable tool install.

The orchestrator turns a version and a destination into an installed tool
tree without polluting the host with build dependencies. It drives a
disposable container through a fixed sequence of steps:

ensure destination, acquire container, provision recipe and overrides,
execute recipe, verify, install launcher, tear down.

Teardown always runs once the container has been acquired, whether the
later steps succeed or not. Runs are re-entrant in sequence: a container
left behind by a crashed run is removed first, and the recipe wipes the
destination before rebuilding when overwriting is enabled.

Two runs must never target the same destination or container name at the
same time. The recursive pre-build cleanup makes concurrent runs unsafe and
nothing here guards against it.
"""

from __future__ import annotations

import os
import posixpath
import shutil
import stat
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import NamedTuple

from loguru import logger

from relobuild.config import BuildConfig, ConfigOverride
from relobuild.constants import RECIPE_FILE_NAME, VERSION_FLAG
from relobuild.errors import (
    BuildStepError,
    CommandError,
    ConfigurationError,
    DestinationExistsError,
    DestinationNotWritableError,
    PlatformUnavailableError,
    ProvisioningError,
    RelobuildError,
    VerificationError,
)
from relobuild.logging_utils import step_banner
from relobuild.recipe import write_recipe
from relobuild.runtime import ContainerRuntime, DockerRuntime
from relobuild.utils import run_command


class RunState(Enum):
    """Stages of an orchestration run, in order."""

    INIT = "init"
    DESTINATION_READY = "destination_ready"
    ENVIRONMENT_ACQUIRED = "environment_acquired"
    PROVISIONED = "provisioned"
    EXECUTED = "executed"
    VERIFIED = "verified"
    LAUNCHER_INSTALLED = "launcher_installed"
    TORN_DOWN = "torn_down"


class BuildEnvironment(NamedTuple):
    """A running disposable build container."""

    name: str
    image: str


class BuildReport:
    """Outcome of an orchestration run."""

    def __init__(self) -> None:
        """Initialize an empty report in the initial state."""
        self.states: list[RunState] = [RunState.INIT]
        self.warnings: list[str] = []
        self.succeeded: bool = False
        self.failed_step: str | None = None
        self.error: str | None = None
        self.binary_path: Path | None = None
        self.launcher_path: Path | None = None

    @property
    def state(self) -> RunState:
        """The most recent state reached."""
        return self.states[-1]


class Orchestrator:
    """Drives a disposable container to build and install one tool version."""

    def __init__(self, config: BuildConfig, runtime: ContainerRuntime | None = None) -> None:
        """Initialize the orchestrator.

        Parameters
        ----------
        config : BuildConfig
            Build configuration for this run
        runtime : ContainerRuntime | None, optional
            Container runtime, by default the Docker CLI

        """
        self.config = config
        self.runtime = runtime if runtime is not None else DockerRuntime()
        self.report = BuildReport()
        self._step = "init"

    def _advance(self, state: RunState) -> None:
        logger.debug(f"State: {self.report.state.value} -> {state.value}")
        self.report.states.append(state)

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.report.warnings.append(message)

    def recipe_target(self, recipe_file: Path) -> str:
        """Path of the recipe inside the container."""
        return posixpath.join(self.config.work_dir, recipe_file.name)

    ############################################################
    # Steps
    ###########################################################

    def preflight(self) -> None:
        """Validate the configuration before anything touches the filesystem.

        Raises
        ------
        ConfigurationError
            If the version or destination is unusable or an override file is missing
        DestinationExistsError
            If an install exists and overwriting is disabled

        """
        self._step = "preflight"
        config = self.config

        if not config.version.strip():
            msg = "Version must not be empty."
            raise ConfigurationError(msg)
        # The same path is mounted into the container, so it has to be absolute.
        if not str(config.destination).strip() or not config.destination.is_absolute():
            msg = f"Destination must be an absolute path, got '{config.destination}'."
            raise ConfigurationError(msg)

        missing = [str(o.source) for o in config.config_overrides if not o.source.is_file()]
        if missing:
            msg = f"Configuration override files not found: {', '.join(missing)}"
            raise ConfigurationError(msg)

        if not config.overwrite_existing and config.binary_path.exists():
            msg = f"An installation already exists at {config.destination} and overwriting is disabled."
            raise DestinationExistsError(msg)

    def ensure_destination(self, path: Path) -> None:
        """Create the destination directory tree if it does not exist.

        Parameters
        ----------
        path : Path
            Install destination

        Raises
        ------
        DestinationNotWritableError
            If the directory cannot be created or is not writable

        """
        self._step = "ensure destination"
        if not path.is_dir():
            logger.info(f"Creating toolchain directory at {path}...")
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            msg = f"Cannot create destination {path}: {e}"
            raise DestinationNotWritableError(msg) from e

        if not os.access(path, os.W_OK):
            msg = f"Destination {path} is not writable."
            raise DestinationNotWritableError(msg)

        self._advance(RunState.DESTINATION_READY)

    @contextmanager
    def acquire_environment(self, name: str, image: str) -> Iterator[BuildEnvironment]:
        """Start a fresh disposable container and tear it down on exit.

        A stale container with the same name, left over from a failed run,
        is force-removed first. The destination is bind-mounted at the same
        path inside the container so that paths baked into the build output
        stay valid on the host.

        Parameters
        ----------
        name : str
            Container name
        image : str
            Image to start the container from

        Yields
        ------
        BuildEnvironment
            The running container

        Raises
        ------
        PlatformUnavailableError
            If the container runtime is not installed

        """
        self._step = "acquire environment"
        if not self.runtime.is_available():
            msg = "Container runtime is not installed or not in PATH."
            raise PlatformUnavailableError(msg)

        try:
            if self.runtime.exists(name):
                logger.info(f"Removing existing container with name {name}...")
                self.runtime.remove(name, force=True)

            logger.info(f"Starting container {name} using image {image}...")
            destination = self.config.destination
            self.runtime.run_detached(
                name,
                image,
                mounts=[(destination, destination)],
                privileged=self.config.privileged,
            )
        except CommandError as e:
            raise BuildStepError(self._step, e.returncode, f"Could not start container {name}: {e}") from e

        env = BuildEnvironment(name, image)
        self._advance(RunState.ENVIRONMENT_ACQUIRED)
        try:
            yield env
        finally:
            self.teardown(env)

    def provision(self, env: BuildEnvironment, recipe_file: Path, *overrides: ConfigOverride) -> None:
        """Copy the recipe and configuration overrides into the container.

        Raises
        ------
        ProvisioningError
            If any copy fails

        """
        self._step = "provision"
        logger.info("Copying build recipe to container...")
        try:
            self.runtime.copy_into(env.name, recipe_file, self.recipe_target(recipe_file))
            for override in overrides:
                logger.info(f"Copying {override.source.name} to {override.target}...")
                self.runtime.copy_into(env.name, override.source, override.target)
        except CommandError as e:
            msg = f"Could not copy files into container {env.name}: {e}"
            raise ProvisioningError(msg) from e

        self._advance(RunState.PROVISIONED)

    def execute(self, env: BuildEnvironment, recipe_file: Path, version: str, destination: Path) -> int:
        """Run the recipe inside the container and wait for it to finish.

        Only the exit status of the recipe is looked at; its output is
        streamed to the terminal as it runs.

        Returns
        -------
        int
            The recipe exit status, always 0 on return

        Raises
        ------
        BuildStepError
            If the recipe exits with a non-zero status

        """
        self._step = "execute recipe"
        target = self.recipe_target(recipe_file)
        logger.info("Executing build recipe inside the container...")
        returncode = self.runtime.exec(env.name, ["bash", target, version, str(destination)], tty=True)

        logger.info("Cleaning up build recipe from container...")
        if self.runtime.exec(env.name, ["rm", "-f", target]) != 0:
            logger.debug(f"Could not remove {target} from container {env.name}")

        if returncode != 0:
            raise BuildStepError(self._step, returncode)

        self._advance(RunState.EXECUTED)
        return returncode

    def verify(self, destination: Path, env: BuildEnvironment | None = None) -> None:
        """Check that the installed binary answers a version query.

        The check runs inside the container when one is given and host
        verification is not requested.

        Raises
        ------
        VerificationError
            If the binary is missing or exits with a non-zero status

        """
        self._step = "verify"
        binary = destination / "bin" / self.config.tool
        command = [str(binary), VERSION_FLAG]

        if env is None or self.config.verify_on_host:
            try:
                returncode = run_command(command, check=False).returncode
            except CommandError as e:
                msg = f"Installed binary at {binary} could not be run: {e}"
                raise VerificationError(msg) from e
        else:
            returncode = self.runtime.exec(env.name, command)

        if returncode != 0:
            msg = f"'{binary} {VERSION_FLAG}' exited with status {returncode}"
            raise VerificationError(msg)

        self.report.binary_path = binary
        self._advance(RunState.VERIFIED)

    def teardown(self, env: BuildEnvironment) -> None:
        """Stop and remove the container.

        Failures are logged and never mask an error raised by an earlier step.
        """
        logger.info(f"Stopping and removing container {env.name}...")
        try:
            self.runtime.stop(env.name)
        except CommandError as e:
            logger.warning(f"Could not stop container {env.name}: {e}")
        try:
            self.runtime.remove(env.name, force=True)
        except CommandError as e:
            logger.error(f"Could not remove container {env.name}: {e}")

        self._advance(RunState.TORN_DOWN)

    def install_launcher(self, destination: Path, launcher_source: Path) -> Path | None:
        """Copy the relocatable launcher to the root of the installed tree.

        A missing launcher source only produces a warning: the binary under
        ``bin/`` stays usable without it.

        Returns
        -------
        Path | None
            The installed launcher, or None when the source was missing

        """
        self._step = "install launcher"
        step_banner("Install launcher")
        target = destination / self.config.tool

        if not launcher_source.is_file():
            self._warn(f"Launcher not found at {launcher_source}. Skipping launcher installation.")
            self._advance(RunState.LAUNCHER_INSTALLED)
            return None

        try:
            if target.is_symlink():
                target.unlink()
            shutil.copyfile(launcher_source, target)
            target.chmod(target.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        except OSError as e:
            self._warn(f"Could not install launcher at {target}: {e}. The binary in bin/ is still usable.")
            self._advance(RunState.LAUNCHER_INSTALLED)
            return None
        logger.success(f"Launcher installed successfully at {target}")

        self.report.launcher_path = target
        self._advance(RunState.LAUNCHER_INSTALLED)
        return target

    def register_path(self, profile_file: Path, bin_dir: Path) -> bool:
        """Append the tool's ``bin`` directory to ``PATH`` in a shell profile.

        Returns
        -------
        bool
            True if the profile was changed, False if the entry was already present

        """
        line = f"PATH={bin_dir}:$PATH"
        try:
            existing = profile_file.read_text(encoding="utf-8") if profile_file.exists() else ""
            if line in existing.splitlines():
                logger.debug(f"{bin_dir} already on PATH in {profile_file}")
                return False

            logger.info(f"Adding {bin_dir} to PATH in {profile_file}...")
            with profile_file.open("a", encoding="utf-8") as f:
                if existing and not existing.endswith("\n"):
                    f.write("\n")
                f.write(line + "\n")
        except OSError as e:
            self._warn(f"Could not update {profile_file}: {e}")
            return False
        return True

    ############################################################
    # Pipeline
    ###########################################################

    def run(self) -> BuildReport:
        """Run the whole build and installation pipeline.

        Returns
        -------
        BuildReport
            Report of the successful run

        Raises
        ------
        RelobuildError
            On the first fatal step; the report records which one

        """
        config = self.config
        logger.info(f"Starting {config.tool} {config.version} build and installation process...")

        try:
            self.preflight()
            self.ensure_destination(config.destination)

            with tempfile.TemporaryDirectory(prefix="relobuild-") as tmp:
                recipe_file = write_recipe(config, Path(tmp) / RECIPE_FILE_NAME)
                with self.acquire_environment(config.environment_name, config.image) as env:
                    self.provision(env, recipe_file, *config.config_overrides)
                    self.execute(env, recipe_file, config.version, config.destination)
                    self.verify(config.destination, env)
                    self.install_launcher(config.destination, config.launcher_source)

            if config.profile_file is not None:
                self.register_path(config.profile_file, config.destination / "bin")
        except RelobuildError as e:
            self.report.failed_step = self._step
            self.report.error = str(e)
            raise

        self.report.succeeded = True
        logger.success(f"{config.tool} build and installation completed successfully.")
        return self.report
