"""Exception hierarchy for the relocatable tool builder."""

from __future__ import annotations


class RelobuildError(Exception):
    """Base exception for build orchestration."""


class ConfigurationError(RelobuildError):
    """Raised when configuration is invalid or a required file is missing."""


class DestinationExistsError(ConfigurationError):
    """Raised when an install already exists and overwriting is disabled."""


class PlatformUnavailableError(RelobuildError):
    """Raised when the container runtime is not installed or not in PATH."""


class DestinationNotWritableError(RelobuildError, PermissionError):
    """Raised when the install destination cannot be created or written."""


class ProvisioningError(RelobuildError):
    """Raised when files cannot be copied into the build container."""


class BuildStepError(RelobuildError):
    """Raised when a fatal build step fails."""

    def __init__(self, step: str, returncode: int | None = None, message: str | None = None) -> None:
        """Initialize the error with the failed step and its exit status.

        Parameters
        ----------
        step : str
            Name of the step that failed
        returncode : int | None, optional
            Exit status reported by the step, by default None
        message : str | None, optional
            Custom message, by default one is derived from the step

        """
        self.step = step
        self.returncode = returncode
        if message is None:
            message = f"Step '{step}' failed"
            if returncode is not None:
                message += f" with exit code {returncode}"
        super().__init__(message)


class VerificationError(RelobuildError):
    """Raised when the installed binary does not answer a version query."""


class CommandError(RelobuildError):
    """Raised when a command execution fails."""

    def __init__(self, command: list[str], returncode: int | None, message: str | None = None) -> None:
        self.command = command
        self.returncode = returncode
        if message is None:
            message = f"Command failed with exit code {returncode}: {' '.join(command)}"
        super().__init__(message)
