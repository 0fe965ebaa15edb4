"""Error definitions for s2i_light.

Every failure in the build pipeline is fatal to the current invocation.
Errors carry a stable ``code`` for programmatic handling; the CLI is the
only place that catches them and turns them into an exit status.
"""

from __future__ import annotations

from pathlib import Path

# Error code constants
ARGUMENT_ERROR = "argument_error"
RUNTIME_UNAVAILABLE = "runtime_unavailable"
SOURCE_FETCH_ERROR = "source_fetch_error"
USER_RESOLUTION_ERROR = "user_resolution_error"
MISSING_PRIOR_IMAGE = "missing_prior_image"
ARTIFACT_EXTRACTION_ERROR = "artifact_extraction_error"
ENGINE_COMMAND_ERROR = "engine_command_error"
BUILD_ERROR = "build_failed"


class S2IError(Exception):
    """Base error for s2i_light operations."""

    def __init__(
        self,
        message: str,
        code: str = "s2i_error",
        hint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.hint = hint

    def __str__(self) -> str:
        message = super().__str__()
        if self.hint:
            return f"{message}\nHint: {self.hint}"
        return message


class ArgumentError(S2IError):
    """Raised when required command-line arguments are missing or invalid."""

    def __init__(self, message: str, code: str = ARGUMENT_ERROR) -> None:
        super().__init__(message, code=code)


class RuntimeUnavailableError(S2IError):
    """Raised when no supported container engine can be found."""

    def __init__(self, message: str, code: str = RUNTIME_UNAVAILABLE) -> None:
        super().__init__(
            message,
            code=code,
            hint="Install podman or docker, or point --force-bin at one.",
        )


class SourceFetchError(S2IError):
    """Raised when application source cannot be acquired."""

    def __init__(self, message: str, code: str = SOURCE_FETCH_ERROR) -> None:
        super().__init__(message, code=code)


class UserResolutionError(S2IError):
    """Raised when the builder image user cannot be mapped to a uid."""

    def __init__(
        self,
        message: str,
        user: str | None = None,
        code: str = USER_RESOLUTION_ERROR,
    ) -> None:
        super().__init__(message, code=code)
        self.user = user


class MissingPriorImageError(S2IError):
    """Raised when an incremental build targets a tag with no local image."""

    def __init__(self, image: str, code: str = MISSING_PRIOR_IMAGE) -> None:
        super().__init__(
            f"Image {image} not found.",
            code=code,
            hint="Incremental builds need a previous build of the same tag.",
        )
        self.image = image


class ArtifactExtractionError(S2IError):
    """Raised when artifacts of a previous build cannot be extracted."""

    def __init__(self, message: str, code: str = ARTIFACT_EXTRACTION_ERROR) -> None:
        super().__init__(message, code=code)


class EngineCommandError(S2IError):
    """Raised when a container engine command fails to run or exits nonzero."""

    def __init__(
        self,
        message: str,
        command: str = "",
        exit_code: int | None = None,
        stderr: str = "",
        code: str = ENGINE_COMMAND_ERROR,
    ) -> None:
        super().__init__(message, code=code)
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr


class BuildError(S2IError):
    """Raised when the engine build step fails.

    Attributes:
        exit_code: Engine exit code, or None if it never ran to completion.
        output: Combined engine output captured during the build.
        log_path: Build log file, if one was written.
    """

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        output: str = "",
        log_path: Path | None = None,
        code: str = BUILD_ERROR,
    ) -> None:
        super().__init__(message, code=code)
        self.exit_code = exit_code
        self.output = output
        self.log_path = log_path


__all__ = [
    "ARGUMENT_ERROR",
    "ARTIFACT_EXTRACTION_ERROR",
    "BUILD_ERROR",
    "ENGINE_COMMAND_ERROR",
    "MISSING_PRIOR_IMAGE",
    "RUNTIME_UNAVAILABLE",
    "SOURCE_FETCH_ERROR",
    "USER_RESOLUTION_ERROR",
    "ArgumentError",
    "ArtifactExtractionError",
    "BuildError",
    "EngineCommandError",
    "MissingPriorImageError",
    "RuntimeUnavailableError",
    "S2IError",
    "SourceFetchError",
    "UserResolutionError",
]
