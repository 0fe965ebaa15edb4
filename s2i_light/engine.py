"""Container engine access.

This module handles:
- Locating a container engine binary (podman preferred, then docker)
- The capability interface the build pipeline talks to
- A subprocess-backed implementation of that interface

Everything the pipeline needs from the engine goes through
``ContainerEngine``; nothing else in the package shells out to it.
"""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import IO, TYPE_CHECKING, Protocol

from s2i_light.errors import EngineCommandError, RuntimeUnavailableError

if TYPE_CHECKING:
    from s2i_light.config import Settings

logger = logging.getLogger(__name__)

SUPPORTED_RUNTIMES = ("podman", "docker")

# Go template used to read the configured user of an image
USER_TEMPLATE = "{{.Config.User}}"


class ContainerEngine(Protocol):
    """Operations the build pipeline requires from a container engine."""

    def image_exists(self, ref: str) -> bool:
        """Return True if ``ref`` is known to the local image store."""

    def pull(self, ref: str) -> None:
        """Pull ``ref`` from its registry."""

    def inspect_user(self, ref: str) -> str:
        """Return the configured user string of image ``ref``."""

    def run_transient(
        self,
        image: str,
        command: Sequence[str],
        volumes: Sequence[str] = (),
    ) -> str:
        """Run ``command`` in a removed-on-exit container and return stdout."""

    def build(
        self,
        context_dir: Path,
        definition_file: Path,
        tag: str,
        volumes: Sequence[str],
        log_file: IO[str],
    ) -> int:
        """Build and tag an image, writing engine output to ``log_file``."""


def resolve_runtime(force_bin: str | None = None) -> str:
    """Find the container engine binary to use.

    Args:
        force_bin: Use only this binary instead of searching.

    Returns:
        Name of the engine binary.

    Raises:
        RuntimeUnavailableError: If no usable engine is on PATH.
    """
    if force_bin:
        if shutil.which(force_bin) is None:
            raise RuntimeUnavailableError(f"Container runtime {force_bin} not found.")
        return force_bin

    for candidate in SUPPORTED_RUNTIMES:
        if shutil.which(candidate) is not None:
            logger.debug("Using container runtime: %s", candidate)
            return candidate

    raise RuntimeUnavailableError(
        f"No supported container runtime found (tried {', '.join(SUPPORTED_RUNTIMES)})."
    )


def volume_args(volumes: Sequence[str]) -> list[str]:
    """Expand mount specs into repeated ``-v`` arguments."""
    args: list[str] = []
    for spec in volumes:
        args.extend(["-v", spec])
    return args


def compose_build_args(
    context_dir: Path,
    definition_file: Path,
    tag: str,
    volumes: Sequence[str] = (),
) -> list[str]:
    """Compose the engine ``build`` arguments.

    Layer cache reuse is always disabled so every build runs assemble
    from scratch.

    Args:
        context_dir: Build context directory.
        definition_file: Serialized build definition.
        tag: Tag for the resulting image.
        volumes: Passthrough mount specs.

    Returns:
        Arguments to pass after the engine binary.
    """
    return [
        "build",
        *volume_args(volumes),
        "-f",
        str(definition_file),
        "--no-cache=true",
        "-t",
        tag,
        str(context_dir),
    ]


class CliEngine:
    """ContainerEngine backed by the podman or docker command line."""

    def __init__(self, binary: str, settings: Settings | None = None) -> None:
        if settings is None:
            from s2i_light.config import get_settings

            settings = get_settings()
        self.binary = binary
        self.settings = settings

    def _run(
        self,
        args: Sequence[str],
        timeout: int,
        *,
        stdout: int | IO[str] = subprocess.PIPE,
        stderr: int | IO[str] = subprocess.PIPE,
        cwd: Path | None = None,
    ) -> subprocess.CompletedProcess[str]:
        cmd = [self.binary, *args]
        cmd_str = shlex.join(cmd)
        logger.debug("Executing: %s", cmd_str)

        try:
            return subprocess.run(
                cmd,
                stdout=stdout,
                stderr=stderr,
                cwd=cwd,
                text=True,
                errors="replace",
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise EngineCommandError(
                f"Command timed out after {timeout} seconds: {cmd_str}",
                command=cmd_str,
                exit_code=-1,
                code="engine_timeout",
            ) from e
        except OSError as e:
            raise EngineCommandError(
                f"Failed to execute {self.binary}: {e}",
                command=cmd_str,
            ) from e

    def _run_checked(
        self,
        args: Sequence[str],
        timeout: int,
        action: str,
    ) -> subprocess.CompletedProcess[str]:
        result = self._run(args, timeout)
        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            message = f"{action} failed with exit code {result.returncode}"
            if stderr:
                message = f"{message}: {stderr}"
            raise EngineCommandError(
                message,
                command=shlex.join([self.binary, *args]),
                exit_code=result.returncode,
                stderr=stderr,
            )
        return result

    def image_exists(self, ref: str) -> bool:
        result = self._run_checked(
            ["images", "-q", ref],
            self.settings.inspect_timeout,
            f"Listing images for {ref}",
        )
        return bool(result.stdout.strip())

    def pull(self, ref: str) -> None:
        logger.info("Pulling image %s", ref)
        self._run_checked(["pull", ref], self.settings.pull_timeout, f"Pulling {ref}")

    def inspect_user(self, ref: str) -> str:
        result = self._run_checked(
            ["inspect", "-f", USER_TEMPLATE, ref],
            self.settings.inspect_timeout,
            f"Inspecting {ref}",
        )
        return result.stdout.strip()

    def run_transient(
        self,
        image: str,
        command: Sequence[str],
        volumes: Sequence[str] = (),
    ) -> str:
        result = self._run_checked(
            ["run", "--rm", *volume_args(volumes), image, *command],
            self.settings.run_timeout,
            f"Running container from {image}",
        )
        return result.stdout

    def build(
        self,
        context_dir: Path,
        definition_file: Path,
        tag: str,
        volumes: Sequence[str],
        log_file: IO[str],
    ) -> int:
        args = compose_build_args(context_dir, definition_file, tag, volumes)
        logger.info("Executing build: %s", shlex.join([self.binary, *args]))
        result = self._run(
            args,
            self.settings.build_timeout,
            stdout=log_file,
            stderr=subprocess.STDOUT,
            cwd=context_dir,
        )
        return result.returncode


__all__ = [
    "SUPPORTED_RUNTIMES",
    "CliEngine",
    "ContainerEngine",
    "compose_build_args",
    "resolve_runtime",
    "volume_args",
]
