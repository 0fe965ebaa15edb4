"""Build runner for executing the engine build.

This module handles:
- Writing the serialized build definition into the staging area
- Invoking the engine build with the staging area as context
- Capturing engine output to a log file
- Turning a failed build into a BuildError
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from s2i_light.builds.definition import validate_definition
from s2i_light.builds.dockerfile import render_dockerfile
from s2i_light.errors import BuildError, EngineCommandError

if TYPE_CHECKING:
    from s2i_light.builds.definition import BuildDefinition
    from s2i_light.builds.models import StagingArea
    from s2i_light.engine import ContainerEngine

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    """Result of a successful engine build.

    Attributes:
        tag: Tag applied to the built image.
        definition_path: Dockerfile the engine consumed.
        log_path: Path to the build log file.
        started_at: Build start time.
        finished_at: Build finish time.
    """

    tag: str
    definition_path: Path
    log_path: Path
    started_at: datetime
    finished_at: datetime


def write_build_definition(staging: StagingArea, definition: BuildDefinition) -> Path:
    """Serialize ``definition`` into a uniquely-named Dockerfile in the staging area.

    The file is only created once the definition has been validated and
    fully rendered.

    Returns:
        Path to the written file.
    """
    validate_definition(definition)
    content = render_dockerfile(definition)

    fd, name = tempfile.mkstemp(prefix="Dockerfile.", dir=staging.root)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(content)
    return Path(name)


def run_build(
    engine: ContainerEngine,
    staging: StagingArea,
    definition: BuildDefinition,
    destination_tag: str,
    volumes: Sequence[str] = (),
) -> BuildResult:
    """Build and tag an image from a synthesized definition.

    Args:
        engine: Container engine.
        staging: Staging area used as build context.
        definition: Build definition to serialize.
        destination_tag: Tag for the resulting image.
        volumes: Mount specs passed through to the engine.

    Returns:
        BuildResult describing the finished build.

    Raises:
        BuildError: If the engine fails, times out, or cannot be started.
    """
    definition_path = write_build_definition(staging, definition)
    log_path = staging.log_path

    logger.info("Building %s from %s", destination_tag, definition_path)
    started_at = datetime.now(timezone.utc)

    with log_path.open("w") as log_file:
        log_file.write(f"# Definition: {definition_path}\n")
        log_file.write(f"# Tag: {destination_tag}\n")
        log_file.write(f"# Started: {started_at.isoformat()}\n")
        log_file.write("# " + "=" * 70 + "\n\n")
        log_file.flush()

        try:
            exit_code = engine.build(
                staging.root,
                definition_path,
                destination_tag,
                volumes,
                log_file,
            )
        except EngineCommandError as e:
            log_file.write(f"\n# FAILED: {e}\n")
            raise BuildError(
                f"Build of {destination_tag} could not complete: {e}",
                exit_code=e.exit_code,
                log_path=log_path,
                code="build_timeout" if e.code == "engine_timeout" else "build_failed",
            ) from e

    finished_at = datetime.now(timezone.utc)
    with log_path.open("a") as log_file:
        log_file.write(f"\n# Finished: {finished_at.isoformat()}\n")
        log_file.write(f"# Exit code: {exit_code}\n")
        duration = (finished_at - started_at).total_seconds()
        log_file.write(f"# Duration: {duration:.1f}s\n")

    if exit_code != 0:
        output = log_path.read_text(errors="replace")
        logger.error("Build failed with exit code %d. See log: %s", exit_code, log_path)
        raise BuildError(
            f"Build of {destination_tag} failed with exit code {exit_code}",
            exit_code=exit_code,
            output=output,
            log_path=log_path,
        )

    return BuildResult(
        tag=destination_tag,
        definition_path=definition_path,
        log_path=log_path,
        started_at=started_at,
        finished_at=finished_at,
    )


__all__ = [
    "BuildResult",
    "run_build",
    "write_build_definition",
]
