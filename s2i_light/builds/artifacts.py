"""Artifact extraction for incremental builds.

This module handles:
- Checking that a previous build of the destination tag exists
- Running the image's save-artifacts script in a transient container
- Placing the resulting archive into the staging area

An image without a save-artifacts script yields an empty archive; the
build definition still adds it.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from s2i_light.errors import (
    ArtifactExtractionError,
    EngineCommandError,
    MissingPriorImageError,
)

if TYPE_CHECKING:
    from s2i_light.builds.models import StagingArea
    from s2i_light.engine import ContainerEngine

logger = logging.getLogger(__name__)

SAVE_ARTIFACTS_SCRIPT = "/usr/libexec/s2i/save-artifacts"


def save_artifacts_command(extract_dir: Path, archive_name: str) -> list[str]:
    """Compose the in-container command that writes the artifacts archive.

    Args:
        extract_dir: Host directory mounted at the same path in the container.
        archive_name: File name of the archive to produce.

    Returns:
        Command list for a transient container.
    """
    archive = extract_dir / archive_name
    script = (
        f'if [ -s {SAVE_ARTIFACTS_SCRIPT} ]; then '
        f'{SAVE_ARTIFACTS_SCRIPT} > "{archive}"; '
        f'else touch "{archive}"; fi'
    )
    return ["bash", "-c", script]


def grant_access(directory: Path, uid: int) -> None:
    """Give ``uid`` rwx access to ``directory`` with a POSIX ACL.

    Nothing is done when ``uid`` is the current user.

    Raises:
        ArtifactExtractionError: If setfacl is missing or fails.
    """
    if uid == os.getuid():
        return

    cmd = ["setfacl", "-m", f"u:{uid}:rwx", str(directory)]
    try:
        result = subprocess.run(
            cmd, capture_output=True, text=True, errors="replace", check=False
        )
    except OSError as e:
        raise ArtifactExtractionError(f"Failed to run setfacl: {e}") from e
    if result.returncode != 0:
        raise ArtifactExtractionError(
            f"Unable to grant uid {uid} access to {directory}: {result.stderr.strip()}"
        )


def extract_artifacts(
    engine: ContainerEngine,
    destination_tag: str,
    uid: int,
    staging: StagingArea,
) -> Path:
    """Pull artifacts forward from a previous build of ``destination_tag``.

    Args:
        engine: Container engine.
        destination_tag: Tag of the previous build.
        uid: User the previous image's scripts run as.
        staging: Staging area receiving the archive.

    Returns:
        Path to the artifacts archive inside the staging area.

    Raises:
        MissingPriorImageError: If no local image has the destination tag.
        ArtifactExtractionError: If the artifacts cannot be saved.
    """
    if not engine.image_exists(destination_tag):
        raise MissingPriorImageError(destination_tag)

    archive_name = staging.artifacts_path.name
    extract_dir = Path(tempfile.mkdtemp(prefix="incremental."))
    try:
        grant_access(extract_dir, uid)
        logger.info("Extracting artifacts from %s", destination_tag)
        try:
            engine.run_transient(
                destination_tag,
                save_artifacts_command(extract_dir, archive_name),
                volumes=[f"{extract_dir}:{extract_dir}:Z"],
            )
        except EngineCommandError as e:
            raise ArtifactExtractionError(
                f"Saving artifacts from {destination_tag} failed: {e}"
            ) from e

        archive = extract_dir / archive_name
        if not archive.is_file():
            raise ArtifactExtractionError(
                f"No artifacts archive was produced by {destination_tag}"
            )
        shutil.move(str(archive), str(staging.artifacts_path))
    finally:
        shutil.rmtree(extract_dir, ignore_errors=True)

    logger.debug(
        "Artifacts archive %s (%d bytes)",
        staging.artifacts_path,
        staging.artifacts_path.stat().st_size,
    )
    return staging.artifacts_path


__all__ = [
    "SAVE_ARTIFACTS_SCRIPT",
    "extract_artifacts",
    "grant_access",
    "save_artifacts_command",
]
