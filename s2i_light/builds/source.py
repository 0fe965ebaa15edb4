"""Source acquisition for builds.

This module handles:
- Cloning remote repositories (git, ssh, http, https URLs)
- Copying local directories (optionally given as file:// URLs)
- Relocating the .s2i/bin scripts directory out of the source tree

The acquired tree lands in the staging area's source directory.
"""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
from pathlib import Path

from s2i_light.builds.models import S2I_SCRIPTS_DIR, StagingArea
from s2i_light.errors import SourceFetchError

logger = logging.getLogger(__name__)

REMOTE_PREFIXES = ("git://", "git+ssh://", "ssh://", "http://", "https://")
FILE_PREFIX = "file://"


def is_remote_source(source_location: str) -> bool:
    """Return True if the location names a network transport."""
    return source_location.startswith(REMOTE_PREFIXES)


def local_source_path(source_location: str) -> Path:
    """Strip a file:// prefix and return the local path."""
    if source_location.startswith(FILE_PREFIX):
        source_location = source_location[len(FILE_PREFIX) :]
    return Path(source_location)


def clone_source(url: str, dest: Path, timeout: int | None = None) -> None:
    """Clone a remote repository into ``dest``.

    Args:
        url: Repository URL.
        dest: Destination directory (must not exist or be empty).
        timeout: Clone timeout in seconds (None = no timeout).

    Raises:
        SourceFetchError: If git is missing, times out, or fails.
    """
    cmd = ["git", "clone", "--quiet", url, str(dest)]
    logger.info("Cloning %s", url)
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        raise SourceFetchError(
            f"Cloning {url} timed out after {timeout} seconds",
            code="clone_timeout",
        ) from e
    except OSError as e:
        raise SourceFetchError(f"Failed to run git: {e}") from e

    if result.returncode != 0:
        raise SourceFetchError(
            f"{shlex.join(cmd)} failed with exit code {result.returncode}: "
            f"{result.stderr.strip()}"
        )


def copy_source(source_dir: Path, dest: Path) -> None:
    """Copy the contents of ``source_dir`` into ``dest`` without extra nesting.

    Raises:
        SourceFetchError: If the source is not a directory, contains the
            staging area, or copying fails.
    """
    if not source_dir.is_dir():
        raise SourceFetchError(f"Application source {source_dir} is not a directory")
    if dest.resolve().is_relative_to(source_dir.resolve()):
        raise SourceFetchError(
            f"Staging directory {dest} is inside the application source {source_dir}; "
            "set S2I_TMP_DIR to a directory outside the source tree"
        )

    logger.info("Copying source from %s", source_dir)
    try:
        shutil.copytree(source_dir, dest, symlinks=True, dirs_exist_ok=True)
    except (OSError, shutil.Error) as e:
        raise SourceFetchError(f"Failed to copy source {source_dir}: {e}") from e


def acquire_source(
    source_location: str,
    staging: StagingArea,
    timeout: int | None = None,
) -> Path:
    """Materialize application source into the staging area.

    Args:
        source_location: Remote URL or local path.
        staging: Staging area owned by this build.
        timeout: Clone timeout in seconds for remote sources.

    Returns:
        The staged source directory.

    Raises:
        SourceFetchError: If the source cannot be cloned or copied.
    """
    dest = staging.source_dir
    dest.parent.mkdir(parents=True, exist_ok=True)

    if is_remote_source(source_location):
        clone_source(source_location, dest, timeout=timeout)
    else:
        copy_source(local_source_path(source_location), dest)

    scripts = dest / S2I_SCRIPTS_DIR
    if scripts.is_dir():
        logger.info("Found custom scripts in %s", S2I_SCRIPTS_DIR)
        shutil.move(str(scripts), str(staging.scripts_dir))

    return dest


__all__ = [
    "REMOTE_PREFIXES",
    "acquire_source",
    "clone_source",
    "copy_source",
    "is_remote_source",
    "local_source_path",
]
