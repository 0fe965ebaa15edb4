"""Shared type definitions for s2i_light.

This module contains enums and small dataclasses shared across
subpackages to avoid circular imports.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class PullPolicy(str, Enum):
    """When to pull the builder image before a build."""

    ALWAYS = "always"
    NEVER = "never"
    IF_NOT_PRESENT = "if-not-present"


class StagingPolicy(str, Enum):
    """What to do with a staging area once the build finishes."""

    ALWAYS = "always"
    ON_FAILURE = "on-failure"
    NEVER = "never"

    def should_keep(self, succeeded: bool) -> bool:
        """Return True if the staging area should be retained."""
        if self is StagingPolicy.ALWAYS:
            return True
        if self is StagingPolicy.NEVER:
            return False
        return not succeeded


@dataclass
class BuildOutcome:
    """Result of a completed build pipeline.

    Attributes:
        destination_tag: Tag applied to the produced image.
        uid: Numeric user the assemble step ran as.
        staging_dir: Staging area used for the build.
        definition_path: Serialized build definition inside the staging area.
        log_path: Engine build log inside the staging area.
        staging_retained: Whether the staging area was left on disk.
    """

    destination_tag: str
    uid: int
    staging_dir: Path
    definition_path: Path
    log_path: Path
    staging_retained: bool


__all__ = [
    "BuildOutcome",
    "PullPolicy",
    "StagingPolicy",
]
