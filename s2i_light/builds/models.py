"""Build request and staging area models.

A BuildRequest captures caller input once per invocation and is immutable.
A StagingArea is the private working directory one build owns; it doubles
as the engine build context.
"""

from __future__ import annotations

import logging
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from s2i_light.types import PullPolicy

logger = logging.getLogger(__name__)

ENV_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Line breaks and other control characters (tab excepted) would split a
# Dockerfile instruction
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0a-\x1f\x7f]")
IMAGE_REF_PATTERN = re.compile(r"^\S+$")

# Staging layout, relative to the staging root (the build context)
SOURCE_CONTEXT_PATH = "upload/src/"
SCRIPTS_CONTEXT_PATH = "upload/scripts/"
ARTIFACTS_ARCHIVE = "artifacts.tar"
BUILD_LOG = "build.log"

# Conventional locations inside the acquired source tree
S2I_SCRIPTS_DIR = ".s2i/bin"
S2I_ENVIRONMENT_FILE = ".s2i/environment"


class EnvAssignment(BaseModel):
    """A single NAME=VALUE environment assignment."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    value: str = ""

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate the name is a portable shell identifier."""
        if not ENV_NAME_PATTERN.fullmatch(v):
            raise ValueError(f"invalid environment variable name: '{v}'")
        return v

    @field_validator("value")
    @classmethod
    def validate_value(cls, v: str) -> str:
        """Reject line breaks and control characters."""
        if CONTROL_CHARS.search(v):
            raise ValueError("environment variable value must not contain control characters")
        return v

    @classmethod
    def parse(cls, text: str) -> EnvAssignment:
        """Parse a NAME=VALUE string, splitting on the first '='.

        Raises:
            ValueError: If the text has no '=' or the name is invalid.
        """
        name, sep, value = text.partition("=")
        if not sep:
            raise ValueError(f"expected NAME=VALUE, got '{text}'")
        return cls(name=name, value=value)

    def __str__(self) -> str:
        return f"{self.name}={self.value}"


class BuildOptions(BaseModel):
    """Optional knobs of a build request.

    Attributes:
        env: Environment assignments in the order they were supplied.
        pull_policy: When to pull the builder image.
        incremental: Reuse artifacts from a previous build of the tag.
        volumes: Mount specs passed through to the engine build.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    env: tuple[EnvAssignment, ...] = ()
    pull_policy: PullPolicy = PullPolicy.IF_NOT_PRESENT
    incremental: bool = False
    volumes: tuple[str, ...] = ()


class BuildRequest(BaseModel):
    """One source-to-image build, as requested by the caller."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    source_location: str = Field(min_length=1, description="URL or local path")
    base_image: str = Field(min_length=1, description="Builder image reference")
    destination_tag: str = Field(min_length=1, description="Tag for the result")
    options: BuildOptions = Field(default_factory=BuildOptions)

    @field_validator("base_image", "destination_tag")
    @classmethod
    def validate_image_ref(cls, v: str) -> str:
        """Validate image references contain no whitespace."""
        if not IMAGE_REF_PATTERN.fullmatch(v):
            raise ValueError(f"invalid image reference: {v!r}")
        return v

    @field_validator("source_location")
    @classmethod
    def validate_source_location(cls, v: str) -> str:
        if CONTROL_CHARS.search(v):
            raise ValueError("source location must not contain control characters")
        return v


@dataclass(frozen=True)
class StagingArea:
    """Uniquely-named working directory owned by a single build.

    Attributes:
        root: Staging root, used as the engine build context.
    """

    root: Path

    @classmethod
    def create(cls, tmp_dir: Path | None = None) -> StagingArea:
        """Create a fresh staging directory.

        Args:
            tmp_dir: Parent directory (system temp dir if None).

        Returns:
            New StagingArea.
        """
        if tmp_dir is not None:
            tmp_dir.mkdir(parents=True, exist_ok=True)
        root = Path(tempfile.mkdtemp(prefix="s2i-", dir=tmp_dir))
        logger.debug("Created staging area %s", root)
        return cls(root=root)

    @property
    def source_dir(self) -> Path:
        return self.root / SOURCE_CONTEXT_PATH

    @property
    def scripts_dir(self) -> Path:
        return self.root / SCRIPTS_CONTEXT_PATH

    @property
    def artifacts_path(self) -> Path:
        return self.root / ARTIFACTS_ARCHIVE

    @property
    def log_path(self) -> Path:
        return self.root / BUILD_LOG

    @property
    def environment_file(self) -> Path:
        return self.source_dir / S2I_ENVIRONMENT_FILE

    def has_scripts(self) -> bool:
        """Return True if a scripts directory was captured from the source."""
        return self.scripts_dir.is_dir()

    def has_artifacts(self) -> bool:
        """Return True if an artifacts archive was placed in the staging area."""
        return self.artifacts_path.is_file()


__all__ = [
    "ARTIFACTS_ARCHIVE",
    "BUILD_LOG",
    "S2I_ENVIRONMENT_FILE",
    "S2I_SCRIPTS_DIR",
    "SCRIPTS_CONTEXT_PATH",
    "SOURCE_CONTEXT_PATH",
    "BuildOptions",
    "BuildRequest",
    "EnvAssignment",
    "StagingArea",
]
