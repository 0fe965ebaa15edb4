"""Build definition synthesis.

This module turns a build request and a populated staging area into an
ordered sequence of typed build instructions. Synthesis reads the staged
files but never modifies anything, so the same inputs always produce the
same definition. Turning instructions into text is the job of
``s2i_light.builds.dockerfile``.

Instruction order:
    FROM, LABEL, USER root, COPY source, [COPY scripts, chown scripts],
    chown source, ENV from .s2i/environment, ENV from the request,
    [artifacts: mkdir, ADD, chown], USER <uid>, RUN assemble, CMD run
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from s2i_light.builds.models import (
    ARTIFACTS_ARCHIVE,
    SCRIPTS_CONTEXT_PATH,
    SOURCE_CONTEXT_PATH,
    EnvAssignment,
)

if TYPE_CHECKING:
    from s2i_light.builds.models import BuildRequest, StagingArea
    from s2i_light.builds.user import ResolvedUser

logger = logging.getLogger(__name__)

LABEL_BUILD_IMAGE = "io.openshift.s2i.build.image"
LABEL_SOURCE_LOCATION = "io.openshift.s2i.build.source-location"

ROOT_USER = "root"

IMAGE_SOURCE_DIR = "/tmp/src"
IMAGE_SCRIPTS_DIR = "/tmp/scripts"
IMAGE_ARTIFACTS_DIR = "/tmp/artifacts"

DEFAULT_SCRIPTS_DIR = "/usr/libexec/s2i"
ASSEMBLE_SCRIPT = "assemble"
RUN_SCRIPT = "run"


@dataclass(frozen=True)
class From:
    image: str


@dataclass(frozen=True)
class Label:
    labels: tuple[tuple[str, str], ...]


@dataclass(frozen=True)
class SetUser:
    user: str


@dataclass(frozen=True)
class Copy:
    src: str
    dst: str


@dataclass(frozen=True)
class Run:
    command: str


@dataclass(frozen=True)
class Env:
    name: str
    value: str


@dataclass(frozen=True)
class AddArchive:
    """Add a local archive, extracted into ``dst``."""

    src: str
    dst: str


@dataclass(frozen=True)
class Cmd:
    command: str


BuildInstruction = From | Label | SetUser | Copy | Run | Env | AddArchive | Cmd
BuildDefinition = tuple[BuildInstruction, ...]


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def parse_environment_lines(lines: list[str]) -> list[EnvAssignment]:
    """Parse NAME=VALUE lines of an environment declaration.

    Blank lines and lines starting with '#' (after leading whitespace) are
    dropped. A value wrapped in matching quotes is unquoted.

    Args:
        lines: Raw file lines.

    Returns:
        Assignments in file order.
    """
    assignments: list[EnvAssignment] = []
    for lineno, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        name, sep, value = line.partition("=")
        name = name.strip()
        if not sep or not name:
            logger.warning("Skipping malformed environment line %d: %s", lineno, line)
            continue
        try:
            assignments.append(EnvAssignment(name=name, value=_unquote(value.strip())))
        except ValueError:
            logger.warning("Skipping malformed environment line %d: %s", lineno, line)
    return assignments


def read_environment_file(path: Path) -> list[EnvAssignment]:
    """Read assignments from an environment file; a missing file yields none."""
    if not path.is_file():
        return []
    return parse_environment_lines(path.read_text(encoding="utf-8").splitlines())


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def script_path(scripts_dir: Path, name: str) -> str:
    """Return the in-image path of script ``name``.

    A custom script captured from the source wins when it is executable;
    otherwise the image's default script is used.
    """
    if _is_executable(scripts_dir / name):
        return f"{IMAGE_SCRIPTS_DIR}/{name}"
    return f"{DEFAULT_SCRIPTS_DIR}/{name}"


def _chown(uid: int, path: str) -> Run:
    return Run(f"chown -R {uid}:0 {path}")


def _instructions(
    request: BuildRequest,
    staging: StagingArea,
    user: ResolvedUser,
    artifacts_present: bool,
) -> Iterator[BuildInstruction]:
    uid = user.uid

    yield From(request.base_image)
    yield Label(
        (
            (LABEL_BUILD_IMAGE, request.base_image),
            (LABEL_SOURCE_LOCATION, request.source_location),
        )
    )
    yield SetUser(ROOT_USER)
    yield Copy(SOURCE_CONTEXT_PATH, IMAGE_SOURCE_DIR)

    if staging.has_scripts():
        yield Copy(SCRIPTS_CONTEXT_PATH, IMAGE_SCRIPTS_DIR)
        yield _chown(uid, IMAGE_SCRIPTS_DIR)
    yield _chown(uid, IMAGE_SOURCE_DIR)

    # Request values come last so they win over the source's defaults
    for assignment in read_environment_file(staging.environment_file):
        yield Env(assignment.name, assignment.value)
    for assignment in request.options.env:
        yield Env(assignment.name, assignment.value)

    if request.options.incremental and artifacts_present:
        yield Run(f"mkdir {IMAGE_ARTIFACTS_DIR}")
        yield AddArchive(ARTIFACTS_ARCHIVE, IMAGE_ARTIFACTS_DIR)
        yield _chown(uid, IMAGE_ARTIFACTS_DIR)

    yield SetUser(str(uid))
    yield Run(script_path(staging.scripts_dir, ASSEMBLE_SCRIPT))
    yield Cmd(script_path(staging.scripts_dir, RUN_SCRIPT))


def synthesize(
    request: BuildRequest,
    staging: StagingArea,
    user: ResolvedUser,
    artifacts_present: bool = False,
) -> BuildDefinition:
    """Produce the build definition for a request.

    Args:
        request: Build request.
        staging: Staging area holding the acquired source and scripts.
        user: Resolved builder image user.
        artifacts_present: Whether an artifacts archive was extracted.

    Returns:
        Ordered build instructions.
    """
    return tuple(_instructions(request, staging, user, artifacts_present))


def validate_definition(definition: BuildDefinition) -> None:
    """Check the structural invariants of a build definition.

    Raises:
        ValueError: If the definition is malformed.
    """
    if not definition or not isinstance(definition[0], From):
        raise ValueError("build definition must start with FROM")
    if sum(isinstance(i, From) for i in definition) != 1:
        raise ValueError("build definition must contain exactly one FROM")
    if not isinstance(definition[-1], Cmd):
        raise ValueError("build definition must end with CMD")
    if sum(isinstance(i, Cmd) for i in definition) != 1:
        raise ValueError("build definition must contain exactly one CMD")

    users = [n for n, i in enumerate(definition) if isinstance(i, SetUser)]
    if not users:
        raise ValueError("build definition must set a user")
    chowns = [
        n
        for n, i in enumerate(definition)
        if isinstance(i, Run) and i.command.startswith("chown ")
    ]
    if chowns and (
        definition[users[0]] != SetUser(ROOT_USER) or users[0] > chowns[0]
    ):
        raise ValueError("ownership changes must run as root")
    last_user = users[-1]
    if last_user < (chowns[-1] if chowns else 0) or last_user != len(definition) - 3:
        raise ValueError("the build user must be set right before assemble and CMD")


__all__ = [
    "LABEL_BUILD_IMAGE",
    "LABEL_SOURCE_LOCATION",
    "AddArchive",
    "BuildDefinition",
    "BuildInstruction",
    "Cmd",
    "Copy",
    "Env",
    "From",
    "Label",
    "Run",
    "SetUser",
    "parse_environment_lines",
    "read_environment_file",
    "script_path",
    "synthesize",
    "validate_definition",
]
