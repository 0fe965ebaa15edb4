"""Resolution of the builder image's runtime user.

The configured user of an image may be a uid, a name, or unset. Build
definitions need a numeric uid for ownership changes, so every case
collapses to one here and callers never look at the raw string again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from s2i_light.errors import EngineCommandError, UserResolutionError

if TYPE_CHECKING:
    from s2i_light.engine import ContainerEngine

logger = logging.getLogger(__name__)

DEFAULT_USER = "0"


@dataclass(frozen=True)
class NumericUser:
    """Image user configured directly as a uid."""

    uid: int


@dataclass(frozen=True)
class NamedUserResolved:
    """Image user configured by name, mapped to a uid inside the image."""

    name: str
    uid: int


ResolvedUser = NumericUser | NamedUserResolved


def parse_uid(value: str) -> int | None:
    """Return ``value`` as a uid, or None if it is not an integer."""
    try:
        return int(value.strip())
    except ValueError:
        return None


def resolve_user(engine: ContainerEngine, base_image: str) -> ResolvedUser:
    """Determine the numeric user the base image runs as.

    A numeric or unset user never starts a container. A named user is
    looked up with ``id -u`` in a transient container from the image.

    Args:
        engine: Container engine.
        base_image: Builder image reference.

    Returns:
        NumericUser or NamedUserResolved.

    Raises:
        UserResolutionError: If the image cannot be inspected or the named
            user does not exist in it.
    """
    try:
        configured = engine.inspect_user(base_image)
    except EngineCommandError as e:
        raise UserResolutionError(
            f"Unable to read the configured user of {base_image}: {e}"
        ) from e

    # "user:group" only matters to the engine; the uid comes from the user part
    user = configured.strip().split(":", 1)[0] or DEFAULT_USER

    uid = parse_uid(user)
    if uid is not None:
        logger.debug("Image %s runs as uid %d", base_image, uid)
        return NumericUser(uid=uid)

    logger.info("Resolving user %s inside image %s", user, base_image)
    try:
        output = engine.run_transient(base_image, ["id", "-u", user])
    except EngineCommandError as e:
        raise UserResolutionError(
            f"id of user {user} not found inside image {base_image}.",
            user=user,
        ) from e

    uid = parse_uid(output)
    if uid is None:
        raise UserResolutionError(
            f"id of user {user} not found inside image {base_image}.",
            user=user,
        )
    return NamedUserResolved(name=user, uid=uid)


__all__ = [
    "NamedUserResolved",
    "NumericUser",
    "ResolvedUser",
    "parse_uid",
    "resolve_user",
]
