"""Build service module.

This module provides the high-level build API:
- build_image(): Main entry point - run the whole pipeline for a request
- staging_area(): Scoped staging directory with an explicit retention policy
- show_usage(): Print the usage text embedded in a builder image

The pipeline is strictly sequential and fail-fast: acquire source,
ensure the builder image, resolve its user, optionally extract
artifacts, synthesize the definition, build. The first exception aborts
the rest; the destination tag is only written by a successful engine
build.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from s2i_light.builds.artifacts import extract_artifacts
from s2i_light.builds.definition import synthesize
from s2i_light.builds.models import StagingArea
from s2i_light.builds.runner import run_build
from s2i_light.builds.source import acquire_source
from s2i_light.builds.user import resolve_user
from s2i_light.config import get_settings
from s2i_light.types import BuildOutcome, PullPolicy, StagingPolicy

if TYPE_CHECKING:
    from s2i_light.builds.models import BuildRequest
    from s2i_light.config import Settings
    from s2i_light.engine import ContainerEngine

logger = logging.getLogger(__name__)

USAGE_SCRIPT = "/usr/libexec/s2i/usage"


@contextmanager
def staging_area(
    policy: StagingPolicy,
    tmp_dir: Path | None = None,
) -> Iterator[StagingArea]:
    """Create a staging area and apply the retention policy on exit.

    Args:
        policy: When to keep the directory after the block finishes.
        tmp_dir: Parent directory for the staging area.

    Yields:
        The new StagingArea.
    """
    staging = StagingArea.create(tmp_dir)
    succeeded = False
    try:
        yield staging
        succeeded = True
    finally:
        if policy.should_keep(succeeded):
            if not succeeded:
                logger.warning("Staging area retained at %s", staging.root)
        else:
            logger.debug("Removing staging area %s", staging.root)
            shutil.rmtree(staging.root, ignore_errors=True)


def ensure_base_image(
    engine: ContainerEngine,
    image: str,
    pull_policy: PullPolicy,
) -> None:
    """Pull the builder image as the pull policy requires."""
    if pull_policy is PullPolicy.NEVER:
        return
    if pull_policy is PullPolicy.IF_NOT_PRESENT and engine.image_exists(image):
        logger.debug("Image %s present locally", image)
        return
    engine.pull(image)


def build_image(
    request: BuildRequest,
    engine: ContainerEngine,
    settings: Settings | None = None,
) -> BuildOutcome:
    """Build a runnable application image from source and a builder image.

    Args:
        request: Build request.
        engine: Container engine.
        settings: Application settings.

    Returns:
        BuildOutcome for the tagged image.

    Raises:
        SourceFetchError: If the source cannot be acquired.
        EngineCommandError: If pulling the builder image fails.
        UserResolutionError: If the builder user cannot be resolved.
        MissingPriorImageError: If an incremental build has no previous image.
        ArtifactExtractionError: If previous artifacts cannot be saved.
        BuildError: If the engine build fails.
    """
    if settings is None:
        settings = get_settings()

    options = request.options

    with staging_area(settings.keep_staging, settings.tmp_dir) as staging:
        logger.info("Staging build of %s in %s", request.destination_tag, staging.root)

        acquire_source(request.source_location, staging, timeout=settings.clone_timeout)
        ensure_base_image(engine, request.base_image, options.pull_policy)
        user = resolve_user(engine, request.base_image)
        logger.info("Assembling as uid %d", user.uid)

        artifacts_present = False
        if options.incremental:
            extract_artifacts(engine, request.destination_tag, user.uid, staging)
            artifacts_present = staging.has_artifacts()

        definition = synthesize(request, staging, user, artifacts_present)
        result = run_build(
            engine,
            staging,
            definition,
            request.destination_tag,
            volumes=options.volumes,
        )

        outcome = BuildOutcome(
            destination_tag=result.tag,
            uid=user.uid,
            staging_dir=staging.root,
            definition_path=result.definition_path,
            log_path=result.log_path,
            staging_retained=settings.keep_staging.should_keep(True),
        )

    logger.info("Image %s successfully built", outcome.destination_tag)
    return outcome


def show_usage(engine: ContainerEngine, image: str) -> str:
    """Run the usage script of a builder image and return its output."""
    return engine.run_transient(image, [USAGE_SCRIPT])


__all__ = [
    "USAGE_SCRIPT",
    "build_image",
    "ensure_base_image",
    "show_usage",
    "staging_area",
]
