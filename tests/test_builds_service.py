"""Tests for builds/service.py module.

Runs the whole pipeline against FakeEngine and a real local source tree.
"""

import os
from pathlib import Path

import pytest
from conftest import FakeEngine

from s2i_light.builds.models import EnvAssignment
from s2i_light.builds.service import (
    build_image,
    ensure_base_image,
    show_usage,
    staging_area,
)
from s2i_light.config import Settings
from s2i_light.errors import (
    BuildError,
    EngineCommandError,
    MissingPriorImageError,
    SourceFetchError,
    UserResolutionError,
)
from s2i_light.types import BuildOutcome, PullPolicy, StagingPolicy


def _staging_dirs(settings: Settings) -> list[Path]:
    if not settings.tmp_dir.exists():
        return []
    return sorted(settings.tmp_dir.iterdir())


class TestStagingArea:
    """Tests for the staging_area context manager."""

    def test_removed_on_success_by_default(self, tmp_path):
        with staging_area(StagingPolicy.ON_FAILURE, tmp_path) as staging:
            assert staging.root.is_dir()
        assert not staging.root.exists()

    def test_kept_on_failure(self, tmp_path):
        with pytest.raises(RuntimeError):
            with staging_area(StagingPolicy.ON_FAILURE, tmp_path) as staging:
                raise RuntimeError("boom")
        assert staging.root.is_dir()

    def test_always(self, tmp_path):
        with staging_area(StagingPolicy.ALWAYS, tmp_path) as staging:
            pass
        assert staging.root.is_dir()

    def test_never(self, tmp_path):
        with pytest.raises(RuntimeError):
            with staging_area(StagingPolicy.NEVER, tmp_path) as staging:
                raise RuntimeError("boom")
        assert not staging.root.exists()


class TestEnsureBaseImage:
    """Tests for pull policy handling."""

    def test_if_not_present_skips_pull(self, engine):
        ensure_base_image(engine, "builder:latest", PullPolicy.IF_NOT_PRESENT)
        assert "pull" not in engine.operations()

    def test_if_not_present_pulls_missing(self):
        engine = FakeEngine()
        ensure_base_image(engine, "builder:latest", PullPolicy.IF_NOT_PRESENT)
        assert ("pull", "builder:latest") in engine.calls

    def test_always(self, engine):
        ensure_base_image(engine, "builder:latest", PullPolicy.ALWAYS)
        assert engine.operations() == ["pull"]

    def test_never(self):
        engine = FakeEngine()
        ensure_base_image(engine, "builder:latest", PullPolicy.NEVER)
        assert engine.calls == []


class TestBuildImage:
    """Tests for build_image pipeline."""

    def test_default_build(self, engine, app_source, settings, make_request):
        """A plain build uses the default scripts and tags the image."""
        outcome = build_image(make_request(source=str(app_source)), engine, settings)

        assert isinstance(outcome, BuildOutcome)
        assert outcome.destination_tag == "app:out"
        assert outcome.uid == 0
        assert "app:out" in engine.images
        assert "RUN /usr/libexec/s2i/assemble\n" in engine.built_definition
        assert engine.built_definition.endswith("CMD /usr/libexec/s2i/run\n")
        assert f'"{app_source}"' in engine.built_definition

    def test_staged_source_matches(self, engine, app_source, settings, make_request):
        outcome = build_image(make_request(source=str(app_source)), engine, settings)

        staged = outcome.staging_dir / "upload" / "src"
        assert (staged / "app.py").read_text() == "print('hello')\n"
        assert (staged / "pkg" / "__init__.py").exists()

    def test_operation_order(self, engine, app_source, settings, make_request):
        build_image(make_request(source=str(app_source)), engine, settings)
        assert engine.operations() == ["image_exists", "inspect_user", "build"]

    def test_custom_scripts(self, engine, app_source, settings, make_request):
        bin_dir = app_source / ".s2i" / "bin"
        bin_dir.mkdir(parents=True)
        for name in ("assemble", "run"):
            (bin_dir / name).write_text("#!/bin/sh\n")
            (bin_dir / name).chmod(0o755)

        build_image(make_request(source=str(app_source)), engine, settings)

        assert "COPY upload/scripts/ /tmp/scripts\n" in engine.built_definition
        assert "RUN /tmp/scripts/assemble\n" in engine.built_definition
        assert "CMD /tmp/scripts/run\n" in engine.built_definition

    def test_env_precedence(self, engine, app_source, settings, make_request):
        (app_source / ".s2i").mkdir()
        (app_source / ".s2i" / "environment").write_text("DEBUG=0\n")
        request = make_request(
            source=str(app_source),
            env=(EnvAssignment.parse("DEBUG=1"),),
        )

        build_image(request, engine, settings)

        text = engine.built_definition
        assert text.index("ENV DEBUG=0") < text.index("ENV DEBUG=1")

    def test_named_user(self, app_source, settings, make_request):
        engine = FakeEngine(
            images=["builder:latest"],
            users={"builder:latest": "default"},
            uids={"default": 1001},
        )

        outcome = build_image(make_request(source=str(app_source)), engine, settings)

        assert outcome.uid == 1001
        assert "USER 1001\n" in engine.built_definition
        assert "RUN chown -R 1001:0 /tmp/src\n" in engine.built_definition

    def test_user_resolution_failure(self, app_source, settings, make_request):
        engine = FakeEngine(images=["builder:latest"], users={"builder:latest": "ghost"})

        with pytest.raises(UserResolutionError):
            build_image(make_request(source=str(app_source)), engine, settings)
        assert "build" not in engine.operations()

    def test_pull_policy_never_missing_image(self, app_source, settings, make_request):
        """With nothing pulled, inspecting the builder image fails."""
        engine = FakeEngine()
        request = make_request(source=str(app_source), pull_policy=PullPolicy.NEVER)

        with pytest.raises(UserResolutionError):
            build_image(request, engine, settings)
        assert "pull" not in engine.operations()

    def test_pull_failure(self, app_source, settings, make_request):
        engine = FakeEngine()

        def failing_pull(ref):
            raise EngineCommandError(f"pull {ref} failed", exit_code=125)

        engine.pull = failing_pull

        with pytest.raises(EngineCommandError):
            build_image(make_request(source=str(app_source)), engine, settings)

    def test_missing_source(self, engine, tmp_path, settings, make_request):
        with pytest.raises(SourceFetchError):
            build_image(make_request(source=str(tmp_path / "nope")), engine, settings)
        assert engine.calls == []

    def test_tmp_dir_inside_source(self, engine, app_source, make_request):
        settings = Settings(tmp_dir=app_source / ".work", keep_staging=StagingPolicy.NEVER)

        with pytest.raises(SourceFetchError):
            build_image(make_request(source=str(app_source)), engine, settings)

        assert engine.calls == []
        assert list((app_source / ".work").iterdir()) == []

    def test_incremental_without_prior_image(self, engine, app_source, settings, make_request):
        """An incremental build with no previous image never reaches the build."""
        request = make_request(source=str(app_source), incremental=True)

        with pytest.raises(MissingPriorImageError) as exc_info:
            build_image(request, engine, settings)

        assert exc_info.value.image == "app:out"
        assert "build" not in engine.operations()
        assert "app:out" not in engine.images
        for staging_dir in _staging_dirs(settings):
            assert list(staging_dir.glob("Dockerfile.*")) == []

    def test_incremental_with_prior_image(self, app_source, settings, make_request):
        engine = FakeEngine(
            images=["builder:latest", "app:out"],
            users={"builder:latest": str(os.getuid())},
            artifacts=b"tarball",
        )
        request = make_request(source=str(app_source), incremental=True)

        outcome = build_image(request, engine, settings)

        assert "ADD artifacts.tar /tmp/artifacts\n" in engine.built_definition
        assert (outcome.staging_dir / "artifacts.tar").read_bytes() == b"tarball"

    def test_build_failure(self, app_source, settings, make_request):
        engine = FakeEngine(images=["builder:latest"], build_exit_code=2)

        with pytest.raises(BuildError) as exc_info:
            build_image(make_request(source=str(app_source)), engine, settings)

        assert exc_info.value.exit_code == 2
        assert "app:out" not in engine.images

    def test_staging_retained_flag(self, engine, app_source, settings, make_request):
        outcome = build_image(make_request(source=str(app_source)), engine, settings)

        assert outcome.staging_retained is True
        assert outcome.staging_dir.is_dir()
        assert outcome.definition_path.is_file()

    def test_staging_removed_on_success(self, engine, app_source, tmp_path, make_request):
        settings = Settings(tmp_dir=tmp_path / "work", keep_staging=StagingPolicy.ON_FAILURE)

        outcome = build_image(make_request(source=str(app_source)), engine, settings)

        assert outcome.staging_retained is False
        assert not outcome.staging_dir.exists()

    def test_staging_kept_on_failure(self, app_source, tmp_path, make_request):
        engine = FakeEngine(images=["builder:latest"], build_exit_code=1)
        settings = Settings(tmp_dir=tmp_path / "work", keep_staging=StagingPolicy.ON_FAILURE)

        with pytest.raises(BuildError):
            build_image(make_request(source=str(app_source)), engine, settings)

        staging_dirs = _staging_dirs(settings)
        assert len(staging_dirs) == 1
        assert (staging_dirs[0] / "build.log").exists()


class TestShowUsage:
    """Tests for show_usage function."""

    def test_usage_output(self):
        engine = FakeEngine(images=["builder:latest"], usage_text="Usage: build me\n")

        assert show_usage(engine, "builder:latest") == "Usage: build me\n"
        assert engine.calls[-1][2] == ("/usr/libexec/s2i/usage",)
