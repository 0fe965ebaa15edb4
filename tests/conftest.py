"""Shared test fixtures.

FakeEngine is a scripted stand-in for podman/docker so pipeline tests
never need a real container engine.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import IO

import pytest

from s2i_light.builds.models import BuildOptions, BuildRequest, StagingArea
from s2i_light.config import Settings
from s2i_light.errors import EngineCommandError
from s2i_light.types import StagingPolicy


class FakeEngine:
    """Scripted ContainerEngine that records every call.

    Attributes:
        images: Locally known image references.
        users: Configured user per image (missing means unset).
        uids: uid returned by ``id -u <name>`` inside any image.
        build_exit_code: Exit code returned by build().
        build_output: Text written to the build log.
        artifacts: Bytes produced by save-artifacts in incremental builds.
        usage_text: Output of the usage script.
        calls: Recorded (operation, *args) tuples.
    """

    def __init__(
        self,
        images: Sequence[str] = (),
        users: dict[str, str] | None = None,
        uids: dict[str, int] | None = None,
        build_exit_code: int = 0,
        build_output: str = "STEP 1/12: FROM builder\n",
        artifacts: bytes = b"",
        usage_text: str = "This image builds Python apps.\n",
    ) -> None:
        self.images = set(images)
        self.users = dict(users or {})
        self.uids = dict(uids or {})
        self.build_exit_code = build_exit_code
        self.build_output = build_output
        self.artifacts = artifacts
        self.usage_text = usage_text
        self.calls: list[tuple] = []
        self.built_definition: str | None = None

    def operations(self) -> list[str]:
        return [c[0] for c in self.calls]

    def image_exists(self, ref: str) -> bool:
        self.calls.append(("image_exists", ref))
        return ref in self.images

    def pull(self, ref: str) -> None:
        self.calls.append(("pull", ref))
        self.images.add(ref)

    def inspect_user(self, ref: str) -> str:
        self.calls.append(("inspect_user", ref))
        if ref not in self.images:
            raise EngineCommandError(f"no such image: {ref}", exit_code=125)
        return self.users.get(ref, "")

    def run_transient(
        self,
        image: str,
        command: Sequence[str],
        volumes: Sequence[str] = (),
    ) -> str:
        command = list(command)
        self.calls.append(("run_transient", image, tuple(command), tuple(volumes)))
        if command[:2] == ["id", "-u"]:
            name = command[2]
            if name not in self.uids:
                raise EngineCommandError(
                    f"id: '{name}': no such user",
                    exit_code=1,
                    stderr=f"id: '{name}': no such user",
                )
            return f"{self.uids[name]}\n"
        if command[:2] == ["bash", "-c"] and volumes:
            extract_dir = Path(volumes[0].split(":")[0])
            (extract_dir / "artifacts.tar").write_bytes(self.artifacts)
            return ""
        if command == ["/usr/libexec/s2i/usage"]:
            return self.usage_text
        return ""

    def build(
        self,
        context_dir: Path,
        definition_file: Path,
        tag: str,
        volumes: Sequence[str],
        log_file: IO[str],
    ) -> int:
        self.calls.append(("build", context_dir, definition_file, tag, tuple(volumes)))
        self.built_definition = definition_file.read_text()
        log_file.write(self.build_output)
        if self.build_exit_code == 0:
            self.images.add(tag)
        return self.build_exit_code


@pytest.fixture
def engine() -> FakeEngine:
    """Fake engine with the builder image present and no user configured."""
    return FakeEngine(images=["builder:latest"])


@pytest.fixture
def app_source(tmp_path) -> Path:
    """Create a small application source tree without .s2i/bin."""
    src = tmp_path / "app"
    src.mkdir()
    (src / "app.py").write_text("print('hello')\n")
    (src / "requirements.txt").write_text("flask\n")
    (src / "pkg").mkdir()
    (src / "pkg" / "__init__.py").write_text("")
    return src


@pytest.fixture
def staging(tmp_path) -> StagingArea:
    """Create a staging area with an empty source directory."""
    area = StagingArea(root=tmp_path / "staging")
    area.source_dir.mkdir(parents=True)
    return area


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings that keep staging areas under tmp_path."""
    return Settings(
        tmp_dir=tmp_path / "work",
        keep_staging=StagingPolicy.ALWAYS,
    )


@pytest.fixture
def make_request():
    """Factory for build requests with sensible defaults."""

    def _make(
        source: str = "/src/app",
        image: str = "builder:latest",
        tag: str = "app:out",
        **options,
    ) -> BuildRequest:
        return BuildRequest(
            source_location=source,
            base_image=image,
            destination_tag=tag,
            options=BuildOptions(**options),
        )

    return _make
