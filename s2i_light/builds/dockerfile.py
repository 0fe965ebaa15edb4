"""Serialization of build definitions into Dockerfile text."""

from __future__ import annotations

import json
import re
from functools import singledispatch

from s2i_light.builds.definition import (
    AddArchive,
    BuildDefinition,
    Cmd,
    Copy,
    Env,
    From,
    Label,
    Run,
    SetUser,
)

# ENV values made only of these characters are written unquoted
SAFE_ENV_VALUE = re.compile(r"^[A-Za-z0-9_./:@%+,=-]*$")

LABEL_CONTINUATION = " \\\n      "
LINE_BREAK = re.compile(r"[\r\n]")


def quote_env_value(value: str) -> str:
    """Quote an ENV value when the engine would otherwise split or mangle it."""
    if SAFE_ENV_VALUE.fullmatch(value):
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


@singledispatch
def render_instruction(instruction: object) -> str:
    """Render a single instruction as a Dockerfile line."""
    raise TypeError(f"Unsupported build instruction: {instruction!r}")


@render_instruction.register
def _(instruction: From) -> str:
    return f"FROM {instruction.image}"


@render_instruction.register
def _(instruction: Label) -> str:
    pairs = [f"{_quote(k)}={_quote(v)}" for k, v in instruction.labels]
    return "LABEL " + LABEL_CONTINUATION.join(pairs)


@render_instruction.register
def _(instruction: SetUser) -> str:
    return f"USER {instruction.user}"


@render_instruction.register
def _(instruction: Copy) -> str:
    return f"COPY {instruction.src} {instruction.dst}"


@render_instruction.register
def _(instruction: Run) -> str:
    return f"RUN {instruction.command}"


@render_instruction.register
def _(instruction: Env) -> str:
    return f"ENV {instruction.name}={quote_env_value(instruction.value)}"


@render_instruction.register
def _(instruction: AddArchive) -> str:
    return f"ADD {instruction.src} {instruction.dst}"


@render_instruction.register
def _(instruction: Cmd) -> str:
    return f"CMD {instruction.command}"


def render_dockerfile(definition: BuildDefinition) -> str:
    """Render a full build definition, one instruction per line.

    Raises:
        ValueError: If an instruction would break across lines.
    """
    lines: list[str] = []
    for instruction in definition:
        line = render_instruction(instruction)
        if LINE_BREAK.search(line.replace(LABEL_CONTINUATION, " ")):
            raise ValueError(f"Instruction spans multiple lines: {instruction!r}")
        lines.append(f"{line}\n")
    return "".join(lines)


__all__ = ["quote_env_value", "render_dockerfile", "render_instruction"]
