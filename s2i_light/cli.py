"""Thin CLI wrapper for s2i_light.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import logging
from typing import TYPE_CHECKING, Annotated, NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from s2i_light import __version__
from s2i_light.config import get_settings, print_settings_json

if TYPE_CHECKING:
    from s2i_light.builds.models import BuildRequest

app = typer.Typer(
    name="s2i",
    help=(
        "Source-to-image (S2I) - inject and assemble source code into a "
        "container image, using podman or docker."
    ),
    context_settings={"help_option_names": ["-h", "--help"]},
)
console = Console()
err_console = Console(stderr=True)


def configure_logging(level: str) -> None:
    """Send package logs to stderr through Rich."""
    package_logger = logging.getLogger("s2i_light")
    for handler in list(package_logger.handlers):
        if isinstance(handler, RichHandler):
            package_logger.removeHandler(handler)
    handler = RichHandler(
        console=err_console,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    package_logger.addHandler(handler)
    package_logger.setLevel(level)


def fail(message: str, ctx: typer.Context | None = None) -> NoReturn:
    """Print an ERROR line (and optionally command help) and exit 1."""
    err_console.print(f"[red]ERROR:[/red] {escape(message)}")
    if ctx is not None:
        err_console.print()
        err_console.print(ctx.get_help(), markup=False, highlight=False, soft_wrap=True)
    raise typer.Exit(code=1)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"s2i-light version {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Source-to-image (S2I) - inject and assemble source code into a container image."""
    configure_logging(get_settings().log_level)
    if ctx.invoked_subcommand is None:
        # bare invocation is a usage error
        console.print(ctx.get_help(), markup=False, highlight=False, soft_wrap=True)
        raise typer.Exit(code=1)


@app.command("help")
def help_command(ctx: typer.Context) -> None:
    """Show this message and exit."""
    parent = ctx.parent if ctx.parent is not None else ctx
    console.print(parent.get_help(), markup=False, highlight=False, soft_wrap=True)


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(print_settings_json(settings), markup=False, highlight=False, soft_wrap=True)
        return

    tmp_dir_display = str(settings.tmp_dir) if settings.tmp_dir else "(system default)"
    force_bin_display = settings.force_bin or "(auto: podman, docker)"
    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Engine:[/bold]")
    console.print(f"  Force binary:        {force_bin_display}")
    console.print(f"  Pull policy:         {settings.pull_policy.value}")
    console.print()
    console.print("[bold]Staging:[/bold]")
    console.print(f"  Temp directory:      {tmp_dir_display}")
    console.print(f"  Keep staging:        {settings.keep_staging.value}")
    console.print(f"  Log level:           {settings.log_level}")
    console.print()
    console.print("[bold]Timeouts (seconds):[/bold]")
    console.print(f"  Clone timeout:       {settings.clone_timeout}")
    console.print(f"  Pull timeout:        {settings.pull_timeout}")
    console.print(f"  Inspect timeout:     {settings.inspect_timeout}")
    console.print(f"  Run timeout:         {settings.run_timeout}")
    console.print(f"  Build timeout:       {settings.build_timeout}")


def build_request(
    source: str,
    image: str,
    tag: str,
    env: list[str],
    pull_policy: str,
    incremental: bool,
    volumes: list[str],
) -> "BuildRequest":
    """Turn raw command-line values into a BuildRequest.

    Raises:
        ArgumentError: If an option value is invalid.
    """
    from s2i_light.builds.models import BuildOptions, BuildRequest, EnvAssignment
    from s2i_light.errors import ArgumentError
    from s2i_light.types import PullPolicy

    try:
        policy = PullPolicy(pull_policy)
    except ValueError as e:
        raise ArgumentError(
            f"Invalid pull policy: {pull_policy} (use always, never or if-not-present)"
        ) from e

    try:
        return BuildRequest(
            source_location=source,
            base_image=image,
            destination_tag=tag,
            options=BuildOptions(
                env=tuple(EnvAssignment.parse(e) for e in env),
                pull_policy=policy,
                incremental=incremental,
                volumes=tuple(volumes),
            ),
        )
    except ValueError as e:
        raise ArgumentError(f"Invalid build arguments: {e}") from e


@app.command()
def build(
    ctx: typer.Context,
    source: Annotated[
        str | None,
        typer.Argument(help="Application source: local path or git URL", show_default=False),
    ] = None,
    image: Annotated[
        str | None,
        typer.Argument(help="Builder image", show_default=False),
    ] = None,
    tag: Annotated[
        str | None,
        typer.Argument(help="Tag for the built image", show_default=False),
    ] = None,
    env: Annotated[
        list[str] | None,
        typer.Option(
            "--env",
            "-e",
            help="Environment variable in NAME=VALUE format (can be repeated)",
        ),
    ] = None,
    pull_policy: Annotated[
        str | None,
        typer.Option(
            "--pull-policy",
            "-p",
            help="When to pull the builder image: always, never or if-not-present",
        ),
    ] = None,
    incremental: Annotated[
        bool,
        typer.Option("--incremental", help="Perform an incremental build"),
    ] = False,
    volumes: Annotated[
        list[str] | None,
        typer.Option(
            "--volume",
            "-v",
            help="Mount spec passed to the engine build (can be repeated)",
        ),
    ] = None,
    keep_staging: Annotated[
        bool,
        typer.Option("--keep-staging", help="Keep the staging directory after the build"),
    ] = False,
    force_bin: Annotated[
        str | None,
        typer.Option("--force-bin", help="Use only this binary as the container engine"),
    ] = None,
) -> None:
    """Build a new image named TAG from a source repository and a builder image.

    Examples:

      s2i build https://github.com/sclorg/django-ex quay.io/sclorg/python-312-c9s hello-app

      s2i build . quay.io/sclorg/python-312-c9s hello-app -e DEBUG=1
    """
    from s2i_light.builds.service import build_image
    from s2i_light.engine import CliEngine, resolve_runtime
    from s2i_light.errors import BuildError, S2IError
    from s2i_light.types import StagingPolicy

    if not source:
        fail("Application path or URL was not specified.", ctx)
    if not image:
        fail("Source Image name was not specified.", ctx)
    if not tag:
        fail("Destination Image name was not specified.", ctx)

    settings = get_settings()
    if keep_staging:
        settings = settings.model_copy(update={"keep_staging": StagingPolicy.ALWAYS})

    try:
        request = build_request(
            source,
            image,
            tag,
            env=env or [],
            pull_policy=pull_policy or settings.pull_policy.value,
            incremental=incremental,
            volumes=volumes or [],
        )
        engine = CliEngine(resolve_runtime(force_bin or settings.force_bin), settings)
        outcome = build_image(request, engine, settings)
    except BuildError as e:
        if e.output:
            err_console.print(e.output, markup=False, highlight=False, soft_wrap=True)
        fail(str(e))
    except S2IError as e:
        fail(str(e))

    console.print()
    console.print(f"[green]Image {escape(outcome.destination_tag)} successfully built.[/green]")
    if outcome.staging_retained:
        console.print(f"Staging area: {outcome.staging_dir}")


@app.command()
def usage(
    ctx: typer.Context,
    image: Annotated[
        str | None,
        typer.Argument(help="Builder image", show_default=False),
    ] = None,
    force_bin: Annotated[
        str | None,
        typer.Option("--force-bin", help="Use only this binary as the container engine"),
    ] = None,
) -> None:
    """Create a container from the image and invoke its usage script."""
    from s2i_light.builds.service import show_usage
    from s2i_light.engine import CliEngine, resolve_runtime
    from s2i_light.errors import S2IError

    if not image:
        fail("Image name was not specified.", ctx)

    settings = get_settings()
    try:
        engine = CliEngine(resolve_runtime(force_bin or settings.force_bin), settings)
        output = show_usage(engine, image)
    except S2IError as e:
        fail(str(e))

    console.print(output, markup=False, highlight=False, soft_wrap=True, end="")
