from __future__ import annotations

import os
from pathlib import Path

import typer

from imgrel import __version__
from imgrel.cli.commands.build_cmd import build
from imgrel.cli.commands.images_cmd import images
from imgrel.cli.commands.matrix_cmd import matrix
from imgrel.cli.commands.tags_cmd import tags
from imgrel.cli.context import CONFIG_ENV_VAR, ROOT_ENV_VAR
from imgrel.core.errors import ErrorCode


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


app.command()(matrix)
app.command()(images)
app.command()(tags)
app.command()(build)


def _print_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit.",
        callback=_print_version,
        is_eager=True,
    ),
    root: Path | None = typer.Option(
        None,
        "--root",
        help="Repository root that relative paths resolve against (default: cwd)",
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        help="Config file (default: <root>/imgrel.toml when present)",
    ),
) -> None:
    """Derive and execute container image release matrices."""
    del version
    if root is not None:
        try:
            resolved = root.expanduser().resolve()
        except OSError as e:
            typer.echo(f"error: invalid --root: {e}", err=True)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))
        if not resolved.is_dir():
            typer.echo(f"error: --root '{resolved}' is not a directory", err=True)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))
        os.environ[ROOT_ENV_VAR] = str(resolved)

    if config is not None:
        os.environ[CONFIG_ENV_VAR] = str(config.expanduser().resolve())


def main() -> None:
    app()
