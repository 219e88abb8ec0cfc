"""Tags command - show the tags a version would be pushed under."""

from __future__ import annotations

import typer

from imgrel.cli.commands._helpers import unwrap_or_exit
from imgrel.cli.context import build_context
from imgrel.services.images.tags import compute_tags


def tags(
    version: str = typer.Argument(..., help="Release version (e.g. 1.4.0)"),
    image: str = typer.Option(
        "image", "--image", help="Image reference to prefix tags with (e.g. ghcr.io/acme/tool)"
    ),
) -> None:
    """Print the image tags computed for VERSION, one per line."""
    ctx = build_context()
    for tag in unwrap_or_exit(compute_tags(version, image), ctx):
        typer.echo(tag)
