"""Images command - validate and list the image registry."""

from __future__ import annotations

from pathlib import Path

import typer

from imgrel.cli.commands._helpers import load_images
from imgrel.cli.context import build_context


def images(
    images: Path | None = typer.Option(
        None,
        "--images",
        help="Image registry file (default: registry.path from imgrel.toml)",
        show_default=False,
    ),
) -> None:
    """Validate the image registry and list its images."""
    ctx = build_context()
    registry = load_images(images, ctx)

    host = ctx.config.build.host
    rows = [
        (d.app_name, f"{host}/{d.repository}", d.display_name, d.dockerfile_path)
        for d in registry.descriptors()
    ]
    ctx.console.table("Images", ("app", "image", "title", "dockerfile"), rows)
    ctx.console.success(f"{len(rows)} image(s) for {len(registry)} app(s)")
