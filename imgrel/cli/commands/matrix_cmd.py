"""Matrix command - derive build jobs from a release plan."""

from __future__ import annotations

from pathlib import Path

import typer

from imgrel.cli.commands._helpers import load_images, load_plan, warn_unmatched
from imgrel.cli.context import build_context
from imgrel.core.errors import ErrorCode
from imgrel.platform.files import append_github_output, atomic_write_text
from imgrel.services.images.matrix import derive_matrix, matrix_json

GITHUB_OUTPUT_ENV_VAR = "GITHUB_OUTPUT"


def matrix(
    plan: str | None = typer.Option(
        None,
        "--plan",
        help="Release plan JSON file, or '-' for stdin (default: $PLAN)",
        show_default=False,
    ),
    images: Path | None = typer.Option(
        None,
        "--images",
        help="Image registry file (default: registry.path from imgrel.toml)",
        show_default=False,
    ),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Also write the matrix to this file", show_default=False
    ),
    github_output: bool = typer.Option(
        False, "--github-output", help="Append matrix=<json> to $GITHUB_OUTPUT"
    ),
) -> None:
    """Print the build matrix (one job per image to release) as JSON."""
    ctx = build_context()

    entries = load_plan(plan, ctx)
    registry = load_images(images, ctx)

    result = derive_matrix(entries, registry)
    warn_unmatched(result.unmatched, ctx)
    ctx.console.info(f"{len(result.jobs)} image job(s) from {len(entries)} release(s)")

    payload = matrix_json(result.jobs)
    typer.echo(payload)

    try:
        if output is not None:
            atomic_write_text(ctx.resolve(output), payload + "\n")
        if github_output:
            target = ctx.environ.get(GITHUB_OUTPUT_ENV_VAR)
            if not target:
                ctx.console.error(f"--github-output requires ${GITHUB_OUTPUT_ENV_VAR}")
                raise typer.Exit(code=int(ErrorCode.USER_ERROR))
            append_github_output(Path(target), "matrix", payload)
    except OSError as e:
        ctx.console.error(f"failed to write matrix: {e}")
        raise typer.Exit(code=int(ErrorCode.IO_ERROR))
