"""Build command - build, push and attest every image in the release matrix."""

from __future__ import annotations

import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer

from imgrel.cli.commands._helpers import (
    exit_with_error,
    load_images,
    load_plan,
    warn_unmatched,
)
from imgrel.cli.context import CLIContext, build_context
from imgrel.core.errors import ErrorCode
from imgrel.core.result import Err
from imgrel.services.images.executor import (
    ExecutorSettings,
    ensure_tools,
    execute_jobs,
    registry_login,
)
from imgrel.services.images.matrix import derive_matrix
from imgrel.services.images.provenance import BuildEnvironment


def build(
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
    jobs: int | None = typer.Option(
        None, "--jobs", "-j", min=1, help="Parallel image builds", show_default=False
    ),
    push: bool | None = typer.Option(
        None,
        "--push/--no-push",
        help="Push and attest images (default: on, off for pull_request events)",
        show_default=False,
    ),
    work_dir: Path | None = typer.Option(
        None,
        "--work-dir",
        help="Directory for build metadata and provenance files",
        show_default=False,
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print actions without running them"),
) -> None:
    """Build, push and attest one image per matrix job."""
    ctx = build_context()

    entries = load_plan(plan, ctx)
    registry = load_images(images, ctx)
    result = derive_matrix(entries, registry)
    warn_unmatched(result.unmatched, ctx)

    if not result.jobs:
        ctx.console.info("no images to build")
        return

    env = BuildEnvironment.from_environ(ctx.environ)
    do_push = (not env.is_pull_request) if push is None else push

    with _job_dir(work_dir, ctx) as job_dir:
        settings = ExecutorSettings(
            workspace_root=ctx.root,
            work_dir=job_dir,
            config=ctx.config,
            env=env,
            push=do_push,
            dry_run=dry_run,
            max_parallel=jobs,
        )

        if not dry_run:
            tools = ensure_tools(push=do_push)
            if isinstance(tools, Err):
                exit_with_error(tools.error, ctx)

        if do_push:
            login = registry_login(settings=settings, environ=ctx.environ, console=ctx.console)
            if isinstance(login, Err):
                exit_with_error(login.error, ctx)
        else:
            ctx.console.warning("push disabled: images are built but not pushed or attested")

        ctx.console.header(
            f"Building {len(result.jobs)} image(s), {settings.parallelism} at a time"
        )
        outcomes = execute_jobs(result.jobs, settings=settings, console=ctx.console)

    rows = [
        (
            o.job.app_name,
            o.job.image.image_name,
            o.job.app_version,
            "ok" if o.success else f"failed ({o.failed_step})",
            o.digest or "-",
        )
        for o in outcomes
    ]
    ctx.console.table("Release images", ("app", "image", "version", "status", "digest"), rows)

    failed = [o for o in outcomes if not o.success]
    if failed:
        ctx.console.error(f"{len(failed)} of {len(outcomes)} image(s) failed")
        raise typer.Exit(code=int(ErrorCode.BUILD_ERROR))
    ctx.console.success(f"{len(outcomes)} image(s) released")


@contextmanager
def _job_dir(work_dir: Path | None, ctx: CLIContext) -> Iterator[Path]:
    """Yield the directory for metadata and provenance files.

    Without ``--work-dir`` a temporary directory is used and removed afterwards.
    """
    if work_dir is not None:
        yield ctx.resolve(work_dir)
        return
    with tempfile.TemporaryDirectory(prefix="imgrel-") as tmp:
        yield Path(tmp)
