"""Shared helpers for CLI commands."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn, TypeVar

import typer

from imgrel.core.errors import ErrorCode
from imgrel.core.result import Err, Result
from imgrel.output.console import Style
from imgrel.services.images.errors import ImageError
from imgrel.services.images.model import ImageRegistry, ReleasePlanEntry
from imgrel.services.images.plan import PLAN_ENV_VAR, parse_plan_text, read_plan_file
from imgrel.services.images.registry import load_registry

if TYPE_CHECKING:
    from imgrel.cli.context import CLIContext

T = TypeVar("T")


def image_error_code(error: ImageError) -> ErrorCode:
    match error.kind:
        case "invalid_plan" | "invalid_version":
            return ErrorCode.USER_ERROR
        case "invalid_registry" | "tool_missing":
            return ErrorCode.ENV_ERROR
        case "login_failed":
            return ErrorCode.NETWORK_ERROR
        case "build_failed" | "attest_failed":
            return ErrorCode.BUILD_ERROR
    return ErrorCode.USER_ERROR


def exit_with_error(error: ImageError, ctx: CLIContext) -> NoReturn:
    ctx.console.error(error.message)
    if error.hint:
        ctx.console.print(f"hint: {error.hint}", Style.DIM)
    raise typer.Exit(code=int(image_error_code(error)))


def unwrap_or_exit(result: Result[T, ImageError], ctx: CLIContext) -> T:
    if isinstance(result, Err):
        exit_with_error(result.error, ctx)
    return result.value


def load_plan(plan: str | None, ctx: CLIContext) -> tuple[ReleasePlanEntry, ...]:
    """Read the plan from a file, stdin (``-``) or the PLAN variable."""
    if plan == "-":
        result = parse_plan_text(sys.stdin.read(), source="<stdin>")
    elif plan is not None:
        result = read_plan_file(path=ctx.resolve(plan))
    else:
        text = ctx.environ.get(PLAN_ENV_VAR)
        if text is None:
            exit_with_error(
                ImageError(
                    kind="invalid_plan",
                    message="no release plan given",
                    hint=f"Pass --plan PATH, --plan - or set ${PLAN_ENV_VAR}.",
                ),
                ctx,
            )
        result = parse_plan_text(text, source=f"${PLAN_ENV_VAR}")
    return unwrap_or_exit(result, ctx)


def load_images(images: Path | None, ctx: CLIContext) -> ImageRegistry:
    path = ctx.resolve(images if images is not None else ctx.config.registry.path)
    return unwrap_or_exit(load_registry(path=path), ctx)


def warn_unmatched(unmatched: tuple[ReleasePlanEntry, ...], ctx: CLIContext) -> None:
    for entry in unmatched:
        ctx.console.warning(
            f"{entry.app_name} {entry.app_version}: no image in registry, skipped"
        )
