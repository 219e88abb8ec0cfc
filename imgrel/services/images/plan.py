"""Release plan ingestion.

The plan is produced by the release tool (cargo-dist style) as JSON with a
``releases`` list. Only ``app_name`` and ``app_version`` are required; every
other field on an entry is preserved.
"""

from __future__ import annotations

import json
from pathlib import Path
from types import MappingProxyType

from imgrel.core.result import Err, Ok, Result
from imgrel.core.structured import as_str_dict, get_list, get_str
from imgrel.services.images.errors import ImageError
from imgrel.services.images.model import ReleasePlanEntry

PLAN_ENV_VAR = "PLAN"


def _invalid(message: str, hint: str | None) -> Err[ImageError]:
    return Err(ImageError(kind="invalid_plan", message=message, hint=hint))


def parse_release_plan(
    obj: object, *, source: str | None = None
) -> Result[tuple[ReleasePlanEntry, ...], ImageError]:
    """Validate a decoded plan document.

    Any malformed entry fails the whole plan: a partial plan would silently
    drop images from the release.
    """
    data = as_str_dict(obj)
    if data is None:
        return _invalid("release plan root must be a JSON object", source)

    releases = get_list(data, "releases")
    if releases is None:
        return _invalid("missing releases[] in release plan", source)

    entries: list[ReleasePlanEntry] = []
    seen: set[str] = set()
    for index, item in enumerate(releases):
        d = as_str_dict(item)
        if d is None:
            return _invalid(f"releases[{index}] must be an object", source)

        app_name = get_str(d, "app_name")
        if app_name is None:
            return _invalid(f"releases[{index}] is missing app_name", source)
        app_version = get_str(d, "app_version")
        if app_version is None:
            return _invalid(f"releases[{index}] ({app_name}) is missing app_version", source)
        if app_name in seen:
            return _invalid(f"duplicate app_name in release plan: {app_name}", source)
        seen.add(app_name)

        extra = {k: v for k, v in d.items() if k not in ("app_name", "app_version")}
        entries.append(
            ReleasePlanEntry(
                app_name=app_name,
                app_version=app_version,
                extra=MappingProxyType(extra),
            )
        )

    return Ok(tuple(entries))


def parse_plan_text(
    text: str, *, source: str | None = None
) -> Result[tuple[ReleasePlanEntry, ...], ImageError]:
    if not text.strip():
        return _invalid("release plan is empty", source)
    try:
        obj: object = json.loads(text)
    except json.JSONDecodeError as e:
        return _invalid(f"invalid JSON in release plan: {e}", source)
    return parse_release_plan(obj, source=source)


def read_plan_file(*, path: Path) -> Result[tuple[ReleasePlanEntry, ...], ImageError]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        return _invalid(f"failed to read release plan: {e}", str(path))
    return parse_plan_text(text, source=str(path))
