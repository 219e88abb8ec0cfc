"""Static image registry (``images.json``) loading.

Format::

    {
      "matrix-sed": {
        "image_name": "matrix-sed",
        "display_name": "Matrix sed",
        "file": "crates/matrix-sed/Dockerfile",
        "hosting": {"github": {"owner": "acme"}}
      },
      "multi": [ {...}, {...} ]
    }

A value is either one descriptor or a non-empty list of descriptors. Any
inconsistency is fatal at load time: the registry is versioned config, so an
error here is a bug to fix, not a condition to tolerate.
"""

from __future__ import annotations

import json
from pathlib import Path
from types import MappingProxyType

from imgrel.core.result import Err, Ok, Result
from imgrel.core.structured import StrDict, as_obj_list, as_str_dict, get_str, get_table
from imgrel.services.images.errors import ImageError
from imgrel.services.images.model import ImageDescriptor, ImageRegistry


class _DuplicateKey(ValueError):
    pass


def _reject_duplicate_keys(pairs: list[tuple[str, object]]) -> dict[str, object]:
    out: dict[str, object] = {}
    for key, value in pairs:
        if key in out:
            raise _DuplicateKey(key)
        out[key] = value
    return out


def _invalid(message: str, hint: str | None) -> Err[ImageError]:
    return Err(ImageError(kind="invalid_registry", message=message, hint=hint))


def _owner(d: StrDict) -> str | None:
    hosting = get_table(d, "hosting")
    if hosting is None:
        return None
    github = get_table(hosting, "github")
    if github is not None:
        owner = get_str(github, "owner")
        if owner is not None:
            return owner
    return get_str(hosting, "owner")


def _parse_descriptor(
    app_name: str, obj: object, *, where: str, source: str | None
) -> Result[ImageDescriptor, ImageError]:
    d = as_str_dict(obj)
    if d is None:
        return _invalid(f"{where} must be an object", source)

    image_name = get_str(d, "image_name")
    if image_name is None:
        return _invalid(f"{where} is missing image_name", source)
    dockerfile = get_str(d, "file")
    if dockerfile is None:
        return _invalid(f"{where} is missing file (Dockerfile path)", source)
    owner = _owner(d)
    if owner is None:
        return _invalid(f"{where} is missing hosting.github.owner", source)

    return Ok(
        ImageDescriptor(
            app_name=app_name,
            image_name=image_name,
            display_name=get_str(d, "display_name") or image_name,
            dockerfile_path=dockerfile,
            owner=owner,
        )
    )


def parse_registry(obj: object, *, source: str | None = None) -> Result[ImageRegistry, ImageError]:
    data = as_str_dict(obj)
    if data is None:
        return _invalid("image registry root must be a JSON object", source)

    images: dict[str, tuple[ImageDescriptor, ...]] = {}
    seen_refs: dict[str, str] = {}
    for app_name, value in data.items():
        if not app_name.strip():
            return _invalid("image registry contains an empty app name", source)

        items = as_obj_list(value)
        if items is None:
            items = [value]
        elif not items:
            return _invalid(f"{app_name}: descriptor list is empty", source)

        descriptors: list[ImageDescriptor] = []
        for index, item in enumerate(items):
            where = app_name if len(items) == 1 else f"{app_name}[{index}]"
            parsed = _parse_descriptor(app_name, item, where=where, source=source)
            if isinstance(parsed, Err):
                return parsed

            descriptor = parsed.value
            ref = descriptor.repository
            previous = seen_refs.get(ref)
            if previous is not None:
                return _invalid(
                    f"duplicate image {ref} declared by {previous} and {where}",
                    source,
                )
            seen_refs[ref] = where
            descriptors.append(descriptor)

        images[app_name] = tuple(descriptors)

    return Ok(ImageRegistry(images=MappingProxyType(images)))


def load_registry(*, path: Path) -> Result[ImageRegistry, ImageError]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        return _invalid(f"failed to read image registry: {e}", str(path))

    try:
        obj: object = json.loads(text, object_pairs_hook=_reject_duplicate_keys)
    except _DuplicateKey as e:
        return _invalid(f"duplicate key in image registry: {e}", str(path))
    except json.JSONDecodeError as e:
        return _invalid(f"invalid JSON in image registry: {e}", str(path))

    return parse_registry(obj, source=str(path))
