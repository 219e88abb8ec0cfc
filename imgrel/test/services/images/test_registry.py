from __future__ import annotations

import json
from pathlib import Path

import pytest

from imgrel.core.result import Err, Ok
from imgrel.services.images.model import ImageDescriptor
from imgrel.services.images.registry import load_registry, parse_registry


def _desc(image_name: str, *, owner: str = "acme", **extra: object) -> dict[str, object]:
    d: dict[str, object] = {
        "image_name": image_name,
        "display_name": f"{image_name} image",
        "file": f"crates/{image_name}/Dockerfile",
        "hosting": {"github": {"owner": owner}},
    }
    d.update(extra)
    return d


def test_single_descriptor_per_app() -> None:
    result = parse_registry({"sed-tool": _desc("matrix-sed")})
    assert isinstance(result, Ok)
    assert result.value.lookup("sed-tool") == (
        ImageDescriptor(
            app_name="sed-tool",
            image_name="matrix-sed",
            display_name="matrix-sed image",
            dockerfile_path="crates/matrix-sed/Dockerfile",
            owner="acme",
        ),
    )


def test_descriptor_list_keeps_order() -> None:
    result = parse_registry({"multi": [_desc("multi-a"), _desc("multi-b")]})
    assert isinstance(result, Ok)
    assert [d.image_name for d in result.value.lookup("multi")] == ["multi-a", "multi-b"]


def test_lookup_is_case_sensitive() -> None:
    result = parse_registry({"sed-tool": _desc("matrix-sed")})
    assert isinstance(result, Ok)
    assert result.value.lookup("Sed-Tool") == ()
    assert "Sed-Tool" not in result.value
    assert "sed-tool" in result.value


def test_display_name_defaults_to_image_name() -> None:
    desc = _desc("matrix-sed")
    del desc["display_name"]
    result = parse_registry({"sed-tool": desc})
    assert isinstance(result, Ok)
    assert result.value.lookup("sed-tool")[0].display_name == "matrix-sed"


def test_flat_hosting_owner_is_accepted() -> None:
    desc = _desc("matrix-sed")
    desc["hosting"] = {"owner": "flat-owner"}
    result = parse_registry({"sed-tool": desc})
    assert isinstance(result, Ok)
    assert result.value.lookup("sed-tool")[0].owner == "flat-owner"


@pytest.mark.parametrize("missing", ["image_name", "file", "hosting"])
def test_missing_required_field_is_fatal(missing: str) -> None:
    desc = _desc("matrix-sed")
    del desc[missing]
    result = parse_registry({"sed-tool": desc})
    assert isinstance(result, Err)
    assert result.error.kind == "invalid_registry"


def test_empty_descriptor_list_is_fatal() -> None:
    result = parse_registry({"sed-tool": []})
    assert isinstance(result, Err)
    assert "empty" in result.error.message


def test_duplicate_image_is_fatal() -> None:
    result = parse_registry({"a": _desc("same"), "b": [_desc("other"), _desc("same")]})
    assert isinstance(result, Err)
    assert "duplicate image acme/same" in result.error.message


def test_same_image_name_under_different_owners_is_allowed() -> None:
    result = parse_registry({"a": _desc("tool", owner="one"), "b": _desc("tool", owner="two")})
    assert isinstance(result, Ok)


def test_non_object_root_is_fatal() -> None:
    assert isinstance(parse_registry([_desc("x")]), Err)


def test_load_registry_file(tmp_path: Path) -> None:
    path = tmp_path / "images.json"
    path.write_text(json.dumps({"sed-tool": _desc("matrix-sed")}), encoding="utf-8")
    result = load_registry(path=path)
    assert isinstance(result, Ok)
    assert len(result.value) == 1


def test_load_registry_rejects_repeated_keys(tmp_path: Path) -> None:
    path = tmp_path / "images.json"
    one = json.dumps(_desc("a"))
    two = json.dumps(_desc("b"))
    path.write_text(f'{{"multi": {one}, "multi": {two}}}', encoding="utf-8")

    result = load_registry(path=path)
    assert isinstance(result, Err)
    assert "duplicate key" in result.error.message


def test_load_registry_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "images.json"
    path.write_text("{", encoding="utf-8")
    result = load_registry(path=path)
    assert isinstance(result, Err)
    assert result.error.hint == str(path)


def test_load_registry_missing_file(tmp_path: Path) -> None:
    result = load_registry(path=tmp_path / "images.json")
    assert isinstance(result, Err)
    assert result.error.kind == "invalid_registry"
