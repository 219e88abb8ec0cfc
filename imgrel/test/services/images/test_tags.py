from __future__ import annotations

import pytest

from imgrel.core.result import Err, Ok
from imgrel.services.images.model import BuildJob, ImageDescriptor, ReleasePlanEntry
from imgrel.services.images.semver import SemVer, parse_version
from imgrel.services.images.tags import (
    REVISION_LABEL,
    SOURCE_LABEL,
    TITLE_LABEL,
    VERSION_LABEL,
    compute_annotations,
    compute_labels,
    compute_tags,
    image_ref,
)

REF = "ghcr.io/acme/matrix-sed"


def _job(version: str = "1.2.3") -> BuildJob:
    return BuildJob(
        entry=ReleasePlanEntry(app_name="sed-tool", app_version=version),
        image=ImageDescriptor(
            app_name="sed-tool",
            image_name="matrix-sed",
            display_name="Matrix sed",
            dockerfile_path="Dockerfile",
            owner="Acme",
        ),
    )


class TestParseVersion:
    def test_plain(self) -> None:
        assert parse_version("1.2.3") == SemVer(1, 2, 3)

    def test_leading_v(self) -> None:
        assert parse_version("v0.3.1") == SemVer(0, 3, 1)

    def test_prerelease_and_build(self) -> None:
        v = parse_version("2.0.0-beta.1+sha.abc")
        assert v == SemVer(2, 0, 0, prerelease="beta.1", build="sha.abc")
        assert v is not None and v.is_prerelease
        assert str(v) == "2.0.0-beta.1+sha.abc"

    @pytest.mark.parametrize("text", ["1.2", "01.2.3", "1.2.3-", "latest", ""])
    def test_rejects(self, text: str) -> None:
        assert parse_version(text) is None


class TestComputeTags:
    def test_pre_one_zero_gets_only_exact_tag(self) -> None:
        assert compute_tags("0.3.1", REF) == Ok((f"{REF}:v0.3.1",))

    def test_pre_zero_one_gets_only_exact_tag(self) -> None:
        assert compute_tags("0.0.4", REF) == Ok((f"{REF}:v0.0.4",))

    def test_stable_gets_three_channels(self) -> None:
        assert compute_tags("1.4.0", REF) == Ok((f"{REF}:v1.4.0", f"{REF}:v1.4", f"{REF}:v1"))

    def test_prerelease_does_not_move_floating_tags(self) -> None:
        assert compute_tags("2.0.0-rc.1", REF) == Ok((f"{REF}:v2.0.0-rc.1",))

    def test_build_metadata_is_dropped(self) -> None:
        result = compute_tags("1.0.0+build.5", REF)
        assert isinstance(result, Ok)
        assert result.value[0] == f"{REF}:v1.0.0"

    def test_invalid_version(self) -> None:
        result = compute_tags("one", REF)
        assert isinstance(result, Err)
        assert result.error.kind == "invalid_version"


def test_image_ref_is_lowercased() -> None:
    assert image_ref("ghcr.io", _job()) == "ghcr.io/acme/matrix-sed"


def test_labels() -> None:
    labels = compute_labels(_job(), revision="abc123", source_url="https://github.com/acme/tools")
    assert labels == {
        TITLE_LABEL: "Matrix sed",
        VERSION_LABEL: "1.2.3",
        REVISION_LABEL: "abc123",
        SOURCE_LABEL: "https://github.com/acme/tools",
    }


def test_labels_without_ci_context() -> None:
    assert set(compute_labels(_job())) == {TITLE_LABEL, VERSION_LABEL}


def test_annotations_carry_title() -> None:
    assert compute_annotations(_job()) == {TITLE_LABEL: "Matrix sed"}
