from __future__ import annotations

import json
from types import MappingProxyType

import pytest

from imgrel.services.images.matrix import compute_matrix, derive_matrix, matrix_json
from imgrel.services.images.model import ImageDescriptor, ImageRegistry, ReleasePlanEntry


def _entry(app_name: str, app_version: str, **extra: object) -> ReleasePlanEntry:
    return ReleasePlanEntry(
        app_name=app_name, app_version=app_version, extra=MappingProxyType(extra)
    )


def _image(app_name: str, image_name: str, *, file: str = "Dockerfile") -> ImageDescriptor:
    return ImageDescriptor(
        app_name=app_name,
        image_name=image_name,
        display_name=image_name,
        dockerfile_path=file,
        owner="acme",
    )


def _registry(*images: ImageDescriptor) -> ImageRegistry:
    by_app: dict[str, tuple[ImageDescriptor, ...]] = {}
    for image in images:
        by_app[image.app_name] = by_app.get(image.app_name, ()) + (image,)
    return ImageRegistry(images=MappingProxyType(by_app))


REGISTRY = _registry(
    _image("sed-tool", "matrix-sed"),
    _image("multi", "multi-a"),
    _image("multi", "multi-b"),
    _image("idle", "idle-image"),
)

PLANS = [
    (),
    (_entry("sed-tool", "1.2.3"),),
    (_entry("unlisted-tool", "0.1.0"),),
    (_entry("multi", "2.0.0"), _entry("sed-tool", "1.2.3"), _entry("docs", "0.0.1")),
    (_entry("Sed-Tool", "1.0.0"), _entry("multi", "3.1.0")),
]


def test_single_image_scenario() -> None:
    registry = _registry(_image("sed-tool", "matrix-sed"))
    jobs = compute_matrix([_entry("sed-tool", "1.2.3")], registry)

    assert len(jobs) == 1
    assert jobs[0].app_version == "1.2.3"
    assert jobs[0].image.image_name == "matrix-sed"


def test_unlisted_app_produces_no_jobs_and_no_error() -> None:
    assert compute_matrix([_entry("unlisted-tool", "0.1.0")], ImageRegistry()) == ()


def test_one_job_per_descriptor() -> None:
    jobs = compute_matrix([_entry("multi", "2.0.0")], REGISTRY)

    assert [j.image.image_name for j in jobs] == ["multi-a", "multi-b"]
    assert all(j.app_version == "2.0.0" for j in jobs)


def test_derive_reports_unmatched_entries() -> None:
    result = derive_matrix([_entry("sed-tool", "1.2.3"), _entry("docs", "0.0.1")], REGISTRY)
    assert [j.app_name for j in result.jobs] == ["sed-tool"]
    assert [e.app_name for e in result.unmatched] == ["docs"]


def test_registry_entries_not_in_plan_are_ignored() -> None:
    jobs = compute_matrix([_entry("sed-tool", "1.2.3")], REGISTRY)
    assert {j.app_name for j in jobs} == {"sed-tool"}


@pytest.mark.parametrize("plan", PLANS)
def test_no_job_for_app_absent_from_registry(plan: tuple[ReleasePlanEntry, ...]) -> None:
    for job in compute_matrix(plan, REGISTRY):
        assert job.app_name in REGISTRY
        assert job.app_name in {e.app_name for e in plan}


@pytest.mark.parametrize("plan", PLANS)
def test_job_count_matches_descriptor_count(plan: tuple[ReleasePlanEntry, ...]) -> None:
    jobs = compute_matrix(plan, REGISTRY)
    for entry in plan:
        emitted = [j for j in jobs if j.app_name == entry.app_name]
        assert len(emitted) == len(REGISTRY.lookup(entry.app_name))
        assert {j.image for j in emitted} == set(REGISTRY.lookup(entry.app_name))


@pytest.mark.parametrize("plan", PLANS)
def test_same_inputs_same_jobs(plan: tuple[ReleasePlanEntry, ...]) -> None:
    assert set(compute_matrix(plan, REGISTRY)) == set(compute_matrix(list(plan), REGISTRY))


@pytest.mark.parametrize("plan", PLANS)
def test_removing_an_entry_never_adds_jobs(plan: tuple[ReleasePlanEntry, ...]) -> None:
    full = len(compute_matrix(plan, REGISTRY))
    for i in range(len(plan)):
        reduced = plan[:i] + plan[i + 1 :]
        assert len(compute_matrix(reduced, REGISTRY)) <= full


def test_adding_a_descriptor_adds_exactly_one_job() -> None:
    plan = [_entry("sed-tool", "1.2.3"), _entry("multi", "2.0.0")]
    before = compute_matrix(plan, REGISTRY)

    extended = _registry(*REGISTRY.descriptors(), _image("multi", "multi-c"))
    after = compute_matrix(plan, extended)

    assert len(after) == len(before) + 1
    assert len([j for j in after if j.app_name == "multi"]) == 3


def test_job_record_merges_plan_and_descriptor_fields() -> None:
    registry = _registry(_image("sed-tool", "matrix-sed", file="crates/matrix-sed/Dockerfile"))
    jobs = compute_matrix([_entry("sed-tool", "1.2.3", artifacts=["a.tar.xz"])], registry)

    record = jobs[0].to_dict()
    assert record == {
        "app_name": "sed-tool",
        "app_version": "1.2.3",
        "artifacts": ["a.tar.xz"],
        "image_name": "matrix-sed",
        "display_name": "matrix-sed",
        "file": "crates/matrix-sed/Dockerfile",
        "hosting": {"github": {"owner": "acme"}},
    }


def test_descriptor_fields_win_over_plan_fields() -> None:
    registry = _registry(_image("sed-tool", "matrix-sed"))
    plan = [_entry("sed-tool", "1.2.3", hosting={"github": {"artifact_download_url": "x"}})]
    record = compute_matrix(plan, registry)[0].to_dict()
    assert record["hosting"] == {"github": {"owner": "acme"}}


def test_matrix_json_is_compact_list() -> None:
    jobs = compute_matrix([_entry("multi", "2.0.0")], REGISTRY)
    payload = matrix_json(jobs)
    assert "\n" not in payload
    assert [r["image_name"] for r in json.loads(payload)] == ["multi-a", "multi-b"]
    assert matrix_json(()) == "[]"
