"""Build matrix derivation: release plan joined against the image registry."""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass

from imgrel.services.images.model import BuildJob, ImageRegistry, ReleasePlanEntry


@dataclass(frozen=True, slots=True)
class MatrixResult:
    jobs: tuple[BuildJob, ...]
    # Plan entries with no image. Expected for non-container apps, but also
    # what a typo'd app_name looks like, so callers warn about them.
    unmatched: tuple[ReleasePlanEntry, ...]


def derive_matrix(plan: Sequence[ReleasePlanEntry], registry: ImageRegistry) -> MatrixResult:
    jobs: list[BuildJob] = []
    unmatched: list[ReleasePlanEntry] = []
    for entry in plan:
        descriptors = registry.lookup(entry.app_name)
        if not descriptors:
            unmatched.append(entry)
            continue
        jobs.extend(BuildJob(entry=entry, image=d) for d in descriptors)
    return MatrixResult(jobs=tuple(jobs), unmatched=tuple(unmatched))


def compute_matrix(
    plan: Sequence[ReleasePlanEntry], registry: ImageRegistry
) -> tuple[BuildJob, ...]:
    """One job per (plan entry, registry descriptor) pair.

    Entries whose app_name is not in the registry produce no job and no error.
    Pure: the same plan and registry always give the same jobs.
    """
    return derive_matrix(plan, registry).jobs


def matrix_json(jobs: Sequence[BuildJob]) -> str:
    """Compact JSON list of job records, as a CI matrix expects."""
    return json.dumps([job.to_dict() for job in jobs], separators=(",", ":"))
