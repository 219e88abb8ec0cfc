"""Image tag and OCI label computation for a build job."""

from __future__ import annotations

from imgrel.core.result import Err, Ok, Result
from imgrel.services.images.errors import ImageError
from imgrel.services.images.model import BuildJob
from imgrel.services.images.semver import SemVer, parse_version

TITLE_LABEL = "org.opencontainers.image.title"
VERSION_LABEL = "org.opencontainers.image.version"
REVISION_LABEL = "org.opencontainers.image.revision"
SOURCE_LABEL = "org.opencontainers.image.source"


def image_ref(host: str, job: BuildJob) -> str:
    return f"{host}/{job.image.repository}".lower()


def tag_names(version: SemVer) -> tuple[str, ...]:
    """Tag suffixes for a version: exact, then major.minor and major.

    The coarse channels only exist for stable releases from 1.0 on; a 0.x or
    prerelease build must never move a floating tag.
    """
    # Build metadata is not a valid tag character ('+').
    exact = f"v{version.major}.{version.minor}.{version.patch}"
    if version.prerelease:
        exact += f"-{version.prerelease}"
    if version.is_prerelease or version.major < 1:
        return (exact,)
    return (
        exact,
        f"v{version.major}.{version.minor}",
        f"v{version.major}",
    )


def compute_tags(version: str, ref: str) -> Result[tuple[str, ...], ImageError]:
    parsed = parse_version(version)
    if parsed is None:
        return Err(
            ImageError(
                kind="invalid_version",
                message=f"not a semantic version: {version!r}",
                hint="Expected MAJOR.MINOR.PATCH[-PRERELEASE]",
            )
        )
    return Ok(tuple(f"{ref}:{name}" for name in tag_names(parsed)))


def compute_labels(
    job: BuildJob,
    *,
    revision: str | None = None,
    source_url: str | None = None,
) -> dict[str, str]:
    labels = {
        TITLE_LABEL: job.image.display_name,
        VERSION_LABEL: job.app_version,
    }
    if revision:
        labels[REVISION_LABEL] = revision
    if source_url:
        labels[SOURCE_LABEL] = source_url
    return labels


def compute_annotations(job: BuildJob) -> dict[str, str]:
    return {TITLE_LABEL: job.image.display_name}
