from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Literal

JobStep = Literal["build", "attest"]


def _frozen(data: Mapping[str, object] | None = None) -> Mapping[str, object]:
    return MappingProxyType(dict(data or {}))


@dataclass(frozen=True, slots=True)
class ReleasePlanEntry:
    """One application slated for release.

    ``extra`` keeps every other field the plan producer emitted (artifacts,
    hosting, ...) so it can be handed on to the build job untouched.
    """

    app_name: str
    app_version: str
    extra: Mapping[str, object] = field(default_factory=_frozen, compare=False)

    def to_dict(self) -> dict[str, object]:
        out: dict[str, object] = dict(self.extra)
        out["app_name"] = self.app_name
        out["app_version"] = self.app_version
        return out


@dataclass(frozen=True, slots=True)
class ImageDescriptor:
    """One buildable image for an application, as declared in images.json."""

    app_name: str
    image_name: str
    display_name: str
    dockerfile_path: str
    owner: str

    @property
    def repository(self) -> str:
        """Image path below the registry host: ``owner/image_name``."""
        return f"{self.owner}/{self.image_name}"

    def to_dict(self) -> dict[str, object]:
        return {
            "image_name": self.image_name,
            "display_name": self.display_name,
            "file": self.dockerfile_path,
            "hosting": {"github": {"owner": self.owner}},
        }


@dataclass(frozen=True, slots=True)
class ImageRegistry:
    """Static ``app_name -> descriptors`` mapping.

    The one-to-many relation is explicit: each name maps to a tuple, never to
    repeated keys. Lookups are exact and case-sensitive.
    """

    images: Mapping[str, tuple[ImageDescriptor, ...]] = field(default_factory=_frozen)

    def lookup(self, app_name: str) -> tuple[ImageDescriptor, ...]:
        return self.images.get(app_name, ())

    def __contains__(self, app_name: object) -> bool:
        return app_name in self.images

    def __len__(self) -> int:
        return len(self.images)

    def descriptors(self) -> tuple[ImageDescriptor, ...]:
        return tuple(d for name in sorted(self.images) for d in self.images[name])


@dataclass(frozen=True, slots=True)
class BuildJob:
    entry: ReleasePlanEntry
    image: ImageDescriptor

    @property
    def app_name(self) -> str:
        return self.entry.app_name

    @property
    def app_version(self) -> str:
        return self.entry.app_version

    @property
    def key(self) -> str:
        return f"{self.image.repository}:{self.app_version}"

    def to_dict(self) -> dict[str, object]:
        """Matrix record: plan entry fields overlaid with descriptor fields."""
        return {**self.entry.to_dict(), **self.image.to_dict()}


@dataclass(frozen=True, slots=True)
class JobOutcome:
    job: BuildJob
    tags: tuple[str, ...] = ()
    digest: str | None = None
    failed_step: JobStep | None = None
    message: str | None = None

    @property
    def success(self) -> bool:
        return self.failed_step is None
