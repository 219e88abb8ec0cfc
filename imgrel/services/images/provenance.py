"""SLSA provenance v1 predicates for pushed images.

The predicate records which workflow built the image from which commit. It is
handed to ``cosign attest`` which signs it and binds it to the image digest;
imgrel itself never touches key material.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime

from imgrel.services.images.model import BuildJob

PREDICATE_TYPE = "https://slsa.dev/provenance/v1"
BUILD_TYPE = "https://actions.github.io/buildtypes/workflow/v1"


@dataclass(frozen=True, slots=True)
class BuildEnvironment:
    """The CI context a build ran in (GitHub Actions variables)."""

    server_url: str = "https://github.com"
    repository: str | None = None
    sha: str | None = None
    ref: str | None = None
    event_name: str | None = None
    actor: str | None = None
    run_id: str | None = None
    run_attempt: str | None = None
    workflow_ref: str | None = None

    @classmethod
    def from_environ(cls, environ: Mapping[str, str]) -> BuildEnvironment:
        def opt(key: str) -> str | None:
            value = environ.get(key, "").strip()
            return value or None

        return cls(
            server_url=opt("GITHUB_SERVER_URL") or "https://github.com",
            repository=opt("GITHUB_REPOSITORY"),
            sha=opt("GITHUB_SHA"),
            ref=opt("GITHUB_REF"),
            event_name=opt("GITHUB_EVENT_NAME"),
            actor=opt("GITHUB_ACTOR"),
            run_id=opt("GITHUB_RUN_ID"),
            run_attempt=opt("GITHUB_RUN_ATTEMPT"),
            workflow_ref=opt("GITHUB_WORKFLOW_REF"),
        )

    @property
    def source_url(self) -> str | None:
        if self.repository is None:
            return None
        return f"{self.server_url}/{self.repository}"

    @property
    def is_pull_request(self) -> bool:
        return self.event_name in ("pull_request", "pull_request_target")


def build_provenance_predicate(
    job: BuildJob,
    *,
    env: BuildEnvironment,
    started_on: datetime,
    finished_on: datetime,
) -> dict[str, object]:
    workflow: dict[str, object] = {"repository": env.source_url}
    if env.ref:
        workflow["ref"] = env.ref
    if env.workflow_ref:
        # owner/repo/.github/workflows/release.yml@refs/heads/main
        workflow["path"] = env.workflow_ref.split("@", 1)[0].split("/", 2)[-1]

    resolved: list[dict[str, object]] = []
    if env.source_url and env.sha:
        uri = f"git+{env.source_url}"
        if env.ref:
            uri += f"@{env.ref}"
        resolved.append({"uri": uri, "digest": {"gitCommit": env.sha}})

    metadata: dict[str, object] = {
        "startedOn": started_on.isoformat(),
        "finishedOn": finished_on.isoformat(),
    }
    if env.source_url and env.run_id:
        metadata["invocationId"] = (
            f"{env.source_url}/actions/runs/{env.run_id}/attempts/{env.run_attempt or '1'}"
        )

    builder_id = (
        f"{env.server_url}/{env.workflow_ref}" if env.workflow_ref else f"{env.server_url}/actions"
    )

    return {
        "buildDefinition": {
            "buildType": BUILD_TYPE,
            "externalParameters": {
                "workflow": workflow,
                "image": {
                    "app_name": job.app_name,
                    "app_version": job.app_version,
                    "image_name": job.image.image_name,
                    "file": job.image.dockerfile_path,
                },
            },
            "internalParameters": {"github": {"event_name": env.event_name}},
            "resolvedDependencies": resolved,
        },
        "runDetails": {
            "builder": {"id": builder_id},
            "metadata": metadata,
        },
    }
