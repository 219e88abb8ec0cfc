"""Per-job container build, push and attestation.

Each build job runs ``docker buildx build`` (tags, labels, SBOM, push) and then
``cosign attest`` with an SLSA provenance predicate for the pushed digest.
Jobs are independent: they fan out on a thread pool and a failing job never
stops its siblings. Every job ends in a ``JobOutcome``.
"""

from __future__ import annotations

import json
import shutil
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from time import sleep

from imgrel.core.config import Config
from imgrel.core.result import Err, Ok, Result
from imgrel.core.structured import as_str_dict, get_str
from imgrel.output.console import ConsoleProtocol, Style
from imgrel.platform.files import atomic_write_text
from imgrel.platform.process import ProcessError
from imgrel.platform.process import run as run_process
from imgrel.services.images.errors import ImageError, ImageErrorKind
from imgrel.services.images.model import BuildJob, JobOutcome
from imgrel.services.images.provenance import (
    PREDICATE_TYPE,
    BuildEnvironment,
    build_provenance_predicate,
)
from imgrel.services.images.tags import (
    compute_annotations,
    compute_labels,
    compute_tags,
    image_ref,
)

DIGEST_KEY = "containerimage.digest"
ATTESTATION_TYPE = "slsaprovenance1"


@dataclass(frozen=True, slots=True)
class ExecutorSettings:
    workspace_root: Path
    work_dir: Path
    config: Config = field(default_factory=Config)
    env: BuildEnvironment = field(default_factory=BuildEnvironment)
    push: bool = True
    dry_run: bool = False
    max_parallel: int | None = None

    @property
    def parallelism(self) -> int:
        return max(1, self.max_parallel or self.config.build.max_parallel)


def _is_transient_error(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    markers = (
        "timed out",
        "timeout",
        "connection reset",
        "connection refused",
        "temporarily unavailable",
        "service unavailable",
        "bad gateway",
        "gateway timeout",
        "tls handshake timeout",
        "i/o timeout",
        "network is unreachable",
        "unexpected eof",
        "toomanyrequests",
        "429 too many requests",
        "500 internal server error",
        "502 bad gateway",
        "503 service unavailable",
        "504 gateway timeout",
    )
    return any(marker in text for marker in markers)


def run_network_step(
    *,
    settings: ExecutorSettings,
    cmd: list[str],
    kind: ImageErrorKind,
    message: str,
    timeout: float,
    stdin: str | None = None,
) -> Result[str, ImageError]:
    """Run a registry-bound command, retrying transient failures with backoff."""
    retry = settings.config.retry
    attempts = max(1, retry.attempts)
    for attempt in range(attempts):
        result = run_process(cmd, cwd=settings.workspace_root, timeout=timeout, stdin=stdin)
        if isinstance(result, Ok):
            return result

        error = result.error
        if attempt < attempts - 1 and _is_transient_error(error):
            sleep(retry.delay_seconds * (attempt + 1))
            continue

        return Err(ImageError(kind=kind, message=message, hint=_last_line(error) or str(error)))

    return Err(ImageError(kind=kind, message=message))


def _last_line(error: ProcessError) -> str | None:
    lines = [line.strip() for line in error.stderr.splitlines() if line.strip()]
    return lines[-1] if lines else None


def ensure_tools(*, push: bool) -> Result[None, ImageError]:
    if shutil.which("docker") is None:
        return Err(
            ImageError(
                kind="tool_missing",
                message="docker: missing",
                hint="Install Docker with the buildx plugin.",
            )
        )
    if push and shutil.which("cosign") is None:
        return Err(
            ImageError(
                kind="tool_missing",
                message="cosign: missing",
                hint="Install cosign: https://docs.sigstore.dev/cosign/system_config/installation/",
            )
        )
    return Ok(None)


def registry_login(
    *,
    settings: ExecutorSettings,
    environ: Mapping[str, str],
    console: ConsoleProtocol,
) -> Result[None, ImageError]:
    """Log in to the container registry once for the whole run."""
    host = settings.config.build.host
    if settings.dry_run:
        console.print(f"docker login {host} --password-stdin", Style.DIM)
        return Ok(None)

    username = environ.get("REGISTRY_USERNAME") or settings.env.actor
    password = environ.get("REGISTRY_PASSWORD") or environ.get("GITHUB_TOKEN")
    if not username or not password:
        return Err(
            ImageError(
                kind="login_failed",
                message=f"no credentials for {host}",
                hint="Set GITHUB_ACTOR and GITHUB_TOKEN (or REGISTRY_USERNAME/REGISTRY_PASSWORD).",
            )
        )

    cmd = ["docker", "login", host, "--username", username, "--password-stdin"]
    console.print(" ".join(cmd), Style.DIM)
    result = run_network_step(
        settings=settings,
        cmd=cmd,
        kind="login_failed",
        message=f"failed to log in to {host}",
        timeout=settings.config.timeouts.network_seconds,
        stdin=password,
    )
    if isinstance(result, Err):
        return result
    return Ok(None)


def build_command(
    *,
    job: BuildJob,
    tags: Sequence[str],
    settings: ExecutorSettings,
    metadata_file: Path,
) -> list[str]:
    build = settings.config.build
    cmd = [
        "docker",
        "buildx",
        "build",
        build.context,
        "--file",
        job.image.dockerfile_path,
    ]
    for tag in tags:
        cmd.extend(["--tag", tag])
    labels = compute_labels(job, revision=settings.env.sha, source_url=settings.env.source_url)
    for key, value in labels.items():
        cmd.extend(["--label", f"{key}={value}"])
    for key, value in compute_annotations(job).items():
        cmd.extend(["--annotation", f"{key}={value}"])
    if build.sbom:
        cmd.append("--sbom=true")
    cmd.append("--provenance=mode=max")
    if build.cache:
        cmd.extend(["--cache-from", f"type={build.cache}"])
        cmd.extend(["--cache-to", f"type={build.cache},mode=max"])
    cmd.extend(["--metadata-file", str(metadata_file)])
    if settings.push:
        cmd.append("--push")
    return cmd


def read_digest(metadata_file: Path) -> str | None:
    try:
        obj: object = json.loads(metadata_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return None
    data = as_str_dict(obj)
    if data is None:
        return None
    return get_str(data, DIGEST_KEY)


def _job_slug(job: BuildJob) -> str:
    return f"{job.app_name}-{job.image.image_name}".replace("/", "_")


def attest_image(
    *,
    job: BuildJob,
    ref: str,
    digest: str,
    settings: ExecutorSettings,
    started_on: datetime,
) -> Result[None, ImageError]:
    predicate = build_provenance_predicate(
        job,
        env=settings.env,
        started_on=started_on,
        finished_on=datetime.now(UTC),
    )
    predicate_file = settings.work_dir / f"{_job_slug(job)}.provenance.json"
    try:
        atomic_write_text(predicate_file, json.dumps(predicate, indent=2) + "\n")
    except OSError as e:
        return Err(
            ImageError(
                kind="attest_failed",
                message=f"failed to write provenance predicate: {e}",
                hint=str(predicate_file),
            )
        )

    cmd = [
        "cosign",
        "attest",
        "--yes",
        "--type",
        ATTESTATION_TYPE,
        "--predicate",
        str(predicate_file),
        f"{ref}@{digest}",
    ]
    result = run_network_step(
        settings=settings,
        cmd=cmd,
        kind="attest_failed",
        message=f"failed to attest {ref}@{digest} ({PREDICATE_TYPE})",
        timeout=settings.config.timeouts.network_seconds,
    )
    if isinstance(result, Err):
        return result
    return Ok(None)


def run_job(
    job: BuildJob, *, settings: ExecutorSettings, console: ConsoleProtocol
) -> JobOutcome:
    ref = image_ref(settings.config.build.host, job)
    tags_result = compute_tags(job.app_version, ref)
    if isinstance(tags_result, Err):
        return JobOutcome(job=job, failed_step="build", message=tags_result.error.pretty())
    tags = tags_result.value

    metadata_file = settings.work_dir / f"{_job_slug(job)}.metadata.json"
    cmd = build_command(job=job, tags=tags, settings=settings, metadata_file=metadata_file)
    console.print(f"[{job.key}] " + " ".join(cmd[:3]) + f" ... ({len(tags)} tags)", Style.DIM)
    if settings.dry_run:
        for tag in tags:
            console.print(f"[{job.key}] tag {tag}", Style.DIM)
        return JobOutcome(job=job, tags=tags)

    started_on = datetime.now(UTC)
    built = run_network_step(
        settings=settings,
        cmd=cmd,
        kind="build_failed",
        message=f"failed to build {ref} from {job.image.dockerfile_path}",
        timeout=settings.config.timeouts.build_seconds,
    )
    if isinstance(built, Err):
        return JobOutcome(job=job, tags=tags, failed_step="build", message=built.error.pretty())

    if not settings.push:
        return JobOutcome(job=job, tags=tags)

    digest = read_digest(metadata_file)
    if digest is None:
        return JobOutcome(
            job=job,
            tags=tags,
            failed_step="build",
            message=f"no {DIGEST_KEY} in {metadata_file}",
        )

    attested = attest_image(
        job=job, ref=ref, digest=digest, settings=settings, started_on=started_on
    )
    if isinstance(attested, Err):
        return JobOutcome(
            job=job,
            tags=tags,
            digest=digest,
            failed_step="attest",
            message=attested.error.pretty(),
        )

    return JobOutcome(job=job, tags=tags, digest=digest)


def _report(outcome: JobOutcome, console: ConsoleProtocol) -> None:
    key = outcome.job.key
    if outcome.success:
        console.success(f"{key} {outcome.digest or ''}".rstrip())
    else:
        console.error(f"{key}: {outcome.failed_step} failed: {outcome.message}")


def execute_jobs(
    jobs: Sequence[BuildJob],
    *,
    settings: ExecutorSettings,
    console: ConsoleProtocol,
) -> tuple[JobOutcome, ...]:
    """Run every job and return outcomes in job order.

    No job is cancelled because another failed; partial success is a valid
    result for the caller to surface.
    """
    if not jobs:
        return ()

    settings.work_dir.mkdir(parents=True, exist_ok=True)
    workers = min(settings.parallelism, len(jobs))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="imgrel-job") as pool:
        futures = [pool.submit(run_job, job, settings=settings, console=console) for job in jobs]

        outcomes: list[JobOutcome] = []
        for job, future in zip(jobs, futures, strict=True):
            try:
                outcome = future.result()
            except Exception as e:
                outcome = JobOutcome(job=job, failed_step="build", message=f"unexpected error: {e}")
            _report(outcome, console)
            outcomes.append(outcome)

    return tuple(outcomes)
