"""Typed configuration loading and access.

``imgrel.toml`` is optional; every value has a default so a repository with
only ``.github/workflows/images.json`` needs no config at all.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_bool, get_float, get_int, get_str, get_table

__all__ = [
    "Config",
    "ConfigError",
    "RegistryConfig",
    "BuildConfig",
    "RetryConfig",
    "TimeoutsConfig",
    "CONFIG_FILENAME",
    "DEFAULT_IMAGES_PATH",
    "load_config",
    "load_config_or_default",
]

CONFIG_FILENAME = "imgrel.toml"
DEFAULT_IMAGES_PATH = ".github/workflows/images.json"

DEFAULT_HOST = "ghcr.io"
DEFAULT_MAX_PARALLEL = 4
DEFAULT_CACHE = "gha"
DEFAULT_BUILD_SECONDS = 60 * 60.0
DEFAULT_NETWORK_SECONDS = 5 * 60.0


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class RegistryConfig:
    """Where the static image registry lives, relative to the repo root."""

    path: str = DEFAULT_IMAGES_PATH


@dataclass(frozen=True, slots=True)
class BuildConfig:
    """Container build settings.

    ``cache`` names a buildx cache backend (``gha``); an empty string turns
    the cache flags off.
    """

    host: str = DEFAULT_HOST
    context: str = "."
    max_parallel: int = DEFAULT_MAX_PARALLEL
    sbom: bool = True
    cache: str = DEFAULT_CACHE


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Bounded retry policy for network-bound steps."""

    attempts: int = 3
    delay_seconds: float = 2.0


@dataclass(frozen=True, slots=True)
class TimeoutsConfig:
    build_seconds: float = DEFAULT_BUILD_SECONDS
    network_seconds: float = DEFAULT_NETWORK_SECONDS


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    registry: RegistryConfig = field(default_factory=RegistryConfig)
    build: BuildConfig = field(default_factory=BuildConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    timeouts: TimeoutsConfig = field(default_factory=TimeoutsConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML)."""
        registry: StrDict = get_table(data, "registry") or {}
        build: StrDict = get_table(data, "build") or {}
        retry: StrDict = get_table(data, "retry") or {}
        timeouts: StrDict = get_table(data, "timeouts") or {}

        max_parallel = get_int(build, "max_parallel")
        if max_parallel is not None and max_parallel < 1:
            raise ValueError(f"build.max_parallel must be >= 1, got {max_parallel}")
        attempts = get_int(retry, "attempts")
        if attempts is not None and attempts < 1:
            raise ValueError(f"retry.attempts must be >= 1, got {attempts}")

        delay = get_float(retry, "delay_seconds")
        if delay is not None and delay < 0:
            raise ValueError(f"retry.delay_seconds must be >= 0, got {delay}")
        build_seconds = _positive_seconds(timeouts, "build_seconds")
        network_seconds = _positive_seconds(timeouts, "network_seconds")

        cache = build.get("cache")
        sbom = get_bool(build, "sbom")

        return cls(
            registry=RegistryConfig(path=get_str(registry, "path") or DEFAULT_IMAGES_PATH),
            build=BuildConfig(
                host=get_str(build, "host") or DEFAULT_HOST,
                context=get_str(build, "context") or ".",
                max_parallel=max_parallel or DEFAULT_MAX_PARALLEL,
                sbom=True if sbom is None else sbom,
                cache=cache.strip() if isinstance(cache, str) else DEFAULT_CACHE,
            ),
            retry=RetryConfig(
                attempts=attempts or 3,
                delay_seconds=2.0 if delay is None else delay,
            ),
            timeouts=TimeoutsConfig(
                build_seconds=DEFAULT_BUILD_SECONDS if build_seconds is None else build_seconds,
                network_seconds=(
                    DEFAULT_NETWORK_SECONDS if network_seconds is None else network_seconds
                ),
            ),
        )


def _positive_seconds(table: StrDict, key: str) -> float | None:
    value = get_float(table, key)
    if value is not None and value <= 0:
        raise ValueError(f"timeouts.{key} must be > 0, got {value}")
    return value


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Args:
        path: Path to imgrel.toml

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_config_or_default(path: Path) -> Result[Config, ConfigError]:
    """Like load_config, but a missing file yields the defaults.

    A file that exists and is broken is still an error: silently ignoring it
    would build with settings nobody asked for.
    """
    if not path.exists():
        return Ok(Config())
    return load_config(path)
