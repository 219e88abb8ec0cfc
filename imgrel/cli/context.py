from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import typer

from imgrel.core.config import CONFIG_FILENAME, Config, load_config, load_config_or_default
from imgrel.core.errors import ErrorCode
from imgrel.core.result import Err
from imgrel.output.console import ConsoleProtocol, RichConsole

ROOT_ENV_VAR = "IMGREL_ROOT"
CONFIG_ENV_VAR = "IMGREL_CONFIG"


@dataclass(frozen=True, slots=True)
class CLIContext:
    root: Path
    config: Config
    console: ConsoleProtocol
    environ: Mapping[str, str]

    def resolve(self, path: str | Path) -> Path:
        p = Path(path).expanduser()
        return p if p.is_absolute() else self.root / p


def build_context() -> CLIContext:
    environ = dict(os.environ)
    root = Path(environ.get(ROOT_ENV_VAR) or Path.cwd())

    explicit = environ.get(CONFIG_ENV_VAR)
    if explicit:
        config_result = load_config(Path(explicit))
    else:
        config_result = load_config_or_default(root / CONFIG_FILENAME)
    if isinstance(config_result, Err):
        typer.echo(f"error: {config_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    return CLIContext(
        root=root,
        config=config_result.value,
        console=RichConsole(),
        environ=environ,
    )
