"""Console output abstraction.

Human-facing output (warnings about unmatched plan entries, per-job progress,
the final job summary) goes through ``ConsoleProtocol``. Machine output such
as the matrix JSON is written to stdout by the CLI directly, so the Rich
console writes to stderr and never corrupts it.

Build jobs report from worker threads; both implementations serialize writes.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Protocol

from rich.markup import escape

__all__ = [
    "Style",
    "ConsoleProtocol",
    "RichConsole",
    "MockConsole",
    "OutputRecord",
]


class Style(Enum):
    """Text styles for console output."""

    DEFAULT = auto()
    SUCCESS = auto()
    ERROR = auto()
    WARNING = auto()
    INFO = auto()
    DIM = auto()
    BOLD = auto()
    HEADER = auto()

    def __str__(self) -> str:
        return self.name.lower()


class ConsoleProtocol(Protocol):
    """Protocol for console output."""

    def print(self, message: str, style: Style = Style.DEFAULT) -> None: ...

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def header(self, message: str) -> None: ...

    def table(
        self,
        title: str,
        columns: Sequence[str],
        rows: Sequence[Sequence[str]],
    ) -> None:
        """Render rows under the given column headings."""
        ...

    def newline(self) -> None: ...


class RichConsole:
    """Production console backed by Rich, writing to stderr."""

    def __init__(self) -> None:
        from rich.console import Console

        self._console = Console(stderr=True)
        self._lock = threading.Lock()
        self._style_map = {
            Style.DEFAULT: "",
            Style.SUCCESS: "green",
            Style.ERROR: "red bold",
            Style.WARNING: "yellow",
            Style.INFO: "cyan",
            Style.DIM: "dim",
            Style.BOLD: "bold",
            Style.HEADER: "blue bold",
        }

    def _emit(self, markup: str, rich_style: str = "") -> None:
        with self._lock:
            self._console.print(markup, style=rich_style or None, highlight=False)

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self._emit(escape(message), self._style_map.get(style, ""))

    def success(self, message: str) -> None:
        self._emit(f"[green]OK[/green] {escape(message)}")

    def error(self, message: str) -> None:
        self._emit(f"[red bold]error:[/red bold] {escape(message)}")

    def warning(self, message: str) -> None:
        self._emit(f"[yellow]warning:[/yellow] {escape(message)}")

    def info(self, message: str) -> None:
        self._emit(f"[cyan]info:[/cyan] {escape(message)}")

    def header(self, message: str) -> None:
        self._emit(f"\n[blue bold]{escape(message)}[/blue bold]")

    def table(
        self,
        title: str,
        columns: Sequence[str],
        rows: Sequence[Sequence[str]],
    ) -> None:
        from rich.table import Table

        t = Table(title=title, title_justify="left")
        for name in columns:
            t.add_column(name)
        for row in rows:
            t.add_row(*row)
        with self._lock:
            self._console.print(t)

    def newline(self) -> None:
        with self._lock:
            self._console.print()


@dataclass
class OutputRecord:
    """A single output record for MockConsole."""

    message: str
    style: Style


def _empty_outputs() -> list[OutputRecord]:
    return []


@dataclass
class MockConsole:
    """Console that captures output for assertions in tests."""

    outputs: list[OutputRecord] = field(default_factory=_empty_outputs)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def _add(self, message: str, style: Style) -> None:
        with self._lock:
            self.outputs.append(OutputRecord(message, style))

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self._add(message, style)

    def success(self, message: str) -> None:
        self._add(f"OK {message}", Style.SUCCESS)

    def error(self, message: str) -> None:
        self._add(f"error: {message}", Style.ERROR)

    def warning(self, message: str) -> None:
        self._add(f"warning: {message}", Style.WARNING)

    def info(self, message: str) -> None:
        self._add(f"info: {message}", Style.INFO)

    def header(self, message: str) -> None:
        self._add(message, Style.HEADER)

    def table(
        self,
        title: str,
        columns: Sequence[str],
        rows: Sequence[Sequence[str]],
    ) -> None:
        self._add(title, Style.HEADER)
        for row in rows:
            self._add(" | ".join(row), Style.DEFAULT)

    def newline(self) -> None:
        self._add("", Style.DEFAULT)

    # Test helper methods

    def clear(self) -> None:
        self.outputs.clear()

    @property
    def messages(self) -> list[str]:
        return [o.message for o in self.outputs]

    @property
    def text(self) -> str:
        return "\n".join(self.messages)

    def has_error(self) -> bool:
        return any(o.style == Style.ERROR for o in self.outputs)

    def has_warning(self) -> bool:
        return any(o.style == Style.WARNING for o in self.outputs)

    def find(self, substring: str) -> list[OutputRecord]:
        """Find all outputs containing a substring."""
        return [o for o in self.outputs if substring in o.message]

    def count(self, style: Style) -> int:
        return sum(1 for o in self.outputs if o.style == style)
