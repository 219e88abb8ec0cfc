from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ImageErrorKind = Literal[
    "invalid_plan",
    "invalid_registry",
    "invalid_version",
    "tool_missing",
    "login_failed",
    "build_failed",
    "attest_failed",
]


@dataclass(frozen=True, slots=True)
class ImageError:
    kind: ImageErrorKind
    message: str
    hint: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message
