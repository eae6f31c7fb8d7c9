from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ActionResult:
    """Outcome of a user-initiated action; callers check ``success`` instead of catching."""

    success: bool
    error: str | None = None
    data: Any = None

    @classmethod
    def ok(cls, data: Any = None) -> ActionResult:
        return cls(True, None, data)

    @classmethod
    def fail(cls, error: str) -> ActionResult:
        return cls(False, error, None)

    def __bool__(self) -> bool:
        return self.success
