"""
Result type returned by every session-store and quiz-results call.

Network and HTTP failures are reported through ``success``/``error`` rather
than raised, so callers on the message path can log and carry on.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class ServiceResult:
    """Outcome of a collaborator call."""

    success: bool
    data: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, data: Any = None) -> ServiceResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> ServiceResult:
        return cls(success=False, error=error)

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "data": self.data, "error": self.error}
