"""
Session-store records shared by the HTTP and SQL backends.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class UserRole(str, Enum):
    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


@dataclass
class ActiveSession:
    """An unfinished training session that can be resumed."""

    id: str
    current_training_phase: str = "0"
    overall_progress: float = 0.0
    status: str = SessionStatus.ACTIVE.value
    training_state: dict[str, Any] | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def phase_index(self) -> int:
        try:
            return int(self.current_training_phase)
        except (TypeError, ValueError):
            return 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "current_training_phase": self.current_training_phase,
            "overall_progress": self.overall_progress,
            "status": self.status,
            "training_state": self.training_state,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ActiveSession:
        phase = data.get("current_training_phase")
        return cls(
            id=str(data["id"]),
            current_training_phase=str(phase) if phase is not None else "0",
            overall_progress=float(data.get("overall_progress") or 0),
            status=data.get("status", SessionStatus.ACTIVE.value),
            training_state=data.get("training_state"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


@dataclass
class CompletionReport:
    """Final numbers sent when a student finishes training."""

    total_time_ms: int
    phases_completed: int
    total_questions: int
    quiz_data: dict[str, dict[str, Any]] | None = field(default=None)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "totalTimeMs": self.total_time_ms,
            "phasesCompleted": self.phases_completed,
            "totalQuestions": self.total_questions,
        }
        if self.quiz_data:
            payload["quizData"] = self.quiz_data
        return payload
