"""
Persisted training snapshot.

Serialized with camelCase keys so the stored JSON matches what the session
store already holds for existing sessions.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Fields that decide whether a new snapshot is worth writing
HASH_FIELDS = (
    "mode",
    "current_task_index",
    "phase",
    "progress",
    "selected_tool",
    "selected_pipe",
    "cinematic_time_remaining",
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PersistedTrainingState(BaseModel):
    """Resume snapshot of one training session."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    mode: str = "cinematic"
    ui_mode: str = "normal"
    current_task_index: int = Field(default=0, ge=0)
    task_name: str | None = None
    phase: str | None = None
    progress: float = 0.0
    selected_tool: str | None = None
    selected_pipe: str | None = None
    air_plug_selected: bool = False
    camera_mode: str | None = None
    camera_perspective: str | None = None
    explosion_level: float = 0.0
    cinematic_time_remaining: float | None = None
    last_updated: datetime = Field(default_factory=_now)

    def content_hash(self) -> str:
        payload = json.dumps(
            {name: getattr(self, name) for name in HASH_FIELDS},
            sort_keys=True,
            default=str,
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> PersistedTrainingState:
        return cls.model_validate(data)


@dataclass
class RestoredState:
    """What the session store returns for a resume read."""

    training_state: PersistedTrainingState | None = None
    current_training_phase: str | None = None
    overall_progress: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RestoredState:
        raw_state = data.get("trainingState") or data.get("training_state")
        return cls(
            training_state=PersistedTrainingState.from_wire(raw_state) if raw_state else None,
            current_training_phase=data.get("currentTrainingPhase") or data.get("current_training_phase"),
            overall_progress=float(data.get("overallProgress") or data.get("overall_progress") or 0),
        )
