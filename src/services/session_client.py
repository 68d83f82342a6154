"""
HTTP client for the training session store.

Covers session lifecycle (start, status, resume, complete), progress
reporting and the resume snapshot used by state persistence.
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from src.persistence.snapshot import PersistedTrainingState, RestoredState
from src.services.http import BaseApiClient
from src.services.models import ActiveSession, CompletionReport, SessionStatus
from src.services.results import ServiceResult


class TrainingSessionClient(BaseApiClient):
    """Session-store API client."""

    service_name = "Session store"

    # ===== Session lifecycle =====

    async def start_session(self, course_name: str = "VR Pipe Training") -> ServiceResult:
        result = await self.request(
            "POST",
            "/api/training/session",
            {"courseName": course_name},
            failure_message="Failed to start training session",
        )
        return _unwrap(result, "session", ActiveSession.from_dict)

    async def get_current_session(self) -> ServiceResult:
        result = await self.request(
            "GET",
            "/api/training/session",
            failure_message="Failed to get training session",
        )
        return _unwrap(result, "session", ActiveSession.from_dict)

    async def update_status(self, status: SessionStatus | str) -> ServiceResult:
        return await self.request(
            "PATCH",
            "/api/training/session",
            {"status": SessionStatus(status).value},
            failure_message="Failed to update session status",
        )

    async def get_active_sessions(self) -> ServiceResult:
        result = await self.request(
            "GET",
            "/api/training/sessions",
            failure_message="Failed to get active training sessions",
        )
        if not result.success:
            return result
        sessions = [ActiveSession.from_dict(item) for item in result.data.get("sessions") or []]
        return ServiceResult.ok(sessions)

    async def create_new_session(self) -> ServiceResult:
        result = await self.request(
            "POST",
            "/api/training/sessions",
            {},
            failure_message="Failed to create training session",
        )
        return _unwrap(result, "session", ActiveSession.from_dict)

    async def resume_session(self, session_id: str) -> ServiceResult:
        result = await self.request(
            "POST",
            f"/api/training/sessions/{session_id}/resume",
            {},
            failure_message="Failed to resume training session",
        )
        return _unwrap(result, "session", ActiveSession.from_dict)

    async def complete_training(self, report: CompletionReport) -> ServiceResult:
        logger.info(
            "Completing training: phases={} time={}ms questions={}",
            report.phases_completed,
            report.total_time_ms,
            report.total_questions,
        )
        return await self.request(
            "POST",
            "/api/training/complete",
            report.to_payload(),
            failure_message="Failed to complete training",
        )

    # ===== Progress =====

    async def update_progress(self, phase: str, progress: float, time_spent_ms: int = 0) -> ServiceResult:
        return await self.request(
            "PATCH",
            "/api/training/progress",
            {"phase": phase, "progress": progress, "timeSpentMs": time_spent_ms},
            failure_message="Failed to update training progress",
        )

    async def record_time_spent(self, time_ms: int) -> ServiceResult:
        return await self.request(
            "PATCH",
            "/api/training/time",
            {"timeMs": time_ms},
            failure_message="Failed to record time",
        )

    # ===== Resume snapshot =====

    async def save_state(self, snapshot: PersistedTrainingState) -> ServiceResult:
        return await self.request(
            "PATCH",
            "/api/training/state",
            {"trainingState": snapshot.to_wire()},
            failure_message="Failed to save training state",
        )

    async def get_state(self) -> ServiceResult:
        result = await self.request(
            "GET",
            "/api/training/state",
            failure_message="Failed to get training state",
        )
        if not result.success:
            return result
        return ServiceResult.ok(RestoredState.from_dict(result.data))


def _unwrap(result: ServiceResult, key: str, parse) -> ServiceResult:
    if not result.success:
        return result
    raw: Any = result.data.get(key)
    return ServiceResult.ok(parse(raw) if raw else None)
