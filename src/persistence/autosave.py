"""
Auto-save and completion reporting for a training session.

Snapshots are saved through StatePersistence after every inbound message or
user action, but only once a restore has been attempted (so the initial
"Phase A" state never overwrites a saved session) and only while the stream
is connected. When training completes, students get their quiz ledger and
completion report submitted exactly once; teachers and admins are testing
and nothing is recorded for them.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Protocol

from loguru import logger

from src.bridge.codec import Message
from src.persistence.saver import StatePersistence
from src.services.models import CompletionReport, SessionStatus, UserRole
from src.services.results import ServiceResult
from src.training.quiz import build_question_data
from src.training.session import TrainingSession

# progress reports go out when progress moves this much or the phase changes
PROGRESS_REPORT_STEP = 5.0
PROGRESS_REPORT_INTERVAL_SECONDS = 5.0


class SessionRecorder(Protocol):
    async def complete_training(self, report: CompletionReport) -> ServiceResult: ...

    async def update_progress(self, phase: str, progress: float, time_spent_ms: int = 0) -> ServiceResult: ...

    async def record_time_spent(self, time_ms: int) -> ServiceResult: ...

    async def update_status(self, status: SessionStatus | str) -> ServiceResult: ...


class TrainingPersistence:
    """Gatekeeper between a TrainingSession and its StatePersistence."""

    def __init__(
        self,
        session: TrainingSession,
        saver: StatePersistence,
        recorder: SessionRecorder | None = None,
        role: UserRole | str = UserRole.STUDENT,
        question_count: int = 6,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session = session
        self.saver = saver
        self.recorder = recorder
        self.role = UserRole(role)
        self.question_count = question_count
        self._clock = clock

        self.is_connected = False
        self.cinematic_time_remaining: float | None = None
        self.restored_state: Any = None
        self._has_restored_state = False
        self._completion_submitted = False
        self._session_started_at = clock()
        self._last_report_time: float | None = None
        self._last_report_progress = 0.0
        self._last_report_phase: str | None = None
        self._tasks: set[asyncio.Task] = set()
        self._unsubscribers: list[Callable[[], None]] = []

        saver.on_state_restored = self._on_state_restored

    @property
    def has_restored_state(self) -> bool:
        return self._has_restored_state

    @property
    def is_student(self) -> bool:
        return self.role == UserRole.STUDENT

    @property
    def total_time_ms(self) -> int:
        return int((self._clock() - self._session_started_at) * 1000)

    def mark_state_restored(self) -> None:
        """Open the auto-save gate; called once a restore has been attempted."""
        self._has_restored_state = True

    def set_connected(self, connected: bool) -> None:
        self.is_connected = connected

    def set_cinematic_time_remaining(self, seconds: float | None) -> None:
        self.cinematic_time_remaining = seconds
        self.state_changed()

    def bind(self) -> Callable[[], None]:
        """Save after every inbound message and submit results on completion."""
        self._unsubscribers.append(self.session.bus.on_message(self._on_message))
        self._unsubscribers.append(self.session.events.on("training:completed", self._on_completed))
        self._unsubscribers.append(self.session.events.on("training:progressUpdated", self._on_progress))
        return self.unbind

    def unbind(self) -> None:
        while self._unsubscribers:
            self._unsubscribers.pop()()

    # ===== Auto-save =====

    def can_save(self) -> bool:
        return self.saver.enabled and self.is_connected and self._has_restored_state

    def snapshot(self):
        return self.session.snapshot(
            cinematic=self.session.screens.is_cinematic_mode,
            cinematic_time_remaining=self.cinematic_time_remaining,
        )

    def state_changed(self) -> None:
        """Queue a save of the current state if the gate is open."""
        if not self.can_save():
            return
        self.saver.schedule(self.snapshot())

    async def save_now(self) -> None:
        """Save the current state, bypassing the debounce window."""
        if not self.can_save():
            return
        await self.saver.save_state(self.snapshot())
        await self.saver.flush()

    def _on_message(self, message: Message) -> None:
        self.state_changed()

    def _on_state_restored(self, restored) -> None:
        self.restored_state = restored

    # ===== Progress reporting =====

    def _on_progress(self, data: dict, event: str) -> None:
        if self.recorder is None or not self.is_student:
            return
        state = self.session.progress.state
        now = self._clock()
        progress_changed = abs(state.progress - self._last_report_progress) >= PROGRESS_REPORT_STEP
        phase_changed = state.phase != self._last_report_phase
        due = self._last_report_time is None or now - self._last_report_time > PROGRESS_REPORT_INTERVAL_SECONDS
        if not (progress_changed or phase_changed) or not due:
            return

        self._last_report_time = now
        self._last_report_progress = state.progress
        self._last_report_phase = state.phase
        self._spawn(self._report_progress(state.phase, state.progress))

    async def _report_progress(self, phase: str, progress: float) -> None:
        result = await self.recorder.update_progress(phase, progress, self.total_time_ms)
        if not result.success:
            logger.warning("Failed to save training progress: {}", result.error)

    # ===== Completion =====

    def _on_completed(self, data: dict, event: str) -> None:
        self._spawn(self.submit_completion())

    async def submit_completion(self) -> bool:
        """Submit quiz results and complete the stored session (students only, once)."""
        if not self.is_student:
            logger.info("Skipping progress save for {} (test mode)", self.role.value)
            return False
        if self._completion_submitted:
            return False
        self._completion_submitted = True

        answers = list(self.session.quiz.answers)
        if answers:
            if await self.session.quiz.submit_quiz_results(self.question_count):
                logger.info("Quiz results saved")
            else:
                logger.warning("Failed to save quiz results")

        if self.recorder is None:
            logger.warning("No session store configured, completion not recorded")
            return False

        report = CompletionReport(
            total_time_ms=self.total_time_ms,
            phases_completed=self.session.progress.state.current_task_index + 1,
            total_questions=self.question_count,
            quiz_data=build_question_data(answers) if answers else None,
        )
        result = await self.recorder.complete_training(report)
        if not result.success:
            logger.warning("Failed to complete training session: {}", result.error)
            return False
        logger.info("Training session completed in store")
        return True

    # ===== Pause / quit =====

    async def pause_training(self) -> None:
        """Record time, mark the stored session paused, then pause the engine."""
        if self.recorder is not None and self.is_student:
            await self.recorder.record_time_spent(self.total_time_ms)
            await self.recorder.update_status(SessionStatus.PAUSED)
        self.session.progress.pause_training()

    async def quit_training(self) -> None:
        """Record time and flush state; the session stays active for a later resume."""
        if self.recorder is not None and self.is_student:
            await self.recorder.record_time_spent(self.total_time_ms)
        await self.save_now()

    async def close(self) -> None:
        self.unbind()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await self.saver.flush()
        await self.saver.close()

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
