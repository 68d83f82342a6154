"""
Session selection and resume.

Decides, when a learner presses start, whether to offer their unfinished
sessions or go straight to the cinematic intro, and replays the chosen
session into the training state once the stream connects. The replay runs
at most once per session.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

from loguru import logger

from src.flow.modals import ModalType
from src.persistence.autosave import TrainingPersistence
from src.persistence.snapshot import RestoredState
from src.services.models import ActiveSession, UserRole
from src.services.results import ServiceResult
from src.training.progress import TrainingMode
from src.training.session import TrainingSession

DEFAULT_LEGACY_RESTORE_DELAY_MS = 2000


class SessionDirectory(Protocol):
    async def get_active_sessions(self) -> ServiceResult: ...

    async def resume_session(self, session_id: str) -> ServiceResult: ...

    async def create_new_session(self) -> ServiceResult: ...


class AnswerSource(Protocol):
    async def get_answers(self) -> ServiceResult: ...


def should_resume_training(restored: RestoredState) -> bool:
    """A stored session resumes into training unless it never left the intro."""
    state = restored.training_state
    mode = state.mode if state is not None else TrainingMode.TRAINING.value
    phase = restored.current_training_phase or (state.phase if state is not None else None)
    return (
        mode == TrainingMode.TRAINING.value
        or bool(phase and phase != "0")
        or restored.overall_progress > 0
    )


def _phase_index(phase: str | None) -> int:
    try:
        return int(phase or "0")
    except ValueError:
        return 0


class SessionSelection:
    """Start-stream routing and once-per-session resume replay."""

    def __init__(
        self,
        session: TrainingSession,
        persistence: TrainingPersistence,
        directory: SessionDirectory | None = None,
        answers: AnswerSource | None = None,
        is_lti: bool = False,
        role: UserRole | str = UserRole.STUDENT,
        legacy_restore_delay_ms: int = DEFAULT_LEGACY_RESTORE_DELAY_MS,
    ):
        self.session = session
        self.persistence = persistence
        self.directory = directory
        self.answers = answers
        self.is_lti = is_lti
        self.role = UserRole(role)
        self.legacy_restore_delay = legacy_restore_delay_ms / 1000.0

        self.active_sessions: list[ActiveSession] = []
        self.sessions_loading = False
        self.selected_session: ActiveSession | None = None
        self.start_new_session_after_stream = False

        self._handled_session_id: str | None = None
        self._attempted_restore = False
        self._legacy_restore: asyncio.Task | None = None

    @property
    def is_lti_student(self) -> bool:
        return self.is_lti and self.role == UserRole.STUDENT

    def mark_session_handled(self, session_id: str) -> None:
        self._handled_session_id = session_id

    def is_session_handled(self, session_id: str) -> bool:
        return self._handled_session_id == session_id

    # ===== Start stream =====

    async def handle_start_stream(self) -> None:
        screens = self.session.screens
        if not self.is_lti_student or self.directory is None:
            screens.go_to_loading_for_cinematic()
            return

        self.sessions_loading = True
        try:
            result = await self.directory.get_active_sessions()
        finally:
            self.sessions_loading = False

        if result.success and result.data:
            self.active_sessions = list(result.data)
            logger.info("Found {} active sessions", len(self.active_sessions))
            screens.go_to_session_selection()
            return

        if not result.success:
            logger.error("Failed to check active sessions: {}", result.error)
        logger.info("No active sessions found, proceeding to cinematic mode")
        self.start_new_session_after_stream = True
        screens.go_to_loading_for_cinematic()

    # ===== Actions =====

    async def resume(self, active: ActiveSession) -> None:
        logger.info("Resuming session {} at phase {}", active.id, active.current_training_phase)
        if self.directory is not None:
            self.sessions_loading = True
            try:
                result = await self.directory.resume_session(active.id)
            finally:
                self.sessions_loading = False
            if not result.success:
                logger.error("Failed to resume session: {}", result.error)
        self.selected_session = active
        self.session.screens.go_to_loading_for_training()

    def start_new(self) -> None:
        logger.info("Starting new training session, cinematic first")
        self.selected_session = None
        self.start_new_session_after_stream = True
        self.session.screens.go_to_loading_for_cinematic()

    def confirm_resume(self, phase_index: int) -> None:
        self.session.modals.close_modal(ModalType.RESUME_CONFIRMATION)
        if phase_index > 0:
            self.session.start_from_task(phase_index)
        else:
            self.session.start_training()

    async def skip_to_training(self, delay_training_start: bool = False) -> None:
        """Leave the intro for training; optionally hold the start for the walkthrough."""
        self._enter_training()

        if self.is_lti_student and self.start_new_session_after_stream and self.directory is not None:
            logger.info("Creating new training session before starting training")
            result = await self.directory.create_new_session()
            if result.success:
                session_id = result.data.id if result.data else None
                self.session.progress.set_db_session_id(session_id)
                logger.info("Training session created: {}", session_id)
            else:
                logger.error("Failed to create training session: {}", result.error)

        if not delay_training_start:
            self.session.start_training()

    # ===== Stream connected =====

    async def on_stream_connected(self) -> None:
        """Run the resume replay for whatever was chosen before the stream started."""
        self.persistence.set_connected(True)
        self.session.screens.set_connected(True)

        selected = self.selected_session
        if selected is not None:
            if self.is_session_handled(selected.id):
                logger.debug("Resume already shown for session {}", selected.id)
                return
            await self._replay_selected(selected)
            return

        if self.start_new_session_after_stream:
            logger.info("New session, cinematic mode active until the learner skips to training")
            self.persistence.mark_state_restored()
            self.session.modals.close_modal(ModalType.NAVIGATION_WALKTHROUGH)
            return

        if not self.is_lti_student:
            self.persistence.mark_state_restored()
            return

        if self._attempted_restore:
            return
        self._attempted_restore = True
        self._legacy_restore = asyncio.get_running_loop().create_task(self._legacy_restore_after_delay())

    async def wait_for_restore(self) -> None:
        if self._legacy_restore is not None:
            await self._legacy_restore

    def cancel(self) -> None:
        if self._legacy_restore is not None and not self._legacy_restore.done():
            self._legacy_restore.cancel()

    async def _replay_selected(self, selected: ActiveSession) -> None:
        phase_index = selected.phase_index
        logger.info("Stream connected, showing resume confirmation for phase {}", phase_index)
        self.mark_session_handled(selected.id)
        self.persistence.mark_state_restored()
        self.session.progress.set_db_session_id(selected.id)

        await self.restore_quiz_answers()

        progress = self.session.progress
        progress.set_phase(selected.current_training_phase)
        progress.set_current_task_index(phase_index)
        self._enter_training()
        self.session.modals.open_resume_confirmation(phase_index)

    async def restore_quiz_answers(self) -> bool:
        if self.answers is None:
            return False
        result = await self.answers.get_answers()
        if not result.success:
            logger.warning("Failed to restore quiz answers: {}", result.error)
            return False
        self.session.quiz.restore_answers(result.data or [])
        logger.info("Restored {} quiz answers", len(result.data or []))
        return True

    async def _legacy_restore_after_delay(self) -> None:
        # give the stream a moment to settle before replaying commands
        await asyncio.sleep(self.legacy_restore_delay)
        self.persistence.mark_state_restored()
        restored = await self.persistence.saver.restore_state()
        if restored is None:
            return
        self.apply_restored_state(restored)

    def apply_restored_state(self, restored: RestoredState) -> None:
        state = restored.training_state
        phase = restored.current_training_phase or (state.phase if state is not None else None)
        screens = self.session.screens
        progress = self.session.progress

        if should_resume_training(restored):
            self._enter_training()
            phase_index = _phase_index(phase)
            if phase:
                progress.set_phase(phase)
            if state is not None and state.current_task_index > 0:
                progress.set_current_task_index(state.current_task_index)
            if phase_index > 0:
                logger.info("Resuming training from phase {}", phase_index)
                self.session.start_from_task(phase_index)
            else:
                self.session.start_training()
        elif state is not None and state.mode == TrainingMode.CINEMATIC.value:
            screens.go_to_cinematic()
            progress.set_mode(TrainingMode.CINEMATIC)
            self.persistence.cinematic_time_remaining = state.cinematic_time_remaining

        self.session.modals.close_modal(ModalType.NAVIGATION_WALKTHROUGH)

    def _enter_training(self) -> None:
        self.session.screens.go_to_training()
        self.session.progress.set_mode(TrainingMode.TRAINING)
