"""
Modal arbitration.

A single-slot register for the active overlay. A question in progress is
never replaced by progress or session notices; those requests are refused
until the question closes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from loguru import logger

from src.bridge.events import EventBus


class ModalType(str, Enum):
    QUESTION = "question"
    TRAINING_COMPLETE = "trainingComplete"
    PHASE_SUCCESS = "phaseSuccess"
    ERROR = "error"
    NAVIGATION_WALKTHROUGH = "navigationWalkthrough"
    RESUME_CONFIRMATION = "resumeConfirmation"
    SESSION_END = "sessionEnd"
    SESSION_EXPIRY = "sessionExpiry"
    QUIT_TRAINING = "quitTraining"


class SessionEndReason(str, Enum):
    EXPIRED = "expired"
    LOGGED_OUT = "logged_out"
    INACTIVE = "inactive"
    KICKED = "kicked"
    OTHER = "other"


# Refused while a question is showing
BLOCKED_BY_QUESTION = frozenset(
    {
        ModalType.TRAINING_COMPLETE,
        ModalType.PHASE_SUCCESS,
        ModalType.NAVIGATION_WALKTHROUGH,
        ModalType.SESSION_END,
        ModalType.SESSION_EXPIRY,
    }
)


@dataclass
class PhaseSuccess:
    task_id: str
    task_name: str
    next_task_index: int


@dataclass
class ModalState:
    active_modal: ModalType | None = None
    question: Any = None
    phase_success: PhaseSuccess | None = None
    session_end_reason: SessionEndReason = SessionEndReason.OTHER
    error_message: str | None = None
    resume_phase_index: int = 0


class ModalArbiter:
    """Owns ModalState; at most one modal is active."""

    def __init__(self, events: EventBus | None = None):
        self.events = events
        self.state = ModalState()
        self._pending_question: Any = None

    @property
    def active_modal(self) -> ModalType | None:
        return self.state.active_modal

    @property
    def has_pending_question(self) -> bool:
        """A question is waiting behind the phase-success notice."""
        return self._pending_question is not None

    def is_open(self, modal: ModalType | str) -> bool:
        return self.state.active_modal == ModalType(modal)

    # ===== Open =====

    def open_question(self, question: Any) -> bool:
        """
        Show a question.

        Pre-empts anything except a phase-success notice; in that case the
        question is held (see ``has_pending_question``) and shown as soon as the
        notice closes.
        """
        if self.state.active_modal == ModalType.PHASE_SUCCESS:
            logger.debug("Phase success showing, holding question")
            self._pending_question = question
            return True
        self.state.question = question
        self._set(ModalType.QUESTION)
        return True

    def open_training_complete(self) -> bool:
        return self._open_guarded(ModalType.TRAINING_COMPLETE)

    def open_phase_success(self, data: PhaseSuccess) -> bool:
        if not self._admit(ModalType.PHASE_SUCCESS):
            return False
        self.state.phase_success = data
        self._set(ModalType.PHASE_SUCCESS)
        return True

    def open_navigation_walkthrough(self) -> bool:
        return self._open_guarded(ModalType.NAVIGATION_WALKTHROUGH)

    def open_session_end(self, reason: SessionEndReason | str = SessionEndReason.OTHER) -> bool:
        if not self._admit(ModalType.SESSION_END):
            return False
        self.state.session_end_reason = SessionEndReason(reason)
        self._set(ModalType.SESSION_END)
        return True

    def open_session_expiry(self) -> bool:
        return self._open_guarded(ModalType.SESSION_EXPIRY)

    def open_error(self, message: str | None = None) -> bool:
        self.state.error_message = message
        self._set(ModalType.ERROR)
        return True

    def open_resume_confirmation(self, phase_index: int) -> bool:
        self.state.resume_phase_index = phase_index
        self._set(ModalType.RESUME_CONFIRMATION)
        return True

    def open_quit_training(self) -> bool:
        self._set(ModalType.QUIT_TRAINING)
        return True

    # ===== Close =====

    def close(self) -> None:
        closed = self.state.active_modal
        if closed is None:
            return
        if closed == ModalType.QUESTION:
            self.state.question = None
        self.state.active_modal = None
        self._emit("ui:modalClosed", closed)

        if closed == ModalType.PHASE_SUCCESS and self._pending_question is not None:
            question, self._pending_question = self._pending_question, None
            self.open_question(question)

    def close_modal(self, modal: ModalType | str) -> None:
        if self.state.active_modal != ModalType(modal):
            return
        self.close()

    def reset(self) -> None:
        self.state = ModalState()
        self._pending_question = None

    # ===== Internals =====

    def _admit(self, modal: ModalType) -> bool:
        if modal in BLOCKED_BY_QUESTION and self.state.active_modal == ModalType.QUESTION:
            logger.debug("Question in progress, refusing {}", modal.value)
            return False
        return True

    def _open_guarded(self, modal: ModalType) -> bool:
        if not self._admit(modal):
            return False
        self._set(modal)
        return True

    def _set(self, modal: ModalType) -> None:
        self.state.active_modal = modal
        self._emit("ui:modalOpened", modal)

    def _emit(self, event: str, modal: ModalType) -> None:
        if self.events:
            self.events.emit(event, {"modal_id": modal.value})
