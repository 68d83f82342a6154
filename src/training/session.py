"""
Training session composite.

Builds every training feature on one message bus and event bus and wires the
cross-feature reactions:

- a question request opens the question modal
- a completed task opens the phase-success notice; continuing advances to the
  next task's tool
- training completion opens the completion modal

The composite also assembles the resume snapshot from the feature states.
"""

from __future__ import annotations

from typing import Callable

from loguru import logger

from src.bridge.events import EventBus
from src.bridge.message_bus import MessageBus
from src.flow.modals import ModalArbiter, ModalType, PhaseSuccess
from src.flow.screens import ScreenFlow
from src.persistence.snapshot import PersistedTrainingState
from src.training.progress import TrainingMode, TrainingProgress
from src.training.questions import Question, QuestionCatalog
from src.training.quiz import AnswerOutcome, QuestionFlow, QuizResultsSink
from src.training.scene import CameraControl, ExplosionControl, LayerControl
from src.training.sequencer import ToolSequencer
from src.training.tasks import TaskSequence


class TrainingSession:
    """Composition root for one streamed training session."""

    def __init__(
        self,
        bus: MessageBus | None = None,
        events: EventBus | None = None,
        tasks: TaskSequence | None = None,
        catalog: QuestionCatalog | None = None,
        results_sink: QuizResultsSink | None = None,
        terminal_question_id: str = "Q6",
    ):
        self.bus = bus or MessageBus()
        self.events = events or EventBus()
        self.tasks = tasks or TaskSequence()
        self.catalog = catalog or QuestionCatalog()

        self.sequencer = ToolSequencer(self.bus, self.tasks, self.events)
        self.quiz = QuestionFlow(
            self.bus,
            self.catalog,
            results_sink=results_sink,
            events=self.events,
            terminal_question_id=terminal_question_id,
        )
        self.progress = TrainingProgress(self.bus, total_tasks=len(self.tasks), events=self.events)
        self.camera = CameraControl(self.bus, self.events)
        self.explosion = ExplosionControl(self.bus, self.events)
        self.layers = LayerControl(self.bus, self.events)
        self.modals = ModalArbiter(self.events)
        self.screens = ScreenFlow(self.events)

        self._unsubscribers: list[Callable[[], None]] = []
        self._completion_deferred = False

        self.quiz.on_question_request = self._on_question_request
        self.progress.on_task_completed = self._on_task_completed
        self.progress.on_training_complete = self._on_training_complete

    async def load(self) -> None:
        """Fill the question cache before any question request arrives."""
        await self.catalog.get_all()

    def bind_all(self) -> Callable[[], None]:
        """Subscribe every feature to the bus; returns one unsubscribe for all."""
        # progress first so the sequencer and modals see the advanced index
        for feature in (
            self.progress,
            self.sequencer,
            self.quiz,
            self.camera,
            self.explosion,
            self.layers,
        ):
            self._unsubscribers.append(feature.bind())
        return self.unbind_all

    def unbind_all(self) -> None:
        while self._unsubscribers:
            self._unsubscribers.pop()()

    # ===== Cross-feature reactions =====

    def _on_question_request(self, question_id: str, question: Question) -> None:
        self.modals.open_question(question)

    def _on_task_completed(self, task_id: str, next_index: int) -> None:
        completed = self.tasks.find(task_id) if task_id else None
        if completed is None and 0 < next_index <= len(self.tasks):
            completed = self.tasks.get(next_index - 1)

        if completed is None or next_index >= len(self.tasks):
            return
        self.modals.open_phase_success(
            PhaseSuccess(
                task_id=completed.task_id,
                task_name=completed.name,
                next_task_index=next_index,
            )
        )

    def _on_training_complete(self, progress: float, index: int, total: int) -> None:
        if not self.modals.open_training_complete():
            self._completion_deferred = True
            logger.info("Completion modal deferred, question in progress")

    # ===== User actions =====

    def select_tool(self, tool: str) -> bool:
        return self.sequencer.select_tool(
            tool,
            self.progress.state.current_task_index,
            on_training_start=self._on_first_tool,
        )

    def _on_first_tool(self) -> None:
        self.progress.set_training_started(True)

    def answer_question(self, selected_index: int) -> AnswerOutcome | None:
        return self.quiz.submit_question_answer(selected_index)

    def close_question(self) -> None:
        self.quiz.close_question()
        self.modals.close_modal(ModalType.QUESTION)
        if self._completion_deferred and self.modals.active_modal is None:
            self._completion_deferred = False
            self.modals.open_training_complete()

    def continue_after_phase(self) -> None:
        """Dismiss the phase-success notice and move on to the next task's tool."""
        phase = self.modals.state.phase_success
        self.modals.close_modal(ModalType.PHASE_SUCCESS)
        self.modals.state.phase_success = None
        if phase is not None:
            self.sequencer.auto_advance_to_next_task(phase.next_task_index)

    def start_training(self) -> None:
        self._completion_deferred = False
        self.progress.start_training()

    def start_from_task(self, index: int) -> None:
        self._completion_deferred = False
        self.progress.start_from_task(index)

    def reset(self) -> None:
        self.progress.reset_training()
        self.sequencer.reset()
        self.quiz.reset()
        self.quiz.clear_answers()
        self.modals.reset()
        self._completion_deferred = False

    # ===== Snapshot =====

    def snapshot(
        self,
        cinematic: bool | None = None,
        cinematic_time_remaining: float | None = None,
    ) -> PersistedTrainingState:
        """Resume snapshot of the current feature states."""
        progress = self.progress.state
        tools = self.sequencer.state
        if cinematic is None:
            cinematic = progress.mode == TrainingMode.CINEMATIC
        return PersistedTrainingState(
            mode=TrainingMode.CINEMATIC.value if cinematic else TrainingMode.TRAINING.value,
            ui_mode=progress.ui_mode.value,
            current_task_index=progress.current_task_index,
            task_name=progress.task_name,
            phase=progress.phase,
            progress=progress.progress,
            selected_tool=tools.selected_tool,
            selected_pipe=tools.selected_pipe,
            air_plug_selected=tools.air_plug_selected,
            camera_mode=self.camera.state.mode,
            camera_perspective=self.camera.state.perspective,
            explosion_level=self.explosion.state.value,
            cinematic_time_remaining=cinematic_time_remaining,
        )
