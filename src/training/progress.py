"""
Training progress state machine.

Merges ``training_progress`` telegrams from the engine, advances the task
index on ``task_completed`` and detects completion. Completion side effects
fire once per session; the latch is cleared only by starting or resetting
training.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Callable

from loguru import logger

from src.bridge import messages
from src.bridge.codec import Message, TrainingProgressTelegram, parse_tool_name, parse_training_progress
from src.bridge.events import EventBus
from src.bridge.message_bus import MessageBus
from src.bridge.messages import Inbound, TrainingCommand

PHASE_NOT_STARTED = "NotStarted"
PHASE_A = "Phase A"
PHASE_TOOL_SELECTION = "Tool Selection"
PHASE_TASK_ACTIVE = "Task Active"
PHASE_ALL_COMPLETE = "All Tasks Complete"


class TrainingMode(str, Enum):
    CINEMATIC = "cinematic"
    TRAINING = "training"


class UIMode(str, Enum):
    NORMAL = "normal"
    WAYPOINT = "waypoint"
    TASK = "task"


@dataclass
class TrainingProgressState:
    mode: TrainingMode = TrainingMode.CINEMATIC
    ui_mode: UIMode = UIMode.NORMAL
    progress: float = 0.0
    task_name: str = "Not Started"
    phase: str = PHASE_NOT_STARTED
    current_task_index: int = 0
    total_tasks: int = 6
    is_active: bool = False
    training_started: bool = False
    db_session_id: str | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["mode"] = self.mode.value
        data["ui_mode"] = self.ui_mode.value
        return data


class TrainingProgress:
    """Owns TrainingProgressState."""

    def __init__(
        self,
        bus: MessageBus,
        total_tasks: int = 6,
        events: EventBus | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.bus = bus
        self.events = events
        self._default_total = total_tasks
        self._clock = clock
        self.state = TrainingProgressState(total_tasks=total_tasks)
        self._completion_fired = False
        self._started_at: float | None = None

        self.on_training_progress: Callable[[TrainingProgressTelegram], None] | None = None
        self.on_training_complete: Callable[[float, int, int], None] | None = None
        self.on_task_completed: Callable[[str, int], None] | None = None
        self.on_task_start: Callable[[str], None] | None = None

    def bind(self) -> Callable[[], None]:
        return self.bus.on_message(self.handle_message)

    # ===== Inbound =====

    def handle_message(self, message: Message) -> None:
        if message.type == Inbound.TRAINING_PROGRESS:
            self._apply_progress(parse_training_progress(message))
        elif message.type == Inbound.TASK_COMPLETED:
            self._complete_task(parse_tool_name(message))
        elif message.type == Inbound.TASK_START:
            tool = parse_tool_name(message)
            self.state.phase = PHASE_TASK_ACTIVE
            if self.on_task_start:
                self.on_task_start(tool)

    def _apply_progress(self, telegram: TrainingProgressTelegram) -> None:
        state = self.state
        state.progress = telegram.progress
        state.task_name = telegram.task_name
        state.phase = telegram.phase
        state.current_task_index = telegram.current_task_index
        state.total_tasks = telegram.total_tasks
        state.is_active = telegram.is_active
        if telegram.is_active:
            state.mode = TrainingMode.TRAINING
            if state.ui_mode == UIMode.NORMAL:
                state.ui_mode = UIMode.TASK

        if self.on_training_progress:
            self.on_training_progress(telegram)

        if self.is_complete:
            self._fire_completion()

        self._emit(
            "training:progressUpdated",
            {
                "progress": state.progress,
                "current_task": state.current_task_index,
                "total_tasks": state.total_tasks,
            },
        )

    def _complete_task(self, task_id: str) -> None:
        state = self.state
        next_index = min(state.current_task_index + 1, state.total_tasks)
        state.current_task_index = next_index
        state.phase = PHASE_ALL_COMPLETE if next_index >= state.total_tasks else PHASE_TOOL_SELECTION
        logger.info("Task {} completed, next index {}", task_id or "?", next_index)
        if self.on_task_completed:
            self.on_task_completed(task_id, next_index)

    def _fire_completion(self) -> None:
        if self._completion_fired:
            return
        self._completion_fired = True
        state = self.state
        logger.info(
            "Training complete: progress={} task={}/{}",
            state.progress,
            state.current_task_index,
            state.total_tasks,
        )
        if self.on_training_complete:
            self.on_training_complete(state.progress, state.current_task_index, state.total_tasks)
        self._emit("training:completed", {"total_tasks": state.total_tasks})

    @property
    def is_complete(self) -> bool:
        return self.state.current_task_index >= self.state.total_tasks or self.state.progress >= 100

    @property
    def completion_fired(self) -> bool:
        return self._completion_fired

    @property
    def elapsed_ms(self) -> int:
        if self._started_at is None:
            return 0
        return int((self._clock() - self._started_at) * 1000)

    # ===== Commands =====

    def start_training(self) -> None:
        self._begin(0)
        self.bus.send_command(messages.training_control(TrainingCommand.START))
        self._emit("training:started", {"task_index": 0})

    def start_from_task(self, index: int) -> None:
        """Start training positioned at ``index`` (used when resuming)."""
        if index < 0:
            raise ValueError(f"Task index must be non-negative, got {index}")
        self._begin(index)
        self.bus.send_command(messages.start_from_task(index))
        self._emit("training:started", {"task_index": index})

    def _begin(self, index: int) -> None:
        self._started_at = self._clock()
        self._completion_fired = False
        state = self.state
        state.mode = TrainingMode.TRAINING
        state.ui_mode = UIMode.TASK
        state.phase = PHASE_A
        state.current_task_index = index
        state.training_started = False

    def pause_training(self) -> None:
        self.bus.send_command(messages.training_control(TrainingCommand.PAUSE))
        self._emit("training:paused")

    def resume_training(self) -> None:
        self.bus.send_command(messages.training_control(TrainingCommand.RESUME))
        self._emit("training:resumed")

    def reset_training(self) -> None:
        self.bus.send_command(messages.training_control(TrainingCommand.RESET))
        self.state = TrainingProgressState(total_tasks=self._default_total)
        self._completion_fired = False
        self._started_at = None

    def test_connection(self) -> None:
        self.bus.send_command(messages.training_control(TrainingCommand.TEST))

    # ===== Setters =====

    def set_mode(self, mode: TrainingMode | str) -> None:
        self.state.mode = TrainingMode(mode)

    def set_ui_mode(self, ui_mode: UIMode | str) -> None:
        self.state.ui_mode = UIMode(ui_mode)

    def set_phase(self, phase: str) -> None:
        self.state.phase = phase

    def set_current_task_index(self, index: int) -> None:
        if index < 0:
            raise ValueError(f"Task index must be non-negative, got {index}")
        self.state.current_task_index = index

    def set_training_started(self, started: bool) -> None:
        self.state.training_started = started

    def set_db_session_id(self, session_id: str | None) -> None:
        self.state.db_session_id = session_id

    def _emit(self, event: str, data: dict | None = None) -> None:
        if self.events:
            self.events.emit(event, data)
