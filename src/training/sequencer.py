"""
Tool/task sequencer.

Validates tool selections against the task at the current index and turns
user choices into engine commands. The engine stays authoritative for which
tool is actually held (``tool_change``) and for task completion
(``task_completed``).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Callable

from loguru import logger

from src.bridge import messages
from src.bridge.codec import Message, parse_tool_name
from src.bridge.events import EventBus
from src.bridge.message_bus import MessageBus
from src.bridge.messages import Inbound, TrainingCommand
from src.training.tasks import MULTI_STEP_TOOLS, NO_TOOL, TaskSequence

AIR_PLUG = "air-plug"
CONDUCT_TEST = "conduct-test"


@dataclass
class ToolSelectionState:
    current_tool: str = NO_TOOL
    selected_tool: str | None = None
    selected_pipe: str | None = None
    air_plug_selected: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


class ToolSequencer:
    """Owns ToolSelectionState and the tool/pipe/pressure-test commands."""

    def __init__(
        self,
        bus: MessageBus,
        tasks: TaskSequence | None = None,
        events: EventBus | None = None,
    ):
        self.bus = bus
        self.tasks = tasks or TaskSequence()
        self.events = events
        self.state = ToolSelectionState()

        self.on_tool_change: Callable[[str], None] | None = None
        self.on_auto_advance: Callable[[str, int], None] | None = None

    def bind(self) -> Callable[[], None]:
        return self.bus.on_message(self.handle_message)

    # ===== Inbound =====

    def handle_message(self, message: Message) -> None:
        if message.type == Inbound.TOOL_CHANGE:
            tool = parse_tool_name(message, NO_TOOL)
            previous = self.state.current_tool
            logger.info("Tool change confirmed by engine: {}", tool)
            self.state.current_tool = tool
            if self.on_tool_change:
                self.on_tool_change(tool)
            self._emit("tool:selected", {"tool_name": tool, "previous_tool": previous})

        elif message.type == Inbound.TASK_COMPLETED:
            self.state = ToolSelectionState()

    # ===== User actions =====

    def select_tool(
        self,
        tool: str,
        current_index: int,
        on_training_start: Callable[[], None] | None = None,
    ) -> bool:
        """
        Select a tool for the task at ``current_index``.

        Returns False without touching state or sending anything when the tool
        is not the one the current task expects. The first task's tool also
        starts training.
        """
        expected = self.tasks.expected_tool(current_index)
        if expected is None or tool != expected:
            logger.info("Wrong tool for task {}: expected {}, got {}", current_index, expected, tool)
            return False

        self.state.selected_tool = tool
        self.state.current_tool = tool
        self._emit("tool:selected", {"tool_name": tool})

        if current_index == 0:
            logger.info("First tool selected, starting training: {}", tool)
            self.bus.send_command(messages.training_control(TrainingCommand.START))
            if on_training_start:
                on_training_start()
        else:
            self.bus.send_command(messages.tool_select(tool))

        if tool not in MULTI_STEP_TOOLS and current_index > 0:
            self.bus.send_command(messages.task_start(tool))
        return True

    def select_pipe(self, pipe: str) -> None:
        if pipe not in messages.PIPE_TYPES:
            logger.warning("Unrecognised pipe type: {}", pipe)
        self.state.selected_pipe = pipe
        self.bus.send_command(messages.pipe_select(pipe))
        if self.state.selected_tool:
            self.bus.send_command(messages.task_start(self.state.selected_tool, pipe))

    def select_pressure_test(self, kind: str) -> None:
        if kind == AIR_PLUG:
            self.state.air_plug_selected = True
            self.bus.send_command(messages.test_plug_select())
        elif kind == CONDUCT_TEST:
            self.bus.send_command(messages.pressure_test_start(messages.PRESSURE_TEST_AIR))
            self.bus.send_command(messages.task_start("PressureTester"))
        else:
            raise ValueError(f"Unknown pressure test action: {kind}")

    def auto_advance_to_next_task(self, next_index: int) -> None:
        task = self.tasks.get(next_index)
        if task is None:
            logger.info("All tasks completed, nothing to advance to")
            return

        logger.info("Auto-advancing to task {} ({})", next_index, task.tool)
        self.state = ToolSelectionState(current_tool=task.tool, selected_tool=task.tool)
        self.bus.send_command(messages.tool_select(task.tool))
        if not task.is_multi_step:
            self.bus.send_command(messages.task_start(task.tool))
        if self.on_auto_advance:
            self.on_auto_advance(task.tool, next_index)

    def reset(self) -> None:
        self.state = ToolSelectionState()

    def _emit(self, event: str, data: dict) -> None:
        if self.events:
            self.events.emit(event, data)
