"""
Protocol vocabulary shared with the engine.

Type tokens are case-sensitive. Outbound builders return ``(type, data)``
pairs ready for ``MessageBus.send_message``.
"""

from __future__ import annotations

from enum import Enum


class Inbound(str, Enum):
    """Telegram types sent by the engine."""

    TRAINING_PROGRESS = "training_progress"
    TOOL_CHANGE = "tool_change"
    TASK_COMPLETED = "task_completed"
    TASK_START = "task_start"
    TASK_COMPLETE = "task_complete"
    TASK_DEBUG = "task_debug"
    QUESTION_REQUEST = "question_request"
    WAYPOINT_LIST = "waypoint_list"
    WAYPOINT_UPDATE = "waypoint_update"
    LAYER_LIST = "layer_list"
    LAYER_UPDATE = "layer_update"
    HIERARCHICAL_LIST = "hierarchical_list"
    EXPLOSION_UPDATE = "explosion_update"
    CAMERA_UPDATE = "camera_update"


class Outbound(str, Enum):
    """Command types sent to the engine."""

    TRAINING_CONTROL = "training_control"
    TOOL_SELECT = "tool_select"
    TASK_START = "task_start"
    PIPE_SELECT = "pipe_select"
    TEST_PLUG_SELECT = "test_plug_select"
    PRESSURE_TEST_START = "pressure_test_start"
    QUESTION_ANSWER = "question_answer"
    CAMERA_CONTROL = "camera_control"
    EXPLOSION_CONTROL = "explosion_control"
    WAYPOINT_CONTROL = "waypoint_control"
    LAYER_CONTROL = "layer_control"
    HIERARCHICAL_CONTROL = "hierarchical_control"
    APPLICATION_CONTROL = "application_control"


class TrainingCommand(str, Enum):
    START = "start"
    PAUSE = "pause"
    RESUME = "resume"
    RESET = "reset"
    ABORT = "abort"
    TEST = "test"


# ===== Fixed payload values =====

AIR_PLUG = "AirPlug"
PRESSURE_TEST_AIR = "air_test"
PRESSURE_TEST_Q6_CLOSED = "player_closed_q6"
APPLICATION_QUIT = "quit"

PIPE_TYPES = ("y-junction", "elbow", "100mm", "150mm")

CAMERA_VIEWS = (
    "Front",
    "Back",
    "Left",
    "Right",
    "Top",
    "Bottom",
    "IsometricNE",
    "IsometricSE",
    "IsometricSW",
)
CAMERA_ACTIONS = ("orbit_start", "orbit_stop", "reset")

Command = tuple[str, str]


# ===== Builders =====


def training_control(command: TrainingCommand | str) -> Command:
    return Outbound.TRAINING_CONTROL.value, TrainingCommand(command).value


def start_from_task(index: int) -> Command:
    if index < 0:
        raise ValueError(f"Task index must be non-negative, got {index}")
    return Outbound.TRAINING_CONTROL.value, f"start_from_task:{index}"


def tool_select(tool: str) -> Command:
    return Outbound.TOOL_SELECT.value, tool


def task_start(tool: str, pipe: str | None = None) -> Command:
    return Outbound.TASK_START.value, f"{tool}:{pipe}" if pipe else tool


def pipe_select(pipe: str) -> Command:
    return Outbound.PIPE_SELECT.value, pipe


def test_plug_select() -> Command:
    return Outbound.TEST_PLUG_SELECT.value, AIR_PLUG


def pressure_test_start(kind: str = PRESSURE_TEST_AIR) -> Command:
    return Outbound.PRESSURE_TEST_START.value, kind


def question_answer(question_id: str, try_count: int, correct: bool = True) -> Command:
    return Outbound.QUESTION_ANSWER.value, f"{question_id}:{try_count}:{str(correct).lower()}"


def camera_control(action: str) -> Command:
    """Camera view preset or orbit action."""
    if action not in CAMERA_VIEWS and action not in CAMERA_ACTIONS:
        raise ValueError(f"Unknown camera action: {action}")
    return Outbound.CAMERA_CONTROL.value, action


def explosion_control(action: str | int) -> Command:
    """``explode``, ``assemble`` or an explicit level 0-100."""
    if isinstance(action, int):
        level = max(0, min(100, action))
        return Outbound.EXPLOSION_CONTROL.value, str(level)
    if action not in ("explode", "assemble"):
        raise ValueError(f"Unknown explosion action: {action}")
    return Outbound.EXPLOSION_CONTROL.value, action


def waypoint_control(action: str, index: int | None = None) -> Command:
    if action == "activate":
        return Outbound.WAYPOINT_CONTROL.value, f"activate:{index}"
    if action in ("list", "deactivate"):
        return Outbound.WAYPOINT_CONTROL.value, action
    raise ValueError(f"Unknown waypoint action: {action}")


def layer_control(action: str, index: int | None = None) -> Command:
    if action in ("toggle", "isolate"):
        return Outbound.LAYER_CONTROL.value, f"{action}:{index}"
    if action == "list":
        return Outbound.LAYER_CONTROL.value, action
    raise ValueError(f"Unknown layer action: {action}")


def hierarchical_control(
    action: str,
    group: str | None = None,
    child_index: int | None = None,
) -> Command:
    if action in ("list", "show_all", "hide_all"):
        return Outbound.HIERARCHICAL_CONTROL.value, action
    if action == "toggle_main":
        return Outbound.HIERARCHICAL_CONTROL.value, f"toggle_main:{group}"
    if action == "toggle_child":
        return Outbound.HIERARCHICAL_CONTROL.value, f"toggle_child:{group}:{child_index}"
    raise ValueError(f"Unknown hierarchical action: {action}")


def application_quit() -> Command:
    return Outbound.APPLICATION_CONTROL.value, APPLICATION_QUIT
