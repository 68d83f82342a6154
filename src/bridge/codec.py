"""
Line protocol codec for the engine control channel.

Wire format is ``{type}:{data}`` where ``data`` is usually a colon-delimited
list of positional fields. Decoding splits on the first colon only, so
colons inside ``data`` survive untouched.

Field helpers never raise: missing or unparseable fields fall back to a
default so that the engine can add fields without breaking older clients.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

SEPARATOR = ":"
LIST_SEPARATOR = ","


@dataclass(frozen=True)
class Message:
    """One decoded protocol message."""

    type: str
    data: str
    raw: str = ""
    data_segments: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        if not self.data_segments:
            object.__setattr__(self, "data_segments", tuple(self.data.split(SEPARATOR)))


def encode(msg_type: str, data: str = "") -> str:
    """Encode a message as ``type:data``."""
    return f"{msg_type}{SEPARATOR}{data}"


def decode(raw: str | None) -> Message | None:
    """
    Decode a wire string.

    Returns None for anything malformed: no colon, an empty type, or a
    non-string payload.
    """
    if not isinstance(raw, str):
        return None
    msg_type, sep, data = raw.partition(SEPARATOR)
    if not sep or not msg_type.strip():
        return None
    return Message(type=msg_type, data=data, raw=raw)


def split_raw(raw: str) -> tuple[str, str]:
    """Split a raw string for display, tolerating a missing colon."""
    msg_type, _, data = raw.partition(SEPARATOR)
    return msg_type, data


# ===== Positional field helpers =====


def field_str(parts: Sequence[str], index: int, default: str = "") -> str:
    if index < len(parts) and parts[index] != "":
        return parts[index]
    return default


def field_int(parts: Sequence[str], index: int, default: int = 0) -> int:
    try:
        return int(parts[index])
    except (IndexError, ValueError):
        return default


def field_float(parts: Sequence[str], index: int, default: float = 0.0) -> float:
    try:
        return float(parts[index])
    except (IndexError, ValueError):
        return default


def field_bool(parts: Sequence[str], index: int) -> bool:
    return index < len(parts) and parts[index] == "true"


# ===== Typed telegrams =====


@dataclass
class TrainingProgressTelegram:
    progress: float = 0.0
    task_name: str = "Not Started"
    phase: str = "NotStarted"
    current_task_index: int = 0
    total_tasks: int = 5
    is_active: bool = False


@dataclass
class ExplosionTelegram:
    value: float = 0.0
    is_animating: bool = False


@dataclass
class CameraTelegram:
    mode: str = "Manual"
    perspective: str = "IsometricNE"
    distance: float = 1500.0
    is_transitioning: bool = False


@dataclass
class WaypointEntry:
    index: int
    name: str


@dataclass
class WaypointTelegram:
    active_index: int = -1
    name: str = "None"
    is_active: bool = False
    progress: float = 0.0


@dataclass
class LayerEntry:
    index: int
    name: str
    visible: bool = False
    actor_count: int = 0


@dataclass
class HierarchicalEntry:
    name: str
    visible: bool = False
    is_child: bool = False
    actor_count: int = 0
    parent_name: str | None = None
    child_index: int | None = None


def parse_training_progress(message: Message) -> TrainingProgressTelegram:
    """``progress:taskName:phase:currentTask:totalTasks:isActive``"""
    parts = message.data_segments
    defaults = TrainingProgressTelegram()
    return TrainingProgressTelegram(
        progress=field_float(parts, 0, defaults.progress),
        task_name=field_str(parts, 1, defaults.task_name),
        phase=field_str(parts, 2, defaults.phase),
        current_task_index=field_int(parts, 3, defaults.current_task_index),
        # zero tasks would read as instantly complete
        total_tasks=field_int(parts, 4, defaults.total_tasks) or defaults.total_tasks,
        is_active=field_bool(parts, 5),
    )


def parse_tool_name(message: Message, default: str = "") -> str:
    return field_str(message.data_segments, 0, default)


def parse_question_id(message: Message) -> str:
    return field_str(message.data_segments, 0, "Q1")


def parse_explosion(message: Message) -> ExplosionTelegram:
    parts = message.data_segments
    return ExplosionTelegram(value=field_float(parts, 0), is_animating=field_bool(parts, 1))


def parse_camera(message: Message) -> CameraTelegram:
    parts = message.data_segments
    defaults = CameraTelegram()
    return CameraTelegram(
        mode=field_str(parts, 0, defaults.mode),
        perspective=field_str(parts, 1, defaults.perspective),
        distance=field_float(parts, 2, defaults.distance),
        is_transitioning=field_bool(parts, 3),
    )


def parse_waypoint_update(message: Message) -> WaypointTelegram:
    parts = message.data_segments
    telegram = WaypointTelegram(
        active_index=field_int(parts, 0, -1),
        name=field_str(parts, 1, "None"),
        is_active=field_bool(parts, 2),
        progress=field_float(parts, 3),
    )
    if not telegram.is_active:
        telegram.active_index = -1
    return telegram


def _list_items(message: Message) -> tuple[int, list[list[str]]]:
    count_raw, _, body = message.data.partition(SEPARATOR)
    count = field_int([count_raw], 0)
    if count <= 0 or not body:
        return count, []
    return count, [item.split(SEPARATOR) for item in body.split(LIST_SEPARATOR)]


def parse_waypoint_list(message: Message) -> list[WaypointEntry]:
    """``count:index:name,index:name,...``"""
    _, items = _list_items(message)
    return [
        WaypointEntry(index=field_int(item, 0), name=item[1])
        for item in items
        if len(item) > 1 and item[1]
    ]


def parse_layer_list(message: Message) -> list[LayerEntry]:
    """``count:index:name:visible:actorCount,...``"""
    _, items = _list_items(message)
    return [
        LayerEntry(
            index=field_int(item, 0),
            name=item[1],
            visible=field_bool(item, 2),
            actor_count=field_int(item, 3),
        )
        for item in items
        if len(item) > 1 and item[1]
    ]


def parse_hierarchical_list(message: Message) -> list[HierarchicalEntry]:
    """``count:name:visible:isChild:actorCount:parentName:childIndex,...``"""
    _, items = _list_items(message)
    entries = []
    for item in items:
        if not item[0]:
            continue
        child_raw = field_str(item, 5)
        entries.append(
            HierarchicalEntry(
                name=item[0],
                visible=field_bool(item, 1),
                is_child=field_bool(item, 2),
                actor_count=field_int(item, 3),
                parent_name=field_str(item, 4) or None,
                child_index=field_int(item, 5) if child_raw else None,
            )
        )
    return entries
