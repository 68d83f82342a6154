"""
Scene exploration controls: camera, exploded view, layers and waypoints.

These mirror engine state reported by ``camera_update``, ``explosion_update``,
``layer_list``, ``hierarchical_list``, ``waypoint_list`` and
``waypoint_update``, and send the matching control commands.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable

from src.bridge import messages
from src.bridge.codec import (
    CameraTelegram,
    HierarchicalEntry,
    LayerEntry,
    Message,
    WaypointEntry,
    parse_camera,
    parse_explosion,
    parse_hierarchical_list,
    parse_layer_list,
    parse_waypoint_list,
    parse_waypoint_update,
)
from src.bridge.events import EventBus
from src.bridge.message_bus import MessageBus
from src.bridge.messages import Inbound

CAMERA_MANUAL = "Manual"
CAMERA_ORBIT = "Orbit"
DEFAULT_PERSPECTIVE = "IsometricNE"
DEFAULT_DISTANCE = 1500.0

# engine camera updates are ignored this long after a user camera action
CAMERA_IGNORE_SECONDS = 0.5


@dataclass
class CameraState:
    mode: str = CAMERA_MANUAL
    perspective: str = DEFAULT_PERSPECTIVE
    distance: float = DEFAULT_DISTANCE


@dataclass
class ExplosionState:
    value: float = 0.0
    is_animating: bool = False


@dataclass
class LayerState:
    layers: list[LayerEntry] = field(default_factory=list)
    groups: list[HierarchicalEntry] = field(default_factory=list)
    waypoints: list[WaypointEntry] = field(default_factory=list)
    active_waypoint_index: int = -1
    active_waypoint_name: str = "None"


class _Control:
    def __init__(self, bus: MessageBus, events: EventBus | None = None):
        self.bus = bus
        self.events = events

    def bind(self) -> Callable[[], None]:
        return self.bus.on_message(self.handle_message)

    def handle_message(self, message: Message) -> None:
        raise NotImplementedError

    def _emit(self, event: str, data: dict | None = None) -> None:
        if self.events:
            self.events.emit(event, data)


class CameraControl(_Control):
    """Camera presets and orbit; user actions win over engine echoes briefly."""

    def __init__(
        self,
        bus: MessageBus,
        events: EventBus | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(bus, events)
        self._clock = clock
        self._ignore_until = 0.0
        self.state = CameraState()
        self.on_camera_update: Callable[[CameraTelegram], None] | None = None

    def handle_message(self, message: Message) -> None:
        if message.type != Inbound.CAMERA_UPDATE:
            return
        if self._clock() < self._ignore_until:
            return
        telegram = parse_camera(message)
        self.state = CameraState(
            mode=telegram.mode,
            perspective=telegram.perspective,
            distance=telegram.distance,
        )
        if self.on_camera_update:
            self.on_camera_update(telegram)

    def _hold(self) -> None:
        self._ignore_until = self._clock() + CAMERA_IGNORE_SECONDS

    def set_perspective(self, perspective: str) -> None:
        command = messages.camera_control(perspective)
        self._hold()
        self.state.perspective = perspective
        self.bus.send_command(command)
        self._emit("camera:perspectiveChanged", {"perspective": perspective})

    def toggle_auto_orbit(self) -> None:
        self._hold()
        if self.state.mode == CAMERA_ORBIT:
            self.state.mode = CAMERA_MANUAL
            self.bus.send_command(messages.camera_control("orbit_stop"))
        else:
            self.state.mode = CAMERA_ORBIT
            self.bus.send_command(messages.camera_control("orbit_start"))
        self._emit("camera:modeChanged", {"mode": self.state.mode})

    def reset(self) -> None:
        self._hold()
        self.state = CameraState(perspective="")
        self.bus.send_command(messages.camera_control("reset"))
        self._emit("camera:reset")


class ExplosionControl(_Control):
    def __init__(self, bus: MessageBus, events: EventBus | None = None):
        super().__init__(bus, events)
        self.state = ExplosionState()

    def handle_message(self, message: Message) -> None:
        if message.type != Inbound.EXPLOSION_UPDATE:
            return
        telegram = parse_explosion(message)
        self.state = ExplosionState(value=telegram.value, is_animating=telegram.is_animating)

    def set_level(self, level: int) -> None:
        self.bus.send_command(messages.explosion_control(int(level)))

    def explode(self) -> None:
        self.bus.send_command(messages.explosion_control("explode"))

    def assemble(self) -> None:
        self.bus.send_command(messages.explosion_control("assemble"))


class LayerControl(_Control):
    """Layers, hierarchical groups and navigation waypoints."""

    def __init__(self, bus: MessageBus, events: EventBus | None = None):
        super().__init__(bus, events)
        self.state = LayerState()

    def handle_message(self, message: Message) -> None:
        if message.type == Inbound.LAYER_LIST:
            self.state.layers = parse_layer_list(message)
        elif message.type == Inbound.HIERARCHICAL_LIST:
            self.state.groups = parse_hierarchical_list(message)
        elif message.type == Inbound.LAYER_UPDATE:
            self.refresh_layers()
        elif message.type == Inbound.WAYPOINT_LIST:
            self.state.waypoints = parse_waypoint_list(message)
        elif message.type == Inbound.WAYPOINT_UPDATE:
            telegram = parse_waypoint_update(message)
            self.state.active_waypoint_index = telegram.active_index
            self.state.active_waypoint_name = telegram.name if telegram.is_active else "None"

    # ===== Layers =====

    def refresh_layers(self) -> None:
        self.bus.send_command(messages.layer_control("list"))

    def refresh_hierarchical_layers(self) -> None:
        self.bus.send_command(messages.hierarchical_control("list"))

    def _layer(self, index: int) -> LayerEntry | None:
        return next((layer for layer in self.state.layers if layer.index == index), None)

    def toggle_layer(self, index: int) -> None:
        self.bus.send_command(messages.layer_control("toggle", index))
        layer = self._layer(index)
        if layer:
            self._emit("layer:toggled", {"layer_name": layer.name, "visible": not layer.visible})
        self.refresh_layers()

    def isolate_layer(self, index: int) -> None:
        self.bus.send_command(messages.layer_control("isolate", index))
        layer = self._layer(index)
        if layer:
            self._emit("layer:isolated", {"layer_name": layer.name})

    def show_all_layers(self) -> None:
        self.bus.send_command(messages.hierarchical_control("show_all"))
        self._emit("layer:allShown")
        self.refresh_hierarchical_layers()

    def hide_all_layers(self) -> None:
        self.bus.send_command(messages.hierarchical_control("hide_all"))
        self._emit("layer:allHidden")
        self.refresh_hierarchical_layers()

    def toggle_main_group(self, group: str) -> None:
        self.bus.send_command(messages.hierarchical_control("toggle_main", group))
        self.refresh_hierarchical_layers()

    def toggle_child_group(self, parent: str, child_index: int) -> None:
        self.bus.send_command(messages.hierarchical_control("toggle_child", parent, child_index))
        self.refresh_hierarchical_layers()

    # ===== Waypoints =====

    def refresh_waypoints(self) -> None:
        self.bus.send_command(messages.waypoint_control("list"))

    def activate_waypoint(self, index: int) -> None:
        self.bus.send_command(messages.waypoint_control("activate", index))
        waypoint = next((w for w in self.state.waypoints if w.index == index), None)
        if waypoint:
            self.state.active_waypoint_index = index
            self.state.active_waypoint_name = waypoint.name

    def deactivate_waypoint(self) -> None:
        self.bus.send_command(messages.waypoint_control("deactivate"))
        self.state.active_waypoint_index = -1
        self.state.active_waypoint_name = "None"
