"""
Top-level screen flow.

    starter -> sessionSelection
            -> loading -> cinematic | training
    cinematic <-> training

The only automatic transition is ``loading`` to the destination chosen
beforehand, taken when the stream reports connected.
"""

from __future__ import annotations

from enum import Enum

from loguru import logger

from src.bridge.events import EventBus


class Screen(str, Enum):
    STARTER = "starter"
    SESSION_SELECTION = "sessionSelection"
    LOADING = "loading"
    CINEMATIC = "cinematic"
    TRAINING = "training"


class ScreenFlow:
    """Explicit screen state machine gating when the stream may start."""

    def __init__(self, events: EventBus | None = None):
        self.events = events
        self.screen = Screen.STARTER
        self.is_connected = False
        self.intended_destination = Screen.CINEMATIC

    # ===== Derived flags =====

    @property
    def show_starter_screen(self) -> bool:
        return self.screen == Screen.STARTER

    @property
    def show_session_selection(self) -> bool:
        return self.screen == Screen.SESSION_SELECTION

    @property
    def show_loading_screen(self) -> bool:
        return self.screen == Screen.LOADING and not self.is_connected

    @property
    def is_cinematic_mode(self) -> bool:
        return self.screen == Screen.CINEMATIC

    @property
    def is_training_mode(self) -> bool:
        return self.screen == Screen.TRAINING

    @property
    def stream_started(self) -> bool:
        return self.screen in (Screen.LOADING, Screen.CINEMATIC, Screen.TRAINING)

    # ===== Transitions =====

    def go_to_session_selection(self) -> None:
        self._go(Screen.SESSION_SELECTION)

    def go_to_loading(self) -> None:
        self._go(Screen.LOADING)

    def go_to_loading_for_cinematic(self) -> None:
        self.intended_destination = Screen.CINEMATIC
        self._go(Screen.LOADING)

    def go_to_loading_for_training(self) -> None:
        self.intended_destination = Screen.TRAINING
        self._go(Screen.LOADING)

    def go_to_cinematic(self) -> None:
        self._go(Screen.CINEMATIC)

    def go_to_training(self) -> None:
        self._go(Screen.TRAINING)

    def set_connected(self, connected: bool) -> None:
        self.is_connected = connected
        if connected and self.screen == Screen.LOADING:
            self._go(self.intended_destination)

    def _go(self, screen: Screen) -> None:
        if screen != self.screen:
            logger.debug("Screen {} -> {}", self.screen.value, screen.value)
        self.screen = screen
        if self.events:
            self.events.emit("ui:screenChanged", {"screen": screen.value})
