"""
Flow Module - Screen and overlay state.
"""

from src.flow.modals import ModalArbiter, ModalType, PhaseSuccess, SessionEndReason
from src.flow.screens import Screen, ScreenFlow

__all__ = [
    "ModalArbiter",
    "ModalType",
    "PhaseSuccess",
    "SessionEndReason",
    "Screen",
    "ScreenFlow",
]
