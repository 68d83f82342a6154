"""
Persistence Module - Resume snapshots.

Components:
- snapshot: Persisted training state model
- saver: Debounced writer and one-shot restorer
- autosave: Save gate and completion reporting (import directly)
- resume: Session selection and resume replay (import directly)
"""

from src.persistence.saver import StatePersistence, StateStore
from src.persistence.snapshot import PersistedTrainingState, RestoredState

__all__ = [
    "StatePersistence",
    "StateStore",
    "PersistedTrainingState",
    "RestoredState",
]
