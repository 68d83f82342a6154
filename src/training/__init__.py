"""
Training Module - Task flow and quiz state.

Components:
- tasks: Ordered task list and tool metadata
- sequencer: Tool/pipe/pressure-test selection against the task sequence
- questions: Question bank and TTL catalog
- quiz: Question flow and answer ledger
- progress: Training progress state machine
- scene: Camera, exploded view, layers and waypoints
- session: Composite wiring all of the above on one bus
"""

from src.training.progress import TrainingMode, TrainingProgress, TrainingProgressState, UIMode
from src.training.questions import Question, QuestionCatalog
from src.training.quiz import AnswerRecord, QuestionFlow
from src.training.sequencer import ToolSelectionState, ToolSequencer
from src.training.session import TrainingSession
from src.training.tasks import DEFAULT_TASKS, Task, TaskSequence

__all__ = [
    "TrainingMode",
    "TrainingProgress",
    "TrainingProgressState",
    "UIMode",
    "Question",
    "QuestionCatalog",
    "AnswerRecord",
    "QuestionFlow",
    "ToolSelectionState",
    "ToolSequencer",
    "TrainingSession",
    "DEFAULT_TASKS",
    "Task",
    "TaskSequence",
]
