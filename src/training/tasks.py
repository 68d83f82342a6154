"""
Training curriculum: the ordered task list and tool metadata.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Iterator

NO_TOOL = "None"

# Tools that need a secondary selection (pipe type, test plug) before the task starts
MULTI_STEP_TOOLS = frozenset({"PipeConnection", "PressureTester"})


@dataclass(frozen=True)
class Task:
    """One step of the curriculum, bound to exactly one tool."""

    tool: str
    name: str
    task_id: str
    description: str = ""

    @property
    def is_multi_step(self) -> bool:
        return self.tool in MULTI_STEP_TOOLS

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Task":
        return cls(
            tool=data["tool"],
            name=data["name"],
            task_id=data.get("task_id") or data.get("taskId", ""),
            description=data.get("description", ""),
        )


DEFAULT_TASKS: tuple[Task, ...] = (
    Task("XRay", "Pipe Location Scanning", "XRAY_MAIN", "Use the X-Ray scanner to locate existing pipes"),
    Task("Shovel", "Excavation", "SHOVEL_MAIN", "Excavate the trench for pipe installation"),
    Task("Measuring", "Pipe Measuring", "MEASURING_MAIN", "Measure the pipe dimensions accurately"),
    Task("PipeConnection", "Pipe Connection", "PIPE_CONNECTION_MAIN", "Connect the pipes correctly"),
    Task("Glue", "Glue Application", "GLUE_MAIN", "Apply glue to secure the connections"),
    Task("PressureTester", "Pressure Testing", "PRESSURE_TEST_MAIN", "Test the system pressure for leaks"),
)


class TaskSequence:
    """Immutable ordered task list. Index ``len(self)`` means all tasks are done."""

    def __init__(self, tasks: tuple[Task, ...] | list[Task] = DEFAULT_TASKS):
        if not tasks:
            raise ValueError("Task sequence cannot be empty")
        self._tasks = tuple(tasks)

    @classmethod
    def from_file(cls, path: Path) -> "TaskSequence":
        """Load a task list from a JSON array of task objects."""
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        return cls([Task.from_dict(item) for item in data])

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> Iterator[Task]:
        return iter(self._tasks)

    def get(self, index: int) -> Task | None:
        if 0 <= index < len(self._tasks):
            return self._tasks[index]
        return None

    def expected_tool(self, index: int) -> str | None:
        task = self.get(index)
        return task.tool if task else None

    def index_of(self, tool: str) -> int:
        for i, task in enumerate(self._tasks):
            if task.tool == tool:
                return i
        return -1

    def find(self, key: str) -> Task | None:
        """Task whose id or tool is ``key``."""
        return next((task for task in self._tasks if key in (task.task_id, task.tool)), None)

    def is_complete(self, index: int) -> bool:
        return index >= len(self._tasks)
