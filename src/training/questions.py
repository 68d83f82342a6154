"""
Question catalogue.

Questions come from a loader (the session store, or the built-in bank) and
are cached for a configurable TTL. The catalogue is an ordinary object owned
by whoever wires the session together; there is no module-level cache.
"""

from __future__ import annotations

import time
from typing import Awaitable, Callable

from loguru import logger
from pydantic import BaseModel, Field

ANSWER_LETTERS = ("A", "B", "C", "D")
DEFAULT_EXPLANATION = "Correct answer based on NZS3500 standards."

PHASE_CATEGORIES = {
    "XRAY_ASSESSMENT": "scanning",
    "EXCAVATION": "excavation",
    "MEASUREMENT": "measurement",
    "GLUE_APPLICATION": "connection",
    "PRESSURE_TESTING": "testing",
}


class Question(BaseModel):
    """A multiple-choice question posed by the engine."""

    id: str
    name: str = ""
    text: str
    options: list[str] = Field(min_length=2)
    correct_answer: int = Field(ge=0)
    explanation: str = DEFAULT_EXPLANATION
    category: str = ""

    def is_correct(self, selected_index: int) -> bool:
        return selected_index == self.correct_answer


def answer_letter(index: int) -> str:
    """0 -> 'A'. Out-of-range indices map to '?'."""
    if 0 <= index < len(ANSWER_LETTERS):
        return ANSWER_LETTERS[index]
    return "?"


def answer_index(letter: str) -> int:
    return ANSWER_LETTERS.index(letter.upper())


def question_from_row(row: dict) -> Question:
    """Build a Question from a questionnaire row (``option_a``..``option_d``, letter answer)."""
    reference = row.get("nzs3500_reference")
    phase = row.get("phase", "")
    return Question(
        id=row["question_id"],
        name=phase.replace("_", " ").title(),
        text=row["question_text"],
        options=[row["option_a"], row["option_b"], row["option_c"], row["option_d"]],
        correct_answer=answer_index(row["correct_answer"]),
        explanation=f"Reference: {reference}" if reference else DEFAULT_EXPLANATION,
        category=PHASE_CATEGORIES.get(phase, ""),
    )


QUESTION_BANK: dict[str, Question] = {
    q.id: q
    for q in (
        Question(
            id="Q1",
            name="Scanning",
            text="What should you do before excavating near existing utilities?",
            options=[
                "Start digging immediately",
                "Use XRay scanner to locate pipes",
                "Call for permits only",
                "Mark the area with spray paint",
            ],
            correct_answer=1,
            explanation=(
                "XRay scanning must be performed first to safely locate existing pipes "
                "and utilities before any excavation work begins."
            ),
            category="scanning",
        ),
        Question(
            id="Q2",
            name="Trench Depth",
            text="What is the minimum excavation depth for toilet waste pipe connections?",
            options=["200mm", "300mm", "450mm", "600mm"],
            correct_answer=2,
            explanation=(
                "Toilet waste pipe connections typically require a minimum excavation depth "
                "of 450mm to ensure proper fall and connection to the main sewer line."
            ),
            category="excavation",
        ),
        Question(
            id="Q3",
            name="Trench Width",
            text="What is the standard trench width for 100mm pipes?",
            options=["200mm", "300mm", "400mm", "500mm"],
            correct_answer=2,
            explanation="Trenches should be 3-4 times the pipe diameter, so 400mm for 100mm pipes.",
            category="excavation",
        ),
        Question(
            id="Q4",
            name="Pipe Slope",
            text="What is the correct slope for drainage pipes?",
            options=["1:40", "1:60", "1:80", "1:100"],
            correct_answer=1,
            explanation="A slope of 1:60 (1.67%) ensures proper drainage flow for most applications.",
            category="measurement",
        ),
        Question(
            id="Q5",
            name="Pressure",
            text="Maximum pressure for residential water systems?",
            options=["350 kPa", "500 kPa", "650 kPa", "800 kPa"],
            correct_answer=1,
            explanation="Residential water systems typically operate at 500 kPa maximum pressure.",
            category="testing",
        ),
        Question(
            id="Q6",
            name="PSI Level",
            text="What PSI level confirms a successful air pressure test according to NZS3500?",
            options=["10 PSI", "15 PSI", "20 PSI", "25 PSI"],
            correct_answer=2,
            explanation=(
                "According to NZS3500 standards, a successful air pressure test requires "
                "maintaining 20 PSI for the specified test duration without pressure loss."
            ),
            category="testing",
        ),
    )
}

QuestionLoader = Callable[[], Awaitable[dict[str, Question]]]


async def load_builtin_questions() -> dict[str, Question]:
    return dict(QUESTION_BANK)


class QuestionCatalog:
    """
    TTL cache in front of a question loader.

    ``lookup`` is synchronous and only answers from the cache; callers on the
    message path use it together with ``is_loading`` to decide whether to
    drop a request.
    """

    def __init__(
        self,
        loader: QuestionLoader = load_builtin_questions,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._loader = loader
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._questions: dict[str, Question] = {}
        self._loaded_at: float | None = None
        self.is_loading = False

    @property
    def is_fresh(self) -> bool:
        return self._loaded_at is not None and (self._clock() - self._loaded_at) < self.ttl_seconds

    async def refresh(self) -> dict[str, Question]:
        self.is_loading = True
        try:
            questions = await self._loader()
        finally:
            self.is_loading = False
        self._questions = dict(questions)
        self._loaded_at = self._clock()
        logger.debug("Loaded {} questions", len(self._questions))
        return self._questions

    async def get_all(self) -> dict[str, Question]:
        if not self.is_fresh:
            await self.refresh()
        return self._questions

    async def get(self, question_id: str) -> Question | None:
        questions = await self.get_all()
        return questions.get(question_id)

    def lookup(self, question_id: str) -> Question | None:
        return self._questions.get(question_id)

    def clear(self) -> None:
        self._questions = {}
        self._loaded_at = None

    def __len__(self) -> int:
        return len(self._questions)
