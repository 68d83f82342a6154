"""
Question/quiz flow.

Tracks the question currently posed by the engine, counts attempts, and
accumulates an answer ledger for bulk submission when training ends. The
engine is told only about correct answers.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from loguru import logger

from src.bridge import messages
from src.bridge.codec import Message, parse_question_id
from src.bridge.events import EventBus
from src.bridge.message_bus import MessageBus
from src.bridge.messages import Inbound
from src.services.results import ServiceResult
from src.training.questions import Question, QuestionCatalog, answer_index, answer_letter

INCORRECT_MESSAGE = "Incorrect. Try again!"


@dataclass
class AnswerRecord:
    """One ledger entry; at most one per question."""

    question_id: str
    selected_answer: int
    is_correct: bool
    attempt_count: int
    time_to_answer_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "question_id": self.question_id,
            "selected_answer": self.selected_answer,
            "is_correct": self.is_correct,
            "attempt_count": self.attempt_count,
            "time_to_answer_ms": self.time_to_answer_ms,
        }


@dataclass
class AnswerOutcome:
    correct: bool
    message: str


@dataclass
class QuestionState:
    current_question: Question | None = None
    try_count: int = 1
    answered_correctly: bool = False


class QuizResultsSink(Protocol):
    async def submit_results(self, records: list[AnswerRecord], total_questions: int) -> ServiceResult: ...


# ===== Ledger helpers =====


def merge_answer(ledger: list[AnswerRecord], record: AnswerRecord) -> list[AnswerRecord]:
    """
    Merge an attempt into the ledger.

    An existing entry is replaced only if the new attempt is correct or the
    existing entry was never correct.
    """
    for i, existing in enumerate(ledger):
        if existing.question_id == record.question_id:
            if record.is_correct or not existing.is_correct:
                ledger[i] = record
            return ledger
    ledger.append(record)
    return ledger


def build_question_data(records: list[AnswerRecord]) -> dict[str, dict[str, Any]]:
    """Ledger -> ``{question_id: {answer, attempts, time, correct}}``."""
    return {
        record.question_id: {
            "answer": answer_letter(record.selected_answer),
            "attempts": record.attempt_count,
            "time": record.time_to_answer_ms,
            "correct": record.is_correct,
        }
        for record in records
    }


def score_percentage(question_data: dict[str, dict[str, Any]]) -> float:
    if not question_data:
        return 0.0
    correct = sum(1 for entry in question_data.values() if entry.get("correct"))
    return round(correct / len(question_data) * 100, 2)


def records_from_question_data(question_data: dict[str, dict[str, Any]]) -> list[AnswerRecord]:
    """Inverse of ``build_question_data``; used when resuming a stored session."""
    records = []
    for question_id, entry in question_data.items():
        try:
            selected = answer_index(str(entry.get("answer", "A")))
        except ValueError:
            selected = 0
        records.append(
            AnswerRecord(
                question_id=question_id,
                selected_answer=selected,
                is_correct=bool(entry.get("correct", False)),
                attempt_count=int(entry.get("attempts", 1)),
                time_to_answer_ms=int(entry.get("time", 0)),
            )
        )
    return records


class QuestionFlow:
    """Owns QuestionState and the answer ledger."""

    def __init__(
        self,
        bus: MessageBus,
        catalog: QuestionCatalog,
        results_sink: QuizResultsSink | None = None,
        events: EventBus | None = None,
        terminal_question_id: str = "Q6",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.bus = bus
        self.catalog = catalog
        self.results_sink = results_sink
        self.events = events
        self.terminal_question_id = terminal_question_id
        self._clock = clock

        self.state = QuestionState()
        self.answers: list[AnswerRecord] = []
        self._started_at: float | None = None

        self.on_question_request: Callable[[str, Question], None] | None = None
        self.on_quiz_complete: Callable[[list[AnswerRecord], int], None] | None = None

    def bind(self) -> Callable[[], None]:
        return self.bus.on_message(self.handle_message)

    def handle_message(self, message: Message) -> None:
        if message.type != Inbound.QUESTION_REQUEST:
            return

        question_id = parse_question_id(message)
        if self.catalog.is_loading:
            # the engine re-requests until the question is acknowledged
            logger.warning("Questions still loading, dropping request for {}", question_id)
            return

        question = self.catalog.lookup(question_id)
        if question is None:
            logger.error("Question not found: {}", question_id)
            return

        logger.info("Question requested: {}", question_id)
        self._started_at = self._clock()
        self.state = QuestionState(current_question=question)
        self._emit("question:asked", {"question_id": question_id})
        if self.on_question_request:
            self.on_question_request(question_id, question)

    def submit_question_answer(self, selected_index: int) -> AnswerOutcome | None:
        question = self.state.current_question
        if question is None:
            return None

        is_correct = question.is_correct(selected_index)
        elapsed_ms = int((self._clock() - self._started_at) * 1000) if self._started_at is not None else 0
        merge_answer(
            self.answers,
            AnswerRecord(
                question_id=question.id,
                selected_answer=selected_index,
                is_correct=is_correct,
                attempt_count=self.state.try_count,
                time_to_answer_ms=elapsed_ms,
            ),
        )

        if not is_correct:
            self.state.try_count += 1
            return AnswerOutcome(correct=False, message=INCORRECT_MESSAGE)

        self._started_at = None
        self.state.answered_correctly = True
        self._emit(
            "question:answered",
            {"question_id": question.id, "correct": True, "attempts": self.state.try_count},
        )
        self.bus.send_command(messages.question_answer(question.id, self.state.try_count))
        return AnswerOutcome(correct=True, message=question.explanation)

    def close_question(self) -> None:
        question = self.state.current_question
        if (
            question is not None
            and question.id == self.terminal_question_id
            and self.state.answered_correctly
        ):
            logger.info("Terminal question {} acknowledged, starting pressure test", question.id)
            self.bus.send_command(messages.pressure_test_start(messages.PRESSURE_TEST_Q6_CLOSED))
        self._started_at = None
        self.state = QuestionState()

    async def submit_quiz_results(self, total_questions: int) -> bool:
        if not self.answers:
            logger.warning("No answers to submit")
            return False
        if self.results_sink is None:
            logger.warning("No quiz results store configured")
            return False

        records = list(self.answers)
        result = await self.results_sink.submit_results(records, total_questions)
        if not result.success:
            logger.error("Failed to save quiz results: {}", result.error)
            return False

        logger.info("Quiz results saved ({} answers)", len(records))
        if self.on_quiz_complete:
            self.on_quiz_complete(records, total_questions)
        return True

    def restore_answers(self, records: list[AnswerRecord]) -> None:
        for record in records:
            merge_answer(self.answers, record)

    def clear_answers(self) -> None:
        self.answers = []

    def reset(self) -> None:
        self._started_at = None
        self.state = QuestionState()

    @property
    def is_active(self) -> bool:
        return self.state.current_question is not None

    def _emit(self, event: str, data: dict) -> None:
        if self.events:
            self.events.emit(event, data)
