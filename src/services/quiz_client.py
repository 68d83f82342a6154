"""
HTTP client for questions and quiz results.
"""

from __future__ import annotations

from loguru import logger

from src.services.http import BaseApiClient
from src.services.results import ServiceResult
from src.training.questions import QUESTION_BANK, Question, question_from_row
from src.training.quiz import (
    AnswerRecord,
    build_question_data,
    records_from_question_data,
    score_percentage,
)


class QuizResultsClient(BaseApiClient):
    """Question catalogue, answer ledger submission and read-back."""

    service_name = "Quiz results"

    async def submit_results(self, records: list[AnswerRecord], total_questions: int) -> ServiceResult:
        question_data = build_question_data(records)
        payload = {
            "questionData": question_data,
            "totalQuestions": total_questions,
            "finalScorePercentage": score_percentage(question_data),
        }
        result = await self.request(
            "POST",
            "/api/quiz/response",
            payload,
            failure_message="Failed to submit quiz results",
        )
        if not result.success:
            return result
        return ServiceResult.ok(result.data.get("response"))

    async def save_answer(self, record: AnswerRecord, total_questions: int) -> ServiceResult:
        """Save a single answer; the store computes the score."""
        result = await self.request(
            "POST",
            "/api/quiz/response",
            {"questionData": build_question_data([record]), "totalQuestions": total_questions},
            failure_message="Failed to save answer",
        )
        if not result.success:
            return result
        return ServiceResult.ok(result.data.get("response"))

    async def get_answers(self) -> ServiceResult:
        """Answers already stored for the current session, as ledger records."""
        result = await self.request(
            "GET",
            "/api/quiz/response",
            failure_message="Failed to get quiz answers",
        )
        if not result.success:
            return result
        response = result.data.get("response") or {}
        question_data = response.get("question_data") or response.get("questionData") or {}
        return ServiceResult.ok(records_from_question_data(question_data))

    async def get_questions(self) -> ServiceResult:
        """Questionnaire rows from the store, as ``{question_id: Question}``."""
        result = await self.request(
            "GET",
            "/api/questions",
            failure_message="Failed to fetch questions",
        )
        if not result.success:
            return result
        rows = result.data.get("questions") or []
        return ServiceResult.ok({row["question_id"]: question_from_row(row) for row in rows})

    async def load_questions(self) -> dict[str, Question]:
        """QuestionCatalog loader; falls back to the built-in bank."""
        result = await self.get_questions()
        if not result.success or not result.data:
            logger.warning("Using built-in questions: {}", result.error or "store returned none")
            return dict(QUESTION_BANK)
        return result.data
