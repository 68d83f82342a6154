"""
Unit tests for the question catalogue and quiz flow.
"""

import pytest
import pytest_asyncio

from src.bridge.events import EventBus
from src.training.questions import (
    QUESTION_BANK,
    QuestionCatalog,
    answer_index,
    answer_letter,
    question_from_row,
)
from src.training.quiz import (
    AnswerRecord,
    QuestionFlow,
    build_question_data,
    merge_answer,
    records_from_question_data,
    score_percentage,
)


@pytest_asyncio.fixture
async def catalog():
    """Catalogue loaded from the built-in bank."""
    catalog = QuestionCatalog()
    await catalog.refresh()
    return catalog


@pytest.fixture
def flow(bus, catalog, memory_store, clock):
    """Bound question flow with an in-memory results sink."""
    flow = QuestionFlow(bus, catalog, results_sink=memory_store, events=EventBus(), clock=clock)
    flow.bind()
    return flow


class TestQuestions:
    """Tests for question helpers."""

    def test_answer_letters(self):
        assert answer_letter(0) == "A"
        assert answer_letter(3) == "D"
        assert answer_letter(9) == "?"
        assert answer_index("c") == 2

    def test_question_from_row(self):
        question = question_from_row(
            {
                "question_id": "Q9",
                "phase": "PRESSURE_TESTING",
                "question_text": "Test pressure?",
                "option_a": "1",
                "option_b": "2",
                "option_c": "3",
                "option_d": "4",
                "correct_answer": "B",
                "nzs3500_reference": "NZS3500.2 7.3",
            }
        )

        assert question.id == "Q9"
        assert question.name == "Pressure Testing"
        assert question.correct_answer == 1
        assert question.explanation == "Reference: NZS3500.2 7.3"
        assert question.category == "testing"

    def test_question_from_row_without_reference(self):
        question = question_from_row(
            {
                "question_id": "Q1",
                "phase": "EXCAVATION",
                "question_text": "Depth?",
                "option_a": "a",
                "option_b": "b",
                "option_c": "c",
                "option_d": "d",
                "correct_answer": "A",
            }
        )

        assert question.explanation.startswith("Correct answer based on NZS3500")

    def test_bank_has_six_questions(self):
        assert sorted(QUESTION_BANK) == ["Q1", "Q2", "Q3", "Q4", "Q5", "Q6"]


class TestQuestionCatalog:
    """Tests for the TTL cache."""

    @pytest.mark.asyncio
    async def test_cache_respects_ttl(self, clock):
        calls = []

        async def loader():
            calls.append(1)
            return {"Q1": QUESTION_BANK["Q1"]}

        catalog = QuestionCatalog(loader, ttl_seconds=60, clock=clock)

        await catalog.get("Q1")
        await catalog.get("Q1")
        clock.advance(61)
        await catalog.get("Q1")

        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_lookup_is_cache_only(self, clock):
        catalog = QuestionCatalog(clock=clock)

        assert catalog.lookup("Q1") is None
        await catalog.get_all()
        assert catalog.lookup("Q1").id == "Q1"

    @pytest.mark.asyncio
    async def test_loading_flag_cleared_on_error(self):
        async def loader():
            raise RuntimeError("store down")

        catalog = QuestionCatalog(loader)

        with pytest.raises(RuntimeError):
            await catalog.refresh()
        assert catalog.is_loading is False


class TestLedger:
    """Tests for the answer ledger helpers."""

    def test_correct_entry_never_downgraded(self):
        ledger = []
        merge_answer(ledger, AnswerRecord("Q1", 1, True, 1))
        merge_answer(ledger, AnswerRecord("Q1", 0, False, 2))

        assert ledger == [AnswerRecord("Q1", 1, True, 1)]

    def test_incorrect_entry_overwritten(self):
        ledger = []
        merge_answer(ledger, AnswerRecord("Q1", 0, False, 1))
        merge_answer(ledger, AnswerRecord("Q1", 3, False, 2))
        merge_answer(ledger, AnswerRecord("Q1", 1, True, 3))

        assert len(ledger) == 1
        assert ledger[0].is_correct is True
        assert ledger[0].attempt_count == 3

    def test_question_data_and_score(self):
        records = [AnswerRecord("Q1", 1, True, 1, 1500), AnswerRecord("Q2", 0, False, 3, 900)]
        data = build_question_data(records)

        assert data["Q1"] == {"answer": "B", "attempts": 1, "time": 1500, "correct": True}
        assert score_percentage(data) == 50.0
        assert score_percentage({}) == 0.0

    def test_score_rounded_to_two_decimals(self):
        data = build_question_data(
            [AnswerRecord("Q1", 0, True, 1), AnswerRecord("Q2", 0, False, 1), AnswerRecord("Q3", 0, False, 1)]
        )

        assert score_percentage(data) == 33.33

    def test_records_from_question_data(self):
        records = records_from_question_data({"Q2": {"answer": "C", "attempts": 2, "time": 10, "correct": True}})

        assert records == [AnswerRecord("Q2", 2, True, 2, 10)]


class TestQuestionFlow:
    """Tests for QuestionFlow."""

    def test_question_request_sets_current_question(self, flow, transport):
        requested = []
        flow.on_question_request = lambda qid, q: requested.append(qid)

        transport.deliver("question_request:Q2")

        assert flow.state.current_question.id == "Q2"
        assert flow.state.try_count == 1
        assert requested == ["Q2"]
        assert flow.is_active is True

    def test_unknown_question_ignored(self, flow, transport):
        transport.deliver("question_request:Q99")

        assert flow.state.current_question is None

    def test_request_dropped_while_loading(self, flow, catalog, transport):
        catalog.is_loading = True

        transport.deliver("question_request:Q1")

        assert flow.state.current_question is None

    def test_wrong_answer_not_sent_to_engine(self, flow, transport):
        transport.deliver("question_request:Q1")

        outcome = flow.submit_question_answer(0)

        assert outcome.correct is False
        assert outcome.message == "Incorrect. Try again!"
        assert flow.state.try_count == 2
        assert transport.sent == []
        assert flow.answers[0].is_correct is False

    def test_correct_answer_reports_try_count(self, flow, transport, clock):
        transport.deliver("question_request:Q1")
        flow.submit_question_answer(0)
        clock.advance(2.5)

        outcome = flow.submit_question_answer(1)

        assert outcome.correct is True
        assert outcome.message == QUESTION_BANK["Q1"].explanation
        assert transport.sent == ["question_answer:Q1:2:true"]
        assert flow.answers[0].attempt_count == 2
        assert flow.answers[0].time_to_answer_ms == 2500

    def test_answer_without_question(self, flow):
        assert flow.submit_question_answer(1) is None

    def test_closing_terminal_question_starts_pressure_test(self, flow, transport):
        transport.deliver("question_request:Q6")
        flow.submit_question_answer(2)
        transport.sent.clear()

        flow.close_question()

        assert transport.sent == ["pressure_test_start:player_closed_q6"]
        assert flow.is_active is False

    def test_closing_unanswered_terminal_question_sends_nothing(self, flow, transport):
        transport.deliver("question_request:Q6")

        flow.close_question()

        assert transport.sent == []

    def test_closing_other_question_sends_nothing(self, flow, transport):
        transport.deliver("question_request:Q3")
        flow.submit_question_answer(2)
        transport.sent.clear()

        flow.close_question()

        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_submit_quiz_results(self, flow, transport, memory_store):
        transport.deliver("question_request:Q1")
        flow.submit_question_answer(1)
        completed = []
        flow.on_quiz_complete = lambda records, total: completed.append(total)

        assert await flow.submit_quiz_results(6) is True

        records, total = memory_store.called("submit_results")[0]
        assert total == 6
        assert records[0].question_id == "Q1"
        assert completed == [6]

    @pytest.mark.asyncio
    async def test_submit_empty_ledger(self, flow, memory_store):
        assert await flow.submit_quiz_results(6) is False
        assert memory_store.called("submit_results") == []

    def test_restore_answers_merges(self, flow):
        flow.restore_answers([AnswerRecord("Q1", 1, True, 1)])
        flow.restore_answers([AnswerRecord("Q1", 0, False, 2)])

        assert flow.answers == [AnswerRecord("Q1", 1, True, 1)]
