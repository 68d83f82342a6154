"""
Unit tests for the local SQL session store.
"""

import pytest
import pytest_asyncio

from src.persistence.snapshot import PersistedTrainingState
from src.services.models import CompletionReport, SessionStatus
from src.services.sql_store import SqlSessionStore
from src.training.quiz import AnswerRecord


@pytest_asyncio.fixture
async def store():
    store = SqlSessionStore("sqlite://", learner_id="learner-1")
    yield store
    store.dispose()


class TestSessions:
    """Session lifecycle."""

    @pytest.mark.asyncio
    async def test_start_session_is_idempotent(self, store):
        first = await store.start_session()
        second = await store.start_session()

        assert first.success is True
        assert first.data.id == second.data.id

    @pytest.mark.asyncio
    async def test_no_current_session(self, store):
        result = await store.get_current_session()

        assert result.success is True
        assert result.data is None

    @pytest.mark.asyncio
    async def test_create_new_abandons_active(self, store):
        old = (await store.start_session()).data

        new = (await store.create_new_session()).data
        active = (await store.get_active_sessions()).data

        assert new.id != old.id
        assert [s.id for s in active] == [new.id]

    @pytest.mark.asyncio
    async def test_sessions_scoped_to_learner(self, store):
        await store.start_session()
        other = SqlSessionStore("sqlite://", learner_id="learner-2")
        other.engine = store.engine

        result = await other.get_active_sessions()

        assert result.data == []

    @pytest.mark.asyncio
    async def test_resume_paused_session(self, store):
        session = (await store.start_session()).data
        await store.update_status(SessionStatus.PAUSED)

        result = await store.resume_session(session.id)

        assert result.success is True
        assert result.data.status == "active"

    @pytest.mark.asyncio
    async def test_resume_unknown_session(self, store):
        result = await store.resume_session("missing")

        assert result.success is False
        assert "Session not found" in result.error

    @pytest.mark.asyncio
    async def test_update_without_session_fails(self, store):
        result = await store.update_progress("Phase A", 10.0)

        assert result.success is False
        assert result.error == "No active training session"

    @pytest.mark.asyncio
    async def test_complete_training_closes_session(self, store):
        await store.start_session()

        result = await store.complete_training(
            CompletionReport(total_time_ms=1000, phases_completed=6, total_questions=6)
        )

        assert result.success is True
        assert (await store.get_active_sessions()).data == []


class TestState:
    """Resume snapshot round-trip."""

    @pytest.mark.asyncio
    async def test_save_and_get_state(self, store):
        await store.start_session()

        await store.save_state(PersistedTrainingState(mode="training", current_task_index=3, progress=50.0))
        restored = (await store.get_state()).data

        assert restored.training_state.current_task_index == 3
        assert restored.current_training_phase == "3"
        assert restored.overall_progress == 50.0

    @pytest.mark.asyncio
    async def test_progress_updates_phase(self, store):
        await store.start_session()

        await store.update_progress("2", 30.0, time_spent_ms=5000)
        session = (await store.get_current_session()).data

        assert session.current_training_phase == "2"
        assert session.overall_progress == 30.0

    @pytest.mark.asyncio
    async def test_get_state_without_session(self, store):
        restored = (await store.get_state()).data

        assert restored.training_state is None
        assert restored.current_training_phase is None


class TestQuizResponses:
    """Quiz ledger storage."""

    @pytest.mark.asyncio
    async def test_submit_and_read_back(self, store):
        await store.start_session()
        records = [AnswerRecord("Q1", 1, True, 1, 1200), AnswerRecord("Q2", 0, False, 2, 800)]

        submitted = await store.submit_results(records, 6)
        answers = (await store.get_answers()).data

        assert submitted.data["final_score_percentage"] == 50.0
        assert answers == records

    @pytest.mark.asyncio
    async def test_no_answers_without_session(self, store):
        assert (await store.get_answers()).data == []

    @pytest.mark.asyncio
    async def test_submit_without_session_fails(self, store):
        result = await store.submit_results([AnswerRecord("Q1", 1, True, 1)], 6)

        assert result.success is False
