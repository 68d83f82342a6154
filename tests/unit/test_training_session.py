"""
Unit tests for the composed training session.

Drives the full feature set through the loopback transport the way the
engine would during a real run.
"""

import pytest

from src.flow.modals import ModalType
from src.training.progress import PHASE_ALL_COMPLETE, PHASE_TOOL_SELECTION


class TestSixTaskRun:
    """Walks a trainee through the default six tasks."""

    @pytest.mark.asyncio
    async def test_first_tool_starts_training(self, training_session, transport):
        assert training_session.select_tool("XRay") is True

        assert transport.sent == ["training_control:start"]
        assert training_session.progress.state.current_task_index == 0
        assert training_session.progress.state.training_started is True

    @pytest.mark.asyncio
    async def test_wrong_tool_refused(self, training_session, transport):
        assert training_session.select_tool("Glue") is False
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_task_completion_opens_phase_success(self, training_session, transport):
        training_session.select_tool("XRay")

        transport.deliver("task_completed:XRAY_MAIN")

        assert training_session.progress.state.current_task_index == 1
        assert training_session.progress.state.phase == PHASE_TOOL_SELECTION
        assert training_session.modals.active_modal == ModalType.PHASE_SUCCESS
        phase = training_session.modals.state.phase_success
        assert (phase.task_id, phase.next_task_index) == ("XRAY_MAIN", 1)

    @pytest.mark.asyncio
    async def test_continue_advances_to_next_tool(self, training_session, transport):
        transport.deliver("task_completed:XRAY_MAIN")
        transport.sent.clear()

        training_session.continue_after_phase()

        assert training_session.modals.active_modal is None
        assert transport.sent == ["tool_select:Shovel", "task_start:Shovel"]

    @pytest.mark.asyncio
    async def test_full_run_reaches_completion(self, training_session, transport):
        for task in training_session.tasks:
            transport.deliver(f"task_completed:{task.task_id}")
        transport.deliver("task_completed:STRAY")

        state = training_session.progress.state
        assert state.current_task_index == 6
        assert state.phase == PHASE_ALL_COMPLETE

        transport.deliver("training_progress:100:Done:Complete:6:6:false")

        assert training_session.modals.active_modal == ModalType.TRAINING_COMPLETE

    @pytest.mark.asyncio
    async def test_completion_waits_for_open_question(self, training_session, transport):
        transport.deliver("question_request:Q6")
        transport.deliver("training_progress:100:Done:Complete:6:6:false")

        assert training_session.modals.active_modal == ModalType.QUESTION

        training_session.answer_question(2)
        training_session.close_question()

        assert training_session.modals.active_modal == ModalType.TRAINING_COMPLETE
        assert "pressure_test_start:player_closed_q6" in transport.sent

    @pytest.mark.asyncio
    async def test_dismissed_completion_stays_closed(self, training_session, transport):
        transport.deliver("training_progress:100:Done:Complete:6:6:true")
        assert training_session.modals.active_modal == ModalType.TRAINING_COMPLETE
        training_session.modals.close()

        transport.deliver("question_request:Q1")
        training_session.close_question()

        assert training_session.modals.active_modal is None

    @pytest.mark.asyncio
    async def test_question_after_phase_success_is_held(self, training_session, transport):
        transport.deliver("task_completed:XRAY_MAIN")
        transport.deliver("question_request:Q1")

        assert training_session.modals.active_modal == ModalType.PHASE_SUCCESS

        training_session.continue_after_phase()

        assert training_session.modals.active_modal == ModalType.QUESTION
        assert training_session.modals.state.question.id == "Q1"

    @pytest.mark.asyncio
    async def test_reset_clears_everything(self, training_session, transport):
        transport.deliver("question_request:Q1")
        training_session.answer_question(1)
        transport.deliver("task_completed:XRAY_MAIN")

        training_session.reset()

        assert training_session.progress.state.current_task_index == 0
        assert training_session.quiz.answers == []
        assert training_session.modals.active_modal is None

    @pytest.mark.asyncio
    async def test_unbind_stops_reactions(self, training_session, transport):
        training_session.unbind_all()

        transport.deliver("task_completed:XRAY_MAIN")

        assert training_session.progress.state.current_task_index == 0


class TestSnapshot:
    """Tests for the resume snapshot."""

    @pytest.mark.asyncio
    async def test_snapshot_reflects_feature_state(self, training_session, transport):
        transport.deliver("training_progress:40:Glue:Phase A:4:6:true")
        transport.deliver("camera_update:Orbit:Top:900")

        snapshot = training_session.snapshot()

        assert snapshot.mode == "training"
        assert snapshot.current_task_index == 4
        assert snapshot.progress == 40.0
        assert snapshot.camera_mode == "Orbit"

    @pytest.mark.asyncio
    async def test_snapshot_cinematic_override(self, training_session):
        snapshot = training_session.snapshot(cinematic=True, cinematic_time_remaining=12.5)

        assert snapshot.mode == "cinematic"
        assert snapshot.cinematic_time_remaining == 12.5
