"""
Unit tests for the training snapshot and the debounced state writer.
"""

import asyncio

import pytest

from src.persistence.saver import StatePersistence
from src.persistence.snapshot import PersistedTrainingState, RestoredState


def snap(index: int = 0, **kwargs) -> PersistedTrainingState:
    return PersistedTrainingState(mode="training", current_task_index=index, **kwargs)


async def settle(seconds: float = 0.08) -> None:
    """Let timers fire and the tasks they spawn finish."""
    await asyncio.sleep(seconds)
    await asyncio.sleep(0)


class TestSnapshot:
    """Tests for PersistedTrainingState."""

    def test_wire_uses_camel_case(self):
        wire = snap(2, selected_tool="Glue").to_wire()

        assert wire["currentTaskIndex"] == 2
        assert wire["selectedTool"] == "Glue"
        assert "lastUpdated" in wire

    def test_from_wire_round_trip(self):
        original = snap(3, phase="Phase A", progress=40.0)

        restored = PersistedTrainingState.from_wire(original.to_wire())

        assert restored.current_task_index == 3
        assert restored.phase == "Phase A"

    def test_hash_ignores_timestamp_and_camera(self):
        first = snap(1, camera_mode="Orbit")
        second = snap(1, camera_mode="Manual")

        assert first.content_hash() == second.content_hash()
        assert snap(2).content_hash() != first.content_hash()

    def test_negative_index_rejected(self):
        with pytest.raises(ValueError):
            PersistedTrainingState(current_task_index=-1)

    def test_restored_state_from_either_casing(self):
        camel = RestoredState.from_dict(
            {"trainingState": snap(2).to_wire(), "currentTrainingPhase": "2", "overallProgress": 33}
        )
        snake = RestoredState.from_dict({"current_training_phase": "1", "overall_progress": "10.5"})

        assert camel.training_state.current_task_index == 2
        assert camel.overall_progress == 33.0
        assert snake.training_state is None
        assert snake.overall_progress == 10.5


class TestStatePersistence:
    """Tests for debounced saving."""

    @pytest.mark.asyncio
    async def test_first_save_is_immediate(self, memory_store, clock):
        saver = StatePersistence(memory_store, save_interval_ms=50, clock=clock)

        await saver.save_state(snap(1))

        assert len(memory_store.saved) == 1
        assert saver.has_pending_save is False

    @pytest.mark.asyncio
    async def test_unchanged_snapshot_skipped(self, memory_store, clock):
        saver = StatePersistence(memory_store, save_interval_ms=50, clock=clock)

        await saver.save_state(snap(1))
        clock.advance(10)
        await saver.save_state(snap(1))

        assert len(memory_store.saved) == 1

    @pytest.mark.asyncio
    async def test_burst_coalesces_to_latest(self, memory_store, clock):
        saver = StatePersistence(memory_store, save_interval_ms=50, clock=clock)

        await saver.save_state(snap(0))
        for index in range(1, 6):
            await saver.save_state(snap(index))

        assert saver.has_pending_save is True
        await settle()

        assert [s.current_task_index for s in memory_store.saved] == [0, 5]
        assert saver.has_pending_save is False

    @pytest.mark.asyncio
    async def test_return_to_written_state_drops_pending_write(self, memory_store, clock):
        saver = StatePersistence(memory_store, save_interval_ms=50, clock=clock)

        await saver.save_state(snap(1))
        await saver.save_state(snap(2))
        assert saver.has_pending_save is True

        await saver.save_state(snap(1))
        await settle()

        assert [s.current_task_index for s in memory_store.saved] == [1]
        assert saver.has_pending_save is False

    @pytest.mark.asyncio
    async def test_save_after_interval_writes_immediately(self, memory_store, clock):
        saver = StatePersistence(memory_store, save_interval_ms=50, clock=clock)

        await saver.save_state(snap(0))
        clock.advance(1)
        await saver.save_state(snap(1))

        assert len(memory_store.saved) == 2

    @pytest.mark.asyncio
    async def test_disabled_saver_never_writes(self, memory_store):
        saver = StatePersistence(memory_store, enabled=False)

        await saver.save_state(snap(1))

        assert memory_store.calls == []
        assert await saver.restore_state() is None

    @pytest.mark.asyncio
    async def test_failed_write_is_retried_on_next_change(self, memory_store, clock):
        store = memory_store
        store.fail_saves = True
        saver = StatePersistence(store, save_interval_ms=50, clock=clock)

        await saver.save_state(snap(1))
        clock.advance(1)
        store.fail_saves = False
        await saver.save_state(snap(1))

        assert len(store.called("save_state")) == 2
        assert len(store.saved) == 1

    @pytest.mark.asyncio
    async def test_store_exception_contained(self, clock):
        class Exploding:
            async def save_state(self, snapshot):
                raise ConnectionError("db down")

        saver = StatePersistence(Exploding(), clock=clock)

        await saver.save_state(snap(1))

        assert saver.write_count == 1

    @pytest.mark.asyncio
    async def test_flush_writes_pending_snapshot(self, memory_store, clock):
        saver = StatePersistence(memory_store, save_interval_ms=10_000, clock=clock)

        await saver.save_state(snap(0))
        await saver.save_state(snap(4))
        await saver.flush()

        assert [s.current_task_index for s in memory_store.saved] == [0, 4]
        assert saver.has_pending_save is False

    @pytest.mark.asyncio
    async def test_schedule_and_close(self, memory_store, clock):
        saver = StatePersistence(memory_store, save_interval_ms=50, clock=clock)

        saver.schedule(snap(2))
        await saver.close()

        assert [s.current_task_index for s in memory_store.saved] == [2]


class TestRestore:
    """Tests for restore_state."""

    @pytest.mark.asyncio
    async def test_restore_from_dict(self, memory_store):
        memory_store.state = {"trainingState": snap(3).to_wire(), "currentTrainingPhase": "3"}
        restored = []
        saver = StatePersistence(memory_store, on_state_restored=restored.append)

        result = await saver.restore_state()

        assert result.training_state.current_task_index == 3
        assert saver.is_restored is True
        assert restored == [result]

    @pytest.mark.asyncio
    async def test_restore_nothing_saved(self, memory_store):
        saver = StatePersistence(memory_store)

        assert await saver.restore_state() is None
        assert saver.is_restored is False

    @pytest.mark.asyncio
    async def test_restore_empty_state(self, memory_store):
        memory_store.state = RestoredState()
        saver = StatePersistence(memory_store)

        assert await saver.restore_state() is None
