"""
Debounced training-state writer and one-shot restorer.

Saves are trailing-edge coalesced: inside the debounce window at most one
timer is pending, and it carries the most recent snapshot. Write failures
are logged; the next state change retries naturally.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Protocol

from loguru import logger

from src.persistence.snapshot import PersistedTrainingState, RestoredState
from src.services.results import ServiceResult

DEFAULT_SAVE_INTERVAL_MS = 5000


class StateStore(Protocol):
    async def save_state(self, snapshot: PersistedTrainingState) -> ServiceResult: ...

    async def get_state(self) -> ServiceResult: ...


class StatePersistence:
    """Owns the single debounce timer and the last-written content hash."""

    def __init__(
        self,
        store: StateStore,
        enabled: bool = True,
        save_interval_ms: int = DEFAULT_SAVE_INTERVAL_MS,
        on_state_restored: Callable[[RestoredState], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.enabled = enabled
        self.save_interval = save_interval_ms / 1000.0
        self.on_state_restored = on_state_restored
        self._clock = clock

        self.is_restored = False
        self.write_count = 0
        self._last_save_time: float | None = None
        self._last_hash: str | None = None
        self._pending: asyncio.TimerHandle | None = None
        self._pending_snapshot: PersistedTrainingState | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def has_pending_save(self) -> bool:
        return self._pending is not None

    async def save_state(self, snapshot: PersistedTrainingState) -> None:
        """Write now, defer into the trailing timer, or skip an unchanged snapshot."""
        if not self.enabled:
            return

        state_hash = snapshot.content_hash()
        if state_hash == self._last_hash:
            # back to the written content; a pending write would now be stale
            self._cancel_pending()
            return

        now = self._clock()
        if self._last_save_time is not None:
            elapsed = now - self._last_save_time
            if elapsed < self.save_interval:
                self._reschedule(snapshot, self.save_interval - elapsed)
                return

        self._cancel_pending()
        self._last_save_time = now
        self._last_hash = state_hash
        await self._write(snapshot)

    def schedule(self, snapshot: PersistedTrainingState) -> None:
        """Fire-and-forget ``save_state`` on the running loop."""
        self._spawn(snapshot)

    async def restore_state(self) -> RestoredState | None:
        if not self.enabled:
            return None
        try:
            result = await self.store.get_state()
        except Exception as e:
            logger.error("Failed to restore training state: {}", e)
            return None

        if not result.success or result.data is None:
            if result.error:
                logger.warning("No training state restored: {}", result.error)
            return None

        restored = result.data
        if isinstance(restored, dict):
            restored = RestoredState.from_dict(restored)
        if restored.training_state is None and restored.current_training_phase is None:
            return None

        self.is_restored = True
        logger.info(
            "Restored training state: phase={} progress={}",
            restored.current_training_phase,
            restored.overall_progress,
        )
        if self.on_state_restored:
            self.on_state_restored(restored)
        return restored

    async def flush(self) -> None:
        """Write the snapshot waiting in the trailing timer now."""
        snapshot = self._pending_snapshot
        self._cancel_pending()
        if snapshot is not None:
            await self._flush(snapshot)

    async def close(self) -> None:
        """Cancel the pending timer and wait for in-flight writes."""
        self._cancel_pending()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    # ===== Internals =====

    def _reschedule(self, snapshot: PersistedTrainingState, delay: float) -> None:
        self._cancel_pending()
        loop = asyncio.get_running_loop()
        self._pending = loop.call_later(delay, self._fire, snapshot)
        self._pending_snapshot = snapshot

    def _fire(self, snapshot: PersistedTrainingState) -> None:
        self._pending = None
        self._pending_snapshot = None
        task = asyncio.get_running_loop().create_task(self._flush(snapshot))
        self._track(task)

    async def _flush(self, snapshot: PersistedTrainingState) -> None:
        state_hash = snapshot.content_hash()
        if state_hash == self._last_hash:
            return
        self._last_save_time = self._clock()
        self._last_hash = state_hash
        await self._write(snapshot)

    def _spawn(self, snapshot: PersistedTrainingState) -> None:
        task = asyncio.get_running_loop().create_task(self.save_state(snapshot))
        self._track(task)

    def _track(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
            self._pending_snapshot = None

    async def _write(self, snapshot: PersistedTrainingState) -> None:
        self.write_count += 1
        try:
            result = await self.store.save_state(snapshot)
        except Exception as e:
            logger.error("Failed to save training state: {}", e)
            self._last_hash = None
            return
        if result.success:
            logger.debug(
                "Saved training state: mode={} phase={} task={} progress={}",
                snapshot.mode,
                snapshot.phase,
                snapshot.current_task_index,
                snapshot.progress,
            )
        else:
            logger.warning("Failed to save training state: {}", result.error)
            self._last_hash = None
