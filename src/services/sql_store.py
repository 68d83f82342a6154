"""
Local SQL session store.

Implements the same surface as the HTTP clients on top of SQLAlchemy so a
trainer can run without the hosted session store (kiosk installs, replay,
tests). Calls run the blocking SQL in a worker thread and report failures
as ServiceResult errors.
"""

from __future__ import annotations

import asyncio
import json
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

from loguru import logger
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from src.persistence.snapshot import PersistedTrainingState, RestoredState
from src.services.models import ActiveSession, CompletionReport, SessionStatus
from src.services.results import ServiceResult
from src.training.quiz import AnswerRecord, build_question_data, records_from_question_data, score_percentage

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS training_sessions (
        id TEXT PRIMARY KEY,
        learner_id TEXT NOT NULL,
        course_name TEXT,
        status TEXT NOT NULL DEFAULT 'active',
        current_training_phase TEXT NOT NULL DEFAULT '0',
        overall_progress REAL NOT NULL DEFAULT 0,
        training_state TEXT,
        total_time_ms INTEGER NOT NULL DEFAULT 0,
        final_results TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS quiz_responses (
        id TEXT PRIMARY KEY,
        session_id TEXT NOT NULL,
        learner_id TEXT NOT NULL,
        question_data TEXT NOT NULL,
        total_questions INTEGER NOT NULL,
        final_score_percentage REAL NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
)

SESSION_COLUMNS = (
    "id, status, current_training_phase, overall_progress, training_state, created_at, updated_at"
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_store_engine(database_url: str) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            database_url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(database_url, pool_pre_ping=True)


def _row_to_session(row: Any) -> ActiveSession:
    data = dict(row._mapping)
    raw_state = data.get("training_state")
    data["training_state"] = json.loads(raw_state) if raw_state else None
    return ActiveSession.from_dict(data)


class SqlSessionStore:
    """Session and quiz-result store for one learner."""

    def __init__(self, database_url: str, learner_id: str):
        self.learner_id = learner_id
        self.engine = create_store_engine(database_url)
        self._initialized = False

    def init_schema(self) -> None:
        with self._connect() as conn:
            for statement in SCHEMA:
                conn.execute(text(statement))
        self._initialized = True
        logger.info("Session store tables initialized")

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def _connect(self) -> Generator[Connection, None, None]:
        with self.engine.begin() as conn:
            yield conn

    async def _run(self, failure_message: str, fn, *args) -> ServiceResult:
        try:
            if not self._initialized:
                await asyncio.to_thread(self.init_schema)
            data = await asyncio.to_thread(fn, *args)
        except SQLAlchemyError as e:
            logger.error("{}: {}", failure_message, e)
            return ServiceResult.fail(failure_message)
        if isinstance(data, ServiceResult):
            return data
        return ServiceResult.ok(data)

    # ===== Queries (sync, run in a worker thread) =====

    def _current(self, conn: Connection) -> ActiveSession | None:
        row = conn.execute(
            text(
                f"""
                SELECT {SESSION_COLUMNS} FROM training_sessions
                WHERE learner_id = :learner_id AND status = 'active'
                ORDER BY updated_at DESC
                LIMIT 1
                """
            ),
            {"learner_id": self.learner_id},
        ).first()
        return _row_to_session(row) if row else None

    def _insert_session(self, conn: Connection, course_name: str) -> ActiveSession:
        session_id = str(uuid.uuid4())
        now = _now()
        conn.execute(
            text(
                """
                INSERT INTO training_sessions (id, learner_id, course_name, status, created_at, updated_at)
                VALUES (:id, :learner_id, :course_name, 'active', :now, :now)
                """
            ),
            {"id": session_id, "learner_id": self.learner_id, "course_name": course_name, "now": now},
        )
        logger.info("Created training session {} for {}", session_id, self.learner_id)
        return ActiveSession(id=session_id, created_at=now, updated_at=now)

    def _update_current(self, assignments: str, params: dict[str, Any]) -> ServiceResult:
        with self._connect() as conn:
            current = self._current(conn)
            if current is None:
                return ServiceResult.fail("No active training session")
            conn.execute(
                text(f"UPDATE training_sessions SET {assignments}, updated_at = :now WHERE id = :id"),
                {**params, "id": current.id, "now": _now()},
            )
            return ServiceResult.ok({"session_id": current.id})

    def _start_session(self, course_name: str) -> ActiveSession:
        with self._connect() as conn:
            return self._current(conn) or self._insert_session(conn, course_name)

    def _get_current_session(self) -> ActiveSession | None:
        with self._connect() as conn:
            return self._current(conn)

    def _get_active_sessions(self) -> list[ActiveSession]:
        with self._connect() as conn:
            rows = conn.execute(
                text(
                    f"""
                    SELECT {SESSION_COLUMNS} FROM training_sessions
                    WHERE learner_id = :learner_id AND status = 'active'
                    ORDER BY updated_at DESC
                    """
                ),
                {"learner_id": self.learner_id},
            ).fetchall()
        return [_row_to_session(row) for row in rows]

    def _create_new_session(self, course_name: str) -> ActiveSession:
        with self._connect() as conn:
            conn.execute(
                text(
                    """
                    UPDATE training_sessions SET status = 'abandoned', updated_at = :now
                    WHERE learner_id = :learner_id AND status = 'active'
                    """
                ),
                {"learner_id": self.learner_id, "now": _now()},
            )
            return self._insert_session(conn, course_name)

    def _resume_session(self, session_id: str) -> ServiceResult:
        with self._connect() as conn:
            now = _now()
            result = conn.execute(
                text(
                    """
                    UPDATE training_sessions SET status = 'active', updated_at = :now
                    WHERE id = :id AND learner_id = :learner_id AND status IN ('active', 'paused')
                    """
                ),
                {"id": session_id, "learner_id": self.learner_id, "now": now},
            )
            if result.rowcount != 1:
                return ServiceResult.fail(f"Session not found: {session_id}")
            row = conn.execute(
                text(f"SELECT {SESSION_COLUMNS} FROM training_sessions WHERE id = :id"),
                {"id": session_id},
            ).first()
            return ServiceResult.ok(_row_to_session(row))

    def _get_state(self) -> RestoredState:
        with self._connect() as conn:
            current = self._current(conn)
        if current is None:
            return RestoredState()
        return RestoredState(
            training_state=(
                PersistedTrainingState.from_wire(current.training_state) if current.training_state else None
            ),
            current_training_phase=current.current_training_phase,
            overall_progress=current.overall_progress,
        )

    def _submit_results(self, question_data: dict, total_questions: int, score: float) -> ServiceResult:
        with self._connect() as conn:
            current = self._current(conn)
            if current is None:
                return ServiceResult.fail("No active training session")
            response_id = str(uuid.uuid4())
            conn.execute(
                text(
                    """
                    INSERT INTO quiz_responses (
                        id, session_id, learner_id, question_data, total_questions,
                        final_score_percentage, created_at
                    ) VALUES (:id, :session_id, :learner_id, :question_data, :total, :score, :now)
                    """
                ),
                {
                    "id": response_id,
                    "session_id": current.id,
                    "learner_id": self.learner_id,
                    "question_data": json.dumps(question_data),
                    "total": total_questions,
                    "score": score,
                    "now": _now(),
                },
            )
            return ServiceResult.ok({"id": response_id, "final_score_percentage": score})

    def _get_answers(self) -> list[AnswerRecord]:
        with self._connect() as conn:
            current = self._current(conn)
            if current is None:
                return []
            row = conn.execute(
                text(
                    """
                    SELECT question_data FROM quiz_responses
                    WHERE session_id = :session_id
                    ORDER BY created_at DESC
                    LIMIT 1
                    """
                ),
                {"session_id": current.id},
            ).first()
        if row is None:
            return []
        return records_from_question_data(json.loads(row[0]))

    # ===== Async surface =====

    async def start_session(self, course_name: str = "VR Pipe Training") -> ServiceResult:
        return await self._run("Failed to start training session", self._start_session, course_name)

    async def get_current_session(self) -> ServiceResult:
        return await self._run("Failed to get training session", self._get_current_session)

    async def get_active_sessions(self) -> ServiceResult:
        return await self._run("Failed to get active training sessions", self._get_active_sessions)

    async def create_new_session(self, course_name: str = "VR Pipe Training") -> ServiceResult:
        return await self._run("Failed to create training session", self._create_new_session, course_name)

    async def resume_session(self, session_id: str) -> ServiceResult:
        return await self._run("Failed to resume training session", self._resume_session, session_id)

    async def update_status(self, status: SessionStatus | str) -> ServiceResult:
        return await self._run(
            "Failed to update session status",
            self._update_current,
            "status = :status",
            {"status": SessionStatus(status).value},
        )

    async def update_progress(self, phase: str, progress: float, time_spent_ms: int = 0) -> ServiceResult:
        return await self._run(
            "Failed to update training progress",
            self._update_current,
            "current_training_phase = :phase, overall_progress = :progress, total_time_ms = :time_ms",
            {"phase": phase, "progress": progress, "time_ms": time_spent_ms},
        )

    async def record_time_spent(self, time_ms: int) -> ServiceResult:
        return await self._run(
            "Failed to record time",
            self._update_current,
            "total_time_ms = :time_ms",
            {"time_ms": time_ms},
        )

    async def complete_training(self, report: CompletionReport) -> ServiceResult:
        return await self._run(
            "Failed to complete training",
            self._update_current,
            "status = 'completed', total_time_ms = :time_ms, final_results = :results, "
            "current_training_phase = :phase, overall_progress = 100",
            {
                "time_ms": report.total_time_ms,
                "results": json.dumps(report.to_payload()),
                "phase": str(report.phases_completed),
            },
        )

    async def save_state(self, snapshot: PersistedTrainingState) -> ServiceResult:
        return await self._run(
            "Failed to save training state",
            self._update_current,
            "training_state = :state, current_training_phase = :phase, overall_progress = :progress",
            {
                "state": json.dumps(snapshot.to_wire()),
                "phase": str(snapshot.current_task_index),
                "progress": snapshot.progress,
            },
        )

    async def get_state(self) -> ServiceResult:
        return await self._run("Failed to get training state", self._get_state)

    async def submit_results(self, records: list[AnswerRecord], total_questions: int) -> ServiceResult:
        question_data = build_question_data(records)
        return await self._run(
            "Failed to submit quiz results",
            self._submit_results,
            question_data,
            total_questions,
            score_percentage(question_data),
        )

    async def get_answers(self) -> ServiceResult:
        return await self._run("Failed to get quiz answers", self._get_answers)
