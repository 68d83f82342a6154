"""
Typer CLI for the skillsim bridge.

Commands:
    skillsim decode RAW            - Decode one protocol line
    skillsim encode TYPE [DATA]    - Encode a protocol line
    skillsim tasks                 - Show the task sequence
    skillsim replay TRANSCRIPT     - Replay a recorded session over the loopback transport
    skillsim sessions --learner ID - List a learner's unfinished sessions

Transcript format (one entry per line):
    question_request:Q1            - inbound engine message
    > tool XRay                    - user action
    # comment

Usage:
    skillsim --help
    skillsim replay recordings/session.txt --db sqlite:///replay.db --learner alice
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any, Callable, Optional

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import Settings, get_settings
from src.bridge.codec import decode as decode_line
from src.bridge.codec import encode as encode_line
from src.bridge.connection import StreamConnection
from src.bridge.message_bus import MessageBus
from src.bridge.transport import LoopbackTransport, StreamerStatus
from src.persistence.autosave import TrainingPersistence
from src.persistence.saver import StatePersistence
from src.services.models import UserRole
from src.services.sql_store import SqlSessionStore
from src.training.questions import QuestionCatalog
from src.training.session import TrainingSession
from src.training.tasks import TaskSequence

app = typer.Typer(
    help="skillsim bridge CLI: engine protocol tools and session replay",
    no_args_is_help=True,
)

console = Console()


# ========================================
# Logging
# ========================================


def configure_logging(settings: Settings, level: str | None = None) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level or settings.log_level,
        format="<level>{level: <8}</level> | <cyan>{name}</cyan> - <level>{message}</level>",
    )
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="10 MB")


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Engine protocol and training session tools."""
    configure_logging(get_settings(), "DEBUG" if verbose else None)


# ========================================
# PROTOCOL COMMANDS
# ========================================


@app.command()
def decode(raw: str = typer.Argument(..., help="Protocol line, e.g. training_progress:50:Glue:Phase A:4:6:true")):
    """Decode one protocol line into its type and data segments."""
    message = decode_line(raw)
    if message is None:
        rprint(f"[red]Malformed message:[/red] {raw!r}")
        raise typer.Exit(code=1)

    table = Table(title="Message", show_header=True)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("type", message.type)
    table.add_row("data", message.data)
    for i, segment in enumerate(message.data_segments):
        table.add_row(f"segment[{i}]", segment)
    console.print(table)


@app.command()
def encode(
    msg_type: str = typer.Argument(..., metavar="TYPE"),
    data: str = typer.Argument(""),
):
    """Encode a type and data payload as one protocol line."""
    console.print(encode_line(msg_type, data), markup=False)


@app.command()
def tasks(
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="JSON task list (default: built-in)"),
):
    """Show the task sequence."""
    sequence = TaskSequence.from_file(file) if file else TaskSequence()

    table = Table(title=f"Task Sequence ({len(sequence)} tasks)", show_header=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Tool", style="cyan")
    table.add_column("Task")
    table.add_column("ID", style="dim")
    table.add_column("Multi-step", justify="center")
    for i, task in enumerate(sequence):
        table.add_row(str(i), task.tool, task.name, task.task_id, "yes" if task.is_multi_step else "")
    console.print(table)


# ========================================
# REPLAY
# ========================================

ReplayAction = Callable[[TrainingSession, str], Any]

REPLAY_ACTIONS: dict[str, ReplayAction] = {
    "start": lambda s, arg: s.start_training(),
    "start_from": lambda s, arg: s.start_from_task(int(arg)),
    "tool": lambda s, arg: s.select_tool(arg),
    "pipe": lambda s, arg: s.sequencer.select_pipe(arg),
    "pressure": lambda s, arg: s.sequencer.select_pressure_test(arg),
    "answer": lambda s, arg: s.answer_question(int(arg)),
    "close": lambda s, arg: s.close_question(),
    "continue": lambda s, arg: s.continue_after_phase(),
    "pause": lambda s, arg: s.progress.pause_training(),
    "resume": lambda s, arg: s.progress.resume_training(),
    "reset": lambda s, arg: s.reset(),
}


def parse_transcript(text: str) -> list[tuple[str, str]]:
    """Transcript -> ``[("inbound", raw) | ("action", "name arg")]``."""
    entries = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith(">"):
            entries.append(("action", line[1:].strip()))
        else:
            entries.append(("inbound", line))
    return entries


def apply_action(session: TrainingSession, line: str) -> Any:
    name, _, arg = line.partition(" ")
    action = REPLAY_ACTIONS.get(name)
    if action is None:
        raise ValueError(f"Unknown replay action: {name}")
    return action(session, arg.strip())


async def run_replay(
    entries: list[tuple[str, str]],
    settings: Settings,
    store: SqlSessionStore | None = None,
    role: UserRole = UserRole.STUDENT,
) -> tuple[TrainingSession, LoopbackTransport]:
    bus = MessageBus(log_size=settings.message_log_size, debug=settings.debug_messages)
    session = TrainingSession(
        bus=bus,
        catalog=QuestionCatalog(ttl_seconds=settings.question_cache_ttl_seconds),
        results_sink=store,
        terminal_question_id=settings.terminal_question_id,
    )
    await session.load()
    session.bind_all()

    transport = LoopbackTransport()

    async def launch() -> LoopbackTransport:
        await transport.launch()
        return transport

    connection = StreamConnection(
        launch,
        bus,
        max_retries=settings.connect_max_retries,
        retry_delay_ms=settings.connect_retry_delay_ms,
    )
    if not await connection.connect():
        raise RuntimeError(connection.last_error or "stream launch failed")
    connection.handle_streamer_status(transport.status)
    session.screens.go_to_loading_for_training()
    session.screens.set_connected(True)

    persistence = None
    if store is not None:
        await store.start_session()
        saver = StatePersistence(
            store,
            enabled=settings.persistence_enabled,
            save_interval_ms=settings.save_interval_ms,
        )
        persistence = TrainingPersistence(
            session,
            saver,
            recorder=store,
            role=role,
            question_count=len(session.catalog),
        )
        persistence.bind()
        persistence.set_connected(True)
        persistence.mark_state_restored()

    for kind, value in entries:
        if kind == "inbound":
            transport.deliver(value)
        else:
            result = apply_action(session, value)
            logger.debug("Action {} -> {}", value, result)
            if persistence is not None:
                persistence.state_changed()
        # let fire-and-forget saves run in order
        await asyncio.sleep(0)

    if persistence is not None:
        await persistence.save_now()
        await persistence.close()
    connection.handle_streamer_status(StreamerStatus.DISCONNECTED)
    return session, transport


def _print_session(session: TrainingSession, transport: LoopbackTransport, log_limit: int) -> None:
    progress = session.progress.state
    tools = session.sequencer.state

    table = Table(title="Training State", show_header=True)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("screen", session.screens.screen.value)
    table.add_row("mode", progress.mode.value)
    table.add_row("phase", progress.phase)
    table.add_row("task", f"{progress.current_task_index}/{progress.total_tasks} ({progress.task_name})")
    table.add_row("progress", f"{progress.progress:g}%")
    table.add_row("current tool", tools.current_tool)
    table.add_row("selected pipe", tools.selected_pipe or "-")
    table.add_row("active modal", session.modals.active_modal.value if session.modals.active_modal else "-")
    table.add_row("complete", "yes" if session.progress.completion_fired else "no")
    console.print(table)

    if session.quiz.answers:
        answers = Table(title="Answers", show_header=True)
        answers.add_column("Question", style="cyan")
        answers.add_column("Answer")
        answers.add_column("Attempts", justify="right")
        answers.add_column("Correct", justify="center")
        for record in session.quiz.answers:
            answers.add_row(
                record.question_id,
                str(record.selected_answer),
                str(record.attempt_count),
                "[green]yes[/green]" if record.is_correct else "[red]no[/red]",
            )
        console.print(answers)

    log = Table(title=f"Message Log (last {log_limit})", show_header=True)
    log.add_column("#", justify="right", style="dim")
    log.add_column("Dir")
    log.add_column("Type", style="cyan")
    log.add_column("Data")
    for entry in reversed(session.bus.message_log[:log_limit]):
        style = "green" if entry.direction.value == "sent" else "yellow"
        log.add_row(str(entry.id), f"[{style}]{entry.direction.value}[/{style}]", entry.type, entry.data)
    console.print(log)
    rprint(f"[dim]{len(transport.sent)} messages sent to engine[/dim]")


@app.command()
def replay(
    transcript: Path = typer.Argument(..., exists=True, dir_okay=False, help="Recorded session transcript"),
    db: Optional[str] = typer.Option(None, "--db", help="SQLAlchemy URL to persist the replayed session"),
    learner: str = typer.Option("replay", "--learner", help="Learner id for the persisted session"),
    role: UserRole = typer.Option(UserRole.STUDENT, "--role", help="Learner role"),
    log_limit: int = typer.Option(20, "--log", help="Message log entries to show"),
):
    """Replay a recorded transcript through a full training session."""
    settings = get_settings()
    entries = parse_transcript(transcript.read_text(encoding="utf-8"))
    store = SqlSessionStore(db, learner) if db else None

    try:
        session, transport = asyncio.run(run_replay(entries, settings, store, role))
    except ValueError as e:
        rprint(f"[red]Replay failed:[/red] {e}")
        raise typer.Exit(code=1)
    finally:
        if store is not None:
            store.dispose()

    _print_session(session, transport, log_limit)


# ========================================
# SESSIONS
# ========================================


async def _fetch_sessions(settings: Settings, learner: str):
    if settings.has_remote_store:
        from src.services.session_client import TrainingSessionClient

        async with TrainingSessionClient(
            settings.store_api_url,
            settings.store_api_key,
            timeout_ms=settings.api_timeout_ms,
            retry_attempts=settings.api_retry_attempts,
        ) as client:
            return await client.get_active_sessions()

    store = SqlSessionStore(settings.database_url, learner)
    try:
        return await store.get_active_sessions()
    finally:
        store.dispose()


@app.command()
def sessions(
    learner: str = typer.Option("replay", "--learner", help="Learner id (local store only)"),
):
    """List unfinished training sessions from the configured store."""
    settings = get_settings()
    result = asyncio.run(_fetch_sessions(settings, learner))
    if not result.success:
        rprint(f"[red]Failed to load sessions:[/red] {result.error}")
        raise typer.Exit(code=1)

    if not result.data:
        rprint("[yellow]No active sessions[/yellow]")
        return

    table = Table(title="Active Sessions", show_header=True)
    table.add_column("ID", style="cyan")
    table.add_column("Phase", justify="right")
    table.add_column("Progress", justify="right")
    table.add_column("Updated", style="dim")
    for active in result.data:
        table.add_row(
            active.id,
            active.current_training_phase,
            f"{active.overall_progress:g}%",
            active.updated_at or "-",
        )
    console.print(table)


def run() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
