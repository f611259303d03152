"""Chat session history collaborator backed by SQLModel + SQLite."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol
from uuid import uuid4

from sqlalchemy import Column, DateTime, Text, event
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Field, Session, SQLModel, col, create_engine, select

from agent_console.errors import HistoryError
from agent_console.timeutil import utc_now

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New chat"
TITLE_LIMIT = 60
SUMMARY_LIMIT = 120


@dataclass(slots=True, frozen=True)
class SessionRecord:
    """One persisted chat session."""

    session_id: str
    project: str
    title: str = DEFAULT_TITLE
    summary: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def with_prompt(self, prompt: str) -> SessionRecord:
        """Record a submitted prompt: first prompt becomes the title, last one the summary."""

        text = " ".join(prompt.split())
        if not text:
            return self
        title = self.title
        if not title or title == DEFAULT_TITLE:
            title = truncate(text, TITLE_LIMIT)
        return replace(self, title=title, summary=truncate(text, SUMMARY_LIMIT))


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: max(0, limit - 1)].rstrip() + "…"


def new_record(project: str) -> SessionRecord:
    now = utc_now()
    return SessionRecord(session_id=str(uuid4()), project=project, created_at=now, updated_at=now)


class HistoryStore(Protocol):
    """Persistence boundary used by the session loop."""

    def create(self, project: str) -> SessionRecord:
        """Create and persist an empty session for ``project``."""

    def save(self, record: SessionRecord) -> SessionRecord:
        """Insert or update ``record``; returns it with a fresh ``updated_at``."""

    def get(self, session_id: str) -> SessionRecord | None:
        """Load one session."""

    def list(self, project: str | None = None) -> list[SessionRecord]:
        """Sessions, most recently updated first."""


class ChatSessionRow(SQLModel, table=True):
    __tablename__ = "chat_sessions"  # type: ignore[bad-override]

    session_id: str = Field(primary_key=True)
    project: str = Field(index=True)
    title: str
    summary: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )


class SqliteHistoryStore:
    """History repository facade backed by SQLModel + SQLite."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.engine = create_engine(
            f"sqlite:///{db_path}",
            connect_args={"check_same_thread": False},
        )
        event.listen(self.engine, "connect", _apply_sqlite_pragmas)

    def init_schema(self) -> None:
        """Create the history table when missing."""

        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            SQLModel.metadata.create_all(self.engine, tables=[ChatSessionRow.__table__])
        except (OSError, SQLAlchemyError) as error:
            raise HistoryError(f"cannot initialize history at {self.db_path}: {error}") from error

    def close(self) -> None:
        self.engine.dispose()

    def create(self, project: str) -> SessionRecord:
        return self.save(new_record(project))

    def save(self, record: SessionRecord) -> SessionRecord:
        now = utc_now()
        stored = replace(record, created_at=record.created_at or now, updated_at=now)
        try:
            with Session(self.engine) as session:
                row = session.get(ChatSessionRow, stored.session_id)
                if row is None:
                    row = ChatSessionRow(
                        session_id=stored.session_id,
                        project=stored.project,
                        title=stored.title,
                        summary=stored.summary,
                        created_at=stored.created_at,
                        updated_at=now,
                    )
                else:
                    row.title = stored.title
                    row.summary = stored.summary
                    row.updated_at = now
                session.add(row)
                session.commit()
        except SQLAlchemyError as error:
            raise HistoryError(f"cannot save session {record.session_id}: {error}") from error
        logger.debug("History saved: %s %r", stored.session_id, stored.title)
        return stored

    def get(self, session_id: str) -> SessionRecord | None:
        try:
            with Session(self.engine) as session:
                row = session.get(ChatSessionRow, session_id)
                return _to_record(row) if row is not None else None
        except SQLAlchemyError as error:
            raise HistoryError(f"cannot load session {session_id}: {error}") from error

    def list(self, project: str | None = None) -> list[SessionRecord]:
        statement = select(ChatSessionRow)
        if project is not None:
            statement = statement.where(ChatSessionRow.project == project)
        statement = statement.order_by(col(ChatSessionRow.updated_at).desc())
        try:
            with Session(self.engine) as session:
                return [_to_record(row) for row in session.exec(statement).all()]
        except SQLAlchemyError as error:
            raise HistoryError(f"cannot list sessions: {error}") from error


def _to_record(row: ChatSessionRow) -> SessionRecord:
    return SessionRecord(
        session_id=row.session_id,
        project=row.project,
        title=row.title,
        summary=row.summary,
        created_at=_as_utc(row.created_at),
        updated_at=_as_utc(row.updated_at),
    )


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _apply_sqlite_pragmas(dbapi_connection, _) -> None:  # noqa: ANN001
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode = WAL")
    cursor.execute("PRAGMA busy_timeout = 5000")
    cursor.close()
