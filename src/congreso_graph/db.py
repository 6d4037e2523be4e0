"""Relational schema of the persisted record set.

Every table is keyed by natural identifiers (expediente, edge endpoints,
narrative position), so re-writing unchanged data yields identical rows.
Edge targets carry no foreign key: a ``related`` target persisted by an
earlier run may be absent from the current batch.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime, timezone

from sqlalchemy import Date, DateTime, Float, ForeignKey, Integer, String, Text, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class InitiativeRow(Base):
    __tablename__ = "initiatives"

    expediente: Mapped[str] = mapped_column(String(64), primary_key=True)
    kind: Mapped[str] = mapped_column(String(255), default="", nullable=False, index=True)
    subject: Mapped[str] = mapped_column(Text, default="", nullable=False)
    promoter: Mapped[str] = mapped_column(Text, default="", nullable=False)
    submission_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    qualification_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    legislature: Mapped[str] = mapped_column(String(32), default="", nullable=False)
    committee: Mapped[str] = mapped_column(Text, default="", nullable=False)
    rapporteurs: Mapped[str] = mapped_column(Text, default="", nullable=False)
    deadlines: Mapped[str] = mapped_column(Text, default="", nullable=False)
    procedure_text: Mapped[str] = mapped_column(Text, default="", nullable=False)
    outcome: Mapped[str] = mapped_column(Text, default="", nullable=False)
    current_situation: Mapped[str] = mapped_column(Text, default="", nullable=False)
    supertype: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    grouping: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    processing_type: Mapped[str] = mapped_column(String(64), default="", nullable=False)
    bocg_links: Mapped[str] = mapped_column(Text, default="", nullable=False)
    ds_links: Mapped[str] = mapped_column(Text, default="", nullable=False)
    procedure_type: Mapped[str] = mapped_column(String(64), default="", nullable=False)
    party_id: Mapped[str] = mapped_column(String(64), default="", nullable=False, index=True)
    party_short_name: Mapped[str] = mapped_column(String(32), default="", nullable=False)
    party_confidence: Mapped[str] = mapped_column(String(16), default="", nullable=False)
    party_method: Mapped[str] = mapped_column(String(32), default="", nullable=False)
    # Written only when enrichment produced a value; never cleared by ingestion.
    ai_title: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_analysis: Mapped[str | None] = mapped_column(Text, nullable=True)


class TimelineEventRow(Base):
    __tablename__ = "timeline_events"

    expediente: Mapped[str] = mapped_column(
        ForeignKey("initiatives.expediente"), primary_key=True
    )
    position: Mapped[int] = mapped_column(Integer, primary_key=True)  # TimelineEvent.order
    event_label: Mapped[str] = mapped_column(Text, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    raw_description: Mapped[str] = mapped_column(Text, default="", nullable=False)


class RelationshipEdgeRow(Base):
    __tablename__ = "relationship_edges"

    source_expediente: Mapped[str] = mapped_column(
        ForeignKey("initiatives.expediente"), primary_key=True
    )
    target_expediente: Mapped[str] = mapped_column(String(64), primary_key=True, index=True)
    kind: Mapped[str] = mapped_column(String(16), primary_key=True)
    score: Mapped[float | None] = mapped_column(Float, nullable=True)


class StageClassificationRow(Base):
    __tablename__ = "stage_classifications"

    expediente: Mapped[str] = mapped_column(
        ForeignKey("initiatives.expediente"), primary_key=True
    )
    stage: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    step: Mapped[int] = mapped_column(Integer, nullable=False)
    reason_json: Mapped[str] = mapped_column(Text, default="{}", nullable=False)


class StageHistoryRow(Base):
    """Append-only; one row per observed stage change."""

    __tablename__ = "stage_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    expediente: Mapped[str] = mapped_column(
        ForeignKey("initiatives.expediente"), nullable=False, index=True
    )
    stage: Mapped[str] = mapped_column(String(16), nullable=False)
    step: Mapped[int] = mapped_column(Integer, nullable=False)
    reason_json: Mapped[str] = mapped_column(Text, default="{}", nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )


def create_store_engine(url: str) -> Engine:
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, future=True, connect_args=connect_args)


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)


def init_db(engine: Engine) -> None:
    Base.metadata.create_all(engine)


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Iterator[Session]:
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
