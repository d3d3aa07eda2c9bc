"""
SQLAlchemy asyncio snapshot store.

Two tables:
- match_snapshots: one row per match run
- match_candidates: one row per candidate, keyed by (snapshot_id, candidate_id)

Keeping candidates in their own rows lets an interaction update touch a
single row inside one transaction, so concurrent actions on different
candidates (or a double-tap on the same one) never overwrite each other.

SQLite drops tzinfo, so datetimes are written as UTC and re-tagged as UTC
on read.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Callable, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    or_,
    select,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
    selectinload,
    sessionmaker,
)
from sqlalchemy.pool import StaticPool

from studymatch.core.errors import NotFoundError, StorageError
from studymatch.core.models import (
    InteractionAction,
    InteractionState,
    MatchCandidate,
    MatchFactors,
    MatchResultSnapshot,
    SnapshotStatus,
    TargetType,
    utcnow,
)

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class SnapshotRow(Base):
    __tablename__ = "match_snapshots"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    search_criteria: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    algorithm_version: Mapped[str] = mapped_column(String(16), default="2.0")
    processing_time_ms: Mapped[float] = mapped_column(Float, default=0.0)
    total_candidates: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(16), default=SnapshotStatus.ACTIVE.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    candidates: Mapped[list["CandidateRow"]] = relationship(
        "CandidateRow",
        back_populates="snapshot",
        cascade="all, delete-orphan",
        order_by="CandidateRow.position",
    )

    __table_args__ = (
        Index("ix_match_snapshots_user_status", "user_id", "status"),
        Index("ix_match_snapshots_user_created", "user_id", "created_at"),
        Index("ix_match_snapshots_expires_at", "expires_at"),
    )


class CandidateRow(Base):
    __tablename__ = "match_candidates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    snapshot_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("match_snapshots.id", ondelete="CASCADE"), nullable=False
    )
    candidate_id: Mapped[str] = mapped_column(String(160), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    target_type: Mapped[str] = mapped_column(String(16), nullable=False)
    target_id: Mapped[str] = mapped_column(String(128), nullable=False)
    compatibility_score: Mapped[int] = mapped_column(Integer, nullable=False)
    match_factors: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    reasons: Mapped[list[str]] = mapped_column(JSON, default=list)

    viewed: Mapped[bool] = mapped_column(Boolean, default=False)
    viewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    interested: Mapped[bool] = mapped_column(Boolean, default=False)
    interested_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    contacted: Mapped[bool] = mapped_column(Boolean, default=False)
    contacted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    joined: Mapped[bool] = mapped_column(Boolean, default=False)
    joined_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    dismissed: Mapped[bool] = mapped_column(Boolean, default=False)
    dismissed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    dismiss_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    snapshot: Mapped[SnapshotRow] = relationship("SnapshotRow", back_populates="candidates")

    __table_args__ = (
        Index("ix_match_candidates_snapshot_candidate", "snapshot_id", "candidate_id", unique=True),
        Index("ix_match_candidates_target", "target_type", "target_id"),
    )


_INTERACTION_FIELDS = (
    "viewed", "viewed_at", "interested", "interested_at", "contacted", "contacted_at",
    "joined", "joined_at", "dismissed", "dismissed_at", "dismiss_reason",
)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _candidate_to_row(candidate: MatchCandidate, position: int) -> CandidateRow:
    row = CandidateRow(
        candidate_id=candidate.candidate_id,
        position=position,
        target_type=candidate.target_type.value,
        target_id=candidate.target_id,
        compatibility_score=candidate.compatibility_score,
        match_factors=candidate.factors.to_dict(),
        reasons=list(candidate.reasons),
    )
    for name in _INTERACTION_FIELDS:
        value = getattr(candidate.interaction, name)
        setattr(row, name, _as_utc(value) if isinstance(value, datetime) else value)
    return row


def _row_to_candidate(row: CandidateRow) -> MatchCandidate:
    interaction = InteractionState(**{
        name: _as_utc(getattr(row, name)) if name.endswith("_at") else getattr(row, name)
        for name in _INTERACTION_FIELDS
    })
    return MatchCandidate(
        target_type=TargetType(row.target_type),
        target_id=row.target_id,
        compatibility_score=row.compatibility_score,
        factors=MatchFactors.from_dict(row.match_factors or {}),
        reasons=list(row.reasons or []),
        interaction=interaction,
    )


def _row_to_snapshot(row: SnapshotRow) -> MatchResultSnapshot:
    return MatchResultSnapshot(
        snapshot_id=row.id,
        user_id=row.user_id,
        candidates=[_row_to_candidate(c) for c in row.candidates],
        search_criteria=dict(row.search_criteria or {}),
        algorithm_version=row.algorithm_version,
        processing_time_ms=row.processing_time_ms,
        total_candidates=row.total_candidates,
        status=SnapshotStatus(row.status),
        created_at=_as_utc(row.created_at),
        expires_at=_as_utc(row.expires_at),
    )


def _expire_row_if_due(row: SnapshotRow, now: datetime) -> bool:
    if row.status == SnapshotStatus.ACTIVE.value and _as_utc(row.expires_at) < now:
        row.status = SnapshotStatus.EXPIRED.value
        return True
    return False


def _async_url(database_url: str) -> str:
    """Swap a plain driver URL for its asyncio driver."""
    if database_url.startswith("sqlite://"):
        return database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return database_url


class SqlSnapshotStore:
    """
    SnapshotStore on SQLAlchemy's asyncio extension. Plain ``sqlite://`` and
    ``postgresql://`` URLs are switched to aiosqlite / asyncpg.

    In-memory SQLite uses a StaticPool so every session shares the one
    connection; SQLite sessions are therefore run one at a time.
    Tables are created on first use (or explicitly via ``create_tables``).

    Driver errors are raised as StorageError.
    """

    def __init__(
        self,
        database_url: str = "sqlite:///:memory:",
        clock: Callable[[], datetime] = utcnow,
        echo: bool = False,
    ):
        database_url = _async_url(database_url)
        engine_kwargs: dict[str, Any] = {"echo": echo}
        is_sqlite = database_url.startswith("sqlite")
        if is_sqlite and (":memory:" in database_url or database_url.endswith("://")):
            engine_kwargs["poolclass"] = StaticPool
        self.engine: AsyncEngine = create_async_engine(database_url, **engine_kwargs)
        self._session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )
        self._clock = clock
        self._tables_ready = False
        self._sqlite_lock = asyncio.Lock() if is_sqlite else None

    async def create_tables(self) -> None:
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise StorageError(f"Could not create snapshot tables: {e}") from e
        self._tables_ready = True

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        """Session with commit/rollback; driver errors become StorageError."""
        if self._sqlite_lock is None:
            if not self._tables_ready:
                await self.create_tables()
            async with self._transaction() as session:
                yield session
        else:
            async with self._sqlite_lock:
                if not self._tables_ready:
                    await self.create_tables()
                async with self._transaction() as session:
                    yield session

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("Snapshot store failure: %s", e)
                raise StorageError(f"Snapshot store failure: {e}") from e
            except Exception:
                await session.rollback()
                raise

    async def close(self) -> None:
        await self.engine.dispose()

    async def get_recent_active_snapshot(
        self,
        user_id: str,
        within_hours: float,
        now: Optional[datetime] = None,
    ) -> Optional[MatchResultSnapshot]:
        now = _as_utc(now or self._clock())
        since = now - timedelta(hours=within_hours)
        async with self._session() as session:
            rows = (await session.scalars(
                select(SnapshotRow)
                .options(selectinload(SnapshotRow.candidates))
                .where(SnapshotRow.user_id == user_id)
                .where(SnapshotRow.status == SnapshotStatus.ACTIVE.value)
                .where(SnapshotRow.created_at >= since)
                .order_by(SnapshotRow.created_at.desc())
            )).all()
            for row in rows:
                if _expire_row_if_due(row, now):
                    logger.warning("Snapshot %s expired on read", row.id)
                    continue
                return _row_to_snapshot(row)
        return None

    async def save_snapshot(self, snapshot: MatchResultSnapshot) -> str:
        row = SnapshotRow(
            id=snapshot.snapshot_id,
            user_id=snapshot.user_id,
            search_criteria=snapshot.search_criteria,
            algorithm_version=snapshot.algorithm_version,
            processing_time_ms=snapshot.processing_time_ms,
            total_candidates=snapshot.total_candidates,
            status=snapshot.status.value,
            created_at=_as_utc(snapshot.created_at),
            expires_at=_as_utc(snapshot.expires_at),
            candidates=[
                _candidate_to_row(c, position) for position, c in enumerate(snapshot.candidates)
            ],
        )
        _expire_row_if_due(row, _as_utc(self._clock()))
        async with self._session() as session:
            session.add(row)
        logger.debug(
            "Saved snapshot %s for %s (%d candidates)",
            snapshot.snapshot_id, snapshot.user_id, len(snapshot.candidates),
        )
        return snapshot.snapshot_id

    async def get_snapshot(
        self, snapshot_id: str, now: Optional[datetime] = None
    ) -> Optional[MatchResultSnapshot]:
        async with self._session() as session:
            row = (await session.scalars(
                select(SnapshotRow)
                .options(selectinload(SnapshotRow.candidates))
                .where(SnapshotRow.id == snapshot_id)
            )).one_or_none()
            if row is None:
                return None
            _expire_row_if_due(row, _as_utc(now or self._clock()))
            return _row_to_snapshot(row)

    async def update_candidate_interaction(
        self,
        snapshot_id: str,
        candidate_id: str,
        action: InteractionAction,
        at: datetime,
        reason: Optional[str] = None,
    ) -> MatchCandidate:
        async with self._session() as session:
            row = (await session.scalars(
                select(CandidateRow)
                .where(CandidateRow.snapshot_id == snapshot_id)
                .where(CandidateRow.candidate_id == candidate_id)
                .with_for_update()
            )).one_or_none()
            if row is None:
                if await session.get(SnapshotRow, snapshot_id) is None:
                    raise NotFoundError(f"Snapshot {snapshot_id} not found")
                raise NotFoundError(
                    f"Candidate {candidate_id} not found in snapshot {snapshot_id}"
                )
            # Only the touched columns are written, so other flags on the
            # same row are never overwritten.
            setattr(row, action.value, True)
            setattr(row, f"{action.value}_at", _as_utc(at))
            if action == InteractionAction.DISMISSED:
                row.dismiss_reason = reason
            await session.flush()
            return _row_to_candidate(row)

    async def delete_expired_snapshots(self, now: Optional[datetime] = None) -> int:
        now = _as_utc(now or self._clock())
        async with self._session() as session:
            rows = (await session.scalars(
                select(SnapshotRow)
                .options(selectinload(SnapshotRow.candidates))
                .where(
                    or_(
                        SnapshotRow.status == SnapshotStatus.EXPIRED.value,
                        SnapshotRow.expires_at < now,
                    )
                )
            )).all()
            for row in rows:
                await session.delete(row)
            return len(rows)
