"""SQLAlchemy-backed embedding store.

Identities live in a single ``identities`` table:

CREATE TABLE identities (
    id INTEGER PRIMARY KEY,
    key VARCHAR(255) NOT NULL UNIQUE,
    name TEXT NOT NULL,
    embedding JSON NOT NULL,
    updated_at TIMESTAMP NOT NULL
);
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text, create_engine, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from facematch.store.base import MAX_KEY_LENGTH, IdentityRecord, identity_key

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IdentityRow(Base):
    __tablename__ = "identities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(MAX_KEY_LENGTH), nullable=False, unique=True, index=True)
    name = Column(Text, nullable=False)
    embedding = Column(JSON, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<IdentityRow(id={self.id}, key='{self.key}')>"

    def to_record(self) -> IdentityRecord:
        return IdentityRecord(
            id=self.id,
            key=self.key,
            name=self.name,
            embedding=[float(v) for v in self.embedding],
        )


def create_db_engine(database_url: str) -> Engine:
    """Create an engine; SQLite connections are shared with the inference threads."""
    connect_args: dict[str, object] = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)


class SqlEmbeddingStore:
    """Upserts identities by derived key and fetches them by primary key."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        Base.metadata.create_all(engine)
        logger.info("Embedding store ready (%s)", engine.url.render_as_string(hide_password=True))

    def save(self, name: str, embedding: Sequence[float]) -> IdentityRecord:
        key = identity_key(name)
        values = [float(v) for v in embedding]
        try:
            return self._upsert(key, name, values)
        except IntegrityError:
            # A concurrent save inserted the same key first; the retry updates it.
            logger.info("Concurrent insert for key %s, retrying as update", key)
            return self._upsert(key, name, values)

    def fetch_by_id(self, identity_id: int) -> IdentityRecord | None:
        with self._session_factory() as session:
            row = session.get(IdentityRow, identity_id)
            return row.to_record() if row is not None else None

    def _upsert(self, key: str, name: str, embedding: list[float]) -> IdentityRecord:
        with self._session_factory() as session, session.begin():
            row = self._find_by_key(session, key)
            if row is None:
                row = IdentityRow(key=key, name=name, embedding=embedding)
                session.add(row)
            else:
                row.name = name
                row.embedding = embedding
            session.flush()
            return row.to_record()

    @staticmethod
    def _find_by_key(session: Session, key: str) -> IdentityRow | None:
        return session.scalars(select(IdentityRow).where(IdentityRow.key == key)).first()
