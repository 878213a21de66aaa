# Overview: SQLAlchemy-backed Store over the stored_records table.

"""
SQL Store

Backs both the local durable cache (Flask-SQLAlchemy ``db.session``) and,
through ``SqlStore.connect(url, ...)``, a remote replica database with its
own engine and session.

Compare-and-swap is enforced twice:
1. the version read in the same session must equal expected_version;
2. the UPDATE itself is guarded by SQLAlchemy's version_id_col, so a writer
   that raced us between (1) and the flush gets StaleDataError.
Both surface as ConcurrencyConflict. Any other SQLAlchemyError surfaces as
StorageError after the session is rolled back.
"""

from __future__ import annotations

import threading

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import scoped_session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrencyConflict, StorageError
from ..extensions import db
from ..models import StoredRecord
from ..time_utils import utcnow
from .base import Store
from .change_feed import ChangeFeed
from .outbox import SqlOutbox


_engines_lock = threading.Lock()
_sessions: dict[str, scoped_session] = {}


def _session_for_url(url: str) -> scoped_session:
    with _engines_lock:
        session = _sessions.get(url)
        if session is None:
            engine = create_engine(url, pool_pre_ping=True)
            StoredRecord.metadata.create_all(engine, tables=[StoredRecord.__table__])
            session = scoped_session(sessionmaker(bind=engine))
            _sessions[url] = session
        return session


class SqlStore(Store):
    def __init__(self, warung_id: str, session=None, feed: ChangeFeed | None = None):
        super().__init__(warung_id, feed)
        self._session = session

    @classmethod
    def connect(cls, url: str, warung_id: str, feed: ChangeFeed | None = None) -> "SqlStore":
        """Store on a separate database (remote replica), outside the Flask session."""
        return cls(warung_id, session=_session_for_url(url), feed=feed)

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def open_outbox(self) -> SqlOutbox:
        """Replica outbox in the same database as this store."""
        return SqlOutbox(self)

    def _query(self, entity_type: str):
        return self.session.query(StoredRecord).filter_by(
            warung_id=self.warung_id,
            entity_type=entity_type,
        )

    def get_all(self, entity_type: str) -> list[dict]:
        try:
            rows = self._query(entity_type).order_by(StoredRecord.id).all()
            return [row.to_record() for row in rows]
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError(f"Failed to read {entity_type}", details={"reason": str(exc)}) from exc

    def get(self, entity_type: str, record_id: str) -> dict | None:
        try:
            row = self._query(entity_type).filter_by(record_id=record_id).populate_existing().first()
            return row.to_record() if row else None
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError(f"Failed to read {entity_type} {record_id}", details={"reason": str(exc)}) from exc

    def upsert(self, entity_type: str, record_id: str, record: dict, expected_version: int | None = None) -> int:
        payload = {k: v for k, v in record.items() if k != "version"}
        try:
            row = self._query(entity_type).filter_by(record_id=record_id).populate_existing().first()
            current = row.version_id if row else 0
            if expected_version is not None and current != expected_version:
                self.session.rollback()
                raise ConcurrencyConflict(entity_type, record_id, expected_version, current)

            if row is None:
                row = StoredRecord(
                    warung_id=self.warung_id,
                    entity_type=entity_type,
                    record_id=record_id,
                    payload=payload,
                )
                self.session.add(row)
            else:
                row.payload = payload
                # Always emit the UPDATE so identical payloads still bump version_id
                row.updated_at = utcnow()

            self.session.commit()
            new_version = row.version_id
        except (StaleDataError, IntegrityError) as exc:
            self.session.rollback()
            raise ConcurrencyConflict(entity_type, record_id, expected_version, None) from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError(
                f"Failed to write {entity_type} {record_id}",
                details={"reason": str(exc)},
            ) from exc

        self._notify(entity_type)
        return new_version

    def delete(self, entity_type: str, record_id: str) -> None:
        try:
            deleted = self._query(entity_type).filter_by(record_id=record_id).delete(synchronize_session="fetch")
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError(
                f"Failed to delete {entity_type} {record_id}",
                details={"reason": str(exc)},
            ) from exc
        if deleted:
            self._notify(entity_type)
