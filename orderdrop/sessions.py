"""Server-side login sessions.

Auth code only talks to the ``SessionStore`` protocol, so the backend can be
the application database (``DatabaseSessionStore``) or process memory
(``InMemorySessionStore``, used by tests and single-process dev servers).
"""
import logging
import secrets
import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Protocol, Tuple

from sqlalchemy import delete
from sqlalchemy.orm import sessionmaker

from . import models

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    # Stored naive, SQLite drops tzinfo anyway
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


class SessionStore(Protocol):
    def create(self, user_id: int, ttl_seconds: int) -> str: ...

    def get_user_id(self, session_id: str) -> Optional[int]: ...

    def delete(self, session_id: str) -> None: ...


class DatabaseSessionStore:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def create(self, user_id: int, ttl_seconds: int) -> str:
        now = _utcnow()
        session_id = new_session_id()
        record = models.SessionRecord(
            id=session_id,
            user_id=user_id,
            created_at=now,
            expires_at=now + timedelta(seconds=ttl_seconds),
        )
        with self.session_factory() as db:
            db.add(record)
            db.commit()
        return session_id

    def get_user_id(self, session_id: str) -> Optional[int]:
        with self.session_factory() as db:
            record = db.get(models.SessionRecord, session_id)
            if record is None:
                return None
            if record.expires_at <= _utcnow():
                db.delete(record)
                db.commit()
                return None
            return record.user_id

    def delete(self, session_id: str) -> None:
        with self.session_factory() as db:
            db.execute(delete(models.SessionRecord).where(models.SessionRecord.id == session_id))
            db.commit()

    def purge_expired(self) -> int:
        with self.session_factory() as db:
            result = db.execute(delete(models.SessionRecord).where(models.SessionRecord.expires_at <= _utcnow()))
            purged = result.rowcount
            db.commit()
        if purged:
            logger.info("Purged %d expired sessions", purged)
        return purged


class InMemorySessionStore:
    def __init__(self):
        self._sessions: Dict[str, Tuple[int, datetime]] = {}
        self._lock = threading.Lock()

    def create(self, user_id: int, ttl_seconds: int) -> str:
        session_id = new_session_id()
        with self._lock:
            self._sessions[session_id] = (user_id, _utcnow() + timedelta(seconds=ttl_seconds))
        return session_id

    def get_user_id(self, session_id: str) -> Optional[int]:
        with self._lock:
            entry = self._sessions.get(session_id)
            if entry is None:
                return None
            user_id, expires_at = entry
            if expires_at <= _utcnow():
                del self._sessions[session_id]
                return None
            return user_id

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._sessions)
