from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Protocol, Tuple
import copy
import json
import logging
import threading
import uuid

from psycopg2.extras import Json

from core.db import get_db_conn
from core.errors import NotAuthorized, PersistenceConflict, SessionNotFound

from .state import TeachMeSession

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    def create(self, session: TeachMeSession) -> TeachMeSession:  # pragma: no cover - protocol
        ...

    def load(self, session_id: str, user_id: str) -> TeachMeSession:  # pragma: no cover - protocol
        ...

    def save(self, session: TeachMeSession) -> TeachMeSession:  # pragma: no cover - protocol
        ...

    def load_note(self, note_id: str, user_id: str) -> Dict[str, Any]:  # pragma: no cover - protocol
        ...


def _document(session: TeachMeSession) -> Dict[str, Any]:
    data = session.to_dict()
    # derived on read
    data.pop("current_conversation", None)
    return data


def _require_uuid(value: str, kind: str) -> str:
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        raise SessionNotFound(f"{kind} {value} not found") from None


def _check_owner(owner: Optional[str], user_id: str, session_id: str) -> None:
    if owner != user_id:
        raise NotAuthorized(f"session {session_id} does not belong to user {user_id}")


class InMemorySessionStore:
    """Dict-backed store for development and tests.

    Records are kept as serialized JSON so callers never share references with
    the stored copy.
    """

    def __init__(self, notes: Optional[Dict[str, Dict[str, Any]]] = None) -> None:
        self._lock = threading.Lock()
        self._records: Dict[str, str] = {}
        self._notes: Dict[str, Dict[str, Any]] = copy.deepcopy(notes or {})

    def add_note(self, note_id: str, note: Dict[str, Any]) -> None:
        with self._lock:
            self._notes[note_id] = {**copy.deepcopy(note), "id": note_id}

    def load_note(self, note_id: str, user_id: str) -> Dict[str, Any]:
        with self._lock:
            note = self._notes.get(note_id)
        if note is None:
            raise SessionNotFound(f"note {note_id} not found")
        if note.get("user_id") and note.get("user_id") != user_id:
            raise NotAuthorized(f"note {note_id} does not belong to user {user_id}")
        return {**copy.deepcopy(note), "id": note_id}

    def raw(self, session_id: str) -> Optional[str]:
        with self._lock:
            return self._records.get(session_id)

    def create(self, session: TeachMeSession) -> TeachMeSession:
        with self._lock:
            session.session_id = session.session_id or str(uuid.uuid4())
            session.version = 1
            self._records[session.session_id] = json.dumps(_document(session), sort_keys=True)
        logger.info("teach_me_session_created session=%s mode=%s", session.session_id, session.teaching_mode)
        return session

    def load(self, session_id: str, user_id: str) -> TeachMeSession:
        with self._lock:
            raw = self._records.get(session_id)
        if raw is None:
            raise SessionNotFound(f"session {session_id} not found")
        data = json.loads(raw)
        _check_owner(data.get("user_id"), user_id, session_id)
        return TeachMeSession.from_dict(data)

    def save(self, session: TeachMeSession) -> TeachMeSession:
        expected = session.version
        with self._lock:
            raw = self._records.get(session.session_id or "")
            if raw is None:
                raise SessionNotFound(f"session {session.session_id} not found")
            stored_version = json.loads(raw).get("version")
            if stored_version != expected:
                raise PersistenceConflict(
                    f"session {session.session_id} version {expected} is stale (stored {stored_version})"
                )
            session.version = expected + 1
            self._records[session.session_id] = json.dumps(_document(session), sort_keys=True)
        logger.info("teach_me_session_saved session=%s version=%s", session.session_id, session.version)
        return session


def insert_session(cursor, session: TeachMeSession) -> str:
    cursor.execute(
        """
        INSERT INTO teach_me_sessions (id, user_id, note_id, teaching_mode, is_completed, version, data)
        VALUES (%s::uuid, %s, NULLIF(%s, '')::uuid, %s, %s, 1, %s)
        RETURNING id::text
        """,
        (
            session.session_id,
            session.user_id,
            session.note_id or "",
            session.teaching_mode,
            session.is_completed,
            Json(_document(session)),
        ),
    )
    row = cursor.fetchone()
    return row[0] if row else ""


def fetch_session(cursor, session_id: str) -> Optional[Tuple[str, int, Dict[str, Any]]]:
    cursor.execute(
        """
        SELECT user_id, version, data
        FROM teach_me_sessions
        WHERE id = %s::uuid
        LIMIT 1
        """,
        (session_id,),
    )
    row = cursor.fetchone()
    if not row:
        return None
    data = row[2] if isinstance(row[2], dict) else json.loads(row[2] or "{}")
    return row[0], int(row[1]), data


def update_session(cursor, session: TeachMeSession, expected_version: int) -> bool:
    cursor.execute(
        """
        UPDATE teach_me_sessions
        SET data = %s,
            version = version + 1,
            is_completed = %s,
            updated_at = now()
        WHERE id = %s::uuid
          AND version = %s
        """,
        (
            Json(_document(session)),
            session.is_completed,
            session.session_id,
            expected_version,
        ),
    )
    return cursor.rowcount == 1


def fetch_note(cursor, note_id: str) -> Optional[Dict[str, Any]]:
    cursor.execute(
        """
        SELECT id::text, user_id, title, summary, key_points, structured_content, extracted_text
        FROM study_notes
        WHERE id = %s::uuid
        LIMIT 1
        """,
        (note_id,),
    )
    row = cursor.fetchone()
    if not row:
        return None
    keys = ("id", "user_id", "title", "summary", "key_points", "structured_content", "extracted_text")
    return dict(zip(keys, row))


class PostgresSessionStore:
    """JSONB document per session with a version column for conditional writes."""

    def __init__(self, conn_factory: Optional[Callable[[], Any]] = None) -> None:
        self._conn_factory = conn_factory or get_db_conn

    def _run(self, fn: Callable[[Any], Any]) -> Any:
        conn = self._conn_factory()
        try:
            with conn.cursor() as cur:
                result = fn(cur)
            conn.commit()
            return result
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def load_note(self, note_id: str, user_id: str) -> Dict[str, Any]:
        key = _require_uuid(note_id, "note")
        note = self._run(lambda cur: fetch_note(cur, key))
        if note is None:
            raise SessionNotFound(f"note {note_id} not found")
        if note.get("user_id") and note.get("user_id") != user_id:
            raise NotAuthorized(f"note {note_id} does not belong to user {user_id}")
        return note

    def create(self, session: TeachMeSession) -> TeachMeSession:
        session.session_id = session.session_id or str(uuid.uuid4())
        session.version = 1
        self._run(lambda cur: insert_session(cur, session))
        logger.info("teach_me_session_created session=%s mode=%s", session.session_id, session.teaching_mode)
        return session

    def load(self, session_id: str, user_id: str) -> TeachMeSession:
        key = _require_uuid(session_id, "session")
        row = self._run(lambda cur: fetch_session(cur, key))
        if row is None:
            raise SessionNotFound(f"session {session_id} not found")
        owner, version, data = row
        _check_owner(owner, user_id, session_id)
        session = TeachMeSession.from_dict({**data, "session_id": session_id})
        session.version = version
        return session

    def save(self, session: TeachMeSession) -> TeachMeSession:
        expected = session.version
        session.version = expected + 1
        try:
            ok = self._run(lambda cur: update_session(cur, session, expected))
        except Exception:
            session.version = expected
            raise
        if not ok:
            session.version = expected
            raise PersistenceConflict(f"session {session.session_id} version {expected} is stale")
        logger.info("teach_me_session_saved session=%s version=%s", session.session_id, session.version)
        return session


def build_store(backend: str) -> Any:
    if backend == "memory":
        return InMemorySessionStore()
    return PostgresSessionStore()


__all__ = [
    "InMemorySessionStore",
    "PostgresSessionStore",
    "SessionStore",
    "build_store",
    "fetch_note",
    "fetch_session",
    "insert_session",
    "update_session",
]
