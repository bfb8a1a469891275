"""In-memory session registry indexed by id and by short code."""

import threading
from datetime import datetime, timedelta

import structlog

from sendo.core.modules.session import tokens
from sendo.core.modules.session.models import CloseReason, FileMeta, Session, SessionStatus
from sendo.utils import Clock, now

logger = structlog.get_logger(__name__)


class SessionStore:
    """Single source of truth for session records.

    Every mutation runs under one re-entrant lock, so concurrent callers never
    observe a half-applied change. Lookups return None instead of raising.
    """

    def __init__(self, clock: Clock = now) -> None:
        self._clock = clock
        self._lock = threading.RLock()
        self._by_id: dict[str, Session] = {}
        self._by_code: dict[str, Session] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)

    def now(self) -> datetime:
        return self._clock()

    def create(self, ttl_seconds: float) -> Session:
        """Create and index a new waiting session."""
        with self._lock:
            current = self._clock()
            session = Session(
                id=self._unique_id(),
                code=tokens.unique_code(self._by_code.__contains__),
                receiver_token=tokens.new_token(),
                sender_token=tokens.new_token(),
                created_at=current,
                last_activity_at=current,
                expires_at=current + timedelta(seconds=ttl_seconds) if ttl_seconds > 0 else None,
            )
            self._by_id[session.id] = session
            self._by_code[session.code] = session
        logger.debug("session_created", session_id=session.id, code=session.code)
        return session

    def get_by_id(self, session_id: str) -> Session | None:
        with self._lock:
            return self._by_id.get(session_id)

    def get_by_code(self, code: str) -> Session | None:
        with self._lock:
            return self._by_code.get(tokens.normalize_code(code))

    def touch(self, session: Session, ttl_seconds: float) -> None:
        """Record activity and roll the TTL forward from now."""
        with self._lock:
            current = self._clock()
            session.last_activity_at = current
            if ttl_seconds > 0:
                session.expires_at = current + timedelta(seconds=ttl_seconds)

    def mark_sender_seen(self, session: Session) -> None:
        """Refresh sender liveness; a waiting session becomes connected."""
        with self._lock:
            if session.is_closed:
                return
            session.last_seen_sender = self._clock()
            session.sender_connected = True
            if session.status == SessionStatus.WAITING:
                session.status = SessionStatus.CONNECTED

    def mark_receiver_seen(self, session: Session) -> None:
        with self._lock:
            if session.is_closed:
                return
            session.last_seen_receiver = self._clock()

    def close(self, session: Session, reason: CloseReason) -> bool:
        """Close the session. Returns False if it was already closed (first reason wins)."""
        with self._lock:
            if session.is_closed:
                return False
            session.status = SessionStatus.CLOSED
            session.closed_by = reason
            session.closed_at = self._clock()
        logger.debug("session_closed", session_id=session.id, reason=reason)
        return True

    def purge(self, session: Session) -> None:
        """Remove the session from both indexes."""
        with self._lock:
            if self._by_id.get(session.id) is session:
                del self._by_id[session.id]
            if self._by_code.get(session.code) is session:
                del self._by_code[session.code]

    def set_file(self, session: Session, meta: FileMeta) -> bool:
        """Attach file metadata. Returns False without attaching if the session is closed."""
        with self._lock:
            if session.is_closed:
                return False
            session.file = meta
            session.last_activity_at = self._clock()
            return True

    def clear_file(self, session: Session) -> FileMeta | None:
        """Detach file metadata and return it so the caller can delete the bytes."""
        with self._lock:
            meta = session.file
            session.file = None
            session.last_activity_at = self._clock()
            return meta

    def all_sessions(self) -> list[Session]:
        """Snapshot of all indexed sessions, safe to iterate while the store mutates."""
        with self._lock:
            return list(self._by_id.values())

    def _unique_id(self) -> str:
        session_id = tokens.new_id()
        while session_id in self._by_id:
            session_id = tokens.new_id()
        return session_id
