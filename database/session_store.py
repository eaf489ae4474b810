"""
Session Store - in-memory state for the screening wizard

Each upload creates a session that later wizard steps (classification,
analysis, enhancement, image serving) look up by id. Sessions expire
SESSION_TTL_SECONDS after their last update and the store never holds more
than MAX_SESSIONS entries.
"""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field, fields as dataclass_fields
from typing import Callable, Dict, List, Optional, Any

from config import Config
from utils.exceptions import SessionNotFoundError
from utils.screener_logger import get_screener_logger

logger = get_screener_logger()


@dataclass
class ScreeningSession:
    """State collected for one uploaded item."""
    session_id: str
    image_key: str
    content_type: str
    customer_image_url: str
    original_filename: str = ""
    similar_image_urls: List[str] = field(default_factory=list)
    web_context: Dict[str, Any] = field(default_factory=dict)
    item_type: Optional[str] = None
    analysis: Optional[str] = None
    enhanced_analysis: Optional[str] = None
    offer_text: Optional[str] = None
    created_at: float = 0.0
    updated_at: float = 0.0


UPDATABLE_FIELDS = {f.name for f in dataclass_fields(ScreeningSession)} - {"session_id", "created_at"}


class SessionStore:
    """
    Thread-safe session map with TTL and size-based eviction.

    Entries are kept in least-recently-updated order so the oldest entry is
    always first when the store is full. Eviction listeners are called with
    each session that expires, is pushed out by the size limit or is
    deleted, after the store lock has been released.
    """

    def __init__(
        self,
        ttl_seconds: Optional[int] = None,
        max_sessions: Optional[int] = None,
        clock: Callable[[], float] = time.time
    ):
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else Config.SESSION_TTL_SECONDS
        self.max_sessions = max_sessions if max_sessions is not None else Config.MAX_SESSIONS
        self._clock = clock
        self._sessions: "OrderedDict[str, ScreeningSession]" = OrderedDict()
        self._lock = threading.Lock()
        self._eviction_listeners: List[Callable[[ScreeningSession], None]] = []

    def __len__(self) -> int:
        with self._lock:
            removed = self._purge_expired_locked()
            count = len(self._sessions)
        self._notify_evicted(removed)
        return count

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            removed = self._purge_expired_locked()
            found = session_id in self._sessions
        self._notify_evicted(removed)
        return found

    def add_eviction_listener(self, callback: Callable[[ScreeningSession], None]):
        """Register callback(session) for sessions leaving the store."""
        self._eviction_listeners.append(callback)

    def _notify_evicted(self, sessions: List[ScreeningSession]):
        for session in sessions:
            for callback in self._eviction_listeners:
                try:
                    callback(session)
                except Exception as e:
                    # Cleanup is best effort; the session is already gone
                    logger.log_error("sessions", f"Eviction listener failed for {session.session_id}: {e}")

    def _is_expired(self, session: ScreeningSession, now: float) -> bool:
        return self.ttl_seconds > 0 and now - session.updated_at > self.ttl_seconds

    def _purge_expired_locked(self) -> List[ScreeningSession]:
        now = self._clock()
        expired = [sid for sid, s in self._sessions.items() if self._is_expired(s, now)]
        removed = [self._sessions.pop(sid) for sid in expired]
        if removed:
            logger.log_info("sessions", f"Evicted {len(removed)} expired session(s)")
        return removed

    def purge_expired(self) -> int:
        """Remove expired sessions and return how many were removed."""
        with self._lock:
            removed = self._purge_expired_locked()
        self._notify_evicted(removed)
        return len(removed)

    def create(self, session_id: str, **fields) -> ScreeningSession:
        """Create and store a new session."""
        now = self._clock()
        session = ScreeningSession(session_id=session_id, created_at=now, updated_at=now, **fields)

        with self._lock:
            removed = self._purge_expired_locked()
            self._sessions[session_id] = session
            self._sessions.move_to_end(session_id)
            while len(self._sessions) > self.max_sessions:
                evicted_id, evicted = self._sessions.popitem(last=False)
                removed.append(evicted)
                logger.log_warning("sessions", f"Session limit {self.max_sessions} reached, evicted {evicted_id}")

        self._notify_evicted(removed)
        return session

    def get(self, session_id: str) -> ScreeningSession:
        """
        Look up a session.

        Raises:
            SessionNotFoundError: If the session is unknown or expired
        """
        with self._lock:
            removed = self._purge_expired_locked()
            session = self._sessions.get(session_id)
        self._notify_evicted(removed)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def update(self, session_id: str, **fields) -> ScreeningSession:
        """Set fields on a session and refresh its expiry."""
        for name in fields:
            if name not in UPDATABLE_FIELDS:
                raise AttributeError(f"Cannot update session field '{name}'")

        with self._lock:
            removed = self._purge_expired_locked()
            session = self._sessions.get(session_id)
            if session is not None:
                for name, value in fields.items():
                    setattr(session, name, value)
                session.updated_at = self._clock()
                self._sessions.move_to_end(session_id)

        self._notify_evicted(removed)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def delete(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        self._notify_evicted([session])
        return True


# Singleton instance
_session_store = None

def get_session_store() -> SessionStore:
    """Get or create the session store instance."""
    global _session_store
    if _session_store is None:
        _session_store = SessionStore()
    return _session_store
