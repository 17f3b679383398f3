"""
Feed Service - Web Layer Registry for History Feed Sessions.

A browser tab keeps its feed session ID between "show more" requests;
sessions live in memory and are evicted after a period of inactivity.
A page reload opens a fresh session, which restarts at the persisted tier.
"""

import threading
import time

from core.history_feed import FeedSession, entry_to_dict

SESSION_TTL_SECONDS = 1800  # 30 min


class FeedSessionRegistry:
    def __init__(self, ttl_seconds: float = SESSION_TTL_SECONDS):
        self._ttl = ttl_seconds
        self._sessions: dict[str, tuple[FeedSession, float]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _evict_stale(self) -> None:
        """Remove sessions idle longer than TTL. Called under lock."""
        cutoff = time.time() - self._ttl
        stale = [sid for sid, (_s, seen) in self._sessions.items() if seen < cutoff]
        for sid in stale:
            del self._sessions[sid]

    def add(self, session: FeedSession) -> FeedSession:
        with self._lock:
            self._evict_stale()
            self._sessions[session.id] = (session, time.time())
        return session

    def get(self, session_id: str | None, subject_id: str | None = None) -> FeedSession | None:
        """Returns a live session, or None if unknown, expired or owned by another subject."""
        if not session_id:
            return None
        with self._lock:
            self._evict_stale()
            entry = self._sessions.get(session_id)
            if entry is None:
                return None
            session = entry[0]
            if subject_id is not None and session.subject_id != subject_id:
                return None
            self._sessions[session_id] = (session, time.time())
            return session

    def drop(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None


def serialize_page(session: FeedSession, page) -> dict:
    return {
        "session": session.id,
        "subject": session.subject_id,
        "mode": page.mode.value,
        "entries": [entry_to_dict(e) for e in page.entries],
        "has_more": page.has_more,
        "pending": session.pending_count(),
        "error": page.error,
    }


def serialize_session(session: FeedSession) -> dict:
    return {
        "session": session.id,
        "subject": session.subject_id,
        "mode": session.mode.value,
        "entries": [entry_to_dict(e) for e in session.entries()],
        "pending": session.pending_count(),
    }
