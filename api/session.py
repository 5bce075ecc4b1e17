"""
api/session.py: in-memory per-browser sessions (cookie based)

Each browser gets a UUID session id; each holds at most one test controller.
Sessions expire after the TTL (default 3 hours plus slack, enough for a full
NEET paper). Replacing or expiring a controller disposes it so its countdown
stops and late RemoteSync callbacks are discarded.
"""

import threading
import time
import uuid
from typing import Any, Callable, Optional

_lock = threading.Lock()
_sessions: dict[str, dict[str, Any]] = {}
_timestamps: dict[str, float] = {}

SESSION_TTL = 4 * 3600  # 4 hours


def _new_state() -> dict[str, Any]:
    return {
        "controller": None,
        "config": None,
    }


def create_session() -> str:
    """Create a session and return its id."""
    sid = uuid.uuid4().hex
    with _lock:
        _sessions[sid] = _new_state()
        _timestamps[sid] = time.time()
    return sid


def get_session(sid: str) -> dict[str, Any] | None:
    """Session data for sid. None if missing or expired."""
    expired = None
    with _lock:
        if sid not in _sessions:
            return None
        if time.time() - _timestamps[sid] > SESSION_TTL:
            expired = _sessions.pop(sid)
            del _timestamps[sid]
        else:
            _timestamps[sid] = time.time()  # refresh on access
            return _sessions[sid]
    _dispose(expired)
    return None


def get(sid: str, key: str, default=None):
    session = get_session(sid)
    if session is None:
        return default
    return session.get(key, default)


def replace_controller(sid: str, controller, config=None) -> None:
    """Install a new controller, disposing the one it replaces."""
    with _lock:
        if sid not in _sessions:
            return
        old = _sessions[sid].get("controller")
        _sessions[sid]["controller"] = controller
        _sessions[sid]["config"] = config
        _timestamps[sid] = time.time()
    if old is not None and old is not controller:
        old.dispose()


def is_current(sid: str) -> Callable[[str], bool]:
    """
    Identity guard for RemoteSync: true only while the test session with the
    given id is still the one installed for this browser session.
    """
    def check(test_session_id: str) -> bool:
        with _lock:
            state = _sessions.get(sid)
            controller = state.get("controller") if state else None
        return controller is not None and controller.session_id == test_session_id

    return check


def reset(sid: str) -> None:
    """Drop the test state of this session."""
    old = None
    with _lock:
        if sid in _sessions:
            old = _sessions[sid].get("controller")
            _sessions[sid] = _new_state()
            _timestamps[sid] = time.time()
    _dispose({"controller": old})


def cleanup_expired() -> int:
    """Remove expired sessions. Returns how many were removed."""
    now = time.time()
    removed = []
    with _lock:
        expired = [sid for sid, ts in _timestamps.items() if now - ts > SESSION_TTL]
        for sid in expired:
            removed.append(_sessions.pop(sid))
            del _timestamps[sid]
    for state in removed:
        _dispose(state)
    return len(removed)


def _dispose(state: Optional[dict[str, Any]]) -> None:
    controller = state.get("controller") if state else None
    if controller is not None:
        controller.dispose()
