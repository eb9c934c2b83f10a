"""Session registry mapping headsets to their Cortex sessions.

Push frames identify their origin only by session id (``sid``). The
registry keeps the headset -> session mapping so the demultiplexer can
resolve which headset a frame belongs to, and holds each session's coarse
lifecycle status.
"""

import logging
import threading
from dataclasses import dataclass, replace
from typing import Dict, Optional

from cortexgrid.core.events import HeadsetStatus


logger = logging.getLogger(__name__)


UNKNOWN_HEADSET = "unknown"


@dataclass(frozen=True)
class HeadsetSession:
    """A session owned by exactly one headset."""

    headset_id: str
    session_id: str
    status: HeadsetStatus = HeadsetStatus.READY


class SessionRegistry:
    """Thread-safe headset -> session mapping.

    At most one session exists per headset: ``put`` overwrites any previous
    mapping for that headset.

    Thread Safety:
        Writes are serialized under a lock. Lookups read an immutable
        snapshot that writers swap atomically, so frame processing never
        waits on a headset connecting or disconnecting.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: Dict[str, HeadsetSession] = {}

    def put(
        self,
        headset_id: str,
        session_id: str,
        status: HeadsetStatus = HeadsetStatus.READY,
    ) -> HeadsetSession:
        """Register or overwrite the session of a headset."""
        session = HeadsetSession(headset_id, session_id, status)
        with self._lock:
            sessions = dict(self._sessions)
            previous = sessions.get(headset_id)
            sessions[headset_id] = session
            self._sessions = sessions

        if previous is not None and previous.session_id != session_id:
            logger.info(
                "Headset %s session replaced: %s -> %s",
                headset_id, previous.session_id, session_id,
            )
        return session

    def set_status(self, headset_id: str, status: HeadsetStatus) -> Optional[HeadsetSession]:
        """Update the status of a registered session.

        Returns:
            The updated session, or None if the headset has no session.
        """
        with self._lock:
            current = self._sessions.get(headset_id)
            if current is None:
                return None
            updated = replace(current, status=status)
            sessions = dict(self._sessions)
            sessions[headset_id] = updated
            self._sessions = sessions
        return updated

    def remove(self, headset_id: str) -> Optional[HeadsetSession]:
        """Drop a headset's session. Returns the removed session, if any."""
        with self._lock:
            if headset_id not in self._sessions:
                return None
            sessions = dict(self._sessions)
            removed = sessions.pop(headset_id)
            self._sessions = sessions
        return removed

    def clear(self) -> None:
        with self._lock:
            self._sessions = {}

    def get(self, headset_id: str) -> Optional[HeadsetSession]:
        return self._sessions.get(headset_id)

    def session_id_for(self, headset_id: str) -> Optional[str]:
        session = self._sessions.get(headset_id)
        return session.session_id if session else None

    def resolve_headset(self, session_id: Optional[str]) -> str:
        """Find the headset owning ``session_id``.

        Returns:
            The headset id, or UNKNOWN_HEADSET if no headset owns it.
        """
        if session_id is None:
            return UNKNOWN_HEADSET
        for headset_id, session in self._sessions.items():
            if session.session_id == session_id:
                return headset_id
        return UNKNOWN_HEADSET

    def sessions(self) -> Dict[str, HeadsetSession]:
        """Snapshot of every registered session."""
        return dict(self._sessions)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, headset_id: object) -> bool:
        return headset_id in self._sessions
