"""
Presence registry: who is connected and what they are doing
"""
import enum
import itertools
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .errors import UnknownIdentity

logger = logging.getLogger("talkpair")


class Status(str, enum.Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    IN_CALL = "in_call"


@dataclass
class PresenceEntry:
    identity: str
    status: Status = Status.IDLE
    last_active: float = field(default_factory=time.time)
    # Ordering key for find_waiting, set each time the entry starts searching
    search_seq: Optional[int] = None


class PresenceRegistry:
    """
    Tracks every connected identity and its matchmaking status.

    All mutation goes through this class. It never triggers pairing itself;
    the Matchmaker reads it and decides.
    """

    def __init__(self, clock=time.time):
        self._entries: Dict[str, PresenceEntry] = {}
        self._lock = threading.RLock()
        self._clock = clock
        self._search_counter = itertools.count()

    def __contains__(self, identity: str) -> bool:
        with self._lock:
            return identity in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def register(self, identity: str) -> PresenceEntry:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(identity)
            if entry is not None:
                entry.last_active = now
                logger.debug("♻️ Refreshed presence for %s", identity)
                return entry
            entry = PresenceEntry(identity=identity, last_active=now)
            self._entries[identity] = entry
        logger.info("👤 Registered %s", identity)
        return entry

    def set_status(self, identity: str, status: Status) -> PresenceEntry:
        with self._lock:
            entry = self._entries.get(identity)
            if entry is None:
                raise UnknownIdentity(identity)
            if status is Status.SEARCHING:
                entry.search_seq = next(self._search_counter)
            else:
                entry.search_seq = None
            entry.status = status
            entry.last_active = self._clock()
            return entry

    def touch(self, identity: str) -> PresenceEntry:
        with self._lock:
            entry = self._entries.get(identity)
            if entry is None:
                raise UnknownIdentity(identity)
            entry.last_active = self._clock()
            return entry

    def get(self, identity: str) -> PresenceEntry:
        with self._lock:
            entry = self._entries.get(identity)
            if entry is None:
                raise UnknownIdentity(identity)
            return entry

    def find_waiting(self, excluding: Optional[str] = None) -> Optional[str]:
        """Return the identity that has been searching the longest, if any"""
        with self._lock:
            waiting = [
                entry for entry in self._entries.values()
                if entry.status is Status.SEARCHING and entry.identity != excluding
            ]
            if not waiting:
                return None
            return min(waiting, key=lambda e: e.search_seq).identity

    def remove(self, identity: str) -> Optional[PresenceEntry]:
        with self._lock:
            entry = self._entries.pop(identity, None)
        if entry is not None:
            logger.info("👋 Removed %s (was %s)", identity, entry.status.value)
        return entry

    def stale(self, older_than: float, now: Optional[float] = None) -> List[str]:
        """Identities with no activity in the last `older_than` seconds"""
        now = self._clock() if now is None else now
        with self._lock:
            return [
                identity for identity, entry in self._entries.items()
                if now - entry.last_active > older_than
            ]

    def counts(self) -> Dict[str, int]:
        result = {status.value: 0 for status in Status}
        with self._lock:
            for entry in self._entries.values():
                result[entry.status.value] += 1
        return result
