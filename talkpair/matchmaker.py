"""
Matchmaker: pairs searching clients into rooms and tears rooms down.

Per-identity state machine: idle -> searching -> in_call -> idle.
Every mutating sequence below runs under one lock so that two concurrent
searches can never claim the same waiting peer, and a teardown can never
interleave with a fresh pairing of the same identity.
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .errors import AlreadyInRoom, InvalidState, UnknownIdentity
from .gateway import Gateway
from .presence import PresenceEntry, PresenceRegistry, Status
from .rooms import RoomDirectory

logger = logging.getLogger("talkpair")

REASON_HANGUP = "hangup"
REASON_PEER_DISCONNECTED = "peer-disconnected"
REASON_TIMEOUT = "timeout"


@dataclass(frozen=True)
class SearchResult:
    room_id: Optional[str] = None
    peer: Optional[str] = None

    @property
    def paired(self) -> bool:
        return self.room_id is not None


class Matchmaker:
    def __init__(self, presence: PresenceRegistry, rooms: RoomDirectory, gateway: Gateway):
        self.presence = presence
        self.rooms = rooms
        self.gateway = gateway
        self._lock = threading.RLock()

    def connect(self, identity: str) -> PresenceEntry:
        with self._lock:
            return self.presence.register(identity)

    def touch(self, identity: str) -> PresenceEntry:
        return self.presence.touch(identity)

    def start_search(self, identity: str) -> SearchResult:
        with self._lock:
            try:
                entry = self.presence.get(identity)
            except UnknownIdentity:
                raise InvalidState(f"{identity!r} must connect before searching")
            if entry.status is not Status.IDLE:
                raise InvalidState(f"{identity!r} cannot search while {entry.status.value}")

            self.presence.set_status(identity, Status.SEARCHING)
            peer = self.presence.find_waiting(excluding=identity)
            if peer is None:
                logger.info("🔎 %s is searching, no peer waiting", identity)
                return SearchResult()

            try:
                room_id = self.rooms.create(identity, peer)
            except AlreadyInRoom:
                logger.warning("Pairing %s with %s aborted, %s stays searching", identity, peer, identity)
                raise

            self.presence.set_status(identity, Status.IN_CALL)
            self.presence.set_status(peer, Status.IN_CALL)

        logger.info("🤝 Paired %s with %s in room %s", identity, peer, room_id)
        # the peer was already waiting, so the caller drives the offer
        self.gateway.pairing_start(identity, room_id, initiator=True)
        self.gateway.pairing_start(peer, room_id, initiator=False)
        return SearchResult(room_id=room_id, peer=peer)

    def cancel_search(self, identity: str) -> None:
        with self._lock:
            entry = self.presence.get(identity)
            if entry.status is not Status.SEARCHING:
                raise InvalidState(f"{identity!r} is not searching")
            self.presence.set_status(identity, Status.IDLE)
        logger.info("%s stopped searching", identity)

    def end_call(
        self,
        room_id: Optional[str] = None,
        identity: Optional[str] = None,
        requested_by: Optional[str] = None,
        reason: str = REASON_HANGUP,
    ) -> Optional[Tuple[str, str]]:
        """
        Destroy a room, resolved by id or by one of its members.

        Members still registered go back to idle. Every member other than
        `requested_by` is told the call ended. Returns the two members, or
        None when there was no room (a repeated teardown).
        """
        with self._lock:
            if room_id is None and identity is not None:
                room_id = self.rooms.room_of(identity)
            if room_id is None:
                return None
            members = self.rooms.destroy(room_id)
            if members is None:
                logger.debug("Room %s already torn down", room_id)
                return None
            for member in members:
                if member in self.presence:
                    self.presence.set_status(member, Status.IDLE)

        logger.info("📴 Call in room %s ended (%s)", room_id, reason)
        for member in members:
            if member != requested_by:
                self.gateway.call_ended(member, room_id, reason)
        return members

    def disconnect(self, identity: str, reason: str = REASON_PEER_DISCONNECTED) -> Optional[PresenceEntry]:
        with self._lock:
            room_id = self.rooms.room_of(identity)
            entry = self.presence.remove(identity)
            if room_id is not None:
                self.end_call(room_id=room_id, requested_by=identity, reason=reason)
        self.gateway.close(identity)
        return entry

    def reap_stale(self, max_idle: float, now: Optional[float] = None) -> List[str]:
        """Disconnect entries silent for longer than `max_idle` with no live socket"""
        reaped = []
        with self._lock:
            for identity in self.presence.stale(max_idle, now=now):
                if self.gateway.is_connected(identity):
                    continue
                self.disconnect(identity, reason=REASON_TIMEOUT)
                reaped.append(identity)
        if reaped:
            logger.info(f"🧹 Reaped {len(reaped)} stale client(s): {', '.join(reaped)}")
        return reaped
