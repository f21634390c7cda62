"""
Room directory: active call pairings
"""
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from .errors import AlreadyInRoom, InvalidState, NoActivePeer, RoomNotFound, UnknownIdentity
from .presence import PresenceRegistry
from .utils import generate_room_id

logger = logging.getLogger("talkpair")


@dataclass(frozen=True)
class Room:
    room_id: str
    member_a: str
    member_b: str

    @property
    def members(self) -> Tuple[str, str]:
        return (self.member_a, self.member_b)

    def peer_of(self, identity: str) -> Optional[str]:
        if identity == self.member_a:
            return self.member_b
        if identity == self.member_b:
            return self.member_a
        return None


class RoomDirectory:
    """Maps room ids to member pairs, with a reverse index by identity"""

    def __init__(
        self,
        presence: Optional[PresenceRegistry] = None,
        id_factory: Callable[[], str] = generate_room_id,
    ):
        self._presence = presence
        self._id_factory = id_factory
        self._rooms: Dict[str, Room] = {}
        self._by_identity: Dict[str, str] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)

    def create(self, member_a: str, member_b: str) -> str:
        if member_a == member_b:
            raise InvalidState(f"cannot pair {member_a!r} with itself")
        if self._presence is not None:
            for member in (member_a, member_b):
                if member not in self._presence:
                    raise UnknownIdentity(member)

        with self._lock:
            for member in (member_a, member_b):
                existing = self._by_identity.get(member)
                if existing is not None:
                    raise AlreadyInRoom(member, existing)

            room_id = self._id_factory()
            while room_id in self._rooms:
                room_id = self._id_factory()

            self._rooms[room_id] = Room(room_id, member_a, member_b)
            self._by_identity[member_a] = room_id
            self._by_identity[member_b] = room_id

        logger.info("🎪 Room %s created for %s and %s", room_id, member_a, member_b)
        return room_id

    def get(self, room_id: str) -> Optional[Room]:
        with self._lock:
            return self._rooms.get(room_id)

    def peer_of(self, room_id: str, identity: str) -> str:
        with self._lock:
            room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        peer = room.peer_of(identity)
        if peer is None:
            raise NoActivePeer(f"{identity!r} is not a member of room {room_id}")
        return peer

    def room_of(self, identity: str) -> Optional[str]:
        with self._lock:
            return self._by_identity.get(identity)

    def destroy(self, room_id: str) -> Optional[Tuple[str, str]]:
        with self._lock:
            room = self._rooms.pop(room_id, None)
            if room is None:
                return None
            for member in room.members:
                # only drop the reverse entry if it still points at this room
                if self._by_identity.get(member) == room_id:
                    del self._by_identity[member]

        logger.info("🛑 Room %s closed", room_id)
        return room.members
