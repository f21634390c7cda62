"""
Signal relay: forwards opaque negotiation messages to the paired peer
"""
import logging
from typing import Any

from .errors import InvalidRequest, NoActivePeer, RoomNotFound
from .gateway import Gateway
from .rooms import RoomDirectory

logger = logging.getLogger("talkpair")

SIGNAL_KINDS = ("offer", "answer", "candidate")


class SignalRelay:
    def __init__(self, rooms: RoomDirectory, gateway: Gateway):
        self.rooms = rooms
        self.gateway = gateway

    def relay(self, room_id: str, sender: str, kind: str, payload: Any) -> str:
        """Deliver `payload` unchanged to the sender's peer and return the peer"""
        if kind not in SIGNAL_KINDS:
            raise InvalidRequest(f"invalid signal type {kind!r}")
        try:
            peer = self.rooms.peer_of(room_id, sender)
        except (RoomNotFound, NoActivePeer) as e:
            logger.debug(f"Relay of {kind} from {sender} failed: {e}")
            raise NoActivePeer("No peer available") from e

        self.gateway.relayed_message(peer, kind, room_id, payload)
        logger.debug("Relayed %s in room %s: %s -> %s", kind, room_id, sender, peer)
        return peer
