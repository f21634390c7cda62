"""
Inbound events from connected clients.

Every message a client can send is parsed into one of the event types
below and handed to `EventDispatcher.dispatch`, the single entry point into
the matchmaking core. Transport framing stays in the gateway and API layers.
"""
from dataclasses import dataclass
from typing import Any, Optional, Union

from .errors import InvalidRequest
from .matchmaker import Matchmaker
from .relay import SIGNAL_KINDS, SignalRelay


@dataclass(frozen=True)
class Connect:
    identity: str


@dataclass(frozen=True)
class StartSearch:
    identity: str


@dataclass(frozen=True)
class CancelSearch:
    identity: str


@dataclass(frozen=True)
class Signal:
    kind: str
    room_id: str
    sender: str
    payload: Any


@dataclass(frozen=True)
class EndCall:
    room_id: Optional[str]
    sender: str


@dataclass(frozen=True)
class Heartbeat:
    identity: str


@dataclass(frozen=True)
class Disconnect:
    identity: str


Event = Union[Connect, StartSearch, CancelSearch, Signal, EndCall, Heartbeat, Disconnect]


def parse_event(identity: str, data: Any) -> Event:
    """Build an event from one decoded client message sent by `identity`"""
    if not isinstance(data, dict):
        raise InvalidRequest("message must be a JSON object")
    kind = data.get("type")

    if kind == "start-search":
        return StartSearch(identity)
    if kind == "cancel-search":
        return CancelSearch(identity)
    if kind == "heartbeat":
        return Heartbeat(identity)
    if kind in SIGNAL_KINDS:
        room_id = data.get("roomId")
        if not isinstance(room_id, str) or not room_id:
            raise InvalidRequest(f"{kind} requires a roomId")
        if "payload" not in data:
            raise InvalidRequest(f"{kind} requires a payload")
        return Signal(kind, room_id, identity, data["payload"])
    if kind == "end-call":
        room_id = data.get("roomId")
        if room_id is not None and not isinstance(room_id, str):
            raise InvalidRequest("roomId must be a string")
        return EndCall(room_id, identity)

    raise InvalidRequest(f"invalid message type {kind!r}")


class EventDispatcher:
    def __init__(self, matchmaker: Matchmaker, relay: SignalRelay):
        self.matchmaker = matchmaker
        self.relay = relay

    def dispatch(self, event: Event) -> Any:
        if isinstance(event, Connect):
            return self.matchmaker.connect(event.identity)
        if isinstance(event, StartSearch):
            return self.matchmaker.start_search(event.identity)
        if isinstance(event, CancelSearch):
            return self.matchmaker.cancel_search(event.identity)
        if isinstance(event, Signal):
            return self._signal(event)
        if isinstance(event, EndCall):
            return self._end_call(event)
        if isinstance(event, Heartbeat):
            return self.matchmaker.touch(event.identity)
        if isinstance(event, Disconnect):
            return self.matchmaker.disconnect(event.identity)
        raise InvalidRequest(f"unsupported event {event!r}")

    def _signal(self, event: Signal) -> str:
        peer = self.relay.relay(event.room_id, event.sender, event.kind, event.payload)
        # room members are always registered, so relaying counts as activity
        self.matchmaker.touch(event.sender)
        return peer

    def _end_call(self, event: EndCall):
        if event.room_id is None:
            return self.matchmaker.end_call(identity=event.sender, requested_by=event.sender)
        room = self.matchmaker.rooms.get(event.room_id)
        if room is not None and event.sender not in room.members:
            raise InvalidRequest("only a member can end this call")
        return self.matchmaker.end_call(room_id=event.room_id, requested_by=event.sender)

