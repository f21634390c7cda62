"""Unit tests for the room directory."""

import pytest

from talkpair.errors import AlreadyInRoom, InvalidState, NoActivePeer, RoomNotFound, UnknownIdentity
from talkpair.presence import PresenceRegistry
from talkpair.rooms import RoomDirectory


@pytest.fixture
def registered(presence: PresenceRegistry) -> PresenceRegistry:
    for identity in ("a", "b", "c", "d"):
        presence.register(identity)
    return presence


def test_create_and_lookup(rooms: RoomDirectory, registered) -> None:
    room_id = rooms.create("a", "b")

    assert len(rooms) == 1
    assert rooms.peer_of(room_id, "a") == "b"
    assert rooms.peer_of(room_id, "b") == "a"
    assert rooms.room_of("a") == room_id
    assert rooms.room_of("c") is None
    assert rooms.get(room_id).members == ("a", "b")


def test_room_ids_are_opaque(rooms: RoomDirectory, registered) -> None:
    room_id = rooms.create("a", "b")

    assert room_id != "a-b"
    assert len(room_id) == 16
    assert set(room_id) <= set("0123456789abcdef")


def test_create_rejects_member_already_in_room(rooms: RoomDirectory, registered) -> None:
    room_id = rooms.create("a", "b")

    with pytest.raises(AlreadyInRoom) as exc_info:
        rooms.create("c", "b")

    assert exc_info.value.room_id == room_id
    assert rooms.room_of("c") is None
    assert len(rooms) == 1


def test_create_rejects_self_pairing(rooms: RoomDirectory, registered) -> None:
    with pytest.raises(InvalidState):
        rooms.create("a", "a")


def test_create_rejects_unregistered(rooms: RoomDirectory, registered) -> None:
    with pytest.raises(UnknownIdentity):
        rooms.create("a", "stranger")
    assert rooms.room_of("a") is None


def test_create_retries_on_id_collision(registered) -> None:
    ids = iter(["dup", "dup", "fresh"])
    rooms = RoomDirectory(registered, id_factory=lambda: next(ids))

    assert rooms.create("a", "b") == "dup"
    assert rooms.create("c", "d") == "fresh"


def test_peer_of_errors(rooms: RoomDirectory, registered) -> None:
    room_id = rooms.create("a", "b")

    with pytest.raises(RoomNotFound):
        rooms.peer_of("nope", "a")
    with pytest.raises(NoActivePeer):
        rooms.peer_of(room_id, "c")


def test_destroy_is_idempotent(rooms: RoomDirectory, registered) -> None:
    room_id = rooms.create("a", "b")

    assert rooms.destroy(room_id) == ("a", "b")
    assert rooms.destroy(room_id) is None
    assert rooms.destroy("never-existed") is None
    assert rooms.room_of("a") is None
    assert rooms.room_of("b") is None
    assert len(rooms) == 0


def test_members_can_rejoin_after_destroy(rooms: RoomDirectory, registered) -> None:
    rooms.destroy(rooms.create("a", "b"))

    room_id = rooms.create("b", "a")

    assert rooms.peer_of(room_id, "b") == "a"


def test_directory_without_presence() -> None:
    rooms = RoomDirectory()

    room_id = rooms.create("x", "y")

    assert rooms.peer_of(room_id, "x") == "y"
