"""
Error taxonomy for matchmaking and signaling
"""


class SignalingError(Exception):
    """Base class for every failure surfaced to the triggering client"""

    code = "signaling_error"
    status = 400

    def to_dict(self) -> dict:
        return {"success": False, "error": str(self) or self.code, "code": self.code}


class UnknownIdentity(SignalingError):
    code = "unknown_identity"
    status = 404

    def __init__(self, identity: str):
        super().__init__(f"unknown identity {identity!r}")
        self.identity = identity


class InvalidState(SignalingError):
    code = "invalid_state"
    status = 400


class AlreadyInRoom(SignalingError):
    code = "already_in_room"
    status = 400

    def __init__(self, identity: str, room_id: str):
        super().__init__(f"{identity!r} is already in room {room_id}")
        self.identity = identity
        self.room_id = room_id


class NoActivePeer(SignalingError):
    code = "no_active_peer"
    status = 404


class RoomNotFound(SignalingError):
    code = "room_not_found"
    status = 404

    def __init__(self, room_id: str):
        super().__init__(f"unknown room {room_id!r}")
        self.room_id = room_id


class InvalidRequest(SignalingError):
    code = "invalid_request"
    status = 400
