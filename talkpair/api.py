"""
HTTP and WebSocket handlers for the matchmaking/signaling server.

The HTTP surface is stateless per request and mirrors the WebSocket events.
Every JSON response carries {"success": bool, ...}. Failures raised as
SignalingError are turned into error envelopes by the error middleware.
"""
import json
import logging

from aiohttp import web

from .errors import InvalidRequest, SignalingError
from .events import (
    Connect, Disconnect, EndCall, Heartbeat, Signal, StartSearch, parse_event,
)
from .presence import Status
from .relay import SIGNAL_KINDS
from .utils import generate_client_id

logger = logging.getLogger("talkpair")


def _ok(**fields) -> web.Response:
    return web.json_response({"success": True, **fields})


def _no_peer() -> web.Response:
    return web.json_response({"success": False, "error": "No peers available"}, status=404)


async def _read_body(request: web.Request) -> dict:
    try:
        data = await request.json()
    except ValueError:
        raise InvalidRequest("request body must be JSON")
    if not isinstance(data, dict):
        raise InvalidRequest("request body must be a JSON object")
    return data


def _identity_from(data: dict) -> str:
    # "email" is what the original web client sends
    identity = data.get("identity") or data.get("email")
    if not isinstance(identity, str) or not identity:
        raise InvalidRequest("identity is required")
    return identity


def _ice_servers(request: web.Request) -> list:
    return [{"urls": url} for url in request.app["settings"].ice_servers]


# ============================================================
# WEBSOCKET GATEWAY
# ============================================================

async def ws_signaling(request: web.Request) -> web.WebSocketResponse:
    """One WebSocket per client; all inbound events go through the dispatcher"""
    settings = request.app["settings"]
    gateway = request.app["gateway"]
    dispatcher = request.app["dispatcher"]

    identity = request.query.get("identity") or generate_client_id()
    ws = web.WebSocketResponse(heartbeat=settings.ws_heartbeat or None)
    await ws.prepare(request)

    connection = gateway.attach(identity, ws)
    dispatcher.dispatch(Connect(identity))
    gateway.deliver(identity, {
        "type": "welcome",
        "identity": identity,
        "iceServers": _ice_servers(request),
    })

    try:
        async for msg in ws:
            if msg.type == web.WSMsgType.TEXT:
                if msg.data == "ping":
                    try:
                        dispatcher.dispatch(Heartbeat(identity))
                    except SignalingError as e:
                        gateway.deliver(identity, {"type": "error", "error": e.code, "message": str(e)})
                        continue
                    await ws.send_str("pong")
                    continue
                _handle_ws_message(request.app, identity, msg.data)
            elif msg.type == web.WSMsgType.ERROR:
                logger.debug(f"WebSocket error for {identity}: {ws.exception()}")
    except Exception as e:
        logger.error(f"WebSocket handler for {identity} failed: {e}", exc_info=True)
    finally:
        if await gateway.detach(connection):
            dispatcher.dispatch(Disconnect(identity))

    return ws


def _handle_ws_message(app: web.Application, identity: str, text: str):
    gateway = app["gateway"]
    try:
        data = json.loads(text)
    except ValueError:
        gateway.deliver(identity, {
            "type": "error",
            "error": InvalidRequest.code,
            "message": "message must be JSON",
        })
        return

    try:
        event = parse_event(identity, data)
        result = app["dispatcher"].dispatch(event)
    except SignalingError as e:
        logger.info("⚠️ %s from %s rejected: %s", data.get("type") if isinstance(data, dict) else "message", identity, e)
        gateway.deliver(identity, {"type": "error", "error": e.code, "message": str(e)})
        return

    if isinstance(event, StartSearch) and not result.paired:
        gateway.deliver(identity, {"type": "searching"})


# ============================================================
# CONFIGURATION & STATS
# ============================================================

async def serve_config(request: web.Request) -> web.Response:
    """ICE servers the client should hand to its peer connection"""
    return _ok(iceServers=_ice_servers(request))


async def api_stats(request: web.Request) -> web.Response:
    matchmaker = request.app["matchmaker"]
    return _ok(
        presence=matchmaker.presence.counts(),
        rooms=len(matchmaker.rooms),
        sockets=len(request.app["gateway"]),
    )


# ============================================================
# USER IDENTITY & PRESENCE
# ============================================================

async def api_identify(request: web.Request) -> web.Response:
    """Register a client, reusing its identity if it sent one"""
    data = await _read_body(request)
    identity = data.get("identity") or data.get("email") or generate_client_id()
    if not isinstance(identity, str):
        raise InvalidRequest("identity must be a string")

    entry = request.app["dispatcher"].dispatch(Connect(identity))
    return _ok(identity=identity, status=entry.status.value)


async def api_presence(request: web.Request) -> web.Response:
    """Heartbeat for clients using the HTTP surface only"""
    data = await _read_body(request)
    entry = request.app["dispatcher"].dispatch(Heartbeat(_identity_from(data)))
    return _ok(status=entry.status.value)


# ============================================================
# MATCHMAKING & SIGNALING
# ============================================================

async def api_create_room(request: web.Request) -> web.Response:
    """
    Search for a peer, or poll an earlier search.

    Paired: 200 with roomId and target. Still waiting: 404, and the client
    stays searching so it can poll again.
    """
    data = await _read_body(request)
    identity = _identity_from(data)
    dispatcher = request.app["dispatcher"]
    matchmaker = request.app["matchmaker"]

    entry = dispatcher.dispatch(Connect(identity))
    if entry.status is Status.SEARCHING:
        return _no_peer()
    if entry.status is Status.IN_CALL:
        room_id = matchmaker.rooms.room_of(identity)
        room = matchmaker.rooms.get(room_id) if room_id else None
        if room is not None:
            return _ok(
                roomId=room.room_id,
                target=room.peer_of(identity),
                initiator=room.member_a == identity,
            )

    result = dispatcher.dispatch(StartSearch(identity))
    if not result.paired:
        return _no_peer()
    return _ok(roomId=result.room_id, target=result.peer, initiator=True)


async def api_signal(request: web.Request) -> web.Response:
    data = await _read_body(request)
    kind = data.get("type")
    dispatcher = request.app["dispatcher"]

    if kind in SIGNAL_KINDS:
        room_id = data.get("roomId")
        if not isinstance(room_id, str) or not room_id:
            raise InvalidRequest("roomId is required")
        target = dispatcher.dispatch(Signal(kind, room_id, _identity_from(data), data.get("data")))
        return _ok(target=target)

    if kind == "disconnect":
        dispatcher.dispatch(Disconnect(_identity_from(data)))
        return _ok()

    raise InvalidRequest("Invalid signal type")


async def api_end_call(request: web.Request) -> web.Response:
    """End a call by room id or by participant; repeating it is harmless"""
    data = await _read_body(request)
    room_id = data.get("roomId")
    if room_id is not None and not isinstance(room_id, str):
        raise InvalidRequest("roomId must be a string")

    if data.get("identity") or data.get("email"):
        identity = _identity_from(data)
        members = request.app["dispatcher"].dispatch(EndCall(room_id, identity))
    elif room_id:
        members = request.app["matchmaker"].end_call(room_id=room_id)
    else:
        raise InvalidRequest("roomId or identity is required")

    return _ok(roomId=room_id, ended=members is not None)
