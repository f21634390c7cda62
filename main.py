#!/usr/bin/env python3
"""
talkpair - Entry Point
Anonymous 1:1 audio call matchmaking + WebRTC signaling relay
"""
import logging
import socket
import time
from collections import defaultdict
from typing import Optional

from aiohttp import web

from talkpair.api import (
    serve_config, api_identify, api_presence, api_stats,
    api_create_room, api_signal, api_end_call, ws_signaling
)
from talkpair.config import Settings
from talkpair.errors import SignalingError
from talkpair.events import EventDispatcher
from talkpair.gateway import WebSocketGateway
from talkpair.matchmaker import Matchmaker
from talkpair.presence import PresenceRegistry
from talkpair.reaper import start_reaper, stop_reaper
from talkpair.relay import SignalRelay
from talkpair.rooms import RoomDirectory

logger = logging.getLogger("talkpair")


@web.middleware
async def rate_limit_middleware(request, handler):
    """Sliding one-minute request limit per IP"""
    limit = request.app["settings"].rate_limit
    if limit <= 0:
        return await handler(request)

    store = request.app["rate_limit_store"]
    ip = request.remote
    now = time.time()

    # Clean old entries
    store[ip] = [t for t in store[ip] if now - t < 60]

    if len(store[ip]) >= limit:
        logger.warning(f"Rate limit exceeded for {ip}")
        return web.json_response(
            {"success": False, "error": "Rate limit exceeded"},
            status=429
        )

    store[ip].append(now)
    return await handler(request)


@web.middleware
async def error_middleware(request, handler):
    """Turn failures into the JSON error envelope"""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except SignalingError as e:
        return web.json_response(e.to_dict(), status=e.status)
    except Exception:
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return web.json_response(
            {"success": False, "error": "Internal server error"},
            status=500
        )


async def close_sockets(app: web.Application):
    await app["gateway"].close_all()


def create_app(settings: Optional[Settings] = None) -> web.Application:
    """Create and configure the aiohttp application"""
    settings = settings or Settings.from_env()
    app = web.Application(middlewares=[rate_limit_middleware, error_middleware])

    presence = PresenceRegistry()
    rooms = RoomDirectory(presence)
    gateway = WebSocketGateway()
    matchmaker = Matchmaker(presence, rooms, gateway)
    relay = SignalRelay(rooms, gateway)

    app["settings"] = settings
    app["rate_limit_store"] = defaultdict(list)
    app["gateway"] = gateway
    app["matchmaker"] = matchmaker
    app["relay"] = relay
    app["dispatcher"] = EventDispatcher(matchmaker, relay)

    # API routes
    app.router.add_get("/config", serve_config)
    app.router.add_get("/stats", api_stats)
    app.router.add_post("/user/identify", api_identify)
    app.router.add_post("/presence/beat", api_presence)
    app.router.add_post("/create-room", api_create_room)
    app.router.add_post("/signal", api_signal)
    app.router.add_post("/end-call", api_end_call)

    # WebSocket gateway
    app.router.add_get("/ws", ws_signaling)

    app.on_startup.append(start_reaper)
    app.on_shutdown.append(close_sockets)
    app.on_cleanup.append(stop_reaper)

    logger.info("📞 talkpair server ready • matchmaking • signaling relay")
    return app


def get_local_ip():
    """Get local network IP address"""
    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        s.connect(("8.8.8.8", 80))
        ip = s.getsockname()[0]
        s.close()
        return ip
    except Exception:
        return "localhost"


def main():
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    app = create_app(settings)
    local_ip = get_local_ip()

    logger.info(f"🚀 Starting server on {settings.host}:{settings.port}")
    logger.info(f"💡 Signaling at: ws://{local_ip}:{settings.port}/ws")

    web.run_app(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
