"""
Background cleanup of clients that vanished without disconnecting
"""
import asyncio
import logging

from aiohttp import web

from .matchmaker import Matchmaker

logger = logging.getLogger("talkpair")


async def reap_stale_clients(matchmaker: Matchmaker, max_idle: float, interval: float):
    """Periodically disconnect clients idle for more than `max_idle` seconds"""
    while True:
        await asyncio.sleep(interval)
        try:
            matchmaker.reap_stale(max_idle)
        except Exception as e:
            logger.error(f"Cleanup task error: {e}", exc_info=True)


async def start_reaper(app: web.Application):
    settings = app["settings"]
    if settings.stale_after <= 0:
        logger.info("Stale client reaper disabled")
        return
    app["reaper_task"] = asyncio.ensure_future(
        reap_stale_clients(app["matchmaker"], settings.stale_after, settings.reap_interval)
    )


async def stop_reaper(app: web.Application):
    task = app.get("reaper_task")
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
