"""
Server configuration from environment variables
"""
import os
from dataclasses import dataclass, field
from typing import List

DEFAULT_ICE_SERVERS = "stun:stun.l.google.com:19302,stun:stun1.l.google.com:19302"


def _split_urls(value: str) -> List[str]:
    return [url.strip() for url in value.split(",") if url.strip()]


@dataclass
class Settings:
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    # Requests per minute per IP, 0 disables the limiter
    rate_limit: int = 100
    # Seconds without activity before a client with no live socket is reaped, 0 disables
    stale_after: float = 120.0
    reap_interval: float = 60.0
    ws_heartbeat: float = 30.0
    ice_servers: List[str] = field(default_factory=lambda: _split_urls(DEFAULT_ICE_SERVERS))

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            host=os.environ.get("SERVER_HOST", "0.0.0.0"),
            port=int(os.environ.get("PORT", 8000)),
            log_level=os.environ.get("TALKPAIR_LOG_LEVEL", "INFO").upper(),
            rate_limit=int(os.environ.get("TALKPAIR_RATE_LIMIT", 100)),
            stale_after=float(os.environ.get("TALKPAIR_STALE_AFTER", 120)),
            reap_interval=float(os.environ.get("TALKPAIR_REAP_INTERVAL", 60)),
            ws_heartbeat=float(os.environ.get("TALKPAIR_WS_HEARTBEAT", 30)),
            ice_servers=_split_urls(os.environ.get("TALKPAIR_ICE_SERVERS", DEFAULT_ICE_SERVERS)),
        )
