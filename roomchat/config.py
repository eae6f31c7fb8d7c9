from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

DEFAULT_CONFIG_PATH = "/app/config.yaml"


def _read_yaml(path: str) -> dict:
    p = Path(path)
    if not p.exists():
        # Fallback for local dev
        p = Path(__file__).parent.parent / "config.yaml"
    with open(p) as f:
        return yaml.safe_load(f) or {}


@dataclass
class AppConfig:
    jwt_secret: str
    database_dsn: str
    token_ttl_days: int = 7
    max_upload_bytes: int = 10 * 1024 * 1024

    @classmethod
    def load(cls, path: str = DEFAULT_CONFIG_PATH) -> AppConfig:
        raw = _read_yaml(path)
        server = raw.get("server", raw)
        return cls(
            jwt_secret=server["jwt_secret"],
            database_dsn=server["database_dsn"],
            token_ttl_days=server.get("token_ttl_days", 7),
            max_upload_bytes=server.get("max_upload_bytes", 10 * 1024 * 1024),
        )


@dataclass
class ClientConfig:
    base_url: str = "http://localhost:8000"
    request_timeout: float = 10.0
    room_poll_interval: float = 30.0
    room_fetch_min_interval: float = 5.0  # debounce floor for fetch_rooms
    message_poll_interval: float = 15.0
    reaction_poll_interval: float = 45.0
    heartbeat_interval: float = 30.0
    reaction_reconcile_delay: float = 2.0
    max_file_bytes: int = 10 * 1024 * 1024

    @classmethod
    def load(cls, path: str = DEFAULT_CONFIG_PATH) -> ClientConfig:
        raw = _read_yaml(path).get("client", {})
        known = {k: v for k, v in raw.items() if k in cls.__dataclass_fields__}
        return cls(**known)
