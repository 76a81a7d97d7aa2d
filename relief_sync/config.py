"""
config.py - Runtime settings for the offline submission queue

Values come from the process environment, optionally seeded from
config/secrets.env and .env in the project root.
"""

import os
from dataclasses import dataclass
from pathlib import Path

# Paths
BASE_DIR = Path(__file__).resolve().parent.parent
CONFIG_DIR = BASE_DIR / "config"
DATA_DIR = BASE_DIR / "data"
SECRETS_PATH = CONFIG_DIR / "secrets.env"


def load_env_file(path):
    """Read KEY=VALUE lines into os.environ without overriding existing values."""
    if not os.path.exists(path):
        return
    with open(path, 'r') as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith('#') or '=' not in line:
                continue
            key, val = line.split('=', 1)
            os.environ.setdefault(key.strip(), val.strip().strip('"').strip("'"))


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass
class Settings:
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_access_token: str = ""
    queue_db_path: str = str(DATA_DIR / "offline_queue.db")
    sync_interval_seconds: int = 60
    submit_timeout_seconds: int = 30
    status_poll_seconds: int = 5
    stalled_attempts: int = 5
    media_bucket: str = "incident-photos"
    local_bridge_port: int = 8002
    status_api_port: int = 8001
    log_level: str = "INFO"

    @property
    def backend_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            supabase_url=os.getenv("SUPABASE_URL", "").rstrip('/'),
            supabase_anon_key=os.getenv("SUPABASE_ANON_KEY", ""),
            supabase_access_token=os.getenv("SUPABASE_ACCESS_TOKEN", ""),
            queue_db_path=os.getenv("QUEUE_DB_PATH", str(DATA_DIR / "offline_queue.db")),
            sync_interval_seconds=_int_env("SYNC_INTERVAL_SECONDS", 60),
            submit_timeout_seconds=_int_env("SUBMIT_TIMEOUT_SECONDS", 30),
            status_poll_seconds=_int_env("STATUS_POLL_SECONDS", 5),
            stalled_attempts=_int_env("STALLED_ATTEMPTS", 5),
            media_bucket=os.getenv("MEDIA_BUCKET", "incident-photos"),
            local_bridge_port=_int_env("LOCAL_BRIDGE_PORT", 8002),
            status_api_port=_int_env("STATUS_API_PORT", 8001),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


def load_settings() -> Settings:
    """Seed the environment from the env files, then build Settings."""
    load_env_file(SECRETS_PATH)
    load_env_file(BASE_DIR / ".env")
    return Settings.from_env()
