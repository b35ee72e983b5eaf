"""Centralized application configuration."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
import os
import sys


def get_default_data_dir(
    app_name: str,
    *,
    platform: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    """Return an OS-specific user data directory for ``app_name``."""

    platform_id = (platform or sys.platform).lower()
    environ = dict(env or os.environ)
    home_dir = Path(home or Path.home())
    sanitized = app_name.strip() or "app"
    sanitized = sanitized.replace("/", "-").replace("\\", "-")

    if platform_id.startswith("win"):
        base = Path(environ.get("APPDATA") or home_dir / "AppData" / "Roaming")
    elif platform_id == "darwin":
        base = Path(environ.get("APPDATA") or home_dir / "Library" / "Application Support")
    else:
        base = Path(environ.get("XDG_DATA_HOME") or home_dir / ".local" / "share")

    return (base.expanduser() / sanitized)


APP_NAME = "FloorSync"


DATA_DIR = Path(os.environ.get("FLOORSYNC_DATA_DIR") or get_default_data_dir(APP_NAME))
STORAGE_DIR = DATA_DIR / "storage"
LOG_DIR = DATA_DIR / "logs"

for _dir in (DATA_DIR, STORAGE_DIR, LOG_DIR):
    _dir.mkdir(parents=True, exist_ok=True)


DB_PATH = DATA_DIR / "floorsync.db"
SESSION_PATH = STORAGE_DIR / "session.json"
UPLOAD_LOG_PATH = LOG_DIR / "upload.log"


@dataclass(frozen=True)
class UploadSettings:
    enabled: bool = True
    token_path: str = "/api/powersync/token"
    create_path: str = "/api/fo/create_unified"
    update_path: str = "/api/fo/update_unified/{record_id}"
    token_header: str = "X-FO-TOKEN"
    # None keeps httpx's own default timeout
    request_timeout_sec: Optional[float] = None
    auto_upload_interval_sec: int = 30
    max_batches_per_cycle: int = 50


UPLOAD = UploadSettings()


@dataclass(frozen=True)
class AuditSettings:
    recent_limit: int = 100
    message_max_length: int = 1000


AUDIT = AuditSettings()


@dataclass(frozen=True)
class LoggingSettings:
    path: Path = UPLOAD_LOG_PATH
    max_bytes: int = 1_000_000
    backup_count: int = 3
    fmt: str = "%(asctime)s [%(levelname)s] %(message)s"


LOGGING = LoggingSettings()


__all__ = [
    "APP_NAME",
    "DATA_DIR",
    "STORAGE_DIR",
    "LOG_DIR",
    "DB_PATH",
    "SESSION_PATH",
    "UPLOAD_LOG_PATH",
    "UPLOAD",
    "AUDIT",
    "LOGGING",
    "get_default_data_dir",
]
