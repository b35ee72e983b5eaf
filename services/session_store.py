from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

from core.settings import SESSION_PATH
from datetime_utils import ensure_utc, parse_iso, to_iso_utc, utc_now
from services.credentials import SessionMaterial


def _parse_datetime(value: Optional[str]):
    return ensure_utc(parse_iso(value)) if value else None


class SessionStore:
    def __init__(self, path: Path | str | None = None):
        self.path = Path(path or SESSION_PATH)

    # ------------------------------------------------------------------
    # generic helpers
    def _load(self) -> Dict[str, Any]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError:
            return {}
        if isinstance(data, dict):
            return data
        return {}

    def _save(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data), encoding="utf-8")

    # ------------------------------------------------------------------
    # Session material
    def load_material(self) -> Optional[SessionMaterial]:
        session = self._load().get("session")
        if not isinstance(session, dict):
            return None
        return SessionMaterial.from_dict(session)

    def save_material(self, material: SessionMaterial) -> None:
        data = self._load()
        data["session"] = material.to_dict()
        self._save(data)

    def clear_material(self) -> None:
        data = self._load()
        if data.pop("session", None) is not None:
            self._save(data)

    # ------------------------------------------------------------------
    # Upload timestamps
    def set_last_synced(self, moment=None) -> None:
        data = self._load()
        data["lastSyncedAt"] = to_iso_utc(ensure_utc(moment) if moment else utc_now())
        self._save(data)

    def get_last_synced(self):
        return _parse_datetime(self._load().get("lastSyncedAt"))

    def set_last_attempt(self, moment=None) -> None:
        data = self._load()
        data["lastAttemptAt"] = to_iso_utc(ensure_utc(moment) if moment else utc_now())
        self._save(data)

    def get_last_attempt(self):
        return _parse_datetime(self._load().get("lastAttemptAt"))

    # ------------------------------------------------------------------
    def clear_all(self) -> None:
        if self.path.exists():
            self.path.unlink()


__all__ = ["SessionStore"]
