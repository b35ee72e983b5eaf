"""Swap client-generated identifiers for server identifiers where known."""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Optional

from services.entity_registry import DEFAULT_REGISTRY, EntityRegistry
from services.upload_types import RemoteCall


logger = logging.getLogger(__name__)

# the create's own client id; the backend deduplicates replays on it
_NEVER_RESOLVED = frozenset({"mobile_app_id"})


def is_temporary_id(value: Any) -> bool:
    """Server ids are integers; anything else non-empty was minted on the device."""

    if value is None or isinstance(value, (bool, int, float)):
        return False
    if isinstance(value, str):
        text = value.strip()
        return bool(text) and not text.isdigit()
    return False


class IdentifierResolver:
    def __init__(self, store, registry: EntityRegistry = DEFAULT_REGISTRY) -> None:
        self.store = store
        self.registry = registry

    def server_id_for(self, entity_type: Optional[str], value: Any) -> Optional[int]:
        record = self.store.find_record(entity_type, value)
        if record is None:
            return None
        if record.server_id is not None:
            return int(record.server_id)
        if record.row_id.isdigit():
            return int(record.row_id)
        return None

    def resolve_value(self, entity_type: Optional[str], value: Any) -> Any:
        if not is_temporary_id(value):
            return value
        server_id = self.server_id_for(entity_type, value)
        if server_id is None:
            logger.debug("Temporary id %s (%s) not synced yet, sending as is", value, entity_type or "any")
            return value
        return server_id

    def resolve(self, call: RemoteCall) -> RemoteCall:
        """Return a copy of ``call`` with every resolvable foreign key rewritten."""

        mapping = self.registry.get(call.entity_type)
        foreign_keys = dict(mapping.foreign_keys) if mapping else {}
        record_key = mapping.record_key if mapping else None

        payload = dict(call.payload)
        for key, value in call.payload.items():
            if key in _NEVER_RESOLVED or not is_temporary_id(value):
                continue
            if key in foreign_keys:
                target: Optional[str] = foreign_keys[key]
            elif key == record_key:
                target = call.entity_type
            elif key.endswith("_id"):
                # client ids are globally unique, any table may hold the match
                target = None
            else:
                continue
            payload[key] = self.resolve_value(target, value)

        record_id = call.record_id
        if record_id is not None:
            record_id = self.resolve_value(call.entity_type, record_id)
        return replace(call, payload=payload, record_id=record_id)


__all__ = ["IdentifierResolver", "is_temporary_id"]
