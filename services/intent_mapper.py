"""Translate queued local operations into remote calls."""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from core.errors import MappingGap
from services.entity_registry import DEFAULT_REGISTRY, EntityMapping, EntityRegistry
from services.id_resolver import is_temporary_id
from services.upload_types import CallKind, OpKind, PendingOperation, RemoteCall


logger = logging.getLogger(__name__)


def record_key_value(row_id: Any) -> Any:
    """Server ids travel as integers; client ids stay strings."""

    text = str(row_id)
    return int(text) if text.isdigit() else row_id


def apply_renames(data: Mapping[str, Any], renames: Mapping[str, str]) -> Dict[str, Any]:
    """Rename keys; a renamed column never overwrites a non-empty target."""

    result = {key: value for key, value in data.items() if key not in renames}
    for source, target in renames.items():
        if source not in data:
            continue
        if result.get(target) in (None, ""):
            result[target] = data[source]
    return result


class IntentMapper:
    def __init__(self, registry: EntityRegistry = DEFAULT_REGISTRY) -> None:
        self.registry = registry

    def map(self, op: PendingOperation, snapshot: Optional[Mapping[str, Any]] = None) -> RemoteCall:
        mapping = self.registry.get(op.entity_type)
        if mapping is None:
            raise MappingGap(
                f"No upload mapping for entity type '{op.entity_type}'",
                {"entity_type": op.entity_type, "op": op.op.value},
            )
        if op.op is OpKind.PUT:
            return self._map_create(mapping, op)
        if op.op is OpKind.PATCH:
            return self._map_update(mapping, op, snapshot)
        return self._map_delete(mapping, op)

    # ------------------------------------------------------------------
    def diff(self, mapping: EntityMapping, op: PendingOperation) -> Dict[str, Any]:
        """Changed, uploadable fields of an update."""

        changes = {key: value for key, value in op.data.items() if not mapping.is_excluded(key)}
        if op.previous is None:
            return changes
        return {
            key: value
            for key, value in changes.items()
            if key not in op.previous or op.previous[key] != value
        }

    def _map_create(self, mapping: EntityMapping, op: PendingOperation) -> RemoteCall:
        if not mapping.create_operation:
            raise MappingGap(
                f"'{op.entity_type}' records cannot be created from the device",
                {"entity_type": op.entity_type, "op": op.op.value},
            )
        data = {key: value for key, value in op.data.items() if not mapping.is_excluded(key)}
        payload = apply_renames(data, mapping.field_renames)
        if mapping.create_fields is not None:
            payload = {key: payload.get(key) for key in mapping.create_fields}
        if is_temporary_id(op.row_id):
            payload["mobile_app_id"] = op.row_id
        return RemoteCall(
            kind=CallKind.CREATE,
            entity_type=op.entity_type,
            operation=mapping.create_operation,
            payload=payload,
            record_id=op.row_id,
            placeholder=mapping.placeholder,
            id_key=mapping.record_key,
        )

    def _map_update(
        self,
        mapping: EntityMapping,
        op: PendingOperation,
        snapshot: Optional[Mapping[str, Any]],
    ) -> RemoteCall:
        diff = self.diff(mapping, op)
        if not diff:
            return self._local(op, "no uploadable change")

        rule = mapping.match_rule(diff)
        if rule is not None:
            if rule.operation is None:
                return self._local(op, f"'{rule.name}' is applied by the server", action=rule.name)
            current = snapshot or {}
            payload: Dict[str, Any] = {}
            for name in rule.fields:
                if name in diff:
                    value = diff[name]
                elif name in current:
                    value = current[name]
                else:
                    continue
                payload[rule.renames.get(name, name)] = value
            payload[mapping.record_key] = record_key_value(op.row_id)
            logger.debug("%s/%s update inferred as %s", op.entity_type, op.row_id, rule.name)
            return RemoteCall(
                kind=CallKind.ACTION,
                entity_type=op.entity_type,
                operation=rule.operation,
                payload=payload,
                record_id=op.row_id,
                action=rule.name,
                id_key=mapping.record_key,
            )

        if not mapping.generic_update:
            raise MappingGap(
                f"No business action matches the update of {sorted(diff)} on '{op.entity_type}'",
                {"entity_type": op.entity_type, "fields": sorted(diff)},
            )
        return RemoteCall(
            kind=CallKind.UPDATE,
            entity_type=op.entity_type,
            operation=f"{op.entity_type}_update",
            payload=apply_renames(diff, mapping.field_renames),
            record_id=op.row_id,
            id_key=mapping.record_key,
        )

    def _map_delete(self, mapping: EntityMapping, op: PendingOperation) -> RemoteCall:
        if mapping.placeholder:
            return self._local(op, "placeholder removal stays local")
        if not mapping.delete_operation:
            raise MappingGap(
                f"'{op.entity_type}' records cannot be deleted from the device",
                {"entity_type": op.entity_type, "op": op.op.value},
            )
        return RemoteCall(
            kind=CallKind.ACTION,
            entity_type=op.entity_type,
            operation=mapping.delete_operation,
            payload={mapping.record_key: record_key_value(op.row_id)},
            record_id=op.row_id,
            action="delete",
            id_key=mapping.record_key,
        )

    @staticmethod
    def _local(op: PendingOperation, reason: str, action: Optional[str] = None) -> RemoteCall:
        return RemoteCall(
            kind=CallKind.LOCAL,
            entity_type=op.entity_type,
            operation="",
            payload={},
            record_id=op.row_id,
            action=action,
            reason=reason,
        )


__all__ = ["IntentMapper", "apply_renames", "record_key_value"]
