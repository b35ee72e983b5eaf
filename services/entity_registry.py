"""Per-entity upload mappings and the ordered business action rules.

Every local entity type that may appear in the crud queue is registered here.
A mapping says how a create is named remotely, which local columns are
renamed or dropped, which columns are foreign keys, whether rows are
placeholders, and which business actions an update can stand for.

Update rules are evaluated top to bottom against the diff of an update; the
first rule that matches decides the remote action. Rules with no operation
acknowledge the change locally because the backend derives it from another
action (e.g. a bale marked dispatched by a dispatch scan).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterable, Iterator, Mapping, Optional, Tuple

Diff = Dict[str, Any]
Predicate = Callable[[Diff], bool]


GLOBAL_EXCLUDED_FIELDS: FrozenSet[str] = frozenset(
    {
        "id",
        "entity_type",
        "create_date",
        "write_date",
        "create_uid",
        "write_uid",
        "__last_update",
        "operation_type",
        "last_updated",
        "mobile_grower_image",
        "mobile_grower_national_id_image",
        "mobile_signature_image",
    }
)

_EMPTY = (None, "", False, 0)


# ----------------------------------------------------------------------
# Predicate builders
def changed(*fields: str) -> Predicate:
    """All of ``fields`` are in the diff."""

    return lambda diff: all(name in diff for name in fields)


def changed_any(*fields: str) -> Predicate:
    return lambda diff: any(name in diff for name in fields)


def only(*fields: str) -> Predicate:
    """The diff is non-empty and touches nothing outside ``fields``."""

    allowed = set(fields)
    return lambda diff: bool(diff) and set(diff) <= allowed


def without(*fields: str) -> Predicate:
    return lambda diff: not any(name in diff for name in fields)


def set_to(name: str, *values: Any) -> Predicate:
    return lambda diff: name in diff and diff[name] in values


def assigned(name: str) -> Predicate:
    """``name`` changed to a non-empty value."""

    return lambda diff: name in diff and diff[name] not in _EMPTY


def cleared(name: str) -> Predicate:
    return lambda diff: name in diff and diff[name] in _EMPTY


def all_of(*predicates: Predicate) -> Predicate:
    return lambda diff: all(p(diff) for p in predicates)


def any_of(*predicates: Predicate) -> Predicate:
    return lambda diff: any(p(diff) for p in predicates)


# ----------------------------------------------------------------------
@dataclass(frozen=True)
class ActionRule:
    name: str
    predicate: Predicate
    operation: Optional[str]
    fields: Tuple[str, ...] = ()
    renames: Mapping[str, str] = field(default_factory=dict)

    def matches(self, diff: Diff) -> bool:
        return bool(self.predicate(diff))


@dataclass(frozen=True)
class EntityMapping:
    entity_type: str
    create_operation: Optional[str] = None
    field_renames: Mapping[str, str] = field(default_factory=dict)
    create_fields: Optional[Tuple[str, ...]] = None
    foreign_keys: Mapping[str, str] = field(default_factory=dict)
    excluded_fields: FrozenSet[str] = frozenset()
    placeholder: bool = False
    delete_operation: Optional[str] = None
    update_rules: Tuple[ActionRule, ...] = ()
    generic_update: bool = True
    record_key: str = "id"

    def is_excluded(self, name: str) -> bool:
        return name in GLOBAL_EXCLUDED_FIELDS or name in self.excluded_fields

    def match_rule(self, diff: Diff) -> Optional[ActionRule]:
        for rule in self.update_rules:
            if rule.matches(diff):
                return rule
        return None


class EntityRegistry:
    def __init__(self, mappings: Iterable[EntityMapping] = ()) -> None:
        self._mappings: Dict[str, EntityMapping] = {}
        for mapping in mappings:
            self.register(mapping)

    def register(self, mapping: EntityMapping) -> None:
        if mapping.entity_type in self._mappings:
            raise ValueError(f"Duplicate mapping for {mapping.entity_type}")
        self._mappings[mapping.entity_type] = mapping

    def get(self, entity_type: str) -> Optional[EntityMapping]:
        return self._mappings.get(entity_type)

    def entity_types(self) -> Tuple[str, ...]:
        return tuple(self._mappings)

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self._mappings

    def __iter__(self) -> Iterator[EntityMapping]:
        return iter(self._mappings.values())

    def __len__(self) -> int:
        return len(self._mappings)


# ----------------------------------------------------------------------
# Warehouse floor
_PLACEMENT_FIELDS = ("pallet_id", "location_id", "stack_date_time")

SHIPPED_BALE_RULES: Tuple[ActionRule, ...] = (
    ActionRule(
        name="rack",
        predicate=assigned("pallet_id"),
        operation="warehouse_rack_bale",
        fields=("pallet_id", "location_id", "warehouse_id"),
    ),
    ActionRule(
        name="derack",
        predicate=cleared("pallet_id"),
        operation="warehouse_derack_bale",
    ),
    ActionRule(
        name="stack",
        predicate=all_of(changed("location_id", "stack_date_time"), only("location_id", "stack_date_time")),
        operation="warehouse_stack_bale",
        fields=("location_id", "stack_date_time"),
    ),
    ActionRule(
        name="receive",
        predicate=set_to("received", 1, True),
        operation="warehouse_receive_bale",
        fields=(
            "barcode",
            "logistics_barcode",
            "received_mass",
            "location_id",
            "warehouse_id",
            "received_date_time",
            "received_by",
        ),
    ),
    ActionRule(
        name="reclassify",
        predicate=all_of(changed_any("grade"), without(*_PLACEMENT_FIELDS)),
        operation="warehouse_reclassify_bale",
        fields=("grade",),
        renames={"grade": "grade_id"},
    ),
    ActionRule(
        name="reticket",
        predicate=all_of(changed_any("barcode"), without("grade", *_PLACEMENT_FIELDS)),
        operation="warehouse_reticket_bale",
        fields=("barcode",),
        renames={"barcode": "new_barcode"},
    ),
)


def _post_rule(operation: str) -> ActionRule:
    return ActionRule(
        name="post",
        predicate=any_of(set_to("state", "posted", "done"), set_to("status", "posted", "done")),
        operation=operation,
    )


MAPPINGS: Tuple[EntityMapping, ...] = (
    EntityMapping(
        entity_type="warehouse_shipped_bale",
        create_operation="warehouse_shipped_bale_create",
        field_renames={"grade": "grade_id"},
        foreign_keys={
            "pallet_id": "warehouse_pallet",
            "dispatch_note_id": "warehouse_dispatch_note",
        },
        update_rules=SHIPPED_BALE_RULES,
        generic_update=False,
        record_key="bale_id",
    ),
    EntityMapping(
        entity_type="warehouse_pallet",
        create_operation="warehouse_pallet_create",
        # occupancy is recomputed by the backend from rack actions
        excluded_fields=frozenset({"current_load"}),
        update_rules=(
            ActionRule(
                name="relocate",
                predicate=only("location_id", "warehouse_id"),
                operation="warehouse_pallet_relocate",
                fields=("location_id", "warehouse_id"),
            ),
        ),
        record_key="pallet_id",
    ),
    EntityMapping(
        entity_type="warehouse_dispatch_note",
        create_operation="warehouse_dispatch_create_note",
        foreign_keys={
            "transport_id": "warehouse_transport",
            "driver_id": "warehouse_driver",
        },
        update_rules=(_post_rule("warehouse_dispatch_note_post"),),
        record_key="dispatch_note_id",
    ),
    EntityMapping(
        entity_type="warehouse_dispatch_bale",
        create_operation="warehouse_dispatch_scan_bale",
        field_renames={"shipped_bale_id": "bale_id"},
        foreign_keys={
            "dispatch_note_id": "warehouse_dispatch_note",
            "bale_id": "warehouse_shipped_bale",
        },
        excluded_fields=frozenset({"state", "origin_document"}),
        placeholder=True,
        generic_update=False,
    ),
    EntityMapping(
        entity_type="warehouse_missing_dnote",
        create_operation="warehouse_missing_dnote_create",
        foreign_keys={"transport_id": "warehouse_transport"},
        update_rules=(_post_rule("warehouse_missing_dnote_post"),),
        record_key="missing_dnote_id",
    ),
    EntityMapping(
        entity_type="warehouse_data_capturing",
        create_operation="warehouse_data_capturing_save",
        field_renames={"existing_bale_id": "bale_id", "grade": "grade_id"},
        foreign_keys={"bale_id": "warehouse_shipped_bale"},
        delete_operation="warehouse_data_capturing_delete",
        record_key="record_id",
    ),
    EntityMapping(
        entity_type="warehouse_transport",
        create_operation="warehouse_transport_create",
    ),
    EntityMapping(
        entity_type="warehouse_driver",
        create_operation="warehouse_driver_create",
    ),
    # Auction floor
    EntityMapping(
        entity_type="floor_dispatch_note",
        create_operation="floor_dispatch_create_note",
        foreign_keys={
            "transport_id": "warehouse_transport",
            "driver_id": "warehouse_driver",
        },
        update_rules=(_post_rule("floor_dispatch_note_post"),),
        record_key="dispatch_note_id",
    ),
    EntityMapping(
        entity_type="floor_dispatch_bale",
        create_operation="floor_dispatch_scan_bale",
        field_renames={"receiving_bale_id": "bale_id"},
        foreign_keys={
            "dispatch_note_id": "floor_dispatch_note",
            "bale_id": "receiving_bale",
        },
        placeholder=True,
        generic_update=False,
    ),
    # Receiving
    EntityMapping(
        entity_type="receiving_bale",
        create_operation="receiving_add_bale",
        field_renames={"scale_barcode": "barcode", "grower_delivery_note_id": "document_number"},
        create_fields=("document_number", "barcode", "lot_number", "group_number"),
        update_rules=(
            # the dispatch scan marks the bale on the server
            ActionRule(
                name="dispatched",
                predicate=all_of(set_to("state", "dispatched"), only("state", "dispatch_date_time")),
                operation=None,
            ),
        ),
        record_key="bale_id",
    ),
    EntityMapping(
        entity_type="receiving_grower_delivery_note",
        update_rules=(
            ActionRule(
                name="close",
                predicate=set_to("state", "closed", "checked"),
                operation="receiving_gdn_close",
                fields=("user_closed_by", "user_closed_time"),
            ),
            ActionRule(
                name="hold",
                predicate=set_to("state", "hold"),
                operation="receiving_gdn_hold",
            ),
        ),
        record_key="gdn_id",
    ),
    EntityMapping(
        entity_type="receiving_transporter_delivery_note",
        create_operation="receiving_transporter_dnote_create",
    ),
    EntityMapping(
        entity_type="receiving_boka_transporter_delivery_note_line",
        foreign_keys={
            "transporter_delivery_note_id": "receiving_transporter_delivery_note",
            "grower_delivery_note_id": "receiving_grower_delivery_note",
        },
        update_rules=(
            ActionRule(
                name="validate",
                predicate=changed_any("physical_validation_status"),
                operation="receiving_td_line_validate",
                fields=(
                    "actual_bales_found",
                    "physical_validation_status",
                    "validation_notes",
                    "grower_delivery_note_id",
                ),
            ),
        ),
        record_key="line_id",
    ),
    EntityMapping(
        entity_type="receiving_curverid_bale_sequencing_model",
        create_operation="receiving_bale_sequencing_scan",
        foreign_keys={"grower_delivery_note_id": "receiving_grower_delivery_note"},
        excluded_fields=frozenset({"scan_date"}),
        placeholder=True,
        generic_update=False,
    ),
)


DEFAULT_REGISTRY = EntityRegistry(MAPPINGS)


__all__ = [
    "ActionRule",
    "EntityMapping",
    "EntityRegistry",
    "DEFAULT_REGISTRY",
    "GLOBAL_EXCLUDED_FIELDS",
    "SHIPPED_BALE_RULES",
    "all_of",
    "any_of",
    "assigned",
    "changed",
    "changed_any",
    "cleared",
    "only",
    "set_to",
    "without",
]
