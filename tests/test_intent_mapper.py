import pytest

from core.errors import MappingGap
from services.entity_registry import DEFAULT_REGISTRY, EntityMapping, EntityRegistry
from services.intent_mapper import IntentMapper, apply_renames
from services.upload_types import CallKind, OpKind, PendingOperation


TEMP_ID = "6f1c8a52-2f7d-4a47-9a39-0d5c1f1e8a10"


def _put(entity_type, data, row_id=TEMP_ID):
    return PendingOperation(op=OpKind.PUT, entity_type=entity_type, row_id=row_id, data=data)


def _patch(entity_type, row_id, data, previous=None):
    return PendingOperation(op=OpKind.PATCH, entity_type=entity_type, row_id=row_id, data=data, previous=previous)


def _delete(entity_type, row_id):
    return PendingOperation(op=OpKind.DELETE, entity_type=entity_type, row_id=row_id)


@pytest.fixture()
def mapper():
    return IntentMapper()


def test_create_renames_fields_and_carries_client_id(mapper):
    call = mapper.map(
        _put(
            "warehouse_shipped_bale",
            {"id": TEMP_ID, "barcode": "B-1", "grade": 4, "write_date": "2024-01-01", "mobile_signature_image": "x"},
        )
    )

    assert call.kind is CallKind.CREATE
    assert call.operation == "warehouse_shipped_bale_create"
    assert call.payload == {"barcode": "B-1", "grade_id": 4, "mobile_app_id": TEMP_ID}
    assert call.id_key == "bale_id"


def test_create_restricted_to_create_fields(mapper):
    call = mapper.map(
        _put(
            "receiving_bale",
            {
                "scale_barcode": "SB-9",
                "grower_delivery_note_id": "GD-1",
                "lot_number": 3,
                "group_number": 1,
                "mass": 81.5,
            },
            row_id="temp_77",
        )
    )

    assert call.operation == "receiving_add_bale"
    assert call.payload == {
        "document_number": "GD-1",
        "barcode": "SB-9",
        "lot_number": 3,
        "group_number": 1,
        "mobile_app_id": "temp_77",
    }


def test_rename_never_overwrites_a_filled_target():
    data = {"document_number": "DOC-1", "grower_delivery_note_id": "GD-1"}
    assert apply_renames(data, {"grower_delivery_note_id": "document_number"}) == {"document_number": "DOC-1"}


def test_create_of_synced_row_has_no_client_id(mapper):
    call = mapper.map(_put("warehouse_transport", {"name": "Truck"}, row_id="31"))
    assert "mobile_app_id" not in call.payload


def test_placeholder_create_is_flagged(mapper):
    call = mapper.map(_put("floor_dispatch_bale", {"receiving_bale_id": 44, "dispatch_note_id": 2}))
    assert call.placeholder is True
    assert call.payload["bale_id"] == 44
    assert "receiving_bale_id" not in call.payload


def test_status_posted_is_inferred_as_post_action(mapper):
    call = mapper.map(
        _patch("warehouse_dispatch_note", "12", {"status": "posted"}, previous={"status": "draft"}),
        snapshot={"id": "12", "name": "DN-12", "status": "posted"},
    )

    assert call.kind is CallKind.ACTION
    assert call.action == "post"
    assert call.operation == "warehouse_dispatch_note_post"
    assert call.payload == {"dispatch_note_id": 12}


def test_state_posted_on_missing_dnote(mapper):
    call = mapper.map(_patch("warehouse_missing_dnote", "3", {"state": "posted"}))
    assert call.operation == "warehouse_missing_dnote_post"
    assert call.payload == {"missing_dnote_id": 3}


def test_rack_pulls_required_fields_from_snapshot(mapper):
    call = mapper.map(
        _patch("warehouse_shipped_bale", "77", {"pallet_id": TEMP_ID}, previous={"pallet_id": None}),
        snapshot={"id": "77", "pallet_id": TEMP_ID, "location_id": 4, "warehouse_id": 2, "grade": 9},
    )

    assert call.action == "rack"
    assert call.operation == "warehouse_rack_bale"
    assert call.payload == {"pallet_id": TEMP_ID, "location_id": 4, "warehouse_id": 2, "bale_id": 77}


def test_first_matching_rule_wins(mapper):
    call = mapper.map(_patch("warehouse_shipped_bale", "77", {"pallet_id": 5, "grade": 3}), snapshot={})
    assert call.action == "rack"


def test_clearing_the_pallet_deracks(mapper):
    call = mapper.map(_patch("warehouse_shipped_bale", "77", {"pallet_id": None}, previous={"pallet_id": 5}))
    assert call.operation == "warehouse_derack_bale"
    assert call.payload == {"bale_id": 77}


def test_placement_and_timestamp_is_a_stack(mapper):
    call = mapper.map(
        _patch("warehouse_shipped_bale", "77", {"location_id": 8, "stack_date_time": "2024-05-01 10:00:00"})
    )
    assert call.operation == "warehouse_stack_bale"
    assert call.payload == {"location_id": 8, "stack_date_time": "2024-05-01 10:00:00", "bale_id": 77}


def test_grade_only_is_a_reclassification(mapper):
    call = mapper.map(_patch("warehouse_shipped_bale", "77", {"grade": 12, "write_date": "now"}))
    assert call.operation == "warehouse_reclassify_bale"
    assert call.payload == {"grade_id": 12, "bale_id": 77}


def test_barcode_only_is_a_reticket(mapper):
    call = mapper.map(_patch("warehouse_shipped_bale", "77", {"barcode": "NEW-1"}))
    assert call.operation == "warehouse_reticket_bale"
    assert call.payload == {"new_barcode": "NEW-1", "bale_id": 77}


def test_unmatched_update_without_generic_fallback_is_a_gap(mapper):
    with pytest.raises(MappingGap) as excinfo:
        mapper.map(_patch("warehouse_shipped_bale", "77", {"mass": 90}))
    assert excinfo.value.details["fields"] == ["mass"]


def test_generic_update_carries_only_changed_fields(mapper):
    call = mapper.map(
        _patch(
            "warehouse_transport",
            "31",
            {"name": "Truck 2", "plate": "ABC", "write_date": "now"},
            previous={"name": "Truck 1", "plate": "ABC"},
        )
    )

    assert call.kind is CallKind.UPDATE
    assert call.operation == "warehouse_transport_update"
    assert call.payload == {"name": "Truck 2"}
    assert call.record_id == "31"


def test_unchanged_update_is_acknowledged_locally(mapper):
    call = mapper.map(_patch("warehouse_transport", "31", {"name": "Same"}, previous={"name": "Same"}))
    assert call.kind is CallKind.LOCAL


def test_server_side_transition_is_acknowledged_locally(mapper):
    call = mapper.map(_patch("receiving_bale", "5", {"state": "dispatched"}))
    assert call.kind is CallKind.LOCAL
    assert call.action == "dispatched"


def test_delete_of_placeholder_stays_local(mapper):
    assert mapper.map(_delete("warehouse_dispatch_bale", TEMP_ID)).kind is CallKind.LOCAL


def test_delete_with_remote_operation(mapper):
    call = mapper.map(_delete("warehouse_data_capturing", "temp_1"))
    assert call.kind is CallKind.ACTION
    assert call.operation == "warehouse_data_capturing_delete"
    assert call.payload == {"record_id": "temp_1"}


def test_delete_without_remote_operation_is_a_gap(mapper):
    with pytest.raises(MappingGap):
        mapper.map(_delete("warehouse_transport", "31"))


def test_unknown_entity_is_a_gap(mapper):
    with pytest.raises(MappingGap):
        mapper.map(_put("mystery_table", {"a": 1}))


def test_entity_without_create_operation_is_a_gap(mapper):
    with pytest.raises(MappingGap):
        mapper.map(_put("receiving_grower_delivery_note", {"state": "open"}))


def test_mapper_does_not_mutate_the_operation(mapper):
    data = {"grade": 4, "barcode": "B-1", "id": TEMP_ID}
    op = _put("warehouse_shipped_bale", data)
    mapper.map(op)
    assert op.data == {"grade": 4, "barcode": "B-1", "id": TEMP_ID}


def test_registry_is_enumerable_and_rejects_duplicates():
    assert "warehouse_shipped_bale" in DEFAULT_REGISTRY
    assert len(DEFAULT_REGISTRY) == len(DEFAULT_REGISTRY.entity_types())

    registry = EntityRegistry([EntityMapping("a", create_operation="a_create")])
    with pytest.raises(ValueError):
        registry.register(EntityMapping("a"))


def test_unchanged_status_is_acknowledged_locally_not_posted(mapper):
    call = mapper.map(
        _patch("warehouse_dispatch_note", "12", {"status": "draft"}, previous={"status": "draft"}),
        snapshot={"id": "12", "status": "draft"},
    )

    assert call.kind is CallKind.LOCAL
    assert call.reason == "no uploadable change"
    assert call.payload == {}


def test_numeric_record_keys_are_sent_as_integers(mapper):
    delete = mapper.map(_delete("warehouse_data_capturing", "41"))
    action = mapper.map(_patch("warehouse_shipped_bale", "77", {"barcode": "NEW-1"}))

    assert delete.payload == {"record_id": 41}
    assert action.payload["bale_id"] == 77
