from services.id_resolver import IdentifierResolver, is_temporary_id
from services.upload_types import CallKind, RemoteCall


def _call(entity_type, payload, kind=CallKind.CREATE, record_id=None):
    return RemoteCall(kind=kind, entity_type=entity_type, operation="op", payload=payload, record_id=record_id)


def _offline_row(store, entity_type, data=None):
    with store.write_transaction() as tx:
        row_id = tx.put(entity_type, data or {})
    store.complete_transaction(store.next_transaction().tx_id)
    return row_id


def test_temporary_id_detection():
    assert is_temporary_id("6f1c8a52-2f7d-4a47-9a39-0d5c1f1e8a10")
    assert is_temporary_id("temp_17")
    assert not is_temporary_id("17")
    assert not is_temporary_id(17)
    assert not is_temporary_id("")
    assert not is_temporary_id(None)


def test_registered_foreign_key_is_rewritten(store):
    pallet = _offline_row(store, "warehouse_pallet")
    store.assign_server_id("warehouse_pallet", pallet, 501)
    resolver = IdentifierResolver(store)

    call = resolver.resolve(_call("warehouse_shipped_bale", {"pallet_id": pallet, "barcode": "B-1"}))

    assert call.payload == {"pallet_id": 501, "barcode": "B-1"}


def test_unresolved_temporary_id_passes_through(store):
    pallet = _offline_row(store, "warehouse_pallet")
    resolver = IdentifierResolver(store)

    call = resolver.resolve(_call("warehouse_shipped_bale", {"pallet_id": pallet}))

    assert call.payload == {"pallet_id": pallet}


def test_unknown_temporary_id_passes_through(store):
    resolver = IdentifierResolver(store)
    call = resolver.resolve(_call("warehouse_shipped_bale", {"dispatch_note_id": "temp_404"}))
    assert call.payload == {"dispatch_note_id": "temp_404"}


def test_any_id_field_is_looked_up_across_tables(store):
    gdn = _offline_row(store, "receiving_grower_delivery_note")
    store.assign_server_id("receiving_grower_delivery_note", gdn, 88)
    resolver = IdentifierResolver(store)

    call = resolver.resolve(_call("warehouse_transport", {"grower_delivery_note_id": gdn}))

    assert call.payload["grower_delivery_note_id"] == 88


def test_record_key_and_target_are_resolved(store):
    bale = _offline_row(store, "warehouse_shipped_bale", {"barcode": "B-1"})
    store.assign_server_id("warehouse_shipped_bale", bale, 900)
    resolver = IdentifierResolver(store)

    call = resolver.resolve(
        _call("warehouse_shipped_bale", {"bale_id": bale, "grade_id": 3}, kind=CallKind.ACTION, record_id=bale)
    )

    assert call.payload == {"bale_id": 900, "grade_id": 3}
    assert call.record_id == 900


def test_client_id_of_the_create_is_never_rewritten(store):
    pallet = _offline_row(store, "warehouse_pallet")
    store.assign_server_id("warehouse_pallet", pallet, 501)
    resolver = IdentifierResolver(store)

    call = resolver.resolve(_call("warehouse_pallet", {"mobile_app_id": pallet, "name": "P1"}))

    assert call.payload["mobile_app_id"] == pallet


def test_server_ids_and_plain_fields_are_untouched(store):
    resolver = IdentifierResolver(store)
    original = _call("warehouse_shipped_bale", {"pallet_id": 12, "barcode": "temp_barcode"})

    call = resolver.resolve(original)

    assert call.payload == {"pallet_id": 12, "barcode": "temp_barcode"}
    assert call is not original
