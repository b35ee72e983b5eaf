import json

from core.settings import AuditSettings
from services.audit_log import AuditLog
from services.upload_types import OutcomeKind


def test_repeated_rejection_updates_one_row(audit):
    first = audit.record("warehouse_shipped_bale", "77", OutcomeKind.BUSINESS_REJECTION, "Bale not found")
    second = audit.record(
        "warehouse_shipped_bale", "77", OutcomeKind.BUSINESS_REJECTION, "Bale still not found", {"attempt": 2}
    )

    rows = audit.failures()
    assert len(rows) == 1
    assert second.id == first.id
    assert rows[0].retry_count == 2
    assert rows[0].message == "Bale still not found"
    assert json.loads(rows[0].details) == {"attempt": 2}
    assert rows[0].last_seen_at >= rows[0].created_at


def test_repeated_success_appends_rows(audit):
    audit.record("warehouse_pallet", "5", OutcomeKind.SUCCESS, "Uploaded")
    audit.record("warehouse_pallet", "5", OutcomeKind.SUCCESS, "Uploaded")

    rows = audit.recent()
    assert len(rows) == 2
    assert all(row.retry_count == 1 for row in rows)


def test_dedup_key_includes_kind_and_entity(audit):
    audit.record("warehouse_pallet", "5", OutcomeKind.BUSINESS_REJECTION, "a")
    audit.record("warehouse_pallet", "5", OutcomeKind.NETWORK_FAILURE, "b")
    audit.record("warehouse_pallet", "6", OutcomeKind.BUSINESS_REJECTION, "c")
    audit.record("warehouse_driver", "5", OutcomeKind.BUSINESS_REJECTION, "d")

    assert audit.failure_count() == 4


def test_missing_entity_is_logged_as_na(audit):
    entry = audit.record(None, None, OutcomeKind.MAPPING_GAP, "No upload mapping")
    assert (entry.entity_type, entry.entity_id) == ("N/A", "N/A")


def test_long_messages_are_truncated(session_factory):
    audit = AuditLog(session_factory, AuditSettings(message_max_length=10))
    entry = audit.record("warehouse_pallet", "5", OutcomeKind.BUSINESS_REJECTION, "x" * 50)
    assert entry.message == "x" * 10


def test_recent_is_limited(audit):
    for index in range(5):
        audit.record("warehouse_pallet", str(index), OutcomeKind.SUCCESS, "Uploaded")
    assert len(audit.recent(3)) == 3


def test_clear_removes_everything(audit):
    audit.record("warehouse_pallet", "5", OutcomeKind.SUCCESS, "Uploaded")
    audit.record("warehouse_pallet", "5", OutcomeKind.BUSINESS_REJECTION, "no")
    assert audit.clear() == 2
    assert audit.recent() == []


def test_discard_deletes_offending_record_and_entry(audit, store):
    with store.write_transaction() as tx:
        row_id = tx.put("warehouse_data_capturing", {"mass": 80})
    entry = audit.record("warehouse_data_capturing", row_id, OutcomeKind.BUSINESS_REJECTION, "Bale closed")

    assert audit.discard(entry.id, store) is True
    assert store.get_record("warehouse_data_capturing", row_id) is None
    assert audit.failure_count() == 0
    assert audit.discard(entry.id, store) is False
