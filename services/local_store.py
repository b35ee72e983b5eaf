"""SQLite-backed local datastore: entity snapshots plus the pending crud queue."""
from __future__ import annotations

import json
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlmodel import select

from datetime_utils import utc_now
from models.crud_entry import CrudEntry
from models.local_record import LocalRecord
from services.upload_types import CrudTransaction, OpKind, PendingOperation
from storage.db import get_session


def _loads(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    return value if isinstance(value, dict) else {}


def _dumps(value: Dict[str, Any]) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def new_temporary_id() -> str:
    return str(uuid.uuid4())


class TransactionWriter:
    """Collects local changes that are committed together as one upload batch."""

    def __init__(self) -> None:
        self.changes: List[Tuple[OpKind, str, str, Dict[str, Any]]] = []

    def put(self, entity_type: str, data: Dict[str, Any], row_id: Optional[str] = None) -> str:
        row_id = str(row_id) if row_id is not None else new_temporary_id()
        self.changes.append((OpKind.PUT, entity_type, row_id, dict(data)))
        return row_id

    def patch(self, entity_type: str, row_id: Any, changes: Dict[str, Any]) -> None:
        self.changes.append((OpKind.PATCH, entity_type, str(row_id), dict(changes)))

    def remove(self, entity_type: str, row_id: Any) -> None:
        self.changes.append((OpKind.DELETE, entity_type, str(row_id), {}))


class SqlLocalStore:
    def __init__(self, session_factory=get_session) -> None:
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Local writes (UI side)
    @contextmanager
    def write_transaction(self) -> Iterator[TransactionWriter]:
        writer = TransactionWriter()
        yield writer
        if writer.changes:
            self._commit(writer.changes)

    def _commit(self, changes: List[Tuple[OpKind, str, str, Dict[str, Any]]]) -> int:
        with self._session_factory() as session:
            current = session.exec(select(func.max(CrudEntry.tx_id))).one()
            tx_id = int(current or 0) + 1
            for op, entity_type, row_id, data in changes:
                record = session.get(LocalRecord, (entity_type, row_id))
                previous: Optional[Dict[str, Any]] = None
                if op is OpKind.PUT:
                    if record is None:
                        record = LocalRecord(
                            entity_type=entity_type,
                            row_id=row_id,
                            mobile_app_id=None if row_id.isdigit() else row_id,
                        )
                    record.data = _dumps(data)
                    record.updated_at = utc_now()
                    session.add(record)
                elif op is OpKind.PATCH:
                    if record is None:
                        raise KeyError(f"{entity_type}/{row_id} does not exist locally")
                    snapshot = _loads(record.data)
                    previous = {key: snapshot.get(key) for key in data}
                    snapshot.update(data)
                    record.data = _dumps(snapshot)
                    record.updated_at = utc_now()
                    session.add(record)
                elif record is not None:
                    session.delete(record)
                session.add(
                    CrudEntry(
                        tx_id=tx_id,
                        op=op.value,
                        entity_type=entity_type,
                        row_id=row_id,
                        data=_dumps(data),
                        previous=_dumps(previous) if previous is not None else None,
                    )
                )
            session.commit()
        return tx_id

    # ------------------------------------------------------------------
    # Queue access (uploader side)
    def next_transaction(self) -> Optional[CrudTransaction]:
        with self._session_factory() as session:
            first = session.exec(select(CrudEntry).order_by(CrudEntry.tx_id.asc(), CrudEntry.id.asc())).first()
            if first is None:
                return None
            rows = list(
                session.exec(
                    select(CrudEntry).where(CrudEntry.tx_id == first.tx_id).order_by(CrudEntry.id.asc())
                )
            )

        crud = [
            PendingOperation(
                op=OpKind(row.op),
                entity_type=row.entity_type,
                row_id=row.row_id,
                data=_loads(row.data),
                previous=_loads(row.previous) if row.previous is not None else None,
                entry_id=row.id,
            )
            for row in rows
        ]
        return CrudTransaction(tx_id=first.tx_id, crud=crud)

    def complete_transaction(self, tx_id: int) -> None:
        with self._session_factory() as session:
            rows = session.exec(select(CrudEntry).where(CrudEntry.tx_id == tx_id)).all()
            for row in rows:
                session.delete(row)
            session.commit()

    def pending_count(self) -> int:
        with self._session_factory() as session:
            return int(session.exec(select(func.count()).select_from(CrudEntry)).one())

    # ------------------------------------------------------------------
    # Record access
    def get_record(self, entity_type: str, row_id: Any) -> Optional[Dict[str, Any]]:
        with self._session_factory() as session:
            record = session.get(LocalRecord, (entity_type, str(row_id)))
            if record is None:
                return None
            snapshot = _loads(record.data)
        snapshot["id"] = record.row_id
        return snapshot

    def find_record(self, entity_type: Optional[str], reference: Any) -> Optional[LocalRecord]:
        """Match by row id, by ``mobile_app_id`` or by an assigned server id.

        ``entity_type=None`` searches every entity table.
        """

        ref = str(reference)
        clauses = [LocalRecord.row_id == ref, LocalRecord.mobile_app_id == ref]
        if ref.isdigit():
            clauses.append(LocalRecord.server_id == int(ref))
        stmt = select(LocalRecord).where(or_(*clauses))
        if entity_type is not None:
            stmt = stmt.where(LocalRecord.entity_type == entity_type)
        with self._session_factory() as session:
            return session.exec(stmt.order_by(LocalRecord.server_id.desc())).first()

    def assign_server_id(self, entity_type: str, row_id: Any, server_id: int) -> None:
        with self._session_factory() as session:
            record = session.get(LocalRecord, (entity_type, str(row_id)))
            if record is None:
                record = LocalRecord(entity_type=entity_type, row_id=str(row_id), mobile_app_id=str(row_id))
            record.server_id = int(server_id)
            record.updated_at = utc_now()
            session.add(record)
            session.commit()

    def delete_record(self, entity_type: str, row_id: Any) -> bool:
        """Local-only delete; deleting a missing row is a no-op."""

        with self._session_factory() as session:
            record = session.get(LocalRecord, (entity_type, str(row_id)))
            if record is None:
                return False
            session.delete(record)
            session.commit()
            return True


__all__ = ["SqlLocalStore", "TransactionWriter", "new_temporary_id"]
