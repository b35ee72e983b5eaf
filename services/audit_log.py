from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlmodel import select

from core.settings import AUDIT, AuditSettings
from datetime_utils import utc_now
from models.sync_log import SyncLog
from services.upload_types import OperationOutcome, OutcomeKind
from storage.db import get_session


logger = logging.getLogger(__name__)

_FAILURE_KINDS = tuple(kind.value for kind in OutcomeKind if kind.is_failure)


class AuditLog:
    """Local record of upload outcomes.

    Failures are kept once per (entity type, entity id, kind) and counted;
    successes are appended every time.
    """

    def __init__(self, session_factory=get_session, settings: AuditSettings = AUDIT) -> None:
        self._session_factory = session_factory
        self.settings = settings

    def record(
        self,
        entity_type: Optional[str],
        entity_id: Any,
        kind: OutcomeKind,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> SyncLog:
        kind = OutcomeKind(kind)
        entity_type = entity_type or "N/A"
        entity_id = str(entity_id) if entity_id not in (None, "") else "N/A"
        message = (message or "")[: self.settings.message_max_length]
        encoded = json.dumps(details or {}, ensure_ascii=False, default=str)
        now = utc_now()

        with self._session_factory() as session:
            entry = None
            if kind.is_failure:
                stmt = (
                    select(SyncLog)
                    .where(SyncLog.entity_type == entity_type)
                    .where(SyncLog.entity_id == entity_id)
                    .where(SyncLog.kind == kind.value)
                    .order_by(SyncLog.id.desc())
                )
                entry = session.exec(stmt).first()
            if entry is not None:
                entry.retry_count = (entry.retry_count or 1) + 1
                entry.last_seen_at = now
                entry.message = message
                entry.details = encoded
            else:
                entry = SyncLog(
                    created_at=now,
                    last_seen_at=now,
                    kind=kind.value,
                    message=message,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    details=encoded,
                )
            session.add(entry)
            session.commit()
            session.refresh(entry)
            return entry

    def record_outcome(self, outcome: OperationOutcome) -> SyncLog:
        op = outcome.operation
        result = outcome.result
        details: Dict[str, Any] = {"op": op.op.value}
        if outcome.call is not None and outcome.call.operation:
            details["operation"] = outcome.call.operation
            details["payload"] = outcome.call.payload
        if result.code:
            details["code"] = result.code
        if result.status is not None:
            details["status"] = result.status
        if result.server_id is not None:
            details["server_id"] = result.server_id
        if result.payload:
            details["response"] = result.payload
        message = result.message or ("Uploaded" if result.ok else result.kind.value)
        return self.record(op.entity_type, op.row_id, result.kind, message, details)

    # ------------------------------------------------------------------
    # Queries
    def recent(self, limit: Optional[int] = None) -> List[SyncLog]:
        with self._session_factory() as session:
            stmt = (
                select(SyncLog)
                .order_by(SyncLog.last_seen_at.desc(), SyncLog.id.desc())
                .limit(limit or self.settings.recent_limit)
            )
            return list(session.exec(stmt))

    def failures(self) -> List[SyncLog]:
        with self._session_factory() as session:
            stmt = select(SyncLog).where(SyncLog.kind.in_(_FAILURE_KINDS)).order_by(SyncLog.id.asc())
            return list(session.exec(stmt))

    def failure_count(self) -> int:
        with self._session_factory() as session:
            stmt = select(func.count()).select_from(SyncLog).where(SyncLog.kind.in_(_FAILURE_KINDS))
            return int(session.exec(stmt).one())

    # ------------------------------------------------------------------
    # Maintenance
    def clear(self) -> int:
        with self._session_factory() as session:
            rows = session.exec(select(SyncLog)).all()
            for row in rows:
                session.delete(row)
            session.commit()
            return len(rows)

    def discard(self, log_id: int, store) -> bool:
        """Delete the local record behind a failure entry, then the entry."""

        with self._session_factory() as session:
            entry = session.get(SyncLog, log_id)
            if entry is None:
                return False
            entity_type, entity_id = entry.entity_type, entry.entity_id
            session.delete(entry)
            session.commit()
        if entity_type != "N/A" and entity_id != "N/A":
            removed = store.delete_record(entity_type, entity_id)
            logger.info("Discarded %s/%s after sync error (record removed: %s)", entity_type, entity_id, removed)
        return True


__all__ = ["AuditLog"]
