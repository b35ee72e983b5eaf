from __future__ import annotations

import asyncio
import logging
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, List, Optional

from core.errors import NetworkFailure
from core.settings import LOGGING
from datetime_utils import to_iso_utc
from services.audit_log import AuditLog
from services.entity_registry import DEFAULT_REGISTRY, EntityRegistry
from services.finalizer import TransactionFinalizer
from services.id_resolver import IdentifierResolver
from services.intent_mapper import IntentMapper
from services.local_store import SqlLocalStore
from services.session_store import SessionStore
from services.sync_session import SyncSession
from services.upload_types import BatchResult, BatchState


def _ensure_logger() -> logging.Logger:
    logger = logging.getLogger("floorsync.upload")
    if not logger.handlers:
        LOGGING.path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            LOGGING.path, maxBytes=LOGGING.max_bytes, backupCount=LOGGING.backup_count, encoding="utf-8"
        )
        formatter = logging.Formatter(LOGGING.fmt)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    return logger


class UploadService:
    def __init__(
        self,
        session: SyncSession,
        store: Optional[SqlLocalStore] = None,
        audit: Optional[AuditLog] = None,
        *,
        registry: EntityRegistry = DEFAULT_REGISTRY,
        transport=None,
        session_store: Optional[SessionStore] = None,
    ) -> None:
        self.session = session
        self.settings = session.settings
        self.store = store or SqlLocalStore()
        self.audit = audit or AuditLog()
        self.registry = registry
        self.mapper = IntentMapper(registry)
        self.resolver = IdentifierResolver(self.store, registry)
        self._transport = transport
        self.session_store = session_store or session.store
        self.logger = _ensure_logger()
        self._lock = asyncio.Lock()
        self.connected = False

    # ------------------------------------------------------------------
    async def connect(self) -> bool:
        """Exchange credentials; ``False`` when the backend is unreachable.

        ``CredentialUnavailable`` propagates: nothing can be uploaded until
        the stored session changes.
        """
        try:
            await self.session.connect()
        except NetworkFailure as exc:
            self.connected = False
            self.logger.warning("Credential exchange failed (%s): %s", exc.code, exc)
            return False
        self.connected = True
        self.logger.info("Connected to %s", self.session.credentials.endpoint)
        return True

    def _finalizer(self) -> TransactionFinalizer:
        transport = self._transport or self.session.transport()
        return TransactionFinalizer(self.store, self.mapper, self.resolver, transport, self.audit, self.logger)

    async def upload_data(self) -> Optional[BatchResult]:
        """Process the oldest pending transaction, if any."""

        tx = self.store.next_transaction()
        if tx is None:
            return None
        result = await self._finalizer().run(tx)
        if result.state is BatchState.ABORTED:
            self.connected = False
        return result

    async def drain(self) -> List[BatchResult]:
        """Upload transactions until the queue is empty or a batch aborts."""

        if not self.settings.enabled:
            return []
        async with self._lock:
            if self.store.pending_count() == 0:
                return []
            if self._transport is None and not self.connected:
                if not await self.connect():
                    return []
            if self.session_store is not None:
                self.session_store.set_last_attempt()

            results: List[BatchResult] = []
            for _ in range(self.settings.max_batches_per_cycle):
                result = await self.upload_data()
                if result is None:
                    break
                results.append(result)
                if result.state is BatchState.ABORTED:
                    break

            if self.store.pending_count() == 0 and self.session_store is not None:
                self.session_store.set_last_synced()
            self.logger.info(
                "Upload cycle: %d batch(es), %d still queued", len(results), self.store.pending_count()
            )
            return results

    def status(self) -> Dict[str, Any]:
        last_synced = self.session_store.get_last_synced() if self.session_store is not None else None
        return {
            "connected": self.connected,
            "lastSyncedAt": to_iso_utc(last_synced),
            "queueSize": self.store.pending_count(),
            "failedOperations": self.audit.failure_count(),
        }


__all__ = ["UploadService"]
