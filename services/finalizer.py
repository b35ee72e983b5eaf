"""Per-batch state machine: PROCESSING -> COMPLETE or ABORTED.

A network failure aborts the batch and leaves it queued so the whole batch is
retried from its first operation. Business rejections and mapping gaps are
logged and dropped; once every operation has been attempted the batch is
complete and leaves the queue.
"""
from __future__ import annotations

import logging
from typing import Optional

from core.errors import BusinessRejection, MappingGap, NetworkFailure
from services.upload_types import (
    BatchResult,
    BatchState,
    CallKind,
    CrudTransaction,
    OperationOutcome,
    OpKind,
    OutcomeKind,
    PendingOperation,
    RemoteCall,
    RemoteOperationResult,
)


class TransactionFinalizer:
    def __init__(self, store, mapper, resolver, transport, audit, logger: Optional[logging.Logger] = None) -> None:
        self.store = store
        self.mapper = mapper
        self.resolver = resolver
        self.transport = transport
        self.audit = audit
        self.logger = logger or logging.getLogger(__name__)

    async def run(self, tx: CrudTransaction) -> BatchResult:
        batch = BatchResult(tx_id=tx.tx_id, state=BatchState.PROCESSING)
        for op in tx.crud:
            outcome = await self._process(op)
            batch.outcomes.append(outcome)
            result = outcome.result

            if result.kind is OutcomeKind.NETWORK_FAILURE:
                self.audit.record_outcome(outcome)
                self.logger.warning(
                    "tx %s aborted at %s %s/%s: %s", tx.tx_id, op.op.value, op.entity_type, op.row_id, result.message
                )
                batch.state = BatchState.ABORTED
                return batch

            if result.kind.is_failure:
                self.audit.record_outcome(outcome)
                self.logger.error(
                    "%s %s/%s dropped (%s): %s", op.op.value, op.entity_type, op.row_id, result.kind.value, result.message
                )
                continue

            self._after_success(outcome)

        self.store.complete_transaction(tx.tx_id)
        batch.state = BatchState.COMPLETE
        self.logger.info("tx %s complete, %d op(s), %d rejected", tx.tx_id, len(tx.crud), len(batch.rejected))
        return batch

    # ------------------------------------------------------------------
    async def _process(self, op: PendingOperation) -> OperationOutcome:
        call: Optional[RemoteCall] = None
        try:
            snapshot = self.store.get_record(op.entity_type, op.row_id) if op.op is OpKind.PATCH else None
            call = self.mapper.map(op, snapshot)
            if call.kind is CallKind.LOCAL:
                return OperationOutcome(op, RemoteOperationResult.success(message=call.reason), call)
            call = self.resolver.resolve(call)
            result = await self.transport.submit(call)
        except MappingGap as exc:
            result = RemoteOperationResult.gap(exc.message, payload=exc.details)
        except BusinessRejection as exc:
            result = RemoteOperationResult.rejection(exc.message, payload=exc.details)
        except NetworkFailure as exc:
            result = RemoteOperationResult.network(str(exc), code=exc.code, status=exc.status)
        except Exception as exc:
            self.logger.exception("Unexpected error uploading %s/%s", op.entity_type, op.row_id)
            result = RemoteOperationResult.rejection(f"{type(exc).__name__}: {exc}", code="unexpected")
        return OperationOutcome(op, result, call)

    def _after_success(self, outcome: OperationOutcome) -> None:
        op, call, result = outcome.operation, outcome.call, outcome.result
        if call is None or call.kind is CallKind.LOCAL:
            self.logger.debug("%s/%s acknowledged locally: %s", op.entity_type, op.row_id, result.message)
            return
        if call.placeholder:
            self.store.delete_record(op.entity_type, op.row_id)
        elif call.kind is CallKind.CREATE and result.server_id is not None:
            self.store.assign_server_id(op.entity_type, op.row_id, result.server_id)
        self.audit.record_outcome(outcome)
        self.logger.info("%s %s/%s uploaded as %s", op.op.value, op.entity_type, op.row_id, call.operation)


__all__ = ["TransactionFinalizer"]
