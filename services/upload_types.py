"""Value types shared by the upload pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class OpKind(str, Enum):
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    BUSINESS_REJECTION = "business_rejection"
    NETWORK_FAILURE = "network_failure"
    MAPPING_GAP = "mapping_gap"

    @property
    def is_failure(self) -> bool:
        return self is not OutcomeKind.SUCCESS


class BatchState(str, Enum):
    PROCESSING = "processing"
    COMPLETE = "complete"
    ABORTED = "aborted"


class CallKind(str, Enum):
    CREATE = "create"
    ACTION = "action"
    UPDATE = "update"
    LOCAL = "local"


@dataclass
class PendingOperation:
    """One queued local change, as committed by the UI layer."""

    op: OpKind
    entity_type: str
    row_id: str
    data: Dict[str, Any] = field(default_factory=dict)
    previous: Optional[Dict[str, Any]] = None
    entry_id: Optional[int] = None


@dataclass
class CrudTransaction:
    tx_id: int
    crud: List[PendingOperation]


@dataclass
class RemoteCall:
    """A fully mapped remote request, before identifier resolution."""

    kind: CallKind
    entity_type: str
    operation: str
    payload: Dict[str, Any]
    record_id: Optional[Any] = None
    action: Optional[str] = None
    placeholder: bool = False
    id_key: Optional[str] = None
    reason: str = ""


@dataclass
class RemoteOperationResult:
    kind: OutcomeKind
    message: str = ""
    server_id: Optional[int] = None
    payload: Dict[str, Any] = field(default_factory=dict)
    code: Optional[str] = None
    status: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @classmethod
    def success(cls, *, server_id: Optional[int] = None, payload: Optional[Dict[str, Any]] = None,
                message: str = "", status: Optional[int] = None) -> "RemoteOperationResult":
        return cls(OutcomeKind.SUCCESS, message=message, server_id=server_id,
                   payload=dict(payload or {}), status=status)

    @classmethod
    def rejection(cls, message: str, *, payload: Optional[Dict[str, Any]] = None,
                  code: Optional[str] = None, status: Optional[int] = None) -> "RemoteOperationResult":
        return cls(OutcomeKind.BUSINESS_REJECTION, message=message, payload=dict(payload or {}),
                   code=code, status=status)

    @classmethod
    def network(cls, message: str, *, code: str, status: Optional[int] = None) -> "RemoteOperationResult":
        return cls(OutcomeKind.NETWORK_FAILURE, message=message, code=code, status=status)

    @classmethod
    def gap(cls, message: str, *, payload: Optional[Dict[str, Any]] = None) -> "RemoteOperationResult":
        return cls(OutcomeKind.MAPPING_GAP, message=message, payload=dict(payload or {}))


@dataclass
class OperationOutcome:
    operation: PendingOperation
    result: RemoteOperationResult
    call: Optional[RemoteCall] = None


@dataclass
class BatchResult:
    tx_id: int
    state: BatchState
    outcomes: List[OperationOutcome] = field(default_factory=list)

    @property
    def rejected(self) -> List[OperationOutcome]:
        return [o for o in self.outcomes if o.result.kind in (OutcomeKind.BUSINESS_REJECTION, OutcomeKind.MAPPING_GAP)]


__all__ = [
    "OpKind",
    "OutcomeKind",
    "BatchState",
    "CallKind",
    "PendingOperation",
    "CrudTransaction",
    "RemoteCall",
    "RemoteOperationResult",
    "OperationOutcome",
    "BatchResult",
]
