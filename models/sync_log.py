"""Audit trail of upload outcomes."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from datetime_utils import utc_now


class SyncLog(SQLModel, table=True):
    """One outcome of an upload attempt for a local entity."""

    __tablename__ = "sync_log"

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utc_now, index=True)
    last_seen_at: datetime = Field(default_factory=utc_now)
    retry_count: int = Field(default=1, description="Occurrences of this outcome, at least 1")
    kind: str = Field(index=True, description="success / business_rejection / network_failure / mapping_gap")
    message: str = ""
    entity_type: str = Field(default="N/A", index=True)
    entity_id: str = Field(default="N/A", index=True)
    details: str = Field(default="{}", description="JSON encoded structured detail")


__all__ = ["SyncLog"]
