"""SQLModel table holding the local copy of synced and offline-created records."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from datetime_utils import utc_now


class LocalRecord(SQLModel, table=True):
    """One row of a local entity table, stored as a JSON snapshot."""

    __tablename__ = "local_record"

    entity_type: str = Field(primary_key=True)
    row_id: str = Field(primary_key=True)
    mobile_app_id: Optional[str] = Field(default=None, index=True)
    server_id: Optional[int] = Field(default=None, index=True)
    data: str = "{}"
    updated_at: datetime = Field(default_factory=utc_now)


__all__ = ["LocalRecord"]
