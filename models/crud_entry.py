"""SQLModel table for locally committed mutations awaiting upload."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from datetime_utils import utc_now


class CrudEntry(SQLModel, table=True):
    __tablename__ = "crud_entry"

    id: Optional[int] = Field(default=None, primary_key=True)
    tx_id: int = Field(index=True)
    op: str
    entity_type: str = Field(index=True)
    row_id: str
    data: str = "{}"
    previous: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


__all__ = ["CrudEntry"]
