"""ORM models exposed by the FloorSync uploader."""
from .crud_entry import CrudEntry
from .local_record import LocalRecord
from .sync_log import SyncLog

__all__ = ["CrudEntry", "LocalRecord", "SyncLog"]
