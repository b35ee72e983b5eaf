# floorsync/main.py
import os, sys
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
import asyncio

from core.errors import CredentialUnavailable
from core.settings import UPLOAD
from services.session_store import SessionStore
from services.sync_session import SyncSession
from services.upload_service import UploadService, _ensure_logger
from storage.db import init_db


async def run_forever(
    interval: float = UPLOAD.auto_upload_interval_sec,
    *,
    store=None,
    service_factory=UploadService,
    init=init_db,
) -> None:
    init()
    logger = _ensure_logger()
    store = store or SessionStore()
    session = SyncSession.restore(store)
    if session is None:
        logger.info("No stored session, nothing to upload")
        return

    async with session:
        service = service_factory(session)
        while True:
            material = store.load_material()
            if material is None:
                logger.info("Session cleared, upload loop stopped")
                return
            if material != session.material:
                session.material = material
                session.disconnect()
                service.connected = False
            try:
                await service.drain()
            except CredentialUnavailable as exc:
                logger.error("Upload paused until the session changes: %s", exc)
            await asyncio.sleep(interval)


def main():
    asyncio.run(run_forever())


if __name__ == "__main__":
    main()
