import os
import sys
import tempfile
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# keep the suite out of the real user data directory
os.environ.setdefault("FLOORSYNC_DATA_DIR", tempfile.mkdtemp(prefix="floorsync-tests-"))

import pytest
from sqlmodel import Session, SQLModel, create_engine

import models  # noqa: F401
from services.audit_log import AuditLog
from services.local_store import SqlLocalStore


@pytest.fixture()
def session_factory():
    engine = create_engine("sqlite:///:memory:")
    SQLModel.metadata.create_all(engine)

    def factory():
        return Session(engine)

    return factory


@pytest.fixture()
def store(session_factory):
    return SqlLocalStore(session_factory)


@pytest.fixture()
def audit(session_factory):
    return AuditLog(session_factory)
