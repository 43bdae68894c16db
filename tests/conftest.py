# tests/conftest.py
"""
Pytest configuration.

Every test gets its own file-backed SQLite database so worker threads opened by
the fan-out runs see the same data as the test session.
"""

import os

# Set test mode BEFORE any slotkeeper imports
os.environ["ENVIRONMENT"] = "test"
os.environ["BUSINESS_TIMEZONE"] = "Europe/Paris"
os.environ.pop("RESEND_API_KEY", None)
os.environ.pop("ADMIN_API_TOKEN", None)

from typing import Any, Dict, Iterator, List

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

import slotkeeper.models  # noqa: F401  registers every table on Base.metadata
from slotkeeper.database import Base


@pytest.fixture
def engine(tmp_path):
    test_engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture
def db(session_factory) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


class RecordingSender:
    """Stands in for the Resend call and keeps every payload."""

    def __init__(self, fail_for: tuple = ()):
        self.payloads: List[Dict[str, Any]] = []
        self.fail_for = set(fail_for)

    def __call__(self, payload: Dict[str, Any]) -> Dict[str, str]:
        if payload["to"][0] in self.fail_for:
            raise RuntimeError("provider rejected the message")
        self.payloads.append(payload)
        return {"id": f"email-{len(self.payloads)}"}

    def sent_to(self) -> List[str]:
        return [payload["to"][0] for payload in self.payloads]


@pytest.fixture
def email_sender() -> RecordingSender:
    return RecordingSender()
