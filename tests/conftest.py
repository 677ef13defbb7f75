"""
tests/conftest.py

Shared fixtures: a throwaway SQLite database per test and a dispatcher fake
that records what would have been scheduled.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from app.domain.onboarding import ONBOARDING_QUEUE
from app.scheduler.dispatcher import UnknownQueueError
from db.base import Base
from db.models import Batch, Organization  # noqa: F401  registers tables on Base.metadata
from db.repositories.batch_repository import BatchRepository
from db.repositories.organization_repository import OrganizationRepository
from db.repositories.types import OrganizationBulkCreate
from db.session import build_session_factory, create_db_engine


class RecordingDispatcher:
    """WorkDispatcher fake: keeps enqueued tasks in memory, dedups by key."""

    def __init__(self, queues: tuple[str, ...] = (ONBOARDING_QUEUE,)) -> None:
        self.queues = set(queues)
        self.tasks: list[tuple[str, dict[str, Any], str]] = []

    def has_queue(self, queue_name: str) -> bool:
        return queue_name in self.queues

    def enqueue(self, task_key: str, payload: dict[str, Any], queue_name: str) -> bool:
        if queue_name not in self.queues:
            raise UnknownQueueError(f"Unknown queue: {queue_name}")
        if any(key == task_key for key, _, _ in self.tasks):
            return False
        self.tasks.append((task_key, dict(payload), queue_name))
        return True

    @property
    def keys(self) -> list[str]:
        return [key for key, _, _ in self.tasks]


@pytest.fixture()
def engine(tmp_path) -> Iterator[Engine]:
    eng = create_db_engine(f"sqlite:///{tmp_path / 'onboarding.db'}")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return build_session_factory(engine)


@pytest.fixture()
def db(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture()
def seed_organization(session_factory: sessionmaker[Session]):
    """
    Persist one batch plus one organization and return their ids.

    Accepts an optional status so tests can start from any state.
    """

    def _seed(
        domain: str = "acme.com",
        *,
        status: str = "pending",
        total: int = 1,
    ):
        with session_factory() as session:
            batch_id = BatchRepository(session).create(total_count=total)
            (organization_id,) = OrganizationRepository(session).bulk_insert_ignore_duplicates(
                [
                    OrganizationBulkCreate(
                        name=domain.split(".")[0].title(),
                        domain=domain,
                        contact_email=f"ops@{domain}",
                        batch_id=batch_id,
                        status=status,
                    )
                ]
            )
            session.commit()
        return batch_id, organization_id

    return _seed
