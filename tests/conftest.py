"""
Shared fixtures for the house scoreboard tests.
"""

import pytest

from house_scoreboard.blob_store import BlobStore
from house_scoreboard.database import DocumentStore
from house_scoreboard.models import Category, EventSubmission, EventType
from house_scoreboard.repositories import (
    EventTemplatesRepository,
    EventsRepository,
    HousesRepository,
    WinnersRepository,
)


def make_submission(
    house: str,
    position: int,
    event_type: EventType = EventType.INDIVIDUAL,
    name: str = "Poetry Recitation",
    date: str = "2024-01-15",
) -> EventSubmission:
    return EventSubmission(
        name=name,
        category=Category.JUNIOR,
        event_type=event_type,
        house=house,
        position=position,
        date=date,
    )


@pytest.fixture
def store(tmp_path):
    store = DocumentStore(str(tmp_path / "scoreboard.db"))
    yield store
    store.close()


@pytest.fixture
def blob_store(tmp_path):
    return BlobStore(str(tmp_path / "media"), "/media")


@pytest.fixture
def houses(store):
    return HousesRepository(store)


@pytest.fixture
def events(store):
    return EventsRepository(store)


@pytest.fixture
def winners(store, blob_store):
    return WinnersRepository(store, blob_store)


@pytest.fixture
def event_templates(store):
    return EventTemplatesRepository(store)
