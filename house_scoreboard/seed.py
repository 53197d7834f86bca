"""
Demo data for a fresh scoreboard.
"""

import logging

from .database import DocumentStore
from .models import (
    Category,
    EventResult,
    EventTemplate,
    EventType,
    House,
    HouseColor,
    Winner,
)
from .repositories import (
    COLLECTIONS,
    EventTemplatesRepository,
    EventsRepository,
    HousesRepository,
    WinnersRepository,
)

logger = logging.getLogger(__name__)

DEMO_HOUSES = [
    House(name="Tagore", color=HouseColor.TAGORE, score=285, rank=1),
    House(name="Gandhi", color=HouseColor.GANDHI, score=240, rank=2),
    House(name="Nehru", color=HouseColor.NEHRU, score=195, rank=3),
    House(name="Delany", color=HouseColor.DELANY, score=180, rank=4),
]

DEMO_TEMPLATES = [
    EventTemplate(
        name="Poetry Recitation",
        category="Junior",
        event_type=EventType.INDIVIDUAL,
        description="Express creativity through verse",
        time="10:00 AM",
        venue="Main Auditorium",
    ),
    EventTemplate(
        name="Group Dance",
        category="Senior",
        event_type=EventType.GROUP,
        description="Showcase traditional and modern dance forms",
        time="2:00 PM",
        venue="School Ground",
    ),
    EventTemplate(
        name="Science Quiz",
        category="Middle",
        event_type=EventType.INDIVIDUAL,
        description="Test your scientific knowledge",
        time="11:00 AM",
        venue="Science Laboratory",
    ),
    EventTemplate(
        name="Drama Competition",
        category="Senior",
        event_type=EventType.GROUP,
        description="Theatrical performances",
        time="3:00 PM",
        venue="Main Auditorium",
    ),
    EventTemplate(
        name="Art Exhibition",
        category="All",
        event_type=EventType.INDIVIDUAL,
        description="Display of creative artwork",
        time="9:00 AM",
        venue="Art Gallery",
    ),
]

DEMO_EVENTS = [
    EventResult(
        name="Poetry Recitation",
        category=Category.JUNIOR,
        event_type=EventType.INDIVIDUAL,
        house="Tagore",
        position=1,
        points=10,
        date="2024-01-15",
    ),
    EventResult(
        name="Group Dance",
        category=Category.SENIOR,
        event_type=EventType.GROUP,
        house="Gandhi",
        position=1,
        points=20,
        date="2024-01-16",
    ),
    EventResult(
        name="Science Quiz",
        category=Category.MIDDLE,
        event_type=EventType.INDIVIDUAL,
        house="Nehru",
        position=2,
        points=7,
        date="2024-01-17",
    ),
]

DEMO_WINNERS = [
    Winner(name="Arjun Sharma", event="Poetry Recitation", house="Tagore", position=1),
    Winner(name="Priya Patel", event="Group Dance", house="Gandhi", position=1),
    Winner(name="Rahul Singh", event="Science Quiz", house="Nehru", position=2),
    Winner(name="Ananya Reddy", event="Drama Competition", house="Delany", position=1),
    Winner(name="Vikram Kumar", event="Art Exhibition", house="Tagore", position=3),
]


async def seed_demo_data(store: DocumentStore) -> bool:
    """
    Populate every collection with demo data.

    Only runs against a completely empty store.

    @param store: Document store to seed
    @return: True if demo data was written, False if the store had data
    """
    counts = await store.collection_counts(COLLECTIONS)
    if any(counts.values()):
        logger.info("Store already holds data; skipping demo seed")
        return False

    houses = HousesRepository(store)
    templates = EventTemplatesRepository(store)
    events = EventsRepository(store)
    winners = WinnersRepository(store)

    logger.info("Adding demo houses...")
    for house in DEMO_HOUSES:
        await houses.add(house)

    logger.info("Adding demo event templates...")
    for template in DEMO_TEMPLATES:
        await templates.add(template)

    logger.info("Adding demo events...")
    for event in DEMO_EVENTS:
        await events.add(event)

    logger.info("Adding demo winners...")
    for winner in DEMO_WINNERS:
        await winners.add(winner)

    logger.info("Demo data seeded")
    return True
