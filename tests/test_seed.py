"""
Tests for demo data seeding.
"""

import pytest

from house_scoreboard.repositories import COLLECTIONS
from house_scoreboard.seed import seed_demo_data


@pytest.mark.asyncio
async def test_seed_fills_an_empty_store(store, houses, events):
    assert await seed_demo_data(store)

    counts = await store.collection_counts(COLLECTIONS)
    assert counts == {"houses": 4, "events": 3, "winners": 5, "eventTemplates": 5}
    assert [h.name for h in await houses.get_ordered()][0] == "Tagore"
    assert [e.date for e in await events.get_ordered()][0] == "2024-01-17"


@pytest.mark.asyncio
async def test_seed_skips_a_store_with_data(store):
    await store.add("winners", {"name": "Someone", "position": 1})

    assert not await seed_demo_data(store)

    counts = await store.collection_counts(COLLECTIONS)
    assert counts["houses"] == 0
