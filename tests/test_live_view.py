"""
Tests for the live view aggregator.
"""

import asyncio

import pytest

from house_scoreboard.blob_store import UploadedFile
from house_scoreboard.errors import DocumentNotFoundError, StoreConfigurationError
from house_scoreboard.live_view import (
    FIRST_SNAPSHOT,
    SETTLING_DELAY,
    LiveView,
    bootstrap_houses,
)
from house_scoreboard.models import EventTemplate, EventType, House, HouseColor, Winner
from house_scoreboard.reconciliation import SNAPSHOT, RankReconciler
from tests.conftest import make_submission


@pytest.fixture
def make_view(houses, events, winners, event_templates):
    def factory(**kwargs):
        mode = kwargs.pop("reconciliation_mode", SNAPSHOT)
        reconciler = RankReconciler(houses, events, mode=mode)
        return LiveView(houses, events, winners, event_templates, reconciler, **kwargs)

    return factory


@pytest.mark.asyncio
async def test_bootstrap_seeds_default_houses(houses):
    assert await bootstrap_houses(houses)

    stored = await houses.get_ordered()
    assert [(h.name, h.score, h.rank) for h in stored] == [
        ("Tagore", 0, 1),
        ("Gandhi", 0, 2),
        ("Nehru", 0, 3),
        ("Delany", 0, 4),
    ]


@pytest.mark.asyncio
async def test_bootstrap_leaves_existing_houses_alone(houses):
    house_id = await houses.add(
        House(name="Raman", color=HouseColor.NEHRU, score=12, rank=1)
    )

    assert not await bootstrap_houses(houses)

    [house] = await houses.get_all()
    assert house.id == house_id
    assert house.version == 1


@pytest.mark.asyncio
async def test_start_on_populated_store_writes_no_houses(make_view, store, houses):
    for name, color, score, rank in [
        ("Tagore", HouseColor.TAGORE, 30, 1),
        ("Nehru", HouseColor.NEHRU, 12, 2),
    ]:
        await houses.add(House(name=name, color=color, score=score, rank=rank))
    before = {h.id: (h.score, h.rank, h.version) for h in await houses.get_all()}
    view = make_view()

    await view.start()
    await asyncio.wait_for(view.wait_ready(), timeout=5)

    after = {h.id: (h.score, h.rank, h.version) for h in await houses.get_all()}
    assert after == before
    assert all(version == 1 for _, _, version in after.values())
    assert [h.name for h in view.snapshot.houses] == ["Tagore", "Nehru"]
    view.stop()


@pytest.mark.asyncio
async def test_start_can_be_retried_after_bootstrap_failure(make_view, store):
    view = make_view()
    database = store.database

    store.database = ""
    with pytest.raises(StoreConfigurationError):
        await view.start()
    assert store._subscriptions == set()

    store.database = database
    await view.start()
    await asyncio.wait_for(view.wait_ready(), timeout=5)

    assert len(view.snapshot.houses) == 4
    view.stop()


@pytest.mark.asyncio
async def test_loading_clears_after_first_snapshot_of_every_collection(make_view, store):
    view = make_view(loading_mode=FIRST_SNAPSHOT)

    await view.start()
    await asyncio.wait_for(view.wait_ready(), timeout=5)

    snapshot = view.snapshot
    assert not snapshot.loading
    assert [h.name for h in snapshot.houses] == ["Tagore", "Gandhi", "Nehru", "Delany"]
    assert snapshot.events == []
    view.stop()


@pytest.mark.asyncio
async def test_settling_delay_mode_clears_loading_on_timer(make_view, store):
    view = make_view(loading_mode=SETTLING_DELAY, settling_delay=0.5)

    await view.start()
    await store.flush_notifications()
    assert view.loading
    assert len(view.snapshot.houses) == 4

    await asyncio.wait_for(view.wait_ready(), timeout=5)
    assert not view.loading
    view.stop()


@pytest.mark.asyncio
async def test_stop_releases_subscriptions_and_timer(make_view, store):
    view = make_view(loading_mode=SETTLING_DELAY, settling_delay=60)
    await view.start()
    await store.flush_notifications()

    view.stop()
    view.stop()

    assert store._subscriptions == set()
    assert view._timer is None


@pytest.mark.asyncio
async def test_stop_before_start_finishes_opens_nothing(make_view, store, houses):
    view = make_view()

    starting = asyncio.ensure_future(view.start())
    await asyncio.sleep(0)
    view.stop()
    await starting

    assert store._subscriptions == set()
    assert view.loading


@pytest.mark.asyncio
async def test_stop_before_start_is_safe(make_view, store):
    view = make_view()

    view.stop()
    await view.start()

    assert store._subscriptions == set()


@pytest.mark.asyncio
async def test_add_event_updates_snapshot(make_view, store):
    view = make_view()
    await view.start()
    await asyncio.wait_for(view.wait_ready(), timeout=5)

    result = await view.add_event(make_submission("Tagore", 1))
    await store.flush_notifications()

    assert result.points == 10
    snapshot = view.snapshot
    assert (snapshot.houses[0].name, snapshot.houses[0].score, snapshot.houses[0].rank) == (
        "Tagore",
        10,
        1,
    )
    assert [h.rank for h in snapshot.houses] == [1, 2, 3, 4]
    assert [e.points for e in snapshot.events] == [10]
    view.stop()


@pytest.mark.asyncio
async def test_events_slice_is_newest_first(make_view, store):
    view = make_view()
    await view.start()
    await asyncio.wait_for(view.wait_ready(), timeout=5)

    await view.add_event(make_submission("Tagore", 1, date="2024-01-15"))
    await store.flush_notifications()
    await view.add_event(make_submission("Nehru", 2, EventType.GROUP, date="2024-01-17"))
    await store.flush_notifications()

    assert [e.date for e in view.snapshot.events] == ["2024-01-17", "2024-01-15"]
    view.stop()


@pytest.mark.asyncio
async def test_listeners_see_every_change(make_view, store):
    view = make_view()
    seen = []
    remove = view.add_listener(seen.append)
    await view.start()
    await asyncio.wait_for(view.wait_ready(), timeout=5)

    await view.add_event_template(
        EventTemplate(name="Group Dance", category="Senior", event_type=EventType.GROUP)
    )
    await store.flush_notifications()

    assert seen[-1].event_templates[0].name == "Group Dance"
    remove()
    count = len(seen)
    await view.add_event_template(
        EventTemplate(name="Art Exhibition", category="All", event_type=EventType.INDIVIDUAL)
    )
    await store.flush_notifications()
    assert len(seen) == count
    view.stop()


@pytest.mark.asyncio
async def test_winner_photo_upload_and_attach(make_view, store, blob_store):
    view = make_view()
    await view.start()
    await asyncio.wait_for(view.wait_ready(), timeout=5)
    winner_id = await view.add_winner(
        Winner(name="Arjun Sharma", event="Poetry Recitation", house="Tagore", position=1)
    )

    url = await view.upload_winner_photo(UploadedFile("arjun.png", b"\x89PNG"), winner_id)
    await view.add_winner_photo(winner_id, url)
    await store.flush_notifications()

    assert url == f"/media/winners/{winner_id}/arjun.png"
    assert (blob_store.root / "winners" / winner_id / "arjun.png").read_bytes() == b"\x89PNG"
    assert view.snapshot.winners[0].image == url
    view.stop()


@pytest.mark.asyncio
async def test_photo_upload_for_unknown_winner_writes_no_blob(make_view, blob_store):
    view = make_view()

    with pytest.raises(DocumentNotFoundError):
        await view.upload_winner_photo(UploadedFile("ghost.png", b"\x89PNG"), "nope")

    assert not (blob_store.root / "winners" / "nope").exists()


@pytest.mark.asyncio
async def test_event_edits_do_not_reconcile(make_view, store, houses):
    view = make_view()
    await view.start()
    await asyncio.wait_for(view.wait_ready(), timeout=5)
    result = await view.add_event(make_submission("Gandhi", 1))

    await view.update_event(result.event_id, {"house": "Nehru", "position": 2})
    await view.delete_event(result.event_id)
    await store.flush_notifications()

    scores = {h.name: h.score for h in await houses.get_ordered()}
    assert scores == {"Gandhi": 10, "Tagore": 0, "Nehru": 0, "Delany": 0}
    assert view.snapshot.events == []
    view.stop()
