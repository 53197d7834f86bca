"""
Live view: one continuously updated snapshot of every scoreboard collection.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .blob_store import UploadedFile
from .database import Subscription
from .errors import StoreError
from .models import EventResult, EventSubmission, EventTemplate, House, HouseColor, Winner
from .reconciliation import RankReconciler, ReconciliationResult
from .repositories import (
    EventTemplatesRepository,
    EventsRepository,
    HousesRepository,
    WinnersRepository,
)

logger = logging.getLogger(__name__)

FIRST_SNAPSHOT = "first_snapshot"
SETTLING_DELAY = "settling_delay"

DEFAULT_HOUSES = [
    House(name="Tagore", color=HouseColor.TAGORE, score=0, rank=1),
    House(name="Gandhi", color=HouseColor.GANDHI, score=0, rank=2),
    House(name="Nehru", color=HouseColor.NEHRU, score=0, rank=3),
    House(name="Delany", color=HouseColor.DELANY, score=0, rank=4),
]

SnapshotListener = Callable[["ScoreboardSnapshot"], None]


@dataclass(frozen=True)
class ScoreboardSnapshot:
    houses: List[House] = field(default_factory=list)
    events: List[EventResult] = field(default_factory=list)
    winners: List[Winner] = field(default_factory=list)
    event_templates: List[EventTemplate] = field(default_factory=list)
    loading: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "houses": [house.to_dict() for house in self.houses],
            "events": [event.to_dict() for event in self.events],
            "winners": [winner.to_dict() for winner in self.winners],
            "eventTemplates": [template.to_dict() for template in self.event_templates],
            "loading": self.loading,
        }


async def bootstrap_houses(houses: HousesRepository) -> bool:
    """
    Seed the default houses when the houses collection is empty.

    @param houses: Houses repository
    @return: True if the default houses were written
    """
    existing = await houses.collection.read_all()
    if existing:
        return False

    for house in DEFAULT_HOUSES:
        await houses.add(house)

    logger.info("Seeded %d default houses", len(DEFAULT_HOUSES))
    return True


class LiveView:
    """
    Composes the four collection subscriptions into one snapshot.

    Each subscription replaces its own slice of the snapshot; slices are not
    synchronized with each other. The snapshot is a cache, the store stays
    authoritative.
    """

    def __init__(
        self,
        houses: HousesRepository,
        events: EventsRepository,
        winners: WinnersRepository,
        event_templates: EventTemplatesRepository,
        reconciler: RankReconciler,
        loading_mode: str = FIRST_SNAPSHOT,
        settling_delay: float = 1.0,
        bootstrap: bool = True,
    ) -> None:
        self.houses_repo = houses
        self.events_repo = events
        self.winners_repo = winners
        self.templates_repo = event_templates
        self.reconciler = reconciler
        self.loading_mode = loading_mode
        self.settling_delay = settling_delay
        self.bootstrap = bootstrap

        self._houses: List[House] = []
        self._events: List[EventResult] = []
        self._winners: List[Winner] = []
        self._templates: List[EventTemplate] = []
        self._loading = True
        self._received: set = set()
        self._ready = asyncio.Event()

        self._subscriptions: List[Subscription] = []
        self._timer: Optional[asyncio.TimerHandle] = None
        self._listeners: List[SnapshotListener] = []
        self._started = False
        self._stopped = False

    @property
    def snapshot(self) -> ScoreboardSnapshot:
        return ScoreboardSnapshot(
            houses=list(self._houses),
            events=list(self._events),
            winners=list(self._winners),
            event_templates=list(self._templates),
            loading=self._loading,
        )

    @property
    def loading(self) -> bool:
        return self._loading

    async def start(self) -> None:
        """
        Bootstrap the houses if needed, then open one subscription per collection.

        Store failures during bootstrap propagate to the caller and leave the
        view unstarted, so start() can be called again. Calling stop() while
        this is running leaves no subscription open.
        """
        if self._started or self._stopped:
            return
        self._started = True

        if self.bootstrap:
            try:
                await bootstrap_houses(self.houses_repo)
            except StoreError:
                self._started = False
                raise
        if self._stopped:
            return

        self._subscriptions = [
            self.houses_repo.subscribe(self._on_houses),
            self.events_repo.subscribe(self._on_events),
            self.winners_repo.subscribe(self._on_winners),
            self.templates_repo.subscribe(self._on_templates),
        ]

        if self.loading_mode == SETTLING_DELAY:
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(self.settling_delay, self._settle)

    def stop(self) -> None:
        """Release every subscription and the settling timer. Safe to repeat."""
        self._stopped = True

        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def wait_ready(self) -> None:
        """Wait until the loading flag has been cleared."""
        await self._ready.wait()

    def add_listener(
        self,
        listener: SnapshotListener,
    ) -> Callable[[], None]:
        """
        Register a callable told about every snapshot change.

        @param listener: Called with the new snapshot
        @return: Function that unregisters the listener
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _changed(self) -> None:
        snapshot = self.snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Snapshot listener %r failed", listener)

    def _settle(self) -> None:
        self._timer = None
        if self._loading:
            self._loading = False
            self._ready.set()
            self._changed()

    def _mark_received(self, kind: str) -> None:
        self._received.add(kind)
        if self.loading_mode == FIRST_SNAPSHOT and self._loading and len(self._received) == 4:
            self._loading = False
            self._ready.set()
        self._changed()

    def _on_houses(self, houses: List[House]) -> None:
        self._houses = houses
        self._mark_received("houses")

    def _on_events(self, events: List[EventResult]) -> None:
        self._events = events
        self._mark_received("events")

    def _on_winners(self, winners: List[Winner]) -> None:
        self._winners = winners
        self._mark_received("winners")

    def _on_templates(self, templates: List[EventTemplate]) -> None:
        self._templates = templates
        self._mark_received("eventTemplates")

    async def add_event(
        self,
        submission: EventSubmission,
    ) -> ReconciliationResult:
        """
        Record an event result and reconcile house standings.

        In snapshot mode the reconciliation works from the houses currently
        held by this view.

        @param submission: Event result without id or points
        @return: Reconciliation outcome
        """
        return await self.reconciler.record_event(submission, self._houses)

    async def add_event_template(self, template: EventTemplate) -> str:
        return await self.templates_repo.add(template)

    async def add_winner_photo(self, winner_id: str, image_url: str) -> None:
        await self.winners_repo.update_photo(winner_id, image_url)

    async def upload_winner_photo(self, file: UploadedFile, winner_id: str) -> str:
        return await self.winners_repo.upload_photo(file, winner_id)

    # --- Admin corrections; none of these reconcile house standings ---

    async def add_house(self, house: House) -> str:
        return await self.houses_repo.add(house)

    async def add_winner(self, winner: Winner) -> str:
        return await self.winners_repo.add(winner)

    async def update_event(self, event_id: str, fields: Dict[str, Any]) -> None:
        await self.events_repo.update(event_id, fields)

    async def delete_event(self, event_id: str) -> None:
        await self.events_repo.delete(event_id)

    async def update_event_template(self, template_id: str, fields: Dict[str, Any]) -> None:
        await self.templates_repo.update(template_id, fields)

    async def delete_event_template(self, template_id: str) -> None:
        await self.templates_repo.delete(template_id)
