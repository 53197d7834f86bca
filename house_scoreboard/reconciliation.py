"""
Rank reconciliation: turn a recorded event result into house scores and ranks.

Two strategies are available:

- ``snapshot``: award points against the caller's in-memory list of houses and
  write score then rank for each house, one house at a time. Overlapping runs
  read the same stale list, so a later run can erase an earlier award.
- ``transactional``: runs are serialized, read the houses fresh from the store
  and write every house in one versioned transaction, re-reading on conflict.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

from .errors import ConcurrentModificationError
from .models import EventSubmission, House
from .repositories import EventsRepository, HousesRepository
from .scoring import calculate_points

logger = logging.getLogger(__name__)

SNAPSHOT = "snapshot"
TRANSACTIONAL = "transactional"
MODES = (SNAPSHOT, TRANSACTIONAL)


def apply_award(
    houses: Sequence[House],
    house_name: str,
    points: int,
) -> List[House]:
    """
    Add points to the house with exactly the given name.

    @param houses: Current houses; not modified
    @param house_name: Name the event was won by
    @param points: Points to add
    @return: New list of houses in the same order
    """
    return [
        replace(house, score=house.score + points) if house.name == house_name else house
        for house in houses
    ]


def assign_ranks(houses: Sequence[House]) -> List[House]:
    """
    Rank houses by descending score.

    The sort is stable, so tied houses keep their relative order.

    @param houses: Houses in their prior order
    @return: New list sorted by rank, ranks numbered from 1
    """
    ordered = sorted(houses, key=lambda house: house.score, reverse=True)
    return [replace(house, rank=position) for position, house in enumerate(ordered, 1)]


@dataclass
class ReconciliationResult:
    event_id: str
    points: int
    matched: bool
    houses: List[House]


class RankReconciler:
    """Records event results and keeps house scores and ranks consistent."""

    def __init__(
        self,
        houses: HousesRepository,
        events: EventsRepository,
        mode: str = TRANSACTIONAL,
        max_retries: int = 5,
    ) -> None:
        if mode not in MODES:
            raise ValueError(f"Unknown reconciliation mode {mode!r}")

        self.houses = houses
        self.events = events
        self.mode = mode
        self.max_retries = max(1, max_retries)
        self._lock = asyncio.Lock()

    async def record_event(
        self,
        submission: EventSubmission,
        current_houses: Optional[Sequence[House]] = None,
    ) -> ReconciliationResult:
        """
        Persist an event result and bring house standings up to date.

        The event is stored first and is never rolled back. An unknown house
        name or an unscored position changes no score.

        @param submission: Event result without points
        @param current_houses: The caller's view of the houses; used only in
            snapshot mode
        @return: Stored event id, awarded points and the new standings
        """
        points = calculate_points(submission.position, submission.event_type)
        event_id = await self.events.add(submission.with_points(points))

        if self.mode == SNAPSHOT:
            standings = await self._reconcile_snapshot(
                list(current_houses or []), submission.house, points
            )
        else:
            standings = await self._reconcile_transactional(submission.house, points)

        matched = any(house.name == submission.house for house in standings)
        if not matched:
            logger.info(
                "Event %s names unknown house %r; no score changed",
                event_id,
                submission.house,
            )

        logger.info(
            "Recorded %s (%s, position %d) for %s: %d points",
            submission.name,
            submission.event_type.value,
            submission.position,
            submission.house,
            points,
        )
        return ReconciliationResult(event_id, points, matched, standings)

    async def _reconcile_snapshot(
        self,
        houses: List[House],
        house_name: str,
        points: int,
    ) -> List[House]:
        standings = assign_ranks(apply_award(houses, house_name, points))

        # No rollback: a failure here leaves earlier houses written
        for house in standings:
            if not house.id:
                continue
            await self.houses.update_score(house.id, house.score)
            await self.houses.update_rank(house.id, house.rank)

        return standings

    async def _reconcile_transactional(
        self,
        house_name: str,
        points: int,
    ) -> List[House]:
        async with self._lock:
            for attempt in range(1, self.max_retries + 1):
                houses = await self.houses.get_ordered()
                standings = assign_ranks(apply_award(houses, house_name, points))
                try:
                    await self.houses.apply_standings(standings)
                    return standings
                except ConcurrentModificationError as e:
                    logger.warning(
                        "Standings changed during reconciliation (attempt %d/%d): %s",
                        attempt,
                        self.max_retries,
                        e,
                    )

        raise ConcurrentModificationError(
            f"Could not apply standings after {self.max_retries} attempts"
        )
