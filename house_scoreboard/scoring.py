"""
Points awarded for a finishing position.
"""

from typing import Any, Dict

from .models import EventType

INDIVIDUAL_POINTS: Dict[int, int] = {1: 10, 2: 7, 3: 5, 4: 3, 5: 2, 6: 1}
GROUP_POINTS: Dict[int, int] = {1: 20, 2: 14, 3: 10, 4: 6}

POINTS_TABLES: Dict[EventType, Dict[int, int]] = {
    EventType.INDIVIDUAL: INDIVIDUAL_POINTS,
    EventType.GROUP: GROUP_POINTS,
}


def calculate_points(
    position: Any,
    event_type: Any,
) -> int:
    """
    Look up the points for a finishing position.

    Positions outside the table, and unknown event types, award nothing
    rather than raising.

    @param position: Finishing position, 1 for first place
    @param event_type: EventType or its string value ("Individual", "Group")
    @return: Points awarded, 0 when the position is not in the table
    """
    try:
        table = POINTS_TABLES[EventType(event_type)]
    except (ValueError, TypeError):
        return 0

    if isinstance(position, bool) or not isinstance(position, int):
        return 0
    return table.get(position, 0)
