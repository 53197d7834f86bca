"""
Typed records for the scoreboard collections.

Documents coming out of the store are plain dictionaries. Every record here
converts from and to that shape at the store boundary so the rest of the
package never trusts the ambient document layout.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .errors import DocumentShapeError


class HouseColor(str, Enum):
    TAGORE = "tagore"
    DELANY = "delany"
    GANDHI = "gandhi"
    NEHRU = "nehru"


class Category(str, Enum):
    JUNIOR = "Junior"
    MIDDLE = "Middle"
    SENIOR = "Senior"


class EventType(str, Enum):
    INDIVIDUAL = "Individual"
    GROUP = "Group"


def _require_str(doc: Dict[str, Any], key: str) -> str:
    value = doc.get(key)
    if not isinstance(value, str) or not value:
        raise DocumentShapeError(f"Field {key!r} must be a non-empty string, got {value!r}")
    return value


def _optional_str(doc: Dict[str, Any], key: str) -> Optional[str]:
    value = doc.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise DocumentShapeError(f"Field {key!r} must be a string, got {value!r}")
    return value


def _require_int(doc: Dict[str, Any], key: str, default: Optional[int] = None) -> int:
    value = doc.get(key, default)
    # bool is an int subclass; a flag is never a valid score or position
    if isinstance(value, bool) or not isinstance(value, int):
        raise DocumentShapeError(f"Field {key!r} must be an integer, got {value!r}")
    return value


def _require_enum(enum_cls: Any, doc: Dict[str, Any], key: str) -> Any:
    value = doc.get(key)
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise DocumentShapeError(
            f"Field {key!r} must be one of {allowed}, got {value!r}"
        ) from None


def _metadata(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": doc.get("id"),
        "created_at": doc.get("created_at"),
    }


def _public(record: Any) -> Dict[str, Any]:
    data = asdict(record)
    for key, value in data.items():
        if isinstance(value, Enum):
            data[key] = value.value
    return data


@dataclass
class House:
    """A competing house with its cumulative score and rank."""

    name: str
    color: HouseColor
    score: int = 0
    rank: int = 0
    id: Optional[str] = None
    created_at: Optional[str] = None
    version: Optional[int] = field(default=None, compare=False)

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "House":
        """
        Build a house from a store document.

        @param doc: Document dictionary including store metadata
        @return: House record
        """
        score = _require_int(doc, "score", 0)
        if score < 0:
            raise DocumentShapeError(f"House score must be non-negative, got {score}")
        return cls(
            name=_require_str(doc, "name"),
            color=_require_enum(HouseColor, doc, "color"),
            score=score,
            rank=_require_int(doc, "rank", 0),
            version=doc.get("version"),
            **_metadata(doc),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "score": self.score,
            "rank": self.rank,
            "color": self.color.value,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = _public(self)
        data.pop("version")
        return data


@dataclass
class EventSubmission:
    """An event result as entered by an admin, before points are awarded."""

    name: str
    category: Category
    event_type: EventType
    house: str
    position: int
    date: str

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "EventSubmission":
        # Positions off the points table are accepted and award nothing
        return cls(
            name=_require_str(payload, "name"),
            category=_require_enum(Category, payload, "category"),
            event_type=_require_enum(EventType, payload, "type"),
            house=_require_str(payload, "house"),
            position=_require_int(payload, "position"),
            date=_require_str(payload, "date"),
        )

    def with_points(self, points: int) -> "EventResult":
        return EventResult(
            name=self.name,
            category=self.category,
            event_type=self.event_type,
            house=self.house,
            position=self.position,
            points=points,
            date=self.date,
        )


@dataclass
class EventResult:
    """A recorded competition outcome. Points are fixed once stored."""

    name: str
    category: Category
    event_type: EventType
    house: str
    position: int
    points: int
    date: str
    id: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "EventResult":
        return cls(
            name=_require_str(doc, "name"),
            category=_require_enum(Category, doc, "category"),
            event_type=_require_enum(EventType, doc, "type"),
            house=_require_str(doc, "house"),
            position=_require_int(doc, "position"),
            points=_require_int(doc, "points", 0),
            date=_require_str(doc, "date"),
            **_metadata(doc),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "category": self.category.value,
            "type": self.event_type.value,
            "house": self.house,
            "position": self.position,
            "points": self.points,
            "date": self.date,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = _public(self)
        data["type"] = data.pop("event_type")
        return data


@dataclass
class EventTemplate:
    """Catalog entry describing an event that can be run. Never scored."""

    name: str
    category: str
    event_type: EventType
    description: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    venue: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "EventTemplate":
        return cls(
            name=_require_str(doc, "name"),
            category=_require_str(doc, "category"),
            event_type=_require_enum(EventType, doc, "type"),
            description=_optional_str(doc, "description"),
            date=_optional_str(doc, "date"),
            time=_optional_str(doc, "time"),
            venue=_optional_str(doc, "venue"),
            **_metadata(doc),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "category": self.category,
            "type": self.event_type.value,
            "description": self.description,
            "date": self.date,
            "time": self.time,
            "venue": self.venue,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = _public(self)
        data["type"] = data.pop("event_type")
        return data


@dataclass
class Winner:
    """A person placed in an event, with an optional photo URL."""

    name: str
    event: str
    house: str
    position: int
    image: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Winner":
        return cls(
            name=_require_str(doc, "name"),
            event=_require_str(doc, "event"),
            house=_require_str(doc, "house"),
            position=_require_int(doc, "position"),
            image=_optional_str(doc, "image"),
            **_metadata(doc),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "event": self.event,
            "house": self.house,
            "position": self.position,
            "image": self.image,
        }

    def to_dict(self) -> Dict[str, Any]:
        return _public(self)
