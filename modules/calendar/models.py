"""
Event and Document shapes for the calendar store.

On disk everything is plain JSON with camelCase keys; in Python the same
records are dataclasses with snake_case attributes.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List

DEFAULT_CATEGORY = "General"


def parse_datetime(value) -> datetime:
    """Turns a datetime, ISO-8601 string or millisecond epoch into an aware UTC datetime.

    Naive values are read as local time. Raises ValueError for anything else.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, bool):
        raise ValueError(f"Not a date/time: {value!r}")
    elif isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError) as e:
            raise ValueError(f"Timestamp out of range: {value!r}") from e
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Not a date/time: {value!r}")

    try:
        if dt.tzinfo is None:
            dt = dt.astimezone()
        return dt.astimezone(timezone.utc)
    except (OverflowError, OSError) as e:
        raise ValueError(f"Date/time out of range: {value!r}") from e


def to_iso_utc(value) -> str:
    """Canonical stored form, e.g. 2026-10-18T09:30:00.000Z"""
    dt = parse_datetime(value)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class Event:
    id: str
    name: str
    description: str
    date_time: str
    category: str = DEFAULT_CATEGORY
    reminder_minutes: int = 0
    reminded: bool = False

    @property
    def starts_at(self) -> datetime:
        return parse_datetime(self.date_time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "dateTime": self.date_time,
            "category": self.category,
            "reminderMinutes": self.reminder_minutes,
            "reminded": self.reminded,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            description=data.get("description", ""),
            date_time=data.get("dateTime", ""),
            category=data.get("category") or DEFAULT_CATEGORY,
            reminder_minutes=int(data.get("reminderMinutes") or 0),
            reminded=bool(data.get("reminded", False)),
        )


@dataclass
class Document:
    users: Dict[str, List[Event]] = field(default_factory=dict)

    def events_for(self, user_id: str) -> List[Event]:
        """The user's list, created empty if the user has none yet."""
        return self.users.setdefault(user_id, [])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "users": {
                user_id: [event.to_dict() for event in events]
                for user_id, events in self.users.items()
            }
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Document":
        """Raises ValueError when the JSON does not have the document shape."""
        if not isinstance(data, dict) or not isinstance(data.get("users", {}), dict):
            raise ValueError("Events document must be an object with a 'users' mapping")
        users = {}
        for user_id, events in data.get("users", {}).items():
            if not isinstance(events, list):
                raise ValueError(f"Events for user {user_id!r} must be a list")
            try:
                users[user_id] = [Event.from_dict(e) for e in events]
            except (AttributeError, TypeError) as e:
                raise ValueError(f"Malformed event for user {user_id!r}: {e}") from e
        return cls(users=users)
