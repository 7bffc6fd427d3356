import logging
import threading
import time
from datetime import datetime, timezone

from .models import DEFAULT_CATEGORY, Event, to_iso_utc
from .store import EventStore, event_store

logger = logging.getLogger("EventKeeper.EventManager")


def utc_now():
    return datetime.now(timezone.utc)


class MonotonicIdFactory:
    """Millisecond-epoch ids that never repeat within a process.

    Two events created in the same millisecond get consecutive values
    instead of the same one.
    """

    def __init__(self, clock_ms=None):
        self.clock_ms = clock_ms or (lambda: int(time.time() * 1000))
        self.lock = threading.Lock()
        self.last = 0

    def __call__(self):
        with self.lock:
            self.last = max(self.clock_ms(), self.last + 1)
            return str(self.last)


def _reminder_minutes(value):
    """Anything but a whole, non-negative number means no reminder."""
    if value is None or value == "":
        return 0
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        minutes = -1
    else:
        try:
            minutes = int(value)
        except (TypeError, ValueError, OverflowError):
            minutes = -1
    if minutes < 0:
        logger.warning(f"Ignoring reminder_minutes={value!r}, storing 0")
        return 0
    return minutes


class EventManager:
    def __init__(self, store: EventStore = None, clock=None, id_factory=None):
        self.store = store or event_store
        self.clock = clock or utc_now
        self.id_factory = id_factory or MonotonicIdFactory()

    async def create_event(self, user_id, name, description, date_time,
                           category=None, reminder_minutes=None) -> Event:
        # An unusable date is rejected before storage is touched.
        event = Event(
            id=self.id_factory(),
            name=name,
            description=description,
            date_time=to_iso_utc(date_time),
            category=category or DEFAULT_CATEGORY,
            reminder_minutes=_reminder_minutes(reminder_minutes),
            reminded=False,
        )

        document = await self.store.load()
        document.events_for(user_id).append(event)
        await self.store.save(document)
        logger.info(f"Created event {event.id} for {user_id}")
        return event

    async def get_events(self, user_id, category=None, upcoming_only=False):
        """
        Lists a user's events, oldest first.

        category keeps exact (case-sensitive) matches only; upcoming_only keeps
        events strictly later than now. Unknown users get an empty list.
        """
        document = await self.store.load()
        events = list(document.users.get(user_id, []))

        if category:
            events = [e for e in events if e.category == category]
        if upcoming_only:
            now = self.clock()
            events = [e for e in events if _is_after(e, now)]

        events.sort(key=_sort_key)
        return events

    async def get_event_by_id(self, user_id, event_id):
        document = await self.store.load()
        for event in document.users.get(user_id, []):
            if event.id == str(event_id):
                return event
        return None

    async def delete_event(self, user_id, event_id):
        document = await self.store.load()
        events = document.users.get(user_id, [])
        remaining = [e for e in events if e.id != str(event_id)]
        if len(remaining) == len(events):
            return False
        document.users[user_id] = remaining
        await self.store.save(document)
        return True

    async def mark_reminded(self, user_id, event_id):
        document = await self.store.load()
        for event in document.users.get(user_id, []):
            if event.id == str(event_id):
                event.reminded = True
                await self.store.save(document)
                return True
        return False


def _starts_at(event):
    try:
        return event.starts_at
    except ValueError:
        return None


def _is_after(event, now):
    start = _starts_at(event)
    return start is not None and start > now


def _sort_key(event):
    # Unparseable dates sort last rather than breaking the listing.
    start = _starts_at(event)
    if start is None:
        return (1, datetime.max.replace(tzinfo=timezone.utc))
    return (0, start)


event_manager = EventManager()


async def create_event(user_id, **fields):
    return await event_manager.create_event(user_id, **fields)


async def get_events(user_id, **filters):
    return await event_manager.get_events(user_id, **filters)
