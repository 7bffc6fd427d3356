import pytest
import json
import os
import tempfile
from datetime import datetime, timedelta, timezone

from modules.calendar.events import EventManager, MonotonicIdFactory
from modules.calendar.store import EventStore


@pytest.fixture
def temp_event_file():
    fd, path = tempfile.mkstemp(suffix=".json")
    os.close(fd)
    os.remove(path)
    yield path
    if os.path.exists(path):
        os.remove(path)


@pytest.fixture
def event_manager(temp_event_file):
    return EventManager(store=EventStore(storage_file=temp_event_file))


def in_hours(hours):
    return datetime.now(timezone.utc) + timedelta(hours=hours)


@pytest.mark.asyncio
async def test_create_event(event_manager):
    event = await event_manager.create_event(
        "user1",
        name="Test Meeting",
        description="Team sync",
        date_time=in_hours(24),
        category="Meetings",
        reminder_minutes=15,
    )

    assert event.id
    assert event.name == "Test Meeting"
    assert event.description == "Team sync"
    assert event.category == "Meetings"
    assert event.reminder_minutes == 15
    assert event.reminded is False


@pytest.mark.asyncio
async def test_create_event_defaults(event_manager):
    event = await event_manager.create_event("user1", name="Lunch", description="", date_time=in_hours(2))

    assert event.category == "General"
    assert event.reminder_minutes == 0


@pytest.mark.asyncio
async def test_empty_category_falls_back_to_general(event_manager):
    event = await event_manager.create_event("user1", name="Lunch", description="", date_time=in_hours(2), category="")

    assert event.category == "General"


@pytest.mark.asyncio
async def test_date_time_is_stored_as_utc_iso(event_manager):
    event = await event_manager.create_event(
        "user1", name="Call", description="", date_time="2026-03-01T10:30:00+02:00"
    )

    assert event.date_time == "2026-03-01T08:30:00.000Z"


@pytest.mark.asyncio
async def test_invalid_date_time_rejected_without_writing(event_manager, temp_event_file):
    with pytest.raises(ValueError):
        await event_manager.create_event("user1", name="Broken", description="", date_time="not a date")

    assert not os.path.exists(temp_event_file)


@pytest.mark.asyncio
@pytest.mark.parametrize("minutes", [-5, 2.5, "soon", float("inf"), True])
async def test_unusable_reminder_stored_as_zero(event_manager, minutes, caplog):
    event = await event_manager.create_event(
        "user1", name="X", description="", date_time=in_hours(1), reminder_minutes=minutes
    )

    assert event.reminder_minutes == 0
    assert [e.id for e in await event_manager.get_events("user1")] == [event.id]
    assert "Ignoring reminder_minutes" in caplog.text


@pytest.mark.asyncio
async def test_numeric_string_reminder_accepted(event_manager):
    event = await event_manager.create_event(
        "user1", name="X", description="", date_time=in_hours(1), reminder_minutes="15"
    )

    assert event.reminder_minutes == 15


@pytest.mark.asyncio
async def test_event_written_with_document_shape(event_manager, temp_event_file):
    event = await event_manager.create_event(
        "user1", name="Standup", description="Daily", date_time=in_hours(1), reminder_minutes=5
    )

    with open(temp_event_file, "r", encoding="utf-8") as f:
        raw = f.read()
    data = json.loads(raw)

    assert raw.startswith('{\n  "users"')
    assert data["users"]["user1"] == [{
        "id": event.id,
        "name": "Standup",
        "description": "Daily",
        "dateTime": event.date_time,
        "category": "General",
        "reminderMinutes": 5,
        "reminded": False,
    }]


@pytest.mark.asyncio
async def test_get_events_unknown_user(event_manager):
    assert await event_manager.get_events("nobody") == []


@pytest.mark.asyncio
async def test_get_upcoming_only(event_manager):
    future = await event_manager.create_event("user1", name="Future", description="", date_time=in_hours(24))
    await event_manager.create_event("user1", name="Past", description="", date_time=in_hours(-24))

    upcoming = await event_manager.get_events("user1", upcoming_only=True)

    assert [e.id for e in upcoming] == [future.id]


@pytest.mark.asyncio
async def test_get_events_by_category(event_manager):
    await event_manager.create_event("user1", name="Sync", description="", date_time=in_hours(1), category="Meetings")
    await event_manager.create_event("user1", name="Gym", description="", date_time=in_hours(2), category="Health")
    await event_manager.create_event("user1", name="Retro", description="", date_time=in_hours(3), category="meetings")

    meetings = await event_manager.get_events("user1", category="Meetings")

    assert [e.name for e in meetings] == ["Sync"]


@pytest.mark.asyncio
async def test_filters_combine(event_manager):
    await event_manager.create_event("user1", name="Old sync", description="", date_time=in_hours(-5), category="Meetings")
    await event_manager.create_event("user1", name="New sync", description="", date_time=in_hours(5), category="Meetings")
    await event_manager.create_event("user1", name="Gym", description="", date_time=in_hours(6), category="Health")

    events = await event_manager.get_events("user1", category="Meetings", upcoming_only=True)

    assert [e.name for e in events] == ["New sync"]


@pytest.mark.asyncio
async def test_get_events_sorted_and_repeatable(event_manager):
    await event_manager.create_event("user1", name="Third", description="", date_time=in_hours(30))
    await event_manager.create_event("user1", name="First", description="", date_time=in_hours(1))
    await event_manager.create_event("user1", name="Second", description="", date_time=in_hours(10))

    first = await event_manager.get_events("user1")
    second = await event_manager.get_events("user1")

    assert [e.name for e in first] == ["First", "Second", "Third"]
    assert first == second


@pytest.mark.asyncio
async def test_users_are_kept_apart(event_manager):
    await event_manager.create_event("user1", name="Mine", description="", date_time=in_hours(1))
    await event_manager.create_event("user2", name="Theirs", description="", date_time=in_hours(1))

    assert [e.name for e in await event_manager.get_events("user1")] == ["Mine"]
    assert [e.name for e in await event_manager.get_events("user2")] == ["Theirs"]


@pytest.mark.asyncio
async def test_event_persistence(event_manager):
    """Events survive a fresh store on the same file."""
    created = await event_manager.create_event(
        "user1", name="Persistent Event", description="", date_time=in_hours(3), category="Work", reminder_minutes=10
    )

    new_manager = EventManager(store=EventStore(storage_file=event_manager.store.storage_file))
    events = await new_manager.get_events("user1")

    assert events == [created]


@pytest.mark.asyncio
async def test_get_event_by_id(event_manager):
    event = await event_manager.create_event("user1", name="Test Event", description="", date_time=in_hours(1))

    found = await event_manager.get_event_by_id("user1", event.id)

    assert found is not None
    assert found.name == "Test Event"
    assert await event_manager.get_event_by_id("user2", event.id) is None


@pytest.mark.asyncio
async def test_get_event_by_id_not_found(event_manager):
    assert await event_manager.get_event_by_id("user1", "nonexistent-id") is None


@pytest.mark.asyncio
async def test_delete_event(event_manager):
    event = await event_manager.create_event("user1", name="To Delete", description="", date_time=in_hours(1))

    success = await event_manager.delete_event("user1", event.id)

    assert success is True
    assert await event_manager.get_events("user1") == []


@pytest.mark.asyncio
async def test_delete_nonexistent_event(event_manager):
    assert await event_manager.delete_event("user1", "nonexistent-id") is False


@pytest.mark.asyncio
async def test_mark_reminded(event_manager):
    event = await event_manager.create_event(
        "user1", name="Call", description="", date_time=in_hours(1), reminder_minutes=5
    )

    assert await event_manager.mark_reminded("user1", event.id) is True
    assert (await event_manager.get_event_by_id("user1", event.id)).reminded is True
    assert await event_manager.mark_reminded("user1", "missing") is False


@pytest.mark.asyncio
async def test_upcoming_uses_injected_clock(temp_event_file):
    frozen = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
    manager = EventManager(store=EventStore(storage_file=temp_event_file), clock=lambda: frozen)
    await manager.create_event("user1", name="At noon", description="", date_time=frozen)
    await manager.create_event("user1", name="Later", description="", date_time=frozen + timedelta(seconds=1))

    upcoming = await manager.get_events("user1", upcoming_only=True)

    assert [e.name for e in upcoming] == ["Later"]


def test_ids_unique_within_same_millisecond():
    factory = MonotonicIdFactory(clock_ms=lambda: 1700000000000)

    ids = [factory() for _ in range(5)]

    assert len(set(ids)) == 5
    assert ids[0] == "1700000000000"
    assert ids == sorted(ids, key=int)


@pytest.mark.asyncio
async def test_events_created_back_to_back_have_distinct_ids(event_manager):
    first = await event_manager.create_event("user1", name="A", description="", date_time=in_hours(1))
    second = await event_manager.create_event("user1", name="B", description="", date_time=in_hours(1))

    assert first.id != second.id
