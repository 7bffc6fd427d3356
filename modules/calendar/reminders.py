import asyncio
import logging
from datetime import datetime, timedelta, timezone

from core.debug import debug_logger
from .events import utc_now
from .store import EventStore, event_store

logger = logging.getLogger("EventKeeper.Reminders")

REMINDER_INTERVAL_SECONDS = 60.0
EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def log_reminder(user_id, event):
    """Default notifier: the reminder shows up in the debug log and the app log."""
    message = f"Reminder for {user_id}: {event.name} is happening soon!"
    logger.info(message)
    debug_logger.log(user_id, "Reminders", "reminder", {"event_id": event.id, "message": message})


class ReminderSweeper:
    """
    Fires each event's reminder once, inside [dateTime - reminderMinutes, dateTime).

    Events whose window passed while nothing was sweeping are never reminded.
    """

    def __init__(self, store: EventStore = None, clock=None, notify=None):
        self.store = store or event_store
        self.clock = clock or utc_now
        self.notify = notify or log_reminder

    def is_due(self, event, now):
        if event.reminder_minutes <= 0 or event.reminded:
            return False
        event_time = event.starts_at
        try:
            reminder_time = event_time - timedelta(minutes=event.reminder_minutes)
        except OverflowError:
            # Window reaches back past year 1; it is open from the earliest instant.
            reminder_time = EARLIEST
        return reminder_time <= now < event_time

    async def check_reminders(self):
        document = await self.store.load()
        now = self.clock()
        fired = []

        for user_id, events in document.users.items():
            for event in events:
                try:
                    due = self.is_due(event, now)
                except (ValueError, OverflowError):
                    logger.warning(f"Skipping event {event.id} for {user_id}: unusable dateTime {event.date_time!r}")
                    continue
                if not due:
                    continue
                try:
                    self.notify(user_id, event)
                except Exception as e:
                    logger.error(f"Reminder notification failed for event {event.id}: {e}")
                event.reminded = True
                fired.append((user_id, event))

        await self.store.save(document)
        return fired


class ReminderScheduler:
    """
    Runs the sweeper on a fixed cadence.

    Each tick starts a sweep and does not wait for it, so a slow sweep can
    overlap the next one. enabled=False turns the whole thing into a no-op;
    hosts set it for CI and test runs. sleep is injectable so tests can step
    through ticks without a real clock.
    """

    def __init__(self, sweeper: ReminderSweeper, interval=REMINDER_INTERVAL_SECONDS,
                 enabled=True, sleep=None):
        self.sweeper = sweeper
        self.interval = float(interval)
        self.enabled = enabled
        self.sleep = sleep or asyncio.sleep
        self.background_tasks = set()
        self.ticks = 0
        self._loop_task = None

    @property
    def running(self):
        return self._loop_task is not None and not self._loop_task.done()

    def start(self):
        if not self.enabled:
            logger.info("Reminder scheduling disabled, skipping reminder job")
            return None
        if self.running:
            return self._loop_task
        self._loop_task = asyncio.create_task(self._run())
        logger.info(f"Reminder job scheduled every {self.interval:g}s")
        return self._loop_task

    async def _run(self):
        while True:
            await self.sleep(self.interval)
            self.tick()

    def tick(self):
        self.ticks += 1
        task = asyncio.create_task(self.sweeper.check_reminders())
        self.background_tasks.add(task)
        task.add_done_callback(self._sweep_finished)
        return task

    def _sweep_finished(self, task):
        self.background_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Reminder sweep failed: {error}")
            debug_logger.log("system", "Reminders", "sweep_failed", {"error": str(error)})

    async def stop(self):
        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None
        if self.background_tasks:
            await asyncio.gather(*self.background_tasks, return_exceptions=True)


reminder_sweeper = ReminderSweeper()


async def check_reminders():
    return await reminder_sweeper.check_reminders()
