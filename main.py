import asyncio
import logging
from contextlib import asynccontextmanager

from core.settings import settings
from core.debug import debug_logger
from modules.calendar.reminders import ReminderScheduler, reminder_sweeper


def build_scheduler(settings_manager=settings, sweeper=reminder_sweeper, sleep=None):
    """The reminder job as configured; reminders_enabled=False is how CI turns it off."""
    return ReminderScheduler(
        sweeper,
        interval=settings_manager.get("reminder_interval_seconds", 60),
        enabled=bool(settings_manager.get("reminders_enabled", True)),
        sleep=sleep,
    )


@asynccontextmanager
async def lifespan(scheduler, settings_manager=settings):
    """Starts the reminder job on entry and stops it on exit."""
    scheduler.start()
    if settings_manager.get("debug_mode"):
        debug_logger.log("system", "System", "startup", {"reminders_enabled": scheduler.enabled})
    try:
        yield scheduler
    finally:
        await scheduler.stop()


async def serve(scheduler=None, stop_event=None, settings_manager=settings):
    scheduler = scheduler or build_scheduler(settings_manager=settings_manager)
    stop_event = stop_event or asyncio.Event()
    async with lifespan(scheduler, settings_manager):
        await stop_event.wait()


# --- Host process ---
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s: %(message)s")
    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        print("[System] Shutting down")
