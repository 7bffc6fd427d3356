import asyncio
import json
import logging
import os

from core.settings import settings
from .models import Document

logger = logging.getLogger("EventKeeper.EventStore")

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
DEFAULT_EVENTS_FILE = os.path.join(PROJECT_ROOT, "data", "events.json")


class EventStore:
    """
    Whole-document persistence for every user's events.

    load() and save() never raise: an unreadable file reads as an empty
    document and a failed write is only logged. There is no locking, so
    overlapping load/modify/save sequences race and the last save wins.
    Callers must treat the store as single-writer.
    """

    def __init__(self, storage_file=None):
        self.storage_file = storage_file or settings.get("events_file") or DEFAULT_EVENTS_FILE

    @property
    def data_dir(self):
        return os.path.dirname(os.path.abspath(self.storage_file))

    @property
    def quarantine_file(self):
        return self.storage_file + ".corrupt"

    def _ensure_data_dir(self):
        os.makedirs(self.data_dir, exist_ok=True)

    def _read(self):
        self._ensure_data_dir()
        with open(self.storage_file, "r", encoding="utf-8") as f:
            return json.load(f)

    def _write(self, payload):
        self._ensure_data_dir()
        with open(self.storage_file, "w", encoding="utf-8") as f:
            f.write(payload)

    def _quarantine(self):
        # Keep the unreadable bytes around; the next save would overwrite them.
        try:
            os.replace(self.storage_file, self.quarantine_file)
            logger.warning(f"Moved unreadable events file to {self.quarantine_file}")
        except OSError as e:
            logger.error(f"Could not move unreadable events file aside: {e}")

    async def load(self) -> Document:
        loop = asyncio.get_running_loop()
        try:
            data = await loop.run_in_executor(None, self._read)
            return Document.from_dict(data)
        except FileNotFoundError:
            return Document()
        except ValueError as e:
            # Bad JSON, bad encoding or the wrong document shape
            logger.error(f"Error loading events from {self.storage_file}: {e}")
            await loop.run_in_executor(None, self._quarantine)
            return Document()
        except OSError as e:
            logger.error(f"Error loading events from {self.storage_file}: {e}")
            return Document()

    async def save(self, document: Document) -> None:
        loop = asyncio.get_running_loop()
        try:
            payload = json.dumps(document.to_dict(), indent=2, ensure_ascii=False)
            await loop.run_in_executor(None, self._write, payload)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error saving events to {self.storage_file}: {e}")


event_store = EventStore()
