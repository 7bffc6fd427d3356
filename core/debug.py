from collections import deque
from datetime import datetime
import json
import time

from core.settings import settings

class DebugLogger:
    """Keeps the most recent activity (reminders fired, sweeps run) in memory."""

    def __init__(self, max_logs=50, echo=True):
        self.logs = deque(maxlen=max_logs)
        self.echo = echo

    def log(self, user_id, source, event_type, details):
        entry = {
            "timestamp": datetime.now().strftime("%H:%M:%S.%f")[:-3],
            "timestamp_raw": time.time(),
            "user_id": user_id,
            "source": source,
            "event": event_type,
            "details": details
        }
        self.logs.append(entry)
        if self.echo:
            print(f"[DEBUG] [{user_id}] {source} ({event_type}): {json.dumps(details, default=str)}")
        return entry

    def get_logs(self):
        return list(self.logs)[::-1]

    def get_logs_for_user(self, user_id):
        return [log for log in self.get_logs() if log["user_id"] == user_id]

    def clear(self):
        self.logs.clear()

debug_logger = DebugLogger(
    max_logs=int(settings.get("debug_log_size", 50)),
    echo=bool(settings.get("debug_mode", True)),
)
