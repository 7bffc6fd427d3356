import json
import os
import threading

SETTINGS_FILE = "settings.json"

DEFAULT_SETTINGS = {
    # Empty means data/events.json next to the code
    "events_file": "",
    # Hosts running under CI or tests turn the minute sweep off here
    "reminders_enabled": True,
    "reminder_interval_seconds": 60,
    "debug_mode": True,
    "debug_log_size": 50
}

class SettingsManager:
    def __init__(self, file_path=SETTINGS_FILE):
        self.file_path = file_path
        self.lock = threading.Lock()
        self.settings = self.load_settings()

    def load_settings(self):
        with self.lock:
            if not os.path.exists(self.file_path):
                # First run: persist the defaults so they can be edited by hand.
                settings_to_load = DEFAULT_SETTINGS.copy()
                with open(self.file_path, "w", encoding="utf-8") as f:
                    json.dump(settings_to_load, f, indent=4)
                return settings_to_load

            try:
                with open(self.file_path, "r", encoding="utf-8") as f:
                    loaded_settings = json.load(f)
                    merged_settings = DEFAULT_SETTINGS.copy()
                    merged_settings.update(loaded_settings)
                    return merged_settings
            except (json.JSONDecodeError, IOError):
                return DEFAULT_SETTINGS.copy()

    def save_settings(self, new_settings):
        with self.lock:
            self.settings.update(new_settings)
            with open(self.file_path, "w", encoding="utf-8") as f:
                json.dump(self.settings, f, indent=4)

    def get(self, key, default=None):
        with self.lock:
            return self.settings.get(key, default)

# Global instance
settings = SettingsManager()
