from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent

FORM_STATUSES = ("draft", "published", "archived")
LAYOUT_TYPES = frozenset({"section_heading", "description_text", "divider"})
ANONYMOUS_USER = "anonymous"

DEFAULT_FORM_SETTINGS = {
    "submit_button_text": "Submit",
    "confirmation_message": "Thank you for your submission!",
    "max_submissions": None,
    "allow_multiple_responses": True,
    "require_auth": True,
    "show_progress_bar": False,
}

DEFAULT_FORM_THEME = {
    "primary_color": "#8b5cf6",
    "background_color": "#1e293b",
    "font_family": "Inter",
}


class Settings:
    def __init__(self) -> None:
        self.storage_backend = os.getenv("STORAGE_BACKEND", "sqlite").lower()
        self.sqlite_path = Path(os.getenv("SQLITE_PATH", "./data/formcraft.db"))
        self.json_path = Path(os.getenv("JSON_PATH", "./data/formcraft.json"))
        self.upload_dir = Path(os.getenv("UPLOAD_DIR", "./data/uploads"))
        max_bytes = os.getenv("UPLOAD_MAX_BYTES")
        self.upload_max_bytes = int(max_bytes) if max_bytes else None
        self.auth_mode = os.getenv("AUTH_MODE", "none").lower()
        self.dev_user_id = os.getenv("DEV_USER_ID", "local-user")
        self.dev_user_email = os.getenv("DEV_USER_EMAIL", "owner@localhost")
        throttle_value = os.getenv("DRAFT_THROTTLE_MS", "2000")
        try:
            self.draft_throttle_ms = int(throttle_value)
        except ValueError:
            self.draft_throttle_ms = 2000
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        self.host = os.getenv("HOST", "0.0.0.0")
        port_value = os.getenv("PORT", "8000")
        try:
            self.port = int(port_value)
        except ValueError:
            self.port = 8000


def ensure_dirs(settings: Settings) -> None:
    settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
    settings.json_path.parent.mkdir(parents=True, exist_ok=True)
    settings.upload_dir.mkdir(parents=True, exist_ok=True)
