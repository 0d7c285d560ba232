from __future__ import annotations

from formcraft.config import Settings, ensure_dirs
from formcraft.protocols import Storage
from formcraft.repo_json import JSONStorage
from formcraft.repo_sqlite import SQLiteStorage


def init_storage(settings: Settings) -> Storage:
    ensure_dirs(settings)
    if settings.storage_backend == "json":
        return JSONStorage(settings.json_path)
    return SQLiteStorage(settings.sqlite_path)
