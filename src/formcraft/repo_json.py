from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator

from filelock import FileLock
from tinydb import Query, TinyDB

from formcraft.dates import timestamp_of
from formcraft.utils import parse_dt, to_iso

_TIMESTAMP_KEYS = {"created_at", "updated_at", "submitted_at"}


def _encode(document: dict[str, Any]) -> dict[str, Any]:
    record: dict[str, Any] = {}
    for key, value in document.items():
        if key in _TIMESTAMP_KEYS and isinstance(value, datetime):
            record[key] = to_iso(value)
        else:
            record[key] = value
    return record


class JSONRepoBase:
    table_name = ""

    def __init__(self, path: Path, lock: FileLock) -> None:
        self._path = path
        self._lock = lock

    @contextmanager
    def _db(self) -> Iterator[TinyDB]:
        with self._lock:
            db = TinyDB(self._path)
            try:
                yield db
            finally:
                db.close()

    @contextmanager
    def _table(self) -> Iterator[Any]:
        with self._db() as db:
            yield db.table(self.table_name)


class JSONFormRepo(JSONRepoBase):
    table_name = "forms"

    def list_forms_by_user(self, user_id: str) -> list[dict[str, Any]]:
        with self._table() as table:
            items = table.search(Query().user_id == user_id)
        forms = [self._from_record(item) for item in items]
        return sorted(forms, key=lambda x: timestamp_of(x["updated_at"]), reverse=True)

    def get_form(self, form_id: str) -> dict[str, Any] | None:
        with self._table() as table:
            item = table.get(Query().id == form_id)
        return self._from_record(item) if item else None

    def create_form(self, form: dict[str, Any]) -> None:
        with self._table() as table:
            table.insert(_encode(form))

    def update_form(self, form_id: str, updates: dict[str, Any]) -> dict[str, Any]:
        with self._table() as table:
            item = table.get(Query().id == form_id)
            if not item:
                raise KeyError(form_id)
            record = dict(item)
            record.update(_encode(updates))
            table.update(record, Query().id == form_id)
        return self._from_record(record)

    def delete_form(self, form_id: str) -> None:
        with self._table() as table:
            table.remove(Query().id == form_id)

    def adjust_response_count(self, form_id: str, delta: int) -> None:
        def transform(doc: dict[str, Any]) -> None:
            doc["response_count"] = max(0, int(doc.get("response_count") or 0) + delta)

        with self._table() as table:
            if not table.update(transform, Query().id == form_id):
                raise KeyError(form_id)

    @staticmethod
    def _from_record(record: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": record["id"],
            "user_id": record.get("user_id", ""),
            "title": record.get("title", ""),
            "description": record.get("description", ""),
            "status": record.get("status", "draft"),
            "fields": record.get("fields", []),
            "settings": record.get("settings", {}),
            "theme": record.get("theme", {}),
            "response_count": int(record.get("response_count") or 0),
            "created_at": parse_dt(record.get("created_at")),
            "updated_at": parse_dt(record.get("updated_at")),
        }


class JSONResponseRepo(JSONRepoBase):
    table_name = "responses"

    def list_responses(self, form_id: str) -> list[dict[str, Any]]:
        with self._table() as table:
            items = table.search(Query().form_id == form_id)
        responses = [self._from_record(item) for item in items]
        return sorted(responses, key=lambda x: timestamp_of(x["submitted_at"]), reverse=True)

    def get_response(self, response_id: str) -> dict[str, Any] | None:
        with self._table() as table:
            item = table.get(Query().id == response_id)
        return self._from_record(item) if item else None

    def create_response(self, response: dict[str, Any]) -> None:
        with self._table() as table:
            table.insert(_encode(response))

    def delete_response(self, response_id: str) -> None:
        with self._table() as table:
            table.remove(Query().id == response_id)

    def count_responses(self, form_id: str, user_id: str | None = None) -> int:
        condition = Query().form_id == form_id
        if user_id is not None:
            condition &= Query().user_id == user_id
        with self._table() as table:
            return table.count(condition)

    @staticmethod
    def _from_record(record: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": record["id"],
            "form_id": record["form_id"],
            "user_id": record.get("user_id", "anonymous"),
            "answers": record.get("answers", {}),
            "metadata": record.get("metadata", {}),
            "status": record.get("status", "completed"),
            "submitted_at": parse_dt(record.get("submitted_at")),
        }


class JSONDraftRepo(JSONRepoBase):
    table_name = "drafts"

    def put_draft(self, draft: dict[str, Any]) -> None:
        with self._table() as table:
            table.upsert(_encode(draft), Query().id == draft["id"])

    def get_draft(self, draft_id: str) -> dict[str, Any] | None:
        with self._table() as table:
            item = table.get(Query().id == draft_id)
        if not item:
            return None
        return {**item, "updated_at": parse_dt(item.get("updated_at"))}

    def delete_draft(self, draft_id: str) -> None:
        with self._table() as table:
            table.remove(Query().id == draft_id)


class JSONFileRepo(JSONRepoBase):
    table_name = "files"

    def create_file(self, file_meta: dict[str, Any]) -> None:
        with self._table() as table:
            table.insert(_encode(file_meta))

    def get_file(self, file_id: str) -> dict[str, Any] | None:
        with self._table() as table:
            item = table.get(Query().id == file_id)
        if not item:
            return None
        return {
            "id": item["id"],
            "form_id": item["form_id"],
            "original_name": item.get("original_name", ""),
            "stored_path": item.get("stored_path", ""),
            "content_type": item.get("content_type", ""),
            "size": item.get("size", 0),
            "created_at": parse_dt(item.get("created_at")),
        }


class JSONStorage:
    def __init__(self, path: Path) -> None:
        self._lock = FileLock(f"{path}.lock")
        self.forms = JSONFormRepo(path, self._lock)
        self.responses = JSONResponseRepo(path, self._lock)
        self.drafts = JSONDraftRepo(path, self._lock)
        self.files = JSONFileRepo(path, self._lock)

    def close(self) -> None:
        return None
