"""Form persistence service.

Every operation validates its arguments, talks to the form repository and
re-raises any failure as :class:`FormServiceError` whose message starts with
the operation that failed (``"Failed to fetch forms: ..."``). Nothing retries.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from formcraft.config import DEFAULT_FORM_SETTINGS, DEFAULT_FORM_THEME, FORM_STATUSES
from formcraft.errors import FormNotFoundError, FormServiceError
from formcraft.protocols import Storage
from formcraft.utils import deep_merge, new_ulid, now_utc

logger = logging.getLogger(__name__)

# Keys callers may not write through update_form.
_PROTECTED_KEYS = {"id", "user_id", "response_count", "created_at", "updated_at"}


def _fail(action: str, exc: Exception) -> FormServiceError:
    error_cls = FormNotFoundError if isinstance(exc, FormNotFoundError) else FormServiceError
    return error_cls(f"Failed to {action}: {exc}")


class FormService:
    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    def get_user_forms(self, user_id: str | None) -> list[dict[str, Any]]:
        try:
            if not user_id:
                raise ValueError("User ID is required")
            return self._storage.forms.list_forms_by_user(user_id)
        except Exception as exc:
            logger.exception("Error fetching forms")
            raise _fail("fetch forms", exc) from exc

    def get_form_by_id(self, form_id: str | None) -> dict[str, Any]:
        try:
            if not form_id:
                raise ValueError("Form ID is required")
            form = self._storage.forms.get_form(form_id)
            if form is None:
                raise FormNotFoundError("Form not found")
            return form
        except Exception as exc:
            logger.exception("Error fetching form")
            raise _fail("fetch form", exc) from exc

    def create_form(self, user_id: str | None, form_data: dict[str, Any] | None = None) -> str:
        try:
            if not user_id:
                raise ValueError("User ID is required")
            form_data = form_data or {}
            status = form_data.get("status") or "draft"
            if status not in FORM_STATUSES:
                raise ValueError(f"Invalid status: {status}")
            now = now_utc()
            form_id = new_ulid()
            self._storage.forms.create_form(
                {
                    "id": form_id,
                    "user_id": user_id,
                    "title": form_data.get("title") or "Untitled Form",
                    "description": form_data.get("description") or "",
                    "status": status,
                    "fields": copy.deepcopy(form_data.get("fields") or []),
                    "settings": deep_merge(DEFAULT_FORM_SETTINGS, form_data.get("settings")),
                    "theme": deep_merge(DEFAULT_FORM_THEME, form_data.get("theme")),
                    "response_count": 0,
                    "created_at": now,
                    "updated_at": now,
                }
            )
            logger.info("Created form %s for user %s", form_id, user_id)
            return form_id
        except Exception as exc:
            logger.exception("Error creating form")
            raise _fail("create form", exc) from exc

    def update_form(self, form_id: str | None, updates: dict[str, Any]) -> dict[str, Any]:
        try:
            if not form_id:
                raise ValueError("Form ID is required")
            existing = self._storage.forms.get_form(form_id)
            if existing is None:
                raise FormNotFoundError("Form not found")
            data = {k: v for k, v in (updates or {}).items() if k not in _PROTECTED_KEYS}
            if "status" in data and data["status"] not in FORM_STATUSES:
                raise ValueError(f"Invalid status: {data['status']}")
            for key in ("settings", "theme"):
                if isinstance(data.get(key), dict):
                    data[key] = deep_merge(existing.get(key) or {}, data[key])
            data["updated_at"] = now_utc()
            self._storage.forms.update_form(form_id, data)
            return self.get_form_by_id(form_id)
        except Exception as exc:
            logger.exception("Error updating form")
            raise _fail("update form", exc) from exc

    def delete_form(self, form_id: str | None) -> bool:
        """Remove the form document.

        Responses submitted to the form are left in place; they stay readable
        by form id until removed individually.
        """
        try:
            if not form_id:
                raise ValueError("Form ID is required")
            self._storage.forms.delete_form(form_id)
            logger.info("Deleted form %s", form_id)
            return True
        except Exception as exc:
            logger.exception("Error deleting form")
            raise _fail("delete form", exc) from exc

    def duplicate_form(self, form_id: str | None, user_id: str | None) -> dict[str, Any]:
        try:
            if not form_id or not user_id:
                raise ValueError("Form ID and User ID are required")
            original = self.get_form_by_id(form_id)
            duplicated = {
                key: value
                for key, value in original.items()
                if key not in {"id", "created_at", "updated_at"}
            }
            duplicated.update(
                {
                    "title": f"Copy of {original.get('title', '')}",
                    "status": "draft",
                    "response_count": 0,
                    "user_id": user_id,
                }
            )
            new_form_id = self.create_form(user_id, duplicated)
            return self.get_form_by_id(new_form_id)
        except Exception as exc:
            logger.exception("Error duplicating form")
            raise _fail("duplicate form", exc) from exc

    def get_form_stats(self, user_id: str | None) -> dict[str, int]:
        try:
            if not user_id:
                raise ValueError("User ID is required")
            forms = self.get_user_forms(user_id)
            return {
                "total": len(forms),
                "published": sum(1 for f in forms if f.get("status") == "published"),
                "drafts": sum(1 for f in forms if f.get("status") == "draft"),
                "archived": sum(1 for f in forms if f.get("status") == "archived"),
                "total_responses": sum(int(f.get("response_count") or 0) for f in forms),
            }
        except Exception as exc:
            logger.exception("Error getting form stats")
            raise _fail("get stats", exc) from exc

    def _set_status(self, form_id: str | None, status: str, action: str) -> dict[str, Any]:
        try:
            return self.update_form(form_id, {"status": status})
        except Exception as exc:
            logger.exception("Error trying to %s", action)
            raise _fail(action, exc) from exc

    def publish_form(self, form_id: str | None) -> dict[str, Any]:
        return self._set_status(form_id, "published", "publish form")

    def unpublish_form(self, form_id: str | None) -> dict[str, Any]:
        return self._set_status(form_id, "draft", "unpublish form")

    def archive_form(self, form_id: str | None) -> dict[str, Any]:
        return self._set_status(form_id, "archived", "archive form")

    def unarchive_form(self, form_id: str | None) -> dict[str, Any]:
        return self._set_status(form_id, "draft", "unarchive form")
