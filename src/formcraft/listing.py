from __future__ import annotations

import logging
import unicodedata
from typing import Any, Callable

from formcraft.config import FORM_STATUSES
from formcraft.dates import timestamp_of
from formcraft.services.forms import FormService

logger = logging.getLogger(__name__)

SORT_OPTIONS = {
    "updated": "Last Updated",
    "created": "Date Created",
    "name": "Name (A-Z)",
    "responses": "Most Responses",
}
FILTER_OPTIONS = ("all",) + FORM_STATUSES


def _collation_key(text: str) -> tuple[str, str]:
    decomposed = unicodedata.normalize("NFKD", text)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base.casefold(), text


def matches_filter(form: dict[str, Any], active_filter: str = "all", search: str = "") -> bool:
    if active_filter != "all" and form.get("status") != active_filter:
        return False
    term = (search or "").strip().lower()
    if not term:
        return True
    title = str(form.get("title") or "").lower()
    description = str(form.get("description") or "").lower()
    return term in title or term in description


def filter_forms(
    forms: list[dict[str, Any]], active_filter: str = "all", search: str = ""
) -> list[dict[str, Any]]:
    return [form for form in forms if matches_filter(form, active_filter, search)]


def sort_forms(forms: list[dict[str, Any]], sort_by: str = "updated") -> list[dict[str, Any]]:
    if sort_by == "name":
        return sorted(forms, key=lambda f: _collation_key(str(f.get("title") or "")))
    if sort_by == "created":
        return sorted(forms, key=lambda f: timestamp_of(f.get("created_at")), reverse=True)
    if sort_by == "responses":
        return sorted(forms, key=lambda f: int(f.get("response_count") or 0), reverse=True)
    return sorted(forms, key=lambda f: timestamp_of(f.get("updated_at")), reverse=True)


def status_counts(forms: list[dict[str, Any]]) -> dict[str, int]:
    counts = {"all": len(forms)}
    for status in FORM_STATUSES:
        counts[status] = sum(1 for form in forms if form.get("status") == status)
    return counts


class FormListState:
    """A user's view of their forms for the length of one dashboard interaction.

    Mutations go through the service; on success only the affected entry is
    replaced from the mutation's own result and a success notice is recorded.
    On failure a fixed notice is recorded and the error is re-raised, leaving
    the list untouched.
    """

    def __init__(self, service: FormService, user_id: str) -> None:
        self._service = service
        self.user_id = user_id
        self.forms: list[dict[str, Any]] = []
        self.stats: dict[str, int] = {
            "total": 0,
            "published": 0,
            "drafts": 0,
            "archived": 0,
            "total_responses": 0,
        }
        self.notices: list[tuple[str, str]] = []
        self.error: str | None = None

    def _notify(self, level: str, message: str) -> None:
        self.notices.append((level, message))

    def fetch(self) -> None:
        self.error = None
        try:
            self.forms = self._service.get_user_forms(self.user_id)
            self.stats = self._service.get_form_stats(self.user_id)
        except Exception as exc:
            self.error = str(exc)
            self._notify("error", "Failed to load forms")

    def visible(self, active_filter: str = "all", search: str = "", sort_by: str = "updated") -> list[dict[str, Any]]:
        return sort_forms(filter_forms(self.forms, active_filter, search), sort_by)

    def _replace(self, updated: dict[str, Any]) -> None:
        self.forms = [updated if form["id"] == updated["id"] else form for form in self.forms]

    def _run(self, action: Callable[[], Any], success: str, failure: str) -> Any:
        try:
            result = action()
        except Exception:
            logger.exception(failure)
            self._notify("error", failure)
            raise
        self._notify("success", success)
        return result

    def create(self, form_data: dict[str, Any]) -> dict[str, Any]:
        def action() -> dict[str, Any]:
            form_id = self._service.create_form(self.user_id, form_data)
            return self._service.get_form_by_id(form_id)

        created = self._run(action, "Form created successfully!", "Failed to create form")
        self.forms = [created, *self.forms]
        return created

    def update(self, form_id: str, updates: dict[str, Any]) -> dict[str, Any]:
        updated = self._run(
            lambda: self._service.update_form(form_id, updates),
            "Form updated successfully!",
            "Failed to update form",
        )
        self._replace(updated)
        return updated

    def delete(self, form_id: str) -> None:
        self._run(
            lambda: self._service.delete_form(form_id),
            "Form deleted successfully!",
            "Failed to delete form",
        )
        self.forms = [form for form in self.forms if form["id"] != form_id]

    def duplicate(self, form_id: str) -> dict[str, Any]:
        duplicated = self._run(
            lambda: self._service.duplicate_form(form_id, self.user_id),
            "Form duplicated successfully!",
            "Failed to duplicate form",
        )
        self.forms = [duplicated, *self.forms]
        return duplicated

    def publish(self, form_id: str) -> dict[str, Any]:
        published = self._run(
            lambda: self._service.publish_form(form_id),
            "Form published successfully!",
            "Failed to publish form",
        )
        self._replace(published)
        return published

    def unpublish(self, form_id: str) -> dict[str, Any]:
        unpublished = self._run(
            lambda: self._service.unpublish_form(form_id),
            "Form moved back to drafts",
            "Failed to unpublish form",
        )
        self._replace(unpublished)
        return unpublished

    def archive(self, form_id: str) -> dict[str, Any]:
        archived = self._run(
            lambda: self._service.archive_form(form_id),
            "Form archived successfully!",
            "Failed to archive form",
        )
        self._replace(archived)
        return archived

    def unarchive(self, form_id: str) -> dict[str, Any]:
        restored = self._run(
            lambda: self._service.unarchive_form(form_id),
            "Form restored from archive",
            "Failed to unarchive form",
        )
        self._replace(restored)
        return restored
