from __future__ import annotations

import csv
import io
import logging
import re
from datetime import date, datetime
from typing import Any

from formcraft.config import ANONYMOUS_USER, LAYOUT_TYPES
from formcraft.dates import format_dt, to_datetime
from formcraft.errors import ResponseServiceError
from formcraft.protocols import Storage
from formcraft.utils import is_blank, new_ulid, now_utc

logger = logging.getLogger(__name__)


def sanitize_answers(answers: dict[str, Any]) -> dict[str, Any]:
    """Replace raw uploads with their metadata so answers stay JSON-serializable."""
    sanitized: dict[str, Any] = {}
    for key, value in answers.items():
        if hasattr(value, "filename") and hasattr(value, "read"):
            sanitized[key] = {
                "file_name": value.filename or "",
                "file_size": getattr(value, "size", None),
                "file_type": getattr(value, "content_type", "") or "",
                "upload_status": "pending",
            }
        elif isinstance(value, (list, tuple)):
            sanitized[key] = list(value)
        else:
            sanitized[key] = value
    return sanitized


def answer_to_text(answer: Any) -> str:
    if is_blank(answer):
        return "(No answer)"
    if isinstance(answer, list):
        return ", ".join(str(item) for item in answer)
    if isinstance(answer, dict) and answer.get("file_name"):
        return f"File: {answer['file_name']}"
    return str(answer)


def export_filename(title: str, day: date | None = None) -> str:
    day = day or now_utc().date()
    slug = re.sub(r"[^a-z0-9]", "_", title or "", flags=re.IGNORECASE).lower()
    return f"{slug}_responses_{day.isoformat()}.csv"


def get_response_stats(responses: list[dict[str, Any]], now: datetime | None = None) -> dict[str, Any]:
    today = (now or now_utc()).date()
    submitted = [to_datetime(r.get("submitted_at")) for r in responses]
    valid = [value for value in submitted if value is not None]
    return {
        "total": len(responses),
        "today": sum(1 for value in valid if value.date() == today),
        "last_response": max(valid) if valid else None,
    }


class ResponseService:
    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    def submit_response(
        self,
        form_id: str,
        user_id: str | None,
        answers: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            response_id = new_ulid()
            self._storage.responses.create_response(
                {
                    "id": response_id,
                    "form_id": form_id,
                    "user_id": user_id or ANONYMOUS_USER,
                    "answers": sanitize_answers(answers),
                    "metadata": dict(metadata or {}),
                    "submitted_at": now_utc(),
                    "status": "completed",
                }
            )
            self._storage.forms.adjust_response_count(form_id, 1)
            logger.info("Stored response %s for form %s", response_id, form_id)
            return {"success": True, "id": response_id}
        except Exception as exc:
            logger.exception("Error submitting response")
            raise ResponseServiceError(f"Failed to submit response: {exc}") from exc

    def can_user_submit(
        self, form_id: str, user_id: str | None, settings: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        settings = settings or {}
        try:
            max_submissions = settings.get("max_submissions")
            if max_submissions:
                if self._storage.responses.count_responses(form_id) >= int(max_submissions):
                    return {
                        "can_submit": False,
                        "reason": "This form has reached its maximum number of responses",
                    }
            if (
                not settings.get("allow_multiple_responses", True)
                and user_id
                and user_id != ANONYMOUS_USER
            ):
                if self._storage.responses.count_responses(form_id, user_id) > 0:
                    return {
                        "can_submit": False,
                        "reason": "You have already submitted a response to this form",
                    }
            return {"can_submit": True}
        except Exception:
            logger.exception("Error checking submission permission")
            return {"can_submit": True}

    def get_form_responses(self, form_id: str) -> list[dict[str, Any]]:
        try:
            return self._storage.responses.list_responses(form_id)
        except Exception as exc:
            logger.exception("Error fetching responses")
            raise ResponseServiceError(f"Failed to fetch responses: {exc}") from exc

    def get_response_by_id(self, response_id: str) -> dict[str, Any] | None:
        try:
            return self._storage.responses.get_response(response_id)
        except Exception as exc:
            logger.exception("Error fetching response")
            raise ResponseServiceError(f"Failed to fetch response: {exc}") from exc

    def delete_response(self, response_id: str, form_id: str) -> dict[str, Any]:
        try:
            self._storage.responses.delete_response(response_id)
            self._storage.forms.adjust_response_count(form_id, -1)
            return {"success": True}
        except Exception as exc:
            logger.exception("Error deleting response")
            raise ResponseServiceError(f"Failed to delete response: {exc}") from exc

    def export_responses_to_csv(self, form_id: str, form_fields: list[dict[str, Any]]) -> str | None:
        try:
            responses = self.get_form_responses(form_id)
            if not responses:
                return None
            columns = [f for f in form_fields if f.get("type") not in LAYOUT_TYPES]
            output = io.StringIO()
            writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
            writer.writerow(
                ["Response ID", "User Name", "User Email", "Submitted At"]
                + [f.get("label", "") for f in columns]
            )
            for response in responses:
                metadata = response.get("metadata") or {}
                answers = response.get("answers") or {}
                writer.writerow(
                    [
                        response["id"],
                        metadata.get("user_name") or "Anonymous",
                        metadata.get("user_email") or "N/A",
                        format_dt(response.get("submitted_at")),
                    ]
                    + [answer_to_text(answers.get(f.get("id"))) for f in columns]
                )
            return output.getvalue().rstrip("\n")
        except Exception as exc:
            logger.exception("Error exporting to CSV")
            raise ResponseServiceError(f"Failed to export responses: {exc}") from exc
