from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from formcraft.errors import ResponseServiceError
from formcraft.services.forms import FormService
from formcraft.services.responses import (
    ResponseService,
    answer_to_text,
    export_filename,
    get_response_stats,
    sanitize_answers,
)

FIELDS = [
    {"id": "name", "type": "short_text", "label": "Name"},
    {"id": "intro", "type": "section_heading", "label": "About you"},
    {"id": "colors", "type": "checkboxes", "label": "Colors", "options": ["Red", "Blue"]},
    {"id": "cv", "type": "file_upload", "label": "CV"},
]


@pytest.fixture
def forms(storage):
    return FormService(storage)


@pytest.fixture
def responses(storage):
    return ResponseService(storage)


@pytest.fixture
def form_id(forms):
    return forms.create_form("owner", {"title": "Survey", "fields": FIELDS})


def test_answer_to_text():
    assert answer_to_text(None) == "(No answer)"
    assert answer_to_text("") == "(No answer)"
    assert answer_to_text([]) == "(No answer)"
    assert answer_to_text(["Red", "Blue"]) == "Red, Blue"
    assert answer_to_text({"file_name": "cv.pdf"}) == "File: cv.pdf"
    assert answer_to_text(4) == "4"


def test_export_filename():
    assert export_filename("Customer Survey 2024!", date(2024, 3, 15)) == "customer_survey_2024__responses_2024-03-15.csv"


def test_sanitize_answers_replaces_uploads():
    class Upload:
        filename = "photo.png"
        content_type = "image/png"
        size = 12

        def read(self):
            return b""

    cleaned = sanitize_answers({"a": "x", "b": Upload(), "c": ("one", "two")})
    assert cleaned["a"] == "x"
    assert cleaned["b"] == {
        "file_name": "photo.png",
        "file_size": 12,
        "file_type": "image/png",
        "upload_status": "pending",
    }
    assert cleaned["c"] == ["one", "two"]


def test_response_stats():
    now = datetime(2024, 3, 15, 18, 0, tzinfo=timezone.utc)
    items = [
        {"submitted_at": now - timedelta(hours=2)},
        {"submitted_at": now - timedelta(days=3)},
        {"submitted_at": "garbage"},
    ]
    stats = get_response_stats(items, now=now)
    assert stats == {"total": 3, "today": 1, "last_response": now - timedelta(hours=2)}
    assert get_response_stats([], now=now) == {"total": 0, "today": 0, "last_response": None}


def test_submit_increments_count(forms, responses, form_id):
    result = responses.submit_response(form_id, "alice", {"name": "Alice"}, {"user_name": "Alice"})
    assert result["success"] is True
    stored = responses.get_response_by_id(result["id"])
    assert stored["answers"] == {"name": "Alice"}
    assert stored["user_id"] == "alice"
    assert stored["status"] == "completed"
    assert forms.get_form_by_id(form_id)["response_count"] == 1


def test_anonymous_submission(responses, form_id):
    result = responses.submit_response(form_id, None, {"name": "Anon"})
    assert responses.get_response_by_id(result["id"])["user_id"] == "anonymous"


def test_submit_to_missing_form_fails(responses):
    with pytest.raises(ResponseServiceError, match="^Failed to submit response"):
        responses.submit_response("missing", "alice", {"name": "x"})


def test_delete_response_decrements_count(forms, responses, form_id):
    result = responses.submit_response(form_id, "alice", {"name": "Alice"})
    assert responses.delete_response(result["id"], form_id) == {"success": True}
    assert responses.get_response_by_id(result["id"]) is None
    assert forms.get_form_by_id(form_id)["response_count"] == 0


def test_can_user_submit_limits(responses, form_id):
    assert responses.can_user_submit(form_id, "alice", {}) == {"can_submit": True}

    responses.submit_response(form_id, "alice", {"name": "Alice"})
    single = {"allow_multiple_responses": False}
    verdict = responses.can_user_submit(form_id, "alice", single)
    assert verdict["can_submit"] is False
    assert verdict["reason"] == "You have already submitted a response to this form"
    assert responses.can_user_submit(form_id, "bob", single)["can_submit"] is True

    capped = responses.can_user_submit(form_id, "bob", {"max_submissions": 1})
    assert capped == {
        "can_submit": False,
        "reason": "This form has reached its maximum number of responses",
    }


def test_can_user_submit_allows_on_error():
    class Exploding:
        def count_responses(self, form_id, user_id=None):
            raise RuntimeError("boom")

    class Storage:
        responses = Exploding()

    verdict = ResponseService(Storage()).can_user_submit("f", "u", {"max_submissions": 1})
    assert verdict == {"can_submit": True}


def test_export_csv(responses, form_id):
    assert responses.export_responses_to_csv(form_id, FIELDS) is None

    responses.submit_response(
        form_id,
        "alice",
        {"name": "Alice \"A\"", "colors": ["Red", "Blue"], "cv": {"file_name": "cv.pdf"}},
        {"user_name": "Alice", "user_email": "alice@example.com"},
    )
    csv_text = responses.export_responses_to_csv(form_id, FIELDS)
    lines = csv_text.split("\n")
    assert lines[0] == '"Response ID","User Name","User Email","Submitted At","Name","Colors","CV"'
    assert len(lines) == 2
    row = lines[1]
    assert '"Alice","alice@example.com"' in row
    assert row.endswith('"Alice ""A""","Red, Blue","File: cv.pdf"')


def test_export_csv_uses_placeholders_for_missing_metadata(responses, form_id):
    responses.submit_response(form_id, None, {})
    row = responses.export_responses_to_csv(form_id, FIELDS).split("\n")[1]
    assert '"Anonymous","N/A"' in row
    assert row.endswith('"(No answer)","(No answer)","(No answer)"')
