from __future__ import annotations

import pytest

from formcraft.errors import FormNotFoundError, FormServiceError
from formcraft.services.forms import FormService
from formcraft.utils import now_utc


@pytest.fixture
def service(storage):
    return FormService(storage)


def test_create_form_applies_defaults(service):
    form_id = service.create_form("user-1")
    form = service.get_form_by_id(form_id)
    assert form["title"] == "Untitled Form"
    assert form["status"] == "draft"
    assert form["response_count"] == 0
    assert form["fields"] == []
    assert form["settings"]["submit_button_text"] == "Submit"
    assert form["settings"]["require_auth"] is True
    assert form["theme"]["primary_color"] == "#8b5cf6"
    assert form["created_at"] == form["updated_at"]


def test_create_form_merges_overrides(service):
    form_id = service.create_form(
        "user-1",
        {
            "title": "Survey",
            "settings": {"max_submissions": 10},
            "theme": {"font_family": "Roboto"},
        },
    )
    form = service.get_form_by_id(form_id)
    assert form["title"] == "Survey"
    assert form["settings"]["max_submissions"] == 10
    assert form["settings"]["confirmation_message"] == "Thank you for your submission!"
    assert form["theme"] == {"primary_color": "#8b5cf6", "background_color": "#1e293b", "font_family": "Roboto"}


def test_create_form_requires_user(service):
    with pytest.raises(FormServiceError, match="^Failed to create form: User ID is required"):
        service.create_form("")


def test_create_form_rejects_unknown_status(service):
    with pytest.raises(FormServiceError, match="Invalid status"):
        service.create_form("user-1", {"status": "deleted"})


def test_missing_form_raises_not_found(service):
    with pytest.raises(FormNotFoundError, match="^Failed to fetch form"):
        service.get_form_by_id("missing")


def test_update_form_protects_owner_and_counters(service):
    form_id = service.create_form("user-1", {"title": "Original"})
    updated = service.update_form(
        form_id,
        {"title": "Renamed", "user_id": "intruder", "response_count": 99, "settings": {"show_progress_bar": True}},
    )
    assert updated["title"] == "Renamed"
    assert updated["user_id"] == "user-1"
    assert updated["response_count"] == 0
    assert updated["settings"]["show_progress_bar"] is True
    assert updated["settings"]["submit_button_text"] == "Submit"
    assert updated["updated_at"] >= updated["created_at"]


def test_update_missing_form(service):
    with pytest.raises(FormNotFoundError):
        service.update_form("missing", {"title": "x"})


def test_status_transitions(service):
    form_id = service.create_form("user-1")
    assert service.publish_form(form_id)["status"] == "published"
    assert service.unpublish_form(form_id)["status"] == "draft"
    assert service.archive_form(form_id)["status"] == "archived"
    assert service.unarchive_form(form_id)["status"] == "draft"


def test_status_wrapper_failure_names_action(service):
    with pytest.raises(FormServiceError, match="^Failed to publish form"):
        service.publish_form("missing")


def test_duplicate_form(service, storage):
    form_id = service.create_form(
        "user-1",
        {"title": "Feedback", "fields": [{"id": "f1", "type": "short_text", "label": "Name"}]},
    )
    service.publish_form(form_id)
    storage.forms.adjust_response_count(form_id, 3)

    copy = service.duplicate_form(form_id, "user-2")
    assert copy["id"] != form_id
    assert copy["title"] == "Copy of Feedback"
    assert copy["status"] == "draft"
    assert copy["response_count"] == 0
    assert copy["user_id"] == "user-2"
    assert copy["fields"] == [{"id": "f1", "type": "short_text", "label": "Name"}]


def test_delete_form_keeps_responses(service, storage):
    form_id = service.create_form("user-1")
    storage.responses.create_response(
        {
            "id": "r1",
            "form_id": form_id,
            "user_id": "u",
            "answers": {},
            "metadata": {},
            "status": "completed",
            "submitted_at": now_utc(),
        }
    )
    assert service.delete_form(form_id) is True
    with pytest.raises(FormNotFoundError):
        service.get_form_by_id(form_id)
    assert storage.responses.get_response("r1") is not None


def test_get_form_stats(service, storage):
    first = service.create_form("user-1")
    second = service.create_form("user-1")
    third = service.create_form("user-1")
    service.create_form("someone-else")
    service.publish_form(first)
    service.archive_form(second)
    storage.forms.adjust_response_count(first, 4)
    storage.forms.adjust_response_count(third, 1)

    assert service.get_form_stats("user-1") == {
        "total": 3,
        "published": 1,
        "drafts": 1,
        "archived": 1,
        "total_responses": 5,
    }


def test_get_user_forms_requires_user(service):
    with pytest.raises(FormServiceError, match="^Failed to fetch forms"):
        service.get_user_forms(None)
