from __future__ import annotations

from datetime import timedelta

import pytest

from formcraft.utils import now_utc


def make_form(form_id: str, user_id: str = "user-1", **overrides):
    now = now_utc()
    form = {
        "id": form_id,
        "user_id": user_id,
        "title": form_id,
        "description": "",
        "status": "draft",
        "fields": [{"id": "q", "type": "short_text", "label": "Q"}],
        "settings": {"submit_button_text": "Send"},
        "theme": {"primary_color": "#000000"},
        "response_count": 0,
        "created_at": now,
        "updated_at": now,
    }
    form.update(overrides)
    return form


def test_form_crud(storage):
    storage.forms.create_form(make_form("f1"))
    form = storage.forms.get_form("f1")
    assert form["fields"] == [{"id": "q", "type": "short_text", "label": "Q"}]
    assert form["settings"] == {"submit_button_text": "Send"}
    assert form["created_at"].tzinfo is not None

    storage.forms.update_form("f1", {"title": "Renamed", "status": "published"})
    form = storage.forms.get_form("f1")
    assert form["title"] == "Renamed"
    assert form["status"] == "published"

    storage.forms.delete_form("f1")
    assert storage.forms.get_form("f1") is None


def test_update_missing_form_raises(storage):
    with pytest.raises(KeyError):
        storage.forms.update_form("missing", {"title": "x"})


def test_list_forms_by_user_newest_first(storage):
    now = now_utc()
    storage.forms.create_form(make_form("old", updated_at=now - timedelta(days=2)))
    storage.forms.create_form(make_form("new", updated_at=now))
    storage.forms.create_form(make_form("other", user_id="user-2"))
    assert [f["id"] for f in storage.forms.list_forms_by_user("user-1")] == ["new", "old"]


def test_response_count_never_negative(storage):
    storage.forms.create_form(make_form("f1"))
    storage.forms.adjust_response_count("f1", 2)
    storage.forms.adjust_response_count("f1", -5)
    assert storage.forms.get_form("f1")["response_count"] == 0
    with pytest.raises(KeyError):
        storage.forms.adjust_response_count("missing", 1)


def test_responses_and_counts(storage):
    now = now_utc()
    for index, user in enumerate(["alice", "alice", "bob"]):
        storage.responses.create_response(
            {
                "id": f"r{index}",
                "form_id": "f1",
                "user_id": user,
                "answers": {"q": str(index)},
                "metadata": {},
                "status": "completed",
                "submitted_at": now - timedelta(minutes=index),
            }
        )
    assert [r["id"] for r in storage.responses.list_responses("f1")] == ["r0", "r1", "r2"]
    assert storage.responses.count_responses("f1") == 3
    assert storage.responses.count_responses("f1", "alice") == 2
    storage.responses.delete_response("r0")
    assert storage.responses.get_response("r0") is None
    assert storage.responses.count_responses("f1") == 2


def test_draft_upsert(storage):
    draft = {
        "id": "f1_alice",
        "form_id": "f1",
        "user_id": "alice",
        "form_data": {"q": "a"},
        "metadata": {},
        "updated_at": now_utc(),
    }
    storage.drafts.put_draft(draft)
    storage.drafts.put_draft({**draft, "form_data": {"q": "b"}})
    assert storage.drafts.get_draft("f1_alice")["form_data"] == {"q": "b"}
    storage.drafts.delete_draft("f1_alice")
    assert storage.drafts.get_draft("f1_alice") is None
