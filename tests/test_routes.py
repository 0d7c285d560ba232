from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

import pytest

OWNER = {"X-Auth-User-Id": "owner-1", "X-Auth-Email": "owner@example.com", "X-Auth-Name": "Owner"}
RESPONDENT = {"X-Auth-User-Id": "resp-1", "X-Auth-Email": "resp@example.com", "X-Auth-Name": "Respondent"}

SURVEY_FIELDS = [
    {"id": "name", "type": "short_text", "label": "Your name", "required": True},
    {"id": "intro", "type": "section_heading", "label": "Preferences"},
    {"id": "colors", "type": "checkboxes", "label": "Favourite colors", "options": ["Red", "Blue", "Green"]},
    {"id": "stars", "type": "rating", "label": "Rate us"},
]


def create_form(client, headers=OWNER, **payload):
    body = {"title": "Survey", "fields": SURVEY_FIELDS, **payload}
    response = client.post("/api/forms", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def publish(client, form_id, headers=OWNER):
    response = client.post(f"/api/forms/{form_id}/publish", headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}


def test_field_types(client):
    types = client.get("/api/field-types").json()
    assert len(types) == 17
    assert types[0]["id"] == "short_text"


def test_api_requires_identity(client):
    assert client.get("/api/forms").status_code == 401
    assert client.get("/dashboard").status_code == 401


def test_form_crud_over_api(client):
    form = create_form(client)
    assert form["status"] == "draft"
    assert form["settings"]["submit_button_text"] == "Submit"

    listed = client.get("/api/forms", headers=OWNER).json()
    assert [item["id"] for item in listed] == [form["id"]]

    updated = client.put(
        f"/api/forms/{form['id']}",
        json={"title": "Renamed", "response_count": 50, "settings": {"max_submissions": 5}},
        headers=OWNER,
    ).json()
    assert updated["title"] == "Renamed"
    assert updated["response_count"] == 0
    assert updated["settings"]["max_submissions"] == 5
    assert updated["settings"]["confirmation_message"] == "Thank you for your submission!"

    assert publish(client, form["id"])["status"] == "published"
    archived = client.post(f"/api/forms/{form['id']}/archive", headers=OWNER).json()
    assert archived["status"] == "archived"

    copy = client.post(f"/api/forms/{form['id']}/duplicate", headers=OWNER)
    assert copy.status_code == 201
    assert copy.json()["title"] == "Copy of Renamed"

    stats = client.get("/api/stats", headers=OWNER).json()
    assert stats == {"total": 2, "published": 0, "drafts": 1, "archived": 1, "total_responses": 0}

    assert client.delete(f"/api/forms/{form['id']}", headers=OWNER).json() == {"success": True}
    assert client.get(f"/api/forms/{form['id']}", headers=OWNER).status_code == 404


def test_invalid_definitions_are_rejected(client):
    response = client.post(
        "/api/forms",
        json={"title": "Bad", "fields": [{"type": "dropdown", "label": "Pick", "options": []}]},
        headers=OWNER,
    )
    assert response.status_code == 400
    assert response.json()["detail"] == ["Field 1: add at least one option"]

    bad_status = client.post("/api/forms", json={"title": "Bad", "status": "deleted"}, headers=OWNER)
    assert bad_status.status_code == 400
    assert bad_status.json()["detail"].startswith("Failed to create form")


def test_unknown_action(client):
    form = create_form(client)
    assert client.post(f"/api/forms/{form['id']}/explode", headers=OWNER).status_code == 404


def test_forms_are_private_to_their_owner(client):
    form = create_form(client)
    assert client.get(f"/api/forms/{form['id']}", headers=RESPONDENT).status_code == 404
    assert client.delete(f"/api/forms/{form['id']}", headers=RESPONDENT).status_code == 404
    assert client.get(f"/forms/{form['id']}/responses", headers=RESPONDENT).status_code == 404


def test_unpublished_form_is_closed(client):
    form = create_form(client)
    page = client.get(f"/f/{form['id']}", headers=RESPONDENT)
    assert page.status_code == 200
    assert "This form is not currently accepting responses" in page.text
    assert client.get("/f/missing").status_code == 404


def test_sign_in_required_by_default(client):
    form = create_form(client)
    publish(client, form["id"])
    page = client.get(f"/f/{form['id']}")
    assert "Please sign in to fill out this form" in page.text


def test_fill_and_submit_public_form(client):
    form = create_form(client, settings={"require_auth": False, "confirmation_message": "Thanks a lot!"})
    publish(client, form["id"])

    page = client.get(f"/f/{form['id']}")
    assert page.status_code == 200
    assert "Your name" in page.text
    assert "<h3>Preferences</h3>" in page.text

    invalid = client.post(f"/f/{form['id']}", data={"name": "", "stars": "3"})
    assert invalid.status_code == 400
    assert "This field is required" in invalid.text

    done = client.post(f"/f/{form['id']}", data={"name": "Ada", "colors": ["Red", "Green"], "stars": "4"})
    assert done.status_code == 200
    assert "Thanks a lot!" in done.text

    body = client.get(f"/api/forms/{form['id']}/responses", headers=OWNER).json()
    assert body["stats"]["total"] == 1
    answers = body["responses"][0]["answers"]
    assert answers == {"name": "Ada", "colors": ["Red", "Green"], "stars": 4}
    assert client.get(f"/api/forms/{form['id']}", headers=OWNER).json()["response_count"] == 1


def test_single_response_per_user(client):
    form = create_form(client, settings={"allow_multiple_responses": False})
    publish(client, form["id"])
    assert client.post(f"/f/{form['id']}", data={"name": "Ada"}, headers=RESPONDENT).status_code == 200
    second = client.get(f"/f/{form['id']}", headers=RESPONDENT)
    assert "You have already submitted a response to this form" in second.text
    blocked = client.post(f"/f/{form['id']}", data={"name": "Ada"}, headers=RESPONDENT)
    assert blocked.status_code == 403


def test_response_screens_and_export(client):
    form = create_form(client, settings={"require_auth": False})
    publish(client, form["id"])

    empty_export = client.get(f"/forms/{form['id']}/responses/export", headers=OWNER, follow_redirects=False)
    assert empty_export.status_code == 303
    assert "No+responses+to+export" in empty_export.headers["location"]

    client.post(f"/f/{form['id']}", data={"name": "Ada", "colors": ["Blue"]}, headers=RESPONDENT)

    listing = client.get(f"/forms/{form['id']}/responses", headers=OWNER)
    assert listing.status_code == 200
    assert "Ada" in listing.text

    export = client.get(f"/forms/{form['id']}/responses/export", headers=OWNER)
    assert export.status_code == 200
    assert export.headers["content-type"].startswith("text/csv")
    assert "survey_responses_" in export.headers["content-disposition"]
    header, row = export.text.split("\n")
    assert header == '"Response ID","User Name","User Email","Submitted At","Your name","Favourite colors","Rate us"'
    assert '"Respondent","resp@example.com"' in row
    assert row.endswith('"Ada","Blue","(No answer)"')

    response_id = client.get(f"/api/forms/{form['id']}/responses", headers=OWNER).json()["responses"][0]["id"]
    detail = client.get(f"/forms/{form['id']}/responses/{response_id}", headers=OWNER)
    assert detail.status_code == 200
    assert "Respondent" in detail.text

    deleted = client.post(
        f"/forms/{form['id']}/responses/{response_id}/delete", headers=OWNER, follow_redirects=False
    )
    assert deleted.status_code == 303
    assert client.get(f"/api/forms/{form['id']}", headers=OWNER).json()["response_count"] == 0


def test_file_upload_submission(client):
    fields = [{"id": "cv", "type": "file_upload", "label": "CV", "required": True, "allowed_types": ["application/pdf"]}]
    form = create_form(client, fields=fields, settings={"require_auth": False})
    publish(client, form["id"])

    rejected = client.post(f"/f/{form['id']}", files={"cv": ("notes.txt", b"hello", "text/plain")})
    assert rejected.status_code == 400
    assert "File type not allowed" in rejected.text

    accepted = client.post(f"/f/{form['id']}", files={"cv": ("cv.pdf", b"%PDF-1.4", "application/pdf")})
    assert accepted.status_code == 200

    answer = client.get(f"/api/forms/{form['id']}/responses", headers=OWNER).json()["responses"][0]["answers"]["cv"]
    assert answer["file_name"] == "cv.pdf"
    assert answer["upload_status"] == "uploaded"
    download = client.get(f"/files/{answer['file_id']}")
    assert download.status_code == 200
    assert download.content == b"%PDF-1.4"


def test_rejected_submission_keeps_no_uploaded_files(client, app):
    fields = [
        {"id": "name", "type": "short_text", "label": "Name", "required": True},
        {"id": "cv", "type": "file_upload", "label": "CV"},
    ]
    form = create_form(client, fields=fields, settings={"require_auth": False})
    publish(client, form["id"])
    upload_dir = app.state.ctx.settings.upload_dir

    for _ in range(2):
        rejected = client.post(
            f"/f/{form['id']}", data={"name": ""}, files={"cv": ("cv.txt", b"resume", "text/plain")}
        )
        assert rejected.status_code == 400
    assert list(upload_dir.iterdir()) == []

    accepted = client.post(
        f"/f/{form['id']}", data={"name": "Ada"}, files={"cv": ("cv.txt", b"resume", "text/plain")}
    )
    assert accepted.status_code == 200
    assert len(list(upload_dir.iterdir())) == 1


def test_draft_autosave_and_restore(client, app):
    form = create_form(client)
    publish(client, form["id"])

    queued = client.put(f"/api/drafts/{form['id']}", json={"form_data": {"name": "Half done"}}, headers=RESPONDENT)
    assert queued.status_code == 202
    app.state.ctx.autosaver.flush_all()

    loaded = client.get(f"/api/drafts/{form['id']}", headers=RESPONDENT).json()
    assert loaded["exists"] is True
    assert loaded["data"]["form_data"] == {"name": "Half done"}

    page = client.get(f"/f/{form['id']}", headers=RESPONDENT)
    assert 'value="Half done"' in page.text
    assert "Your saved progress has been restored" in page.text

    client.post(f"/f/{form['id']}", data={"name": "Finished"}, headers=RESPONDENT)
    assert client.get(f"/api/drafts/{form['id']}", headers=RESPONDENT).json() == {"exists": False}


def test_fill_page_autosaves_for_signed_in_users(client, app):
    form = create_form(client, settings={"require_auth": False})
    publish(client, form["id"])
    draft_url = f'data-draft-url="/api/drafts/{form["id"]}"'

    signed_in = client.get(f"/f/{form['id']}", headers=RESPONDENT)
    assert draft_url in signed_in.text
    assert 'method: "PUT"' in signed_in.text
    assert draft_url not in client.get(f"/f/{form['id']}").text

    client.put(
        f"/api/drafts/{form['id']}",
        json={"form_data": {"name": "Grace", "colors": ["Blue"]}},
        headers=RESPONDENT,
    )
    app.state.ctx.autosaver.flush_all()
    restored = client.get(f"/f/{form['id']}", headers=RESPONDENT)
    assert 'value="Grace"' in restored.text
    assert 'value="Blue" checked' in restored.text


def test_progress_counts_only_answered_fields(client):
    form = create_form(client, settings={"require_auth": False, "show_progress_bar": True})
    publish(client, form["id"])

    invalid = client.post(f"/f/{form['id']}", data={"name": "", "stars": ""})
    assert invalid.status_code == 400
    assert '<progress max="3" value="0">' in invalid.text

    partial = client.post(f"/f/{form['id']}", data={"name": "", "stars": "4"})
    assert '<progress max="3" value="1">' in partial.text


def test_draft_payload_validation(client):
    form = create_form(client)
    assert client.put(f"/api/drafts/{form['id']}", json={"form_data": "x"}, headers=RESPONDENT).status_code == 400
    assert client.put("/api/drafts/missing", json={"form_data": {}}, headers=RESPONDENT).status_code == 404
    assert client.delete(f"/api/drafts/{form['id']}", headers=RESPONDENT).json() == {"success": True}


def test_dashboard_pages(client):
    create_form(client, title="Alpha")
    beta = create_form(client, title="Beta")
    publish(client, beta["id"])

    dashboard = client.get("/dashboard", headers=OWNER)
    assert dashboard.status_code == 200
    assert "Alpha" in dashboard.text

    published = client.get("/forms", params={"filter": "published"}, headers=OWNER)
    assert "Beta" in published.text
    assert "Alpha" not in published.text

    searched = client.get("/forms", params={"q": "alp", "sort": "name"}, headers=OWNER)
    assert "Alpha" in searched.text
    assert "Beta" not in searched.text


def test_builder_create_and_actions(client):
    assert client.get("/forms/new", headers=OWNER).status_code == 200

    created = client.post(
        "/forms",
        data={
            "title": "Event signup",
            "description": "",
            "fields_json": '[{"type": "email", "label": "Email", "required": true}]',
            "require_auth": "1",
        },
        headers=OWNER,
        follow_redirects=False,
    )
    assert created.status_code == 303
    location = urlsplit(created.headers["location"])
    assert parse_qs(location.query)["notice"] == ["Form created successfully!"]
    form_id = location.path.split("/")[2]

    edit = client.get(f"/forms/{form_id}/edit", headers=OWNER)
    assert edit.status_code == 200
    assert "Event signup" in edit.text

    action = client.post(f"/forms/{form_id}/publish?next=/forms", headers=OWNER, follow_redirects=False)
    assert action.status_code == 303
    assert action.headers["location"].startswith("/forms?")
    assert "Form+published+successfully" in action.headers["location"]

    offsite = client.post(f"/forms/{form_id}/archive?next=https://evil.example", headers=OWNER, follow_redirects=False)
    assert urlsplit(offsite.headers["location"]).path == "/forms"

    form = client.get(f"/api/forms/{form_id}", headers=OWNER).json()
    assert form["status"] == "archived"
    assert form["fields"][0]["type"] == "email"


@pytest.mark.parametrize("fields_json", ["{broken", '[{"type": "nope", "label": "x"}]'])
def test_builder_shows_definition_errors(client, fields_json):
    response = client.post("/forms", data={"title": "Broken", "fields_json": fields_json}, headers=OWNER)
    assert response.status_code == 400
    assert "notice-error" in response.text


def test_sign_out_redirects(client):
    response = client.post("/auth/sign-out", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/"
