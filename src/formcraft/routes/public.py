from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse, HTMLResponse, RedirectResponse

from formcraft.auth import User, optional_user
from formcraft.config import DEFAULT_FORM_SETTINGS, DEFAULT_FORM_THEME
from formcraft.errors import FormNotFoundError, ResponseServiceError, UploadRejectedError
from formcraft.schema import coerce_answers, input_fields, validate_answers
from formcraft.uploads import is_upload, read_upload, store_upload, upload_content_type
from formcraft.utils import is_blank

logger = logging.getLogger(__name__)

router = APIRouter()


def _load_form(request: Request, form_id: str) -> dict[str, Any]:
    try:
        return request.app.state.ctx.forms.get_form_by_id(form_id)
    except FormNotFoundError:
        raise HTTPException(status_code=404, detail="Form not found")


def _form_settings(form: dict[str, Any]) -> dict[str, Any]:
    return {**DEFAULT_FORM_SETTINGS, **(form.get("settings") or {})}


def fill_progress(fields: list[dict[str, Any]], values: dict[str, Any]) -> dict[str, int]:
    inputs = input_fields(fields)
    answered = sum(1 for field in inputs if not is_blank(values.get(field["id"])))
    return {"answered": answered, "total": len(inputs)}


def _closed_reason(request: Request, form: dict[str, Any], user: User | None) -> str | None:
    """Explain why ``user`` may not fill ``form`` right now, or ``None``."""
    if form.get("status") != "published":
        return "This form is not currently accepting responses"
    settings = _form_settings(form)
    if settings.get("require_auth") and user is None:
        return "Please sign in to fill out this form"
    verdict = request.app.state.ctx.responses.can_user_submit(
        form["id"], user.uid if user else None, settings
    )
    if not verdict.get("can_submit", True):
        return verdict.get("reason") or "You cannot submit this form"
    return None


def _render_fill(
    request: Request,
    form: dict[str, Any],
    values: dict[str, Any],
    errors: dict[str, str],
    messages: list[str] | None = None,
    status_code: int = 200,
    user: User | None = None,
) -> HTMLResponse:
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "form_fill.html",
        {
            "form": form,
            "fields": form.get("fields", []),
            "values": values,
            "errors": errors,
            "messages": messages or [],
            "progress": fill_progress(form.get("fields", []), values),
            # Drafts are kept per signed-in user only.
            "autosave": user is not None,
            "settings": _form_settings(form),
            "theme": {**DEFAULT_FORM_THEME, **(form.get("theme") or {})},
        },
        status_code=status_code,
    )


def _render_closed(request: Request, form: dict[str, Any], reason: str, status_code: int = 200) -> HTMLResponse:
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "form_closed.html",
        {"form": form, "reason": reason},
        status_code=status_code,
    )


@router.get("/f/{form_id}", response_class=HTMLResponse, tags=["public"])
async def fill_form(request: Request, form_id: str) -> HTMLResponse:
    form = _load_form(request, form_id)
    user = optional_user(request)
    reason = _closed_reason(request, form, user)
    if reason:
        return _render_closed(request, form, reason)

    values: dict[str, Any] = {}
    messages: list[str] = []
    if user is not None:
        draft = request.app.state.ctx.drafts.load_draft(form_id, user.uid)
        if draft.get("exists"):
            values = dict(draft["data"].get("form_data") or {})
            messages.append("Your saved progress has been restored")
    return _render_fill(request, form, values, {}, messages, user=user)


@router.post("/f/{form_id}", response_class=HTMLResponse, tags=["public"])
async def submit_form(request: Request, form_id: str) -> HTMLResponse:
    ctx = request.app.state.ctx
    templates = request.app.state.templates
    form = _load_form(request, form_id)
    user = optional_user(request)
    reason = _closed_reason(request, form, user)
    if reason:
        return _render_closed(request, form, reason, status_code=403)

    form_data = await request.form()
    fields = form.get("fields", [])
    answers: dict[str, Any] = {}
    upload_errors: dict[str, str] = {}
    accepted_uploads: dict[str, tuple[Any, bytes]] = {}

    for field in input_fields(fields):
        field_id = field["id"]
        if field["type"] == "checkboxes":
            answers[field_id] = [str(v) for v in form_data.getlist(field_id) if v not in (None, "")]
            continue
        if field["type"] == "file_upload":
            upload = form_data.get(field_id)
            if is_upload(upload):
                try:
                    content = await read_upload(upload, field, ctx.settings)
                except UploadRejectedError as exc:
                    upload_errors[field_id] = str(exc)
                    continue
                accepted_uploads[field_id] = (upload, content)
                answers[field_id] = {"file_name": upload.filename}
            continue
        raw_value = form_data.get(field_id)
        answers[field_id] = str(raw_value).strip() if raw_value is not None else ""

    errors = {**validate_answers(fields, answers), **upload_errors}
    if errors:
        values = {key: value for key, value in answers.items() if not isinstance(value, dict)}
        return _render_fill(
            request,
            form,
            values,
            errors,
            ["Please fix the errors below"],
            status_code=400,
            user=user,
        )

    # Files reach disk only once every answer has passed validation.
    for field_id, (upload, content) in accepted_uploads.items():
        answers[field_id] = store_upload(
            upload.filename, upload_content_type(upload), content, form_id, ctx.storage, ctx.settings
        )

    cleaned, _ = coerce_answers(fields, answers)
    metadata = {
        "user_name": user.display_name if user else "",
        "user_email": user.email if user else "",
        "user_agent": request.headers.get("user-agent", ""),
        "submitted_from": "web",
    }
    user_id = user.uid if user else None
    try:
        ctx.responses.submit_response(form_id, user_id, cleaned, metadata)
    except ResponseServiceError as exc:
        return _render_fill(request, form, answers, {}, [str(exc)], status_code=500, user=user)

    if user_id is not None:
        ctx.autosaver.discard(form_id, user_id)
        ctx.drafts.delete_draft(form_id, user_id)

    return templates.TemplateResponse(
        request,
        "form_success.html",
        {"form": form, "message": _form_settings(form).get("confirmation_message")},
    )


@router.get("/files/{file_id}", tags=["public"])
async def download_file(request: Request, file_id: str) -> FileResponse:
    ctx = request.app.state.ctx
    file_meta = ctx.storage.files.get_file(file_id)
    if not file_meta:
        raise HTTPException(status_code=404, detail="File not found")
    path = Path(file_meta["stored_path"]).resolve()
    if ctx.settings.upload_dir.resolve() not in path.parents:
        raise HTTPException(status_code=400, detail="Invalid file path")
    return FileResponse(path, filename=file_meta.get("original_name") or file_id)


@router.post("/auth/sign-out", tags=["public"])
async def sign_out(request: Request) -> RedirectResponse:
    response = RedirectResponse("/", status_code=303)
    request.app.state.ctx.auth.sign_out(response)
    return response
