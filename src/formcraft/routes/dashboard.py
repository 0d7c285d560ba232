from __future__ import annotations

from typing import Any
from urllib.parse import urlencode, urlsplit

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from formcraft.auth import User, require_user
from formcraft.config import DEFAULT_FORM_SETTINGS, DEFAULT_FORM_THEME, FORM_STATUSES
from formcraft.errors import FormNotFoundError, FormServiceError
from formcraft.field_types import FieldCategory, get_fields_by_category
from formcraft.listing import FILTER_OPTIONS, SORT_OPTIONS, FormListState, status_counts
from formcraft.schema import parse_fields_json
from formcraft.utils import dumps_json

router = APIRouter()

_PALETTE_CATEGORIES = (
    ("Text", FieldCategory.TEXT),
    ("Number", FieldCategory.NUMBER),
    ("Choice", FieldCategory.CHOICE),
    ("Date & Time", FieldCategory.DATE),
    ("File", FieldCategory.FILE),
    ("Layout", FieldCategory.LAYOUT),
)


def resolve_redirect_target(next_path: Any, default: str = "/forms") -> str:
    candidate = str(next_path or "").strip()
    if not candidate:
        return default
    if not candidate.startswith("/") or candidate.startswith("//"):
        return default
    parsed = urlsplit(candidate)
    if parsed.scheme or parsed.netloc:
        return default
    if not (parsed.path.startswith("/forms") or parsed.path.startswith("/dashboard")):
        return default
    if parsed.query:
        return f"{parsed.path}?{parsed.query}"
    return parsed.path


def with_notice(target: str, notices: list[tuple[str, str]]) -> str:
    if not notices:
        return target
    level, message = notices[-1]
    separator = "&" if "?" in target else "?"
    return f"{target}{separator}{urlencode({'notice': message, 'level': level})}"


def form_list_state(request: Request, user: User = Depends(require_user)) -> FormListState:
    return FormListState(request.app.state.ctx.forms, user.uid)


def _ensure_owner(request: Request, form_id: str, user: User) -> dict[str, Any]:
    try:
        form = request.app.state.ctx.forms.get_form_by_id(form_id)
    except FormNotFoundError:
        raise HTTPException(status_code=404, detail="Form not found")
    if form.get("user_id") != user.uid:
        raise HTTPException(status_code=404, detail="Form not found")
    return form


def _builder_context(
    request: Request, form: dict[str, Any] | None, fields: list[dict[str, Any]], errors: list[str]
) -> dict[str, Any]:
    return {
        "form": form,
        "fields_json": dumps_json(fields),
        "palette": [(label, get_fields_by_category(category)) for label, category in _PALETTE_CATEGORIES],
        "settings": {**DEFAULT_FORM_SETTINGS, **((form or {}).get("settings") or {})},
        "theme": {**DEFAULT_FORM_THEME, **((form or {}).get("theme") or {})},
        "errors": errors,
        "notice": request.query_params.get("notice"),
        "level": request.query_params.get("level", "success"),
    }


def _optional_int(value: Any) -> int | None:
    text = str(value or "").strip()
    if not text:
        return None
    try:
        number = int(text)
    except ValueError:
        return None
    return number if number > 0 else None


def _form_payload(form_data: Any, fields: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "title": str(form_data.get("title", "")).strip(),
        "description": str(form_data.get("description", "")).strip(),
        "fields": fields,
        "settings": {
            "submit_button_text": str(form_data.get("submit_button_text") or "Submit").strip(),
            "confirmation_message": str(
                form_data.get("confirmation_message") or DEFAULT_FORM_SETTINGS["confirmation_message"]
            ).strip(),
            "max_submissions": _optional_int(form_data.get("max_submissions")),
            "allow_multiple_responses": bool(form_data.get("allow_multiple_responses")),
            "require_auth": bool(form_data.get("require_auth")),
            "show_progress_bar": bool(form_data.get("show_progress_bar")),
        },
        "theme": {
            "primary_color": str(form_data.get("primary_color") or DEFAULT_FORM_THEME["primary_color"]),
            "background_color": str(
                form_data.get("background_color") or DEFAULT_FORM_THEME["background_color"]
            ),
            "font_family": str(form_data.get("font_family") or DEFAULT_FORM_THEME["font_family"]),
        },
    }


@router.get("/", response_class=HTMLResponse, tags=["dashboard"])
async def home(request: Request) -> RedirectResponse:
    return RedirectResponse("/dashboard")


@router.get("/dashboard", response_class=HTMLResponse, tags=["dashboard"])
async def overview(
    request: Request, state: FormListState = Depends(form_list_state)
) -> HTMLResponse:
    templates = request.app.state.templates
    state.fetch()
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "stats": state.stats,
            "recent_forms": state.visible(sort_by="updated")[:5],
            "error": state.error,
            "notice": request.query_params.get("notice"),
            "level": request.query_params.get("level", "success"),
        },
    )


@router.get("/forms", response_class=HTMLResponse, tags=["dashboard"])
async def list_forms(
    request: Request, state: FormListState = Depends(form_list_state)
) -> HTMLResponse:
    templates = request.app.state.templates
    state.fetch()

    active_filter = request.query_params.get("filter", "all")
    if active_filter not in FILTER_OPTIONS:
        active_filter = "all"
    sort_by = request.query_params.get("sort", "updated")
    if sort_by not in SORT_OPTIONS:
        sort_by = "updated"
    search = request.query_params.get("q", "")

    return templates.TemplateResponse(
        request,
        "forms.html",
        {
            "forms": state.visible(active_filter, search, sort_by),
            "counts": status_counts(state.forms),
            "filters": FILTER_OPTIONS,
            "sort_options": SORT_OPTIONS,
            "active_filter": active_filter,
            "sort": sort_by,
            "q": search,
            "query": dict(request.query_params),
            "error": state.error,
            "notice": request.query_params.get("notice"),
            "level": request.query_params.get("level", "success"),
        },
    )


@router.get("/forms/new", response_class=HTMLResponse, tags=["dashboard"])
async def new_form(request: Request, user: User = Depends(require_user)) -> HTMLResponse:
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request, "form_builder.html", _builder_context(request, None, [], [])
    )


@router.post("/forms", response_class=HTMLResponse, tags=["dashboard"])
async def create_form(
    request: Request, state: FormListState = Depends(form_list_state)
) -> HTMLResponse:
    templates = request.app.state.templates
    form_data = await request.form()
    fields, errors = parse_fields_json(str(form_data.get("fields_json", "")))
    payload = _form_payload(form_data, fields)
    if not payload["title"]:
        errors.append("A form title is required")
    if errors:
        return templates.TemplateResponse(
            request,
            "form_builder.html",
            _builder_context(request, payload, fields, errors),
            status_code=400,
        )
    try:
        created = state.create(payload)
    except FormServiceError:
        return templates.TemplateResponse(
            request,
            "form_builder.html",
            _builder_context(request, payload, fields, [state.notices[-1][1]]),
            status_code=500,
        )
    return RedirectResponse(with_notice(f"/forms/{created['id']}/edit", state.notices), status_code=303)


@router.get("/forms/{form_id}/edit", response_class=HTMLResponse, tags=["dashboard"])
async def edit_form(
    request: Request, form_id: str, user: User = Depends(require_user)
) -> HTMLResponse:
    templates = request.app.state.templates
    form = _ensure_owner(request, form_id, user)
    return templates.TemplateResponse(
        request, "form_builder.html", _builder_context(request, form, form.get("fields", []), [])
    )


@router.post("/forms/{form_id}", response_class=HTMLResponse, tags=["dashboard"])
async def update_form(
    request: Request,
    form_id: str,
    user: User = Depends(require_user),
    state: FormListState = Depends(form_list_state),
) -> HTMLResponse:
    templates = request.app.state.templates
    form = _ensure_owner(request, form_id, user)
    form_data = await request.form()
    fields, errors = parse_fields_json(str(form_data.get("fields_json", "")))
    payload = _form_payload(form_data, fields)
    if not payload["title"]:
        errors.append("A form title is required")
    status = str(form_data.get("status", "")).strip()
    if status:
        if status not in FORM_STATUSES:
            errors.append(f"Unknown status: {status}")
        payload["status"] = status
    if errors:
        return templates.TemplateResponse(
            request,
            "form_builder.html",
            _builder_context(request, {**form, **payload}, fields, errors),
            status_code=400,
        )
    try:
        state.update(form_id, payload)
    except FormServiceError:
        return templates.TemplateResponse(
            request,
            "form_builder.html",
            _builder_context(request, {**form, **payload}, fields, [state.notices[-1][1]]),
            status_code=500,
        )
    return RedirectResponse(with_notice(f"/forms/{form_id}/edit", state.notices), status_code=303)


_ACTIONS = {
    "publish": FormListState.publish,
    "unpublish": FormListState.unpublish,
    "archive": FormListState.archive,
    "unarchive": FormListState.unarchive,
    "duplicate": FormListState.duplicate,
    "delete": FormListState.delete,
}


@router.post("/forms/{form_id}/{action}", tags=["dashboard"])
async def form_action(
    request: Request,
    form_id: str,
    action: str,
    user: User = Depends(require_user),
    state: FormListState = Depends(form_list_state),
) -> RedirectResponse:
    handler = _ACTIONS.get(action)
    if handler is None:
        raise HTTPException(status_code=404, detail="Unknown action")
    _ensure_owner(request, form_id, user)
    target = resolve_redirect_target(request.query_params.get("next"))
    try:
        handler(state, form_id)
    except FormServiceError:
        pass
    return RedirectResponse(with_notice(target, state.notices), status_code=303)
