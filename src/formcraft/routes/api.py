from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from formcraft.auth import User, require_user
from formcraft.errors import FormNotFoundError, FormServiceError, ResponseServiceError
from formcraft.field_types import field_type_to_dict, get_all_field_types
from formcraft.schema import normalize_fields
from formcraft.services.responses import get_response_stats

router = APIRouter()

_FORM_KEYS = ("title", "description", "status", "fields", "settings", "theme")


def _json(data: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(jsonable_encoder(data), status_code=status_code)


def _service_error(exc: FormServiceError) -> HTTPException:
    if isinstance(exc, FormNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def _owned_form(request: Request, form_id: str, user: User) -> dict[str, Any]:
    try:
        form = request.app.state.ctx.forms.get_form_by_id(form_id)
    except FormServiceError as exc:
        raise _service_error(exc)
    if form.get("user_id") != user.uid:
        raise HTTPException(status_code=404, detail="Form not found")
    return form


async def _form_payload(request: Request) -> dict[str, Any]:
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be JSON")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Request body must be an object")
    data = {key: payload[key] for key in _FORM_KEYS if key in payload}
    for key in ("settings", "theme"):
        if key in data and not isinstance(data[key], dict):
            raise HTTPException(status_code=400, detail=f"{key} must be an object")
    if "fields" in data:
        if not isinstance(data["fields"], list):
            raise HTTPException(status_code=400, detail="fields must be a list")
        fields, errors = normalize_fields(data["fields"])
        if errors:
            raise HTTPException(status_code=400, detail=errors)
        data["fields"] = fields
    return data


@router.get("/api/field-types", tags=["api/forms"])
async def api_field_types() -> JSONResponse:
    return _json([field_type_to_dict(field_type) for field_type in get_all_field_types()])


@router.get("/api/forms", tags=["api/forms"])
async def api_list_forms(request: Request, user: User = Depends(require_user)) -> JSONResponse:
    try:
        forms = request.app.state.ctx.forms.get_user_forms(user.uid)
    except FormServiceError as exc:
        raise _service_error(exc)
    return _json(forms)


@router.post("/api/forms", tags=["api/forms"])
async def api_create_form(request: Request, user: User = Depends(require_user)) -> JSONResponse:
    service = request.app.state.ctx.forms
    data = await _form_payload(request)
    try:
        form_id = service.create_form(user.uid, data)
        form = service.get_form_by_id(form_id)
    except FormServiceError as exc:
        raise _service_error(exc)
    return _json(form, status_code=201)


@router.get("/api/forms/{form_id}", tags=["api/forms"])
async def api_get_form(request: Request, form_id: str, user: User = Depends(require_user)) -> JSONResponse:
    return _json(_owned_form(request, form_id, user))


@router.put("/api/forms/{form_id}", tags=["api/forms"])
async def api_update_form(request: Request, form_id: str, user: User = Depends(require_user)) -> JSONResponse:
    _owned_form(request, form_id, user)
    data = await _form_payload(request)
    try:
        updated = request.app.state.ctx.forms.update_form(form_id, data)
    except FormServiceError as exc:
        raise _service_error(exc)
    return _json(updated)


@router.delete("/api/forms/{form_id}", tags=["api/forms"])
async def api_delete_form(request: Request, form_id: str, user: User = Depends(require_user)) -> JSONResponse:
    _owned_form(request, form_id, user)
    try:
        request.app.state.ctx.forms.delete_form(form_id)
    except FormServiceError as exc:
        raise _service_error(exc)
    return _json({"success": True})


@router.post("/api/forms/{form_id}/duplicate", tags=["api/forms"])
async def api_duplicate_form(request: Request, form_id: str, user: User = Depends(require_user)) -> JSONResponse:
    _owned_form(request, form_id, user)
    try:
        duplicated = request.app.state.ctx.forms.duplicate_form(form_id, user.uid)
    except FormServiceError as exc:
        raise _service_error(exc)
    return _json(duplicated, status_code=201)


@router.post("/api/forms/{form_id}/{action}", tags=["api/forms"])
async def api_form_action(
    request: Request, form_id: str, action: str, user: User = Depends(require_user)
) -> JSONResponse:
    service = request.app.state.ctx.forms
    handlers = {
        "publish": service.publish_form,
        "unpublish": service.unpublish_form,
        "archive": service.archive_form,
        "unarchive": service.unarchive_form,
    }
    handler = handlers.get(action)
    if handler is None:
        raise HTTPException(status_code=404, detail="Unknown action")
    _owned_form(request, form_id, user)
    try:
        form = handler(form_id)
    except FormServiceError as exc:
        raise _service_error(exc)
    return _json(form)


@router.get("/api/stats", tags=["api/forms"])
async def api_stats(request: Request, user: User = Depends(require_user)) -> JSONResponse:
    try:
        stats = request.app.state.ctx.forms.get_form_stats(user.uid)
    except FormServiceError as exc:
        raise _service_error(exc)
    return _json(stats)


@router.get("/api/forms/{form_id}/responses", tags=["api/responses"])
async def api_list_responses(
    request: Request, form_id: str, user: User = Depends(require_user)
) -> JSONResponse:
    _owned_form(request, form_id, user)
    try:
        responses = request.app.state.ctx.responses.get_form_responses(form_id)
    except ResponseServiceError as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    return _json({"responses": responses, "stats": get_response_stats(responses)})


@router.put("/api/drafts/{form_id}", tags=["api/drafts"])
async def api_save_draft(request: Request, form_id: str, user: User = Depends(require_user)) -> JSONResponse:
    ctx = request.app.state.ctx
    try:
        ctx.forms.get_form_by_id(form_id)
    except FormServiceError as exc:
        raise _service_error(exc)
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be JSON")
    form_data = payload.get("form_data") if isinstance(payload, dict) else None
    if not isinstance(form_data, dict):
        raise HTTPException(status_code=400, detail="form_data must be an object")
    metadata = {"user_agent": request.headers.get("user-agent", "")}
    ctx.autosaver.submit(form_id, user.uid, form_data, metadata)
    return _json({"queued": True}, status_code=202)


@router.get("/api/drafts/{form_id}", tags=["api/drafts"])
async def api_load_draft(request: Request, form_id: str, user: User = Depends(require_user)) -> JSONResponse:
    return _json(request.app.state.ctx.drafts.load_draft(form_id, user.uid))


@router.delete("/api/drafts/{form_id}", tags=["api/drafts"])
async def api_delete_draft(request: Request, form_id: str, user: User = Depends(require_user)) -> JSONResponse:
    ctx = request.app.state.ctx
    ctx.autosaver.discard(form_id, user.uid)
    return _json(ctx.drafts.delete_draft(form_id, user.uid))
