from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse

from formcraft.auth import User, require_user
from formcraft.config import LAYOUT_TYPES
from formcraft.errors import FormNotFoundError, ResponseServiceError
from formcraft.services.responses import export_filename, get_response_stats

router = APIRouter()


def owned_form(request: Request, form_id: str, user: User = Depends(require_user)) -> dict[str, Any]:
    try:
        form = request.app.state.ctx.forms.get_form_by_id(form_id)
    except FormNotFoundError:
        raise HTTPException(status_code=404, detail="Form not found")
    if form.get("user_id") != user.uid:
        raise HTTPException(status_code=404, detail="Form not found")
    return form


def _columns(form: dict[str, Any]) -> list[dict[str, Any]]:
    return [field for field in form.get("fields", []) if field.get("type") not in LAYOUT_TYPES]


@router.get("/forms/{form_id}/responses", response_class=HTMLResponse, tags=["responses"])
async def list_responses(
    request: Request, form_id: str, form: dict[str, Any] = Depends(owned_form)
) -> HTMLResponse:
    templates = request.app.state.templates
    responses = request.app.state.ctx.responses.get_form_responses(form_id)
    return templates.TemplateResponse(
        request,
        "responses.html",
        {
            "form": form,
            "responses": responses,
            "columns": _columns(form),
            "stats": get_response_stats(responses),
            "notice": request.query_params.get("notice"),
            "level": request.query_params.get("level", "success"),
        },
    )


@router.get("/forms/{form_id}/responses/export", tags=["responses"])
async def export_responses(
    request: Request, form_id: str, form: dict[str, Any] = Depends(owned_form)
) -> PlainTextResponse:
    content = request.app.state.ctx.responses.export_responses_to_csv(form_id, form.get("fields", []))
    if content is None:
        query = urlencode({"notice": "No responses to export", "level": "error"})
        return RedirectResponse(f"/forms/{form_id}/responses?{query}", status_code=303)
    filename = export_filename(form.get("title", ""))
    return PlainTextResponse(
        content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get(
    "/forms/{form_id}/responses/{response_id}", response_class=HTMLResponse, tags=["responses"]
)
async def response_detail(
    request: Request,
    form_id: str,
    response_id: str,
    form: dict[str, Any] = Depends(owned_form),
) -> HTMLResponse:
    templates = request.app.state.templates
    response = request.app.state.ctx.responses.get_response_by_id(response_id)
    if not response or response.get("form_id") != form_id:
        raise HTTPException(status_code=404, detail="Response not found")
    return templates.TemplateResponse(
        request,
        "response_detail.html",
        {"form": form, "response": response, "columns": _columns(form)},
    )


@router.post("/forms/{form_id}/responses/{response_id}/delete", tags=["responses"])
async def delete_response(
    request: Request,
    form_id: str,
    response_id: str,
    form: dict[str, Any] = Depends(owned_form),
) -> RedirectResponse:
    service = request.app.state.ctx.responses
    response = service.get_response_by_id(response_id)
    if not response or response.get("form_id") != form_id:
        raise HTTPException(status_code=404, detail="Response not found")
    try:
        service.delete_response(response_id, form_id)
        notice = {"notice": "Response deleted", "level": "success"}
    except ResponseServiceError:
        notice = {"notice": "Failed to delete response", "level": "error"}
    return RedirectResponse(f"/forms/{form_id}/responses?{urlencode(notice)}", status_code=303)


@router.get("/healthz", tags=["system"])
async def healthz() -> dict[str, str]:
    return {"status": "ok"}
