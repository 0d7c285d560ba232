from __future__ import annotations

import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator
from urllib.parse import urlencode

import markupsafe
from fastapi import FastAPI
from fastapi.templating import Jinja2Templates

from formcraft.config import BASE_DIR, Settings, ensure_dirs
from formcraft.context import AppContext
from formcraft.dates import format_date, format_dt, format_last_response, format_relative_time
from formcraft.protocols import Storage
from formcraft.rendering import render_field
from formcraft.routes.api import router as api_router
from formcraft.routes.dashboard import router as dashboard_router
from formcraft.routes.public import router as public_router
from formcraft.routes.responses import router as responses_router
from formcraft.services.responses import answer_to_text


def _tojson_attr(value: Any) -> markupsafe.Markup:
    """Escape a JSON string so it can be embedded in an HTML attribute."""
    return markupsafe.Markup(markupsafe.escape(json.dumps(value, ensure_ascii=False)))


def build_query(base: dict[str, Any], **overrides: Any) -> str:
    params = {k: v for k, v in base.items() if v not in (None, "")}
    for key, value in overrides.items():
        if value is None:
            params.pop(key, None)
        else:
            params[key] = str(value)
    return urlencode(params, doseq=True)


def create_app(settings: Settings | None = None, storage: Storage | None = None) -> FastAPI:
    settings = settings or Settings()
    ensure_dirs(settings)
    ctx = AppContext.create(settings, storage)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        ctx.close()

    app = FastAPI(
        title="FormCraft",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "dashboard", "description": "Form owner pages (HTML)"},
            {"name": "public", "description": "Public form filling (HTML)"},
            {"name": "responses", "description": "Response screens (HTML)"},
            {"name": "api/forms", "description": "REST API: forms"},
            {"name": "api/responses", "description": "REST API: responses"},
            {"name": "api/drafts", "description": "REST API: drafts"},
            {"name": "system", "description": "System"},
        ],
    )

    app.state.ctx = ctx

    templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))
    app.state.templates = templates

    templates.env.filters["tojson_attr"] = _tojson_attr
    templates.env.globals["render_field"] = render_field
    templates.env.globals["format_date"] = format_date
    templates.env.globals["format_dt"] = format_dt
    templates.env.globals["format_relative_time"] = format_relative_time
    templates.env.globals["format_last_response"] = format_last_response
    templates.env.globals["answer_to_text"] = answer_to_text
    templates.env.globals["build_query"] = build_query

    app.include_router(dashboard_router)
    app.include_router(public_router)
    app.include_router(responses_router)
    app.include_router(api_router)

    return app
