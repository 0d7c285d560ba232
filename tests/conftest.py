from __future__ import annotations

import pytest

from formcraft.config import Settings, ensure_dirs
from formcraft.repo_json import JSONStorage
from formcraft.repo_sqlite import SQLiteStorage


@pytest.fixture
def settings(tmp_path, monkeypatch):
    monkeypatch.setenv("STORAGE_BACKEND", "sqlite")
    monkeypatch.setenv("SQLITE_PATH", str(tmp_path / "formcraft.db"))
    monkeypatch.setenv("JSON_PATH", str(tmp_path / "formcraft.json"))
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("AUTH_MODE", "header")
    monkeypatch.delenv("UPLOAD_MAX_BYTES", raising=False)
    result = Settings()
    ensure_dirs(result)
    return result


@pytest.fixture(params=["json", "sqlite"])
def storage(request, settings):
    if request.param == "json":
        backend = JSONStorage(settings.json_path)
    else:
        backend = SQLiteStorage(settings.sqlite_path)
    yield backend
    backend.close()


@pytest.fixture
def app(settings):
    from formcraft.app import create_app

    application = create_app(settings)
    yield application
    application.state.ctx.close()


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    return TestClient(app)
