from __future__ import annotations

from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, func, update
from sqlalchemy.orm import sessionmaker

from formcraft.models import Base, DraftModel, FileModel, FormModel, ResponseModel
from formcraft.utils import dumps_json, ensure_aware, loads_json

_FORM_JSON_COLUMNS = {
    "fields": "fields_json",
    "settings": "settings_json",
    "theme": "theme_json",
}


def _aware(value: Any) -> Any:
    return ensure_aware(value) if value is not None else None


class SQLiteFormRepo:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._Session = session_factory

    def list_forms_by_user(self, user_id: str) -> list[dict[str, Any]]:
        with self._Session() as session:
            rows = (
                session.query(FormModel)
                .filter(FormModel.user_id == user_id)
                .order_by(FormModel.updated_at.desc())
                .all()
            )
            return [self._to_dict(row) for row in rows]

    def get_form(self, form_id: str) -> dict[str, Any] | None:
        with self._Session() as session:
            row = session.get(FormModel, form_id)
            return self._to_dict(row) if row else None

    def create_form(self, form: dict[str, Any]) -> None:
        with self._Session() as session:
            row = FormModel(
                id=form["id"],
                user_id=form["user_id"],
                title=form["title"],
                description=form["description"],
                status=form["status"],
                fields_json=dumps_json(form["fields"]),
                settings_json=dumps_json(form["settings"]),
                theme_json=dumps_json(form["theme"]),
                response_count=form.get("response_count", 0),
                created_at=form["created_at"],
                updated_at=form["updated_at"],
            )
            session.add(row)
            session.commit()

    def update_form(self, form_id: str, updates: dict[str, Any]) -> dict[str, Any]:
        with self._Session() as session:
            row = session.get(FormModel, form_id)
            if not row:
                raise KeyError(form_id)
            for key, value in updates.items():
                if key in _FORM_JSON_COLUMNS:
                    setattr(row, _FORM_JSON_COLUMNS[key], dumps_json(value))
                elif hasattr(FormModel, key):
                    setattr(row, key, value)
            session.commit()
            session.refresh(row)
            return self._to_dict(row)

    def delete_form(self, form_id: str) -> None:
        with self._Session() as session:
            row = session.get(FormModel, form_id)
            if row:
                session.delete(row)
                session.commit()

    def adjust_response_count(self, form_id: str, delta: int) -> None:
        with self._Session() as session:
            result = session.execute(
                update(FormModel)
                .where(FormModel.id == form_id)
                .values(
                    response_count=func.max(
                        func.coalesce(FormModel.response_count, 0) + delta, 0
                    )
                )
            )
            if result.rowcount == 0:
                raise KeyError(form_id)
            session.commit()

    @staticmethod
    def _to_dict(row: FormModel) -> dict[str, Any]:
        return {
            "id": row.id,
            "user_id": row.user_id,
            "title": row.title or "",
            "description": row.description or "",
            "status": row.status or "draft",
            "fields": loads_json(row.fields_json) or [],
            "settings": loads_json(row.settings_json) or {},
            "theme": loads_json(row.theme_json) or {},
            "response_count": row.response_count or 0,
            "created_at": _aware(row.created_at),
            "updated_at": _aware(row.updated_at),
        }


class SQLiteResponseRepo:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._Session = session_factory

    def list_responses(self, form_id: str) -> list[dict[str, Any]]:
        with self._Session() as session:
            rows = (
                session.query(ResponseModel)
                .filter(ResponseModel.form_id == form_id)
                .order_by(ResponseModel.submitted_at.desc())
                .all()
            )
            return [self._to_dict(row) for row in rows]

    def get_response(self, response_id: str) -> dict[str, Any] | None:
        with self._Session() as session:
            row = session.get(ResponseModel, response_id)
            return self._to_dict(row) if row else None

    def create_response(self, response: dict[str, Any]) -> None:
        with self._Session() as session:
            row = ResponseModel(
                id=response["id"],
                form_id=response["form_id"],
                user_id=response["user_id"],
                answers_json=dumps_json(response["answers"]),
                metadata_json=dumps_json(response.get("metadata") or {}),
                status=response.get("status", "completed"),
                submitted_at=response["submitted_at"],
            )
            session.add(row)
            session.commit()

    def delete_response(self, response_id: str) -> None:
        with self._Session() as session:
            row = session.get(ResponseModel, response_id)
            if row:
                session.delete(row)
                session.commit()

    def count_responses(self, form_id: str, user_id: str | None = None) -> int:
        with self._Session() as session:
            query = session.query(ResponseModel).filter(ResponseModel.form_id == form_id)
            if user_id is not None:
                query = query.filter(ResponseModel.user_id == user_id)
            return query.count()

    @staticmethod
    def _to_dict(row: ResponseModel) -> dict[str, Any]:
        return {
            "id": row.id,
            "form_id": row.form_id,
            "user_id": row.user_id,
            "answers": loads_json(row.answers_json) or {},
            "metadata": loads_json(row.metadata_json) or {},
            "status": row.status or "completed",
            "submitted_at": _aware(row.submitted_at),
        }


class SQLiteDraftRepo:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._Session = session_factory

    def put_draft(self, draft: dict[str, Any]) -> None:
        with self._Session() as session:
            row = session.get(DraftModel, draft["id"]) or DraftModel(id=draft["id"])
            row.form_id = draft["form_id"]
            row.user_id = draft["user_id"]
            row.form_data_json = dumps_json(draft.get("form_data") or {})
            row.metadata_json = dumps_json(draft.get("metadata") or {})
            row.updated_at = draft["updated_at"]
            session.add(row)
            session.commit()

    def get_draft(self, draft_id: str) -> dict[str, Any] | None:
        with self._Session() as session:
            row = session.get(DraftModel, draft_id)
            if not row:
                return None
            return {
                "id": row.id,
                "form_id": row.form_id,
                "user_id": row.user_id,
                "form_data": loads_json(row.form_data_json) or {},
                "metadata": loads_json(row.metadata_json) or {},
                "updated_at": _aware(row.updated_at),
            }

    def delete_draft(self, draft_id: str) -> None:
        with self._Session() as session:
            row = session.get(DraftModel, draft_id)
            if row:
                session.delete(row)
                session.commit()


class SQLiteFileRepo:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._Session = session_factory

    def create_file(self, file_meta: dict[str, Any]) -> None:
        with self._Session() as session:
            row = FileModel(
                id=file_meta["id"],
                form_id=file_meta["form_id"],
                original_name=file_meta["original_name"],
                stored_path=file_meta["stored_path"],
                content_type=file_meta["content_type"],
                size=file_meta["size"],
                created_at=file_meta["created_at"],
            )
            session.add(row)
            session.commit()

    def get_file(self, file_id: str) -> dict[str, Any] | None:
        with self._Session() as session:
            row = session.get(FileModel, file_id)
            if not row:
                return None
            return {
                "id": row.id,
                "form_id": row.form_id,
                "original_name": row.original_name,
                "stored_path": row.stored_path,
                "content_type": row.content_type,
                "size": row.size,
                "created_at": _aware(row.created_at),
            }


class SQLiteStorage:
    def __init__(self, db_path: Path) -> None:
        self._engine = create_engine(f"sqlite:///{db_path}", future=True)
        self._Session = sessionmaker(self._engine, expire_on_commit=False)
        Base.metadata.create_all(self._engine)
        self.forms = SQLiteFormRepo(self._Session)
        self.responses = SQLiteResponseRepo(self._Session)
        self.drafts = SQLiteDraftRepo(self._Session)
        self.files = SQLiteFileRepo(self._Session)

    def close(self) -> None:
        self._engine.dispose()
