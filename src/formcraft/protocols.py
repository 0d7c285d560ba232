from __future__ import annotations

from typing import Any, Protocol


class FormRepository(Protocol):
    def list_forms_by_user(self, user_id: str) -> list[dict[str, Any]]: ...

    def get_form(self, form_id: str) -> dict[str, Any] | None: ...

    def create_form(self, form: dict[str, Any]) -> None: ...

    def update_form(self, form_id: str, updates: dict[str, Any]) -> dict[str, Any]: ...

    def delete_form(self, form_id: str) -> None: ...

    def adjust_response_count(self, form_id: str, delta: int) -> None: ...


class ResponseRepository(Protocol):
    def list_responses(self, form_id: str) -> list[dict[str, Any]]: ...

    def get_response(self, response_id: str) -> dict[str, Any] | None: ...

    def create_response(self, response: dict[str, Any]) -> None: ...

    def delete_response(self, response_id: str) -> None: ...

    def count_responses(self, form_id: str, user_id: str | None = None) -> int: ...


class DraftRepository(Protocol):
    def put_draft(self, draft: dict[str, Any]) -> None: ...

    def get_draft(self, draft_id: str) -> dict[str, Any] | None: ...

    def delete_draft(self, draft_id: str) -> None: ...


class FileRepository(Protocol):
    def create_file(self, file_meta: dict[str, Any]) -> None: ...

    def get_file(self, file_id: str) -> dict[str, Any] | None: ...


class Storage(Protocol):
    forms: FormRepository
    responses: ResponseRepository
    drafts: DraftRepository
    files: FileRepository

    def close(self) -> None: ...
