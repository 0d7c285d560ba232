from __future__ import annotations

from typing import Any

from formcraft.config import Settings
from formcraft.errors import UploadRejectedError
from formcraft.protocols import Storage
from formcraft.utils import new_ulid, now_utc, to_iso

DEFAULT_MAX_SIZE_MB = 10
CHUNK_SIZE = 64 * 1024


def content_type_allowed(content_type: str, allowed_types: list[str]) -> bool:
    if not allowed_types:
        return True
    for allowed in allowed_types:
        if allowed.endswith("/*"):
            if content_type.startswith(allowed[:-1]):
                return True
        elif content_type == allowed:
            return True
    return False


def validate_file(
    content_type: str,
    size: int,
    allowed_types: list[str] | None = None,
    max_size_mb: float | None = None,
) -> str | None:
    """Return an error message when the file breaks the field's limits, else ``None``."""
    limit_mb = max_size_mb or DEFAULT_MAX_SIZE_MB
    if size > limit_mb * 1024 * 1024:
        return f"File too large. Maximum size is {limit_mb:.1f}MB"
    allowed = allowed_types or []
    if not content_type_allowed(content_type or "", allowed):
        return f"File type not allowed. Allowed types: {', '.join(allowed)}"
    return None


def is_upload(value: Any) -> bool:
    return bool(getattr(value, "filename", "")) and hasattr(value, "read")


def upload_content_type(upload: Any) -> str:
    return upload.content_type or "application/octet-stream"


def _check(upload: Any, size: int, field: dict[str, Any], settings: Settings) -> None:
    error = validate_file(
        upload_content_type(upload),
        size,
        field.get("allowed_types"),
        field.get("max_size"),
    )
    if error is None and settings.upload_max_bytes is not None and size > settings.upload_max_bytes:
        error = "File exceeds the server upload limit"
    if error:
        raise UploadRejectedError(error)


async def read_upload(upload: Any, field: dict[str, Any], settings: Settings) -> bytes:
    """Read an upload, stopping as soon as it passes the field or server limit.

    Raises :class:`UploadRejectedError` when the file breaks a limit. Nothing
    is written to disk.
    """
    limit = (field.get("max_size") or DEFAULT_MAX_SIZE_MB) * 1024 * 1024
    if settings.upload_max_bytes is not None:
        limit = min(limit, settings.upload_max_bytes)

    declared = getattr(upload, "size", None)
    if declared is not None and declared > limit:
        _check(upload, declared, field, settings)

    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await upload.read(CHUNK_SIZE)
        if not chunk:
            break
        total += len(chunk)
        if total > limit:
            break
        chunks.append(chunk)
    _check(upload, total, field, settings)
    return b"".join(chunks)


def store_upload(
    filename: str,
    content_type: str,
    content: bytes,
    form_id: str,
    storage: Storage,
    settings: Settings,
) -> dict[str, Any]:
    file_id = new_ulid()
    destination = settings.upload_dir / file_id
    destination.write_bytes(content)
    created_at = now_utc()
    storage.files.create_file(
        {
            "id": file_id,
            "form_id": form_id,
            "original_name": filename,
            "stored_path": str(destination),
            "content_type": content_type,
            "size": len(content),
            "created_at": created_at,
        }
    )
    return {
        "file_id": file_id,
        "file_name": filename,
        "file_size": len(content),
        "file_type": content_type,
        "upload_status": "uploaded",
        "uploaded_at": to_iso(created_at),
    }


async def save_upload(
    upload: Any,
    form_id: str,
    field: dict[str, Any],
    storage: Storage,
    settings: Settings,
) -> dict[str, Any]:
    content = await read_upload(upload, field, settings)
    return store_upload(upload.filename or "", upload_content_type(upload), content, form_id, storage, settings)
