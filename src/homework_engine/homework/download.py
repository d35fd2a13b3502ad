"""File download boundary helpers."""

from __future__ import annotations

from urllib.parse import quote

from homework_engine.core.exceptions import NotFoundError
from homework_engine.core.protocols import IBlobStore, IHomeworkStore
from homework_engine.models.results import DownloadPayload

# Characters encodeURIComponent leaves alone beyond quote()'s defaults.
_RFC5987_SAFE = "!*'()"


def to_attachment_content_disposition(filename: str) -> str:
    """Build a Content-Disposition value with a UTF-8 ``filename*`` fallback."""
    safe = filename.replace('"', "_").replace("\r", "_").replace("\n", "_")
    encoded = quote(filename, safe=_RFC5987_SAFE, encoding="utf-8")
    return f"attachment; filename=\"{safe}\"; filename*=UTF-8''{encoded}"


def download_file(
    store: IHomeworkStore, blob_store: IBlobStore, tenant_id: str, file_id: str
) -> DownloadPayload:
    file_id = (file_id or "").strip()
    record = store.get_file(tenant_id, file_id) if file_id else None
    if record is None:
        raise NotFoundError("Homework file not found", {"fileId": file_id})

    payload = blob_store.get(tenant_id, record.id)
    return DownloadPayload(
        file_id=record.id,
        filename=record.filename,
        data=payload.data,
        mime_type=payload.mime_type,
        size_bytes=payload.size_bytes,
        content_disposition=to_attachment_content_disposition(record.filename),
    )
