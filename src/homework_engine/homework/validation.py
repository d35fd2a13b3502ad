"""Upload validation: file policy (type/size/name) enforced before any store writes."""

from __future__ import annotations

import hashlib
import re

from homework_engine.core.config import HomeworkPolicyConfig
from homework_engine.core.exceptions import ValidationError
from homework_engine.models.homework import ValidatedHomeworkFile

BASE_ALLOWED_MIME_TYPES = (
    "application/pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
)
LEGACY_DOC_MIME_TYPE = "application/msword"

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_PATH_SEPARATORS = re.compile(r"[/\\]")


def allowed_mime_types(policy: HomeworkPolicyConfig) -> tuple[str, ...]:
    if policy.allow_legacy_doc_mime:
        return BASE_ALLOWED_MIME_TYPES + (LEGACY_DOC_MIME_TYPE,)
    return BASE_ALLOWED_MIME_TYPES


def sanitize_filename(raw_value: str, max_length: int = 200) -> str:
    """Drop control characters and directory parts, then cap the length."""
    normalized = _CONTROL_CHARS.sub("", raw_value or "").strip()
    if not normalized:
        raise ValidationError("Invalid filename", {"field": "file", "reason": "EMPTY_FILENAME"})

    without_path = _PATH_SEPARATORS.split(normalized)[-1].strip()
    trimmed = without_path[:max_length]
    if not trimmed:
        raise ValidationError("Invalid filename", {"field": "file", "reason": "EMPTY_FILENAME"})
    return trimmed


def _normalize_mime_type(mime_type: str, policy: HomeworkPolicyConfig) -> str:
    normalized = (mime_type or "").strip().lower()
    if normalized not in allowed_mime_types(policy):
        raise ValidationError(
            "Invalid file type", {"field": "file", "reason": "INVALID_MIME_TYPE"}
        )
    return normalized


def _check_size(size_bytes: int, policy: HomeworkPolicyConfig) -> None:
    if size_bytes <= 0:
        raise ValidationError("File is empty", {"field": "file", "reason": "EMPTY_FILE"})
    if size_bytes > policy.max_file_size_bytes:
        raise ValidationError(
            "File too large",
            {"field": "file", "maxSizeBytes": policy.max_file_size_bytes},
        )


def compute_checksum(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def validate_file_payload(
    filename: str,
    mime_type: str,
    size_bytes: int,
    data: bytes,
    policy: HomeworkPolicyConfig | None = None,
) -> ValidatedHomeworkFile:
    """Validate an upload and compute its SHA-256 checksum."""
    if policy is None:
        policy = HomeworkPolicyConfig()

    clean_name = sanitize_filename(filename, policy.max_filename_length)
    clean_mime = _normalize_mime_type(mime_type, policy)
    _check_size(size_bytes, policy)
    if not data:
        raise ValidationError("File is empty", {"field": "file", "reason": "EMPTY_FILE"})

    return ValidatedHomeworkFile(
        filename=clean_name,
        mime_type=clean_mime,
        size_bytes=size_bytes,
        data=data,
        checksum=compute_checksum(data),
    )
