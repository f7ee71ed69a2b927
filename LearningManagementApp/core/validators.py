"""Validation helpers for uploaded files and external resource URLs."""

import os
from urllib.parse import urlparse
from django.conf import settings
from django.core.exceptions import ValidationError
from typing import Any

ALLOWED_SUBMISSION_EXTENSIONS: set[str] = {
    "pdf", "doc", "docx", "txt", "jpg", "jpeg", "png", "gif",
    "zip", "rar", "ppt", "pptx", "xls", "xlsx",
}
ALLOWED_DOCUMENT_MIME: set[str] = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}
ALLOWED_ATTACHMENT_MIME: set[str] = ALLOWED_DOCUMENT_MIME | {
    "text/plain",
    "application/zip",
    "application/x-rar",
    "application/vnd.rar",
    "image/png",
    "image/jpeg",
    "image/gif",
}


def validate_file_size(file_obj: Any, max_mb: int | None = None) -> None:
    """Ensure file size does not exceed max_mb megabytes (LMS_UPLOAD_MAX_MB by default)."""
    if max_mb is None:
        max_mb = getattr(settings, "LMS_UPLOAD_MAX_MB", 10)
    if file_obj and file_obj.size > max_mb * 1024 * 1024:
        raise ValidationError(f"File exceeds {max_mb} MB limit.")

def validate_file_extension(file_obj: Any) -> None:
    """Reject file names whose extension is not in the submission allow-list."""
    if not file_obj:
        return
    ext = os.path.splitext(file_obj.name)[1].lstrip(".").lower()
    if ext not in ALLOWED_SUBMISSION_EXTENSIONS:
        raise ValidationError(f"Unsupported file extension: .{ext or '?'}")

def _probe_mime(file_obj: Any) -> str | None:
    """Read initial bytes to detect MIME type using libmagic."""
    if not file_obj:
        return None
    import magic

    header = file_obj.read(4096)
    file_obj.seek(0)
    return magic.from_buffer(header, mime=True)

def validate_attachment_mime(file_obj: Any) -> None:
    """Validate that an uploaded attachment has an allowed MIME type."""
    mime = _probe_mime(file_obj)
    if mime and mime not in ALLOWED_ATTACHMENT_MIME:
        raise ValidationError(f"Unsupported attachment mime: {mime}")

def validate_resource_url(url: str) -> None:
    """Ensure URL uses https and matches an allowed domain suffix."""
    result = urlparse(url)
    if result.scheme != "https":
        raise ValidationError("URL must use https.")
    allowed = getattr(settings, "ALLOWED_RESOURCE_DOMAINS", [])
    if allowed and not any(result.netloc.endswith(d) for d in allowed):
        raise ValidationError("URL domain not allowed.")
