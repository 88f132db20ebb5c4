"""Helpers for persisting soil-analysis uploads."""

from __future__ import annotations

import os
import re
import time

from .config import Settings

# purpose: keep uploaded analysis PDFs and attachments in Supabase Storage or on disk
# status: active

PDF_CONTENT_TYPE = "application/pdf"


def _get_upload_dir(settings: Settings) -> str:
    """Return the configured upload directory, creating it when needed."""

    upload_dir = settings.upload_dir
    os.makedirs(upload_dir, exist_ok=True)
    return upload_dir


def build_object_name(kind: str, filename: str) -> str:
    """Construct the storage key used by the upload form (``<ms>-<name>``)."""

    safe_name = re.sub(r"[^A-Za-z0-9_.-]", "_", os.path.basename(filename or "")) or "upload.bin"
    stamp = int(time.time() * 1000)
    if kind == "attachment":
        return f"attachment-{stamp}-{safe_name}"
    return f"{stamp}-{safe_name}"


def save_upload(
    data: bytes,
    filename: str,
    *,
    kind: str,
    content_type: str,
    settings: Settings,
    backend=None,
) -> tuple[str, str]:
    """Persist an upload and return ``(reference, storage_kind)``.

    Uses the Supabase bucket when a backend with the service role key is
    available, otherwise the local upload directory.
    """

    object_name = build_object_name(kind, filename)
    if backend is not None and getattr(backend, "has_admin", False):
        ref = backend.upload_object(settings.storage_bucket, object_name, data, content_type)
        return ref, "supabase"

    storage_path = os.path.join(_get_upload_dir(settings), object_name)
    with open(storage_path, "wb") as handle:
        handle.write(data)
    return storage_path, "local"
