# backend/homepath/domain/document_types.py
from __future__ import annotations

from typing import Sequence

from .enums import DocumentType

INITIAL_VERSION = "1.0"


def classify_mime_type(mime_type: str | None) -> str:
    """
    Map a stored media kind onto the closed DocumentType set.

    Order matters: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    contains "document" and is classified as a document, the same as the
    upload pipeline always did.
    """
    m = (mime_type or "").strip().lower()

    if m.startswith("image/"):
        return DocumentType.IMAGE.value
    if m == "application/pdf":
        return DocumentType.PDF.value
    if "document" in m or "text" in m:
        return DocumentType.DOCUMENT.value
    if "spreadsheet" in m or "excel" in m:
        return DocumentType.SPREADSHEET.value
    if "presentation" in m or "powerpoint" in m:
        return DocumentType.PRESENTATION.value
    if m.startswith("video/"):
        return DocumentType.VIDEO.value
    if m.startswith("audio/"):
        return DocumentType.AUDIO.value
    if "zip" in m or "rar" in m or "archive" in m:
        return DocumentType.ARCHIVE.value
    return DocumentType.OTHER.value


def next_version(history: Sequence[str]) -> str:
    """
    Minor bump of the latest recorded version: [] -> 1.1, [1.1] -> 1.2.
    """
    if not history:
        return "1.1"
    major, _, minor = str(history[-1]).partition(".")
    try:
        return f"{int(major)}.{int(minor or 0) + 1}"
    except ValueError:
        return f"{major}.1"


def format_size(size_bytes: int) -> str:
    if size_bytes <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size_bytes)
    idx = 0
    while value >= 1024 and idx < len(units) - 1:
        value /= 1024
        idx += 1
    return f"{round(value, 2):g} {units[idx]}"
