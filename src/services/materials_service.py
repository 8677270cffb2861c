"""
Materials: upload, tag, rename, delete, list filtering and display helpers.

The filter / sort / option helpers are pure functions so the Materials page
and the tests share them.
"""

from __future__ import annotations

import logging
import math
import time
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterable

from config import BLOB_CACHE_CAPACITY, PREDEFINED_SUBJECTS, SUBJECT_LABELS, UNTAGGED
from services.auth_service import SessionStore
from services.database_service import DatabaseManager
from services.errors import ServiceError, ValidationError
from utils.metrics import log_metric

LOGGER = logging.getLogger("studybuddy.materials")

CUSTOM_SEPARATOR = "── Custom Subjects ──"
SORT_KEYS = ("recent", "oldest", "name", "name-desc")
DATE_FILTERS = ("", "today", "week", "month")


@dataclass
class UploadFile:
    name: str
    type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class SubjectOption:
    value: str
    label: str
    disabled: bool = False


class BlobCache:
    """Material id -> file bytes, least recently used entry evicted first."""

    def __init__(self, capacity: int = BLOB_CACHE_CAPACITY) -> None:
        self.capacity = max(1, int(capacity))
        self._items: OrderedDict[str, bytes] = OrderedDict()

    def get(self, key: str) -> bytes | None:
        if key not in self._items:
            return None
        self._items.move_to_end(key)
        return self._items[key]

    def put(self, key: str, value: bytes) -> None:
        self._items[key] = value
        self._items.move_to_end(key)
        while len(self._items) > self.capacity:
            evicted, _ = self._items.popitem(last=False)
            LOGGER.debug("Blob cache evicted %s", evicted)

    def discard(self, key: str) -> None:
        self._items.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)


# ---------- pure helpers ----------


def dedupe_by_id(records: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Keep one record per id: the last one seen, at the first one's position."""
    by_id: dict[Any, dict[str, Any]] = {}
    for record in records:
        by_id[record.get("id")] = record
    return list(by_id.values())


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO timestamp into a naive local datetime."""
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value or "").strip().replace("Z", "+00:00")
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return datetime.min
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt


def filter_by_subject(items: Iterable[dict[str, Any]], subject: str | None) -> list[dict[str, Any]]:
    if not subject:
        return list(items)
    return [m for m in items if m.get("subject") == subject]


def filter_by_date(
    items: Iterable[dict[str, Any]], date_filter: str | None, now: datetime | None = None
) -> list[dict[str, Any]]:
    if not date_filter:
        return list(items)
    now = now or datetime.now()
    if date_filter == "today":
        cutoff = now.replace(hour=0, minute=0, second=0, microsecond=0)
    elif date_filter == "week":
        cutoff = now - timedelta(days=7)
    elif date_filter == "month":
        cutoff = now - timedelta(days=30)
    else:
        return list(items)
    return [m for m in items if parse_timestamp(m.get("uploaded_at")) >= cutoff]


def sort_materials(items: Iterable[dict[str, Any]], sort_by: str = "recent") -> list[dict[str, Any]]:
    rows = list(items)
    if sort_by == "recent":
        return sorted(rows, key=lambda m: parse_timestamp(m.get("uploaded_at")), reverse=True)
    if sort_by == "oldest":
        return sorted(rows, key=lambda m: parse_timestamp(m.get("uploaded_at")))
    if sort_by == "name":
        return sorted(rows, key=lambda m: str(m.get("name", "")).casefold())
    if sort_by == "name-desc":
        return sorted(rows, key=lambda m: str(m.get("name", "")).casefold(), reverse=True)
    return rows


def subject_label(subject: str | None) -> str:
    return SUBJECT_LABELS.get(subject or "", subject or "")


def subject_class(subject: str | None) -> str:
    return subject if subject in (*PREDEFINED_SUBJECTS, UNTAGGED) else "custom"


def subject_filter_options(
    materials: Iterable[dict[str, Any]], current: str = ""
) -> tuple[list[SubjectOption], str]:
    """
    Build the subject filter options and the value to keep selected.

    Returns:
        (options, selected) where *selected* is *current* if some material
        still carries it, otherwise "" (All Subjects).
    """
    subjects = {m.get("subject") for m in materials}
    custom = sorted(
        s for s in subjects if s and s != UNTAGGED and s not in PREDEFINED_SUBJECTS
    )

    options = [SubjectOption("", "All Subjects")]
    options.extend(SubjectOption(s, subject_label(s)) for s in PREDEFINED_SUBJECTS)
    if custom:
        options.append(SubjectOption("", CUSTOM_SEPARATOR, disabled=True))
        options.extend(SubjectOption(s, s) for s in custom)
    if UNTAGGED in subjects:
        options.append(SubjectOption(UNTAGGED, "Untagged"))

    selected = current if current and current in subjects else ""
    return options, selected


def format_file_size(size_bytes: int) -> str:
    if not size_bytes:
        return "0 Bytes"
    k = 1024
    units = ["Bytes", "KB", "MB", "GB"]
    i = min(int(math.floor(math.log(size_bytes) / math.log(k))), len(units) - 1)
    value = round(size_bytes / k**i, 2)
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {units[i]}"


def file_icon(mime_type: str | None) -> str:
    t = (mime_type or "").lower()
    if "pdf" in t:
        return "📄"
    if "doc" in t or "wordprocessingml" in t:
        return "📝"
    if "image" in t:
        return "🖼️"
    if "text" in t:
        return "📃"
    if "presentation" in t or "powerpoint" in t:
        return "📊"
    if "spreadsheet" in t or "excel" in t:
        return "📈"
    return "📁"


def file_type_label(mime_type: str | None) -> str:
    t = (mime_type or "").lower()
    if "pdf" in t:
        return "PDF Document"
    if "wordprocessingml" in t or "msword" in t:
        return "Word Document"
    if "image" in t:
        return "Image"
    if "text" in t:
        return "Text File"
    if "presentation" in t or "powerpoint" in t:
        return "Presentation"
    if "spreadsheet" in t or "excel" in t:
        return "Spreadsheet"
    return "Document"


# ---------- manager ----------


class MaterialsManager:
    """In-memory materials list for the signed-in user plus the operations on it."""

    def __init__(self, gateway: DatabaseManager, session: SessionStore, blob_cache: BlobCache | None = None):
        self.gateway = gateway
        self.session = session
        self.blob_cache = blob_cache if blob_cache is not None else BlobCache()
        self.materials: list[dict[str, Any]] = []
        self._loading = False

    def _require_user(self) -> str:
        user_id = self.session.user_id
        if not user_id:
            raise ValidationError("User not authenticated")
        return user_id

    def get(self, material_id: str) -> dict[str, Any] | None:
        return next((m for m in self.materials if m.get("id") == material_id), None)

    def load_user_materials(self) -> list[dict[str, Any]]:
        """Reload from the gateway. A reload already in flight is skipped."""
        if self._loading:
            LOGGER.info("Materials already loading; skipping reload")
            return self.materials
        user_id = self.session.user_id
        if not user_id:
            self.materials = []
            return self.materials

        self._loading = True
        try:
            result = self.gateway.get_user_materials(user_id)
            if not result.success:
                raise ServiceError(result.error or "Failed to load materials")
            rows = result.data or []
            unique = dedupe_by_id(rows)
            if len(unique) != len(rows):
                LOGGER.warning("Dropped %d duplicate material rows", len(rows) - len(unique))
            self.materials = unique
            return self.materials
        finally:
            self._loading = False

    def upload_files(self, files: Iterable[UploadFile]) -> int:
        """
        Upload each file then save its metadata; a failing file is skipped.

        Returns:
            Number of files stored.

        Raises:
            ServiceError: if no file could be stored.
        """
        user_id = self._require_user()
        t0 = time.time()
        success_count = 0
        for f in files:
            uploaded = self.gateway.upload_file(user_id, f.data, f.name)
            if not uploaded.success:
                LOGGER.error("File upload failed: %s: %s", f.name, uploaded.error)
                continue
            saved = self.gateway.save_material(
                user_id,
                {"name": f.name, "type": f.type or "unknown", "size": f.size, "subject": UNTAGGED},
                uploaded.data,
            )
            if not saved.success:
                LOGGER.error("Failed to save material metadata: %s: %s", f.name, saved.error)
                removed = self.gateway.remove_file(uploaded.data)
                if not removed.success:
                    LOGGER.warning("Orphaned blob left behind: %s", uploaded.data)
                continue
            self.blob_cache.put(saved.data["id"], f.data)
            success_count += 1

        if success_count == 0:
            raise ServiceError("Failed to upload files. Please try again.")
        log_metric("upload", time.time() - t0, user_id=user_id, files=success_count)
        self.load_user_materials()
        return success_count

    def tag_subject(self, material_id: str, subject: str, custom_subject: str = "") -> str:
        if subject == "other":
            subject = (custom_subject or "").strip()
            if not subject:
                raise ValidationError("Please enter a custom subject name.")
        if not subject:
            raise ValidationError("Please select or enter a subject.")

        result = self.gateway.update_material_subject(material_id, subject)
        if not result.success:
            raise ServiceError("Failed to add subject tag. Please try again.")
        material = self.get(material_id)
        if material is not None:
            material["subject"] = subject
        return subject

    def rename(self, material_id: str, new_name: str) -> str:
        new_name = (new_name or "").strip()
        if not new_name:
            raise ValidationError("Please enter a new name.")
        result = self.gateway.update_material_name(material_id, new_name)
        if not result.success:
            raise ServiceError("Failed to rename material. Please try again.")
        material = self.get(material_id)
        if material is not None:
            material["name"] = new_name
        return new_name

    def delete(self, material_id: str) -> None:
        result = self.gateway.delete_material(material_id)
        if not result.success:
            raise ServiceError("Failed to delete material. Please try again.")
        self.materials = [m for m in self.materials if m.get("id") != material_id]
        self.blob_cache.discard(material_id)

    def get_material_blob(self, material: dict[str, Any]) -> bytes:
        cached = self.blob_cache.get(material["id"])
        if cached is not None:
            return cached
        if not material.get("file_path"):
            raise ServiceError("File not available for preview")
        result = self.gateway.download_file(material["file_path"])
        if not result.success:
            raise ServiceError("Failed to download file.")
        self.blob_cache.put(material["id"], result.data)
        return result.data

    def visible_materials(
        self,
        subject_filter: str = "",
        date_filter: str = "",
        sort_by: str = "recent",
        now: datetime | None = None,
    ) -> list[dict[str, Any]]:
        rows = filter_by_subject(self.materials, subject_filter)
        rows = filter_by_date(rows, date_filter, now=now)
        return sort_materials(rows, sort_by)

    def subject_filter_options(self, current: str = "") -> tuple[list[SubjectOption], str]:
        return subject_filter_options(self.materials, current)
