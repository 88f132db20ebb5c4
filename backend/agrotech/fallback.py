"""In-memory soil-analysis store used while the database is unreachable."""

from __future__ import annotations

import itertools
import threading

from . import models


class MemorySubmissionStore:
    def __init__(self):
        self._records: dict[int, dict] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def create(self, owner_email: str, data: dict) -> dict:
        now = models.utcnow()
        with self._lock:
            record_id = next(self._ids)
            record = {
                **data,
                "id": record_id,
                "user_email": owner_email,
                "status": "pending",
                "admin_comments": None,
                "admin_file_urls": [],
                "created_at": now,
                "updated_at": now,
            }
            self._records[record_id] = record
        return dict(record)

    def get(self, record_id: int) -> dict | None:
        with self._lock:
            record = self._records.get(record_id)
            return dict(record) if record else None

    def list_for_owner(self, owner_email: str) -> list[dict]:
        with self._lock:
            rows = [dict(r) for r in self._records.values() if r["user_email"] == owner_email]
        return sorted(rows, key=lambda r: r["created_at"], reverse=True)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
