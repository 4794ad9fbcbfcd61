"""
History store

Saved covers live in a single JSON file, newest first, capped at
MAX_HISTORY_ITEMS records.
"""

import json
import logging
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from web.backend.models.cover import HistoryRecord

logger = logging.getLogger(__name__)

MAX_HISTORY_ITEMS = 50


class HistoryStore:
    def __init__(self, path: Path, max_items: int = MAX_HISTORY_ITEMS):
        self.path = Path(path)
        self.max_items = max_items
        self._lock = threading.Lock()

    def _read(self) -> List[HistoryRecord]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Error reading history %s: %s", self.path, e)
            return []
        records = []
        for item in data if isinstance(data, list) else []:
            try:
                records.append(HistoryRecord.model_validate(item))
            except ValueError as e:
                logger.warning("Skipping malformed history record: %s", e)
        return records

    def _write(self, records: List[HistoryRecord]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        with open(tmp, "w") as f:
            json.dump([r.model_dump(mode="json", by_alias=True) for r in records], f, indent=2)
        tmp.replace(self.path)

    def list(self) -> List[HistoryRecord]:
        with self._lock:
            return self._read()

    def get(self, record_id: str) -> Optional[HistoryRecord]:
        return next((r for r in self.list() if r.id == record_id), None)

    def add(self, record: HistoryRecord) -> HistoryRecord:
        saved = record.model_copy(update={
            "id": f"cover_{uuid.uuid4().hex[:12]}",
            "created_at": datetime.now(),
        })
        with self._lock:
            records = [saved] + self._read()
            self._write(records[: self.max_items])
        return saved

    def delete(self, record_id: str) -> bool:
        with self._lock:
            records = self._read()
            kept = [r for r in records if r.id != record_id]
            if len(kept) == len(records):
                return False
            self._write(kept)
        return True

    def clear(self) -> None:
        with self._lock:
            self._write([])
