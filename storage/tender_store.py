"""
Tender and import-batch stores.

The engine only needs find-by-reference, find-by-title, create, update and
list. InMemoryTenderStore is what the tests and the web app use;
JsonFileTenderStore adds a JSON file underneath so the CLI keeps its
tenders between runs.

Every store hands out one lock per dedup key (lock_for) so that two imports
running at the same time cannot both decide a reference is new.
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional

from ingestion.models import STATUS_PROCESSING, ImportBatch, TenderRecord

logger = logging.getLogger(__name__)


def _key(text: str) -> str:
    return (text or "").strip().lower()


class TenderStore(ABC):
    """All tender stores inherit from this class."""

    def __init__(self) -> None:
        self._key_locks: Dict[tuple, threading.Lock] = defaultdict(threading.Lock)
        self._key_guard = threading.Lock()

    def lock_for(self, key: tuple) -> threading.Lock:
        with self._key_guard:
            return self._key_locks[key]

    # ── Abstract methods ──────────────────────────────────────────────────────

    @abstractmethod
    def find_by_reference(self, reference: str) -> Optional[TenderRecord]:
        ...

    @abstractmethod
    def find_by_title(self, title: str, reference_less: bool = False) -> Optional[TenderRecord]:
        """With reference_less=True only records without a reference number match."""
        ...

    @abstractmethod
    def create(self, record: TenderRecord) -> TenderRecord:
        ...

    @abstractmethod
    def update(self, tender_id: str, **fields) -> Optional[TenderRecord]:
        ...

    @abstractmethod
    def get(self, tender_id: str) -> Optional[TenderRecord]:
        ...

    @abstractmethod
    def delete(self, tender_id: str) -> bool:
        ...

    @abstractmethod
    def list(self) -> List[TenderRecord]:
        ...


class InMemoryTenderStore(TenderStore):

    def __init__(self) -> None:
        super().__init__()
        self._records: Dict[str, TenderRecord] = {}
        self._lock = threading.RLock()

    def find_by_reference(self, reference: str) -> Optional[TenderRecord]:
        wanted = _key(reference)
        if not wanted:
            return None
        with self._lock:
            for rec in self._records.values():
                if _key(rec.reference_number) == wanted:
                    return rec
        return None

    def find_by_title(self, title: str, reference_less: bool = False) -> Optional[TenderRecord]:
        wanted = _key(title)
        if not wanted:
            return None
        with self._lock:
            for rec in self._records.values():
                if reference_less and _key(rec.reference_number):
                    continue
                if _key(rec.title) == wanted:
                    return rec
        return None

    def create(self, record: TenderRecord) -> TenderRecord:
        if record.value < 0:
            raise ValueError("tender value must be non-negative")
        with self._lock:
            if record.id in self._records:
                raise ValueError(f"tender {record.id} already exists")
            self._records[record.id] = record
        return record

    def update(self, tender_id: str, **fields) -> Optional[TenderRecord]:
        with self._lock:
            current = self._records.get(tender_id)
            if current is None:
                return None
            updated = replace(current, **fields)
            if updated.value < 0:
                raise ValueError("tender value must be non-negative")
            self._records[tender_id] = updated
            return updated

    def get(self, tender_id: str) -> Optional[TenderRecord]:
        with self._lock:
            return self._records.get(tender_id)

    def delete(self, tender_id: str) -> bool:
        with self._lock:
            return self._records.pop(tender_id, None) is not None

    def list(self) -> List[TenderRecord]:
        with self._lock:
            return sorted(self._records.values(), key=lambda r: r.created_at)


class JsonFileTenderStore(InMemoryTenderStore):
    """In-memory store mirrored to a JSON file after every write."""

    def __init__(self, path) -> None:
        super().__init__()
        self.path = Path(path)
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        for item in data.get("tenders", []):
            rec = TenderRecord.from_dict(item)
            self._records[rec.id] = rec
        logger.info("Loaded %d tender(s) from %s", len(self._records), self.path)

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            payload = {"tenders": [r.to_dict() for r in self._records.values()]}
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        tmp.replace(self.path)

    def create(self, record: TenderRecord) -> TenderRecord:
        rec = super().create(record)
        self._save()
        return rec

    def update(self, tender_id: str, **fields) -> Optional[TenderRecord]:
        rec = super().update(tender_id, **fields)
        if rec is not None:
            self._save()
        return rec

    def delete(self, tender_id: str) -> bool:
        removed = super().delete(tender_id)
        if removed:
            self._save()
        return removed


class ImportBatchStore:
    """
    Write sink for ImportBatch rows (upload history). Keeps the newest
    `limit` batches; older finished ones are dropped as new ones arrive.
    """

    def __init__(self, limit: int = 200) -> None:
        self._batches: Dict[str, ImportBatch] = {}
        self._lock = threading.Lock()
        self.limit = limit

    def create(self, batch: ImportBatch) -> ImportBatch:
        with self._lock:
            self._batches[batch.id] = batch
            self._prune()
        return batch

    def _prune(self) -> None:
        excess = len(self._batches) - self.limit
        if excess <= 0:
            return
        finished = sorted(
            (b for b in self._batches.values() if b.status != STATUS_PROCESSING),
            key=lambda b: b.started_at,
        )
        for old in finished[:excess]:
            del self._batches[old.id]

    def update(self, batch: ImportBatch) -> ImportBatch:
        with self._lock:
            self._batches[batch.id] = batch
        return batch

    def get(self, batch_id: str) -> Optional[ImportBatch]:
        with self._lock:
            return self._batches.get(batch_id)

    def list(self) -> List[ImportBatch]:
        with self._lock:
            return sorted(self._batches.values(), key=lambda b: b.started_at, reverse=True)
