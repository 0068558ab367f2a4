"""
Deduplication gate — one tender per reference number, and one per title
among tenders that have no reference. Keys are compared trimmed and
case-insensitively. A record with a reference never collides with one
without, so the two key kinds never need the same lock.

Every ingestion path goes through DeduplicationGate.admit(); the
check-then-create runs under the store's per-key lock.
"""

import logging
from typing import List, Optional, Tuple

from ingestion.models import TenderRecord
from storage.tender_store import TenderStore

logger = logging.getLogger(__name__)


def dedup_key(record: TenderRecord) -> Tuple[str, str]:
    reference = (record.reference_number or "").strip().lower()
    if reference:
        return ("reference", reference)
    return ("title", (record.title or "").strip().lower())


def find_existing(record: TenderRecord, store: TenderStore) -> Optional[TenderRecord]:
    kind, _ = dedup_key(record)
    if kind == "reference":
        return store.find_by_reference(record.reference_number)
    return store.find_by_title(record.title, reference_less=True)


def is_duplicate(record: TenderRecord, store: TenderStore) -> bool:
    return find_existing(record, store) is not None


class DeduplicationGate:

    def __init__(self, store: TenderStore):
        self.store = store

    def admit(self, record: TenderRecord) -> bool:
        """Create the record unless its key is taken. True if created."""
        key = dedup_key(record)
        with self.store.lock_for(key):
            if is_duplicate(record, self.store):
                logger.debug("Duplicate %s=%r — skipped", key[0], key[1])
                return False
            self.store.create(record)
            return True


def remove_duplicates(store: TenderStore) -> int:
    """
    Delete tenders whose dedup key was already taken by an earlier record
    (keeps the oldest by created_at). Returns the number removed.
    """
    seen = set()
    doomed: List[str] = []
    for rec in store.list():       # oldest first
        key = dedup_key(rec)
        if key in seen:
            doomed.append(rec.id)
        else:
            seen.add(key)

    for tender_id in doomed:
        store.delete(tender_id)

    logger.info("Duplicate cleanup: %d record(s) removed, %d kept.", len(doomed), len(seen))
    return len(doomed)
