"""
Import progress reporting.

The importer emits ProgressEvent snapshots to an ImportReporter; how they
reach a user (log file, polling endpoint, push channel) is up to whoever
passes the reporter in.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Callable, Optional

from ingestion.models import ImportBatch

logger = logging.getLogger(__name__)


@dataclass
class ProgressEvent:
    batch_id: str
    stage: str                 # started | rows | sheet | finished
    sheet: str = ""
    rows_seen: int = 0
    rows_imported: int = 0
    rows_duplicate: int = 0
    rows_failed: int = 0
    status: str = ""

    @classmethod
    def from_batch(cls, batch: ImportBatch, stage: str, sheet: str = "") -> "ProgressEvent":
        return cls(
            batch_id=batch.id,
            stage=stage,
            sheet=sheet,
            rows_seen=batch.rows_seen,
            rows_imported=batch.rows_imported,
            rows_duplicate=batch.rows_duplicate,
            rows_failed=batch.rows_failed,
            status=batch.status,
        )

    def to_dict(self) -> dict:
        return asdict(self)


class ImportReporter:
    """Base sink — ignores everything. Override emit() or the hooks."""

    def emit(self, event: ProgressEvent) -> None:
        pass

    def batch_started(self, batch: ImportBatch) -> None:
        self.emit(ProgressEvent.from_batch(batch, "started"))

    def progress(self, batch: ImportBatch, sheet: str) -> None:
        self.emit(ProgressEvent.from_batch(batch, "rows", sheet))

    def sheet_finished(self, batch: ImportBatch, sheet: str) -> None:
        self.emit(ProgressEvent.from_batch(batch, "sheet", sheet))

    def batch_finished(self, batch: ImportBatch) -> None:
        self.emit(ProgressEvent.from_batch(batch, "finished"))


class LoggingReporter(ImportReporter):

    def emit(self, event: ProgressEvent) -> None:
        logger.info(
            "[%s] %s%s — seen %d, imported %d, duplicate %d, failed %d",
            event.batch_id[:8],
            event.stage,
            f" ({event.sheet})" if event.sheet else "",
            event.rows_seen,
            event.rows_imported,
            event.rows_duplicate,
            event.rows_failed,
        )


class CallbackReporter(ImportReporter):
    """Forwards every event to a callable, e.g. a web handler's progress state."""

    def __init__(self, callback: Callable[[ProgressEvent], None],
                 also_log: Optional[ImportReporter] = None):
        self.callback = callback
        self.also_log = also_log

    def emit(self, event: ProgressEvent) -> None:
        if self.also_log is not None:
            self.also_log.emit(event)
        try:
            self.callback(event)
        except Exception as exc:
            # A broken progress consumer must not stop the import
            logger.warning("Progress callback failed: %s", exc)
