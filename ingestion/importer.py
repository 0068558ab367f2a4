"""
Tender importer — spreadsheet in, stored (and scored) tenders out.

  workbook → sheet → header row → field map → row → TenderRecord
           → dedup gate → store

Failure handling follows the scope of the problem:
  * row without a title       → skipped, counted in rows_skipped
  * any other row problem     → rows_failed + a message, next row
  * a sheet that can't be read → sheets_failed + a message, next sheet
  * a file that can't be opened → batch status "failed", nothing imported

Every call returns the ImportBatch summary, whatever happened.
"""

import logging
import threading
import time
from datetime import date
from pathlib import Path
from typing import Optional

from ingestion.dedup import DeduplicationGate, find_existing
from ingestion.models import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PROCESSING,
    CompanyProfile,
    ImportBatch,
)
from ingestion.reporter import ImportReporter, LoggingReporter
from ingestion.row_assembler import SheetContext, assemble_row
from ingestion.schema_resolver import detect_header_row, resolve_schema
from ingestion.workbook import SheetData, WorkbookReader
from scoring.eligibility import score_tender
from storage.tender_store import ImportBatchStore, TenderStore
import config

logger = logging.getLogger(__name__)


class ImportCancelled(Exception):
    """Raised between rows once the cancel event is set."""


def _is_blank(row) -> bool:
    return not row or all(v is None or str(v).strip() == "" for v in row)


class TenderImporter:

    def __init__(
        self,
        store: TenderStore,
        batches: Optional[ImportBatchStore] = None,
        profile: Optional[CompanyProfile] = None,
        reporter: Optional[ImportReporter] = None,
        cancel_event: Optional[threading.Event] = None,
        today: Optional[date] = None,
    ) -> None:
        self.store = store
        self.batches = batches if batches is not None else ImportBatchStore()
        self.profile = profile
        self.reporter = reporter if reporter is not None else LoggingReporter()
        self.cancel_event = cancel_event or threading.Event()
        self.gate = DeduplicationGate(store)
        self.today = today

        self.progress_every = config.PROGRESS_EVERY
        self.header_probe_rows = config.HEADER_PROBE_ROWS
        self.default_deadline_days = config.DEFAULT_DEADLINE_DAYS
        self.max_errors = config.MAX_BATCH_ERRORS

    # ── Public API ────────────────────────────────────────────────────────────

    def import_workbook(self, path, uploaded_by: str = "", file_name: str = "") -> ImportBatch:
        """Import every sheet of an .xlsx file. Never raises."""
        path = Path(path)
        batch = self._start_batch(file_name or path.name, uploaded_by)
        started = time.monotonic()
        logger.info("▶  Importing %s …", batch.file_name)

        try:
            reader = WorkbookReader(path)
        except Exception as exc:
            logger.error("✗  Could not open %s: %s", batch.file_name, exc)
            batch.status = STATUS_FAILED
            self._record_error(batch, f"could not open {batch.file_name}: {exc}")
            return self._finish_batch(batch, started)

        try:
            with reader:
                for name in reader.sheets():
                    try:
                        sheet = reader.read_sheet(name)
                    except Exception as exc:
                        batch.sheets_failed += 1
                        self._record_error(batch, f"sheet {name}: could not be read: {exc}")
                        logger.error("✗  Sheet %s unreadable: %s", name, exc, exc_info=True)
                        continue
                    self._import_sheet_guarded(sheet, batch)
        except ImportCancelled:
            self._cancel(batch)

        return self._finish_batch(batch, started)

    def import_sheet(self, sheet: SheetData, batch: Optional[ImportBatch] = None,
                     file_name: str = "") -> ImportBatch:
        """
        Import one already-decoded sheet. Without a batch a new one is
        started and finished here; with one, counts are added to it.
        """
        if batch is not None:
            self._import_rows(sheet, batch, file_name or batch.file_name)
            return batch

        batch = self._start_batch(file_name or sheet.name, "")
        started = time.monotonic()
        try:
            self._import_sheet_guarded(sheet, batch, file_name)
        except ImportCancelled:
            self._cancel(batch)
        return self._finish_batch(batch, started)

    def relink_workbook(self, path) -> int:
        """
        Fill in missing links on tenders that are already stored, using the
        hyperlinks of a re-uploaded workbook. Returns the number updated.
        """
        updated = 0
        with WorkbookReader(path) as reader:
            for name in reader.sheets():
                sheet = reader.read_sheet(name)
                if not sheet.rows:
                    continue
                header_idx = detect_header_row(sheet.rows, self.header_probe_rows)
                fmap = resolve_schema(sheet.rows[header_idx])
                for r_idx in range(header_idx + 1, len(sheet.rows)):
                    ctx = self._context(sheet, r_idx, Path(path).name)
                    try:
                        record = assemble_row(sheet.rows[r_idx], fmap, ctx)
                    except Exception as exc:
                        logger.warning("Relink: %s row %d skipped: %s", name, r_idx + 1, exc)
                        continue
                    if record is None or not record.link:
                        continue
                    existing = find_existing(record, self.store)
                    if existing is not None and not existing.link:
                        self.store.update(existing.id, link=record.link)
                        updated += 1
        logger.info("Relink: %d tender(s) given a link from %s", updated, Path(path).name)
        return updated

    # ── Internals ─────────────────────────────────────────────────────────────

    def _start_batch(self, file_name: str, uploaded_by: str) -> ImportBatch:
        batch = ImportBatch(file_name=file_name, uploaded_by=uploaded_by)
        self.batches.create(batch)
        self.reporter.batch_started(batch)
        return batch

    def _finish_batch(self, batch: ImportBatch, started: float) -> ImportBatch:
        if batch.status == STATUS_PROCESSING:
            batch.status = STATUS_COMPLETED
        batch.processing_time_ms = int((time.monotonic() - started) * 1000)
        self.batches.update(batch)
        self.reporter.batch_finished(batch)
        logger.info(
            "%s  %s: %d imported, %d duplicate, %d failed, %d without title (%s)",
            "✓" if batch.status == STATUS_COMPLETED else "✗",
            batch.file_name,
            batch.rows_imported,
            batch.rows_duplicate,
            batch.rows_failed,
            batch.rows_skipped,
            batch.status,
        )
        return batch

    def _cancel(self, batch: ImportBatch) -> None:
        logger.warning("Import of %s cancelled after %d row(s).", batch.file_name, batch.rows_seen)
        batch.status = STATUS_FAILED
        self._record_error(batch, "import cancelled")

    def _record_error(self, batch: ImportBatch, message: str) -> None:
        if len(batch.errors) < self.max_errors:
            batch.errors.append(message)

    def _context(self, sheet: SheetData, row_index: int, file_name: str) -> SheetContext:
        return SheetContext(
            sheet=sheet,
            row_index=row_index,
            file_name=file_name,
            today=self.today or date.today(),
            default_deadline_days=self.default_deadline_days,
        )

    def _import_sheet_guarded(self, sheet: SheetData, batch: ImportBatch, file_name: str = "") -> None:
        try:
            self._import_rows(sheet, batch, file_name or batch.file_name)
        except ImportCancelled:
            raise
        except Exception as exc:
            batch.sheets_failed += 1
            self._record_error(batch, f"sheet {sheet.name}: {exc}")
            logger.error("✗  Sheet %s failed: %s", sheet.name, exc, exc_info=True)

    def _import_rows(self, sheet: SheetData, batch: ImportBatch, file_name: str) -> None:
        if len(sheet.rows) < 2:
            logger.info("Sheet %s has insufficient data, skipping.", sheet.name)
            batch.sheets_processed += 1
            return

        header_idx = detect_header_row(sheet.rows, self.header_probe_rows)
        above = [r for r in sheet.rows[:header_idx] if not _is_blank(r)]
        if above:
            # Banner lines above the header: seen, but not tenders
            batch.rows_seen += len(above)
            batch.rows_skipped += len(above)
            logger.info("Sheet %s: header on row %d, %d row(s) above it skipped.",
                        sheet.name, header_idx + 1, len(above))

        fmap = resolve_schema(sheet.rows[header_idx])
        logger.info("Sheet %s: columns %s", sheet.name, fmap.columns)
        if not fmap.has_title:
            logger.warning("Sheet %s has no title column — nothing to import.", sheet.name)
            batch.sheets_processed += 1
            self.reporter.sheet_finished(batch, sheet.name)
            return

        for r_idx in range(header_idx + 1, len(sheet.rows)):
            if self.cancel_event.is_set():
                raise ImportCancelled()

            row = sheet.rows[r_idx]
            if _is_blank(row):
                continue

            batch.rows_seen += 1
            try:
                record = assemble_row(row, fmap, self._context(sheet, r_idx, file_name))
                if record is None:
                    batch.rows_skipped += 1
                elif self.gate.admit(self._scored(record)):
                    batch.rows_imported += 1
                else:
                    batch.rows_duplicate += 1
            except Exception as exc:
                batch.rows_failed += 1
                self._record_error(batch, f"{sheet.name} row {r_idx + 1}: {exc}")
                logger.warning("Row %d of %s failed: %s", r_idx + 1, sheet.name, exc)

            if batch.rows_seen % self.progress_every == 0:
                self.batches.update(batch)
                self.reporter.progress(batch, sheet.name)

        batch.sheets_processed += 1
        self.batches.update(batch)
        self.reporter.sheet_finished(batch, sheet.name)

    def _scored(self, record):
        if self.profile is None:
            return record
        return score_tender(record, self.profile)
