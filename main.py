"""
main.py — entry point for the tender importer.

Usage:
    python main.py tenders.xlsx              # Import, score, save the report
    python main.py a.xlsx b.xlsx --by priya  # Several files, record the uploader
    python main.py --rescore                 # Rescore everything (after a profile edit)
    python main.py --relink tenders.xlsx     # Fill in links on stored tenders
    python main.py --dedupe                  # Remove duplicates already in the store
    python main.py --score 70                # Only report tenders with score >= 70
    python main.py --dry-run                 # Print results, don't save Excel
"""

import argparse
import logging
import sys
from datetime import datetime
from typing import List

# ── Logging setup ─────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s  —  %(message)s",
    datefmt="%H:%M:%S",
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler("import.log", encoding="utf-8"),
    ],
)
logger = logging.getLogger("main")

# ── Project imports ───────────────────────────────────────────────────────────
import config
from ingestion.dedup import remove_duplicates
from ingestion.importer import TenderImporter
from ingestion.models import ImportBatch, TenderRecord
from output_engine.excel_exporter import export_to_excel
from scoring.eligibility import rank_tenders, rescore_all
from storage.tender_store import JsonFileTenderStore


def run_import(
    files: List[str],
    uploaded_by: str = "",
    min_score: int = 50,
    dry_run: bool = False,
    rescore: bool = False,
    dedupe: bool = False,
    relink: List[str] = None,
) -> str | None:
    """
    Full cycle:  import → (dedupe) → (rescore) → rank → export.
    Returns the path to the saved Excel file, or None on dry-run.
    """
    run_start = datetime.now()
    logger.info("=" * 60)
    logger.info("Tender import starting at %s", run_start.strftime("%d %b %Y %H:%M:%S"))
    logger.info("=" * 60)

    store = JsonFileTenderStore(config.STORE_FILE)
    profile = config.load_company_profile()
    importer = TenderImporter(store, profile=profile)

    # ── 1. Import every file ──────────────────────────────────────────────────
    batches: List[ImportBatch] = [
        importer.import_workbook(path, uploaded_by=uploaded_by) for path in files
    ]

    for path in relink or []:
        importer.relink_workbook(path)

    # ── 2. Housekeeping ───────────────────────────────────────────────────────
    if dedupe:
        remove_duplicates(store)
    if rescore:
        rescore_all(store, profile)

    # ── 3. Rank & summarise ───────────────────────────────────────────────────
    all_tenders = store.list()
    eligible = rank_tenders(all_tenders, min_score=min_score)
    _print_summary(batches, eligible, all_tenders, run_start)

    if dry_run:
        logger.info("Dry-run mode — no Excel file saved.")
        return None

    # ── 4. Export to Excel ────────────────────────────────────────────────────
    filepath = export_to_excel(eligible, rank_tenders(all_tenders))
    logger.info("Report saved: %s", filepath)
    return filepath


def _print_summary(
    batches: List[ImportBatch],
    eligible: List[TenderRecord],
    all_tenders: List[TenderRecord],
    run_start: datetime,
) -> None:
    """Print a readable summary table to stdout."""
    elapsed = (datetime.now() - run_start).seconds

    print()
    print("━" * 72)
    print(f"  TENDER IMPORT RESULTS  —  {datetime.now().strftime('%d %b %Y')}")
    print("━" * 72)
    for b in batches:
        print(f"  {b.file_name[:40]:<40}  {b.status}")
        print(f"      imported {b.rows_imported:>5}   duplicate {b.rows_duplicate:>5}"
              f"   failed {b.rows_failed:>5}   no title {b.rows_skipped:>5}")
        for err in b.errors[:5]:
            print(f"      ! {err}")
        if len(b.errors) > 5:
            print(f"      … and {len(b.errors) - 5} more error(s)")
    print(f"  Tenders stored : {len(all_tenders):>4}")
    print(f"  Eligible       : {len(eligible):>4}")
    print(f"  Elapsed        : {elapsed}s")
    print("━" * 72)

    if not eligible:
        print("  No eligible tenders. Try lowering --score or updating the profile.")
        print()
        return

    print(f"  {'#':>3}  {'Score':>7}  {'Source':<8}  {'Title':<38}  {'Deadline'}")
    print(f"  {'─'*3}  {'─'*7}  {'─'*8}  {'─'*38}  {'─'*11}")

    for i, t in enumerate(eligible[:30], 1):   # Show top 30 in console
        score_str = f"{t.overall_score if t.overall_score is not None else '—':>3}/100"
        source = "GeM" if t.source_tag == "gem" else "Non-GeM"
        title = (t.title[:37] + "…") if len(t.title) > 38 else t.title.ljust(38)
        print(f"  {i:>3}  {score_str}  {source:<8}  {title}  {t.display_deadline()}")

    if len(eligible) > 30:
        print(f"  … and {len(eligible) - 30} more — see the Excel file for full list.")

    print()
    print("  Top 3 (open these first):")
    for t in eligible[:3]:
        print(f"    [{t.overall_score}/100]  {t.title}")
        print(f"           Org   : {t.organization}")
        print(f"           Value : {t.display_value()}")
        print(f"           Due   : {t.display_deadline()}")
        if t.score:
            for c in t.score.criteria:
                print(f"           {c.criterion:<16}{c.score:>4}  {c.reason}")
        print(f"           URL   : {t.link or '—'}")
        print()
    print("━" * 72)


# ── CLI ───────────────────────────────────────────────────────────────────────

def main():
    parser = argparse.ArgumentParser(
        description="Tender spreadsheet importer & eligibility scorer"
    )
    parser.add_argument("files", nargs="*", help="Tender spreadsheets (.xlsx) to import")
    parser.add_argument("--by", default="", help="Name of the person uploading")
    parser.add_argument(
        "--rescore",
        action="store_true",
        help="Recompute every stored tender's score against company_profile.yaml",
    )
    parser.add_argument(
        "--relink",
        nargs="+",
        default=[],
        metavar="FILE",
        help="Re-read these spreadsheets only to fill in missing tender links",
    )
    parser.add_argument(
        "--dedupe",
        action="store_true",
        help="Remove duplicate tenders already in the store",
    )
    parser.add_argument(
        "--score",
        type=int,
        default=None,
        help="Minimum eligibility score to report (default: read from company_profile.yaml)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print results to console only — do not save Excel",
    )
    args = parser.parse_args()

    if not (args.files or args.rescore or args.relink or args.dedupe):
        parser.error("nothing to do: give spreadsheet files or --rescore/--relink/--dedupe")

    # Score: CLI flag wins; otherwise use what's in company_profile.yaml
    min_score = args.score if args.score is not None else config.DEFAULT_MIN_SCORE

    run_import(
        args.files,
        uploaded_by=args.by,
        min_score=min_score,
        dry_run=args.dry_run,
        rescore=args.rescore,
        dedupe=args.dedupe,
        relink=args.relink,
    )


if __name__ == "__main__":
    main()
