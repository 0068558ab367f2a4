"""
Data model for tenders, the company profile, eligibility scores and import
batches. The importer, the scoring engine and the stores all pass these
dataclasses around; nothing here touches a spreadsheet or a file.
"""

import uuid
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional

SOURCE_GEM = "gem"
SOURCE_NON_GEM = "non_gem"

STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"


def _new_id() -> str:
    return uuid.uuid4().hex


def _unique(items) -> List[str]:
    """Trim, drop blanks and case-insensitive repeats; keep first-seen order."""
    seen = set()
    out = []
    for item in items or []:
        text = str(item).strip()
        if text and text.lower() not in seen:
            seen.add(text.lower())
            out.append(text)
    return out


@dataclass
class CompanyProfile:
    company_name: str = ""
    turnover_amount: float = 0.0          # ₹, already parsed from e.g. "5 cr"
    business_sectors: List[str] = field(default_factory=list)
    project_types: List[str] = field(default_factory=list)
    certifications: List[str] = field(default_factory=list)
    headquarters: str = ""
    established_year: Optional[int] = None

    def __post_init__(self):
        self.business_sectors = _unique(self.business_sectors)
        self.project_types = _unique(self.project_types)
        self.certifications = _unique(self.certifications)

    def is_empty(self) -> bool:
        return not (
            self.turnover_amount
            or self.business_sectors
            or self.project_types
            or self.certifications
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Requirements:
    """Eligibility details of a tender; unknown columns land in `extra`."""
    turnover: str = ""
    emd: str = ""
    category: str = ""
    msme_exemption: str = ""
    startup_exemption: str = ""
    document_fees: str = ""
    sheet: str = ""
    extra: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "Requirements":
        data = dict(data or {})
        extra = dict(data.pop("extra", None) or {})
        data = {k: "" if v is None else str(v) for k, v in data.items()}
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        # Anything we don't model explicitly is kept, not dropped
        extra.update({k: v for k, v in data.items() if k not in cls.__dataclass_fields__})
        return cls(extra=extra, **known)

    def as_text(self) -> str:
        """Cell values only, for keyword matching. The sheet name is provenance, not content."""
        values = [
            self.turnover,
            self.emd,
            self.category,
            self.msme_exemption,
            self.startup_exemption,
            self.document_fees,
        ]
        values.extend(self.extra.values())
        return " ".join(v for v in values if v)


@dataclass
class CriterionResult:
    criterion: str
    requirement_text: str
    capability_text: str
    met: bool
    score: int
    reason: str


@dataclass
class ScoreBreakdown:
    overall_score: int = 50
    criteria: List[CriterionResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["ScoreBreakdown"]:
        if not data:
            return None
        return cls(
            overall_score=int(data.get("overall_score", 50)),
            criteria=[CriterionResult(**c) for c in data.get("criteria", [])],
        )

    def summary(self) -> str:
        return "; ".join(f"{c.criterion}: {c.score}" for c in self.criteria)


@dataclass
class TenderRecord:
    # ── Identity ─────────────────────────────────────────────────────────────
    title: str = ""
    reference_number: str = ""
    id: str = field(default_factory=_new_id)
    source_tag: str = SOURCE_NON_GEM     # "gem" | "non_gem"

    # ── Organisation ─────────────────────────────────────────────────────────
    organization: str = ""
    location: str = ""

    # ── Financials ───────────────────────────────────────────────────────────
    value: int = 0                       # minor units: input × 100 (paise)

    # ── Dates ────────────────────────────────────────────────────────────────
    deadline: Optional[date] = None
    created_at: datetime = field(default_factory=datetime.now)

    # ── Description & eligibility ────────────────────────────────────────────
    description: str = ""
    requirements: Requirements = field(default_factory=Requirements)
    notes: str = ""

    # ── Link ─────────────────────────────────────────────────────────────────
    link: Optional[str] = None

    # ── Set by the scoring engine, never by the importer ─────────────────────
    score: Optional[ScoreBreakdown] = None

    @property
    def overall_score(self) -> Optional[int]:
        return self.score.overall_score if self.score else None

    def display_value(self) -> str:
        if not self.value:
            return "Not disclosed"
        return f"₹{self.value / 100:,.2f}"

    def display_deadline(self) -> str:
        if self.deadline:
            return self.deadline.strftime("%d %b %Y")
        return "—"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "reference_number": self.reference_number,
            "source_tag": self.source_tag,
            "organization": self.organization,
            "location": self.location,
            "value": self.value,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "created_at": self.created_at.isoformat(),
            "description": self.description,
            "requirements": self.requirements.to_dict(),
            "notes": self.notes,
            "link": self.link,
            "score": self.score.to_dict() if self.score else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TenderRecord":
        deadline = data.get("deadline")
        created = data.get("created_at")
        return cls(
            id=data.get("id") or _new_id(),
            title=data.get("title", ""),
            reference_number=data.get("reference_number", ""),
            source_tag=data.get("source_tag", SOURCE_NON_GEM),
            organization=data.get("organization", ""),
            location=data.get("location", ""),
            value=int(data.get("value", 0)),
            deadline=date.fromisoformat(deadline) if deadline else None,
            created_at=datetime.fromisoformat(created) if created else datetime.now(),
            description=data.get("description", ""),
            requirements=Requirements.from_dict(data.get("requirements")),
            notes=data.get("notes", ""),
            link=data.get("link"),
            score=ScoreBreakdown.from_dict(data.get("score")),
        )


@dataclass
class ImportBatch:
    file_name: str = ""
    id: str = field(default_factory=_new_id)
    uploaded_by: str = ""
    status: str = STATUS_PROCESSING      # processing | completed | failed

    rows_seen: int = 0
    rows_imported: int = 0
    rows_duplicate: int = 0
    rows_failed: int = 0
    rows_skipped: int = 0                # no title, not a failure
    sheets_processed: int = 0
    sheets_failed: int = 0
    errors: List[str] = field(default_factory=list)

    started_at: datetime = field(default_factory=datetime.now)
    processing_time_ms: Optional[int] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        return data
