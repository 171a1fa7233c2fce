from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


class MatchMethod(str, Enum):
    EXACT_ID = "exact_id"
    FUZZY = "fuzzy"
    NONE = "none"


class ReportStatus(str, Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


@dataclass(frozen=True)
class RawDeductionRecord:
    """A single row extracted from an uploaded controller report."""

    employee_name: str
    monthly_deduction: Decimal
    employee_number: str | None = None
    management_unit: str | None = None
    row_number: int | None = None


@dataclass(frozen=True)
class SkippedRow:
    """A data row the parser dropped, kept so the run can report it."""

    row_number: int
    reason: str


@dataclass(frozen=True)
class ParsedSheet:
    records: list[RawDeductionRecord]
    skipped_rows: list[SkippedRow] = field(default_factory=list)


@dataclass(frozen=True)
class TeacherRecord:
    id: str
    full_name: str
    employee_id: str
    management_unit: str


@dataclass(frozen=True)
class MatchResult:
    """Outcome of matching one deduction row against the teacher roster."""

    matched_teacher: TeacherRecord | None
    match_method: MatchMethod
    score: float = 0.0

    def __post_init__(self) -> None:
        if (self.matched_teacher is None) != (self.match_method is MatchMethod.NONE):
            raise ValueError("matched_teacher must be set iff match_method is not NONE")

    @property
    def matched(self) -> bool:
        return self.matched_teacher is not None


@dataclass(frozen=True)
class LedgerTransaction:
    user_id: str
    transaction_type: str
    amount: Decimal
    description: str
    transaction_date: date
    reference_id: str
    status: str
    payment_method: str


@dataclass(frozen=True)
class MatchedTeacherSummary:
    name: str
    amount: Decimal
    management_unit: str
    teacher_id: str | None = None


@dataclass(frozen=True)
class UnmatchedTeacherSummary:
    name: str
    amount: Decimal
    management_unit: str
    reason: str


@dataclass
class ProcessingResult:
    """Aggregate outcome of one controller-report reconciliation run."""

    attempted_records: int = 0
    matched_records: int = 0
    unmatched_records: int = 0
    processed_transactions: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    matched_teachers: list[MatchedTeacherSummary] = field(default_factory=list)
    unmatched_teachers: list[UnmatchedTeacherSummary] = field(default_factory=list)
    report_id: str | None = None

    @property
    def total_records(self) -> int:
        return self.matched_records + self.unmatched_records

    @property
    def status(self) -> ReportStatus:
        return ReportStatus.FAILED if self.errors else ReportStatus.PROCESSED


@dataclass(frozen=True)
class ReportUploadRecord:
    id: str
    report_month: int
    report_year: int
    file_name: str
    file_url: str
    uploaded_by: str
    status: ReportStatus
    processed_at: datetime | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class UserProfile:
    id: str
    email: str
    role: str
    full_name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

