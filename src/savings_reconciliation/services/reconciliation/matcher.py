"""Matching of controller-report rows to known teachers.

Identifier matches are authoritative: when a row carries an employee number
found in the roster, no name comparison happens at all. Rows without a usable
identifier fall back to an exact full-name comparison, then to a token-overlap
score with a bonus for agreeing management units.

Scores are kept as fractions so the threshold comparison is exact.
"""

import logging
from collections.abc import Sequence
from fractions import Fraction

from savings_reconciliation.config import settings
from savings_reconciliation.models import (
    MatchMethod,
    MatchResult,
    RawDeductionRecord,
    TeacherRecord,
)
from savings_reconciliation.services.reconciliation.teacher_index import TeacherIndex

logger = logging.getLogger(__name__)

NO_MATCH = MatchResult(matched_teacher=None, match_method=MatchMethod.NONE)


def _normalize_text(value: str | None) -> str:
    return (value or "").strip().lower()


def tokenize(name: str | None) -> list[str]:
    return _normalize_text(name).split()


class FuzzyScorer:
    def __init__(
        self,
        threshold: float | None = None,
        unit_bonus: float | None = None,
        min_token_length: int | None = None,
    ) -> None:
        self.threshold = Fraction(
            str(threshold if threshold is not None else settings.fuzzy_match_threshold)
        )
        self.unit_bonus = Fraction(
            str(unit_bonus if unit_bonus is not None else settings.unit_match_bonus)
        )
        self.min_token_length = (
            min_token_length if min_token_length is not None else settings.min_token_length
        )

    def name_score(self, record_name: str, teacher_name: str) -> Fraction:
        record_tokens = tokenize(record_name)
        teacher_tokens = tokenize(teacher_name)
        denominator = max(len(record_tokens), len(teacher_tokens))
        if denominator == 0:
            return Fraction(0)

        matched = 0
        for token in record_tokens:
            if len(token) < self.min_token_length:
                continue
            if any(token in other or other in token for other in teacher_tokens):
                matched += 1
        return Fraction(matched, denominator)

    def unit_score(self, record_unit: str | None, teacher_unit: str | None) -> Fraction:
        record_unit = _normalize_text(record_unit)
        teacher_unit = _normalize_text(teacher_unit)
        if not record_unit or not teacher_unit:
            return Fraction(0)
        if record_unit in teacher_unit or teacher_unit in record_unit:
            return self.unit_bonus
        return Fraction(0)

    def score(self, record: RawDeductionRecord, teacher: TeacherRecord) -> Fraction:
        return self.name_score(record.employee_name, teacher.full_name) + self.unit_score(
            record.management_unit, teacher.management_unit
        )

    def accepts(self, score: Fraction | float) -> bool:
        return score > self.threshold


def find_exact_name_match(
    record: RawDeductionRecord, teachers: Sequence[TeacherRecord]
) -> TeacherRecord | None:
    """Return the single teacher whose full name equals the row's name."""
    wanted = _normalize_text(record.employee_name)
    found = [teacher for teacher in teachers if _normalize_text(teacher.full_name) == wanted]
    if len(found) == 1:
        return found[0]
    if len(found) > 1:
        logger.info(
            "Name %r matches %s teachers exactly; falling back to scoring",
            record.employee_name,
            len(found),
        )
    return None


def find_best_fuzzy_match(
    record: RawDeductionRecord,
    teachers: Sequence[TeacherRecord],
    scorer: FuzzyScorer,
) -> tuple[TeacherRecord | None, Fraction]:
    best: TeacherRecord | None = None
    best_score = Fraction(0)
    for teacher in teachers:
        score = scorer.score(record, teacher)
        if scorer.accepts(score) and score > best_score:
            best = teacher
            best_score = score
    return best, best_score


def match(
    record: RawDeductionRecord,
    teachers: Sequence[TeacherRecord],
    index: TeacherIndex,
    scorer: FuzzyScorer | None = None,
) -> MatchResult:
    """Match one deduction row against the roster. Never raises for a miss."""
    if record.employee_number and record.employee_number.strip():
        teacher = index.lookup_by_id(record.employee_number)
        if teacher:
            return MatchResult(teacher, MatchMethod.EXACT_ID, score=1.0)

    teacher = find_exact_name_match(record, teachers)
    if teacher:
        return MatchResult(teacher, MatchMethod.EXACT_ID, score=1.0)

    teacher, score = find_best_fuzzy_match(record, teachers, scorer or FuzzyScorer())
    if teacher is None:
        return NO_MATCH
    return MatchResult(teacher, MatchMethod.FUZZY, score=float(score))
