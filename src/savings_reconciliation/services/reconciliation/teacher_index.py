"""Read-only lookup over one snapshot of the teacher roster."""

import logging
from collections.abc import Iterable

from savings_reconciliation.models import TeacherRecord

logger = logging.getLogger(__name__)


def normalize_identifier(value: str | None) -> str:
    if not value:
        return ""
    return value.strip().upper()


class TeacherIndex:
    def __init__(self, teachers: Iterable[TeacherRecord]) -> None:
        self._teachers = tuple(teachers)
        self._by_employee_id: dict[str, TeacherRecord] = {}
        for teacher in self._teachers:
            key = normalize_identifier(teacher.employee_id)
            if not key:
                continue
            if key in self._by_employee_id:
                logger.warning(
                    "Duplicate employee id %s in roster; keeping teacher %s",
                    key,
                    self._by_employee_id[key].id,
                )
                continue
            self._by_employee_id[key] = teacher

    @property
    def teachers(self) -> tuple[TeacherRecord, ...]:
        return self._teachers

    def __len__(self) -> int:
        return len(self._teachers)

    def lookup_by_id(self, employee_id: str | None) -> TeacherRecord | None:
        key = normalize_identifier(employee_id)
        if not key:
            return None
        return self._by_employee_id.get(key)


def build(teachers: Iterable[TeacherRecord]) -> TeacherIndex:
    return TeacherIndex(teachers)
