from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Iterator

from .importers import parse_erp_date
from .models import AssignedIssue, CorrectionRecord, VisitRecord

logger = logging.getLogger(__name__)


def _correction_sort_key(record: CorrectionRecord) -> date:
    return parse_erp_date(record.entry_date) or date.min


@dataclass
class DashboardState:
    visits: list[VisitRecord] = field(default_factory=list)
    supervisor_visits: list[VisitRecord] = field(default_factory=list)
    working_days: dict[str, int] = field(default_factory=dict)
    it_issues: list[AssignedIssue] = field(default_factory=list)
    corrections: list[CorrectionRecord] = field(default_factory=list)


class DashboardStore:
    """In-memory record store shared by all requests; contents are lost on restart."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = DashboardState()

    @contextmanager
    def session(self) -> Iterator[DashboardState]:
        with self._lock:
            yield self._state

    def snapshot_visits(self) -> list[VisitRecord]:
        with self.session() as state:
            return list(state.visits)

    def snapshot_supervisor_visits(self) -> list[VisitRecord]:
        with self.session() as state:
            return list(state.supervisor_visits)

    def snapshot_it_issues(self) -> list[AssignedIssue]:
        with self.session() as state:
            return list(state.it_issues)

    def snapshot_corrections(self) -> list[CorrectionRecord]:
        with self.session() as state:
            return list(state.corrections)

    def snapshot_working_days(self) -> dict[str, int]:
        with self.session() as state:
            return dict(state.working_days)

    def add_visits(self, records: Iterable[VisitRecord]) -> int:
        with self.session() as state:
            state.visits.extend(records)
            state.visits.sort(key=lambda visit: visit.date, reverse=True)
            return len(state.visits)

    def add_supervisor_visits(self, records: Iterable[VisitRecord]) -> int:
        with self.session() as state:
            state.supervisor_visits.extend(records)
            state.supervisor_visits.sort(key=lambda visit: visit.date, reverse=True)
            return len(state.supervisor_visits)

    def add_it_issues(self, records: Iterable[AssignedIssue]) -> int:
        with self.session() as state:
            state.it_issues.extend(records)
            state.it_issues.sort(key=lambda issue: issue.reported_at, reverse=True)
            return len(state.it_issues)

    def add_corrections(self, records: Iterable[CorrectionRecord]) -> int:
        with self.session() as state:
            state.corrections.extend(records)
            state.corrections.sort(key=_correction_sort_key, reverse=True)
            return len(state.corrections)

    def set_working_days(self, entries: Iterable[tuple[str, int]]) -> int:
        with self.session() as state:
            updated = 0
            for name, days in entries:
                state.working_days[name] = days
                updated += 1
            return updated

    def clear_visits(self) -> None:
        with self.session() as state:
            state.visits.clear()
            state.working_days.clear()
        logger.info("Cleared visit records")

    def clear_supervisor_visits(self) -> None:
        with self.session() as state:
            state.supervisor_visits.clear()
        logger.info("Cleared supervisor visit records")

    def clear_it_issues(self) -> None:
        with self.session() as state:
            state.it_issues.clear()
        logger.info("Cleared IT issue records")

    def clear_corrections(self) -> None:
        with self.session() as state:
            state.corrections.clear()
        logger.info("Cleared ERP correction records")

    def counts(self) -> dict[str, Any]:
        with self.session() as state:
            return {
                "visits": len(state.visits),
                "supervisor_visits": len(state.supervisor_visits),
                "working_days": len(state.working_days),
                "it_issues": len(state.it_issues),
                "erp_corrections": len(state.corrections),
            }
