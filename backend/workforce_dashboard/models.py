from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Generic, Sequence, TypeVar

CORRECTION_STATUSES = ("Pending", "In Progress", "Completed", "Rejected")
ISSUE_STATUSES = ("Issue", "Offline")

T = TypeVar("T")


@dataclass(frozen=True)
class VisitRecord:
    date: str
    visitor_name: str
    department: str
    designation: str
    project_name: str
    entry_time: str
    out_time: str
    duration: str
    remarks: str = ""

    def as_dict(self) -> dict[str, str]:
        return {
            "date": self.date,
            "visitor_name": self.visitor_name,
            "department": self.department,
            "designation": self.designation,
            "project_name": self.project_name,
            "entry_time": self.entry_time,
            "out_time": self.out_time,
            "duration": self.duration,
            "remarks": self.remarks,
        }


@dataclass(frozen=True)
class CorrectionRecord:
    officer: str
    department: str
    designation: str
    project_name: str
    document_type: str
    tracking_number: str
    correction_type: str
    entry_date: str
    entry_time: str
    status: str
    old_data: str = ""
    new_data: str = ""
    completed_date: str | None = None
    completed_time: str | None = None
    remarks: str | None = None

    def __post_init__(self) -> None:
        if self.status not in CORRECTION_STATUSES:
            raise ValueError(f"Invalid correction status: {self.status!r}")
        if self.status != "Completed" and (self.completed_date or self.completed_time):
            raise ValueError("completed date/time is only allowed for Completed corrections")

    def as_dict(self) -> dict[str, str | None]:
        return {
            "officer": self.officer,
            "department": self.department,
            "designation": self.designation,
            "project_name": self.project_name,
            "document_type": self.document_type,
            "tracking_number": self.tracking_number,
            "correction_type": self.correction_type,
            "entry_date": self.entry_date,
            "entry_time": self.entry_time,
            "status": self.status,
            "completed_date": self.completed_date,
            "completed_time": self.completed_time,
            "old_data": self.old_data,
            "new_data": self.new_data,
            "remarks": self.remarks,
        }


@dataclass(frozen=True)
class AssignedIssue:
    id: str
    issue: str
    reported_at: date
    assigned_to: str
    status: str
    project_name: str
    zone: str

    def __post_init__(self) -> None:
        if self.status not in ISSUE_STATUSES:
            raise ValueError(f"Invalid issue status: {self.status!r}")

    def as_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "issue": self.issue,
            "reported_at": self.reported_at.isoformat(),
            "assigned_to": self.assigned_to,
            "status": self.status,
            "project_name": self.project_name,
            "zone": self.zone,
        }


@dataclass(frozen=True)
class DurationRule:
    display_seconds: float
    calc_seconds: float

    @property
    def is_exempt(self) -> bool:
        return self.display_seconds == 0


@dataclass(frozen=True)
class RowError:
    line_number: int
    reason: str

    @property
    def message(self) -> str:
        return f"Row {self.line_number}: {self.reason}"


@dataclass(frozen=True)
class ImportResult(Generic[T]):
    records: tuple[T, ...] = ()
    error: RowError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, records: Sequence[T]) -> "ImportResult[T]":
        return cls(records=tuple(records))

    @classmethod
    def failure(cls, line_number: int, reason: str) -> "ImportResult[T]":
        return cls(error=RowError(line_number=line_number, reason=reason))
