"""
Pure aggregation helpers behind every dashboard report.

Nothing here performs I/O or mutates its inputs: each function takes flat
record sequences plus explicit configuration and returns fresh values.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Callable, Hashable, Iterable, Mapping, Sequence, TypeVar

from .models import DurationRule, VisitRecord

R = TypeVar("R")
K = TypeVar("K", bound=Hashable)

HOUR = 3600
BASELINE_SECONDS = 4 * HOUR

EXEMPT_DEPARTMENTS = frozenset(
    {
        "Internal Audit",
        "Brand Management",
        "Planning & Design (Architectural)",
        "Electro-Mechanical",
        "Information Technology (IT)",
        "Management Information System (MIS)",
        "Material Quality Assurance & Purchase",
    }
)
PROJECT_SIDE_INVENTORY_DESIGNATIONS = frozenset(
    {
        "Assistant Project Accountant (CH)",
        "Site Accountant (CH)",
    }
)
INVENTORY_DEPARTMENT = "Inventory Mgt."
INVENTORY_PROJECT_SIDE_DEPARTMENT = "Inventory Mgt. (Project Side)"
SECURITY_DEPARTMENT = "HR & Admin (Security)"

DEPARTMENT_ORDER = (
    "Construction",
    "Inventory Mgt.",
    "Inventory Mgt. (Project Side)",
    "Internal Audit",
    "Quality Assurance",
    "HR & Admin (Security)",
    "Planning & Design (Architectural)",
    "Electro-Mechanical",
    "Information Technology",
    "Material Quality Assurance & Purchase",
)

_INVENTORY_DESIGNATIONS = (
    "Deputy Manager",
    "Asst. Manager",
    "Senior Executive",
    "Site Accountant (CH)",
    "Assistant Project Accountant (CH)",
    "Assistant Project Accountant (CH) [for Inventory Mgt.]",
)

DESIGNATION_ORDER_BY_DEPT: dict[str, tuple[str, ...]] = {
    "Construction": (
        "Director",
        "AGM",
        "D.M",
        "Deputy Manager",
        "Asst. Manager",
        "Asst. Manager [for construction]",
    ),
    "Inventory Mgt.": _INVENTORY_DESIGNATIONS,
    "Inventory Mgt. (Project Side)": _INVENTORY_DESIGNATIONS,
    "Internal Audit": ("Deputy Manager", "Junior Executive"),
    "Quality Assurance": (
        "Manager",
        "Asst. Manager",
        "Sr. Executive",
        "Sr. Executive [Quality Assurance]",
    ),
    "HR & Admin (Security)": (
        "Sr. Manager",
        "Manager",
        "Asst. Manager",
        "Executive",
        "Security Supervisor [For HR & Admin (Security)]",
    ),
    "Planning & Design (Architectural)": (
        "Associate Architect",
        "Senior Assistant Architect",
        "Assistant Architect",
        "Junior Architect",
        "Junior Surveyor",
        "Junior Architect [for Planning & Design (Architectural)]",
    ),
    "Electro-Mechanical": (
        "AGM",
        "Senior Executive",
        "Executive",
        "Junior Executive",
        "Electrician",
        "Electrician [for Electro-Mechanical]",
    ),
    "Information Technology": (
        "Senior Executive",
        "IT Technician",
        "Intern [for Information technology]",
    ),
    "Material Quality Assurance & Purchase": (
        "Head of Procurement",
        "Manager",
        "Assistant Manager",
        "Senior Executive",
        "Executive",
        "Junior Executive",
        "Junior Executive [for Material Quality Assurance & Purchase]",
    ),
}

BUCKET_AT_LEAST_20 = ">=20min"
BUCKET_10_TO_19 = "10-19min"
BUCKET_5_TO_9 = "5-9min"
BUCKET_UNDER_5 = "<5min"
SHORT_VISIT_SECONDS = 300

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


# ---------------------------------------------------------------------------
# Durations
# ---------------------------------------------------------------------------


def parse_duration_to_seconds(value: Any) -> float:
    if not isinstance(value, str) or not value:
        return 0
    parts = value.split(":")
    if len(parts) != 3:
        return 0
    try:
        hours, minutes, seconds = (float(part) for part in parts)
    except ValueError:
        return 0
    total = hours * HOUR + minutes * 60 + seconds
    if not math.isfinite(total) or total < 0:
        return 0
    return int(total) if total.is_integer() else total


def format_seconds_to_hhmm(total_seconds: float | None) -> str:
    if total_seconds is None or math.isnan(total_seconds) or total_seconds < 0:
        return "00:00"
    # Nearest minute, halves rounding up.
    total_minutes = int(math.floor(total_seconds / 60 + 0.5))
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours:02d}:{minutes:02d}"


def format_signed_percent(value: float) -> str:
    icon = "▲" if value > 0 else "▼" if value < 0 else "–"
    return f"{icon} {abs(value):.2f}%"


# ---------------------------------------------------------------------------
# Rule resolver
# ---------------------------------------------------------------------------


def _parse_override_hours(value: str | None) -> float | None:
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    try:
        hours = float(text)
    except ValueError:
        return None
    if not math.isfinite(hours) or hours < 0:
        return None
    return hours


def resolve_duration(department: str, designation: str, override: str | None = None) -> DurationRule:
    if department in EXEMPT_DEPARTMENTS:
        rule = DurationRule(display_seconds=0, calc_seconds=BASELINE_SECONDS)
    elif department == INVENTORY_DEPARTMENT and designation in PROJECT_SIDE_INVENTORY_DESIGNATIONS:
        rule = DurationRule(display_seconds=4 * HOUR, calc_seconds=4 * HOUR)
    elif department == INVENTORY_PROJECT_SIDE_DEPARTMENT and designation in PROJECT_SIDE_INVENTORY_DESIGNATIONS:
        rule = DurationRule(display_seconds=6 * HOUR, calc_seconds=6 * HOUR)
    elif department == SECURITY_DEPARTMENT:
        rule = DurationRule(display_seconds=7 * HOUR, calc_seconds=7 * HOUR)
    else:
        rule = DurationRule(display_seconds=4 * HOUR, calc_seconds=4 * HOUR)

    hours = _parse_override_hours(override)
    if hours is None:
        return rule
    if hours == 0:
        # A zero target still needs a non-zero denominator.
        return DurationRule(display_seconds=0, calc_seconds=BASELINE_SECONDS)
    return DurationRule(display_seconds=hours * HOUR, calc_seconds=hours * HOUR)


# ---------------------------------------------------------------------------
# Period filter
# ---------------------------------------------------------------------------


def parse_month(value: str) -> tuple[int, int]:
    match = _MONTH_RE.match((value or "").strip())
    if not match:
        raise ValueError("month must be in YYYY-MM format")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError("month must be in YYYY-MM format")
    return year, month


def month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def previous_month(year: int, month: int) -> tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def next_month(year: int, month: int) -> tuple[int, int]:
    if month == 12:
        return year + 1, 1
    return year, month + 1


def months_in_range(start_month: str, end_month: str) -> list[str]:
    year, month = parse_month(start_month)
    end = parse_month(end_month)
    months: list[str] = []
    while (year, month) <= end:
        months.append(month_key(year, month))
        year, month = next_month(year, month)
    return months


def month_range_error(start_month: str, end_month: str, max_months: int = 6) -> str | None:
    months = months_in_range(start_month, end_month)
    if len(months) > max_months:
        return f"The date range cannot exceed {max_months} months."
    if parse_month(start_month) > parse_month(end_month):
        return "Start month cannot be after end month."
    return None


def is_iso_date(value: Any) -> bool:
    return isinstance(value, str) and bool(_ISO_DATE_RE.match(value))


def filter_by_period(
    records: Iterable[R],
    year: int,
    month: int,
    date_of: Callable[[R], str] = lambda record: record.date,  # type: ignore[attr-defined]
) -> list[R]:
    selected: list[R] = []
    for record in records:
        value = date_of(record)
        if not is_iso_date(value):
            continue
        if int(value[:4]) == year and int(value[5:7]) == month:
            selected.append(record)
    return selected


def filter_by_month_prefix(records: Iterable[VisitRecord], month_value: str) -> list[VisitRecord]:
    return [record for record in records if (record.date or "").startswith(month_value)]


def filter_by_date_range(
    records: Iterable[R],
    start: date | None,
    end: date | None,
    date_of: Callable[[R], date | None],
) -> list[R]:
    selected: list[R] = []
    for record in records:
        value = date_of(record)
        if value is None:
            continue
        if start is not None and value < start:
            continue
        if end is not None and value > end:
            continue
        selected.append(record)
    return selected


def previous_date_window(start: date, end: date) -> tuple[date, date]:
    length_days = (end - start).days + 1
    return start - timedelta(days=length_days), start - timedelta(days=1)


# ---------------------------------------------------------------------------
# Per-entity aggregator
# ---------------------------------------------------------------------------


def bucket_for_seconds(seconds: float) -> str:
    if seconds >= 1200:
        return BUCKET_AT_LEAST_20
    if seconds >= 600:
        return BUCKET_10_TO_19
    if seconds >= 300:
        return BUCKET_5_TO_9
    return BUCKET_UNDER_5


@dataclass(frozen=True)
class DurationBuckets:
    more_than_20: int = 0
    ten_to_19: int = 0
    five_to_9: int = 0
    less_than_5: int = 0

    @classmethod
    def from_seconds(cls, durations: Iterable[float]) -> "DurationBuckets":
        counts = {
            BUCKET_AT_LEAST_20: 0,
            BUCKET_10_TO_19: 0,
            BUCKET_5_TO_9: 0,
            BUCKET_UNDER_5: 0,
        }
        for seconds in durations:
            counts[bucket_for_seconds(seconds)] += 1
        return cls(
            more_than_20=counts[BUCKET_AT_LEAST_20],
            ten_to_19=counts[BUCKET_10_TO_19],
            five_to_9=counts[BUCKET_5_TO_9],
            less_than_5=counts[BUCKET_UNDER_5],
        )

    def as_dict(self) -> dict[str, int]:
        return {
            "more_than_20": self.more_than_20,
            "ten_to_19": self.ten_to_19,
            "five_to_9": self.five_to_9,
            "less_than_5": self.less_than_5,
        }


@dataclass(frozen=True)
class Aggregate:
    total_duration_seconds: float
    visit_count: int
    distinct_project_count: int
    visited_day_count: int
    buckets: DurationBuckets

    @property
    def short_visit_count(self) -> int:
        return self.buckets.less_than_5


EMPTY_AGGREGATE = Aggregate(
    total_duration_seconds=0,
    visit_count=0,
    distinct_project_count=0,
    visited_day_count=0,
    buckets=DurationBuckets(),
)


def summarize_visits(records: Sequence[VisitRecord]) -> Aggregate:
    if not records:
        return EMPTY_AGGREGATE
    durations = [parse_duration_to_seconds(record.duration) for record in records]
    return Aggregate(
        total_duration_seconds=sum(durations),
        visit_count=len(records),
        distinct_project_count=len({record.project_name for record in records}),
        visited_day_count=len({record.date for record in records}),
        buckets=DurationBuckets.from_seconds(durations),
    )


def group_records(records: Iterable[R], key_fn: Callable[[R], K]) -> dict[K, list[R]]:
    grouped: dict[K, list[R]] = {}
    for record in records:
        grouped.setdefault(key_fn(record), []).append(record)
    return grouped


def aggregate(
    records: Iterable[VisitRecord],
    key_fn: Callable[[VisitRecord], K] = lambda record: record.visitor_name,  # type: ignore[assignment,return-value]
) -> dict[K, Aggregate]:
    return {key: summarize_visits(items) for key, items in group_records(records, key_fn).items()}


# ---------------------------------------------------------------------------
# Stability / trend
# ---------------------------------------------------------------------------


def achieved_percent(actual_seconds: float, working_days: float, target_per_day_seconds: float) -> float:
    denominator = working_days * target_per_day_seconds
    if denominator <= 0:
        return 0.0
    return (actual_seconds / denominator) * 100


def stability(current_percent: float, previous_percent: float) -> float:
    return current_percent - previous_percent


def per_day_average(total_seconds: float, divisor: float) -> float:
    return total_seconds / divisor if divisor > 0 else 0.0


def average_stability(current_average: float, previous_average: float) -> float:
    if previous_average > 0:
        return ((current_average - previous_average) / previous_average) * 100
    if previous_average == 0 and current_average > 0:
        return 100.0
    return 0.0


def percent_change(current: float, previous: float) -> float:
    if previous == 0:
        return math.inf if current > 0 else 0.0
    return ((current - previous) / previous) * 100


def trend(percentages: Sequence[float]) -> float:
    if len(percentages) < 2:
        return 0.0
    return percentages[-1] - percentages[0]


# ---------------------------------------------------------------------------
# Sort / group composer
# ---------------------------------------------------------------------------


def sort_rows(
    rows: Iterable[Mapping[str, Any]],
    department_order: Sequence[str] = DEPARTMENT_ORDER,
    designation_order_by_dept: Mapping[str, Sequence[str]] = DESIGNATION_ORDER_BY_DEPT,
    *,
    name_key: str = "visitor_name",
) -> list[Mapping[str, Any]]:
    department_rank = {name: index for index, name in enumerate(department_order)}
    designation_ranks = {
        department: {designation: index for index, designation in enumerate(designations)}
        for department, designations in designation_order_by_dept.items()
    }

    def _key(row: Mapping[str, Any]) -> tuple[float, float, str]:
        department = row.get("department") or ""
        ranks = designation_ranks.get(department, {})
        return (
            department_rank.get(department, math.inf),
            ranks.get(row.get("designation") or "", math.inf),
            str(row.get(name_key) or ""),
        )

    return sorted(rows, key=_key)


def group_rows_by_department(rows: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
    grouped = group_records(rows, lambda row: row.get("department") or "")
    groups: list[dict[str, Any]] = []
    for department, members in grouped.items():
        if department == INVENTORY_DEPARTMENT:
            head_office = [row for row in members if row.get("designation") not in PROJECT_SIDE_INVENTORY_DESIGNATIONS]
            project_side = [row for row in members if row.get("designation") in PROJECT_SIDE_INVENTORY_DESIGNATIONS]
            subgroups = [
                {"label": label, "rows": items}
                for label, items in (("Head Office", head_office), ("Project Side", project_side))
                if items
            ]
        else:
            subgroups = [{"label": None, "rows": list(members)}]
        groups.append({"department": department, "subgroups": subgroups, "row_count": len(members)})
    return groups


# ---------------------------------------------------------------------------
# Timeline / interval merger
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Interval:
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def as_dict(self) -> dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


def merge_intervals(dates: Iterable[date]) -> list[Interval]:
    ordered = sorted(set(dates))
    if not ordered:
        return []

    intervals: list[Interval] = []
    start = end = ordered[0]
    for current in ordered[1:]:
        if (current - end).days == 1:
            end = current
            continue
        intervals.append(Interval(start=start, end=end))
        start = end = current
    intervals.append(Interval(start=start, end=end))
    return intervals


def total_active_days(intervals: Iterable[Interval]) -> int:
    return sum(interval.days for interval in intervals)
