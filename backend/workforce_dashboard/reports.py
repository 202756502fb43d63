from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
import logging
from statistics import mean
from typing import Any, Dict, List, Mapping, Sequence

from fastapi import HTTPException, status

from .analytics import (
    EMPTY_AGGREGATE,
    SHORT_VISIT_SECONDS,
    achieved_percent,
    aggregate,
    average_stability,
    filter_by_date_range,
    filter_by_month_prefix,
    filter_by_period,
    format_seconds_to_hhmm,
    group_records,
    group_rows_by_department,
    is_iso_date,
    merge_intervals,
    month_key,
    month_range_error,
    months_in_range,
    parse_duration_to_seconds,
    parse_month,
    per_day_average,
    percent_change,
    previous_date_window,
    previous_month,
    resolve_duration,
    sort_rows,
    stability,
    summarize_visits,
    total_active_days,
    trend,
)
from .config import settings
from .importers import parse_clock, parse_erp_date
from .models import AssignedIssue, CorrectionRecord, VisitRecord

logger = logging.getLogger(__name__)

BREAKDOWN_SCOPES = ("underperforming", "all")
SHIFT_FILTERS = ("All", "Day", "Night")
DAY_SHIFT_START_MINUTES = 8 * 60
DAY_SHIFT_END_MINUTES = 20 * 60
DUTY_DAY_START_HOUR = 8
TOP_PROBLEM_LIMIT = 5

REMARK_PATTERNS = (
    ("supplier name change", "Supplier name change"),
    ("can't change quantity", "Can't change quantity"),
    ("deleted from erp", "Deleted from ERP"),
)


@dataclass(frozen=True)
class WorkingDayConfig:
    default_current: int = 25
    default_last: int = 26
    security_current: int | None = None
    security_last: int | None = None
    office_current: int | None = None
    office_last: int | None = None
    per_employee: Mapping[str, int] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, **overrides: Any) -> "WorkingDayConfig":
        values: dict[str, Any] = {
            "default_current": settings.default_current_working_days,
            "default_last": settings.default_last_working_days,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)

    def current_for(self, employee_name: str, is_security: bool) -> int:
        if employee_name in self.per_employee:
            return self.per_employee[employee_name]
        if is_security and self.security_current is not None:
            return self.security_current
        return self.default_current

    def last_for(self, is_security: bool) -> int:
        if is_security and self.security_last is not None:
            return self.security_last
        return self.default_last

    @property
    def current_average_divisor(self) -> int:
        if self.office_current is not None and self.office_current > 0:
            return self.office_current
        return self.default_current

    @property
    def last_average_divisor(self) -> int:
        if self.office_last is not None and self.office_last > 0:
            return self.office_last
        return self.default_last


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def _parse_date(date_value: str) -> date:
    try:
        return datetime.strptime(date_value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise _bad_request("date must be in YYYY-MM-DD format") from exc


def _month_parts(month_value: str) -> tuple[int, int, str]:
    try:
        year, month = parse_month(month_value)
    except ValueError as exc:
        raise _bad_request("month must be in YYYY-MM format") from exc
    return year, month, month_key(year, month)


def _validated_month_range(start_month: str, end_month: str) -> list[str]:
    _month_parts(start_month)
    _month_parts(end_month)
    error = month_range_error(start_month, end_month, max_months=settings.max_range_months)
    if error:
        raise _bad_request(error)
    return months_in_range(start_month, end_month)


def _multi_month_working_days(working_days: int | None) -> int:
    configured = settings.default_current_working_days if working_days is None else working_days
    return configured or settings.multi_month_fallback_working_days


def _month_name(year: int, month: int) -> str:
    return date(year, month, 1).strftime("%b")


def _employee_profiles(visits: Sequence[VisitRecord]) -> dict[str, VisitRecord]:
    profiles: dict[str, VisitRecord] = {}
    for visit in visits:
        profiles.setdefault(visit.visitor_name, visit)
    return profiles


def _matches_filters(row: Mapping[str, Any], department: str | None, employee: str | None) -> bool:
    if department and row.get("department") != department:
        return False
    if employee and row.get("visitor_name") != employee:
        return False
    return True


def _seconds_payload(seconds: float) -> dict[str, Any]:
    return {"seconds": seconds, "hhmm": format_seconds_to_hhmm(seconds)}


# ---------------------------------------------------------------------------
# Visit record listing
# ---------------------------------------------------------------------------


def filter_visit_records(
    visits: Sequence[VisitRecord],
    start: str | None = None,
    end: str | None = None,
    project: str | None = None,
    department: str | None = None,
    query: str | None = None,
) -> list[VisitRecord]:
    if start:
        _parse_date(start)
    if end:
        _parse_date(end)
    needle = (query or "").strip().lower()

    selected: list[VisitRecord] = []
    for visit in visits:
        if start and visit.date < start:
            continue
        if end and visit.date > end:
            continue
        if project and visit.project_name != project:
            continue
        if department and visit.department != department:
            continue
        if needle and not any(needle in (value or "").lower() for value in visit.as_dict().values()):
            continue
        selected.append(visit)
    return selected


def filter_issue_records(
    issues: Sequence[AssignedIssue],
    issue_status: str | None = None,
    query: str | None = None,
) -> list[AssignedIssue]:
    needle = (query or "").strip().lower()
    selected: list[AssignedIssue] = []
    for issue in issues:
        if issue_status and issue.status != issue_status:
            continue
        haystack = (issue.id, issue.issue, issue.project_name, issue.zone, issue.assigned_to)
        if needle and not any(needle in value.lower() for value in haystack):
            continue
        selected.append(issue)
    return selected


def filter_correction_records(corrections: Sequence[CorrectionRecord], query: str | None = None) -> list[CorrectionRecord]:
    needle = (query or "").strip().lower()
    if not needle:
        return list(corrections)
    return [
        record
        for record in corrections
        if any(needle in (value or "").lower() for value in record.as_dict().values())
    ]


# ---------------------------------------------------------------------------
# Department summary
# ---------------------------------------------------------------------------


def department_summary(
    visits: Sequence[VisitRecord],
    month_value: str,
    working_days: WorkingDayConfig | None = None,
    custom_durations: Mapping[str, str] | None = None,
    department: str | None = None,
    employee: str | None = None,
) -> Dict[str, Any]:
    year, month, normalized_month = _month_parts(month_value)
    last_year, last_month = previous_month(year, month)
    config = working_days or WorkingDayConfig.from_settings()
    overrides = custom_durations or {}

    current_stats = aggregate(filter_by_period(visits, year, month))
    last_stats = aggregate(filter_by_period(visits, last_year, last_month))

    rows: list[dict[str, Any]] = []
    for employee_name, profile in _employee_profiles(visits).items():
        rule = resolve_duration(profile.department, profile.designation, overrides.get(profile.department))
        is_security = "security" in profile.department.lower()
        wd = config.current_for(employee_name, is_security)
        last_wd = config.last_for(is_security)

        current = current_stats.get(employee_name, EMPTY_AGGREGATE)
        last = last_stats.get(employee_name, EMPTY_AGGREGATE)

        current_percent = achieved_percent(current.total_duration_seconds, wd, rule.calc_seconds)
        last_percent = achieved_percent(last.total_duration_seconds, last_wd, rule.calc_seconds)
        current_per_day = per_day_average(current.total_duration_seconds, config.current_average_divisor)
        last_per_day = per_day_average(last.total_duration_seconds, config.last_average_divisor)

        rows.append(
            {
                "visitor_name": employee_name,
                "department": profile.department,
                "designation": profile.designation,
                "working_days": wd,
                "last_working_days": last_wd,
                "visited_day_count": current.visited_day_count,
                "previous_project_count": last.distinct_project_count,
                "project_count": current.distinct_project_count,
                "buckets": current.buckets.as_dict(),
                "is_exempt": rule.is_exempt,
                "target_per_day": _seconds_payload(rule.display_seconds),
                "target_per_month": _seconds_payload(wd * rule.display_seconds),
                "current_actual": _seconds_payload(current.total_duration_seconds),
                "current_percent": current_percent,
                "last_actual": _seconds_payload(last.total_duration_seconds),
                "last_percent": last_percent,
                "stability": stability(current_percent, last_percent),
                "current_per_day_average": _seconds_payload(current_per_day),
                "last_per_day_average": _seconds_payload(last_per_day),
                "average_stability": average_stability(current_per_day, last_per_day),
            }
        )

    department_names = sorted({row["department"] for row in rows})
    employee_names = sorted(
        {row["visitor_name"] for row in rows if not department or row["department"] == department}
    )
    filtered = sort_rows([row for row in rows if _matches_filters(row, department, employee)])

    return {
        "month": normalized_month,
        "previous_month": month_key(last_year, last_month),
        "current_month_name": _month_name(year, month),
        "last_month_name": _month_name(last_year, last_month),
        "rows": filtered,
        "groups": group_rows_by_department(filtered),
        "departments": department_names,
        "employees": employee_names,
    }


# ---------------------------------------------------------------------------
# Multi-month summary
# ---------------------------------------------------------------------------


def multi_month_summary(
    visits: Sequence[VisitRecord],
    start_month: str,
    end_month: str,
    working_days: int | None = None,
    department: str | None = None,
    employee: str | None = None,
) -> Dict[str, Any]:
    months = _validated_month_range(start_month, end_month)
    wd = _multi_month_working_days(working_days)
    visits_by_employee = group_records(visits, lambda visit: visit.visitor_name)

    rows: list[dict[str, Any]] = []
    for employee_name, profile in _employee_profiles(visits).items():
        rule = resolve_duration(profile.department, profile.designation)
        employee_visits = visits_by_employee[employee_name]

        monthly: dict[str, dict[str, Any]] = {}
        percentages: list[float] = []
        for month_value in months:
            stats = summarize_visits(filter_by_month_prefix(employee_visits, month_value))
            percent = achieved_percent(stats.total_duration_seconds, wd, rule.calc_seconds)
            percentages.append(percent)
            monthly[month_value] = {
                "actual": _seconds_payload(stats.total_duration_seconds),
                "percent": percent,
                "visit_count": stats.visit_count,
                "average_per_day": _seconds_payload(per_day_average(stats.total_duration_seconds, wd)),
            }

        rows.append(
            {
                "visitor_name": employee_name,
                "department": profile.department,
                "designation": profile.designation,
                "months": monthly,
                "trend": trend(percentages),
            }
        )

    filtered = sort_rows([row for row in rows if _matches_filters(row, department, employee)])
    return {
        "start_month": months[0],
        "end_month": months[-1],
        "months": months,
        "working_days": wd,
        "rows": filtered,
        "groups": group_rows_by_department(filtered),
    }


# ---------------------------------------------------------------------------
# Duty analysis
# ---------------------------------------------------------------------------


def duty_employee_rows(
    visits: Sequence[VisitRecord],
    month_value: str,
    working_days: WorkingDayConfig | None = None,
) -> List[Dict[str, Any]]:
    year, month, _ = _month_parts(month_value)
    last_year, last_month = previous_month(year, month)
    config = working_days or WorkingDayConfig.from_settings()
    wd = config.default_current or 0
    last_wd = config.default_last or 0

    current_visits = filter_by_period(visits, year, month)
    last_visits = filter_by_period(visits, last_year, last_month)
    current_stats = aggregate(current_visits)
    last_stats = aggregate(last_visits)
    profiles = _employee_profiles(visits)

    names = list(dict.fromkeys([visit.visitor_name for visit in current_visits] + [visit.visitor_name for visit in last_visits]))
    rows: list[dict[str, Any]] = []
    for employee_name in names:
        profile = profiles[employee_name]
        rule = resolve_duration(profile.department, profile.designation)
        current = current_stats.get(employee_name, EMPTY_AGGREGATE)
        last = last_stats.get(employee_name, EMPTY_AGGREGATE)
        current_percent = achieved_percent(current.total_duration_seconds, wd, rule.calc_seconds)
        last_percent = achieved_percent(last.total_duration_seconds, last_wd, rule.calc_seconds)
        rows.append(
            {
                "visitor_name": employee_name,
                "department": profile.department,
                "designation": profile.designation,
                "working_days": wd,
                "current": current,
                "last": last,
                "current_percent": current_percent,
                "last_percent": last_percent,
                "stability": stability(current_percent, last_percent),
            }
        )
    return rows


def _performer(row: Mapping[str, Any] | None) -> dict[str, Any] | None:
    if row is None:
        return None
    current = row["current"]
    return {
        "name": row["visitor_name"],
        "visit_count": current.visit_count,
        "project_count": current.distinct_project_count,
        "duration": format_seconds_to_hhmm(current.total_duration_seconds),
    }


def _analyze_departments(
    rows: Sequence[Mapping[str, Any]],
    current_visits: Sequence[VisitRecord],
    remarks: Mapping[str, str],
) -> list[dict[str, Any]]:
    visits_per_department = Counter(visit.department for visit in current_visits)
    results: list[dict[str, Any]] = []
    for department, employees in group_records(rows, lambda row: row["department"]).items():
        results.append(
            {
                "department": department,
                "employee_count": len(employees),
                "visit_count": visits_per_department.get(department, 0),
                "average_stability": mean(row["stability"] for row in employees),
                "remark": remarks.get(department, ""),
                "top_performer": _performer(max(employees, key=lambda row: row["stability"])),
                "lowest_performer": _performer(min(employees, key=lambda row: row["stability"])),
            }
        )
    return sorted(results, key=lambda item: item["average_stability"], reverse=True)


def duty_analysis(
    visits: Sequence[VisitRecord],
    month_value: str,
    working_days: WorkingDayConfig | None = None,
    remarks: Mapping[str, str] | None = None,
    employee_rows: Sequence[Mapping[str, Any]] | None = None,
) -> Dict[str, Any]:
    """Department stability summary; pass ``employee_rows`` to reuse rows already built for this month."""
    year, month, normalized_month = _month_parts(month_value)
    rows = employee_rows if employee_rows is not None else duty_employee_rows(visits, normalized_month, working_days)
    departments = _analyze_departments(rows, filter_by_period(visits, year, month), remarks or {})
    if not rows:
        logger.info("No visit data for duty analysis in %s", normalized_month)
    return {
        "month": normalized_month,
        "previous_month": month_key(*previous_month(year, month)),
        "employee_count": len(rows),
        "departments": departments,
    }


def _period_metrics(stats: Any, working_days: float) -> dict[str, Any]:
    return {
        "visit_count": stats.visit_count,
        "duration": format_seconds_to_hhmm(stats.total_duration_seconds),
        "project_count": stats.distinct_project_count,
        "average_daily": format_seconds_to_hhmm(per_day_average(stats.total_duration_seconds, working_days)),
        "short_visit_count": stats.short_visit_count,
    }


def duty_breakdown(
    visits: Sequence[VisitRecord],
    month_value: str,
    working_days: WorkingDayConfig | None = None,
    scope: str = "underperforming",
) -> Dict[str, Any]:
    if scope not in BREAKDOWN_SCOPES:
        raise _bad_request(f"scope must be one of: {', '.join(BREAKDOWN_SCOPES)}")

    year, month, normalized_month = _month_parts(month_value)
    config = working_days or WorkingDayConfig.from_settings()
    rows = duty_employee_rows(visits, normalized_month, config)
    departments = _analyze_departments(rows, filter_by_period(visits, year, month), {})
    last_wd = config.default_last or settings.multi_month_fallback_working_days
    underperforming_only = scope == "underperforming"

    breakdown: list[dict[str, Any]] = []
    for department in departments:
        if underperforming_only and department["average_stability"] >= 0:
            continue
        members = [row for row in rows if row["department"] == department["department"]]
        if underperforming_only:
            members = [row for row in members if row["stability"] < 0]
        employees = [
            {
                "name": row["visitor_name"],
                "stability": row["stability"],
                "current": _period_metrics(row["current"], row["working_days"]),
                "last": _period_metrics(row["last"], last_wd),
            }
            for row in members
        ]
        breakdown.append(
            {
                "department": department["department"],
                "average_stability": department["average_stability"],
                "employees": sorted(employees, key=lambda item: item["stability"]),
            }
        )

    return {
        "month": normalized_month,
        "scope": scope,
        "title": "Underperforming Breakdown" if underperforming_only else "Full Performance Breakdown",
        "departments": breakdown,
    }


def duty_multi_month(
    visits: Sequence[VisitRecord],
    start_month: str,
    end_month: str,
    working_days: int | None = None,
) -> Dict[str, Any]:
    months = _validated_month_range(start_month, end_month)
    wd = _multi_month_working_days(working_days)

    results: list[dict[str, Any]] = []
    for department, department_visits in group_records(visits, lambda visit: visit.department).items():
        monthly: dict[str, float] = {}
        for month_value in months:
            in_month = filter_by_month_prefix(department_visits, month_value)
            if not in_month:
                monthly[month_value] = 0.0
                continue
            summed = sum(
                achieved_percent(
                    parse_duration_to_seconds(visit.duration),
                    wd,
                    resolve_duration(visit.department, visit.designation).calc_seconds,
                )
                for visit in in_month
            )
            monthly[month_value] = summed / len({visit.visitor_name for visit in in_month})
        results.append(
            {
                "department": department,
                "months": monthly,
                "trend": trend(list(monthly.values())),
            }
        )

    return {
        "months": months,
        "working_days": wd,
        "departments": sorted(results, key=lambda item: item["trend"], reverse=True),
    }


# ---------------------------------------------------------------------------
# Security supervisor duty analysis
# ---------------------------------------------------------------------------


def _entry_datetime(visit: VisitRecord) -> datetime | None:
    if not is_iso_date(visit.date):
        return None
    clock = parse_clock(visit.entry_time)
    if clock is None:
        return None
    return datetime.combine(date.fromisoformat(visit.date), clock)


def shift_type(entry_time: str) -> str:
    clock = parse_clock(entry_time)
    if clock is None:
        return "Night"
    minutes = clock.hour * 60 + clock.minute
    return "Day" if DAY_SHIFT_START_MINUTES <= minutes < DAY_SHIFT_END_MINUTES else "Night"


def _hourly_duration_minutes(visits: Sequence[VisitRecord]) -> list[float]:
    buckets = [0.0] * 24
    for visit in visits:
        entry = _entry_datetime(visit)
        out_clock = parse_clock(visit.out_time)
        if entry is None or out_clock is None:
            continue
        out = datetime.combine(entry.date(), out_clock)
        if out < entry:
            out += timedelta(days=1)

        cursor = entry
        while cursor < out:
            next_hour = cursor.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
            segment_end = min(out, next_hour)
            buckets[cursor.hour] += (segment_end - cursor).total_seconds() / 60
            cursor = next_hour
    return buckets


def _hourly_entry_frequency(visits: Sequence[VisitRecord]) -> list[int]:
    buckets = [0] * 24
    for visit in visits:
        clock = parse_clock(visit.entry_time)
        if clock is not None:
            buckets[clock.hour] += 1
    return buckets


def _supervisor_stats(name: str, visits: Sequence[VisitRecord]) -> dict[str, Any]:
    durations = [parse_duration_to_seconds(visit.duration) for visit in visits]
    total_seconds = sum(durations)
    per_project: dict[str, float] = {}
    for visit, seconds in zip(visits, durations):
        per_project[visit.project_name] = per_project.get(visit.project_name, 0) + seconds
    top_project = max(per_project.items(), key=lambda item: item[1])[0] if per_project else "N/A"
    shifts = [shift_type(visit.entry_time) for visit in visits]
    return {
        "name": name,
        "shift_count": len(visits),
        "day_shifts": shifts.count("Day"),
        "night_shifts": shifts.count("Night"),
        "total_hours": format_seconds_to_hhmm(total_seconds),
        "average_shift": format_seconds_to_hhmm(per_day_average(total_seconds, len(visits))),
        "project_count": len(per_project),
        "top_project": top_project,
    }


def ssv_duty_analysis(
    visits: Sequence[VisitRecord],
    start: str | None = None,
    end: str | None = None,
    supervisor: str | None = None,
    shift: str = "All",
) -> Dict[str, Any]:
    if shift not in SHIFT_FILTERS:
        raise _bad_request(f"shift must be one of: {', '.join(SHIFT_FILTERS)}")
    start_date = _parse_date(start) if start else None
    end_date = _parse_date(end) if end else None

    if start_date is not None and start_date == end_date:
        # A single duty day runs 08:00 to 08:00 the next morning.
        window_start = datetime.combine(start_date, datetime.min.time()) + timedelta(hours=DUTY_DAY_START_HOUR)
        window_end = window_start + timedelta(days=1)

        def _date_match(visit: VisitRecord) -> bool:
            entry = _entry_datetime(visit)
            return entry is not None and window_start <= entry < window_end

    else:

        def _date_match(visit: VisitRecord) -> bool:
            return (not start or visit.date >= start) and (not end or visit.date <= end)

    filtered = [
        visit
        for visit in visits
        if _date_match(visit)
        and (not supervisor or visit.visitor_name == supervisor)
        and (shift == "All" or shift_type(visit.entry_time) == shift)
    ]

    payload: dict[str, Any] = {
        "start": start,
        "end": end,
        "supervisor": supervisor,
        "shift": shift,
        "supervisors": sorted({visit.visitor_name for visit in visits}),
        "analysis": None,
    }
    if not filtered:
        return payload

    total_seconds = sum(parse_duration_to_seconds(visit.duration) for visit in filtered)
    by_project = group_records(filtered, lambda visit: visit.project_name)
    project_rows = sorted(
        (
            {
                "name": name,
                "seconds": sum(parse_duration_to_seconds(visit.duration) for visit in project_visits),
                "shift_count": len(project_visits),
                "supervisor_count": len({visit.visitor_name for visit in project_visits}),
            }
            for name, project_visits in by_project.items()
        ),
        key=lambda item: item["seconds"],
        reverse=True,
    )
    supervisors = sorted(
        (_supervisor_stats(name, items) for name, items in group_records(filtered, lambda visit: visit.visitor_name).items()),
        key=lambda item: item["shift_count"],
        reverse=True,
    )

    duration_buckets = _hourly_duration_minutes(filtered)
    frequency_buckets = _hourly_entry_frequency(filtered)
    shifts = [shift_type(visit.entry_time) for visit in filtered]

    payload["analysis"] = {
        "total_duty_hours": format_seconds_to_hhmm(total_seconds),
        "supervisors_on_duty": len({visit.visitor_name for visit in filtered}),
        "average_duty_length": format_seconds_to_hhmm(per_day_average(total_seconds, len(filtered))),
        "most_active_project": project_rows[0]["name"] if project_rows else "N/A",
        "day_shifts": shifts.count("Day"),
        "night_shifts": shifts.count("Night"),
        "supervisors": supervisors,
        "projects": [
            {
                "name": row["name"],
                "total_hours": format_seconds_to_hhmm(row["seconds"]),
                "shift_count": row["shift_count"],
                "supervisor_count": row["supervisor_count"],
            }
            for row in project_rows
        ],
        "hourly_duration": {
            "buckets": [int(round(minutes)) for minutes in duration_buckets],
            "max_minutes": max(max(duration_buckets), 1),
            "min_hour": duration_buckets.index(min(duration_buckets)),
        },
        "hourly_frequency": {
            "buckets": frequency_buckets,
            "max_frequency": max(max(frequency_buckets), 1),
            "peak_hour": frequency_buckets.index(max(frequency_buckets)),
            "low_hour": frequency_buckets.index(min(frequency_buckets)),
        },
    }
    return payload


# ---------------------------------------------------------------------------
# IT issue timeline
# ---------------------------------------------------------------------------


def _issue_occurrence(issue: str, project_name: str, items: Sequence[AssignedIssue], most_recent: date) -> dict[str, Any]:
    intervals = merge_intervals(item.reported_at for item in items)
    latest = intervals[-1]
    ongoing = latest.end == most_recent
    if ongoing:
        solution_date = None
        resolution_days = (most_recent - latest.start).days + 1
    else:
        solution_date = latest.end + timedelta(days=1)
        resolution_days = (solution_date - latest.start).days

    return {
        "issue": issue,
        "project_name": project_name,
        "count": len(items),
        "timelines": [interval.as_dict() for interval in intervals],
        "total_active_days": total_active_days(intervals),
        "first_reported": intervals[0].start.isoformat(),
        "last_reported": latest.end.isoformat(),
        "ongoing": ongoing,
        "solution_date": solution_date.isoformat() if solution_date else "Ongoing",
        "resolution_days": resolution_days,
    }


def it_timeline_analysis(issues: Sequence[AssignedIssue]) -> Dict[str, Any] | None:
    if not issues:
        return None

    most_recent = max(issue.reported_at for issue in issues)

    zones = sorted(
        (
            {
                "zone": zone,
                "count": len(items),
                "projects": sorted({item.project_name for item in items}),
            }
            for zone, items in group_records(issues, lambda issue: issue.zone).items()
        ),
        key=lambda item: item["count"],
        reverse=True,
    )
    status_counts = Counter(issue.status for issue in issues)
    project_counts = sorted(Counter(issue.project_name for issue in issues).items(), key=lambda item: item[1], reverse=True)

    problems: list[dict[str, Any]] = []
    for description, items in group_records(issues, lambda issue: issue.issue).items():
        latest_issue = max(items, key=lambda item: item.reported_at)
        problems.append(
            {
                "issue": description,
                "count": len(items),
                "latest_project": latest_issue.project_name,
                "latest_date": latest_issue.reported_at.isoformat(),
                "latest_project_count": sum(1 for item in items if item.project_name == latest_issue.project_name),
            }
        )
    top_problems = sorted(problems, key=lambda item: item["count"], reverse=True)[:TOP_PROBLEM_LIMIT]

    timeline = sorted(
        (
            _issue_occurrence(key[0], key[1], items, most_recent)
            for key, items in group_records(issues, lambda issue: (issue.issue, issue.project_name)).items()
        ),
        key=lambda item: item["count"],
        reverse=True,
    )
    solved = [item for item in timeline if not item["ongoing"]]
    ongoing = [item for item in timeline if item["ongoing"]]

    return {
        "total_issues": len(issues),
        "issue_count": status_counts.get("Issue", 0),
        "offline_count": status_counts.get("Offline", 0),
        "most_recent_date": most_recent.isoformat(),
        "zones": zones,
        "projects": [{"project_name": name, "count": count} for name, count in project_counts],
        "top_problems": top_problems,
        "timeline": timeline,
        "average_resolution_days": mean(item["resolution_days"] for item in solved) if solved else 0,
        "longest_open": max(ongoing, key=lambda item: item["resolution_days"]) if ongoing else None,
        "most_frequent": timeline[0] if timeline else None,
    }


# ---------------------------------------------------------------------------
# ERP correction analysis
# ---------------------------------------------------------------------------


def correction_duration_minutes(record: CorrectionRecord) -> float | None:
    if record.status != "Completed" or not record.completed_date or not record.completed_time:
        return None
    start_day = parse_erp_date(record.entry_date)
    end_day = parse_erp_date(record.completed_date)
    start_clock = parse_clock(record.entry_time)
    end_clock = parse_clock(record.completed_time)
    if start_day is None or end_day is None or start_clock is None or end_clock is None:
        return None
    started = datetime.combine(start_day, start_clock)
    finished = datetime.combine(end_day, end_clock)
    if finished < started:
        return None
    return (finished - started).total_seconds() / 60


def _top_entry(counts: Mapping[str, int]) -> dict[str, Any]:
    if not counts:
        return {"name": "N/A", "count": 0}
    name, count = max(counts.items(), key=lambda item: item[1])
    return {"name": name, "count": count}


def _count_by(records: Sequence[CorrectionRecord], attribute: str) -> dict[str, int]:
    counts: dict[str, int] = {}
    for record in records:
        key = getattr(record, attribute)
        counts[key] = counts.get(key, 0) + 1
    return counts


def _period_overview(records: Sequence[CorrectionRecord]) -> dict[str, Any]:
    durations = [value for value in (correction_duration_minutes(record) for record in records) if value is not None]
    return {
        "total_corrections": len(records),
        "average_completion_minutes": mean(durations) if durations else 0,
        "top_department": _top_entry(_count_by(records, "department")),
        "top_correction_type": _top_entry(_count_by(records, "correction_type")),
    }


def _change_payload(current: float, previous: float) -> dict[str, Any]:
    change = percent_change(current, previous)
    infinite = change == float("inf")
    return {
        "current": current,
        "previous": previous,
        "change": None if infinite else change,
        "change_is_infinite": infinite,
    }


def _remark_pattern(remarks: str | None) -> str:
    text = (remarks or "").lower()
    for needle, label in REMARK_PATTERNS:
        if needle in text:
            return label
    return "Other"


def _sorted_counts(counts: Mapping[str, int]) -> list[dict[str, Any]]:
    return [{"name": name, "count": count} for name, count in sorted(counts.items(), key=lambda item: item[1], reverse=True)]


def erp_analysis(
    corrections: Sequence[CorrectionRecord],
    start: str | None = None,
    end: str | None = None,
    today: date | None = None,
) -> Dict[str, Any]:
    reference_day = today or date.today()
    start_date = _parse_date(start) if start else reference_day.replace(day=1)
    end_date = _parse_date(end) if end else reference_day

    def _entry_day(record: CorrectionRecord) -> date | None:
        return parse_erp_date(record.entry_date)

    current = filter_by_date_range(corrections, start_date, end_date, _entry_day)
    previous_start, previous_end = previous_date_window(start_date, end_date)
    previous = filter_by_date_range(corrections, previous_start, previous_end, _entry_day)

    payload: dict[str, Any] = {
        "start": start_date.isoformat(),
        "end": end_date.isoformat(),
        "previous_start": previous_start.isoformat(),
        "previous_end": previous_end.isoformat(),
        "date_range": f"{start_date:%d %b %Y} - {end_date:%d %b %Y}",
        "analysis": None,
        "message": None,
    }
    if not current:
        payload["message"] = (
            "No data available for the selected date range."
            if corrections
            else "No data available to analyze. Please import records first."
        )
        return payload

    current_overview = _period_overview(current)
    previous_overview = _period_overview(previous)

    departments = []
    for department, items in group_records(current, lambda record: record.department).items():
        top_officer = _top_entry(_count_by(items, "officer"))
        departments.append(
            {
                "department": department,
                "total_corrections": len(items),
                "top_officer": top_officer["name"],
                "top_officer_count": top_officer["count"],
            }
        )
    departments.sort(key=lambda item: item["total_corrections"], reverse=True)

    completion_by_officer: dict[str, list[float]] = {}
    for record in current:
        minutes = correction_duration_minutes(record)
        if minutes is not None:
            completion_by_officer.setdefault(record.officer, []).append(minutes)
    officers_by_time = sorted(
        ((officer, mean(values)) for officer, values in completion_by_officer.items()),
        key=lambda item: item[1],
    )
    officer_counts = _count_by(current, "officer")
    officers_by_count = sorted(officer_counts.items(), key=lambda item: item[1], reverse=True)

    remark_counts: dict[str, int] = {}
    for record in current:
        label = _remark_pattern(record.remarks)
        remark_counts[label] = remark_counts.get(label, 0) + 1

    payload["analysis"] = {
        "overview": {
            "total_corrections": _change_payload(
                current_overview["total_corrections"], previous_overview["total_corrections"]
            ),
            "average_completion_minutes": _change_payload(
                current_overview["average_completion_minutes"], previous_overview["average_completion_minutes"]
            ),
            "top_department": {
                "current": current_overview["top_department"],
                "previous": previous_overview["top_department"],
            },
            "top_correction_type": {
                "current": current_overview["top_correction_type"],
                "previous": previous_overview["top_correction_type"],
            },
        },
        "officers": _sorted_counts(officer_counts),
        "departments": departments,
        "projects": _sorted_counts(_count_by(current, "project_name")),
        "correction_types": _sorted_counts(_count_by(current, "correction_type")),
        "statuses": _count_by(current, "status"),
        "fastest_officer": (
            {"name": officers_by_time[0][0], "minutes": officers_by_time[0][1]} if officers_by_time else None
        ),
        "slowest_officer": (
            {"name": officers_by_time[-1][0], "minutes": officers_by_time[-1][1]} if officers_by_time else None
        ),
        "most_corrections_officer": (
            {"name": officers_by_count[0][0], "count": officers_by_count[0][1]} if officers_by_count else None
        ),
        "fewest_corrections_officer": (
            {"name": officers_by_count[-1][0], "count": officers_by_count[-1][1]} if officers_by_count else None
        ),
        "remark_patterns": remark_counts,
    }
    return payload


def format_minutes(minutes: float) -> str:
    if not minutes:
        return "0 min"
    if minutes < 60:
        return f"{round(minutes)} min"
    hours = int(minutes // 60)
    return f"{hours}h {round(minutes % 60)}m"
