from __future__ import annotations

import csv
import io
from typing import Any, Iterable, Mapping, Sequence

from .analytics import format_signed_percent
from .importers import VISIT_HEADERS
from .models import VisitRecord

SSV_SUPERVISOR_HEADERS = (
    "Supervisor Name",
    "Total Shifts",
    "Day Shifts",
    "Night Shifts",
    "Total Hours",
    "Avg. Shift Length",
    "Projects Covered",
    "Top Project",
)
DUTY_ANALYSIS_HEADERS = (
    "Department",
    "Employee Count",
    "Total Visits",
    "Average Stability (%)",
    "Top Performer",
    "Top P. Visits",
    "Top P. Projects",
    "Top P. Duration",
    "Lowest Performer",
    "Lowest P. Visits",
    "Lowest P. Projects",
    "Lowest P. Duration",
    "Observation remarks",
)


def _percent(value: float) -> str:
    return f"{value:.2f}%"


def _render(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return buffer.getvalue()


def department_summary_headers(last_month_name: str, current_month_name: str) -> list[str]:
    return [
        "SL. No",
        "Visitor Name",
        "Department",
        "Designation",
        "Work Day",
        "Visit Day",
        "Prev Projects",
        "Total Projects",
        ">20m",
        "10-19m",
        "5-9m",
        "<5m",
        "Supposedly Dur/Day",
        "Supposedly Dur/Month",
        "Current Actual",
        "Current %",
        "Last M Actual",
        "Last M %",
        "Stability %",
        f"{last_month_name} Avg/Day",
        f"{current_month_name} Avg/Day",
        "Avg Stability %",
    ]


def department_summary_row_cells(index: int, row: Mapping[str, Any]) -> list[Any]:
    exempt = bool(row["is_exempt"])
    buckets = row["buckets"]
    current_actual = row["current_actual"]["hhmm"]
    last_actual = row["last_actual"]["hhmm"]
    return [
        index,
        row["visitor_name"],
        row["department"],
        row["designation"],
        row["working_days"],
        row["visited_day_count"],
        row["previous_project_count"],
        row["project_count"],
        buckets["more_than_20"],
        buckets["ten_to_19"],
        buckets["five_to_9"],
        buckets["less_than_5"],
        row["target_per_day"]["hhmm"],
        row["target_per_month"]["hhmm"],
        current_actual,
        current_actual if exempt else _percent(row["current_percent"]),
        last_actual,
        last_actual if exempt else _percent(row["last_percent"]),
        format_signed_percent(row["stability"]),
        row["last_per_day_average"]["hhmm"],
        row["current_per_day_average"]["hhmm"],
        format_signed_percent(row["average_stability"]),
    ]


def department_summary_csv(summary: Mapping[str, Any]) -> str:
    headers = department_summary_headers(summary["last_month_name"], summary["current_month_name"])
    return _render(
        headers,
        (department_summary_row_cells(index, row) for index, row in enumerate(summary["rows"], start=1)),
    )


def visits_csv(visits: Sequence[VisitRecord]) -> str:
    return _render(
        VISIT_HEADERS,
        (
            [
                index,
                visit.date,
                visit.visitor_name,
                visit.department,
                visit.designation,
                visit.project_name,
                visit.entry_time,
                visit.out_time,
                visit.duration,
                visit.remarks,
            ]
            for index, visit in enumerate(visits, start=1)
        ),
    )


def _performer_cells(performer: Mapping[str, Any] | None) -> list[Any]:
    if not performer:
        return ["N/A", "N/A", "N/A", "N/A"]
    return [performer["name"], performer["visit_count"], performer["project_count"], performer["duration"]]


def duty_analysis_csv(analysis: Mapping[str, Any]) -> str:
    rows = []
    for department in analysis["departments"]:
        rows.append(
            [
                department["department"],
                department["employee_count"],
                department["visit_count"],
                f"{department['average_stability']:.2f}",
                *_performer_cells(department["top_performer"]),
                *_performer_cells(department["lowest_performer"]),
                department["remark"],
            ]
        )
    return _render(DUTY_ANALYSIS_HEADERS, rows)


def ssv_supervisors_csv(payload: Mapping[str, Any]) -> str:
    analysis = payload.get("analysis") or {}
    return _render(
        SSV_SUPERVISOR_HEADERS,
        (
            [
                row["name"],
                row["shift_count"],
                row["day_shifts"],
                row["night_shifts"],
                row["total_hours"],
                row["average_shift"],
                row["project_count"],
                row["top_project"],
            ]
            for row in analysis.get("supervisors", [])
        ),
    )
