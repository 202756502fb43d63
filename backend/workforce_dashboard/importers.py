"""
CSV import for visit logs, IT issues, ERP corrections and working-day sheets.

Every importer validates the header up front (raising ``CsvHeaderError``) and
then walks the rows until the first bad one. The result is an ``ImportResult``
holding either all parsed records or the row-numbered error; partial batches
are never returned.
"""
from __future__ import annotations

import csv
import io
import logging
import re
from datetime import date, datetime, time
from typing import Callable, Iterable, Iterator, Mapping, Sequence

from .models import (
    CORRECTION_STATUSES,
    ISSUE_STATUSES,
    AssignedIssue,
    CorrectionRecord,
    ImportResult,
    VisitRecord,
)

logger = logging.getLogger(__name__)

VISIT_HEADERS = (
    "Sl No",
    "Date",
    "Visitor Name",
    "Department",
    "Designation",
    "Visited Project Name",
    "Entry Time",
    "Out Time",
    "Duration",
    "Formula",
)
VISIT_REQUIRED_FIELDS = (
    "Date",
    "Visitor Name",
    "Department",
    "Designation",
    "Visited Project Name",
    "Entry Time",
    "Out Time",
    "Duration",
)
IT_ISSUE_HEADERS = ("SL No", "Date", "Project Name", "Zone", "Status", "Assigned Issue", "Assigned To")
ERP_HEADERS = (
    "Officers",
    "Dept.",
    "Designation",
    "Project Name",
    "D.Type",
    "Traking Number",
    "Correction Type",
    "Entry Date",
    "Entry Time",
    "Status",
    "Completed Date",
    "Completed Time",
    "Old Data",
    "New Data",
    "Remarks",
)
ERP_REQUIRED_FIELD_COUNT = 9
SUPERVISOR_DEPARTMENT = "HR & Admin (Security)"
SUPERVISOR_DESIGNATION = "Security Supervisor"
WORKING_DAY_HEADERS = ("Visitor Name", "Working Day")
MAX_WORKING_DAYS = 31

_MONTH_ABBREVIATIONS = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}
_DAY_MONTH_NAME_RE = re.compile(r"^(\d{1,2})-([A-Za-z]{3})-(\d{2}|\d{4})$")
_ISO_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_NUMERIC_DATE_RE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$")
_SLASH_DATE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_WORKING_DAY_RE = re.compile(r"^\d+$")


class CsvHeaderError(ValueError):
    """The uploaded file does not carry the expected header row."""


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _expand_year(text: str) -> int:
    year = int(text)
    return 2000 + year if len(text) == 2 else year


def _parse_month_name_date(text: str) -> date | None:
    match = _DAY_MONTH_NAME_RE.match(text)
    if not match:
        return None
    month = _MONTH_ABBREVIATIONS.get(match.group(2).lower())
    if month is None:
        return None
    return _safe_date(_expand_year(match.group(3)), month, int(match.group(1)))


def _parse_iso_date(text: str) -> date | None:
    match = _ISO_RE.match(text)
    if not match:
        return None
    return _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))


def parse_visit_date(value: str | None) -> str | None:
    """Normalize a visit log date cell to ``YYYY-MM-DD``.

    Accepts ``D-MMM-YY`` (``1-Jul-25``), ISO dates and day-first numeric dates
    (``D/M/YYYY`` or ``D-M-YYYY``). Returns None when the cell is not a real
    calendar date in one of those shapes.
    """
    text = (value or "").strip()
    if not text:
        return None

    parsed = _parse_month_name_date(text) or _parse_iso_date(text)
    if parsed is None:
        match = _NUMERIC_DATE_RE.match(text)
        if match:
            parsed = _safe_date(int(match.group(3)), int(match.group(2)), int(match.group(1)))
    return parsed.isoformat() if parsed else None


def parse_issue_date(value: str | None) -> date | None:
    text = (value or "").strip()
    if not text:
        return None

    parsed = _parse_month_name_date(text) or _parse_iso_date(text)
    if parsed is None:
        # IT sheets are exported month-first.
        match = _SLASH_DATE_RE.match(text)
        if match:
            parsed = _safe_date(int(match.group(3)), int(match.group(1)), int(match.group(2)))
    return parsed


def _decode(content: bytes | str) -> str:
    if isinstance(content, bytes):
        return content.decode("utf-8-sig")
    return content.lstrip("\ufeff")


def _read_csv(content: bytes | str) -> tuple[list[str], list[dict[str, str]]]:
    reader = csv.reader(io.StringIO(_decode(content)))
    headers: list[str] | None = None
    rows: list[dict[str, str]] = []
    for raw in reader:
        if not any(cell.strip() for cell in raw):
            continue
        if headers is None:
            headers = [cell.strip() for cell in raw]
            continue
        cells = [cell.strip() for cell in raw]
        cells.extend([""] * (len(headers) - len(cells)))
        rows.append(dict(zip(headers, cells)))
    if headers is None:
        raise CsvHeaderError("CSV file is empty.")
    return headers, rows


def _require_exact_headers(headers: Sequence[str], expected: Sequence[str]) -> None:
    if tuple(headers) != tuple(expected):
        raise CsvHeaderError("CSV header mismatch. Please use the exact format from the downloaded template.")


def _require_headers_present(headers: Sequence[str], expected: Sequence[str], message: str) -> None:
    present = set(headers)
    missing = [name for name in expected if name not in present]
    if missing:
        logger.warning("CSV missing headers: %s", ", ".join(missing))
        raise CsvHeaderError(message)


def _numbered(rows: Iterable[Mapping[str, str]]) -> Iterator[tuple[int, Mapping[str, str]]]:
    # Header occupies line 1.
    for index, row in enumerate(rows):
        yield index + 2, row


def _reject(dataset: str, line_number: int, reason: str) -> ImportResult:
    result: ImportResult = ImportResult.failure(line_number, reason)
    logger.warning(
        "Rejected %s import: %s",
        dataset,
        result.error.message if result.error else reason,
        extra={"dataset": dataset},
    )
    return result


def _accept(dataset: str, records: Sequence) -> ImportResult:
    logger.info("Imported %d %s records", len(records), dataset, extra={"dataset": dataset, "row_count": len(records)})
    return ImportResult.success(records)


def import_visits(
    content: bytes | str,
    row_filter: Callable[[Mapping[str, str]], bool] | None = None,
    dataset: str = "visit",
) -> ImportResult[VisitRecord]:
    headers, rows = _read_csv(content)
    _require_exact_headers(headers, VISIT_HEADERS)

    records: list[VisitRecord] = []
    for line_number, row in _numbered(rows):
        if row_filter is not None and not row_filter(row):
            continue
        for field_name in VISIT_REQUIRED_FIELDS:
            if not row.get(field_name):
                return _reject(dataset, line_number, f'Missing required data for "{field_name}".')

        formatted_date = parse_visit_date(row["Date"])
        if formatted_date is None:
            return _reject(dataset, line_number, f'Invalid date format: "{row["Date"]}".')

        records.append(
            VisitRecord(
                date=formatted_date,
                visitor_name=row["Visitor Name"],
                department=row["Department"],
                designation=row["Designation"],
                project_name=row["Visited Project Name"],
                entry_time=row["Entry Time"],
                out_time=row["Out Time"],
                duration=row["Duration"],
                remarks=row.get("Formula") or "",
            )
        )
    return _accept(dataset, records)


def _is_supervisor_row(row: Mapping[str, str]) -> bool:
    return row.get("Department") == SUPERVISOR_DEPARTMENT and row.get("Designation") == SUPERVISOR_DESIGNATION


def import_supervisor_visits(content: bytes | str) -> ImportResult[VisitRecord]:
    """Import a visit log keeping only security supervisor rows."""
    return import_visits(content, row_filter=_is_supervisor_row, dataset="supervisor_visit")


def import_it_issues(content: bytes | str) -> ImportResult[AssignedIssue]:
    headers, rows = _read_csv(content)
    _require_headers_present(
        headers,
        IT_ISSUE_HEADERS,
        "CSV is missing required headers. Please use the new template.",
    )

    issues: list[AssignedIssue] = []
    for line_number, row in _numbered(rows):
        for field_name in IT_ISSUE_HEADERS:
            if not row.get(field_name):
                return _reject("it_issue", line_number, f'Missing data for required field "{field_name}".')

        reported_at = parse_issue_date(row["Date"])
        if reported_at is None:
            return _reject("it_issue", line_number, f"Invalid or unsupported 'Date' format: \"{row['Date']}\".")

        issue_status = row["Status"]
        if issue_status not in ISSUE_STATUSES:
            return _reject(
                "it_issue",
                line_number,
                f'Invalid status "{issue_status}". Must be one of: {", ".join(ISSUE_STATUSES)}.',
            )

        issues.append(
            AssignedIssue(
                id=row["SL No"],
                issue=row["Assigned Issue"],
                reported_at=reported_at,
                assigned_to=row["Assigned To"],
                status=issue_status,
                project_name=row["Project Name"],
                zone=row["Zone"],
            )
        )
    return _accept("it_issue", issues)


def import_erp_corrections(content: bytes | str) -> ImportResult[CorrectionRecord]:
    headers, rows = _read_csv(content)
    _require_headers_present(
        headers,
        ERP_HEADERS,
        "CSV is missing required headers or has incorrect names. Please use the template.",
    )

    corrections: list[CorrectionRecord] = []
    for line_number, row in _numbered(rows):
        if not all(row.get(name) for name in ERP_HEADERS[:ERP_REQUIRED_FIELD_COUNT]):
            return _reject("erp_correction", line_number, "Missing data for a required field.")

        correction_status = row["Status"]
        if correction_status not in CORRECTION_STATUSES:
            return _reject(
                "erp_correction",
                line_number,
                f'Invalid status "{correction_status}". Must be one of: {", ".join(CORRECTION_STATUSES)}.',
            )

        is_completed = correction_status == "Completed"
        corrections.append(
            CorrectionRecord(
                officer=row["Officers"],
                department=row["Dept."],
                designation=row["Designation"],
                project_name=row["Project Name"],
                document_type=row["D.Type"],
                tracking_number=row["Traking Number"],
                correction_type=row["Correction Type"],
                entry_date=row["Entry Date"],
                entry_time=row["Entry Time"],
                status=correction_status,
                old_data=row.get("Old Data") or "",
                new_data=row.get("New Data") or "",
                completed_date=(row.get("Completed Date") or None) if is_completed else None,
                completed_time=(row.get("Completed Time") or None) if is_completed else None,
                remarks=row.get("Remarks") or None,
            )
        )
    return _accept("erp_correction", corrections)


def import_working_days(content: bytes | str, known_employees: Iterable[str]) -> ImportResult[tuple[str, int]]:
    """Parse a ``Visitor Name, Working Day`` sheet into (name, days) pairs.

    Names that do not belong to any imported visit record are skipped.
    """
    headers, rows = _read_csv(content)
    _require_headers_present(
        headers,
        WORKING_DAY_HEADERS,
        "Invalid CSV headers. Required: 'Visitor Name', 'Working Day'.",
    )
    known = set(known_employees)

    entries: list[tuple[str, int]] = []
    skipped = 0
    for line_number, row in _numbered(rows):
        name = row.get("Visitor Name") or ""
        working_day_text = row.get("Working Day") or ""
        if not name or not working_day_text:
            return _reject("working_day", line_number, "Missing Visitor Name or Working Day.")

        if not _WORKING_DAY_RE.match(working_day_text) or int(working_day_text) > MAX_WORKING_DAYS:
            return _reject(
                "working_day",
                line_number,
                f'Invalid Working Day "{working_day_text}". Must be a number between 0 and {MAX_WORKING_DAYS}.',
            )

        if name not in known:
            skipped += 1
            continue
        entries.append((name, int(working_day_text)))

    if skipped:
        logger.info("Skipped %d working-day rows for unknown employees", skipped)
    return _accept("working_day", entries)


def _render_template(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return buffer.getvalue()


def visit_template() -> str:
    return _render_template(
        VISIT_HEADERS,
        [["1", "1-Sep-24", "Jane Doe", "Construction", "Asst. Manager", "Lake Lofts", "10:00", "10:25", "0:25:00", ""]],
    )


def it_issue_template() -> str:
    return _render_template(
        IT_ISSUE_HEADERS,
        [
            ["IT-101", "01-Sep-2025", "Lake Lofts", "Dhanmondi", "Issue", "Cannot access shared folder", "IT Support"],
            ["IT-102", "02-Sep-2025", "Gladiolus", "Banani", "Offline", "Outlook is crashing", "IT Support"],
        ],
    )


def erp_correction_template() -> str:
    return _render_template(
        ERP_HEADERS,
        [
            [
                "Ruhul Amen",
                "MIS",
                "Officer",
                "Lake Lofts",
                "Voucher",
                "V-30001",
                "Incorrect Amount",
                "2024-09-01",
                "10:00",
                "Pending",
                "",
                "",
                "Amount: 1000",
                "Amount: 1200",
                "Typo in amount field",
            ]
        ],
    )


def working_day_template(employee_names: Iterable[str]) -> str:
    return _render_template(WORKING_DAY_HEADERS, [[name, ""] for name in sorted(set(employee_names))])


def parse_erp_date(value: str | None) -> date | None:
    """Parse an ERP ``Entry Date``: ISO or day-first ``D-M-YYYY``/``D/M/YYYY``."""
    text = (value or "").strip()
    if not text:
        return None
    parsed = _parse_iso_date(text)
    if parsed is not None:
        return parsed
    match = _NUMERIC_DATE_RE.match(text)
    if match:
        return _safe_date(int(match.group(3)), int(match.group(2)), int(match.group(1)))
    return None


def parse_clock(value: str | None) -> time | None:
    text = (value or "").strip()
    for pattern in ("%H:%M:%S", "%H:%M", "%I:%M:%S %p", "%I:%M %p"):
        try:
            return datetime.strptime(text, pattern).time()
        except ValueError:
            continue
    return None
