"""
Workforce Visit Dashboard API.

Imports visit logs, security supervisor shifts, IT issue assignments and ERP
correction logs from CSV into an in-memory store, and serves the analytics
reports built on them as JSON, CSV and PDF.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from fastapi import Depends, FastAPI, File, HTTPException, Query, Response, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from . import __version__
from .config import settings
from .csv_exports import department_summary_csv, duty_analysis_csv, ssv_supervisors_csv, visits_csv
from .importers import (
    MAX_WORKING_DAYS,
    CsvHeaderError,
    erp_correction_template,
    import_erp_corrections,
    import_it_issues,
    import_supervisor_visits,
    import_visits,
    import_working_days,
    it_issue_template,
    visit_template,
    working_day_template,
)
from .improvement import ImprovementAnalysisError, analyze_underperforming_departments
from .logging_config import setup_logging
from .models import ImportResult
from .pdf_exports import (
    generate_department_summary_pdf,
    generate_duty_analysis_pdf,
    generate_duty_breakdown_pdf,
    generate_erp_analysis_pdf,
    generate_it_timeline_pdf,
)
from .reports import (
    WorkingDayConfig,
    department_summary,
    duty_analysis,
    duty_breakdown,
    duty_multi_month,
    erp_analysis,
    filter_correction_records,
    filter_issue_records,
    filter_visit_records,
    it_timeline_analysis,
    multi_month_summary,
    ssv_duty_analysis,
)
from .store import DashboardStore

setup_logging(level=settings.log_level, json_output=settings.log_format != "text")
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Workforce Visit Dashboard API",
    version=__version__,
    description="Visit stability, supervisor duty, IT response and ERP correction analytics",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=False,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Accept"],
)

_store = DashboardStore()


def get_store() -> DashboardStore:
    return _store


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class WorkingDaysBody(BaseModel):
    current: Optional[int] = Field(default=None, ge=0, le=MAX_WORKING_DAYS)
    last: Optional[int] = Field(default=None, ge=0, le=MAX_WORKING_DAYS)
    security_current: Optional[int] = Field(default=None, ge=0, le=MAX_WORKING_DAYS)
    security_last: Optional[int] = Field(default=None, ge=0, le=MAX_WORKING_DAYS)
    office_current: Optional[int] = Field(default=None, ge=0, le=MAX_WORKING_DAYS)
    office_last: Optional[int] = Field(default=None, ge=0, le=MAX_WORKING_DAYS)


class DepartmentSummaryRequest(BaseModel):
    month: str
    working_days: WorkingDaysBody = Field(default_factory=WorkingDaysBody)
    custom_durations: dict[str, str] = Field(default_factory=dict)
    department: Optional[str] = None
    employee: Optional[str] = None


class MultiMonthRequest(BaseModel):
    start_month: str
    end_month: str
    working_days: Optional[int] = Field(default=None, ge=0, le=MAX_WORKING_DAYS)
    department: Optional[str] = None
    employee: Optional[str] = None


class DutyAnalysisRequest(BaseModel):
    month: str
    working_days: WorkingDaysBody = Field(default_factory=WorkingDaysBody)
    remarks: dict[str, str] = Field(default_factory=dict)


class DutyBreakdownRequest(DutyAnalysisRequest):
    scope: str = "underperforming"


class DutyMultiMonthRequest(BaseModel):
    start_month: str
    end_month: str
    working_days: Optional[int] = Field(default=None, ge=0, le=MAX_WORKING_DAYS)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _working_day_config(body: WorkingDaysBody, per_employee: dict[str, int] | None = None) -> WorkingDayConfig:
    return WorkingDayConfig.from_settings(
        default_current=body.current,
        default_last=body.last,
        security_current=body.security_current,
        security_last=body.security_last,
        office_current=body.office_current,
        office_last=body.office_last,
        per_employee=per_employee,
    )


async def _read_upload(file: UploadFile) -> bytes:
    content = await file.read()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty.")
    return content


def _run_import(importer: Callable[[bytes], ImportResult], content: bytes) -> ImportResult:
    try:
        result = importer(content)
    except CsvHeaderError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if result.error is not None:
        raise HTTPException(status_code=422, detail=result.error.message)
    return result


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content.encode("utf-8"),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _pdf_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _department_summary_payload(body: DepartmentSummaryRequest, store: DashboardStore) -> dict[str, Any]:
    return department_summary(
        store.snapshot_visits(),
        body.month,
        working_days=_working_day_config(body.working_days, store.snapshot_working_days()),
        custom_durations=body.custom_durations,
        department=body.department,
        employee=body.employee,
    )


def _duty_analysis_payload(body: DutyAnalysisRequest, store: DashboardStore) -> dict[str, Any]:
    return duty_analysis(
        store.snapshot_visits(),
        body.month,
        working_days=_working_day_config(body.working_days),
        remarks=body.remarks,
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@app.get("/health")
def health_check(store: DashboardStore = Depends(get_store)) -> dict[str, Any]:
    return {"status": "ok", "version": __version__, "records": store.counts()}


# ---------------------------------------------------------------------------
# Visit records
# ---------------------------------------------------------------------------


@app.post("/api/visits/import")
async def import_visit_records(
    file: UploadFile = File(...),
    store: DashboardStore = Depends(get_store),
) -> dict[str, Any]:
    result = _run_import(import_visits, await _read_upload(file))
    total = store.add_visits(result.records)
    return {"imported": len(result.records), "total": total}


@app.delete("/api/visits")
def clear_visit_records(store: DashboardStore = Depends(get_store)) -> dict[str, Any]:
    store.clear_visits()
    return {"status": "cleared"}


@app.get("/api/visits")
def list_visit_records(
    start: Optional[str] = Query(default=None),
    end: Optional[str] = Query(default=None),
    project: Optional[str] = Query(default=None),
    department: Optional[str] = Query(default=None),
    q: Optional[str] = Query(default=None),
    store: DashboardStore = Depends(get_store),
) -> dict[str, Any]:
    visits = filter_visit_records(store.snapshot_visits(), start, end, project, department, q)
    return {"count": len(visits), "records": [visit.as_dict() for visit in visits]}


@app.get("/api/visits/export.csv")
def export_visit_records(
    start: Optional[str] = Query(default=None),
    end: Optional[str] = Query(default=None),
    project: Optional[str] = Query(default=None),
    department: Optional[str] = Query(default=None),
    q: Optional[str] = Query(default=None),
    store: DashboardStore = Depends(get_store),
) -> Response:
    visits = filter_visit_records(store.snapshot_visits(), start, end, project, department, q)
    return _csv_response(visits_csv(visits), "visit_records.csv")


@app.get("/api/visits/template.csv")
def download_visit_template() -> Response:
    return _csv_response(visit_template(), "visit_template.csv")


# ---------------------------------------------------------------------------
# Security supervisor visits
# ---------------------------------------------------------------------------


@app.post("/api/ssv-visits/import")
async def import_supervisor_records(
    file: UploadFile = File(...),
    store: DashboardStore = Depends(get_store),
) -> dict[str, Any]:
    result = _run_import(import_supervisor_visits, await _read_upload(file))
    total = store.add_supervisor_visits(result.records)
    return {"imported": len(result.records), "total": total}


@app.delete("/api/ssv-visits")
def clear_supervisor_records(store: DashboardStore = Depends(get_store)) -> dict[str, Any]:
    store.clear_supervisor_visits()
    return {"status": "cleared"}


@app.get("/api/ssv-visits")
def list_supervisor_records(store: DashboardStore = Depends(get_store)) -> dict[str, Any]:
    visits = store.snapshot_supervisor_visits()
    return {"count": len(visits), "records": [visit.as_dict() for visit in visits]}


# ---------------------------------------------------------------------------
# Working days
# ---------------------------------------------------------------------------


@app.post("/api/working-days/import")
async def import_working_day_sheet(
    file: UploadFile = File(...),
    store: DashboardStore = Depends(get_store),
) -> dict[str, Any]:
    content = await _read_upload(file)
    known = {visit.visitor_name for visit in store.snapshot_visits()}
    result = _run_import(lambda payload: import_working_days(payload, known), content)
    updated = store.set_working_days(result.records)
    return {"updated": updated, "working_days": store.snapshot_working_days()}


@app.get("/api/working-days")
def list_working_days(store: DashboardStore = Depends(get_store)) -> dict[str, Any]:
    return {"working_days": store.snapshot_working_days()}


@app.get("/api/working-days/template.csv")
def download_working_day_template(store: DashboardStore = Depends(get_store)) -> Response:
    names = {visit.visitor_name for visit in store.snapshot_visits()}
    return _csv_response(working_day_template(names), "working_day_template.csv")


# ---------------------------------------------------------------------------
# Visit reports
# ---------------------------------------------------------------------------


@app.post("/api/reports/department-summary")
def get_department_summary(
    body: DepartmentSummaryRequest,
    store: DashboardStore = Depends(get_store),
) -> dict[str, Any]:
    return _department_summary_payload(body, store)


@app.post("/api/reports/department-summary/export.csv")
def export_department_summary_csv(
    body: DepartmentSummaryRequest,
    store: DashboardStore = Depends(get_store),
) -> Response:
    summary = _department_summary_payload(body, store)
    return _csv_response(department_summary_csv(summary), f"department_summary_{summary['month']}.csv")


@app.post("/api/reports/department-summary/export.pdf")
def export_department_summary_pdf(
    body: DepartmentSummaryRequest,
    store: DashboardStore = Depends(get_store),
) -> Response:
    summary = _department_summary_payload(body, store)
    return _pdf_response(generate_department_summary_pdf(summary), f"department_summary_{summary['month']}.pdf")


@app.post("/api/reports/multi-month-summary")
def get_multi_month_summary(
    body: MultiMonthRequest,
    store: DashboardStore = Depends(get_store),
) -> dict[str, Any]:
    return multi_month_summary(
        store.snapshot_visits(),
        body.start_month,
        body.end_month,
        working_days=body.working_days,
        department=body.department,
        employee=body.employee,
    )


@app.post("/api/reports/duty-analysis")
def get_duty_analysis(
    body: DutyAnalysisRequest,
    store: DashboardStore = Depends(get_store),
) -> dict[str, Any]:
    return _duty_analysis_payload(body, store)


@app.post("/api/reports/duty-analysis/export.csv")
def export_duty_analysis_csv(
    body: DutyAnalysisRequest,
    store: DashboardStore = Depends(get_store),
) -> Response:
    analysis = _duty_analysis_payload(body, store)
    return _csv_response(duty_analysis_csv(analysis), f"duty_analysis_{analysis['month']}.csv")


@app.post("/api/reports/duty-analysis/export.pdf")
def export_duty_analysis_pdf(
    body: DutyAnalysisRequest,
    store: DashboardStore = Depends(get_store),
) -> Response:
    analysis = _duty_analysis_payload(body, store)
    return _pdf_response(generate_duty_analysis_pdf(analysis), f"duty_analysis_{analysis['month']}.pdf")


@app.post("/api/reports/duty-analysis/breakdown")
def get_duty_breakdown(
    body: DutyBreakdownRequest,
    store: DashboardStore = Depends(get_store),
) -> dict[str, Any]:
    return duty_breakdown(
        store.snapshot_visits(),
        body.month,
        working_days=_working_day_config(body.working_days),
        scope=body.scope,
    )


@app.post("/api/reports/duty-analysis/breakdown.pdf")
def export_duty_breakdown_pdf(
    body: DutyBreakdownRequest,
    store: DashboardStore = Depends(get_store),
) -> Response:
    breakdown = duty_breakdown(
        store.snapshot_visits(),
        body.month,
        working_days=_working_day_config(body.working_days),
        scope=body.scope,
    )
    return _pdf_response(generate_duty_breakdown_pdf(breakdown), f"duty_breakdown_{breakdown['month']}.pdf")


@app.post("/api/reports/duty-analysis/multi-month")
def get_duty_multi_month(
    body: DutyMultiMonthRequest,
    store: DashboardStore = Depends(get_store),
) -> dict[str, Any]:
    return duty_multi_month(store.snapshot_visits(), body.start_month, body.end_month, working_days=body.working_days)


@app.post("/api/reports/duty-analysis/improvements")
async def get_improvement_analysis(
    body: DutyAnalysisRequest,
    store: DashboardStore = Depends(get_store),
) -> dict[str, Any]:
    if not settings.llm_enabled:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Improvement analysis is not configured. Set LLM_API_KEY in backend/.env.",
        )
    visits = store.snapshot_visits()
    try:
        return await analyze_underperforming_departments(visits, body.month, _working_day_config(body.working_days))
    except ImprovementAnalysisError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# Security supervisor duty analysis
# ---------------------------------------------------------------------------


@app.get("/api/reports/ssv-duty-analysis")
def get_ssv_duty_analysis(
    start: Optional[str] = Query(default=None),
    end: Optional[str] = Query(default=None),
    supervisor: Optional[str] = Query(default=None),
    shift: str = Query(default="All"),
    store: DashboardStore = Depends(get_store),
) -> dict[str, Any]:
    return ssv_duty_analysis(store.snapshot_supervisor_visits(), start, end, supervisor, shift)


@app.get("/api/reports/ssv-duty-analysis/export.csv")
def export_ssv_duty_analysis(
    start: Optional[str] = Query(default=None),
    end: Optional[str] = Query(default=None),
    supervisor: Optional[str] = Query(default=None),
    shift: str = Query(default="All"),
    store: DashboardStore = Depends(get_store),
) -> Response:
    payload = ssv_duty_analysis(store.snapshot_supervisor_visits(), start, end, supervisor, shift)
    return _csv_response(ssv_supervisors_csv(payload), "ssv_duty_analysis.csv")


# ---------------------------------------------------------------------------
# IT issues
# ---------------------------------------------------------------------------


@app.post("/api/it-issues/import")
async def import_it_issue_records(
    file: UploadFile = File(...),
    store: DashboardStore = Depends(get_store),
) -> dict[str, Any]:
    result = _run_import(import_it_issues, await _read_upload(file))
    total = store.add_it_issues(result.records)
    return {"imported": len(result.records), "total": total}


@app.delete("/api/it-issues")
def clear_it_issue_records(store: DashboardStore = Depends(get_store)) -> dict[str, Any]:
    store.clear_it_issues()
    return {"status": "cleared"}


@app.get("/api/it-issues")
def list_it_issue_records(
    issue_status: Optional[str] = Query(default=None, alias="status"),
    q: Optional[str] = Query(default=None),
    store: DashboardStore = Depends(get_store),
) -> dict[str, Any]:
    issues = filter_issue_records(store.snapshot_it_issues(), issue_status, q)
    return {"count": len(issues), "records": [issue.as_dict() for issue in issues]}


@app.get("/api/it-issues/template.csv")
def download_it_issue_template() -> Response:
    return _csv_response(it_issue_template(), "it_issue_template.csv")


@app.get("/api/reports/it-timeline")
def get_it_timeline(store: DashboardStore = Depends(get_store)) -> dict[str, Any]:
    analysis = it_timeline_analysis(store.snapshot_it_issues())
    return {"analysis": analysis}


@app.get("/api/reports/it-timeline.pdf")
def export_it_timeline_pdf(store: DashboardStore = Depends(get_store)) -> Response:
    analysis = it_timeline_analysis(store.snapshot_it_issues())
    return _pdf_response(generate_it_timeline_pdf(analysis), "it_response_timeline.pdf")


# ---------------------------------------------------------------------------
# ERP corrections
# ---------------------------------------------------------------------------


@app.post("/api/erp-corrections/import")
async def import_erp_correction_records(
    file: UploadFile = File(...),
    store: DashboardStore = Depends(get_store),
) -> dict[str, Any]:
    result = _run_import(import_erp_corrections, await _read_upload(file))
    total = store.add_corrections(result.records)
    return {"imported": len(result.records), "total": total}


@app.delete("/api/erp-corrections")
def clear_erp_correction_records(store: DashboardStore = Depends(get_store)) -> dict[str, Any]:
    store.clear_corrections()
    return {"status": "cleared"}


@app.get("/api/erp-corrections")
def list_erp_correction_records(
    q: Optional[str] = Query(default=None),
    store: DashboardStore = Depends(get_store),
) -> dict[str, Any]:
    corrections = filter_correction_records(store.snapshot_corrections(), q)
    return {"count": len(corrections), "records": [record.as_dict() for record in corrections]}


@app.get("/api/erp-corrections/template.csv")
def download_erp_correction_template() -> Response:
    return _csv_response(erp_correction_template(), "erp_correction_template.csv")


@app.get("/api/reports/erp-analysis")
def get_erp_analysis(
    start: Optional[str] = Query(default=None),
    end: Optional[str] = Query(default=None),
    store: DashboardStore = Depends(get_store),
) -> dict[str, Any]:
    return erp_analysis(store.snapshot_corrections(), start, end)


@app.get("/api/reports/erp-analysis.pdf")
def export_erp_analysis_pdf(
    start: Optional[str] = Query(default=None),
    end: Optional[str] = Query(default=None),
    store: DashboardStore = Depends(get_store),
) -> Response:
    payload = erp_analysis(store.snapshot_corrections(), start, end)
    return _pdf_response(generate_erp_analysis_pdf(payload), "erp_correction_analysis.pdf")


def run() -> None:
    import uvicorn

    uvicorn.run("workforce_dashboard.main:app", host="0.0.0.0", port=8000)
