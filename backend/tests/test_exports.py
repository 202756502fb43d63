"""
test_exports.py: CSV and PDF renderings of the report payloads.
"""

import csv
import io

from workforce_dashboard.csv_exports import (
    DUTY_ANALYSIS_HEADERS,
    SSV_SUPERVISOR_HEADERS,
    department_summary_csv,
    duty_analysis_csv,
    ssv_supervisors_csv,
    visits_csv,
)
from workforce_dashboard.importers import VISIT_HEADERS
from workforce_dashboard.pdf_exports import (
    generate_department_summary_pdf,
    generate_duty_analysis_pdf,
    generate_duty_breakdown_pdf,
    generate_erp_analysis_pdf,
    generate_it_timeline_pdf,
)
from workforce_dashboard.reports import (
    WorkingDayConfig,
    department_summary,
    duty_analysis,
    duty_breakdown,
    erp_analysis,
    it_timeline_analysis,
    ssv_duty_analysis,
)


def _rows(text):
    return list(csv.reader(io.StringIO(text)))


# ===========================================================================
# CSV
# ===========================================================================

class TestCsvExports:

    def test_department_summary_headers_name_both_months(self, september_visits):
        summary = department_summary(september_visits, "2024-09", WorkingDayConfig())
        rows = _rows(department_summary_csv(summary))
        header = rows[0]
        assert header[0] == "SL. No"
        assert "Aug Avg/Day" in header and "Sep Avg/Day" in header
        assert len(rows) == 1 + len(summary["rows"])
        first = dict(zip(header, rows[1]))
        assert first["Visitor Name"] == "B"
        assert first["Current %"] == "2.00%"
        assert first["Stability %"] == "▲ 2.00%"

    def test_exempt_rows_show_duration_instead_of_percent(self, make_visit):
        visits = [make_visit(department="Internal Audit", designation="Deputy Manager", duration="1:00:00")]
        summary = department_summary(visits, "2024-09", WorkingDayConfig())
        header, row = _rows(department_summary_csv(summary))
        cells = dict(zip(header, row))
        assert cells["Current %"] == "01:00"
        assert cells["Last M %"] == "00:00"

    def test_visits_csv_uses_import_layout(self, september_visits):
        rows = _rows(visits_csv(september_visits[:2]))
        assert tuple(rows[0]) == VISIT_HEADERS
        assert rows[1][:3] == ["1", "2024-09-01", "A"]

    def test_duty_analysis_csv(self, september_visits):
        analysis = duty_analysis(september_visits, "2024-09", WorkingDayConfig(), remarks={"Construction": "ok"})
        rows = _rows(duty_analysis_csv(analysis))
        assert tuple(rows[0]) == DUTY_ANALYSIS_HEADERS
        construction = rows[1]
        assert construction[0] == "Construction"
        assert construction[4] == "B"
        assert construction[-1] == "ok"

    def test_supervisor_csv_without_analysis_is_header_only(self):
        payload = ssv_duty_analysis([])
        assert _rows(ssv_supervisors_csv(payload)) == [list(SSV_SUPERVISOR_HEADERS)]


# ===========================================================================
# PDF
# ===========================================================================

class TestPdfExports:

    def test_department_summary_pdf(self, september_visits):
        summary = department_summary(september_visits, "2024-09", WorkingDayConfig())
        assert generate_department_summary_pdf(summary).startswith(b"%PDF")

    def test_duty_reports_pdf(self, september_visits):
        analysis = duty_analysis(september_visits, "2024-09", WorkingDayConfig())
        assert generate_duty_analysis_pdf(analysis).startswith(b"%PDF")
        breakdown = duty_breakdown(september_visits, "2024-09", WorkingDayConfig(), scope="all")
        assert generate_duty_breakdown_pdf(breakdown).startswith(b"%PDF")

    def test_empty_breakdown_pdf(self):
        breakdown = duty_breakdown([], "2024-09", WorkingDayConfig())
        assert generate_duty_breakdown_pdf(breakdown).startswith(b"%PDF")

    def test_it_timeline_pdf(self, make_issue):
        analysis = it_timeline_analysis([make_issue("2024-09-01"), make_issue("2024-09-03")])
        assert generate_it_timeline_pdf(analysis).startswith(b"%PDF")
        assert generate_it_timeline_pdf(None).startswith(b"%PDF")

    def test_erp_pdf(self, make_correction):
        corrections = [
            make_correction(status="Completed", completed_date="2024-09-02", completed_time="11:00"),
            make_correction(entry_date="2024-08-20"),
        ]
        assert generate_erp_analysis_pdf(erp_analysis(corrections, "2024-09-01", "2024-09-30")).startswith(b"%PDF")
        assert generate_erp_analysis_pdf(erp_analysis([], "2024-09-01", "2024-09-30")).startswith(b"%PDF")
