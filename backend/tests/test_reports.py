"""
test_reports.py: Report composition over imported records.

Covers the department summary, multi-month summary, duty analysis (with
breakdown and department trend), security supervisor duty analysis, IT issue
timeline and ERP correction analysis. Expected figures are derived by hand
from the fixture data in conftest.py.
"""

from datetime import date

import pytest
from fastapi import HTTPException

from workforce_dashboard.config import settings
from workforce_dashboard.importers import import_visits
from workforce_dashboard.reports import (
    WorkingDayConfig,
    correction_duration_minutes,
    department_summary,
    duty_analysis,
    duty_breakdown,
    duty_multi_month,
    erp_analysis,
    filter_correction_records,
    filter_issue_records,
    filter_visit_records,
    format_minutes,
    it_timeline_analysis,
    multi_month_summary,
    shift_type,
    ssv_duty_analysis,
)

FOUR_HOURS = 4 * 3600


def _row(summary, name):
    return next(row for row in summary["rows"] if row["visitor_name"] == name)


# ===========================================================================
# Working-day configuration
# ===========================================================================

class TestWorkingDayConfig:

    def test_per_employee_beats_security_and_default(self):
        config = WorkingDayConfig(default_current=25, security_current=20, per_employee={"A": 18})
        assert config.current_for("A", is_security=True) == 18
        assert config.current_for("S", is_security=True) == 20
        assert config.current_for("B", is_security=False) == 25

    def test_last_period_uses_security_override_only_for_security(self):
        config = WorkingDayConfig(default_last=26, security_last=24)
        assert config.last_for(True) == 24
        assert config.last_for(False) == 26

    def test_office_divisor_ignored_when_zero(self):
        assert WorkingDayConfig(default_current=25, office_current=0).current_average_divisor == 25
        assert WorkingDayConfig(default_current=25, office_current=22).current_average_divisor == 22

    def test_from_settings_drops_unset_overrides(self):
        config = WorkingDayConfig.from_settings(default_current=None, security_current=21)
        assert config.security_current == 21
        assert config.default_current > 0


# ===========================================================================
# Department summary
# ===========================================================================

class TestDepartmentSummary:

    def test_end_to_end_achieved_percentage(self, september_visits):
        summary = department_summary(september_visits, "2024-09", WorkingDayConfig())
        row = _row(summary, "A")
        assert row["current_actual"]["seconds"] == 2100
        assert row["target_per_day"]["seconds"] == FOUR_HOURS
        assert row["target_per_month"]["seconds"] == 25 * FOUR_HOURS
        assert row["target_per_month"]["hhmm"] == "100:00"
        assert row["current_percent"] == pytest.approx(0.5833, abs=1e-3)

    def test_end_to_end_from_imported_csv(self):
        content = (
            "Sl No,Date,Visitor Name,Department,Designation,Visited Project Name,Entry Time,Out Time,Duration,Formula\n"
            "1,1-Sep-24,A,Construction,Asst. Manager,Lake Lofts,10:00,10:25,0:25:00,\n"
            "2,3-Sep-24,A,Construction,Asst. Manager,Gladiolus,11:00,11:10,0:10:00,\n"
        )
        result = import_visits(content)
        assert result.ok
        row = _row(department_summary(result.records, "2024-09", WorkingDayConfig(default_current=25)), "A")
        assert row["current_actual"]["seconds"] == 2100
        assert row["target_per_day"]["seconds"] == 14400
        assert row["target_per_month"]["seconds"] == 360000
        assert row["current_percent"] == pytest.approx(0.5833, abs=1e-3)

    def test_same_work_in_both_months_is_stable(self, make_visit):
        visits = [
            make_visit(date="2024-08-12", duration="1:30:00"),
            make_visit(date="2024-09-12", duration="1:30:00"),
        ]
        config = WorkingDayConfig(default_current=25, default_last=25)
        assert _row(department_summary(visits, "2024-09", config), "A")["stability"] == 0.0

    def test_zero_duration_lands_in_short_bucket(self, make_visit):
        visits = [make_visit(duration="0:00:00"), make_visit(duration="0:30:00")]
        row = _row(department_summary(visits, "2024-09", WorkingDayConfig()), "A")
        assert row["buckets"]["less_than_5"] == 1
        assert row["buckets"]["more_than_20"] == 1

    def test_previous_month_and_stability(self, september_visits):
        row = _row(department_summary(september_visits, "2024-09", WorkingDayConfig()), "A")
        expected_last = 3600 / (26 * FOUR_HOURS) * 100
        assert row["last_percent"] == pytest.approx(expected_last)
        assert row["stability"] == pytest.approx(row["current_percent"] - expected_last)
        assert row["previous_project_count"] == 1
        assert row["project_count"] == 2
        assert row["visited_day_count"] == 2

    def test_average_stability_from_zero_previous_is_100(self, september_visits):
        row = _row(department_summary(september_visits, "2024-09", WorkingDayConfig()), "B")
        assert row["last_actual"]["seconds"] == 0
        assert row["average_stability"] == 100.0

    def test_rows_sorted_and_grouped(self, september_visits):
        summary = department_summary(september_visits, "2024-09", WorkingDayConfig())
        assert [row["visitor_name"] for row in summary["rows"]] == ["B", "A", "S"]
        assert [group["department"] for group in summary["groups"]] == ["Construction", "HR & Admin (Security)"]
        assert summary["previous_month"] == "2024-08"
        assert (summary["last_month_name"], summary["current_month_name"]) == ("Aug", "Sep")

    def test_per_employee_working_days(self, september_visits):
        summary = department_summary(september_visits, "2024-09", WorkingDayConfig(per_employee={"A": 20}))
        row = _row(summary, "A")
        assert row["working_days"] == 20
        assert row["current_percent"] == pytest.approx(2100 / (20 * FOUR_HOURS) * 100)

    def test_security_working_days(self, september_visits):
        summary = department_summary(september_visits, "2024-09", WorkingDayConfig(security_current=20))
        assert _row(summary, "S")["current_percent"] == pytest.approx(5.0)
        assert _row(summary, "A")["working_days"] == 25

    def test_custom_department_duration(self, september_visits):
        summary = department_summary(
            september_visits, "2024-09", WorkingDayConfig(), custom_durations={"Construction": "2"}
        )
        row = _row(summary, "A")
        assert row["target_per_day"]["hhmm"] == "02:00"
        assert row["current_percent"] == pytest.approx(2100 / (25 * 7200) * 100)

    def test_exempt_department_flag(self, make_visit):
        visits = [make_visit(department="Internal Audit", designation="Deputy Manager")]
        row = department_summary(visits, "2024-09", WorkingDayConfig())["rows"][0]
        assert row["is_exempt"]
        assert row["target_per_day"]["seconds"] == 0

    def test_department_filter(self, september_visits):
        summary = department_summary(september_visits, "2024-09", WorkingDayConfig(), department="Construction")
        assert {row["visitor_name"] for row in summary["rows"]} == {"A", "B"}
        assert summary["employees"] == ["A", "B"]
        assert summary["departments"] == ["Construction", "HR & Admin (Security)"]

    def test_invalid_month_is_bad_request(self, september_visits):
        with pytest.raises(HTTPException) as excinfo:
            department_summary(september_visits, "2024-9")
        assert excinfo.value.status_code == 400

    def test_empty_dataset(self):
        summary = department_summary([], "2024-09")
        assert summary["rows"] == []
        assert summary["groups"] == []


# ===========================================================================
# Multi-month summary
# ===========================================================================

class TestMultiMonthSummary:

    def test_monthly_percent_and_trend(self, september_visits):
        summary = multi_month_summary(september_visits, "2024-08", "2024-09", working_days=22)
        assert summary["months"] == ["2024-08", "2024-09"]
        assert summary["working_days"] == 22
        row = next(row for row in summary["rows"] if row["visitor_name"] == "A")
        august = 3600 / (22 * FOUR_HOURS) * 100
        september = 2100 / (22 * FOUR_HOURS) * 100
        assert row["months"]["2024-08"]["percent"] == pytest.approx(august)
        assert row["months"]["2024-09"]["visit_count"] == 2
        assert row["trend"] == pytest.approx(september - august)

    def test_working_days_default_to_configured_month_value(self, september_visits):
        summary = multi_month_summary(september_visits, "2024-09", "2024-09")
        assert summary["working_days"] == settings.default_current_working_days
        row = next(row for row in summary["rows"] if row["visitor_name"] == "A")
        expected = 2100 / (settings.default_current_working_days * FOUR_HOURS) * 100
        assert row["months"]["2024-09"]["percent"] == pytest.approx(expected)

    def test_zero_working_days_fall_back(self, september_visits):
        summary = multi_month_summary(september_visits, "2024-09", "2024-09", working_days=0)
        assert summary["working_days"] == settings.multi_month_fallback_working_days

    def test_single_month_trend_is_zero(self, september_visits):
        summary = multi_month_summary(september_visits, "2024-09", "2024-09", working_days=25)
        assert all(row["trend"] == 0.0 for row in summary["rows"])

    def test_range_longer_than_six_months(self, september_visits):
        with pytest.raises(HTTPException) as excinfo:
            multi_month_summary(september_visits, "2024-01", "2024-08")
        assert excinfo.value.detail == "The date range cannot exceed 6 months."

    def test_start_after_end(self, september_visits):
        with pytest.raises(HTTPException) as excinfo:
            multi_month_summary(september_visits, "2024-09", "2024-08")
        assert excinfo.value.detail == "Start month cannot be after end month."


# ===========================================================================
# Duty analysis
# ===========================================================================

class TestDutyAnalysis:

    def test_departments_ranked_by_average_stability(self, september_visits):
        analysis = duty_analysis(september_visits, "2024-09", WorkingDayConfig(), remarks={"Construction": "Watch A"})
        departments = analysis["departments"]
        assert [item["department"] for item in departments] == ["Construction", "HR & Admin (Security)"]
        construction = departments[0]
        assert construction["employee_count"] == 2
        assert construction["visit_count"] == 3
        assert construction["remark"] == "Watch A"
        assert construction["top_performer"]["name"] == "B"
        assert construction["lowest_performer"] == {
            "name": "A",
            "visit_count": 2,
            "project_count": 2,
            "duration": "00:35",
        }
        assert analysis["employee_count"] == 3

    def test_full_breakdown_orders_employees_ascending(self, september_visits):
        breakdown = duty_breakdown(september_visits, "2024-09", WorkingDayConfig(), scope="all")
        construction = breakdown["departments"][0]
        assert [employee["name"] for employee in construction["employees"]] == ["A", "B"]
        employee_a = construction["employees"][0]
        assert employee_a["current"]["duration"] == "00:35"
        assert employee_a["current"]["average_daily"] == "00:01"
        assert employee_a["last"]["average_daily"] == "00:02"
        assert breakdown["title"] == "Full Performance Breakdown"

    def test_underperforming_breakdown_keeps_declining_employees(self, make_visit):
        visits = [
            make_visit(date="2024-08-01", duration="2:00:00"),
            make_visit(date="2024-09-01", duration="0:04:00"),
            make_visit(visitor_name="B", date="2024-09-01", duration="0:30:00"),
        ]
        breakdown = duty_breakdown(visits, "2024-09", WorkingDayConfig())
        assert len(breakdown["departments"]) == 1
        employees = breakdown["departments"][0]["employees"]
        assert [employee["name"] for employee in employees] == ["A"]
        assert employees[0]["current"]["short_visit_count"] == 1

    def test_no_underperformers(self, september_visits):
        assert duty_breakdown(september_visits, "2024-09", WorkingDayConfig())["departments"] == []

    def test_unknown_scope(self, september_visits):
        with pytest.raises(HTTPException):
            duty_breakdown(september_visits, "2024-09", scope="some")

    def test_department_trend(self, september_visits):
        result = duty_multi_month(september_visits, "2024-08", "2024-09", working_days=22)
        construction = result["departments"][0]
        assert construction["department"] == "Construction"
        august = 3600 / (22 * FOUR_HOURS) * 100
        september = (1500 + 600 + 7200) / (22 * FOUR_HOURS) * 100 / 2
        assert construction["months"]["2024-08"] == pytest.approx(august)
        assert construction["trend"] == pytest.approx(september - august)
        assert result["departments"][1]["trend"] == pytest.approx(0.0)

    def test_department_trend_working_days(self, september_visits):
        default = duty_multi_month(september_visits, "2024-08", "2024-09")
        assert default["working_days"] == settings.default_current_working_days
        fallback = duty_multi_month(september_visits, "2024-08", "2024-09", working_days=0)
        assert fallback["working_days"] == settings.multi_month_fallback_working_days


# ===========================================================================
# Security supervisor duty analysis
# ===========================================================================

@pytest.fixture
def supervisor_visits(make_visit):
    security = {"department": "HR & Admin (Security)", "designation": "Security Supervisor"}
    return [
        make_visit(visitor_name="G1", date="2024-09-01", entry_time="08:00", out_time="20:00",
                   duration="12:00:00", project_name="P1", **security),
        make_visit(visitor_name="G1", date="2024-09-02", entry_time="07:00", out_time="09:00",
                   duration="2:00:00", project_name="P1", **security),
        make_visit(visitor_name="G2", date="2024-09-01", entry_time="20:00", out_time="08:00",
                   duration="12:00:00", project_name="P2", **security),
    ]


class TestSupervisorDuty:

    @pytest.mark.parametrize(
        "entry, expected",
        [("08:00", "Day"), ("8:30", "Day"), ("19:59", "Day"), ("20:00", "Night"), ("07:59", "Night"), ("n/a", "Night")],
    )
    def test_shift_type(self, entry, expected):
        assert shift_type(entry) == expected

    def test_single_day_window_runs_to_next_morning(self, supervisor_visits):
        payload = ssv_duty_analysis(supervisor_visits, "2024-09-01", "2024-09-01")
        analysis = payload["analysis"]
        assert analysis["total_duty_hours"] == "26:00"
        assert analysis["supervisors_on_duty"] == 2
        assert analysis["average_duty_length"] == "08:40"
        assert analysis["most_active_project"] == "P1"
        assert (analysis["day_shifts"], analysis["night_shifts"]) == (1, 2)
        assert payload["supervisors"] == ["G1", "G2"]

    def test_hourly_buckets_split_across_midnight(self, supervisor_visits):
        analysis = ssv_duty_analysis(supervisor_visits, "2024-09-01", "2024-09-01")["analysis"]
        minutes = analysis["hourly_duration"]["buckets"]
        assert minutes[7] == 120
        assert minutes[8] == 120
        assert minutes[23] == 60
        assert minutes[0] == 60
        assert sum(analysis["hourly_frequency"]["buckets"]) == 3

    def test_shift_and_supervisor_filters(self, supervisor_visits):
        day_only = ssv_duty_analysis(supervisor_visits, "2024-09-01", "2024-09-02", shift="Day")["analysis"]
        assert day_only["night_shifts"] == 0
        g2 = ssv_duty_analysis(supervisor_visits, supervisor="G2")["analysis"]
        assert [row["name"] for row in g2["supervisors"]] == ["G2"]

    def test_empty_window(self, supervisor_visits):
        assert ssv_duty_analysis(supervisor_visits, "2024-09-05", "2024-09-05")["analysis"] is None

    def test_invalid_shift(self, supervisor_visits):
        with pytest.raises(HTTPException):
            ssv_duty_analysis(supervisor_visits, shift="Evening")


# ===========================================================================
# IT issue timeline
# ===========================================================================

class TestItTimeline:

    @pytest.fixture
    def issues(self, make_issue):
        return [
            make_issue("2024-09-01"),
            make_issue("2024-09-02"),
            make_issue("2024-09-03"),
            make_issue("2024-09-10", status="Offline"),
            make_issue("2024-09-05", issue="Router down", project_name="Gladiolus", zone="Banani"),
            make_issue("2024-09-06", issue="Router down", project_name="Gladiolus", zone="Banani"),
        ]

    def test_ongoing_issue_counts_days_to_latest_report(self, issues):
        analysis = it_timeline_analysis(issues)
        printer = analysis["timeline"][0]
        assert printer["issue"] == "Printer offline"
        assert printer["timelines"] == [
            {"start": "2024-09-01", "end": "2024-09-03"},
            {"start": "2024-09-10", "end": "2024-09-10"},
        ]
        assert printer["total_active_days"] == 4
        assert printer["ongoing"]
        assert printer["solution_date"] == "Ongoing"
        assert printer["resolution_days"] == 1

    def test_solved_issue_resolves_day_after_last_report(self, issues):
        router = it_timeline_analysis(issues)["timeline"][1]
        assert router["solution_date"] == "2024-09-07"
        assert router["resolution_days"] == 2

    def test_summary_counts(self, issues):
        analysis = it_timeline_analysis(issues)
        assert analysis["total_issues"] == 6
        assert (analysis["issue_count"], analysis["offline_count"]) == (5, 1)
        assert analysis["most_recent_date"] == "2024-09-10"
        assert analysis["average_resolution_days"] == 2
        assert analysis["longest_open"]["issue"] == "Printer offline"
        assert analysis["top_problems"][0]["count"] == 4
        assert analysis["zones"][0] == {"zone": "Dhanmondi", "count": 4, "projects": ["Lake Lofts"]}

    def test_no_issues(self):
        assert it_timeline_analysis([]) is None


# ===========================================================================
# ERP correction analysis
# ===========================================================================

class TestErpAnalysis:

    @pytest.fixture
    def corrections(self, make_correction):
        return [
            make_correction(entry_date="2024-09-02", entry_time="10:00", status="Completed",
                            completed_date="2024-09-02", completed_time="10:30",
                            remarks="Supplier name change please"),
            make_correction(officer="K", department="Accounts", entry_date="2024-09-05", entry_time="09:00",
                            status="Completed", completed_date="2024-09-05", completed_time="11:00"),
            make_correction(entry_date="2024-09-10"),
            make_correction(entry_date="2024-08-20"),
        ]

    def test_overview_compares_with_previous_window(self, corrections):
        payload = erp_analysis(corrections, "2024-09-01", "2024-09-30")
        assert (payload["previous_start"], payload["previous_end"]) == ("2024-08-02", "2024-08-31")
        overview = payload["analysis"]["overview"]
        assert overview["total_corrections"]["current"] == 3
        assert overview["total_corrections"]["change"] == pytest.approx(200.0)
        assert overview["average_completion_minutes"]["current"] == pytest.approx(75.0)
        assert overview["average_completion_minutes"]["change"] is None
        assert overview["average_completion_minutes"]["change_is_infinite"]
        assert overview["top_department"]["current"] == {"name": "MIS", "count": 2}

    def test_officer_rankings_and_remarks(self, corrections):
        analysis = erp_analysis(corrections, "2024-09-01", "2024-09-30")["analysis"]
        assert analysis["fastest_officer"] == {"name": "Ruhul", "minutes": 30}
        assert analysis["slowest_officer"]["name"] == "K"
        assert analysis["most_corrections_officer"] == {"name": "Ruhul", "count": 2}
        assert analysis["remark_patterns"] == {"Supplier name change": 1, "Other": 2}
        assert analysis["departments"][0]["top_officer"] == "Ruhul"

    def test_defaults_to_month_to_date(self, corrections):
        payload = erp_analysis(corrections, today=date(2024, 9, 15))
        assert (payload["start"], payload["end"]) == ("2024-09-01", "2024-09-15")
        assert payload["analysis"]["overview"]["total_corrections"]["current"] == 3

    def test_messages_when_empty(self, corrections):
        assert erp_analysis([], "2024-09-01", "2024-09-30")["message"].startswith("No data available to analyze")
        payload = erp_analysis(corrections, "2023-01-01", "2023-01-31")
        assert payload["analysis"] is None
        assert payload["message"] == "No data available for the selected date range."

    def test_completion_before_entry_is_ignored(self, make_correction):
        record = make_correction(status="Completed", completed_date="2024-09-01", completed_time="09:00")
        assert correction_duration_minutes(record) is None

    @pytest.mark.parametrize("minutes, text", [(0, "0 min"), (30, "30 min"), (75, "1h 15m")])
    def test_format_minutes(self, minutes, text):
        assert format_minutes(minutes) == text


# ===========================================================================
# Record listing filters
# ===========================================================================

class TestListingFilters:

    def test_visit_filters(self, september_visits):
        assert len(filter_visit_records(september_visits, start="2024-09-01", end="2024-09-30")) == 4
        assert len(filter_visit_records(september_visits, project="Gladiolus")) == 1
        assert {v.visitor_name for v in filter_visit_records(september_visits, query="security")} == {"S"}

    def test_visit_filter_rejects_bad_dates(self, september_visits):
        with pytest.raises(HTTPException):
            filter_visit_records(september_visits, start="09/01/2024")

    def test_issue_and_correction_filters(self, make_issue, make_correction):
        issues = [make_issue("2024-09-01"), make_issue("2024-09-02", status="Offline", issue="Router")]
        assert len(filter_issue_records(issues, issue_status="Offline")) == 1
        assert len(filter_issue_records(issues, query="router")) == 1
        corrections = [make_correction(), make_correction(tracking_number="V-99")]
        assert len(filter_correction_records(corrections, "v-99")) == 1
