"""
conftest.py: Shared pytest fixtures for the workforce dashboard test suite.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that
    ``workforce_dashboard.*`` imports resolve without an editable install.
"""

import os
import sys

import pytest

_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


# ---------------------------------------------------------------------------
# Record factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_visit():
    """Build a VisitRecord with sensible defaults; override any field by keyword."""
    from workforce_dashboard.models import VisitRecord

    def _make(**overrides):
        values = {
            "date": "2024-09-01",
            "visitor_name": "A",
            "department": "Construction",
            "designation": "Asst. Manager",
            "project_name": "Lake Lofts",
            "entry_time": "10:00",
            "out_time": "10:25",
            "duration": "0:25:00",
            "remarks": "",
        }
        values.update(overrides)
        return VisitRecord(**values)

    return _make


@pytest.fixture
def make_issue():
    from datetime import date

    from workforce_dashboard.models import AssignedIssue

    def _make(reported_at, issue="Printer offline", project_name="Lake Lofts", **overrides):
        values = {
            "id": "IT-1",
            "issue": issue,
            "reported_at": reported_at if isinstance(reported_at, date) else date.fromisoformat(reported_at),
            "assigned_to": "IT Support",
            "status": "Issue",
            "project_name": project_name,
            "zone": "Dhanmondi",
        }
        values.update(overrides)
        return AssignedIssue(**values)

    return _make


@pytest.fixture
def make_correction():
    from workforce_dashboard.models import CorrectionRecord

    def _make(**overrides):
        values = {
            "officer": "Ruhul",
            "department": "MIS",
            "designation": "Officer",
            "project_name": "Lake Lofts",
            "document_type": "Voucher",
            "tracking_number": "V-1",
            "correction_type": "Incorrect Amount",
            "entry_date": "2024-09-02",
            "entry_time": "10:00",
            "status": "Pending",
        }
        values.update(overrides)
        return CorrectionRecord(**values)

    return _make


@pytest.fixture
def september_visits(make_visit):
    """
    Two months of visits for three employees.

      A (Construction, 4h target)      Sep: 0:25 + 0:10   Aug: 1:00
      B (Construction, 4h target)      Sep: 2:00          Aug: none
      S (HR & Admin (Security), 7h)    Sep: 7:00          Aug: 7:00
    """
    return [
        make_visit(date="2024-09-01", duration="0:25:00"),
        make_visit(date="2024-09-03", duration="0:10:00", project_name="Gladiolus"),
        make_visit(date="2024-08-15", duration="1:00:00"),
        make_visit(visitor_name="B", designation="Deputy Manager", date="2024-09-05", duration="2:00:00"),
        make_visit(
            visitor_name="S",
            department="HR & Admin (Security)",
            designation="Manager",
            date="2024-09-10",
            duration="7:00:00",
        ),
        make_visit(
            visitor_name="S",
            department="HR & Admin (Security)",
            designation="Manager",
            date="2024-08-10",
            duration="7:00:00",
        ),
    ]
