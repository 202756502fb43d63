"""
test_improvement.py: Prompt construction and the litellm call wrapper.

The language model is never contacted: ``litellm.acompletion`` is replaced
with an async stub.
"""

import asyncio
from types import SimpleNamespace

import pytest

from workforce_dashboard import improvement, reports
from workforce_dashboard.improvement import (
    LOW_PERFORMER_LIMIT,
    ImprovementAnalysisError,
    analyze_underperforming_departments,
    build_improvement_prompt,
    generate_improvement_analysis,
)
from workforce_dashboard.reports import WorkingDayConfig, duty_analysis, duty_employee_rows


@pytest.fixture
def declining_visits(make_visit):
    visits = []
    for index in range(7):
        name = f"E{index}"
        visits.append(make_visit(visitor_name=name, date="2024-08-05", duration="3:00:00"))
        visits.append(make_visit(visitor_name=name, date="2024-09-05", duration=f"0:{10 + index}:00"))
    return visits


def _reply(text):
    async def _stub(**kwargs):
        _stub.calls.append(kwargs)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])

    _stub.calls = []
    return _stub


class TestPrompt:

    def test_lists_lowest_stability_employees_only(self, declining_visits):
        config = WorkingDayConfig()
        department = duty_analysis(declining_visits, "2024-09", config)["departments"][0]
        rows = duty_employee_rows(declining_visits, "2024-09", config)
        prompt = build_improvement_prompt(department, rows)

        assert prompt.startswith("Department: Construction (Average Stability: -")
        assert prompt.count("- Name: ") == LOW_PERFORMER_LIMIT
        assert "- Name: E0 " in prompt
        assert "E6" not in prompt
        assert "(vs 03:00 last month)" in prompt


class TestGenerate:

    def test_returns_stripped_content(self, monkeypatch):
        stub = _reply("  Schedule more site visits.\n")
        monkeypatch.setattr(improvement.litellm, "acompletion", stub)
        assert asyncio.run(generate_improvement_analysis("prompt")) == "Schedule more site visits."
        messages = stub.calls[0]["messages"]
        assert messages[0]["role"] == "system"
        assert messages[1] == {"role": "user", "content": "prompt"}

    def test_empty_reply_is_an_error(self, monkeypatch):
        monkeypatch.setattr(improvement.litellm, "acompletion", _reply(""))
        with pytest.raises(ImprovementAnalysisError):
            asyncio.run(generate_improvement_analysis("prompt"))

    def test_provider_error_is_wrapped(self, monkeypatch):
        async def _boom(**kwargs):
            raise ConnectionError("network unreachable")

        monkeypatch.setattr(improvement.litellm, "acompletion", _boom)
        with pytest.raises(ImprovementAnalysisError):
            asyncio.run(generate_improvement_analysis("prompt"))


class TestAnalyzeDepartments:

    def test_one_request_per_underperforming_department(self, declining_visits, make_visit, monkeypatch):
        visits = declining_visits + [
            make_visit(visitor_name="S", department="HR & Admin (Security)", designation="Manager",
                       date="2024-09-01", duration="7:00:00"),
        ]
        stub = _reply("Advice")
        monkeypatch.setattr(improvement.litellm, "acompletion", stub)
        result = asyncio.run(analyze_underperforming_departments(visits, "2024-09", WorkingDayConfig()))
        assert result["analysis"] == {"Construction": "Advice"}
        assert len(stub.calls) == 1

    def test_employee_rows_built_once(self, declining_visits, monkeypatch):
        calls = []
        original = reports.duty_employee_rows

        def _counting(*args, **kwargs):
            calls.append(args[1])
            return original(*args, **kwargs)

        monkeypatch.setattr(reports, "duty_employee_rows", _counting)
        monkeypatch.setattr(improvement, "duty_employee_rows", _counting)
        monkeypatch.setattr(improvement.litellm, "acompletion", _reply("Advice"))
        asyncio.run(analyze_underperforming_departments(declining_visits, "2024-09"))
        assert calls == ["2024-09"]

    def test_nothing_to_analyze(self, make_visit, monkeypatch):
        stub = _reply("unused")
        monkeypatch.setattr(improvement.litellm, "acompletion", stub)
        visits = [make_visit(date="2024-09-01")]
        result = asyncio.run(analyze_underperforming_departments(visits, "2024-09"))
        assert result["analysis"] == {}
        assert result["message"] == "No underperforming departments found to analyze."
        assert stub.calls == []
