"""
Improvement analysis for underperforming departments.

One prompt per department with negative average stability, sent through
litellm. A failed request is not retried.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Mapping, Sequence

import litellm

from .analytics import format_seconds_to_hhmm
from .config import settings
from .models import VisitRecord
from .reports import WorkingDayConfig, duty_analysis, duty_employee_rows

logger = logging.getLogger(__name__)

LOW_PERFORMER_LIMIT = 5
MAX_TOKENS = 1024

SYSTEM_PROMPT = (
    "You are an operations analyst for a housing developer's site-visit team. "
    "Given a department whose visit performance declined against the previous month, "
    "identify likely causes and give three to five concrete, actionable improvement steps. "
    "Answer in short plain-text paragraphs or bullets."
)

litellm.suppress_debug_info = True


class ImprovementAnalysisError(RuntimeError):
    """Raised when the language model call fails or returns nothing."""


def build_improvement_prompt(department: Mapping[str, Any], employees: Sequence[Mapping[str, Any]]) -> str:
    low_performers = sorted(employees, key=lambda row: row["stability"])[:LOW_PERFORMER_LIMIT]
    lines = [
        f"Department: {department['department']} (Average Stability: {department['average_stability']:.2f}%)",
        "",
        "Key Contributing Employees (Decline in Performance):",
    ]
    for row in low_performers:
        current = row["current"]
        last = row["last"]
        lines.extend(
            [
                f"- Name: {row['visitor_name']} (Stability: {row['stability']:.2f}%)",
                f"  - Current Month Duration: {format_seconds_to_hhmm(current.total_duration_seconds)}"
                f" (vs {format_seconds_to_hhmm(last.total_duration_seconds)} last month)",
                f"  - Current Performance: {row['current_percent']:.2f}% (vs {row['last_percent']:.2f}% last month)",
            ]
        )
    return "\n".join(lines)


async def generate_improvement_analysis(prompt: str) -> str:
    try:
        response = await litellm.acompletion(
            model=settings.llm_model,
            api_key=settings.llm_api_key or None,
            temperature=settings.llm_temperature,
            max_tokens=MAX_TOKENS,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        )
    except Exception as exc:
        logger.exception("Improvement analysis request failed")
        raise ImprovementAnalysisError("Failed to generate improvement analysis.") from exc

    content = (response.choices[0].message.content or "").strip()
    if not content:
        raise ImprovementAnalysisError("Failed to generate improvement analysis.")
    return content


async def analyze_underperforming_departments(
    visits: Sequence[VisitRecord],
    month_value: str,
    working_days: WorkingDayConfig | None = None,
) -> Dict[str, Any]:
    rows = duty_employee_rows(visits, month_value, working_days)
    analysis = duty_analysis(visits, month_value, working_days, employee_rows=rows)
    underperforming = [item for item in analysis["departments"] if item["average_stability"] < 0]
    if not underperforming:
        return {"month": analysis["month"], "analysis": {}, "message": "No underperforming departments found to analyze."}

    prompts = {
        item["department"]: build_improvement_prompt(
            item, [row for row in rows if row["department"] == item["department"]]
        )
        for item in underperforming
    }
    logger.info("Requesting improvement analysis for %d departments", len(prompts))
    results = await asyncio.gather(*(generate_improvement_analysis(prompt) for prompt in prompts.values()))
    return {"month": analysis["month"], "analysis": dict(zip(prompts.keys(), results)), "message": None}
