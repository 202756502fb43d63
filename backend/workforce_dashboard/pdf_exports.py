from __future__ import annotations

from datetime import datetime
from io import BytesIO
from typing import Any, Mapping, Sequence
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import Flowable, LongTable, Paragraph, SimpleDocTemplate, Spacer, TableStyle

from .config import settings
from .reports import format_minutes

LEFT_MARGIN = 14 * mm
RIGHT_MARGIN = 14 * mm
BOTTOM_MARGIN = 16 * mm

HEADER_TOP_MARGIN = 30.0
HEADER_HEIGHT = 80.0
HEADER_LEFT_PADDING = 42.0
HEADER_RIGHT_PADDING = 42.0
HEADER_BADGE_SIZE = 38.0
HEADER_AFTER_GAP = 12.0
HEADER_TITLE_FONT_SIZE = 20.0
HEADER_SUBTITLE_FONT_SIZE = 10.0

KPI_GAP_X = 10.0
KPI_GAP_Y = 11.0
KPI_GAP_AFTER = 16.0
KPI_CARD_HEIGHT = 58.0
KPI_CARD_RADIUS = 7.0
KPI_CARD_PAD_X = 10.0
KPI_CARD_PAD_Y = 10.0
KPI_VALUE_FONT_SIZE = 12
KPI_LABEL_FONT_SIZE = 8

PALETTE = {
    "navy": colors.HexColor("#0F172A"),
    "accent": colors.HexColor("#EA580C"),
    "text": colors.HexColor("#0F172A"),
    "muted": colors.HexColor("#64748B"),
    "line": colors.HexColor("#D1D5DB"),
    "card_fill": colors.HexColor("#F8FAFC"),
    "card_stroke": colors.HexColor("#CBD5E1"),
    "stripe_even": colors.HexColor("#F8FAFC"),
    "stripe_odd": colors.HexColor("#F1F5F9"),
    "grid": colors.HexColor("#E2E8F0"),
}

_STYLES = getSampleStyleSheet()
SECTION_HEADING_STYLE = ParagraphStyle(
    "section-heading",
    parent=_STYLES["Heading5"],
    fontName="Helvetica-Bold",
    fontSize=11,
    leading=13,
    textColor=PALETTE["navy"],
    spaceAfter=4,
)
SUBSECTION_HEADING_STYLE = ParagraphStyle(
    "subsection-heading",
    parent=SECTION_HEADING_STYLE,
    fontSize=9.5,
    leading=11,
    textColor=PALETTE["accent"],
)
TABLE_HEADER_STYLE = ParagraphStyle(
    "table-header",
    parent=_STYLES["BodyText"],
    fontName="Helvetica-Bold",
    fontSize=7.8,
    leading=9.5,
    textColor=colors.white,
    wordWrap="CJK",
)
TABLE_CELL_STYLE = ParagraphStyle(
    "table-cell",
    parent=_STYLES["BodyText"],
    fontName="Helvetica",
    fontSize=7.6,
    leading=9,
    textColor=PALETTE["text"],
    wordWrap="CJK",
)
BODY_STYLE = ParagraphStyle(
    "body",
    parent=_STYLES["BodyText"],
    fontName="Helvetica",
    fontSize=8.6,
    leading=11,
    textColor=PALETTE["text"],
)


def _safe_text(value: Any, *, fallback: str = "-") -> str:
    if value is None:
        return fallback
    text = str(value).strip()
    return text if text else fallback


def _percent(value: float) -> str:
    return f"{value:.2f}%"


def _signed_percent(value: float) -> str:
    return f"{value:+.2f}%"


def _initials(name: str) -> str:
    letters = [part[0] for part in name.split() if part and part[0].isalpha()]
    return "".join(letters[:2]).upper() or "WD"


def _fit_text(canv: canvas.Canvas, text: str, *, font_name: str, font_size: float, max_width: float) -> str:
    if max_width <= 0:
        return ""

    cleaned = _safe_text(text, fallback="")
    if not cleaned:
        return ""

    if canv.stringWidth(cleaned, font_name, font_size) <= max_width:
        return cleaned

    suffix = "..."
    clipped = cleaned
    while clipped and canv.stringWidth(clipped + suffix, font_name, font_size) > max_width:
        clipped = clipped[:-1]
    return (clipped + suffix) if clipped else suffix


def _cell_paragraph(value: Any, *, style: ParagraphStyle, fallback: str = "-") -> Paragraph:
    text = _safe_text(value, fallback=fallback)
    return Paragraph(escape(text), style)


def _draw_company_badge(canv: canvas.Canvas, *, company_name: str, x: float, y: float, size: float) -> None:
    canv.saveState()
    canv.setFillColor(PALETTE["accent"])
    canv.roundRect(x, y, size, size, 6, stroke=0, fill=1)
    canv.setFillColor(colors.white)
    canv.setFont("Helvetica-Bold", 14)
    canv.drawCentredString(x + (size / 2.0), y + (size / 2.0) - 5, _initials(company_name))
    canv.restoreState()


def draw_header(
    canv: canvas.Canvas,
    page_width: float,
    page_height: float,
    *,
    title: str,
    subtitle_lines: Sequence[str],
    company_name: str,
) -> None:
    header_top = page_height - HEADER_TOP_MARGIN
    header_bottom = header_top - HEADER_HEIGHT
    mid_y = header_bottom + (HEADER_HEIGHT / 2.0)

    badge_x = HEADER_LEFT_PADDING
    badge_y = mid_y - (HEADER_BADGE_SIZE / 2.0)
    reserved_left = badge_x + HEADER_BADGE_SIZE + 16.0

    canv.saveState()
    _draw_company_badge(canv, company_name=company_name, x=badge_x, y=badge_y, size=HEADER_BADGE_SIZE)

    title_font = "Helvetica-Bold"
    title_size = HEADER_TITLE_FONT_SIZE
    title_text = _safe_text(title, fallback="Workforce Report")

    title_width = canv.stringWidth(title_text, title_font, title_size)
    title_x = (page_width - title_width) / 2.0
    if title_x < reserved_left:
        title_x = reserved_left
        max_title_width = max((page_width - HEADER_RIGHT_PADDING) - title_x, 0.0)
        title_text = _fit_text(canv, title_text, font_name=title_font, font_size=title_size, max_width=max_title_width)

    title_baseline_y = mid_y + (title_size * 0.6)
    canv.setFillColor(PALETTE["text"])
    canv.setFont(title_font, title_size)
    canv.drawString(title_x, title_baseline_y, title_text)

    subtitle_font = "Helvetica"
    subtitle_size = HEADER_SUBTITLE_FONT_SIZE
    subtitle_leading = 13.0
    subtitle_y = title_baseline_y - (title_size * 0.95)

    canv.setFillColor(PALETTE["muted"])
    canv.setFont(subtitle_font, subtitle_size)
    for line in list(subtitle_lines)[:3]:
        subtitle_text = _safe_text(line, fallback="")
        subtitle_width = canv.stringWidth(subtitle_text, subtitle_font, subtitle_size)
        subtitle_x = (page_width - subtitle_width) / 2.0
        if subtitle_x < reserved_left:
            subtitle_x = reserved_left
            max_subtitle_width = max((page_width - HEADER_RIGHT_PADDING) - subtitle_x, 0.0)
            subtitle_text = _fit_text(
                canv,
                subtitle_text,
                font_name=subtitle_font,
                font_size=subtitle_size,
                max_width=max_subtitle_width,
            )
        canv.drawString(subtitle_x, subtitle_y, subtitle_text)
        subtitle_y -= subtitle_leading

    canv.setStrokeColor(PALETTE["line"])
    canv.setLineWidth(0.6)
    canv.line(HEADER_LEFT_PADDING, header_bottom, page_width - HEADER_RIGHT_PADDING, header_bottom)
    canv.restoreState()


class NumberedCanvas(canvas.Canvas):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._saved_page_states: list[dict[str, Any]] = []

    def showPage(self) -> None:
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self) -> None:
        total_pages = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self._draw_footer(total_pages)
            canvas.Canvas.showPage(self)
        canvas.Canvas.save(self)

    def _draw_footer(self, total_pages: int) -> None:
        page_width = self._pagesize[0]
        line_y = 11 * mm
        text_y = 7.6 * mm

        self.saveState()
        self.setStrokeColor(PALETTE["line"])
        self.setLineWidth(0.5)
        self.line(LEFT_MARGIN, line_y, page_width - RIGHT_MARGIN, line_y)

        self.setFillColor(PALETTE["muted"])
        self.setFont("Helvetica", 8)
        self.drawString(LEFT_MARGIN, text_y, f"Generated by {settings.company_name} Workforce Dashboard")
        self.drawRightString(page_width - RIGHT_MARGIN, text_y, f"Page {self._pageNumber} of {total_pages}")
        self.restoreState()


class KpiRow(Flowable):
    def __init__(self, *, cards: Sequence[dict[str, str]], cols: int, gap: float = KPI_GAP_X, card_h: float = KPI_CARD_HEIGHT) -> None:
        super().__init__()
        self.cards = list(cards)
        self.cols = max(1, cols)
        self.gap = gap
        self.card_h = card_h
        self.width = 0.0
        self.height = card_h

    def wrap(self, avail_width: float, avail_height: float) -> tuple[float, float]:
        self.width = avail_width
        return self.width, self.height

    def draw(self) -> None:
        card_w = (self.width - (self.gap * (self.cols - 1))) / self.cols
        draw_count = min(len(self.cards), self.cols)

        canv = self.canv
        canv.saveState()
        for index in range(draw_count):
            x = index * (card_w + self.gap)
            card = self.cards[index]
            value = _safe_text(card.get("value"), fallback="N/A")
            label = _safe_text(card.get("label"), fallback="-")
            max_text_width = max(0.0, card_w - (KPI_CARD_PAD_X * 2))

            value_font = KPI_VALUE_FONT_SIZE
            while value_font > 9 and canv.stringWidth(value, "Helvetica-Bold", value_font) > max_text_width:
                value_font -= 0.5
            value_draw = _fit_text(canv, value, font_name="Helvetica-Bold", font_size=value_font, max_width=max_text_width)
            label_draw = _fit_text(canv, label, font_name="Helvetica", font_size=KPI_LABEL_FONT_SIZE, max_width=max_text_width)

            canv.setFillColor(PALETTE["card_fill"])
            canv.setStrokeColor(PALETTE["card_stroke"])
            canv.setLineWidth(0.8)
            canv.roundRect(x, 0, card_w, self.card_h, KPI_CARD_RADIUS, stroke=1, fill=1)

            canv.setFillColor(PALETTE["text"])
            canv.setFont("Helvetica-Bold", value_font)
            canv.drawString(x + KPI_CARD_PAD_X, self.card_h - KPI_CARD_PAD_Y - value_font, value_draw)

            canv.setFillColor(PALETTE["muted"])
            canv.setFont("Helvetica", KPI_LABEL_FONT_SIZE)
            canv.drawString(x + KPI_CARD_PAD_X, KPI_CARD_PAD_Y, label_draw)
        canv.restoreState()


def _append_kpi_grid(story: list[Any], *, cards: Sequence[dict[str, str]], max_cols: int = 4) -> None:
    items = list(cards)
    for start in range(0, len(items), max_cols):
        row_cards = items[start : start + max_cols]
        if start:
            story.append(Spacer(1, KPI_GAP_Y))
        story.append(KpiRow(cards=row_cards, cols=len(row_cards)))
    if items:
        story.append(Spacer(1, KPI_GAP_AFTER))


def _build_section_heading(text: str, style: ParagraphStyle = SECTION_HEADING_STYLE) -> Paragraph:
    return Paragraph(escape(_safe_text(text, fallback="Section")), style)


def _build_table(
    *,
    headers: Sequence[str],
    body_rows: Sequence[Sequence[Any]],
    col_fractions: Sequence[float],
    content_width: float,
) -> LongTable:
    header = [_cell_paragraph(cell, style=TABLE_HEADER_STYLE, fallback="") for cell in headers]
    table_data: list[list[Any]] = [header]

    if body_rows:
        for row in body_rows:
            normalized = [_cell_paragraph(cell, style=TABLE_CELL_STYLE, fallback="-") for cell in row]
            if len(normalized) < len(headers):
                normalized.extend(
                    _cell_paragraph("", style=TABLE_CELL_STYLE, fallback="") for _ in range(len(headers) - len(normalized))
                )
            table_data.append(normalized[: len(headers)])
    else:
        table_data.append(
            [_cell_paragraph("No data", style=TABLE_CELL_STYLE)]
            + [_cell_paragraph("", style=TABLE_CELL_STYLE, fallback="") for _ in range(len(headers) - 1)]
        )

    scale = sum(col_fractions) or 1.0
    col_widths = [content_width * (fraction / scale) for fraction in col_fractions]
    table = LongTable(table_data, colWidths=col_widths, repeatRows=1, hAlign="LEFT")

    style_commands: list[tuple[Any, ...]] = [
        ("BACKGROUND", (0, 0), (-1, 0), PALETTE["navy"]),
        ("ALIGN", (0, 0), (-1, 0), "LEFT"),
        ("GRID", (0, 0), (-1, -1), 0.4, PALETTE["grid"]),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("LEFTPADDING", (0, 0), (-1, -1), 4),
        ("RIGHTPADDING", (0, 0), (-1, -1), 4),
        ("TOPPADDING", (0, 0), (-1, -1), 4),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ]
    for row_index in range(1, len(table_data)):
        background = PALETTE["stripe_even"] if row_index % 2 else PALETTE["stripe_odd"]
        style_commands.append(("BACKGROUND", (0, row_index), (-1, row_index), background))

    table.setStyle(TableStyle(style_commands))
    return table


def _month_label(month_value: str) -> str:
    try:
        return datetime.strptime(month_value, "%Y-%m").strftime("%b %Y")
    except (TypeError, ValueError):
        return _safe_text(month_value)


def _content_width(pagesize: tuple[float, float]) -> float:
    return pagesize[0] - LEFT_MARGIN - RIGHT_MARGIN


def _build_document(
    *,
    title: str,
    subtitle_lines: Sequence[str],
    story: Sequence[Any],
    pagesize: tuple[float, float] = A4,
) -> bytes:
    buffer = BytesIO()
    company_name = settings.company_name
    header_lines = [f"{company_name} | {settings.company_address}", *subtitle_lines]

    def _draw_page_header(canv: canvas.Canvas, doc: SimpleDocTemplate) -> None:
        draw_header(
            canv,
            page_width=doc.pagesize[0],
            page_height=doc.pagesize[1],
            title=title,
            subtitle_lines=header_lines,
            company_name=company_name,
        )

    doc = SimpleDocTemplate(
        buffer,
        pagesize=pagesize,
        leftMargin=LEFT_MARGIN,
        rightMargin=RIGHT_MARGIN,
        topMargin=HEADER_TOP_MARGIN + HEADER_HEIGHT + HEADER_AFTER_GAP,
        bottomMargin=BOTTOM_MARGIN,
        title=title,
    )

    doc.build(
        list(story),
        onFirstPage=_draw_page_header,
        onLaterPages=_draw_page_header,
        canvasmaker=NumberedCanvas,
    )
    return buffer.getvalue()


def _generated_at() -> str:
    return datetime.now().strftime("%Y-%m-%d %I:%M %p")


# ---------------------------------------------------------------------------
# Department summary
# ---------------------------------------------------------------------------

_SUMMARY_COLUMNS = (
    ("#", 2.2),
    ("Visitor Name", 9.0),
    ("Designation", 9.0),
    ("WD", 2.6),
    ("Visit Day", 3.0),
    ("Prev / Total Projects", 4.4),
    (">20m", 2.8),
    ("10-19m", 3.0),
    ("5-9m", 2.8),
    ("<5m", 2.8),
    ("Target Day / Month", 5.6),
    ("Current Actual", 4.2),
    ("Current %", 4.2),
    ("Last M Actual", 4.2),
    ("Last M %", 4.2),
    ("Stability", 5.0),
    ("Avg/Day Last / Cur", 5.6),
    ("Avg Stability", 5.0),
)


def _summary_row_cells(index: int, row: Mapping[str, Any]) -> list[str]:
    exempt = bool(row["is_exempt"])
    buckets = row["buckets"]
    current_actual = row["current_actual"]["hhmm"]
    last_actual = row["last_actual"]["hhmm"]
    return [
        str(index),
        row["visitor_name"],
        row["designation"],
        str(row["working_days"]),
        str(row["visited_day_count"]),
        f"{row['previous_project_count']} / {row['project_count']}",
        str(buckets["more_than_20"]),
        str(buckets["ten_to_19"]),
        str(buckets["five_to_9"]),
        str(buckets["less_than_5"]),
        f"{row['target_per_day']['hhmm']} / {row['target_per_month']['hhmm']}",
        current_actual,
        current_actual if exempt else _percent(row["current_percent"]),
        last_actual,
        last_actual if exempt else _percent(row["last_percent"]),
        _signed_percent(row["stability"]),
        f"{row['last_per_day_average']['hhmm']} / {row['current_per_day_average']['hhmm']}",
        _signed_percent(row["average_stability"]),
    ]


def generate_department_summary_pdf(summary: Mapping[str, Any]) -> bytes:
    pagesize = landscape(A4)
    content_width = _content_width(pagesize)
    headers = [label for label, _ in _SUMMARY_COLUMNS]
    fractions = [fraction for _, fraction in _SUMMARY_COLUMNS]

    rows = summary.get("rows", []) or []
    cards = [
        {"label": "Employees", "value": str(len(rows))},
        {"label": "Departments", "value": str(len(summary.get("groups", []) or []))},
        {"label": "Month", "value": _month_label(summary.get("month", ""))},
        {"label": "Compared With", "value": _month_label(summary.get("previous_month", ""))},
    ]

    story: list[Any] = []
    _append_kpi_grid(story, cards=cards, max_cols=4)

    index = 0
    for group in summary.get("groups", []) or []:
        story.append(_build_section_heading(f"{group['department']} ({group['row_count']})"))
        for subgroup in group["subgroups"]:
            if subgroup["label"]:
                story.append(_build_section_heading(subgroup["label"], SUBSECTION_HEADING_STYLE))
            body_rows = []
            for row in subgroup["rows"]:
                index += 1
                body_rows.append(_summary_row_cells(index, row))
            story.append(
                _build_table(headers=headers, body_rows=body_rows, col_fractions=fractions, content_width=content_width)
            )
            story.append(Spacer(1, 8))

    if not summary.get("groups"):
        story.append(_build_table(headers=headers, body_rows=[], col_fractions=fractions, content_width=content_width))

    return _build_document(
        title="All Department Summary",
        subtitle_lines=[
            f"Period: {_month_label(summary.get('month', ''))} vs {_month_label(summary.get('previous_month', ''))}"
            f" | Generated: {_generated_at()}",
        ],
        story=story,
        pagesize=pagesize,
    )


# ---------------------------------------------------------------------------
# Duty analysis
# ---------------------------------------------------------------------------


def _performer_text(performer: Mapping[str, Any] | None) -> str:
    if not performer:
        return "N/A"
    return (
        f"{performer['name']} ({performer['visit_count']} visits, "
        f"{performer['project_count']} projects, {performer['duration']})"
    )


def generate_duty_analysis_pdf(analysis: Mapping[str, Any]) -> bytes:
    pagesize = landscape(A4)
    content_width = _content_width(pagesize)
    departments = analysis.get("departments", []) or []

    underperforming = sum(1 for item in departments if item["average_stability"] < 0)
    cards = [
        {"label": "Departments", "value": str(len(departments))},
        {"label": "Employees Analyzed", "value": str(analysis.get("employee_count", 0))},
        {"label": "Underperforming Departments", "value": str(underperforming)},
    ]
    story: list[Any] = []
    _append_kpi_grid(story, cards=cards, max_cols=3)

    story.append(_build_section_heading("Department Stability"))
    story.append(
        _build_table(
            headers=["Department", "Employees", "Visits", "Avg Stability", "Top Performer", "Lowest Performer", "Observation"],
            body_rows=[
                [
                    item["department"],
                    str(item["employee_count"]),
                    str(item["visit_count"]),
                    _signed_percent(item["average_stability"]),
                    _performer_text(item["top_performer"]),
                    _performer_text(item["lowest_performer"]),
                    item.get("remark") or "",
                ]
                for item in departments
            ],
            col_fractions=[14, 6, 5, 8, 22, 22, 18],
            content_width=content_width,
        )
    )

    return _build_document(
        title="Duty Analysis Report",
        subtitle_lines=[
            f"Period: {_month_label(analysis.get('month', ''))} vs {_month_label(analysis.get('previous_month', ''))}"
            f" | Generated: {_generated_at()}",
        ],
        story=story,
        pagesize=pagesize,
    )


def generate_duty_breakdown_pdf(breakdown: Mapping[str, Any]) -> bytes:
    pagesize = landscape(A4)
    content_width = _content_width(pagesize)
    headers = [
        "Employee",
        "Stability",
        "Visits (Cur / Last)",
        "Duration (Cur / Last)",
        "Projects (Cur / Last)",
        "Avg Daily (Cur / Last)",
        "Short Visits (Cur / Last)",
    ]

    story: list[Any] = []
    for department in breakdown.get("departments", []) or []:
        story.append(
            _build_section_heading(
                f"{department['department']} (Average Stability {_signed_percent(department['average_stability'])})"
            )
        )
        body_rows = []
        for employee in department["employees"]:
            current = employee["current"]
            last = employee["last"]
            body_rows.append(
                [
                    employee["name"],
                    _signed_percent(employee["stability"]),
                    f"{current['visit_count']} / {last['visit_count']}",
                    f"{current['duration']} / {last['duration']}",
                    f"{current['project_count']} / {last['project_count']}",
                    f"{current['average_daily']} / {last['average_daily']}",
                    f"{current['short_visit_count']} / {last['short_visit_count']}",
                ]
            )
        story.append(
            _build_table(
                headers=headers,
                body_rows=body_rows,
                col_fractions=[20, 10, 12, 14, 12, 14, 14],
                content_width=content_width,
            )
        )
        story.append(Spacer(1, 10))

    if not breakdown.get("departments"):
        story.append(Paragraph("No departments match the selected breakdown.", BODY_STYLE))

    return _build_document(
        title=_safe_text(breakdown.get("title"), fallback="Performance Breakdown"),
        subtitle_lines=[f"Period: {_month_label(breakdown.get('month', ''))} | Generated: {_generated_at()}"],
        story=story,
        pagesize=pagesize,
    )


# ---------------------------------------------------------------------------
# IT timeline
# ---------------------------------------------------------------------------


def generate_it_timeline_pdf(analysis: Mapping[str, Any] | None) -> bytes:
    pagesize = A4
    content_width = _content_width(pagesize)
    story: list[Any] = []

    if not analysis:
        story.append(Paragraph("No IT issue records available.", BODY_STYLE))
        return _build_document(
            title="IT Response Timeline",
            subtitle_lines=[f"Generated: {_generated_at()}"],
            story=story,
            pagesize=pagesize,
        )

    longest_open = analysis.get("longest_open")
    cards = [
        {"label": "Total Assigned Issues", "value": str(analysis["total_issues"])},
        {"label": "Issue", "value": str(analysis["issue_count"])},
        {"label": "Offline", "value": str(analysis["offline_count"])},
        {"label": "Avg Resolution (days)", "value": f"{analysis['average_resolution_days']:.1f}"},
        {
            "label": "Longest Open",
            "value": f"{longest_open['issue']} ({longest_open['resolution_days']} days)" if longest_open else "N/A",
        },
    ]
    _append_kpi_grid(story, cards=cards, max_cols=3)

    story.append(_build_section_heading("Top Common Problems"))
    story.append(
        _build_table(
            headers=["Issue", "Count", "Latest Project", "Latest Date", "At Latest Project"],
            body_rows=[
                [item["issue"], str(item["count"]), item["latest_project"], item["latest_date"], str(item["latest_project_count"])]
                for item in analysis["top_problems"]
            ],
            col_fractions=[34, 10, 22, 16, 18],
            content_width=content_width,
        )
    )
    story.append(Spacer(1, 10))

    story.append(_build_section_heading("Zone Summary"))
    story.append(
        _build_table(
            headers=["Zone", "Count", "Projects"],
            body_rows=[[item["zone"], str(item["count"]), ", ".join(item["projects"])] for item in analysis["zones"]],
            col_fractions=[20, 10, 70],
            content_width=content_width,
        )
    )
    story.append(Spacer(1, 10))

    story.append(_build_section_heading("Issue Timeline"))
    story.append(
        _build_table(
            headers=["Issue", "Project", "Count", "Active Periods", "Active Days", "Solution", "Resolution (days)"],
            body_rows=[
                [
                    item["issue"],
                    item["project_name"],
                    str(item["count"]),
                    ", ".join(
                        period["start"] if period["start"] == period["end"] else f"{period['start']} to {period['end']}"
                        for period in item["timelines"]
                    ),
                    str(item["total_active_days"]),
                    item["solution_date"],
                    str(item["resolution_days"]),
                ]
                for item in analysis["timeline"]
            ],
            col_fractions=[22, 14, 7, 25, 8, 12, 12],
            content_width=content_width,
        )
    )

    return _build_document(
        title="IT Response Timeline",
        subtitle_lines=[f"Latest reported date: {analysis['most_recent_date']} | Generated: {_generated_at()}"],
        story=story,
        pagesize=pagesize,
    )


# ---------------------------------------------------------------------------
# ERP correction analysis
# ---------------------------------------------------------------------------


def _change_text(metric: Mapping[str, Any]) -> str:
    if metric["change_is_infinite"]:
        return "new"
    return _signed_percent(metric["change"])


def generate_erp_analysis_pdf(payload: Mapping[str, Any]) -> bytes:
    pagesize = A4
    content_width = _content_width(pagesize)
    analysis = payload.get("analysis")
    story: list[Any] = []

    if not analysis:
        story.append(Paragraph(escape(_safe_text(payload.get("message"), fallback="No data available.")), BODY_STYLE))
    else:
        overview = analysis["overview"]
        totals = overview["total_corrections"]
        completion = overview["average_completion_minutes"]
        cards = [
            {"label": f"Total Corrections ({_change_text(totals)})", "value": str(totals["current"])},
            {"label": f"Avg Completion ({_change_text(completion)})", "value": format_minutes(completion["current"])},
            {"label": "Top Department", "value": overview["top_department"]["current"]["name"]},
            {"label": "Top Correction Type", "value": overview["top_correction_type"]["current"]["name"]},
        ]
        _append_kpi_grid(story, cards=cards, max_cols=4)

        story.append(_build_section_heading("Departments"))
        story.append(
            _build_table(
                headers=["Department", "Corrections", "Top Officer", "Officer Count"],
                body_rows=[
                    [item["department"], str(item["total_corrections"]), item["top_officer"], str(item["top_officer_count"])]
                    for item in analysis["departments"]
                ],
                col_fractions=[35, 15, 35, 15],
                content_width=content_width,
            )
        )
        story.append(Spacer(1, 10))

        for heading, key in (("Officers", "officers"), ("Projects", "projects"), ("Correction Types", "correction_types")):
            story.append(_build_section_heading(heading))
            story.append(
                _build_table(
                    headers=[heading[:-1] if heading.endswith("s") else heading, "Count"],
                    body_rows=[[item["name"], str(item["count"])] for item in analysis[key]],
                    col_fractions=[80, 20],
                    content_width=content_width,
                )
            )
            story.append(Spacer(1, 10))

        story.append(_build_section_heading("Remark Patterns"))
        story.append(
            _build_table(
                headers=["Pattern", "Count"],
                body_rows=[[name, str(count)] for name, count in analysis["remark_patterns"].items()],
                col_fractions=[80, 20],
                content_width=content_width,
            )
        )

    return _build_document(
        title="ERP Correction Analysis",
        subtitle_lines=[f"Period: {payload.get('date_range', 'N/A')} | Generated: {_generated_at()}"],
        story=story,
        pagesize=pagesize,
    )
