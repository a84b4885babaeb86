"""P&L statement PDF (ReportLab platypus)."""

from __future__ import annotations

from io import BytesIO
from typing import Any

from markupsafe import escape
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..core.models import Organization
from .models import PnlSnapshot

# (rótulo, campo, é subtotal)
STATEMENT_LINES: tuple[tuple[str, str, bool], ...] = (
    ("Revenue", "revenue_total", True),
    ("Food cost", "cogs_food", False),
    ("Beverage cost", "cogs_bev", False),
    ("Food waste", "cogs_waste_food", False),
    ("Beverage waste", "cogs_waste_bev", False),
    ("Gross profit", "gross_profit", True),
    ("Wages", "labour_wages", False),
    ("Superannuation", "labour_super", False),
    ("Overtime", "labour_overtime", False),
    ("Labour total", "labour_total", True),
    ("Operating supplies", "ops_supplies_total", False),
    ("Overheads", "overhead_total", False),
    ("Net profit", "net_profit", True),
)

PERCENT_LINES: tuple[tuple[str, str], ...] = (
    ("Gross margin", "gross_margin_pct"),
    ("Labour", "labour_pct"),
    ("Prime cost", "prime_cost_pct"),
    ("Overheads", "overhead_pct"),
    ("Operating supplies", "ops_supplies_pct"),
    ("Net profit", "net_profit_pct"),
)


def _money(value) -> str:
    value = float(value or 0)
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def render_pnl_pdf(snapshot: PnlSnapshot, org: Organization | None = None) -> BytesIO:
    buffer = BytesIO()
    pdf = SimpleDocTemplate(buffer, pagesize=A4, topMargin=2 * cm, bottomMargin=2 * cm)
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "PnlTitle",
        parent=styles["Title"],
        fontSize=16,
        alignment=TA_CENTER,
        spaceAfter=12,
    )
    normal_style = ParagraphStyle("PnlBody", parent=styles["Normal"], fontSize=10, leading=14)

    story: list[Any] = []
    if org is not None:
        story.append(Paragraph(f"<b>{escape(org.name)}</b>", normal_style))
    story.append(Paragraph("Profit &amp; Loss Statement", title_style))
    story.append(
        Paragraph(
            f"{snapshot.period_start.strftime('%d/%m/%Y')} to "
            f"{snapshot.period_end.strftime('%d/%m/%Y')} ({escape(snapshot.period_type)})",
            normal_style,
        )
    )
    story.append(Spacer(1, 12))

    rows = [["", "Amount"]]
    bold_rows = []
    for label, field, subtotal in STATEMENT_LINES:
        rows.append([label, _money(getattr(snapshot, field))])
        if subtotal:
            bold_rows.append(len(rows) - 1)
    table = Table(rows, colWidths=[10 * cm, 5 * cm])
    style = [
        ("ALIGN", (1, 0), (1, -1), "RIGHT"),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("LINEBELOW", (0, 0), (-1, 0), 0.5, colors.grey),
    ]
    for idx in bold_rows:
        style.append(("FONTNAME", (0, idx), (-1, idx), "Helvetica-Bold"))
        style.append(("LINEABOVE", (0, idx), (-1, idx), 0.25, colors.lightgrey))
    table.setStyle(TableStyle(style))
    story.append(table)
    story.append(Spacer(1, 18))

    pct_rows = [["Ratio", "% of revenue"]]
    for label, field in PERCENT_LINES:
        pct_rows.append([label, f"{float(getattr(snapshot, field) or 0):.2f}%"])
    pct_table = Table(pct_rows, colWidths=[10 * cm, 5 * cm])
    pct_table.setStyle(
        TableStyle(
            [
                ("ALIGN", (1, 0), (1, -1), "RIGHT"),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("LINEBELOW", (0, 0), (-1, 0), 0.5, colors.grey),
            ]
        )
    )
    story.append(pct_table)
    story.append(Spacer(1, 18))
    story.append(
        Paragraph(
            f"Prime cost: {_money(snapshot.prime_cost)}<br/>"
            f"Break-even revenue: {_money(snapshot.break_even_revenue)}<br/>"
            f"Data completeness: {float(snapshot.data_completeness_pct or 0):.0f}%",
            normal_style,
        )
    )
    pdf.build(story)
    buffer.seek(0)
    return buffer
