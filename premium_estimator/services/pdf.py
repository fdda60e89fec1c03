from __future__ import annotations

import io
from typing import Any, Dict, List, Mapping
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfgen.canvas import Canvas
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from premium_estimator.domain.estimates import (
    CoverageRecommendation,
    EstimationResult,
    PremiumEstimate,
    format_money,
)
from premium_estimator.services.history import display_value, factor_label, format_factor, headline
from premium_estimator.services.inventory import PRODUCT_TITLES, humanize

DISCLAIMER = (
    "This is an advisory estimate based on published average rates.",
    "It is not a quote or an offer of insurance; actual premiums depend on underwriting.",
)


def _table(rows: List[List[str]], header: List[str]) -> Table:
    t = Table([header, *rows], hAlign="LEFT", colWidths=[70 * mm, 40 * mm, 60 * mm])
    t.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#1E3A8A")),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#F1F5F9")]),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#CBD5E1")),
            ]
        )
    )
    return t


def build_estimate_pdf(
    result: EstimationResult,
    answers: Mapping[str, Any],
    fields: List[Dict[str, Any]],
    *,
    currency: str,
    rates_version: str,
    issued_at_utc: str,
) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=20 * mm,
        rightMargin=20 * mm,
        topMargin=18 * mm,
        bottomMargin=24 * mm,
        title=f"{PRODUCT_TITLES[result.product_line]} estimate",
    )
    styles = getSampleStyleSheet()
    story: List[Any] = []

    story.append(Paragraph(f"<b>{PRODUCT_TITLES[result.product_line]} estimate</b>", styles["Title"]))
    story.append(Paragraph(f"Prepared (UTC): {issued_at_utc}", styles["Normal"]))
    story.append(Spacer(1, 6 * mm))

    if isinstance(result, CoverageRecommendation):
        story.append(Paragraph("Recommended coverage", styles["Heading2"]))
    else:
        story.append(Paragraph("Estimated premium", styles["Heading2"]))
    story.append(Paragraph(f"<b>{headline(result, currency)}</b>", styles["Heading1"]))

    if isinstance(result, PremiumEstimate):
        proj = result.projections()
        story.append(
            Paragraph(
                f"Monthly {format_money(proj['monthly'], currency)} · "
                f"6 months {format_money(proj['semiannual'], currency)} · "
                f"Annual {format_money(proj['annual'], currency)}",
                styles["Normal"],
            )
        )
    story.append(Spacer(1, 6 * mm))

    story.append(Paragraph("Your answers", styles["Heading2"]))
    for f in fields:
        fid = f["field_id"]
        if fid in answers:
            story.append(
                Paragraph(escape(f"{f['label']}: {display_value(f, answers[fid], currency)}"), styles["Normal"])
            )
    story.append(Spacer(1, 4 * mm))

    story.append(Paragraph("How it was calculated", styles["Heading2"]))
    steps = result.components if isinstance(result, CoverageRecommendation) else result.breakdown
    rows = [
        [factor_label(f.code), format_factor(f.kind, f.value, currency), f.note or ""]
        for f in steps
    ]
    story.append(_table(rows, ["Factor", "Value", "Note"]))

    if isinstance(result, PremiumEstimate) and result.details:
        story.append(Spacer(1, 4 * mm))
        story.append(Paragraph("Details", styles["Heading2"]))
        for key, value in result.details.items():
            if isinstance(value, list):
                value = ", ".join(str(v) for v in value) or "none"
            story.append(Paragraph(escape(f"{humanize(key)}: {value}"), styles["Normal"]))

    def draw_footer(c: Canvas, _doc: SimpleDocTemplate) -> None:
        width, _height = A4
        c.saveState()
        c.setFont("Helvetica", 7)
        c.setFillColor(colors.HexColor("#64748B"))
        for i, line in enumerate(DISCLAIMER):
            c.drawString(20 * mm, (14 - 3.5 * i) * mm, line)
        c.drawRightString(width - 20 * mm, 6 * mm, f"Rate table {rates_version}")
        c.restoreState()

    doc.build(story, onFirstPage=draw_footer, onLaterPages=draw_footer)
    return buffer.getvalue()
