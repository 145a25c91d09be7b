from datetime import datetime
from pathlib import Path

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import (
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from data.models import PracticeReport

OUTPUT_DIR = Path(__file__).parent.parent / "output" / "reports"

HEADER_BACKGROUND = colors.Color(0.9, 0.9, 0.95)

KEY_VALUE_STYLE = TableStyle([
    ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
    ("FONTSIZE", (0, 0), (-1, -1), 10),
    ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ("TOPPADDING", (0, 0), (-1, -1), 4),
    ("GRID", (0, 0), (-1, -1), 0.5, colors.lightgrey),
])

GRID_STYLE = TableStyle([
    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
    ("BACKGROUND", (0, 0), (-1, 0), HEADER_BACKGROUND),
    ("FONTSIZE", (0, 0), (-1, -1), 8),
    ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
    ("GRID", (0, 0), (-1, -1), 0.5, colors.lightgrey),
    ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
    ("TOPPADDING", (0, 0), (-1, -1), 3),
])


def format_currency(amount: float) -> str:
    """Compact dollars for humans: $1.2M, $45K, $950."""
    if amount >= 1_000_000:
        return f"${amount / 1_000_000:.1f}M"
    if amount >= 1_000:
        return f"${int(amount / 1_000 + 0.5)}K"
    return f"${amount:,.0f}"


def _key_value_table(rows: list[list[str]]) -> Table:
    table = Table(rows, colWidths=[2.5 * inch, 4 * inch])
    table.setStyle(KEY_VALUE_STYLE)
    return table


def _grid_table(header: list[str], rows: list[list[str]], col_widths: list[float]) -> Table:
    table = Table([header] + rows, colWidths=col_widths, repeatRows=1)
    table.setStyle(GRID_STYLE)
    return table


def generate_practice_pdf(report: PracticeReport, output_dir: Path | None = None) -> Path:
    """Render a practice revenue report: score, acquisition view, gaps and forecast."""
    if output_dir is None:
        output_dir = OUTPUT_DIR
    output_dir.mkdir(parents=True, exist_ok=True)

    practice = report.practice
    filename = f"revenue_report_{practice.npi or 'estimate'}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.pdf"
    output_path = output_dir / filename

    doc = SimpleDocTemplate(str(output_path), pagesize=letter,
                            leftMargin=0.75 * inch, rightMargin=0.75 * inch,
                            topMargin=0.75 * inch, bottomMargin=0.75 * inch)

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle("ReportTitle", parent=styles["Title"], fontSize=18, spaceAfter=12)
    heading_style = ParagraphStyle("ReportHeading", parent=styles["Heading2"], fontSize=14,
                                   spaceBefore=16, spaceAfter=8,
                                   textColor=colors.Color(0.2, 0.2, 0.4))
    body_style = styles["BodyText"]
    small_style = ParagraphStyle("Small", parent=body_style, fontSize=8, textColor=colors.grey)

    elements = [
        Paragraph("Practice Revenue Report", title_style),
        Paragraph(f"Generated: {datetime.now().strftime('%B %d, %Y %I:%M %p')}", small_style),
        Spacer(1, 12),
        Paragraph("Practice", heading_style),
        _key_value_table([
            ["NPI", practice.npi or "N/A"],
            ["Name", practice.name or "N/A"],
            ["Specialty", practice.specialty or "N/A"],
            ["Location", f"{practice.city}, {practice.state}".strip(", ") or "N/A"],
            ["Medicare Patients", f"{practice.total_beneficiaries:,}"],
            ["Annual Medicare Payment", f"${practice.total_payment:,.2f}"],
        ]),
        Spacer(1, 12),
    ]

    # --- Revenue Health Score ---
    score = report.score
    elements.append(Paragraph(
        f"Revenue Health Score: <b>{score.overall}</b> ({score.label}), "
        f"about the {report.percentile}th percentile of {practice.specialty or 'peer'} practices",
        ParagraphStyle("Score", parent=body_style, fontSize=12,
                       textColor=colors.HexColor(score.tier.hex_color)),
    ))
    breakdown = score.breakdown
    elements.append(_grid_table(
        ["Factor", "Score"],
        [
            ["E&M Coding", str(breakdown.em_coding)],
            ["Program Utilization", str(breakdown.program_util)],
            ["Revenue Efficiency", str(breakdown.revenue_efficiency)],
            ["Service Diversity", str(breakdown.service_diversity)],
            ["Patient Volume", str(breakdown.patient_volume)],
        ],
        [4.5 * inch, 2 * inch],
    ))

    # --- Acquisition ---
    acquisition = report.acquisition
    elements.append(Paragraph("Acquisition View", heading_style))
    elements.append(_key_value_table([
        ["Acquisition Score", f"{acquisition.overall} ({acquisition.label})"],
        ["Current Revenue", format_currency(acquisition.current_revenue)],
        ["Estimated Upside", format_currency(acquisition.estimated_upside_revenue)],
        ["Projected Optimized Revenue", format_currency(acquisition.projected_optimized_revenue)],
        ["Revenue Increase", f"{acquisition.revenue_increase_pct}%"],
        ["Missing Programs", ", ".join(p.value.upper() for p in acquisition.missing_programs) or "None"],
    ]))
    elements.append(Paragraph(acquisition.tier.description, small_style))

    # --- Gaps ---
    gaps = report.gaps
    elements.append(Paragraph("Revenue Gaps", heading_style))
    gap_rows = [["E&M Coding", "", "", format_currency(gaps.coding.annual_gap)]]
    gap_rows += [
        [gap.program_name, f"{gap.eligible_patients:,}", f"{gap.current_patients:,}",
         format_currency(gap.annual_gap)]
        for gap in gaps.programs.values()
    ]
    gap_rows.append(["Total", "", "", format_currency(gaps.total_missed_revenue)])
    elements.append(_grid_table(
        ["Opportunity", "Eligible", "Enrolled", "Annual Gap"],
        gap_rows,
        [3 * inch, 1.1 * inch, 1.1 * inch, 1.3 * inch],
    ))
    if gaps.coding.shifts_needed:
        elements.append(Paragraph(gaps.coding.shifts_needed, small_style))

    if gaps.action_plan:
        elements.append(Paragraph("Action Plan", heading_style))
        for item in gaps.action_plan:
            elements.append(Paragraph(
                f"<b>{item.priority}. {item.title}</b> ({item.timeline}, {item.difficulty}, "
                f"{format_currency(item.estimated_revenue)})",
                body_style,
            ))
            elements.append(Paragraph(f"&nbsp;&nbsp;&nbsp;&nbsp;{item.description}", small_style))
            elements.append(Spacer(1, 4))

    # --- Forecast ---
    forecast = report.forecast
    elements.append(Paragraph("12-Month Forecast", heading_style))
    elements.append(_grid_table(
        ["Month", "CCM", "RPM", "BHI", "AWV", "E&M", "Total", "Cumulative"],
        [
            [m.label] + [f"${v:,.0f}" for v in (m.ccm, m.rpm, m.bhi, m.awv, m.em_coding, m.total, m.cumulative)]
            for m in forecast.monthly
        ],
        [0.6 * inch] + [0.8 * inch] * 5 + [0.9 * inch, 1.0 * inch],
    ))
    elements.append(Spacer(1, 8))
    elements.append(_key_value_table([
        ["Year 1 Additional Revenue", f"${forecast.total_year1_revenue:,.0f}"],
        ["Month 12 Monthly Run Rate", f"${forecast.month12_monthly_rate:,.0f}"],
        ["Current Annual Revenue", f"${forecast.current_annual_revenue:,.0f}"],
    ]))

    # --- Disclaimer ---
    elements.append(Spacer(1, 24))
    elements.append(Paragraph(
        "Estimates are derived from public Medicare billing data and specialty benchmarks. "
        "Projections assume the stated enrollment targets and national payment rates and are not a "
        "guarantee of future revenue.",
        ParagraphStyle("Disclaimer", parent=small_style, fontSize=7, textColor=colors.grey),
    ))

    doc.build(elements)
    return output_path
