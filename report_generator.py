import io
import logging
from datetime import datetime
from xml.sax.saxutils import escape

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle, Image

from feedback_app.services.aggregation import rating_band

logger = logging.getLogger(__name__)

BAND_COLORS = {
    'good': '#16a34a',
    'medium': '#ca8a04',
    'poor': '#dc2626',
}


def create_score_graph(form_rows):
    """
    Create a bar graph image of the per-form averages (0-10 scale).
    """
    labels = []
    averages = []
    for index, row in enumerate(form_rows, start=1):
        labels.append(f"F{index}")
        averages.append(row['avgRating'])

    fig, ax = plt.subplots(figsize=(10, 4))
    bars = ax.bar(labels, averages,
                  color=[BAND_COLORS[rating_band(a)] if a else '#9ca3af' for a in averages])

    ax.set_xlabel('')
    ax.set_ylabel('')
    ax.set_title('')
    ax.set_ylim(0, 10)

    plt.xticks(fontsize=9)
    plt.yticks(fontsize=9)

    for bar, average in zip(bars, averages):
        height = bar.get_height()
        ax.text(bar.get_x() + bar.get_width() / 2.0, height,
                f'{average:.1f}',
                ha='center', va='bottom',
                fontsize=9)

    ax.grid(True, axis='y', linestyle='--', alpha=0.7)
    plt.tight_layout()

    buf = io.BytesIO()
    plt.savefig(buf, format='png', bbox_inches='tight', dpi=150)
    plt.close(fig)
    buf.seek(0)
    return buf


class FooterCanvas:
    def __init__(self, canvas, doc):
        self.canvas = canvas
        self.doc = doc

    def draw_footer(self):
        self.canvas.saveState()
        left_text = f"Generated {datetime.now().strftime('%d/%m/%Y %H:%M')}"
        right_text = f"Page {self.doc.page}"
        self.canvas.setFont("Helvetica", 7)
        self.canvas.setFillColor(colors.gray)

        self.canvas.drawString(25, 20, left_text)
        self.canvas.drawCentredString(self.doc.pagesize[0] / 2, 20, "Faculty Feedback Portal")
        right_text_width = self.canvas.stringWidth(right_text, "Helvetica", 7)
        self.canvas.drawString(self.doc.pagesize[0] - right_text_width - 25, 20, right_text)

        self.canvas.restoreState()


def footer_func(canvas, doc):
    FooterCanvas(canvas, doc).draw_footer()


def report_styles():
    base = getSampleStyleSheet()
    return {
        'title': ParagraphStyle('ReportTitle', parent=base['Title'], fontSize=13, spaceAfter=4),
        'faculty': ParagraphStyle('FacultyLine', parent=base['Heading3'], alignment=1, spaceAfter=2),
        'summary': ParagraphStyle('SummaryLine', parent=base['BodyText'], fontSize=9, alignment=1,
                                  textColor=colors.darkslategray, spaceAfter=6),
        'legend': ParagraphStyle('LegendItem', parent=base['BodyText'], fontSize=7.5, leading=9,
                                 leftIndent=12),
        'section': ParagraphStyle('SectionHeading', parent=base['Heading4'], spaceBefore=6,
                                  spaceAfter=2),
    }


def breakdown_table_style(form_rows):
    """Grid style for the per-form table; the average cell is tinted by band."""
    style = [
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#1f2937')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 8),
        ('INNERGRID', (0, 0), (-1, -1), 0.25, colors.lightgrey),
        ('BOX', (0, 0), (-1, -1), 0.75, colors.black),
        ('ALIGN', (2, 0), (-1, -1), 'CENTER'),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('ROWBACKGROUNDS', (0, 1), (-2, -1), [colors.white, colors.HexColor('#f3f4f6')]),
    ]
    for row_index, row in enumerate(form_rows, start=1):
        if row['responseCount']:
            tint = colors.HexColor(BAND_COLORS[rating_band(row['avgRating'])])
            style.append(('TEXTCOLOR', (-1, row_index), (-1, row_index), tint))
            style.append(('FONTNAME', (-1, row_index), (-1, row_index), 'Helvetica-Bold'))
    return style


def generate_faculty_report(faculty, breakdown):
    """Render one faculty member's per-form breakdown as PDF bytes.

    faculty: dict with name and email
    breakdown: result of aggregation.faculty_breakdown
    """
    logger.info(f"Generating faculty report for {faculty['email']}")
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=28,
        rightMargin=28,
        topMargin=24,
        bottomMargin=40,
        title=f"Feedback report - {faculty['name']}",
    )
    styles = report_styles()
    form_rows = breakdown['forms']

    story = [
        Paragraph("Student Feedback on Course Delivery", styles['title']),
        Paragraph(escape(f"{faculty['name']} <{faculty['email']}>"), styles['faculty']),
        Paragraph(f"{breakdown['formCount']} form(s), {breakdown['responseCount']} response(s), "
                  f"overall average {breakdown['display']} / 10", styles['summary']),
    ]

    rows = [['#', 'Subject', 'Class', 'Batch', 'Responses', 'Average']]
    for index, row in enumerate(form_rows, start=1):
        form = row['form']
        rows.append([
            f"F{index}",
            form['subject_name'],
            f"Sem {form['semester']} {form['course']}-{form['division']}",
            form['batch'] or '-',
            row['responseCount'],
            row['display'],
        ])
    table = Table(rows, repeatRows=1, colWidths=[28, None, 90, 45, 60, 55])
    table.setStyle(TableStyle(breakdown_table_style(form_rows)))
    story.append(table)

    if form_rows:
        story.append(Paragraph("Average per form", styles['section']))
        chart = Image(create_score_graph(form_rows))
        chart.drawWidth = doc.width
        chart.drawHeight = 2.4 * inch
        story.append(chart)
        story.append(Spacer(1, 4))
        for index, row in enumerate(form_rows, start=1):
            story.append(Paragraph(escape(f"F{index}: {row['form']['subject_name']} "
                                          f"({row['form']['academic_year']})"), styles['legend']))

    try:
        doc.build(story, onFirstPage=footer_func, onLaterPages=footer_func)
    except Exception as e:
        logger.error(f"PDF generation failed: {str(e)}")
        raise
    return buffer.getvalue()
