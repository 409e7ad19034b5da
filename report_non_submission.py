import io
import logging
from datetime import datetime
from itertools import groupby
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer

logger = logging.getLogger(__name__)

PENDING_TABLE_STYLE = [
    ('BACKGROUND', (0, 0), (-1, 0), colors.lightblue),
    ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
    ('FONTSIZE', (0, 0), (-1, 0), 9),
    ('FONTSIZE', (0, 1), (-1, -1), 8),
    ('ALIGN', (0, 0), (0, -1), 'CENTER'),
    ('ALIGN', (3, 0), (3, -1), 'CENTER'),
    ('VALIGN', (0, 0), (-1, -1), 'TOP'),
    ('GRID', (0, 0), (-1, -1), 0.5, colors.black),
]


def _division_key(student):
    return student['division']


def submission_totals(monitor):
    """(students owed feedback, students done with every form, students pending)."""
    total = len(monitor['eligibleStudents'])
    pending = len(monitor['pendingStudents'])
    return total, total - pending, pending


def generate_non_submission_report(semester, course, monitor, batch=None):
    """
    Generate a PDF listing the students who still have feedback forms to submit.

    Args:
        semester (int): The semester the monitor data was built for
        course (str): The course code (e.g. "IT")
        monitor (dict): Result of ``monitor_data`` for that semester/course
        batch (str): Optional lab batch the forms were filtered by

    Returns:
        bytes: the rendered PDF, one table of pending students per division
    """
    total, done, pending_count = submission_totals(monitor)
    pending = sorted(monitor['pendingStudents'], key=lambda s: (s['division'], s['name'].lower()))
    logger.info(f"Non-submission report for {course} semester {semester}: "
                f"{pending_count} of {total} students pending")

    styles = getSampleStyleSheet()
    heading = ParagraphStyle('PendingHeading', parent=styles['Heading1'], alignment=1, fontSize=15)
    centered = ParagraphStyle('PendingCentered', parent=styles['Normal'], alignment=1)
    cell = ParagraphStyle('PendingCell', parent=styles['Normal'], fontSize=8, leading=9)
    stamp = ParagraphStyle('PendingStamp', parent=styles['Italic'], textColor=colors.grey,
                           fontSize=7, alignment=2)

    def draw_page_stamp(canvas, doc):
        canvas.saveState()
        text = Paragraph(f"Submission monitor - {course} semester {semester} - page {doc.page}", stamp)
        text.wrap(doc.width, doc.bottomMargin)
        text.drawOn(canvas, doc.leftMargin, doc.bottomMargin / 3)
        canvas.restoreState()

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=letter, leftMargin=40, rightMargin=40,
                            topMargin=40, bottomMargin=40,
                            title=f"Pending feedback - {course} semester {semester}")

    scope = f"{course} - Semester {semester}"
    if batch:
        scope += f" - Batch {batch}"
    content = [
        Paragraph("Pending Feedback Submissions", heading),
        Paragraph(escape(scope), centered),
        Paragraph(f"Generated on {datetime.now().strftime('%d-%m-%Y %H:%M')}", centered),
        Spacer(1, 10),
        Paragraph(f"{total} students, {done} done, <b>{pending_count} pending</b>", centered),
        Spacer(1, 16),
    ]

    if not pending:
        content.append(Paragraph("All students have submitted their feedback!", styles['Heading3']))

    for division, group in groupby(pending, key=_division_key):
        rows = [['#', 'Name', 'Email', 'Batch', 'Pending forms']]
        for number, student in enumerate(group, start=1):
            rows.append([
                number,
                Paragraph(escape(student['name']), cell),
                student['email'],
                student['batch'] or '-',
                Paragraph(escape(', '.join(student['pendingForms'])), cell),
            ])
        content.append(Paragraph(f"Division {escape(division)} ({len(rows) - 1})", styles['Heading3']))
        table = Table(rows, repeatRows=1, colWidths=[24, 110, 150, 40, None])
        table.setStyle(TableStyle(PENDING_TABLE_STYLE))
        content.append(table)
        content.append(Spacer(1, 12))

    doc.build(content, onFirstPage=draw_page_stamp, onLaterPages=draw_page_stamp)
    return buffer.getvalue()
