"""
Form generation: admin-entered form lists and timetable-driven generation.

Every created form gets a snapshot of the current catalog questions for its
form type, so later catalog edits never change what a form asks.
"""
import logging

from config import DEFAULT_COURSE
from feedback_app.models import FeedbackForm, Faculty, Question, Timetable
from utils import clean_optional, form_type_for, normalize_email, parse_semester

logger = logging.getLogger(__name__)


def _catalog_by_type():
    return {form_type: Question.get_all(form_type) for form_type in ('theory', 'lab')}


def create_forms(rows, academic_year):
    """Create forms from admin-entered rows.

    Rows missing subjectName, facultyName, facultyEmail, division or semester,
    or with a semester outside 1-8, are skipped.
    Returns: list of created form rows
    """
    catalog = _catalog_by_type()
    created = []
    for row in rows:
        subject_name = clean_optional(row.get('subjectName'))
        faculty_name = clean_optional(row.get('facultyName'))
        faculty_email = normalize_email(row.get('facultyEmail'))
        division = clean_optional(row.get('division'), upper=True)
        if not (subject_name and faculty_name and faculty_email and division and row.get('semester')):
            continue

        semester = parse_semester(row.get('semester'))
        if semester is None:
            continue

        batch = clean_optional(row.get('batch'), upper=True)
        form = FeedbackForm.create(
            subject_name=subject_name,
            faculty_name=faculty_name,
            faculty_email=faculty_email,
            division=division,
            semester=semester,
            course=clean_optional(row.get('course'), upper=True) or DEFAULT_COURSE,
            academic_year=clean_optional(row.get('academicYear')) or academic_year,
            questions=catalog[form_type_for(batch)],
            subject_code=clean_optional(row.get('subjectCode')),
            batch=batch,
        )
        created.append(form)

    logger.info(f"Created {len(created)} of {len(rows)} requested form(s)")
    return created


def generate_from_timetable(academic_year, semester=None, course=None):
    """Create one form per distinct (subject, faculty, division, batch) in the timetable.

    Assignments that already have a form for ``academic_year`` are skipped.
    Returns: {'created': n, 'skipped': n}
    """
    entries = Timetable.get_all(academic_year=academic_year, semester=semester, course=course)
    catalog = _catalog_by_type()
    names = {normalize_email(f['email']): f['name'] for f in Faculty.get_all()}

    created = 0
    skipped = 0
    seen = set()
    for entry in entries:
        email = normalize_email(entry['faculty_email'])
        key = (entry['subject_name'].lower(), email, entry['division'], entry['batch'] or '')
        if key in seen:
            skipped += 1
            continue
        seen.add(key)

        if FeedbackForm.exists(entry['subject_name'], email, entry['division'],
                               entry['batch'], academic_year):
            skipped += 1
            continue

        FeedbackForm.create(
            subject_name=entry['subject_name'],
            faculty_name=names.get(email, email),
            faculty_email=email,
            division=entry['division'],
            semester=entry['semester'],
            course=entry['course'],
            academic_year=academic_year,
            questions=catalog[form_type_for(entry['batch'])],
            batch=entry['batch'],
        )
        created += 1

    logger.info(f"Generated forms for {academic_year}: {created} created, {skipped} skipped")
    return {'created': created, 'skipped': skipped}
