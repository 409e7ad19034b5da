"""
Submission gate: the only path that writes feedback responses.

A submission moves a (form, student) pair from unsubmitted to submitted. The
checks and the insert run in one ``BEGIN IMMEDIATE`` transaction, so two
concurrent submissions for the same pair are serialized and the second one
sees the first one's row. The UNIQUE(form_id, student_id) constraint backs
this up: an IntegrityError is reported as a duplicate as well.
"""
import logging
import numbers
import sqlite3
import uuid

from flask import current_app

from feedback_app.errors import (
    SubmissionError, ValidationError,
    DUPLICATE_SUBMISSION, NOT_AUTHORIZED, STUDENT_NOT_FOUND, FORM_NOT_FOUND,
)
from feedback_app.models import transaction
from feedback_app.models.draft import DraftFeedback
from feedback_app.models.response import FeedbackResponse
from utils import form_type_for

logger = logging.getLogger(__name__)


def _same(a, b):
    return (a or '').upper() == (b or '').upper()


def in_cohort(form, student):
    """Whether ``student`` belongs to the class (and lab batch) ``form`` targets.

    A student enrolled in an honours course also belongs to that course's
    forms for their semester, matched on the honours batch instead of the
    division.
    """
    if form['semester'] != student['semester']:
        return False

    regular = (
        _same(form['course'], student['course'])
        and _same(form['division'], student['division'])
        and (not form['batch'] or _same(form['batch'], student['batch']))
    )
    if regular:
        return True

    honours_course = student.get('honours_course')
    return bool(honours_course) and _same(form['course'], honours_course) and (
        not form['batch'] or _same(form['batch'], student.get('honours_batch')))


def is_authorized(form, student):
    return form['status'] == 'active' and in_cohort(form, student)


def validate_ratings(ratings):
    """Check a ``{parameter_id: rating}`` mapping; raises ValidationError."""
    if not isinstance(ratings, dict):
        raise ValidationError('Ratings must be an object of question id to rating')
    if not ratings:
        raise ValidationError('No ratings provided')
    for parameter_id, rating in ratings.items():
        if isinstance(rating, bool) or not isinstance(rating, numbers.Real):
            raise ValidationError(f'Rating for {parameter_id} must be a number')


def _fetch_one(conn, sql, params):
    row = conn.execute(sql, params).fetchone()
    return dict(row) if row else None


def _question_lookup(conn, form):
    """parameter_id -> (text, type) taken from the form's question snapshot.

    Forms created before snapshots existed fall back to the live catalog for
    the form's type.
    """
    rows = conn.execute('''
        SELECT original_param_id, question_text, question_type
        FROM form_questions WHERE form_id = ? ORDER BY position
    ''', (form['id'],)).fetchall()
    if rows:
        return {row[0]: (row[1], row[2]) for row in rows}

    rows = conn.execute('''
        SELECT id, text, question_type FROM feedback_parameters WHERE form_type = ?
    ''', (form_type_for(form['batch']),)).fetchall()
    return {row[0]: (row[1], row[2]) for row in rows}


def _check_and_insert(conn, student, form_id, ratings, comment, skip_existing=False):
    """Insert one response. Returns its id, or None for a skipped resubmission."""
    form = _fetch_one(conn, 'SELECT * FROM feedback_forms WHERE id = ?', (form_id,))
    if not form:
        raise SubmissionError(FORM_NOT_FOUND, form_id)

    if not is_authorized(form, student):
        raise SubmissionError(NOT_AUTHORIZED, form_id)

    if FeedbackResponse.exists(conn, form_id, student['id']):
        if skip_existing:
            logger.info(f"Skipping form {form_id}: already submitted by {student['id']}")
            return None
        raise SubmissionError(DUPLICATE_SUBMISSION, form_id)

    lookup = _question_lookup(conn, form)
    items = []
    for parameter_id, rating in ratings.items():
        text, question_type = lookup.get(parameter_id, (None, None))
        items.append((parameter_id, rating, text, question_type))

    response_id = f"resp_{uuid.uuid4()}"
    FeedbackResponse.insert(conn, response_id, form_id, student['id'],
                            (comment or '').strip() or None, items)
    return response_id


def _load_student(conn, student_id):
    student = _fetch_one(conn, 'SELECT * FROM students WHERE id = ?', (student_id,))
    if not student:
        raise SubmissionError(STUDENT_NOT_FOUND)
    return student


def submit_response(form_id, student_id, ratings, comment=None):
    """Record one student's feedback for one form. Returns the response id."""
    validate_ratings(ratings)
    timeout = current_app.config.get('SUBMISSION_TIMEOUT', 30.0)

    try:
        with transaction(timeout=timeout) as conn:
            student = _load_student(conn, student_id)
            response_id = _check_and_insert(conn, student, form_id, ratings, comment)
            DraftFeedback.clear(student_id, conn=conn)
    except sqlite3.IntegrityError:
        logger.warning(f"Unique constraint hit for form {form_id} / student {student_id}")
        raise SubmissionError(DUPLICATE_SUBMISSION, form_id)
    except SubmissionError as e:
        logger.info(f"Submission rejected ({e.reason}) for form {form_id} / student {student_id}")
        raise

    logger.info(f"Feedback submitted: form {form_id} / student {student_id} -> {response_id}")
    return response_id


def submit_bulk(student_id, submissions):
    """Submit several forms at once; all succeed or none are written.

    Forms the student already answered are skipped rather than failing the
    batch, so a student who submitted some forms one by one can still send
    the rest together.

    submissions: list of dicts with formId, ratings and an optional comment
    Returns: list of newly created response ids, in submission order
    """
    if not submissions:
        raise ValidationError('Missing required fields')
    for submission in submissions:
        if not submission.get('formId'):
            raise ValidationError('Every submission needs a formId')
        try:
            validate_ratings(submission.get('ratings'))
        except ValidationError:
            raise ValidationError(f"Invalid submission for form {submission['formId']}")

    timeout = current_app.config.get('SUBMISSION_TIMEOUT', 30.0)
    current_form = None
    try:
        with transaction(timeout=timeout) as conn:
            student = _load_student(conn, student_id)
            response_ids = []
            for submission in submissions:
                current_form = submission['formId']
                response_id = _check_and_insert(conn, student, current_form, submission['ratings'],
                                                submission.get('comment'), skip_existing=True)
                if response_id:
                    response_ids.append(response_id)
            DraftFeedback.clear(student_id, conn=conn)
    except sqlite3.IntegrityError:
        raise SubmissionError(DUPLICATE_SUBMISSION, current_form)

    logger.info(f"Bulk feedback submitted by {student_id}: {len(response_ids)} form(s)")
    return response_ids
