"""
Submission monitoring: which students still owe feedback for which forms.
"""
import logging

from feedback_app.models import FeedbackForm, FeedbackResponse, Student
from feedback_app.services.submission import in_cohort

logger = logging.getLogger(__name__)


def monitor_data(semester, course, batch=None):
    """Forms of a semester/course with their eligible students and submissions.

    Returns a dict with ``forms`` (each carrying eligible/submitted/pending
    counts), ``students`` (everyone in the semester, so honours students of
    other courses are included), ``eligibleStudents`` (those owed at least
    one of the forms), ``responses`` (form_id/student_id pairs) and
    ``pendingStudents`` (students with at least one unanswered form).
    """
    forms = FeedbackForm.get_all(semester=semester, course=course, batch=batch)
    if not forms:
        return {'forms': [], 'students': [], 'eligibleStudents': [], 'responses': [],
                'pendingStudents': []}

    students = Student.get_all(semester=semester)
    submissions = FeedbackResponse.submissions([f['id'] for f in forms])
    submitted = {(s['form_id'], s['student_id']) for s in submissions}

    eligible_ids = set()
    pending_by_student = {}
    form_rows = []
    for form in forms:
        eligible = [s for s in students if in_cohort(form, s)]
        eligible_ids.update(s['id'] for s in eligible)
        pending = [s for s in eligible if (form['id'], s['id']) not in submitted]
        for student in pending:
            pending_by_student.setdefault(student['id'], []).append(form['subject_name'])
        form_rows.append(dict(form, eligibleCount=len(eligible),
                              submittedCount=len(eligible) - len(pending),
                              pendingCount=len(pending)))

    pending_students = [dict(s, pendingForms=pending_by_student[s['id']])
                        for s in students if s['id'] in pending_by_student]

    logger.debug(f"Monitor sem {semester} {course}: {len(forms)} forms, "
                 f"{len(eligible_ids)} eligible, {len(pending_students)} pending")
    return {
        'forms': form_rows,
        'students': students,
        'eligibleStudents': [s for s in students if s['id'] in eligible_ids],
        'responses': submissions,
        'pendingStudents': pending_students,
    }
