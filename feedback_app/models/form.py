import logging
from .database import get_db, rows_to_dicts
from utils import generate_id, normalize_email

logger = logging.getLogger(__name__)

FORM_COLUMNS = ('id, subject_name, subject_code, faculty_name, faculty_email, division, '
                'batch, semester, course, academic_year, status, created_at')


class FeedbackForm:
    """Form instances (``feedback_forms``) and their question snapshots."""

    @staticmethod
    def create(subject_name, faculty_name, faculty_email, division, semester,
               course, academic_year, questions, subject_code=None, batch=None):
        """Create a form and snapshot ``questions`` (catalog rows) onto it."""
        form_id = generate_id('form')
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO feedback_forms
                (id, subject_name, subject_code, faculty_name, faculty_email, division,
                 batch, semester, course, academic_year, status)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'active')
            ''', (form_id, subject_name, subject_code, faculty_name,
                  normalize_email(faculty_email), division, batch, semester,
                  course, academic_year))
            cursor.executemany('''
                INSERT INTO form_questions
                (form_id, original_param_id, question_text, position, question_type)
                VALUES (?, ?, ?, ?, ?)
            ''', [(form_id, q['id'], q['text'], q['position'], q['question_type'])
                  for q in questions])
        return FeedbackForm.get(form_id)

    @staticmethod
    def get(form_id):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'SELECT {FORM_COLUMNS} FROM feedback_forms WHERE id = ?', (form_id,))
            row = cursor.fetchone()
            return dict(row) if row else None

    @staticmethod
    def get_all(faculty_email=None, semester=None, course=None, batch=None, academic_year=None):
        clauses = []
        params = []
        if faculty_email:
            clauses.append('LOWER(faculty_email) = ?')
            params.append(normalize_email(faculty_email))
        if semester is not None:
            clauses.append('semester = ?')
            params.append(semester)
        if course:
            clauses.append('course = ?')
            params.append(course)
        if batch:
            clauses.append('batch = ?')
            params.append(batch)
        if academic_year:
            clauses.append('academic_year = ?')
            params.append(academic_year)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ''

        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'''
                SELECT {FORM_COLUMNS} FROM feedback_forms
                {where}
                ORDER BY created_at DESC, subject_name
            ''', tuple(params))
            return rows_to_dicts(cursor.fetchall())

    @staticmethod
    def for_student(student):
        """Active forms the student is eligible to answer, honours course included."""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'''
                SELECT {FORM_COLUMNS} FROM feedback_forms
                WHERE semester = ? AND status = 'active' AND (
                    (UPPER(course) = UPPER(?) AND UPPER(division) = UPPER(?)
                     AND (batch IS NULL OR batch = '' OR UPPER(batch) = UPPER(?)))
                    OR (? IS NOT NULL AND UPPER(course) = UPPER(?)
                        AND (batch IS NULL OR batch = '' OR UPPER(batch) = UPPER(?)))
                )
                ORDER BY subject_name, batch
            ''', (student['semester'], student['course'], student['division'], student['batch'],
                  student.get('honours_course'), student.get('honours_course'),
                  student.get('honours_batch')))
            return rows_to_dicts(cursor.fetchall())

    @staticmethod
    def exists(subject_name, faculty_email, division, batch, academic_year):
        """True if a form for this teaching assignment already exists."""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT 1 FROM feedback_forms
                WHERE LOWER(subject_name) = LOWER(?) AND LOWER(faculty_email) = ?
                  AND division = ? AND COALESCE(batch, '') = ? AND academic_year = ?
            ''', (subject_name, normalize_email(faculty_email), division, batch or '',
                  academic_year))
            return cursor.fetchone() is not None

    @staticmethod
    def questions(form_id):
        """Question snapshot for a form, ordered by position."""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT original_param_id, question_text, position, question_type
                FROM form_questions
                WHERE form_id = ?
                ORDER BY position
            ''', (form_id,))
            return rows_to_dicts(cursor.fetchall())

    @staticmethod
    def set_status(form_id, status):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('UPDATE feedback_forms SET status = ? WHERE id = ?', (status, form_id))
            return cursor.rowcount > 0

    @staticmethod
    def delete(form_ids):
        """Delete forms with their responses, items and question snapshots."""
        if not form_ids:
            return 0
        placeholders = ', '.join(['?'] * len(form_ids))
        params = tuple(form_ids)
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'''
                DELETE FROM feedback_response_items WHERE response_id IN (
                    SELECT id FROM feedback_responses WHERE form_id IN ({placeholders})
                )
            ''', params)
            cursor.execute(f'DELETE FROM feedback_responses WHERE form_id IN ({placeholders})', params)
            cursor.execute(f'DELETE FROM form_questions WHERE form_id IN ({placeholders})', params)
            cursor.execute(f'DELETE FROM feedback_forms WHERE id IN ({placeholders})', params)
            deleted = cursor.rowcount
        logger.info(f"Deleted {deleted} form(s)")
        return deleted
