import logging
from .database import get_db, rows_to_dicts
from utils import clamp_rating

logger = logging.getLogger(__name__)


class FeedbackResponse:
    """Submitted responses and their rating items.

    Responses are append-only: rows are inserted once by the submission gate
    and only removed when their form or student is deleted.
    """

    @staticmethod
    def exists(conn, form_id, student_id):
        cursor = conn.execute('''
            SELECT 1 FROM feedback_responses WHERE form_id = ? AND student_id = ?
        ''', (form_id, student_id))
        return cursor.fetchone() is not None

    @staticmethod
    def insert(conn, response_id, form_id, student_id, comment, items):
        """Insert a response and its items on an open transaction.

        items: list of (parameter_id, rating, question_text, question_type)
        """
        conn.execute('''
            INSERT INTO feedback_responses (id, form_id, student_id, comment)
            VALUES (?, ?, ?, ?)
        ''', (response_id, form_id, student_id, comment))
        conn.executemany('''
            INSERT INTO feedback_response_items
            (response_id, parameter_id, rating, question_text, question_type)
            VALUES (?, ?, ?, ?, ?)
        ''', [(response_id, parameter_id, clamp_rating(rating), text, question_type)
              for parameter_id, rating, text, question_type in items])

    @staticmethod
    def get_all(form_id=None, student_id=None, form_ids=None):
        """Responses with nested ``items``, newest first."""
        clauses = []
        params = []
        if form_id:
            clauses.append('form_id = ?')
            params.append(form_id)
        if student_id:
            clauses.append('student_id = ?')
            params.append(student_id)
        if form_ids is not None:
            if not form_ids:
                return []
            clauses.append(f"form_id IN ({', '.join(['?'] * len(form_ids))})")
            params.extend(form_ids)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ''

        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'''
                SELECT id, form_id, student_id, comment, submitted_at
                FROM feedback_responses
                {where}
                ORDER BY submitted_at DESC, rowid DESC
            ''', tuple(params))
            responses = rows_to_dicts(cursor.fetchall())
            if not responses:
                return []

            by_id = {}
            for response in responses:
                response['items'] = []
                by_id[response['id']] = response

            ids = list(by_id)
            cursor.execute(f'''
                SELECT response_id, parameter_id, rating, question_text, question_type
                FROM feedback_response_items
                WHERE response_id IN ({', '.join(['?'] * len(ids))})
                ORDER BY id
            ''', tuple(ids))
            for row in cursor.fetchall():
                item = dict(row)
                by_id[item.pop('response_id')]['items'].append(item)

        return responses

    @staticmethod
    def submissions(form_ids):
        """(form, student) submission pairs without items, for monitoring."""
        if not form_ids:
            return []
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'''
                SELECT id, form_id, student_id, submitted_at
                FROM feedback_responses
                WHERE form_id IN ({', '.join(['?'] * len(form_ids))})
            ''', tuple(form_ids))
            return rows_to_dicts(cursor.fetchall())

    @staticmethod
    def submitted_form_ids(student_id):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT form_id FROM feedback_responses WHERE student_id = ?',
                           (student_id,))
            return {row[0] for row in cursor.fetchall()}
