import logging
import random
import string
import time

from .database import get_db, rows_to_dicts
from config import DEFAULT_THEORY_QUESTIONS, DEFAULT_LAB_QUESTIONS

logger = logging.getLogger(__name__)

QUESTION_COLUMNS = 'id, text, position, form_type, question_type'


def _question_id(form_type):
    suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=5))
    return f"{form_type}_{int(time.time() * 1000)}_{suffix}"


class Question:
    """Question catalog (``feedback_parameters``)."""

    @staticmethod
    def add(text, position, form_type, question_type):
        question_id = _question_id(form_type)
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO feedback_parameters (id, text, position, form_type, question_type)
                VALUES (?, ?, ?, ?, ?)
            ''', (question_id, text.strip(), int(position), form_type, question_type))
        return Question.get(question_id)

    @staticmethod
    def update(question_id, text=None, position=None, question_type=None):
        """Update a question. Returns the updated row or None if missing."""
        updates = {}
        if text is not None:
            updates['text'] = text.strip()
        if position is not None:
            updates['position'] = int(position)
        if question_type is not None:
            updates['question_type'] = question_type

        if updates:
            assignments = ', '.join(f'{column} = ?' for column in updates)
            with get_db() as conn:
                cursor = conn.cursor()
                cursor.execute(f'UPDATE feedback_parameters SET {assignments} WHERE id = ?',
                               (*updates.values(), question_id))
        return Question.get(question_id)

    @staticmethod
    def response_count(question_id):
        """Number of response items that reference this question."""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT COUNT(*) FROM feedback_response_items WHERE parameter_id = ?',
                           (question_id,))
            return cursor.fetchone()[0]

    @staticmethod
    def delete(question_id):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('DELETE FROM feedback_parameters WHERE id = ?', (question_id,))
            return cursor.rowcount > 0

    @staticmethod
    def reorder(updates):
        """Apply ``[{id, position}, ...]`` in a single transaction."""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.executemany('UPDATE feedback_parameters SET position = ? WHERE id = ?',
                               [(int(u['position']), u['id']) for u in updates])

    @staticmethod
    def reset_defaults():
        """Replace the whole catalog with the default theory and lab questions.

        Submitted responses keep their own question snapshots, so this never
        changes historical reports.
        """
        rows = []
        for form_type, questions in (('theory', DEFAULT_THEORY_QUESTIONS),
                                     ('lab', DEFAULT_LAB_QUESTIONS)):
            for position, (question_id, text, question_type) in enumerate(questions, start=1):
                rows.append((question_id, text, position, form_type, question_type))

        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('DELETE FROM feedback_parameters')
            cursor.executemany('''
                INSERT INTO feedback_parameters (id, text, position, form_type, question_type)
                VALUES (?, ?, ?, ?, ?)
            ''', rows)

        logger.info("Question catalog reset to defaults")
        return len(DEFAULT_THEORY_QUESTIONS), len(DEFAULT_LAB_QUESTIONS)

    @staticmethod
    def get(question_id):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'SELECT {QUESTION_COLUMNS} FROM feedback_parameters WHERE id = ?',
                           (question_id,))
            row = cursor.fetchone()
            return dict(row) if row else None

    @staticmethod
    def get_all(form_type=None):
        with get_db() as conn:
            cursor = conn.cursor()
            if form_type:
                cursor.execute(f'''
                    SELECT {QUESTION_COLUMNS} FROM feedback_parameters
                    WHERE form_type = ?
                    ORDER BY position
                ''', (form_type,))
            else:
                cursor.execute(f'''
                    SELECT {QUESTION_COLUMNS} FROM feedback_parameters
                    ORDER BY form_type, position
                ''')
            return rows_to_dicts(cursor.fetchall())

    @staticmethod
    def count():
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT COUNT(*) FROM feedback_parameters')
            return cursor.fetchone()[0]
