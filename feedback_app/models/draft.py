import json
from .database import get_db


class DraftFeedback:
    """A student's unsubmitted ratings, one row per student."""

    @staticmethod
    def save(student_id, form_data):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO draft_feedback (student_id, form_data, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(student_id) DO UPDATE SET
                    form_data = excluded.form_data,
                    updated_at = CURRENT_TIMESTAMP
            ''', (student_id, json.dumps(form_data)))

    @staticmethod
    def load(student_id):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT form_data, updated_at FROM draft_feedback WHERE student_id = ?',
                           (student_id,))
            row = cursor.fetchone()
            if not row:
                return None
            return {'formData': json.loads(row['form_data']), 'updatedAt': row['updated_at']}

    @staticmethod
    def clear(student_id, conn=None):
        if conn is not None:
            conn.execute('DELETE FROM draft_feedback WHERE student_id = ?', (student_id,))
            return
        with get_db() as db:
            db.execute('DELETE FROM draft_feedback WHERE student_id = ?', (student_id,))
