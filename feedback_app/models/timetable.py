import logging
from .database import get_db
from utils import normalize_email

logger = logging.getLogger(__name__)

TIMETABLE_COLUMNS = 'id, subject_name, faculty_email, semester, course, division, batch, academic_year'


def _entry(row):
    entry = dict(row)
    # Stored as '' so the UNIQUE constraint also covers theory rows
    entry['batch'] = entry['batch'] or None
    return entry


class Timetable:
    """Timetable entries: which faculty teaches which subject to which class."""

    @staticmethod
    def bulk_add(entries):
        """Insert entries, skipping exact duplicates.

        entries: list of dicts with subject_name, faculty_email, semester,
        course, division, batch, academic_year (already validated)
        Returns: (added_count, duplicate_count)
        """
        added = 0
        duplicates = 0
        with get_db() as conn:
            cursor = conn.cursor()
            for entry in entries:
                cursor.execute('''
                    INSERT OR IGNORE INTO timetable
                    (subject_name, faculty_email, semester, course, division, batch, academic_year)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                ''', (
                    entry['subject_name'].strip(),
                    normalize_email(entry['faculty_email']),
                    int(entry['semester']),
                    entry['course'].upper(),
                    entry['division'].upper(),
                    (entry.get('batch') or '').upper(),
                    entry['academic_year'],
                ))
                if cursor.rowcount > 0:
                    added += 1
                else:
                    duplicates += 1
        return added, duplicates

    @staticmethod
    def get_all(academic_year=None, semester=None, course=None):
        clauses = []
        params = []
        if academic_year:
            clauses.append('academic_year = ?')
            params.append(academic_year)
        if semester is not None:
            clauses.append('semester = ?')
            params.append(semester)
        if course:
            clauses.append('course = ?')
            params.append(course.upper())
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ''

        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'''
                SELECT {TIMETABLE_COLUMNS} FROM timetable
                {where}
                ORDER BY semester, course, division, subject_name
            ''', tuple(params))
            return [_entry(row) for row in cursor.fetchall()]

    @staticmethod
    def delete(academic_year=None):
        """Delete all entries, or only those of one academic year."""
        with get_db() as conn:
            cursor = conn.cursor()
            if academic_year:
                cursor.execute('DELETE FROM timetable WHERE academic_year = ?', (academic_year,))
            else:
                cursor.execute('DELETE FROM timetable')
            return cursor.rowcount


class TimetableImage:
    @staticmethod
    def add(label, image_data, mime_type):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO timetable_images (label, image_data, mime_type) VALUES (?, ?, ?)
            ''', (label, image_data, mime_type))
            image_id = cursor.lastrowid
        return TimetableImage.get(image_id, include_data=False)

    @staticmethod
    def get(image_id, include_data=True):
        columns = 'id, label, mime_type, created_at'
        if include_data:
            columns += ', image_data'
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'SELECT {columns} FROM timetable_images WHERE id = ?', (image_id,))
            row = cursor.fetchone()
            return dict(row) if row else None

    @staticmethod
    def get_all(include_data=False):
        columns = 'id, label, mime_type, created_at'
        if include_data:
            columns += ', image_data'
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'SELECT {columns} FROM timetable_images ORDER BY created_at DESC, id DESC')
            return [dict(row) for row in cursor.fetchall()]

    @staticmethod
    def delete(image_id):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('DELETE FROM timetable_images WHERE id = ?', (image_id,))
            return cursor.rowcount > 0
