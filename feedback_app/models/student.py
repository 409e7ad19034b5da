import logging
from .database import get_db, rows_to_dicts
from utils import normalize_email, generate_id, parse_semester, clean_optional
from config import DEFAULT_COURSE

logger = logging.getLogger(__name__)

STUDENT_COLUMNS = ('id, name, email, semester, course, division, batch, '
                   'honours_course, honours_batch')


class Student:
    @staticmethod
    def add(name, email, semester, division, course=None, batch=None,
            honours_course=None, honours_batch=None):
        """Add a new student to the database. Returns the new student id."""
        student_id = generate_id('stu')
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO students
                (id, name, email, semester, course, division, batch, honours_course, honours_batch)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (student_id, name.strip(), normalize_email(email), semester,
                  (course or DEFAULT_COURSE).upper(), division.upper(),
                  clean_optional(batch, upper=True),
                  clean_optional(honours_course, upper=True),
                  clean_optional(honours_batch, upper=True)))
        return student_id

    @staticmethod
    def update(student_id, name=None, semester=None, course=None, division=None, batch=None,
               honours_course=None, honours_batch=None):
        """Update a student's profile. Only the given fields change.

        An empty string clears batch and the honours fields.
        """
        updates = {}
        if name is not None:
            updates['name'] = name.strip()
        if semester is not None:
            updates['semester'] = semester
        if course is not None:
            updates['course'] = course.upper()
        if division is not None:
            updates['division'] = division.upper()
        if batch is not None:
            updates['batch'] = clean_optional(batch, upper=True)
        if honours_course is not None:
            updates['honours_course'] = clean_optional(honours_course, upper=True)
        if honours_batch is not None:
            updates['honours_batch'] = clean_optional(honours_batch, upper=True)
        if not updates:
            return Student.get(student_id) is not None

        assignments = ', '.join(f'{column} = ?' for column in updates)
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'UPDATE students SET {assignments} WHERE id = ?',
                           (*updates.values(), student_id))
            return cursor.rowcount > 0

    @staticmethod
    def bulk_upsert(students):
        """Create or update students keyed by email.

        students: list of dicts with name, email, semester, course, division, batch
        Returns: dict with created/updated/skipped counts and row errors
        """
        created = 0
        updated = 0
        skipped = 0
        errors = []
        seen = set()

        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT id, email FROM students')
            existing = {row['email'].lower(): row['id'] for row in cursor.fetchall()}

            for index, row in enumerate(students, start=1):
                name = clean_optional(row.get('name'))
                email = normalize_email(row.get('email'))
                division = clean_optional(row.get('division'), upper=True)
                raw_semester = row.get('semester')

                if not name or not email or not raw_semester or not division:
                    errors.append(f"Row {index}: Missing required fields")
                    continue

                if email in seen:
                    skipped += 1
                    continue
                seen.add(email)

                semester = parse_semester(raw_semester)
                if semester is None:
                    errors.append(f"Row {index}: Invalid semester")
                    continue

                course = (clean_optional(row.get('course'), upper=True) or DEFAULT_COURSE)
                batch = clean_optional(row.get('batch'), upper=True)
                honours_course = clean_optional(row.get('honours_course'), upper=True)
                honours_batch = clean_optional(row.get('honours_batch'), upper=True)

                try:
                    if email in existing:
                        cursor.execute('''
                            UPDATE students
                            SET name = ?, semester = ?, course = ?, division = ?, batch = ?,
                                honours_course = ?, honours_batch = ?
                            WHERE id = ?
                        ''', (name, semester, course, division, batch,
                              honours_course, honours_batch, existing[email]))
                        updated += 1
                    else:
                        student_id = generate_id('stu')
                        cursor.execute('''
                            INSERT INTO students
                            (id, name, email, semester, course, division, batch,
                             honours_course, honours_batch)
                            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                        ''', (student_id, name, email, semester, course, division, batch,
                              honours_course, honours_batch))
                        existing[email] = student_id
                        created += 1
                except Exception as e:
                    logger.error(f"Error saving student {email}: {e}")
                    errors.append(f"Row {index}: {e}")

        return {
            'created': created,
            'updated': updated,
            'skipped': skipped,
            'errors': errors,
        }

    @staticmethod
    def delete(student_id):
        """Delete a student together with their responses and draft."""
        return Student.bulk_delete([student_id]) > 0

    @staticmethod
    def bulk_delete(student_ids):
        """Delete several students. Returns the number of students removed."""
        if not student_ids:
            return 0
        placeholders = ', '.join(['?'] * len(student_ids))
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'''
                DELETE FROM feedback_response_items WHERE response_id IN (
                    SELECT id FROM feedback_responses WHERE student_id IN ({placeholders})
                )
            ''', tuple(student_ids))
            cursor.execute(f'DELETE FROM feedback_responses WHERE student_id IN ({placeholders})',
                           tuple(student_ids))
            cursor.execute(f'DELETE FROM draft_feedback WHERE student_id IN ({placeholders})',
                           tuple(student_ids))
            cursor.execute(f'DELETE FROM students WHERE id IN ({placeholders})',
                           tuple(student_ids))
            return cursor.rowcount

    @staticmethod
    def get(student_id):
        """Get a student by id."""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'SELECT {STUDENT_COLUMNS} FROM students WHERE id = ?', (student_id,))
            row = cursor.fetchone()
            return dict(row) if row else None

    @staticmethod
    def get_by_email(email):
        """Get a student by email (case-insensitive)."""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'SELECT {STUDENT_COLUMNS} FROM students WHERE email = ?',
                           (normalize_email(email),))
            row = cursor.fetchone()
            return dict(row) if row else None

    @staticmethod
    def get_all(semester=None, course=None, division=None):
        """Get students, optionally filtered by cohort."""
        clauses = []
        params = []
        if semester is not None:
            clauses.append('semester = ?')
            params.append(semester)
        if course:
            clauses.append('course = ?')
            params.append(course.upper())
        if division:
            clauses.append('division = ?')
            params.append(division.upper())
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ''

        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'''
                SELECT {STUDENT_COLUMNS} FROM students
                {where}
                ORDER BY semester, course, division, name
            ''', tuple(params))
            return rows_to_dicts(cursor.fetchall())
