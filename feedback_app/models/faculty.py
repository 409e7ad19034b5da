import logging
from .database import get_db, rows_to_dicts
from utils import normalize_email, generate_id, clean_optional

logger = logging.getLogger(__name__)

FACULTY_COLUMNS = 'id, name, email, faculty_code'


class Faculty:
    @staticmethod
    def add(name, email, faculty_code=None):
        """Add a faculty member. Returns the new id."""
        faculty_id = generate_id('fac')
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO faculty (id, name, email, faculty_code)
                VALUES (?, ?, ?, ?)
            ''', (faculty_id, name.strip(), normalize_email(email),
                  clean_optional(faculty_code, upper=True)))
        return faculty_id

    @staticmethod
    def update(faculty_id, name=None, faculty_code=None):
        updates = {}
        if name is not None:
            updates['name'] = name.strip()
        if faculty_code is not None:
            updates['faculty_code'] = clean_optional(faculty_code, upper=True)
        if not updates:
            return Faculty.get(faculty_id) is not None

        assignments = ', '.join(f'{column} = ?' for column in updates)
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'UPDATE faculty SET {assignments} WHERE id = ?',
                           (*updates.values(), faculty_id))
            return cursor.rowcount > 0

    @staticmethod
    def bulk_upsert(faculty_rows):
        """Create or update faculty keyed by email.

        Returns: dict with created/updated/skipped counts and row errors
        """
        created = 0
        updated = 0
        skipped = 0
        errors = []
        seen = set()

        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT id, email FROM faculty')
            existing = {row['email'].lower(): row['id'] for row in cursor.fetchall()}

            for index, row in enumerate(faculty_rows, start=1):
                name = clean_optional(row.get('name'))
                email = normalize_email(row.get('email'))
                code = clean_optional(row.get('facultyCode') or row.get('faculty_code'), upper=True)

                if not name or not email:
                    errors.append(f"Row {index}: Missing required fields")
                    continue
                if email in seen:
                    skipped += 1
                    continue
                seen.add(email)

                if email in existing:
                    cursor.execute('''
                        UPDATE faculty SET name = ?, faculty_code = COALESCE(?, faculty_code)
                        WHERE id = ?
                    ''', (name, code, existing[email]))
                    updated += 1
                else:
                    faculty_id = generate_id('fac')
                    cursor.execute('''
                        INSERT INTO faculty (id, name, email, faculty_code)
                        VALUES (?, ?, ?, ?)
                    ''', (faculty_id, name, email, code))
                    existing[email] = faculty_id
                    created += 1

        return {
            'created': created,
            'updated': updated,
            'skipped': skipped,
            'errors': errors,
        }

    @staticmethod
    def delete(faculty_id):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('DELETE FROM faculty WHERE id = ?', (faculty_id,))
            return cursor.rowcount > 0

    @staticmethod
    def get(faculty_id):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'SELECT {FACULTY_COLUMNS} FROM faculty WHERE id = ?', (faculty_id,))
            row = cursor.fetchone()
            return dict(row) if row else None

    @staticmethod
    def get_by_email(email):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'SELECT {FACULTY_COLUMNS} FROM faculty WHERE email = ?',
                           (normalize_email(email),))
            row = cursor.fetchone()
            return dict(row) if row else None

    @staticmethod
    def get_all():
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'SELECT {FACULTY_COLUMNS} FROM faculty ORDER BY name')
            return rows_to_dicts(cursor.fetchall())
