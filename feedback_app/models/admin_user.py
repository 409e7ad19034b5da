from .database import get_db, rows_to_dicts
from utils import normalize_email, generate_id, clean_optional


class AdminUser:
    @staticmethod
    def add(email, name=None):
        admin_id = generate_id('admin')
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO admin_users (id, email, name) VALUES (?, ?, ?)
            ''', (admin_id, normalize_email(email), clean_optional(name)))
        return AdminUser.get(admin_id)

    @staticmethod
    def delete(admin_id):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('DELETE FROM admin_users WHERE id = ?', (admin_id,))
            return cursor.rowcount > 0

    @staticmethod
    def get(admin_id):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT id, email, name, created_at FROM admin_users WHERE id = ?',
                           (admin_id,))
            row = cursor.fetchone()
            return dict(row) if row else None

    @staticmethod
    def get_by_email(email):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT id, email, name, created_at FROM admin_users WHERE email = ?',
                           (normalize_email(email),))
            row = cursor.fetchone()
            return dict(row) if row else None

    @staticmethod
    def get_all():
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT id, email, name, created_at FROM admin_users
                ORDER BY created_at DESC, email
            ''')
            return rows_to_dicts(cursor.fetchall())
