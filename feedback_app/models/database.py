import sqlite3
import os
from contextlib import contextmanager
import logging

from flask import current_app, has_app_context

from config import DATABASE_PATH

logger = logging.getLogger(__name__)


def get_db_path():
    """Get the database path and ensure the directory exists."""
    if has_app_context():
        path = current_app.config.get('DATABASE_PATH', DATABASE_PATH)
    else:
        path = DATABASE_PATH
    db_dir = os.path.dirname(os.path.abspath(path))
    if not os.path.exists(db_dir):
        os.makedirs(db_dir)
    return path


def _connect(timeout=5.0, isolation_level=''):
    conn = sqlite3.connect(get_db_path(), timeout=timeout, isolation_level=isolation_level)
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_db():
    """Context manager for database connections."""
    conn = None
    try:
        conn = _connect()
        yield conn
        conn.commit()
    except Exception as e:
        if conn:
            conn.rollback()
        logger.error(f"Database error: {e}")
        raise
    finally:
        if conn:
            conn.close()


@contextmanager
def transaction(timeout=30.0):
    """Write transaction holding the database lock from its first statement.

    ``BEGIN IMMEDIATE`` makes concurrent writers queue up for ``timeout``
    seconds, so a read-check-insert sequence inside the block cannot
    interleave with another writer.
    """
    conn = _connect(timeout=timeout, isolation_level=None)
    try:
        conn.execute('BEGIN IMMEDIATE')
    except sqlite3.Error:
        conn.close()
        raise
    try:
        yield conn
        conn.execute('COMMIT')
    except Exception:
        conn.execute('ROLLBACK')
        raise
    finally:
        conn.close()


def rows_to_dicts(rows):
    return [dict(row) for row in rows]


def init_db():
    """Initialize the database with all required tables."""
    with get_db() as conn:
        cursor = conn.cursor()

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS students (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                email TEXT NOT NULL UNIQUE,
                semester INTEGER NOT NULL,
                course TEXT NOT NULL DEFAULT 'IT',
                division TEXT NOT NULL,
                batch TEXT,
                honours_course TEXT,
                honours_batch TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        cursor.execute('''
            CREATE INDEX IF NOT EXISTS idx_students_cohort
            ON students(semester, course, division)
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS faculty (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                email TEXT NOT NULL UNIQUE,
                faculty_code TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS admin_users (
                id TEXT PRIMARY KEY,
                email TEXT NOT NULL UNIQUE,
                name TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        # Question catalog
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS feedback_parameters (
                id TEXT PRIMARY KEY,
                text TEXT NOT NULL,
                position INTEGER NOT NULL,
                form_type TEXT NOT NULL DEFAULT 'theory',
                question_type TEXT NOT NULL DEFAULT 'scale_1_10'
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS feedback_forms (
                id TEXT PRIMARY KEY,
                subject_name TEXT NOT NULL,
                subject_code TEXT,
                faculty_name TEXT NOT NULL,
                faculty_email TEXT NOT NULL,
                division TEXT NOT NULL,
                batch TEXT,
                semester INTEGER NOT NULL,
                course TEXT NOT NULL DEFAULT 'IT',
                academic_year TEXT NOT NULL DEFAULT '2025-26',
                status TEXT NOT NULL DEFAULT 'active',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        cursor.execute('''
            CREATE INDEX IF NOT EXISTS idx_forms_cohort
            ON feedback_forms(semester, course, division, status)
        ''')

        cursor.execute('''
            CREATE INDEX IF NOT EXISTS idx_forms_faculty_email
            ON feedback_forms(faculty_email)
        ''')

        # Snapshot of the catalog taken when a form is created
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS form_questions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                form_id TEXT NOT NULL,
                original_param_id TEXT NOT NULL,
                question_text TEXT NOT NULL,
                position INTEGER NOT NULL,
                question_type TEXT NOT NULL DEFAULT 'scale_1_10'
            )
        ''')

        cursor.execute('''
            CREATE INDEX IF NOT EXISTS idx_form_questions_form
            ON form_questions(form_id)
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS feedback_responses (
                id TEXT PRIMARY KEY,
                form_id TEXT NOT NULL,
                student_id TEXT NOT NULL,
                comment TEXT,
                submitted_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                UNIQUE(form_id, student_id)
            )
        ''')

        cursor.execute('''
            CREATE INDEX IF NOT EXISTS idx_responses_student
            ON feedback_responses(student_id)
        ''')

        # No foreign key to feedback_parameters: items keep their own
        # question text/type so catalog edits never rewrite history
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS feedback_response_items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                response_id TEXT NOT NULL,
                parameter_id TEXT NOT NULL,
                rating REAL NOT NULL,
                question_text TEXT,
                question_type TEXT
            )
        ''')

        cursor.execute('''
            CREATE INDEX IF NOT EXISTS idx_items_response
            ON feedback_response_items(response_id)
        ''')

        cursor.execute('''
            CREATE INDEX IF NOT EXISTS idx_items_parameter
            ON feedback_response_items(parameter_id)
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS timetable (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                subject_name TEXT NOT NULL,
                faculty_email TEXT NOT NULL,
                semester INTEGER NOT NULL,
                course TEXT NOT NULL,
                division TEXT NOT NULL,
                batch TEXT NOT NULL DEFAULT '',
                academic_year TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                UNIQUE(subject_name, faculty_email, semester, course, division, batch, academic_year)
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS timetable_images (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                label TEXT NOT NULL,
                image_data TEXT NOT NULL,
                mime_type TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS draft_feedback (
                student_id TEXT PRIMARY KEY,
                form_data TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        conn.commit()
        logger.info("Database initialized successfully")
