"""Pytest configuration and shared fixtures."""

import pytest

from app import create_app
from feedback_app.models import FeedbackForm, Faculty, Question, Student

ADMIN_EMAIL = 'admin@college.edu'


@pytest.fixture
def app(tmp_path):
    """Flask app bound to a throwaway SQLite file.

    The app context stays pushed so tests can call models and services
    directly; client requests run inside it as well.
    """
    app = create_app({
        'TESTING': True,
        'DATABASE_PATH': str(tmp_path / 'feedback.db'),
        'ADMIN_EMAILS': (ADMIN_EMAIL,),
        'SUBMISSION_TIMEOUT': 10.0,
        'LOG_LEVEL': 'WARNING',
    })
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


def as_user(email):
    """Request headers identifying the caller."""
    return {'X-User-Email': email}


@pytest.fixture
def admin_headers():
    return as_user(ADMIN_EMAIL)


@pytest.fixture
def make_student(app):
    def _make(email='student@college.edu', name='Asha Rao', semester=5, division='A',
              course='IT', batch=None, honours_course=None, honours_batch=None):
        student_id = Student.add(name, email, semester, division, course=course, batch=batch,
                                 honours_course=honours_course, honours_batch=honours_batch)
        return Student.get(student_id)
    return _make


@pytest.fixture
def make_faculty(app):
    def _make(email='ppm@college.edu', name='P. P. Mehta', code='PPM'):
        faculty_id = Faculty.add(name, email, code)
        return Faculty.get(faculty_id)
    return _make


@pytest.fixture
def make_form(app):
    def _make(subject='Machine Learning', faculty_email='ppm@college.edu', faculty_name='P. P. Mehta',
              division='A', semester=5, course='IT', batch=None, academic_year='2025-26'):
        form_type = 'lab' if batch else 'theory'
        return FeedbackForm.create(
            subject_name=subject,
            faculty_name=faculty_name,
            faculty_email=faculty_email,
            division=division,
            semester=semester,
            course=course,
            academic_year=academic_year,
            questions=Question.get_all(form_type),
            batch=batch,
        )
    return _make


def theory_ratings(value=3):
    """Ratings for every default theory question: scale_3 answers plus the 1-10 overall score."""
    ratings = {f'theory_{i}': value for i in range(1, 7)}
    ratings['theory_7'] = 9
    return ratings
