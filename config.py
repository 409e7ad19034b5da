import os

# Database configuration
DATABASE_PATH = os.environ.get('FEEDBACK_DATABASE_PATH', os.path.join('data', 'feedback.db'))

# Upload configuration
ALLOWED_EXTENSIONS = {'xlsx', 'xls', 'csv'}
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB

# Timetable images
ALLOWED_IMAGE_TYPES = {'image/png', 'image/jpeg', 'image/jpg', 'image/webp'}

# Public spreadsheet used when no URL is passed to the sheet import
# (must be shared as "Anyone with the link can view")
DEFAULT_SHEET_CSV_URL = os.environ.get(
    'FEEDBACK_SHEET_CSV_URL',
    'https://docs.google.com/spreadsheets/d/1WstDNoS9sHgTKeE2CqmRO5-Hqk-iCu9zlBD-GFg88ug/export?format=csv&gid=0',
)

DEFAULT_ACADEMIC_YEAR = os.environ.get('FEEDBACK_ACADEMIC_YEAR', '2025-26')
DEFAULT_COURSE = 'IT'

FORM_TYPES = ('theory', 'lab')
QUESTION_TYPES = ('scale_3', 'scale_1_10', 'yes_no')
FORM_STATUSES = ('active', 'closed')

# Headers for timetable CSV import/export
TIMETABLE_HEADERS = ['subject_name', 'faculty_email', 'semester', 'course',
                     'division', 'batch', 'academic_year']

# Default question catalog, restored by the parameter reset endpoint
DEFAULT_THEORY_QUESTIONS = [
    ('theory_1', 'Interaction with students regarding the subject taught and query-handling during lectures', 'scale_3'),
    ('theory_2', 'Number of numerical problems solved/case studies and practical applications discussed', 'scale_3'),
    ('theory_3', 'Audibility and overall command on verbal communication', 'scale_3'),
    ('theory_4', 'Command on the subject taught', 'scale_3'),
    ('theory_5', 'Use of audio/visuals aids (e.g. OHP slides, LCD projector, PA system, charts, models etc.)', 'scale_3'),
    ('theory_6', 'Whether the test-syllabus was covered satisfactorily before the term tests?', 'scale_3'),
    ('theory_7', 'Evaluation of the faculty in the scale of 1-10', 'scale_1_10'),
]

DEFAULT_LAB_QUESTIONS = [
    ('lab_1', 'The practical/tutorial sessions/assignments were well explained and planned to cover the syllabus thoroughly', 'yes_no'),
    ('lab_2', 'The practical/tutorial sessions/assignments were useful for conceptual understanding of the topics', 'yes_no'),
    ('lab_3', 'Evaluation of the faculty in the scale of 1-10', 'scale_1_10'),
]


def _split_emails(value):
    return tuple(e.strip().lower() for e in value.split(',') if e.strip())


class Config:
    """Settings loaded into ``app.config``. ``create_app`` accepts overrides."""

    SECRET_KEY = os.environ.get('SECRET_KEY', 'change-me-in-production')
    MAX_CONTENT_LENGTH = MAX_FILE_SIZE
    DATABASE_PATH = DATABASE_PATH
    # Emails that always resolve to the admin role, even with an empty admin table
    ADMIN_EMAILS = _split_emails(os.environ.get('FEEDBACK_ADMIN_EMAILS', ''))
    SHEET_CSV_URL = DEFAULT_SHEET_CSV_URL
    HTTP_TIMEOUT = float(os.environ.get('FEEDBACK_HTTP_TIMEOUT', '15'))
    # Seconds a submission waits for the write lock
    SUBMISSION_TIMEOUT = float(os.environ.get('FEEDBACK_SUBMISSION_TIMEOUT', '30'))
    ACADEMIC_YEAR = DEFAULT_ACADEMIC_YEAR
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
