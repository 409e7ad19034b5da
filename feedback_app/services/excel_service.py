"""
Service for reading student/faculty spreadsheets (.xlsx, .xls, .csv).
"""

import io
import logging
from typing import Dict, List, Optional, Tuple

import pandas as pd

from feedback_app.models import Student, Faculty

logger = logging.getLogger(__name__)

# Required headers per import kind
STUDENT_HEADERS = ['name', 'email', 'semester', 'division']
FACULTY_HEADERS = ['name', 'email']

# Spreadsheet headers that map onto a canonical column name
HEADER_ALIASES = {
    'faculty code': 'faculty_code',
    'facultycode': 'faculty_code',
    'code': 'faculty_code',
    'sem': 'semester',
    'div': 'division',
    'honours course': 'honours_course',
    'honors course': 'honours_course',
    'honors_course': 'honours_course',
    'honours batch': 'honours_batch',
    'honors batch': 'honours_batch',
    'honors_batch': 'honours_batch',
}


def read_spreadsheet(data: bytes, filename: str) -> pd.DataFrame:
    """Load an uploaded file into a DataFrame with lower-cased headers."""
    extension = filename.rsplit('.', 1)[-1].lower()
    if extension == 'csv':
        df = pd.read_csv(io.BytesIO(data), dtype=str)
    else:
        df = pd.read_excel(io.BytesIO(data), dtype=str)

    df.columns = [HEADER_ALIASES.get(c, c) for c in df.columns.str.strip().str.lower()]
    return df


def validate_spreadsheet(data: bytes, filename: str,
                         required: List[str]) -> Tuple[bool, str, Optional[pd.DataFrame]]:
    """
    Validate an uploaded spreadsheet.

    Returns:
        Tuple of (is_valid, error_message, dataframe)
    """
    try:
        df = read_spreadsheet(data, filename)
    except Exception as e:
        logger.error(f"Error reading spreadsheet {filename}: {e}")
        return False, f"Error reading file: {str(e)}", None

    if df.empty:
        return False, "File is empty", None

    missing_headers = [h for h in required if h not in df.columns]
    if missing_headers:
        return False, (f"Missing required columns: {', '.join(missing_headers)}. "
                       f"Required: {', '.join(required)}"), None

    # Blank cells become None so the model layer reports them as missing
    df = df.astype(object).where(df.notna(), None)
    for column in df.columns:
        df[column] = df[column].map(lambda v: v.strip() if isinstance(v, str) else v)

    return True, "", df


def dataframe_rows(df: pd.DataFrame) -> List[Dict]:
    return df.to_dict(orient='records')


def process_student_spreadsheet(data: bytes, filename: str) -> Tuple[bool, str, dict]:
    """
    Upsert the students of an uploaded spreadsheet.

    Returns:
        Tuple of (success, message, summary) where summary is the bulk upsert result
    """
    is_valid, error_msg, df = validate_spreadsheet(data, filename, STUDENT_HEADERS)
    if not is_valid:
        return False, error_msg, {}

    rows = dataframe_rows(df)
    summary = Student.bulk_upsert(rows)
    summary['total'] = len(rows)
    logger.info(f"Student upload {filename}: {summary['created']} created, "
                f"{summary['updated']} updated, {len(summary['errors'])} errors")
    return True, f"Processed {len(rows)} students", summary


def process_faculty_spreadsheet(data: bytes, filename: str) -> Tuple[bool, str, dict]:
    """Upsert the faculty of an uploaded spreadsheet; same shape as the student import."""
    is_valid, error_msg, df = validate_spreadsheet(data, filename, FACULTY_HEADERS)
    if not is_valid:
        return False, error_msg, {}

    rows = dataframe_rows(df)
    summary = Faculty.bulk_upsert(rows)
    summary['total'] = len(rows)
    logger.info(f"Faculty upload {filename}: {summary['created']} created, "
                f"{summary['updated']} updated, {len(summary['errors'])} errors")
    return True, f"Processed {len(rows)} faculty", summary
