"""
Service for timetable entries: validation, CSV import and CSV export.
"""

import io
import logging
from typing import Dict, List, Optional, Tuple

import pandas as pd

from config import TIMETABLE_HEADERS
from feedback_app.models import Timetable
from utils import clean_optional, normalize_email, parse_semester

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ['subject_name', 'faculty_email', 'semester', 'course', 'division', 'academic_year']

# JSON bodies use camelCase; CSV files use the snake_case headers
CAMEL_TO_SNAKE = {
    'subjectName': 'subject_name',
    'facultyEmail': 'faculty_email',
    'academicYear': 'academic_year',
}


def normalize_entry(raw: Dict) -> Tuple[Optional[Dict], Optional[str]]:
    """
    Validate one timetable entry.

    Returns:
        Tuple of (entry, error) where exactly one is set
    """
    data = {CAMEL_TO_SNAKE.get(k, k): v for k, v in raw.items()}
    entry = {
        'subject_name': clean_optional(data.get('subject_name')),
        'faculty_email': normalize_email(clean_optional(data.get('faculty_email'))),
        'semester': parse_semester(data.get('semester')),
        'course': clean_optional(data.get('course'), upper=True),
        'division': clean_optional(data.get('division'), upper=True),
        'batch': clean_optional(data.get('batch'), upper=True),
        'academic_year': clean_optional(data.get('academic_year')),
    }

    missing = [f for f in REQUIRED_FIELDS if f != 'semester' and not entry[f]]
    if missing:
        return None, f"Missing required fields: {', '.join(missing)}"
    if entry['semester'] is None:
        return None, "Invalid semester"
    return entry, None


def add_entries(raw_entries: List[Dict]) -> dict:
    """Validate and insert entries; invalid rows are reported, not fatal."""
    valid = []
    errors = []
    for index, raw in enumerate(raw_entries, start=1):
        entry, error = normalize_entry(raw)
        if error:
            errors.append(f"Row {index}: {error}")
        else:
            valid.append(entry)

    added, duplicates = Timetable.bulk_add(valid)
    logger.info(f"Timetable import: {added} added, {duplicates} duplicates, {len(errors)} invalid")
    return {
        'added': added,
        'duplicates': duplicates,
        'errors': errors[:10],
        'total': len(raw_entries),
    }


def parse_timetable_csv(data: bytes) -> Tuple[bool, str, List[Dict]]:
    """
    Read a timetable CSV.

    Returns:
        Tuple of (is_valid, error_message, rows)
    """
    try:
        df = pd.read_csv(io.BytesIO(data), dtype=str, keep_default_na=False)
    except pd.errors.EmptyDataError:
        return False, "CSV file is empty", []
    except Exception as e:
        logger.error(f"Error reading timetable CSV: {e}")
        return False, f"Error reading CSV file: {str(e)}", []

    df.columns = df.columns.str.strip().str.lower()
    missing_headers = [h for h in REQUIRED_FIELDS if h not in df.columns]
    if missing_headers:
        return False, (f"Missing required columns: {', '.join(missing_headers)}. "
                       f"Required: {', '.join(TIMETABLE_HEADERS)}"), []
    if df.empty:
        return False, "CSV file is empty", []

    return True, "", df.to_dict(orient='records')


def import_timetable_csv(data: bytes) -> Tuple[bool, str, dict]:
    is_valid, error_msg, rows = parse_timetable_csv(data)
    if not is_valid:
        return False, error_msg, {}
    summary = add_entries(rows)
    return True, f"Added {summary['added']} timetable entries", summary


def export_timetable_csv(academic_year: Optional[str] = None) -> str:
    """Timetable entries as CSV text with the import headers."""
    entries = Timetable.get_all(academic_year=academic_year)
    df = pd.DataFrame(entries, columns=['id'] + TIMETABLE_HEADERS)
    return df[TIMETABLE_HEADERS].to_csv(index=False)
