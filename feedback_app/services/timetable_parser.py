"""
Extract subject/faculty pairs from the text of a timetable PDF.

Timetable cells read like ``ML B305 PPM`` (subject, room, faculty code) for
theory sessions and ``B1 ML B307C PPM`` (batch first) for lab sessions. The
result is only a proposal: nothing is written to the database here.
"""
import io
import logging
import re
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional

from pypdf import PdfReader

from feedback_app.errors import ValidationError

logger = logging.getLogger(__name__)

THEORY_PATTERN = re.compile(r'\b([A-Z]{2,6})\s+([A-Z]?\d{3}[A-Z]?)\s+([A-Z]{2,4})\b', re.IGNORECASE)
LAB_PATTERN = re.compile(r'\b([A-D][1-3])\s+([A-Z]{2,6})\s+([A-Z]?\d{3}[A-Z]?)\s+([A-Z]{2,4})\b',
                         re.IGNORECASE)

STOPWORDS = {'THE', 'AND', 'FOR', 'WITH', 'FROM', 'ROOM', 'LAB', 'THEORY',
             'TIME', 'DAY', 'LUNCH', 'BREAK'}


@dataclass
class ExtractedEntry:
    subject_code: str
    faculty_code: str
    faculty_id: Optional[str] = None
    faculty_name: Optional[str] = None
    faculty_email: Optional[str] = None
    batch: Optional[str] = None
    is_lab: bool = False
    is_valid: bool = False

    def to_dict(self) -> Dict:
        data = asdict(self)
        return {
            'subjectCode': data['subject_code'],
            'facultyCode': data['faculty_code'],
            'facultyId': data['faculty_id'],
            'facultyName': data['faculty_name'],
            'facultyEmail': data['faculty_email'],
            'batch': data['batch'],
            'isLab': data['is_lab'],
            'isValid': data['is_valid'],
        }


def extract_pdf_text(data: bytes) -> str:
    """Concatenate the text of every page of a PDF; raises ValidationError if empty."""
    try:
        reader = PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or '' for page in reader.pages]
    except Exception as e:
        logger.warning(f"Could not read uploaded PDF: {e}")
        raise ValidationError('Could not extract text from PDF')

    text = '\n'.join(pages)
    if not text.strip():
        raise ValidationError('Could not extract text from PDF')
    return text


def _strip_faculty_prefix(subject: str, codes: List[str]) -> str:
    # "SAPOOOSE" is faculty SAP run into subject OOOSE
    for code in codes:
        if subject.startswith(code) and len(subject) > len(code):
            return subject[len(code):]
    return subject


def _make_entry(subject, faculty_code, batch, faculty_by_code):
    faculty = faculty_by_code.get(faculty_code)
    return ExtractedEntry(
        subject_code=subject,
        faculty_code=faculty_code,
        faculty_id=faculty['id'] if faculty else None,
        faculty_name=faculty['name'] if faculty else None,
        faculty_email=faculty['email'] if faculty else None,
        batch=batch,
        is_lab=batch is not None,
        is_valid=faculty is not None,
    )


def parse_timetable_text(text: str, faculty_list: List[Dict]) -> List[ExtractedEntry]:
    """Find theory and lab sessions in ``text``.

    faculty_list: faculty rows (id, name, email, faculty_code); codes are
    matched case-insensitively. Entries whose faculty code is unknown are
    returned with ``is_valid`` False.
    """
    faculty_by_code = {}
    for faculty in faculty_list:
        if faculty.get('faculty_code'):
            faculty_by_code[faculty['faculty_code'].upper()] = faculty
    # Longest first so "SAPR" wins over "SAP" when both are prefixes
    codes = sorted(faculty_by_code, key=len, reverse=True)

    entries = []
    seen = set()

    def accept(subject, faculty_code, batch):
        subject = _strip_faculty_prefix(subject.upper(), codes)
        faculty_code = faculty_code.upper()
        if subject in STOPWORDS:
            return
        if subject in faculty_by_code and len(subject) <= 4:
            return
        key = ('lab', batch, subject, faculty_code) if batch else ('theory', subject, faculty_code)
        if key in seen:
            return
        seen.add(key)
        entries.append(_make_entry(subject, faculty_code, batch, faculty_by_code))

    # The two scans are independent: "B1 ML B307C PPM" also yields theory ML/PPM
    for match in THEORY_PATTERN.finditer(text):
        subject, _room, faculty_code = match.groups()
        accept(subject, faculty_code, None)

    for match in LAB_PATTERN.finditer(text):
        batch, subject, _room, faculty_code = match.groups()
        accept(subject, faculty_code, batch.upper())

    logger.info(f"Timetable parse found {len(entries)} candidate entries")
    return entries


def split_entries(entries: List[ExtractedEntry]):
    """Return (valid, invalid) entry dicts."""
    valid = [e.to_dict() for e in entries if e.is_valid]
    invalid = [e.to_dict() for e in entries if not e.is_valid]
    return valid, invalid
