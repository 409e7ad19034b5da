"""
Utils module - small helpers shared by routes and services
"""
import uuid
import logging

logger = logging.getLogger(__name__)


def normalize_email(email):
    """Lower-case and strip an email address. Returns '' for empty values."""
    if not email:
        return ''
    return str(email).strip().lower()


def generate_id(prefix):
    """Return a collision-safe identifier such as ``stu_3f2a9c...``."""
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


def parse_semester(value):
    """Parse a semester number in 1-8. Returns None when invalid."""
    try:
        semester = int(str(value).strip())
    except (ValueError, TypeError):
        return None
    if semester < 1 or semester > 8:
        return None
    return semester


def clean_optional(value, upper=False):
    """Strip a string field, mapping empty/None to None."""
    if value is None:
        return None
    value = str(value).strip()
    if not value or value.lower() == 'nan':
        return None
    return value.upper() if upper else value


def clamp_rating(value):
    """Clamp a numeric rating to [0, 10]."""
    return min(10.0, max(0.0, float(value)))


def form_type_for(batch):
    """A form with a batch is a lab form, otherwise a theory form."""
    return 'lab' if batch else 'theory'
