"""
Google Sheets proxy: fetch a public sheet as CSV for the student/faculty import.
"""
import logging
import re
from urllib.parse import urlsplit, parse_qs

import httpx

from feedback_app.errors import ValidationError, UpstreamError

logger = logging.getLogger(__name__)

SHEET_HOST = 'docs.google.com'
SHEET_ID_PATTERN = re.compile(r'/spreadsheets/d/([^/]+)')


def csv_export_url(sheet_url):
    """Turn a docs.google.com spreadsheet link into its CSV export URL.

    The ``gid`` query parameter selects the tab and defaults to 0.
    """
    try:
        parts = urlsplit(sheet_url.strip())
    except ValueError:
        raise ValidationError('Invalid Google Sheets URL')

    if not parts.scheme or not parts.netloc:
        raise ValidationError('Invalid Google Sheets URL')
    if parts.hostname != SHEET_HOST:
        raise ValidationError('Only Google Sheets links from docs.google.com are supported')

    match = SHEET_ID_PATTERN.search(parts.path)
    if not match:
        raise ValidationError('Invalid Google Sheets URL')

    gid = parse_qs(parts.query).get('gid', ['0'])[0] or '0'
    return f"https://{SHEET_HOST}/spreadsheets/d/{match.group(1)}/export?format=csv&gid={gid}"


def fetch_sheet_csv(csv_url, timeout=15.0, transport=None):
    """Download the CSV text behind ``csv_url``.

    Raises UpstreamError on network failures and non-2xx responses, and
    ValidationError when the sheet comes back empty.
    """
    try:
        with httpx.Client(timeout=timeout, follow_redirects=True, transport=transport) as client:
            response = client.get(csv_url)
            response.raise_for_status()
    except httpx.HTTPStatusError as e:
        logger.error(f"Failed to fetch Google Sheet: {e.response.status_code} {e.response.reason_phrase}")
        raise UpstreamError('Failed to fetch Google Sheet data')
    except httpx.HTTPError as e:
        logger.error(f"Error fetching Google Sheet: {e}")
        raise UpstreamError('Failed to fetch Google Sheet data')

    csv_text = response.text
    if not csv_text or not csv_text.strip():
        raise ValidationError('Google Sheet is empty or returned no data')
    return csv_text
