"""
Identity resolution from the ``X-User-Email`` header.

The portal trusts the email forwarded by the sign-in frontend and maps it to
a role by looking it up, in order, in admin_users, the configured admin
allow-list, faculty and students.
"""
import functools
import logging
from dataclasses import dataclass
from typing import Optional

from flask import current_app, request

from feedback_app.errors import AuthenticationError, AuthorizationError, ConflictError
from feedback_app.models import AdminUser, Faculty, Student
from utils import normalize_email

logger = logging.getLogger(__name__)

AUTH_HEADER = 'X-User-Email'
AUTH_ENVIRON_KEY = 'feedback_app.auth'


@dataclass
class AuthResult:
    authenticated: bool
    email: Optional[str] = None
    role: Optional[str] = None
    name: Optional[str] = None
    student_id: Optional[str] = None
    faculty_id: Optional[str] = None


def resolve_identity(email):
    """Look up the role of ``email``. Unknown emails are not authenticated."""
    if not email or not email.strip():
        return AuthResult(authenticated=False)

    email = normalize_email(email)

    admin = AdminUser.get_by_email(email)
    if admin:
        return AuthResult(True, email, 'admin', name=admin.get('name') or 'Admin')

    if email in current_app.config.get('ADMIN_EMAILS', ()):
        return AuthResult(True, email, 'admin', name='Admin')

    faculty = Faculty.get_by_email(email)
    if faculty:
        return AuthResult(True, email, 'faculty', name=faculty['name'], faculty_id=faculty['id'])

    student = Student.get_by_email(email)
    if student:
        return AuthResult(True, email, 'student', name=student['name'], student_id=student['id'])

    return AuthResult(False, email)


def current_auth():
    """Resolve (once per request) the caller's identity.

    Cached in the WSGI environ: an app context can outlive many requests.
    """
    auth = request.environ.get(AUTH_ENVIRON_KEY)
    if auth is None:
        auth = resolve_identity(request.headers.get(AUTH_HEADER))
        request.environ[AUTH_ENVIRON_KEY] = auth
    return auth


def require_role(*roles, message=None):
    """Route decorator: 401 for unknown callers, 403 for other roles.

    With no roles, any authenticated caller is accepted.
    """
    def decorator(view):
        @functools.wraps(view)
        def wrapper(*args, **kwargs):
            auth = current_auth()
            if not auth.authenticated:
                raise AuthenticationError('Unauthorized')
            if roles and auth.role not in roles:
                logger.info(f"{auth.email} ({auth.role}) denied access to {request.path}")
                raise AuthorizationError(message or 'Forbidden')
            return view(*args, **kwargs)
        return wrapper
    return decorator


def check_email_in_other_roles(email, target_role):
    """Raise ConflictError if ``email`` already belongs to another role."""
    email = normalize_email(email)
    lookups = (('admin', AdminUser), ('faculty', Faculty), ('student', Student))
    for role, model in lookups:
        if role != target_role and model.get_by_email(email):
            raise ConflictError(f'This email is already registered as {role}. Please remove them '
                                f'from {role} first before adding as {target_role}.',
                                existingRole=role)
