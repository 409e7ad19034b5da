"""
Error types raised by models, services and routes.

Each carries the HTTP status it maps to; ``app.py`` registers a handler that
renders them as ``{"error": message}``.
"""


class FeedbackError(Exception):
    status_code = 500
    default_message = 'Unexpected error'

    def __init__(self, message=None, **extra):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.extra = extra

    def to_dict(self):
        body = {'error': self.message}
        body.update(self.extra)
        return body


class ValidationError(FeedbackError):
    status_code = 400
    default_message = 'Invalid request'


class AuthenticationError(FeedbackError):
    status_code = 401
    default_message = 'Please sign in to access this resource'


class AuthorizationError(FeedbackError):
    status_code = 403
    default_message = 'Forbidden'


class NotFoundError(FeedbackError):
    status_code = 404
    default_message = 'Not found'


class ConflictError(FeedbackError):
    status_code = 409
    default_message = 'Conflict'


class UpstreamError(FeedbackError):
    status_code = 502
    default_message = 'Upstream service failed'


DUPLICATE_SUBMISSION = 'DUPLICATE_SUBMISSION'
NOT_AUTHORIZED = 'NOT_AUTHORIZED'
STUDENT_NOT_FOUND = 'STUDENT_NOT_FOUND'
FORM_NOT_FOUND = 'FORM_NOT_FOUND'

SUBMISSION_FAILURES = {
    DUPLICATE_SUBMISSION: (409, 'You have already submitted feedback for this form'),
    NOT_AUTHORIZED: (403, 'You are not authorized to submit this form. '
                          'This form is for a different class/division.'),
    STUDENT_NOT_FOUND: (404, 'Student not found'),
    FORM_NOT_FOUND: (404, 'Form not found'),
}


class SubmissionError(FeedbackError):
    """A submission gate precondition failed.

    ``reason`` is one of the symbolic failure tags above; the status code and
    user-facing message are derived from it.
    """

    def __init__(self, reason, form_id=None):
        status, message = SUBMISSION_FAILURES[reason]
        extra = {'reason': reason}
        if form_id:
            extra['formId'] = form_id
        super().__init__(message, **extra)
        self.reason = reason
        self.form_id = form_id
        self.status_code = status
