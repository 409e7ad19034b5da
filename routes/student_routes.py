from flask import Blueprint, request, jsonify
import logging

from feedback_app.errors import ValidationError, NotFoundError, AuthorizationError
from feedback_app.models import (
    DraftFeedback, FeedbackForm, FeedbackResponse, Question, Student,
)
from feedback_app.services.auth import require_role, current_auth
from feedback_app.services.submission import submit_response, submit_bulk
from utils import form_type_for, parse_semester

logger = logging.getLogger(__name__)

student_bp = Blueprint('student', __name__, url_prefix='/api')


def json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def ensure_own_student(student_id):
    """Students may only act on their own id; admins and faculty are not restricted."""
    auth = current_auth()
    if auth.role == 'student' and auth.student_id != student_id:
        raise AuthorizationError('You can only submit feedback for yourself')


@student_bp.route('/forms', methods=['GET'])
@require_role()
def list_forms():
    """Forms visible to the caller.

    Students get the active forms of their class with a ``submitted`` flag,
    faculty their own forms and admins every form.
    """
    auth = current_auth()
    if auth.role == 'student':
        student = Student.get(auth.student_id)
        submitted = FeedbackResponse.submitted_form_ids(student['id'])
        forms = FeedbackForm.for_student(student)
        for form in forms:
            form['submitted'] = form['id'] in submitted
        return jsonify(forms)

    if auth.role == 'faculty':
        return jsonify(FeedbackForm.get_all(faculty_email=auth.email))

    semester = parse_semester(request.args['semester']) if request.args.get('semester') else None
    return jsonify(FeedbackForm.get_all(
        semester=semester,
        course=(request.args.get('course') or '').upper() or None,
        academic_year=request.args.get('academic_year'),
    ))


@student_bp.route('/forms/<form_id>', methods=['GET'])
@require_role()
def get_form(form_id):
    form = FeedbackForm.get(form_id)
    if not form:
        raise NotFoundError('Form not found')
    return jsonify(form)


@student_bp.route('/forms/<form_id>/questions', methods=['GET'])
@require_role()
def get_form_questions(form_id):
    snapshot = FeedbackForm.questions(form_id)
    if snapshot:
        return jsonify([{
            'id': q['original_param_id'],
            'text': q['question_text'],
            'position': q['position'],
            'question_type': q['question_type'],
        } for q in snapshot])

    # Forms created before snapshots: fall back to the live catalog
    form = FeedbackForm.get(form_id)
    if not form:
        raise NotFoundError('Form not found')
    return jsonify([{
        'id': q['id'],
        'text': q['text'],
        'position': q['position'],
        'question_type': q['question_type'],
    } for q in Question.get_all(form_type_for(form['batch']))])


@student_bp.route('/feedback-parameters', methods=['GET'])
@require_role()
def list_feedback_parameters():
    return jsonify(Question.get_all(request.args.get('formType')))


@student_bp.route('/responses', methods=['GET'])
@require_role()
def list_responses():
    auth = current_auth()
    student_id = request.args.get('studentId')
    if auth.role == 'student':
        student_id = auth.student_id
    return jsonify(FeedbackResponse.get_all(form_id=request.args.get('formId'),
                                            student_id=student_id))


@student_bp.route('/responses', methods=['POST'])
@require_role(message='Please sign in to submit feedback')
def create_response():
    data = json_body()
    form_id = data.get('formId')
    student_id = data.get('studentId')
    ratings = data.get('ratings')

    if not form_id or not student_id or ratings is None:
        raise ValidationError('Missing required fields')
    ensure_own_student(student_id)

    response_id = submit_response(form_id, student_id, ratings, data.get('comment'))
    return jsonify({
        'success': True,
        'message': 'Feedback submitted successfully',
        'id': response_id,
    }), 201


@student_bp.route('/responses/bulk', methods=['POST'])
@require_role(message='Please sign in to submit feedback')
def create_responses_bulk():
    data = json_body()
    student_id = data.get('studentId')
    submissions = data.get('submissions')

    if not student_id or not isinstance(submissions, list) or not submissions:
        raise ValidationError('Missing required fields')
    if not all(isinstance(s, dict) for s in submissions):
        raise ValidationError('Each submission must be an object')
    ensure_own_student(student_id)

    response_ids = submit_bulk(student_id, submissions)
    return jsonify({
        'success': True,
        'message': f'Submitted feedback for {len(response_ids)} form(s)',
        'count': len(response_ids),
        'ids': response_ids,
    }), 201


def _draft_student_id(student_id):
    if not student_id:
        raise ValidationError('Missing studentId')
    auth = current_auth()
    if auth.role == 'student' and auth.student_id != student_id:
        raise AuthorizationError('Unauthorized')
    return student_id


@student_bp.route('/draft-feedback', methods=['GET'])
@require_role()
def load_draft():
    student_id = _draft_student_id(request.args.get('studentId'))
    return jsonify(DraftFeedback.load(student_id))


@student_bp.route('/draft-feedback', methods=['PUT'])
@require_role()
def save_draft():
    data = json_body()
    student_id = _draft_student_id(data.get('studentId'))
    DraftFeedback.save(student_id, {
        'currentFormIndex': data.get('currentFormIndex'),
        'allRatings': data.get('allRatings'),
        'allComments': data.get('allComments'),
    })
    return jsonify({'success': True})


@student_bp.route('/draft-feedback', methods=['DELETE'])
@require_role()
def delete_draft():
    student_id = _draft_student_id(request.args.get('studentId'))
    DraftFeedback.clear(student_id)
    return jsonify({'success': True})
